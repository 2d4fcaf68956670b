"""Matching engine and strategies."""

from .engine import CandidatePool, Matcher
from .strategies import (
    MatchingStrategy,
    ExactDateStrategy,
    DateWindowStrategy,
)

__all__ = [
    "CandidatePool",
    "Matcher",
    "MatchingStrategy",
    "ExactDateStrategy",
    "DateWindowStrategy",
]
