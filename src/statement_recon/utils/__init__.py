"""Utility modules."""

from .exceptions import (
    ErrorKind,
    ReconciliationError,
    MalformedStatementError,
    LedgerSourceError,
    StorageUnavailableError,
    EntryAlreadyReconciledError,
    InvalidStateError,
    RecordNotFoundError,
    EntryNotFoundError,
    ConfigurationError,
    ReportGenerationError,
)
from .logging_config import setup_logging

__all__ = [
    "ErrorKind",
    "ReconciliationError",
    "MalformedStatementError",
    "LedgerSourceError",
    "StorageUnavailableError",
    "EntryAlreadyReconciledError",
    "InvalidStateError",
    "RecordNotFoundError",
    "EntryNotFoundError",
    "ConfigurationError",
    "ReportGenerationError",
    "setup_logging",
]
