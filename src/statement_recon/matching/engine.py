"""
Two-tier matcher for statement reconciliation.
Decides, for one statement transaction, which ledger entry it settles.
"""

from decimal import Decimal
from typing import Iterable, Optional, Union
import logging

from ..models.reconciliation import MatchedEntry, MatchResult, NoMatch
from ..models.transaction import Direction, LedgerEntry
from ..config import ReconConfig
from .strategies import (
    DateWindowStrategy,
    ExactDateStrategy,
    MatchingStrategy,
    PostedAmount,
    entry_sort_key,
)

logger = logging.getLogger(__name__)


class CandidatePool:
    """
    Mutable set of ledger entries still available for matching, keyed by id.

    Entries are removed as soon as they are matched so later transactions
    in the same run cannot claim them.
    """

    def __init__(self, entries: Iterable[LedgerEntry] = ()):
        self._entries: dict[str, LedgerEntry] = {e.id: e for e in entries}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries

    def get(self, entry_id: str) -> Optional[LedgerEntry]:
        return self._entries.get(entry_id)

    def remove(self, entry_id: str) -> None:
        self._entries.pop(entry_id, None)

    def discard_all(self, entry_ids: Iterable[str]) -> None:
        for entry_id in entry_ids:
            self.remove(entry_id)

    def candidates_for(self, direction: Direction) -> list[LedgerEntry]:
        """Entries with the given direction, in identifier order."""
        return sorted(
            (e for e in self._entries.values() if e.direction is direction),
            key=lambda e: entry_sort_key(e.id),
        )


class Matcher:
    """
    Pure decision function over a candidate pool.

    Tiers are tried in configured order; the first tier that finds a
    candidate decides. The pool is never mutated here.
    """

    def __init__(self, config: Optional[ReconConfig] = None):
        """
        Initialize the matcher.

        Args:
            config: Application configuration
        """
        self.config = config or ReconConfig()
        self.strategies = self._build_strategies()

    def _build_strategies(self) -> list[MatchingStrategy]:
        """
        Build matching strategies from configuration.

        Returns:
            Strategies in tier order
        """
        matching = self.config.matching
        tolerance = Decimal(matching.amount_tolerance)
        available = {
            ExactDateStrategy.name: lambda: ExactDateStrategy(amount_tolerance=tolerance),
            DateWindowStrategy.name: lambda: DateWindowStrategy(
                window_days=matching.date_window_days, amount_tolerance=tolerance
            ),
        }

        if not matching.tiers:
            return [factory() for factory in available.values()]

        strategies: list[MatchingStrategy] = []
        for tier in matching.tiers:
            if not tier.enabled:
                continue
            factory = available.get(tier.name)
            if factory is None:
                logger.warning(f"Unknown matching tier ignored: {tier.name}")
                continue
            strategies.append(factory())
            logger.debug(f"Loaded matching tier: {tier.name}")
        return strategies

    def match(
        self,
        txn: PostedAmount,
        pool: Union[CandidatePool, Iterable[LedgerEntry]],
    ) -> MatchResult:
        """
        Decide whether a statement transaction matches a pool entry.

        Args:
            txn: Statement transaction (anything with posted_on and amount)
            pool: Candidate pool or plain iterable of entries

        Returns:
            MatchedEntry for the winning candidate, or NoMatch
        """
        if txn.amount == 0:
            # Neither inbound nor outbound
            logger.debug(f"Zero amount on {txn.posted_on} is never auto-matched")
            return NoMatch()

        if not isinstance(pool, CandidatePool):
            pool = CandidatePool(pool)

        candidates = pool.candidates_for(Direction.for_amount(txn.amount))
        for strategy in self.strategies:
            found = strategy.find_match(txn, candidates)
            if found:
                entry, distance = found
                logger.debug(
                    f"{strategy.name}: {txn.amount} on {txn.posted_on} -> entry {entry.id} "
                    f"({distance} day(s))"
                )
                return MatchedEntry(entry=entry, tier=strategy.name, date_distance=distance)

        logger.debug(f"No match for {txn.amount} on {txn.posted_on}")
        return NoMatch()
