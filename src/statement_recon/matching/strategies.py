"""
Matching strategies for statement reconciliation.
Each strategy implements one tier of the matcher.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional, Protocol

from ..models.transaction import Direction, LedgerEntry


class PostedAmount(Protocol):
    """Anything with a posting date and a signed amount."""

    posted_on: date
    amount: Decimal


def entry_sort_key(entry_id: str) -> tuple:
    """Order identifiers numerically when they are numbers, textually otherwise."""
    if entry_id.isdigit():
        return (0, int(entry_id), entry_id)
    return (1, 0, entry_id)


def direction_agrees(txn: PostedAmount, entry: LedgerEntry) -> bool:
    """Credits pair with inbound entries, debits with outbound ones."""
    return entry.direction is Direction.for_amount(txn.amount)


def amount_agrees(txn: PostedAmount, entry: LedgerEntry, tolerance: Decimal) -> bool:
    """Absolute amounts differ by less than the tolerance."""
    return abs(abs(entry.net_amount) - abs(txn.amount)) < tolerance


class MatchingStrategy(ABC):
    """Abstract base class for matching strategies."""

    name: str = "strategy"

    def __init__(self, amount_tolerance: Decimal = Decimal("0.01")):
        self.amount_tolerance = amount_tolerance

    def eligible(self, txn: PostedAmount, entry: LedgerEntry) -> bool:
        return direction_agrees(txn, entry) and amount_agrees(txn, entry, self.amount_tolerance)

    @abstractmethod
    def find_match(
        self,
        txn: PostedAmount,
        candidates: list[LedgerEntry],
    ) -> Optional[tuple[LedgerEntry, int]]:
        """
        Find the best candidate for a statement transaction.

        Args:
            txn: Statement transaction to match
            candidates: Candidate ledger entries

        Returns:
            Tuple of (entry, date distance in days) or None
        """
        pass


class ExactDateStrategy(MatchingStrategy):
    """
    Exact match - same direction and amount, settlement or due date on the
    posting date. Ties go to the smallest entry identifier.
    """

    name = "exact_date"

    def find_match(
        self,
        txn: PostedAmount,
        candidates: list[LedgerEntry],
    ) -> Optional[tuple[LedgerEntry, int]]:
        matches = [
            entry
            for entry in candidates
            if self.eligible(txn, entry)
            and (entry.settlement_date == txn.posted_on or entry.due_date == txn.posted_on)
        ]
        if not matches:
            return None
        best = min(matches, key=lambda e: entry_sort_key(e.id))
        return best, 0


class DateWindowStrategy(MatchingStrategy):
    """
    Tolerance match - same direction and amount, effective date (settlement
    falling back to due) within the window of the posting date.
    Closest date wins, then the smallest entry identifier.
    """

    name = "date_window"

    def __init__(self, window_days: int = 3, amount_tolerance: Decimal = Decimal("0.01")):
        """
        Initialize with the date window.

        Args:
            window_days: Maximum days between posting and effective date
            amount_tolerance: Maximum absolute amount difference (exclusive)
        """
        super().__init__(amount_tolerance)
        self.window_days = window_days

    def find_match(
        self,
        txn: PostedAmount,
        candidates: list[LedgerEntry],
    ) -> Optional[tuple[LedgerEntry, int]]:
        scored: list[tuple[int, tuple, LedgerEntry]] = []
        for entry in candidates:
            if not self.eligible(txn, entry):
                continue
            distance = abs((entry.effective_date - txn.posted_on).days)
            if distance <= self.window_days:
                scored.append((distance, entry_sort_key(entry.id), entry))

        if not scored:
            return None
        distance, _, best = min(scored, key=lambda item: (item[0], item[1]))
        return best, distance
