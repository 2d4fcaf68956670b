"""
Reconciliation state machine and result models.

A record's state is a tagged variant: only ``Matched`` and ``Divergent``
carry a ledger entry, so a "matched without entry" row cannot be built.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional, Union

from .transaction import LedgerEntry, StatementTransaction
from ..utils.exceptions import InvalidStateError


class ReconciliationStatus(Enum):
    """Status of a reconciliation record."""

    UNRESOLVED = "UNRESOLVED"
    MATCHED = "MATCHED"
    IGNORED = "IGNORED"
    DIVERGENT = "DIVERGENT"


# Statuses that consume their ledger entry
CONSUMING_STATUSES = frozenset({ReconciliationStatus.MATCHED, ReconciliationStatus.DIVERGENT})


@dataclass(frozen=True)
class Unresolved:
    status: ClassVar[ReconciliationStatus] = ReconciliationStatus.UNRESOLVED
    entry_id: ClassVar[None] = None


@dataclass(frozen=True)
class Matched:
    entry_id: str
    status: ClassVar[ReconciliationStatus] = ReconciliationStatus.MATCHED


@dataclass(frozen=True)
class Ignored:
    status: ClassVar[ReconciliationStatus] = ReconciliationStatus.IGNORED
    entry_id: ClassVar[None] = None


@dataclass(frozen=True)
class Divergent:
    entry_id: str
    status: ClassVar[ReconciliationStatus] = ReconciliationStatus.DIVERGENT


RecordState = Union[Unresolved, Matched, Ignored, Divergent]

ALLOWED_TRANSITIONS: dict[ReconciliationStatus, frozenset[ReconciliationStatus]] = {
    ReconciliationStatus.UNRESOLVED: frozenset(
        {ReconciliationStatus.MATCHED, ReconciliationStatus.IGNORED}
    ),
    ReconciliationStatus.MATCHED: frozenset(
        {ReconciliationStatus.UNRESOLVED, ReconciliationStatus.DIVERGENT}
    ),
    ReconciliationStatus.IGNORED: frozenset({ReconciliationStatus.UNRESOLVED}),
    ReconciliationStatus.DIVERGENT: frozenset({ReconciliationStatus.UNRESOLVED}),
}


def state_from_row(status: ReconciliationStatus, entry_id: Optional[str]) -> RecordState:
    """Rebuild the tagged state from a stored status and entry column."""
    if status is ReconciliationStatus.MATCHED:
        return Matched(entry_id)
    if status is ReconciliationStatus.DIVERGENT:
        return Divergent(entry_id)
    if status is ReconciliationStatus.IGNORED:
        return Ignored()
    return Unresolved()


def check_transition(current: RecordState, target: RecordState) -> None:
    """
    Validate a state transition.

    Raises:
        InvalidStateError: If the transition is not allowed
    """
    if target.status not in ALLOWED_TRANSITIONS[current.status]:
        raise InvalidStateError(
            f"Cannot move record from {current.status.value} to {target.status.value}"
        )
    if isinstance(current, Matched) and isinstance(target, Divergent):
        if current.entry_id != target.entry_id:
            raise InvalidStateError("A divergent record keeps its matched entry")


@dataclass
class ReconciliationRecord:
    """Link (or deliberate non-link) between a statement transaction and an entry."""

    id: int
    transaction: StatementTransaction
    state: RecordState
    note: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def status(self) -> ReconciliationStatus:
        return self.state.status

    @property
    def entry_id(self) -> Optional[str]:
        return self.state.entry_id

    @property
    def account_id(self) -> str:
        return self.transaction.account_id

    @property
    def needs_attention(self) -> bool:
        return self.status in (ReconciliationStatus.UNRESOLVED, ReconciliationStatus.DIVERGENT)


@dataclass(frozen=True)
class ReconciliationEvent:
    """One entry of a record's transition history."""

    record_id: int
    from_status: Optional[ReconciliationStatus]
    to_status: ReconciliationStatus
    entry_id: Optional[str]
    actor: str
    note: Optional[str]
    occurred_at: datetime


@dataclass(frozen=True)
class MatchedEntry:
    """Matcher decision: the transaction corresponds to ``entry``."""

    entry: LedgerEntry
    tier: str
    date_distance: int

    @property
    def is_match(self) -> bool:
        return True


@dataclass(frozen=True)
class NoMatch:
    """Matcher decision: no candidate satisfies any tier."""

    @property
    def is_match(self) -> bool:
        return False


MatchResult = Union[MatchedEntry, NoMatch]


@dataclass(frozen=True)
class ImportFailure:
    """A statement line that could not be persisted."""

    external_id: str
    reason: str


@dataclass
class ImportSummary:
    """Outcome of one statement import."""

    imported: int = 0
    auto_matched: int = 0
    unresolved: int = 0
    skipped_duplicates: int = 0
    failed: list[ImportFailure] = field(default_factory=list)
    # Records stored but left UNRESOLVED because the match could not be recorded
    match_failures: list[ImportFailure] = field(default_factory=list)
    empty_statement: bool = False

    @property
    def failed_count(self) -> int:
        return len(self.failed)


@dataclass(frozen=True)
class StatusCounts:
    """Per-status record counts for one account."""

    total: int = 0
    matched: int = 0
    unresolved: int = 0
    ignored: int = 0
    divergent: int = 0

    @property
    def match_rate(self) -> float:
        """Percentage of records matched."""
        if self.total == 0:
            return 0.0
        return (self.matched / self.total) * 100
