"""Data models for reconciliation."""

from .transaction import (
    Direction,
    LedgerEntry,
    ParsedStatement,
    SettlementStatus,
    StatementLine,
    StatementTransaction,
    TransactionType,
)
from .reconciliation import (
    CONSUMING_STATUSES,
    Divergent,
    Ignored,
    ImportFailure,
    ImportSummary,
    Matched,
    MatchedEntry,
    MatchResult,
    NoMatch,
    ReconciliationEvent,
    ReconciliationRecord,
    ReconciliationStatus,
    RecordState,
    StatusCounts,
    Unresolved,
)

__all__ = [
    "Direction",
    "LedgerEntry",
    "ParsedStatement",
    "SettlementStatus",
    "StatementLine",
    "StatementTransaction",
    "TransactionType",
    "CONSUMING_STATUSES",
    "Divergent",
    "Ignored",
    "ImportFailure",
    "ImportSummary",
    "Matched",
    "MatchedEntry",
    "MatchResult",
    "NoMatch",
    "ReconciliationEvent",
    "ReconciliationRecord",
    "ReconciliationStatus",
    "RecordState",
    "StatusCounts",
    "Unresolved",
]
