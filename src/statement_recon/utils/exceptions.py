"""Custom exceptions for the reconciliation application."""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Machine-readable error categories surfaced to callers."""

    MALFORMED_INPUT = "MALFORMED_INPUT"
    EMPTY_STATEMENT = "EMPTY_STATEMENT"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    ENTRY_ALREADY_RECONCILED = "ENTRY_ALREADY_RECONCILED"
    INVALID_STATE = "INVALID_STATE"
    NOT_FOUND = "NOT_FOUND"
    CONFIGURATION = "CONFIGURATION"
    REPORT_GENERATION = "REPORT_GENERATION"


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    kind: ErrorKind = ErrorKind.INVALID_STATE


class MalformedStatementError(ReconciliationError):
    """Statement file is missing required structural markers."""

    kind = ErrorKind.MALFORMED_INPUT


class LedgerSourceError(ReconciliationError):
    """Error reading ledger entries from an export file."""

    kind = ErrorKind.MALFORMED_INPUT


class StorageUnavailableError(ReconciliationError):
    """Transaction store could not be reached or timed out."""

    kind = ErrorKind.STORAGE_UNAVAILABLE


class EntryAlreadyReconciledError(ReconciliationError):
    """Ledger entry is already consumed by another record."""

    kind = ErrorKind.ENTRY_ALREADY_RECONCILED

    def __init__(self, entry_id: str, record_id: Optional[int] = None):
        self.entry_id = entry_id
        self.record_id = record_id
        holder = f" by record {record_id}" if record_id is not None else ""
        super().__init__(f"Ledger entry {entry_id} is already reconciled{holder}")


class InvalidStateError(ReconciliationError):
    """Transition is not legal from the record's current status."""

    kind = ErrorKind.INVALID_STATE


class RecordNotFoundError(ReconciliationError):
    """Reconciliation record does not exist."""

    kind = ErrorKind.NOT_FOUND


class EntryNotFoundError(ReconciliationError):
    """Ledger entry is not among the settled entries of the account."""

    kind = ErrorKind.NOT_FOUND


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    kind = ErrorKind.CONFIGURATION


class ReportGenerationError(ReconciliationError):
    """Error generating Excel report."""

    kind = ErrorKind.REPORT_GENERATION
