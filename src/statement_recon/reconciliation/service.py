"""
Reconciliation service: the API consumed by UI and report layers.

Operations that the surrounding application models as
``Result<void, E>`` return normally on success and raise the exception
whose ``kind`` is ``E`` otherwise.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional
import logging

from ..config import ReconConfig
from ..ledger.query import LedgerQuery
from ..matching.engine import Matcher
from ..matching.strategies import amount_agrees, direction_agrees
from ..models.reconciliation import (
    ImportSummary,
    ReconciliationEvent,
    ReconciliationRecord,
    ReconciliationStatus,
    StatusCounts,
)
from ..models.transaction import Direction, LedgerEntry, ParsedStatement
from ..storage.database import Database
from ..storage.locks import AccountLocks
from ..storage.transaction_store import TransactionStore
from ..utils.exceptions import EntryNotFoundError, InvalidStateError, ReconciliationError
from .ledger import CONSISTENCY_CHECK, OPERATOR, ReconciliationLedger
from .orchestrator import ImportOrchestrator

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Facade over the import pipeline and the reconciliation ledger."""

    def __init__(
        self,
        database: Database,
        ledger_query: LedgerQuery,
        config: Optional[ReconConfig] = None,
    ):
        """
        Wire the reconciliation components.

        Args:
            database: Transaction store database (tables must exist)
            ledger_query: Source of settled ledger entries
            config: Application configuration
        """
        self.config = config or ReconConfig()
        self.database = database
        self.ledger_query = ledger_query

        locks = AccountLocks(database.timeout_seconds)
        self.store = TransactionStore(database, locks)
        self.ledger = ReconciliationLedger(database, locks)
        self.matcher = Matcher(self.config)
        self.orchestrator = ImportOrchestrator(self.store, self.ledger, ledger_query, self.matcher)

    def import_statement(self, account_id: str, statement: ParsedStatement) -> ImportSummary:
        return self.orchestrator.import_statement(account_id, statement)

    def list_records(
        self,
        account_id: str,
        status: Optional[ReconciliationStatus] = None,
        text: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[ReconciliationRecord]:
        return self.ledger.list_records(account_id, status=status, text=text, start=start, end=end)

    def get_record(self, record_id: int) -> ReconciliationRecord:
        return self.ledger.get_record(record_id)

    def link_manually(self, record_id: int, entry_id: str, note: Optional[str] = None) -> None:
        """
        Link a record to an operator-selected ledger entry.

        The entry must be a settled entry of the record's account. Direction
        and amount are not re-checked: the operator's choice is authoritative.

        Raises:
            RecordNotFoundError: If the record does not exist
            EntryNotFoundError: If the entry is not a settled entry of the account
            EntryAlreadyReconciledError: If another record already consumes the entry
            InvalidStateError: If the record is not UNRESOLVED
        """
        record = self.ledger.get_record(record_id)
        if self._settled_entry(record.account_id, entry_id) is None:
            raise EntryNotFoundError(
                f"Ledger entry {entry_id} is not a settled entry of account {record.account_id}"
            )
        self.ledger.link(record_id, entry_id, actor=OPERATOR, note=note)

    def link_pairs(self, pairs: Iterable[tuple[int, str]], note: Optional[str] = None) -> int:
        """
        Link several operator-selected (record, entry) pairs in one action.

        All records must belong to the same account. Either every pair is
        linked or, on the first failure, the pairs already linked are undone
        and the error is raised.

        Returns:
            Number of pairs linked
        """
        pairs = list(pairs)
        if not pairs:
            return 0

        accounts = {self.ledger.get_record(record_id).account_id for record_id, _ in pairs}
        if len(accounts) > 1:
            raise InvalidStateError(
                f"Selected records span several accounts: {', '.join(sorted(accounts))}"
            )
        account_id = accounts.pop()

        linked: list[int] = []
        with self.ledger.locks.hold(account_id):
            try:
                for record_id, entry_id in pairs:
                    self.link_manually(record_id, entry_id, note=note)
                    linked.append(record_id)
            except ReconciliationError:
                for record_id in reversed(linked):
                    self.ledger.undo(record_id, note="batch link rolled back")
                raise

        logger.info(f"Linked {len(linked)} pair(s) for account {account_id}")
        return len(linked)

    def ignore(self, record_id: int, note: Optional[str] = None) -> None:
        """
        Raises:
            InvalidStateError: If the record is not UNRESOLVED
        """
        self.ledger.ignore(record_id, note=note)

    def undo(self, record_id: int, note: Optional[str] = None) -> None:
        """
        Raises:
            InvalidStateError: If the record is already UNRESOLVED
        """
        self.ledger.undo(record_id, note=note)

    def mark_divergent(self, record_id: int, note: Optional[str] = None) -> None:
        self.ledger.mark_divergent(record_id, note=note)

    def undo_all(self, account_id: str) -> int:
        return self.ledger.undo_all(account_id, note="bulk undo")

    def auto_match_pending(self, account_id: str) -> int:
        """Run the matcher over every UNRESOLVED record of the account."""
        pending = self.ledger.list_records(account_id, status=ReconciliationStatus.UNRESOLVED)
        matched = self.orchestrator.auto_match(account_id, pending)
        logger.info(f"Auto-match over {len(pending)} pending record(s) of {account_id}: {matched} matched")
        return matched

    def check_consistency(self, account_id: str) -> list[ReconciliationRecord]:
        """
        Re-validate MATCHED records against the current ledger.

        Records whose entry is no longer settled, or whose direction or amount
        no longer agrees with the statement line, become DIVERGENT.

        Returns:
            Records moved to DIVERGENT
        """
        tolerance = Decimal(self.config.matching.amount_tolerance)
        entries = {e.id: e for e in self.ledger_query.settled_entries(account_id)}

        flagged: list[ReconciliationRecord] = []
        for record in self.ledger.list_records(account_id, status=ReconciliationStatus.MATCHED):
            entry = entries.get(record.entry_id)
            if entry is None:
                reason = f"entry {record.entry_id} is no longer a settled entry of the account"
            elif not direction_agrees(record.transaction, entry):
                reason = f"direction mismatch with entry {entry.id}"
            elif not amount_agrees(record.transaction, entry, tolerance):
                reason = (
                    f"amount mismatch: statement {abs(record.transaction.amount)}, "
                    f"entry {entry.net_amount}"
                )
            else:
                continue
            flagged.append(self.ledger.mark_divergent(record.id, note=reason, actor=CONSISTENCY_CHECK))

        if flagged:
            logger.warning(f"{len(flagged)} record(s) of {account_id} became divergent")
        return flagged

    def statistics(self, account_id: str) -> StatusCounts:
        return self.ledger.statistics(account_id)

    def history(self, record_id: int) -> list[ReconciliationEvent]:
        return self.ledger.history(record_id)

    def amount_difference(
        self,
        account_id: str,
        record_ids: Iterable[int],
        entry_ids: Iterable[str],
    ) -> Decimal:
        """
        Absolute statement total minus absolute ledger total of a selection.

        Used by operators to check a manual pairing before linking.
        """
        statement_total = sum(
            (self.ledger.get_record(record_id).transaction.amount for record_id in record_ids),
            Decimal("0"),
        )
        ledger_total = Decimal("0")
        for entry_id in entry_ids:
            entry = self._settled_entry(account_id, entry_id)
            if entry is None:
                raise EntryNotFoundError(f"Ledger entry {entry_id} not found for account {account_id}")
            ledger_total += _signed(entry)
        return abs(statement_total) - abs(ledger_total)

    def _settled_entry(self, account_id: str, entry_id: str) -> Optional[LedgerEntry]:
        for entry in self.ledger_query.settled_entries(account_id):
            if entry.id == entry_id:
                return entry
        return None


def _signed(entry: LedgerEntry) -> Decimal:
    amount = abs(entry.net_amount)
    return amount if entry.direction is Direction.INBOUND else -amount
