"""
Reconciliation ledger: the authoritative mapping between statement
transactions and ledger entries.

Every transition runs in one database transaction under the account lock,
re-checks the entry uniqueness rule, and appends a history event. Records
are never deleted.
"""

from datetime import date
from typing import Callable, Optional
import logging

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError

from ..models.reconciliation import (
    CONSUMING_STATUSES,
    Divergent,
    Ignored,
    Matched,
    ReconciliationEvent,
    ReconciliationRecord,
    ReconciliationStatus,
    RecordState,
    StatusCounts,
    Unresolved,
    check_transition,
)
from ..storage.database import Database
from ..storage.locks import AccountLocks
from ..storage.tables import (
    ReconciliationEventRow,
    ReconciliationRecordRow,
    StatementTransactionRow,
    utcnow,
)
from ..utils.exceptions import (
    EntryAlreadyReconciledError,
    InvalidStateError,
    RecordNotFoundError,
)

logger = logging.getLogger(__name__)

OPERATOR = "operator"
MATCHER = "matcher"
CONSISTENCY_CHECK = "consistency-check"


class ReconciliationLedger:
    """State machine and persistence for reconciliation records."""

    def __init__(self, database: Database, locks: Optional[AccountLocks] = None):
        self.database = database
        self.locks = locks or AccountLocks(database.timeout_seconds)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_record(self, record_id: int) -> ReconciliationRecord:
        """
        Raises:
            RecordNotFoundError: If no record has this id
        """
        with self.database.session_scope() as session:
            row = session.get(ReconciliationRecordRow, record_id)
            if row is None:
                raise RecordNotFoundError(f"Reconciliation record {record_id} not found")
            return row.to_domain()

    def list_records(
        self,
        account_id: str,
        status: Optional[ReconciliationStatus] = None,
        text: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[ReconciliationRecord]:
        """
        Records of an account in posting-date order.

        Args:
            account_id: Account to list
            status: Only records in this status
            text: Case-insensitive search over memo and external id
            start: Earliest posting date
            end: Latest posting date
        """
        query = (
            select(ReconciliationRecordRow)
            .join(ReconciliationRecordRow.transaction)
            .where(ReconciliationRecordRow.account_id == account_id)
        )
        if status is not None:
            query = query.where(ReconciliationRecordRow.status == status)
        if text:
            pattern = f"%{text.lower()}%"
            query = query.where(
                or_(
                    func.lower(StatementTransactionRow.memo).like(pattern),
                    func.lower(StatementTransactionRow.external_id).like(pattern),
                )
            )
        if start is not None:
            query = query.where(StatementTransactionRow.posted_on >= start)
        if end is not None:
            query = query.where(StatementTransactionRow.posted_on <= end)
        query = query.order_by(StatementTransactionRow.posted_on, StatementTransactionRow.id)

        with self.database.session_scope() as session:
            return [row.to_domain() for row in session.scalars(query).unique()]

    def consumed_entry_ids(self, account_id: str) -> set[str]:
        """Entries held by MATCHED or DIVERGENT records of the account."""
        with self.database.session_scope() as session:
            return set(
                session.scalars(
                    select(ReconciliationRecordRow.entry_id).where(
                        ReconciliationRecordRow.account_id == account_id,
                        ReconciliationRecordRow.status.in_(CONSUMING_STATUSES),
                    )
                )
            )

    def statistics(self, account_id: str) -> StatusCounts:
        with self.database.session_scope() as session:
            rows = session.execute(
                select(ReconciliationRecordRow.status, func.count(ReconciliationRecordRow.id))
                .where(ReconciliationRecordRow.account_id == account_id)
                .group_by(ReconciliationRecordRow.status)
            ).all()
        counts = {status: count for status, count in rows}
        return StatusCounts(
            total=sum(counts.values()),
            matched=counts.get(ReconciliationStatus.MATCHED, 0),
            unresolved=counts.get(ReconciliationStatus.UNRESOLVED, 0),
            ignored=counts.get(ReconciliationStatus.IGNORED, 0),
            divergent=counts.get(ReconciliationStatus.DIVERGENT, 0),
        )

    def history(self, record_id: int) -> list[ReconciliationEvent]:
        """Transition events of a record, oldest first."""
        with self.database.session_scope() as session:
            if session.get(ReconciliationRecordRow, record_id) is None:
                raise RecordNotFoundError(f"Reconciliation record {record_id} not found")
            rows = session.scalars(
                select(ReconciliationEventRow)
                .where(ReconciliationEventRow.record_id == record_id)
                .order_by(ReconciliationEventRow.id)
            )
            return [row.to_domain() for row in rows]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def link(
        self,
        record_id: int,
        entry_id: str,
        actor: str = OPERATOR,
        note: Optional[str] = None,
    ) -> ReconciliationRecord:
        """
        UNRESOLVED -> MATCHED.

        Raises:
            EntryAlreadyReconciledError: If another record consumes the entry
            InvalidStateError: If the record is not UNRESOLVED
            RecordNotFoundError: If the record does not exist
        """
        return self._transition(record_id, lambda _: Matched(entry_id), actor, note)

    def ignore(
        self, record_id: int, note: Optional[str] = None, actor: str = OPERATOR
    ) -> ReconciliationRecord:
        """UNRESOLVED -> IGNORED."""
        return self._transition(record_id, lambda _: Ignored(), actor, note)

    def undo(
        self, record_id: int, note: Optional[str] = None, actor: str = OPERATOR
    ) -> ReconciliationRecord:
        """MATCHED, IGNORED or DIVERGENT -> UNRESOLVED; releases any entry."""
        return self._transition(record_id, lambda _: Unresolved(), actor, note)

    def mark_divergent(
        self, record_id: int, note: Optional[str] = None, actor: str = OPERATOR
    ) -> ReconciliationRecord:
        """MATCHED -> DIVERGENT, keeping the entry consumed."""
        return self._transition(
            record_id, lambda current: Divergent(current.entry_id), actor, note
        )

    def undo_all(self, account_id: str, note: Optional[str] = None) -> int:
        """Revert every MATCHED record of the account. Returns the count."""
        with self.locks.hold(account_id):
            matched = self.list_records(account_id, status=ReconciliationStatus.MATCHED)
            for record in matched:
                self.undo(record.id, note=note)
        logger.info(f"Reverted {len(matched)} matched record(s) for account {account_id}")
        return len(matched)

    def _account_of(self, record_id: int) -> str:
        with self.database.session_scope() as session:
            account_id = session.scalar(
                select(ReconciliationRecordRow.account_id).where(
                    ReconciliationRecordRow.id == record_id
                )
            )
        if account_id is None:
            raise RecordNotFoundError(f"Reconciliation record {record_id} not found")
        return account_id

    def _transition(
        self,
        record_id: int,
        target_for: Callable[[RecordState], RecordState],
        actor: str,
        note: Optional[str],
    ) -> ReconciliationRecord:
        account_id = self._account_of(record_id)

        with self.locks.hold(account_id):
            target: Optional[RecordState] = None
            try:
                with self.database.session_scope() as session:
                    row = session.get(ReconciliationRecordRow, record_id, with_for_update=True)
                    if row is None:
                        raise RecordNotFoundError(f"Reconciliation record {record_id} not found")

                    current = row.to_domain().state
                    target = target_for(current)
                    check_transition(current, target)

                    if isinstance(target, Matched):
                        holder = session.scalar(
                            select(ReconciliationRecordRow.id).where(
                                ReconciliationRecordRow.entry_id == target.entry_id,
                                ReconciliationRecordRow.id != record_id,
                            )
                        )
                        if holder is not None:
                            raise EntryAlreadyReconciledError(target.entry_id, holder)

                    row.status = target.status
                    row.entry_id = target.entry_id
                    if note is not None:
                        row.note = note
                    row.updated_at = utcnow()

                    session.add(
                        ReconciliationEventRow(
                            record_id=record_id,
                            from_status=current.status,
                            to_status=target.status,
                            entry_id=target.entry_id or current.entry_id,
                            actor=actor,
                            note=note,
                        )
                    )
                    session.flush()
                    record = row.to_domain()
            except IntegrityError as e:
                if isinstance(target, Matched):
                    raise EntryAlreadyReconciledError(target.entry_id) from e
                raise InvalidStateError(f"Record {record_id} violates a ledger constraint") from e

        logger.info(
            f"Record {record_id}: {current.status.value} -> {target.status.value} "
            f"by {actor}" + (f" (entry {record.entry_id})" if record.entry_id else "")
        )
        return record
