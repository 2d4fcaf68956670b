"""
Durable store of imported statement transactions.

Adding a transaction creates its UNRESOLVED reconciliation record in the
same database transaction, so a stored line never lacks a record.
"""

from typing import Optional
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.reconciliation import ReconciliationRecord, ReconciliationStatus
from ..models.transaction import StatementLine
from .database import Database
from .locks import AccountLocks
from .tables import (
    ReconciliationEventRow,
    ReconciliationRecordRow,
    StatementTransactionRow,
)

logger = logging.getLogger(__name__)

IMPORT_ACTOR = "import"


class TransactionStore:
    """Statement transactions keyed by ``(account, external_id)``."""

    def __init__(self, database: Database, locks: Optional[AccountLocks] = None):
        self.database = database
        self.locks = locks or AccountLocks(database.timeout_seconds)

    def ping(self) -> None:
        self.database.ping()

    def contains(self, account_id: str, external_id: str) -> bool:
        with self.database.session_scope() as session:
            return self._find_id(session, account_id, external_id) is not None

    def count(self, account_id: str) -> int:
        with self.database.session_scope() as session:
            return session.scalar(
                select(func.count(StatementTransactionRow.id)).where(
                    StatementTransactionRow.account_id == account_id
                )
            )

    def add(
        self,
        account_id: str,
        line: StatementLine,
        bank_id: Optional[str] = None,
    ) -> Optional[ReconciliationRecord]:
        """
        Persist a statement line and its UNRESOLVED record.

        Args:
            account_id: Owning account
            line: Parsed statement line
            bank_id: Issuing bank code

        Returns:
            The new record, or None if the line was already imported

        Raises:
            StorageUnavailableError: If the database cannot be reached
            IntegrityError: If the insert fails for a reason other than a duplicate
        """
        with self.locks.hold(account_id):
            try:
                with self.database.session_scope() as session:
                    if self._find_id(session, account_id, line.external_id) is not None:
                        logger.debug(f"Skipping duplicate {account_id}/{line.external_id}")
                        return None

                    txn_row = StatementTransactionRow(
                        account_id=account_id,
                        external_id=line.external_id,
                        bank_id=bank_id,
                        posted_on=line.posted_on,
                        amount=line.amount,
                        memo=line.memo,
                        reference=line.reference,
                    )
                    session.add(txn_row)
                    session.flush()

                    record_row = ReconciliationRecordRow(
                        transaction=txn_row,
                        account_id=account_id,
                        status=ReconciliationStatus.UNRESOLVED,
                    )
                    session.add(record_row)
                    session.flush()

                    session.add(
                        ReconciliationEventRow(
                            record_id=record_row.id,
                            from_status=None,
                            to_status=ReconciliationStatus.UNRESOLVED,
                            actor=IMPORT_ACTOR,
                        )
                    )
                    session.flush()
                    return record_row.to_domain()
            except IntegrityError:
                # Another process inserted the same identity first
                if self.contains(account_id, line.external_id):
                    logger.debug(f"Skipping duplicate {account_id}/{line.external_id}")
                    return None
                raise

    @staticmethod
    def _find_id(session: Session, account_id: str, external_id: str) -> Optional[int]:
        return session.scalar(
            select(StatementTransactionRow.id).where(
                StatementTransactionRow.account_id == account_id,
                StatementTransactionRow.external_id == external_id,
            )
        )
