"""
ORM tables for imported statement transactions and their reconciliation
records.

Uniqueness rules live in the schema so that concurrent writers cannot race
past an application-level check:

- ``(account_id, external_id)`` is unique per statement transaction.
- ``entry_id`` is unique across reconciliation records. Only MATCHED and
  DIVERGENT rows carry an entry (check constraint), so a ledger entry is
  consumed at most once while UNRESOLVED/IGNORED rows hold NULL.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import ClassVar, Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from ..models.reconciliation import (
    ReconciliationEvent,
    ReconciliationRecord,
    ReconciliationStatus,
    state_from_row,
)
from ..models.transaction import StatementTransaction


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DecimalText(TypeDecorator):
    """
    Exact decimal stored as text for cross-database portability.

    SQLite has no decimal type and would round-trip through float.
    """

    impl = String(40)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(Decimal(value))
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return Decimal(value)
        return None


class Base(DeclarativeBase):
    """Declarative base for all tables."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: DecimalText(),
        datetime: DateTime(timezone=True),
        date: Date(),
    }


STATUS_TYPE = SAEnum(ReconciliationStatus, native_enum=False, length=16)


class StatementTransactionRow(Base):
    """A statement line imported for an account. Never updated."""

    __tablename__ = "statement_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(64), index=True)
    external_id: Mapped[str] = mapped_column(String(255))
    bank_id: Mapped[Optional[str]] = mapped_column(String(32))
    posted_on: Mapped[date]
    amount: Mapped[Decimal]
    memo: Mapped[str] = mapped_column(Text, default="")
    reference: Mapped[Optional[str]] = mapped_column(String(64))
    imported_at: Mapped[datetime] = mapped_column(default=utcnow)

    record: Mapped[Optional["ReconciliationRecordRow"]] = relationship(
        back_populates="transaction", uselist=False
    )

    __table_args__ = (
        UniqueConstraint("account_id", "external_id", name="uq_statement_transactions_identity"),
    )

    def to_domain(self) -> StatementTransaction:
        return StatementTransaction(
            id=self.id,
            account_id=self.account_id,
            external_id=self.external_id,
            posted_on=self.posted_on,
            amount=self.amount,
            memo=self.memo or "",
            reference=self.reference,
        )


class ReconciliationRecordRow(Base):
    """Current reconciliation state of one statement transaction."""

    __tablename__ = "reconciliation_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("statement_transactions.id"), unique=True
    )
    account_id: Mapped[str] = mapped_column(String(64), index=True)
    status: Mapped[ReconciliationStatus] = mapped_column(STATUS_TYPE, index=True)
    entry_id: Mapped[Optional[str]] = mapped_column(String(64))
    note: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow)

    transaction: Mapped[StatementTransactionRow] = relationship(
        back_populates="record", lazy="joined", innerjoin=True
    )

    __table_args__ = (
        UniqueConstraint("entry_id", name="uq_reconciliation_records_entry"),
        CheckConstraint(
            "(status IN ('MATCHED', 'DIVERGENT') AND entry_id IS NOT NULL) "
            "OR (status IN ('UNRESOLVED', 'IGNORED') AND entry_id IS NULL)",
            name="ck_reconciliation_records_entry_status",
        ),
    )

    def to_domain(self) -> ReconciliationRecord:
        return ReconciliationRecord(
            id=self.id,
            transaction=self.transaction.to_domain(),
            state=state_from_row(self.status, self.entry_id),
            note=self.note,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class ReconciliationEventRow(Base):
    """Append-only transition history of reconciliation records."""

    __tablename__ = "reconciliation_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    record_id: Mapped[int] = mapped_column(ForeignKey("reconciliation_records.id"), index=True)
    from_status: Mapped[Optional[ReconciliationStatus]] = mapped_column(STATUS_TYPE)
    to_status: Mapped[ReconciliationStatus] = mapped_column(STATUS_TYPE)
    entry_id: Mapped[Optional[str]] = mapped_column(String(64))
    actor: Mapped[str] = mapped_column(String(32))
    note: Mapped[Optional[str]] = mapped_column(Text)
    occurred_at: Mapped[datetime] = mapped_column(default=utcnow)

    def to_domain(self) -> ReconciliationEvent:
        return ReconciliationEvent(
            record_id=self.record_id,
            from_status=self.from_status,
            to_status=self.to_status,
            entry_id=self.entry_id,
            actor=self.actor,
            note=self.note,
            occurred_at=self.occurred_at,
        )
