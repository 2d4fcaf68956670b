"""Data models for statement transactions and ledger entries."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional


class TransactionType(Enum):
    """Transaction type code as declared by the bank export."""

    CREDIT = "CREDIT"  # Money in
    DEBIT = "DEBIT"  # Money out


class Direction(Enum):
    """Direction of an internally recorded entry."""

    INBOUND = "inbound"  # Receivable
    OUTBOUND = "outbound"  # Payable

    @classmethod
    def for_amount(cls, amount: Decimal) -> "Direction":
        """Direction a signed statement amount corresponds to."""
        return cls.INBOUND if amount > 0 else cls.OUTBOUND


class SettlementStatus(Enum):
    """Settlement status of a ledger entry."""

    OPEN = "open"
    SETTLED = "settled"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class StatementLine:
    """
    One transaction block as read from a statement file.

    Carries no account or persistence identity; the parser produces these
    and the import pipeline turns them into ``StatementTransaction`` rows.
    """

    external_id: str
    type: TransactionType
    posted_on: date
    # Signed: positive = credit, negative = debit
    amount: Decimal
    memo: str = ""
    reference: Optional[str] = None


@dataclass(frozen=True)
class StatementTransaction:
    """A statement line durably stored for an account."""

    id: int
    account_id: str
    external_id: str
    posted_on: date
    amount: Decimal
    memo: str = ""
    reference: Optional[str] = None

    @property
    def identity(self) -> tuple[str, str]:
        """Deduplication key ``(account, external_id)``."""
        return (self.account_id, self.external_id)

    @property
    def direction(self) -> Direction:
        return Direction.for_amount(self.amount)


@dataclass
class ParsedStatement:
    """Normalized contents of one bank statement file."""

    bank_id: str
    account_id: str
    period_start: Optional[date]
    period_end: Optional[date]
    closing_balance: Decimal
    transactions: list[StatementLine] = field(default_factory=list)
    bank_name: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.transactions

    @property
    def total_credits(self) -> Decimal:
        return sum((t.amount for t in self.transactions if t.amount > 0), Decimal("0"))

    @property
    def total_debits(self) -> Decimal:
        return sum((-t.amount for t in self.transactions if t.amount < 0), Decimal("0"))


@dataclass(frozen=True)
class LedgerEntry:
    """
    Internally recorded receivable or payable.

    Owned by the surrounding application; this subsystem only reads it.
    """

    id: str
    account_id: str
    direction: Direction
    net_amount: Decimal
    due_date: date
    settlement_date: Optional[date] = None
    status: SettlementStatus = SettlementStatus.SETTLED
    counterparty: str = ""
    document_number: Optional[str] = None

    @property
    def effective_date(self) -> date:
        """Settlement date, falling back to the due date."""
        return self.settlement_date or self.due_date

    @property
    def is_settled(self) -> bool:
        return self.status is SettlementStatus.SETTLED
