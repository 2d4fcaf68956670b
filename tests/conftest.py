"""
Pytest fixtures for the reconciliation test suite.

Provides:
- In-memory SQLite database with all tables created
- In-memory ledger and a wired ReconciliationService
- Builders for OFX statement bytes and ledger entries
"""

from datetime import date
from decimal import Decimal
from typing import Optional

import pytest

from statement_recon.config import ReconConfig
from statement_recon.ledger import InMemoryLedger
from statement_recon.models import Direction, LedgerEntry, SettlementStatus
from statement_recon.parsers import OFXStatementParser
from statement_recon.reconciliation import ReconciliationService
from statement_recon.storage import Database

ACCOUNT = "12345-6"

OFX_HEADER = """OFXHEADER:100
DATA:OFXSGML
VERSION:102
SECURITY:NONE
ENCODING:USASCII
CHARSET:1252
COMPRESSION:NONE
OLDFILEUID:NONE
NEWFILEUID:NONE

"""


def _stmttrn(fitid, amount, posted, trntype=None, memo="", checknum=None) -> str:
    amount = Decimal(str(amount))
    if trntype is None:
        trntype = "CREDIT" if amount > 0 else "DEBIT"
    lines = [
        "<STMTTRN>",
        f"<TRNTYPE>{trntype}",
        f"<DTPOSTED>{posted}120000[-3:BRT]",
        f"<TRNAMT>{amount}",
        f"<FITID>{fitid}",
    ]
    if checknum:
        lines.append(f"<CHECKNUM>{checknum}")
    if memo:
        lines.append(f"<MEMO>{memo}")
    lines.append("</STMTTRN>")
    return "\n".join(lines)


def build_ofx(
    transactions=(),
    bank_id: str = "341",
    account_id: str = ACCOUNT,
    start: str = "20240301",
    end: str = "20240331",
    balance: str = "10000.00",
) -> bytes:
    """
    Build an SGML-style OFX statement.

    ``transactions`` holds tuples of (fitid, amount, yyyymmdd) or dicts of
    keyword arguments for a single transaction block.
    """
    blocks = []
    for txn in transactions:
        if isinstance(txn, dict):
            blocks.append(_stmttrn(**txn))
        else:
            blocks.append(_stmttrn(*txn))

    body = f"""<OFX>
<SIGNONMSGSRSV1><SONRS><STATUS><CODE>0<SEVERITY>INFO</STATUS><LANGUAGE>POR</SONRS></SIGNONMSGSRSV1>
<BANKMSGSRSV1>
<STMTTRNRS>
<STMTRS>
<CURDEF>BRL
<BANKACCTFROM>
<BANKID>{bank_id}
<ACCTID>{account_id}
<ACCTTYPE>CHECKING
</BANKACCTFROM>
<BANKTRANLIST>
<DTSTART>{start}
<DTEND>{end}
{chr(10).join(blocks)}
</BANKTRANLIST>
<LEDGERBAL>
<BALAMT>{balance}
<DTASOF>{end}
</LEDGERBAL>
</STMTRS>
</STMTTRNRS>
</BANKMSGSRSV1>
</OFX>
"""
    return (OFX_HEADER + body).encode("latin-1")


def make_entry(
    entry_id: str,
    direction: Direction,
    amount,
    due_date: date,
    settlement_date: Optional[date] = None,
    status: SettlementStatus = SettlementStatus.SETTLED,
    account_id: str = ACCOUNT,
) -> LedgerEntry:
    return LedgerEntry(
        id=entry_id,
        account_id=account_id,
        direction=direction,
        net_amount=Decimal(str(amount)),
        due_date=due_date,
        settlement_date=settlement_date,
        status=status,
    )


@pytest.fixture
def ofx():
    """Builder for OFX statement bytes."""
    return build_ofx


@pytest.fixture
def entry():
    """Builder for ledger entries of the default account."""
    return make_entry


@pytest.fixture
def config() -> ReconConfig:
    return ReconConfig()


@pytest.fixture
def parser(config) -> OFXStatementParser:
    return OFXStatementParser(config)


@pytest.fixture
def database():
    """In-memory database with all tables, disposed after the test."""
    db = Database("sqlite://", timeout_seconds=5.0)
    db.create_tables()
    yield db
    db.dispose()


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def service(database, ledger, config) -> ReconciliationService:
    return ReconciliationService(database, ledger, config)
