"""
OFX bank statement parser.
Converts tag-delimited statement exports into a normalized statement.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional
import logging
import re

from ..models.transaction import ParsedStatement, StatementLine, TransactionType
from ..config import ReconConfig
from ..utils.exceptions import MalformedStatementError

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("ofx",)

# Known Brazilian bank codes (COMPE)
BANK_NAMES = {
    "001": "Banco do Brasil",
    "033": "Santander",
    "104": "Caixa Econômica",
    "237": "Bradesco",
    "341": "Itaú",
    "0341": "Itaú",
}

# SGML-style OFX leaves most leaf tags unclosed, so values run to the next
# tag or line break.
_TAG_VALUE = r"<{tag}>\s*([^<\r\n]+)"
_BLOCK = re.compile(r"<STMTTRN>(.*?)</STMTTRN>", re.DOTALL | re.IGNORECASE)
_LEDGER_BALANCE = re.compile(r"<LEDGERBAL>(.*?)(?:</LEDGERBAL>|$)", re.DOTALL | re.IGNORECASE)
_HEADER_ENCODING = re.compile(r"^\s*ENCODING\s*:\s*(\S+)", re.MULTILINE | re.IGNORECASE)
_HEADER_CHARSET = re.compile(r"^\s*CHARSET\s*:\s*(\S+)", re.MULTILINE | re.IGNORECASE)


def bank_name_for(bank_id: str) -> str:
    """Display name for a bank code."""
    return BANK_NAMES.get(bank_id, f"Banco {bank_id}")


class OFXStatementParser:
    """
    Parser for OFX bank statement files.

    A pure function of its input: no deduplication and no persistence.
    Statements with zero transaction blocks are returned empty rather
    than rejected; callers check ``ParsedStatement.is_empty``.
    """

    def __init__(self, config: Optional[ReconConfig] = None):
        """
        Initialize the parser with configuration.

        Args:
            config: Application configuration object
        """
        self.config = config or ReconConfig()
        self.encoding = self.config.input.ofx.encoding

    def parse_file(self, file_path: Path) -> ParsedStatement:
        """
        Parse a statement file from disk.

        Raises:
            MalformedStatementError: If the file cannot be read or parsed
        """
        logger.info(f"Parsing statement file: {file_path}")
        try:
            content = Path(file_path).read_bytes()
        except OSError as e:
            raise MalformedStatementError(f"Cannot read statement file {file_path}: {e}") from e
        return self.parse(content, self.config.input.ofx.format)

    def parse(self, content: bytes, statement_format: str = "ofx") -> ParsedStatement:
        """
        Parse raw statement bytes.

        Args:
            content: Raw file bytes
            statement_format: Declared file format

        Returns:
            Parsed statement with transactions in file order

        Raises:
            MalformedStatementError: If required markers are missing or a
                transaction block cannot be read
        """
        if statement_format.lower() not in SUPPORTED_FORMATS:
            raise MalformedStatementError(f"Unsupported statement format: {statement_format}")

        text = self._decode(content)

        if not re.search(r"<OFX>", text, re.IGNORECASE):
            raise MalformedStatementError("Missing <OFX> root element")

        bank_id = self._required_tag(text, "BANKID")
        account_id = self._required_tag(text, "ACCTID")

        period_start = self._optional_date(text, "DTSTART")
        period_end = self._optional_date(text, "DTEND")
        closing_balance = self._closing_balance(text)

        transactions = [
            self._parse_block(block, index)
            for index, block in enumerate(_BLOCK.findall(text), start=1)
        ]

        statement = ParsedStatement(
            bank_id=bank_id,
            account_id=account_id,
            period_start=period_start,
            period_end=period_end,
            closing_balance=closing_balance,
            transactions=transactions,
            bank_name=bank_name_for(bank_id),
        )

        if statement.is_empty:
            logger.warning(f"Statement for account {account_id} contains no transactions")
        else:
            logger.info(
                f"Extracted {len(transactions)} transactions for account {account_id} "
                f"({period_start} to {period_end})"
            )
        return statement

    def _decode(self, content: bytes) -> str:
        """Decode using the encoding declared in the OFX header, if any."""
        head = content[:512].decode("ascii", errors="ignore")
        encoding = self.encoding

        declared = _HEADER_ENCODING.search(head)
        if declared and declared.group(1).upper() in ("UTF-8", "UTF8"):
            encoding = "utf-8"
        else:
            charset = _HEADER_CHARSET.search(head)
            if charset and charset.group(1) == "1252":
                encoding = "cp1252"

        return content.decode(encoding, errors="replace")

    def _tag(self, text: str, tag: str) -> Optional[str]:
        match = re.search(_TAG_VALUE.format(tag=tag), text, re.IGNORECASE)
        if not match:
            return None
        value = match.group(1).strip()
        return value or None

    def _required_tag(self, text: str, tag: str) -> str:
        value = self._tag(text, tag)
        if value is None:
            raise MalformedStatementError(f"Missing required <{tag}> element")
        return value

    def _optional_date(self, text: str, tag: str) -> Optional[date]:
        value = self._tag(text, tag)
        if value is None:
            logger.warning(f"Statement has no <{tag}> element")
            return None
        return parse_ofx_date(value)

    def _closing_balance(self, text: str) -> Decimal:
        ledger_balance = _LEDGER_BALANCE.search(text)
        scope = ledger_balance.group(1) if ledger_balance else text
        value = self._tag(scope, "BALAMT")
        if value is None:
            logger.warning("Statement has no closing balance, assuming 0")
            return Decimal("0")
        return parse_ofx_amount(value)

    def _parse_block(self, block: str, index: int) -> StatementLine:
        """
        Parse one <STMTTRN> block.

        OFX STMTTRN fields used:
        TRNTYPE, DTPOSTED, TRNAMT, FITID, MEMO (optional),
        CHECKNUM or REFNUM (optional)
        """
        missing = [
            tag for tag in ("TRNTYPE", "DTPOSTED", "TRNAMT", "FITID") if self._tag(block, tag) is None
        ]
        if missing:
            raise MalformedStatementError(
                f"Transaction block {index} is missing {', '.join('<' + m + '>' for m in missing)}"
            )

        try:
            amount = parse_ofx_amount(self._tag(block, "TRNAMT"))
            posted_on = parse_ofx_date(self._tag(block, "DTPOSTED"))
        except MalformedStatementError as e:
            raise MalformedStatementError(f"Transaction block {index}: {e}") from e

        declared_type = self._tag(block, "TRNTYPE").upper()
        if declared_type == TransactionType.CREDIT.value:
            txn_type = TransactionType.CREDIT
        elif declared_type == TransactionType.DEBIT.value:
            txn_type = TransactionType.DEBIT
        else:
            # Other OFX types (FEE, XFER, PAYMENT...) take their side from the sign
            txn_type = TransactionType.CREDIT if amount > 0 else TransactionType.DEBIT

        reference = self._tag(block, "CHECKNUM") or self._tag(block, "REFNUM")

        return StatementLine(
            external_id=self._tag(block, "FITID"),
            type=txn_type,
            posted_on=posted_on,
            amount=amount,
            memo=self._tag(block, "MEMO") or "",
            reference=reference,
        )


def parse_ofx_date(value: str) -> date:
    """
    Parse an OFX date (``YYYYMMDD`` optionally followed by time and zone).

    Only the calendar part is kept, so the result does not depend on the
    time zone suffix.
    """
    digits = value.strip()[:8]
    if len(digits) != 8 or not digits.isdigit():
        raise MalformedStatementError(f"Invalid date: {value!r}")
    try:
        return date(int(digits[:4]), int(digits[4:6]), int(digits[6:8]))
    except ValueError as e:
        raise MalformedStatementError(f"Invalid date: {value!r}") from e


def parse_ofx_amount(value: str) -> Decimal:
    """Parse a signed OFX amount as a fixed-point decimal."""
    cleaned = value.strip().replace(" ", "")
    if "," in cleaned and "." not in cleaned:
        cleaned = cleaned.replace(",", ".")
    try:
        amount = Decimal(cleaned)
    except InvalidOperation as e:
        raise MalformedStatementError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite():
        raise MalformedStatementError(f"Invalid amount: {value!r}")
    return amount
