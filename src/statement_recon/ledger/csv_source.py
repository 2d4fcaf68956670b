"""
Ledger entry CSV loader.
Reads an export of receivables/payables into an in-memory ledger.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional
import logging
import re

import pandas as pd

from ..models.transaction import Direction, LedgerEntry, SettlementStatus
from ..config import ReconConfig
from ..utils.exceptions import LedgerSourceError
from .query import InMemoryLedger

logger = logging.getLogger(__name__)

# Direction labels used by ledger exports, including the Portuguese ones
DIRECTION_ALIASES = {
    "inbound": Direction.INBOUND,
    "in": Direction.INBOUND,
    "receivable": Direction.INBOUND,
    "entrada": Direction.INBOUND,
    "outbound": Direction.OUTBOUND,
    "out": Direction.OUTBOUND,
    "payable": Direction.OUTBOUND,
    "saida": Direction.OUTBOUND,
    "saída": Direction.OUTBOUND,
}

STATUS_ALIASES = {
    "settled": SettlementStatus.SETTLED,
    "pago_recebido": SettlementStatus.SETTLED,
    "paid": SettlementStatus.SETTLED,
    "open": SettlementStatus.OPEN,
    "pending": SettlementStatus.OPEN,
    "em_aberto": SettlementStatus.OPEN,
    "cancelled": SettlementStatus.CANCELLED,
    "canceled": SettlementStatus.CANCELLED,
    "cancelado": SettlementStatus.CANCELLED,
}


class CsvLedgerSource:
    """
    Loads ledger entries from a CSV export.

    Column names come from ``input.ledger_csv.column_mappings``.
    """

    def __init__(self, config: Optional[ReconConfig] = None):
        self.config = config or ReconConfig()
        self.csv_config = self.config.input.ledger_csv
        self.column_mappings = self.csv_config.column_mappings

    def load(self, file_path: Path) -> InMemoryLedger:
        """
        Read a CSV export into an in-memory ledger.

        Raises:
            LedgerSourceError: If the file cannot be read or a row is invalid
        """
        logger.info(f"Loading ledger entries from: {file_path}")

        try:
            df = pd.read_csv(
                file_path,
                encoding=self.csv_config.encoding,
                delimiter=self.csv_config.delimiter,
                dtype=str,
                keep_default_na=False,
            )
        except (OSError, ValueError, pd.errors.ParserError) as e:
            raise LedgerSourceError(f"Failed to read ledger CSV file: {e}") from e

        self._check_columns(df)

        entries = [self._normalize_row(row, int(idx)) for idx, row in df.iterrows()]
        logger.info(f"Loaded {len(entries)} ledger entries")

        return InMemoryLedger(entries)

    def _check_columns(self, df: pd.DataFrame) -> None:
        required = ("entry_id", "account_id", "direction", "net_amount", "due_date")
        missing = [
            self.column_mappings.get(key, key)
            for key in required
            if self.column_mappings.get(key, key) not in df.columns
        ]
        if missing:
            raise LedgerSourceError(f"Ledger CSV is missing columns: {', '.join(missing)}")

    def _column(self, row: pd.Series, key: str) -> str:
        value = row.get(self.column_mappings.get(key, key), "")
        return str(value).strip() if value is not None else ""

    def _normalize_row(self, row: pd.Series, idx: int) -> LedgerEntry:
        """Convert a DataFrame row to a LedgerEntry."""
        entry_id = self._column(row, "entry_id")
        if not entry_id:
            raise LedgerSourceError(f"Row {idx}: missing entry id")

        direction = DIRECTION_ALIASES.get(self._column(row, "direction").lower())
        if direction is None:
            raise LedgerSourceError(
                f"Row {idx}: unknown direction {self._column(row, 'direction')!r}"
            )

        status_text = self._column(row, "status").lower()
        if not status_text:
            status = SettlementStatus.SETTLED
        elif status_text in STATUS_ALIASES:
            status = STATUS_ALIASES[status_text]
        else:
            logger.warning(f"Row {idx}: unknown status {status_text!r}, treating as open")
            status = SettlementStatus.OPEN

        due_date = self._parse_date(self._column(row, "due_date"))
        if due_date is None:
            raise LedgerSourceError(f"Row {idx}: invalid due date")

        settlement_text = self._column(row, "settlement_date")
        settlement_date = self._parse_date(settlement_text)
        if settlement_text and settlement_date is None:
            raise LedgerSourceError(f"Row {idx}: invalid settlement date {settlement_text!r}")

        return LedgerEntry(
            id=entry_id,
            account_id=self._column(row, "account_id"),
            direction=direction,
            net_amount=self._parse_amount(self._column(row, "net_amount"), idx),
            due_date=due_date,
            settlement_date=settlement_date,
            status=status,
            counterparty=self._column(row, "counterparty"),
            document_number=self._column(row, "document_number") or None,
        )

    def _parse_date(self, value: str) -> Optional[date]:
        if not value:
            return None
        try:
            return datetime.strptime(value, self.csv_config.date_format).date()
        except ValueError:
            return None

    def _parse_amount(self, value: str, idx: int) -> Decimal:
        cleaned = re.sub(r"[^0-9,.\-]", "", value)
        separators = [c for c in cleaned if c in ",."]
        if separators:
            decimal_mark = separators[-1]
            thousands = "." if decimal_mark == "," else ","
            if separators.count(decimal_mark) > 1:
                if thousands in separators:
                    raise LedgerSourceError(f"Row {idx}: ambiguous amount {value!r}")
                # 1.234.567 or 1,234,567: grouping only
                decimal_mark, thousands = "", decimal_mark
            elif thousands not in separators and re.search(r"[,.]\d{3}$", cleaned):
                # 1,234 reads as 1234 or 1.234 depending on the locale
                raise LedgerSourceError(f"Row {idx}: ambiguous amount {value!r}")
            cleaned = cleaned.replace(thousands, "")
            if decimal_mark:
                cleaned = cleaned.replace(decimal_mark, ".")
        try:
            return abs(Decimal(cleaned))
        except InvalidOperation as e:
            raise LedgerSourceError(f"Row {idx}: invalid amount {value!r}") from e
