"""Ledger entry sources."""

from .query import LedgerQuery, InMemoryLedger
from .csv_source import CsvLedgerSource

__all__ = ["LedgerQuery", "InMemoryLedger", "CsvLedgerSource"]
