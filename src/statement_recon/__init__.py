"""Bank statement import and reconciliation."""

from .config import ReconConfig, load_config
from .ledger import CsvLedgerSource, InMemoryLedger, LedgerQuery
from .matching import CandidatePool, Matcher
from .parsers import OFXStatementParser
from .reconciliation import ReconciliationService
from .storage import Database

__version__ = "0.1.0"

__all__ = [
    "ReconConfig",
    "load_config",
    "CsvLedgerSource",
    "InMemoryLedger",
    "LedgerQuery",
    "CandidatePool",
    "Matcher",
    "OFXStatementParser",
    "ReconciliationService",
    "Database",
]
