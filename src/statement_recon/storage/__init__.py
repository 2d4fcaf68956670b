"""Persistence for statement transactions and reconciliation records."""

from .database import Database
from .locks import AccountLocks
from .transaction_store import TransactionStore

__all__ = ["Database", "AccountLocks", "TransactionStore"]
