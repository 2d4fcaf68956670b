"""Per-account write serialization within one process."""

from contextlib import contextmanager
from typing import Iterator
import threading

from ..utils.exceptions import StorageUnavailableError


class AccountLocks:
    """Registry of one re-entrant lock per account."""

    def __init__(self, timeout_seconds: float = 10.0):
        self.timeout_seconds = timeout_seconds
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def _lock_for(self, account_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = self._locks[account_id] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, account_id: str) -> Iterator[None]:
        """
        Hold the account's lock for the duration of the block.

        Raises:
            StorageUnavailableError: If the lock is not acquired within the timeout
        """
        lock = self._lock_for(account_id)
        if not lock.acquire(timeout=self.timeout_seconds):
            raise StorageUnavailableError(
                f"Timed out after {self.timeout_seconds}s waiting for account {account_id}"
            )
        try:
            yield
        finally:
            lock.release()
