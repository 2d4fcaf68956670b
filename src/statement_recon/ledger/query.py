"""Read-only access to internally recorded ledger entries."""

from datetime import date
from typing import Iterable, Optional, Protocol, runtime_checkable

from ..models.transaction import LedgerEntry


@runtime_checkable
class LedgerQuery(Protocol):
    """
    Ledger query interface supplied by the surrounding application.

    Implementations return settled entries only; unsettled entries are
    never offered as match candidates.
    """

    def settled_entries(
        self,
        account_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[LedgerEntry]:
        ...


class InMemoryLedger:
    """LedgerQuery over an in-memory collection of entries."""

    def __init__(self, entries: Iterable[LedgerEntry] = ()):
        self._entries: dict[str, LedgerEntry] = {}
        for entry in entries:
            self.put(entry)

    def put(self, entry: LedgerEntry) -> None:
        """Add or replace an entry."""
        self._entries[entry.id] = entry

    def remove(self, entry_id: str) -> None:
        self._entries.pop(entry_id, None)

    def __len__(self) -> int:
        return len(self._entries)

    def settled_entries(
        self,
        account_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[LedgerEntry]:
        entries = []
        for entry in self._entries.values():
            if entry.account_id != account_id or not entry.is_settled:
                continue
            if start and entry.effective_date < start:
                continue
            if end and entry.effective_date > end:
                continue
            entries.append(entry)
        return sorted(entries, key=lambda e: e.id)
