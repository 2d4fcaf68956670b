"""
Import pipeline: parse result -> deduplicate -> persist -> auto-match.
"""

from datetime import datetime
from typing import Iterable, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError

from ..ledger.query import LedgerQuery
from ..matching.engine import CandidatePool, Matcher
from ..models.reconciliation import (
    ImportFailure,
    ImportSummary,
    ReconciliationRecord,
)
from ..models.transaction import ParsedStatement
from ..storage.transaction_store import TransactionStore
from ..utils.exceptions import (
    EntryAlreadyReconciledError,
    InvalidStateError,
    StorageUnavailableError,
)
from .ledger import MATCHER, ReconciliationLedger

logger = logging.getLogger(__name__)


class ImportOrchestrator:
    """
    Drives one sequential import per (account, statement) pair.

    Re-running an import is safe: lines already stored for the account are
    skipped, so repeating the call is also the retry mechanism.
    """

    def __init__(
        self,
        store: TransactionStore,
        ledger: ReconciliationLedger,
        ledger_query: LedgerQuery,
        matcher: Matcher,
    ):
        self.store = store
        self.ledger = ledger
        self.ledger_query = ledger_query
        self.matcher = matcher

    def import_statement(self, account_id: str, statement: ParsedStatement) -> ImportSummary:
        """
        Import a parsed statement into an account.

        Args:
            account_id: Target account
            statement: Parsed statement

        Returns:
            Summary distinguishing imported, duplicate and failed lines

        Raises:
            StorageUnavailableError: If the store is unreachable for the whole import
        """
        start_time = datetime.now()
        summary = ImportSummary()

        if statement.account_id and statement.account_id != account_id:
            logger.warning(
                f"Statement account {statement.account_id} differs from target account {account_id}"
            )

        if statement.is_empty:
            logger.warning(f"Empty statement for account {account_id}, nothing to import")
            summary.empty_statement = True
            return summary

        self.store.ping()

        created: list[ReconciliationRecord] = []
        unavailable = 0
        for line in statement.transactions:
            try:
                record = self.store.add(account_id, line, bank_id=statement.bank_id)
            except StorageUnavailableError as e:
                unavailable += 1
                logger.warning(f"Could not persist {line.external_id}: {e}")
                summary.failed.append(ImportFailure(line.external_id, str(e)))
                continue
            except SQLAlchemyError as e:
                logger.warning(f"Could not persist {line.external_id}: {e}")
                summary.failed.append(ImportFailure(line.external_id, str(e)))
                continue

            if record is None:
                summary.skipped_duplicates += 1
            else:
                created.append(record)

        if unavailable == len(statement.transactions):
            raise StorageUnavailableError(
                f"Transaction store unavailable for every line of the statement for {account_id}"
            )

        summary.imported = len(created)
        summary.auto_matched = self.auto_match(account_id, created, summary.match_failures)
        summary.unresolved = summary.imported - summary.auto_matched

        elapsed = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Import for account {account_id} complete in {elapsed:.2f}s: "
            f"{summary.imported} imported, {summary.auto_matched} auto-matched, "
            f"{summary.unresolved} unresolved, {summary.skipped_duplicates} duplicates, "
            f"{summary.failed_count} failed"
        )
        return summary

    def auto_match(
        self,
        account_id: str,
        records: Iterable[ReconciliationRecord],
        failures: Optional[list[ImportFailure]] = None,
    ) -> int:
        """
        Run the matcher over UNRESOLVED records in posting-date order.

        Entries matched earlier in the run, or already held by another
        record, are removed from the pool before the next lookup.

        Returns:
            Number of records matched
        """
        pool = CandidatePool(self.ledger_query.settled_entries(account_id))
        pool.discard_all(self.ledger.consumed_entry_ids(account_id))
        logger.debug(f"Auto-match pool for {account_id}: {len(pool)} candidate(s)")

        matched = 0
        ordered = sorted(records, key=lambda r: (r.transaction.posted_on, r.transaction.id))
        for record in ordered:
            if self._match_one(record, pool, failures):
                matched += 1
        return matched

    def _match_one(
        self,
        record: ReconciliationRecord,
        pool: CandidatePool,
        failures: Optional[list[ImportFailure]],
    ) -> bool:
        while True:
            result = self.matcher.match(record.transaction, pool)
            if not result.is_match:
                return False

            entry_id = result.entry.id
            try:
                self.ledger.link(
                    record.id,
                    entry_id,
                    actor=MATCHER,
                    note=f"auto: {result.tier}, {result.date_distance} day(s)",
                )
            except EntryAlreadyReconciledError:
                # Claimed concurrently by an operator; try the next best candidate
                logger.info(f"Entry {entry_id} was taken concurrently, retrying record {record.id}")
                pool.remove(entry_id)
                continue
            except (InvalidStateError, StorageUnavailableError) as e:
                logger.warning(f"Auto-match of record {record.id} failed: {e}")
                if failures is not None:
                    failures.append(ImportFailure(record.transaction.external_id, str(e)))
                return False

            pool.remove(entry_id)
            return True
