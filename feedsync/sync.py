"""
Catalog Feed Sync - Sync Orchestrator
Turns a feed snapshot or an explicit item list into batched publish/update/delete calls.
"""

import logging
import time
from typing import Callable, List, Optional

from .catalog import CatalogAPI
from .database import ItemDatabase
from .diff import DiffEngine, drop_duplicate_keys
from .exceptions import ItemSyncError, ParameterError
from .models import (
    ChangeSet,
    ItemRecord,
    ItemStatus,
    SyncMode,
    SyncModeKind,
    SyncSummary,
    business_key_sort_key,
)
from .reconcile import ReconciliationOperations

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """
    Drives one sync run against the remote catalog.

    Features:
    - Incremental runs diff the feed; explicit lists skip the diff
    - Ascending business-key order, fixed-size batches, pause between batches
    - Per-item failure isolation (one item never aborts its batch)
    - Mass-change safety threshold (deletions and updates)
    - Staged or never-published items are picked up again by incremental runs
    - Failure ceiling flagged in the summary
    """

    BATCH_SIZE = 25
    BATCH_PAUSE_SECONDS = 2.0

    def __init__(
        self,
        catalog: CatalogAPI,
        store: ItemDatabase,
        batch_size: int = BATCH_SIZE,
        batch_pause_seconds: float = BATCH_PAUSE_SECONDS,
        max_failed_items: int = 10,
        max_to_delete_count: int = 50,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if batch_size < 1:
            raise ParameterError("Batch size must be at least 1", parameter="batch_size")

        self.catalog = catalog
        self.store = store
        self.operations = ReconciliationOperations(catalog, store)
        self.diff_engine = DiffEngine(store)
        self.batch_size = batch_size
        self.batch_pause_seconds = batch_pause_seconds
        self.max_failed_items = max_failed_items
        self.max_to_delete_count = max_to_delete_count
        self._sleep = sleep

        logger.info(
            f"SyncOrchestrator initialized (batch={batch_size}, pause={batch_pause_seconds}s, "
            f"max_failed={max_failed_items}, max_delete={max_to_delete_count})"
        )

    def sync(self, items: List[ItemRecord], mode: SyncMode) -> SyncSummary:
        """
        Run a sync for the given items.

        Args:
            items: Full feed snapshot (incremental) or an explicit work list
            mode: How the items are interpreted

        Returns:
            SyncSummary with per-run counts

        Raises:
            ParameterError: mode never touches the remote catalog
            FatalSyncError: authentication or catalog-wide failure
        """
        if mode.kind is SyncModeKind.DATABASE_ONLY:
            raise ParameterError("Database-only runs do not go through the orchestrator", parameter="mode")

        summary = SyncSummary(mode=str(mode), failure_ceiling=self.max_failed_items)
        items, duplicates = drop_duplicate_keys(items)
        for key in duplicates:
            summary.errors.append(f"{key}: duplicated in feed, extra rows skipped")

        if mode.uses_diff:
            change_set = self.diff_engine.compute_change_set(False, items)
            deleted = change_set.deleted_items
            pending = self._awaiting_publish(items, change_set)
            summary.skipped = change_set.unchanged_count - len(pending)

            mass_change = self._mass_change_message(len(deleted), len(change_set.changed_items))
            if mass_change:
                logger.error(f"🛑 {mass_change}", extra={"sync_mode": str(mode)})
                summary.aborted = True
                summary.errors.append(mass_change)
                return summary

            work = sorted(
                change_set.work_items() + pending,
                key=lambda item: business_key_sort_key(item.business_key),
            )
        else:
            work = sorted(items, key=lambda item: business_key_sort_key(item.business_key))
            deleted = []

        batches = [work[i:i + self.batch_size] for i in range(0, len(work), self.batch_size)]
        logger.info(
            f"🚀 Sync {mode}: {len(work)} items in {len(batches)} batches, {len(deleted)} deletions",
            extra={"sync_mode": str(mode), "items_count": len(work)},
        )

        for batch_num, batch in enumerate(batches, 1):
            if batch_num > 1 and self.batch_pause_seconds > 0:
                logger.debug(f"⏸️ Pausing {self.batch_pause_seconds}s before next batch")
                self._sleep(self.batch_pause_seconds)

            logger.info(f"📦 Batch {batch_num}/{len(batches)} ({len(batch)} items)")
            for item in batch:
                self._process_item(item, mode, summary)

        for item in deleted:
            self._delete_item(item, summary)

        self._log_summary(summary)
        return summary

    def exceeds_delete_threshold(self, delete_count: int) -> bool:
        """A limit of 0 disables the check."""
        return self.max_to_delete_count > 0 and delete_count > self.max_to_delete_count

    def _mass_change_message(self, delete_count: int, changed_count: int) -> Optional[str]:
        """Reason to abort when a feed would delete or rewrite too much of the catalog."""
        if self.exceeds_delete_threshold(delete_count):
            return f"{delete_count} items would be deleted, above the limit of {self.max_to_delete_count}; run aborted"
        if self.exceeds_delete_threshold(changed_count):
            return f"{changed_count} items would be updated, above the limit of {self.max_to_delete_count}; run aborted"
        return None

    def _awaiting_publish(self, feed_items: List[ItemRecord], change_set: ChangeSet) -> List[ItemRecord]:
        """Unchanged feed items whose stored record was staged or failed before reaching the catalog."""
        waiting = set()
        for status in (ItemStatus.NEW_WAITING_PUBLISH, ItemStatus.PUBLISH_FAILED):
            waiting.update(
                record.business_key
                for record in self.store.find_by_status(status)
                if not record.has_remote_product
            )
        if not waiting:
            return []

        in_work = {item.business_key for item in change_set.work_items()}
        pending = [
            item for item in feed_items
            if item.business_key in waiting and item.business_key not in in_work
        ]
        if pending:
            logger.info(f"📬 {len(pending)} stored items still waiting to be published")
        return pending

    def _process_item(self, item: ItemRecord, mode: SyncMode, summary: SyncSummary):
        summary.processed += 1
        key = item.business_key

        # Always re-read: an earlier item in this run may have changed the store
        stored = self.store.find_by_key(key)
        try:
            if stored is not None and stored.has_remote_product:
                self.operations.update(stored, item, force=mode.forces_full_update)
                summary.updated += 1
            else:
                self.operations.publish(item)
                summary.published += 1
        except ItemSyncError as e:
            summary.record_failure(key, f"{key}: {e}")

    def _delete_item(self, item: ItemRecord, summary: SyncSummary):
        summary.processed += 1
        try:
            self.operations.delete(item)
            summary.deleted += 1
        except ItemSyncError as e:
            summary.record_failure(item.business_key, f"{item.business_key}: {e}")

    def _log_summary(self, summary: SyncSummary):
        logger.info(
            f"Sync complete: {summary.published} published, {summary.updated} updated, "
            f"{summary.deleted} deleted, {summary.skipped} unchanged, {summary.failed} failed "
            f"({summary.success_rate}% success)"
        )
        if summary.exceeds_failure_ceiling:
            logger.error(
                f"🚨 {summary.failed} failed items exceed the ceiling of {summary.failure_ceiling}: "
                f"{', '.join(summary.failed_keys)}"
            )
