"""
Catalog Feed Sync - Force-Mode & Retry Controller
Selects the work list for each sync mode before it reaches the orchestrator.
"""

import logging
from typing import List

from .diff import drop_duplicate_keys
from .exceptions import ItemNotFoundError, ParameterError
from .feed import FeedSource
from .models import (
    ItemRecord,
    ItemStatus,
    SyncMode,
    SyncModeKind,
    SyncSummary,
    business_key_sort_key,
)
from .sync import SyncOrchestrator

logger = logging.getLogger(__name__)


def _sorted(items: List[ItemRecord]) -> List[ItemRecord]:
    return sorted(items, key=lambda item: business_key_sort_key(item.business_key))


class SyncController:
    """Policy layer in front of the orchestrator: one entry point per operator trigger."""

    def __init__(self, feed_source: FeedSource, orchestrator: SyncOrchestrator):
        self.feed_source = feed_source
        self.orchestrator = orchestrator
        self.store = orchestrator.store
        self.diff_engine = orchestrator.diff_engine

    def run(self, mode: SyncMode) -> SyncSummary:
        """Select the work for ``mode`` and sync it."""
        if mode.kind is SyncModeKind.DATABASE_ONLY:
            return self.stage_to_database()

        items = self.select_work_items(mode)
        return self.orchestrator.sync(items, mode)

    def select_work_items(self, mode: SyncMode) -> List[ItemRecord]:
        """
        Work list for a mode.

        Incremental returns the raw feed (the orchestrator diffs it);
        every other remote mode returns an explicit, sorted list.
        Database-only stages the feed locally and returns nothing.

        Raises:
            ParameterError: single-item mode without a key
            ItemNotFoundError: single-item key not in the store
        """
        kind = mode.kind

        if kind is SyncModeKind.INCREMENTAL:
            return self.feed_source.fetch_all()

        if kind is SyncModeKind.FULL_FORCE:
            feed_items, _ = drop_duplicate_keys(self.feed_source.fetch_all())
            change_set = self.diff_engine.compute_change_set(True, feed_items)
            return change_set.work_items()

        if kind is SyncModeKind.SINGLE_ITEM:
            key = (mode.key or "").strip()
            if not key:
                raise ParameterError("Single-item sync requires a business key", parameter="key")
            item = self.store.find_by_key(key)
            if item is None:
                raise ItemNotFoundError(key)
            return [item]

        if kind is SyncModeKind.RETRY_FAILED:
            failed = []
            for status in ItemStatus.retryable():
                failed.extend(self.store.find_by_status(status))
            retryable = [item for item in failed if item.has_remote_product]
            skipped = len(failed) - len(retryable)
            if skipped:
                logger.warning(f"⚠️ {skipped} failed items have no remote id and are published by the next incremental sync")
            logger.info(f"🔄 {len(retryable)} failed items selected for retry")
            return _sorted(retryable)

        if kind is SyncModeKind.DATABASE_ONLY:
            self.stage_to_database()
            return []

        raise ValueError(f"Unhandled sync mode: {mode}")

    def stage_to_database(self) -> SyncSummary:
        """
        Apply the feed to the local store only; the remote catalog is never called.

        New items are stored waiting for publish, changed items get the feed
        content with their linkage and status kept, deleted items are removed
        locally even when a remote product still exists.
        """
        mode = SyncMode.database_only()
        summary = SyncSummary(mode=str(mode))

        feed_items, duplicates = drop_duplicate_keys(self.feed_source.fetch_all())
        for key in duplicates:
            summary.errors.append(f"{key}: duplicated in feed, extra rows skipped")

        change_set = self.diff_engine.compute_change_set(False, feed_items)
        summary.skipped = change_set.unchanged_count

        deleted = change_set.deleted_items
        if self.orchestrator.exceeds_delete_threshold(len(deleted)):
            message = (
                f"{len(deleted)} items would be deleted, above the limit of "
                f"{self.orchestrator.max_to_delete_count}; staging aborted"
            )
            logger.error(f"🛑 {message}", extra={"sync_mode": str(mode)})
            summary.aborted = True
            summary.errors.append(message)
            return summary

        for item in _sorted(change_set.new_items):
            staged = item.model_copy(update={
                "remote_product_id": None,
                "status": ItemStatus.NEW_WAITING_PUBLISH,
                "system_message": None,
            })
            self.store.save(staged)
            summary.processed += 1
            summary.staged += 1

        for change in change_set.changed_items:
            self.store.update(change.from_store.with_content_from(change.from_feed))
            summary.processed += 1
            summary.staged += 1

        for item in deleted:
            if item.has_remote_product:
                logger.warning(
                    f"⚠️ {item.business_key}: removed locally, remote product {item.remote_product_id} is left orphaned",
                    extra={"business_key": item.business_key, "operation": "delete"},
                )
            self.store.delete(item)
            summary.processed += 1
            summary.deleted += 1

        logger.info(
            f"💾 Staged {summary.staged} items ({len(change_set.new_items)} new, "
            f"{len(change_set.changed_items)} changed), removed {summary.deleted}"
        )
        return summary
