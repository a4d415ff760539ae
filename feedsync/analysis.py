"""
Catalog Feed Sync - Reconciliation Analysis
Read-only report of what a sync would do and where the store and remote catalog disagree.
"""

import logging
from typing import Dict, List, Optional

from .catalog import CatalogAPI
from .database import ItemDatabase
from .diff import DiffEngine, drop_duplicate_keys
from .models import (
    ChangeSet,
    Discrepancy,
    DiscrepancyKind,
    ItemRecord,
    RemoteProduct,
    SyncSummary,
)

logger = logging.getLogger(__name__)


class ReconciliationAnalyzer:
    """Computes the change set and cross-checks the store against the remote catalog. Never writes."""

    def __init__(self, catalog: CatalogAPI, store: ItemDatabase, max_to_delete_count: int = 50):
        self.catalog = catalog
        self.store = store
        self.diff_engine = DiffEngine(store)
        self.max_to_delete_count = max_to_delete_count

    def analyze(self, feed_items: List[ItemRecord]) -> SyncSummary:
        summary = SyncSummary(mode="analyze")

        feed_items, duplicates = drop_duplicate_keys(feed_items)
        for key in duplicates:
            summary.errors.append(f"{key}: duplicated in feed")

        change_set = self.diff_engine.compute_change_set(False, feed_items)
        summary.processed = len(feed_items)
        summary.skipped = change_set.unchanged_count
        summary.discrepancies.extend(self.change_set_discrepancies(change_set))

        deleted = len(change_set.deleted_items)
        if self.max_to_delete_count > 0 and deleted > self.max_to_delete_count:
            message = f"{deleted} deletions exceed the limit of {self.max_to_delete_count}; an incremental sync would abort"
            logger.warning(f"⚠️ {message}")
            summary.errors.append(message)

        summary.discrepancies.extend(self.remote_discrepancies())

        counts: Dict[str, int] = {}
        for discrepancy in summary.discrepancies:
            counts[discrepancy.kind.value] = counts.get(discrepancy.kind.value, 0) + 1
        logger.info(f"📋 Analysis complete: {counts or 'no discrepancies'}")
        return summary

    @staticmethod
    def change_set_discrepancies(change_set: ChangeSet) -> List[Discrepancy]:
        found = []
        for item in change_set.new_items:
            found.append(Discrepancy(
                business_key=item.business_key,
                kind=DiscrepancyKind.NEW,
                description="in feed, not in store",
            ))
        for change in change_set.changed_items:
            fields = sorted(change.from_store.changed_fields(change.from_feed))
            found.append(Discrepancy(
                business_key=change.from_store.business_key,
                stored_remote_id=change.from_store.remote_product_id,
                kind=DiscrepancyKind.CHANGED,
                description=f"changed: {', '.join(fields)}",
                details={"fields": fields},
            ))
        for item in change_set.deleted_items:
            found.append(Discrepancy(
                business_key=item.business_key,
                stored_remote_id=item.remote_product_id,
                kind=DiscrepancyKind.DELETED,
                description="in store, not in feed",
            ))
        return found

    def remote_discrepancies(self) -> List[Discrepancy]:
        """Compare every remote product with the store record of the same SKU."""
        stored_by_key = {item.business_key: item for item in self.store.find_all()}
        products = self.catalog.list_products()
        remote_ids = {product.remote_id for product in products}

        found = []
        for product in products:
            record = stored_by_key.get(product.sku) if product.sku else None
            discrepancy = self._compare(product, record)
            if discrepancy is not None:
                found.append(discrepancy)

        for record in stored_by_key.values():
            if record.has_remote_product and record.remote_product_id not in remote_ids:
                found.append(Discrepancy(
                    business_key=record.business_key,
                    stored_remote_id=record.remote_product_id,
                    kind=DiscrepancyKind.EXTRA_IN_STORE,
                    description="stored remote id does not exist in the catalog",
                ))
        return found

    @staticmethod
    def _compare(product: RemoteProduct, record: Optional[ItemRecord]) -> Optional[Discrepancy]:
        if record is None:
            return Discrepancy(
                business_key=product.sku,
                remote_product_id=product.remote_id,
                kind=DiscrepancyKind.EXTRA_IN_REMOTE,
                description=f"remote product '{product.title}' has no store record",
            )
        if record.remote_product_id != product.remote_id:
            return Discrepancy(
                business_key=product.sku,
                remote_product_id=product.remote_id,
                stored_remote_id=record.remote_product_id,
                kind=DiscrepancyKind.MISMATCHED_REMOTE_ID,
                description="store links a different remote product",
            )
        if record.image_count != product.image_count:
            return Discrepancy(
                business_key=product.sku,
                remote_product_id=product.remote_id,
                stored_remote_id=record.remote_product_id,
                kind=DiscrepancyKind.IMAGE_COUNT_MISMATCH,
                description=f"{product.image_count} remote images, {record.image_count} in store",
                details={"remote": product.image_count, "store": record.image_count},
            )
        return None
