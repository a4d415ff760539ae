"""
Catalog Feed Sync - Inventory Auditor
Standalone scan of every remote product against the one-unit inventory rule.
"""

import logging

from .catalog import CatalogAPI
from .database import ItemDatabase
from .exceptions import CatalogAPIError, FatalSyncError, StructuralCatalogError
from .models import (
    QUANTITY_AVAILABLE,
    Discrepancy,
    DiscrepancyKind,
    RemoteProduct,
    SyncSummary,
)
from .reconcile import ReconciliationOperations

logger = logging.getLogger(__name__)


class InventoryAuditor:
    """
    Checks that each product's total quantity is 0 when sold and 1 otherwise.

    The expected quantity comes from the store record with the product's SKU;
    products the store does not know are expected to be available. Products
    without SKU are skipped.
    """

    def __init__(self, catalog: CatalogAPI, store: ItemDatabase):
        self.catalog = catalog
        self.store = store
        self.operations = ReconciliationOperations(catalog, store)

    def audit(self) -> SyncSummary:
        """Report mismatches without changing anything."""
        return self._scan(enforce=False)

    def enforce(self) -> SyncSummary:
        """Report mismatches and fix them with absolute sets."""
        return self._scan(enforce=True)

    def _scan(self, enforce: bool) -> SyncSummary:
        summary = SyncSummary(mode="inventory_enforce" if enforce else "inventory_audit")
        products = self.catalog.list_products()
        logger.info(f"🔍 Checking inventory of {len(products)} remote products")

        for product in products:
            if not product.sku:
                summary.skipped += 1
                logger.debug(f"   Product {product.remote_id} has no SKU, skipped")
                continue

            summary.processed += 1
            try:
                discrepancy = self._check(product)
                if discrepancy is None:
                    continue
                summary.discrepancies.append(discrepancy)
                if enforce:
                    self.operations.enforce_inventory(product.remote_id, discrepancy.details["expected"])
                    summary.updated += 1
                    logger.info(f"🔧 {product.sku}: inventory set to {discrepancy.details['expected']}")
            except FatalSyncError:
                raise
            except CatalogAPIError as e:
                log = logger.error if isinstance(e, StructuralCatalogError) else logger.warning
                log(f"❌ {product.sku}: inventory check failed: {e}", extra={"business_key": product.sku})
                summary.record_failure(product.sku, f"{product.sku}: {e}")

        logger.info(
            f"Inventory {'enforce' if enforce else 'audit'} complete: "
            f"{len(summary.discrepancies)} mismatches, {summary.updated} fixed, {summary.failed} failed"
        )
        return summary

    def _check(self, product: RemoteProduct):
        record = self.store.find_by_key(product.sku)
        expected = record.expected_quantity if record else QUANTITY_AVAILABLE

        levels = self.catalog.get_inventory_levels(product.remote_id)
        if not levels:
            raise StructuralCatalogError("no inventory levels", remote_id=product.remote_id, business_key=product.sku)

        total = sum(level.available for level in levels)
        in_bounds = all(0 <= level.available <= expected for level in levels)
        if total == expected and in_bounds:
            return None

        return Discrepancy(
            business_key=product.sku,
            remote_product_id=product.remote_id,
            stored_remote_id=record.remote_product_id if record else None,
            kind=DiscrepancyKind.INVENTORY_MISMATCH,
            description=f"total quantity {total}, expected {expected}",
            details={
                "expected": expected,
                "current_total": total,
                "levels": {level.location_id: level.available for level in levels},
                "in_store": record is not None,
            },
        )
