"""
Catalog Feed Sync - Reconciliation Operations
Idempotent publish, update, delete and inventory primitives against the remote catalog.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from .catalog import CatalogAPI
from .database import ItemDatabase
from .exceptions import (
    CatalogAPIError,
    CatalogNotFoundError,
    FatalSyncError,
    ItemSyncError,
    StructuralCatalogError,
)
from .models import (
    FIELD_GROUPS,
    InventoryLevel,
    ItemRecord,
    ItemStatus,
    ProductPayload,
    VariantSpec,
    expected_inventory_levels,
    metafields_for,
)

logger = logging.getLogger(__name__)

PUBLISH_INCOMPLETE = "publish incomplete"
ALL_GROUPS = frozenset(FIELD_GROUPS)

# Sub-operation order: structural first, idempotent upserts last
APPLY_ORDER = ("options", "fields", "images", "inventory", "metadata")


class ReconciliationOperations:
    """
    Building blocks the orchestrator calls, one item at a time.

    Every operation persists the item's outcome before returning or raising,
    so a crash between two items never loses a status transition. Item-level
    failures are raised as ItemSyncError after the failure status is stored;
    FatalSyncError always propagates untouched.
    """

    def __init__(self, catalog: CatalogAPI, store: ItemDatabase):
        self.catalog = catalog
        self.store = store

    # =========================================================================
    # PUBLISH
    # =========================================================================

    def publish(self, item: ItemRecord) -> ItemRecord:
        """
        Create, populate and publish the remote product for a new item.

        Safe to call again for the same key: once a remote id is stored the
        call is routed to update, and a product already carrying the SKU is
        adopted instead of created twice.
        """
        key = item.business_key
        stored = self.store.find_by_key(key)
        if stored is not None and stored.has_remote_product:
            logger.info(f"🔁 {key}: already linked to {stored.remote_product_id}, updating instead")
            return self.update(stored, item, force=True)

        record = stored.with_content_from(item) if stored else item.model_copy(deep=True)
        record = record.model_copy(update={"remote_product_id": None})

        try:
            existing_id = self.catalog.find_product_id_by_sku(key)
        except FatalSyncError:
            raise
        except CatalogAPIError as e:
            self._fail(record, ItemStatus.PUBLISH_FAILED, "publish", e)

        if existing_id:
            logger.warning(f"⚠️ {key}: remote product {existing_id} already carries this SKU, adopting it")
            adopted = record.model_copy(update={
                "remote_product_id": existing_id,
                "status": ItemStatus.UPDATE_FAILED,
                "system_message": PUBLISH_INCOMPLETE,
            })
            self.store.save(adopted)
            return self.update(adopted, item, force=True)

        try:
            remote_id = self.catalog.create_product(ProductPayload.from_item(record))
        except FatalSyncError:
            raise
        except CatalogAPIError as e:
            self._fail(record, ItemStatus.PUBLISH_FAILED, "publish", e)

        # Linkage is stored before anything else can fail
        record = record.model_copy(update={
            "remote_product_id": remote_id,
            "status": ItemStatus.UPDATE_FAILED,
            "system_message": PUBLISH_INCOMPLETE,
        })
        self.store.save(record)

        try:
            self._apply(remote_id, record, ALL_GROUPS - {"fields"})
            self.catalog.publish(remote_id)
        except FatalSyncError:
            raise
        except CatalogAPIError as e:
            self._fail(record, ItemStatus.UPDATE_FAILED, "publish", e)

        record = self._mark_published(record)
        self.store.save(record)
        logger.info(
            f"✅ Published {record.short_label()} (ID: {remote_id})",
            extra={"business_key": key, "operation": "publish"},
        )
        return record

    # =========================================================================
    # UPDATE
    # =========================================================================

    def update(
        self,
        stored: ItemRecord,
        incoming: Optional[ItemRecord] = None,
        force: bool = False,
    ) -> ItemRecord:
        """
        Bring an existing remote product in line with the incoming content.

        Only the changed field groups are pushed unless ``force`` is set.
        Inventory is always set absolutely, so availability flips are
        applied even when nothing else changed.

        Args:
            stored: Store record, must carry a remote id
            incoming: Feed version of the item (defaults to the stored content)
            force: Re-apply every sub-operation
        """
        if not stored.has_remote_product:
            raise ValueError(f"{stored.business_key}: cannot update an item without remote id")

        key = stored.business_key
        remote_id = stored.remote_product_id
        merged = stored.with_content_from(incoming) if incoming is not None else stored.model_copy(deep=True)
        groups = ALL_GROUPS if force else frozenset(stored.changed_groups(merged))

        try:
            if self.catalog.get_product(remote_id) is None:
                raise StructuralCatalogError("remote product missing", remote_id=remote_id, business_key=key)
            self._apply(remote_id, merged, groups | {"inventory"})
            if stored.status is not ItemStatus.PUBLISHED:
                self.catalog.publish(remote_id)
        except FatalSyncError:
            raise
        except CatalogAPIError as e:
            self._fail(merged, ItemStatus.UPDATE_FAILED, "update", e)

        record = self._mark_published(merged)
        self.store.save(record)
        logger.info(
            f"✅ Updated {record.short_label()} [{', '.join(sorted(groups)) or 'inventory'}]",
            extra={"business_key": key, "operation": "update"},
        )
        return record

    # =========================================================================
    # DELETE
    # =========================================================================

    def delete(self, item: ItemRecord):
        """Remove the remote product (missing counts as removed), then the local record."""
        key = item.business_key
        if item.has_remote_product:
            try:
                self.catalog.delete_product(item.remote_product_id)
            except CatalogNotFoundError:
                logger.info(f"{key}: remote product {item.remote_product_id} already gone")
            except FatalSyncError:
                raise
            except CatalogAPIError as e:
                logger.error(
                    f"❌ {key}: delete failed, keeping local record: {e}",
                    extra={"business_key": key, "operation": "delete"},
                )
                raise ItemSyncError(key, "delete", str(e)) from e

        self.store.delete(item)
        logger.info(f"🗑️ Deleted {key}", extra={"business_key": key, "operation": "delete"})

    # =========================================================================
    # INVENTORY
    # =========================================================================

    def enforce_inventory(self, remote_id: str, quantity: int) -> List[InventoryLevel]:
        """Set the product's levels so the total equals ``quantity``, using absolute values."""
        current = self.catalog.get_inventory_levels(remote_id)
        if not current:
            raise StructuralCatalogError("no inventory levels", remote_id=remote_id)
        levels = expected_inventory_levels(quantity, current)
        self.catalog.set_inventory_absolute(remote_id, levels)
        return levels

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _apply(self, remote_id: str, item: ItemRecord, groups: Iterable[str]):
        groups = set(groups)
        for group in APPLY_ORDER:
            if group not in groups:
                continue
            if group == "options":
                self.catalog.replace_options_and_variant(remote_id, VariantSpec.from_item(item))
            elif group == "fields":
                self.catalog.update_product(remote_id, ProductPayload.from_item(item))
            elif group == "images":
                self.catalog.replace_images(remote_id, list(item.image_urls))
            elif group == "inventory":
                self.enforce_inventory(remote_id, item.expected_quantity)
            elif group == "metadata":
                self.catalog.upsert_metafields(remote_id, metafields_for(item))
            logger.debug(f"   {item.business_key}: applied {group}")

    @staticmethod
    def _mark_published(record: ItemRecord) -> ItemRecord:
        return record.model_copy(update={
            "status": ItemStatus.PUBLISHED,
            "system_message": None,
            "published_at": record.published_at or datetime.now(),
        })

    def _fail(self, record: ItemRecord, status: ItemStatus, operation: str, error: CatalogAPIError):
        """Persist the failure status and raise ItemSyncError."""
        key = record.business_key
        reason = error.reason if isinstance(error, StructuralCatalogError) else str(error)

        failed = record.model_copy(update={"status": status, "system_message": reason})
        if status is ItemStatus.PUBLISH_FAILED:
            failed = failed.model_copy(update={"remote_product_id": None})
        self.store.save(failed)

        log = logger.error if isinstance(error, StructuralCatalogError) else logger.warning
        log(
            f"❌ {key}: {operation} failed ({status.value}): {reason}",
            extra={"business_key": key, "operation": operation},
        )
        raise ItemSyncError(key, operation, reason) from error
