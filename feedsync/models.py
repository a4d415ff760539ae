"""
Catalog Feed Sync - Pydantic Models
Data models for item records, change sets, sync modes, catalog payloads and run summaries.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_IMAGES = 9

AVAILABILITY_SOLD = "SOLD"
AVAILABILITY_AVAILABLE = "Available"

QUANTITY_SOLD = 0
QUANTITY_AVAILABLE = 1

OPTION_COLOR = "Color"
OPTION_SIZE = "Size"
OPTION_MATERIAL = "Material"

METAFIELD_NAMESPACE = "marketplace"

# Field groups drive both change detection and which remote sub-operations an update runs
OPTION_FIELDS = ("dial", "diameter", "metal")
METADATA_FIELDS = ("year", "reference_number", "movement", "strap", "box_papers", "style", "model")
IMAGE_FIELDS = ("image_urls",)
PRESENTATION_FIELDS = ("description", "price", "designer", "category", "condition")
INVENTORY_FIELDS = ("availability",)

FIELD_GROUPS: Dict[str, Tuple[str, ...]] = {
    "options": OPTION_FIELDS,
    "metadata": METADATA_FIELDS,
    "images": IMAGE_FIELDS,
    "fields": PRESENTATION_FIELDS,
    "inventory": INVENTORY_FIELDS,
}

TRACKED_FIELDS: Tuple[str, ...] = tuple(
    field_name for group in FIELD_GROUPS.values() for field_name in group
)


class ItemStatus(str, Enum):
    """Lifecycle status of an item record."""
    NEW_WAITING_PUBLISH = "NEW_WAITING_PUBLISH"
    PUBLISHED = "PUBLISHED"
    PUBLISH_FAILED = "PUBLISH_FAILED"
    UPDATE_FAILED = "UPDATE_FAILED"

    @property
    def is_retryable_failure(self) -> bool:
        if self is ItemStatus.PUBLISH_FAILED or self is ItemStatus.UPDATE_FAILED:
            return True
        if self is ItemStatus.NEW_WAITING_PUBLISH or self is ItemStatus.PUBLISHED:
            return False
        raise ValueError(f"Unhandled status: {self}")

    @property
    def allows_remote_id(self) -> bool:
        """Whether a record in this status may carry a remote product id."""
        if self is ItemStatus.PUBLISHED or self is ItemStatus.UPDATE_FAILED:
            return True
        if self is ItemStatus.NEW_WAITING_PUBLISH or self is ItemStatus.PUBLISH_FAILED:
            return False
        raise ValueError(f"Unhandled status: {self}")

    @classmethod
    def retryable(cls) -> List["ItemStatus"]:
        return [status for status in cls if status.is_retryable_failure]


def business_key_sort_key(key: str) -> Tuple[int, int, str]:
    """Numeric keys sort numerically and ahead of non-numeric keys, which sort lexically."""
    try:
        return (0, int(key), "")
    except (TypeError, ValueError):
        return (1, 0, key or "")


class ItemRecord(BaseModel):
    """One vendor catalog entry, as read from the feed or persisted in the store."""
    business_key: str

    description: str = ""
    price: str = ""
    designer: str = ""
    category: str = ""
    condition: str = ""
    image_urls: List[str] = Field(default_factory=list)

    # Option-determining attributes
    dial: str = ""
    diameter: str = ""
    metal: str = ""

    # Marketplace metadata
    year: str = ""
    reference_number: str = ""
    movement: str = ""
    strap: str = ""
    box_papers: str = ""
    style: str = ""
    model: str = ""

    availability: str = AVAILABILITY_AVAILABLE

    # Remote linkage and lifecycle
    remote_product_id: Optional[str] = None
    status: ItemStatus = ItemStatus.NEW_WAITING_PUBLISH
    system_message: Optional[str] = None
    last_updated: Optional[datetime] = None
    published_at: Optional[datetime] = None

    @field_validator("business_key", mode="before")
    @classmethod
    def clean_business_key(cls, v):
        """Tag numbers are compared as trimmed strings."""
        if v is None:
            return ""
        return str(v).strip()

    @field_validator(*PRESENTATION_FIELDS, *OPTION_FIELDS, *METADATA_FIELDS, "availability", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("image_urls", mode="before")
    @classmethod
    def clean_image_urls(cls, v):
        """Drop blank entries, keep feed order, cap at MAX_IMAGES."""
        if not v:
            return []
        urls = [str(url).strip() for url in v if url and str(url).strip()]
        return urls[:MAX_IMAGES]

    @field_validator("remote_product_id", mode="before")
    @classmethod
    def blank_remote_id(cls, v):
        if v is None or str(v).strip() == "":
            return None
        return str(v).strip()

    @property
    def is_sold(self) -> bool:
        return self.availability.strip().upper() == AVAILABILITY_SOLD

    @property
    def expected_quantity(self) -> int:
        return QUANTITY_SOLD if self.is_sold else QUANTITY_AVAILABLE

    @property
    def has_remote_product(self) -> bool:
        return self.remote_product_id is not None

    @property
    def image_count(self) -> int:
        return len(self.image_urls)

    @property
    def option_values(self) -> Dict[str, str]:
        values = {
            OPTION_COLOR: self.dial,
            OPTION_SIZE: self.diameter,
            OPTION_MATERIAL: self.metal,
        }
        return {name: value for name, value in values.items() if value}

    def equals_for_catalog(self, other: "ItemRecord") -> bool:
        """Exact comparison of every field that is pushed to the catalog."""
        return not self.changed_fields(other)

    def changed_fields(self, other: "ItemRecord") -> Set[str]:
        return {
            name for name in TRACKED_FIELDS
            if getattr(self, name) != getattr(other, name)
        }

    def changed_groups(self, other: "ItemRecord") -> Set[str]:
        changed = self.changed_fields(other)
        return {
            group for group, fields in FIELD_GROUPS.items()
            if changed.intersection(fields)
        }

    def with_content_from(self, feed_item: "ItemRecord") -> "ItemRecord":
        """Copy of this (stored) record carrying the feed's content and this record's linkage."""
        content = {name: getattr(feed_item, name) for name in TRACKED_FIELDS}
        return self.model_copy(update=content, deep=True)

    def short_label(self) -> str:
        label = self.description[:40] + "..." if len(self.description) > 40 else self.description
        return f"{self.business_key} ({label or 'no description'})"


class ItemChange(BaseModel):
    """A matched key whose stored and feed versions are both kept."""
    from_store: ItemRecord
    from_feed: ItemRecord


class ChangeSet(BaseModel):
    """Classified difference between the feed snapshot and the item store."""
    new_items: List[ItemRecord] = Field(default_factory=list)
    changed_items: List[ItemChange] = Field(default_factory=list)
    deleted_items: List[ItemRecord] = Field(default_factory=list)
    unchanged_count: int = 0

    @property
    def is_empty(self) -> bool:
        return not (self.new_items or self.changed_items or self.deleted_items)

    def work_items(self) -> List[ItemRecord]:
        """New items plus the feed side of changed items, in business-key order."""
        items = list(self.new_items) + [change.from_feed for change in self.changed_items]
        return sorted(items, key=lambda item: business_key_sort_key(item.business_key))


class SyncModeKind(str, Enum):
    INCREMENTAL = "incremental"
    FULL_FORCE = "full_force"
    SINGLE_ITEM = "single_item"
    RETRY_FAILED = "retry_failed"
    DATABASE_ONLY = "database_only"


class SyncMode(BaseModel):
    """How a run selects and applies work. Passed explicitly to every call."""
    model_config = ConfigDict(frozen=True)

    kind: SyncModeKind
    key: Optional[str] = None

    @classmethod
    def incremental(cls) -> "SyncMode":
        return cls(kind=SyncModeKind.INCREMENTAL)

    @classmethod
    def full_force(cls) -> "SyncMode":
        return cls(kind=SyncModeKind.FULL_FORCE)

    @classmethod
    def single_item(cls, key: Optional[str]) -> "SyncMode":
        return cls(kind=SyncModeKind.SINGLE_ITEM, key=key)

    @classmethod
    def retry_failed(cls) -> "SyncMode":
        return cls(kind=SyncModeKind.RETRY_FAILED)

    @classmethod
    def database_only(cls) -> "SyncMode":
        return cls(kind=SyncModeKind.DATABASE_ONLY)

    @property
    def uses_diff(self) -> bool:
        """Incremental runs diff the feed; every other remote mode supplies an explicit list."""
        return self.kind is SyncModeKind.INCREMENTAL

    @property
    def forces_full_update(self) -> bool:
        """Explicit lists re-apply every sub-operation instead of only the changed ones."""
        return self.kind in (
            SyncModeKind.FULL_FORCE,
            SyncModeKind.SINGLE_ITEM,
            SyncModeKind.RETRY_FAILED,
        )

    def __str__(self) -> str:
        if self.key:
            return f"{self.kind.value}({self.key})"
        return self.kind.value


# =============================================================================
# CATALOG PAYLOADS
# =============================================================================

class InventoryLevel(BaseModel):
    """Available quantity of one product at one location."""
    location_id: str
    available: int = 0


class RemoteProduct(BaseModel):
    """Minimal view of a product as it exists in the remote catalog."""
    remote_id: str
    sku: Optional[str] = None
    title: str = ""
    image_count: int = 0


class ProductPayload(BaseModel):
    """Presentation fields pushed on create and on direct field updates."""
    title: str
    body_html: str = ""
    vendor: str = ""
    product_type: str = ""
    sku: str
    price: str = ""
    tags: List[str] = Field(default_factory=list)

    @classmethod
    def from_item(cls, item: ItemRecord) -> "ProductPayload":
        tags = [value for value in (item.category, item.designer, item.condition) if value]
        return cls(
            title=item.description or item.business_key,
            body_html=item.description,
            vendor=item.designer,
            product_type=item.category,
            sku=item.business_key,
            price=item.price,
            tags=tags,
        )


class VariantSpec(BaseModel):
    """The single variant of a product and the option values that define it."""
    sku: str
    price: str = ""
    options: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_item(cls, item: ItemRecord) -> "VariantSpec":
        return cls(sku=item.business_key, price=item.price, options=item.option_values)


def metafields_for(item: ItemRecord) -> Dict[str, str]:
    """Marketplace metadata as metafield key -> value, with "" for cleared values."""
    return {name: getattr(item, name) for name in METADATA_FIELDS}


def expected_inventory_levels(item_quantity: int, current: List[InventoryLevel]) -> List[InventoryLevel]:
    """
    Absolute levels so the total across locations equals the expected quantity.

    The whole quantity sits at the first location and every other location is
    zeroed, so the total can never exceed 1.
    """
    levels = []
    for index, level in enumerate(current):
        available = item_quantity if index == 0 else 0
        levels.append(InventoryLevel(location_id=level.location_id, available=available))
    return levels


# =============================================================================
# REPORTING
# =============================================================================

class DiscrepancyKind(str, Enum):
    NEW = "NEW"
    CHANGED = "CHANGED"
    DELETED = "DELETED"
    EXTRA_IN_REMOTE = "EXTRA_IN_REMOTE"
    EXTRA_IN_STORE = "EXTRA_IN_STORE"
    MISMATCHED_REMOTE_ID = "MISMATCHED_REMOTE_ID"
    IMAGE_COUNT_MISMATCH = "IMAGE_COUNT_MISMATCH"
    INVENTORY_MISMATCH = "INVENTORY_MISMATCH"


class Discrepancy(BaseModel):
    """One finding of an analysis or audit run."""
    business_key: Optional[str] = None
    remote_product_id: Optional[str] = None
    stored_remote_id: Optional[str] = None
    kind: DiscrepancyKind
    description: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)

    def __str__(self) -> str:
        return (
            f"[{self.kind.value}] key: {self.business_key}, remote id: {self.remote_product_id}, "
            f"stored id: {self.stored_remote_id} - {self.description}"
        )


class SyncSummary(BaseModel):
    """Result of one run, whatever the trigger."""
    mode: str = SyncModeKind.INCREMENTAL.value
    timestamp: datetime = Field(default_factory=datetime.now)

    processed: int = 0
    published: int = 0
    updated: int = 0
    deleted: int = 0
    staged: int = 0
    skipped: int = 0
    failed: int = 0

    failed_keys: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    discrepancies: List[Discrepancy] = Field(default_factory=list)

    aborted: bool = False
    failure_ceiling: Optional[int] = None

    @property
    def succeeded(self) -> int:
        return self.processed - self.failed

    @property
    def success_rate(self) -> float:
        """Percentage of processed items that succeeded (100 when nothing was processed)."""
        if self.processed == 0:
            return 100.0
        return round(self.succeeded / self.processed * 100, 2)

    @property
    def exceeds_failure_ceiling(self) -> bool:
        if self.failure_ceiling is None:
            return False
        return self.failed > self.failure_ceiling

    @property
    def success(self) -> bool:
        return not self.aborted and not self.exceeds_failure_ceiling

    def record_failure(self, business_key: str, message: str):
        self.failed += 1
        self.failed_keys.append(business_key)
        self.errors.append(message)

    def to_json_file(self, filepath: str):
        """Save summary to JSON file for operators and follow-up tooling."""
        data = {
            "mode": self.mode,
            "timestamp": self.timestamp.isoformat(),
            "success": self.success,
            "aborted": self.aborted,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "success_rate": self.success_rate,
            "published": self.published,
            "updated": self.updated,
            "deleted": self.deleted,
            "staged": self.staged,
            "skipped": self.skipped,
            "failure_ceiling": self.failure_ceiling,
            "exceeds_failure_ceiling": self.exceeds_failure_ceiling,
            "failed_keys": self.failed_keys,
            "errors": self.errors,
            "discrepancies": [d.model_dump(mode="json") for d in self.discrepancies],
        }
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
