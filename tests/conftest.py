"""
Catalog Feed Sync - Test Fixtures
Shared fixtures for pytest tests.
"""

import pytest
from pathlib import Path
from typing import Dict, List, Optional, Tuple

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from feedsync.catalog import CatalogAPI
from feedsync.controller import SyncController
from feedsync.database import ItemDatabase
from feedsync.exceptions import CatalogAPIError, CatalogNotFoundError
from feedsync.feed import FeedSource
from feedsync.models import (
    InventoryLevel,
    ItemRecord,
    ProductPayload,
    RemoteProduct,
    VariantSpec,
)
from feedsync.sync import SyncOrchestrator


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeCatalog(CatalogAPI):
    """
    In-memory remote catalog.

    Records every call as ``(method, sku)`` and raises a configured error
    when a method is called for a given SKU.
    """

    def __init__(self, locations: Tuple[str, ...] = ("loc-1",)):
        self.products: Dict[str, dict] = {}
        self.calls: List[Tuple[str, str]] = []
        self.failures: Dict[Tuple[str, str], Exception] = {}
        self.locations = locations
        self._next_id = 1000

    # -- test helpers -------------------------------------------------------

    def fail(self, method: str, sku: str, error: Optional[Exception] = None):
        self.failures[(method, sku)] = error or CatalogAPIError(
            "Service Unavailable", status_code=503, business_key=sku
        )

    def clear_failures(self):
        self.failures.clear()

    def add_product(self, sku: Optional[str], levels: Optional[List[int]] = None, images: int = 0) -> str:
        """Insert a product directly, bypassing the call log."""
        self._next_id += 1
        remote_id = str(self._next_id)
        quantities = levels if levels is not None else [1] + [0] * (len(self.locations) - 1)
        self.products[remote_id] = {
            "sku": sku,
            "title": sku or "",
            "price": "",
            "published": True,
            "options": {},
            "images": [f"https://img.example/{sku}/{i}.jpg" for i in range(images)],
            "metafields": {},
            "levels": dict(zip(self.locations, quantities)),
        }
        return remote_id

    def ids_for(self, sku: str) -> List[str]:
        return [rid for rid, product in self.products.items() if product["sku"] == sku]

    def product_for(self, sku: str) -> dict:
        ids = self.ids_for(sku)
        assert len(ids) == 1, f"expected one product for {sku}, found {len(ids)}"
        return self.products[ids[0]]

    def total_quantity(self, sku: str) -> int:
        return sum(self.product_for(sku)["levels"].values())

    def calls_for(self, sku: str) -> List[str]:
        return [method for method, key in self.calls if key == sku]

    def _record(self, method: str, sku: Optional[str]):
        self.calls.append((method, sku))
        error = self.failures.get((method, sku))
        if error is not None:
            raise error

    def _get(self, remote_id: str) -> dict:
        if remote_id not in self.products:
            raise CatalogNotFoundError(f"Product {remote_id} not found")
        return self.products[remote_id]

    # -- CatalogAPI ---------------------------------------------------------

    def find_product_id_by_sku(self, sku):
        self._record("find_product_id_by_sku", sku)
        ids = self.ids_for(sku)
        return ids[0] if ids else None

    def get_product(self, remote_id):
        product = self.products.get(remote_id)
        self._record("get_product", product["sku"] if product else remote_id)
        if product is None:
            return None
        return RemoteProduct(
            remote_id=remote_id,
            sku=product["sku"],
            title=product["title"],
            image_count=len(product["images"]),
        )

    def list_products(self):
        self._record("list_products", None)
        return [
            RemoteProduct(remote_id=rid, sku=p["sku"], title=p["title"], image_count=len(p["images"]))
            for rid, p in self.products.items()
        ]

    def create_product(self, payload: ProductPayload):
        self._record("create_product", payload.sku)
        self._next_id += 1
        remote_id = str(self._next_id)
        self.products[remote_id] = {
            "sku": payload.sku,
            "title": payload.title,
            "price": payload.price,
            "published": False,
            "options": {},
            "images": [],
            "metafields": {},
            "levels": {location: 0 for location in self.locations},
        }
        return remote_id

    def update_product(self, remote_id, payload: ProductPayload):
        product = self._get(remote_id)
        self._record("update_product", product["sku"])
        product["title"] = payload.title
        product["price"] = payload.price

    def delete_product(self, remote_id):
        product = self.products.get(remote_id)
        self._record("delete_product", product["sku"] if product else remote_id)
        self._get(remote_id)
        del self.products[remote_id]

    def publish(self, remote_id):
        product = self._get(remote_id)
        self._record("publish", product["sku"])
        product["published"] = True

    def replace_options_and_variant(self, remote_id, variant: VariantSpec):
        product = self._get(remote_id)
        self._record("replace_options_and_variant", product["sku"])
        product["options"] = dict(variant.options)
        product["levels"] = {location: 0 for location in self.locations}

    def replace_images(self, remote_id, urls):
        product = self._get(remote_id)
        self._record("replace_images", product["sku"])
        product["images"] = list(urls)

    def upsert_metafields(self, remote_id, values):
        product = self._get(remote_id)
        self._record("upsert_metafields", product["sku"])
        product["metafields"].update(values)

    def get_inventory_levels(self, remote_id):
        product = self._get(remote_id)
        self._record("get_inventory_levels", product["sku"])
        return [
            InventoryLevel(location_id=location, available=quantity)
            for location, quantity in product["levels"].items()
        ]

    def set_inventory_absolute(self, remote_id, levels):
        product = self._get(remote_id)
        self._record("set_inventory_absolute", product["sku"])
        for level in levels:
            product["levels"][level.location_id] = level.available


class ListFeedSource(FeedSource):
    """Feed backed by a list the test can replace between runs."""

    def __init__(self, items: Optional[List[ItemRecord]] = None):
        self.items = list(items or [])
        self.fetch_count = 0

    def fetch_all(self):
        self.fetch_count += 1
        return [item.model_copy(deep=True) for item in self.items]


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

def build_item(key: str, **overrides) -> ItemRecord:
    data = {
        "business_key": key,
        "description": f"Rolex Submariner {key}",
        "price": "9500.00",
        "designer": "Rolex",
        "category": "Watches",
        "condition": "Excellent",
        "image_urls": [f"https://img.example/{key}/1.jpg", f"https://img.example/{key}/2.jpg"],
        "dial": "Black",
        "diameter": "40mm",
        "metal": "Steel",
        "year": "2015",
        "reference_number": "116610LN",
        "movement": "Automatic",
        "strap": "Oyster",
        "box_papers": "Yes",
        "style": "Diver",
        "availability": "Available",
    }
    data.update(overrides)
    return ItemRecord(**data)


@pytest.fixture
def make_item():
    """Factory for ItemRecords with realistic content."""
    return build_item


@pytest.fixture
def sample_item() -> ItemRecord:
    return build_item("10452")


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def temp_database(tmp_path):
    """Create a temporary SQLite database for testing."""
    db = ItemDatabase(tmp_path / "items.db")
    yield db
    db.close()


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def pauses() -> List[float]:
    """Records every inter-batch pause instead of sleeping."""
    return []


@pytest.fixture
def orchestrator(catalog, temp_database, pauses) -> SyncOrchestrator:
    return SyncOrchestrator(
        catalog,
        temp_database,
        batch_size=2,
        batch_pause_seconds=2.0,
        max_failed_items=1,
        max_to_delete_count=5,
        sleep=pauses.append,
    )


@pytest.fixture
def feed() -> ListFeedSource:
    return ListFeedSource()


@pytest.fixture
def controller(feed, orchestrator) -> SyncController:
    return SyncController(feed, orchestrator)


@pytest.fixture
def two_location_catalog() -> FakeCatalog:
    return FakeCatalog(locations=("a", "b"))
