"""
Catalog Feed Sync - Model Tests
Tests for item records, statuses, sync modes and run summaries.
"""

import json
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from feedsync.models import (
    MAX_IMAGES,
    METADATA_FIELDS,
    ChangeSet,
    InventoryLevel,
    ItemChange,
    ItemRecord,
    ItemStatus,
    ProductPayload,
    SyncMode,
    SyncModeKind,
    SyncSummary,
    VariantSpec,
    business_key_sort_key,
    expected_inventory_levels,
    metafields_for,
)


class TestItemStatus:
    """Tests for the lifecycle status enum."""

    def test_retryable_statuses(self):
        assert set(ItemStatus.retryable()) == {ItemStatus.PUBLISH_FAILED, ItemStatus.UPDATE_FAILED}

    @pytest.mark.parametrize("status,allowed", [
        (ItemStatus.PUBLISHED, True),
        (ItemStatus.UPDATE_FAILED, True),
        (ItemStatus.NEW_WAITING_PUBLISH, False),
        (ItemStatus.PUBLISH_FAILED, False),
    ])
    def test_remote_id_allowed(self, status, allowed):
        assert status.allows_remote_id is allowed

    def test_status_from_string(self):
        assert ItemStatus("PUBLISHED") is ItemStatus.PUBLISHED


class TestBusinessKeyOrder:
    """Numeric keys sort numerically, others lexically after them."""

    def test_numeric_order(self):
        keys = ["300", "100", "20", "1000"]
        assert sorted(keys, key=business_key_sort_key) == ["20", "100", "300", "1000"]

    def test_mixed_keys(self):
        keys = ["B-2", "15", "A-1", "3"]
        assert sorted(keys, key=business_key_sort_key) == ["3", "15", "A-1", "B-2"]


class TestItemRecord:
    """Tests for ItemRecord validation and comparison."""

    def test_strips_and_defaults(self):
        item = ItemRecord(business_key=" 42 ", description=None, dial="  Blue ")

        assert item.business_key == "42"
        assert item.description == ""
        assert item.dial == "Blue"
        assert item.status is ItemStatus.NEW_WAITING_PUBLISH
        assert item.remote_product_id is None

    def test_image_urls_cleaned_and_capped(self):
        urls = ["", "  "] + [f"https://img/{i}.jpg" for i in range(12)]
        item = ItemRecord(business_key="1", image_urls=urls)

        assert item.image_count == MAX_IMAGES
        assert item.image_urls[0] == "https://img/0.jpg"

    def test_blank_remote_id_is_none(self):
        item = ItemRecord(business_key="1", remote_product_id="  ")
        assert not item.has_remote_product

    @pytest.mark.parametrize("availability,quantity", [
        ("SOLD", 0),
        ("sold", 0),
        ("Available", 1),
        ("", 1),
    ])
    def test_expected_quantity(self, availability, quantity):
        item = ItemRecord(business_key="1", availability=availability)
        assert item.expected_quantity == quantity

    def test_option_values_skip_empty(self, make_item):
        item = make_item("1", metal="")
        assert item.option_values == {"Color": "Black", "Size": "40mm"}

    def test_equal_content(self, make_item):
        assert make_item("1").equals_for_catalog(make_item("1"))

    def test_linkage_ignored_in_comparison(self, make_item):
        stored = make_item("1", remote_product_id="99", status=ItemStatus.PUBLISHED)
        assert stored.equals_for_catalog(make_item("1"))

    def test_changed_groups(self, make_item):
        stored = make_item("1")
        feed = make_item("1", dial="Blue", year="2016", availability="SOLD")

        assert stored.changed_groups(feed) == {"options", "metadata", "inventory"}

    def test_image_order_is_a_change(self, make_item):
        stored = make_item("1")
        feed = make_item("1", image_urls=list(reversed(stored.image_urls)))

        assert stored.changed_groups(feed) == {"images"}

    def test_with_content_from_keeps_linkage(self, make_item):
        stored = make_item("1", remote_product_id="99", status=ItemStatus.UPDATE_FAILED)
        merged = stored.with_content_from(make_item("1", description="New text"))

        assert merged.description == "New text"
        assert merged.remote_product_id == "99"
        assert merged.status is ItemStatus.UPDATE_FAILED


class TestChangeSet:
    """Tests for ChangeSet helpers."""

    def test_work_items_sorted(self, make_item):
        change_set = ChangeSet(
            new_items=[make_item("300"), make_item("100")],
            changed_items=[ItemChange(from_store=make_item("200"), from_feed=make_item("200", price="1"))],
        )

        work = change_set.work_items()

        assert [item.business_key for item in work] == ["100", "200", "300"]
        assert work[1].price == "1"

    def test_empty(self):
        assert ChangeSet(unchanged_count=3).is_empty


class TestSyncMode:
    """Tests for the explicit sync mode value."""

    def test_incremental_uses_diff(self):
        assert SyncMode.incremental().uses_diff
        assert not SyncMode.incremental().forces_full_update

    @pytest.mark.parametrize("mode", [
        SyncMode.full_force(),
        SyncMode.single_item("1"),
        SyncMode.retry_failed(),
    ])
    def test_explicit_modes_force(self, mode):
        assert not mode.uses_diff
        assert mode.forces_full_update

    def test_frozen(self):
        mode = SyncMode.incremental()
        with pytest.raises(Exception):
            mode.kind = SyncModeKind.FULL_FORCE

    def test_str(self):
        assert str(SyncMode.single_item("42")) == "single_item(42)"


class TestCatalogPayloads:
    """Tests for payloads derived from an item."""

    def test_product_payload(self, make_item):
        payload = ProductPayload.from_item(make_item("7"))

        assert payload.sku == "7"
        assert payload.vendor == "Rolex"
        assert payload.tags == ["Watches", "Rolex", "Excellent"]

    def test_product_title_falls_back_to_key(self, make_item):
        assert ProductPayload.from_item(make_item("7", description="")).title == "7"

    def test_variant_sku_is_business_key(self, make_item):
        variant = VariantSpec.from_item(make_item("7"))

        assert variant.sku == "7"
        assert variant.options == {"Color": "Black", "Size": "40mm", "Material": "Steel"}

    def test_metafields_only_metadata(self, make_item):
        values = metafields_for(make_item("7", model=""))

        assert values["year"] == "2015"
        assert values["model"] == ""
        assert set(values) == set(METADATA_FIELDS)
        assert "dial" not in values

    def test_expected_levels_never_exceed_one(self):
        current = [
            InventoryLevel(location_id="a", available=3),
            InventoryLevel(location_id="b", available=2),
        ]

        levels = expected_inventory_levels(1, current)

        assert [(l.location_id, l.available) for l in levels] == [("a", 1), ("b", 0)]


class TestSyncSummary:
    """Tests for run summary counts."""

    def test_success_rate(self):
        summary = SyncSummary(processed=5)
        summary.record_failure("3", "boom")

        assert summary.succeeded == 4
        assert summary.success_rate == 80.0
        assert summary.failed_keys == ["3"]

    def test_empty_run_is_full_success(self):
        assert SyncSummary().success_rate == 100.0

    def test_failure_ceiling(self):
        summary = SyncSummary(processed=3, failed=2, failure_ceiling=1)

        assert summary.exceeds_failure_ceiling
        assert not summary.success

    def test_aborted_is_not_success(self):
        assert not SyncSummary(aborted=True).success

    def test_to_json_file(self, tmp_path):
        summary = SyncSummary(mode="incremental", processed=2, published=2)
        path = tmp_path / "stats.json"

        summary.to_json_file(str(path))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["processed"] == 2
        assert data["success"] is True
        assert data["success_rate"] == 100.0
