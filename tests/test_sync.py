"""
Catalog Feed Sync - Sync Orchestrator Tests
Tests for ordering, batching, failure isolation and deletions.
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from feedsync.exceptions import CatalogAuthError, ParameterError
from feedsync.models import ItemStatus, SyncMode


def created_order(catalog):
    return [sku for method, sku in catalog.calls if method == "create_product"]


class TestOrdering:
    """Items are processed in ascending business-key order."""

    def test_numeric_order(self, orchestrator, catalog, make_item):
        feed = [make_item("300"), make_item("100"), make_item("200")]

        orchestrator.sync(feed, SyncMode.incremental())

        assert created_order(catalog) == ["100", "200", "300"]

    def test_explicit_list_sorted(self, orchestrator, catalog, make_item):
        orchestrator.sync([make_item("B"), make_item("10"), make_item("9")], SyncMode.full_force())

        assert created_order(catalog) == ["9", "10", "B"]


class TestBatching:
    """Fixed-size batches with a pause between them."""

    def test_pause_between_batches_only(self, orchestrator, pauses, make_item):
        feed = [make_item(str(key)) for key in range(1, 6)]  # 3 batches of 2

        orchestrator.sync(feed, SyncMode.incremental())

        assert pauses == [2.0, 2.0]

    def test_single_batch_no_pause(self, orchestrator, pauses, make_item):
        orchestrator.sync([make_item("1"), make_item("2")], SyncMode.incremental())

        assert pauses == []

    def test_invalid_batch_size(self, catalog, temp_database):
        from feedsync.sync import SyncOrchestrator

        with pytest.raises(ParameterError):
            SyncOrchestrator(catalog, temp_database, batch_size=0)


class TestFailureIsolation:
    """One item's failure never blocks its siblings."""

    def test_mixed_batch_partial_failure(self, orchestrator, catalog, temp_database, make_item):
        feed = [make_item(str(key)) for key in range(1, 6)]
        catalog.fail("create_product", "3")

        summary = orchestrator.sync(feed, SyncMode.incremental())

        assert summary.processed == 5
        assert summary.failed == 1
        assert summary.published == 4
        assert summary.failed_keys == ["3"]
        for key in ("1", "2", "4", "5"):
            assert temp_database.find_by_key(key).status is ItemStatus.PUBLISHED
        assert temp_database.find_by_key("3").status is ItemStatus.PUBLISH_FAILED

    def test_failure_ceiling_flagged(self, orchestrator, catalog, make_item):
        feed = [make_item(str(key)) for key in range(1, 4)]
        catalog.fail("create_product", "1")
        catalog.fail("create_product", "2")

        summary = orchestrator.sync(feed, SyncMode.incremental())

        assert summary.failed == 2
        assert summary.exceeds_failure_ceiling
        assert not summary.success

    def test_auth_error_aborts_run(self, orchestrator, catalog, make_item):
        catalog.fail("create_product", "2", CatalogAuthError("Unauthorized"))

        with pytest.raises(CatalogAuthError):
            orchestrator.sync([make_item("1"), make_item("2"), make_item("3")], SyncMode.incremental())

        assert "3" not in created_order(catalog)

    def test_failed_publish_retried_next_run(self, orchestrator, catalog, temp_database, make_item):
        catalog.fail("create_product", "1")
        orchestrator.sync([make_item("1")], SyncMode.incremental())
        catalog.clear_failures()

        summary = orchestrator.sync([make_item("1")], SyncMode.incremental())

        assert summary.published == 1
        assert summary.skipped == 0
        assert temp_database.find_by_key("1").status is ItemStatus.PUBLISHED
        assert len(catalog.ids_for("1")) == 1


class TestIncrementalRuns:
    """Successive syncs of the same feed."""

    def test_unchanged_items_skipped(self, orchestrator, catalog, make_item):
        feed = [make_item("1"), make_item("2")]
        orchestrator.sync(feed, SyncMode.incremental())
        catalog.calls.clear()

        summary = orchestrator.sync(feed, SyncMode.incremental())

        assert summary.skipped == 2
        assert summary.processed == 0
        assert catalog.calls == []

    def test_staged_item_published(self, orchestrator, catalog, temp_database, make_item):
        temp_database.save(make_item("1"))
        temp_database.save(make_item("2", status=ItemStatus.PUBLISH_FAILED))

        summary = orchestrator.sync([make_item("1"), make_item("2")], SyncMode.incremental())

        assert created_order(catalog) == ["1", "2"]
        assert summary.published == 2
        assert summary.skipped == 0
        for key in ("1", "2"):
            assert temp_database.find_by_key(key).status is ItemStatus.PUBLISHED

    def test_staged_item_missing_from_feed_not_published(self, orchestrator, catalog, temp_database, make_item):
        temp_database.save(make_item("1"))

        orchestrator.sync([], SyncMode.incremental())

        assert created_order(catalog) == []

    def test_changed_item_updated(self, orchestrator, catalog, temp_database, make_item):
        orchestrator.sync([make_item("1")], SyncMode.incremental())

        summary = orchestrator.sync([make_item("1", price="8000.00")], SyncMode.incremental())

        assert summary.updated == 1
        assert catalog.product_for("1")["price"] == "8000.00"
        assert temp_database.find_by_key("1").price == "8000.00"

    def test_sold_transition(self, orchestrator, catalog, temp_database, make_item):
        orchestrator.sync([make_item("1")], SyncMode.incremental())
        assert catalog.total_quantity("1") == 1

        orchestrator.sync([make_item("1", availability="SOLD")], SyncMode.incremental())

        assert catalog.total_quantity("1") == 0
        assert temp_database.find_by_key("1").status is ItemStatus.PUBLISHED

    def test_duplicate_keys_dropped(self, orchestrator, catalog, make_item):
        summary = orchestrator.sync(
            [make_item("1"), make_item("1", price="1")],
            SyncMode.incremental(),
        )

        assert created_order(catalog) == ["1"]
        assert summary.processed == 1
        assert any("duplicated" in error for error in summary.errors)


class TestDeletions:
    """Items absent from the feed are removed on both sides."""

    def test_deleted_item_removed(self, orchestrator, catalog, temp_database, make_item):
        orchestrator.sync([make_item("1"), make_item("2")], SyncMode.incremental())

        summary = orchestrator.sync([make_item("1")], SyncMode.incremental())

        assert summary.deleted == 1
        assert catalog.ids_for("2") == []
        assert temp_database.find_by_key("2") is None

    def test_already_missing_remotely(self, orchestrator, catalog, temp_database, make_item):
        orchestrator.sync([make_item("1"), make_item("2")], SyncMode.incremental())
        for remote_id in catalog.ids_for("2"):
            del catalog.products[remote_id]

        summary = orchestrator.sync([make_item("1")], SyncMode.incremental())

        assert summary.deleted == 1
        assert summary.failed == 0
        assert temp_database.find_by_key("2") is None

    def test_explicit_lists_never_delete(self, orchestrator, catalog, temp_database, make_item):
        orchestrator.sync([make_item("1"), make_item("2")], SyncMode.incremental())

        orchestrator.sync([temp_database.find_by_key("1")], SyncMode.full_force())

        assert temp_database.find_by_key("2") is not None

    def test_delete_threshold_aborts(self, orchestrator, catalog, temp_database, make_item):
        feed = [make_item(str(key)) for key in range(1, 9)]
        orchestrator.sync(feed, SyncMode.incremental())
        catalog.calls.clear()

        summary = orchestrator.sync([make_item("1")], SyncMode.incremental())  # 7 deletions > 5

        assert summary.aborted
        assert not summary.success
        assert catalog.calls == []
        assert len(temp_database.find_all()) == 8

    def test_mass_update_aborts(self, orchestrator, catalog, temp_database, make_item):
        orchestrator.sync([make_item(str(key)) for key in range(1, 8)], SyncMode.incremental())
        catalog.calls.clear()

        feed = [make_item(str(key), price="1.00") for key in range(1, 8)]  # 7 updates > 5
        summary = orchestrator.sync(feed, SyncMode.incremental())

        assert summary.aborted
        assert catalog.calls == []
        assert temp_database.find_by_key("1").price == "9500.00"

    def test_zero_threshold_disables_guard(self, catalog, temp_database, make_item):
        from feedsync.sync import SyncOrchestrator

        orchestrator = SyncOrchestrator(
            catalog, temp_database, batch_pause_seconds=0, max_to_delete_count=0
        )
        orchestrator.sync([make_item(str(key)) for key in range(1, 9)], SyncMode.incremental())

        summary = orchestrator.sync([], SyncMode.incremental())

        assert summary.deleted == 8
        assert not summary.aborted


class TestModes:
    """Mode handling at the orchestrator boundary."""

    def test_database_only_rejected(self, orchestrator, make_item):
        with pytest.raises(ParameterError):
            orchestrator.sync([make_item("1")], SyncMode.database_only())

    def test_full_force_reapplies_unchanged(self, orchestrator, catalog, make_item):
        orchestrator.sync([make_item("1")], SyncMode.incremental())
        catalog.calls.clear()

        summary = orchestrator.sync([make_item("1")], SyncMode.full_force())

        assert summary.updated == 1
        assert "replace_options_and_variant" in catalog.calls_for("1")
