#!/usr/bin/env python3
"""
Catalog Feed Sync - Main Entry Point
Keep a WooCommerce catalog consistent with a vendor inventory feed.

Usage:
    python main.py                              # Incremental sync of the configured feed
    python main.py --feed data/input/feed.csv   # Incremental sync of another feed file
    python main.py --full-force                 # Re-apply every item, changed or not
    python main.py --item 10452                 # Force-update one item
    python main.py --retry-failed               # Retry items whose update failed
    python main.py --database-only              # Stage the feed locally, no remote calls
    python main.py --analyze                    # Report discrepancies, change nothing
    python main.py --inventory-audit            # Report inventory mismatches
    python main.py --inventory-enforce          # Fix inventory mismatches
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from config.settings import settings
from feedsync.analysis import ReconciliationAnalyzer
from feedsync.controller import SyncController
from feedsync.database import ItemDatabase
from feedsync.exceptions import ConfigurationError, FeedSyncError
from feedsync.feed import CsvFeedSource
from feedsync.inventory import InventoryAuditor
from feedsync.logging_config import setup_logging
from feedsync.models import SyncMode, SyncModeKind, SyncSummary
from feedsync.sync import SyncOrchestrator
from feedsync.woo_catalog import WooCatalogAPI

logger = logging.getLogger(__name__)


def build_catalog() -> WooCatalogAPI:
    """Create the WooCommerce client, failing early when credentials are missing."""
    if not settings.woo_configured:
        raise ConfigurationError(
            "WooCommerce credentials not configured (WOO_URL, WOO_CONSUMER_KEY, WOO_CONSUMER_SECRET)",
            setting="woo_consumer_key",
        )
    return WooCatalogAPI(
        woo_url=settings.woo_url,
        consumer_key=settings.woo_consumer_key,
        consumer_secret=settings.woo_consumer_secret,
        timeout=settings.woo_timeout,
    )


def select_mode(args: argparse.Namespace) -> SyncMode:
    if args.full_force:
        return SyncMode.full_force()
    if args.item is not None:
        return SyncMode.single_item(args.item)
    if args.retry_failed:
        return SyncMode.retry_failed()
    if args.database_only:
        return SyncMode.database_only()
    return SyncMode.incremental()


def run(args: argparse.Namespace) -> SyncSummary:
    """
    Execute the requested trigger.

    Returns:
        SyncSummary of the run (sync, analysis or inventory scan)
    """
    feed_source = CsvFeedSource(args.feed or settings.feed_path)

    with ItemDatabase(settings.db_path) as db:
        stats = db.get_stats()
        logger.info(f"💾 Database: {stats['total_items']} items, {stats['linked_to_remote']} linked to WooCommerce")

        if args.inventory_audit or args.inventory_enforce:
            auditor = InventoryAuditor(build_catalog(), db)
            return auditor.enforce() if args.inventory_enforce else auditor.audit()

        if args.analyze:
            analyzer = ReconciliationAnalyzer(build_catalog(), db, settings.max_to_delete_count)
            return analyzer.analyze(feed_source.fetch_all())

        mode = select_mode(args)
        logger.info(f"{'='*60}")
        logger.info(f"Starting Catalog Feed Sync ({mode})")
        logger.info(f"{'='*60}")

        # Database-only never talks to WooCommerce, so credentials are optional
        catalog = None if mode.kind is SyncModeKind.DATABASE_ONLY else build_catalog()
        orchestrator = SyncOrchestrator(
            catalog,
            db,
            batch_size=settings.batch_size,
            batch_pause_seconds=settings.batch_pause_seconds,
            max_failed_items=settings.max_failed_items,
            max_to_delete_count=settings.max_to_delete_count,
        )
        controller = SyncController(feed_source, orchestrator)
        return controller.run(mode)


def print_report(summary: SyncSummary):
    """Print final run report to console."""
    print("\n" + "="*60)
    print("📊 FINAL REPORT")
    print("="*60)

    if summary.aborted:
        status = "🛑 ABORTED"
    elif summary.success:
        status = "✅ SUCCESS"
    else:
        status = "❌ TOO MANY FAILURES"
    print(f"Status: {status}")
    print(f"Mode: {summary.mode}")
    print(f"Time: {summary.timestamp.strftime('%Y-%m-%d %H:%M:%S')}")
    print()

    print(f"📄 Processed: {summary.processed}")
    print(f"✅ Succeeded: {summary.succeeded}")
    print(f"❌ Failed: {summary.failed}")
    print(f"📈 Success rate: {summary.success_rate:.1f}%")
    print()

    print(f"✨ Published: {summary.published}")
    print(f"🔄 Updated: {summary.updated}")
    print(f"🗑️  Deleted: {summary.deleted}")
    if summary.staged:
        print(f"💾 Staged: {summary.staged}")
    print(f"⏭️  Skipped (unchanged): {summary.skipped}")
    print()

    if summary.exceeds_failure_ceiling:
        print(f"🚨 Failures above ceiling of {summary.failure_ceiling}!")
        print()

    if summary.discrepancies:
        print(f"🔍 Discrepancies: {len(summary.discrepancies)}")
        for d in summary.discrepancies[:20]:
            print(f"   • {d}")
        if len(summary.discrepancies) > 20:
            print(f"   ... and {len(summary.discrepancies) - 20} more")
        print()

    if summary.errors:
        print(f"❌ Errors: {len(summary.errors)}")
        for e in summary.errors[:5]:
            print(f"   • {e}")
        print()

    print("="*60)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Catalog Feed Sync - Reconcile a vendor feed with WooCommerce"
    )
    parser.add_argument(
        "--feed", "-f",
        type=Path,
        help="Path to the feed CSV (default: FEED_PATH from .env)",
    )

    trigger = parser.add_mutually_exclusive_group()
    trigger.add_argument(
        "--full-force",
        action="store_true",
        dest="full_force",
        help="Re-apply every feed item to WooCommerce, changed or not",
    )
    trigger.add_argument(
        "--item",
        metavar="KEY",
        help="Force-update a single item by business key",
    )
    trigger.add_argument(
        "--retry-failed",
        action="store_true",
        dest="retry_failed",
        help="Retry items in a failed status that already have a WooCommerce product",
    )
    trigger.add_argument(
        "--database-only",
        action="store_true",
        dest="database_only",
        help="Apply the feed to the local database only (no WooCommerce calls)",
    )
    trigger.add_argument(
        "--analyze",
        action="store_true",
        help="Report the change set and store/WooCommerce discrepancies without syncing",
    )
    trigger.add_argument(
        "--inventory-audit",
        action="store_true",
        dest="inventory_audit",
        help="Report products whose stock breaks the one-unit rule",
    )
    trigger.add_argument(
        "--inventory-enforce",
        action="store_true",
        dest="inventory_enforce",
        help="Fix products whose stock breaks the one-unit rule",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    args = parser.parse_args()

    setup_logging(
        args.log_level,
        json_format=settings.log_json_format,
        log_file=str(settings.log_file) if settings.log_file else None,
    )

    try:
        summary = run(args)
    except FeedSyncError as e:
        logger.error(f"❌ {e}")
        print(f"❌ {e}")
        sys.exit(1)

    summary.to_json_file(str(settings.stats_path))
    logger.debug(f"📊 Saved {settings.stats_path}")

    print_report(summary)
    sys.exit(0 if summary.success else 2)


if __name__ == "__main__":
    main()
