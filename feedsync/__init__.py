"""
Catalog Feed Sync - feedsync package
"""

from .analysis import ReconciliationAnalyzer
from .catalog import CatalogAPI
from .controller import SyncController
from .database import ItemDatabase
from .diff import DiffEngine
from .feed import CsvFeedSource, FeedSource
from .inventory import InventoryAuditor
from .models import ChangeSet, ItemRecord, ItemStatus, SyncMode, SyncSummary
from .reconcile import ReconciliationOperations
from .sync import SyncOrchestrator
from .woo_catalog import WooCatalogAPI

__all__ = [
    "CatalogAPI",
    "ChangeSet",
    "CsvFeedSource",
    "DiffEngine",
    "FeedSource",
    "InventoryAuditor",
    "ItemDatabase",
    "ItemRecord",
    "ItemStatus",
    "ReconciliationAnalyzer",
    "ReconciliationOperations",
    "SyncController",
    "SyncMode",
    "SyncOrchestrator",
    "SyncSummary",
    "WooCatalogAPI",
]
