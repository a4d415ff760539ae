"""
Catalog Feed Sync - Diff Engine
Classifies a feed snapshot against the item store as new, changed, deleted or unchanged.
"""

import logging
from typing import Dict, List, Tuple

from .models import ChangeSet, ItemChange, ItemRecord, business_key_sort_key

logger = logging.getLogger(__name__)


def drop_duplicate_keys(feed_items: List[ItemRecord]) -> Tuple[List[ItemRecord], List[str]]:
    """
    Keep the first occurrence of every business key.

    Returns:
        (unique items in feed order, sorted list of duplicated keys)
    """
    seen = set()
    unique = []
    duplicates = set()
    for item in feed_items:
        if item.business_key in seen:
            duplicates.add(item.business_key)
            continue
        seen.add(item.business_key)
        unique.append(item)

    if duplicates:
        logger.error(
            f"❌ Feed has {len(duplicates)} duplicated keys, keeping first occurrence: "
            f"{', '.join(sorted(duplicates, key=business_key_sort_key))}"
        )
    return unique, sorted(duplicates, key=business_key_sort_key)


class DiffEngine:
    """
    Pure comparison of a feed snapshot with the stored records.

    The store is read once per call; nothing is kept between calls.
    """

    def __init__(self, store):
        self.store = store

    def compute_change_set(self, force_all: bool, feed_items: List[ItemRecord]) -> ChangeSet:
        """
        Classify every feed and stored record.

        Args:
            force_all: Emit a changed pair for every matching key, skipping field comparison
            feed_items: Current feed snapshot (keys must be unique)
        """
        stored_by_key: Dict[str, ItemRecord] = {
            item.business_key: item for item in self.store.find_all()
        }
        return self.classify(force_all, feed_items, stored_by_key)

    @staticmethod
    def classify(
        force_all: bool,
        feed_items: List[ItemRecord],
        stored_by_key: Dict[str, ItemRecord],
    ) -> ChangeSet:
        change_set = ChangeSet()
        feed_keys = set()

        for feed_item in feed_items:
            feed_keys.add(feed_item.business_key)
            stored = stored_by_key.get(feed_item.business_key)

            if stored is None:
                change_set.new_items.append(feed_item)
            elif force_all or not stored.equals_for_catalog(feed_item):
                change_set.changed_items.append(ItemChange(from_store=stored, from_feed=feed_item))
            else:
                change_set.unchanged_count += 1

        change_set.deleted_items = sorted(
            (item for key, item in stored_by_key.items() if key not in feed_keys),
            key=lambda item: business_key_sort_key(item.business_key),
        )

        logger.info(
            f"📊 Change set: {len(change_set.new_items)} new, "
            f"{len(change_set.changed_items)} changed, "
            f"{len(change_set.deleted_items)} deleted, "
            f"{change_set.unchanged_count} unchanged"
            + (" (forced)" if force_all else "")
        )
        return change_set
