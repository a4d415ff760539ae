"""
Catalog Feed Sync - Feed Sources
Collaborators that return the full current vendor snapshot as item records.
"""

import csv
import io
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List

import ftfy

from .exceptions import FeedError
from .models import MAX_IMAGES, ItemRecord

logger = logging.getLogger(__name__)


class FeedSource(ABC):
    """Returns the full current feed snapshot. No pagination is exposed."""

    @abstractmethod
    def fetch_all(self) -> List[ItemRecord]:
        """Return every item currently in the feed."""


class CsvFeedSource(FeedSource):
    """
    Reads a flat CSV export of the vendor feed.

    Column names match ItemRecord field names; images come from
    ``image_url_1`` .. ``image_url_9``. Unknown columns are ignored.
    """

    ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")
    IMAGE_COLUMNS = tuple(f"image_url_{i}" for i in range(1, MAX_IMAGES + 1))

    # Linkage and lifecycle never come from the vendor
    RESERVED = frozenset({
        "image_urls", "remote_product_id", "status", "system_message",
        "last_updated", "published_at",
    })

    def __init__(self, filepath: Path, delimiter: str = ","):
        self.filepath = Path(filepath)
        self.delimiter = delimiter

    def fetch_all(self) -> List[ItemRecord]:
        logger.info(f"📖 Reading feed: {self.filepath}")
        content = self._read_file()

        reader = csv.DictReader(io.StringIO(content), delimiter=self.delimiter)
        if not reader.fieldnames or "business_key" not in reader.fieldnames:
            raise FeedError("Feed has no business_key column", source=str(self.filepath))

        items = []
        for line_num, row in enumerate(reader, 2):
            if not (row.get("business_key") or "").strip():
                logger.warning(f"Line {line_num}: skipping row without business_key")
                continue
            try:
                items.append(self._row_to_item(row))
            except ValueError as e:
                raise FeedError(f"Invalid row: {e}", source=str(self.filepath), line_number=line_num) from e

        logger.info(f"✅ Read {len(items)} feed items")
        return items

    def _read_file(self) -> str:
        if not self.filepath.exists():
            raise FeedError("Feed file not found", source=str(self.filepath))

        raw = self.filepath.read_bytes()
        for encoding in self.ENCODINGS:
            try:
                content = raw.decode(encoding)
                return ftfy.fix_text(content)
            except UnicodeDecodeError:
                continue
        raise FeedError("Cannot decode feed file", source=str(self.filepath))

    def _row_to_item(self, row: Dict[str, str]) -> ItemRecord:
        images = [row.get(column) for column in self.IMAGE_COLUMNS]
        fields = {
            name: value for name, value in row.items()
            if name and name in ItemRecord.model_fields and name not in self.RESERVED
        }
        return ItemRecord(image_urls=images, **fields)
