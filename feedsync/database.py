"""
Catalog Feed Sync - Item Database
SQLite system-of-record for item content, remote linkage and lifecycle status.
"""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import DatabaseError
from .models import ItemRecord, ItemStatus

logger = logging.getLogger(__name__)

CONTENT_COLUMNS = (
    "description", "price", "designer", "category", "condition",
    "dial", "diameter", "metal",
    "year", "reference_number", "movement", "strap", "box_papers", "style", "model",
    "availability",
)


class ItemDatabase:
    """
    SQLite database holding one row per business key.

    The database is the single owner of persisted state. Every write commits
    immediately so a crash mid-run leaves the statuses of already-processed
    items intact for the next run.

    Assumes a single sync process per database file; nothing here locks
    rows across a run.
    """

    TABLE_SCHEMA = """
    CREATE TABLE IF NOT EXISTS items (
        business_key TEXT PRIMARY KEY,
        description TEXT,
        price TEXT,
        designer TEXT,
        category TEXT,
        condition TEXT,
        dial TEXT,
        diameter TEXT,
        metal TEXT,
        year TEXT,
        reference_number TEXT,
        movement TEXT,
        strap TEXT,
        box_papers TEXT,
        style TEXT,
        model TEXT,
        availability TEXT,
        image_urls TEXT,
        remote_product_id TEXT,
        status TEXT NOT NULL,
        system_message TEXT,
        last_updated TEXT,
        published_at TEXT
    )
    """

    INDEX_SCHEMA = """
    CREATE INDEX IF NOT EXISTS idx_items_status ON items(status);
    CREATE INDEX IF NOT EXISTS idx_items_remote_id ON items(remote_product_id);
    """

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = Path(db_path)
        self._ensure_dir()
        try:
            self.conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot open database: {e}") from e
        self.conn.row_factory = sqlite3.Row
        self._init_schema()
        logger.info(f"Database initialized: {self.db_path}")

    def _ensure_dir(self):
        """Ensure database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()
        cursor.execute(self.TABLE_SCHEMA)
        cursor.executescript(self.INDEX_SCHEMA)
        self.conn.commit()

    # =========================================================================
    # QUERIES
    # =========================================================================

    def find_by_key(self, business_key: str) -> Optional[ItemRecord]:
        """Get the stored record for a business key."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM items WHERE business_key = ?", (business_key,))
        row = cursor.fetchone()
        return self._row_to_item(row) if row else None

    def find_all(self) -> List[ItemRecord]:
        """Get every stored record."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM items")
        return [self._row_to_item(row) for row in cursor.fetchall()]

    def find_by_status(self, status: ItemStatus) -> List[ItemRecord]:
        """Get records in the given lifecycle status."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM items WHERE status = ?", (ItemStatus(status).value,))
        return [self._row_to_item(row) for row in cursor.fetchall()]

    def get_stats(self) -> Dict:
        """Get database statistics."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT COUNT(*) as total FROM items")
        total = cursor.fetchone()['total']

        cursor.execute("SELECT COUNT(*) as linked FROM items WHERE remote_product_id IS NOT NULL")
        linked = cursor.fetchone()['linked']

        cursor.execute("SELECT status, COUNT(*) as count FROM items GROUP BY status")
        by_status = {row['status']: row['count'] for row in cursor.fetchall()}

        return {
            'total_items': total,
            'linked_to_remote': linked,
            'not_linked': total - linked,
            'by_status': by_status,
        }

    # =========================================================================
    # WRITES
    # =========================================================================

    def save(self, item: ItemRecord):
        """Insert a record, or overwrite the row with the same business key."""
        values = self._item_to_values(item)
        columns = list(values.keys())
        placeholders = ", ".join("?" for _ in columns)
        assignments = ", ".join(f"{col} = excluded.{col}" for col in columns if col != "business_key")

        self._execute(
            f"""
            INSERT INTO items ({", ".join(columns)})
            VALUES ({placeholders})
            ON CONFLICT(business_key) DO UPDATE SET {assignments}
            """,
            tuple(values.values()),
            item.business_key,
        )

    def update(self, item: ItemRecord):
        """Overwrite an existing record. Fails if the key is unknown."""
        values = self._item_to_values(item)
        key = values.pop("business_key")
        assignments = ", ".join(f"{col} = ?" for col in values)

        rowcount = self._execute(
            f"UPDATE items SET {assignments} WHERE business_key = ?",
            tuple(values.values()) + (key,),
            key,
        )
        if rowcount == 0:
            raise DatabaseError("Cannot update unknown item", table="items", business_key=key)

    def delete(self, item: ItemRecord):
        """Remove the record with the item's business key."""
        self._execute(
            "DELETE FROM items WHERE business_key = ?",
            (item.business_key,),
            item.business_key,
        )

    def _execute(self, sql: str, params: tuple, business_key: str) -> int:
        try:
            cursor = self.conn.cursor()
            cursor.execute(sql, params)
            self.conn.commit()
            return cursor.rowcount
        except sqlite3.Error as e:
            self.conn.rollback()
            raise DatabaseError(str(e), table="items", business_key=business_key) from e

    # =========================================================================
    # ROW MAPPING
    # =========================================================================

    @staticmethod
    def _item_to_values(item: ItemRecord) -> Dict:
        if item.remote_product_id and not item.status.allows_remote_id:
            raise DatabaseError(
                f"Status {item.status.value} cannot carry a remote id",
                table="items",
                business_key=item.business_key,
            )

        values = {"business_key": item.business_key}
        for column in CONTENT_COLUMNS:
            values[column] = getattr(item, column)
        values["image_urls"] = json.dumps(item.image_urls)
        values["remote_product_id"] = item.remote_product_id
        values["status"] = item.status.value
        values["system_message"] = item.system_message
        values["last_updated"] = datetime.now().isoformat()
        values["published_at"] = item.published_at.isoformat() if item.published_at else None
        return values

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> ItemRecord:
        data = {column: row[column] for column in CONTENT_COLUMNS}
        return ItemRecord(
            business_key=row['business_key'],
            image_urls=json.loads(row['image_urls']) if row['image_urls'] else [],
            remote_product_id=row['remote_product_id'],
            status=ItemStatus(row['status']),
            system_message=row['system_message'],
            last_updated=datetime.fromisoformat(row['last_updated']) if row['last_updated'] else None,
            published_at=datetime.fromisoformat(row['published_at']) if row['published_at'] else None,
            **data,
        )

    def close(self):
        """Close database connection."""
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
