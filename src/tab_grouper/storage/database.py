"""
SQLite storage for grouping state, statistics and settings.
"""

import json
import sqlite3
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ValidationError

from tab_grouper.config import get_logger
from tab_grouper.grouping.errors import PersistenceError
from tab_grouper.grouping.models import GroupingSettings, GroupingState, GroupingStats
from .base import GroupingStore

logger = get_logger(__name__)

GROUPING_STATE_KEY = "grouping_state"
GROUPING_STATS_KEY = "grouping_stats"
GROUPING_SETTINGS_KEY = "grouping_settings"


class SQLiteGroupingStore(GroupingStore):
    """Key/value store on SQLite; each document is a JSON payload under a fixed key."""

    def __init__(self, db_path: Union[Path, str]):
        """
        Initialize the database connection.

        Args:
            db_path: Path to the SQLite database file, or ":memory:"
        """
        self.db_path = db_path
        if str(db_path) != ":memory:":
            self.db_path = Path(db_path)
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._initialize_schema()

    def _initialize_schema(self):
        """Create the database schema if it doesn't exist."""
        cursor = self.conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        self.conn.commit()

    async def read_grouping_state(self) -> GroupingState:
        payload = self._read(GROUPING_STATE_KEY)
        return self._parse(GroupingState, payload, GROUPING_STATE_KEY)

    async def write_grouping_state(self, state: GroupingState) -> None:
        self._write(GROUPING_STATE_KEY, state)

    async def read_stats(self) -> GroupingStats:
        payload = self._read(GROUPING_STATS_KEY)
        return self._parse(GroupingStats, payload, GROUPING_STATS_KEY)

    async def write_stats(self, stats: GroupingStats) -> None:
        self._write(GROUPING_STATS_KEY, stats)

    async def read_settings(self) -> GroupingSettings:
        payload = self._read(GROUPING_SETTINGS_KEY)
        return self._parse(GroupingSettings, payload, GROUPING_SETTINGS_KEY)

    async def write_settings(self, settings: GroupingSettings) -> None:
        self._write(GROUPING_SETTINGS_KEY, settings)

    def _read(self, key: str) -> Optional[dict]:
        """
        Read and decode the JSON document stored under a key.

        Args:
            key: Document key

        Returns:
            Decoded document, or None if the key is absent
        """
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read '{key}'", cause=e) from e

        if row is None:
            return None

        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Stored '{key}' is not valid JSON", cause=e) from e

    def _write(self, key: str, document: BaseModel) -> None:
        """
        Store a model as JSON under a key, replacing any previous value.

        Args:
            key: Document key
            document: Model to store
        """
        try:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
            """,
                (key, document.model_dump_json()),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write '{key}'", cause=e) from e

    @staticmethod
    def _parse(model: type[BaseModel], payload: Optional[dict], key: str):
        if payload is None:
            return model()
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Stored '{key}' failed validation, using defaults: {e}")
            return model()

    def close(self):
        """Close the database connection."""
        self.conn.close()
