"""
Store - persistence port for app state and items.

The service loads a snapshot, works on it, and saves it back before
returning. Concrete stores only move serialized dicts; decoding, legacy
migration and id de-duplication happen here in the base class so every
backend behaves the same.
"""

import copy
import json
import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path

from .models import Item
from .state import AppState

logger = logging.getLogger(__name__)


class Store(ABC):
    """Read/write port. Subclasses implement the ``_read_*``/``_write_*`` hooks."""

    def __init__(self, default_locked: bool = True, bucket_overrides: dict | None = None):
        self.default_locked = default_locked
        self.bucket_overrides = bucket_overrides

    # ==================== Backend hooks ====================

    @abstractmethod
    def _read_state(self) -> dict | None: ...

    @abstractmethod
    def _write_state(self, data: dict) -> None: ...

    @abstractmethod
    def _read_items(self) -> list[dict]: ...

    @abstractmethod
    def _write_items(self, data: list[dict]) -> None: ...

    @abstractmethod
    def clear(self) -> None:
        """Drop state and items."""

    @abstractmethod
    def clear_items(self) -> None:
        """Drop items, keep state."""

    # ==================== Public API ====================

    def load_state(self) -> AppState:
        return AppState.from_dict(
            self._read_state(),
            default_locked=self.default_locked,
            bucket_overrides=self.bucket_overrides,
        )

    def fresh_state(self) -> AppState:
        """State as it is before anything was ever saved."""
        return AppState.from_dict(
            None, default_locked=self.default_locked, bucket_overrides=self.bucket_overrides
        )

    def save_state(self, state: AppState) -> None:
        self._write_state(state.to_dict())

    def load_items(self) -> list[Item]:
        items = []
        seen: set[str] = set()
        for raw in self._read_items():
            item = Item.from_dict(raw)
            if item.id in seen:
                old_id = item.id
                item.id = f"{old_id}-{uuid.uuid4().hex[:8]}"
                logger.warning("Duplicate item id %s re-issued as %s", old_id, item.id)
            seen.add(item.id)
            items.append(item)
        return items

    def save_items(self, items: list[Item]) -> None:
        self._write_items([item.to_dict() for item in items])

    def save(self, state: AppState, items: list[Item]) -> None:
        """Persist state and items together. Backends override to make it atomic."""
        self.save_state(state)
        self.save_items(items)


class InMemoryStore(Store):
    """Process-local store. Keeps deep copies so callers never share references."""

    def __init__(self, state: dict | None = None, items: list[dict] | None = None, **kwargs):
        super().__init__(**kwargs)
        self._state = copy.deepcopy(state)
        self._items = copy.deepcopy(items or [])

    def _read_state(self) -> dict | None:
        return copy.deepcopy(self._state)

    def _write_state(self, data: dict) -> None:
        self._state = copy.deepcopy(data)

    def _read_items(self) -> list[dict]:
        return copy.deepcopy(self._items)

    def _write_items(self, data: list[dict]) -> None:
        self._items = copy.deepcopy(data)

    def clear(self) -> None:
        self._state = None
        self._items = []

    def clear_items(self) -> None:
        self._items = []


SCHEMA = """
CREATE TABLE IF NOT EXISTS app_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE TABLE IF NOT EXISTS items (
    id TEXT PRIMARY KEY,
    position INTEGER NOT NULL,
    data TEXT NOT NULL
);
"""

STATE_KEY = "state"


class SQLiteStore(Store):
    """
    SQLite-backed store.

    ``app_state`` is a key/value table holding the state document as JSON;
    ``items`` holds one JSON document per item, ordered by ``position``.
    A connection is opened per operation and committed on success.
    """

    def __init__(self, db_path: str | Path, **kwargs):
        super().__init__(**kwargs)
        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._get_conn() as conn:
            conn.executescript(SCHEMA)
        logger.debug("SQLiteStore ready, DB path: %s", self.db_path)

    @contextmanager
    def _get_conn(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _read_state(self) -> dict | None:
        with self._get_conn() as conn:
            row = conn.execute("SELECT value FROM app_state WHERE key = ?", [STATE_KEY]).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            logger.warning("Stored app state is not valid JSON, using defaults")
            return None

    @staticmethod
    def _put_state(conn, data: dict) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO app_state (key, value, updated_at) "
            "VALUES (?, ?, datetime('now'))",
            [STATE_KEY, json.dumps(data)],
        )

    @staticmethod
    def _put_items(conn, data: list[dict]) -> None:
        conn.execute("DELETE FROM items")
        conn.executemany(
            "INSERT OR REPLACE INTO items (id, position, data) VALUES (?, ?, ?)",
            [(item["id"], position, json.dumps(item)) for position, item in enumerate(data)],
        )

    def _write_state(self, data: dict) -> None:
        with self._get_conn() as conn:
            self._put_state(conn, data)
        logger.debug("Saved app state")

    def _read_items(self) -> list[dict]:
        with self._get_conn() as conn:
            rows = conn.execute("SELECT id, data FROM items ORDER BY position").fetchall()
        items = []
        for row in rows:
            try:
                items.append(json.loads(row["data"]))
            except json.JSONDecodeError:
                logger.warning("Skipping unreadable item row %s", row["id"])
        return items

    def _write_items(self, data: list[dict]) -> None:
        with self._get_conn() as conn:
            self._put_items(conn, data)
        logger.debug("Saved %d items", len(data))

    def save(self, state: AppState, items: list[Item]) -> None:
        # One connection, one commit: a failed item write rolls back the state too.
        with self._get_conn() as conn:
            self._put_state(conn, state.to_dict())
            self._put_items(conn, [item.to_dict() for item in items])
        logger.debug("Saved app state and %d items", len(items))

    def clear(self) -> None:
        with self._get_conn() as conn:
            conn.execute("DELETE FROM app_state")
            conn.execute("DELETE FROM items")
        logger.info("Cleared all stored data in %s", self.db_path)

    def clear_items(self) -> None:
        with self._get_conn() as conn:
            conn.execute("DELETE FROM items")
        logger.info("Cleared stored items in %s", self.db_path)
