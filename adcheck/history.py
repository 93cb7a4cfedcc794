"""
Check history for AdCheck.

Two backends share one interface (append / items / get / len):

MemoryHistory  — session-only log, lost on restart (default)
SqliteHistory  — durable log in a SQLite file

Both keep items newest first and never modify an item once stored.

SQLite schema
─────────────
table: checks
  seq           INTEGER PRIMARY KEY AUTOINCREMENT  (append order)
  id            TEXT NOT NULL UNIQUE
  platform_name TEXT NOT NULL
  query         TEXT NOT NULL
  created_at    TEXT NOT NULL  (ISO-8601 UTC)
  result        TEXT NOT NULL  (ValidationResult serialised as JSON)
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections import deque
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from adcheck.models import HistoryItem, ValidationResult

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "history.db"


class MemoryHistory:
    """Newest-first in-process log.

    Args:
        max_entries: Keep at most this many items, dropping the oldest.
            0 means unbounded.
    """

    def __init__(self, max_entries: int = 0) -> None:
        self._items: deque[HistoryItem] = deque(maxlen=max_entries or None)
        self._lock = threading.Lock()

    def append(self, item: HistoryItem) -> None:
        with self._lock:
            self._items.appendleft(item)
        logger.info("Recorded history item id=%s", item.id)

    def items(self, limit: Optional[int] = None) -> list[HistoryItem]:
        with self._lock:
            items = list(self._items)
        return items[:limit] if limit is not None else items

    def get(self, item_id: str) -> Optional[HistoryItem]:
        with self._lock:
            for item in self._items:
                if item.id == item_id:
                    return item
        return None

    def __len__(self) -> int:
        return len(self._items)


class SqliteHistory:
    """Newest-first log persisted to a SQLite file."""

    def __init__(self, db_path: Union[str, Path] = DEFAULT_DB_PATH, max_entries: int = 0) -> None:
        self.db_path = Path(db_path)
        self.max_entries = max_entries
        self.init_db()

    @contextmanager
    def _connect(self):
        """Yield a connected sqlite3.Connection, creating the file/dir if needed."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create the checks table if it doesn't exist yet."""
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS checks (
                    seq           INTEGER PRIMARY KEY AUTOINCREMENT,
                    id            TEXT NOT NULL UNIQUE,
                    platform_name TEXT NOT NULL,
                    query         TEXT NOT NULL,
                    created_at    TEXT NOT NULL,
                    result        TEXT NOT NULL
                )
                """
            )
        logger.info("History DB initialised at %s", self.db_path)

    def append(self, item: HistoryItem) -> None:
        """Persist *item* as the newest entry, pruning beyond ``max_entries``."""
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO checks (id, platform_name, query, created_at, result) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    item.id,
                    item.platform_name,
                    item.query,
                    item.created_at.isoformat(),
                    item.result.model_dump_json(),
                ),
            )
            if self.max_entries:
                conn.execute(
                    "DELETE FROM checks WHERE seq NOT IN "
                    "(SELECT seq FROM checks ORDER BY seq DESC LIMIT ?)",
                    (self.max_entries,),
                )
        logger.info("Saved history item id=%s platform=%r", item.id, item.platform_name)

    @staticmethod
    def _to_item(row: sqlite3.Row) -> HistoryItem:
        return HistoryItem(
            id=row["id"],
            platform_name=row["platform_name"],
            query=row["query"],
            created_at=datetime.fromisoformat(row["created_at"]),
            result=ValidationResult.model_validate_json(row["result"]),
        )

    def items(self, limit: Optional[int] = None) -> list[HistoryItem]:
        """Return stored items, newest first."""
        sql = "SELECT id, platform_name, query, created_at, result FROM checks ORDER BY seq DESC"
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)

        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()

        items: list[HistoryItem] = []
        for row in rows:
            try:
                items.append(self._to_item(row))
            except Exception as exc:
                logger.warning("Skipping corrupt history entry id=%s: %s", row["id"], exc)
        return items

    def get(self, item_id: str) -> Optional[HistoryItem]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, platform_name, query, created_at, result FROM checks WHERE id = ?",
                (item_id,),
            ).fetchone()
        if row is None:
            return None
        try:
            return self._to_item(row)
        except Exception as exc:
            logger.warning("Skipping corrupt history entry id=%s: %s", item_id, exc)
            return None

    def __len__(self) -> int:
        with self._connect() as conn:
            (count,) = conn.execute("SELECT COUNT(*) FROM checks").fetchone()
        return count


def open_history(settings: Settings) -> Union[MemoryHistory, SqliteHistory]:
    """Build the history backend selected by ``settings.history_backend``."""
    if settings.history_backend == "sqlite":
        return SqliteHistory(
            settings.db_path or DEFAULT_DB_PATH,
            max_entries=settings.history_max_entries,
        )
    if settings.history_backend == "memory":
        return MemoryHistory(max_entries=settings.history_max_entries)
    raise ValueError(f"Unknown history backend: {settings.history_backend!r}")
