"""
Durable cache of fetched resources and label configuration.

The store is a thin key/value layer over SQLite with no business logic.
It lets the UI render the last known state immediately at startup, before
the first network round trip completes.

Usage:
    from ghui.core.cache import CacheStore

    store = CacheStore(Path("~/.cache/ghui/cache.db").expanduser())
    store.put("PRs:owner/repo:MyPRs", [...], generation=3)
    entry = store.get("PRs:owner/repo:MyPRs")
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ghui.core.cache.models import CacheEntry, LabelFilter
from ghui.core.cache.schema import create_schema, needs_migration
from ghui.core.errors import CacheError

logger = logging.getLogger(__name__)


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Row factory that returns rows as dictionaries."""
    fields = [column[0] for column in cursor.description]
    return dict(zip(fields, row))


class CacheStore:
    """
    SQLite-backed cache store.

    Each operation opens its own connection, so the store may be used from
    any worker thread. Writes are serialized with a lock; the engine is the
    only writer.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        self._initialized = False

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), timeout=5.0)
        except (OSError, sqlite3.Error) as e:
            raise CacheError(f"Cannot open cache at {self.db_path}: {e}") from e

        conn.row_factory = dict_factory
        try:
            if not self._initialized:
                conn.execute("PRAGMA journal_mode=WAL")
                if needs_migration(conn):
                    logger.info("Creating cache schema at %s", self.db_path)
                    create_schema(conn)
                self._initialized = True
            yield conn
        except sqlite3.Error as e:
            conn.rollback()
            raise CacheError(f"Cache operation failed: {e}") from e
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Resource entries
    # ------------------------------------------------------------------

    def get(self, key: str) -> CacheEntry | None:
        """
        Read the cached entry for a resource key.

        Args:
            key: Resource key string

        Returns:
            CacheEntry, or None when nothing is cached or the payload is unreadable
        """
        with self._connect() as conn:
            row = conn.execute(
                "SELECT key, payload, fetched_at, generation FROM cache_entries WHERE key = ?",
                (key,),
            ).fetchone()

        if row is None:
            return None

        try:
            payload = json.loads(row["payload"])
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable cache entry %s", key)
            return None

        return CacheEntry(
            key=row["key"],
            payload=payload,
            fetched_at=float(row["fetched_at"]),
            generation=int(row["generation"]),
        )

    def put(
        self,
        key: str,
        payload: Any,
        generation: int,
        fetched_at: float | None = None,
    ) -> None:
        """
        Write a payload for a resource key.

        An existing entry is replaced only by the same or a newer generation,
        so the store always holds the highest completed generation.

        Args:
            key: Resource key string
            payload: JSON-serializable payload
            generation: Generation of the fetch that produced the payload
            fetched_at: Fetch timestamp (defaults to now)
        """
        if fetched_at is None:
            fetched_at = time.time()
        encoded = json.dumps(payload)

        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO cache_entries (key, payload, fetched_at, generation)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    payload = excluded.payload,
                    fetched_at = excluded.fetched_at,
                    generation = excluded.generation
                WHERE excluded.generation >= cache_entries.generation
                """,
                (key, encoded, fetched_at, generation),
            )
            conn.commit()
        logger.debug("Cached %s (generation %d)", key, generation)

    def clear_all(self, include_labels: bool = False) -> None:
        """
        Remove cached resources.

        Safe to call on an empty or missing database.

        Args:
            include_labels: Also remove label configuration (full reset)
        """
        with self._lock, self._connect() as conn:
            conn.execute("DELETE FROM cache_entries")
            if include_labels:
                conn.execute("DELETE FROM label_filters")
            conn.commit()
        logger.info("Cleared cache (labels included: %s)", include_labels)

    # ------------------------------------------------------------------
    # Label configuration
    # ------------------------------------------------------------------

    def list_labels(self, owner: str | None, repo: str | None) -> list[LabelFilter]:
        """
        List labels that apply to a repository.

        Repo-scoped labels come first, then global ones; each group sorted by name.
        """
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, label_name, repo_owner, repo_name FROM label_filters
                WHERE (repo_owner = ? AND repo_name = ?)
                   OR (repo_owner IS NULL AND repo_name IS NULL)
                ORDER BY (repo_owner IS NULL), label_name
                """,
                (owner, repo),
            ).fetchall()

        return [
            LabelFilter(
                id=row["id"],
                label_name=row["label_name"],
                repo_owner=row["repo_owner"],
                repo_name=row["repo_name"],
            )
            for row in rows
        ]

    def add_label(
        self,
        label_name: str,
        owner: str | None = None,
        repo: str | None = None,
    ) -> bool:
        """
        Add a label filter.

        Args:
            label_name: Label to filter on
            owner: Repository owner, or None for a global label
            repo: Repository name, or None for a global label

        Returns:
            True if added, False if the same label already existed in that scope
        """
        label_name = label_name.strip()
        if not label_name:
            return False

        with self._lock, self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO label_filters (label_name, repo_owner, repo_name)
                VALUES (?, ?, ?)
                """,
                (label_name, owner, repo),
            )
            conn.commit()
            return cursor.rowcount > 0

    def delete_label(self, label_id: int) -> None:
        """Delete a label filter by id."""
        with self._lock, self._connect() as conn:
            conn.execute("DELETE FROM label_filters WHERE id = ?", (label_id,))
            conn.commit()
