"""
SQLite schema for the ghui cache database.

Schema Design:
- cache_entries: One row per resource key (latest successful fetch)
- label_filters: Labels configured for the Labels tab (repo-scoped or global)
- schema_info: Version tracking for migrations

Cached payloads are disposable: when the schema version changes the
cache_entries table is rebuilt. Label filters are user configuration and
survive version bumps.
"""

import sqlite3

# Schema version for migrations
SCHEMA_VERSION = 1

SCHEMA_DDL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_info (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    description TEXT
);

-- Latest successful payload per resource key
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    fetched_at REAL NOT NULL,
    generation INTEGER NOT NULL
);

-- Labels shown in the Labels tab
CREATE TABLE IF NOT EXISTS label_filters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    label_name TEXT NOT NULL,
    repo_owner TEXT,
    repo_name TEXT
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_label_filters_unique
    ON label_filters(label_name, IFNULL(repo_owner, ''), IFNULL(repo_name, ''));
"""


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """
    Get the current schema version from the database.

    Args:
        conn: SQLite connection

    Returns:
        Schema version number, or None if schema_info doesn't exist
    """
    try:
        row = conn.execute("SELECT MAX(version) AS version FROM schema_info").fetchone()
    except sqlite3.OperationalError:
        return None
    if row is None:
        return None
    version = row["version"] if isinstance(row, dict) else row[0]
    return int(version) if version is not None else None


def needs_migration(conn: sqlite3.Connection) -> bool:
    """Check whether the schema is missing or out of date."""
    return get_schema_version(conn) != SCHEMA_VERSION


def create_schema(conn: sqlite3.Connection) -> None:
    """
    Create or upgrade the schema.

    An outdated cache_entries table is dropped because old payloads may not
    parse with the current models. label_filters is kept.

    Args:
        conn: SQLite connection
    """
    current = get_schema_version(conn)
    if current is not None and current != SCHEMA_VERSION:
        conn.execute("DROP TABLE IF EXISTS cache_entries")
        conn.execute("DELETE FROM schema_info")

    conn.executescript(SCHEMA_DDL)
    conn.execute(
        "INSERT OR REPLACE INTO schema_info (version, description) VALUES (?, ?)",
        (SCHEMA_VERSION, "ghui cache schema"),
    )
    conn.commit()
