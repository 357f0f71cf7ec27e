"""SQLite schema creation and migration for topic-watch."""

import sqlite3

from loguru import logger

from topic_watch.core.store.thread_items import fix_trailing_separator_ids

SCHEMA_VERSION = 2

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS subscriptions (
    user TEXT NOT NULL,
    item TEXT NOT NULL,
    page_title TEXT NOT NULL,
    section TEXT NOT NULL DEFAULT '',
    state INTEGER NOT NULL DEFAULT 1,
    created INTEGER,
    notified INTEGER,
    PRIMARY KEY (user, item)
);

CREATE INDEX IF NOT EXISTS idx_subscriptions_item ON subscriptions(item, state);

CREATE TABLE IF NOT EXISTS item_ids (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    itemid TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    itemname TEXT NOT NULL UNIQUE,
    timestamp TEXT,
    author TEXT
);

CREATE TABLE IF NOT EXISTS item_revisions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    itemid_id INTEGER NOT NULL,
    items_id INTEGER NOT NULL,
    revision_id INTEGER NOT NULL,
    page_title TEXT NOT NULL,
    type TEXT NOT NULL,
    parent_id INTEGER,
    heading_level INTEGER,
    UNIQUE (itemid_id, revision_id),
    FOREIGN KEY (itemid_id) REFERENCES item_ids(id),
    FOREIGN KEY (items_id) REFERENCES items(id)
);

CREATE INDEX IF NOT EXISTS idx_item_revisions_items ON item_revisions(items_id, revision_id);

CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

# Update key recorded once persisted ids with a trailing separator were repaired.
FIX_IDS_UPDATE_KEY = "fix_trailing_separator_ids"


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes."""
    conn.executescript(_SCHEMA_SQL)
    set_metadata(conn, "schema_version", str(SCHEMA_VERSION))
    # A fresh database never held ids in the old format.
    set_metadata(conn, FIX_IDS_UPDATE_KEY, "done")


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """Return the current schema version, or None if metadata table doesn't exist."""
    try:
        row = conn.execute(
            "SELECT value FROM metadata WHERE key = 'schema_version'"
        ).fetchone()
    except sqlite3.OperationalError:
        return None
    return int(row[0]) if row else None


def get_metadata(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
    return row[0] if row else None


def set_metadata(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
        (key, value),
    )
    conn.commit()


def migrate_schema(conn: sqlite3.Connection) -> None:
    """Create or migrate the database schema to the latest version.

    Version 2 repairs thread item ids persisted with a trailing separator.
    """
    version = get_schema_version(conn)
    if version is None:
        create_schema(conn)
        return

    if version < 2:
        conn.executescript(_SCHEMA_SQL)
        if get_metadata(conn, FIX_IDS_UPDATE_KEY) is None:
            fixed = fix_trailing_separator_ids(conn)
            logger.info("Repaired {} thread item ids with a trailing separator", fixed)
            set_metadata(conn, FIX_IDS_UPDATE_KEY, "done")
        set_metadata(conn, "schema_version", str(SCHEMA_VERSION))
