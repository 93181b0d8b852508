"""SQLite schema for negotiations and the property catalog.

Follows the same pattern as ``init_audit_db()`` in :mod:`dealroom.audit.store`:
plain DDL executed on an open connection, idempotent via ``IF NOT EXISTS``.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path


def open_database(db_path: Path | str) -> sqlite3.Connection:
    """Open a SQLite connection shared across request threads.

    Enables WAL mode for file databases.  ``check_same_thread`` is disabled
    because the HTTP layer runs blocking store calls in a worker thread pool;
    callers serialize access through the store's own lock.

    Args:
        db_path: Path to the database file, or ``":memory:"``.

    Returns:
        An open sqlite3.Connection.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    if str(db_path) != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute("PRAGMA busy_timeout=5000")
    return conn


def init_negotiation_table(conn: sqlite3.Connection) -> None:
    """Create the negotiations table and its indexes if they do not exist.

    The full aggregate lives in ``document_json``; the participant, status,
    and activity columns are copies kept for indexed queries.  The partial
    unique index enforces at most one open negotiation per (property, buyer)
    even when two creations race.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS negotiations (
            id TEXT PRIMARY KEY,
            property_id TEXT NOT NULL,
            buyer_id TEXT NOT NULL,
            seller_id TEXT,
            buyer_agent_id TEXT,
            seller_agent_id TEXT,
            status TEXT NOT NULL,
            last_activity TEXT NOT NULL,
            version INTEGER NOT NULL DEFAULT 0,
            document_json TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_neg_property ON negotiations (property_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_neg_buyer ON negotiations (buyer_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_neg_seller ON negotiations (seller_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_neg_buyer_agent ON negotiations (buyer_agent_id)")
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_neg_seller_agent ON negotiations (seller_agent_id)"
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_neg_status ON negotiations (status)")
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_neg_last_activity ON negotiations (last_activity DESC)"
    )
    conn.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_neg_open_property_buyer
        ON negotiations (property_id, buyer_id)
        WHERE status IN ('active', 'pending-acceptance')
    """)

    conn.commit()


def init_property_table(conn: sqlite3.Connection) -> None:
    """Create the properties table used by the property catalog.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS properties (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL DEFAULT '',
            owner_id TEXT,
            listing_agent_id TEXT,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
        )
    """)

    conn.commit()
