"""SQLite-backed audit trail store with WAL mode and indexed queries.

Provides functions to initialize the audit table, insert entries, and query the
trail with flexible filtering.  Uses parameterized queries exclusively.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from dealroom.audit.models import AuditEntry


def init_audit_db(db_path: Path | str) -> sqlite3.Connection:
    """Open the audit database and make sure its table exists.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        An open sqlite3.Connection with WAL mode enabled.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    if str(db_path) != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL")
    init_audit_table(conn)
    return conn


def init_audit_table(conn: sqlite3.Connection) -> None:
    """Create the audit_log table and indexes on an existing connection."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            event_type TEXT NOT NULL,
            negotiation_id TEXT,
            property_id TEXT,
            actor_id TEXT,
            negotiation_status TEXT,
            offer_id TEXT,
            amount TEXT,
            message_type TEXT,
            metadata TEXT
        )
    """)

    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_audit_negotiation ON audit_log (negotiation_id)"
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_property ON audit_log (property_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_actor ON audit_log (actor_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp)")

    conn.commit()


def insert_audit_entry(conn: sqlite3.Connection, entry: AuditEntry) -> int:
    """Insert an audit entry into the database.

    Serializes the metadata dict to a JSON string if present.

    Args:
        conn: An open database connection.
        entry: The audit entry to insert.

    Returns:
        The row ID of the inserted entry.
    """
    metadata_json: str | None = None
    if entry.metadata is not None:
        metadata_json = json.dumps(entry.metadata)

    timestamp = datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")

    cursor = conn.execute(
        """
        INSERT INTO audit_log (
            timestamp, event_type, negotiation_id, property_id, actor_id,
            negotiation_status, offer_id, amount, message_type, metadata
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            timestamp,
            entry.event_type.value,
            entry.negotiation_id,
            entry.property_id,
            entry.actor_id,
            entry.negotiation_status,
            entry.offer_id,
            entry.amount,
            entry.message_type,
            metadata_json,
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0


def query_audit_trail(
    conn: sqlite3.Connection,
    *,
    negotiation_id: str | None = None,
    property_id: str | None = None,
    actor_id: str | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
    event_type: str | None = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Query the audit trail with flexible filtering.

    All filters are optional.  Results are ordered newest first.

    Args:
        conn: An open database connection.
        negotiation_id: Filter by negotiation (exact match).
        property_id: Filter by property (exact match).
        actor_id: Filter by acting user (exact match).
        from_date: Filter entries on or after this ISO 8601 date.
        to_date: Filter entries on or before this ISO 8601 date.
        event_type: Filter by event type (exact match).
        limit: Maximum number of results to return (default 50).

    Returns:
        A list of dicts, one per matching audit entry.
    """
    conditions: list[str] = []
    params: list[str | int] = []

    for column, value in (
        ("negotiation_id", negotiation_id),
        ("property_id", property_id),
        ("actor_id", actor_id),
        ("event_type", event_type),
    ):
        if value is not None:
            conditions.append(f"{column} = ?")
            params.append(value)

    if from_date is not None:
        conditions.append("timestamp >= ?")
        params.append(from_date)

    if to_date is not None:
        conditions.append("timestamp <= ?")
        params.append(to_date)

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)

    query = f"SELECT * FROM audit_log {where_clause} ORDER BY timestamp DESC, id DESC LIMIT ?"
    params.append(limit)

    cursor = conn.execute(query, params)
    columns = [d[0] for d in cursor.description]
    rows = cursor.fetchall()

    results: list[dict[str, Any]] = []
    for row in rows:
        row_dict = dict(zip(columns, row, strict=True))
        if row_dict.get("metadata") is not None:
            row_dict["metadata"] = json.loads(row_dict["metadata"])
        results.append(row_dict)

    return results


def close_audit_db(conn: sqlite3.Connection) -> None:
    """Close the audit database connection."""
    conn.close()
