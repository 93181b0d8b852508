"""Tests for the audit trail SQLite store."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from pathlib import Path

import pytest

from dealroom.audit.models import AuditEntry, EventType
from dealroom.audit.store import (
    close_audit_db,
    init_audit_db,
    insert_audit_entry,
    query_audit_trail,
)


@pytest.fixture
def audit_conn() -> Iterator[sqlite3.Connection]:
    conn = init_audit_db(":memory:")
    yield conn
    close_audit_db(conn)


def _entry(**overrides: object) -> AuditEntry:
    fields: dict[str, object] = {
        "event_type": EventType.OFFER_SUBMITTED,
        "negotiation_id": "n-1",
        "property_id": "prop-1",
        "actor_id": "u-buyer",
        "negotiation_status": "active",
        "offer_id": "o-1",
        "amount": "400000",
    }
    fields.update(overrides)
    return AuditEntry(**fields)  # type: ignore[arg-type]


class TestInitAuditDb:
    def test_creates_table_and_indexes(self, audit_conn: sqlite3.Connection) -> None:
        names = {
            row[0]
            for row in audit_conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'")
        }
        assert {"idx_audit_negotiation", "idx_audit_property", "idx_audit_actor"} <= names

    def test_file_database_uses_wal(self, tmp_path: Path) -> None:
        conn = init_audit_db(tmp_path / "audit.db")
        mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        close_audit_db(conn)
        assert mode == "wal"

    def test_reopen_keeps_rows(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.db"
        conn = init_audit_db(path)
        insert_audit_entry(conn, _entry())
        close_audit_db(conn)

        conn = init_audit_db(path)
        assert len(query_audit_trail(conn)) == 1
        close_audit_db(conn)


class TestInsertAndQuery:
    def test_insert_returns_row_id(self, audit_conn: sqlite3.Connection) -> None:
        first = insert_audit_entry(audit_conn, _entry())
        second = insert_audit_entry(audit_conn, _entry())
        assert second == first + 1

    def test_metadata_round_trip(self, audit_conn: sqlite3.Connection) -> None:
        insert_audit_entry(audit_conn, _entry(metadata={"action": "accept"}))
        [row] = query_audit_trail(audit_conn)
        assert row["metadata"] == {"action": "accept"}

    def test_filters(self, audit_conn: sqlite3.Connection) -> None:
        insert_audit_entry(audit_conn, _entry())
        insert_audit_entry(audit_conn, _entry(negotiation_id="n-2", property_id="prop-2"))
        insert_audit_entry(
            audit_conn, _entry(event_type=EventType.MESSAGE_SENT, actor_id="u-seller")
        )

        assert len(query_audit_trail(audit_conn, negotiation_id="n-1")) == 2
        assert len(query_audit_trail(audit_conn, property_id="prop-2")) == 1
        assert len(query_audit_trail(audit_conn, actor_id="u-seller")) == 1
        assert len(query_audit_trail(audit_conn, event_type="message_sent")) == 1
        assert len(query_audit_trail(audit_conn, negotiation_id="n-1", actor_id="u-buyer")) == 1

    def test_newest_first_and_limit(self, audit_conn: sqlite3.Connection) -> None:
        for n in range(5):
            insert_audit_entry(audit_conn, _entry(offer_id=f"o-{n}"))
        results = query_audit_trail(audit_conn, limit=3)
        assert [r["offer_id"] for r in results] == ["o-4", "o-3", "o-2"]

    def test_date_range(self, audit_conn: sqlite3.Connection) -> None:
        insert_audit_entry(audit_conn, _entry())
        assert query_audit_trail(audit_conn, from_date="2999-01-01") == []
        assert query_audit_trail(audit_conn, to_date="2000-01-01") == []
        assert len(query_audit_trail(audit_conn, from_date="2000-01-01")) == 1
