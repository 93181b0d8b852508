"""Property catalog: existence checks and default sellers for new negotiations."""

from __future__ import annotations

import sqlite3
import threading

from pydantic import BaseModel, ConfigDict, field_validator


class PropertyRef(BaseModel):
    """The slice of a property listing the negotiation service needs."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    owner_id: str | None = None
    listing_agent_id: str | None = None

    @field_validator("id")
    @classmethod
    def id_must_not_be_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("property id must not be empty")
        return v

    @property
    def default_seller(self) -> str | None:
        """Seller to seat when the buyer names none: the owner, else the listing agent."""
        return self.owner_id or self.listing_agent_id


class PropertyCatalog:
    """SQLite-backed lookup of properties (see ``init_property_table``)."""

    def __init__(
        self, conn: sqlite3.Connection, *, lock: threading.RLock | None = None
    ) -> None:
        # pass the store's lock when both use one connection
        self._conn = conn
        self._lock = lock if lock is not None else threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def get(self, property_id: str) -> PropertyRef | None:
        """Return the property, or ``None`` if it is not listed."""
        with self._lock:
            row = self._conn.execute(
                "SELECT id, title, owner_id, listing_agent_id FROM properties WHERE id = ?",
                (property_id,),
            ).fetchone()
        if row is None:
            return None
        return PropertyRef(id=row[0], title=row[1], owner_id=row[2], listing_agent_id=row[3])

    def register(self, prop: PropertyRef) -> None:
        """Insert or update a property."""
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO properties (id, title, owner_id, listing_agent_id)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    owner_id = excluded.owner_id,
                    listing_agent_id = excluded.listing_agent_id
                """,
                (prop.id, prop.title, prop.owner_id, prop.listing_agent_id),
            )
            self._conn.commit()

    def list_all(self) -> list[PropertyRef]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, title, owner_id, listing_agent_id FROM properties ORDER BY id"
            ).fetchall()
        return [
            PropertyRef(id=r[0], title=r[1], owner_id=r[2], listing_agent_id=r[3]) for r in rows
        ]
