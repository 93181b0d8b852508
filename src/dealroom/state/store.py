"""SQLite-backed negotiation store with optimistic versioning.

Accepts a sqlite3.Connection, uses parameterized queries exclusively, and
commits synchronously after every write.  Each row holds a whole negotiation
document; an update only succeeds if the row still carries the version the
writer loaded, so two writers cannot silently overwrite each other's appends.
"""

from __future__ import annotations

import sqlite3
import threading
from typing import Any

from dealroom.domain.errors import (
    ConcurrentModificationError,
    DuplicateActiveNegotiationError,
    NegotiationNotFoundError,
)
from dealroom.domain.models import Negotiation
from dealroom.domain.types import OPEN_STATUSES, NegotiationStatus, ParticipantRole
from dealroom.state.serializers import (
    deserialize_negotiation,
    format_timestamp,
    serialize_negotiation,
)

_OPEN_VALUES = sorted(s.value for s in OPEN_STATUSES)

# Largest value SQLite accepts for LIMIT and OFFSET.
MAX_SQLITE_INTEGER = 2**63 - 1


class NegotiationStore:
    """Persist and retrieve negotiation documents in SQLite."""

    def __init__(
        self, conn: sqlite3.Connection, *, lock: threading.RLock | None = None
    ) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  ``negotiations`` table (see ``init_negotiation_table``).
            lock: Lock serializing use of *conn*.  Every object sharing the
                  connection must share this lock; a fresh one is made if omitted.
        """
        self._conn = conn
        self._lock = lock if lock is not None else threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """The lock guarding this store's connection."""
        return self._lock

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def insert(self, negotiation: Negotiation) -> None:
        """Insert a new negotiation.

        Raises:
            DuplicateActiveNegotiationError: If the buyer already has an open
                negotiation on the property (enforced by a unique index).
        """
        with self._lock:
            try:
                self._conn.execute(
                    """
                    INSERT INTO negotiations (
                        id, property_id, buyer_id, seller_id, buyer_agent_id,
                        seller_agent_id, status, last_activity, version,
                        document_json, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        negotiation.id,
                        negotiation.property_id,
                        negotiation.buyer,
                        negotiation.seller,
                        negotiation.buyer_agent,
                        negotiation.seller_agent,
                        negotiation.status.value,
                        format_timestamp(negotiation.metadata.last_activity),
                        negotiation.version,
                        serialize_negotiation(negotiation),
                        format_timestamp(negotiation.created_at),
                        format_timestamp(negotiation.updated_at),
                    ),
                )
                self._conn.commit()
            except sqlite3.IntegrityError:
                self._conn.rollback()
                existing = self.find_open(negotiation.property_id, negotiation.buyer)
                if existing is None:
                    raise
                raise DuplicateActiveNegotiationError(
                    negotiation.property_id, negotiation.buyer, existing.id
                ) from None

    def save(self, negotiation: Negotiation) -> int:
        """Write back a modified negotiation if nobody else did first.

        On success the record's ``version`` is bumped in place.

        Args:
            negotiation: A record previously returned by :meth:`get`, mutated
                         since.

        Returns:
            The new version number.

        Raises:
            ConcurrentModificationError: If the stored version no longer
                matches ``negotiation.version``.
            NegotiationNotFoundError: If the row has been deleted.
        """
        expected = negotiation.version
        updated = negotiation.model_copy(update={"version": expected + 1})
        with self._lock:
            cursor = self._conn.execute(
                """
                UPDATE negotiations SET
                    seller_id = ?, buyer_agent_id = ?, seller_agent_id = ?,
                    status = ?, last_activity = ?, version = ?,
                    document_json = ?, updated_at = ?
                WHERE id = ? AND version = ?
                """,
                (
                    updated.seller,
                    updated.buyer_agent,
                    updated.seller_agent,
                    updated.status.value,
                    format_timestamp(updated.metadata.last_activity),
                    updated.version,
                    serialize_negotiation(updated),
                    format_timestamp(updated.updated_at),
                    negotiation.id,
                    expected,
                ),
            )
            self._conn.commit()
            if cursor.rowcount == 0:
                if self._exists(negotiation.id):
                    raise ConcurrentModificationError(negotiation.id, expected)
                raise NegotiationNotFoundError(negotiation.id)

        negotiation.version = updated.version
        return updated.version

    def delete(self, negotiation_id: str) -> None:
        """Delete a negotiation row by id."""
        with self._lock:
            self._conn.execute("DELETE FROM negotiations WHERE id = ?", (negotiation_id,))
            self._conn.commit()

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get(self, negotiation_id: str) -> Negotiation:
        """Load a negotiation by id.

        Raises:
            NegotiationNotFoundError: If no row exists.
        """
        with self._lock:
            row = self._conn.execute(
                "SELECT document_json FROM negotiations WHERE id = ?",
                (negotiation_id,),
            ).fetchone()
        if row is None:
            raise NegotiationNotFoundError(negotiation_id)
        return deserialize_negotiation(row[0])

    def find_open(self, property_id: str, buyer_id: str) -> Negotiation | None:
        """Return the buyer's active or pending-acceptance negotiation on a property."""
        placeholders = ", ".join("?" for _ in _OPEN_VALUES)
        with self._lock:
            row = self._conn.execute(
                f"""
                SELECT document_json FROM negotiations
                WHERE property_id = ? AND buyer_id = ? AND status IN ({placeholders})
                LIMIT 1
                """,
                (property_id, buyer_id, *_OPEN_VALUES),
            ).fetchone()
        return deserialize_negotiation(row[0]) if row else None

    def list_for_participant(
        self,
        actor_id: str,
        *,
        status: NegotiationStatus | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Negotiation], int]:
        """List negotiations where *actor_id* holds any seat, newest activity first.

        Args:
            actor_id: Buyer, seller, or agent id.
            status: Only return negotiations in this status.
            page: 1-based page number.
            limit: Page size.

        Returns:
            A ``(negotiations, total)`` tuple where *total* counts every
            matching row, not just this page.
        """
        conditions = [
            "(buyer_id = ? OR seller_id = ? OR buyer_agent_id = ? OR seller_agent_id = ?)"
        ]
        params: list[Any] = [actor_id] * len(ParticipantRole)
        if status is not None:
            conditions.append("status = ?")
            params.append(status.value)
        where_clause = "WHERE " + " AND ".join(conditions)

        with self._lock:
            total = self._conn.execute(
                f"SELECT COUNT(*) FROM negotiations {where_clause}", params
            ).fetchone()[0]
            rows = self._conn.execute(
                f"""
                SELECT document_json FROM negotiations {where_clause}
                ORDER BY last_activity DESC, id
                LIMIT ? OFFSET ?
                """,
                [*params, limit, (page - 1) * limit],
            ).fetchall()

        return [deserialize_negotiation(row[0]) for row in rows], total

    def count_open(self) -> int:
        """Count negotiations that are active or pending acceptance."""
        placeholders = ", ".join("?" for _ in _OPEN_VALUES)
        with self._lock:
            row = self._conn.execute(
                f"SELECT COUNT(*) FROM negotiations WHERE status IN ({placeholders})",
                _OPEN_VALUES,
            ).fetchone()
        return int(row[0])

    def _exists(self, negotiation_id: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM negotiations WHERE id = ?", (negotiation_id,)
        ).fetchone()
        return row is not None
