"""Convenience class for inserting audit trail entries.

Each method creates a properly structured :class:`AuditEntry` and inserts it
via :func:`insert_audit_entry`.
"""

from __future__ import annotations

import sqlite3
import threading

from dealroom.audit.models import AuditEntry, EventType
from dealroom.audit.store import insert_audit_entry


class AuditLogger:
    """Typed convenience API for inserting audit entries.

    Args:
        conn: An open SQLite connection to the audit database.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()

    def _insert(self, entry: AuditEntry) -> int:
        with self._lock:
            return insert_audit_entry(self._conn, entry)

    def log_negotiation_created(
        self,
        negotiation_id: str,
        property_id: str,
        buyer_id: str,
        participants: list[str],
    ) -> int:
        """Log the start of a negotiation.

        Args:
            negotiation_id: The new negotiation's id.
            property_id: The property under negotiation.
            buyer_id: The buyer who started it.
            participants: Every participant id in seat order.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.NEGOTIATION_CREATED,
            negotiation_id=negotiation_id,
            property_id=property_id,
            actor_id=buyer_id,
            negotiation_status="active",
            metadata={"participants": ",".join(participants)},
        )
        return self._insert(entry)

    def log_offer_submitted(
        self,
        negotiation_id: str,
        property_id: str | None,
        actor_id: str,
        offer_id: str,
        amount: str,
        negotiation_status: str,
        expires_at: str | None = None,
    ) -> int:
        """Log a new offer from the buying side.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.OFFER_SUBMITTED,
            negotiation_id=negotiation_id,
            property_id=property_id,
            actor_id=actor_id,
            negotiation_status=negotiation_status,
            offer_id=offer_id,
            amount=amount,
            metadata={"expires_at": expires_at} if expires_at else None,
        )
        return self._insert(entry)

    def log_offer_response(
        self,
        negotiation_id: str,
        property_id: str | None,
        actor_id: str,
        offer_id: str,
        action: str,
        amount: str,
        negotiation_status: str,
        counter_offer_id: str | None = None,
        counter_amount: str | None = None,
    ) -> int:
        """Log an accept, reject, or counter from the selling side.

        Counter details go to metadata.

        Returns:
            The row ID of the inserted audit entry.
        """
        meta: dict[str, str] = {"action": action}
        if counter_offer_id is not None:
            meta["counter_offer_id"] = counter_offer_id
        if counter_amount is not None:
            meta["counter_amount"] = counter_amount

        entry = AuditEntry(
            event_type=EventType.OFFER_RESPONDED,
            negotiation_id=negotiation_id,
            property_id=property_id,
            actor_id=actor_id,
            negotiation_status=negotiation_status,
            offer_id=offer_id,
            amount=amount,
            metadata=meta,
        )
        return self._insert(entry)

    def log_offer_withdrawn(
        self,
        negotiation_id: str,
        property_id: str | None,
        actor_id: str,
        offer_id: str,
        amount: str,
    ) -> int:
        """Log an offer withdrawn by its submitter."""
        entry = AuditEntry(
            event_type=EventType.OFFER_WITHDRAWN,
            negotiation_id=negotiation_id,
            property_id=property_id,
            actor_id=actor_id,
            offer_id=offer_id,
            amount=amount,
        )
        return self._insert(entry)

    def log_message_sent(
        self,
        negotiation_id: str,
        property_id: str | None,
        actor_id: str,
        recipient_id: str,
        message_type: str,
        related_offer: str | None = None,
    ) -> int:
        """Log a message appended to a negotiation thread.

        Message bodies are not copied into the audit trail.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.MESSAGE_SENT,
            negotiation_id=negotiation_id,
            property_id=property_id,
            actor_id=actor_id,
            offer_id=related_offer,
            message_type=message_type,
            metadata={"recipient": recipient_id},
        )
        return self._insert(entry)

    def log_status_change(
        self,
        negotiation_id: str,
        property_id: str | None,
        actor_id: str,
        from_status: str,
        to_status: str,
    ) -> int:
        """Log a direct status change.

        Stores from_status and to_status in metadata.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.STATUS_CHANGED,
            negotiation_id=negotiation_id,
            property_id=property_id,
            actor_id=actor_id,
            negotiation_status=to_status,
            metadata={"from_status": from_status, "to_status": to_status},
        )
        return self._insert(entry)

    def log_error(
        self,
        negotiation_id: str | None,
        actor_id: str | None,
        error_message: str,
        context: str | None = None,
    ) -> int:
        """Log an error encountered while processing a negotiation operation.

        Returns:
            The row ID of the inserted audit entry.
        """
        meta: dict[str, str] = {"error_message": error_message}
        if context is not None:
            meta["context"] = context

        entry = AuditEntry(
            event_type=EventType.ERROR,
            negotiation_id=negotiation_id,
            actor_id=actor_id,
            metadata=meta,
        )
        return self._insert(entry)
