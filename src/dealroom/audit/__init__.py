"""Audit trail: models, storage, logger, CLI, and event-bus wiring."""

from dealroom.audit.cli import build_parser
from dealroom.audit.logger import AuditLogger
from dealroom.audit.models import AuditEntry, EventType
from dealroom.audit.store import (
    close_audit_db,
    init_audit_db,
    init_audit_table,
    insert_audit_entry,
    query_audit_trail,
)
from dealroom.audit.wiring import create_audit_handler, wire_audit_to_event_bus

__all__ = [
    "AuditEntry",
    "AuditLogger",
    "EventType",
    "build_parser",
    "close_audit_db",
    "create_audit_handler",
    "init_audit_db",
    "init_audit_table",
    "insert_audit_entry",
    "query_audit_trail",
    "wire_audit_to_event_bus",
]
