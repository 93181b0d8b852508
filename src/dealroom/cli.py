"""Admin command-line tool for the negotiation database.

Usage::

    dealroom add-property prop-1 --title "12 Elm St" --owner u-seller
    dealroom show 3f2a...
    dealroom list --user u-buyer --status active
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from pathlib import Path

from dealroom.catalog import PropertyCatalog, PropertyRef
from dealroom.config import get_settings
from dealroom.domain.errors import NegotiationNotFoundError
from dealroom.domain.types import NegotiationStatus
from dealroom.state.schema import init_negotiation_table, init_property_table, open_database
from dealroom.state.serializers import negotiation_summary, negotiation_to_dict
from dealroom.state.store import MAX_SQLITE_INTEGER, NegotiationStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dealroom", description="Negotiation admin tool")
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Path to the negotiation database (default: DATABASE_PATH setting)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add-property", help="Register or update a property")
    add.add_argument("property_id")
    add.add_argument("--title", default="")
    add.add_argument("--owner", default=None, help="Owner user ID")
    add.add_argument("--listing-agent", default=None, help="Listing agent user ID")

    show = sub.add_parser("show", help="Print one negotiation as JSON")
    show.add_argument("negotiation_id")

    lst = sub.add_parser("list", help="List a user's negotiations")
    lst.add_argument("--user", required=True, help="Participant user ID")
    lst.add_argument(
        "--status",
        choices=[status.value for status in NegotiationStatus],
        default=None,
    )
    lst.add_argument("--page", type=int, default=1)
    lst.add_argument("--limit", type=int, default=10)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run one admin command.  Returns the process exit code."""
    args = build_parser().parse_args(argv)

    db_path = Path(args.db) if args.db else get_settings().database_path
    if str(db_path) != ":memory:":
        db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = open_database(db_path)
    try:
        init_negotiation_table(conn)
        init_property_table(conn)
        store = NegotiationStore(conn)

        if args.command == "add-property":
            prop = PropertyRef(
                id=args.property_id,
                title=args.title,
                owner_id=args.owner,
                listing_agent_id=args.listing_agent,
            )
            PropertyCatalog(conn, lock=store.lock).register(prop)
            print(f"Registered property {prop.id} (default seller: {prop.default_seller or '-'})")
            return 0

        if args.command == "show":
            try:
                negotiation = store.get(args.negotiation_id)
            except NegotiationNotFoundError as exc:
                print(str(exc), file=sys.stderr)
                return 1
            print(json.dumps(negotiation_to_dict(negotiation), indent=2))
            return 0

        status = NegotiationStatus(args.status) if args.status else None
        page, limit = max(args.page, 1), max(args.limit, 1)
        if (page - 1) * limit > MAX_SQLITE_INTEGER:
            print(f"page {page} is out of range", file=sys.stderr)
            return 1
        items, total = store.list_for_participant(args.user, status=status, page=page, limit=limit)
        print(
            json.dumps(
                {"total": total, "negotiations": [negotiation_summary(n) for n in items]},
                indent=2,
            )
        )
        return 0
    finally:
        conn.close()


if __name__ == "__main__":
    sys.exit(main())
