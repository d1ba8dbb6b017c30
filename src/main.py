"""Command-line entry point for the widget inventory service."""

import argparse
import logging
import sys

from config import settings
from services.database import (
    check_connection,
    get_db_url,
    run_migrations_sync,
    unit_of_work,
)
from audit.store import AuditHistoryQuery, WidgetAuditStore

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def _print_history(widget_id: int | None, limit: int) -> None:
    with unit_of_work() as session:
        result = WidgetAuditStore(session).list_audits(
            AuditHistoryQuery(widget_id=widget_id, limit=limit)
        )
        for record in result.audit_logs:
            print(
                f"{record.audit_id}\t{record.changed_at.isoformat()}\t{record.operation}\t"
                f"widget={record.widget_id}\tby={record.changed_by}\t"
                f"name={record.name!r}\tquantity={record.quantity}\tprice={record.price}"
            )


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line argument parser."""
    parser = argparse.ArgumentParser(description="Widget inventory service")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("migrate", help="Apply database migrations")
    subparsers.add_parser("check", help="Check database connectivity")
    history = subparsers.add_parser("history", help="Show the widget audit trail")
    history.add_argument("--widget-id", type=int, default=None)
    history.add_argument("--limit", type=int, default=50)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run one inventory command and return its exit status."""
    args = build_parser().parse_args(argv)
    configure_logging(settings.log_level)
    logger.info("Widget inventory service starting (database: %s)", get_db_url().split("@")[-1])

    if args.command == "migrate":
        run_migrations_sync()
        return 0
    if args.command == "check":
        return 0 if check_connection() else 1
    if args.command == "history":
        _print_history(args.widget_id, args.limit)
        return 0
    return 2


if __name__ == "__main__":
    sys.exit(main())
