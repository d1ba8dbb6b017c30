"""Services module for the widget inventory service."""

from services.database import get_sync_session, run_migrations_sync, unit_of_work

__all__ = [
    "get_sync_session",
    "run_migrations_sync",
    "unit_of_work",
]
