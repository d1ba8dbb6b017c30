"""Bind the current actor into every database transaction.

A single ``after_begin`` hook on the SQLAlchemy ``Session`` class runs once per
transaction, when the session first acquires a connection and before any
statement of that transaction executes. It resolves the actor from
``audit.context`` and stores it in ``session.info`` for the change-capture
hooks. On PostgreSQL the value is also published to a transaction-local
setting (``app.current_user`` by default) for database-side consumers.

A failure while binding propagates out of the hook, so the transaction never
runs its mutations unattributed.
"""

from __future__ import annotations

import logging

from sqlalchemy import event, select, func
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session, SessionTransaction

from audit.context import current_actor
from config import settings

logger = logging.getLogger(__name__)

BOUND_ACTOR_KEY = "audit_bound_actor"


class AuditAttributionError(RuntimeError):
    """Raised when a mutation is captured without a bound actor."""


def resolve_actor(actor: str | None) -> str:
    """Return ``actor`` stripped, or the configured fallback when absent or blank."""
    if actor is None or not actor.strip():
        return settings.audit.fallback_actor
    return actor.strip()


def _publish_actor(connection: Connection, actor: str) -> None:
    """Expose the actor to database-side consumers for this transaction only."""
    if connection.dialect.name != "postgresql":
        return
    connection.execute(
        select(func.set_config(settings.audit.session_variable, actor, True))
    ).scalar_one()


@event.listens_for(Session, "after_begin")
def bind_transaction_actor(
    session: Session,
    transaction: SessionTransaction,
    connection: Connection,
) -> None:
    """Bind the current actor to the transaction that just began."""
    if transaction.nested:
        # Savepoints share the enclosing transaction's actor.
        return
    actor = resolve_actor(current_actor())
    session.info.pop(BOUND_ACTOR_KEY, None)
    _publish_actor(connection, actor)
    session.info[BOUND_ACTOR_KEY] = actor
    logger.debug("Bound audit actor %s to new transaction.", actor)


@event.listens_for(Session, "after_transaction_end")
def release_transaction_actor(session: Session, transaction: SessionTransaction) -> None:
    """Forget the bound actor once the outermost transaction ends."""
    if transaction.parent is None:
        session.info.pop(BOUND_ACTOR_KEY, None)


def get_bound_actor(session: Session) -> str:
    """Return the actor bound to the session's current transaction.

    Raises:
        AuditAttributionError: If no transaction-scoped actor is bound.
    """
    actor = session.info.get(BOUND_ACTOR_KEY)
    if not actor:
        raise AuditAttributionError("No audit actor is bound to the current transaction.")
    return actor
