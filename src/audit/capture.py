"""Change capture for widget mutations.

Mapper hooks on ``Widget`` write one ``widgets_audit`` row per INSERT, UPDATE
and DELETE through the flush connection, so the audit row is part of the same
transaction as the mutation and disappears with it on rollback. Snapshots are
read back from the ``widgets`` row itself: the post-image for INSERT and
UPDATE, the pre-image for DELETE.

Bulk UPDATE and DELETE statements run through ``Session.execute`` skip the
mapper hooks, so a ``do_orm_execute`` hook audits each affected row instead.
Bulk INSERT statements are refused; widgets are created one at a time.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import event, insert, inspect, select
from sqlalchemy.engine import Connection, Result
from sqlalchemy.orm import Mapper, ORMExecuteState, Session, object_session

from audit.binding import get_bound_actor
from models import Widget, WidgetAudit

logger = logging.getLogger(__name__)

SNAPSHOT_COLUMNS = ("name", "created_at", "quantity", "price")


class UnauditedStatementError(RuntimeError):
    """Raised for widget statements whose rows cannot be audited."""


def _snapshot(connection: Connection, widget_id: int) -> dict[str, Any]:
    """Read the persisted widget row as the audit snapshot."""
    widgets = Widget.__table__
    row = (
        connection.execute(
            select(*(widgets.c[name] for name in SNAPSHOT_COLUMNS)).where(
                widgets.c.id == widget_id
            )
        )
        .mappings()
        .one()
    )
    return dict(row)


def _has_net_changes(target: Widget) -> bool:
    """Return True when any audited column changed in this flush."""
    state = inspect(target)
    return any(state.attrs[name].history.has_changes() for name in SNAPSHOT_COLUMNS)


def _record(
    session: Session,
    connection: Connection,
    *,
    operation: str,
    widget_id: int,
    snapshot: dict[str, Any] | None = None,
) -> None:
    """Append an audit row attributed to the actor bound to ``session``."""
    actor = get_bound_actor(session)
    if snapshot is None:
        snapshot = _snapshot(connection, widget_id)
    connection.execute(
        insert(WidgetAudit.__table__).values(
            operation=operation,
            widget_id=widget_id,
            changed_at=datetime.now(timezone.utc),
            changed_by=actor,
            **snapshot,
        )
    )
    logger.debug("Captured %s of widget %s by %s.", operation, widget_id, actor)


def _session_of(target: Widget) -> Session:
    session = object_session(target)
    if session is None:
        raise RuntimeError("Widget mutation captured outside of a session.")
    return session


@event.listens_for(Widget, "after_insert")
def capture_insert(mapper: Mapper, connection: Connection, target: Widget) -> None:
    """Record the post-image of a newly inserted widget."""
    _record(_session_of(target), connection, operation="INSERT", widget_id=target.id)


@event.listens_for(Widget, "after_update")
def capture_update(mapper: Mapper, connection: Connection, target: Widget) -> None:
    """Record the post-image of an updated widget."""
    # Fires for every dirty instance, including ones with no net change.
    if not _has_net_changes(target):
        return
    _record(_session_of(target), connection, operation="UPDATE", widget_id=target.id)


@event.listens_for(Widget, "before_delete")
def capture_delete(mapper: Mapper, connection: Connection, target: Widget) -> None:
    """Record the last persisted values of a widget about to be deleted."""
    widget_id = inspect(target).identity[0]
    _record(_session_of(target), connection, operation="DELETE", widget_id=widget_id)


def _targets_widgets(orm_execute_state: ORMExecuteState) -> bool:
    mapper = orm_execute_state.bind_mapper
    if mapper is not None:
        return mapper.class_ is Widget
    return getattr(orm_execute_state.statement, "table", None) is Widget.__table__


def _affected_widget_ids(
    connection: Connection,
    orm_execute_state: ORMExecuteState,
) -> list[int]:
    """Select the ids of the widget rows a bulk statement is about to touch."""
    widgets = Widget.__table__
    query = select(widgets.c.id).order_by(widgets.c.id)
    parameters = orm_execute_state.parameters
    if isinstance(parameters, (list, tuple)):
        # Bulk UPDATE by primary key: one parameter set per row.
        query = query.where(widgets.c.id.in_([params["id"] for params in parameters]))
    else:
        whereclause = orm_execute_state.statement.whereclause
        if whereclause is not None:
            query = query.where(whereclause)
    return list(connection.execute(query).scalars())


@event.listens_for(Session, "do_orm_execute")
def capture_bulk_statement(orm_execute_state: ORMExecuteState) -> Result | None:
    """Audit every row touched by a bulk UPDATE or DELETE of widgets."""
    if not (
        orm_execute_state.is_insert
        or orm_execute_state.is_update
        or orm_execute_state.is_delete
    ):
        return None
    if not _targets_widgets(orm_execute_state):
        return None
    if orm_execute_state.is_insert:
        raise UnauditedStatementError(
            "Bulk INSERT into widgets bypasses change capture; use create_widget."
        )

    session = orm_execute_state.session
    connection = session.connection()
    before = {
        widget_id: _snapshot(connection, widget_id)
        for widget_id in _affected_widget_ids(connection, orm_execute_state)
    }
    result = orm_execute_state.invoke_statement()

    if orm_execute_state.is_delete:
        for widget_id, snapshot in before.items():
            _record(
                session,
                connection,
                operation="DELETE",
                widget_id=widget_id,
                snapshot=snapshot,
            )
        return result

    for widget_id, snapshot in before.items():
        after = _snapshot(connection, widget_id)
        if after == snapshot:
            continue
        _record(session, connection, operation="UPDATE", widget_id=widget_id, snapshot=after)
    return result
