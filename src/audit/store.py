"""Read-only query surface over the widget audit trail."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from models import AuditOperationEnum, WidgetAudit

logger = logging.getLogger(__name__)

_MOST_RECENT_FIRST = (WidgetAudit.changed_at.desc(), WidgetAudit.audit_id.desc())


def _normalize_timestamp(value: datetime, label: str) -> datetime:
    """Ensure timestamps are timezone-aware, defaulting to UTC if naive."""
    if value.tzinfo is None:
        logger.warning("Naive timestamp provided for %s; assuming UTC.", label)
        return value.replace(tzinfo=timezone.utc)
    return value


def _validate_operation(operation: str) -> None:
    """Validate an audit operation against the allowed values."""
    if operation not in AuditOperationEnum.enums:
        raise ValueError(f"Invalid audit operation: {operation}.")


@dataclass(frozen=True)
class AuditHistoryQuery:
    """Query parameters for widget audit history with filtering and pagination.

    Results are ordered most recent first; ``cursor`` is the ``audit_id`` of the
    last record of the previous page.
    """

    widget_id: int | None = None
    operation: str | None = None
    changed_after: datetime | None = None
    changed_before: datetime | None = None
    changed_by: str | None = None
    limit: int = 100
    cursor: int | None = None


@dataclass(frozen=True)
class AuditHistoryResult:
    """Page of widget audit records and the cursor for the next page."""

    audit_logs: list[WidgetAudit]
    next_cursor: int | None


class WidgetAuditStore:
    """Query widget audit records.

    Audit rows are written only by the change-capture hooks and this store
    has no operation that modifies or removes them.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the store with a database session."""
        self._session = session

    def get(self, audit_id: int) -> WidgetAudit | None:
        """Fetch a single audit record by id."""
        return (
            self._session.query(WidgetAudit)
            .filter(WidgetAudit.audit_id == audit_id)
            .first()
        )

    def list_all(self) -> list[WidgetAudit]:
        """Return every audit record, most recent first."""
        return self._session.query(WidgetAudit).order_by(*_MOST_RECENT_FIRST).all()

    def count(self) -> int:
        """Return the total number of audit records."""
        return self._session.query(func.count(WidgetAudit.audit_id)).scalar() or 0

    def list_by_widget(self, widget_id: int) -> list[WidgetAudit]:
        """Return the full history of one widget, most recent first."""
        return (
            self._session.query(WidgetAudit)
            .filter(WidgetAudit.widget_id == widget_id)
            .order_by(*_MOST_RECENT_FIRST)
            .all()
        )

    def list_by_operation(self, operation: str) -> list[WidgetAudit]:
        """Return all records of one operation kind, most recent first."""
        _validate_operation(operation)
        return (
            self._session.query(WidgetAudit)
            .filter(WidgetAudit.operation == operation)
            .order_by(*_MOST_RECENT_FIRST)
            .all()
        )

    def list_changed_after(self, timestamp: datetime) -> list[WidgetAudit]:
        """Return records written strictly after ``timestamp``, most recent first."""
        timestamp = _normalize_timestamp(timestamp, "changed_after")
        return (
            self._session.query(WidgetAudit)
            .filter(WidgetAudit.changed_at > timestamp)
            .order_by(*_MOST_RECENT_FIRST)
            .all()
        )

    def list_by_widget_and_operation(self, widget_id: int, operation: str) -> list[WidgetAudit]:
        """Return records of one operation kind for one widget, most recent first."""
        _validate_operation(operation)
        return (
            self._session.query(WidgetAudit)
            .filter(
                WidgetAudit.widget_id == widget_id,
                WidgetAudit.operation == operation,
            )
            .order_by(*_MOST_RECENT_FIRST)
            .all()
        )

    def count_by_operation(self, operation: str) -> int:
        """Return how many records of one operation kind were ever written."""
        _validate_operation(operation)
        return (
            self._session.query(func.count(WidgetAudit.audit_id))
            .filter(WidgetAudit.operation == operation)
            .scalar()
            or 0
        )

    def list_audits(self, query: AuditHistoryQuery) -> AuditHistoryResult:
        """List audit records with filtering, ordering, and pagination.

        Args:
            query: Filters plus page size and cursor.

        Returns:
            AuditHistoryResult containing matching records and the next cursor.

        Raises:
            ValueError: If the operation filter or limit is invalid.
        """
        if query.limit < 1:
            raise ValueError("limit must be at least 1.")
        if query.operation is not None:
            _validate_operation(query.operation)

        filters = []

        if query.widget_id is not None:
            filters.append(WidgetAudit.widget_id == query.widget_id)
        if query.operation is not None:
            filters.append(WidgetAudit.operation == query.operation)
        if query.changed_after is not None:
            changed_after = _normalize_timestamp(query.changed_after, "changed_after")
            filters.append(WidgetAudit.changed_at > changed_after)
        if query.changed_before is not None:
            changed_before = _normalize_timestamp(query.changed_before, "changed_before")
            filters.append(WidgetAudit.changed_at <= changed_before)
        if query.changed_by is not None:
            filters.append(WidgetAudit.changed_by == query.changed_by)
        if query.cursor is not None:
            filters.append(WidgetAudit.audit_id < query.cursor)

        base_query = self._session.query(WidgetAudit)
        if filters:
            base_query = base_query.filter(and_(*filters))

        # Fetch one extra to determine if there are more results
        audit_logs = (
            base_query
            .order_by(WidgetAudit.audit_id.desc())
            .limit(query.limit + 1)
            .all()
        )

        has_more = len(audit_logs) > query.limit
        if has_more:
            audit_logs = audit_logs[:query.limit]
            next_cursor = audit_logs[-1].audit_id
        else:
            next_cursor = None

        return AuditHistoryResult(audit_logs=audit_logs, next_cursor=next_cursor)
