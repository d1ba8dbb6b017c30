"""Data access layer for widgets.

Every mutation here is audited by the hooks in ``audit.capture``; callers only
choose who is acting (``audit.context``) and which unit of work to run in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

import audit.capture  # noqa: F401  (registers widget change capture)
from models import Widget

logger = logging.getLogger(__name__)

UNSET = object()


class WidgetNotFoundError(LookupError):
    """Raised when a widget id does not exist."""


@dataclass(frozen=True)
class WidgetCreateInput:
    """Input payload for creating a widget."""

    name: str
    quantity: int | None
    price: Decimal | None
    created_at: datetime | None = None


@dataclass(frozen=True)
class WidgetUpdateInput:
    """Partial update payload; UNSET fields keep their current value."""

    name: str | object = UNSET
    quantity: int | object = UNSET
    price: Decimal | object = UNSET


def _normalize_timestamp(value: datetime, label: str) -> datetime:
    """Ensure timestamps are timezone-aware, defaulting to UTC if naive."""
    if value.tzinfo is None:
        logger.warning("Naive timestamp provided for %s; assuming UTC.", label)
        return value.replace(tzinfo=timezone.utc)
    return value


def create_widget(session: Session, widget_input: WidgetCreateInput) -> Widget:
    """Persist a new widget and return it with its assigned id.

    Missing quantity or price is left for the NOT NULL constraints to reject;
    the resulting ``IntegrityError`` propagates unchanged.
    """
    created_at = _normalize_timestamp(
        widget_input.created_at or datetime.now(timezone.utc), "created_at"
    )
    widget = Widget(
        name=widget_input.name,
        created_at=created_at,
        quantity=widget_input.quantity,
        price=widget_input.price,
    )
    session.add(widget)
    session.flush()
    logger.info("Created widget %s (%s).", widget.id, widget.name)
    return widget


def get_widget(session: Session, widget_id: int) -> Widget | None:
    """Fetch a widget by id."""
    return session.query(Widget).filter(Widget.id == widget_id).first()


def list_widgets(session: Session) -> list[Widget]:
    """Return all widgets ordered by id."""
    return session.query(Widget).order_by(Widget.id).all()


def _require_widget(session: Session, widget_id: int) -> Widget:
    widget = get_widget(session, widget_id)
    if widget is None:
        raise WidgetNotFoundError(f"widget {widget_id} not found.")
    return widget


def update_widget(
    session: Session,
    widget_id: int,
    update_input: WidgetUpdateInput,
) -> Widget:
    """Mutate a persisted widget in place so the flush issues a true UPDATE."""
    widget = _require_widget(session, widget_id)
    widget.update_details(
        name=widget.name if update_input.name is UNSET else update_input.name,
        quantity=widget.quantity if update_input.quantity is UNSET else update_input.quantity,
        price=widget.price if update_input.price is UNSET else update_input.price,
    )
    session.flush()
    logger.info("Updated widget %s.", widget.id)
    return widget


def delete_widget(session: Session, widget_id: int) -> None:
    """Delete a persisted widget."""
    widget = _require_widget(session, widget_id)
    session.delete(widget)
    session.flush()
    logger.info("Deleted widget %s.", widget_id)
