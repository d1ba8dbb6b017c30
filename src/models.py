"""Data models for the widget inventory service."""

from datetime import datetime, timezone
from decimal import Decimal
import logging

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Integer,
    Numeric,
    String,
    Text,
    TypeDecorator,
)
from sqlalchemy.orm import declarative_base

logger = logging.getLogger(__name__)

# SQLAlchemy base
Base = declarative_base()

AuditOperationEnum = Enum(
    "INSERT",
    "UPDATE",
    "DELETE",
    name="audit_operation",
    native_enum=False,
)


class AwareDateTime(TypeDecorator):
    """Timezone-aware timestamp stored as UTC.

    Backends without a native ``timestamptz`` (SQLite) drop the offset on
    write, so values are converted to UTC before binding and tagged as UTC on
    load. The instant always survives the round trip.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            logger.warning("Naive timestamp bound to %s; assuming UTC.", self.__class__.__name__)
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ExactDecimal(TypeDecorator):
    """Exact decimal column.

    Uses unconstrained ``NUMERIC`` where the driver round-trips ``Decimal``
    natively, so the stored scale is the input scale, and falls back to text
    on SQLite so values never pass through a float.
    """

    impl = Numeric()
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(Numeric(asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            raise TypeError("price must be a Decimal, int, or str, not float")
        value = Decimal(value)
        if dialect.name == "sqlite":
            return str(value)
        return value

    def process_result_value(self, value, dialect) -> Decimal | None:
        if value is None:
            return None
        if isinstance(value, float):
            # NUMERIC affinity on SQLite may hand back a float for legacy rows.
            return Decimal(repr(value))
        return Decimal(value)


class Widget(Base):
    """Tracked inventory item."""

    __tablename__ = "widgets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    created_at = Column(AwareDateTime(), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(ExactDecimal(), nullable=False)

    def update_details(self, name: str, quantity: int, price: Decimal) -> None:
        """Mutate in place so the next flush issues an UPDATE, not a new INSERT."""
        self.name = name
        self.quantity = quantity
        self.price = price

    def __repr__(self) -> str:
        return f"<Widget id={self.id} name={self.name!r} quantity={self.quantity}>"


class WidgetAudit(Base):
    """Append-only audit record for widget mutations.

    Rows are written by the change-capture hooks in ``audit.capture`` and read
    through ``audit.store.WidgetAuditStore``, which exposes no update or delete.
    """

    __tablename__ = "widgets_audit"

    audit_id = Column(Integer, primary_key=True, autoincrement=True)
    operation = Column(AuditOperationEnum, nullable=False)
    widget_id = Column(Integer, nullable=True, index=True)
    name = Column(Text, nullable=True)
    created_at = Column(AwareDateTime(), nullable=True)
    quantity = Column(Integer, nullable=True)
    price = Column(ExactDecimal(), nullable=True)
    changed_at = Column(
        AwareDateTime(),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    changed_by = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<WidgetAudit audit_id={self.audit_id} operation={self.operation} "
            f"widget_id={self.widget_id} changed_by={self.changed_by!r}>"
        )
