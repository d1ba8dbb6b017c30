"""Integration tests for the shipped alembic migrations."""

from __future__ import annotations

from contextlib import closing
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker

from audit.store import WidgetAuditStore
from inventory.widgets import WidgetCreateInput, create_widget, get_widget
from services import database

pytestmark = pytest.mark.integration


@pytest.fixture
def migrated_session_factory(monkeypatch, tmp_path: Path):
    """Provide a sqlite session factory whose schema comes from alembic."""
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    monkeypatch.setattr(database, "get_db_url", lambda: url)

    database.run_migrations_sync()

    engine = create_engine(url)
    yield sessionmaker(bind=engine)
    engine.dispose()


def test_upgrade_creates_both_tables(migrated_session_factory: sessionmaker) -> None:
    """The migration creates the widget and audit tables with their indexes."""
    inspector = inspect(migrated_session_factory.kw["bind"])

    assert {"widgets", "widgets_audit"} <= set(inspector.get_table_names())
    indexes = {index["name"] for index in inspector.get_indexes("widgets_audit")}
    assert {"ix_widgets_audit_widget_id", "ix_widgets_audit_changed_at"} <= indexes


@pytest.mark.parametrize(
    "price",
    [
        Decimal("123456789012345.6789"),
        Decimal("0.00005"),
        Decimal("19.9900"),
    ],
)
def test_migrated_schema_keeps_prices_exact(
    migrated_session_factory: sessionmaker,
    price: Decimal,
) -> None:
    """Prices keep every digit on a database built by the migration."""
    with database.unit_of_work(migrated_session_factory) as session:
        widget_id = create_widget(
            session, WidgetCreateInput(name="Precise", quantity=1, price=price)
        ).id

    with closing(migrated_session_factory()) as session:
        widget = get_widget(session, widget_id)
        record = WidgetAuditStore(session).list_by_widget(widget_id)[0]

    assert widget.price == price
    assert record.price == price
    assert str(widget.price) == str(price)
