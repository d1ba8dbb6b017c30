"""Create widgets and widgets_audit tables.

Revision ID: 0001_widgets
Revises:
Create Date: 2026-02-19 00:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_widgets"
down_revision = None
branch_labels = None
depends_on = None


def _price_type() -> sa.types.TypeEngine:
    """Exact decimal: unconstrained NUMERIC, or text on SQLite."""
    return sa.Numeric().with_variant(sa.String(length=64), "sqlite")


def upgrade() -> None:
    """Create the widget table and its append-only audit table."""
    op.create_table(
        "widgets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price", _price_type(), nullable=False),
    )
    op.create_table(
        "widgets_audit",
        sa.Column("audit_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("operation", sa.String(length=6), nullable=False),
        sa.Column("widget_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("price", _price_type(), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("changed_by", sa.Text(), nullable=True),
        sa.CheckConstraint(
            "operation IN ('INSERT', 'UPDATE', 'DELETE')",
            name="ck_widgets_audit_operation",
        ),
    )
    op.create_index("ix_widgets_audit_widget_id", "widgets_audit", ["widget_id"], unique=False)
    op.create_index("ix_widgets_audit_changed_at", "widgets_audit", ["changed_at"], unique=False)


def downgrade() -> None:
    """Drop the widget audit and widget tables."""
    op.drop_index("ix_widgets_audit_changed_at", table_name="widgets_audit")
    op.drop_index("ix_widgets_audit_widget_id", table_name="widgets_audit")
    op.drop_table("widgets_audit")
    op.drop_table("widgets")
