"""add product and demand_item tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "product",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=True),
        sa.Column("inventory", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reserved_stock", sa.Integer(), nullable=False, server_default=sa.text("0")),
    )

    op.create_table(
        "demand_item",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.String(length=64), sa.ForeignKey("product.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("status", sa.String(length=50), nullable=True),
        sa.Column("order_status", sa.String(length=50), nullable=True),
        sa.Column("item_type", sa.String(length=20), nullable=False, server_default="order"),
        sa.Column("total_paid", sa.Numeric(12, 2), nullable=True),
    )
    op.create_index("ix_demand_item_product_id", "demand_item", ["product_id"])
    op.create_index("ix_demand_item_created_at", "demand_item", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_demand_item_created_at", table_name="demand_item")
    op.drop_index("ix_demand_item_product_id", table_name="demand_item")
    op.drop_table("demand_item")
    op.drop_table("product")
