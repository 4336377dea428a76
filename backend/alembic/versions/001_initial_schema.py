"""Initial database schema - categories, products, images, inventory periods and records

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UPDATED_AT_TABLES = ("categories", "products", "inventory_periods", "inventory_records")


def _id_column() -> sa.Column:
    return sa.Column("id", sa.BigInteger, sa.Identity(), primary_key=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # --- Categories ---
    op.create_table(
        "categories",
        _id_column(),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("owner_id", "name", name="uq_categories_owner_name"),
    )
    op.create_index("ix_categories_owner_id", "categories", ["owner_id"])
    op.create_index("idx_categories_id_order", "categories", ["owner_id", "id"])

    # --- Products ---
    op.create_table(
        "products",
        _id_column(),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("quantity", sa.Integer),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("price > 0", name="chk_price_positive"),
        sa.CheckConstraint("quantity IS NULL OR quantity >= 0", name="chk_quantity_non_negative"),
    )
    op.create_index("ix_products_owner_id", "products", ["owner_id"])
    op.create_index("idx_products_owner_name", "products", ["owner_id", "name"])
    op.create_index("idx_products_id_order", "products", ["owner_id", "id"])

    # --- Product Categories ---
    op.create_table(
        "product_categories",
        sa.Column("product_id", sa.BigInteger, sa.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("category_id", sa.BigInteger, sa.ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_index("idx_product_categories_category_id", "product_categories", ["category_id"])

    # --- Product Images ---
    op.create_table(
        "product_images",
        _id_column(),
        sa.Column("product_id", sa.BigInteger, sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("image_url", sa.Text, nullable=False),
        sa.Column("display_order", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("image_url ~* '^https?://'", name="chk_image_url_http"),
    )
    op.create_index("ix_product_images_product_id", "product_images", ["product_id"])
    op.create_index(
        "idx_product_images_unique_order", "product_images", ["product_id", "display_order"], unique=True
    )

    # --- Inventory Periods ---
    op.create_table(
        "inventory_periods",
        _id_column(),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date),
        sa.Column("status", sa.Text, nullable=False, server_default=sa.text("'active'")),
        sa.Column("notes", sa.Text),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("owner_id", "name", name="uq_periods_owner_name"),
        sa.CheckConstraint("status IN ('active', 'closed')", name="chk_status"),
    )
    op.create_index("ix_inventory_periods_owner_id", "inventory_periods", ["owner_id"])
    op.create_index("idx_inventory_periods_status", "inventory_periods", ["owner_id", "status"])
    op.create_index(
        "idx_inventory_periods_dates", "inventory_periods", ["owner_id", sa.text("start_date DESC")]
    )
    op.create_index(
        "uq_periods_one_active_per_owner",
        "inventory_periods",
        ["owner_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )

    # --- Inventory Records ---
    op.create_table(
        "inventory_records",
        _id_column(),
        sa.Column("product_id", sa.BigInteger, sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("period_id", sa.BigInteger, sa.ForeignKey("inventory_periods.id", ondelete="CASCADE"), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("counted_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("notes", sa.Text),
        *_timestamps(),
        sa.UniqueConstraint("product_id", "period_id", name="uq_record_product_period"),
        sa.CheckConstraint("quantity >= 0", name="chk_record_quantity_non_negative"),
    )
    op.create_index("ix_inventory_records_product_id", "inventory_records", ["product_id"])
    op.create_index("ix_inventory_records_period_id", "inventory_records", ["period_id"])

    # --- updated_at triggers ---
    op.execute(
        """
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    for table in UPDATED_AT_TABLES:
        op.execute(
            f"CREATE TRIGGER update_{table}_updated_at BEFORE UPDATE ON {table} "
            "FOR EACH ROW EXECUTE FUNCTION update_updated_at_column()"
        )


def downgrade() -> None:
    for table in UPDATED_AT_TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS update_{table}_updated_at ON {table}")
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column()")

    op.drop_table("inventory_records")
    op.drop_table("inventory_periods")
    op.drop_table("product_images")
    op.drop_table("product_categories")
    op.drop_table("products")
    op.drop_table("categories")
