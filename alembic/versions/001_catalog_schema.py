"""Create shops, categories and products tables.

Revision ID: 001_catalog_schema
Revises: None
Create Date: 2025-07-04 14:43:39.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_catalog_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Apply schema migrations."""
    op.create_table(
        "shops",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("owner_id", sa.String(36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_id"),
    )
    op.create_index("ix_shops_owner_id", "shops", ["owner_id"], unique=False)

    op.create_table(
        "categories",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("shop_id", sa.String(36), nullable=False),
        sa.ForeignKeyConstraint(["shop_id"], ["shops.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shop_id", "name", name="uq_categories_shop_name"),
    )
    op.create_index("idx_categories_shop_id", "categories", ["shop_id"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sku", sa.String(100), nullable=True),
        sa.Column("purchase_price", sa.Integer, nullable=False),
        sa.Column("selling_price", sa.Integer, nullable=False),
        sa.Column("stock", sa.Integer, nullable=False, server_default="0"),
        sa.Column("reorder_point", sa.Integer, nullable=True),
        sa.Column("unit", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("shop_id", sa.String(36), nullable=False),
        sa.Column("category_id", sa.String(36), nullable=True),
        sa.ForeignKeyConstraint(["shop_id"], ["shops.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", "shop_id", name="uq_products_name_shop"),
    )
    op.create_index("idx_products_shop_id", "products", ["shop_id"], unique=False)
    op.create_index("idx_products_category_id", "products", ["category_id"], unique=False)
    op.create_index("idx_products_shop_created", "products", ["shop_id", "created_at"], unique=False)


def downgrade() -> None:
    """Revert schema migrations."""
    op.drop_index("idx_products_shop_created", table_name="products")
    op.drop_index("idx_products_category_id", table_name="products")
    op.drop_index("idx_products_shop_id", table_name="products")
    op.drop_table("products")
    op.drop_index("idx_categories_shop_id", table_name="categories")
    op.drop_table("categories")
    op.drop_index("ix_shops_owner_id", table_name="shops")
    op.drop_table("shops")
