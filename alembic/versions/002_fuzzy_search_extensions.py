"""Enable pg_trgm and fuzzystrmatch, add catalog search indexes.

Revision ID: 002_fuzzy_search_extensions
Revises: 001_catalog_schema
Create Date: 2025-07-16 22:42:55.000000

pg_trgm provides similarity() and accelerates LIKE / regex matching via
GIN indexes; fuzzystrmatch provides levenshtein(). Strategies match on
lower(column), so every index is built on the lower-cased expression.
"""

from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002_fuzzy_search_extensions"
down_revision: Union[str, None] = "001_catalog_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_INDEXES: dict[str, str] = {
    "idx_products_name_trgm": "products USING GIN (lower(name) gin_trgm_ops)",
    "idx_products_sku_trgm": "products USING GIN (lower(sku) gin_trgm_ops)",
    "idx_products_name_prefix": "products (lower(name) text_pattern_ops)",
    "idx_products_sku_prefix": "products (lower(sku) text_pattern_ops)",
    "idx_products_shop_lower_name": "products (shop_id, lower(name))",
    "idx_categories_name_trgm": "categories USING GIN (lower(name) gin_trgm_ops)",
    "idx_categories_name_prefix": "categories (lower(name) text_pattern_ops)",
}


def upgrade() -> None:
    """Enable search extensions and create lower-cased search indexes."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "pg_trgm"')
    op.execute('CREATE EXTENSION IF NOT EXISTS "fuzzystrmatch"')

    for name, definition in _INDEXES.items():
        op.execute(f"CREATE INDEX IF NOT EXISTS {name} ON {definition}")


def downgrade() -> None:
    """Remove search indexes. Extensions are left installed."""
    for name in reversed(list(_INDEXES)):
        op.execute(f"DROP INDEX IF EXISTS {name}")
