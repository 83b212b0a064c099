import os
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("DATABASE_URL", "postgresql+asyncpg://shelfwise:shelfwise@db:5432/shelfwise_test")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")

SHOP_ID = "shop-1"


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


def make_auth_headers(sub: str = "testuser", shop_id: str | None = SHOP_ID) -> dict[str, str]:
    """Create Authorization headers with a valid access token for ``shop_id``."""
    from shelfwise.services.auth_service import create_access_token

    claims = {"sub": sub}
    if shop_id is not None:
        claims["shop_id"] = shop_id
    token = create_access_token(data=claims)
    return {"Authorization": f"Bearer {token}"}


def make_product_row(
    product_id: str,
    name: str,
    sku: str | None = None,
    *,
    score: float | None = None,
    created_at: datetime | None = None,
    sort_value=None,
    shop_id: str = SHOP_ID,
):
    """Build a row shaped like the product select (plus optional score/sort columns)."""
    return SimpleNamespace(
        id=product_id,
        name=name,
        sku=sku,
        shop_id=shop_id,
        category_id=None,
        category_name=None,
        stock=5,
        selling_price=1200,
        purchase_price=800,
        unit="pcs",
        created_at=created_at or datetime(2025, 1, 1, tzinfo=UTC),
        match_score=score,
        sort_value=sort_value,
    )


def make_category_row(category_id: str, name: str, *, score: float | None = None, product_count: int = 0):
    return SimpleNamespace(
        id=category_id,
        name=name,
        shop_id=SHOP_ID,
        product_count=product_count,
        match_score=score,
        sort_value=name,
    )


def make_result(rows=None, scalar=None):
    """Create a mock execute() result exposing fetchall / scalar_one."""
    result = MagicMock()
    result.fetchall.return_value = list(rows or [])
    result.scalar_one.return_value = scalar
    result.scalar_one_or_none.return_value = scalar
    return result


def make_mock_session(rows=None):
    """Create a mock AsyncSession whose execute() returns ``rows``."""
    session = AsyncMock()
    session.execute = AsyncMock(return_value=make_result(rows))
    return session
