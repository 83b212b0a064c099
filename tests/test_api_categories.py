"""Tests for the category endpoints (/api/categories/*)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import SQLAlchemyError

from shelfwise.search.engine import RankedResult
from shelfwise.search.pagination import CursorPage, PaginationDirection, SortOrder
from tests.conftest import SHOP_ID


def _get_app():
    from shelfwise.database import get_db, get_session_factory
    from shelfwise.main import app
    from shelfwise.services.auth_service import get_current_shop

    async def _fake_current_shop():
        return {"user_id": "testuser", "shop_id": SHOP_ID}

    app.dependency_overrides[get_current_shop] = _fake_current_shop
    app.dependency_overrides[get_db] = lambda: AsyncMock()
    app.dependency_overrides[get_session_factory] = lambda: MagicMock()
    return app


async def _get(url: str, params=None):
    transport = ASGITransport(app=_get_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.get(url, params=params)


@pytest.fixture(autouse=True)
def _clear_overrides():
    yield
    from shelfwise.main import app

    app.dependency_overrides.clear()


class TestCategorySearch:
    @pytest.mark.asyncio
    async def test_search_success(self):
        engine = MagicMock()
        engine.search = AsyncMock(
            return_value=[
                RankedResult(
                    id="c1",
                    name="Hand Tools",
                    shop_id=SHOP_ID,
                    match_type="prefix",
                    score=0.9,
                    attributes={"product_count": 12},
                )
            ]
        )
        engine.uses_fuzzy = MagicMock(return_value=True)

        with patch("shelfwise.api.categories._build_search_engine", return_value=engine):
            response = await _get("/api/categories/search", {"q": "hand"})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["results"][0]["attributes"]["product_count"] == 12
        assert engine.search.call_args.args == ("hand", SHOP_ID, 25)

    @pytest.mark.asyncio
    async def test_limit_capped_at_50(self):
        response = await _get("/api/categories/search", {"q": "tools", "limit": 51})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_store_failure_returns_500(self):
        engine = MagicMock()
        engine.search = AsyncMock(side_effect=SQLAlchemyError("boom"))

        with patch("shelfwise.api.categories._build_search_engine", return_value=engine):
            response = await _get("/api/categories/search", {"q": "tools"})

        assert response.status_code == 500
        assert response.json()["detail"] == "Search failed"


class TestCategoryCursor:
    @pytest.mark.asyncio
    async def test_cursor_listing_sorts_by_name(self):
        paginator = MagicMock()
        paginator.paginate = AsyncMock(return_value=CursorPage(items=[], has_prev_page=True, prev_cursor="xyz"))

        with (
            patch("shelfwise.api.categories._build_search_engine", return_value=MagicMock()),
            patch("shelfwise.api.categories._build_paginator", return_value=paginator),
        ):
            response = await _get(
                "/api/categories/cursor",
                {"cursor": "abc", "direction": "backward", "search": "tool"},
            )

        assert response.status_code == 200
        assert response.json()["prev_cursor"] == "xyz"
        kwargs = paginator.paginate.call_args.kwargs
        assert kwargs["cursor"] == "abc"
        assert kwargs["direction"] == PaginationDirection.backward
        assert kwargs["sort_by"] == "name"
        assert kwargs["sort_order"] == SortOrder.asc
        assert kwargs["name_filter"] == "tool"

    @pytest.mark.asyncio
    async def test_limit_capped_at_50(self):
        response = await _get("/api/categories/cursor", {"limit": 51})
        assert response.status_code == 422


class TestCategoryNameCheck:
    @pytest.mark.asyncio
    async def test_available_name(self):
        with patch("shelfwise.api.categories.is_name_taken", AsyncMock(return_value=False)):
            response = await _get("/api/categories/check-name", {"name": "Garden"})

        assert response.status_code == 200
        assert response.json() == {"name": "Garden", "taken": False}
