"""Product search and listing endpoints.

Provides:
- ``GET /products/search`` -- Ranked multi-strategy product search.
- ``GET /products/cursor`` -- Cursor-paginated product table.
- ``GET /products`` -- Page-number paginated product table.
- ``GET /products/check-name`` -- Whether a product name is already used.

All endpoints require JWT Bearer authentication and are scoped to the
token's shop.
"""

from __future__ import annotations

import logging
from datetime import datetime, time
from enum import Enum

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shelfwise.config import get_settings
from shelfwise.database import get_db, get_session_factory
from shelfwise.search.engine import CatalogSearchEngine, RankedResult
from shelfwise.search.pagination import (
    CatalogPaginator,
    CursorPage,
    OffsetPage,
    PaginationDirection,
    SortOrder,
)
from shelfwise.search.strategies import PRODUCT_TARGET, SearchFilters
from shelfwise.services.auth_service import get_current_shop
from shelfwise.services.catalog_service import is_name_taken

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


class ProductSortField(str, Enum):
    """Sortable product columns."""

    created_at = "created_at"
    name = "name"
    selling_price = "selling_price"
    purchase_price = "purchase_price"
    stock = "stock"
    category = "category"


class SearchResponse(BaseModel):
    """Search API response containing ranked results and metadata."""

    results: list[RankedResult]
    query: str
    total: int
    fuzzy: bool


class NameCheckResponse(BaseModel):
    name: str
    taken: bool


# ---------------------------------------------------------------------------
# Engine factory helpers (extracted for easy mocking in tests)
# ---------------------------------------------------------------------------


def _build_search_engine(session_factory: async_sessionmaker[AsyncSession]) -> CatalogSearchEngine:
    settings = get_settings()
    return CatalogSearchEngine(
        session_factory,
        PRODUCT_TARGET,
        early_termination=settings.SEARCH_EARLY_TERMINATION,
        min_fuzzy_length=settings.SEARCH_MIN_FUZZY_QUERY_LENGTH,
    )


def _build_paginator(db: AsyncSession, engine: CatalogSearchEngine) -> CatalogPaginator:
    settings = get_settings()
    return CatalogPaginator(
        db,
        engine,
        window_multiplier=settings.SEARCH_FUZZY_WINDOW_MULTIPLIER,
        window_ceiling=settings.SEARCH_FUZZY_WINDOW_CEILING,
    )


def _parse_date(date_str: str | None) -> datetime | None:
    """Parse a date string (YYYY-MM-DD) to datetime, or None."""
    if not date_str:
        return None
    try:
        return datetime.fromisoformat(date_str)
    except ValueError:
        return None


def _parse_end_date(date_str: str | None) -> datetime | None:
    """Parse an inclusive upper bound; a bare date covers the whole day."""
    parsed = _parse_date(date_str)
    if parsed is not None and len(date_str) == 10:
        parsed = datetime.combine(parsed.date(), time.max, tzinfo=parsed.tzinfo)
    return parsed


def _search_failed(exc: Exception) -> HTTPException:
    logger.error("Product search failed: %s", type(exc).__name__)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Search failed")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/search", response_model=SearchResponse)
async def search_products(
    q: str = Query("", max_length=200, description="Search query"),  # noqa: B008
    limit: int = Query(50, ge=1, le=100, description="Maximum number of results"),  # noqa: B008
    fuzzy: bool = Query(True, description="Enable typo-tolerant matching"),  # noqa: B008
    category_id: str | None = Query(None, description="Filter by category id"),  # noqa: B008
    date_from: str | None = Query(None, description="Created from date (YYYY-MM-DD)"),  # noqa: B008
    date_to: str | None = Query(None, description="Created to date (YYYY-MM-DD)"),  # noqa: B008
    current_shop: dict = Depends(get_current_shop),  # noqa: B008
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),  # noqa: B008
) -> SearchResponse:
    """Search the shop's products by name or SKU, tolerating typos."""
    shop_id = current_shop["shop_id"]
    logger.info("Product search: shop=%s, query=%r, limit=%d, fuzzy=%s", shop_id, q, limit, fuzzy)

    engine = _build_search_engine(session_factory)
    filters = SearchFilters(
        category_id=category_id,
        created_from=_parse_date(date_from),
        created_to=_parse_end_date(date_to),
    )
    try:
        results = await engine.search(q, shop_id, limit, fuzzy_enabled=fuzzy, filters=filters)
    except SQLAlchemyError as exc:
        raise _search_failed(exc) from exc

    return SearchResponse(
        results=results,
        query=q,
        total=len(results),
        fuzzy=engine.uses_fuzzy(q, fuzzy),
    )


@router.get("/cursor", response_model=CursorPage)
async def list_products_cursor(
    cursor: str | None = Query(None, description="Opaque pagination cursor"),  # noqa: B008
    direction: PaginationDirection = Query(PaginationDirection.forward),  # noqa: B008
    limit: int = Query(10, ge=1, le=100),  # noqa: B008
    sort_by: ProductSortField = Query(ProductSortField.created_at),  # noqa: B008
    sort_order: SortOrder = Query(SortOrder.desc),  # noqa: B008
    name_filter: str = Query("", max_length=200),  # noqa: B008
    category_id: str | None = Query(None),  # noqa: B008
    fuzzy: bool = Query(True),  # noqa: B008
    current_shop: dict = Depends(get_current_shop),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),  # noqa: B008
) -> CursorPage:
    """Cursor-paginated product listing, optionally narrowed by a name filter."""
    shop_id = current_shop["shop_id"]
    logger.info(
        "Product cursor page: shop=%s, direction=%s, limit=%d, sort=%s %s, filter=%r",
        shop_id,
        direction.value,
        limit,
        sort_by.value,
        sort_order.value,
        name_filter,
    )

    paginator = _build_paginator(db, _build_search_engine(session_factory))
    try:
        return await paginator.paginate(
            shop_id,
            cursor=cursor,
            direction=direction,
            limit=limit,
            sort_by=sort_by.value,
            sort_order=sort_order,
            name_filter=name_filter,
            filters=SearchFilters(category_id=category_id),
            fuzzy_enabled=fuzzy,
        )
    except SQLAlchemyError as exc:
        raise _search_failed(exc) from exc


@router.get("/check-name", response_model=NameCheckResponse)
async def check_product_name(
    name: str = Query(..., min_length=1, max_length=255),  # noqa: B008
    exclude_id: str | None = Query(None),  # noqa: B008
    current_shop: dict = Depends(get_current_shop),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> NameCheckResponse:
    """Check whether a product name is already used in the shop."""
    taken = await is_name_taken(db, PRODUCT_TARGET, current_shop["shop_id"], name, exclude_id)
    return NameCheckResponse(name=name, taken=taken)


@router.get("", response_model=OffsetPage)
async def list_products(
    page: int = Query(1, ge=1),  # noqa: B008
    limit: int = Query(10, ge=1, le=100),  # noqa: B008
    sort_by: ProductSortField = Query(ProductSortField.created_at),  # noqa: B008
    sort_order: SortOrder = Query(SortOrder.desc),  # noqa: B008
    name_filter: str = Query("", max_length=200),  # noqa: B008
    category_id: str | None = Query(None),  # noqa: B008
    fuzzy: bool = Query(True),  # noqa: B008
    current_shop: dict = Depends(get_current_shop),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),  # noqa: B008
) -> OffsetPage:
    """Page-number paginated product listing."""
    paginator = _build_paginator(db, _build_search_engine(session_factory))
    try:
        return await paginator.paginate_offset(
            current_shop["shop_id"],
            page=page,
            limit=limit,
            sort_by=sort_by.value,
            sort_order=sort_order,
            name_filter=name_filter,
            filters=SearchFilters(category_id=category_id),
            fuzzy_enabled=fuzzy,
        )
    except SQLAlchemyError as exc:
        raise _search_failed(exc) from exc
