"""Category search and listing endpoints.

Provides:
- ``GET /categories/search`` -- Ranked multi-strategy category search.
- ``GET /categories/cursor`` -- Cursor-paginated categories, sorted by name.
- ``GET /categories/check-name`` -- Whether a category name is already used.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shelfwise.api.products import NameCheckResponse, SearchResponse
from shelfwise.config import get_settings
from shelfwise.database import get_db, get_session_factory
from shelfwise.search.engine import CatalogSearchEngine
from shelfwise.search.pagination import CatalogPaginator, CursorPage, PaginationDirection, SortOrder
from shelfwise.search.strategies import CATEGORY_TARGET
from shelfwise.services.auth_service import get_current_shop
from shelfwise.services.catalog_service import is_name_taken

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["categories"])


def _build_search_engine(session_factory: async_sessionmaker[AsyncSession]) -> CatalogSearchEngine:
    settings = get_settings()
    return CatalogSearchEngine(
        session_factory,
        CATEGORY_TARGET,
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


def _search_failed(exc: Exception) -> HTTPException:
    logger.error("Category search failed: %s", type(exc).__name__)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Search failed")


@router.get("/search", response_model=SearchResponse)
async def search_categories(
    q: str = Query("", max_length=200, description="Search query"),  # noqa: B008
    limit: int = Query(25, ge=1, le=50, description="Maximum number of results"),  # noqa: B008
    fuzzy: bool = Query(True, description="Enable typo-tolerant matching"),  # noqa: B008
    current_shop: dict = Depends(get_current_shop),  # noqa: B008
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),  # noqa: B008
) -> SearchResponse:
    """Search the shop's categories by name."""
    shop_id = current_shop["shop_id"]
    logger.info("Category search: shop=%s, query=%r, limit=%d, fuzzy=%s", shop_id, q, limit, fuzzy)

    engine = _build_search_engine(session_factory)
    try:
        results = await engine.search(q, shop_id, limit, fuzzy_enabled=fuzzy)
    except SQLAlchemyError as exc:
        raise _search_failed(exc) from exc

    return SearchResponse(results=results, query=q, total=len(results), fuzzy=engine.uses_fuzzy(q, fuzzy))


@router.get("/cursor", response_model=CursorPage)
async def list_categories_cursor(
    cursor: str | None = Query(None, description="Opaque pagination cursor"),  # noqa: B008
    direction: PaginationDirection = Query(PaginationDirection.forward),  # noqa: B008
    limit: int = Query(10, ge=1, le=50),  # noqa: B008
    search: str = Query("", max_length=200),  # noqa: B008
    fuzzy: bool = Query(True),  # noqa: B008
    current_shop: dict = Depends(get_current_shop),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),  # noqa: B008
) -> CursorPage:
    """Cursor-paginated category listing, optionally narrowed by a search term."""
    shop_id = current_shop["shop_id"]
    logger.info(
        "Category cursor page: shop=%s, direction=%s, limit=%d, search=%r",
        shop_id,
        direction.value,
        limit,
        search,
    )

    paginator = _build_paginator(db, _build_search_engine(session_factory))
    try:
        return await paginator.paginate(
            shop_id,
            cursor=cursor,
            direction=direction,
            limit=limit,
            sort_by="name",
            sort_order=SortOrder.asc,
            name_filter=search,
            fuzzy_enabled=fuzzy,
        )
    except SQLAlchemyError as exc:
        raise _search_failed(exc) from exc


@router.get("/check-name", response_model=NameCheckResponse)
async def check_category_name(
    name: str = Query(..., min_length=1, max_length=255),  # noqa: B008
    exclude_id: str | None = Query(None),  # noqa: B008
    current_shop: dict = Depends(get_current_shop),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> NameCheckResponse:
    """Check whether a category name is already used in the shop."""
    taken = await is_name_taken(db, CATEGORY_TARGET, current_shop["shop_id"], name, exclude_id)
    return NameCheckResponse(name=name, taken=taken)
