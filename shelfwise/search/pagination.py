"""Cursor and offset pagination over catalog listings and search results.

Two regimes:

- **standard**: keyset scan in the database. The cursor holds the sort
  value and id of the boundary row; ``limit + 1`` rows are fetched to
  detect a further page.
- **fuzzy**: the search pipeline ranks an oversized window in memory and
  the page is sliced out of it by locating the cursor's id. The window is
  re-read on every request, so concurrent inserts or deletes can shift
  positions between two page fetches. Catalog search is read-mostly and
  this staleness is accepted.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import math
import operator
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel
from sqlalchemy import Select, func, or_, select, tuple_
from sqlalchemy.ext.asyncio import AsyncSession

from shelfwise.search.engine import CatalogSearchEngine, RankedResult
from shelfwise.search.strategies import MatchCandidate, SearchFilters, SearchTarget
from shelfwise.utils.text import normalize_name

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MULTIPLIER = 10
DEFAULT_WINDOW_CEILING = 500
# Offset pages in the fuzzy regime rank a smaller window.
OFFSET_WINDOW_MULTIPLIER = 3

# JSON type of a keyset cursor value per sort field; created_at is an ISO string
SORT_VALUE_TYPES: dict[str, type] = {
    "name": str,
    "category": str,
    "selling_price": int,
    "purchase_price": int,
    "stock": int,
}


class PaginationDirection(str, Enum):
    forward = "forward"
    backward = "backward"


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


@dataclass(frozen=True)
class Cursor:
    """Decoded cursor: the boundary row's sort value and id."""

    value: Any
    id: str


class CursorPage(BaseModel):
    """One page of a cursor-paginated listing."""

    items: list[RankedResult]
    next_cursor: str | None = None
    prev_cursor: str | None = None
    has_next_page: bool = False
    has_prev_page: bool = False
    filtered_count: int = 0
    # Only computed for the first page
    total_count: int | None = None
    regime: str = "standard"


class OffsetPage(BaseModel):
    """One page of an offset-paginated listing."""

    items: list[RankedResult]
    total_count: int
    total_pages: int
    current_page: int
    regime: str = "standard"


def _encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def encode_cursor(value: Any, entity_id: str) -> str:
    """Encode a ``(sort value, id)`` pair as an opaque URL-safe token."""
    payload = json.dumps({"v": _encode_value(value), "id": entity_id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def _decode_sort_value(value: Any, sort_by: str | None) -> Any:
    """Coerce a cursor's sort value to the sort field's type.

    Raises ValueError when the cursor was issued under a different sort.
    """
    if sort_by is None:
        return value
    if sort_by == "created_at":
        if not isinstance(value, str):
            raise ValueError("created_at cursor value must be an ISO timestamp")
        return datetime.fromisoformat(value)
    expected = SORT_VALUE_TYPES.get(sort_by)
    if expected is not None and (not isinstance(value, expected) or isinstance(value, bool)):
        raise ValueError(f"cursor value {value!r} does not fit sort field {sort_by}")
    return value


def decode_cursor(token: str | None, sort_by: str | None = None) -> Cursor | None:
    """Decode a cursor token, or return None if it cannot be used.

    A token that fails to decode, or whose value does not fit ``sort_by``,
    means "start from the beginning", so callers never see an error for
    stale or foreign cursors.
    """
    if not token:
        return None
    try:
        padded = token + "=" * (-len(token) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
        entity_id = data["id"]
        if not isinstance(entity_id, str):
            raise ValueError("cursor id must be a string")
        value = _decode_sort_value(data["v"], sort_by)
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError):
        logger.warning("Ignoring undecodable cursor %r", token)
        return None
    return Cursor(value=value, id=entity_id)


def keyset_operator(direction: PaginationDirection, order: SortOrder):
    """Comparison that selects rows past the cursor.

    Forward over a descending sort walks towards smaller keys (``<``);
    backward walks towards larger ones (``>``). Ascending sorts invert both.
    """
    walking_down = (direction == PaginationDirection.forward) == (order == SortOrder.desc)
    return operator.lt if walking_down else operator.gt


def fuzzy_window_size(
    limit: int,
    multiplier: int = DEFAULT_WINDOW_MULTIPLIER,
    ceiling: int = DEFAULT_WINDOW_CEILING,
) -> int:
    """Size of the in-memory ranking window for a page of ``limit`` items."""
    return max(limit, min(limit * multiplier, ceiling))


def slice_ranked(
    ranked: list[MatchCandidate],
    cursor: Cursor | None,
    direction: PaginationDirection,
    limit: int,
) -> tuple[list[MatchCandidate], int, int]:
    """Slice one page out of a ranked window.

    Returns ``(page, start, end)`` with ``page == ranked[start:end]``. A
    cursor whose id is not in the window restarts from the first page.
    """
    index = None
    if cursor is not None:
        for position, candidate in enumerate(ranked):
            if candidate.entity.id == cursor.id:
                index = position
                break
        if index is None:
            logger.warning("Cursor id %s not in ranked window, restarting", cursor.id)

    if index is None:
        start, end = 0, limit
    elif direction == PaginationDirection.forward:
        start, end = index + 1, index + 1 + limit
    else:
        start, end = max(0, index - limit), index

    end = min(end, len(ranked))
    start = min(start, end)
    return ranked[start:end], start, end


def _window_sort_value(candidate: MatchCandidate, sort_by: str) -> Any:
    entity = candidate.entity
    if sort_by == "name":
        return entity.name
    if sort_by == "category":
        return entity.attributes.get("category_name") or ""
    return entity.attributes[sort_by]


def sort_window(ranked: list[MatchCandidate], sort_by: str, sort_order: SortOrder) -> list[MatchCandidate]:
    """Re-sort a ranked window by a display column.

    The sort is stable, so relevance order still decides among equal values.
    """
    return sorted(
        ranked,
        key=lambda c: _window_sort_value(c, sort_by),
        reverse=sort_order == SortOrder.desc,
    )


class CatalogPaginator:
    """Paginates one entity kind, choosing the regime per request.

    Args:
        session: Async session for keyset scans and counts.
        engine: Search engine used by the fuzzy regime.
        window_multiplier: Fuzzy window size relative to the page size.
        window_ceiling: Upper bound for the fuzzy window.
    """

    def __init__(
        self,
        session: AsyncSession,
        engine: CatalogSearchEngine,
        *,
        window_multiplier: int = DEFAULT_WINDOW_MULTIPLIER,
        window_ceiling: int = DEFAULT_WINDOW_CEILING,
    ) -> None:
        self._session = session
        self._engine = engine
        self._target: SearchTarget = engine.target
        self._window_multiplier = window_multiplier
        self._window_ceiling = window_ceiling

    async def paginate(
        self,
        shop_id: str,
        *,
        cursor: str | None = None,
        direction: PaginationDirection = PaginationDirection.forward,
        limit: int = 10,
        sort_by: str | None = None,
        sort_order: SortOrder | None = None,
        name_filter: str = "",
        filters: SearchFilters | None = None,
        fuzzy_enabled: bool = True,
    ) -> CursorPage:
        """Return one cursor page of the shop's catalog."""
        filters = filters or SearchFilters()
        name_filter = normalize_name(name_filter)
        if name_filter and self._engine.uses_fuzzy(name_filter, fuzzy_enabled):
            return await self._paginate_fuzzy(shop_id, cursor, direction, limit, name_filter, filters)

        sort_by = sort_by or self._target.default_sort
        sort_order = sort_order or SortOrder(self._target.default_order)
        return await self._paginate_keyset(
            shop_id, cursor, direction, limit, sort_by, sort_order, name_filter, filters
        )

    async def paginate_offset(
        self,
        shop_id: str,
        *,
        page: int = 1,
        limit: int = 10,
        sort_by: str | None = None,
        sort_order: SortOrder | None = None,
        name_filter: str = "",
        filters: SearchFilters | None = None,
        fuzzy_enabled: bool = True,
    ) -> OffsetPage:
        """Return one page by page number."""
        filters = filters or SearchFilters()
        name_filter = normalize_name(name_filter)
        offset = (page - 1) * limit

        if name_filter and self._engine.uses_fuzzy(name_filter, fuzzy_enabled):
            window = min(max(limit * OFFSET_WINDOW_MULTIPLIER, offset + limit), self._window_ceiling)
            ranked = await self._engine.rank(name_filter, shop_id, window, filters=filters)
            if sort_by and sort_by != self._target.default_sort:
                ranked = sort_window(ranked, sort_by, sort_order or SortOrder.asc)
            items = [RankedResult.from_candidate(c) for c in ranked[offset : offset + limit]]
            return OffsetPage(
                items=items,
                total_count=len(ranked),
                total_pages=math.ceil(len(ranked) / limit),
                current_page=page,
                regime="fuzzy",
            )

        sort_by = sort_by or self._target.default_sort
        sort_order = sort_order or SortOrder(self._target.default_order)
        sort_column = self._target.sort_columns[sort_by]
        id_column = self._target.id_column
        order = (sort_column.desc(), id_column.desc()) if sort_order == SortOrder.desc else (sort_column, id_column)

        stmt = self._filtered(self._target.build_select(), shop_id, name_filter, filters)
        stmt = stmt.order_by(*order).offset(offset).limit(limit)
        result = await self._session.execute(stmt)
        rows = result.fetchall()
        total = await self._count(shop_id, name_filter, filters)

        return OffsetPage(
            items=[self._plain_item(row) for row in rows],
            total_count=total,
            total_pages=math.ceil(total / limit),
            current_page=page,
        )

    # ------------------------------------------------------------------
    # Regimes
    # ------------------------------------------------------------------

    async def _paginate_keyset(
        self,
        shop_id: str,
        token: str | None,
        direction: PaginationDirection,
        limit: int,
        sort_by: str,
        sort_order: SortOrder,
        name_filter: str,
        filters: SearchFilters,
    ) -> CursorPage:
        target = self._target
        sort_column = target.sort_columns[sort_by]
        cursor = decode_cursor(token, sort_by)

        stmt = target.build_select().add_columns(sort_column.label("sort_value"))
        stmt = self._filtered(stmt, shop_id, name_filter, filters)
        if cursor is not None:
            compare = keyset_operator(direction, sort_order)
            stmt = stmt.where(compare(tuple_(sort_column, target.id_column), tuple_(cursor.value, cursor.id)))

        # Backward pages scan in reverse and are flipped back afterwards
        scan_desc = (sort_order == SortOrder.desc) == (direction == PaginationDirection.forward)
        if scan_desc:
            stmt = stmt.order_by(sort_column.desc(), target.id_column.desc())
        else:
            stmt = stmt.order_by(sort_column, target.id_column)
        stmt = stmt.limit(limit + 1)

        result = await self._session.execute(stmt)
        rows = list(result.fetchall())
        has_more = len(rows) > limit
        rows = rows[:limit]
        if direction == PaginationDirection.backward:
            rows.reverse()

        if direction == PaginationDirection.forward:
            has_next, has_prev = has_more, cursor is not None
        else:
            has_next, has_prev = cursor is not None, has_more
        # An empty page past either end has no cursor to continue from
        if not rows:
            has_next = has_prev = False

        filtered_count = await self._count(shop_id, name_filter, filters)
        total_count = await self._count(shop_id) if cursor is None else None

        return CursorPage(
            items=[self._plain_item(row) for row in rows],
            next_cursor=encode_cursor(rows[-1].sort_value, str(rows[-1].id)) if has_next and rows else None,
            prev_cursor=encode_cursor(rows[0].sort_value, str(rows[0].id)) if has_prev and rows else None,
            has_next_page=has_next,
            has_prev_page=has_prev,
            filtered_count=filtered_count,
            total_count=total_count,
        )

    async def _paginate_fuzzy(
        self,
        shop_id: str,
        token: str | None,
        direction: PaginationDirection,
        limit: int,
        query: str,
        filters: SearchFilters,
    ) -> CursorPage:
        cursor = decode_cursor(token)
        window = fuzzy_window_size(limit, self._window_multiplier, self._window_ceiling)
        ranked = await self._engine.rank(query, shop_id, window, filters=filters)
        page, start, end = slice_ranked(ranked, cursor, direction, limit)

        has_prev = bool(page) and start > 0
        has_next = bool(page) and end < len(ranked)
        first_page = start == 0
        total_count = await self._count(shop_id) if first_page else None

        return CursorPage(
            items=[RankedResult.from_candidate(c) for c in page],
            next_cursor=encode_cursor(page[-1].score, page[-1].entity.id) if has_next and page else None,
            prev_cursor=encode_cursor(page[0].score, page[0].entity.id) if has_prev and page else None,
            has_next_page=has_next,
            has_prev_page=has_prev,
            filtered_count=len(ranked),
            total_count=total_count,
            regime="fuzzy",
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _filtered(self, stmt: Select, shop_id: str, name_filter: str = "", filters: SearchFilters | None = None) -> Select:
        target = self._target
        stmt = stmt.where(target.shop_column == shop_id)
        if name_filter:
            lowered = name_filter.lower()
            stmt = stmt.where(or_(*[f.contains(lowered, autoescape=True) for f in target.match_fields()]))
        if filters is not None:
            stmt = target.apply_filters(stmt, filters)
        return stmt

    async def _count(self, shop_id: str, name_filter: str = "", filters: SearchFilters | None = None) -> int:
        stmt = self._filtered(select(func.count(self._target.id_column)), shop_id, name_filter, filters)
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    def _plain_item(self, row: Any) -> RankedResult:
        entity = self._target.to_entity(row)
        return RankedResult(
            id=entity.id,
            name=entity.name,
            secondary_key=entity.secondary_key,
            shop_id=entity.shop_id,
            attributes=entity.attributes,
        )
