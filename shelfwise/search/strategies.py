"""Match strategies for catalog search.

Six strategies propose candidates for a query, each as one parameterized
SQL statement against PostgreSQL:

| Strategy    | Priority | Score                          | Store feature        |
|-------------|---------:|--------------------------------|----------------------|
| exact       |        6 | 1.0                            | ``lower(x) = q``     |
| prefix      |        5 | 0.9                            | ``LIKE 'q%'``        |
| substring   |        4 | 0.8                            | ``LIKE '%q%'``       |
| acronym     |        3 | 0.7                            | regex ``~ 'q.*1'``   |
| trigram     |        2 | ``similarity()`` (pg_trgm)     | pg_trgm              |
| levenshtein |        1 | ``1 - distance / max length``  | fuzzystrmatch        |

Strategies are rows in the ``STRATEGIES`` table; ``StrategyExecutor``
turns a row plus a ``SearchTarget`` (products or categories) into a
statement and maps the rows back to ``MatchCandidate`` objects.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy import Float, Select, and_, cast, func, literal_column, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from shelfwise.models import Category, Product
from shelfwise.search.params import (
    CATEGORY_STRATEGY_LIMITS,
    PRODUCT_STRATEGY_LIMITS,
    max_edit_distance,
    similarity_threshold,
)

logger = logging.getLogger(__name__)

# fuzzystrmatch's levenshtein() rejects arguments longer than this.
LEVENSHTEIN_MAX_INPUT = 255

_REGEX_SPECIAL_RE = re.compile(r"([.*+?^${}()|\[\]\\])")


class MatchType(StrEnum):
    EXACT = "exact"
    PREFIX = "prefix"
    SUBSTRING = "substring"
    ACRONYM = "acronym"
    TRIGRAM = "trigram"
    LEVENSHTEIN = "levenshtein"


PRIORITIES: dict[MatchType, int] = {
    MatchType.EXACT: 6,
    MatchType.PREFIX: 5,
    MatchType.SUBSTRING: 4,
    MatchType.ACRONYM: 3,
    MatchType.TRIGRAM: 2,
    MatchType.LEVENSHTEIN: 1,
}


class SearchableEntity(BaseModel):
    """A catalog row exposed to search.

    ``attributes`` carries display fields (price, stock, product count...)
    that search passes through untouched.
    """

    id: str
    name: str
    secondary_key: str | None = None
    shop_id: str
    attributes: dict[str, Any] = Field(default_factory=dict)

    @property
    def searchable_text(self) -> str:
        """Lower-cased name plus secondary key, used by token filtering."""
        if self.secondary_key:
            return f"{self.name} {self.secondary_key}".lower()
        return self.name.lower()


@dataclass(frozen=True)
class MatchCandidate:
    """An entity proposed by one strategy, alive for one search call."""

    entity: SearchableEntity
    match_type: MatchType
    score: float

    @property
    def priority(self) -> int:
        return PRIORITIES[self.match_type]

    def better_than(self, other: MatchCandidate) -> bool:
        """Priority strictly dominates; score only breaks priority ties."""
        if self.priority != other.priority:
            return self.priority > other.priority
        return self.score > other.score


@dataclass(frozen=True)
class SearchFilters:
    """Optional narrowing applied inside every strategy statement."""

    category_id: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None


def build_subsequence_pattern(query: str) -> str:
    """Build a regex matching the query's characters in order.

    ``"p1"`` becomes ``"p.*1"``, so it matches ``"product-1"``. Regex
    metacharacters in the query are escaped first.
    """
    chars = [_REGEX_SPECIAL_RE.sub(r"\\\1", char) for char in query.lower()]
    return ".*".join(chars)


# ---------------------------------------------------------------------------
# Strategy table
# ---------------------------------------------------------------------------

Predicate = Callable[[ColumnElement, str], ColumnElement[bool]]
ScoreBuilder = Callable[[list[ColumnElement], ColumnElement, str], ColumnElement]


def _fixed_score(value: float) -> ScoreBuilder:
    def build(fields: list[ColumnElement], name: ColumnElement, query: str) -> ColumnElement:
        return literal_column(repr(value), Float)

    return build


def _trigram_score(fields: list[ColumnElement], name: ColumnElement, query: str) -> ColumnElement:
    # GREATEST ignores NULLs, so a missing SKU never lowers the score
    return func.greatest(*[func.similarity(f, query) for f in fields])


def _levenshtein_score(fields: list[ColumnElement], name: ColumnElement, query: str) -> ColumnElement:
    distance = func.least(*[func.levenshtein(f, query) for f in fields])
    return 1.0 - cast(distance, Float) / func.greatest(func.length(name), len(query))


@dataclass(frozen=True)
class Strategy:
    """One row of the strategy table."""

    match_type: MatchType
    predicate: Predicate
    score: ScoreBuilder
    rank_by_score: bool = False

    @property
    def priority(self) -> int:
        return PRIORITIES[self.match_type]


STRATEGIES: tuple[Strategy, ...] = (
    Strategy(MatchType.EXACT, lambda f, q: f == q, _fixed_score(1.0)),
    Strategy(MatchType.PREFIX, lambda f, q: f.startswith(q, autoescape=True), _fixed_score(0.9)),
    Strategy(MatchType.SUBSTRING, lambda f, q: f.contains(q, autoescape=True), _fixed_score(0.8)),
    Strategy(MatchType.ACRONYM, lambda f, q: f.op("~")(build_subsequence_pattern(q)), _fixed_score(0.7)),
    Strategy(
        MatchType.TRIGRAM,
        lambda f, q: func.similarity(f, q) > similarity_threshold(q),
        _trigram_score,
        rank_by_score=True,
    ),
    Strategy(
        MatchType.LEVENSHTEIN,
        lambda f, q: func.levenshtein(f, q) <= max_edit_distance(q),
        _levenshtein_score,
        rank_by_score=True,
    ),
)

STRATEGIES_BY_TYPE: dict[MatchType, Strategy] = {s.match_type: s for s in STRATEGIES}

# Strategies used when fuzzy matching is off or the query is too short.
SIMPLE_STRATEGIES: tuple[Strategy, ...] = tuple(
    STRATEGIES_BY_TYPE[t] for t in (MatchType.EXACT, MatchType.PREFIX, MatchType.SUBSTRING)
)


# ---------------------------------------------------------------------------
# Search targets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SearchTarget:
    """Describes one searchable entity kind for the generic executor."""

    kind: str
    limits: dict[str, int]
    build_select: Callable[[], Select]
    id_column: Any
    name_column: Any
    key_column: Any | None
    shop_column: Any
    to_entity: Callable[[Any], SearchableEntity]
    apply_filters: Callable[[Select, SearchFilters], Select]
    sort_columns: dict[str, Any] = field(default_factory=dict)
    default_sort: str = "name"
    default_order: str = "asc"

    def match_fields(self) -> list[ColumnElement]:
        """Lower-cased columns every strategy matches against."""
        fields = [func.lower(self.name_column)]
        if self.key_column is not None:
            fields.append(func.lower(self.key_column))
        return fields


def _product_select() -> Select:
    return select(
        Product.id,
        Product.name,
        Product.sku,
        Product.shop_id,
        Product.category_id,
        Category.name.label("category_name"),
        Product.stock,
        Product.selling_price,
        Product.purchase_price,
        Product.unit,
        Product.created_at,
    ).outerjoin(Category, Product.category_id == Category.id)


def _product_entity(row: Any) -> SearchableEntity:
    return SearchableEntity(
        id=str(row.id),
        name=row.name,
        secondary_key=row.sku,
        shop_id=str(row.shop_id),
        attributes={
            "category_id": row.category_id,
            "category_name": row.category_name,
            "stock": row.stock,
            "selling_price": row.selling_price,
            "purchase_price": row.purchase_price,
            "unit": row.unit,
            "created_at": row.created_at,
        },
    )


def _product_filters(stmt: Select, filters: SearchFilters) -> Select:
    if filters.category_id is not None:
        stmt = stmt.where(Product.category_id == filters.category_id)
    if filters.created_from is not None:
        stmt = stmt.where(Product.created_at >= filters.created_from)
    if filters.created_to is not None:
        stmt = stmt.where(Product.created_at <= filters.created_to)
    return stmt


def _category_select() -> Select:
    return (
        select(
            Category.id,
            Category.name,
            Category.shop_id,
            func.count(Product.id).label("product_count"),
        )
        .outerjoin(Product, Product.category_id == Category.id)
        .group_by(Category.id)
    )


def _category_entity(row: Any) -> SearchableEntity:
    return SearchableEntity(
        id=str(row.id),
        name=row.name,
        shop_id=str(row.shop_id),
        attributes={"product_count": int(row.product_count or 0)},
    )


def _category_filters(stmt: Select, filters: SearchFilters) -> Select:
    return stmt


PRODUCT_TARGET = SearchTarget(
    kind="product",
    limits=PRODUCT_STRATEGY_LIMITS,
    build_select=_product_select,
    id_column=Product.id,
    name_column=Product.name,
    key_column=Product.sku,
    shop_column=Product.shop_id,
    to_entity=_product_entity,
    apply_filters=_product_filters,
    sort_columns={
        "created_at": Product.created_at,
        "name": Product.name,
        "selling_price": Product.selling_price,
        "purchase_price": Product.purchase_price,
        "stock": Product.stock,
        "category": func.coalesce(Category.name, ""),
    },
    default_sort="created_at",
    default_order="desc",
)

CATEGORY_TARGET = SearchTarget(
    kind="category",
    limits=CATEGORY_STRATEGY_LIMITS,
    build_select=_category_select,
    id_column=Category.id,
    name_column=Category.name,
    key_column=None,
    shop_column=Category.shop_id,
    to_entity=_category_entity,
    apply_filters=_category_filters,
    sort_columns={"name": Category.name},
    default_sort="name",
    default_order="asc",
)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class StrategyExecutor:
    """Runs one strategy against the store for one search target.

    Args:
        session: An async SQLAlchemy session for database queries.
        target: The entity kind being searched.
    """

    def __init__(self, session: AsyncSession, target: SearchTarget) -> None:
        self._session = session
        self._target = target

    def build_statement(
        self,
        strategy: Strategy,
        query: str,
        shop_id: str,
        limit: int,
        filters: SearchFilters | None = None,
    ) -> Select:
        """Build the tenant-scoped statement for ``strategy``.

        ``query`` must already be normalized; it is lower-cased here to
        match the lower-cased columns.
        """
        target = self._target
        lowered = query.lower()
        fields = target.match_fields()
        score = strategy.score(fields, target.name_column, lowered).label("match_score")

        stmt = (
            target.build_select()
            .add_columns(score)
            .where(
                and_(
                    target.shop_column == shop_id,
                    or_(*[strategy.predicate(f, lowered) for f in fields]),
                )
            )
        )
        stmt = target.apply_filters(stmt, filters or SearchFilters())

        if strategy.rank_by_score:
            stmt = stmt.order_by(score.desc(), target.name_column, target.id_column)
        else:
            stmt = stmt.order_by(target.name_column, target.id_column)
        return stmt.limit(limit)

    async def execute(
        self,
        strategy: Strategy,
        query: str,
        shop_id: str,
        limit: int | None = None,
        filters: SearchFilters | None = None,
    ) -> list[MatchCandidate]:
        """Execute ``strategy`` and return its candidates, best first.

        Store errors are logged and re-raised; a search must never continue
        with a strategy silently missing.
        """
        if limit is None:
            limit = self._target.limits[strategy.match_type]
        if strategy.match_type == MatchType.LEVENSHTEIN and len(query) > LEVENSHTEIN_MAX_INPUT:
            return []

        stmt = self.build_statement(strategy, query, shop_id, limit, filters)
        try:
            result = await self._session.execute(stmt)
        except Exception:
            logger.exception(
                "%s strategy failed for %s query %r (shop=%s)",
                strategy.match_type.value,
                self._target.kind,
                query,
                shop_id,
            )
            raise

        rows = result.fetchall()
        candidates = [
            MatchCandidate(
                entity=self._target.to_entity(row),
                match_type=strategy.match_type,
                score=float(row.match_score),
            )
            for row in rows
        ]
        logger.debug(
            "%s strategy: %d %s candidates for %r",
            strategy.match_type.value,
            len(candidates),
            self._target.kind,
            query,
        )
        return candidates
