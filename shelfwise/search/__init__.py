"""Multi-strategy catalog search package."""

from shelfwise.search.engine import (
    CatalogSearchEngine,
    RankedResult,
    apply_precision_filter,
    merge_candidates,
    rank_candidates,
)
from shelfwise.search.pagination import CatalogPaginator, CursorPage, OffsetPage
from shelfwise.search.strategies import (
    CATEGORY_TARGET,
    PRODUCT_TARGET,
    STRATEGIES,
    MatchCandidate,
    MatchType,
    SearchableEntity,
    SearchFilters,
    StrategyExecutor,
)

__all__ = [
    "CATEGORY_TARGET",
    "PRODUCT_TARGET",
    "STRATEGIES",
    "CatalogPaginator",
    "CatalogSearchEngine",
    "CursorPage",
    "MatchCandidate",
    "MatchType",
    "OffsetPage",
    "RankedResult",
    "SearchFilters",
    "SearchableEntity",
    "StrategyExecutor",
    "apply_precision_filter",
    "merge_candidates",
    "rank_candidates",
]
