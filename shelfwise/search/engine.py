"""Multi-strategy catalog search engine.

Pipeline for one search call:

1. Strategy executors propose candidates (concurrently, one session each,
   or sequentially in priority order with early termination).
2. ``merge_candidates`` keeps one candidate per entity id: the best by
   priority, then score.
3. ``apply_precision_filter`` drops candidates missing any word of a
   multi-word query.
4. ``rank_candidates`` orders by priority desc, score desc, name asc and
   truncates.

Nothing is cached between calls.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shelfwise.search.strategies import (
    SIMPLE_STRATEGIES,
    STRATEGIES,
    MatchCandidate,
    SearchFilters,
    SearchTarget,
    Strategy,
    StrategyExecutor,
)
from shelfwise.utils.text import normalize_name

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 50
DEFAULT_MIN_FUZZY_QUERY_LENGTH = 2


class RankedResult(BaseModel):
    """A catalog item returned to callers.

    ``match_type`` and ``score`` are set when the item came out of the
    search pipeline and left empty for plain listing pages.
    """

    id: str
    name: str
    secondary_key: str | None = None
    shop_id: str
    match_type: str | None = None
    score: float | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_candidate(cls, candidate: MatchCandidate) -> RankedResult:
        entity = candidate.entity
        return cls(
            id=entity.id,
            name=entity.name,
            secondary_key=entity.secondary_key,
            shop_id=entity.shop_id,
            match_type=candidate.match_type.value,
            score=candidate.score,
            attributes=entity.attributes,
        )


def merge_candidates(candidate_lists: Iterable[Iterable[MatchCandidate]]) -> dict[str, MatchCandidate]:
    """Deduplicate candidates by entity id, keeping the best one.

    The result does not depend on the order of ``candidate_lists``:
    a candidate replaces the stored one only if ``better_than`` it.
    """
    merged: dict[str, MatchCandidate] = {}
    for candidates in candidate_lists:
        for candidate in candidates:
            existing = merged.get(candidate.entity.id)
            if existing is None or candidate.better_than(existing):
                merged[candidate.entity.id] = candidate
    return merged


def query_tokens(query: str) -> list[str]:
    """Split a query into lower-cased, non-empty words."""
    return query.lower().split()


def apply_precision_filter(candidates: Iterable[MatchCandidate], query: str) -> list[MatchCandidate]:
    """Keep candidates whose searchable text contains every query word.

    Single-word queries pass through unchanged.
    """
    candidates = list(candidates)
    tokens = query_tokens(query)
    if len(tokens) <= 1:
        return candidates
    return [c for c in candidates if all(token in c.entity.searchable_text for token in tokens)]


def _tie_break_key(candidate: MatchCandidate) -> tuple:
    name = candidate.entity.name
    return (-candidate.priority, -candidate.score, name.casefold(), name, candidate.entity.id)


def rank_candidates(candidates: Iterable[MatchCandidate], limit: int | None = None) -> list[MatchCandidate]:
    """Sort by priority desc, score desc, name asc; truncate after sorting."""
    ranked = sorted(candidates, key=_tie_break_key)
    if limit is not None:
        ranked = ranked[:limit]
    return ranked


class CatalogSearchEngine:
    """Multi-strategy fuzzy search over one entity kind.

    Args:
        session_factory: Factory for async sessions. Each strategy runs in
            its own session so the fan-out can execute concurrently.
        target: The searchable entity kind (products or categories).
        early_termination: Run strategies high-to-low priority and stop once
            enough entities are collected. Faster, but a strategy's cap can
            then decide inclusion instead of relevance, so results may
            differ from the full fan-out.
        min_fuzzy_length: Queries shorter than this skip the fuzzy
            strategies and use exact/prefix/substring only.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        target: SearchTarget,
        *,
        early_termination: bool = False,
        min_fuzzy_length: int = DEFAULT_MIN_FUZZY_QUERY_LENGTH,
    ) -> None:
        self._session_factory = session_factory
        self._target = target
        self._early_termination = early_termination
        self._min_fuzzy_length = min_fuzzy_length

    @property
    def target(self) -> SearchTarget:
        return self._target

    def uses_fuzzy(self, query: str, fuzzy_enabled: bool = True) -> bool:
        """Whether ``query`` goes through the six-strategy pipeline."""
        normalized = normalize_name(query)
        return fuzzy_enabled and len(normalized) >= self._min_fuzzy_length

    async def search(
        self,
        query: str,
        shop_id: str,
        max_results: int = DEFAULT_MAX_RESULTS,
        *,
        fuzzy_enabled: bool = True,
        filters: SearchFilters | None = None,
    ) -> list[RankedResult]:
        """Search the shop's catalog and return ranked results."""
        candidates = await self.rank(
            query, shop_id, max_results, fuzzy_enabled=fuzzy_enabled, filters=filters
        )
        return [RankedResult.from_candidate(c) for c in candidates]

    async def rank(
        self,
        query: str,
        shop_id: str,
        max_results: int = DEFAULT_MAX_RESULTS,
        *,
        fuzzy_enabled: bool = True,
        filters: SearchFilters | None = None,
    ) -> list[MatchCandidate]:
        """Run the pipeline and return ranked candidates.

        Blank queries return ``[]`` without touching the store. Short
        queries, or calls with fuzzy matching disabled, only run the
        exact, prefix and substring strategies.
        """
        normalized = normalize_name(query)
        if not normalized:
            return []

        if self.uses_fuzzy(normalized, fuzzy_enabled):
            strategies: Sequence[Strategy] = STRATEGIES
        else:
            strategies = SIMPLE_STRATEGIES

        if self._early_termination:
            merged = await self._collect_in_priority_order(normalized, shop_id, max_results, filters, strategies)
        else:
            merged = await self._collect_concurrently(normalized, shop_id, filters, strategies)

        filtered = apply_precision_filter(merged.values(), normalized)
        logger.debug(
            "%s search %r: %d merged, %d after precision filter",
            self._target.kind,
            normalized,
            len(merged),
            len(filtered),
        )
        return rank_candidates(filtered, max_results)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _collect_concurrently(
        self,
        query: str,
        shop_id: str,
        filters: SearchFilters | None,
        strategies: Sequence[Strategy],
    ) -> dict[str, MatchCandidate]:
        """Fan out every strategy, await all of them, then merge.

        The first strategy failure propagates; no partial merge is returned.
        """
        results = await asyncio.gather(
            *[self._run_strategy(strategy, query, shop_id, filters) for strategy in strategies]
        )
        return merge_candidates(results)

    async def _collect_in_priority_order(
        self,
        query: str,
        shop_id: str,
        max_results: int,
        filters: SearchFilters | None,
        strategies: Sequence[Strategy],
    ) -> dict[str, MatchCandidate]:
        """Run strategies from highest priority down, stopping early.

        Once an entity is matched, lower-priority strategies cannot improve
        it, so stopping only loses entities no stronger strategy found.
        """
        merged: dict[str, MatchCandidate] = {}
        for strategy in sorted(strategies, key=lambda s: s.priority, reverse=True):
            candidates = await self._run_strategy(strategy, query, shop_id, filters)
            merged = merge_candidates([merged.values(), candidates])
            if len(merged) >= max_results:
                logger.debug(
                    "Early termination after %s strategy with %d entities",
                    strategy.match_type.value,
                    len(merged),
                )
                break
        return merged

    async def _run_strategy(
        self,
        strategy: Strategy,
        query: str,
        shop_id: str,
        filters: SearchFilters | None,
    ) -> list[MatchCandidate]:
        async with self._session_factory() as session:
            executor = StrategyExecutor(session, self._target)
            return await executor.execute(strategy, query, shop_id, filters=filters)
