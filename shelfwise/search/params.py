"""Centralized search parameter management.

Threshold policy and per-strategy result caps for the multi-strategy
catalog search. Everything here is a pure function of the query text or a
constant table, so it can be read and tested in isolation.

Usage in strategy executors::

    from shelfwise.search.params import max_edit_distance, similarity_threshold
    threshold = similarity_threshold(query)
"""

from __future__ import annotations

DEFAULT_SEARCH_PARAMS: dict[str, float | int] = {
    # Trigram similarity thresholds, bucketed by query length
    "trigram_very_short_length": 2,
    "trigram_very_short_threshold": 0.10,
    "trigram_short_length": 4,
    "trigram_short_threshold": 0.15,
    "trigram_medium_length": 8,
    "trigram_medium_threshold": 0.25,
    "trigram_long_threshold": 0.35,
    # Levenshtein distance limits
    "levenshtein_short_query_length": 3,
    "levenshtein_short_query_max_distance": 1,
    "levenshtein_max_distance": 3,
}

# Per-strategy caps: how many candidates each strategy may contribute.
PRODUCT_STRATEGY_LIMITS: dict[str, int] = {
    "exact": 50,
    "prefix": 30,
    "substring": 25,
    "acronym": 20,
    "trigram": 15,
    "levenshtein": 10,
}

CATEGORY_STRATEGY_LIMITS: dict[str, int] = {
    "exact": 20,
    "prefix": 15,
    "substring": 10,
    "acronym": 10,
    "trigram": 8,
    "levenshtein": 5,
}


def similarity_threshold(query: str) -> float:
    """Return the minimum trigram similarity for a query of this length.

    Very short queries carry little signal, so the bar is kept low for them
    and raised as the query grows.
    """
    params = DEFAULT_SEARCH_PARAMS
    length = len(query)
    if length <= params["trigram_very_short_length"]:
        return params["trigram_very_short_threshold"]
    if length <= params["trigram_short_length"]:
        return params["trigram_short_threshold"]
    if length <= params["trigram_medium_length"]:
        return params["trigram_medium_threshold"]
    return params["trigram_long_threshold"]


def max_edit_distance(query: str) -> int:
    """Return the largest Levenshtein distance tolerated for this query."""
    params = DEFAULT_SEARCH_PARAMS
    if len(query) <= params["levenshtein_short_query_length"]:
        return int(params["levenshtein_short_query_max_distance"])
    return int(params["levenshtein_max_distance"])
