"""Tests for the search threshold policy and per-strategy caps."""

from __future__ import annotations

import pytest

from shelfwise.search.params import (
    CATEGORY_STRATEGY_LIMITS,
    PRODUCT_STRATEGY_LIMITS,
    max_edit_distance,
    similarity_threshold,
)
from shelfwise.search.strategies import MatchType


class TestSimilarityThreshold:
    @pytest.mark.parametrize(
        ("query", "expected"),
        [
            ("a", 0.10),
            ("ab", 0.10),
            ("abc", 0.15),
            ("abcd", 0.15),
            ("abcde", 0.25),
            ("abcdefgh", 0.25),
            ("abcdefghi", 0.35),
        ],
    )
    def test_bucket_boundaries(self, query, expected):
        assert similarity_threshold(query) == pytest.approx(expected)

    def test_threshold_grows_with_length(self):
        thresholds = [similarity_threshold("x" * n) for n in range(1, 20)]
        assert thresholds == sorted(thresholds)


class TestMaxEditDistance:
    def test_short_queries_allow_one_edit(self):
        assert max_edit_distance("ab") == 1
        assert max_edit_distance("abc") == 1

    def test_longer_queries_allow_three_edits(self):
        assert max_edit_distance("abcd") == 3
        assert max_edit_distance("hammer drill") == 3


class TestStrategyLimits:
    def test_every_strategy_has_a_cap(self):
        for match_type in MatchType:
            assert match_type.value in PRODUCT_STRATEGY_LIMITS
            assert match_type.value in CATEGORY_STRATEGY_LIMITS

    def test_product_caps(self):
        assert PRODUCT_STRATEGY_LIMITS == {
            "exact": 50,
            "prefix": 30,
            "substring": 25,
            "acronym": 20,
            "trigram": 15,
            "levenshtein": 10,
        }

    def test_category_caps_are_smaller(self):
        for name, cap in CATEGORY_STRATEGY_LIMITS.items():
            assert cap <= PRODUCT_STRATEGY_LIMITS[name]
