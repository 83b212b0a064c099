"""Catalog text utility functions."""

from __future__ import annotations


def normalize_name(name: str | None) -> str:
    """Normalize a product/category name or search query.

    Trims surrounding whitespace and collapses inner whitespace runs to a
    single space. Case, punctuation and non-ASCII characters are kept.
    """
    if not name:
        return ""
    return " ".join(name.split())
