"""Catalog lookups that sit beside search.

``is_name_taken`` backs the "check name" endpoints used by create/edit
forms. Names are compared after normalization, case-sensitively, within one
shop, matching the unique constraints on the tables.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shelfwise.search.strategies import SearchTarget
from shelfwise.utils.text import normalize_name


async def is_name_taken(
    session: AsyncSession,
    target: SearchTarget,
    shop_id: str,
    name: str,
    exclude_id: str | None = None,
) -> bool:
    """Return True if another entity in the shop already uses ``name``.

    Args:
        session: Async database session.
        target: Products or categories.
        shop_id: Shop to check within.
        name: Candidate name; normalized before comparison.
        exclude_id: Entity to ignore (the one being edited).
    """
    normalized = normalize_name(name)
    if not normalized:
        return False

    stmt = select(target.id_column).where(
        target.shop_column == shop_id,
        target.name_column == normalized,
    )
    if exclude_id:
        stmt = stmt.where(target.id_column != exclude_id)

    result = await session.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None
