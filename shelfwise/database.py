"""Database engine, sessions and the declarative base.

A single search request fans out into one session per match strategy, so
the pool is sized from settings rather than left at SQLAlchemy's default
of five connections. Every connection tags itself with an
``application_name`` and a ``statement_timeout`` so a runaway trigram or
regex scan is cancelled by PostgreSQL instead of holding a connection.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shelfwise.config import Settings, get_settings

APPLICATION_NAME = "shelfwise"

# Expression indexes created with raw SQL in the fuzzy search migration.
# They are not declared on the models, so autogenerate must not drop them.
SEARCH_INDEX_NAMES = frozenset(
    {
        "idx_products_name_trgm",
        "idx_products_sku_trgm",
        "idx_products_name_prefix",
        "idx_products_sku_prefix",
        "idx_products_shop_lower_name",
        "idx_categories_name_trgm",
        "idx_categories_name_prefix",
    }
)


def engine_options(settings: Settings) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine``."""
    return {
        "echo": False,
        "pool_pre_ping": True,
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "connect_args": {
            "server_settings": {
                "application_name": APPLICATION_NAME,
                "statement_timeout": str(settings.DATABASE_STATEMENT_TIMEOUT_MS),
            }
        },
    }


def include_in_autogenerate(obj, name, type_, reflected, compare_to) -> bool:
    """Alembic ``include_object`` hook that leaves the search indexes alone."""
    if type_ == "index" and reflected and compare_to is None:
        return name not in SEARCH_INDEX_NAMES
    return True


_settings = get_settings()
engine = create_async_engine(_settings.async_database_url, **engine_options(_settings))
async_session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; committed on success, rolled back on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for code that needs several concurrent sessions.

    An AsyncSession cannot run statements concurrently, so the strategy
    fan-out opens its own session per strategy.
    """
    return async_session_factory
