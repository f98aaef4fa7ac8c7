"""Engine and session factory construction.

The worker and CLI share one lazily built factory for the configured
database; tests build their own against in-memory SQLite.
"""

import logging
from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from edgescore.core.config import get_settings

logger = logging.getLogger(__name__)


def create_engine_for_url(database_url: str) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        # In-memory SQLite lives on one connection; every session must share it.
        return create_async_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(database_url, future=True, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    settings = get_settings()
    source = settings.resolved_database_url_source
    logger.info(
        "Database URL resolved",
        extra={
            "database_url_source": source,
            "database_host": settings.postgres_host if source == "postgres_fallback" else None,
            "database_name": settings.postgres_db if source == "postgres_fallback" else None,
        },
    )
    return create_session_factory(create_engine_for_url(settings.resolved_database_url))


async def dispose_engine() -> None:
    if get_session_factory.cache_info().currsize:
        engine = get_session_factory().kw["bind"]
        await engine.dispose()
        get_session_factory.cache_clear()
