import logging

from sqlalchemy.ext.asyncio import AsyncSession

from edgescore.adapters.registry import AdapterRegistry
from edgescore.core.db_utils import insert_for
from edgescore.models.enums import FetchMethod
from edgescore.models.source import Source

logger = logging.getLogger(__name__)


async def sync_sources(db: AsyncSession, registry: AdapterRegistry) -> int:
    """Upsert one ``sources`` row per registered adapter, keyed by adapter id."""
    synced = 0
    for adapter in registry:
        config = adapter.config
        values = {
            "slug": config.id,
            "name": config.name,
            "base_url": config.base_url,
            "fetch_method": FetchMethod(config.fetch_method).value,
            "is_active": True,
        }
        stmt = insert_for(db, Source).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["slug"],
            set_={
                "name": stmt.excluded.name,
                "base_url": stmt.excluded.base_url,
                "fetch_method": stmt.excluded.fetch_method,
                "is_active": stmt.excluded.is_active,
            },
        )
        await db.execute(stmt)
        synced += 1
    await db.commit()
    logger.info("Sources synced", extra={"source_count": synced})
    return synced
