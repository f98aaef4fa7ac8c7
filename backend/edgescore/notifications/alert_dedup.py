import logging

from redis.asyncio import Redis

from edgescore.core.config import get_settings

logger = logging.getLogger(__name__)


def alert_key(match_id: int, recommendation: str) -> str:
    return f"alert:sent:{match_id}:{recommendation}"


class AlertDedup:
    """24-hour "already alerted" records keyed by (match, recommended side)."""

    def __init__(self, redis: Redis | None, ttl_seconds: int | None = None) -> None:
        self.redis = redis
        self.ttl_seconds = get_settings().alert_dedup_ttl_seconds if ttl_seconds is None else ttl_seconds

    async def is_sent(self, match_id: int, recommendation: str) -> bool:
        if self.redis is None:
            return False
        try:
            return bool(await self.redis.get(alert_key(match_id, recommendation)))
        except Exception:
            logger.exception("Alert dedup redis read failed")
            return False

    async def mark_sent(self, match_id: int, recommendation: str) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.set(alert_key(match_id, recommendation), "1", ex=self.ttl_seconds)
        except Exception:
            logger.exception("Alert dedup redis write failed")
