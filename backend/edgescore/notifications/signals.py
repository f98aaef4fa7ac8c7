"""Outbound pipeline signals: scored-cache invalidation and change broadcasts.

Both are best effort. Without redis they log and return; redis errors are
logged and never fail the job that raised the signal.
"""

import json
import logging
from datetime import UTC, date, datetime
from typing import Any

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

EVENTS_CHANNEL = "edgescore:events"
PREDICTIONS_UPDATED = "predictions:updated"


def scored_cache_pattern(sport: str, game_date: date | str) -> str:
    day = game_date.isoformat() if isinstance(game_date, date) else game_date
    return f"scored:{sport}:{day}:*"


class PipelineSignals:
    def __init__(self, redis: Redis | None, *, channel: str = EVENTS_CHANNEL) -> None:
        self.redis = redis
        self.channel = channel

    async def invalidate_cache(self, sport: str, game_date: date | str) -> int:
        if self.redis is None:
            return 0
        pattern = scored_cache_pattern(sport, game_date)
        deleted = 0
        try:
            batch: list[str] = []
            async for key in self.redis.scan_iter(match=pattern, count=100):
                batch.append(key)
                if len(batch) >= 100:
                    deleted += await self.redis.delete(*batch)
                    batch = []
            if batch:
                deleted += await self.redis.delete(*batch)
        except Exception:
            logger.exception("Scored cache invalidation failed", extra={"pattern": pattern})
            return deleted
        if deleted:
            logger.debug("Scored cache invalidated", extra={"pattern": pattern, "deleted": deleted})
        return deleted

    async def broadcast(self, event: str, data: dict[str, Any]) -> bool:
        if self.redis is None:
            return False
        message = json.dumps({"event": event, "data": data, "ts": datetime.now(UTC).isoformat()})
        try:
            await self.redis.publish(self.channel, message)
        except Exception:
            logger.exception("Change broadcast failed", extra={"event": event})
            return False
        return True

    async def predictions_updated(self, sport: str, count: int, game_dates: set[date]) -> None:
        for game_date in sorted(game_dates):
            await self.invalidate_cache(sport, game_date)
        await self.broadcast(PREDICTIONS_UPDATED, {"sport": sport, "count": count})
