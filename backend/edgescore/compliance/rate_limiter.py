import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """Per-source minimum-interval gate.

    Each source id keeps its own clock. A caller reserves the next free slot
    for its source before suspending, so acquisitions for one source are
    spaced by at least ``min_delay_seconds`` while other sources never wait
    on it. Scope is a single process.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._next_slot: dict[str, float] = {}

    async def acquire(self, source_id: str, min_delay_seconds: float) -> float:
        """Wait for this source's slot; returns the seconds waited."""
        now = self._clock()
        previous = self._next_slot.get(source_id)
        slot = now if previous is None else max(now, previous + min_delay_seconds)
        # Reserved before the await so a concurrent caller queues behind it.
        self._next_slot[source_id] = slot

        wait = slot - now
        if wait > 0:
            logger.debug("Rate limit wait", extra={"source": source_id, "wait_seconds": round(wait, 3)})
            await self._sleep(wait)
        return wait

    def reset(self, source_id: str | None = None) -> None:
        if source_id is None:
            self._next_slot.clear()
        else:
            self._next_slot.pop(source_id, None)
