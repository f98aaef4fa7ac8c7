import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from edgescore.core.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CachedRobots:
    disallow: tuple[str, ...]
    fetched_at: float


def parse_disallow_rules(robots_txt: str) -> tuple[str, ...]:
    """Collect ``Disallow`` prefixes of the ``User-agent: *`` group.

    Comments are stripped and empty ``Disallow`` values (which allow
    everything) are ignored. Other agents and directives are not evaluated.
    """
    rules: list[str] = []
    in_wildcard_group = False
    for raw_line in robots_txt.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue
        directive, _, value = line.partition(":")
        directive = directive.strip().lower()
        value = value.strip()

        if directive == "user-agent":
            in_wildcard_group = value == "*"
        elif directive == "disallow" and in_wildcard_group and value:
            rules.append(value)
    return tuple(rules)


class RobotsChecker:
    def __init__(
        self,
        *,
        ttl_seconds: float | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = get_settings()
        self.ttl_seconds = settings.robots_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.timeout = settings.robots_timeout_seconds if timeout is None else timeout
        self.user_agent = user_agent or settings.http_user_agent
        self._client = client
        self._clock = clock
        self._cache: dict[str, _CachedRobots] = {}

    async def _fetch_rules(self, base_url: str) -> tuple[str, ...] | None:
        url = f"{base_url.rstrip('/')}/robots.txt"
        headers = {"User-Agent": self.user_agent}
        try:
            if self._client is not None:
                response = await self._client.get(url, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("robots.txt fetch failed; allowing", extra={"base_url": base_url, "error": str(exc)})
            return None

        if response.status_code in (404, 410):
            return ()
        if response.status_code >= 400:
            logger.warning(
                "robots.txt fetch returned error status; allowing",
                extra={"base_url": base_url, "status_code": response.status_code},
            )
            return None
        return parse_disallow_rules(response.text)

    async def is_allowed(self, base_url: str, path: str) -> bool:
        now = self._clock()
        cached = self._cache.get(base_url)
        if cached is None or now - cached.fetched_at >= self.ttl_seconds:
            rules = await self._fetch_rules(base_url)
            if rules is None:
                return True
            cached = _CachedRobots(disallow=rules, fetched_at=now)
            self._cache[base_url] = cached

        path = path or "/"
        for prefix in cached.disallow:
            if path.startswith(prefix):
                logger.info("Path disallowed by robots.txt", extra={"base_url": base_url, "path": path, "rule": prefix})
                return False
        return True
