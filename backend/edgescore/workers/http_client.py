import logging
import time
from dataclasses import dataclass

import httpx

from edgescore.core.config import get_settings
from edgescore.workers.errors import FetchError, TransientFetchError

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpFetchResult:
    html: str
    status_code: int
    duration_ms: int
    final_url: str


class HttpClient:
    """Plain GET retrieval with a fixed timeout and bounded redirect following."""

    def __init__(
        self,
        *,
        timeout_seconds: float | None = None,
        max_redirects: int | None = None,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds or settings.http_timeout_seconds
        self.max_redirects = settings.http_max_redirects if max_redirects is None else max_redirects
        self.user_agent = user_agent or settings.http_user_agent
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                follow_redirects=True,
                max_redirects=self.max_redirects,
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "text/html,application/xhtml+xml",
                    "Accept-Language": "en-US,en;q=0.9",
                },
                transport=self._transport,
            )
        return self._client

    async def fetch(self, url: str, *, source: str = "") -> HttpFetchResult:
        started = time.monotonic()
        try:
            response = await self._get_client().get(url)
        except httpx.TimeoutException as exc:
            raise TransientFetchError(source, url, f"timeout after {self.timeout_seconds}s") from exc
        except httpx.TooManyRedirects as exc:
            raise FetchError(source, url, f"more than {self.max_redirects} redirects") from exc
        except httpx.TransportError as exc:
            raise TransientFetchError(source, url, f"transport error: {exc}") from exc

        duration_ms = int((time.monotonic() - started) * 1000)
        if response.status_code >= 500:
            raise TransientFetchError(source, url, "upstream server error", response.status_code)
        if response.status_code == 429:
            raise TransientFetchError(source, url, "rate limited by upstream", response.status_code)
        if response.status_code >= 400:
            raise FetchError(source, url, "client error", response.status_code)

        logger.debug(
            "HTTP fetch complete",
            extra={"source": source, "status_code": response.status_code, "duration_ms": duration_ms},
        )
        return HttpFetchResult(
            html=response.text,
            status_code=response.status_code,
            duration_ms=duration_ms,
            final_url=str(response.url),
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
