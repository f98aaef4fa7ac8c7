import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from edgescore.core.config import get_settings
from edgescore.workers.errors import TransientFetchError

settings = get_settings()
logger = logging.getLogger(__name__)

CHROME_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)

PageActions = Callable[[Page], Awaitable[None]]


@dataclass(frozen=True)
class BrowserFetchResult:
    html: str
    duration_ms: int


class BrowserPool:
    """One lazily launched Chromium per process; every fetch gets its own context."""

    def __init__(self, *, timeout_seconds: float | None = None, headless: bool = True) -> None:
        self.timeout_seconds = timeout_seconds or settings.browser_timeout_seconds
        self.headless = headless
        self._lock = asyncio.Lock()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def _get_browser(self) -> Browser:
        async with self._lock:
            if self._browser is None or not self._browser.is_connected():
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless,
                    args=["--no-sandbox", "--disable-setuid-sandbox"],
                )
                logger.info("Browser launched")
            return self._browser

    async def fetch(self, url: str, actions: PageActions | None = None, *, source: str = "") -> BrowserFetchResult:
        browser = await self._get_browser()
        started = time.monotonic()
        context = await browser.new_context(
            user_agent=CHROME_USER_AGENT,
            viewport={"width": settings.browser_viewport_width, "height": settings.browser_viewport_height},
        )
        try:
            page = await context.new_page()
            await page.goto(url, wait_until="networkidle", timeout=self.timeout_seconds * 1000)
            if actions is not None:
                await asyncio.wait_for(actions(page), timeout=self.timeout_seconds)
            html = await page.content()
        except PlaywrightTimeoutError as exc:
            raise TransientFetchError(source, url, f"navigation timeout after {self.timeout_seconds}s") from exc
        except asyncio.TimeoutError as exc:
            raise TransientFetchError(source, url, f"page actions timed out after {self.timeout_seconds}s") from exc
        except PlaywrightError as exc:
            raise TransientFetchError(source, url, f"browser error: {exc}") from exc
        finally:
            await context.close()

        return BrowserFetchResult(html=html, duration_ms=int((time.monotonic() - started) * 1000))

    async def close(self) -> None:
        async with self._lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
