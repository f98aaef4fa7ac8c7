import asyncio

import pytest

from edgescore.workers.browser_pool import BrowserPool
from edgescore.workers.errors import TransientFetchError


class FakePage:
    def __init__(self) -> None:
        self.visited: list[str] = []

    async def goto(self, url: str, **_kwargs) -> None:
        self.visited.append(url)

    async def content(self) -> str:
        return "<html>loaded</html>"


class FakeContext:
    def __init__(self) -> None:
        self.page = FakePage()
        self.closed = False

    async def new_page(self) -> FakePage:
        return self.page

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(self) -> None:
        self.contexts: list[FakeContext] = []

    async def new_context(self, **_kwargs) -> FakeContext:
        context = FakeContext()
        self.contexts.append(context)
        return context


def _pool(monkeypatch: pytest.MonkeyPatch, browser: FakeBrowser) -> BrowserPool:
    pool = BrowserPool(timeout_seconds=0.05)

    async def _get_browser() -> FakeBrowser:
        return browser

    monkeypatch.setattr(pool, "_get_browser", _get_browser)
    return pool


async def test_page_actions_run_before_capture(monkeypatch: pytest.MonkeyPatch) -> None:
    browser = FakeBrowser()
    clicked: list[str] = []

    async def expand(page: FakePage) -> None:
        clicked.append(page.visited[-1])

    result = await _pool(monkeypatch, browser).fetch("https://picks.example.com/nba", expand, source="fake")

    assert result.html == "<html>loaded</html>"
    assert clicked == ["https://picks.example.com/nba"]
    assert browser.contexts[0].closed is True


async def test_hanging_page_actions_time_out_as_transient(monkeypatch: pytest.MonkeyPatch) -> None:
    browser = FakeBrowser()

    async def never_finishes(_page: FakePage) -> None:
        await asyncio.Event().wait()

    with pytest.raises(TransientFetchError) as exc_info:
        await _pool(monkeypatch, browser).fetch("https://picks.example.com/nba", never_finishes, source="fake")

    assert exc_info.value.retryable is True
    assert "page actions timed out" in exc_info.value.reason
    assert browser.contexts[0].closed is True
