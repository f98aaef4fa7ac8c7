import fnmatch
import os
from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

os.environ["APP_ENV"] = "testing"
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "")
os.environ.setdefault("TELEGRAM_CHAT_ID", "")

from edgescore.adapters.base import BackoffPolicy, BaseAdapter, RawPrediction, SiteAdapterConfig  # noqa: E402
from edgescore.core.database import create_engine_for_url, create_session_factory  # noqa: E402
from edgescore.models import Base, Source  # noqa: E402
from edgescore.models.enums import FetchMethod  # noqa: E402


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory SQLite database per test, shared by every session the workers open."""
    engine = create_engine_for_url("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield create_session_factory(engine)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


async def add_source(db: AsyncSession, slug: str = "fake-picks", name: str = "Fake Picks") -> Source:
    source = Source(slug=slug, name=name, base_url="https://picks.example.com", fetch_method="http")
    db.add(source)
    await db.commit()
    return source


class FakeRedis:
    """The slice of ``redis.asyncio.Redis`` the pipeline touches."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.expiry: dict[str, int | None] = {}
        self.published: list[tuple[str, str]] = []

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.store[key] = value
        self.expiry[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self.store.pop(key, None) is not None)

    async def scan_iter(self, match: str = "*", count: int | None = None):
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 1


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


class FakeAdapter(BaseAdapter):
    """Adapter returning a fixed set of predictions regardless of markup."""

    def __init__(
        self,
        predictions: list[RawPrediction] | None = None,
        *,
        adapter_id: str = "fake-picks",
        fetch_method: FetchMethod = FetchMethod.HTTP,
        sub_urls: list[str] | None = None,
    ) -> None:
        self.config = SiteAdapterConfig(
            id=adapter_id,
            name="Fake Picks",
            base_url="https://picks.example.com",
            fetch_method=fetch_method,
            paths={"nba": "/nba/picks"},
            cron="0 */4 * * *",
            rate_limit_seconds=2.0,
            max_retries=2,
            backoff=BackoffPolicy(type="fixed", delay_seconds=1.0),
        )
        self.predictions = predictions or []
        self.parsed: list[tuple[str, str]] = []
        if sub_urls is not None:
            self.sub_urls = sub_urls
            self.discover_urls = lambda html, sport: list(self.sub_urls)

    def parse(self, html: str, sport: str, fetched_at: datetime) -> list[RawPrediction]:
        self.parsed.append((html, sport))
        return list(self.predictions)
