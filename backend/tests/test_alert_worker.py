from datetime import UTC, date, datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conftest import FakeRedis, add_source
from edgescore.adapters.base import BackoffPolicy, RawPrediction
from edgescore.models.enums import Confidence, PickType, Side
from edgescore.notifications.alert_dedup import AlertDedup, alert_key
from edgescore.pipeline.normalizer import Normalizer
from edgescore.pipeline.team_resolver import TeamResolver
from edgescore.queue.broker import Job
from edgescore.seed.nba_teams import seed_teams
from edgescore.services.team_history import SourceAccuracyCache
from edgescore.workers.alert_worker import AlertWorker, load_picks_for_date

TODAY = date(2026, 2, 16)
JOB = Job(id="telegram-alerts", name="send-alerts", queue="alert-queue", payload={}, attempts=1, backoff=BackoffPolicy())


class FakeNotifier:
    def __init__(self, *, configured: bool = True, succeed: bool = True) -> None:
        self.configured = configured
        self.succeed = succeed
        self.sent: list[list] = []

    async def send_picks(self, picks) -> bool:
        self.sent.append(list(picks))
        return self.succeed


def _raw(source: str, home: str, away: str, side: Side, game_date: str = "2026-02-16") -> RawPrediction:
    return RawPrediction(
        source_id=source,
        sport="nba",
        home_team_raw=home,
        away_team_raw=away,
        game_date=game_date,
        game_time="19:30",
        pick_type=PickType.MONEYLINE,
        side=side,
        value=-150.0,
        picker_name="Staff",
        confidence=Confidence.BEST_BET,
        reasoning=None,
        fetched_at=datetime(2026, 2, 16, 9, tzinfo=UTC),
    )


async def _seed_picks(session_factory: async_sessionmaker[AsyncSession]) -> None:
    async with session_factory() as db:
        await seed_teams(db)
        await add_source(db, "covers", "Covers")
        await add_source(db, "pickswise", "Pickswise")
        resolver = TeamResolver(curated_sports=["nba"])
        await resolver.load_aliases(db)
        await Normalizer(resolver).normalize_and_insert(
            db,
            [
                _raw("covers", "Lakers", "Celtics", Side.HOME),
                _raw("pickswise", "Lakers", "Celtics", Side.HOME),
                _raw("covers", "Heat", "Bulls", Side.AWAY),
                _raw("covers", "Jazz", "Suns", Side.HOME, game_date="2026-02-17"),
            ],
        )


def _worker(session_factory, notifier: FakeNotifier, redis: FakeRedis, **kwargs) -> AlertWorker:
    return AlertWorker(
        notifier=notifier,
        dedup=AlertDedup(redis, ttl_seconds=86400),
        session_factory=session_factory,
        accuracy_cache=SourceAccuracyCache(ttl_seconds=1800),
        today=lambda: TODAY,
        **kwargs,
    )


async def test_load_picks_joins_teams_and_sources(session_factory: async_sessionmaker[AsyncSession]) -> None:
    await _seed_picks(session_factory)

    async with session_factory() as db:
        picks = await load_picks_for_date(db, TODAY)

    assert len(picks) == 3
    assert {p.source_name for p in picks} == {"Covers", "Pickswise"}
    assert picks[0].home_team == "Los Angeles Lakers"
    assert picks[0].game_date == TODAY


async def test_top_picks_are_sent_once_per_day(
    session_factory: async_sessionmaker[AsyncSession], fake_redis: FakeRedis
) -> None:
    await _seed_picks(session_factory)
    notifier = FakeNotifier()
    worker = _worker(session_factory, notifier, fake_redis, score_threshold=0, max_picks=1)

    first = await worker.handle(JOB)

    assert first.status == "sent"
    assert first.scored == 2
    assert [pick.home_team for pick in notifier.sent[0]] == ["Los Angeles Lakers"]
    key = alert_key(notifier.sent[0][0].match_id, "home")
    assert fake_redis.store[key] == "1"
    assert fake_redis.expiry[key] == 86400

    second = await worker.handle(JOB)

    assert second.status == "all_sent_before"
    assert len(notifier.sent) == 1


async def test_threshold_filters_everything(
    session_factory: async_sessionmaker[AsyncSession], fake_redis: FakeRedis
) -> None:
    await _seed_picks(session_factory)
    notifier = FakeNotifier()

    outcome = await _worker(session_factory, notifier, fake_redis, score_threshold=101).handle(JOB)

    assert outcome.status == "no_candidates"
    assert notifier.sent == []


async def test_failed_send_is_not_recorded(
    session_factory: async_sessionmaker[AsyncSession], fake_redis: FakeRedis
) -> None:
    await _seed_picks(session_factory)
    notifier = FakeNotifier(succeed=False)

    outcome = await _worker(session_factory, notifier, fake_redis, score_threshold=0).handle(JOB)

    assert outcome.status == "send_failed"
    assert fake_redis.store == {}


async def test_unconfigured_notifier_is_a_noop(
    session_factory: async_sessionmaker[AsyncSession], fake_redis: FakeRedis
) -> None:
    notifier = FakeNotifier(configured=False)

    outcome = await _worker(session_factory, notifier, fake_redis).handle(JOB)

    assert outcome.status == "disabled"
    assert notifier.sent == []
