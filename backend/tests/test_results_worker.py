from datetime import UTC, date, datetime

import pytest
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conftest import add_source
from edgescore.adapters.base import BackoffPolicy, RawPrediction
from edgescore.models import MatchResult, Prediction
from edgescore.models.enums import PickType, Side
from edgescore.pipeline.normalizer import Normalizer
from edgescore.pipeline.team_resolver import TeamResolver
from edgescore.queue.broker import Job
from edgescore.results.router import result_source_for
from edgescore.results.types import RawGameResult
from edgescore.schemas.jobs import ResultsJob
from edgescore.seed.nba_teams import seed_teams
from edgescore.workers.results_worker import ResultsWorker, resolve_date_arg


class FakeRouter:
    def __init__(self, results: list[RawGameResult]) -> None:
        self.results = results
        self.calls: list[tuple[str, str]] = []

    async def fetch_results_for_sport(self, sport: str, date_str: str) -> list[RawGameResult]:
        self.calls.append((sport, date_str))
        return [r for r in self.results if r.sport == sport and r.game_date == date_str]


def _job(date_arg: str) -> Job:
    return Job(
        id="results:nba:yesterday",
        name="fetch-results",
        queue="results-queue",
        payload=ResultsJob(sport="nba", date=date_arg).model_dump(mode="json"),
        attempts=1,
        backoff=BackoffPolicy(),
    )


def test_resolve_date_arg() -> None:
    today = date(2026, 3, 1)
    assert resolve_date_arg("today", today) == "2026-03-01"
    assert resolve_date_arg("yesterday", today) == "2026-02-28"
    assert resolve_date_arg("2026-02-16", today) == "2026-02-16"


def test_results_job_rejects_free_text_dates() -> None:
    with pytest.raises(ValidationError):
        ResultsJob(sport="nba", date="last tuesday")
    assert ResultsJob(sport="nba", date=" Yesterday ").date == "yesterday"


def test_result_source_routing() -> None:
    assert result_source_for("football") == "soccer24"
    assert result_source_for("nba") == "espn"


async def test_yesterday_results_are_fetched_matched_and_graded(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    async with session_factory() as db:
        await seed_teams(db)
        await add_source(db)
        resolver = TeamResolver(curated_sports=["nba"])
        await resolver.load_aliases(db)
        await Normalizer(resolver).normalize_and_insert(
            db,
            [
                RawPrediction(
                    source_id="fake-picks",
                    sport="nba",
                    home_team_raw="Los Angeles Lakers",
                    away_team_raw="Boston Celtics",
                    game_date="2026-02-16",
                    game_time=None,
                    pick_type=PickType.SPREAD,
                    side=Side.HOME,
                    value=-6.5,
                    picker_name="Jane Doe",
                    confidence=None,
                    reasoning=None,
                    fetched_at=datetime(2026, 2, 16, 12, tzinfo=UTC),
                )
            ],
        )

    router = FakeRouter(
        [RawGameResult("nba", "Los Angeles Lakers", "Boston Celtics", 101, 99, "2026-02-16", "final")]
    )
    worker = ResultsWorker(
        router=router, resolver=resolver, session_factory=session_factory, today=lambda: date(2026, 2, 17)
    )

    summary = await worker.handle(_job("yesterday"))

    assert router.calls == [("nba", "2026-02-16")]
    assert summary.results_upserted == 1
    assert summary.predictions_graded == 1
    async with session_factory() as db:
        assert (await db.execute(select(Prediction.grade))).scalar_one() == "win"
        assert (await db.execute(select(MatchResult.result_source))).scalar_one() == "espn"


async def test_no_results_is_an_empty_summary(session_factory: async_sessionmaker[AsyncSession]) -> None:
    worker = ResultsWorker(
        router=FakeRouter([]),
        resolver=TeamResolver(curated_sports=["nba"]),
        session_factory=session_factory,
        today=lambda: date(2026, 2, 17),
    )

    summary = await worker.handle(_job("today"))

    assert summary.results_upserted == 0
    assert summary.predictions_graded == 0
