from datetime import UTC, date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import add_source
from edgescore.models import MatchResult, Prediction
from edgescore.pipeline.dedup import compute_dedup_key
from edgescore.pipeline.normalizer import find_or_create_match
from edgescore.pipeline.team_resolver import TeamResolver
from edgescore.results.matcher import match_results
from edgescore.results.service import process_results
from edgescore.results.types import MatchedResult, RawGameResult
from edgescore.seed.nba_teams import seed_teams

GAME_DATE = date(2026, 2, 16)


async def _setup(db: AsyncSession) -> tuple[TeamResolver, int, dict[str, int]]:
    await seed_teams(db)
    source = await add_source(db)
    resolver = TeamResolver(curated_sports=["nba"])
    await resolver.load_aliases(db)
    home_id = resolver.resolve("Los Angeles Lakers")
    away_id = resolver.resolve("Boston Celtics")
    match_id = await find_or_create_match(
        db, sport="nba", home_team_id=home_id, away_team_id=away_id, game_date=GAME_DATE
    )

    picks = {
        "home_spread": ("spread", "home", -6.5),
        "away_ml": ("moneyline", "away", 180.0),
        "over": ("over_under", "over", 220.5),
    }
    ids: dict[str, int] = {}
    for label, (pick_type, side, value) in picks.items():
        prediction = Prediction(
            source_id=source.id,
            match_id=match_id,
            sport="nba",
            home_team_id=home_id,
            away_team_id=away_id,
            pick_type=pick_type,
            side=side,
            value=value,
            picker_name="Jane Doe",
            dedup_key=compute_dedup_key(source.id, match_id, pick_type, side, "Jane Doe"),
            fetched_at=datetime(2026, 2, 16, 12, tzinfo=UTC),
        )
        db.add(prediction)
        await db.flush()
        ids[label] = prediction.id
    await db.commit()
    return resolver, match_id, ids


async def _grades(db: AsyncSession) -> dict[int, str | None]:
    rows = (await db.execute(select(Prediction.id, Prediction.grade))).all()
    return dict(rows)


async def test_final_result_grades_each_prediction(db_session: AsyncSession) -> None:
    _, match_id, ids = await _setup(db_session)

    summary = await process_results(
        db_session, [MatchedResult(match_id=match_id, home_score=101, away_score=99, status="final")], "espn"
    )

    grades = await _grades(db_session)
    assert grades[ids["home_spread"]] == "win"
    assert grades[ids["away_ml"]] == "loss"
    assert grades[ids["over"]] == "loss"
    assert summary.results_upserted == 1
    assert summary.predictions_graded == 3
    assert summary.predictions_voided == 0


async def test_postponed_result_voids_ungraded_predictions(db_session: AsyncSession) -> None:
    _, match_id, ids = await _setup(db_session)

    summary = await process_results(
        db_session, [MatchedResult(match_id=match_id, home_score=0, away_score=0, status="postponed")], "espn"
    )

    assert set((await _grades(db_session)).values()) == {"void"}
    assert summary.predictions_voided == 3
    result = (await db_session.execute(select(MatchResult))).scalar_one()
    assert result.status == "postponed"


async def test_regrading_leaves_existing_grades_untouched(db_session: AsyncSession) -> None:
    _, match_id, ids = await _setup(db_session)
    final = MatchedResult(match_id=match_id, home_score=101, away_score=99, status="final")

    await process_results(db_session, [final], "espn")
    before = await _grades(db_session)

    corrected = MatchedResult(match_id=match_id, home_score=90, away_score=99, status="final")
    summary = await process_results(db_session, [corrected], "espn")

    assert await _grades(db_session) == before
    assert summary.predictions_graded == 0
    result = (await db_session.execute(select(MatchResult))).scalar_one()
    assert (result.home_score, result.away_score) == (90, 99)


async def test_matcher_pairs_results_by_resolved_teams_and_date(db_session: AsyncSession) -> None:
    resolver, match_id, _ = await _setup(db_session)

    matched = await match_results(
        db_session,
        resolver,
        [
            RawGameResult("nba", "Los Angeles Lakers", "Boston Celtics", 101, 99, "2026-02-16", "final"),
            RawGameResult("nba", "Boston Celtics", "Los Angeles Lakers", 88, 80, "2026-02-16", "final"),
            RawGameResult("nba", "Los Angeles Lakers", "Boston Celtics", 101, 99, "2026-02-17", "final"),
            RawGameResult("nba", "Seattle SuperSonics", "Boston Celtics", 101, 99, "2026-02-16", "final"),
        ],
    )

    assert matched == [MatchedResult(match_id=match_id, home_score=101, away_score=99, status="final")]
