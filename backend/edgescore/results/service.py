import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from edgescore.core.db_utils import insert_for
from edgescore.models.enums import Grade, MatchStatus
from edgescore.models.match_result import MatchResult
from edgescore.models.prediction import Prediction
from edgescore.results.grader import grade_prediction
from edgescore.results.types import MatchedResult

logger = logging.getLogger(__name__)


@dataclass
class ResultsSummary:
    results_upserted: int = 0
    predictions_graded: int = 0
    predictions_voided: int = 0


async def upsert_match_result(db: AsyncSession, result: MatchedResult, result_source: str) -> None:
    now = datetime.now(UTC)
    stmt = insert_for(db, MatchResult).values(
        match_id=result.match_id,
        home_score=result.home_score,
        away_score=result.away_score,
        status=result.status,
        result_source=result_source,
        settled_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["match_id"],
        set_={
            "home_score": stmt.excluded.home_score,
            "away_score": stmt.excluded.away_score,
            "status": stmt.excluded.status,
            "result_source": stmt.excluded.result_source,
            "settled_at": stmt.excluded.settled_at,
        },
    )
    await db.execute(stmt)


async def grade_match_predictions(db: AsyncSession, result: MatchedResult) -> int:
    """Grade the match's ungraded predictions; graded rows are never revisited."""
    now = datetime.now(UTC)
    ungraded = (
        await db.execute(
            select(Prediction.id, Prediction.pick_type, Prediction.side, Prediction.value).where(
                Prediction.match_id == result.match_id,
                Prediction.grade.is_(None),
            )
        )
    ).all()

    for prediction_id, pick_type, side, value in ungraded:
        if result.status == MatchStatus.FINAL.value:
            grade = grade_prediction(pick_type, side, value, result.home_score, result.away_score)
        else:
            grade = Grade.VOID
        await db.execute(
            update(Prediction)
            .where(Prediction.id == prediction_id, Prediction.grade.is_(None))
            .values(grade=grade.value, graded_at=now)
        )
    return len(ungraded)


async def process_results(
    db: AsyncSession,
    matched: Iterable[MatchedResult],
    result_source: str,
) -> ResultsSummary:
    summary = ResultsSummary()
    for result in matched:
        await upsert_match_result(db, result, result_source)
        summary.results_upserted += 1

        graded = await grade_match_predictions(db, result)
        if result.status == MatchStatus.FINAL.value:
            summary.predictions_graded += graded
        else:
            summary.predictions_voided += graded
        await db.commit()

    logger.info(
        "Results processed",
        extra={
            "result_source": result_source,
            "results_upserted": summary.results_upserted,
            "predictions_graded": summary.predictions_graded,
            "predictions_voided": summary.predictions_voided,
        },
    )
    return summary
