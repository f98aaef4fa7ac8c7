import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edgescore.models.match import Match
from edgescore.pipeline.normalizer import parse_game_date
from edgescore.pipeline.team_resolver import TeamResolver
from edgescore.results.types import MatchedResult, RawGameResult

logger = logging.getLogger(__name__)


async def match_results(
    db: AsyncSession,
    resolver: TeamResolver,
    raw_results: Iterable[RawGameResult],
) -> list[MatchedResult]:
    """Pair external results with internal matches by resolved teams and date."""
    raw_results = list(raw_results)
    matched: list[MatchedResult] = []

    for raw in raw_results:
        home_id = resolver.resolve(raw.home_team_name)
        away_id = resolver.resolve(raw.away_team_name)
        game_date = parse_game_date(raw.game_date)
        if home_id is None or away_id is None or game_date is None:
            logger.debug(
                "Result teams or date unresolved",
                extra={"home_team": raw.home_team_name, "away_team": raw.away_team_name, "date": raw.game_date},
            )
            continue

        match_id = (
            await db.execute(
                select(Match.id).where(
                    Match.sport == raw.sport,
                    Match.home_team_id == home_id,
                    Match.away_team_id == away_id,
                    Match.game_date == game_date,
                )
            )
        ).scalar_one_or_none()
        if match_id is None:
            logger.debug(
                "No internal match for result",
                extra={"sport": raw.sport, "home_team_id": home_id, "away_team_id": away_id, "date": raw.game_date},
            )
            continue

        matched.append(
            MatchedResult(
                match_id=match_id,
                home_score=raw.home_score,
                away_score=raw.away_score,
                status=raw.status,
            )
        )

    logger.info("Results matched", extra={"input": len(raw_results), "matched": len(matched)})
    return matched
