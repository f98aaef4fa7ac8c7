import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edgescore.adapters.base import RawPrediction
from edgescore.core.db_utils import insert_for
from edgescore.models.enums import Confidence, PickType, Side
from edgescore.models.match import Match
from edgescore.models.prediction import Prediction
from edgescore.models.source import Source
from edgescore.pipeline.dedup import compute_dedup_key
from edgescore.pipeline.team_resolver import TeamResolver

logger = logging.getLogger(__name__)


@dataclass
class NormalizeResult:
    inserted: int = 0
    duplicates: int = 0
    skipped: int = 0
    game_dates: set[tuple[str, date]] = field(default_factory=set)  # (sport, date) of new rows
    inserted_by_sport: dict[str, int] = field(default_factory=dict)


def parse_game_date(raw: str | None) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw.strip()[:10])
    except ValueError:
        return None


async def find_or_create_match(
    db: AsyncSession,
    *,
    sport: str,
    home_team_id: int,
    away_team_id: int,
    game_date: date,
    game_time: str | None = None,
) -> int:
    """Return the canonical match id, inserting the row if needed.

    Concurrent callers converge on one row: the insert is a no-op on the
    unique (sport, home, away, date) key and the read-back always sees the
    winner.
    """
    key_filter = (
        Match.sport == sport,
        Match.home_team_id == home_team_id,
        Match.away_team_id == away_team_id,
        Match.game_date == game_date,
    )
    existing = (await db.execute(select(Match.id).where(*key_filter))).scalar_one_or_none()
    if existing is not None:
        return existing

    stmt = (
        insert_for(db, Match)
        .values(
            sport=sport,
            home_team_id=home_team_id,
            away_team_id=away_team_id,
            game_date=game_date,
            game_time=game_time,
        )
        .on_conflict_do_nothing(index_elements=["sport", "home_team_id", "away_team_id", "game_date"])
    )
    await db.execute(stmt)
    return (await db.execute(select(Match.id).where(*key_filter))).scalar_one()


class Normalizer:
    def __init__(self, resolver: TeamResolver) -> None:
        self.resolver = resolver
        self._source_ids: dict[str, int] = {}

    async def _source_id(self, db: AsyncSession, slug: str) -> int | None:
        cached = self._source_ids.get(slug)
        if cached is not None:
            return cached
        source_id = (await db.execute(select(Source.id).where(Source.slug == slug))).scalar_one_or_none()
        if source_id is not None:
            self._source_ids[slug] = source_id
        return source_id

    async def normalize_and_insert(
        self,
        db: AsyncSession,
        raw_predictions: Iterable[RawPrediction],
    ) -> NormalizeResult:
        result = NormalizeResult()

        for raw in raw_predictions:
            home_id = await self.resolver.resolve_or_create(db, raw.home_team_raw, raw.sport)
            away_id = await self.resolver.resolve_or_create(db, raw.away_team_raw, raw.sport)
            if home_id is None or away_id is None:
                logger.warning(
                    "Skipping prediction with unresolved team",
                    extra={
                        "source": raw.source_id,
                        "sport": raw.sport,
                        "home_team_raw": raw.home_team_raw,
                        "away_team_raw": raw.away_team_raw,
                        "home_resolved": home_id is not None,
                        "away_resolved": away_id is not None,
                    },
                )
                result.skipped += 1
                continue

            game_date = parse_game_date(raw.game_date)
            if game_date is None:
                logger.warning(
                    "Skipping prediction without game date",
                    extra={"source": raw.source_id, "home_team_raw": raw.home_team_raw, "raw_date": raw.game_date},
                )
                result.skipped += 1
                continue

            source_id = await self._source_id(db, raw.source_id)
            if source_id is None:
                logger.warning("Skipping prediction from unknown source", extra={"source": raw.source_id})
                result.skipped += 1
                continue

            match_id = await find_or_create_match(
                db,
                sport=raw.sport,
                home_team_id=home_id,
                away_team_id=away_id,
                game_date=game_date,
                game_time=raw.game_time,
            )
            dedup_key = compute_dedup_key(source_id, match_id, raw.pick_type, raw.side, raw.picker_name)

            stmt = (
                insert_for(db, Prediction)
                .values(
                    source_id=source_id,
                    match_id=match_id,
                    sport=raw.sport,
                    home_team_id=home_id,
                    away_team_id=away_id,
                    pick_type=PickType(raw.pick_type).value,
                    side=Side(raw.side).value,
                    value=raw.value,
                    picker_name=raw.picker_name,
                    confidence=Confidence(raw.confidence).value if raw.confidence else None,
                    reasoning=raw.reasoning,
                    dedup_key=dedup_key,
                    fetched_at=raw.fetched_at,
                )
                .on_conflict_do_nothing(index_elements=["dedup_key"])
            )
            insert_result = await db.execute(stmt)
            await db.commit()

            if insert_result.rowcount and insert_result.rowcount > 0:
                result.inserted += 1
                result.game_dates.add((raw.sport, game_date))
                result.inserted_by_sport[raw.sport] = result.inserted_by_sport.get(raw.sport, 0) + 1
            else:
                result.duplicates += 1

        await db.commit()
        logger.info(
            "Predictions normalized",
            extra={"inserted": result.inserted, "duplicates": result.duplicates, "skipped": result.skipped},
        )
        return result
