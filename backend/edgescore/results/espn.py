import logging
from typing import Any

import httpx

from edgescore.core.config import get_settings
from edgescore.results.types import RawGameResult

settings = get_settings()
logger = logging.getLogger(__name__)

SPORT_PATHS: dict[str, str] = {
    "nba": "basketball/nba",
    "nfl": "football/nfl",
    "nhl": "hockey/nhl",
    "mlb": "baseball/mlb",
    "ncaab": "basketball/mens-college-basketball",
}

STATUS_MAP: dict[str, str] = {
    "STATUS_FINAL": "final",
    "STATUS_POSTPONED": "postponed",
    "STATUS_CANCELED": "cancelled",
    "STATUS_CANCELLED": "cancelled",
}


def _to_int(raw: Any) -> int | None:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return None


def parse_scoreboard(payload: dict, sport: str, date_str: str) -> list[RawGameResult]:
    """Settled games from an ESPN scoreboard payload.

    Games are dated with the requested scoreboard date; ESPN reports
    competition start times in UTC, which rolls evening US games into the
    next calendar day.
    """
    results: list[RawGameResult] = []
    for event in payload.get("events") or []:
        competitions = event.get("competitions") or []
        if not competitions:
            continue
        comp = competitions[0]

        status_name = (((comp.get("status") or {}).get("type") or {}).get("name")) or ""
        status = STATUS_MAP.get(status_name)
        if status is None:
            continue

        competitors = comp.get("competitors") or []
        home = next((c for c in competitors if c.get("homeAway") == "home"), None)
        away = next((c for c in competitors if c.get("homeAway") == "away"), None)
        if home is None or away is None:
            continue

        home_score = _to_int(home.get("score"))
        away_score = _to_int(away.get("score"))
        if home_score is None or away_score is None:
            continue

        results.append(
            RawGameResult(
                sport=sport,
                home_team_name=(home.get("team") or {}).get("displayName", ""),
                away_team_name=(away.get("team") or {}).get("displayName", ""),
                home_score=home_score,
                away_score=away_score,
                game_date=date_str,
                status=status,
            )
        )
    return results


class EspnResultsFetcher:
    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.espn_base_url).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.http_timeout_seconds
        self._transport = transport

    def supports(self, sport: str) -> bool:
        return sport in SPORT_PATHS

    async def fetch(self, sport: str, date_str: str) -> list[RawGameResult]:
        sport_path = SPORT_PATHS.get(sport)
        if sport_path is None:
            logger.info("No ESPN scoreboard for sport", extra={"sport": sport})
            return []

        url = f"{self.base_url}/{sport_path}/scoreboard"
        params = {"dates": date_str.replace("-", "")}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.get(url, params=params, headers={"User-Agent": settings.http_user_agent})
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError):
            logger.warning(
                "ESPN fetch failed",
                exc_info=True,
                extra={"sport": sport, "date": date_str},
            )
            return []

        if not isinstance(payload, dict):
            logger.warning("Unexpected ESPN payload type", extra={"type": str(type(payload))})
            return []

        results = parse_scoreboard(payload, sport, date_str)
        logger.info("ESPN results fetched", extra={"sport": sport, "date": date_str, "count": len(results)})
        return results
