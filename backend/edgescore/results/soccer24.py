"""Football results from Soccer24 league result pages.

The pages bootstrap their match list as an inline feed string:
``~`` separates records, ``¬`` separates fields and ``÷`` separates a field
code from its value.
"""

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from edgescore.core.config import get_settings
from edgescore.results.types import RawGameResult
from edgescore.workers.browser_pool import BrowserPool
from edgescore.workers.errors import FetchError

settings = get_settings()
logger = logging.getLogger(__name__)

LEAGUE_PATHS: dict[str, str] = {
    "epl": "/england/premier-league",
    "laliga": "/spain/laliga",
    "bundesliga": "/germany/bundesliga",
    "serie-a": "/italy/serie-a",
    "ligue-1": "/france/ligue-1",
}

FIELD_MATCH_ID = "AA"
FIELD_STATUS = "AB"
FIELD_TIMESTAMP = "AD"
FIELD_HOME_TEAM = "AE"
FIELD_AWAY_TEAM = "AF"
FIELD_HOME_SCORE = "AG"
FIELD_AWAY_SCORE = "AH"

STATUS_MAP: dict[str, str] = {
    "3": "final",
    "4": "final",  # after extra time
    "5": "final",  # after penalties
    "9": "postponed",
    "10": "cancelled",
    "11": "cancelled",  # abandoned
}

_FEED_PATTERNS = (
    re.compile(r"""cjs\.initialFeeds\[["']results["']\]\s*=\s*"((?:[^"\\]|\\.)*)\""""),
    re.compile(r"""cjs\.initialFeeds\[["'][\w-]+["']\]\s*=\s*"((?:[^"\\]|\\[\s\S])*)\""""),
    re.compile(r"""(?:feed|data)\s*=\s*"(SA÷[\s\S]*?)\""""),
)

HOME_PARTICIPANT = ".event__participant--home, .event__homeParticipant"
AWAY_PARTICIPANT = ".event__participant--away, .event__awayParticipant"
HOME_SCORE = ".event__score--home"
AWAY_SCORE = ".event__score--away"
_HEX_ESCAPE = re.compile(r"\\x([0-9A-Fa-f]{2})")
_UNICODE_ESCAPE = re.compile(r"\\u([0-9A-Fa-f]{4})")


@dataclass(frozen=True)
class Soccer24Match:
    match_id: str
    home_team: str
    away_team: str
    home_score: int
    away_score: int
    status: str
    timestamp: int
    game_date: str


def _fields(block: str) -> dict[str, str]:
    fields: dict[str, str] = {}
    for part in block.split("¬"):
        code, sep, value = part.partition("÷")
        if sep and code:
            fields[code] = value
    return fields


def parse_feed(feed: str) -> list[Soccer24Match]:
    """Decode settled matches from a feed string; in-play and scheduled games are skipped."""
    matches: list[Soccer24Match] = []
    for block in feed.split("~"):
        fields = _fields(block)
        match_id = fields.get(FIELD_MATCH_ID)
        if not match_id:
            continue
        status = STATUS_MAP.get(fields.get(FIELD_STATUS, ""))
        if status is None:
            continue

        home_team = fields.get(FIELD_HOME_TEAM)
        away_team = fields.get(FIELD_AWAY_TEAM)
        try:
            home_score = int(fields[FIELD_HOME_SCORE])
            away_score = int(fields[FIELD_AWAY_SCORE])
        except (KeyError, ValueError):
            # Postponed and cancelled games carry no score.
            if status == "final":
                continue
            home_score = away_score = 0
        if not home_team or not away_team:
            continue

        try:
            timestamp = int(fields.get(FIELD_TIMESTAMP) or 0)
        except ValueError:
            timestamp = 0
        game_date = datetime.fromtimestamp(timestamp, tz=UTC).date().isoformat() if timestamp else ""

        matches.append(
            Soccer24Match(
                match_id=match_id,
                home_team=home_team,
                away_team=away_team,
                home_score=home_score,
                away_score=away_score,
                status=status,
                timestamp=timestamp,
                game_date=game_date,
            )
        )
    return matches


def to_raw_game_results(matches: list[Soccer24Match]) -> list[RawGameResult]:
    return [
        RawGameResult(
            sport="football",
            home_team_name=m.home_team,
            away_team_name=m.away_team,
            home_score=m.home_score,
            away_score=m.away_score,
            game_date=m.game_date,
            status=m.status,
        )
        for m in matches
    ]


def _unescape(raw: str) -> str:
    decoded = _HEX_ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), raw)
    decoded = _UNICODE_ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), decoded)
    return decoded.replace('\\"', '"').replace("\\\\", "\\")


def extract_from_feed(html: str, date_str: str) -> list[RawGameResult]:
    for pattern in _FEED_PATTERNS:
        collected: list[RawGameResult] = []
        for match in pattern.finditer(html):
            results = to_raw_game_results(parse_feed(_unescape(match.group(1))))
            collected.extend(r for r in results if r.game_date == date_str)
        if collected:
            return collected
    return []


def _row_text(row: Tag, selector: str) -> str:
    cell = row.select_one(selector)
    return cell.get_text(strip=True) if cell is not None else ""


def _row_score(row: Tag, selector: str) -> int | None:
    text = _row_text(row, selector)
    return int(text) if text.isdigit() else None


def extract_from_dom(html: str, date_str: str) -> list[RawGameResult]:
    """Fallback over rendered markup; the page lists one date per request so every row is dated ``date_str``.

    Names and scores are read inside each match row only. Rows still showing
    the "-" placeholder have not been played and are skipped.
    """
    soup = BeautifulSoup(html, "html.parser")
    results: list[RawGameResult] = []
    for row in soup.select(".event__match"):
        home_team = _row_text(row, HOME_PARTICIPANT)
        away_team = _row_text(row, AWAY_PARTICIPANT)
        home_score = _row_score(row, HOME_SCORE)
        away_score = _row_score(row, AWAY_SCORE)
        if not home_team or not away_team or home_score is None or away_score is None:
            continue
        results.append(
            RawGameResult(
                sport="football",
                home_team_name=home_team,
                away_team_name=away_team,
                home_score=home_score,
                away_score=away_score,
                game_date=date_str,
                status="final",
            )
        )
    return results


async def _wait_for_matches(page: Page) -> None:
    try:
        await page.wait_for_selector('[class*="event__match"]', timeout=15000)
    except PlaywrightTimeoutError:
        logger.debug("Soccer24 match rows did not render before timeout")


class Soccer24ResultsFetcher:
    def __init__(self, browser_pool: BrowserPool, *, base_url: str | None = None) -> None:
        self.browser_pool = browser_pool
        self.base_url = (base_url or settings.soccer24_base_url).rstrip("/")

    async def fetch_league(self, league_path: str, date_str: str) -> list[RawGameResult]:
        url = f"{self.base_url}{league_path}/results/"
        page = await self.browser_pool.fetch(url, _wait_for_matches, source="soccer24")
        results = extract_from_feed(page.html, date_str)
        if results:
            return results
        return extract_from_dom(page.html, date_str)

    async def fetch(self, date_str: str) -> list[RawGameResult]:
        all_results: list[RawGameResult] = []
        for league, path in LEAGUE_PATHS.items():
            try:
                results = await self.fetch_league(path, date_str)
            except FetchError:
                logger.warning(
                    "Soccer24 fetch failed for league",
                    exc_info=True,
                    extra={"league": league, "date": date_str},
                )
                continue
            all_results.extend(results)
            logger.info("Soccer24 results fetched", extra={"league": league, "count": len(results)})

        logger.info("Soccer24 results complete", extra={"date": date_str, "total": len(all_results)})
        return all_results
