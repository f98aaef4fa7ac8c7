"""Curated NBA teams and the aliases that prediction sites use for them."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edgescore.core.db_utils import insert_for
from edgescore.models.team import Team, TeamAlias

logger = logging.getLogger(__name__)

SPORT = "nba"

# (full name, abbreviation, extra aliases)
NBA_TEAMS: list[tuple[str, str, list[str]]] = [
    ("Atlanta Hawks", "ATL", ["Hawks", "Atlanta"]),
    ("Boston Celtics", "BOS", ["Celtics", "Boston"]),
    ("Brooklyn Nets", "BKN", ["Nets", "Brooklyn", "BRK"]),
    ("Charlotte Hornets", "CHA", ["Hornets", "Charlotte", "CHO"]),
    ("Chicago Bulls", "CHI", ["Bulls", "Chicago"]),
    ("Cleveland Cavaliers", "CLE", ["Cavaliers", "Cavs", "Cleveland"]),
    ("Dallas Mavericks", "DAL", ["Mavericks", "Mavs", "Dallas"]),
    ("Denver Nuggets", "DEN", ["Nuggets", "Denver"]),
    ("Detroit Pistons", "DET", ["Pistons", "Detroit"]),
    ("Golden State Warriors", "GSW", ["Warriors", "Golden State", "GS"]),
    ("Houston Rockets", "HOU", ["Rockets", "Houston"]),
    ("Indiana Pacers", "IND", ["Pacers", "Indiana"]),
    ("Los Angeles Clippers", "LAC", ["Clippers", "LA Clippers"]),
    ("Los Angeles Lakers", "LAL", ["Lakers", "LA Lakers"]),
    ("Memphis Grizzlies", "MEM", ["Grizzlies", "Memphis"]),
    ("Miami Heat", "MIA", ["Heat", "Miami"]),
    ("Milwaukee Bucks", "MIL", ["Bucks", "Milwaukee"]),
    ("Minnesota Timberwolves", "MIN", ["Timberwolves", "Wolves", "Minnesota"]),
    ("New Orleans Pelicans", "NOP", ["Pelicans", "New Orleans", "NO"]),
    ("New York Knicks", "NYK", ["Knicks", "New York", "NY"]),
    ("Oklahoma City Thunder", "OKC", ["Thunder", "Oklahoma City"]),
    ("Orlando Magic", "ORL", ["Magic", "Orlando"]),
    ("Philadelphia 76ers", "PHI", ["76ers", "Sixers", "Philadelphia"]),
    ("Phoenix Suns", "PHX", ["Suns", "Phoenix", "PHO"]),
    ("Portland Trail Blazers", "POR", ["Trail Blazers", "Blazers", "Portland"]),
    ("Sacramento Kings", "SAC", ["Kings", "Sacramento"]),
    ("San Antonio Spurs", "SAS", ["Spurs", "San Antonio", "SA"]),
    ("Toronto Raptors", "TOR", ["Raptors", "Toronto"]),
    ("Utah Jazz", "UTA", ["Jazz", "Utah"]),
    ("Washington Wizards", "WAS", ["Wizards", "Washington", "WSH"]),
]


async def seed_teams(db: AsyncSession) -> dict[str, int]:
    """Insert the curated NBA teams and aliases. Safe to run repeatedly."""
    teams_before = len((await db.execute(select(Team.id).where(Team.sport == SPORT))).all())
    aliases_added = 0

    for name, abbreviation, extra_aliases in NBA_TEAMS:
        await db.execute(
            insert_for(db, Team)
            .values(name=name, abbreviation=abbreviation, sport=SPORT)
            .on_conflict_do_nothing(index_elements=["abbreviation", "sport"])
        )
        team_id = (
            await db.execute(select(Team.id).where(Team.abbreviation == abbreviation, Team.sport == SPORT))
        ).scalar_one()

        for alias in {name.lower(), abbreviation.lower(), *(a.lower() for a in extra_aliases)}:
            result = await db.execute(
                insert_for(db, TeamAlias)
                .values(team_id=team_id, alias=alias)
                .on_conflict_do_nothing(index_elements=["alias", "team_id"])
            )
            aliases_added += result.rowcount or 0

    await db.commit()
    teams_after = len((await db.execute(select(Team.id).where(Team.sport == SPORT))).all())
    summary = {"teams_added": teams_after - teams_before, "aliases_added": aliases_added}
    logger.info("NBA teams seeded", extra=summary)
    return summary
