import logging

from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, SessionTransaction

from edgescore.core.config import get_settings
from edgescore.core.db_utils import insert_for
from edgescore.models.team import Team, TeamAlias

logger = logging.getLogger(__name__)

_PENDING_KEY = "edgescore.pending_aliases"
_HOOKED_KEY = "edgescore.alias_hooks"


def _key(raw_name: str) -> str:
    return raw_name.strip().lower()


def _on_commit(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)


def _on_transaction_end(session: Session, transaction: SessionTransaction) -> None:
    if transaction.parent is not None:
        return
    # Anything still pending here was never committed.
    for resolver, alias, team_id in session.info.pop(_PENDING_KEY, []):
        resolver._forget(alias, team_id)


def _track_uncommitted(db: AsyncSession, resolver: "TeamResolver", alias: str, team_id: int) -> None:
    session = db.sync_session
    if not session.info.get(_HOOKED_KEY):
        event.listen(session, "after_commit", _on_commit)
        event.listen(session, "after_transaction_end", _on_transaction_end)
        session.info[_HOOKED_KEY] = True
    session.info.setdefault(_PENDING_KEY, []).append((resolver, alias, team_id))


class TeamResolver:
    """In-memory alias index from free-text team names to team ids.

    One instance is built at startup and handed to every component that needs
    resolution. ``load_aliases`` swaps in a freshly built map in a single
    assignment, so readers never observe a partial reload.
    """

    def __init__(self, curated_sports: list[str] | None = None) -> None:
        if curated_sports is None:
            curated_sports = get_settings().curated_sports_list
        self.curated_sports = frozenset(sport.lower() for sport in curated_sports)
        self._alias_map: dict[str, int] = {}

    @property
    def alias_count(self) -> int:
        return len(self._alias_map)

    def is_auto_create_sport(self, sport: str) -> bool:
        return sport.lower() not in self.curated_sports

    async def load_aliases(self, db: AsyncSession) -> int:
        alias_map: dict[str, int] = {}

        teams = (await db.execute(select(Team.id, Team.name, Team.abbreviation))).all()
        for team_id, name, abbreviation in teams:
            alias_map[_key(name)] = team_id
            alias_map[_key(abbreviation)] = team_id

        aliases = (await db.execute(select(TeamAlias.alias, TeamAlias.team_id))).all()
        for alias, team_id in aliases:
            alias_map[_key(alias)] = team_id

        self._alias_map = alias_map
        logger.info("Team aliases loaded", extra={"alias_count": len(alias_map), "team_count": len(teams)})
        return len(alias_map)

    def _forget(self, alias: str, team_id: int) -> None:
        if self._alias_map.get(alias) == team_id:
            del self._alias_map[alias]
            logger.warning(
                "Dropped uncommitted team alias", extra={"alias": alias, "team_id": team_id}
            )

    def resolve(self, raw_name: str) -> int | None:
        if not raw_name:
            return None
        return self._alias_map.get(_key(raw_name))

    async def resolve_or_create(self, db: AsyncSession, raw_name: str, sport: str) -> int | None:
        existing = self.resolve(raw_name)
        if existing is not None:
            return existing

        name = raw_name.strip()
        if not name or not self.is_auto_create_sport(sport):
            return None

        team_stmt = (
            insert_for(db, Team)
            .values(name=name, abbreviation=name, sport=sport)
            .on_conflict_do_nothing(index_elements=["abbreviation", "sport"])
        )
        await db.execute(team_stmt)
        team_id = (
            await db.execute(select(Team.id).where(Team.abbreviation == name, Team.sport == sport))
        ).scalar_one()

        alias = _key(name)
        alias_stmt = (
            insert_for(db, TeamAlias)
            .values(team_id=team_id, alias=alias)
            .on_conflict_do_nothing(index_elements=["alias", "team_id"])
        )
        await db.execute(alias_stmt)

        self._alias_map[alias] = team_id
        _track_uncommitted(db, self, alias, team_id)
        logger.info(
            "Auto-created team",
            extra={"team_id": team_id, "team_name": name, "sport": sport},
        )
        return team_id
