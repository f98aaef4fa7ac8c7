from edgescore.models.base import Base
from edgescore.models.match import Match
from edgescore.models.match_result import MatchResult
from edgescore.models.prediction import Prediction
from edgescore.models.snapshot import Snapshot
from edgescore.models.source import Source
from edgescore.models.team import Team, TeamAlias

__all__ = [
    "Base",
    "Match",
    "MatchResult",
    "Prediction",
    "Snapshot",
    "Source",
    "Team",
    "TeamAlias",
]
