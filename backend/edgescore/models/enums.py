from enum import Enum


class FetchMethod(str, Enum):
    HTTP = "http"
    BROWSER = "browser"


class PickType(str, Enum):
    SPREAD = "spread"
    MONEYLINE = "moneyline"
    OVER_UNDER = "over_under"
    PROP = "prop"
    PARLAY = "parlay"


class Side(str, Enum):
    HOME = "home"
    AWAY = "away"
    OVER = "over"
    UNDER = "under"
    DRAW = "draw"
    YES = "yes"
    NO = "no"


class Confidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    BEST_BET = "best_bet"


class MatchStatus(str, Enum):
    FINAL = "final"
    POSTPONED = "postponed"
    CANCELLED = "cancelled"


class Grade(str, Enum):
    WIN = "win"
    LOSS = "loss"
    PUSH = "push"
    VOID = "void"
