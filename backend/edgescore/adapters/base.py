"""Contract and shared types for site adapters."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Protocol, runtime_checkable

from bs4 import BeautifulSoup

from edgescore.models.enums import Confidence, FetchMethod, PickType, Side


# Whole words only: "stats" is not "ats" and "html" is not "ml".
_PICK_TYPE_PATTERNS: tuple[tuple[re.Pattern[str], PickType], ...] = (
    (re.compile(r"\b(?:spread|ats)\b"), PickType.SPREAD),
    (re.compile(r"\b(?:money\s?line|ml)\b"), PickType.MONEYLINE),
    (re.compile(r"(?:\b(?:over|under|totals?)\b|\bo/u\b)"), PickType.OVER_UNDER),
    (re.compile(r"\bprops?\b"), PickType.PROP),
    (re.compile(r"\bparlays?\b"), PickType.PARLAY),
)

_CONFIDENCE_PATTERNS: tuple[tuple[re.Pattern[str], Confidence], ...] = (
    (re.compile(r"\b(?:best bet|lock)\b"), Confidence.BEST_BET),
    (re.compile(r"\b(?:high|strong)\b"), Confidence.HIGH),
    (re.compile(r"\b(?:lean|slight)\b"), Confidence.LOW),
)


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """Retry delay policy shared by adapters and queues."""

    type: Literal["exponential", "fixed"] = "exponential"
    delay_seconds: float = 5.0

    def delay_for(self, attempts_made: int) -> float:
        """Delay before the retry that follows attempt number ``attempts_made`` (1-based)."""
        if attempts_made < 1:
            return 0.0
        if self.type == "fixed":
            return self.delay_seconds
        return self.delay_seconds * (2 ** (attempts_made - 1))


@dataclass(frozen=True, slots=True)
class SiteAdapterConfig:
    """Static configuration describing how and when a site is scraped."""

    id: str
    name: str
    base_url: str
    fetch_method: FetchMethod
    paths: dict[str, str]  # sport -> path
    cron: str  # 5 fields, or 6 with leading seconds
    rate_limit_seconds: float
    max_retries: int = 3
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)


@dataclass(frozen=True, slots=True)
class RawPrediction:
    """A pick as extracted from site markup, before team/match resolution."""

    source_id: str  # adapter id == sources.slug
    sport: str
    home_team_raw: str
    away_team_raw: str
    game_date: str | None  # ISO date, e.g. "2026-02-16"
    game_time: str | None
    pick_type: PickType
    side: Side
    value: float | None
    picker_name: str
    confidence: Confidence | None
    reasoning: str | None
    fetched_at: datetime


@runtime_checkable
class SiteAdapter(Protocol):
    """Interface every site adapter must satisfy.

    Adapters may additionally define ``discover_urls(html, sport) -> list[str]``
    for landing pages that link to per-article sub-pages, and an async
    ``browser_actions(page)`` hook run before a browser capture.
    """

    config: SiteAdapterConfig

    def parse(self, html: str, sport: str, fetched_at: datetime) -> list[RawPrediction]:
        ...


class BaseAdapter(ABC):
    """Base class for site adapters: markup loading plus value parsers common to most sites."""

    config: SiteAdapterConfig

    @abstractmethod
    def parse(self, html: str, sport: str, fetched_at: datetime) -> list[RawPrediction]:
        ...

    @staticmethod
    def load(html: str) -> BeautifulSoup:
        return BeautifulSoup(html, "html.parser")

    @staticmethod
    def parse_spread_value(text: str) -> float | None:
        cleaned = re.sub(r"pk", "0", text.strip(), count=1, flags=re.IGNORECASE)
        match = re.match(r"^[+-]?\d+(?:\.\d+)?", cleaned)
        return float(match.group(0)) if match else None

    @staticmethod
    def parse_moneyline_value(text: str) -> float | None:
        match = re.match(r"^[+-]?\d+", text.strip())
        return float(int(match.group(0))) if match else None

    @staticmethod
    def parse_total_value(text: str) -> float | None:
        match = re.search(r"\d+(?:\.\d+)?", text)
        return float(match.group(0)) if match else None

    @staticmethod
    def infer_pick_type(text: str) -> PickType:
        lower = text.lower()
        for pattern, pick_type in _PICK_TYPE_PATTERNS:
            if pattern.search(lower):
                return pick_type
        return PickType.SPREAD

    @staticmethod
    def infer_confidence(text: str) -> Confidence | None:
        lower = text.lower().strip()
        if not lower:
            return None
        for pattern, confidence in _CONFIDENCE_PATTERNS:
            if pattern.search(lower):
                return confidence
        return Confidence.MEDIUM


def has_discovery(adapter: Any) -> bool:
    return callable(getattr(adapter, "discover_urls", None))


def has_browser_actions(adapter: Any) -> bool:
    return callable(getattr(adapter, "browser_actions", None))
