from edgescore.results.espn import EspnResultsFetcher
from edgescore.results.soccer24 import Soccer24ResultsFetcher
from edgescore.results.types import RawGameResult

FOOTBALL = "football"


def result_source_for(sport: str) -> str:
    return "soccer24" if sport == FOOTBALL else "espn"


class ResultsRouter:
    """Routes a sport to its results source: Soccer24 for football, ESPN for everything else."""

    def __init__(self, espn: EspnResultsFetcher, soccer24: Soccer24ResultsFetcher) -> None:
        self.espn = espn
        self.soccer24 = soccer24

    async def fetch_results_for_sport(self, sport: str, date_str: str) -> list[RawGameResult]:
        if sport == FOOTBALL:
            return await self.soccer24.fetch(date_str)
        return await self.espn.fetch(sport, date_str)
