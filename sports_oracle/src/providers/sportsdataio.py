"""SportsDataIO soccer provider.

Endpoints:
    GET /v4/soccer/scores/json/GamesByDate/{competition}/{date}
    GET /v4/soccer/stats/json/BoxScore/{competition}/{gameid}
Auth: Ocp-Apim-Subscription-Key header
Rate Limit: depends on subscription; trial keys return scrambled scores

SportsDataIO scopes every request to one competition key (e.g. "EPL",
"SERIEA", "UCL"), configured per provider instance. Kickoffs are read from
"DateTimeUTC"; "DateTime" is US Eastern time and is not used.
"""

import logging

from ..MatchResult import MatchResult, MatchStatus
from .base import BaseProvider, MalformedProviderData, register_provider

logger = logging.getLogger(__name__)


@register_provider
class SportsDataIOProvider(BaseProvider):
    """Provider for the SportsDataIO soccer v4 API.

    :ivar competition: SportsDataIO competition key.
    """

    name = "sportsdataio"
    DEFAULT_BASE_URL = "https://api.sportsdata.io/v4/soccer"
    API_KEY_HEADER = "Ocp-Apim-Subscription-Key"
    DEFAULT_COMPETITION = "EPL"

    STATUS_MAP = {
        "Scheduled": MatchStatus.NOT_STARTED,
        "Delayed": MatchStatus.NOT_STARTED,
        "Postponed": MatchStatus.NOT_STARTED,
        "Canceled": MatchStatus.NOT_STARTED,
        "NotNecessary": MatchStatus.NOT_STARTED,
        "InProgress": MatchStatus.LIVE,
        "Break": MatchStatus.LIVE,
        "Suspended": MatchStatus.LIVE,
        "Final": MatchStatus.FINISHED,
        "F/OT": MatchStatus.FINISHED,
        "F/SO": MatchStatus.FINISHED,
        "Awarded": MatchStatus.FINISHED,
        "Forfeit": MatchStatus.FINISHED,
    }

    def __init__(self, *args, competition: str | None = None, **kwargs):
        """Initialize with the competition scope (default: EPL)."""
        super().__init__(*args, **kwargs)
        self.competition = (competition or self.DEFAULT_COMPETITION).upper()

    async def _fetch_live_payload(self) -> list[dict]:
        games: list[dict] = []
        for day in self._date_window():
            data = await self._get(f"/scores/json/GamesByDate/{self.competition}/{day}")
            if not isinstance(data, list):
                raise MalformedProviderData(
                    f"[{self.name}] Expected a list of games, got {type(data).__name__}"
                )
            games.extend(data)
        return games

    async def _fetch_match_payload(self, native_id: str) -> dict | None:
        data = await self._get(f"/stats/json/BoxScore/{self.competition}/{native_id}")
        # Box scores come back as a one-element list on some plans
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict) or not data.get("Game"):
            logger.debug(f"[{self.name}] No box score for game {native_id}")
            return None
        return data["Game"]

    def _native_id(self, raw: dict) -> str:
        return str(raw["GameId"])

    def _normalize(self, raw: dict) -> MatchResult:
        status = self._map_status(raw.get("Status"))

        return self._make_result(
            home_team=raw.get("HomeTeamName") or raw.get("HomeTeamKey"),
            away_team=raw.get("AwayTeamName") or raw.get("AwayTeamKey"),
            home_score=raw.get("HomeTeamScore"),
            away_score=raw.get("AwayTeamScore"),
            status=status,
            kickoff=raw.get("DateTimeUTC"),
            league=self.competition,
            season=raw.get("Season"),
            match_day=raw.get("Week") or raw.get("RoundId"),
        )
