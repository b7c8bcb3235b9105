"""API-Football (api-sports.io) provider.

Endpoints:
    GET /fixtures?date={YYYY-MM-DD}
    GET /fixtures?id={id}
Auth: x-apisports-key header
Rate Limit: 100 calls/day (free tier)

API-Football reports request errors inside a 200 response ("errors" key),
which are surfaced as malformed data.
"""

import logging

from ..MatchResult import MatchResult, MatchStatus
from .base import BaseProvider, MalformedProviderData, register_provider

logger = logging.getLogger(__name__)


@register_provider
class ApiFootballProvider(BaseProvider):
    """Provider for the API-Football v3 API.

    Scores are read from ``goals``, which includes extra time but not
    penalty shootouts.
    """

    name = "api_football"
    DEFAULT_BASE_URL = "https://v3.football.api-sports.io"
    API_KEY_HEADER = "x-apisports-key"

    STATUS_MAP = {
        "TBD": MatchStatus.NOT_STARTED,
        "NS": MatchStatus.NOT_STARTED,
        "PST": MatchStatus.NOT_STARTED,
        "CANC": MatchStatus.NOT_STARTED,
        "1H": MatchStatus.LIVE,
        "HT": MatchStatus.LIVE,
        "2H": MatchStatus.LIVE,
        "ET": MatchStatus.LIVE,
        "BT": MatchStatus.LIVE,
        "P": MatchStatus.LIVE,
        "SUSP": MatchStatus.LIVE,
        "INT": MatchStatus.LIVE,
        "ABD": MatchStatus.LIVE,
        "LIVE": MatchStatus.LIVE,
        "FT": MatchStatus.FINISHED,
        "AET": MatchStatus.FINISHED,
        "PEN": MatchStatus.FINISHED,
        "AWD": MatchStatus.FINISHED,
        "WO": MatchStatus.FINISHED,
    }

    async def _fetch_live_payload(self) -> list[dict]:
        fixtures: list[dict] = []
        for day in self._date_window():
            day_fixtures = self._unwrap(await self._get("/fixtures", params={"date": day}))
            logger.debug(f"[{self.name}] {len(day_fixtures)} fixtures on {day}")
            fixtures.extend(day_fixtures)
        return fixtures

    async def _fetch_match_payload(self, native_id: str) -> dict | None:
        fixtures = self._unwrap(await self._get("/fixtures", params={"id": native_id}))
        return fixtures[0] if fixtures else None

    def _unwrap(self, data: object) -> list[dict]:
        if not isinstance(data, dict):
            raise MalformedProviderData(f"[{self.name}] Unexpected response: {data!r}")

        errors = data.get("errors")
        if errors:
            raise MalformedProviderData(f"[{self.name}] API error: {errors}")

        response = data.get("response")
        if not isinstance(response, list):
            raise MalformedProviderData(f"[{self.name}] Response has no 'response' list")
        return response

    def _native_id(self, raw: dict) -> str:
        return str(raw["fixture"]["id"])

    def _normalize(self, raw: dict) -> MatchResult:
        fixture = raw.get("fixture") or {}
        league = raw.get("league") or {}
        teams = raw.get("teams") or {}
        goals = raw.get("goals") or {}

        status = self._map_status((fixture.get("status") or {}).get("short"))
        kickoff = fixture.get("timestamp") or fixture.get("date")

        return self._make_result(
            home_team=(teams.get("home") or {}).get("name"),
            away_team=(teams.get("away") or {}).get("name"),
            home_score=goals.get("home"),
            away_score=goals.get("away"),
            status=status,
            kickoff=kickoff,
            league=league.get("name"),
            season=league.get("season"),
            match_day=league.get("round"),
        )
