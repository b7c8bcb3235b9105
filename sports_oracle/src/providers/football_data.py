"""football-data.org provider.

Endpoints:
    GET /v4/matches?dateFrom={date}&dateTo={date}   (dateTo is exclusive)
    GET /v4/matches/{id}
Auth: X-Auth-Token header
Rate Limit: 10 calls/min (free tier)
"""

import logging
from datetime import date, timedelta
from typing import Any

from ..MatchResult import MatchResult, MatchStatus
from .base import BaseProvider, MalformedProviderData, register_provider

logger = logging.getLogger(__name__)


@register_provider
class FootballDataProvider(BaseProvider):
    """Provider for the football-data.org v4 API.

    Scores are ``score.fullTime`` minus ``score.penalties`` (v4 counts
    shootout goals in fullTime), i.e. the score after extra time. AWARDED
    matches count as finished with the awarded score.
    """

    name = "football_data"
    DEFAULT_BASE_URL = "https://api.football-data.org/v4"
    API_KEY_HEADER = "X-Auth-Token"

    STATUS_MAP = {
        "SCHEDULED": MatchStatus.NOT_STARTED,
        "TIMED": MatchStatus.NOT_STARTED,
        "POSTPONED": MatchStatus.NOT_STARTED,
        "CANCELLED": MatchStatus.NOT_STARTED,
        "IN_PLAY": MatchStatus.LIVE,
        "PAUSED": MatchStatus.LIVE,
        "LIVE": MatchStatus.LIVE,
        "EXTRA_TIME": MatchStatus.LIVE,
        "PENALTY_SHOOTOUT": MatchStatus.LIVE,
        "SUSPENDED": MatchStatus.LIVE,
        "FINISHED": MatchStatus.FINISHED,
        "AWARDED": MatchStatus.FINISHED,
    }

    async def _fetch_live_payload(self) -> list[dict]:
        window = self._date_window()
        date_to = date.fromisoformat(window[-1]) + timedelta(days=1)
        data = await self._get(
            "/matches",
            params={"dateFrom": window[0], "dateTo": date_to.isoformat()},
        )
        matches = data.get("matches") if isinstance(data, dict) else None
        if not isinstance(matches, list):
            raise MalformedProviderData(f"[{self.name}] Response has no 'matches' list")
        return matches

    async def _fetch_match_payload(self, native_id: str) -> dict | None:
        data = await self._get(f"/matches/{native_id}")
        if not isinstance(data, dict):
            return None
        # v2 wrapped the match in a "match" key
        return data.get("match", data)

    def _native_id(self, raw: dict) -> str:
        return str(raw["id"])

    def _normalize(self, raw: dict) -> MatchResult:
        status = self._map_status(raw.get("status"))
        score = raw.get("score") or {}
        home_score, away_score = self._score_without_shootout(score)
        season = raw.get("season") or {}

        return self._make_result(
            home_team=(raw.get("homeTeam") or {}).get("name"),
            away_team=(raw.get("awayTeam") or {}).get("name"),
            home_score=home_score,
            away_score=away_score,
            status=status,
            kickoff=raw.get("utcDate"),
            league=(raw.get("competition") or {}).get("name"),
            season=self._season_label(season),
            match_day=raw.get("matchday") or raw.get("stage"),
        )

    def _score_without_shootout(self, score: dict) -> tuple[Any, Any]:
        full_time = score.get("fullTime") or {}
        home, away = full_time.get("home"), full_time.get("away")

        penalties = score.get("penalties") or {}
        pen_home, pen_away = penalties.get("home"), penalties.get("away")
        if pen_home is None or pen_away is None or home is None or away is None:
            return home, away

        logger.debug(
            f"[{self.name}] Removing shootout {pen_home}-{pen_away} from full time {home}-{away}"
        )
        try:
            return int(home) - int(pen_home), int(away) - int(pen_away)
        except (TypeError, ValueError) as e:
            raise MalformedProviderData(f"Invalid penalty score: {penalties!r}") from e

    @staticmethod
    def _season_label(season: dict) -> str:
        start = str(season.get("startDate") or "")[:4]
        end = str(season.get("endDate") or "")[:4]
        if start and end and start != end:
            return f"{start}/{end}"
        return start
