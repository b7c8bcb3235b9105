"""Shared fixtures for oracle tests."""

from collections.abc import Callable

import pytest

from sports_oracle.src.MatchResult import MatchResult, MatchStatus

KICKOFF_MS = 1714590000000  # 2024-05-01 19:00 UTC


@pytest.fixture
def make_result() -> Callable[..., MatchResult]:
    """Factory for MatchResult records with sensible defaults."""

    def _make(
        source: str,
        home_score: int,
        away_score: int,
        *,
        match_id: int = 42,
        status: MatchStatus = MatchStatus.FINISHED,
        home_team: str = "Arsenal",
        away_team: str = "Chelsea",
    ) -> MatchResult:
        return MatchResult(
            match_id=match_id,
            home_team=home_team,
            away_team=away_team,
            home_score=home_score,
            away_score=away_score,
            status=status,
            league="Premier League",
            season="2023/2024",
            match_day="35",
            timestamp=KICKOFF_MS,
            source=source,
        )

    return _make
