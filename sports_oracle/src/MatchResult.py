"""MatchResult: Canonical match record shared by all providers.

Every provider client normalizes its native payload into a MatchResult so that
the consensus engine can compare records from different vendors directly.

The canonical match id is derived from the kickoff date and the normalized
team names, hashed the same way on-chain feed keys are:
    keccak256(date + "|" + home + "|" + away), first 8 bytes as big-endian int

.. code-block:: python

    >>> a = canonical_match_id("Arsenal FC", "Chelsea FC", 1714590000000)
    >>> a == canonical_match_id("Arsenal", "Chelsea", 1714600000000)
    True
    >>> derive_winner(2, 1)
    <Winner.HOME_WIN: 1>
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, IntEnum

from web3 import Web3


class MatchStatus(str, Enum):
    """Normalized match status."""

    NOT_STARTED = "NOT_STARTED"
    LIVE = "LIVE"
    FINISHED = "FINISHED"


class Winner(IntEnum):
    """Match outcome, valued as the settlement contract's result codes."""

    HOME_WIN = 1
    AWAY_WIN = 2
    DRAW = 3


def derive_winner(home_score: int, away_score: int) -> Winner:
    """Derive the winner from a final score.

    :param home_score: Home team goals.
    :param away_score: Away team goals.
    :returns: HOME_WIN, AWAY_WIN or DRAW.
    """
    if home_score > away_score:
        return Winner.HOME_WIN
    if home_score < away_score:
        return Winner.AWAY_WIN
    return Winner.DRAW


# Tokens dropped from team names before hashing ("Arsenal FC" == "Arsenal")
_CLUB_TOKENS = frozenset(
    {"fc", "afc", "cf", "sc", "ac", "ssc", "as", "fk", "sk", "cfc", "bc", "calcio", "club"}
)

# Vendor spellings mapped onto one name, after token stripping
TEAM_ALIASES: dict[str, str] = {
    "man united": "manchester united",
    "man utd": "manchester united",
    "manchester utd": "manchester united",
    "man city": "manchester city",
    "spurs": "tottenham hotspur",
    "tottenham": "tottenham hotspur",
    "wolves": "wolverhampton wanderers",
    "wolverhampton": "wolverhampton wanderers",
    "nottm forest": "nottingham forest",
    "newcastle": "newcastle united",
    "brighton hove albion": "brighton",
    "brighton and hove albion": "brighton",
    "west ham": "west ham united",
    "inter": "internazionale",
    "inter milan": "internazionale",
    "internazionale milano": "internazionale",
}


def normalize_team_name(name: str) -> str:
    """Normalize a team name for cross-provider matching.

    Strips accents and punctuation, folds case, removes club tokens such as
    "FC" and applies :data:`TEAM_ALIASES`.

    :param name: Team name as reported by a provider.
    :returns: Normalized name.
    """
    decomposed = unicodedata.normalize("NFKD", name)
    ascii_name = "".join(c for c in decomposed if not unicodedata.combining(c))
    folded = ascii_name.casefold().replace("'", "").replace("&", " and ")
    cleaned = re.sub(r"[^a-z0-9 ]+", " ", folded)
    tokens = [t for t in cleaned.split() if t not in _CLUB_TOKENS]
    normalized = " ".join(tokens)
    return TEAM_ALIASES.get(normalized, normalized)


def canonical_match_id(home_team: str, away_team: str, kickoff_ms: int) -> int:
    """Compute the provider-independent match id.

    :param home_team: Home team name (any provider spelling).
    :param away_team: Away team name (any provider spelling).
    :param kickoff_ms: Kickoff time in epoch milliseconds.
    :returns: 64-bit unsigned integer id.
    """
    day = datetime.fromtimestamp(kickoff_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d")
    key = f"{day}|{normalize_team_name(home_team)}|{normalize_team_name(away_team)}"
    return int.from_bytes(Web3.keccak(text=key)[:8], "big")


@dataclass(frozen=True)
class MatchResult:
    """Normalized result of a single match as reported by one provider.

    :ivar match_id: Canonical match id shared across providers.
    :ivar home_team: Home team name.
    :ivar away_team: Away team name.
    :ivar home_score: Home team goals (0 before kickoff).
    :ivar away_score: Away team goals (0 before kickoff).
    :ivar status: Normalized match status.
    :ivar league: Competition name (informational).
    :ivar season: Season label (informational).
    :ivar match_day: Round or matchday label (informational).
    :ivar timestamp: Kickoff time in epoch milliseconds.
    :ivar source: Name of the provider that produced this record.
    """

    match_id: int
    home_team: str
    away_team: str
    home_score: int
    away_score: int
    status: MatchStatus
    league: str
    season: str
    match_day: str
    timestamp: int
    source: str

    def __post_init__(self) -> None:
        if self.home_score < 0 or self.away_score < 0:
            raise ValueError(
                f"Negative score for match {self.match_id}: "
                f"{self.home_score}-{self.away_score}"
            )

    @property
    def is_finished(self) -> bool:
        """Check if the match has a final result."""
        return self.status is MatchStatus.FINISHED

    @property
    def score(self) -> tuple[int, int]:
        """Return the (home, away) score pair."""
        return (self.home_score, self.away_score)

    @property
    def winner(self) -> Winner:
        """Return the outcome implied by the current score."""
        return derive_winner(self.home_score, self.away_score)

    def __str__(self) -> str:
        return (
            f"{self.home_team} {self.home_score}-{self.away_score} {self.away_team} "
            f"[{self.status.value}, {self.source}]"
        )
