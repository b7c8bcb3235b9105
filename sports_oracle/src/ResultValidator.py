"""ResultValidator: Quorum agreement on a final score across providers.

Algorithm:
    1. Return None if fewer than threshold results are supplied
    2. Group results by the literal (home_score, away_score) pair
    3. Pick the largest group; on equal sizes the group seen first wins
    4. Return None if the largest group is smaller than threshold
    5. Derive the winner numerically from the agreed score

The validator does not regroup by match id. Callers pass results for a
single match only.

.. code-block:: python

    >>> validator = ResultValidator(confirmation_threshold=2)
    >>> outcome = validator.validate([r_a_2_1, r_b_2_1, r_c_1_1])
    >>> outcome.score, outcome.winner, outcome.agreement_count
    ((2, 1), <Winner.HOME_WIN: 1>, 2)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from .MatchResult import MatchResult, Winner, derive_winner

DEFAULT_CONFIRMATION_THRESHOLD = 2


@dataclass(frozen=True)
class ConsensusOutcome:
    """Canonical result agreed on by a quorum of providers.

    :ivar match_id: Canonical match id.
    :ivar home_score: Agreed home team goals.
    :ivar away_score: Agreed away team goals.
    :ivar winner: Outcome derived from the agreed score.
    :ivar agreement_count: Number of providers reporting the agreed score.
    :ivar chosen_source: Provider whose record was selected as canonical.
    :ivar sources: All providers reporting the agreed score, in input order.
    """

    match_id: int
    home_score: int
    away_score: int
    winner: Winner
    agreement_count: int
    chosen_source: str
    sources: tuple[str, ...] = field(default=())

    @property
    def score(self) -> tuple[int, int]:
        """Return the agreed (home, away) score pair."""
        return (self.home_score, self.away_score)


def tally_scores(
    results: Sequence[MatchResult],
) -> dict[tuple[int, int], list[MatchResult]]:
    """Group results by score pair, preserving first-seen order.

    :param results: Results for a single match.
    :returns: Dict mapping (home, away) to the results reporting it.
    """
    groups: dict[tuple[int, int], list[MatchResult]] = {}
    for result in results:
        groups.setdefault(result.score, []).append(result)
    return groups


class ResultValidator:
    """Decides whether enough providers agree on a final score.

    Fails closed: anything short of a quorum yields None, which callers treat
    as "wait for the next cycle".

    :ivar confirmation_threshold: Minimum number of agreeing providers.
    """

    def __init__(
        self, confirmation_threshold: int = DEFAULT_CONFIRMATION_THRESHOLD
    ) -> None:
        """Initialize the validator.

        :param confirmation_threshold: Minimum agreeing providers (default: 2).
        :raises ValueError: If threshold is below 1.
        """
        if confirmation_threshold < 1:
            raise ValueError("confirmation_threshold must be at least 1")
        self.confirmation_threshold = confirmation_threshold

    def validate(self, results: Sequence[MatchResult]) -> ConsensusOutcome | None:
        """Derive the consensus outcome for one match.

        :param results: Normalized results for a single match, one per provider.
        :returns: ConsensusOutcome, or None if no score reaches the threshold.
        """
        if len(results) < self.confirmation_threshold:
            return None

        best: list[MatchResult] = []
        for group in tally_scores(results).values():
            # Strictly greater keeps the first-seen group on ties
            if len(group) > len(best):
                best = group

        if len(best) < self.confirmation_threshold:
            return None

        chosen = best[0]
        return ConsensusOutcome(
            match_id=chosen.match_id,
            home_score=chosen.home_score,
            away_score=chosen.away_score,
            winner=derive_winner(chosen.home_score, chosen.away_score),
            agreement_count=len(best),
            chosen_source=chosen.source,
            sources=tuple(r.source for r in best),
        )
