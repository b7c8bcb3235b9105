"""Unit tests for ResultValidator."""

import random

import pytest

from sports_oracle.src.MatchResult import Winner
from sports_oracle.src.ResultValidator import (
    ConsensusOutcome,
    ResultValidator,
    tally_scores,
)


class TestResultValidatorInit:
    """Test ResultValidator initialization."""

    def test_default_threshold(self) -> None:
        """Default threshold should be 2."""
        assert ResultValidator().confirmation_threshold == 2

    def test_custom_threshold(self) -> None:
        """Custom threshold should be stored."""
        assert ResultValidator(confirmation_threshold=3).confirmation_threshold == 3

    def test_invalid_threshold(self) -> None:
        """threshold < 1 should raise ValueError."""
        with pytest.raises(ValueError, match="confirmation_threshold must be at least 1"):
            ResultValidator(confirmation_threshold=0)


class TestResultValidatorConsensus:
    """Test quorum decisions."""

    def test_two_of_three_agree(self, make_result) -> None:
        """Two matching reports out of three reach a threshold of 2."""
        validator = ResultValidator(confirmation_threshold=2)
        outcome = validator.validate(
            [
                make_result("a", 2, 1),
                make_result("b", 2, 1),
                make_result("c", 1, 1),
            ]
        )

        assert outcome is not None
        assert outcome.match_id == 42
        assert outcome.score == (2, 1)
        assert outcome.winner is Winner.HOME_WIN
        assert outcome.agreement_count == 2
        assert outcome.chosen_source == "a"
        assert outcome.sources == ("a", "b")

    def test_disagreement_returns_none(self, make_result) -> None:
        """Two different scores with threshold 2 yield no decision."""
        validator = ResultValidator(confirmation_threshold=2)
        outcome = validator.validate([make_result("a", 0, 0), make_result("b", 1, 0)])
        assert outcome is None

    def test_fewer_results_than_threshold(self, make_result) -> None:
        """Too few results is a normal 'no decision'."""
        validator = ResultValidator(confirmation_threshold=3)
        assert validator.validate([make_result("a", 1, 0), make_result("b", 1, 0)]) is None

    def test_empty_input(self) -> None:
        """No results at all yields no decision."""
        assert ResultValidator().validate([]) is None

    def test_single_source_with_threshold_1(self, make_result) -> None:
        """Threshold 1 accepts a lone report."""
        outcome = ResultValidator(confirmation_threshold=1).validate([make_result("a", 0, 3)])
        assert outcome is not None
        assert outcome.winner is Winner.AWAY_WIN
        assert outcome.agreement_count == 1

    def test_unanimous(self, make_result) -> None:
        """All providers agreeing counts every one of them."""
        outcome = ResultValidator(confirmation_threshold=2).validate(
            [make_result(s, 1, 1) for s in ("a", "b", "c")]
        )
        assert outcome is not None
        assert outcome.winner is Winner.DRAW
        assert outcome.agreement_count == 3

    def test_largest_group_below_threshold(self, make_result) -> None:
        """A plurality that misses the threshold is still no decision."""
        validator = ResultValidator(confirmation_threshold=3)
        outcome = validator.validate(
            [
                make_result("a", 2, 0),
                make_result("b", 2, 0),
                make_result("c", 1, 0),
                make_result("d", 3, 0),
            ]
        )
        assert outcome is None


class TestResultValidatorTieBreak:
    """Test equal-size groups."""

    def test_first_seen_group_wins_tie(self, make_result) -> None:
        """With two groups of equal size the one seen first is chosen."""
        validator = ResultValidator(confirmation_threshold=2)
        outcome = validator.validate(
            [
                make_result("a", 0, 1),
                make_result("b", 2, 2),
                make_result("c", 2, 2),
                make_result("d", 0, 1),
            ]
        )
        assert outcome is not None
        assert outcome.score == (0, 1)
        assert outcome.chosen_source == "a"

    def test_tie_follows_input_order(self, make_result) -> None:
        """Whichever tied group appears first in the input wins."""
        results = [
            make_result("a", 0, 1),
            make_result("b", 2, 2),
            make_result("c", 2, 2),
            make_result("d", 0, 1),
        ]
        outcome = ResultValidator(confirmation_threshold=2).validate(list(reversed(results)))
        assert outcome is not None
        assert outcome.score == (0, 1)
        assert outcome.chosen_source == "d"

        outcome = ResultValidator(confirmation_threshold=2).validate(
            [results[1], results[0], results[2], results[3]]
        )
        assert outcome is not None
        assert outcome.score == (2, 2)


class TestResultValidatorDeterminism:
    """Test re-evaluation stability."""

    def test_same_input_same_outcome(self, make_result) -> None:
        """Validating the same input twice yields equal outcomes."""
        validator = ResultValidator(confirmation_threshold=2)
        results = [make_result("a", 3, 2), make_result("b", 3, 2), make_result("c", 2, 2)]
        assert validator.validate(results) == validator.validate(results)

    def test_permutations_agree_without_ties(self, make_result) -> None:
        """Without a tie, input order does not change score, winner or count."""
        validator = ResultValidator(confirmation_threshold=2)
        results = [
            make_result("a", 3, 2),
            make_result("b", 3, 2),
            make_result("c", 2, 2),
            make_result("d", 3, 2),
        ]
        expected = validator.validate(results)
        assert expected is not None

        rng = random.Random(7)
        for _ in range(10):
            shuffled = results[:]
            rng.shuffle(shuffled)
            outcome = validator.validate(shuffled)
            assert outcome is not None
            assert outcome.score == expected.score
            assert outcome.winner == expected.winner
            assert outcome.agreement_count == expected.agreement_count


class TestTallyScores:
    """Test score grouping helper."""

    def test_groups_preserve_first_seen_order(self, make_result) -> None:
        """Groups appear in the order their score was first reported."""
        groups = tally_scores(
            [make_result("a", 1, 0), make_result("b", 0, 0), make_result("c", 1, 0)]
        )
        assert list(groups) == [(1, 0), (0, 0)]
        assert [r.source for r in groups[(1, 0)]] == ["a", "c"]


class TestConsensusOutcome:
    """Test ConsensusOutcome value type."""

    def test_score_property(self) -> None:
        outcome = ConsensusOutcome(
            match_id=7,
            home_score=1,
            away_score=2,
            winner=Winner.AWAY_WIN,
            agreement_count=2,
            chosen_source="a",
        )
        assert outcome.score == (1, 2)
        assert outcome.sources == ()
