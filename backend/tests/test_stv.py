"""
Tests for the STV tally engine.
"""
import itertools
from fractions import Fraction

import pytest

from app.core.exceptions import TallyComputationFailure
from app.services.stv import (
    SeededTieBreak,
    backwards_tie_break,
    droop_quota,
    get_tie_break,
    listing_order_tie_break,
    tally,
)


ABC = ["A", "B", "C"]


class TestQuota:
    """Droop quota."""

    @pytest.mark.parametrize("ballots, seats, expected", [
        (5, 1, 3),
        (6, 2, 3),
        (100, 2, 34),
        (101, 1, 51),
        (0, 1, 1),
    ])
    def test_droop_quota(self, ballots, seats, expected):
        assert droop_quota(ballots, seats) == expected

    def test_result_carries_quota(self):
        result = tally(ABC, [ABC] * 7, 2)
        assert result.quota == 7 // 3 + 1


class TestScenarios:
    """Worked examples."""

    def test_unanimous_single_winner(self):
        result = tally(ABC, [["A", "B", "C"]] * 5, 1)

        assert result.quota == 3
        assert result.winners == ["A"]
        assert len(result.rounds) == 1
        assert result.rounds[0].counts["A"] == 5

    def test_two_seats_with_zero_surplus(self):
        ballots = [["A", "B", "C"]] * 3 + [["B", "A", "C"]] * 2 + [["C", "A", "B"]]

        result = tally(ABC, ballots, 2)

        assert result.quota == 3
        first, second = result.rounds
        assert first.counts == {"A": 3, "B": 2, "C": 1}
        assert first.elected == ["A"]
        assert first.transfers == []
        # A's ballots move on to B at full weight
        assert second.counts["B"] == 5
        assert second.elected == ["B"]
        assert second.eliminated is None
        assert result.winners == ["A", "B"]

    def test_winner_at_quota_passes_full_ballots_on(self):
        ballots = (
            [["A", "B", "C", "D"]] * 4
            + [["C", "D", "B", "A"]] * 3
            + [["D", "C", "B", "A"]] * 2
        )

        result = tally(["A", "B", "C", "D"], ballots, 2)

        assert result.quota == 4
        assert result.rounds[0].elected == ["A"]
        assert result.rounds[1].counts["B"] == 4
        assert result.winners == ["A", "B"]

    def test_surplus_flows_to_next_preference(self):
        ballots = [["A", "B", "C"]] * 5 + [["C", "B", "A"]]

        result = tally(ABC, ballots, 2)

        first = result.rounds[0]
        transfer = first.transfers[0]
        assert transfer.count == 5
        assert transfer.surplus == 2
        assert transfer.transfer_weight == Fraction(2, 5)

        second = result.rounds[1]
        assert second.counts["B"] == 2
        assert second.counts["C"] == 1
        assert second.eliminated == "C"
        assert result.winners == ["A", "B"]

    def test_simultaneous_winners_in_descending_order(self):
        ballots = [["A", "B", "C"]] * 4 + [["B", "A", "C"]] * 5 + [["C", "A", "B"]]

        result = tally(ABC, ballots, 2)

        assert result.quota == 4
        assert result.rounds[0].elected == ["B", "A"]
        assert result.winners == ["B", "A"]

    def test_remaining_candidates_fill_open_seats(self):
        result = tally(["A", "B"], [["A", "B"]] * 3, 2)

        assert result.winners == ["A", "B"]
        assert len(result.rounds) == 2
        last = result.rounds[-1]
        assert last.elected_by_default is True
        assert last.eliminated is None


class TestProperties:
    """Invariants over many ballot sets."""

    @staticmethod
    def ballot_sets():
        orderings = list(itertools.permutations(["A", "B", "C", "D"]))
        for size in (1, 5, 12, 24):
            for offset in (0, 7):
                yield [list(orderings[(offset + i * 5) % len(orderings)]) for i in range(size)]

    def test_first_round_counts_sum_to_ballots(self):
        for ballots in self.ballot_sets():
            for seats in (1, 2):
                result = tally(["A", "B", "C", "D"], ballots, seats)
                assert sum(result.rounds[0].counts.values()) == len(ballots)

    def test_terminates_within_round_limit(self):
        for ballots in self.ballot_sets():
            for seats in (1, 2):
                result = tally(["A", "B", "C", "D"], ballots, seats)
                assert len(result.rounds) <= 2 * 4
                assert len(result.winners) == seats
                assert len(set(result.winners)) == seats

    def test_weight_carried_forward_equals_surplus(self):
        ballots = [["A", "B", "C"]] * 5 + [["C", "B", "A"]]

        result = tally(ABC, ballots, 2)

        transfer = result.rounds[0].transfers[0]
        second = result.rounds[1]
        carried = sum(second.counts[c] for c in second.hopeful) - 1
        assert carried == transfer.count - result.quota

    def test_every_round_lists_every_candidate(self):
        ballots = [["A", "B", "C"]] * 3 + [["B", "A", "C"]] * 2 + [["C", "A", "B"]]

        result = tally(ABC, ballots, 2)

        for tally_round in result.rounds:
            assert set(tally_round.counts) == set(ABC)

    def test_same_input_same_outcome(self):
        ballots = [["A", "B", "C"], ["B", "C", "A"], ["C", "A", "B"]]

        outcomes = {tuple(tally(ABC, ballots, 1).winners) for _ in range(5)}

        assert len(outcomes) == 1


class TestTieBreak:
    """Elimination tie-breaks."""

    BALLOTS = [["A", "B", "C"]] * 2 + [["B", "A", "C"]] + [["C", "B", "A"]]

    def test_backwards_tie_break_uses_earlier_rounds(self):
        result = tally(ABC, self.BALLOTS, 1)

        # Round 1: B and C tied with no history, C is listed last
        assert result.rounds[0].tied == ["B", "C"]
        assert result.rounds[0].eliminated == "C"
        # Round 2: A and B tied, B was behind A in round 1
        assert result.rounds[1].eliminated == "B"
        assert result.winners == ["A"]

    def test_injected_tie_break(self):
        def first_alphabetically(tied, rounds, candidates):
            return min(tied)

        result = tally(ABC, self.BALLOTS, 1, tie_break=first_alphabetically)

        assert result.rounds[0].eliminated == "B"

    def test_tie_break_must_pick_a_tied_candidate(self):
        with pytest.raises(TallyComputationFailure):
            tally(ABC, self.BALLOTS, 1, tie_break=lambda tied, rounds, candidates: "Z")

    def test_listing_order(self):
        assert listing_order_tie_break(["A", "C"], [], ABC) == "C"

    def test_backwards_without_history_falls_back_to_listing(self):
        assert backwards_tie_break(["B", "A"], [], ABC) == "B"

    def test_seeded_is_reproducible(self):
        first = SeededTieBreak(42)
        second = SeededTieBreak(42)
        ties = [["A", "B", "C"], ["B", "C"], ["A", "C"]]

        assert [first(t, [], ABC) for t in ties] == [second(t, [], ABC) for t in ties]

    def test_get_tie_break(self):
        assert get_tie_break("backwards") is backwards_tie_break
        assert get_tie_break("listing_order") is listing_order_tie_break
        assert isinstance(get_tie_break("seeded", 3), SeededTieBreak)
        with pytest.raises(ValueError):
            get_tie_break("coin_flip")


class TestInvalidInput:
    """Arguments the engine refuses."""

    def test_zero_seats(self):
        with pytest.raises(TallyComputationFailure):
            tally(ABC, [ABC], 0)

    def test_duplicate_candidates(self):
        with pytest.raises(TallyComputationFailure):
            tally(["A", "A", "B"], [["A", "B"]], 1)

    def test_unknown_preferences_are_skipped(self):
        result = tally(["A", "B"], [["X", "B", "A"]] * 3, 1)

        assert result.rounds[0].counts == {"A": 0, "B": 3}
        assert result.winners == ["B"]
