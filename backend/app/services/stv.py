"""
Single Transferable Vote tally engine.

Droop quota with fractional surplus transfer: a winner's ballots keep
counting for their next preferences, scaled by surplus / count. A winner
exactly at quota has no surplus and their ballots are not reweighted. When
nobody reaches the quota the lowest candidate is eliminated and their
ballots fall through to later preferences at unchanged weight.

The engine is a pure function over an in-memory snapshot. It never touches
the store and is safe to run on any worker. Weights are exact fractions so
quota comparisons do not drift.
"""
import random
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Callable, Dict, List, Optional, Sequence

from app.core.exceptions import TallyComputationFailure


@dataclass
class SurplusTransfer:
    """Surplus redistributed from a candidate elected in a round."""

    candidate: str
    count: Fraction
    surplus: Fraction
    transfer_weight: Fraction


@dataclass
class TallyRound:
    """Standings and decisions of a single counting round."""

    index: int
    # Every candidate, including elected, eliminated and zero-vote ones
    counts: Dict[str, Fraction]
    hopeful: List[str]
    elected: List[str] = field(default_factory=list)
    eliminated: Optional[str] = None
    transfers: List[SurplusTransfer] = field(default_factory=list)
    elected_by_default: bool = False
    tied: List[str] = field(default_factory=list)


@dataclass
class TallyResult:
    """Outcome of a complete tally."""

    winners: List[str]
    rounds: List[TallyRound]
    quota: int
    seats: int
    total_ballots: int
    candidates: List[str]


TieBreak = Callable[[List[str], List[TallyRound], List[str]], str]


@dataclass
class _WeightedBallot:
    preferences: Sequence[str]
    weight: Fraction = Fraction(1)
    current: Optional[str] = None


def droop_quota(total_ballots: int, seats: int) -> int:
    """Smallest integer count no more than ``seats`` candidates can reach."""
    return total_ballots // (seats + 1) + 1


def listing_order_tie_break(
    tied: List[str],
    rounds: List[TallyRound],
    candidates: List[str]
) -> str:
    """Eliminate the tied candidate listed last on the ballot paper."""
    return max(tied, key=candidates.index)


def backwards_tie_break(
    tied: List[str],
    rounds: List[TallyRound],
    candidates: List[str]
) -> str:
    """
    Eliminate whoever had fewer votes in the most recent earlier round
    where the tied candidates differ. Falls back to listing order.
    """
    remaining = list(tied)
    for earlier in reversed(rounds[:-1]):
        lowest = min(earlier.counts[c] for c in remaining)
        narrowed = [c for c in remaining if earlier.counts[c] == lowest]
        if len(narrowed) < len(remaining):
            remaining = narrowed
        if len(remaining) == 1:
            return remaining[0]
    return listing_order_tie_break(remaining, rounds, candidates)


class SeededTieBreak:
    """Pseudo-random tie-break, reproducible for a given seed."""

    def __init__(self, seed: int = 0):
        self.seed = seed
        self._random = random.Random(seed)

    def __call__(
        self,
        tied: List[str],
        rounds: List[TallyRound],
        candidates: List[str]
    ) -> str:
        return self._random.choice(sorted(tied))


def get_tie_break(name: str, seed: int = 0) -> TieBreak:
    """Build a fresh tie-break policy by name."""
    if name == "backwards":
        return backwards_tie_break
    if name == "listing_order":
        return listing_order_tie_break
    if name == "seeded":
        return SeededTieBreak(seed)
    raise ValueError(f"Unknown tie-break policy: {name}")


def tally(
    candidates: Sequence[str],
    ballots: Sequence[Sequence[str]],
    seats: int,
    tie_break: Optional[TieBreak] = None
) -> TallyResult:
    """
    Compute the STV result for a set of ranked ballots.

    Args:
        candidates: Ordered, distinct candidate identifiers
        ballots: Rankings, most preferred first
        seats: Number of seats to fill
        tie_break: Policy choosing whom to eliminate among tied lowest

    Returns:
        TallyResult with winners in order of election and the round log

    Raises:
        TallyComputationFailure: Bad arguments, or no result within
            2 x len(candidates) rounds
    """
    candidates = list(candidates)
    if seats < 1:
        raise TallyComputationFailure(f"Seat count must be positive, got {seats}")
    if not candidates or len(set(candidates)) != len(candidates):
        raise TallyComputationFailure("Candidate list must be non-empty and distinct")

    tie_break = tie_break or backwards_tie_break
    quota = droop_quota(len(ballots), seats)
    weighted = [_WeightedBallot(preferences=tuple(b)) for b in ballots]

    elected: List[str] = []
    eliminated = set()
    rounds: List[TallyRound] = []
    max_rounds = 2 * len(candidates)

    while len(elected) < seats:
        index = len(rounds) + 1
        if index > max_rounds:
            raise TallyComputationFailure(
                f"Tally did not terminate within {max_rounds} rounds"
            )

        excluded = eliminated.union(elected)
        hopeful = [c for c in candidates if c not in excluded]
        counts = {c: Fraction(0) for c in candidates}

        for ballot in weighted:
            ballot.current = None
            for choice in ballot.preferences:
                if choice in counts and choice not in excluded:
                    counts[choice] += ballot.weight
                    ballot.current = choice
                    break

        current = TallyRound(index=index, counts=counts, hopeful=hopeful)
        rounds.append(current)

        open_seats = seats - len(elected)
        # sorted() is stable, so equal counts keep listing order
        reached = sorted(
            (c for c in hopeful if counts[c] >= quota),
            key=lambda c: counts[c],
            reverse=True
        )[:open_seats]

        if reached:
            for winner in reached:
                elected.append(winner)
                current.elected.append(winner)

                count = counts[winner]
                surplus = count - quota
                # No surplus: ballots move on to later preferences at full weight
                if surplus <= 0:
                    continue
                transfer_weight = surplus / count
                for ballot in weighted:
                    if ballot.current == winner:
                        ballot.weight *= transfer_weight
                current.transfers.append(
                    SurplusTransfer(winner, count, surplus, transfer_weight)
                )
            continue

        if len(hopeful) <= open_seats:
            elected.extend(hopeful)
            current.elected.extend(hopeful)
            current.elected_by_default = True
            break

        lowest = min(counts[c] for c in hopeful)
        tied = [c for c in hopeful if counts[c] == lowest]
        if len(tied) == 1:
            loser = tied[0]
        else:
            current.tied = tied
            loser = tie_break(tied, rounds, candidates)
            if loser not in tied:
                raise TallyComputationFailure(
                    f"Tie-break chose {loser!r}, which is not among {tied}"
                )
        eliminated.add(loser)
        current.eliminated = loser

    return TallyResult(
        winners=elected,
        rounds=rounds,
        quota=quota,
        seats=seats,
        total_ballots=len(ballots),
        candidates=candidates,
    )
