"""
Ballot casting: token validation, atomic consumption and anonymous storage.
"""
import logging
from typing import List, Sequence, Tuple

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AlreadyVoted,
    ConcurrentCastConflict,
    ElectionNotFound,
    InactiveElection,
    InvalidToken,
    MalformedBallot,
    StorageFailure,
    VotingError,
)
from app.models.election import Election
from app.models.vote import Ballot, CastingToken, ParticipationRecord


logger = logging.getLogger(__name__)


def validate_ranking(candidates: Sequence[str], ranked_choices: Sequence[str]) -> None:
    """
    Check that a ranking is a permutation of the candidate set.

    Raises:
        MalformedBallot: Wrong length, duplicates or unknown identifiers
    """
    if not isinstance(ranked_choices, (list, tuple)):
        raise MalformedBallot("Ranked choices must be a list")
    if len(ranked_choices) != len(candidates):
        raise MalformedBallot(
            f"Ballot must rank all {len(candidates)} candidates, got {len(ranked_choices)}"
        )
    duplicates = sorted({c for c in ranked_choices if ranked_choices.count(c) > 1})
    if duplicates:
        raise MalformedBallot(f"Ballot ranks {', '.join(duplicates)} more than once")
    unknown = [c for c in ranked_choices if c not in candidates]
    if unknown:
        raise MalformedBallot(f"Ballot ranks unknown candidate(s): {', '.join(unknown)}")


class BallotCaster:
    """Casts ballots. One instance per database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_vote_details(self, token: str) -> Tuple[str, List[str]]:
        """
        Get the title and candidates for the election a token belongs to.

        Returns:
            Tuple of (title, candidates)
        """
        _, election = await self._load_token_and_election(token)
        return election.title, list(election.candidates)

    async def cast(self, token: str, ranked_choices: Sequence[str]) -> None:
        """
        Cast a ballot with a single-use token, as one transaction.

        The token is consumed with a conditional update, so of several
        concurrent casts with the same token exactly one succeeds.

        Raises:
            InvalidToken, InactiveElection, ElectionNotFound: Token unusable
            AlreadyVoted: The voter already cast a ballot with another token
            MalformedBallot: Ranking is not a permutation of the candidates
            ConcurrentCastConflict: Token consumed by a concurrent request
            StorageFailure: The store failed; nothing was persisted
        """
        try:
            token_record, election = await self._load_token_and_election(token)

            # Validation precedes every write so a bad ballot keeps the token usable
            validate_ranking(election.candidates, ranked_choices)

            await self._consume_token(token_record.id)
            await self._record_participation(election.id, token_record.voter_hash)

            self.db.add(Ballot(
                election_id=election.id,
                ranked_choices=list(ranked_choices),
            ))
            await self.db.commit()
        except VotingError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Storage error while casting ballot: %s", e)
            raise StorageFailure() from e

        logger.info("Ballot cast for election %s", election.id)

    async def _load_token_and_election(self, token: str) -> Tuple[CastingToken, Election]:
        result = await self.db.execute(
            select(CastingToken)
            .where(CastingToken.token == token)
            .execution_options(populate_existing=True)
        )
        token_record = result.scalar_one_or_none()

        if not token_record or not token_record.is_valid:
            raise InvalidToken()

        result = await self.db.execute(
            select(Election)
            .where(Election.id == token_record.election_id)
            .execution_options(populate_existing=True)
        )
        election = result.scalar_one_or_none()

        if not election:
            raise ElectionNotFound("The election associated with this token could not be found")

        if not election.is_active:
            raise InactiveElection()

        return token_record, election

    async def _consume_token(self, token_id) -> None:
        """Mark the token used only if it is still unused."""
        result = await self.db.execute(
            update(CastingToken)
            .where(CastingToken.id == token_id, CastingToken.is_used.is_(False))
            .values(is_used=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning("Lost casting race for a token; rejecting duplicate cast")
            raise ConcurrentCastConflict()

    async def _record_participation(self, election_id, voter_hash: str) -> None:
        """
        Insert the participation record.

        Raises:
            AlreadyVoted: The voter already cast a ballot with another token
        """
        values = {"election_id": election_id, "voter_hash": voter_hash}
        dialect = self.db.get_bind().dialect.name

        if dialect in ("postgresql", "sqlite"):
            insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
            result = await self.db.execute(
                insert(ParticipationRecord).values(**values).on_conflict_do_nothing()
            )
            inserted = result.rowcount == 1
        else:
            inserted = await self.db.get(ParticipationRecord, (election_id, voter_hash)) is None
            if inserted:
                self.db.add(ParticipationRecord(**values))
                await self.db.flush()

        if not inserted:
            logger.warning("Rejected a second ballot from a voter in election %s", election_id)
            raise AlreadyVoted()
