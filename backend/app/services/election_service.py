"""
Election management service: creation and casting-token issuance.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import AlreadyVoted, ElectionConflict, ElectionNotFound, InactiveElection
from app.core.security import generate_casting_token, hash_voter_identity
from app.models.election import Election
from app.models.vote import CastingToken, ParticipationRecord
from app.schemas.election import ElectionCreate
from app.services.scheduler import TallyScheduler


logger = logging.getLogger(__name__)

_DURATION_UNITS = {"d": "days", "h": "hours", "m": "minutes"}


def parse_duration(value: str) -> timedelta:
    """Parse durations such as "7d", "3h" or "30m"."""
    value = (value or "").strip()
    unit = _DURATION_UNITS.get(value[-1:])
    if not unit or not value[:-1].isdigit() or int(value[:-1]) <= 0:
        raise ValueError(
            'Invalid duration format. Use "d" for days, "h" for hours, "m" for minutes'
        )
    return timedelta(**{unit: int(value[:-1])})


class ElectionService:
    """Service for election management operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_election(self, election_data: ElectionCreate) -> Election:
        """Create an active election and schedule its tally."""
        duration = parse_duration(election_data.duration or settings.DEFAULT_ELECTION_DURATION)

        existing = await self.db.execute(
            select(Election.id).where(
                Election.sink_ref == election_data.sink_ref,
                Election.is_active.is_(True)
            )
        )
        if existing.first() is not None:
            raise ElectionConflict()

        end_time = datetime.utcnow() + duration
        election = Election(
            title=election_data.title,
            candidates=list(election_data.candidates),
            election_type=election_data.election_type,
            seats=election_data.election_type.seats,
            is_active=True,
            sink_ref=election_data.sink_ref,
            end_time=end_time,
        )
        self.db.add(election)
        await self.db.flush()

        await TallyScheduler(self.db).schedule(election.id, end_time)

        await self.db.commit()
        await self.db.refresh(election)

        logger.info(
            "New election started: %s (ID: %s), ending at %s",
            election.title, election.id, end_time.isoformat()
        )
        return election

    async def get_election(self, election_id: uuid.UUID) -> Optional[Election]:
        """Get an election by ID."""
        result = await self.db.execute(
            select(Election)
            .where(Election.id == election_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def issue_token(self, election_id: uuid.UUID, voter_id: str) -> CastingToken:
        """
        Issue a casting token for a voter.

        An unused token already issued to the same voter is returned as is.

        Raises:
            ElectionNotFound, InactiveElection: Election unusable
            AlreadyVoted: A participation record exists for this voter
        """
        election = await self.get_election(election_id)
        if not election:
            raise ElectionNotFound()
        if not election.is_active:
            raise InactiveElection()

        voter_hash = hash_voter_identity(voter_id, str(election.id))

        voted = await self.db.get(ParticipationRecord, (election.id, voter_hash))
        if voted is not None:
            raise AlreadyVoted()

        existing = await self._unused_token(election.id, voter_hash)
        if existing is not None:
            if existing.is_valid:
                return existing
            # Expired; make room under the one-unused-token index
            await self.db.delete(existing)
            await self.db.flush()

        expires_at = None
        if settings.CASTING_TOKEN_TTL_HOURS:
            expires_at = datetime.utcnow() + timedelta(hours=settings.CASTING_TOKEN_TTL_HOURS)

        token = CastingToken(
            token=generate_casting_token(),
            election_id=election.id,
            voter_hash=voter_hash,
            expires_at=expires_at,
        )
        self.db.add(token)
        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent request issued this voter's token first
            await self.db.rollback()
            logger.info("Token for a voter in election %s was issued concurrently", election_id)
            existing = await self._unused_token(election_id, voter_hash)
            if existing is None:
                raise
            return existing

        await self.db.refresh(token)
        return token

    async def _unused_token(self, election_id: uuid.UUID, voter_hash: str) -> Optional[CastingToken]:
        result = await self.db.execute(
            select(CastingToken).where(
                CastingToken.election_id == election_id,
                CastingToken.voter_hash == voter_hash,
                CastingToken.is_used.is_(False)
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
