"""
Vote-related database models.

Ballot rows never carry a column that can be joined to a CastingToken or a
ParticipationRecord, and none of the three tables stores a cast timestamp.
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index, JSON

from app.core.database import Base
from app.models.election import GUID


class CastingToken(Base):
    """
    Single-use casting token.
    Minted per voter and election; consumed by exactly one ballot.
    """

    __tablename__ = "casting_tokens"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    token = Column(String(128), unique=True, nullable=False, index=True)
    election_id = Column(
        GUID(),
        ForeignKey("elections.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # One-way hash of the voter identity, never the raw identity
    voter_hash = Column(String(64), nullable=False, index=True)

    is_used = Column(Boolean, default=False, nullable=False)
    issued_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    # At most one unused token per voter and election
    __table_args__ = (
        Index(
            "uq_casting_tokens_unused_voter",
            election_id,
            voter_hash,
            unique=True,
            postgresql_where=is_used.is_(False),
            sqlite_where=is_used.is_(False),
        ),
    )

    def __repr__(self) -> str:
        return f"<CastingToken(id={self.id}, is_used={self.is_used})>"

    @property
    def is_valid(self) -> bool:
        """Check if the token can still be used."""
        if self.is_used:
            return False
        if self.expires_at and datetime.utcnow() > self.expires_at:
            return False
        return True


class ParticipationRecord(Base):
    """Marks that a voter has voted in an election. Holds no ballot content."""

    __tablename__ = "participation_records"

    election_id = Column(
        GUID(),
        ForeignKey("elections.id", ondelete="CASCADE"),
        primary_key=True
    )
    voter_hash = Column(String(64), primary_key=True)

    def __repr__(self) -> str:
        return f"<ParticipationRecord(election_id={self.election_id})>"


class Ballot(Base):
    """Anonymous ranked ballot."""

    __tablename__ = "ballots"

    # Random key so row identity reveals nothing about cast order
    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    election_id = Column(
        GUID(),
        ForeignKey("elections.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    ranked_choices = Column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<Ballot(id={self.id})>"
