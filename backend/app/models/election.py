"""
Election database model.
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime, Integer, Boolean, Enum, JSON, TypeDecorator, CHAR
import enum

from app.core.database import Base


class GUID(TypeDecorator):
    """Platform-independent GUID type for SQLite and PostgreSQL."""
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            from sqlalchemy.dialects.postgresql import UUID
            return dialect.type_descriptor(UUID())
        else:
            return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        elif dialect.name == 'postgresql':
            return str(value)
        else:
            if isinstance(value, uuid.UUID):
                return str(value)
            else:
                return str(uuid.UUID(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if not isinstance(value, uuid.UUID):
            return uuid.UUID(value)
        return value


class ElectionType(str, enum.Enum):
    """Election type; decides the number of seats."""
    SINGLE_WINNER = "single_winner"
    MULTI_WINNER = "multi_winner"

    @property
    def seats(self) -> int:
        return 2 if self is ElectionType.MULTI_WINNER else 1


class Election(Base):
    """A ranked-choice election."""

    __tablename__ = "elections"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)

    # Ordered list of distinct candidate names, immutable after creation
    candidates = Column(JSON, nullable=False)

    election_type = Column(
        Enum(ElectionType),
        default=ElectionType.SINGLE_WINNER,
        nullable=False
    )
    seats = Column(Integer, default=1, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Opaque reference to the result sink ("log" or a webhook URL)
    sink_ref = Column(String(500), nullable=False, default="log")

    end_time = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Election(id={self.id}, title='{self.title}', active={self.is_active})>"

    @property
    def total_candidates(self) -> int:
        """Get total number of candidates."""
        return len(self.candidates) if self.candidates else 0
