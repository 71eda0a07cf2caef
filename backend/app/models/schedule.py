"""
Durable scheduled job model.
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime, ForeignKey

from app.core.database import Base
from app.models.election import GUID


TALLY_ELECTION = "tally_election"


class ScheduledJob(Base):
    """A job to run at or after due_time. Removed once it has run."""

    __tablename__ = "scheduled_jobs"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    election_id = Column(
        GUID(),
        ForeignKey("elections.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    task_type = Column(String(50), default=TALLY_ELECTION, nullable=False)
    due_time = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<ScheduledJob(id={self.id}, task='{self.task_type}', due={self.due_time})>"
