"""
SQLAlchemy database models.
"""
from app.models.election import Election, ElectionType
from app.models.vote import CastingToken, ParticipationRecord, Ballot
from app.models.schedule import ScheduledJob

__all__ = [
    "Election",
    "ElectionType",
    "CastingToken",
    "ParticipationRecord",
    "Ballot",
    "ScheduledJob",
]
