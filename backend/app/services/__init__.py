"""
Business logic services.
"""
from app.services.ballot_service import BallotCaster
from app.services.election_service import ElectionService
from app.services.scheduler import TallyScheduler
from app.services.tally_coordinator import TallyCoordinator, TallyOutcome

__all__ = [
    "BallotCaster",
    "ElectionService",
    "TallyScheduler",
    "TallyCoordinator",
    "TallyOutcome",
]
