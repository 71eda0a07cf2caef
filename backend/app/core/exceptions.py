"""
Error taxonomy shared by the casting path, the tally and the API layer.
"""
from fastapi import status


class VotingError(Exception):
    """Base class for all domain errors."""

    error_code = "voting_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Voting error"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class InvalidToken(VotingError):
    error_code = "invalid_token"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Invalid or already used token"


class InactiveElection(VotingError):
    error_code = "inactive_election"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "This election has concluded and is no longer active"


class MalformedBallot(VotingError):
    error_code = "malformed_ballot"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid ballot. The ranked list does not match the candidates"


class ConcurrentCastConflict(VotingError):
    """The token was consumed by a concurrent request. Retrying is pointless."""

    error_code = "concurrent_cast_conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "This token was consumed by a concurrent request"


class TallyComputationFailure(VotingError):
    """Fatal for a single tally run."""

    error_code = "tally_failure"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "The tally could not be computed"


class StorageFailure(VotingError):
    error_code = "storage_failure"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal storage error"


class ElectionNotFound(VotingError):
    error_code = "election_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Election not found"


class AlreadyVoted(VotingError):
    error_code = "already_voted"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You have already cast your vote for this election"


class ElectionConflict(VotingError):
    error_code = "election_conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "There is already an active election for this result sink"


class SinkUnavailable(VotingError):
    error_code = "sink_unavailable"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Result sink is unavailable"
