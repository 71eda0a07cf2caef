"""
Pydantic schemas for request/response validation.
"""
from app.schemas.election import (
    ElectionCreate,
    ElectionResponse,
    TokenIssueRequest,
    TokenIssueResponse,
)
from app.schemas.vote import (
    VoteDetailsResponse,
    VoteSubmitRequest,
    VoteSubmitResponse,
)
from app.schemas.tally import (
    ReportField,
    ReportSeverity,
    TallyReport,
    TallyOutcomeResponse,
)

__all__ = [
    # Election
    "ElectionCreate",
    "ElectionResponse",
    "TokenIssueRequest",
    "TokenIssueResponse",
    # Vote
    "VoteDetailsResponse",
    "VoteSubmitRequest",
    "VoteSubmitResponse",
    # Tally
    "ReportField",
    "ReportSeverity",
    "TallyReport",
    "TallyOutcomeResponse",
]
