"""
Vote-related Pydantic schemas.
"""
from typing import List
from pydantic import BaseModel, Field


class VoteDetailsResponse(BaseModel):
    """What a voter needs to fill in a ballot."""

    title: str = Field(..., description="Election title")
    candidates: List[str] = Field(..., description="Candidates to rank")


class VoteSubmitRequest(BaseModel):
    """Submit a full ranking with a casting token."""

    token: str = Field(..., min_length=1, description="Single-use casting token")
    ranks: List[str] = Field(..., description="Every candidate, most preferred first")


class VoteSubmitResponse(BaseModel):
    """Acknowledgement of a cast ballot."""

    success: bool = Field(..., description="Whether the ballot was recorded")
    message: str = Field(..., description="Human-readable status")
