"""
Election-related Pydantic schemas.
"""
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, Field, field_validator

from app.models.election import ElectionType


class ElectionCreate(BaseModel):
    """Schema for creating an election."""

    title: str = Field(..., min_length=1, max_length=200, description="Election title")
    candidates: List[str] = Field(..., description="Candidate names in ballot order")
    election_type: ElectionType = Field(
        default=ElectionType.SINGLE_WINNER,
        description="single_winner (1 seat) or multi_winner (2 seats)"
    )
    duration: Optional[str] = Field(
        None,
        description='How long voting stays open, e.g. "7d", "3h", "30m"'
    )
    sink_ref: str = Field(
        default="log",
        max_length=500,
        description='Where results are posted: "log" or a webhook URL'
    )

    @field_validator("candidates")
    @classmethod
    def validate_candidates(cls, v: List[str]) -> List[str]:
        names = [c.strip() for c in v if c and c.strip()]
        if len(names) < 2:
            raise ValueError("You must provide at least two candidates")
        if len(set(names)) != len(names):
            raise ValueError("Candidate names must be distinct")
        return names

    @field_validator("sink_ref")
    @classmethod
    def validate_sink_ref(cls, v: str) -> str:
        if v != "log" and not v.startswith(("http://", "https://")):
            raise ValueError('sink_ref must be "log" or an http(s) URL')
        return v


class ElectionResponse(BaseModel):
    """Schema for election response."""

    id: UUID
    title: str
    candidates: List[str]
    election_type: ElectionType
    seats: int
    is_active: bool
    sink_ref: str
    end_time: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class TokenIssueRequest(BaseModel):
    """Request a casting token on behalf of an eligible voter."""

    voter_id: str = Field(..., min_length=1, description="Voter identity; only its hash is stored")


class TokenIssueResponse(BaseModel):
    """A casting token and the link a voter opens to vote."""

    token: str = Field(..., description="Single-use casting token")
    election_id: UUID = Field(..., description="Election ID")
    vote_url: str = Field(..., description="Voting link carrying the token")
