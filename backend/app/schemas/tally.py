"""
Tally-related Pydantic schemas.
"""
from typing import Optional, List
from enum import Enum
from uuid import UUID
from pydantic import BaseModel, Field


class ReportSeverity(str, Enum):
    """Severity tag attached to every report."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

    @property
    def color(self) -> str:
        return _SEVERITY_COLORS[self]


_SEVERITY_COLORS = {
    ReportSeverity.INFO: "#0099ff",
    ReportSeverity.SUCCESS: "#2ecc71",
    ReportSeverity.WARNING: "#f1c40f",
    ReportSeverity.ERROR: "#e74c3c",
}


class ReportField(BaseModel):
    """Named value shown alongside a report body."""

    name: str
    value: str


class TallyReport(BaseModel):
    """
    Structured, platform-neutral report posted to a result sink.
    Sinks decide how to render it.
    """

    title: str = Field(..., description="Report title")
    severity: ReportSeverity = Field(default=ReportSeverity.INFO, description="Severity tag")
    body: str = Field(default="", description="Report body text")
    fields: List[ReportField] = Field(default_factory=list, description="Structured fields")

    @property
    def color(self) -> str:
        return self.severity.color

    def to_payload(self) -> dict:
        """JSON-ready dict including the color tag."""
        payload = self.model_dump(mode="json")
        payload["color"] = self.color
        return payload


class TallyOutcomeResponse(BaseModel):
    """Summary of a tally run."""

    election_id: UUID = Field(..., description="Election ID")
    ran: bool = Field(..., description="False when the election was already closed")
    winners: List[str] = Field(default_factory=list, description="Elected candidates in order")
    quota: Optional[int] = Field(None, description="Droop quota used")
    total_ballots: int = Field(default=0, description="Ballots counted")
    rounds: int = Field(default=0, description="Number of counting rounds")
    reports_sent: int = Field(default=0, description="Reports delivered to the sink")
    error: Optional[str] = Field(None, description="Error raised during the run, if any")
    cleaned_up: bool = Field(default=False, description="Whether identity data was purged")
