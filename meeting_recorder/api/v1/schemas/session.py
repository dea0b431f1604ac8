"""
API request/response schemas for recording session operations.
"""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class JoinRequest(BaseModel):
    """Request to join a meeting and start recording."""
    model_config = ConfigDict(populate_by_name=True)

    meeting_url: str = Field(
        default="",
        validation_alias=AliasChoices("meeting_url", "meetingUrl"),
        description="Meeting URL to join",
    )
    passcode: str = Field(default="", description="Meeting passcode, if the meeting requires one")
    requester_label: str = Field(
        default="",
        validation_alias=AliasChoices("requester_label", "customer_name"),
        description="Who the recording is for; forwarded with the audio",
    )


class JoinResponse(BaseModel):
    """Response for an accepted join request."""
    accepted: bool = True
    generation: int


class StopResponse(BaseModel):
    """Response for a stop request."""
    accepted: bool
    result: str


class SessionOutcomeResponse(BaseModel):
    """How the most recent session ended."""
    generation: int
    meeting_target: str
    requester_label: str
    succeeded: bool
    finished_at: datetime
    error_kind: Optional[str] = None
    error: Optional[str] = None
    stop_trigger: Optional[str] = None
    delivered: Optional[bool] = None
    delivery_error: Optional[str] = None
    artifact_size: Optional[int] = None
    fragment_count: int = 0


class SessionStatusResponse(BaseModel):
    """Current session status."""
    phase: str
    generation: int
    meeting_target: Optional[str] = None
    requester_label: Optional[str] = None
    started_at: Optional[datetime] = None
    fragment_count: int = 0
    bytes_received: int = 0
    stop_trigger: Optional[str] = None
    last_outcome: Optional[SessionOutcomeResponse] = None


class HealthCheckResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    timestamp: datetime
    version: str


class ErrorResponse(BaseModel):
    """Error response."""
    detail: str
