"""
API v1 schemas module.
"""

from .session import (
    JoinRequest,
    JoinResponse,
    StopResponse,
    SessionOutcomeResponse,
    SessionStatusResponse,
    HealthCheckResponse,
    ErrorResponse,
)

__all__ = [
    "JoinRequest",
    "JoinResponse",
    "StopResponse",
    "SessionOutcomeResponse",
    "SessionStatusResponse",
    "HealthCheckResponse",
    "ErrorResponse",
]
