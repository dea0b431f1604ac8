"""
Domain models module.
"""

from .session import (
    Artifact,
    Fragment,
    Phase,
    Session,
    SessionOutcome,
    SessionStatus,
    StopResult,
    StopTrigger,
    CAPTURE_PHASES,
)

__all__ = [
    "Artifact",
    "Fragment",
    "Phase",
    "Session",
    "SessionOutcome",
    "SessionStatus",
    "StopResult",
    "StopTrigger",
    "CAPTURE_PHASES",
]
