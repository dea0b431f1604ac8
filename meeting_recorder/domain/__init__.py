"""
Domain layer exports.
"""

from .models import (
    Artifact,
    Fragment,
    Phase,
    Session,
    SessionOutcome,
    SessionStatus,
    StopResult,
    StopTrigger,
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
]
