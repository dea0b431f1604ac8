"""
Dependency injection for the Meeting Recorder API.
Provides the session orchestrator to API endpoints.
"""

from typing import Optional, TYPE_CHECKING

from fastapi import Depends

from meeting_recorder.core.exceptions import HTTPInternalServerError

if TYPE_CHECKING:
    from meeting_recorder.config.settings import Settings
    from meeting_recorder.session.orchestrator import SessionOrchestrator

_orchestrator: Optional["SessionOrchestrator"] = None


def set_orchestrator(instance: Optional["SessionOrchestrator"]) -> None:
    """Set (or clear) the global session orchestrator."""
    global _orchestrator
    _orchestrator = instance


async def get_orchestrator() -> "SessionOrchestrator":
    """
    Dependency injection for the session orchestrator.

    Returns:
        SessionOrchestrator instance

    Raises:
        HTTPInternalServerError: If the orchestrator is not initialized
    """
    if _orchestrator is None:
        raise HTTPInternalServerError("Session orchestrator not initialized")

    return _orchestrator


OrchestratorDep = Depends(get_orchestrator)


def build_orchestrator(settings: "Settings") -> "SessionOrchestrator":
    """Create the session orchestrator from configuration."""
    from meeting_recorder.session.orchestrator import SessionOrchestrator

    return SessionOrchestrator.from_settings(settings)
