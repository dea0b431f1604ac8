"""
Recording session control endpoints (join, stop, status).
"""

from typing import Any, Dict

from fastapi import APIRouter, status

from meeting_recorder.api.v1.schemas.session import (
    ErrorResponse,
    JoinRequest,
    JoinResponse,
    SessionStatusResponse,
    StopResponse,
)
from meeting_recorder.core.dependencies import OrchestratorDep
from meeting_recorder.core.exceptions import (
    HTTPBadRequest,
    HTTPConflict,
    InvalidJoinRequest,
    NoActiveSessionError,
    SessionConflictError,
)
from meeting_recorder.core.logging import get_logger
from meeting_recorder.domain.models import StopResult

router = APIRouter()
logger = get_logger("api.session")


@router.post(
    "/join",
    response_model=JoinResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def join_meeting(
    request: JoinRequest,
    orchestrator=OrchestratorDep
) -> Dict[str, Any]:
    """
    Join a meeting and start recording.

    Returns as soon as the request is accepted; joining continues in the
    background and its progress is visible through ``/session/status``.
    """
    logger.info(f"Join request: {request.meeting_url} (label: {request.requester_label or '-'})")
    try:
        generation = await orchestrator.join(
            meeting_target=request.meeting_url,
            passcode=request.passcode,
            requester_label=request.requester_label,
        )
    except InvalidJoinRequest as e:
        raise HTTPBadRequest(f"meeting_url required: {e.message}")
    except SessionConflictError as e:
        raise HTTPConflict(e.message)

    return {"accepted": True, "generation": generation}


@router.post(
    "/stop",
    response_model=StopResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={400: {"model": ErrorResponse}},
)
async def stop_recording(orchestrator=OrchestratorDep) -> Dict[str, Any]:
    """
    Stop the active recording.

    Conversion and delivery continue in the background. Stopping a session
    that is already stopping is accepted and has no further effect.
    """
    try:
        result = await orchestrator.stop()
    except NoActiveSessionError as e:
        raise HTTPBadRequest(e.message)

    return {
        "accepted": result in (StopResult.ACCEPTED, StopResult.DEFERRED),
        "result": result.value,
    }


@router.get("/status", response_model=SessionStatusResponse)
async def get_session_status(orchestrator=OrchestratorDep) -> Dict[str, Any]:
    """
    Get the current session phase and the outcome of the last session.
    """
    return orchestrator.status().to_dict()
