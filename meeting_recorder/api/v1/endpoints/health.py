"""
Health check endpoint.
"""

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter

from meeting_recorder.api.v1.schemas.session import HealthCheckResponse
from meeting_recorder.config.settings import settings

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse, tags=["Health"])
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns:
        Health status with timestamp and version
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(),
        "version": settings.version,
    }
