"""
API v1 router aggregation.
"""

from fastapi import APIRouter
from meeting_recorder.api.v1.endpoints import session, health

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(session.router, prefix="/session", tags=["Session"])
api_router.include_router(health.router, tags=["Health"])

__all__ = ["api_router"]
