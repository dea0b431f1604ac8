"""
FastAPI application initialization for the Meeting Recorder API.
"""

from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from meeting_recorder.api.v1.router import api_router
from meeting_recorder.config.settings import Settings, settings
from meeting_recorder.core.dependencies import (
    build_orchestrator,
    get_orchestrator,
    set_orchestrator,
)
from meeting_recorder.core.logging import get_logger, setup_logging
from meeting_recorder.session.orchestrator import SessionOrchestrator

OrchestratorFactory = Callable[[Settings], SessionOrchestrator]


def create_app(orchestrator_factory: Optional[OrchestratorFactory] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        orchestrator_factory: Builds the session orchestrator at startup
            (defaults to the Zoom/ffmpeg/webhook wiring from settings)
    """
    factory = orchestrator_factory or build_orchestrator

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        description="Joins a meeting, records its audio and delivers it to a webhook",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(api_router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event():
        """
        Application startup event.
        Configure logging and create the session orchestrator.
        """
        setup_logging()
        logger = get_logger("startup")
        logger.info("Starting Meeting Recorder API...")

        set_orchestrator(factory(settings))

        logger.info("Meeting Recorder API started successfully")

    @app.on_event("shutdown")
    async def shutdown_event():
        """
        Application shutdown event.
        Stop background work and release any remaining session.
        """
        logger = get_logger("shutdown")
        logger.info("Shutting down Meeting Recorder API...")

        try:
            orchestrator = await get_orchestrator()
        except Exception as e:
            logger.warning(f"No orchestrator to shut down: {e}")
        else:
            await orchestrator.shutdown()
        finally:
            set_orchestrator(None)

        logger.info("Meeting Recorder API shutdown complete")

    @app.get("/", tags=["Root"], include_in_schema=False)
    async def root():
        """
        Root endpoint - redirect to the API docs.
        """
        return RedirectResponse(url="/api/docs")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "meeting_recorder.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
