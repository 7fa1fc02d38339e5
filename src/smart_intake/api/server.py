"""Smart intake FastAPI server."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..errors import (
    DraftAccessError,
    DraftNotFoundError,
    EmptyInputError,
    IntakeError,
    SessionNotFoundError,
)
from ..session_store import run_sweeper

if TYPE_CHECKING:
    from ..config import IntakeConfig
    from ..orchestrator import IntakeOrchestrator

logger = logging.getLogger(__name__)


def create_app(
    orchestrator: "IntakeOrchestrator",
    config: "IntakeConfig | None" = None,
    start_sweeper: bool = True,
) -> FastAPI:
    """Create FastAPI app with injected dependencies.

    Args:
        orchestrator: IntakeOrchestrator serving every intake route
        config: IntakeConfig for system info (defaults to the orchestrator's)
        start_sweeper: Run the expired-session sweeper while the app is up

    Returns:
        Configured FastAPI application
    """
    config = config or orchestrator.config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper = None
        if start_sweeper:
            sweeper = asyncio.create_task(
                run_sweeper(orchestrator.sessions, config.sweep_interval_seconds)
            )
        try:
            yield
        finally:
            if sweeper:
                sweeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweeper
            close = getattr(orchestrator.model, "close", None)
            if close:
                await close()

    app = FastAPI(
        title="Smart Intake",
        description="AI-assisted intake and clarification for productivity drafts",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store dependencies in app state
    app.state.orchestrator = orchestrator
    app.state.approval = orchestrator.approval
    app.state.turn_logger = orchestrator.turn_logger
    app.state.config = config

    @app.exception_handler(SessionNotFoundError)
    async def session_not_found(request: Request, exc: SessionNotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc), "session_id": exc.session_id})

    @app.exception_handler(DraftNotFoundError)
    async def draft_not_found(request: Request, exc: DraftNotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc), "draft_id": exc.draft_id})

    @app.exception_handler(DraftAccessError)
    async def draft_forbidden(request: Request, exc: DraftAccessError):
        logger.warning(str(exc))
        return JSONResponse(status_code=403, content={"error": "Not allowed to act on this draft"})

    @app.exception_handler(EmptyInputError)
    async def empty_input(request: Request, exc: EmptyInputError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(IntakeError)
    async def intake_error(request: Request, exc: IntakeError):
        return JSONResponse(status_code=409, content={"error": str(exc)})

    from .routes import drafts, smart_input, system

    app.include_router(smart_input.router, prefix="/api/v1/smart-input", tags=["smart-input"])
    app.include_router(drafts.router, prefix="/api/v1/drafts", tags=["drafts"])
    app.include_router(system.router, prefix="/api/v1/system", tags=["system"])

    @app.get("/health")
    async def health():
        """Quick health check."""
        return {"status": "ok", "service": "smart-intake"}

    return app
