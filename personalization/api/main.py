"""
FastAPI application for the adaptive personalization engine.

Provides REST API for:
- Telemetry ingestion
- Content recommendations
- Detected learning needs
- Adaptive assessment sessions

Domain errors map to HTTP status codes:
    ValidationError -> 422, SessionNotFound -> 404,
    SessionClosed / ConcurrencyConflict -> 409, DataAccessError -> 502
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from personalization import __version__
from personalization.core.errors import (
    ConcurrencyConflict,
    DataAccessError,
    PersonalizationError,
    SessionClosed,
    SessionNotFound,
    ValidationError,
)
from personalization.core.logging import configure_logging
from personalization.engine import PersonalizationEngine, build_engine

ERROR_STATUS: list[tuple[type[PersonalizationError], int]] = [
    (ValidationError, 422),
    (SessionNotFound, 404),
    (SessionClosed, 409),
    (ConcurrencyConflict, 409),
    (DataAccessError, 502),
]


def _status_for(exc: PersonalizationError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 500


def create_app(engine: PersonalizationEngine | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        engine: Pre-built engine (tests); built from settings when None
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown events."""
        from config import get_settings

        settings = get_settings()
        configure_logging(settings.log_level, settings.log_file)
        logger.info("Starting personalization service...")
        app.state.engine = engine or build_engine(settings)
        logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

        yield

        logger.info("Shutting down personalization service...")
        await app.state.engine.close()
        app.state.engine = None

    app = FastAPI(
        title="Adaptive Personalization Engine",
        description="""
        Learner telemetry in, personalized content and adaptive assessments out.

        ## Data Flow

        ```
        Telemetry -> Signal Extractor -> Need Detector
            -> Candidate Generator -> Multi-Strategy Scorer
            -> Fusion & Ranker -> Diversifier -> Recommendations
        ```
        """,
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PersonalizationError)
    async def personalization_error_handler(request: Request, exc: PersonalizationError) -> JSONResponse:
        status = _status_for(exc)
        body: dict[str, Any] = {
            "error": type(exc).__name__,
            "detail": str(exc),
            "retryable": exc.retryable,
        }
        field = getattr(exc, "field", None)
        if field:
            body["field"] = field
        if status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=status, content=body)

    # ========================================
    # Health & Status Endpoints
    # ========================================

    @app.get("/", tags=["Health"])
    def root() -> dict[str, str]:
        """Root endpoint returning service info."""
        return {
            "service": "adaptive-personalization-engine",
            "version": __version__,
            "status": "ok",
        }

    @app.get("/health", tags=["Health"])
    def health_check(request: Request) -> dict[str, Any]:
        engine_ready = getattr(request.app.state, "engine", None) is not None
        return {
            "status": "healthy" if engine_ready else "starting",
            "timestamp": datetime.now().isoformat(),
            "version": __version__,
        }

    # ========================================
    # Routers
    # ========================================

    from personalization.api.routers import learners_router, sessions_router

    app.include_router(learners_router.router, prefix="/learners", tags=["Learners"])
    app.include_router(sessions_router.router, prefix="/sessions", tags=["Assessment Sessions"])

    return app


app = create_app()
