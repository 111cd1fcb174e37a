"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import HTTPException, Request

from personalization.engine import PersonalizationEngine


def get_engine(request: Request) -> PersonalizationEngine:
    """The engine built by the application lifespan."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return engine
