"""System status endpoints."""

from typing import Optional

from fastapi import APIRouter, Request

from ...model_client import CircuitBreaker, ModelStats

router = APIRouter()


@router.get("/turns")
async def recent_turns(request: Request, limit: int = 50, offset: int = 0, user_id: Optional[str] = None):
    """Get recent intake turns.

    Args:
        limit: Maximum entries to return
        offset: Skip this many entries
        user_id: Only turns for this user

    Returns:
        Turn log entries, newest first
    """
    turn_logger = request.app.state.turn_logger
    entries = turn_logger.get_entries(limit=limit, offset=offset, user_id=user_id)
    return {"entries": [e.to_dict() for e in entries], "total": len(entries)}


@router.get("/model")
async def model_status(request: Request):
    """Model client configuration, usage counters and circuit state."""
    orchestrator = request.app.state.orchestrator
    config = request.app.state.config
    model = orchestrator.model

    status = {
        "model": config.model.model,
        "base_url": config.model.base_url,
        "timeout_seconds": config.model.timeout_seconds,
        "question_budget": config.question_budget,
        "active_sessions": len(orchestrator.sessions),
    }
    stats = getattr(model, "stats", None)
    if isinstance(stats, ModelStats):
        status["stats"] = stats.to_dict()
    breaker = getattr(model, "breaker", None)
    if isinstance(breaker, CircuitBreaker):
        status["circuit_open"] = breaker.is_open
    return status
