"""API routers for team sessions and analytics."""
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Request

from agent_insights.errors import DiscoveryError
from agent_insights.models import AnalyticsResult, FilterOptions, ParsedSession, SessionSummary
from agent_insights.services.team_analytics import AnalyticsEngine
from agent_insights.session_store import SessionStore

logger = logging.getLogger("agent_insights.api")

sessions_router = APIRouter(prefix="/api/sessions", tags=["sessions"])
analytics_router = APIRouter(prefix="/api/analytics", tags=["analytics"])

_engine = AnalyticsEngine()


def get_session_store(request: Request) -> SessionStore:
    store = getattr(request.app.state, "session_store", None)
    if not store:
        raise HTTPException(status_code=503, detail="Session store not initialized")
    return store


def _discovery_failed(exc: DiscoveryError) -> HTTPException:
    logger.error(f"Session discovery failed: {exc}")
    return HTTPException(status_code=500, detail=str(exc))


@sessions_router.get("", response_model=list[SessionSummary])
async def list_sessions(request: Request):
    """List discovered team sessions (summary fields only), newest first."""
    store = get_session_store(request)
    try:
        sessions = await store.list_sessions()
    except DiscoveryError as exc:
        raise _discovery_failed(exc) from exc
    return [SessionSummary.from_session(session) for session in sessions]


@sessions_router.get("/{session_id}", response_model=ParsedSession)
async def get_session(request: Request, session_id: str):
    """Return the fully assembled session."""
    store = get_session_store(request)
    try:
        parsed = await store.get_parsed_session(session_id)
    except DiscoveryError as exc:
        raise _discovery_failed(exc) from exc
    if parsed is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return parsed


@analytics_router.get("", response_model=AnalyticsResult)
async def get_analytics(
    request: Request,
    project: str | None = Query(None, description="Case-insensitive project name filter"),
    last: str | None = Query(None, description="Relative window such as 7d, 2w or 3m"),
):
    store = get_session_store(request)
    try:
        sessions = await store.list_sessions()
    except DiscoveryError as exc:
        raise _discovery_failed(exc) from exc
    parsed = await store.parse_all(sessions)
    return _engine.calculate(sessions, parsed, FilterOptions(project=project, last=last))
