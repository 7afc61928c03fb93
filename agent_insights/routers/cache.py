"""Cache status and refresh API."""
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from agent_insights.errors import DiscoveryError
from agent_insights.routers.api import get_session_store

logger = logging.getLogger("agent_insights.cache")

cache_router = APIRouter(prefix="/api", tags=["cache"])


@cache_router.post("/refresh")
async def refresh_sessions(request: Request):
    """Drop every cached session and rediscover from disk."""
    store = get_session_store(request)
    try:
        count = await store.refresh()
    except DiscoveryError as exc:
        logger.error(f"Refresh failed: {exc}")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    logger.info(f"Refresh complete: {count} sessions")
    return {"count": count}


@cache_router.get("/cache/status")
async def get_cache_status(request: Request):
    store = get_session_store(request)
    watcher = getattr(request.app.state, "file_watcher", None)
    return {
        "status": "active",
        "logRoot": str(store.log_root),
        "generation": store.generation,
        "parsedSessions": store.parsed_count,
        "watcher": "running" if watcher is not None and watcher.is_running else "stopped",
    }
