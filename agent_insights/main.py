"""Agent Insights FastAPI backend: main application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agent_insights import config
from agent_insights.observability import initialize as initialize_observability, shutdown as shutdown_observability
from agent_insights.parsers.sessions import SessionAssembler
from agent_insights.routers.api import analytics_router, sessions_router
from agent_insights.routers.cache import cache_router
from agent_insights.session_store import SessionStore
from agent_insights.watcher import FileWatcher

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("agent_insights")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Agent Insights backend starting up")
    initialize_observability(app)

    store = SessionStore(
        config.LOG_ROOT,
        assembler=SessionAssembler(max_workers=config.PARSE_WORKERS),
        parse_concurrency=config.PARSE_CONCURRENCY,
    )
    app.state.session_store = store

    watcher = FileWatcher()
    app.state.file_watcher = watcher
    if config.WATCHER_ENABLED:
        await watcher.start(store, config.LOG_ROOT)

    yield

    logger.info("Agent Insights backend shutting down")
    await watcher.stop()
    shutdown_observability(app)


app = FastAPI(
    title="Agent Insights API",
    description="Team session reconstruction and analytics for multi-agent runs",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions_router)
app.include_router(analytics_router)
app.include_router(cache_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    store = getattr(app.state, "session_store", None)
    watcher = getattr(app.state, "file_watcher", None)
    return {
        "status": "ok",
        "logRoot": str(store.log_root) if store else "",
        "watcher": "running" if watcher is not None and watcher.is_running else "stopped",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("agent_insights.main:app", host=config.HOST, port=config.PORT, log_level="info")
