"""Agent Insights configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    if not value or not value.strip():
        return default
    return Path(value.strip()).expanduser()


# Root of the per-project Claude Code log directories
LOG_ROOT = _env_path("AGENT_INSIGHTS_LOG_ROOT", Path.home() / ".claude" / "projects")

# Parsing
PARSE_WORKERS = max(1, _env_int("AGENT_INSIGHTS_PARSE_WORKERS", 4))
PARSE_CONCURRENCY = max(1, _env_int("AGENT_INSIGHTS_PARSE_CONCURRENCY", 4))

# File watcher
WATCHER_ENABLED = _env_bool("AGENT_INSIGHTS_WATCHER_ENABLED", False)

# Observability
OTEL_ENABLED = _env_bool("AGENT_INSIGHTS_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("AGENT_INSIGHTS_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("AGENT_INSIGHTS_OTEL_SERVICE_NAME", "agent-insights")
PROM_PORT = _env_int("AGENT_INSIGHTS_PROM_PORT", 9464)

# Server settings
HOST = os.getenv("AGENT_INSIGHTS_HOST", "127.0.0.1")
PORT = _env_int("AGENT_INSIGHTS_PORT", 3456)

# CORS
FRONTEND_ORIGIN = os.getenv("AGENT_INSIGHTS_FRONTEND_ORIGIN", "http://localhost:5173")
