"""Observability helpers."""

from agent_insights.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_discovery,
    record_ingestion,
    record_parser_failure,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_discovery",
    "record_ingestion",
    "record_parser_failure",
]
