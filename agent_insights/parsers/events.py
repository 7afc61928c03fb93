"""Parse one JSON-lines agent log into normalized SessionEvent records."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterator

from agent_insights.models import SessionEvent, ToolUse

logger = logging.getLogger("agent_insights.parsers")

MAX_TEXT_LENGTH = 2000

# Record types that carry no conversational content.
_SKIPPED_RECORD_TYPES = {"file-history-snapshot"}


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def iter_json_records(path: Path) -> Iterator[dict[str, Any]]:
    """Yield each JSON object line of a file, skipping blank and malformed lines.

    I/O errors propagate to the caller.
    """
    with path.open("r", encoding="utf-8", errors="replace") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped:
                continue
            try:
                record = json.loads(stripped)
            except ValueError:
                continue
            if isinstance(record, dict):
                yield record


def extract_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        chunks: list[str] = []
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text":
                chunks.append(_as_str(block.get("text")))
        return "\n".join(chunks)
    return ""


def extract_tool_uses(content: Any) -> list[ToolUse]:
    if not isinstance(content, list):
        return []
    tools: list[ToolUse] = []
    for block in content:
        if not isinstance(block, dict) or block.get("type") != "tool_use":
            continue
        raw_input = block.get("input")
        tools.append(
            ToolUse(
                name=_as_str(block.get("name")),
                id=_as_str(block.get("id")),
                input=raw_input if isinstance(raw_input, dict) else {},
            )
        )
    return tools


def event_from_record(record: dict[str, Any], agent_id: str) -> SessionEvent | None:
    record_type = _as_str(record.get("type"))
    if record_type in _SKIPPED_RECORD_TYPES:
        return None

    message = record.get("message")
    if not isinstance(message, dict):
        message = {}
    content = message.get("content")
    text = extract_text(content)

    return SessionEvent(
        agentId=_as_str(record.get("agentId")) or agent_id,
        type=record_type,
        role=_as_str(message.get("role")),
        timestamp=_as_str(record.get("timestamp")),
        textContent=text[:MAX_TEXT_LENGTH],
        hasText=len(text) > 0,
        toolUse=extract_tool_uses(content),
        model=_as_str(message.get("model")),
    )


def parse_jsonl_file(path: Path, agent_id: str) -> list[SessionEvent]:
    """Parse a JSONL log file; an unreadable file yields no events."""
    events: list[SessionEvent] = []
    try:
        for record in iter_json_records(path):
            event = event_from_record(record, agent_id)
            if event is not None:
                events.append(event)
    except OSError as exc:
        logger.debug(f"Skipping unreadable log {path}: {exc}")
        return []
    return events
