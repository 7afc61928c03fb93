"""Discover team sessions beneath a Claude Code projects root.

Layout::

    <root>/<encoded-project>/<session>.jsonl                        lead log
    <root>/<encoded-project>/<session>/subagents/agent-<id>.jsonl   teammate logs

Only sessions whose lead log mentions a team-coordination tool are kept.
Metadata is read cheaply from the head and tail of each log so that
discovery stays fast on large trees.
"""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

from agent_insights.date_utils import iso_to_epoch_ms, parse_iso_ts
from agent_insights.errors import DiscoveryError
from agent_insights.models import Session
from agent_insights.parsers.events import extract_text

logger = logging.getLogger("agent_insights.discovery")

AGENT_FILE_PREFIX = "agent-"
AGENT_FILE_SUFFIX = ".jsonl"
COMPACTION_MARKER = "acompact-"
SUBAGENTS_DIRNAME = "subagents"
TEAM_MARKERS = ('"TeamCreate"', '"SendMessage"')

METADATA_HEAD_LINES = 5
TAIL_READ_BYTES = 8192

_TEAMMATE_ID_PATTERN = re.compile(r'teammate_id="([^"]+)"')


def decode_project_dir(encoded: str) -> str:
    """Turn ``-Users-me-repo`` back into ``/Users/me/repo``.

    The leading hyphen stands for the leading separator; every other hyphen
    is treated as a separator as well, so hyphenated directory names are lossy.
    """
    if encoded.startswith("-"):
        encoded = "/" + encoded[1:]
    return encoded.replace("-", "/")


def is_agent_log(filename: str) -> bool:
    return (
        filename.startswith(AGENT_FILE_PREFIX)
        and filename.endswith(AGENT_FILE_SUFFIX)
        and COMPACTION_MARKER not in filename
    )


def agent_id_from_filename(filename: str) -> str:
    stem = filename[: -len(AGENT_FILE_SUFFIX)] if filename.endswith(AGENT_FILE_SUFFIX) else filename
    return stem[len(AGENT_FILE_PREFIX):] if stem.startswith(AGENT_FILE_PREFIX) else stem


def read_first_lines(path: Path, count: int) -> list[str]:
    lines: list[str] = []
    try:
        with path.open("r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                lines.append(line.strip())
                if len(lines) >= count:
                    break
    except OSError:
        return lines
    return lines


def read_last_line(path: Path, tail_bytes: int = TAIL_READ_BYTES) -> str | None:
    """Return the last non-empty line using a bounded tail read."""
    try:
        size = path.stat().st_size
        window = min(tail_bytes, size)
        if window == 0:
            return None
        with path.open("rb") as handle:
            handle.seek(size - window)
            chunk = handle.read(window)
    except OSError:
        return None
    lines = [line for line in chunk.decode("utf-8", errors="replace").split("\n") if line.strip()]
    return lines[-1].strip() if lines else None


def _load_json_line(line: str | None) -> dict[str, Any] | None:
    if not line:
        return None
    try:
        parsed = json.loads(line)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def detect_team_protocol(lead_file: Path) -> bool:
    """True when the lead log mentions a team-coordination tool anywhere."""
    if not lead_file.is_file():
        return False
    try:
        with lead_file.open("r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                if any(marker in line for marker in TEAM_MARKERS):
                    return True
    except OSError:
        return False
    return False


def _is_later(candidate: str, current: str | None) -> bool:
    if not parse_iso_ts(candidate):
        return False
    return current is None or iso_to_epoch_ms(candidate) > iso_to_epoch_ms(current)


def _is_earlier(candidate: str, current: str | None) -> bool:
    if not parse_iso_ts(candidate):
        return False
    return current is None or iso_to_epoch_ms(candidate) < iso_to_epoch_ms(current)


def read_session_metadata(session_dir: Path, subagents_dir: Path, agent_files: list[str]) -> dict[str, Any]:
    start_time: str | None = None
    end_time: str | None = None
    git_branch: str | None = None
    lead_agent_id: str | None = None
    teammate_names: dict[str, str] = {}

    lead_file = session_dir.with_name(session_dir.name + ".jsonl")
    if lead_file.is_file():
        for line in read_first_lines(lead_file, METADATA_HEAD_LINES):
            record = _load_json_line(line)
            if not record:
                continue
            timestamp = record.get("timestamp")
            if record.get("type") in ("user", "assistant") and isinstance(timestamp, str) and parse_iso_ts(timestamp):
                start_time = timestamp
                branch = record.get("gitBranch")
                git_branch = branch if isinstance(branch, str) and branch else None
                break
        last = _load_json_line(read_last_line(lead_file))
        if last and isinstance(last.get("timestamp"), str) and _is_later(last["timestamp"], end_time):
            end_time = last["timestamp"]

    for filename in agent_files:
        path = subagents_dir / filename
        first_lines = read_first_lines(path, 1)
        first = _load_json_line(first_lines[0] if first_lines else None)
        if first:
            raw_agent_id = first.get("agentId")
            agent_id = raw_agent_id if isinstance(raw_agent_id, str) and raw_agent_id else agent_id_from_filename(filename)
            if lead_agent_id is None:
                lead_agent_id = agent_id

            message = first.get("message")
            content = message.get("content") if isinstance(message, dict) else None
            name_match = _TEAMMATE_ID_PATTERN.search(extract_text(content))
            if name_match:
                teammate_names[agent_id] = name_match.group(1)

            timestamp = first.get("timestamp")
            if isinstance(timestamp, str) and _is_earlier(timestamp, start_time):
                start_time = timestamp

        last = _load_json_line(read_last_line(path))
        if last and isinstance(last.get("timestamp"), str) and _is_later(last["timestamp"], end_time):
            end_time = last["timestamp"]

    duration: int | None = None
    if start_time and end_time:
        duration = int(iso_to_epoch_ms(end_time) - iso_to_epoch_ms(start_time))

    return {
        "startTime": start_time,
        "endTime": end_time,
        "gitBranch": git_branch,
        "leadAgentId": lead_agent_id,
        "teammateNames": teammate_names,
        "duration": duration,
    }


def _list_dir(path: Path) -> list[os.DirEntry]:
    with os.scandir(path) as entries:
        return sorted(entries, key=lambda entry: entry.name)


def _discover_entry(project_dir: Path, entry_dir: Path) -> Session | None:
    subagents_dir = entry_dir / SUBAGENTS_DIRNAME
    if not subagents_dir.is_dir():
        return None

    agent_files = sorted(
        entry.name for entry in _list_dir(subagents_dir) if entry.is_file() and is_agent_log(entry.name)
    )
    if not agent_files:
        return None

    lead_file = project_dir / f"{entry_dir.name}.jsonl"
    if not detect_team_protocol(lead_file):
        return None

    metadata = read_session_metadata(entry_dir, subagents_dir, agent_files)
    return Session(
        id=entry_dir.name,
        projectDir=project_dir.name,
        projectName=decode_project_dir(project_dir.name),
        path=str(entry_dir),
        subagentsDir=str(subagents_dir),
        agentFiles=agent_files,
        agentCount=len(agent_files),
        **metadata,
    )


def discover_team_sessions(root: Path) -> list[Session]:
    """Return team sessions under ``root``, newest start time first.

    A missing root yields an empty list. A root that exists but cannot be
    listed raises DiscoveryError; failures below the root only drop the
    affected project or session.
    """
    if not root.exists():
        logger.info(f"Log root {root} does not exist")
        return []

    try:
        project_entries = _list_dir(root)
    except OSError as exc:
        raise DiscoveryError(str(root), str(exc)) from exc

    sessions: list[Session] = []
    for project_entry in project_entries:
        try:
            if not project_entry.is_dir():
                continue
            project_dir = Path(project_entry.path)
            entries = _list_dir(project_dir)
        except OSError as exc:
            logger.debug(f"Skipping project {project_entry.path}: {exc}")
            continue

        for entry in entries:
            try:
                if not entry.is_dir():
                    continue
                session = _discover_entry(project_dir, Path(entry.path))
            except OSError as exc:
                logger.debug(f"Skipping session directory {entry.path}: {exc}")
                continue
            if session is not None:
                sessions.append(session)

    sessions.sort(key=lambda s: iso_to_epoch_ms(s.startTime), reverse=True)
    logger.info(f"Discovered {len(sessions)} team sessions under {root}")
    return sessions
