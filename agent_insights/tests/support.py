"""Builders for on-disk Claude Code project trees used across tests."""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

BASE_TIME = datetime(2026, 2, 16, 10, 0, 0, tzinfo=timezone.utc)


def ts(seconds: float = 0.0, base: datetime = BASE_TIME) -> str:
    value = base + timedelta(seconds=seconds)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def write_jsonl(path: Path, lines: list[Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    rendered = [line if isinstance(line, str) else json.dumps(line) for line in lines]
    path.write_text("\n".join(rendered) + "\n", encoding="utf-8")
    return path


def assistant(timestamp: str, text: str = "", tools: list[dict[str, Any]] | None = None, **extra: Any) -> dict[str, Any]:
    content: list[dict[str, Any]] = []
    if text:
        content.append({"type": "text", "text": text})
    for index, tool in enumerate(tools or []):
        content.append(
            {
                "type": "tool_use",
                "id": tool.get("id", f"toolu_{index}"),
                "name": tool["name"],
                "input": tool.get("input", {}),
            }
        )
    record = {
        "type": "assistant",
        "timestamp": timestamp,
        "message": {"role": "assistant", "model": "claude-sonnet", "content": content},
    }
    record.update(extra)
    return record


def user(timestamp: str, text: str, **extra: Any) -> dict[str, Any]:
    record = {
        "type": "user",
        "timestamp": timestamp,
        "message": {"role": "user", "content": text},
    }
    record.update(extra)
    return record


def build_session(
    root: Path,
    session_id: str,
    lead_lines: list[Any],
    agents: dict[str, list[Any]],
    project_dir: str = "-Users-dev-repo",
) -> Path:
    """Write a lead log plus ``subagents/agent-<id>.jsonl`` files; return the session dir."""
    project = root / project_dir
    session_dir = project / session_id
    write_jsonl(project / f"{session_id}.jsonl", lead_lines)
    (session_dir / "subagents").mkdir(parents=True, exist_ok=True)
    for agent_id, lines in agents.items():
        write_jsonl(session_dir / "subagents" / f"agent-{agent_id}.jsonl", lines)
    return session_dir


def team_session(root: Path, session_id: str = "sess-1", spawn_offsets: tuple[float, float] = (1.0, 3.0), **kwargs: Any) -> Path:
    """A lead that creates a team and spawns two named teammates at t=0."""
    lead = [
        user(ts(-5), "Build the feature with a team", gitBranch="main"),
        assistant(
            ts(0),
            "Spawning the team.",
            tools=[
                {"name": "TeamCreate", "input": {"team_name": "alpha"}},
                {"name": "Task", "input": {"name": "researcher", "prompt": "Investigate"}},
                {"name": "Task", "input": {"name": "coder", "prompt": "Implement"}},
            ],
        ),
        assistant(ts(60), "Done.", tools=[{"name": "SendMessage", "input": {"recipient": "coder", "message": "Ship it"}}]),
    ]
    first, second = spawn_offsets
    agents = {
        "a1b2c3d4e5f6": [
            user(ts(first), '<teammate-message teammate_id="team-lead">\nInvestigate\n</teammate-message>', agentId="a1b2c3d4e5f6"),
            assistant(ts(first + 2), "Reading.", tools=[{"name": "Grep"}, {"name": "Read"}], agentId="a1b2c3d4e5f6"),
            assistant(ts(first + 4), "", tools=[{"name": "TaskCreate", "input": {"subject": "Write notes"}}], agentId="a1b2c3d4e5f6"),
        ],
        "f6e5d4c3b2a1": [
            user(ts(second), '<teammate-message teammate_id="team-lead">\nImplement\n</teammate-message>', agentId="f6e5d4c3b2a1"),
            assistant(ts(second + 2), "Editing.", tools=[{"name": "Read"}, {"name": "Edit"}], agentId="f6e5d4c3b2a1"),
            assistant(ts(second + 5), "", tools=[{"name": "TaskUpdate", "input": {"taskId": "1", "status": "completed"}}], agentId="f6e5d4c3b2a1"),
        ],
    }
    return build_session(root, session_id, lead, agents, **kwargs)
