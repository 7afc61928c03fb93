"""Extract team task records from TaskCreate / TaskUpdate tool calls."""
from __future__ import annotations

from typing import Any, Iterable

from agent_insights.models import SessionEvent, TaskInfo

TASK_CREATE_TOOL_NAME = "TaskCreate"
TASK_UPDATE_TOOL_NAME = "TaskUpdate"


def _task_ref(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (str, int)):
        return str(value).strip()
    return ""


def _next_task_id(created: int, taken: dict[str, TaskInfo]) -> str:
    number = created + 1
    while str(number) in taken:
        number += 1
    return str(number)


def extract_tasks(events: Iterable[SessionEvent]) -> list[TaskInfo]:
    """Build tasks in creation order and apply status updates.

    A task keeps the id given in its create call; otherwise it is numbered
    1, 2, 3... in creation order, which is how the team tool numbers them,
    skipping numbers already taken by an explicit id.
    Updates must reference that id. Updates for unknown ids are dropped.
    """
    tasks: list[TaskInfo] = []
    by_id: dict[str, TaskInfo] = {}

    for event in events:
        for tool in event.toolUse:
            payload = tool.input
            if tool.name == TASK_CREATE_TOOL_NAME:
                task_id = _task_ref(payload.get("id")) or _task_ref(payload.get("taskId")) or _next_task_id(len(tasks), by_id)
                subject = payload.get("subject")
                task = TaskInfo(
                    id=task_id,
                    subject=subject if isinstance(subject, str) else "",
                    createdBy=event.agentId,
                    createdAt=event.timestamp,
                    status="pending",
                )
                tasks.append(task)
                by_id.setdefault(task_id, task)
            elif tool.name == TASK_UPDATE_TOOL_NAME and payload.get("status"):
                existing = by_id.get(_task_ref(payload.get("taskId")))
                if existing is not None:
                    existing.status = str(payload["status"])

    return tasks
