import unittest

from agent_insights.models import SessionEvent, ToolUse
from agent_insights.parsers.tasks import extract_tasks
from agent_insights.tests.support import ts


def _tool_event(agent_id: str, timestamp: str, name: str, payload: dict) -> SessionEvent:
    return SessionEvent(
        agentId=agent_id,
        type="assistant",
        timestamp=timestamp,
        toolUse=[ToolUse(name=name, input=payload)],
    )


class TaskExtractionTests(unittest.TestCase):
    def test_created_tasks_are_numbered_in_creation_order(self) -> None:
        tasks = extract_tasks(
            [
                _tool_event("lead", ts(0), "TaskCreate", {"subject": "Research"}),
                _tool_event("coder", ts(1), "TaskCreate", {"subject": "Implement"}),
            ]
        )

        self.assertEqual([(task.id, task.subject, task.createdBy) for task in tasks], [
            ("1", "Research", "lead"),
            ("2", "Implement", "coder"),
        ])
        self.assertEqual(tasks[0].createdAt, ts(0))
        self.assertTrue(all(task.status == "pending" for task in tasks))

    def test_explicit_task_id_is_kept(self) -> None:
        tasks = extract_tasks([_tool_event("lead", ts(0), "TaskCreate", {"id": "T-9", "subject": "x"})])

        self.assertEqual(tasks[0].id, "T-9")

    def test_update_sets_status_of_matching_task(self) -> None:
        tasks = extract_tasks(
            [
                _tool_event("lead", ts(0), "TaskCreate", {"subject": "a"}),
                _tool_event("lead", ts(1), "TaskCreate", {"subject": "b"}),
                _tool_event("coder", ts(2), "TaskUpdate", {"taskId": 2, "status": "in_progress"}),
                _tool_event("coder", ts(3), "TaskUpdate", {"taskId": "2", "status": "completed"}),
            ]
        )

        self.assertEqual([task.status for task in tasks], ["pending", "completed"])

    def test_updates_for_unknown_tasks_are_dropped(self) -> None:
        tasks = extract_tasks(
            [
                _tool_event("lead", ts(0), "TaskCreate", {"subject": "a"}),
                _tool_event("coder", ts(1), "TaskUpdate", {"taskId": "7", "status": "completed"}),
                _tool_event("coder", ts(2), "TaskUpdate", {"taskId": "1"}),
            ]
        )

        self.assertEqual(len(tasks), 1)
        self.assertEqual(tasks[0].status, "pending")

    def test_create_without_input_yields_pending_task(self) -> None:
        tasks = extract_tasks([_tool_event("lead", ts(0), "TaskCreate", {})])

        self.assertEqual([(task.id, task.subject, task.status) for task in tasks], [("1", "", "pending")])

    def test_sequence_ids_skip_explicit_ids(self) -> None:
        tasks = extract_tasks(
            [
                _tool_event("lead", ts(0), "TaskCreate", {"id": "2", "subject": "explicit"}),
                _tool_event("lead", ts(1), "TaskCreate", {"subject": "numbered"}),
                _tool_event("coder", ts(2), "TaskUpdate", {"taskId": "3", "status": "completed"}),
            ]
        )

        self.assertEqual([(task.id, task.status) for task in tasks], [("2", "pending"), ("3", "completed")])


if __name__ == "__main__":
    unittest.main()
