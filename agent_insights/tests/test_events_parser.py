import json
import tempfile
import unittest
from pathlib import Path

from agent_insights.parsers.events import (
    MAX_TEXT_LENGTH,
    event_from_record,
    extract_text,
    extract_tool_uses,
    parse_jsonl_file,
)
from agent_insights.tests.support import assistant, ts, user, write_jsonl


class EventsParserTests(unittest.TestCase):
    def _path(self, name: str = "agent-abc.jsonl") -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        return Path(tmpdir.name) / name

    def test_malformed_and_blank_lines_are_skipped(self) -> None:
        path = self._path()
        path.write_text(
            "\n".join(
                [
                    json.dumps(user(ts(0), "hello")),
                    "",
                    "{not json",
                    "[1, 2, 3]",
                    json.dumps(assistant(ts(1), "hi")),
                ]
            ),
            encoding="utf-8",
        )

        events = parse_jsonl_file(path, "abc")

        self.assertEqual([event.type for event in events], ["user", "assistant"])
        self.assertTrue(all(event.agentId == "abc" for event in events))

    def test_file_history_snapshots_are_dropped(self) -> None:
        path = write_jsonl(
            self._path(),
            [{"type": "file-history-snapshot", "timestamp": ts(0)}, user(ts(1), "go")],
        )

        events = parse_jsonl_file(path, "abc")

        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].textContent, "go")

    def test_text_is_truncated_but_has_text_reflects_full_content(self) -> None:
        long_text = "x" * (MAX_TEXT_LENGTH + 500)
        event = event_from_record(assistant(ts(0), long_text), "abc")

        assert event is not None
        self.assertEqual(len(event.textContent), MAX_TEXT_LENGTH)
        self.assertTrue(event.hasText)
        self.assertEqual(event.role, "assistant")
        self.assertEqual(event.model, "claude-sonnet")

    def test_record_agent_id_overrides_file_agent_id(self) -> None:
        event = event_from_record(user(ts(0), "hi", agentId="from-record"), "from-file")

        assert event is not None
        self.assertEqual(event.agentId, "from-record")

    def test_text_blocks_are_joined_with_newlines(self) -> None:
        content = [
            {"type": "text", "text": "first"},
            {"type": "tool_use", "name": "Read", "input": {}},
            {"type": "text", "text": "second"},
        ]
        self.assertEqual(extract_text(content), "first\nsecond")
        self.assertEqual(extract_text("plain"), "plain")
        self.assertEqual(extract_text(None), "")

    def test_tool_use_blocks_keep_name_id_and_dict_input(self) -> None:
        tools = extract_tool_uses(
            [
                {"type": "tool_use", "id": "toolu_1", "name": "Task", "input": {"name": "researcher"}},
                {"type": "tool_use", "id": "toolu_2", "name": "Bash", "input": "ls -la"},
                {"type": "text", "text": "ignored"},
            ]
        )

        self.assertEqual([tool.name for tool in tools], ["Task", "Bash"])
        self.assertEqual(tools[0].input, {"name": "researcher"})
        self.assertEqual(tools[1].input, {})
        self.assertEqual(extract_tool_uses("not a list"), [])

    def test_missing_message_yields_empty_event(self) -> None:
        event = event_from_record({"type": "system", "timestamp": ts(0)}, "abc")

        assert event is not None
        self.assertEqual(event.textContent, "")
        self.assertFalse(event.hasText)
        self.assertEqual(event.toolUse, [])

    def test_unreadable_file_yields_no_events(self) -> None:
        self.assertEqual(parse_jsonl_file(self._path("missing.jsonl"), "abc"), [])


if __name__ == "__main__":
    unittest.main()
