import json
import unittest

from agent_insights.models import SessionEvent, ToolUse
from agent_insights.parsers.communications import (
    UNKNOWN_RECIPIENT,
    TagCommunicationExtractor,
    extract_communications,
)
from agent_insights.tests.support import ts


def _incoming(text: str, timestamp: str = ts(0), agent_id: str = "agent-b") -> SessionEvent:
    return SessionEvent(agentId=agent_id, type="user", timestamp=timestamp, textContent=text, hasText=bool(text))


def _send(payload: dict, timestamp: str = ts(0), agent_id: str = "agent-a") -> SessionEvent:
    return SessionEvent(
        agentId=agent_id,
        type="assistant",
        timestamp=timestamp,
        toolUse=[ToolUse(name="SendMessage", id="toolu_1", input=payload)],
    )


class CommunicationExtractionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.extractor = TagCommunicationExtractor()

    def test_incoming_teammate_tag(self) -> None:
        comm = self.extractor.extract_incoming(
            _incoming('<teammate-message teammate_id="researcher" color="blue">\nFound it\n</teammate-message>')
        )

        assert comm is not None
        self.assertEqual(comm.from_, "researcher")
        self.assertEqual(comm.to, "agent-b")
        self.assertEqual(comm.content, "Found it")
        self.assertEqual(comm.direction, "incoming")

    def test_incoming_requires_closing_tag_and_teammate_id(self) -> None:
        self.assertIsNone(self.extractor.extract_incoming(_incoming('<teammate-message teammate_id="r">\nno end')))
        self.assertIsNone(self.extractor.extract_incoming(_incoming("<teammate-message>\nhi\n</teammate-message>")))
        self.assertIsNone(self.extractor.extract_incoming(_incoming("plain user text")))

    def test_incoming_ignores_assistant_events(self) -> None:
        event = _incoming('<teammate-message teammate_id="r">\nhi\n</teammate-message>')
        event.type = "assistant"

        self.assertIsNone(self.extractor.extract_incoming(event))

    def test_outgoing_send_message(self) -> None:
        comms = self.extractor.extract_outgoing(_send({"recipient": "coder", "message": "Ship it"}))

        self.assertEqual(len(comms), 1)
        self.assertEqual(comms[0].from_, "agent-a")
        self.assertEqual(comms[0].to, "coder")
        self.assertEqual(comms[0].content, "Ship it")
        self.assertEqual(comms[0].direction, "outgoing")

    def test_outgoing_content_fallbacks(self) -> None:
        by_content = self.extractor.extract_outgoing(_send({"recipient": "x", "content": "alt"}))
        self.assertEqual(by_content[0].content, "alt")

        payload = {"type": "broadcast"}
        serialized = self.extractor.extract_outgoing(_send(payload))
        self.assertEqual(json.loads(serialized[0].content), payload)
        self.assertEqual(serialized[0].to, UNKNOWN_RECIPIENT)

    def test_outgoing_with_empty_input_is_kept(self) -> None:
        comms = extract_communications([_send({})])

        self.assertEqual([(comm.to, comm.content) for comm in comms], [(UNKNOWN_RECIPIENT, "{}")])

    def test_from_field_serializes_as_from(self) -> None:
        comm = self.extractor.extract_outgoing(_send({"recipient": "coder", "message": "m"}))[0]

        dumped = comm.model_dump(by_alias=True)
        self.assertEqual(dumped["from"], "agent-a")
        self.assertNotIn("from_", dumped)

    def test_communications_are_sorted_by_timestamp(self) -> None:
        events = [
            _send({"recipient": "b", "message": "late"}, timestamp=ts(30)),
            _incoming('<teammate-message teammate_id="a">\nearly\n</teammate-message>', timestamp=ts(10)),
            _send({"recipient": "c", "message": "middle"}, timestamp=ts(20)),
        ]

        comms = extract_communications(events)

        self.assertEqual([comm.content for comm in comms], ["early", "middle", "late"])


if __name__ == "__main__":
    unittest.main()
