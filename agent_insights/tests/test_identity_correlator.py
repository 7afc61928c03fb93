import unittest

from agent_insights.models import SessionEvent, ToolUse
from agent_insights.parsers.identity import (
    AgentStart,
    GreedyTimestampCorrelator,
    SpawnIntent,
    collect_agent_starts,
    collect_spawn_intents,
    fallback_agent_name,
)
from agent_insights.tests.support import ts


def _spawn_event(timestamp: str, *names: str) -> SessionEvent:
    return SessionEvent(
        agentId="lead",
        type="assistant",
        timestamp=timestamp,
        toolUse=[ToolUse(name="Task", id=f"toolu_{name}", input={"name": name}) for name in names],
    )


class IdentityCorrelatorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.correlator = GreedyTimestampCorrelator()

    def test_each_spawn_claims_the_closest_unmatched_agent(self) -> None:
        spawns = [SpawnIntent("A", 0), SpawnIntent("B", 10_000)]
        starts = [AgentStart("x", 5_000), AgentStart("y", 9_000)]

        self.assertEqual(self.correlator.match(spawns, starts), {"x": "A", "y": "B"})

    def test_agent_may_start_slightly_before_its_spawn(self) -> None:
        spawns = [SpawnIntent("early", 10_000)]

        self.assertEqual(self.correlator.match(spawns, [AgentStart("x", 8_500)]), {"x": "early"})
        self.assertEqual(self.correlator.match(spawns, [AgentStart("x", 7_999)]), {})

    def test_window_after_spawn_is_exclusive(self) -> None:
        spawns = [SpawnIntent("slow", 0)]

        self.assertEqual(self.correlator.match(spawns, [AgentStart("x", 119_999)]), {"x": "slow"})
        self.assertEqual(self.correlator.match(spawns, [AgentStart("x", 120_000)]), {})

    def test_equal_distance_prefers_agent_started_after_spawn(self) -> None:
        spawns = [SpawnIntent("A", 10_000)]
        starts = [AgentStart("before", 9_000), AgentStart("after", 11_000)]

        self.assertEqual(self.correlator.match(spawns, starts), {"after": "A"})

    def test_an_agent_is_matched_at_most_once(self) -> None:
        spawns = [SpawnIntent("A", 0), SpawnIntent("B", 0)]
        starts = [AgentStart("only", 1_000)]

        self.assertEqual(self.correlator.match(spawns, starts), {"only": "A"})

    def test_resolve_reads_spawns_and_first_agent_events(self) -> None:
        lead_events = [
            _spawn_event(ts(0), "researcher", "coder"),
            SessionEvent(agentId="lead", type="assistant", timestamp=ts(1), toolUse=[ToolUse(name="Task", input={})]),
        ]
        agent_events = {
            "aaa": [SessionEvent(agentId="aaa", timestamp=ts(1))],
            "bbb": [SessionEvent(agentId="bbb", timestamp=ts(3))],
            "ccc": [],
        }

        names = self.correlator.resolve(lead_events, agent_events)

        self.assertEqual(names, {"aaa": "researcher", "bbb": "coder"})

    def test_collectors_skip_unparsable_timestamps(self) -> None:
        self.assertEqual(collect_spawn_intents([_spawn_event("not-a-time", "x")]), [])
        starts = collect_agent_starts({"a": [SessionEvent(agentId="a", timestamp="")]})
        self.assertEqual(starts, [])

    def test_fallback_name_is_id_prefix(self) -> None:
        self.assertEqual(fallback_agent_name("a1b2c3d4e5f6"), "a1b2c3d")
        self.assertEqual(fallback_agent_name("abc"), "abc")


if __name__ == "__main__":
    unittest.main()
