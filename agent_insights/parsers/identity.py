"""Match teammate name hints from spawn calls to per-agent log files.

The lead records the *intent* to spawn a named teammate as a ``Task`` tool
call. Each teammate log starts independently with no id linking it back to
that call, so the two are paired by timestamp proximity.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Protocol

from agent_insights.date_utils import parse_iso_ts
from agent_insights.models import SessionEvent

SPAWN_TOOL_NAME = "Task"

# An agent log may begin slightly before the spawn call is logged.
MATCH_WINDOW_BEFORE_MS = 2_000
MATCH_WINDOW_AFTER_MS = 120_000

FALLBACK_NAME_LENGTH = 7


@dataclass(frozen=True)
class SpawnIntent:
    name: str
    timestamp_ms: float


@dataclass(frozen=True)
class AgentStart:
    agent_id: str
    timestamp_ms: float


def _epoch_ms(timestamp: str) -> float | None:
    parsed = parse_iso_ts(timestamp)
    return parsed.timestamp() * 1000.0 if parsed else None


def collect_spawn_intents(events: Iterable[SessionEvent]) -> list[SpawnIntent]:
    spawns: list[SpawnIntent] = []
    for event in events:
        for tool in event.toolUse:
            if tool.name != SPAWN_TOOL_NAME:
                continue
            name = tool.input.get("name")
            if not isinstance(name, str) or not name:
                continue
            ts = _epoch_ms(event.timestamp)
            if ts is None:
                continue
            spawns.append(SpawnIntent(name=name, timestamp_ms=ts))
    spawns.sort(key=lambda spawn: spawn.timestamp_ms)
    return spawns


def collect_agent_starts(agent_events: Mapping[str, list[SessionEvent]]) -> list[AgentStart]:
    starts: list[AgentStart] = []
    for agent_id, events in agent_events.items():
        if not events:
            continue
        ts = _epoch_ms(events[0].timestamp)
        if ts is None:
            continue
        starts.append(AgentStart(agent_id=agent_id, timestamp_ms=ts))
    starts.sort(key=lambda start: start.timestamp_ms)
    return starts


def fallback_agent_name(agent_id: str) -> str:
    return agent_id[:FALLBACK_NAME_LENGTH]


class IdentityCorrelator(Protocol):
    def resolve(
        self,
        events: Iterable[SessionEvent],
        agent_events: Mapping[str, list[SessionEvent]],
    ) -> dict[str, str]:
        """Return agent id -> resolved display name for the agents it could match."""
        ...


class GreedyTimestampCorrelator:
    """Greedy nearest-neighbour matching in spawn order.

    Each spawn claims the closest still-unmatched agent start inside the
    window; ties prefer an agent that started after the spawn. This is a
    heuristic: rapid concurrent spawns or reused names can be paired wrongly,
    and it is not a globally optimal assignment.
    """

    def __init__(
        self,
        window_before_ms: float = MATCH_WINDOW_BEFORE_MS,
        window_after_ms: float = MATCH_WINDOW_AFTER_MS,
    ) -> None:
        self.window_before_ms = window_before_ms
        self.window_after_ms = window_after_ms

    def match(self, spawns: list[SpawnIntent], starts: list[AgentStart]) -> dict[str, str]:
        names: dict[str, str] = {}
        unmatched = list(starts)
        for spawn in spawns:
            best: AgentStart | None = None
            best_key: tuple[float, int] | None = None
            for start in unmatched:
                offset = start.timestamp_ms - spawn.timestamp_ms
                if offset < -self.window_before_ms or offset >= self.window_after_ms:
                    continue
                key = (abs(offset), 0 if offset >= 0 else 1)
                if best_key is None or key < best_key:
                    best, best_key = start, key
            if best is not None:
                names[best.agent_id] = spawn.name
                unmatched.remove(best)
        return names

    def resolve(
        self,
        events: Iterable[SessionEvent],
        agent_events: Mapping[str, list[SessionEvent]],
    ) -> dict[str, str]:
        return self.match(collect_spawn_intents(events), collect_agent_starts(agent_events))
