"""Assemble a ParsedSession from a discovered team session."""
from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from agent_insights.date_utils import iso_to_epoch_ms
from agent_insights.models import (
    AgentInfo,
    ParsedSession,
    Session,
    SessionEvent,
    SessionStats,
)
from agent_insights.parsers.communications import (
    CommunicationExtractor,
    TagCommunicationExtractor,
    extract_communications,
)
from agent_insights.parsers.discovery import agent_id_from_filename
from agent_insights.parsers.events import parse_jsonl_file
from agent_insights.parsers.identity import (
    GreedyTimestampCorrelator,
    IdentityCorrelator,
    fallback_agent_name,
)
from agent_insights.parsers.tasks import extract_tasks

logger = logging.getLogger("agent_insights.parsers")

LEAD_AGENT_ID = "lead"
LEAD_AGENT_NAME = "Lead"


def count_tools_used(events: list[SessionEvent]) -> dict[str, int]:
    counts: Counter[str] = Counter()
    for event in events:
        for tool in event.toolUse:
            counts[tool.name] += 1
    return dict(counts)


def _message_count(events: list[SessionEvent]) -> int:
    return sum(1 for event in events if event.type == "assistant" and event.hasText)


def build_agent_info(agent_id: str, name: str, events: list[SessionEvent], is_lead: bool = False) -> AgentInfo:
    return AgentInfo(
        id=agent_id,
        name=name,
        eventCount=len(events),
        startTime=events[0].timestamp if events else None,
        endTime=events[-1].timestamp if events else None,
        toolsUsed=count_tools_used(events),
        messageCount=_message_count(events),
        isLead=is_lead,
    )


def calculate_session_stats(events: list[SessionEvent], agents: dict[str, AgentInfo]) -> SessionStats:
    return SessionStats(
        totalEvents=len(events),
        userEvents=sum(1 for event in events if event.type == "user"),
        assistantEvents=sum(1 for event in events if event.type == "assistant"),
        toolUsages=sum(len(event.toolUse) for event in events),
        agentCount=len(agents),
        toolBreakdown=count_tools_used(events),
    )


class SessionAssembler:
    """Runs ingestion, correlation and extraction for one session.

    Agent logs of a session are read concurrently; all results are merged
    only after every read has finished. Caching is left to SessionStore.
    """

    def __init__(
        self,
        correlator: IdentityCorrelator | None = None,
        communication_extractor: CommunicationExtractor | None = None,
        max_workers: int = 4,
    ) -> None:
        self.correlator = correlator or GreedyTimestampCorrelator()
        self.communication_extractor = communication_extractor or TagCommunicationExtractor()
        self.max_workers = max(1, max_workers)

    def _parse_agent_files(self, session: Session) -> dict[str, list[SessionEvent]]:
        subagents_dir = Path(session.subagentsDir)
        jobs = [(agent_id_from_filename(name), subagents_dir / name) for name in session.agentFiles]
        if not jobs:
            return {}
        if self.max_workers == 1 or len(jobs) == 1:
            results = [parse_jsonl_file(path, agent_id) for agent_id, path in jobs]
        else:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(jobs))) as pool:
                results = list(pool.map(lambda job: parse_jsonl_file(job[1], job[0]), jobs))
        return {agent_id: events for (agent_id, _), events in zip(jobs, results)}

    def parse_full_session(self, session: Session) -> ParsedSession:
        events: list[SessionEvent] = []
        agents: dict[str, AgentInfo] = {}

        lead_file = Path(session.path + ".jsonl")
        if lead_file.is_file():
            lead_events = parse_jsonl_file(lead_file, LEAD_AGENT_ID)
            events.extend(lead_events)
            agents[LEAD_AGENT_ID] = build_agent_info(LEAD_AGENT_ID, LEAD_AGENT_NAME, lead_events, is_lead=True)

        agent_events = self._parse_agent_files(session)
        for per_agent in agent_events.values():
            events.extend(per_agent)

        names = self.correlator.resolve(events, agent_events)
        for agent_id, per_agent in agent_events.items():
            name = names.get(agent_id) or fallback_agent_name(agent_id)
            agents[agent_id] = build_agent_info(agent_id, name, per_agent)

        events.sort(key=lambda event: iso_to_epoch_ms(event.timestamp))

        parsed = ParsedSession(
            id=session.id,
            projectName=session.projectName,
            gitBranch=session.gitBranch,
            startTime=session.startTime,
            endTime=session.endTime,
            duration=session.duration,
            agents=agents,
            events=events,
            communications=extract_communications(events, self.communication_extractor),
            tasks=extract_tasks(events),
            stats=calculate_session_stats(events, agents),
        )
        logger.debug(
            f"Parsed session {session.id}: {len(events)} events, {len(agents)} agents, "
            f"{len(parsed.communications)} communications"
        )
        return parsed
