"""Infer inter-agent messages from session events.

Two evidence sources are read independently and both kept: the tag a
teammate message is wrapped in when it is delivered to the recipient, and
the ``SendMessage`` call made by the sender. The same logical message can
therefore appear twice.
"""
from __future__ import annotations

import json
import re
from typing import Iterable, Protocol

from agent_insights.date_utils import iso_to_epoch_ms
from agent_insights.models import Communication, SessionEvent

SEND_MESSAGE_TOOL_NAME = "SendMessage"
UNKNOWN_RECIPIENT = "unknown"

_TEAMMATE_TAG_PREFIX = "<teammate-message"
_TEAMMATE_MESSAGE_PATTERN = re.compile(
    r'<teammate-message\s+teammate_id="([^"]+)"(?:\s+color="([^"]*)")?>\n?([\s\S]*?)\n?</teammate-message>'
)


class CommunicationExtractor(Protocol):
    def extract_incoming(self, event: SessionEvent) -> Communication | None:
        ...

    def extract_outgoing(self, event: SessionEvent) -> list[Communication]:
        ...


class TagCommunicationExtractor:
    """Reads ``<teammate-message>`` tags and ``SendMessage`` tool calls."""

    def extract_incoming(self, event: SessionEvent) -> Communication | None:
        if event.type != "user" or not event.textContent:
            return None
        if not event.textContent.strip().startswith(_TEAMMATE_TAG_PREFIX):
            return None
        match = _TEAMMATE_MESSAGE_PATTERN.search(event.textContent)
        if not match:
            return None
        return Communication(
            timestamp=event.timestamp,
            from_=match.group(1),
            to=event.agentId,
            content=match.group(3) or "",
            direction="incoming",
        )

    def extract_outgoing(self, event: SessionEvent) -> list[Communication]:
        messages: list[Communication] = []
        for tool in event.toolUse:
            if tool.name != SEND_MESSAGE_TOOL_NAME:
                continue
            payload = tool.input
            recipient = payload.get("recipient")
            content = payload.get("message") or payload.get("content")
            if not isinstance(content, str):
                content = json.dumps(content if content else payload, default=str)
            messages.append(
                Communication(
                    timestamp=event.timestamp,
                    from_=event.agentId,
                    to=str(recipient) if recipient else UNKNOWN_RECIPIENT,
                    content=content,
                    direction="outgoing",
                )
            )
        return messages


def extract_communications(
    events: Iterable[SessionEvent],
    extractor: CommunicationExtractor | None = None,
) -> list[Communication]:
    extractor = extractor or TagCommunicationExtractor()
    communications: list[Communication] = []
    for event in events:
        incoming = extractor.extract_incoming(event)
        if incoming is not None:
            communications.append(incoming)
        communications.extend(extractor.extract_outgoing(event))
    communications.sort(key=lambda comm: iso_to_epoch_ms(comm.timestamp))
    return communications
