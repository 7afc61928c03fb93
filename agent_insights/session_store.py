"""Process-lifetime store for discovered and parsed team sessions.

Both caches are held by one SessionStore instance that callers receive by
reference (``app.state.session_store`` in the API, a local in scripts).
``invalidate()`` drops everything at once; parses that started before an
invalidation are returned to their caller but never cached.
"""
from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

from agent_insights.models import ParsedSession, Session
from agent_insights.observability import (
    record_discovery,
    record_ingestion,
    record_parser_failure,
    start_span,
)
from agent_insights.parsers.discovery import discover_team_sessions
from agent_insights.parsers.sessions import SessionAssembler

logger = logging.getLogger("agent_insights.store")


class SessionStore:
    def __init__(
        self,
        log_root: Path,
        assembler: SessionAssembler | None = None,
        parse_concurrency: int = 4,
    ) -> None:
        self.log_root = log_root
        self.assembler = assembler or SessionAssembler()
        self.parse_concurrency = max(1, parse_concurrency)
        self._lock = asyncio.Lock()
        self._generation = 0
        self._sessions: Optional[list[Session]] = None
        self._parsed: dict[str, ParsedSession] = {}

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def parsed_count(self) -> int:
        return len(self._parsed)

    async def list_sessions(self) -> list[Session]:
        """Discovered sessions, newest first. Raises DiscoveryError if the root is unreadable."""
        async with self._lock:
            if self._sessions is not None:
                return self._sessions
            generation = self._generation

        with start_span("agent_insights.discover", {"log_root": str(self.log_root)}):
            sessions = await asyncio.to_thread(discover_team_sessions, self.log_root)
        record_discovery(len(sessions))

        async with self._lock:
            if generation != self._generation:
                return sessions
            if self._sessions is None:
                self._sessions = sessions
            return self._sessions

    async def get_session(self, session_id: str) -> Session | None:
        for session in await self.list_sessions():
            if session.id == session_id:
                return session
        return None

    async def _parse(self, session: Session) -> ParsedSession:
        async with self._lock:
            cached = self._parsed.get(session.id)
            if cached is not None:
                return cached
            generation = self._generation

        started = time.perf_counter()
        with start_span("agent_insights.parse_session", {"session_id": session.id}):
            try:
                parsed = await asyncio.to_thread(self.assembler.parse_full_session, session)
            except Exception:
                record_ingestion("error", (time.perf_counter() - started) * 1000, project=session.projectName)
                raise
        record_ingestion("success", (time.perf_counter() - started) * 1000, project=session.projectName)

        async with self._lock:
            if generation != self._generation:
                return parsed
            return self._parsed.setdefault(session.id, parsed)

    async def get_parsed_session(self, session_id: str) -> ParsedSession | None:
        async with self._lock:
            cached = self._parsed.get(session_id)
        if cached is not None:
            return cached
        session = await self.get_session(session_id)
        if session is None:
            return None
        return await self._parse(session)

    async def parse_all(self, sessions: list[Session] | None = None) -> list[ParsedSession]:
        """Parse sessions concurrently, dropping any session whose assembly fails."""
        if sessions is None:
            sessions = await self.list_sessions()
        semaphore = asyncio.Semaphore(self.parse_concurrency)

        async def _guarded(session: Session) -> ParsedSession | None:
            async with semaphore:
                try:
                    return await self._parse(session)
                except Exception as exc:  # noqa: BLE001
                    logger.warning(f"Excluding session {session.id} from analytics: {exc}")
                    record_parser_failure("session", project=session.projectName)
                    return None

        results = await asyncio.gather(*(_guarded(session) for session in sessions))
        return [parsed for parsed in results if parsed is not None]

    async def invalidate(self) -> None:
        async with self._lock:
            self._generation += 1
            self._sessions = None
            self._parsed = {}
        logger.info(f"Session cache invalidated (generation {self._generation})")

    async def refresh(self) -> int:
        await self.invalidate()
        return len(await self.list_sessions())
