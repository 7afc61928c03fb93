"""File watcher service using watchfiles.

Monitors the log root and invalidates the session store whenever a
JSON-lines log is added, modified or deleted.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from watchfiles import Change, awatch

from agent_insights.session_store import SessionStore

logger = logging.getLogger("agent_insights.watcher")

_WATCHED_SUFFIXES = (".jsonl",)


class FileWatcher:
    """Background watcher that invalidates the store on log changes."""

    def __init__(self) -> None:
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._running = False

    async def start(self, store: SessionStore, log_root: Path) -> None:
        if self._running:
            logger.warning("File watcher already running")
            return
        if not log_root.exists():
            logger.warning(f"Log root {log_root} does not exist, watcher not started")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._watch_loop(store, log_root, self._stop_event))
        logger.info(f"File watcher started for {log_root}")

    async def stop(self) -> None:
        self._running = False
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("File watcher stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    async def _watch_loop(self, store: SessionStore, log_root: Path, stop_event: asyncio.Event) -> None:
        try:
            async for changes in awatch(log_root, stop_event=stop_event):
                if not self._running:
                    break
                relevant = relevant_changes(changes)
                if relevant:
                    logger.info(f"Detected {len(relevant)} log changes, invalidating session cache")
                    await store.invalidate()
        except asyncio.CancelledError:
            logger.info("File watcher task cancelled")
        except Exception as e:
            logger.error(f"File watcher error: {e}")
        finally:
            self._running = False


def relevant_changes(changes: set[tuple[Change, str]]) -> list[tuple[str, Path]]:
    """Keep only log-file changes, as (change_type, path) pairs."""
    result: list[tuple[str, Path]] = []
    for change_type, path_str in changes:
        path = Path(path_str)
        if path.suffix not in _WATCHED_SUFFIXES:
            continue
        if change_type == Change.deleted:
            result.append(("deleted", path))
        elif change_type in (Change.modified, Change.added):
            result.append(("modified", path))
    return result
