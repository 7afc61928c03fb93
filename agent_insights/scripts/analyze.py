#!/usr/bin/env python3
"""Analyze agent team sessions and print the analytics report as JSON.

Usage:
  python -m agent_insights.scripts.analyze
  python -m agent_insights.scripts.analyze --project my-repo --last 30d
  python -m agent_insights.scripts.analyze --export report.json

Exit codes: 0 on success or when no sessions are found, 1 when the log
root cannot be read.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

from agent_insights import config
from agent_insights.errors import DiscoveryError
from agent_insights.models import FilterOptions
from agent_insights.parsers.sessions import SessionAssembler
from agent_insights.services.team_analytics import AnalyticsEngine
from agent_insights.session_store import SessionStore

logger = logging.getLogger("agent_insights.scripts.analyze")


async def _run(root: Path, filters: FilterOptions, export: str | None) -> int:
    store = SessionStore(
        root,
        assembler=SessionAssembler(max_workers=config.PARSE_WORKERS),
        parse_concurrency=config.PARSE_CONCURRENCY,
    )
    try:
        sessions = await store.list_sessions()
    except DiscoveryError as exc:
        logger.error(f"Failed to scan sessions: {exc}")
        return 1

    if not sessions:
        logger.warning(f"No team sessions found under {root}")
        return 0

    logger.info(f"Found {len(sessions)} team sessions")
    parsed = await store.parse_all(sessions)
    logger.info(f"Analyzed {len(parsed)} sessions")

    result = AnalyticsEngine().calculate(sessions, parsed, filters)
    payload = json.dumps(result.model_dump(mode="json", by_alias=True), indent=2)

    if export:
        export_path = Path(export).expanduser().resolve()
        export_path.write_text(payload + "\n", encoding="utf-8")
        print(f"Exported to {export_path}")
    else:
        print(payload)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Agent team session analytics")
    parser.add_argument("--root", default=str(config.LOG_ROOT), help="Claude Code projects directory")
    parser.add_argument("-p", "--project", default="", help="Filter by project path (partial match)")
    parser.add_argument("-l", "--last", default="", help="Time range filter (e.g. 7d, 2w, 3m)")
    parser.add_argument("-e", "--export", default="", help="Write the JSON report to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log parser progress")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    filters = FilterOptions(project=args.project or None, last=args.last or None)
    return asyncio.run(_run(Path(args.root).expanduser(), filters, args.export or None))


if __name__ == "__main__":
    raise SystemExit(main())
