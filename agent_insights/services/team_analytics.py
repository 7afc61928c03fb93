"""Cross-session analytics and team-optimization scoring.

Everything here is a pure function of the sessions passed in (plus an
injectable ``now``); nothing is cached between calls.
"""
from __future__ import annotations

import math
import re
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Optional

from agent_insights.date_utils import (
    DAY_NAMES,
    format_duration,
    iso_to_epoch_ms,
    iso_week_key,
    parse_iso_ts,
    subtract_months,
    sunday_first_weekday,
    utc_now,
)
from agent_insights.models import (
    AgentUtilization,
    AnalyticsResult,
    DateRange,
    EfficiencyPattern,
    FilterOptions,
    LongestSession,
    OptimizationInsight,
    ParsedSession,
    PeakActivity,
    ProfileStats,
    ProjectBreakdown,
    Session,
    TeamOptimization,
    Trends,
)

_TIME_RANGE_PATTERN = re.compile(r"^(\d+)(d|w|m)$")
_MS_PER_DAY = 24 * 60 * 60 * 1000

DEFAULT_TEAM_SIZE = 3
TOP_TOOLS_LIMIT = 10
TOP_PATTERNS_LIMIT = 5
ACTIVE_AGENT_MIN_EVENTS = 2
COMMS_SWEET_SPOT = (3.0, 10.0)
COMMS_HEALTHY_BAND = (1.0, 15.0)
TEAM_SIZE_TOLERANCE = 0.5
TREND_WINDOW = 5
TREND_SWING_PCT = 10.0
LEAD_AGENT_NAME = "Lead"

KNOWN_PATTERNS: dict[str, str] = {
    "Read -> Edit": "Read-then-edit workflow (review before change)",
    "Grep -> Read": "Search-then-read workflow (find then inspect)",
    "Read -> Write": "Read-then-write workflow (understand before create)",
    "Bash -> Read": "Execute-then-verify workflow",
    "Edit -> Bash": "Edit-then-run workflow (change then test)",
    "Glob -> Read": "Find-then-read workflow (locate then inspect)",
}

NO_SESSIONS_INSIGHT = "No team sessions found. Start a multi-agent session to see analytics."


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _short_project_name(name: str) -> str:
    return name.rstrip("/").split("/")[-1] or name


def parse_time_range(token: str | None, now: datetime | None = None) -> Optional[datetime]:
    """Cutoff for a compact range token (``7d``, ``2w``, ``3m``); None when unrecognised."""
    match = _TIME_RANGE_PATTERN.match((token or "").strip())
    if not match:
        return None
    amount = int(match.group(1))
    unit = match.group(2)
    now = parse_iso_ts(now) or utc_now()
    if unit == "d":
        return now - timedelta(milliseconds=amount * _MS_PER_DAY)
    if unit == "w":
        return now - timedelta(milliseconds=amount * 7 * _MS_PER_DAY)
    return subtract_months(now, amount)


def _started_since(session: Session, cutoff: datetime) -> bool:
    started = parse_iso_ts(session.startTime)
    return started is not None and started >= cutoff


def apply_filters(
    sessions: list[Session],
    parsed_sessions: list[ParsedSession],
    filters: FilterOptions,
    now: datetime | None = None,
) -> tuple[list[Session], list[ParsedSession]]:
    kept = list(sessions)

    if filters.project:
        needle = filters.project.lower()
        kept = [s for s in kept if needle in s.projectName.lower()]

    if filters.last:
        cutoff = parse_time_range(filters.last, now)
        if cutoff is not None:
            kept = [s for s in kept if _started_since(s, cutoff)]

    ids = {s.id for s in kept}
    return kept, [p for p in parsed_sessions if p.id in ids]


# ── Profile / projects / trends ────────────────────────────────────

def _longest(sessions: list[Session]) -> Session | None:
    best: Session | None = None
    for session in sessions:
        if session.duration and (best is None or session.duration > (best.duration or 0)):
            best = session
    return best


def calculate_profile_stats(sessions: list[Session], parsed_sessions: list[ParsedSession]) -> ProfileStats:
    total_sessions = len(sessions)
    total_agents = sum(s.agentCount for s in sessions)

    tool_counts: Counter[str] = Counter()
    total_comms = total_tasks = total_events = 0
    for parsed in parsed_sessions:
        total_comms += len(parsed.communications)
        total_tasks += len(parsed.tasks)
        total_events += parsed.stats.totalEvents
        tool_counts.update(parsed.stats.toolBreakdown)

    # Counter.most_common keeps first-encounter order among equal counts.
    most_used = tool_counts.most_common(TOP_TOOLS_LIMIT)

    durations = [s.duration for s in sessions if s.duration and s.duration > 0]
    longest = _longest(sessions)

    dated = [s.startTime for s in sessions if parse_iso_ts(s.startTime)]
    first = min(dated, key=iso_to_epoch_ms) if dated else None
    last = max(dated, key=iso_to_epoch_ms) if dated else None

    return ProfileStats(
        totalSessions=total_sessions,
        totalAgents=total_agents,
        totalCommunications=total_comms,
        totalTasks=total_tasks,
        totalEvents=total_events,
        mostUsedTools=most_used,
        averageDuration=sum(durations) / len(durations) if durations else 0.0,
        averageAgentsPerSession=total_agents / total_sessions if total_sessions else 0.0,
        longestSession=(
            LongestSession(id=longest.id, duration=longest.duration or 0, project=longest.projectName)
            if longest
            else None
        ),
        dateRange=DateRange(first=first, last=last),
    )


def calculate_project_breakdown(sessions: list[Session], parsed_sessions: list[ParsedSession]) -> list[ProjectBreakdown]:
    projects: dict[str, ProjectBreakdown] = {}
    project_by_session: dict[str, str] = {}

    for session in sessions:
        name = session.projectName
        project_by_session[session.id] = name
        entry = projects.setdefault(name, ProjectBreakdown(name=name))
        entry.sessions += 1
        entry.agents += session.agentCount
        if session.duration:
            entry.totalDuration += session.duration
        if parse_iso_ts(session.startTime) and (
            entry.lastActivity is None or iso_to_epoch_ms(session.startTime) > iso_to_epoch_ms(entry.lastActivity)
        ):
            entry.lastActivity = session.startTime

    for parsed in parsed_sessions:
        name = project_by_session.get(parsed.id)
        if name is None:
            continue
        projects[name].communications += len(parsed.communications)
        projects[name].tasks += len(parsed.tasks)

    return sorted(projects.values(), key=lambda p: p.sessions, reverse=True)


def calculate_trends(sessions: list[Session], now: datetime | None = None) -> Trends:
    now = parse_iso_ts(now) or utc_now()
    daily: dict[str, int] = defaultdict(int)
    weekly: dict[str, int] = defaultdict(int)
    monthly: dict[str, int] = defaultdict(int)
    hour_counts = [0] * 24
    day_counts = [0] * 7

    starts: list[datetime] = []
    for session in sessions:
        started = parse_iso_ts(session.startTime)
        if not started:
            continue
        starts.append(started)
        daily[started.strftime("%Y-%m-%d")] += 1
        weekly[iso_week_key(started)] += 1
        monthly[started.strftime("%Y-%m")] += 1
        hour_counts[started.hour] += 1
        day_counts[sunday_first_weekday(started)] += 1

    last_7_days = [daily.get((now - timedelta(days=offset)).strftime("%Y-%m-%d"), 0) for offset in range(6, -1, -1)]
    thirty_days_ago = now - timedelta(days=30)

    return Trends(
        daily=dict(daily),
        weekly=dict(weekly),
        monthly=dict(monthly),
        last7Days=last_7_days,
        last30DaysTotal=sum(1 for started in starts if started >= thirty_days_ago),
        peakActivity=PeakActivity(
            hour=hour_counts.index(max(hour_counts)),
            day=DAY_NAMES[day_counts.index(max(day_counts))],
        ),
    )


def generate_insights(sessions: list[Session]) -> list[str]:
    if not sessions:
        return [NO_SESSIONS_INSIGHT]

    insights: list[str] = []
    project_counts = Counter(s.projectName for s in sessions)
    top_name, top_count = project_counts.most_common(1)[0]
    insights.append(f"Most active project: {_short_project_name(top_name)} ({top_count} sessions)")

    longest = _longest(sessions)
    if longest:
        insights.append(
            f"Longest session: {format_duration(longest.duration)} ({_short_project_name(longest.projectName)})"
        )

    starts = [iso_to_epoch_ms(s.startTime) for s in sessions if parse_iso_ts(s.startTime)]
    if len(sessions) >= 2 and starts:
        day_span = max(1.0, (max(starts) - min(starts)) / _MS_PER_DAY)
        insights.append(f"Average frequency: {len(sessions) / day_span * 7:.1f} sessions/week")

    return insights


# ── Team optimization ──────────────────────────────────────────────

def tasks_per_agent_by_team_size(parsed_sessions: list[ParsedSession]) -> dict[int, float]:
    totals: dict[int, list[int]] = {}
    for parsed in parsed_sessions:
        size = parsed.stats.agentCount
        if size <= 0:
            continue
        bucket = totals.setdefault(size, [0, 0])
        bucket[0] += len(parsed.tasks)
        bucket[1] += 1
    return {size: tasks / (size * count) for size, (tasks, count) in totals.items() if count > 0}


def pick_optimal_team_size(buckets: dict[int, float], default: int = DEFAULT_TEAM_SIZE) -> int:
    """Team size with the highest average tasks per agent; smaller sizes win ties."""
    best_size, best_rate = default, 0.0
    for size in sorted(buckets):
        if buckets[size] > best_rate:
            best_size, best_rate = size, buckets[size]
    return best_size


def find_optimal_team_size(parsed_sessions: list[ParsedSession]) -> int:
    if not parsed_sessions:
        return DEFAULT_TEAM_SIZE
    return pick_optimal_team_size(tasks_per_agent_by_team_size(parsed_sessions))


def session_sub_scores(parsed: ParsedSession) -> tuple[float, float, float] | None:
    """(utilization, communication, throughput) for one session, each 0-100."""
    agent_count = parsed.stats.agentCount
    if agent_count <= 0:
        return None

    active = sum(1 for agent in parsed.agents.values() if agent.eventCount > ACTIVE_AGENT_MIN_EVENTS)
    utilization = active / agent_count * 100

    comms_per_agent = len(parsed.communications) / agent_count
    low, high = COMMS_SWEET_SPOT
    if low <= comms_per_agent <= high:
        communication = 100.0
    elif comms_per_agent > 0:
        communication = 50.0
    else:
        communication = 0.0

    throughput = min(100.0, parsed.stats.toolUsages / agent_count * 5)
    return utilization, communication, throughput


def combine_performance_score(utilization: float, communication: float, throughput: float) -> int:
    return _round_half_up(utilization * 0.4 + communication * 0.3 + throughput * 0.3)


def calculate_performance_score(parsed_sessions: list[ParsedSession]) -> int:
    if not parsed_sessions:
        return 0
    totals = [0.0, 0.0, 0.0]
    for parsed in parsed_sessions:
        scores = session_sub_scores(parsed)
        if scores is None:
            continue
        for index, value in enumerate(scores):
            totals[index] += value
    count = len(parsed_sessions)
    return combine_performance_score(totals[0] / count, totals[1] / count, totals[2] / count)


def _utilization_status(score: int) -> str:
    if score >= 60:
        return "high"
    if score >= 30:
        return "normal"
    return "low"


def analyze_agent_utilization(parsed_sessions: list[ParsedSession]) -> list[AgentUtilization]:
    aggregates: dict[str, dict[str, int]] = {}
    for parsed in parsed_sessions:
        for agent in parsed.agents.values():
            row = aggregates.setdefault(agent.name, {"tasks": 0, "tools": 0, "messages": 0, "sessions": 0})
            row["tools"] += sum(agent.toolsUsed.values())
            row["messages"] += agent.messageCount
            row["sessions"] += 1

    for parsed in parsed_sessions:
        for task in parsed.tasks:
            creator = parsed.agents.get(task.createdBy)
            if creator is not None and creator.name in aggregates:
                aggregates[creator.name]["tasks"] += 1

    rates = {name: row["tools"] / max(1, row["sessions"]) for name, row in aggregates.items()}
    max_rate = max([*rates.values(), 1])

    results: list[AgentUtilization] = []
    for name, row in aggregates.items():
        score = _round_half_up(rates[name] / max_rate * 100)
        results.append(
            AgentUtilization(
                agentName=name,
                taskCount=row["tasks"],
                toolUseCount=row["tools"],
                messageCount=row["messages"],
                utilizationScore=score,
                status=_utilization_status(score),
            )
        )
    results.sort(key=lambda item: item.utilizationScore, reverse=True)
    return results


def detect_efficiency_patterns(parsed_sessions: list[ParsedSession]) -> list[EfficiencyPattern]:
    pair_counts: Counter[str] = Counter()
    for parsed in parsed_sessions:
        sequence = [tool.name for event in parsed.events for tool in event.toolUse]
        for current, following in zip(sequence, sequence[1:]):
            pair_counts[f"{current} -> {following}"] += 1

    return [
        EfficiencyPattern(
            pattern=pattern,
            frequency=frequency,
            description=KNOWN_PATTERNS.get(pattern, f"{pattern} pattern"),
        )
        for pattern, frequency in pair_counts.most_common(TOP_PATTERNS_LIMIT)
    ]


def _average_team_size(sessions: list[Session]) -> float:
    return sum(s.agentCount for s in sessions) / len(sessions) if sessions else 0.0


def generate_recommendations(
    sessions: list[Session],
    parsed_sessions: list[ParsedSession],
    *,
    optimal_size: int | None = None,
    utilization: list[AgentUtilization] | None = None,
    patterns: list[EfficiencyPattern] | None = None,
    score: int | None = None,
) -> list[OptimizationInsight]:
    if not sessions:
        return []
    recs: list[OptimizationInsight] = []

    avg_size = _average_team_size(sessions)
    optimal = find_optimal_team_size(parsed_sessions) if optimal_size is None else optimal_size
    if abs(avg_size - optimal) > TEAM_SIZE_TOLERANCE:
        if avg_size > optimal:
            recs.append(OptimizationInsight(
                icon=">",
                severity="warning",
                message=f"Consider reducing team size from ~{avg_size:.1f} to {optimal} agents for better throughput",
            ))
        else:
            recs.append(OptimizationInsight(
                icon=">",
                severity="info",
                message=f"Scaling up to {optimal} agents may improve throughput (currently ~{avg_size:.1f})",
            ))
    else:
        recs.append(OptimizationInsight(
            icon="*",
            severity="success",
            message=f"Team size (~{avg_size:.1f} agents) is near optimal ({optimal})",
        ))

    if utilization is None:
        utilization = analyze_agent_utilization(parsed_sessions)
    underused = [a for a in utilization if a.status == "low" and a.agentName != LEAD_AGENT_NAME]
    if underused:
        names = ", ".join(a.agentName for a in underused[:3])
        recs.append(OptimizationInsight(
            icon="!",
            severity="warning",
            message=f"Underutilized agents detected: {names} (consider consolidating)",
        ))

    total_comms = sum(len(p.communications) for p in parsed_sessions)
    total_agents = sum(p.stats.agentCount for p in parsed_sessions)
    comms_per_agent = total_comms / total_agents if total_agents > 0 else 0.0
    low, high = COMMS_HEALTHY_BAND
    if comms_per_agent < low:
        recs.append(OptimizationInsight(
            icon="!",
            severity="warning",
            message=f"Low inter-agent communication ({comms_per_agent:.1f}/agent). Agents may be working in isolation",
        ))
    elif comms_per_agent > high:
        recs.append(OptimizationInsight(
            icon="!",
            severity="warning",
            message=f"High communication overhead ({comms_per_agent:.1f}/agent). Consider clearer task boundaries",
        ))
    else:
        recs.append(OptimizationInsight(
            icon="*",
            severity="success",
            message=f"Communication balance is healthy ({comms_per_agent:.1f} messages/agent)",
        ))

    if len(sessions) >= TREND_WINDOW * 2:
        newest_first = sorted(sessions, key=lambda s: iso_to_epoch_ms(s.startTime), reverse=True)
        recent = _average_team_size(newest_first[:TREND_WINDOW])
        older = _average_team_size(newest_first[TREND_WINDOW:TREND_WINDOW * 2])
        change = (recent - older) / max(1.0, older) * 100
        if abs(change) > TREND_SWING_PCT:
            sign = "+" if change > 0 else ""
            recs.append(OptimizationInsight(
                icon=">",
                severity="info",
                message=f"Team size trend: {sign}{change:.0f}% over recent sessions",
            ))

    if patterns is None:
        patterns = detect_efficiency_patterns(parsed_sessions)
    if patterns:
        top = patterns[0]
        recs.append(OptimizationInsight(
            icon="*",
            severity="success",
            message=f"Top workflow: {top.pattern} ({top.frequency}x) - {top.description}",
        ))

    if score is None:
        score = calculate_performance_score(parsed_sessions)
    recs.append(OptimizationInsight(
        icon="*" if score >= 60 else "!",
        severity="success" if score >= 60 else "info" if score >= 40 else "warning",
        message=f"Overall performance score: {score}/100",
    ))
    return recs


def calculate_optimization(sessions: list[Session], parsed_sessions: list[ParsedSession]) -> TeamOptimization:
    optimal = find_optimal_team_size(parsed_sessions)
    score = calculate_performance_score(parsed_sessions)
    utilization = analyze_agent_utilization(parsed_sessions)
    patterns = detect_efficiency_patterns(parsed_sessions)
    return TeamOptimization(
        optimalTeamSize=optimal,
        currentAvgTeamSize=_average_team_size(sessions),
        performanceScore=score,
        agentUtilization=utilization,
        efficiencyPatterns=patterns,
        recommendations=generate_recommendations(
            sessions,
            parsed_sessions,
            optimal_size=optimal,
            utilization=utilization,
            patterns=patterns,
            score=score,
        ),
    )


class AnalyticsEngine:
    """Stateless facade used by the API router and the analysis script."""

    def calculate(
        self,
        sessions: list[Session],
        parsed_sessions: list[ParsedSession],
        filters: FilterOptions | None = None,
        now: datetime | None = None,
    ) -> AnalyticsResult:
        now = parse_iso_ts(now) or utc_now()
        kept, parsed = apply_filters(sessions, parsed_sessions, filters or FilterOptions(), now)
        return AnalyticsResult(
            profile=calculate_profile_stats(kept, parsed),
            projects=calculate_project_breakdown(kept, parsed),
            trends=calculate_trends(kept, now),
            insights=generate_insights(kept),
            optimization=calculate_optimization(kept, parsed),
        )
