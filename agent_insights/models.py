"""Pydantic models matching the dashboard TypeScript types."""
from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# ── Session-related models ──────────────────────────────────────────

class Session(BaseModel):
    """Discovery-level descriptor of one team session."""

    model_config = ConfigDict(frozen=True)

    id: str
    projectDir: str = ""
    projectName: str = ""
    path: str = ""
    subagentsDir: str = ""
    agentFiles: list[str] = Field(default_factory=list)
    agentCount: int = 0
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    gitBranch: Optional[str] = None
    leadAgentId: Optional[str] = None
    teammateNames: dict[str, str] = Field(default_factory=dict)
    duration: Optional[int] = None  # milliseconds


class SessionSummary(BaseModel):
    id: str
    projectName: str = ""
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    duration: Optional[int] = None
    agentCount: int = 0
    gitBranch: Optional[str] = None

    @classmethod
    def from_session(cls, session: Session) -> SessionSummary:
        return cls(
            id=session.id,
            projectName=session.projectName,
            startTime=session.startTime,
            endTime=session.endTime,
            duration=session.duration,
            agentCount=session.agentCount,
            gitBranch=session.gitBranch,
        )


class ToolUse(BaseModel):
    name: str = ""
    id: str = ""
    # Schema-free: each tool has its own input shape.
    input: dict[str, Any] = Field(default_factory=dict)


class SessionEvent(BaseModel):
    agentId: str
    type: str = ""
    role: str = ""
    timestamp: str = ""
    textContent: str = ""
    hasText: bool = False
    toolUse: list[ToolUse] = Field(default_factory=list)
    model: str = ""


class AgentInfo(BaseModel):
    id: str
    name: str
    eventCount: int = 0
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    toolsUsed: dict[str, int] = Field(default_factory=dict)
    messageCount: int = 0
    isLead: bool = False


class Communication(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: str = ""
    # May hold an agent id or a display name; resolution is up to the consumer.
    from_: str = Field("", alias="from")
    to: str = ""
    content: str = ""
    direction: Literal["incoming", "outgoing"] = "outgoing"


class TaskInfo(BaseModel):
    id: str
    subject: str = ""
    createdBy: str = ""
    createdAt: str = ""
    status: str = "pending"


class SessionStats(BaseModel):
    totalEvents: int = 0
    userEvents: int = 0
    assistantEvents: int = 0
    toolUsages: int = 0
    agentCount: int = 0
    toolBreakdown: dict[str, int] = Field(default_factory=dict)


class ParsedSession(BaseModel):
    id: str
    projectName: str = ""
    gitBranch: Optional[str] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    duration: Optional[int] = None
    agents: dict[str, AgentInfo] = Field(default_factory=dict)
    events: list[SessionEvent] = Field(default_factory=list)
    communications: list[Communication] = Field(default_factory=list)
    tasks: list[TaskInfo] = Field(default_factory=list)
    stats: SessionStats = Field(default_factory=SessionStats)


# ── Analytics models ───────────────────────────────────────────────

class FilterOptions(BaseModel):
    project: Optional[str] = None
    last: Optional[str] = None  # "7d" | "2w" | "3m"


class LongestSession(BaseModel):
    id: str
    duration: int
    project: str = ""


class DateRange(BaseModel):
    first: Optional[str] = None
    last: Optional[str] = None


class ProfileStats(BaseModel):
    totalSessions: int = 0
    totalAgents: int = 0
    totalCommunications: int = 0
    totalTasks: int = 0
    totalEvents: int = 0
    mostUsedTools: list[tuple[str, int]] = Field(default_factory=list)
    averageDuration: float = 0.0
    averageAgentsPerSession: float = 0.0
    longestSession: Optional[LongestSession] = None
    dateRange: DateRange = Field(default_factory=DateRange)


class ProjectBreakdown(BaseModel):
    name: str
    sessions: int = 0
    agents: int = 0
    communications: int = 0
    tasks: int = 0
    lastActivity: Optional[str] = None
    totalDuration: int = 0


class PeakActivity(BaseModel):
    hour: int = 0
    day: str = "Sunday"


class Trends(BaseModel):
    daily: dict[str, int] = Field(default_factory=dict)
    weekly: dict[str, int] = Field(default_factory=dict)
    monthly: dict[str, int] = Field(default_factory=dict)
    last7Days: list[int] = Field(default_factory=list)
    last30DaysTotal: int = 0
    peakActivity: PeakActivity = Field(default_factory=PeakActivity)


class AgentUtilization(BaseModel):
    agentName: str
    taskCount: int = 0
    toolUseCount: int = 0
    messageCount: int = 0
    utilizationScore: int = 0  # 0-100
    status: Literal["high", "normal", "low"] = "normal"


class EfficiencyPattern(BaseModel):
    pattern: str
    frequency: int = 0
    description: str = ""


class OptimizationInsight(BaseModel):
    icon: str = "*"  # "*" | "!" | ">"
    severity: Literal["success", "warning", "info"] = "info"
    message: str


class TeamOptimization(BaseModel):
    optimalTeamSize: int = 3
    currentAvgTeamSize: float = 0.0
    performanceScore: int = 0  # 0-100
    agentUtilization: list[AgentUtilization] = Field(default_factory=list)
    efficiencyPatterns: list[EfficiencyPattern] = Field(default_factory=list)
    recommendations: list[OptimizationInsight] = Field(default_factory=list)


class AnalyticsResult(BaseModel):
    profile: ProfileStats
    projects: list[ProjectBreakdown] = Field(default_factory=list)
    trends: Trends = Field(default_factory=Trends)
    insights: list[str] = Field(default_factory=list)
    optimization: TeamOptimization = Field(default_factory=TeamOptimization)
