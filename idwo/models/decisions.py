"""
Typed decision objects produced by the orchestrator.

Each one is a pure derivation of adapter data plus the output of the
extraction pipeline; none of them hold references to adapter state.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Recommendation(str, Enum):
    """Release gate outcome derived from the readiness score."""

    PROCEED = "proceed"
    CAUTION = "caution"
    BLOCK = "block"


class VelocityTrend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class PRAnalysisResult(BaseModel):
    """Outcome of a pull request analysis."""

    summary: str = Field(..., description="LLM summary of the change")
    suggested_reviewers: list[str] = Field(default_factory=list)
    risk_level: RiskLevel = Field(RiskLevel.MEDIUM)
    estimated_review_time: float = Field(..., ge=0, description="Hours")
    topics: list[str] = Field(default_factory=list)
    related_jira_tickets: list[str] = Field(default_factory=list)
    impact_areas: list[str] = Field(
        default_factory=list,
        description="Areas touched, derived from changed file paths",
    )


class IssueTriageResult(BaseModel):
    """Outcome of a tracker issue triage."""

    priority: Priority = Field(Priority.MEDIUM)
    category: str = Field("story")
    estimated_effort: int = Field(..., ge=0, description="Story points")
    suggested_assignee: Optional[str] = None
    suggested_sprint: Optional[str] = None
    dependencies: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class Blocker(BaseModel):
    type: str
    description: str
    severity: RiskLevel


class ReleaseAnalysis(BaseModel):
    """Release readiness assessment."""

    readiness: int = Field(..., ge=0, le=100, description="Readiness score")
    blockers: list[Blocker] = Field(default_factory=list)
    test_coverage: float = Field(0.0, ge=0.0, le=100.0)
    open_issues: int = Field(0, ge=0)
    recommendation: Recommendation
    suggested_actions: list[str] = Field(default_factory=list)


class Velocity(BaseModel):
    current: float = 0.0
    historical: list[float] = Field(default_factory=list)
    trend: VelocityTrend = VelocityTrend.STABLE


class Bottleneck(BaseModel):
    type: str = Field(..., description="review, testing, deployment or planning")
    description: str
    impact: int = Field(..., ge=0)


class TeamMetrics(BaseModel):
    avg_pr_size: float = 0.0
    avg_review_time: float = 0.0
    deployment_frequency: float = 0.0
    cycle_time: float = 0.0


class Prediction(BaseModel):
    metric: str
    prediction: str
    confidence: float = Field(..., ge=0.0, le=100.0)


class TeamInsights(BaseModel):
    """Team-level delivery analytics."""

    velocity: Velocity = Field(default_factory=Velocity)
    bottlenecks: list[Bottleneck] = Field(default_factory=list)
    team_metrics: TeamMetrics = Field(default_factory=TeamMetrics)
    predictions: list[Prediction] = Field(
        default_factory=list,
        description="Only populated when predictions were requested",
    )
