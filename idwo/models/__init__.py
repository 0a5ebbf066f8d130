"""
Pydantic models for the developer workflow orchestrator.

- Workflow state records and platform pointers
- Decision objects returned by the five workflow operations
- LLM prompt and analysis result shapes
"""

from idwo.models.analysis import (
    AnalysisPrompt,
    AnalysisResult,
    AnalysisType,
    clamp_confidence,
)
from idwo.models.decisions import (
    Blocker,
    Bottleneck,
    IssueTriageResult,
    Prediction,
    Priority,
    PRAnalysisResult,
    Recommendation,
    ReleaseAnalysis,
    RiskLevel,
    TeamInsights,
    TeamMetrics,
    Velocity,
    VelocityTrend,
)
from idwo.models.workflow import (
    GitHubPointer,
    JiraPointer,
    Platform,
    ServicePointers,
    SlackPointer,
    WorkflowPhase,
    WorkflowStatus,
    WorkflowType,
)

__all__ = [
    # Analysis
    "AnalysisPrompt",
    "AnalysisResult",
    "AnalysisType",
    "clamp_confidence",
    # Decisions
    "Blocker",
    "Bottleneck",
    "IssueTriageResult",
    "Prediction",
    "Priority",
    "PRAnalysisResult",
    "Recommendation",
    "ReleaseAnalysis",
    "RiskLevel",
    "TeamInsights",
    "TeamMetrics",
    "Velocity",
    "VelocityTrend",
    # Workflow state
    "GitHubPointer",
    "JiraPointer",
    "Platform",
    "ServicePointers",
    "SlackPointer",
    "WorkflowPhase",
    "WorkflowStatus",
    "WorkflowType",
]
