"""
Models exchanged with the LLM adapter.
"""

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class AnalysisType(str, Enum):
    PR_ANALYSIS = "pr_analysis"
    ISSUE_TRIAGE = "issue_triage"
    RELEASE_READINESS = "release_readiness"
    TEAM_INSIGHTS = "team_insights"


def clamp_confidence(value: Any) -> float:
    """Force a confidence value into [0, 100]; unusable input becomes 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return max(0.0, min(100.0, number))


class AnalysisPrompt(BaseModel):
    """Typed context plus instructions for one LLM call."""

    type: AnalysisType
    context: dict[str, Any] = Field(default_factory=dict)
    instructions: str = Field(..., min_length=1)


class AnalysisResult(BaseModel):
    """
    What the LLM adapter hands back.

    `confidence` is clamped on construction so no caller ever sees a value
    outside [0, 100].
    """

    analysis: str = ""
    confidence: float = 0.0
    recommendations: list[str] = Field(default_factory=list)
    structured_data: Optional[dict[str, Any]] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp(cls, v: Any) -> float:
        return clamp_confidence(v)

    @field_validator("recommendations", mode="before")
    @classmethod
    def coerce_recommendations(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return [str(item) for item in v]
