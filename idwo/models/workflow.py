"""
Pydantic models for tracked workflows.

A WorkflowStatus is the small record the orchestrator keeps per workflow id:
what kind of workflow it is, its current status label, and sparse pointers
into each platform that knows about it.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowType(str, Enum):
    """Kinds of workflow the orchestrator tracks."""

    PR = "pr"
    ISSUE = "issue"
    RELEASE = "release"


class WorkflowPhase(str, Enum):
    """Status labels written by the orchestrator itself.

    Callers may overwrite the status with any label through a sync.
    """

    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


class Platform(str, Enum):
    """Platforms a status change can be pushed to."""

    GITHUB = "github"
    JIRA = "jira"
    SLACK = "slack"


class GitHubPointer(BaseModel):
    """Where the workflow lives on GitHub."""

    status: str = Field(..., description="Last status pushed to GitHub")
    url: str = Field(..., description="HTML URL of the pull request or repository")


class JiraPointer(BaseModel):
    """Where the workflow lives in Jira."""

    status: str = Field(..., description="Last status pushed to Jira")
    key: str = Field(..., description="Issue or project key")


class SlackPointer(BaseModel):
    """Where the workflow was announced in Slack."""

    channel: str = Field(..., description="Channel id")
    message_id: str = Field(..., description="Timestamp id of the last message")


class ServicePointers(BaseModel):
    """Sparse map of platform -> platform-specific pointer."""

    github: Optional[GitHubPointer] = None
    jira: Optional[JiraPointer] = None
    slack: Optional[SlackPointer] = None

    def platforms(self) -> list[Platform]:
        """Platforms that currently hold a pointer, in enum order."""
        return [p for p in Platform if getattr(self, p.value) is not None]


class WorkflowStatus(BaseModel):
    """
    Latest known state of one workflow.

    Every update replaces the whole record in the state store.
    """

    id: str = Field(..., min_length=1, description="Workflow id, '<kind>-<context>'")
    type: WorkflowType = Field(..., description="Workflow kind")
    status: str = Field(..., min_length=1, description="Current status label")
    last_updated: datetime = Field(default_factory=utcnow)
    services: ServicePointers = Field(default_factory=ServicePointers)
    confidence: Optional[float] = Field(
        None,
        ge=0.0,
        le=100.0,
        description="Confidence of the last LLM analysis for this workflow",
    )

    @field_validator("status", mode="before")
    @classmethod
    def phase_to_label(cls, v):
        if isinstance(v, WorkflowPhase):
            return v.value
        return v

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "pr-acme-api-123",
                    "type": "pr",
                    "status": "completed",
                    "last_updated": "2026-10-01T12:00:00Z",
                    "services": {
                        "github": {
                            "status": "analyzed",
                            "url": "https://github.com/acme/api/pull/123",
                        }
                    },
                    "confidence": 82.0,
                }
            ]
        }
    }
