"""
Tool endpoints exposing the workflow operations over HTTP.

Each endpoint validates its request body, delegates to the process-wide
WorkflowOrchestrator and returns the typed decision object. Error mapping
lives in the exception handlers registered by idwo.api.main.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from idwo.models.decisions import (
    IssueTriageResult,
    PRAnalysisResult,
    ReleaseAnalysis,
    TeamInsights,
)
from idwo.models.workflow import Platform, WorkflowStatus
from idwo.orchestration.orchestrator import WorkflowOrchestrator
from idwo.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Tools"])

_orchestrator: Optional[WorkflowOrchestrator] = None


def set_orchestrator(orchestrator: Optional[WorkflowOrchestrator]) -> None:
    global _orchestrator
    _orchestrator = orchestrator


def orchestrator_ready() -> bool:
    return _orchestrator is not None


def get_orchestrator() -> WorkflowOrchestrator:
    if _orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Workflow orchestrator not initialized",
        )
    return _orchestrator


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class AnalyzePRRequest(BaseModel):
    """Analyze a GitHub pull request."""

    owner: str = Field(..., min_length=1, description="Repository owner")
    repo: str = Field(..., min_length=1, description="Repository name")
    pull_number: int = Field(..., ge=1, description="Pull request number")
    include_jira_context: bool = Field(
        False, description="Link Jira tickets mentioned in the title or body"
    )

    model_config = {
        "json_schema_extra": {
            "examples": [{"owner": "acme", "repo": "api", "pull_number": 123}]
        }
    }


class SmartTriageRequest(BaseModel):
    """Triage a Jira issue."""

    issue_key: str = Field(
        ..., pattern=r"^[A-Z][A-Z0-9]*-\d+$", description="Jira issue key, e.g. PROJ-123"
    )
    github_issue_url: Optional[str] = Field(None, description="Linked GitHub issue URL")
    team_context: Optional[str] = Field(None, max_length=4000)


class OrchestrateReleaseRequest(BaseModel):
    """Assess release readiness and announce the result."""

    release_version: str = Field(..., min_length=1, max_length=100, description="e.g. v1.2.0")
    repository: str = Field(..., description='GitHub repository as "owner/repo"')
    jira_project: str = Field(..., min_length=1, description="Jira project key")
    slack_channel: str = Field(..., min_length=1, description="Channel name, with or without '#'")
    dry_run: bool = Field(False, description="Never create the GitHub release")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "release_version": "v1.2.0",
                    "repository": "acme/api",
                    "jira_project": "PROJ",
                    "slack_channel": "#releases",
                    "dry_run": True,
                }
            ]
        }
    }


class SyncStatusRequest(BaseModel):
    """Push a status change to the platforms tracking a workflow."""

    workflow_id: str = Field(..., min_length=1)
    status_update: str = Field(..., min_length=1, max_length=500)
    platforms: Optional[list[Platform]] = Field(
        None, description="Defaults to the configured sync platforms"
    )


class TeamInsightsRequest(BaseModel):
    """Summarise a team's delivery performance."""

    team_name: str = Field(..., min_length=1)
    time_period: str = Field("30d", pattern=r"^\d+[dwm]$", description="e.g. 7d, 4w, 3m")
    include_predictions: bool = False


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/tools/analyze-pr", response_model=PRAnalysisResult)
async def analyze_pr(
    request: AnalyzePRRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> PRAnalysisResult:
    return await orchestrator.analyze_pr(
        request.owner,
        request.repo,
        request.pull_number,
        include_jira_context=request.include_jira_context,
    )


@router.post("/tools/smart-triage", response_model=IssueTriageResult)
async def smart_triage(
    request: SmartTriageRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> IssueTriageResult:
    return await orchestrator.smart_triage(
        request.issue_key,
        github_issue_url=request.github_issue_url,
        team_context=request.team_context,
    )


@router.post("/tools/orchestrate-release", response_model=ReleaseAnalysis)
async def orchestrate_release(
    request: OrchestrateReleaseRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> ReleaseAnalysis:
    return await orchestrator.orchestrate_release(
        request.release_version,
        request.repository,
        request.jira_project,
        request.slack_channel,
        dry_run=request.dry_run,
    )


@router.post("/tools/sync-status", response_model=WorkflowStatus)
async def sync_status(
    request: SyncStatusRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> WorkflowStatus:
    return await orchestrator.sync_workflow_status(
        request.workflow_id,
        request.status_update,
        platforms=request.platforms,
    )


@router.post("/tools/team-insights", response_model=TeamInsights)
async def team_insights(
    request: TeamInsightsRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> TeamInsights:
    return await orchestrator.get_team_insights(
        request.team_name,
        time_period=request.time_period,
        include_predictions=request.include_predictions,
    )


@router.get("/workflows/{workflow_id}", response_model=WorkflowStatus, tags=["Workflows"])
async def get_workflow(
    workflow_id: str,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> WorkflowStatus:
    """Latest recorded state of a workflow."""
    return orchestrator.get_workflow(workflow_id)
