"""
Tests for the HTTP surface (idwo/api/main.py, idwo/api/tools.py).

Covers:
  - /health returns 200 when ready, 503 without an orchestrator
  - Credential-based component statuses and _overall_status
  - Each tool endpoint delegates to the orchestrator
  - Request body validation (422)
  - Error mapping: validation -> 422, not found -> 404,
    ServiceError -> 503 (retryable) / 502, unexpected -> 500
  - Request id header echoed on responses
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from idwo.api import tools
from idwo.api.main import ComponentStatus, _overall_status, app
from idwo.config.settings import AppSettings
from idwo.errors import (
    ChannelNotFoundError,
    InvalidRepositoryError,
    ServiceError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from idwo.models.decisions import (
    IssueTriageResult,
    PRAnalysisResult,
    Recommendation,
    ReleaseAnalysis,
    TeamInsights,
)
from idwo.models.workflow import Platform, WorkflowStatus, WorkflowType


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def orchestrator():
    """Mock orchestrator installed as the process-wide instance."""
    mock = MagicMock()
    mock.analyze_pr = AsyncMock(
        return_value=PRAnalysisResult(summary="Looks good", estimated_review_time=1.5)
    )
    mock.smart_triage = AsyncMock(return_value=IssueTriageResult(estimated_effort=3))
    mock.orchestrate_release = AsyncMock(
        return_value=ReleaseAnalysis(readiness=92, recommendation=Recommendation.PROCEED)
    )
    mock.sync_workflow_status = AsyncMock(
        return_value=WorkflowStatus(id="pr-acme-api-7", type=WorkflowType.PR, status="merged")
    )
    mock.get_team_insights = AsyncMock(return_value=TeamInsights())
    mock.get_workflow = MagicMock(
        return_value=WorkflowStatus(id="pr-acme-api-7", type=WorkflowType.PR, status="completed")
    )
    tools.set_orchestrator(mock)
    yield mock
    tools.set_orchestrator(None)


@pytest.fixture
def settings():
    configured = AppSettings(
        _env_file=None,
        github_token="ghp_test",
        openai_api_key="sk-test",
        jira_url="https://acme.atlassian.net",
        jira_username="bot@acme.dev",
        jira_api_token="jira-token",
        slack_bot_token="xoxb-test",
    )
    with patch("idwo.api.main.get_settings", return_value=configured):
        yield configured


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestOverallStatus:
    def test_all_healthy(self):
        assert _overall_status({"a": ComponentStatus(status="healthy")}) == "healthy"

    def test_degraded_wins_over_healthy(self):
        components = {
            "a": ComponentStatus(status="healthy"),
            "b": ComponentStatus(status="degraded"),
        }
        assert _overall_status(components) == "degraded"

    def test_unhealthy_wins(self):
        components = {
            "a": ComponentStatus(status="degraded"),
            "b": ComponentStatus(status="unhealthy"),
        }
        assert _overall_status(components) == "unhealthy"


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_healthy(self, client, orchestrator, settings):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "idwo"
        assert set(data["components"]) == {"orchestrator", "github", "jira", "slack", "openai"}
        assert data["response_time_ms"] >= 0

    @pytest.mark.asyncio
    async def test_unhealthy_without_orchestrator(self, client, settings):
        response = await client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["components"]["orchestrator"]["message"] == "Orchestrator not initialized"

    @pytest.mark.asyncio
    async def test_missing_credentials_degraded(self, client, orchestrator):
        bare = AppSettings(
            _env_file=None,
            github_token="ghp_test",
            openai_api_key="sk-test",
            jira_url=None,
            jira_username=None,
            jira_api_token=None,
            slack_bot_token=None,
        )
        with patch("idwo.api.main.get_settings", return_value=bare):
            response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["components"]["jira"]["message"] == "Jira credentials not configured"
        assert data["components"]["github"]["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client, orchestrator, settings):
        response = await client.get("/health", headers={"X-Request-ID": "req-abc"})
        assert response.headers["X-Request-ID"] == "req-abc"


# ---------------------------------------------------------------------------
# Tool endpoints
# ---------------------------------------------------------------------------


class TestToolEndpoints:
    @pytest.mark.asyncio
    async def test_analyze_pr(self, client, orchestrator):
        response = await client.post(
            "/tools/analyze-pr",
            json={"owner": "acme", "repo": "api", "pull_number": 7, "include_jira_context": True},
        )

        assert response.status_code == 200
        assert response.json()["summary"] == "Looks good"
        orchestrator.analyze_pr.assert_awaited_once_with(
            "acme", "api", 7, include_jira_context=True
        )

    @pytest.mark.asyncio
    async def test_smart_triage(self, client, orchestrator):
        response = await client.post("/tools/smart-triage", json={"issue_key": "PROJ-42"})

        assert response.status_code == 200
        assert response.json()["estimated_effort"] == 3
        orchestrator.smart_triage.assert_awaited_once_with(
            "PROJ-42", github_issue_url=None, team_context=None
        )

    @pytest.mark.asyncio
    async def test_orchestrate_release(self, client, orchestrator):
        response = await client.post(
            "/tools/orchestrate-release",
            json={
                "release_version": "v1.2.0",
                "repository": "acme/api",
                "jira_project": "PROJ",
                "slack_channel": "#releases",
                "dry_run": True,
            },
        )

        assert response.status_code == 200
        assert response.json()["recommendation"] == "proceed"
        orchestrator.orchestrate_release.assert_awaited_once_with(
            "v1.2.0", "acme/api", "PROJ", "#releases", dry_run=True
        )

    @pytest.mark.asyncio
    async def test_sync_status(self, client, orchestrator):
        response = await client.post(
            "/tools/sync-status",
            json={
                "workflow_id": "pr-acme-api-7",
                "status_update": "merged",
                "platforms": ["jira", "slack"],
            },
        )

        assert response.status_code == 200
        assert response.json()["status"] == "merged"
        orchestrator.sync_workflow_status.assert_awaited_once_with(
            "pr-acme-api-7", "merged", platforms=[Platform.JIRA, Platform.SLACK]
        )

    @pytest.mark.asyncio
    async def test_team_insights(self, client, orchestrator):
        response = await client.post(
            "/tools/team-insights",
            json={"team_name": "platform", "time_period": "2w", "include_predictions": True},
        )

        assert response.status_code == 200
        assert response.json()["velocity"]["trend"] == "stable"
        orchestrator.get_team_insights.assert_awaited_once_with(
            "platform", time_period="2w", include_predictions=True
        )

    @pytest.mark.asyncio
    async def test_get_workflow(self, client, orchestrator):
        response = await client.get("/workflows/pr-acme-api-7")

        assert response.status_code == 200
        assert response.json()["id"] == "pr-acme-api-7"
        orchestrator.get_workflow.assert_called_once_with("pr-acme-api-7")

    @pytest.mark.asyncio
    async def test_not_initialized(self, client):
        response = await client.post("/tools/smart-triage", json={"issue_key": "PROJ-42"})

        assert response.status_code == 503
        assert response.json()["detail"] == "Workflow orchestrator not initialized"


class TestRequestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "path,body",
        [
            ("/tools/analyze-pr", {"owner": "acme", "repo": "api", "pull_number": 0}),
            ("/tools/analyze-pr", {"owner": "", "repo": "api", "pull_number": 1}),
            ("/tools/smart-triage", {"issue_key": "not-a-key"}),
            ("/tools/sync-status", {"workflow_id": "x", "status_update": ""}),
            ("/tools/sync-status", {"workflow_id": "x", "status_update": "s", "platforms": ["email"]}),
            ("/tools/team-insights", {"team_name": "t", "time_period": "monthly"}),
        ],
    )
    async def test_rejected(self, client, orchestrator, path, body):
        response = await client.post(path, json=body)
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_workflow_validation_error(self, client, orchestrator):
        orchestrator.orchestrate_release.side_effect = InvalidRepositoryError("acme")

        response = await client.post(
            "/tools/orchestrate-release",
            json={
                "release_version": "v1",
                "repository": "acme",
                "jira_project": "PROJ",
                "slack_channel": "releases",
            },
        )

        assert response.status_code == 422
        assert response.json()["field"] == "repository"

    @pytest.mark.asyncio
    async def test_plain_validation_error_field(self, client, orchestrator):
        orchestrator.sync_workflow_status.side_effect = WorkflowValidationError(
            "Unknown platform", field="platforms"
        )

        response = await client.post(
            "/tools/sync-status", json={"workflow_id": "x", "status_update": "s"}
        )

        assert response.status_code == 422
        assert response.json() == {"detail": "Unknown platform", "field": "platforms"}

    @pytest.mark.asyncio
    async def test_workflow_not_found(self, client, orchestrator):
        orchestrator.get_workflow.side_effect = WorkflowNotFoundError("missing")

        response = await client.get("/workflows/missing")

        assert response.status_code == 404
        assert response.json()["detail"] == "Workflow missing not found"

    @pytest.mark.asyncio
    async def test_channel_not_found(self, client, orchestrator):
        orchestrator.orchestrate_release.side_effect = ChannelNotFoundError("#nowhere")

        response = await client.post(
            "/tools/orchestrate-release",
            json={
                "release_version": "v1",
                "repository": "acme/api",
                "jira_project": "PROJ",
                "slack_channel": "#nowhere",
            },
        )

        assert response.status_code == 404
        assert "#nowhere" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_retryable_service_error(self, client, orchestrator):
        orchestrator.analyze_pr.side_effect = ServiceError(
            "GitHub unavailable", service="github", status_code=502, retryable=True
        )

        response = await client.post(
            "/tools/analyze-pr", json={"owner": "acme", "repo": "api", "pull_number": 7}
        )

        assert response.status_code == 503
        data = response.json()
        assert data["service"] == "github"
        assert data["retryable"] is True
        assert data["detail"] == "GitHub unavailable"

    @pytest.mark.asyncio
    async def test_permanent_service_error(self, client, orchestrator):
        orchestrator.smart_triage.side_effect = ServiceError(
            "Issue not found", service="jira", status_code=404
        )

        response = await client.post("/tools/smart-triage", json={"issue_key": "PROJ-404"})

        assert response.status_code == 502
        assert response.json()["status_code"] == 404

    @pytest.mark.asyncio
    async def test_unexpected_error(self, orchestrator):
        orchestrator.get_team_insights.side_effect = RuntimeError("boom")
        transport = ASGITransport(app=app, raise_app_exceptions=False)

        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.post("/tools/team-insights", json={"team_name": "t"})

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error", "type": "RuntimeError"}
