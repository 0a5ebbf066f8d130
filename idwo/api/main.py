"""
FastAPI application entry point for the developer workflow orchestrator.

Wires settings -> logging -> adapters -> orchestrator on startup, exposes the
workflow tools, a health check, and maps orchestrator errors onto HTTP
status codes.

Run with:
    uvicorn idwo.api.main:app --reload
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from idwo import __version__
from idwo.agents.analyst import AIAnalyst
from idwo.api import tools
from idwo.api.middleware import RequestLoggingMiddleware
from idwo.config.settings import AppSettings, get_settings
from idwo.errors import (
    ChannelNotFoundError,
    ServiceError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from idwo.integrations.github_client import GitHubClient
from idwo.integrations.jira_client import JiraClient
from idwo.integrations.llm_provider import LLMProviderManager
from idwo.integrations.slack_client import SlackClient
from idwo.orchestration.orchestrator import WorkflowOrchestrator
from idwo.utils.logging import SERVICE_NAME, get_logger, setup_logging

logger = get_logger(__name__)


def build_orchestrator(settings: AppSettings) -> WorkflowOrchestrator:
    """Construct every adapter from settings. Raises ValueError on missing credentials."""
    github = GitHubClient(
        token=settings.github_token or "",
        max_retries=settings.github_max_retries,
    )
    jira = JiraClient(
        base_url=settings.jira_url or "",
        username=settings.jira_username or "",
        api_token=settings.jira_api_token or "",
        timeout=settings.http_timeout_seconds,
    )
    slack = SlackClient(
        token=settings.slack_bot_token or "",
        timeout=settings.http_timeout_seconds,
    )
    analyst = AIAnalyst(
        provider=LLMProviderManager(
            fallback_models=settings.llm_fallback_models,
            api_key=settings.openai_api_key,
        ),
        model=settings.llm_model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )
    return WorkflowOrchestrator(
        github=github,
        jira=jira,
        slack=slack,
        ai=analyst,
        default_platforms=settings.default_sync_platforms,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    app_settings = get_settings()
    setup_logging(log_level=app_settings.log_level, environment=app_settings.environment)
    logger.info("app_starting", version=__version__)

    for warning in app_settings.validate_for_startup():
        logger.warning("config_warning", message=warning)
    app_settings.log_configuration_summary()

    orchestrator: Optional[WorkflowOrchestrator] = None
    try:
        orchestrator = build_orchestrator(app_settings)
    except ValueError as e:
        logger.warning("orchestrator_not_configured", error=str(e))
    tools.set_orchestrator(orchestrator)

    logger.info("app_started", orchestrator_ready=orchestrator is not None)
    try:
        yield
    finally:
        if orchestrator is not None:
            await orchestrator.close()
        tools.set_orchestrator(None)
        logger.info("app_stopped")


app = FastAPI(
    title="IDWO - Intelligent Developer Workflow Orchestrator",
    description=(
        "Automates pull request analysis, issue triage, release gating and team "
        "insights across GitHub, Jira and Slack with LLM-assisted decisions."
    ),
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.include_router(tools.router)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class ComponentStatus(BaseModel):
    """Status of a single collaborator."""

    status: str  # "healthy", "degraded", "unhealthy"
    message: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: str
    service: str
    components: Dict[str, ComponentStatus]
    response_time_ms: Optional[float] = None


def _credential_status(configured: bool, name: str) -> ComponentStatus:
    if configured:
        return ComponentStatus(status="healthy")
    return ComponentStatus(status="degraded", message=f"{name} credentials not configured")


def _overall_status(components: Dict[str, ComponentStatus]) -> str:
    statuses = {c.status for c in components.values()}
    if "unhealthy" in statuses:
        return "unhealthy"
    if "degraded" in statuses:
        return "degraded"
    return "healthy"


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    responses={503: {"description": "Orchestrator not initialized"}},
)
async def health_check(response: Response) -> HealthResponse:
    """
    Liveness check with per-collaborator configuration status.

    Returns 503 when the orchestrator could not be built.
    """
    start = time.perf_counter()
    app_settings = get_settings()

    components = {
        "orchestrator": (
            ComponentStatus(status="healthy")
            if tools.orchestrator_ready()
            else ComponentStatus(status="unhealthy", message="Orchestrator not initialized")
        ),
        "github": _credential_status(app_settings.has_github_token, "GitHub"),
        "jira": _credential_status(app_settings.has_jira_credentials, "Jira"),
        "slack": _credential_status(app_settings.has_slack_token, "Slack"),
        "openai": _credential_status(app_settings.has_openai_key, "OpenAI"),
    }

    overall = _overall_status(components)
    if overall == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status=overall,
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        service=SERVICE_NAME,
        components=components,
        response_time_ms=round((time.perf_counter() - start) * 1000, 1),
    )


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


@app.exception_handler(WorkflowValidationError)
async def validation_error_handler(request: Request, exc: WorkflowValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc), "field": exc.field},
    )


@app.exception_handler(WorkflowNotFoundError)
@app.exception_handler(ChannelNotFoundError)
async def not_found_handler(request: Request, exc: LookupError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    logger.warning(
        "service_error",
        service=exc.service,
        status_code=exc.status_code,
        retryable=exc.retryable,
        path=request.url.path,
    )
    code = status.HTTP_503_SERVICE_UNAVAILABLE if exc.retryable else status.HTTP_502_BAD_GATEWAY
    return JSONResponse(status_code=code, content={"detail": exc.message, **exc.to_dict()})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "type": type(exc).__name__},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("idwo.api.main:app", host="0.0.0.0", port=8000, reload=True)
