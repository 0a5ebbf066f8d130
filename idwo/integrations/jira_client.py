"""
Jira Cloud adapter over the REST API v3.

Uses an httpx.AsyncClient with basic auth (username + API token). Every
failure, HTTP or transport, is raised as ServiceError(service="jira");
5xx and transport errors are marked retryable.

Usage:
    async with JiraClient("https://acme.atlassian.net", "bot@acme.io", token) as jira:
        issue = await jira.get_issue("PROJ-1")
        await jira.add_comment("PROJ-1", "Triaged")
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Optional

import httpx

from idwo.errors import ServiceError
from idwo.utils.logging import get_logger

logger = get_logger(__name__)

USER_AGENT = "IDWO/1.0.0"

# Jira Cloud custom field ids used for sprint and estimate
SPRINT_FIELD = "customfield_10020"
STORY_POINTS_FIELD = "customfield_10021"

ISSUE_FIELDS = ",".join(
    [
        "summary",
        "description",
        "issuetype",
        "status",
        "priority",
        "assignee",
        "reporter",
        "created",
        "updated",
        "labels",
        "components",
        "fixVersions",
        SPRINT_FIELD,
        STORY_POINTS_FIELD,
        "comment",
    ]
)
SEARCH_FIELDS = ["summary", "description", "issuetype", "status", "priority", "assignee", "created", "updated", "labels"]
DONE_STATUSES = ("Done", "Closed", "Resolved")


@dataclass
class JiraComment:
    author: str
    body: str
    created: Optional[str] = None
    id: Optional[str] = None


@dataclass
class JiraIssue:
    """Flattened view of a Jira issue."""

    key: str
    id: str
    summary: str
    description: str = ""
    issue_type: str = "Unknown"
    status: str = "Unknown"
    priority: str = "Medium"
    assignee: Optional[str] = None
    reporter: str = "Unknown"
    created: Optional[str] = None
    updated: Optional[str] = None
    labels: list[str] = field(default_factory=list)
    components: list[str] = field(default_factory=list)
    fix_versions: list[str] = field(default_factory=list)
    sprint: Optional[str] = None
    story_points: Optional[float] = None
    comments: list[JiraComment] = field(default_factory=list)


@dataclass
class ProjectIssueStats:
    total_issues: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_priority: dict[str, int] = field(default_factory=dict)
    by_assignee: dict[str, int] = field(default_factory=dict)
    completed_in_period: int = 0
    created_in_period: int = 0


def adf_to_text(node: Any) -> str:
    """Collapse an Atlassian Document Format tree into plain text."""
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if node.get("type") == "text":
        return node.get("text", "")
    parts = [adf_to_text(child) for child in node.get("content", [])]
    separator = "\n" if node.get("type") == "doc" else ""
    return separator.join(p for p in parts if p)


def text_to_adf(text: str) -> dict[str, Any]:
    """Wrap plain text as a one-paragraph ADF document."""
    return {
        "type": "doc",
        "version": 1,
        "content": [{"type": "paragraph", "content": [{"type": "text", "text": text}]}],
    }


def _display_name(user: Optional[dict], default: Optional[str] = None) -> Optional[str]:
    if not user:
        return default
    return user.get("displayName") or default


def _parse_issue(data: dict[str, Any]) -> JiraIssue:
    fields = data.get("fields") or {}
    sprints = fields.get(SPRINT_FIELD) or []
    comments = (fields.get("comment") or {}).get("comments") or []
    return JiraIssue(
        key=data["key"],
        id=str(data.get("id", "")),
        summary=fields.get("summary") or "",
        description=adf_to_text(fields.get("description")),
        issue_type=(fields.get("issuetype") or {}).get("name", "Unknown"),
        status=(fields.get("status") or {}).get("name", "Unknown"),
        priority=(fields.get("priority") or {}).get("name", "Medium"),
        assignee=_display_name(fields.get("assignee")),
        reporter=_display_name(fields.get("reporter"), "Unknown"),
        created=fields.get("created"),
        updated=fields.get("updated"),
        labels=list(fields.get("labels") or []),
        components=[c.get("name", "") for c in fields.get("components") or []],
        fix_versions=[v.get("name", "") for v in fields.get("fixVersions") or []],
        sprint=sprints[0].get("name") if sprints and isinstance(sprints[0], dict) else None,
        story_points=fields.get(STORY_POINTS_FIELD),
        comments=[
            JiraComment(
                author=_display_name(c.get("author"), "Unknown"),
                body=adf_to_text(c.get("body")),
                created=c.get("created"),
                id=c.get("id"),
            )
            for c in comments
        ],
    )


class JiraClient:
    """
    Async Jira REST client.

    Args:
        base_url: Jira site URL, without the /rest suffix.
        username: Account e-mail used for basic auth.
        api_token: Atlassian API token.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass a MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        api_token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise ValueError("Jira base URL is required")
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/api/3",
            auth=(username, api_token),
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                "User-Agent": USER_AGENT,
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "JiraClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, operation: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("jira_request_failed", operation=operation, path=path, error=str(e))
            raise ServiceError(
                f"Failed to {operation}: {e}", service="jira", retryable=True
            ) from e

        if response.is_error:
            logger.error(
                "jira_api_error",
                operation=operation,
                path=path,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise ServiceError(
                f"Failed to {operation}: Jira API returned {response.status_code}",
                service="jira",
                status_code=response.status_code,
                retryable=response.status_code >= 500,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error("jira_invalid_response", operation=operation, path=path)
            raise ServiceError(
                f"Failed to {operation}: Jira returned a non-JSON response",
                service="jira",
                status_code=response.status_code,
                retryable=True,
            ) from e

    # ========================
    # Issues
    # ========================

    async def get_issue(self, issue_key: str) -> JiraIssue:
        """Fetch one issue with its comments."""
        data = await self._request(
            "GET",
            f"/issue/{issue_key}",
            f"fetch Jira issue {issue_key}",
            params={"fields": ISSUE_FIELDS},
        )
        return _parse_issue(data)

    async def search_issues(self, jql: str, max_results: int = 50) -> list[JiraIssue]:
        """Run a JQL search and return the matching issues."""
        data = await self._search(jql, max_results)
        issues = [_parse_issue(raw) for raw in data.get("issues", [])]
        logger.debug("jira_search_completed", jql=jql, count=len(issues))
        return issues

    async def _search(self, jql: str, max_results: int) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/search",
            "search Jira issues",
            json={"jql": jql, "maxResults": max_results, "fields": SEARCH_FIELDS},
        ) or {}

    async def add_comment(self, issue_key: str, comment: str) -> JiraComment:
        """Post a plain-text comment on an issue."""
        data = await self._request(
            "POST",
            f"/issue/{issue_key}/comment",
            f"add comment to Jira issue {issue_key}",
            json={"body": text_to_adf(comment)},
        ) or {}
        logger.info("jira_comment_added", issue_key=issue_key)
        return JiraComment(
            author=_display_name(data.get("author"), "IDWO"),
            body=comment,
            created=data.get("created"),
            id=data.get("id"),
        )

    # ========================
    # Projects
    # ========================

    async def get_project_issue_stats(
        self, project_key: str, days_back: int = 30
    ) -> ProjectIssueStats:
        """Break down a project's issues by status, priority and assignee."""
        since = (date.today() - timedelta(days=days_back)).isoformat()
        done = ", ".join(f'"{s}"' for s in DONE_STATUSES)

        all_issues = await self._search(f'project = "{project_key}"', 100)
        completed = await self._search(
            f'project = "{project_key}" AND status changed TO ({done}) AFTER "{since}"', 0
        )
        created = await self._search(
            f'project = "{project_key}" AND created >= "{since}"', 0
        )

        stats = ProjectIssueStats(
            total_issues=all_issues.get("total", len(all_issues.get("issues", []))),
            completed_in_period=completed.get("total", 0),
            created_in_period=created.get("total", 0),
        )
        for raw in all_issues.get("issues", []):
            issue = _parse_issue(raw)
            stats.by_status[issue.status] = stats.by_status.get(issue.status, 0) + 1
            stats.by_priority[issue.priority] = stats.by_priority.get(issue.priority, 0) + 1
            assignee = issue.assignee or "Unassigned"
            stats.by_assignee[assignee] = stats.by_assignee.get(assignee, 0) + 1
        return stats
