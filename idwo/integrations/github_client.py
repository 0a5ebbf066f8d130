"""
GitHub adapter built on PyGithub.

PyGithub is synchronous; every public method here is a coroutine that runs
the blocking calls in a worker thread so the orchestrator can fan reads out
with asyncio.gather. All failures surface as ServiceError(service="github").

Usage:
    from idwo.integrations.github_client import GitHubClient

    client = GitHubClient(token="ghp_...")
    pr = await client.get_pr_details("acme", "api", 123)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from itertools import islice
from typing import Any, Callable, Optional, TypeVar

from github import Auth, Github, GithubException, RateLimitExceededException
from github.Repository import Repository as GithubRepository

from idwo.errors import ServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

USER_AGENT = "IDWO/1.0.0"
STATUS_CONTEXT = "IDWO/workflow"
PAGE_CAP = 100
MAX_CONTRIBUTORS = 20
VALID_COMMIT_STATES = ("pending", "success", "error", "failure")

# Client errors that will not change on retry
NON_RETRYABLE_STATUSES = (400, 401, 403, 404, 410, 422)


# ========================
# Data Classes
# ========================


@dataclass
class PRFile:
    filename: str
    status: str
    additions: int
    deletions: int
    changes: int
    patch: Optional[str] = None


@dataclass
class PRCommit:
    sha: str
    message: str
    author: str


@dataclass
class PRReview:
    user: str
    state: str
    submitted_at: Optional[datetime] = None


@dataclass
class PRDetails:
    """Pull request with its files, commits and reviews."""

    number: int
    title: str
    body: str
    state: str
    author: str
    url: str
    created_at: Optional[datetime]
    changed_files: int = 0
    additions: int = 0
    deletions: int = 0
    files: list[PRFile] = field(default_factory=list)
    commits: list[PRCommit] = field(default_factory=list)
    reviews: list[PRReview] = field(default_factory=list)


@dataclass
class IssueComment:
    author: str
    body: str
    created_at: Optional[datetime] = None


@dataclass
class IssueDetails:
    """GitHub issue with its comment thread."""

    number: int
    title: str
    body: str
    state: str
    author: str
    url: str
    assignees: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    comments: list[IssueComment] = field(default_factory=list)


@dataclass
class RepositoryStats:
    """Activity counts for a repository over a recent window."""

    commits: int = 0
    pull_requests: int = 0
    issues: int = 0
    contributors: list[str] = field(default_factory=list)
    languages: dict[str, int] = field(default_factory=dict)


@dataclass
class ReleaseInfo:
    tag_name: str
    name: str
    body: str
    draft: bool
    prerelease: bool
    url: str = ""
    created_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    author: str = "unknown"


@dataclass
class ClientStats:
    """Tracks client usage statistics."""

    api_calls: int = 0
    errors: int = 0
    retries: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _login(user: Any) -> str:
    return user.login if user is not None and getattr(user, "login", None) else "unknown"


# ========================
# GitHub Client
# ========================


class GitHubClient:
    """
    Async facade over PyGithub for the operations the orchestrator needs.

    Args:
        token: GitHub personal access token.
        max_retries: Retries on 5xx and connection errors (default: 3).
        retry_delay: Base delay between retries in seconds (default: 2.0).
    """

    def __init__(
        self,
        token: str,
        max_retries: int = 3,
        retry_delay: float = 2.0,
    ):
        if not token:
            raise ValueError(
                "GitHub token is required. Set GITHUB_TOKEN environment variable "
                "or pass token parameter."
            )

        self._github = Github(auth=Auth.Token(token), user_agent=USER_AGENT)
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._stats = ClientStats()
        self._repo_cache: dict[str, GithubRepository] = {}

        logger.info("GitHubClient initialized (max_retries=%d)", max_retries)

    def _get_repo(self, owner: str, repo: str) -> GithubRepository:
        full_name = f"{owner}/{repo}"
        if full_name not in self._repo_cache:
            self._repo_cache[full_name] = self._github.get_repo(full_name)
        return self._repo_cache[full_name]

    async def _run(self, operation: Callable[[], T], operation_name: str) -> T:
        return await asyncio.to_thread(self._with_retry, operation, operation_name)

    # ========================
    # Pull Requests
    # ========================

    async def get_pr_details(self, owner: str, repo: str, pull_number: int) -> PRDetails:
        """Fetch a pull request together with its files, commits and reviews."""
        return await self._run(
            lambda: self._get_pr_details_impl(owner, repo, pull_number),
            f"get_pr_details({owner}/{repo}#{pull_number})",
        )

    def _get_pr_details_impl(self, owner: str, repo: str, pull_number: int) -> PRDetails:
        self._stats.api_calls += 1
        pr = self._get_repo(owner, repo).get_pull(pull_number)

        files = [
            PRFile(
                filename=f.filename,
                status=f.status,
                additions=f.additions,
                deletions=f.deletions,
                changes=f.changes,
                patch=f.patch,
            )
            for f in islice(pr.get_files(), PAGE_CAP)
        ]
        commits = [
            PRCommit(
                sha=c.sha,
                message=c.commit.message,
                author=c.author.login if c.author else (c.commit.author.name or "unknown"),
            )
            for c in islice(pr.get_commits(), PAGE_CAP)
        ]
        reviews = [
            PRReview(user=_login(r.user), state=r.state, submitted_at=r.submitted_at)
            for r in islice(pr.get_reviews(), PAGE_CAP)
        ]

        return PRDetails(
            number=pr.number,
            title=pr.title,
            body=pr.body or "",
            state=pr.state,
            author=_login(pr.user),
            url=pr.html_url,
            created_at=pr.created_at,
            changed_files=pr.changed_files or 0,
            additions=pr.additions or 0,
            deletions=pr.deletions or 0,
            files=files,
            commits=commits,
            reviews=reviews,
        )

    async def update_pr_status(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        state: str,
        description: Optional[str] = None,
    ) -> None:
        """Set a commit status on the head commit of a pull request."""
        if state not in VALID_COMMIT_STATES:
            raise ValueError(f"Invalid commit state '{state}'")
        await self._run(
            lambda: self._update_pr_status_impl(owner, repo, pull_number, state, description),
            f"update_pr_status({owner}/{repo}#{pull_number})",
        )

    def _update_pr_status_impl(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        state: str,
        description: Optional[str],
    ) -> None:
        self._stats.api_calls += 1
        gh_repo = self._get_repo(owner, repo)
        head_sha = gh_repo.get_pull(pull_number).head.sha
        gh_repo.get_commit(head_sha).create_status(
            state=state,
            description=(description or f"IDWO status update: {state}")[:140],
            context=STATUS_CONTEXT,
        )
        logger.info(
            "Updated PR status on %s/%s#%d (state=%s)", owner, repo, pull_number, state
        )

    # ========================
    # Issues
    # ========================

    async def get_issue_details(self, owner: str, repo: str, issue_number: int) -> IssueDetails:
        """Fetch an issue and its comments."""
        return await self._run(
            lambda: self._get_issue_details_impl(owner, repo, issue_number),
            f"get_issue_details({owner}/{repo}#{issue_number})",
        )

    def _get_issue_details_impl(self, owner: str, repo: str, issue_number: int) -> IssueDetails:
        self._stats.api_calls += 1
        issue = self._get_repo(owner, repo).get_issue(issue_number)
        comments = [
            IssueComment(author=_login(c.user), body=c.body or "", created_at=c.created_at)
            for c in islice(issue.get_comments(), PAGE_CAP)
        ]
        return IssueDetails(
            number=issue.number,
            title=issue.title,
            body=issue.body or "",
            state=issue.state,
            author=_login(issue.user),
            url=issue.html_url,
            assignees=[a.login for a in issue.assignees],
            labels=[label.name for label in issue.labels],
            comments=comments,
        )

    # ========================
    # Repository
    # ========================

    async def get_repository_stats(
        self, owner: str, repo: str, since: Optional[datetime] = None
    ) -> RepositoryStats:
        """Count recent commits, pull requests and issues; list contributors."""
        return await self._run(
            lambda: self._get_repository_stats_impl(owner, repo, since),
            f"get_repository_stats({owner}/{repo})",
        )

    def _get_repository_stats_impl(
        self, owner: str, repo: str, since: Optional[datetime]
    ) -> RepositoryStats:
        self._stats.api_calls += 1
        since = since or datetime.now(timezone.utc) - timedelta(days=30)
        gh_repo = self._get_repo(owner, repo)

        commits = sum(1 for _ in islice(gh_repo.get_commits(since=since), PAGE_CAP))
        pulls = sum(1 for _ in islice(gh_repo.get_pulls(state="all"), PAGE_CAP))
        issues = sum(
            1
            for issue in islice(gh_repo.get_issues(state="all", since=since), PAGE_CAP)
            if issue.pull_request is None
        )
        contributors = [
            _login(c) for c in islice(gh_repo.get_contributors(), MAX_CONTRIBUTORS)
        ]

        return RepositoryStats(
            commits=commits,
            pull_requests=pulls,
            issues=issues,
            contributors=contributors,
            languages=dict(gh_repo.get_languages()),
        )

    async def create_release(
        self,
        owner: str,
        repo: str,
        tag_name: str,
        name: str,
        body: str,
        draft: bool = False,
        prerelease: bool = False,
    ) -> ReleaseInfo:
        """Create a GitHub release. Never retried on 4xx."""
        return await self._run(
            lambda: self._create_release_impl(owner, repo, tag_name, name, body, draft, prerelease),
            f"create_release({owner}/{repo}@{tag_name})",
        )

    def _create_release_impl(
        self,
        owner: str,
        repo: str,
        tag_name: str,
        name: str,
        body: str,
        draft: bool,
        prerelease: bool,
    ) -> ReleaseInfo:
        self._stats.api_calls += 1
        release = self._get_repo(owner, repo).create_git_release(
            tag=tag_name,
            name=name,
            message=body,
            draft=draft,
            prerelease=prerelease,
        )
        logger.info("Created release %s on %s/%s (draft=%s)", tag_name, owner, repo, draft)
        return ReleaseInfo(
            tag_name=release.tag_name,
            name=release.title or "",
            body=release.body or "",
            draft=release.draft,
            prerelease=release.prerelease,
            url=release.html_url,
            created_at=release.created_at,
            published_at=release.published_at,
            author=_login(release.author),
        )

    # ========================
    # Retry Logic
    # ========================

    def _with_retry(self, operation: Callable[[], T], operation_name: str) -> T:
        """
        Run a blocking PyGithub operation, retrying transient failures.

        4xx responses and rate-limit rejections are not retried. Whatever
        finally escapes is converted into a ServiceError.
        """
        for attempt in range(self._max_retries + 1):
            try:
                return operation()
            except RateLimitExceededException as e:
                self._stats.errors += 1
                logger.warning("%s: rate limit exceeded", operation_name)
                raise ServiceError(
                    f"GitHub rate limit exceeded during {operation_name}",
                    service="github",
                    status_code=e.status,
                    retryable=True,
                ) from e
            except GithubException as e:
                self._stats.errors += 1
                message = e.data.get("message") if isinstance(e.data, dict) else None
                if e.status in NON_RETRYABLE_STATUSES or attempt >= self._max_retries:
                    logger.error(
                        "%s: GitHub API error %s: %s",
                        operation_name,
                        e.status,
                        message or str(e),
                    )
                    raise ServiceError(
                        f"GitHub API error during {operation_name}: {message or e}",
                        service="github",
                        status_code=e.status,
                        retryable=e.status not in NON_RETRYABLE_STATUSES,
                    ) from e
                self._backoff(operation_name, attempt, f"status={e.status}")
            except ServiceError:
                raise
            except Exception as e:
                self._stats.errors += 1
                if attempt >= self._max_retries:
                    logger.error(
                        "%s: all retries exhausted. Last error: %s", operation_name, str(e)
                    )
                    raise ServiceError(
                        f"GitHub request failed during {operation_name}: {e}",
                        service="github",
                        retryable=True,
                    ) from e
                self._backoff(operation_name, attempt, str(e))

        raise ServiceError(f"GitHub request failed during {operation_name}", service="github")

    def _backoff(self, operation_name: str, attempt: int, reason: str) -> None:
        self._stats.retries += 1
        delay = self._retry_delay * (2 ** attempt)
        logger.warning(
            "%s: transient failure (attempt %d/%d, %s). Retrying in %.1f seconds.",
            operation_name,
            attempt + 1,
            self._max_retries + 1,
            reason,
            delay,
        )
        time.sleep(delay)

    # ========================
    # Client Management
    # ========================

    @property
    def stats(self) -> ClientStats:
        return self._stats

    def close(self) -> None:
        self._github.close()
        logger.info(
            "GitHubClient closed (api_calls=%d, errors=%d, retries=%d)",
            self._stats.api_calls,
            self._stats.errors,
            self._stats.retries,
        )

    def __repr__(self) -> str:
        return f"GitHubClient(api_calls={self._stats.api_calls})"
