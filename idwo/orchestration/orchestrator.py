"""
Workflow orchestrator.

Coordinates the GitHub, Jira, Slack and LLM adapters for the five workflow
operations. Each analysis operation follows the same shape:

  1. record the workflow as 'analyzing'
  2. fan independent reads out with asyncio.gather
  3. ask the LLM for an analysis and run the extraction pipeline over it
  4. perform any writes (comments, releases, notifications)
  5. record the workflow as 'completed' with pointers into each platform

Any exception escaping steps 2-5 marks the workflow 'failed' and is re-raised
unchanged. Best-effort reads and writes catch ServiceError, log a warning and
degrade to an empty value instead.

Usage:
    orchestrator = WorkflowOrchestrator(github, jira, slack, analyst)
    result = await orchestrator.analyze_pr("acme", "api", 123)
    await orchestrator.sync_workflow_status("pr-acme-api-123", "in-review")
"""

import asyncio
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import asdict
from typing import Any, Optional, Union

from idwo.agents.analyst import AIAnalyst, build_prompt
from idwo.errors import ChannelNotFoundError, ServiceError, WorkflowValidationError
from idwo.integrations.github_client import GitHubClient, IssueDetails, PRDetails
from idwo.integrations.jira_client import JiraClient, JiraIssue
from idwo.integrations.slack_client import Notification, NotificationField, SlackClient
from idwo.models.analysis import AnalysisType, clamp_confidence
from idwo.models.decisions import (
    IssueTriageResult,
    PRAnalysisResult,
    Recommendation,
    ReleaseAnalysis,
    TeamInsights,
    Velocity,
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
    utcnow,
)
from idwo.orchestration import extraction
from idwo.orchestration.state import WorkflowStateStore
from idwo.utils.logging import bind_contextvars, get_logger, unbind_contextvars
from idwo.utils.validation import (
    parse_github_url,
    parse_repository,
    pull_request_url,
    repository_url,
    validate_status_update,
)

logger = get_logger(__name__)

DEFAULT_SPRINT = "Next Sprint"
SIMILAR_ISSUES_LIMIT = 5
BLOCKING_ISSUES_LIMIT = 10
MAX_PATCH_CHARS = 2000
COMMIT_STATUS_STATE = "pending"

PlatformLike = Union[Platform, str]
Pointer = Union[GitHubPointer, JiraPointer, SlackPointer]


def _pr_context(pr: PRDetails, roster: list[str]) -> dict[str, Any]:
    return {
        "title": pr.title,
        "description": pr.body,
        "files": [
            {
                "filename": f.filename,
                "additions": f.additions,
                "deletions": f.deletions,
                "patch": (f.patch or "")[:MAX_PATCH_CHARS],
            }
            for f in pr.files
        ],
        "commits": [{"message": c.message, "author": c.author} for c in pr.commits],
        "reviews": [{"user": r.user, "state": r.state} for r in pr.reviews],
        "team_members": roster,
    }


def _issue_context(
    issue: JiraIssue,
    github_issue: Optional[IssueDetails],
    similar: list[dict[str, str]],
    team_context: Optional[str],
) -> dict[str, Any]:
    context: dict[str, Any] = {
        "title": issue.summary,
        "description": issue.description,
        "labels": issue.labels,
        "comments": [{"author": c.author, "body": c.body} for c in issue.comments],
        "reporter": issue.reporter,
        "component": issue.components[0] if issue.components else None,
        "team_context": team_context,
        "similar_issues": similar,
    }
    if github_issue is not None:
        context["github_issue"] = {
            "title": github_issue.title,
            "body": github_issue.body,
            "labels": github_issue.labels,
            "comments": [{"author": c.author, "body": c.body} for c in github_issue.comments],
        }
    return context


class WorkflowOrchestrator:
    """
    Runs multi-service developer workflows and tracks their state.

    Args:
        github: GitHub adapter.
        jira: Jira adapter.
        slack: Slack adapter.
        ai: LLM adapter.
        store: Workflow state store; a fresh one is created when omitted.
        default_platforms: Platforms a sync pushes to when none are given.
    """

    def __init__(
        self,
        github: GitHubClient,
        jira: JiraClient,
        slack: SlackClient,
        ai: AIAnalyst,
        store: Optional[WorkflowStateStore] = None,
        default_platforms: Optional[Iterable[PlatformLike]] = None,
    ) -> None:
        self._github = github
        self._jira = jira
        self._slack = slack
        self._ai = ai
        self._store = store if store is not None else WorkflowStateStore()
        self._default_platforms = self._resolve_platforms(default_platforms or list(Platform))

    @property
    def store(self) -> WorkflowStateStore:
        return self._store

    def get_workflow(self, workflow_id: str) -> WorkflowStatus:
        return self._store.get(workflow_id)

    async def close(self) -> None:
        """Release adapter connections."""
        self._github.close()
        await asyncio.gather(self._jira.close(), self._slack.close())

    # ==================
    # State tracking
    # ==================

    @contextmanager
    def _tracking(self, workflow_id: str, workflow_type: WorkflowType) -> Iterator[None]:
        """Record 'analyzing' on entry and 'failed' if the body raises."""
        bind_contextvars(workflow_id=workflow_id)
        self._store.put(
            WorkflowStatus(id=workflow_id, type=workflow_type, status=WorkflowPhase.ANALYZING)
        )
        try:
            yield
        except Exception as e:
            logger.error("workflow_failed", error=str(e), error_type=type(e).__name__)
            self._store.put(
                WorkflowStatus(id=workflow_id, type=workflow_type, status=WorkflowPhase.FAILED)
            )
            raise
        finally:
            unbind_contextvars("workflow_id")

    def _complete(
        self,
        workflow_id: str,
        workflow_type: WorkflowType,
        services: ServicePointers,
        confidence: float,
    ) -> None:
        self._store.put(
            WorkflowStatus(
                id=workflow_id,
                type=workflow_type,
                status=WorkflowPhase.COMPLETED,
                services=services,
                confidence=clamp_confidence(confidence),
            )
        )

    # ==================
    # Pull request analysis
    # ==================

    async def analyze_pr(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        include_jira_context: bool = False,
    ) -> PRAnalysisResult:
        """
        Summarise a pull request and suggest reviewers, risk and review time.

        The contributor roster read is best-effort; failing to fetch the pull
        request itself fails the workflow.
        """
        workflow_id = f"pr-{owner}-{repo}-{pull_number}"

        with self._tracking(workflow_id, WorkflowType.PR):
            logger.info("pr_analysis_started", owner=owner, repo=repo, pull_number=pull_number)

            pr, roster = await asyncio.gather(
                self._github.get_pr_details(owner, repo, pull_number),
                self._contributor_roster(owner, repo),
            )

            related_tickets = (
                extraction.extract_jira_keys(f"{pr.title} {pr.body}")
                if include_jira_context
                else []
            )

            analysis = await self._ai.analyze(
                build_prompt(AnalysisType.PR_ANALYSIS, _pr_context(pr, roster))
            )
            text = analysis.analysis

            result = PRAnalysisResult(
                summary=text,
                suggested_reviewers=extraction.extract_reviewers(text, roster),
                risk_level=extraction.extract_risk_level(text),
                estimated_review_time=extraction.extract_review_time(text),
                topics=extraction.extract_topics(text),
                related_jira_tickets=related_tickets,
                impact_areas=extraction.extract_impact_areas(f.filename for f in pr.files),
            )

            self._complete(
                workflow_id,
                WorkflowType.PR,
                ServicePointers(
                    github=GitHubPointer(
                        status="analyzed", url=pull_request_url(owner, repo, pull_number)
                    )
                ),
                analysis.confidence,
            )

            logger.info(
                "pr_analysis_completed",
                risk_level=result.risk_level.value,
                reviewers=len(result.suggested_reviewers),
            )
            return result

    async def _contributor_roster(self, owner: str, repo: str) -> list[str]:
        try:
            stats = await self._github.get_repository_stats(owner, repo)
        except ServiceError as e:
            logger.warning("contributor_roster_unavailable", owner=owner, repo=repo, error=str(e))
            return []
        return list(stats.contributors)

    # ==================
    # Issue triage
    # ==================

    async def smart_triage(
        self,
        issue_key: str,
        github_issue_url: Optional[str] = None,
        team_context: Optional[str] = None,
    ) -> IssueTriageResult:
        """
        Classify a Jira issue: priority, category, effort, assignee,
        dependencies and tags. Posts the analysis back to the issue.

        The Jira issue is required. Linked GitHub issue context, the
        similar-issue search and the audit comment are best-effort.
        """
        workflow_id = f"triage-{issue_key}"

        with self._tracking(workflow_id, WorkflowType.ISSUE):
            logger.info("smart_triage_started", issue_key=issue_key)

            issue = await self._jira.get_issue(issue_key)
            github_issue, similar = await asyncio.gather(
                self._github_issue_context(github_issue_url),
                self._similar_issues(issue),
            )

            analysis = await self._ai.analyze(
                build_prompt(
                    AnalysisType.ISSUE_TRIAGE,
                    _issue_context(issue, github_issue, similar, team_context),
                )
            )
            text = analysis.analysis

            result = IssueTriageResult(
                priority=extraction.extract_priority(text),
                category=extraction.extract_category(text),
                estimated_effort=extraction.extract_effort(text),
                suggested_assignee=extraction.extract_assignee(text),
                suggested_sprint=issue.sprint or DEFAULT_SPRINT,
                dependencies=extraction.extract_dependencies(issue.description, text),
                tags=extraction.extract_tags(text),
            )

            await self._post_triage_comment(issue_key, text, result)

            services = ServicePointers(jira=JiraPointer(status="triaged", key=issue_key))
            if github_issue is not None and github_issue_url:
                services.github = GitHubPointer(status="triaged", url=github_issue_url)
            self._complete(workflow_id, WorkflowType.ISSUE, services, analysis.confidence)

            logger.info(
                "smart_triage_completed",
                priority=result.priority.value,
                effort=result.estimated_effort,
                dependencies=len(result.dependencies),
            )
            return result

    async def _github_issue_context(self, url: Optional[str]) -> Optional[IssueDetails]:
        if not url:
            return None
        try:
            ref = parse_github_url(url)
            return await self._github.get_issue_details(ref.owner, ref.repo, ref.number)
        except (ServiceError, WorkflowValidationError) as e:
            logger.warning("github_issue_context_unavailable", url=url, error=str(e))
            return None

    async def _similar_issues(self, issue: JiraIssue) -> list[dict[str, str]]:
        keywords = extraction.extract_keywords(f"{issue.summary} {issue.description}")
        jql = extraction.build_similar_issues_query(keywords)
        if jql is None:
            return []
        try:
            matches = await self._jira.search_issues(jql, SIMILAR_ISSUES_LIMIT)
        except ServiceError as e:
            logger.warning("similar_issue_search_failed", error=str(e))
            return []
        return [{"key": m.key, "summary": m.summary} for m in matches if m.key != issue.key]

    async def _post_triage_comment(
        self, issue_key: str, analysis: str, result: IssueTriageResult
    ) -> None:
        comment = (
            f"🤖 IDWO Smart Triage Analysis:\n\n{analysis}\n\n"
            f"Recommended Priority: {result.priority.value}\n"
            f"Estimated Effort: {result.estimated_effort} story points"
        )
        try:
            await self._jira.add_comment(issue_key, comment)
        except ServiceError as e:
            logger.warning("triage_comment_failed", issue_key=issue_key, error=str(e))

    # ==================
    # Release orchestration
    # ==================

    async def orchestrate_release(
        self,
        release_version: str,
        repository: str,
        jira_project: str,
        slack_channel: str,
        dry_run: bool = False,
    ) -> ReleaseAnalysis:
        """
        Score release readiness, create the GitHub release when it clears
        the bar, and announce the outcome in Slack.

        Raises:
            InvalidRepositoryError: before any I/O if repository is not 'owner/repo'.
            ChannelNotFoundError: if the Slack channel cannot be resolved.
        """
        owner, repo = parse_repository(repository)
        workflow_id = f"release-{release_version}"

        with self._tracking(workflow_id, WorkflowType.RELEASE):
            logger.info(
                "release_orchestration_started",
                version=release_version,
                repository=repository,
                dry_run=dry_run,
            )

            repo_stats, jira_stats, channel, blocking_issues = await asyncio.gather(
                self._github.get_repository_stats(owner, repo),
                self._jira.get_project_issue_stats(jira_project),
                self._slack.find_channel_by_name(slack_channel),
                self._blocking_issues(jira_project),
            )
            if channel is None:
                raise ChannelNotFoundError(slack_channel)

            test_results = self._test_results(owner, repo)
            analysis = await self._ai.analyze(
                build_prompt(
                    AnalysisType.RELEASE_READINESS,
                    {
                        "version": release_version,
                        "repository_activity": asdict(repo_stats),
                        "open_issues": blocking_issues,
                        "issue_stats": asdict(jira_stats),
                        "test_results": test_results,
                        "deployment_history": self._deployment_history(owner, repo),
                    },
                )
            )
            text = analysis.analysis

            readiness = extraction.extract_readiness_score(text)
            recommendation = extraction.determine_release_recommendation(readiness)
            result = ReleaseAnalysis(
                readiness=readiness,
                blockers=extraction.extract_blockers(text),
                test_coverage=test_results["coverage"],
                open_issues=jira_stats.total_issues,
                recommendation=recommendation,
                suggested_actions=analysis.recommendations or extraction.extract_actions(text),
            )

            released = False
            if not dry_run and recommendation is Recommendation.PROCEED:
                await self._create_release(owner, repo, release_version, result)
                released = True

            message = await self._slack.send_notification(
                channel.id, self._release_notification(release_version, result)
            )

            self._complete(
                workflow_id,
                WorkflowType.RELEASE,
                ServicePointers(
                    github=GitHubPointer(
                        status="released" if released else "analyzed",
                        url=repository_url(owner, repo),
                    ),
                    jira=JiraPointer(status="analyzed", key=jira_project),
                    slack=SlackPointer(channel=channel.id, message_id=message.ts),
                ),
                analysis.confidence,
            )

            logger.info(
                "release_orchestration_completed",
                readiness=readiness,
                recommendation=recommendation.value,
                released=released,
            )
            return result

    async def _blocking_issues(self, project_key: str) -> list[dict[str, str]]:
        try:
            issues = await self._jira.search_issues(
                extraction.build_blocking_issues_query(project_key), BLOCKING_ISSUES_LIMIT
            )
        except ServiceError as e:
            logger.warning("blocking_issue_search_failed", project=project_key, error=str(e))
            return []
        return [{"key": i.key, "priority": i.priority, "summary": i.summary} for i in issues]

    def _test_results(self, owner: str, repo: str) -> dict[str, float]:
        # TODO: read coverage from the repository's CI check runs
        return {"passed": 0, "failed": 0, "coverage": 0.0}

    def _deployment_history(self, owner: str, repo: str) -> list[dict[str, Any]]:
        return []

    async def _create_release(
        self, owner: str, repo: str, version: str, analysis: ReleaseAnalysis
    ) -> None:
        actions = "\n".join(f"- {action}" for action in analysis.suggested_actions)
        body = (
            "🤖 Automated release created by IDWO\n\n"
            f"Readiness Score: {analysis.readiness}%\n\n"
            f"Suggested Actions:\n{actions}"
        )
        await self._github.create_release(
            owner,
            repo,
            tag_name=version,
            name=f"Release {version}",
            body=body,
            draft=analysis.recommendation is not Recommendation.PROCEED,
        )
        logger.info("release_created", version=version, repository=f"{owner}/{repo}")

    @staticmethod
    def _release_notification(version: str, analysis: ReleaseAnalysis) -> Notification:
        return Notification(
            title=f"🚀 Release {version} Analysis",
            message=(
                f"Readiness Score: {analysis.readiness}% - "
                f"{analysis.recommendation.value.upper()}"
            ),
            color=extraction.recommendation_color(analysis.recommendation),
            fields=[
                NotificationField("Readiness Score", f"{analysis.readiness}%"),
                NotificationField("Test Coverage", f"{analysis.test_coverage:g}%"),
                NotificationField("Open Issues", str(analysis.open_issues)),
                NotificationField("Blockers", str(len(analysis.blockers))),
            ],
        )

    # ==================
    # Status sync
    # ==================

    async def sync_workflow_status(
        self,
        workflow_id: str,
        status_update: str,
        platforms: Optional[Iterable[PlatformLike]] = None,
    ) -> WorkflowStatus:
        """
        Push a status change to each requested platform and record it.

        Platforms are pushed concurrently and independently: a failing push
        is logged and skipped, and only successful ones update their pointer.
        Platforms with nothing to point at are skipped.

        Raises:
            WorkflowNotFoundError: before any push if the id is unknown.
        """
        status_update = validate_status_update(status_update)
        targets = (
            self._resolve_platforms(platforms) if platforms is not None else self._default_platforms
        )
        current = self._store.get(workflow_id)

        pushable = [p for p in targets if self._is_pushable(p, current.services)]
        skipped = [p.value for p in targets if p not in pushable]
        if skipped:
            logger.info("sync_platforms_skipped", workflow_id=workflow_id, platforms=skipped)

        pointers = await asyncio.gather(
            *(self._safe_push(p, current, status_update) for p in pushable)
        )

        services = current.services.model_copy(deep=True)
        for platform, pointer in zip(pushable, pointers):
            if pointer is not None:
                setattr(services, platform.value, pointer)

        updated = current.model_copy(
            update={"status": status_update, "last_updated": utcnow(), "services": services}
        )
        self._store.put(updated)

        logger.info(
            "workflow_status_synced",
            workflow_id=workflow_id,
            status=status_update,
            pushed=[p.value for p, ptr in zip(pushable, pointers) if ptr is not None],
        )
        return updated

    @staticmethod
    def _resolve_platforms(platforms: Iterable[PlatformLike]) -> list[Platform]:
        resolved: list[Platform] = []
        for p in platforms:
            try:
                platform = Platform(p)
            except ValueError:
                raise WorkflowValidationError(f"Unknown platform '{p}'", field="platforms") from None
            if platform not in resolved:
                resolved.append(platform)
        return resolved

    @staticmethod
    def _is_pushable(platform: Platform, services: ServicePointers) -> bool:
        if platform not in services.platforms():
            return False
        if platform is Platform.GITHUB:
            try:
                return parse_github_url(services.github.url).is_pull_request
            except WorkflowValidationError:
                return False
        return True

    async def _safe_push(
        self, platform: Platform, record: WorkflowStatus, status_update: str
    ) -> Optional[Pointer]:
        try:
            return await self._push(platform, record, status_update)
        except Exception as e:
            logger.warning(
                "status_push_failed",
                workflow_id=record.id,
                platform=platform.value,
                error=str(e),
            )
            return None

    async def _push(
        self, platform: Platform, record: WorkflowStatus, status_update: str
    ) -> Pointer:
        services = record.services
        match platform:
            case Platform.GITHUB:
                ref = parse_github_url(services.github.url)
                await self._github.update_pr_status(
                    ref.owner, ref.repo, ref.number, COMMIT_STATUS_STATE, f"IDWO: {status_update}"
                )
                return GitHubPointer(status=status_update, url=services.github.url)
            case Platform.JIRA:
                await self._jira.add_comment(
                    services.jira.key, f"🤖 IDWO Status Update: {status_update}"
                )
                return JiraPointer(status=status_update, key=services.jira.key)
            case Platform.SLACK:
                message = await self._slack.send_notification(
                    services.slack.channel,
                    Notification(
                        title="🔄 Workflow Status Update",
                        message=f"{record.type.value.upper()} {record.id}: {status_update}",
                        color="danger" if "failed" in status_update.lower() else "good",
                    ),
                )
                return SlackPointer(channel=services.slack.channel, message_id=message.ts)

    # ==================
    # Team insights
    # ==================

    async def get_team_insights(
        self,
        team_name: str,
        time_period: str = "30d",
        include_predictions: bool = False,
    ) -> TeamInsights:
        """Velocity trend, bottlenecks and delivery metrics for a team."""
        logger.info("team_insights_started", team=team_name, period=time_period)

        team_data = self._gather_team_data(team_name, time_period)
        analysis = await self._ai.analyze(build_prompt(AnalysisType.TEAM_INSIGHTS, team_data))
        text = analysis.analysis

        history = team_data["velocity"]["historical"]
        trend = extraction.calculate_velocity_trend(history)
        result = TeamInsights(
            velocity=Velocity(
                current=team_data["velocity"]["current"], historical=history, trend=trend
            ),
            bottlenecks=extraction.extract_bottlenecks(text),
            team_metrics=extraction.calculate_team_metrics(team_data),
            predictions=(
                extraction.extract_predictions(text, trend, analysis.confidence)
                if include_predictions
                else []
            ),
        )

        logger.info(
            "team_insights_completed",
            team=team_name,
            trend=trend.value,
            bottlenecks=len(result.bottlenecks),
        )
        return result

    def _gather_team_data(self, team_name: str, time_period: str) -> dict[str, Any]:
        # TODO: aggregate merged PRs and resolved Jira issues for the period
        return {
            "name": team_name,
            "members": [],
            "velocity": {"current": 0.0, "historical": []},
            "pull_requests": [],
            "issues": [],
            "deployments": [],
            "period": time_period,
        }
