"""
Service adapters for the external collaborators.

GitHub (PyGithub), Jira and Slack (httpx), and the LiteLLM completion layer.
Each adapter raises ServiceError tagged with its service name.
"""

from idwo.integrations.github_client import (
    GitHubClient,
    IssueComment,
    IssueDetails,
    PRCommit,
    PRDetails,
    PRFile,
    PRReview,
    ReleaseInfo,
    RepositoryStats,
)
from idwo.integrations.jira_client import (
    JiraClient,
    JiraComment,
    JiraIssue,
    ProjectIssueStats,
)
from idwo.integrations.llm_provider import (
    LLMProviderManager,
    ProviderHealth,
    ProviderStatus,
)
from idwo.integrations.slack_client import (
    Notification,
    NotificationField,
    SlackChannel,
    SlackClient,
    SlackMessage,
)

__all__ = [
    "GitHubClient",
    "IssueComment",
    "IssueDetails",
    "PRCommit",
    "PRDetails",
    "PRFile",
    "PRReview",
    "ReleaseInfo",
    "RepositoryStats",
    "JiraClient",
    "JiraComment",
    "JiraIssue",
    "ProjectIssueStats",
    "LLMProviderManager",
    "ProviderHealth",
    "ProviderStatus",
    "Notification",
    "NotificationField",
    "SlackChannel",
    "SlackClient",
    "SlackMessage",
]
