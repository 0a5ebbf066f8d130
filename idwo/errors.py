"""
Error taxonomy for the workflow orchestrator.

Four kinds of failure reach callers:
  - ServiceError: raised by an adapter, tagged with the originating service
  - WorkflowValidationError: malformed input detected before any I/O
  - WorkflowNotFoundError / ChannelNotFoundError: a required resource is missing
  - anything else an adapter lets escape (propagated unchanged)

Best-effort steps catch ServiceError locally and degrade instead of raising.
"""

from typing import Optional


SERVICES = frozenset({"github", "jira", "slack", "openai"})


class IDWOError(Exception):
    """Base class for all orchestrator errors."""


class ServiceError(IDWOError):
    """
    Failure reported by one of the external collaborators.

    Attributes:
        service: Which collaborator failed (github, jira, slack, openai).
        status_code: HTTP status code, when the collaborator returned one.
        retryable: Hint for the caller. The orchestrator itself never retries.
    """

    def __init__(
        self,
        message: str,
        service: str,
        status_code: Optional[int] = None,
        retryable: bool = False,
    ):
        if service not in SERVICES:
            raise ValueError(f"Unknown service '{service}'")
        self.message = message
        self.service = service
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "service": self.service,
            "status_code": self.status_code,
            "retryable": self.retryable,
        }

    def __repr__(self) -> str:
        return (
            f"ServiceError(service={self.service!r}, status_code={self.status_code}, "
            f"retryable={self.retryable}, message={self.message!r})"
        )


class WorkflowValidationError(IDWOError, ValueError):
    """Raised synchronously when input cannot be interpreted."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class InvalidRepositoryError(WorkflowValidationError):
    """Repository identifier is not in 'owner/repo' form."""

    def __init__(self, repository: str):
        self.repository = repository
        super().__init__(
            f"Invalid repository format '{repository}'. Expected \"owner/repo\"",
            field="repository",
        )


class InvalidGitHubURLError(WorkflowValidationError):
    """URL does not point at a GitHub issue or pull request."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Invalid GitHub URL format: {url}", field="url")


class WorkflowNotFoundError(IDWOError, LookupError):
    """No workflow with the given id has been created in this process."""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow {workflow_id} not found")


class ChannelNotFoundError(IDWOError, LookupError):
    """Chat channel could not be resolved by name."""

    def __init__(self, channel: str):
        self.channel = channel
        super().__init__(f"Slack channel {channel} not found")
