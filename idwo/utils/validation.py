"""
Input parsing and sanitization helpers.

Everything here raises WorkflowValidationError (or a subclass) on bad input
so that callers fail before any I/O happens.

Usage:
    from idwo.utils.validation import parse_repository, parse_github_url

    owner, repo = parse_repository("acme/api")
    ref = parse_github_url("https://github.com/acme/api/pull/12")
"""

import re
from dataclasses import dataclass
from typing import Optional

from idwo.errors import (
    InvalidGitHubURLError,
    InvalidRepositoryError,
    WorkflowValidationError,
)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_STATUS_UPDATE_LENGTH = 500

_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

# GitHub owner and repository names
_NAME_RE = re.compile(r"^(?!\.{1,2}$)[A-Za-z0-9._-]+$")

_GITHUB_URL_RE = re.compile(
    r"^https?://(?:www\.)?github\.com/"
    r"(?P<owner>[^/\s]+)/(?P<repo>[^/\s]+)/"
    r"(?P<kind>pull|issues)/(?P<number>\d+)/?(?:[?#].*)?$"
)


@dataclass(frozen=True)
class GitHubRef:
    """Owner, repository and number parsed from an issue or pull request URL."""

    owner: str
    repo: str
    kind: str
    number: int

    @property
    def is_pull_request(self) -> bool:
        return self.kind == "pull"


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def parse_repository(repository: str) -> tuple[str, str]:
    """
    Split an 'owner/repo' identifier.

    Raises:
        InvalidRepositoryError: if either part is missing or malformed.
    """
    parts = (repository or "").strip().split("/")
    if len(parts) != 2 or not all(_NAME_RE.match(p) for p in parts):
        raise InvalidRepositoryError(repository)
    return parts[0], parts[1]


def parse_github_url(url: str) -> GitHubRef:
    """
    Parse https://github.com/<owner>/<repo>/(pull|issues)/<n>.

    Raises:
        InvalidGitHubURLError: for anything else.
    """
    match = _GITHUB_URL_RE.match((url or "").strip())
    if not match:
        raise InvalidGitHubURLError(url)
    return GitHubRef(
        owner=match.group("owner"),
        repo=match.group("repo"),
        kind=match.group("kind"),
        number=int(match.group("number")),
    )


def pull_request_url(owner: str, repo: str, number: int) -> str:
    return f"https://github.com/{owner}/{repo}/pull/{number}"


def repository_url(owner: str, repo: str) -> str:
    return f"https://github.com/{owner}/{repo}"


# ---------------------------------------------------------------------------
# Sanitization
# ---------------------------------------------------------------------------


def strip_control_characters(text: str) -> str:
    """Remove ASCII control characters except tab, newline and carriage return."""
    return _CONTROL_CHAR_RE.sub("", text)


def validate_status_update(
    text: Optional[str], max_length: int = MAX_STATUS_UPDATE_LENGTH
) -> str:
    """Clean a free-form status label; reject it if nothing is left or it is too long."""
    cleaned = strip_control_characters(text or "").strip()
    if not cleaned:
        raise WorkflowValidationError("Status update must not be empty", field="status_update")
    if len(cleaned) > max_length:
        raise WorkflowValidationError(
            f"Status update is too long ({len(cleaned)} chars, max {max_length})",
            field="status_update",
        )
    return cleaned
