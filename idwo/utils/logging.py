"""
Structured logging for the developer workflow orchestrator.

Structlog is layered over the standard library so that third-party loggers
(httpx, litellm, uvicorn) and our own event-style loggers share one handler:
  - JSON lines in staging/production
  - coloured console output in development
  - workflow_id / request_id propagated through contextvars
  - credentials for GitHub, OpenAI, Jira and Slack redacted before rendering

Usage:
    from idwo.utils.logging import setup_logging, get_logger

    setup_logging(log_level="INFO", environment="development")

    logger = get_logger(__name__)
    logger.info("pr_analysis_started", workflow_id="pr-org-repo-42")
"""

import logging
import re
import sys
import uuid
from typing import Any, Optional

import structlog
from structlog.types import EventDict, WrappedLogger


SERVICE_NAME = "idwo"
REDACTED = "***REDACTED***"

_SENSITIVE_PATTERNS = [
    re.compile(r"gh[pousr]_[A-Za-z0-9]{36,}"),       # GitHub tokens
    re.compile(r"github_pat_[A-Za-z0-9_]{40,}"),     # GitHub fine-grained PAT
    re.compile(r"sk-(?:proj-)?[A-Za-z0-9\-_]{32,}"),  # OpenAI keys
    re.compile(r"xox[abpr]-[A-Za-z0-9\-]+"),          # Slack tokens
    re.compile(r"xapp-[A-Za-z0-9\-]+"),               # Slack app-level token
    re.compile(r"ATATT[A-Za-z0-9\-_=]{20,}"),         # Atlassian API token
    re.compile(r"(?:Bearer|Basic)\s+[A-Za-z0-9\-_.=+/]+"),
]

_SENSITIVE_KEYS = frozenset({
    "token", "secret", "password", "api_key", "apikey", "authorization",
    "credentials", "private_key", "access_token", "bot_token",
})


def _redact(value: Any) -> Any:
    if isinstance(value, str):
        for pattern in _SENSITIVE_PATTERNS:
            if pattern.search(value):
                return REDACTED
    return value


def redact_sensitive(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Processor that masks secret-looking keys and values."""
    for key in list(event_dict):
        if any(marker in key.lower() for marker in _SENSITIVE_KEYS):
            event_dict[key] = REDACTED
        else:
            event_dict[key] = _redact(event_dict[key])
    return event_dict


def add_service_name(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def drop_color_message(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    # uvicorn duplicates the message under color_message
    event_dict.pop("color_message", None)
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    environment: str = "development",
    json_output: Optional[bool] = None,
) -> None:
    """
    Configure structlog and the root stdlib logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        environment: development, staging or production.
        json_output: Force JSON rendering; derived from environment when None.
    """
    if json_output is None:
        json_output = environment in ("staging", "production")

    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        add_service_name,
        drop_color_message,
        redact_sensitive,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True, pad_event_to=36)

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(level)

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.propagate = False

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    logging.captureWarnings(True)


def get_logger(name: Optional[str] = None, **initial_context: Any) -> structlog.stdlib.BoundLogger:
    """
    Return a structlog logger, optionally pre-bound with context.

    Example:
        logger = get_logger(__name__, component="orchestrator")
        logger.info("workflow_completed", workflow_id="pr-o-r-1")
    """
    log = structlog.get_logger(name)
    if initial_context:
        log = log.bind(**initial_context)
    return log


def bind_contextvars(**kwargs: Any) -> None:
    """Bind values that every logger in the current task will include."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_contextvars(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_contextvars() -> None:
    structlog.contextvars.clear_contextvars()


def generate_request_id() -> str:
    return f"req-{uuid.uuid4().hex[:12]}"
