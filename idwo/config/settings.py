"""
Configuration management for the developer workflow orchestrator.

Settings come from environment variables or a .env file via Pydantic
Settings. Credentials for the four collaborators are optional at load time;
`validate_for_startup()` decides whether their absence is fatal.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from idwo.utils.logging import get_logger

logger = get_logger(__name__)

VALID_PLATFORMS = ("github", "jira", "slack")


class AppSettings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Priority: environment variables > .env file > defaults.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ======================
    # GitHub
    # ======================
    github_token: Optional[str] = None
    """Personal access token used by PyGithub."""
    github_organization: Optional[str] = None
    """Default organization for team lookups."""
    github_max_retries: int = 3
    """Retries on 5xx / connection errors inside the GitHub adapter."""

    # ======================
    # Jira
    # ======================
    jira_url: Optional[str] = None
    """Base URL of the Jira Cloud site, e.g. https://acme.atlassian.net."""
    jira_username: Optional[str] = None
    jira_api_token: Optional[str] = None

    # ======================
    # Slack
    # ======================
    slack_bot_token: Optional[str] = None
    """Bot token (xoxb-...) used for channel lookup and notifications."""

    # ======================
    # LLM
    # ======================
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    """Model name; prefixed with the provider before being handed to litellm."""
    llm_fallback_models: List[str] = []
    """Additional litellm model strings tried in order when the primary fails."""
    llm_temperature: float = 0.3
    llm_max_tokens: int = 2000

    # ======================
    # Orchestration
    # ======================
    http_timeout_seconds: float = 10.0
    """Timeout applied to Jira and Slack HTTP calls."""
    default_sync_platforms: List[str] = list(VALID_PLATFORMS)
    """Platforms pushed to by sync when the caller names none."""

    # ======================
    # Application
    # ======================
    log_level: str = "INFO"
    environment: str = "development"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: {', '.join(sorted(valid_levels))}"
            )
        return upper_v

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_envs = {"development", "staging", "production"}
        lower_v = v.lower()
        if lower_v not in valid_envs:
            raise ValueError(
                f"Invalid environment '{v}'. Must be one of: {', '.join(sorted(valid_envs))}"
            )
        return lower_v

    @field_validator("llm_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError(f"llm_temperature must be between 0.0 and 2.0, got {v}")
        return v

    @field_validator("default_sync_platforms")
    @classmethod
    def validate_sync_platforms(cls, v: List[str]) -> List[str]:
        cleaned = [p.lower() for p in v]
        unknown = [p for p in cleaned if p not in VALID_PLATFORMS]
        if unknown:
            raise ValueError(
                f"Unknown sync platforms {unknown}. Must be among: {', '.join(VALID_PLATFORMS)}"
            )
        return cleaned

    @field_validator("jira_url")
    @classmethod
    def strip_jira_url(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip("/") if v else v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def has_github_token(self) -> bool:
        return bool(self.github_token)

    @property
    def has_openai_key(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def has_jira_credentials(self) -> bool:
        return bool(self.jira_url and self.jira_username and self.jira_api_token)

    @property
    def has_slack_token(self) -> bool:
        return bool(self.slack_bot_token)

    @property
    def llm_model(self) -> str:
        """litellm model string for the primary model."""
        if "/" in self.openai_model:
            return self.openai_model
        return f"openai/{self.openai_model}"

    def validate_for_startup(self) -> list[str]:
        """
        Check collaborator credentials.

        Returns warnings for anything missing. In production a missing
        credential is an error and ValueError is raised instead.
        """
        missing = []
        if not self.has_github_token:
            missing.append("GITHUB_TOKEN")
        if not self.has_openai_key:
            missing.append("OPENAI_API_KEY")
        if not self.has_jira_credentials:
            missing.append("JIRA_URL/JIRA_USERNAME/JIRA_API_TOKEN")
        if not self.has_slack_token:
            missing.append("SLACK_BOT_TOKEN")

        if missing and self.is_production:
            raise ValueError(
                "Configuration errors:\n"
                + "\n".join(f"  - {name} is required in production" for name in missing)
            )

        return [f"{name} not configured - related workflows will fail" for name in missing]

    def log_configuration_summary(self) -> None:
        """Log which collaborators are configured (never the secrets)."""
        logger.info(
            "configuration_summary",
            environment=self.environment,
            log_level=self.log_level,
            github_configured=self.has_github_token,
            jira_configured=self.has_jira_credentials,
            slack_configured=self.has_slack_token,
            openai_configured=self.has_openai_key,
            llm_model=self.llm_model,
            fallback_models=self.llm_fallback_models,
            default_sync_platforms=self.default_sync_platforms,
        )


@lru_cache()
def get_settings() -> AppSettings:
    """Return the cached application settings."""
    return AppSettings()
