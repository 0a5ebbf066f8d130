"""
LLM completion layer built on LiteLLM.

Adds to a bare litellm.acompletion call:
- ordered fallback across models
- per-provider health tracking
- tenacity retry for transient provider failures

Usage:
    from idwo.integrations.llm_provider import LLMProviderManager

    manager = LLMProviderManager(fallback_models=["openai/gpt-4o-mini"])
    response = await manager.completion_with_retry(
        model="openai/gpt-4o",
        messages=[{"role": "user", "content": "Hello"}],
    )
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import litellm
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from idwo.utils.logging import get_logger

logger = get_logger(__name__)

litellm.suppress_debug_info = True

LATENCY_WINDOW = 50
UNHEALTHY_AFTER = 3

# Provider failures worth another attempt
TRANSIENT_ERRORS = (
    litellm.RateLimitError,
    litellm.APIConnectionError,
    litellm.Timeout,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
)


class ProviderStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class ProviderHealth:
    """Rolling health record for one provider prefix (e.g. 'openai')."""

    provider: str
    status: ProviderStatus = ProviderStatus.UNKNOWN
    consecutive_failures: int = 0
    total_calls: int = 0
    total_failures: int = 0
    last_error: Optional[str] = None
    last_success: Optional[datetime] = None
    _latencies: list[float] = field(default_factory=list)

    @property
    def average_latency_ms(self) -> float:
        if not self._latencies:
            return 0.0
        return sum(self._latencies) / len(self._latencies)

    def record_success(self, latency_ms: float) -> None:
        self.total_calls += 1
        self.consecutive_failures = 0
        self.status = ProviderStatus.HEALTHY
        self.last_success = datetime.now(timezone.utc)
        self._latencies = (self._latencies + [latency_ms])[-LATENCY_WINDOW:]

    def record_failure(self, error: Exception) -> None:
        self.total_calls += 1
        self.total_failures += 1
        self.consecutive_failures += 1
        self.last_error = str(error)[:200]
        self.status = (
            ProviderStatus.UNHEALTHY
            if self.consecutive_failures >= UNHEALTHY_AFTER
            else ProviderStatus.DEGRADED
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "status": self.status.value,
            "consecutive_failures": self.consecutive_failures,
            "total_calls": self.total_calls,
            "total_failures": self.total_failures,
            "last_error": self.last_error,
            "last_success": self.last_success.isoformat() if self.last_success else None,
            "average_latency_ms": round(self.average_latency_ms, 2),
        }


def provider_of(model: str) -> str:
    """'openai/gpt-4o' -> 'openai'; bare model names map to 'unknown'."""
    return model.split("/", 1)[0] if "/" in model else "unknown"


class LLMProviderManager:
    """
    Completion front door with fallback and health tracking.

    Args:
        fallback_models: Models tried in order after the requested one fails.
        api_key: Passed through to litellm for every call when set.
    """

    def __init__(
        self,
        fallback_models: Optional[list[str]] = None,
        api_key: Optional[str] = None,
    ) -> None:
        self._fallback_models = list(fallback_models or [])
        self._api_key = api_key
        self._health: dict[str, ProviderHealth] = {}
        logger.info("llm_provider_manager_initialized", fallbacks=len(self._fallback_models))

    def _get_health(self, provider: str) -> ProviderHealth:
        if provider not in self._health:
            self._health[provider] = ProviderHealth(provider=provider)
        return self._health[provider]

    async def completion(
        self,
        model: str,
        messages: list[dict[str, Any]],
        temperature: float = 0.3,
        max_tokens: int = 2000,
        **kwargs: Any,
    ) -> Any:
        """
        Run one completion, walking the fallback chain on failure.

        An unhealthy provider is skipped unless it is the last candidate.
        The last error is re-raised when every candidate fails.
        """
        candidates = [model] + [m for m in self._fallback_models if m != model]
        last_error: Optional[Exception] = None

        for i, current in enumerate(candidates):
            is_last = i == len(candidates) - 1
            health = self._get_health(provider_of(current))

            if health.status == ProviderStatus.UNHEALTHY and not is_last:
                logger.warning("llm_provider_skipped", model=current, provider=health.provider)
                continue

            call_kwargs: dict[str, Any] = {
                "model": current,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
                **kwargs,
            }
            if self._api_key:
                call_kwargs.setdefault("api_key", self._api_key)

            started = time.perf_counter()
            try:
                response = await litellm.acompletion(**call_kwargs)
            except Exception as e:
                last_error = e
                health.record_failure(e)
                if is_last:
                    logger.error("llm_completion_failed", model=current, error=str(e))
                else:
                    logger.warning("llm_completion_fallback", model=current, error=str(e))
                continue

            latency_ms = (time.perf_counter() - started) * 1000
            health.record_success(latency_ms)
            logger.debug("llm_completion_succeeded", model=current, latency_ms=round(latency_ms))
            return response

        raise last_error or RuntimeError("No LLM model candidates available")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    )
    async def completion_with_retry(
        self,
        model: str,
        messages: list[dict[str, Any]],
        temperature: float = 0.3,
        max_tokens: int = 2000,
        **kwargs: Any,
    ) -> Any:
        """completion() retried on rate limits, timeouts and 5xx from the provider."""
        return await self.completion(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )

    def get_provider_health(self, provider: Optional[str] = None) -> dict[str, Any]:
        if provider:
            return self._get_health(provider).to_dict()
        return {name: h.to_dict() for name, h in self._health.items()}

    def reset_health(self) -> None:
        self._health.clear()
