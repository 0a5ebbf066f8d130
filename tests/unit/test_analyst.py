"""
Tests for the AI analyst (LLM adapter).

Tests cover:
- Prompt construction per analysis type
- Parsing of model replies (JSON, fenced JSON, malformed)
- Confidence clamping
- Error wrapping into ServiceError(service="openai")
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from idwo.agents.analyst import (
    AIAnalyst,
    FOCUS_AREAS,
    build_prompt,
    parse_analysis,
    system_prompt,
    user_prompt,
)
from idwo.errors import ServiceError
from idwo.models.analysis import AnalysisType


# ==================
# Fixtures
# ==================


def _response(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


@pytest.fixture
def provider():
    provider = MagicMock()
    provider.completion_with_retry = AsyncMock(
        return_value=_response(
            json.dumps(
                {
                    "analysis": "Medium risk change touching the API.",
                    "confidence": 82,
                    "recommendations": ["Add integration tests"],
                    "structured_data": {"risk": "medium"},
                }
            )
        )
    )
    return provider


@pytest.fixture
def analyst(provider):
    return AIAnalyst(provider=provider, model="openai/gpt-4o", temperature=0.2, max_tokens=1500)


# ==================
# Prompt construction
# ==================


class TestPrompts:
    @pytest.mark.parametrize("analysis_type", list(AnalysisType))
    def test_every_type_has_instructions_and_focus(self, analysis_type):
        prompt = build_prompt(analysis_type, {"title": "x"})
        assert prompt.type == analysis_type
        assert prompt.instructions

        system = system_prompt(analysis_type)
        for focus in FOCUS_AREAS[analysis_type]:
            assert focus in system

    def test_system_prompt_requests_json(self):
        assert '"confidence": number (0-100)' in system_prompt(AnalysisType.PR_ANALYSIS)

    def test_user_prompt_embeds_context(self):
        prompt = build_prompt(AnalysisType.ISSUE_TRIAGE, {"title": "Login fails", "labels": ["bug"]})
        text = user_prompt(prompt)

        assert text.startswith(prompt.instructions)
        assert "Context data:" in text
        assert '"title": "Login fails"' in text
        assert text.endswith("Please provide your analysis in the specified JSON format.")

    def test_user_prompt_serializes_non_json_values(self):
        from datetime import datetime

        prompt = build_prompt(AnalysisType.TEAM_INSIGHTS, {"since": datetime(2026, 1, 1)})
        assert "2026-01-01" in user_prompt(prompt)


# ==================
# Reply parsing
# ==================


class TestParseAnalysis:
    def test_full_reply(self):
        result = parse_analysis(
            '{"analysis": "Looks good", "confidence": 90, "recommendations": ["ship it"]}'
        )
        assert result.analysis == "Looks good"
        assert result.confidence == 90.0
        assert result.recommendations == ["ship it"]
        assert result.structured_data is None

    def test_code_fenced_reply(self):
        result = parse_analysis('```json\n{"analysis": "ok", "confidence": 50}\n```')
        assert result.analysis == "ok"
        assert result.confidence == 50.0

    @pytest.mark.parametrize("raw,expected", [(-5, 0.0), (150, 100.0), ("abc", 0.0)])
    def test_confidence_clamped(self, raw, expected):
        result = parse_analysis(json.dumps({"analysis": "x", "confidence": raw}))
        assert result.confidence == expected

    def test_missing_fields_default(self):
        result = parse_analysis("{}")
        assert result.analysis == ""
        assert result.confidence == 0.0
        assert result.recommendations == []

    def test_single_recommendation_string(self):
        result = parse_analysis('{"recommendations": "Add tests"}')
        assert result.recommendations == ["Add tests"]

    def test_non_dict_structured_data_ignored(self):
        result = parse_analysis('{"analysis": "x", "structured_data": [1, 2]}')
        assert result.structured_data is None

    @pytest.mark.parametrize("content", [None, "", "   "])
    def test_empty_reply_rejected(self, content):
        with pytest.raises(ValueError, match="No response content"):
            parse_analysis(content)

    def test_non_object_rejected(self):
        with pytest.raises(ValueError, match="not a JSON object"):
            parse_analysis("[1, 2, 3]")

    def test_malformed_json_rejected(self):
        with pytest.raises(ValueError):
            parse_analysis("not json at all")


# ==================
# AIAnalyst.analyze
# ==================


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_returns_parsed_result(self, analyst):
        result = await analyst.analyze(build_prompt(AnalysisType.PR_ANALYSIS, {"title": "x"}))

        assert result.analysis == "Medium risk change touching the API."
        assert result.confidence == 82.0
        assert result.recommendations == ["Add integration tests"]
        assert result.structured_data == {"risk": "medium"}

    @pytest.mark.asyncio
    async def test_passes_model_settings(self, analyst, provider):
        await analyst.analyze(build_prompt(AnalysisType.RELEASE_READINESS, {"version": "v1"}))

        kwargs = provider.completion_with_retry.call_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o"
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 1500
        assert kwargs["response_format"] == {"type": "json_object"}
        roles = [m["role"] for m in kwargs["messages"]]
        assert roles == ["system", "user"]
        assert "release readiness assessment" in kwargs["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_provider_error_wrapped(self, analyst, provider):
        provider.completion_with_retry.side_effect = RuntimeError("connection reset")

        with pytest.raises(ServiceError, match="AI analysis failed: connection reset") as exc_info:
            await analyst.analyze(build_prompt(AnalysisType.PR_ANALYSIS, {}))

        assert exc_info.value.service == "openai"
        assert exc_info.value.retryable is False
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_rate_limit_is_retryable(self, analyst, provider):
        provider.completion_with_retry.side_effect = RuntimeError("Rate limit reached for gpt-4o")

        with pytest.raises(ServiceError) as exc_info:
            await analyst.analyze(build_prompt(AnalysisType.PR_ANALYSIS, {}))

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_empty_reply_wrapped(self, analyst, provider):
        provider.completion_with_retry.return_value = _response(None)

        with pytest.raises(ServiceError, match="No response content") as exc_info:
            await analyst.analyze(build_prompt(AnalysisType.ISSUE_TRIAGE, {}))

        assert exc_info.value.service == "openai"

    @pytest.mark.asyncio
    async def test_malformed_reply_wrapped(self, analyst, provider):
        provider.completion_with_retry.return_value = _response("I think it's fine")

        with pytest.raises(ServiceError):
            await analyst.analyze(build_prompt(AnalysisType.ISSUE_TRIAGE, {}))
