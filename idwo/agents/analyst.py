"""
AI analyst: the LLM adapter used by the workflow orchestrator.

Turns an AnalysisPrompt into one chat completion (JSON response format) and
parses the reply into an AnalysisResult. Any failure, from the provider or
from parsing, is raised as ServiceError(service="openai").

Usage:
    from idwo.agents.analyst import AIAnalyst, build_prompt
    from idwo.models import AnalysisType

    analyst = AIAnalyst(provider=LLMProviderManager(), model="openai/gpt-4o")
    result = await analyst.analyze(build_prompt(AnalysisType.PR_ANALYSIS, {"title": "..."}))
"""

import json
from typing import Any, Optional

from idwo.errors import ServiceError
from idwo.integrations.llm_provider import LLMProviderManager
from idwo.models.analysis import AnalysisPrompt, AnalysisResult, AnalysisType
from idwo.utils.logging import get_logger

logger = get_logger(__name__)

# ==================
# Prompts
# ==================

BASE_SYSTEM_PROMPT = """You are an expert software engineering advisor with deep knowledge of development workflows, code review practices, project management, and team dynamics. You provide actionable, data-driven insights while keeping a focus on practical implementation.

Always respond with valid JSON in this format:
{
  "analysis": "Detailed analysis text",
  "confidence": number (0-100),
  "recommendations": ["action 1", "action 2", ...],
  "structured_data": { ... additional structured information ... }
}"""

FOCUS_AREAS: dict[AnalysisType, list[str]] = {
    AnalysisType.PR_ANALYSIS: [
        "Code quality and maintainability impact",
        "Security considerations",
        "Performance implications",
        "Testing coverage needs",
        "Integration risks",
        "Reviewer expertise matching",
    ],
    AnalysisType.ISSUE_TRIAGE: [
        "Business impact assessment",
        "Technical complexity evaluation",
        "Resource allocation",
        "Dependencies and blockers",
        "Sprint planning considerations",
        "Component ownership clarity",
    ],
    AnalysisType.RELEASE_READINESS: [
        "Risk mitigation strategies",
        "Quality assurance validation",
        "Operational readiness",
        "Rollback preparedness",
        "Stakeholder communication",
        "Success metrics definition",
    ],
    AnalysisType.TEAM_INSIGHTS: [
        "Process efficiency analysis",
        "Collaboration patterns",
        "Skill gap assessment",
        "Workload distribution",
        "Continuous improvement opportunities",
        "Predictive trend analysis",
    ],
}

FOCUS_TITLES: dict[AnalysisType, str] = {
    AnalysisType.PR_ANALYSIS: "pull request analysis",
    AnalysisType.ISSUE_TRIAGE: "issue triage",
    AnalysisType.RELEASE_READINESS: "release readiness assessment",
    AnalysisType.TEAM_INSIGHTS: "team insights",
}

INSTRUCTIONS: dict[AnalysisType, str] = {
    AnalysisType.PR_ANALYSIS: """Analyze this pull request and provide:
1. A comprehensive summary of the changes
2. Risk assessment (low/medium/high)
3. Suggested reviewers based on file changes and team expertise
4. Estimated review time in hours
5. Key areas that need attention during review
6. Potential impact on other systems or features""",
    AnalysisType.ISSUE_TRIAGE: """Analyze this issue and provide:
1. Priority level (Low/Medium/High/Critical) with justification
2. Suggested category (bug/feature/task/story)
3. Estimated effort in story points (1, 2, 3, 5, 8, 13)
4. Recommended assignee based on expertise area
5. Suggested sprint assignment
6. Dependencies or blocking issues to consider
7. Tags for better organization""",
    AnalysisType.RELEASE_READINESS: """Assess this release readiness and provide:
1. Overall readiness score (0-100)
2. Critical blockers that must be addressed
3. Risk assessment for deployment
4. Recommended actions before release
5. Rollback strategy considerations
6. Post-release monitoring recommendations""",
    AnalysisType.TEAM_INSIGHTS: """Analyze team performance and provide:
1. Key productivity metrics and trends
2. Identified bottlenecks in the development process
3. Team collaboration effectiveness
4. Recommended process improvements
5. Individual contributor insights (anonymized)
6. Predictive insights for future sprints""",
}


def system_prompt(analysis_type: AnalysisType) -> str:
    focus = "\n".join(f"- {item}" for item in FOCUS_AREAS[analysis_type])
    return f"{BASE_SYSTEM_PROMPT}\n\nFor {FOCUS_TITLES[analysis_type]}, focus on:\n{focus}"


def build_prompt(analysis_type: AnalysisType, context: dict[str, Any]) -> AnalysisPrompt:
    """Pair a context payload with the standard instructions for its type."""
    return AnalysisPrompt(
        type=analysis_type,
        context=context,
        instructions=INSTRUCTIONS[analysis_type],
    )


def user_prompt(prompt: AnalysisPrompt) -> str:
    context_json = json.dumps(prompt.context, indent=2, default=str)
    return (
        f"{prompt.instructions}\n\n"
        f"Context data:\n{context_json}\n\n"
        "Please provide your analysis in the specified JSON format."
    )


def _strip_code_fence(text: str) -> str:
    """Remove a ```json ... ``` wrapper if the model added one."""
    text = text.strip()
    if not text.startswith("```"):
        return text
    lines = text.split("\n")[1:]
    if lines and lines[-1].strip() == "```":
        lines = lines[:-1]
    return "\n".join(lines).strip()


def parse_analysis(content: Optional[str]) -> AnalysisResult:
    """
    Parse the model's JSON reply.

    Raises:
        ValueError: if the reply is empty or not a JSON object.
    """
    if not content or not content.strip():
        raise ValueError("No response content from model")
    data = json.loads(_strip_code_fence(content))
    if not isinstance(data, dict):
        raise ValueError("Model reply is not a JSON object")
    structured = data.get("structured_data")
    return AnalysisResult(
        analysis=str(data.get("analysis") or ""),
        confidence=data.get("confidence", 0),
        recommendations=data.get("recommendations") or [],
        structured_data=structured if isinstance(structured, dict) else None,
    )


def _is_rate_limit(error: Exception) -> bool:
    return "rate limit" in str(error).lower() or type(error).__name__ == "RateLimitError"


class AIAnalyst:
    """
    LLM adapter returning AnalysisResult objects.

    Args:
        provider: Completion layer (fallbacks, health, retries).
        model: LiteLLM model string, e.g. "openai/gpt-4o".
        temperature: Sampling temperature for every call.
        max_tokens: Completion budget for every call.
    """

    def __init__(
        self,
        provider: LLMProviderManager,
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> None:
        self._provider = provider
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def analyze(self, prompt: AnalysisPrompt) -> AnalysisResult:
        """Run one analysis. Confidence in the result is always within [0, 100]."""
        messages = [
            {"role": "system", "content": system_prompt(prompt.type)},
            {"role": "user", "content": user_prompt(prompt)},
        ]
        try:
            response = await self._provider.completion_with_retry(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
            result = parse_analysis(response.choices[0].message.content)
        except Exception as e:
            logger.error("analysis_failed", analysis_type=prompt.type.value, error=str(e))
            raise ServiceError(
                f"AI analysis failed: {e}",
                service="openai",
                retryable=_is_rate_limit(e),
            ) from e

        logger.info(
            "analysis_completed",
            analysis_type=prompt.type.value,
            confidence=result.confidence,
            recommendations=len(result.recommendations),
        )
        return result
