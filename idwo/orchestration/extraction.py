"""
Decision extraction pipeline.

Pure functions that read the LLM's free-text analysis (plus raw adapter
context where noted) and produce bounded, typed decision fields. Nothing
here performs I/O or touches workflow state, so every heuristic can be
tested in isolation.

The heuristics are keyword presence checks and a handful of regular
expressions. Defaults apply whenever the text says nothing usable.
"""

import re
from collections.abc import Iterable, Sequence
from statistics import mean
from typing import Any, Optional

from idwo.models.decisions import (
    Blocker,
    Bottleneck,
    Prediction,
    Priority,
    Recommendation,
    RiskLevel,
    TeamMetrics,
    VelocityTrend,
)

# ==================
# Defaults & Thresholds
# ==================

DEFAULT_REVIEW_HOURS = 2.0
"""Review time when the analysis names no duration."""

DEFAULT_EFFORT_POINTS = 3
"""Story points when the analysis names no estimate."""

DEFAULT_READINESS = 70
"""Readiness score when the analysis names none. Lands in 'caution'."""

PROCEED_THRESHOLD = 85
CAUTION_THRESHOLD = 70

MAX_MENTIONED_REVIEWERS = 3
FALLBACK_REVIEWERS = 2
MAX_ACTIONS = 5
MAX_KEYWORDS = 10
QUERY_KEYWORDS = 3
RECENT_VELOCITY_WINDOW = 3
TREND_TOLERANCE = 0.1
DEFAULT_PREDICTION_CONFIDENCE = 75.0

STOP_WORDS = frozenset({"the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"})

# (label, terms); a label is emitted when any of its terms appears as a word
TOPIC_VOCABULARY: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("database", ("database",)),
    ("api", ("api",)),
    ("frontend", ("ui", "frontend")),
    ("backend", ("backend",)),
    ("security", ("security",)),
    ("performance", ("performance",)),
)

TAG_VOCABULARY: tuple[str, ...] = ("urgent", "security", "performance", "ui", "api")

# (area, substrings, path tokens) checked against lowercased file paths
IMPACT_RULES: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    ("testing", ("test",), ()),
    ("configuration", ("config",), ("env",)),
    ("database", ("migration",), ("db",)),
    ("authentication", ("auth",), ()),
    ("api", ("controller",), ("api",)),
    ("frontend", ("component",), ("ui",)),
)

BOTTLENECK_RULES: tuple[tuple[str, str, int], ...] = (
    ("review", "Code review process delays", 3),
    ("testing", "Testing pipeline bottlenecks", 2),
)

_REVIEW_TIME_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:hours?|hrs?)\b", re.IGNORECASE)
_EFFORT_RE = re.compile(r"(\d+)\s*(?:story\s*points?|points?|sp)\b", re.IGNORECASE)
_READINESS_RE = re.compile(r"(?:readiness|score)\s*:?\s*(\d+)(?:%|/100)?", re.IGNORECASE)
_ASSIGNEE_RE = re.compile(r"assign(?:ed?)?\s+to\s+(\w+)", re.IGNORECASE)
_DEPENDENCY_RE = re.compile(
    r"(?:depends?\s+on|blocked?\s+by|requires?)\s+([A-Z]+-\d+|#\d+|\w+-\w+)",
    re.IGNORECASE,
)
_JIRA_KEY_RE = re.compile(r"[A-Z]+-\d+")
_BLOCKER_RE = re.compile(r"blocker|critical|must\s+(?:fix|address|resolve)", re.IGNORECASE)
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_PATH_TOKEN_RE = re.compile(r"[a-z0-9]+")


def _has_word(text: str, term: str) -> bool:
    return re.search(rf"\b{re.escape(term)}s?\b", text, re.IGNORECASE) is not None


def _unique(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


# ==================
# Pull Requests
# ==================


def extract_risk_level(text: str) -> RiskLevel:
    lowered = text.lower()
    if "high risk" in lowered or "critical" in lowered:
        return RiskLevel.HIGH
    if "medium risk" in lowered or "moderate" in lowered:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def extract_review_time(text: str) -> float:
    match = _REVIEW_TIME_RE.search(text)
    return float(match.group(1)) if match else DEFAULT_REVIEW_HOURS


def extract_reviewers(text: str, roster: Optional[Sequence[str]]) -> list[str]:
    """
    Pick reviewers from the contributor roster.

    Members named in the text win (roster order, at most three). If nobody
    is named the first two roster entries are suggested.
    """
    if not roster:
        return []
    lowered = text.lower()
    mentioned = [member for member in roster if member and member.lower() in lowered]
    if mentioned:
        return mentioned[:MAX_MENTIONED_REVIEWERS]
    return list(roster[:FALLBACK_REVIEWERS])


def extract_topics(text: str) -> list[str]:
    return [
        label
        for label, terms in TOPIC_VOCABULARY
        if any(_has_word(text, term) for term in terms)
    ]


def extract_impact_areas(paths: Iterable[str]) -> list[str]:
    """Map changed file paths to the areas they touch, first-seen order."""
    areas: list[str] = []
    for path in paths:
        lowered = path.lower()
        tokens = set(_PATH_TOKEN_RE.findall(lowered))
        for area, substrings, path_tokens in IMPACT_RULES:
            hit = any(s in lowered for s in substrings) or bool(tokens.intersection(path_tokens))
            if hit and area not in areas:
                areas.append(area)
    return areas


def extract_jira_keys(text: str) -> list[str]:
    return _unique(_JIRA_KEY_RE.findall(text))


# ==================
# Issue Triage
# ==================


def extract_priority(text: str) -> Priority:
    lowered = text.lower()
    if "critical" in lowered:
        return Priority.CRITICAL
    if "high priority" in lowered:
        return Priority.HIGH
    if "medium priority" in lowered:
        return Priority.MEDIUM
    return Priority.LOW


def extract_category(text: str) -> str:
    lowered = text.lower()
    if "bug" in lowered or "defect" in lowered:
        return "bug"
    if "feature" in lowered or "enhancement" in lowered:
        return "feature"
    if "task" in lowered or "improvement" in lowered:
        return "task"
    return "story"


def extract_effort(text: str) -> int:
    match = _EFFORT_RE.search(text)
    return int(match.group(1)) if match else DEFAULT_EFFORT_POINTS


def extract_assignee(text: str) -> Optional[str]:
    match = _ASSIGNEE_RE.search(text)
    return match.group(1) if match else None


def extract_dependencies(*texts: Optional[str]) -> list[str]:
    """
    Collect ticket references introduced by 'depends on', 'blocked by' or
    'requires', in document order.

    Matches within a text are kept as found, repeats included. A later text
    only contributes references that no earlier text produced.
    """
    found: list[str] = []
    for text in texts:
        if not text:
            continue
        earlier = set(found)
        found.extend(
            m.group(1) for m in _DEPENDENCY_RE.finditer(text) if m.group(1) not in earlier
        )
    return found


def extract_tags(text: str) -> list[str]:
    return [tag for tag in TAG_VOCABULARY if _has_word(text, tag)]


def extract_keywords(text: str) -> list[str]:
    words = (w.strip('"\\') for w in text.lower().split())
    return [w for w in words if len(w) > 3 and w not in STOP_WORDS][:MAX_KEYWORDS]


def build_similar_issues_query(keywords: Sequence[str]) -> Optional[str]:
    """JQL full-text query over the first three keywords; None without keywords."""
    if not keywords:
        return None
    terms = " OR ".join(keywords[:QUERY_KEYWORDS])
    return f'text ~ "{terms}" ORDER BY created DESC'


def build_blocking_issues_query(project_key: str) -> str:
    return (
        f'project = "{project_key}" AND status NOT IN ("Done", "Closed") '
        f'AND priority = "Highest"'
    )


# ==================
# Release Readiness
# ==================


def extract_readiness_score(text: str) -> int:
    match = _READINESS_RE.search(text)
    if not match:
        return DEFAULT_READINESS
    return max(0, min(100, int(match.group(1))))


def determine_release_recommendation(score: int) -> Recommendation:
    if score >= PROCEED_THRESHOLD:
        return Recommendation.PROCEED
    if score >= CAUTION_THRESHOLD:
        return Recommendation.CAUTION
    return Recommendation.BLOCK


def recommendation_color(recommendation: Recommendation) -> str:
    return {
        Recommendation.PROCEED: "good",
        Recommendation.CAUTION: "warning",
        Recommendation.BLOCK: "danger",
    }[recommendation]


def extract_blockers(text: str) -> list[Blocker]:
    if _BLOCKER_RE.search(text):
        return [Blocker(type="quality", description="Quality gates not met", severity=RiskLevel.HIGH)]
    return []


def extract_actions(text: str) -> list[str]:
    """Sentences that read like instructions (should / must / recommend)."""
    actions = []
    for sentence in _SENTENCE_SPLIT_RE.split(text):
        lowered = sentence.lower()
        if "should" in lowered or "must" in lowered or "recommend" in lowered:
            actions.append(sentence.strip())
    return [a for a in actions if a][:MAX_ACTIONS]


# ==================
# Team Insights
# ==================


def calculate_velocity_trend(history: Sequence[float]) -> VelocityTrend:
    """
    Compare the mean of the last three samples with the mean of the rest.

    More than 10% above is increasing, more than 10% below is decreasing.
    With fewer than two samples, or no earlier samples, the trend is stable.
    """
    if len(history) < 2:
        return VelocityTrend.STABLE
    recent = history[-RECENT_VELOCITY_WINDOW:]
    earlier = history[:-RECENT_VELOCITY_WINDOW]
    if not earlier:
        return VelocityTrend.STABLE

    recent_avg = mean(recent)
    earlier_avg = mean(earlier)
    if recent_avg > earlier_avg * (1 + TREND_TOLERANCE):
        return VelocityTrend.INCREASING
    if recent_avg < earlier_avg * (1 - TREND_TOLERANCE):
        return VelocityTrend.DECREASING
    return VelocityTrend.STABLE


def extract_bottlenecks(text: str) -> list[Bottleneck]:
    lowered = text.lower()
    return [
        Bottleneck(type=kind, description=description, impact=impact)
        for kind, description, impact in BOTTLENECK_RULES
        if kind in lowered
    ]


def _average(records: Sequence[dict[str, Any]], key: str) -> float:
    values = [float(r.get(key) or 0) for r in records]
    return mean(values) if values else 0.0


def calculate_team_metrics(team_data: dict[str, Any]) -> TeamMetrics:
    """
    Summarise raw team activity.

    Expects 'pull_requests' ({size, review_time}), 'issues'
    ({time_to_resolve}) and 'deployments' lists; missing lists count as empty.
    """
    pull_requests = team_data.get("pull_requests") or []
    issues = team_data.get("issues") or []
    deployments = team_data.get("deployments") or []
    return TeamMetrics(
        avg_pr_size=_average(pull_requests, "size"),
        avg_review_time=_average(pull_requests, "review_time"),
        deployment_frequency=float(len(deployments)),
        cycle_time=_average(issues, "time_to_resolve"),
    )


_TREND_PREDICTIONS = {
    VelocityTrend.INCREASING: "Velocity expected to keep rising",
    VelocityTrend.DECREASING: "Velocity expected to keep declining",
    VelocityTrend.STABLE: "Stable performance expected",
}


def extract_predictions(
    text: str,
    trend: VelocityTrend,
    confidence: float = DEFAULT_PREDICTION_CONFIDENCE,
) -> list[Prediction]:
    """
    One velocity prediction. A sentence in the analysis that 'predicts' or
    'expects' something is used verbatim; otherwise the trend decides.
    """
    statement = next(
        (
            s.strip()
            for s in _SENTENCE_SPLIT_RE.split(text)
            if "predict" in s.lower() or "expect" in s.lower()
        ),
        "",
    )
    return [
        Prediction(
            metric="velocity",
            prediction=statement or _TREND_PREDICTIONS[trend],
            confidence=max(0.0, min(100.0, confidence)),
        )
    ]
