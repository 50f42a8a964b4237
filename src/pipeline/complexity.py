# src/pipeline/complexity.py - v1
"""Prompt complexity scoring. Pure: same prompt, same result.

Short prompts and plain questions push the score up (simpler);
development verbs, technical nouns and framework names push it down.
score >= 2 is simple, score >= 0 is medium, anything lower is complex.
"""

from __future__ import annotations

import re

from promptlift.core.models import ComplexityAssessment, ComplexityLevel

DEFAULT_TOKEN_BUDGETS: dict[str, int] = {"simple": 1000, "medium": 2000, "complex": 4000}

_SIMPLE_PATTERNS = (
    re.compile(r"^(yes|no|ok|sure|maybe)\s*$", re.IGNORECASE),
    re.compile(r"^(what|how|when|where|why)\s+\w+\?$", re.IGNORECASE),
    re.compile(r"^(is|are|was|were|do|does|did|can|could|will|would)\s+\w+", re.IGNORECASE),
    re.compile(r"^(what\s+is\s+)?\d+\s*[-+*/]\s*\d+\s*\??$", re.IGNORECASE),
    re.compile(r"^how\s+(do\s+i|to)\s+(create|make)\s+an?\s+\w+\??$", re.IGNORECASE),
)

_DEVELOPMENT_PATTERNS = (
    re.compile(r"create|build|implement|develop", re.IGNORECASE),
    re.compile(r"component|function|class|service", re.IGNORECASE),
    re.compile(r"api|endpoint|database|schema", re.IGNORECASE),
    re.compile(r"test|testing|debug|fix", re.IGNORECASE),
    re.compile(r"deploy|production|staging", re.IGNORECASE),
)

_FRAMEWORK_KEYWORDS = (
    "react", "vue", "angular", "typescript", "javascript",
    "node", "express", "next", "nuxt", "svelte",
)


def _level_for(score: float) -> ComplexityLevel:
    if score >= 2:
        return "simple"
    if score >= 0:
        return "medium"
    return "complex"


def analyze_complexity(
    prompt: str,
    token_budgets: dict[str, int] | None = None,
    max_tokens: int | None = None,
) -> ComplexityAssessment:
    """Classify a prompt and pick its token budget.

    Args:
        prompt: Raw user prompt.
        token_budgets: Budget per level (defaults 1000 / 2000 / 4000).
        max_tokens: Caller cap on the budget.
    """
    budgets = token_budgets or DEFAULT_TOKEN_BUDGETS
    text = prompt.strip()
    lowered = text.lower()
    score = 0.0
    indicators: list[str] = []

    if len(text) < 20:
        score += 3
        indicators.append("very-short")
    elif len(text) < 50:
        score += 2
        indicators.append("short")
    elif len(text) > 200:
        score += 1
        indicators.append("long")

    if any(p.search(text) for p in _SIMPLE_PATTERNS):
        score += 2
        indicators.append("simple-question")

    dev_matches = sum(1 for p in _DEVELOPMENT_PATTERNS if p.search(text))
    if dev_matches:
        score -= dev_matches
        indicators.extend(["development-task"] * dev_matches)

    fw_matches = sum(1 for kw in _FRAMEWORK_KEYWORDS if kw in lowered)
    if fw_matches:
        score -= fw_matches * 0.5
        indicators.extend(["framework-specific"] * fw_matches)

    level = _level_for(score)
    budget = budgets.get(level, DEFAULT_TOKEN_BUDGETS[level])
    if max_tokens is not None:
        budget = min(budget, max_tokens)

    return ComplexityAssessment(
        level=level, score=score, token_budget=budget, indicators=indicators
    )
