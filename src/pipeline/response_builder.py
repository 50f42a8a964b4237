# src/pipeline/response_builder.py - v1
"""Deterministic assembly of the enhanced prompt.

No randomness and no timestamps: identical inputs give byte-identical
output, which is what makes response caching observable.
"""

from __future__ import annotations

from promptlift.cache.models import ContextUsed, CuratedDoc
from promptlift.core.models import CodeSnippet, ComplexityAssessment
from promptlift.tracking.cost_calculator import CHARS_PER_TOKEN

INSTRUCTIONS = (
    "Make your response consistent with the project's existing patterns, "
    "best practices, and coding standards. Prefer the documented APIs above "
    "over undocumented alternatives."
)

_TRUNCATION_MARK = "\n[...]"


def truncate_to_tokens(text: str, tokens: int) -> str:
    """Cut text to about tokens tokens, on a line boundary when possible."""
    limit = max(0, tokens) * CHARS_PER_TOKEN
    if len(text) <= limit:
        return text
    cut = text[:limit]
    newline = cut.rfind("\n")
    if newline > limit // 2:
        cut = cut[:newline]
    return cut.rstrip() + _TRUNCATION_MARK


def format_doc(doc: CuratedDoc, tokens: int | None = None) -> str:
    content = doc.content if tokens is None else truncate_to_tokens(doc.content, tokens)
    return f"## {doc.library_id} Documentation:\n{content}"


def format_snippet(snippet: CodeSnippet) -> str:
    return f"// {snippet.source}\n{snippet.content}"


def build_context_used(
    repo_facts: list[str],
    code_snippets: list[CodeSnippet],
    docs: list[CuratedDoc],
    complexity: ComplexityAssessment,
) -> ContextUsed:
    """Context reported to the caller; docs truncated to their share of the budget."""
    visible = [d for d in docs if d.content]
    per_doc = complexity.token_budget // len(visible) if visible else 0
    return ContextUsed(
        repo_facts=list(repo_facts),
        code_snippets=[format_snippet(s) for s in code_snippets],
        docs=[format_doc(d, per_doc) for d in visible],
    )


def build_enhanced_prompt(
    prompt: str,
    frameworks: list[str],
    context_used: ContextUsed,
    complexity: ComplexityAssessment,
    tasks: list[str] | None = None,
) -> str:
    """Original prompt followed by the context sections that are non-empty."""
    sections = [prompt.strip()]

    if frameworks:
        sections.append(
            "## Detected Frameworks/Libraries:\n"
            f"- **Frameworks**: {', '.join(frameworks)}\n"
            f"- **Complexity**: {complexity.level}"
        )

    if context_used.docs:
        sections.append(
            "## Framework Best Practices:\n" + "\n\n".join(context_used.docs)
        )

    if context_used.repo_facts:
        sections.append(
            "## Repository Context:\n"
            + "\n".join(f"- {fact}" for fact in context_used.repo_facts)
        )

    if context_used.code_snippets:
        snippets = "\n\n".join(context_used.code_snippets)
        if complexity.level != "complex":
            snippets = truncate_to_tokens(snippets, complexity.token_budget // 4)
        sections.append(f"## Existing Code Patterns:\n```\n{snippets}\n```")

    if tasks:
        sections.append(
            "## Task Breakdown:\n"
            + "\n".join(f"{i}. {task}" for i, task in enumerate(tasks, start=1))
        )

    sections.append(f"## Instructions:\n{INSTRUCTIONS}")
    return "\n\n".join(sections)
