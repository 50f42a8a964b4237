# src/pipeline/project_analyzer.py - v2
"""Default project analyzer working from the request context alone.

Framework ranking, highest confidence first:
  explicit context.framework       1.0
  manifest dependencies            0.9
  framework names in the prompt    0.7
  UI wording with nothing else     html + css at 0.5
"""

from __future__ import annotations

import logging
import re

from promptlift.cache.fingerprint import compute_project_signature
from promptlift.core.models import (
    CodeSnippet,
    FrameworkMatch,
    ProjectSignals,
    RequestContext,
)
from promptlift.pipeline.collaborators import BaseProjectAnalyzer

logger = logging.getLogger(__name__)

# Manifest package name -> framework.
_DEPENDENCY_FRAMEWORKS: dict[str, str] = {
    "react": "react",
    "react-dom": "react",
    "next": "nextjs",
    "vue": "vue",
    "nuxt": "nuxt",
    "@angular/core": "angular",
    "svelte": "svelte",
    "@sveltejs/kit": "svelte",
    "express": "express",
    "typescript": "typescript",
    "tailwindcss": "tailwind",
    "django": "django",
    "flask": "flask",
    "fastapi": "fastapi",
}

# Prompt word -> framework.
_PROMPT_FRAMEWORKS: dict[str, str] = {
    "react": "react",
    "next.js": "nextjs",
    "nextjs": "nextjs",
    "vue": "vue",
    "nuxt": "nuxt",
    "angular": "angular",
    "svelte": "svelte",
    "express": "express",
    "typescript": "typescript",
    "tailwind": "tailwind",
    "django": "django",
    "flask": "flask",
    "fastapi": "fastapi",
    "html": "html",
    "css": "css",
    "javascript": "javascript",
    "node.js": "node",
    "nodejs": "node",
}

_UI_WORDS = re.compile(
    r"\b(button|form|page|layout|navbar|menu|modal|card|header|footer|"
    r"input|table|list|style|styling|landing)s?\b",
    re.IGNORECASE,
)

CONFIDENCE_EXPLICIT = 1.0
CONFIDENCE_MANIFEST = 0.9
CONFIDENCE_PROMPT = 0.7
CONFIDENCE_FALLBACK = 0.5

MAX_SNIPPET_CHARS = 4000


class ManifestProjectAnalyzer(BaseProjectAnalyzer):
    """Rule-based analyzer; no I/O."""

    async def analyze(self, prompt: str, context: RequestContext | None) -> ProjectSignals:
        context = context or RequestContext()
        project_type = (context.project_type or "").strip().lower() or "unknown"
        signature = compute_project_signature(context.dependencies, context.project_type)

        frameworks = self._rank_frameworks(prompt, context)

        repo_facts: list[str] = []
        if project_type != "unknown":
            repo_facts.append(f"Project type: {project_type}")
        if frameworks:
            repo_facts.append(
                "Detected technologies: " + ", ".join(f.name for f in frameworks)
            )
        request_facts: list[str] = []
        if context.style:
            request_facts.append(f"Code style: {context.style}")
        request_facts.extend(f for f in context.repo_facts if f.strip())

        snippets: list[CodeSnippet] = []
        if context.file and context.file_content:
            snippets.append(
                CodeSnippet(
                    source=context.file,
                    content=context.file_content[:MAX_SNIPPET_CHARS],
                    relevance=1.0,
                )
            )

        logger.debug(
            "Analyzed request: signature=%s frameworks=%s",
            signature, [f.name for f in frameworks],
        )
        return ProjectSignals(
            project_signature=signature,
            project_type=project_type,
            frameworks=frameworks,
            repo_facts=repo_facts,
            request_facts=request_facts,
            request_snippets=snippets,
        )

    def _rank_frameworks(self, prompt: str, context: RequestContext) -> list[FrameworkMatch]:
        found: dict[str, FrameworkMatch] = {}

        def add(name: str, confidence: float, source: str) -> None:
            name = name.strip().lower()
            if name and (name not in found or found[name].confidence < confidence):
                found[name] = FrameworkMatch(name=name, confidence=confidence, source=source)

        if context.framework:
            add(context.framework, CONFIDENCE_EXPLICIT, "explicit")

        deps = context.dependencies or []
        dep_names = deps.keys() if isinstance(deps, dict) else deps
        for dep in sorted({d.strip().lower() for d in dep_names}):
            if dep in _DEPENDENCY_FRAMEWORKS:
                add(_DEPENDENCY_FRAMEWORKS[dep], CONFIDENCE_MANIFEST, "manifest")

        lowered = prompt.lower()
        for word, name in _PROMPT_FRAMEWORKS.items():
            if re.search(rf"(?<![\w.]){re.escape(word)}(?![\w])", lowered):
                add(name, CONFIDENCE_PROMPT, "prompt")

        if not found and _UI_WORDS.search(prompt):
            add("html", CONFIDENCE_FALLBACK, "fallback")
            add("css", CONFIDENCE_FALLBACK, "fallback")

        # Stable: confidence desc, then insertion order.
        return sorted(found.values(), key=lambda m: -m.confidence)
