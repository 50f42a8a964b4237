# src/docs/topics.py - v1
"""Map a prompt to the documentation topic to request."""

from __future__ import annotations

import re

DEFAULT_TOPIC = "best practices"

# First matching keyword wins, so more specific keywords come first.
_TOPIC_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("component", "components"),
    ("routing", "routing"),
    ("route", "routing"),
    ("auth", "authentication"),
    ("login", "authentication"),
    ("api", "api"),
    ("endpoint", "api"),
    ("styling", "styling"),
    ("css", "styling"),
    ("test", "testing"),
    ("error", "error handling"),
    ("exception", "error handling"),
    ("performance", "performance"),
    ("optimization", "performance"),
    ("security", "security"),
    ("deployment", "deployment"),
    ("docker", "deployment"),
    ("database", "database"),
    ("db", "database"),
    ("migration", "database"),
    ("hook", "hooks"),
    ("lifecycle", "lifecycle"),
    ("state", "state management"),
    ("redux", "state management"),
)


def extract_topic(prompt: str) -> str:
    """Topic for the first keyword found at a word start, else DEFAULT_TOPIC."""
    text = prompt.lower()
    for keyword, topic in _TOPIC_KEYWORDS:
        if re.search(rf"\b{re.escape(keyword)}", text):
            return topic
    return DEFAULT_TOPIC
