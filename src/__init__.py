# src/__init__.py - v1
"""promptlift: context-enriched prompt enhancement with tiered caching."""

from promptlift.version import __version__

__all__ = ["__version__"]
