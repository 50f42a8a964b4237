# src/curation/__init__.py - v1
