# src/docs/adapters/__init__.py - v1
