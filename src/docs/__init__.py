# src/docs/__init__.py - v1
