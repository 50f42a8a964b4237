# src/core/__init__.py - v1
