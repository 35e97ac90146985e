# src/__init__.py — v1
"""gitdoc: keep documentation sections in step with git commits."""

__version__ = "0.1.0"
