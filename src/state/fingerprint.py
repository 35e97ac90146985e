# src/state/fingerprint.py — v1
"""Prompt fingerprinting for the generation cache.

The fingerprint is the SHA-256 of the fully assembled prompt, so changing
the prompt template silently invalidates every older cache entry.
"""

from __future__ import annotations

import hashlib


def prompt_fingerprint(prompt: str) -> str:
    """Return the lowercase hex SHA-256 of the prompt text."""
    return hashlib.sha256(prompt.encode("utf-8")).hexdigest()
