# src/llm/mock_client.py — v1
"""Deterministic offline client used by default and in tests."""

from __future__ import annotations

from typing import Any

from gitdoc.llm.base_client import BaseGenerationClient

_PREFIX_LIMIT = 180


class MockClient(BaseGenerationClient):
    """Echoes a bounded prefix of the prompt; never calls the network."""

    def __init__(self, **kwargs: Any) -> None:
        pass

    @property
    def name(self) -> str:
        return "mock"

    async def _complete(self, prompt: str) -> str:
        line = prompt.strip()
        if not line:
            return "No changes detected."
        return "- Auto-generated update\n\n" + line[:_PREFIX_LIMIT]
