# src/llm/adapters/anthropic_adapter.py — v3
"""Anthropic Claude adapter implementing BaseGenerationClient.

Uses the official anthropic SDK (Messages API). SDK retries are disabled;
ResilientClient owns the retry policy.
"""

from __future__ import annotations

import logging
from typing import Any

from gitdoc.core.errors import GenerationError
from gitdoc.llm.base_client import BaseGenerationClient

logger = logging.getLogger(__name__)


class AnthropicAdapter(BaseGenerationClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        timeout: float = 60.0,
        max_tokens: int = 1024,
        **kwargs: Any,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._max_tokens = max_tokens
        self.__client = None  # Lazy initialization

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            try:
                import anthropic
            except ImportError as e:
                raise GenerationError(
                    "anthropic package required: pip install anthropic", provider=self.name
                ) from e
            self.__client = anthropic.AsyncAnthropic(
                api_key=self._api_key or "",
                timeout=self._timeout,
                max_retries=0,
            )
        return self.__client

    async def _complete(self, prompt: str) -> str:
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"anthropic request failed: {e}", provider=self.name) from e

        text = self._extract_content(response)
        if not text:
            raise GenerationError("anthropic response has no text content", provider=self.name)
        return text

    @staticmethod
    def _extract_content(response: Any) -> str:
        """Join the text blocks of a Messages API response."""
        parts = [
            block.text
            for block in getattr(response, "content", None) or []
            if getattr(block, "type", None) == "text"
        ]
        return "\n".join(parts)
