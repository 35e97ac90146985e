# src/llm/adapters/openai_adapter.py — v2
"""OpenAI chat completions adapter implementing BaseGenerationClient.

Uses the official openai SDK with SDK-level retries disabled; retry and
fallback policy belongs to ResilientClient.
"""

from __future__ import annotations

import logging
from typing import Any

from gitdoc.core.errors import GenerationError
from gitdoc.llm.base_client import BaseGenerationClient

logger = logging.getLogger(__name__)


class OpenAIAdapter(BaseGenerationClient):
    """OpenAI GPT adapter."""

    provider = "openai"
    base_url: str | None = None

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str = "",
        timeout: float = 60.0,
        **kwargs: Any,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._timeout = timeout
        self.__client = None

    @property
    def name(self) -> str:
        return self.provider

    @property
    def _client(self):
        """Lazy-init SDK client (only on first request)."""
        if self.__client is None:
            try:
                import openai
            except ImportError as e:
                raise GenerationError(
                    "openai package required: pip install openai", provider=self.name
                ) from e
            self.__client = openai.AsyncOpenAI(
                api_key=self._api_key,
                base_url=self.base_url,
                timeout=self._timeout,
                max_retries=0,
            )
        return self.__client

    async def _complete(self, prompt: str) -> str:
        try:
            resp = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
            )
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"{self.name} request failed: {e}", provider=self.name) from e

        choices = getattr(resp, "choices", None) or []
        if not choices:
            raise GenerationError(f"{self.name} response has no choices", provider=self.name)
        content = choices[0].message.content or ""
        logger.debug("%s completion: model=%s chars=%d", self.name, self._model, len(content))
        return content
