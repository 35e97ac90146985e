# src/llm/adapters/ollama_adapter.py — v2
"""Ollama local model adapter implementing BaseGenerationClient.

Uses the ollama Python SDK.
"""

from __future__ import annotations

from typing import Any

from gitdoc.core.errors import GenerationError
from gitdoc.llm.base_client import BaseGenerationClient

DEFAULT_OLLAMA_HOST = "http://localhost:11434"


class OllamaAdapter(BaseGenerationClient):
    """Ollama local inference adapter."""

    def __init__(
        self,
        model: str = "llama3",
        base_url: str = "",
        timeout: float = 60.0,
        **kwargs: Any,
    ) -> None:
        self._model = model
        self._host = base_url or DEFAULT_OLLAMA_HOST
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "ollama"

    async def _complete(self, prompt: str) -> str:
        try:
            import ollama
        except ImportError as e:
            raise GenerationError(
                "ollama package required: pip install ollama", provider=self.name
            ) from e

        client = ollama.AsyncClient(host=self._host, timeout=self._timeout)
        try:
            resp = await client.chat(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                stream=False,
            )
        except Exception as e:
            raise GenerationError(f"ollama request failed: {e}", provider=self.name) from e

        try:
            return resp["message"]["content"]
        except (KeyError, TypeError) as e:
            raise GenerationError(f"ollama response malformed: {e}", provider=self.name) from e
