# src/llm/base_client.py — v2
"""Abstract generation client interface.

Every provider exposes the same two-member capability set: a stable
``name`` and ``generate(prompt)``. Subclasses implement ``_complete``;
the shared ``generate`` applies cancellation and rejects empty output so
no provider can report an empty string as success.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from gitdoc.core.cancel import CancelToken
from gitdoc.core.errors import GenerationError


class BaseGenerationClient(ABC):
    """Unified interface for all generation providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (openai, anthropic, google, groq, ollama, mock)."""

    @abstractmethod
    async def _complete(self, prompt: str) -> str:
        """Provider-specific single request; may return raw (untrimmed) text."""

    async def generate(self, prompt: str, cancel: CancelToken | None = None) -> str:
        """Generate replacement section content for ``prompt``.

        Raises:
            GenerationCancelled: If ``cancel`` fires before completion.
            GenerationError: On provider failure or empty output.
        """
        if cancel is not None:
            text = await cancel.guard(self._complete(prompt))
        else:
            text = await self._complete(prompt)
        text = (text or "").strip()
        if not text:
            raise GenerationError(f"{self.name} returned empty content", provider=self.name)
        return text
