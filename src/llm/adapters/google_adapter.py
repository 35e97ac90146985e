# src/llm/adapters/google_adapter.py — v2
"""Google Gemini adapter implementing BaseGenerationClient.

Uses the google-generativeai SDK.
"""

from __future__ import annotations

from typing import Any

from gitdoc.core.errors import GenerationError
from gitdoc.llm.base_client import BaseGenerationClient


class GoogleAdapter(BaseGenerationClient):
    """Google Gemini adapter."""

    def __init__(
        self,
        model: str = "gemini-1.5-flash",
        api_key: str = "",
        timeout: float = 60.0,
        **kwargs: Any,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "google"

    async def _complete(self, prompt: str) -> str:
        try:
            import google.generativeai as genai
        except ImportError as e:
            raise GenerationError(
                "google-generativeai package required: pip install google-generativeai",
                provider=self.name,
            ) from e

        try:
            genai.configure(api_key=self._api_key)
            model = genai.GenerativeModel(self._model)
            resp = await model.generate_content_async(
                prompt, request_options={"timeout": self._timeout},
            )
        except Exception as e:
            raise GenerationError(f"gemini request failed: {e}", provider=self.name) from e

        # resp.text raises ValueError when the candidate was blocked or empty.
        try:
            return resp.text
        except ValueError as e:
            raise GenerationError(f"gemini response has no text: {e}", provider=self.name) from e


class GeminiAdapter(GoogleAdapter):
    """Same backend registered under the ``gemini`` provider name."""

    @property
    def name(self) -> str:
        return "gemini"
