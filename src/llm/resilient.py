# src/llm/resilient.py — v1
"""Retry-with-backoff and ordered provider fallback over generation clients.

For each provider in order, up to ``max_retries + 1`` attempts are made.
Between attempts of the same provider the client waits
``150ms * 2**attempt``; the wait races the cancel token so a cancelled
caller gets GenerationCancelled immediately. A provider that exhausts its
attempts hands over to the next one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from gitdoc.core.cancel import CancelToken
from gitdoc.core.errors import GenerationCancelled, GenerationError
from gitdoc.llm.base_client import BaseGenerationClient

logger = logging.getLogger(__name__)

BASE_DELAY_S = 0.150


def classify_error(error: Exception) -> str:
    """Classify a provider failure for logging (rate_limit, timeout, server_error, ...)."""
    msg = str(error).lower()
    name = type(error).__name__.lower()

    if "429" in msg or "rate" in msg:
        return "rate_limit"
    if "timeout" in name or "timeout" in msg or "timed out" in msg:
        return "timeout"
    if any(c in msg for c in ("500", "502", "503", "504", "server")):
        return "server_error"
    if "json" in msg or "parse" in msg or "decode" in msg or "malformed" in msg:
        return "parse_error"
    if "empty" in msg or "no choices" in msg or "no text" in msg:
        return "empty_response"
    return "unknown"


def backoff_delay(attempt: int) -> float:
    """Delay before retrying after 0-based ``attempt``."""
    return BASE_DELAY_S * (2 ** attempt)


class ResilientClient(BaseGenerationClient):
    """Decorates an ordered provider list (primary first) with retries and fallback."""

    def __init__(self, clients: Sequence[BaseGenerationClient], max_retries: int = 0) -> None:
        self._clients = list(clients)
        self._max_retries = max(0, max_retries)

    @property
    def name(self) -> str:
        return "resilient(" + "->".join(c.name for c in self._clients) + ")"

    @property
    def clients(self) -> list[BaseGenerationClient]:
        return list(self._clients)

    @property
    def max_retries(self) -> int:
        return self._max_retries

    async def _complete(self, prompt: str) -> str:
        """Unused; requests go through the wrapped clients in ``generate``."""
        raise NotImplementedError("ResilientClient delegates to its provider clients")

    async def generate(self, prompt: str, cancel: CancelToken | None = None) -> str:
        """Try each provider in order with backoff between attempts.

        Raises:
            GenerationCancelled: As soon as ``cancel`` fires.
            GenerationError: Wrapping the last failure once every attempt failed.
        """
        if not self._clients:
            raise GenerationError("no generation providers configured")

        last_error: GenerationError | None = None
        for provider in self._clients:
            for attempt in range(self._max_retries + 1):
                if cancel is not None:
                    cancel.raise_if_cancelled()

                try:
                    return await provider.generate(prompt, cancel)
                except GenerationCancelled:
                    raise
                except Exception as e:
                    last_error = GenerationError(
                        f"provider {provider.name} attempt {attempt + 1} failed: {e}",
                        provider=provider.name,
                    )
                    last_error.__cause__ = e
                    logger.warning(
                        "Provider '%s' %s (attempt %d/%d): %s",
                        provider.name, classify_error(e), attempt + 1,
                        self._max_retries + 1, e,
                    )

                if attempt < self._max_retries:
                    delay = backoff_delay(attempt)
                    if cancel is not None:
                        await cancel.sleep(delay)
                    else:
                        await asyncio.sleep(delay)

            logger.info("Provider '%s' exhausted, falling back", provider.name)

        if last_error is None:
            raise GenerationError("all generation providers failed")
        raise last_error
