# src/core/cancel.py — v1
"""Cooperative cancellation signal passed through generation calls.

A token is checked before every provider attempt and raced against every
backoff sleep, so a cancelled run stops retrying at once and the commit in
flight is recorded as failed.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from gitdoc.core.errors import GenerationCancelled

T = TypeVar("T")


class CancelToken:
    """Event-backed cancellation flag with an optional reason."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = "operation cancelled"

    def cancel(self, reason: str | None = None) -> None:
        if reason:
            self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def raise_if_cancelled(self) -> None:
        """Raise GenerationCancelled if the token has fired."""
        if self._event.is_set():
            raise GenerationCancelled(self._reason)

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds unless cancelled first.

        Raises:
            GenerationCancelled: If the token fires before the delay elapses.
        """
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise GenerationCancelled(self._reason)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        The pending work is cancelled when the token wins the race.

        Raises:
            GenerationCancelled: If the token fires before completion.
        """
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
        if task in done:
            return task.result()
        raise GenerationCancelled(self._reason)
