# src/core/models.py — v2
"""Shared Pydantic domain models used across modules.

Persistent row types live in state.models; these are the values that
flow between the commit source, the updater and its callers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

CommitStatus = Literal["pending", "in_progress", "success", "failed", "skipped"]
PlanStrategy = Literal["mapping", "comment", "inferred"]
PlanStatus = Literal["planned", "applied", "failed", "unchanged"]
EventLevel = Literal["info", "warn", "error"]

COMMIT_STATUSES: tuple[str, ...] = (
    "pending",
    "in_progress",
    "success",
    "failed",
    "skipped",
)


class CommitInfo(BaseModel):
    """One entry of a commit range, oldest first."""

    id: str
    author: str = ""
    email: str = ""
    timestamp: datetime | None = None
    subject: str = ""


class Summary(BaseModel):
    """Aggregate outcome of one update run.

    ``processed == success + failed + skipped`` always holds.
    """

    processed: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0

    def record(self, status: str) -> None:
        if status == "success":
            self.success += 1
        elif status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
