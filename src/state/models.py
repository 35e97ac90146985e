# src/state/models.py — v1
"""Persistent record types: ProcessedCommit, PlannedUpdate, GenerationCacheEntry, RunEvent."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from gitdoc.core.models import CommitStatus, EventLevel, PlanStatus, PlanStrategy


class ProcessedCommit(BaseModel):
    """One row per source commit ever submitted for processing."""

    commit_id: str
    status: CommitStatus
    processed_at: datetime | None = None
    error: str = ""
    doc_commit: str = ""
    changed_files: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None


class StatusCounts(BaseModel):
    """Aggregate row counts per commit status."""

    pending: int = 0
    in_progress: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0


class PlannedUpdate(BaseModel):
    """Intent to update one (commit, doc file, section) target."""

    commit_id: str
    doc_file: str
    section_id: str
    strategy: PlanStrategy
    status: PlanStatus
    reason: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


class GenerationCacheEntry(BaseModel):
    """Memoized provider response keyed by six fields."""

    commit_id: str
    doc_file: str
    section_id: str
    provider: str
    model: str
    prompt_fingerprint: str
    response: str


class CacheLookup(BaseModel):
    """Result of a generation cache read."""

    response: str = ""
    hit: bool = False


class RunEvent(BaseModel):
    """Append-only audit line scoped to one run."""

    run_id: str
    commit_id: str = ""
    level: EventLevel
    component: str
    message: str
    metadata: dict[str, Any] | None = None
    created_at: datetime | None = None


class DocMappingRecord(BaseModel):
    """Code commit to documentation target link, written on every applied update."""

    commit_id: str
    doc_file: str
    section: str
