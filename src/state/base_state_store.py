# src/state/base_state_store.py — v1
"""Abstract persistent store interface.

The updater only talks to this interface, so tests can swap in failing or
in-memory doubles. Every operation is independently atomic; nothing spans
a cross-step transaction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from gitdoc.state.models import (
    CacheLookup,
    DocMappingRecord,
    GenerationCacheEntry,
    PlannedUpdate,
    ProcessedCommit,
    RunEvent,
    StatusCounts,
)


class BaseStateStore(ABC):
    """Durable bookkeeping for commits, plans, generation cache and run events."""

    # --- processed commits ---

    @abstractmethod
    async def mark_commit_processed(
        self,
        commit_id: str,
        status: str,
        error: str = "",
        doc_commit: str = "",
        changed_files: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Upsert the commit row, refreshing its timestamp."""

    @abstractmethod
    async def get_last_processed_commit(self) -> str:
        """Most recent successful commit, or empty string."""

    @abstractmethod
    async def get_resumable_commits(self) -> list[str]:
        """Commits left pending or in_progress, oldest first."""

    @abstractmethod
    async def get_failed_commits(self) -> list[str]:
        """Failed commits, oldest first."""

    @abstractmethod
    async def get_retryable_commits(self) -> list[str]:
        """Failed or in_progress commits, oldest first."""

    @abstractmethod
    async def get_doc_commit_hash(self, commit_id: str) -> str:
        """Documentation commit linked to a code commit, or empty string."""

    @abstractmethod
    async def get_commit(self, commit_id: str) -> ProcessedCommit | None:
        """Full row for one commit."""

    @abstractmethod
    async def list_recent(self, limit: int = 25) -> list[ProcessedCommit]:
        """Newest rows first."""

    @abstractmethod
    async def get_status_counts(self) -> StatusCounts:
        """Row counts per status."""

    # --- planned updates ---

    @abstractmethod
    async def upsert_planned_update(
        self,
        commit_id: str,
        doc_file: str,
        section_id: str,
        strategy: str,
        status: str,
        reason: str = "",
    ) -> None:
        """Idempotent upsert keyed by (commit, doc file, section)."""

    @abstractmethod
    async def list_planned_updates(self, commit_id: str) -> list[PlannedUpdate]:
        """Planned updates recorded for a commit."""

    # --- generation cache ---

    @abstractmethod
    async def get_cached_generation_response(
        self,
        commit_id: str,
        doc_file: str,
        section_id: str,
        provider: str,
        model: str,
        prompt: str,
    ) -> CacheLookup:
        """Exact six-field cache lookup; fingerprint derived from ``prompt``."""

    @abstractmethod
    async def put_cached_generation_response(self, entry: GenerationCacheEntry) -> None:
        """Upsert a cache entry."""

    # --- run events & mappings ---

    @abstractmethod
    async def log_run_event(
        self,
        run_id: str,
        commit_id: str,
        level: str,
        component: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Append a run event."""

    @abstractmethod
    async def list_run_events(self, run_id: str) -> list[RunEvent]:
        """Events of one run in creation order."""

    @abstractmethod
    async def store_mapping(self, commit_id: str, doc_file: str, section: str) -> None:
        """Record which doc target a code commit updated."""

    @abstractmethod
    async def list_mappings(self, commit_id: str) -> list[DocMappingRecord]:
        """Mappings recorded for a commit."""

    def close(self) -> None:
        """Release underlying resources."""
