# src/orchestrator/updater.py — v1
"""Commit-processing control loop.

Each commit walks ``pending -> in_progress -> {success, failed, skipped}``
and is handled strictly one at a time, oldest first. A failing commit is
recorded and the loop moves on; nothing a single commit does can abort
the run. Commits left pending or in_progress by an interrupted run are
picked up again, ahead of new ones, on the next ``update_new_commits``.

Usage:
    updater = Updater(Dependencies(settings, commit_source, store, MarkdownUpdater(), client))
    summary = await updater.update_new_commits()
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Sequence

from gitdoc.config.settings import Settings
from gitdoc.core.cancel import CancelToken
from gitdoc.core.errors import TargetNotFoundError
from gitdoc.core.models import Summary
from gitdoc.docs.base_document_updater import BaseDocumentUpdater
from gitdoc.docs.fileio import atomic_write_file, detect_line_ending, normalize_line_endings
from gitdoc.git.base_commit_source import BaseCommitSource
from gitdoc.llm.base_client import BaseGenerationClient
from gitdoc.logging.context import (
    clear_context,
    set_commit_context,
    set_component_context,
    set_run_context,
)
from gitdoc.orchestrator.prompt import build_prompt, validate_generated_section
from gitdoc.state.base_state_store import BaseStateStore
from gitdoc.state.fingerprint import prompt_fingerprint
from gitdoc.state.models import GenerationCacheEntry

logger = logging.getLogger(__name__)

FALLBACK_DOC_FILE = "README.md"
_STRATEGY = "inferred"


@dataclass
class Dependencies:
    """Collaborators injected into the updater."""

    settings: Settings
    commit_source: BaseCommitSource
    state: BaseStateStore
    doc_updater: BaseDocumentUpdater
    llm: BaseGenerationClient


def merge_unique(first: Iterable[str], second: Iterable[str]) -> list[str]:
    """Concatenate keeping first occurrences, dropping blanks."""
    seen: set[str] = set()
    out: list[str] = []
    for item in (*first, *second):
        if not item or item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


def new_run_id() -> str:
    return f"run-{time.time_ns()}"


class Updater:
    """Drives commits through the plan / generate / apply pipeline."""

    def __init__(self, deps: Dependencies) -> None:
        self._deps = deps

    @property
    def deps(self) -> Dependencies:
        return self._deps

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def update_new_commits(
        self, dry_run: bool = False, cancel: CancelToken | None = None
    ) -> Summary:
        """Resume interrupted commits, then process everything after the last success.

        Raises:
            StateStoreError, CommitSourceError: If the work list cannot be built.
        """
        state = self._deps.state
        resumable = await state.get_resumable_commits()
        last = await state.get_last_processed_commit()
        head = self._deps.commit_source.current_head()
        commits = self._deps.commit_source.commit_range(last, head)

        ids = merge_unique(resumable, [c.id for c in commits])
        logger.info(
            "Collected %d commits (%d resumable) after %s",
            len(ids), len(resumable), last or "<root>",
        )
        return await self.update_commit_list(ids, dry_run=dry_run, cancel=cancel)

    async def update_range_commits(
        self,
        from_hash: str,
        to_hash: str = "",
        dry_run: bool = False,
        cancel: CancelToken | None = None,
    ) -> Summary:
        """Process ``from_hash..to_hash``; a blank ``to_hash`` means HEAD."""
        to_commit = to_hash.strip() or self._deps.commit_source.current_head()
        commits = self._deps.commit_source.commit_range(from_hash.strip(), to_commit)
        return await self.update_commit_list(
            [c.id for c in commits], dry_run=dry_run, cancel=cancel
        )

    async def update_commit_list(
        self,
        commit_ids: Sequence[str],
        dry_run: bool = False,
        cancel: CancelToken | None = None,
    ) -> Summary:
        """Process ``commit_ids`` in order and return aggregate counts.

        Per-commit errors are recorded on the commit and never raised.
        """
        summary = Summary()
        run_id = new_run_id()
        state = self._deps.state

        set_run_context(run_id)
        set_component_context("orchestrator")
        logger.info("Update loop started: %d commits (dry_run=%s)", len(commit_ids), dry_run)
        await self._event(run_id, "", "info", "orchestrator", "update loop started",
                          {"commits": len(commit_ids)})

        try:
            for commit_id in commit_ids:
                summary.processed += 1
                set_commit_context(commit_id)
                try:
                    await state.mark_commit_processed(
                        commit_id, "pending", metadata={"run_id": run_id}
                    )
                except Exception as e:
                    summary.failed += 1
                    logger.error("Failed to mark %s pending: %s", commit_id, e)
                    await self._event(run_id, commit_id, "error", "state",
                                      "failed to mark pending", {"error": str(e)})
                    continue

                try:
                    status = await self.process_single_commit(run_id, commit_id, dry_run, cancel)
                except Exception as e:
                    summary.failed += 1
                    logger.warning("Commit %s failed: %s", commit_id, e)
                    await self._best_effort(
                        "mark commit failed",
                        state.mark_commit_processed(commit_id, "failed", error=str(e)),
                    )
                    await self._event(run_id, commit_id, "error", "orchestrator",
                                      "commit processing failed", {"error": str(e)})
                    continue

                summary.record(status)
                logger.info("Commit %s -> %s", commit_id, status)
        finally:
            set_commit_context(None)

        counts = summary.model_dump()
        logger.info(
            "Update loop finished: processed=%d success=%d failed=%d skipped=%d",
            summary.processed, summary.success, summary.failed, summary.skipped,
        )
        await self._event(run_id, "", "info", "orchestrator", "update loop finished", counts)
        clear_context()
        return summary

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def process_single_commit(
        self,
        run_id: str,
        commit_id: str,
        dry_run: bool = False,
        cancel: CancelToken | None = None,
    ) -> str:
        """Run one commit through the pipeline; returns ``success`` or ``skipped``.

        Raises:
            Exception: Any failure; the caller records it on the commit.
        """
        deps = self._deps
        state = deps.state
        source = deps.commit_source

        await state.mark_commit_processed(commit_id, "in_progress")

        changed_files = source.changed_files(commit_id)
        if not changed_files:
            await state.mark_commit_processed(commit_id, "skipped")
            return "skipped"

        message = source.message(commit_id)
        diff = source.diff(commit_id)

        doc_file, section = self.resolve_target(changed_files)
        doc_path = Path(source.repo_root()) / doc_file
        try:
            original = doc_path.read_bytes().decode("utf-8", errors="surrogateescape")
        except FileNotFoundError as e:
            raise TargetNotFoundError(f"target doc file not found: {doc_file}") from e

        async def plan(status: str, reason: str = "") -> None:
            await self._best_effort(
                "persist planned update",
                state.upsert_planned_update(commit_id, doc_file, section, _STRATEGY, status, reason),
            )

        try:
            await state.upsert_planned_update(commit_id, doc_file, section, _STRATEGY, "planned")
        except Exception as e:
            await self._event(run_id, commit_id, "warn", "state",
                              "failed to persist planned update", {"error": str(e)})

        prompt = build_prompt(message, diff)
        new_section = await self._generate(
            run_id, commit_id, doc_file, section, prompt, cancel, plan
        )

        try:
            new_section = validate_generated_section(new_section)
            updated = deps.doc_updater.replace_section(original, section, new_section)
        except Exception as e:
            await plan("failed", str(e))
            raise

        updated = normalize_line_endings(updated, detect_line_ending(original))

        if updated.strip() == original.strip():
            await plan("unchanged", "no document delta")
            await state.mark_commit_processed(commit_id, "skipped", changed_files=[])
            return "skipped"

        if dry_run:
            await plan("applied", "dry-run")
            await state.mark_commit_processed(commit_id, "success", changed_files=[doc_file])
            return "success"

        try:
            atomic_write_file(doc_path, updated.encode("utf-8", errors="surrogateescape"))
        except OSError as e:
            await plan("failed", str(e))
            raise

        doc_commit = ""
        if deps.settings.git_commit_doc_updates:
            if deps.settings.git_amend_original:
                doc_commit = source.stage_and_amend([doc_file])
            else:
                doc_commit = source.stage_and_commit(
                    [doc_file], deps.settings.doc_commit_message_for(commit_id)
                )

        await state.mark_commit_processed(
            commit_id, "success", doc_commit=doc_commit, changed_files=[doc_file]
        )
        await state.store_mapping(commit_id, doc_file, section)
        await plan("applied")
        return "success"

    async def _generate(
        self,
        run_id: str,
        commit_id: str,
        doc_file: str,
        section: str,
        prompt: str,
        cancel: CancelToken | None,
        plan: Callable[..., Awaitable[None]],
    ) -> str:
        """Cached response when all six key fields match, else a fresh generation."""
        state = self._deps.state
        provider = self._deps.llm.name
        model = self._deps.settings.llm_model

        try:
            lookup = await state.get_cached_generation_response(
                commit_id, doc_file, section, provider, model, prompt
            )
        except Exception as e:
            await self._event(run_id, commit_id, "warn", "state",
                              "failed to read llm cache", {"error": str(e)})
        else:
            if lookup.hit:
                await self._event(run_id, commit_id, "info", "llm", "cache hit",
                                  {"doc_file": doc_file, "section": section})
                return lookup.response

        set_component_context("llm", step="generate")
        try:
            response = await self._deps.llm.generate(prompt, cancel)
        except Exception as e:
            await plan("failed", str(e))
            raise
        finally:
            set_component_context("orchestrator")

        await self._best_effort(
            "write generation cache",
            state.put_cached_generation_response(
                GenerationCacheEntry(
                    commit_id=commit_id,
                    doc_file=doc_file,
                    section_id=section,
                    provider=provider,
                    model=model,
                    prompt_fingerprint=prompt_fingerprint(prompt),
                    response=response,
                )
            ),
        )
        return response

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def resolve_target(self, changed_files: Sequence[str]) -> tuple[str, str]:
        """Pick (doc file, section) for a commit.

        First mapping whose pattern, stripped of ``*``, occurs in a changed
        path wins (changed-file order, then mapping order). Otherwise the
        first configured doc file, else README.md, with the default section.
        """
        settings = self._deps.settings
        for changed in changed_files:
            for mapping in settings.mappings:
                if mapping.code_pattern.strip("*") in changed:
                    return mapping.doc_file, mapping.section

        if settings.doc_files:
            return settings.doc_files[0], settings.default_section
        return FALLBACK_DOC_FILE, settings.default_section

    async def _event(
        self,
        run_id: str,
        commit_id: str,
        level: str,
        component: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self._best_effort(
            "log run event",
            self._deps.state.log_run_event(run_id, commit_id, level, component, message, metadata),
        )

    @staticmethod
    async def _best_effort(what: str, awaitable: Awaitable[Any]) -> None:
        """Await a bookkeeping write whose failure must not change the outcome."""
        try:
            await awaitable
        except Exception as e:
            logger.warning("Best-effort %s failed: %s", what, e)
