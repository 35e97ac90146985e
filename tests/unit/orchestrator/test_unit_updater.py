# tests/unit/orchestrator/test_unit_updater.py — v1
"""Tests for orchestrator/updater.py — commit state machine and pipeline steps."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from gitdoc.config.settings import DocMapping
from gitdoc.core.cancel import CancelToken
from gitdoc.core.errors import GenerationError, StateStoreError
from gitdoc.llm.mock_client import MockClient
from gitdoc.llm.resilient import ResilientClient
from gitdoc.orchestrator.updater import merge_unique, new_run_id
from tests.conftest import SAMPLE_README, FakeCommitSource, ScriptedClient, failing_client


def _readme(repo) -> str:
    return (repo / "README.md").read_bytes().decode("utf-8")


class TestExampleScenario:
    @pytest.mark.asyncio
    async def test_single_commit_success(self, make_updater, commit_source, store, repo):
        commit_source.commits = ["c1"]
        commit_source.files["c1"] = ["src/a.txt"]
        commit_source.messages["c1"] = "feat: add thing"
        llm = ScriptedClient("scripted", ["- added thing"])
        updater = make_updater(llm=llm)

        summary = await updater.update_new_commits()

        assert summary.model_dump() == {"processed": 1, "success": 1, "failed": 0, "skipped": 0}
        assert llm.calls == 1
        assert _readme(repo) == "# Title\n\n## Recent Changes\n- added thing"

        row = await store.get_commit("c1")
        assert row.status == "success"
        assert row.changed_files == ["README.md"]
        plans = await store.list_planned_updates("c1")
        assert [(p.doc_file, p.section_id, p.strategy, p.status) for p in plans] == [
            ("README.md", "Recent Changes", "inferred", "applied")
        ]
        mappings = await store.list_mappings("c1")
        assert [(m.doc_file, m.section) for m in mappings] == [("README.md", "Recent Changes")]

    @pytest.mark.asyncio
    async def test_rerun_finds_nothing_new(self, make_updater, commit_source, store):
        commit_source.commits = ["c1"]
        llm = ScriptedClient("scripted", ["- added thing"])
        updater = make_updater(llm=llm)

        await updater.update_new_commits()
        second = await updater.update_new_commits()

        assert second.model_dump() == {"processed": 0, "success": 0, "failed": 0, "skipped": 0}
        assert llm.calls == 1
        assert await store.get_last_processed_commit() == "c1"

    @pytest.mark.asyncio
    async def test_prompt_contains_message_and_summary(self, make_updater, commit_source):
        commit_source.commits = ["c1"]
        commit_source.messages["c1"] = "feat: add thing"
        llm = ScriptedClient("scripted", ["body"])

        await make_updater(llm=llm).update_commit_list(["c1"])

        prompt = llm.prompts[0]
        assert prompt.startswith("Update docs for this commit.\nCommit message: feat: add thing\nDiff:\n")
        assert "Files changed: 1\n- main.go (hunks=1, +1, -0)" in prompt
        assert prompt.endswith("\nOutput updated section content only.")


class TestSkips:
    @pytest.mark.asyncio
    async def test_zero_changed_files_never_generates(self, make_updater, commit_source, store):
        commit_source.files["c1"] = []
        llm = ScriptedClient("scripted", ["unused"])

        summary = await make_updater(llm=llm).update_commit_list(["c1"])

        assert summary.skipped == 1
        assert llm.calls == 0
        assert (await store.get_commit("c1")).status == "skipped"

    @pytest.mark.asyncio
    async def test_identical_content_is_unchanged(self, make_updater, store, repo):
        llm = ScriptedClient("scripted", ["old"])

        summary = await make_updater(llm=llm).update_commit_list(["c1"])

        assert summary.skipped == 1
        assert _readme(repo) == SAMPLE_README
        row = await store.get_commit("c1")
        assert row.status == "skipped"
        assert row.changed_files == []
        plan = (await store.list_planned_updates("c1"))[0]
        assert (plan.status, plan.reason) == ("unchanged", "no document delta")

    @pytest.mark.asyncio
    async def test_rerun_of_applied_commit_is_idempotent(
        self, make_updater, settings, commit_source, repo
    ):
        settings = settings.model_copy(update={"git_commit_doc_updates": True})
        llm = ScriptedClient("scripted", ["- first", "- second"])
        updater = make_updater(settings=settings, llm=llm)

        first = await updater.update_commit_list(["c1"])
        after_first = _readme(repo)
        second = await updater.update_commit_list(["c1"])

        assert first.success == 1
        assert second.skipped == 1
        assert llm.calls == 1
        assert _readme(repo) == after_first
        assert len(commit_source.staged_commits) == 1


class TestFailures:
    @pytest.mark.asyncio
    async def test_missing_doc_file_fails_before_generation(self, make_updater, store, repo):
        (repo / "README.md").unlink()
        llm = ScriptedClient("scripted", ["unused"])

        summary = await make_updater(llm=llm).update_commit_list(["c1"])

        assert summary.model_dump() == {"processed": 1, "success": 0, "failed": 1, "skipped": 0}
        assert llm.calls == 0
        row = await store.get_commit("c1")
        assert row.status == "failed"
        assert "target doc file not found: README.md" in row.error

    @pytest.mark.asyncio
    async def test_generation_failure_marks_plan_failed(self, make_updater, store, repo):
        llm = failing_client("down", 1)

        summary = await make_updater(llm=llm).update_commit_list(["c1"])

        assert summary.failed == 1
        assert _readme(repo) == SAMPLE_README
        row = await store.get_commit("c1")
        assert "down down" in row.error
        plan = (await store.list_planned_updates("c1"))[0]
        assert plan.status == "failed"

    @pytest.mark.asyncio
    async def test_oversized_output_rejected(self, make_updater, store, repo):
        llm = ScriptedClient("scripted", ["x" * 25001])

        summary = await make_updater(llm=llm).update_commit_list(["c1"])

        assert summary.failed == 1
        assert _readme(repo) == SAMPLE_README
        assert (await store.get_commit("c1")).error == "generated section content exceeds max size"

    @pytest.mark.asyncio
    async def test_failure_is_isolated_per_commit(self, make_updater, commit_source, store):
        commit_source.fail_changed_files.add("bad")
        llm = ScriptedClient("scripted", ["- one", "- two"])

        summary = await make_updater(llm=llm).update_commit_list(["good1", "bad", "good2"])

        assert summary.model_dump() == {"processed": 3, "success": 2, "failed": 1, "skipped": 0}
        assert (await store.get_commit("bad")).status == "failed"
        assert (await store.get_commit("good2")).status == "success"

    @pytest.mark.asyncio
    async def test_mark_pending_failure_counts_as_failed(self, make_updater, store):
        store.mark_commit_processed = AsyncMock(side_effect=StateStoreError("disk full"))

        summary = await make_updater().update_commit_list(["c1", "c2"])

        assert summary.model_dump() == {"processed": 2, "success": 0, "failed": 2, "skipped": 0}

    @pytest.mark.asyncio
    async def test_cache_read_failure_is_treated_as_miss(self, make_updater, store):
        store.get_cached_generation_response = AsyncMock(side_effect=StateStoreError("locked"))
        llm = ScriptedClient("scripted", ["- fresh"])

        summary = await make_updater(llm=llm).update_commit_list(["c1"])

        assert summary.success == 1
        assert llm.calls == 1

    @pytest.mark.asyncio
    async def test_cache_write_failure_is_tolerated(self, make_updater, store):
        store.put_cached_generation_response = AsyncMock(side_effect=StateStoreError("locked"))

        summary = await make_updater().update_commit_list(["c1"])

        assert summary.success == 1

    @pytest.mark.asyncio
    async def test_event_log_failure_is_tolerated(self, make_updater, store):
        store.log_run_event = AsyncMock(side_effect=StateStoreError("locked"))

        summary = await make_updater().update_commit_list(["c1"])

        assert summary.success == 1


class TestCommitting:
    @pytest.mark.asyncio
    async def test_dry_run_never_writes_or_commits(self, make_updater, settings, commit_source, store, repo):
        settings = settings.model_copy(update={"git_commit_doc_updates": True})

        summary = await make_updater(settings=settings).update_commit_list(["c1"], dry_run=True)

        assert summary.success == 1
        assert _readme(repo) == SAMPLE_README
        assert commit_source.staged_commits == []
        assert commit_source.amends == []
        row = await store.get_commit("c1")
        assert row.changed_files == ["README.md"]
        assert row.doc_commit == ""
        plan = (await store.list_planned_updates("c1"))[0]
        assert (plan.status, plan.reason) == ("applied", "dry-run")

    @pytest.mark.asyncio
    async def test_stage_and_commit_path(self, make_updater, settings, commit_source, store):
        settings = settings.model_copy(update={"git_commit_doc_updates": True})

        await make_updater(settings=settings).update_commit_list(["abc123"])

        assert commit_source.staged_commits == [(["README.md"], "docs: auto-update for abc123")]
        assert commit_source.amends == []
        assert await store.get_doc_commit_hash("abc123") == "doc1"

    @pytest.mark.asyncio
    async def test_amend_path_is_exclusive(self, make_updater, settings, commit_source, store):
        settings = settings.model_copy(
            update={"git_commit_doc_updates": True, "git_amend_original": True}
        )

        await make_updater(settings=settings).update_commit_list(["abc123"])

        assert commit_source.amends == [["README.md"]]
        assert commit_source.staged_commits == []
        assert await store.get_doc_commit_hash("abc123") == "amend1"

    @pytest.mark.asyncio
    async def test_commit_disabled_writes_only(self, make_updater, commit_source, store, repo):
        await make_updater().update_commit_list(["c1"])

        assert commit_source.staged_commits == []
        assert _readme(repo) != SAMPLE_README
        assert await store.get_doc_commit_hash("c1") == ""

    @pytest.mark.asyncio
    async def test_crlf_document_keeps_crlf(self, make_updater, repo):
        (repo / "README.md").write_bytes(b"# Title\r\n\r\n## Recent Changes\r\nold\r\n")
        llm = ScriptedClient("scripted", ["line a\nline b"])

        await make_updater(llm=llm).update_commit_list(["c1"])

        raw = (repo / "README.md").read_bytes()
        assert b"line a\r\nline b" in raw
        assert b"\n" not in raw.replace(b"\r\n", b"")

    @pytest.mark.asyncio
    async def test_latin1_document_bytes_survive(self, make_updater, store, repo):
        (repo / "README.md").write_bytes(b"# Caf\xe9\n\n## Recent Changes\nold\n")
        llm = ScriptedClient("scripted", ["new entry"])

        summary = await make_updater(llm=llm).update_commit_list(["c1"])

        assert summary.success == 1
        assert (await store.get_commit("c1")).status == "success"
        raw = (repo / "README.md").read_bytes()
        assert raw.startswith(b"# Caf\xe9\n\n## Recent Changes\nnew entry")
        assert b"old" not in raw


class TestResume:
    @pytest.mark.asyncio
    async def test_resumable_first_without_duplicates(self, make_updater, commit_source, store):
        commit_source.commits = ["c1", "c2", "c3"]
        await store.mark_commit_processed("c1", "success")
        await store.mark_commit_processed("c3", "in_progress")
        await store.mark_commit_processed("x9", "pending")
        llm = ScriptedClient("scripted", ["- a", "- b", "- c"])
        updater = make_updater(llm=llm)
        order: list[str] = []
        original = updater.process_single_commit

        async def spy(run_id, commit_id, dry_run=False, cancel=None):
            order.append(commit_id)
            return await original(run_id, commit_id, dry_run, cancel)

        updater.process_single_commit = spy

        summary = await updater.update_new_commits()

        assert order == ["c3", "x9", "c2"]
        assert summary.processed == 3

    @pytest.mark.asyncio
    async def test_range_bounds(self, make_updater, commit_source):
        commit_source.commits = ["c1", "c2", "c3", "c4"]
        updater = make_updater()

        summary = await updater.update_range_commits(" c1 ", "c3")

        assert summary.processed == 2

    @pytest.mark.asyncio
    async def test_range_defaults_to_head(self, make_updater, commit_source):
        commit_source.commits = ["c1", "c2", "c3"]

        summary = await make_updater().update_range_commits("c1")

        assert summary.processed == 2


class TestRunEvents:
    @pytest.mark.asyncio
    async def test_start_and_finish_events(self, make_updater, store, monkeypatch):
        monkeypatch.setattr("gitdoc.orchestrator.updater.new_run_id", lambda: "run-42")

        await make_updater().update_commit_list(["c1"])

        events = await store.list_run_events("run-42")
        assert events[0].message == "update loop started"
        assert events[0].metadata == {"commits": 1}
        assert events[-1].message == "update loop finished"
        assert events[-1].metadata == {"processed": 1, "success": 1, "failed": 0, "skipped": 0}

    @pytest.mark.asyncio
    async def test_cache_hit_event(self, make_updater, store, monkeypatch):
        monkeypatch.setattr("gitdoc.orchestrator.updater.new_run_id", lambda: "run-1")
        llm = ScriptedClient("scripted", ["- first"])
        updater = make_updater(llm=llm)
        await updater.update_commit_list(["c1"])

        monkeypatch.setattr("gitdoc.orchestrator.updater.new_run_id", lambda: "run-2")
        await updater.update_commit_list(["c1"])

        events = await store.list_run_events("run-2")
        hits = [e for e in events if e.message == "cache hit"]
        assert len(hits) == 1
        assert hits[0].component == "llm"
        assert hits[0].metadata == {"doc_file": "README.md", "section": "Recent Changes"}

    @pytest.mark.asyncio
    async def test_failure_event(self, make_updater, store, repo, monkeypatch):
        monkeypatch.setattr("gitdoc.orchestrator.updater.new_run_id", lambda: "run-7")
        (repo / "README.md").unlink()

        await make_updater().update_commit_list(["c1"])

        events = await store.list_run_events("run-7")
        failed = [e for e in events if e.message == "commit processing failed"]
        assert failed[0].level == "error"
        assert failed[0].commit_id == "c1"


class TestResolveTarget:
    def test_first_mapping_match(self, make_updater, settings):
        settings = settings.model_copy(update={"mappings": [
            DocMapping(code_pattern="src/api/*", doc_file="docs/api.md", section="Endpoints"),
            DocMapping(code_pattern="src/*", doc_file="docs/src.md", section="Source"),
        ]})
        updater = make_updater(settings=settings)
        assert updater.resolve_target(["lib/x.py", "src/api/users.py"]) == ("docs/api.md", "Endpoints")
        assert updater.resolve_target(["src/core.py"]) == ("docs/src.md", "Source")

    def test_changed_file_order_wins(self, make_updater, settings):
        settings = settings.model_copy(update={"mappings": [
            DocMapping(code_pattern="src/api/*", doc_file="docs/api.md", section="Endpoints"),
            DocMapping(code_pattern="cli/*", doc_file="docs/cli.md", section="Commands"),
        ]})
        updater = make_updater(settings=settings)
        assert updater.resolve_target(["cli/main.py", "src/api/x.py"]) == ("docs/cli.md", "Commands")

    def test_wildcard_stripped_substring_match(self, make_updater, settings):
        settings = settings.model_copy(update={"mappings": [
            DocMapping(code_pattern="*.go", doc_file="docs/go.md", section="Go"),
        ]})
        assert make_updater(settings=settings).resolve_target(["cmd/main.go"]) == ("docs/go.md", "Go")

    def test_defaults(self, make_updater, settings):
        assert make_updater().resolve_target(["x.py"]) == ("README.md", "Recent Changes")
        settings = settings.model_copy(update={"doc_files": []})
        assert make_updater(settings=settings).resolve_target(["x.py"]) == ("README.md", "Recent Changes")
        settings = settings.model_copy(update={"doc_files": ["docs/guide.md"]})
        assert make_updater(settings=settings).resolve_target(["x.py"]) == ("docs/guide.md", "Recent Changes")


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_token_fails_remaining_commits(self, make_updater, store, fast_backoff):
        token = CancelToken()
        token.cancel("shutdown")
        llm = ResilientClient([MockClient()], max_retries=3)

        summary = await make_updater(llm=llm).update_commit_list(["c1", "c2"], cancel=token)

        assert summary.failed == 2
        assert (await store.get_commit("c1")).error == "shutdown"


class TestHelpers:
    def test_merge_unique(self):
        assert merge_unique(["a", "", "b"], ["b", "c", "a", ""]) == ["a", "b", "c"]

    def test_run_id_format(self):
        run_id = new_run_id()
        assert run_id.startswith("run-")
        assert run_id[4:].isdigit()

    def test_fake_source_range(self, repo):
        source = FakeCommitSource(repo, ["a", "b", "c"])
        assert [c.id for c in source.commit_range("", "b")] == ["a", "b"]
        assert [c.id for c in source.commit_range("a", "c")] == ["b", "c"]

    @pytest.mark.asyncio
    async def test_generation_error_text_recorded(self, make_updater, store):
        llm = ScriptedClient("scripted", [GenerationError("quota exceeded")])
        await make_updater(llm=llm).update_commit_list(["c1"])
        assert (await store.get_commit("c1")).error == "quota exceeded"
