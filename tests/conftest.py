# tests/conftest.py — v2
"""Shared fixtures: settings, a temp repository, a state store and in-memory doubles.

Nothing here shells out to git or reaches a provider; the commit source and
generation clients are in-process fakes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

import pytest

from gitdoc.config.settings import Settings
from gitdoc.core.errors import CommitSourceError, GenerationError
from gitdoc.core.models import CommitInfo
from gitdoc.docs.markdown import MarkdownUpdater
from gitdoc.git.base_commit_source import BaseCommitSource
from gitdoc.llm.base_client import BaseGenerationClient
from gitdoc.llm.mock_client import MockClient
from gitdoc.orchestrator.updater import Dependencies, Updater
from gitdoc.state.sqlite_store import SqliteStateStore

SAMPLE_README = "# Title\n\n## Recent Changes\nold\n"

SAMPLE_DIFF = (
    "diff --git a/main.go b/main.go\n"
    "index 1111111..2222222 100644\n"
    "--- a/main.go\n"
    "+++ b/main.go\n"
    "@@ -1,2 +1,3 @@\n"
    " package main\n"
    "+// added\n"
    " func main() {}\n"
)


# === DOUBLES ===


class FakeCommitSource(BaseCommitSource):
    """Scriptable in-memory repository.

    ``commits`` is the linear history, oldest first. Per-commit changed
    files, messages and diffs default to a single ``main.go`` change.
    """

    def __init__(self, root: Path, commits: Sequence[str] = ()) -> None:
        self.root = root
        self.commits = list(commits)
        self.files: dict[str, list[str]] = {}
        self.messages: dict[str, str] = {}
        self.diffs: dict[str, str] = {}
        self.staged_commits: list[tuple[list[str], str]] = []
        self.amends: list[list[str]] = []
        self.reverted: list[str] = []
        self.fail_changed_files: set[str] = set()

    def repo_root(self) -> str:
        return str(self.root)

    def current_head(self) -> str:
        return self.commits[-1] if self.commits else ""

    def commit_range(self, from_hash: str, to_hash: str) -> list[CommitInfo]:
        if to_hash not in self.commits:
            return []
        end = self.commits.index(to_hash) + 1
        start = self.commits.index(from_hash) + 1 if from_hash in self.commits else 0
        return [
            CommitInfo(
                id=c, author="dev", email="dev@example.com",
                timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc), subject=f"change {c}",
            )
            for c in self.commits[start:end]
        ]

    def diff(self, commit_id: str) -> str:
        return self.diffs.get(commit_id, SAMPLE_DIFF)

    def message(self, commit_id: str) -> str:
        return self.messages.get(commit_id, f"feat: change {commit_id}")

    def changed_files(self, commit_id: str) -> list[str]:
        if commit_id in self.fail_changed_files:
            raise CommitSourceError(f"git diff-tree {commit_id} failed")
        return list(self.files.get(commit_id, ["main.go"]))

    def stage_and_commit(self, paths: Sequence[str], message: str) -> str:
        if not paths:
            return ""
        self.staged_commits.append((list(paths), message))
        return f"doc{len(self.staged_commits)}"

    def stage_and_amend(self, paths: Sequence[str]) -> str:
        if not paths:
            return ""
        self.amends.append(list(paths))
        return f"amend{len(self.amends)}"

    def revert(self, commit_id: str) -> None:
        self.reverted.append(commit_id)


class ScriptedClient(BaseGenerationClient):
    """Replays a script of responses; ``Exception`` entries are raised."""

    def __init__(self, name: str = "scripted", script: Sequence[object] = ()) -> None:
        self._name = name
        self.script = list(script)
        self.calls = 0
        self.prompts: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    async def _complete(self, prompt: str) -> str:
        self.calls += 1
        self.prompts.append(prompt)
        item = self.script.pop(0) if self.script else "generated"
        if isinstance(item, Exception):
            raise item
        return str(item)


def failing_client(name: str, count: int) -> ScriptedClient:
    return ScriptedClient(name, [GenerationError(f"{name} down") for _ in range(count)])


# === FIXTURES ===


@pytest.fixture
def settings() -> Settings:
    """Mock provider, README target, no doc commits."""
    return Settings(
        _env_file=None,
        llm_provider="mock",
        doc_files=["README.md"],
        git_commit_doc_updates=False,
    )


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """Working tree holding a README with a Recent Changes section."""
    root = tmp_path / "repo"
    root.mkdir()
    (root / "README.md").write_text(SAMPLE_README, encoding="utf-8")
    return root


@pytest.fixture
def store(tmp_path: Path):
    s = SqliteStateStore(tmp_path / "state" / "state.db")
    yield s
    s.close()


@pytest.fixture
def commit_source(repo: Path) -> FakeCommitSource:
    return FakeCommitSource(repo, ["abc123"])


@pytest.fixture
def make_updater(settings, commit_source, store):
    """Build an Updater; override any collaborator by keyword."""

    def _make(**overrides) -> Updater:
        deps = Dependencies(
            settings=overrides.get("settings", settings),
            commit_source=overrides.get("commit_source", commit_source),
            state=overrides.get("state", store),
            doc_updater=overrides.get("doc_updater", MarkdownUpdater()),
            llm=overrides.get("llm", MockClient()),
        )
        return Updater(deps)

    return _make


@pytest.fixture
def fast_backoff(monkeypatch):
    """Collapse retry backoff to zero."""
    monkeypatch.setattr("gitdoc.llm.resilient.BASE_DELAY_S", 0.0)
