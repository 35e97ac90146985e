# src/git/cli_source.py — v1
"""Commit source backed by the ``git`` command line."""

from __future__ import annotations

import logging
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Sequence

from gitdoc.core.errors import CommitSourceError
from gitdoc.core.models import CommitInfo
from gitdoc.git.base_commit_source import BaseCommitSource

logger = logging.getLogger(__name__)

_LOG_FORMAT = "--pretty=format:%H|%an|%ae|%at|%s"

Runner = Callable[[Sequence[str], Path], str]


def _default_runner(args: Sequence[str], cwd: Path) -> str:
    try:
        proc = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except OSError as e:
        raise CommitSourceError(f"git {' '.join(args)} failed: {e}") from e
    if proc.returncode != 0:
        raise CommitSourceError(
            f"git {' '.join(args)} failed: exit status {proc.returncode} ({proc.stderr.strip()})"
        )
    return proc.stdout


def discover_repo_root(cwd: Path | str | None = None) -> str:
    """Return the top-level directory of the repository containing ``cwd``."""
    try:
        out = _default_runner(["rev-parse", "--show-toplevel"], Path(cwd or "."))
    except CommitSourceError as e:
        raise CommitSourceError(f"failed to detect git repository root: {e}") from e
    return out.strip()


class GitCommitSource(BaseCommitSource):
    """Runs git subcommands in a fixed repository root."""

    def __init__(self, repo_root: Path | str, runner: Runner | None = None) -> None:
        self._root = Path(repo_root)
        self._runner = runner or _default_runner

    def _run(self, *args: str) -> str:
        logger.debug("git %s", " ".join(args))
        return self._runner(list(args), self._root)

    def repo_root(self) -> str:
        return str(self._root)

    def current_head(self) -> str:
        return self._run("rev-parse", "HEAD").strip()

    def commit_range(self, from_hash: str, to_hash: str) -> list[CommitInfo]:
        args = ["log", _LOG_FORMAT, "--reverse"]
        args.append(f"{from_hash}..{to_hash}" if from_hash else to_hash)
        out = self._run(*args).strip()
        if not out:
            return []

        commits: list[CommitInfo] = []
        for line in out.splitlines():
            parts = line.split("|", 4)
            if len(parts) != 5:
                continue
            try:
                ts = datetime.fromtimestamp(int(parts[3]), tz=timezone.utc)
            except ValueError as e:
                raise CommitSourceError(f"invalid unix timestamp {parts[3]!r}") from e
            commits.append(
                CommitInfo(
                    id=parts[0], author=parts[1], email=parts[2], timestamp=ts, subject=parts[4]
                )
            )
        return commits

    def diff(self, commit_id: str) -> str:
        return self._run("show", "--unified=3", commit_id)

    def message(self, commit_id: str) -> str:
        return self._run("log", "-1", "--pretty=%B", commit_id).strip()

    def changed_files(self, commit_id: str) -> list[str]:
        out = self._run("diff-tree", "--no-commit-id", "--name-only", "-r", commit_id)
        return [line.strip().replace("\\", "/") for line in out.splitlines() if line.strip()]

    def stage_and_commit(self, paths: Sequence[str], message: str) -> str:
        if not paths:
            return ""
        self._run("add", *paths)
        self._run("commit", "-m", message)
        return self.current_head()

    def stage_and_amend(self, paths: Sequence[str]) -> str:
        if not paths:
            return ""
        self._run("add", *paths)
        self._run("commit", "--amend", "--no-edit")
        return self.current_head()

    def revert(self, commit_id: str) -> None:
        self._run("revert", "--no-edit", commit_id)
