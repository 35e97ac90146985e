# src/git/base_commit_source.py — v1
"""Abstract commit source: the updater's only window onto version control."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from gitdoc.core.models import CommitInfo


class BaseCommitSource(ABC):
    """Capability set the updater needs from a repository."""

    @abstractmethod
    def repo_root(self) -> str:
        """Absolute path of the working tree root."""

    @abstractmethod
    def current_head(self) -> str:
        """Commit id of HEAD."""

    @abstractmethod
    def commit_range(self, from_hash: str, to_hash: str) -> list[CommitInfo]:
        """Commits in ``from_hash..to_hash`` oldest first.

        ``from_hash`` is exclusive, ``to_hash`` inclusive; an empty
        ``from_hash`` yields every ancestor of ``to_hash``.
        """

    @abstractmethod
    def diff(self, commit_id: str) -> str:
        """Unified diff introduced by the commit."""

    @abstractmethod
    def message(self, commit_id: str) -> str:
        """Full commit message."""

    @abstractmethod
    def changed_files(self, commit_id: str) -> list[str]:
        """Repository-relative paths touched by the commit."""

    @abstractmethod
    def stage_and_commit(self, paths: Sequence[str], message: str) -> str:
        """Stage ``paths`` and create a new commit; returns its id."""

    @abstractmethod
    def stage_and_amend(self, paths: Sequence[str]) -> str:
        """Stage ``paths`` into HEAD without editing its message; returns the new id."""

    @abstractmethod
    def revert(self, commit_id: str) -> None:
        """Create a commit reverting ``commit_id``."""
