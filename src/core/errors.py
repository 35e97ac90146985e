# src/core/errors.py — v1
"""Exception taxonomy shared by every gitdoc module.

Per-commit failures are recorded as ``str(exc)`` in the state store, so each
error carries its context (provider, attempt, commit, path) in the message.
"""

from __future__ import annotations


class GitDocError(Exception):
    """Base class for all gitdoc errors."""


class ConfigurationError(GitDocError):
    """Raised when configuration is missing or internally inconsistent."""


class UnsupportedProviderError(ConfigurationError):
    """Raised when a generation provider is not registered."""


class StateStoreError(GitDocError):
    """Raised when the persistent store cannot complete an operation."""


class CommitSourceError(GitDocError):
    """Raised when the git command layer fails."""


class GenerationError(GitDocError):
    """A provider could not produce usable content."""

    def __init__(self, message: str, provider: str = "") -> None:
        self.provider = provider
        super().__init__(message)


class GenerationCancelled(GenerationError):
    """The caller cancelled generation; never retried."""


class ContentValidationError(GitDocError):
    """Generated content was rejected before touching the document."""


class TargetNotFoundError(GitDocError):
    """The resolved documentation file does not exist."""


class SectionNotFoundError(GitDocError):
    """A markdown section could not be located."""


class DiffParseError(GitDocError):
    """A unified diff could not be parsed."""


class AlreadyRunningError(GitDocError):
    """Another gitdoc run holds the repository lock."""

    def __init__(self, pid: int) -> None:
        self.pid = pid
        super().__init__(f"gitdoc is already running (pid={pid})")
