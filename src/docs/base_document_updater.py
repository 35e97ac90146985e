# src/docs/base_document_updater.py — v1
"""Abstract document updater: section-level read and replace on text."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseDocumentUpdater(ABC):
    """Pure text transformation; never touches the filesystem."""

    @abstractmethod
    def replace_section(self, content: str, section: str, new_content: str) -> str:
        """Return ``content`` with ``section``'s body replaced (or appended)."""

    @abstractmethod
    def extract_section(self, content: str, section: str) -> str:
        """Return the body of ``section``.

        Raises:
            SectionNotFoundError: If no heading matches.
        """
