# src/docs/markdown.py — v1
"""Markdown section updater keyed on heading titles."""

from __future__ import annotations

from gitdoc.core.errors import SectionNotFoundError
from gitdoc.docs.base_document_updater import BaseDocumentUpdater

# Level reported for non-heading lines; deeper than any real heading.
_NOT_A_HEADING = 7


class MarkdownUpdater(BaseDocumentUpdater):
    """Replaces the body under the first heading whose title matches.

    Titles compare case-insensitively after stripping ``#`` markers and
    whitespace. A section runs until the next heading of the same or a
    higher level. Blank lines right after the heading stay with it.
    """

    def extract_section(self, content: str, section: str) -> str:
        lines = content.split("\n")
        bounds = _find_section_bounds(lines, section)
        if bounds is None:
            raise SectionNotFoundError(f"section {section!r} not found")
        start, end = bounds
        return "\n".join(lines[start:end])

    def replace_section(self, content: str, section: str, new_content: str) -> str:
        lines = content.split("\n")
        trimmed = new_content.strip()
        bounds = _find_section_bounds(lines, section)
        if bounds is None:
            out = content.rstrip("\n")
            if not content.endswith("\n"):
                out += "\n"
            return f"{out}\n## {section}\n\n{trimmed}\n"

        start, end = bounds
        body = trimmed.split("\n") if trimmed else []
        return "\n".join(lines[:start] + body + lines[end:])


def _find_section_bounds(lines: list[str], section: str) -> tuple[int, int] | None:
    target = section.strip().lower()
    level = 0
    start = -1
    for i, raw in enumerate(lines):
        line = raw.strip()
        if not line.startswith("#"):
            continue
        if line.lstrip("#").strip().lower() == target:
            level = _heading_level(line)
            start = i + 1
            break

    if start < 0:
        return None

    end = len(lines)
    for i in range(start, len(lines)):
        line = lines[i].strip()
        if line.startswith("#") and _heading_level(line) <= level:
            end = i
            break

    while start < end and not lines[start].strip():
        start += 1
    return start, end


def _heading_level(line: str) -> int:
    count = len(line) - len(line.lstrip("#"))
    return count or _NOT_A_HEADING
