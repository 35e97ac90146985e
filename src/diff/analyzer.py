# src/diff/analyzer.py — v1
"""Unified diff parsing and the compact summary fed into prompts."""

from __future__ import annotations

from pydantic import BaseModel, Field

from gitdoc.core.errors import DiffParseError

NO_FILES_SUMMARY = "No parseable file-level diff information available."


class Hunk(BaseModel):
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: list[str] = Field(default_factory=list)


class FileDiff(BaseModel):
    path: str = ""
    hunks: list[Hunk] = Field(default_factory=list)
    added_lines: int = 0
    deleted_lines: int = 0


class ParsedDiff(BaseModel):
    files: list[FileDiff] = Field(default_factory=list)


def parse_unified_diff(raw: str) -> ParsedDiff:
    """Split a ``git show``/``git diff`` output into files and hunks.

    Lines before the first hunk of a file (headers, index lines) are
    ignored. ``+++``/``---`` markers never count as added or deleted lines.

    Raises:
        DiffParseError: On a malformed ``@@`` header.
    """
    result = ParsedDiff()
    if not raw.strip():
        return result

    current_file: FileDiff | None = None
    current_hunk: Hunk | None = None

    def flush_hunk() -> None:
        nonlocal current_hunk
        if current_file is not None and current_hunk is not None:
            current_file.hunks.append(current_hunk)
        current_hunk = None

    def flush_file() -> None:
        nonlocal current_file
        flush_hunk()
        if current_file is not None:
            result.files.append(current_file)
        current_file = None

    for line in raw.split("\n"):
        if line.startswith("diff --git "):
            flush_file()
            current_file = FileDiff()
        elif line.startswith("+++ b/"):
            if current_file is not None:
                current_file.path = line[len("+++ b/"):]
        elif line.startswith("@@"):
            flush_hunk()
            current_hunk = _parse_hunk_header(line)
        elif current_hunk is not None and current_file is not None:
            current_hunk.lines.append(line)
            if line.startswith("+") and not line.startswith("+++"):
                current_file.added_lines += 1
            if line.startswith("-") and not line.startswith("---"):
                current_file.deleted_lines += 1

    flush_file()
    return result


def build_summary(diff: ParsedDiff) -> str:
    """One line per file: path, hunk count, added and deleted line counts."""
    if not diff.files:
        return NO_FILES_SUMMARY

    lines = [f"Files changed: {len(diff.files)}"]
    for f in diff.files:
        path = f.path if f.path.strip() else "(unknown path)"
        lines.append(f"- {path} (hunks={len(f.hunks)}, +{f.added_lines}, -{f.deleted_lines})")
    return "\n".join(lines)


def truncate_text(content: str, max_len: int) -> str:
    if max_len <= 0 or len(content) <= max_len:
        return content
    return content[:max_len]


def _parse_hunk_header(header: str) -> Hunk:
    # @@ -a,b +c,d @@ optional-text
    parts = header.split("@@")
    if len(parts) < 2:
        raise DiffParseError(f"invalid hunk header: {header}")

    fields = parts[1].split()
    if len(fields) < 2:
        raise DiffParseError(f"invalid hunk header core: {header}")

    old_start, old_lines = _parse_range(fields[0], "-")
    new_start, new_lines = _parse_range(fields[1], "+")
    return Hunk(old_start=old_start, old_lines=old_lines, new_start=new_start, new_lines=new_lines)


def _parse_range(token: str, prefix: str) -> tuple[int, int]:
    body = token[len(prefix):] if token.startswith(prefix) else token
    start_text, _, count_text = body.partition(",")
    try:
        start = int(start_text)
        count = int(count_text) if count_text else 1
    except ValueError as e:
        raise DiffParseError(f"invalid range token {token}: {e}") from e
    return start, count
