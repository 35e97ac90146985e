# src/orchestrator/prompt.py — v1
"""Prompt assembly and validation of generated section content."""

from __future__ import annotations

from gitdoc.core.errors import ContentValidationError, DiffParseError
from gitdoc.diff.analyzer import build_summary, parse_unified_diff, truncate_text

MAX_DIFF_CONTEXT = 3000
MAX_SECTION_CHARS = 25000

PROMPT_TEMPLATE = (
    "Update docs for this commit.\n"
    "Commit message: {message}\n"
    "Diff:\n{context}\n"
    "Output updated section content only."
)


def build_diff_context(diff: str) -> str:
    """File-level summary when the diff parses into at least one file, else the raw diff."""
    try:
        parsed = parse_unified_diff(diff)
    except DiffParseError:
        return truncate_text(diff, MAX_DIFF_CONTEXT)
    if not parsed.files:
        return truncate_text(diff, MAX_DIFF_CONTEXT)
    return truncate_text(build_summary(parsed), MAX_DIFF_CONTEXT)


def build_prompt(commit_message: str, diff: str) -> str:
    return PROMPT_TEMPLATE.format(message=commit_message, context=build_diff_context(diff))


def validate_generated_section(content: str) -> str:
    """Return the trimmed content or reject it.

    Raises:
        ContentValidationError: Empty after trimming, or longer than MAX_SECTION_CHARS.
    """
    trimmed = content.strip()
    if not trimmed:
        raise ContentValidationError("generated section content is empty")
    if len(trimmed) > MAX_SECTION_CHARS:
        raise ContentValidationError("generated section content exceeds max size")
    return trimmed
