# src/logging/context.py — v2
"""Per-run and per-commit logging context carried in contextvars.

The updater sets ``run_id`` once per run and ``commit_id`` for the
duration of each commit; formatters read them back on every record.
"""

from __future__ import annotations

import contextvars
from dataclasses import asdict, dataclass
from typing import Any

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("run_id", default=None)
_commit_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "commit_id", default=None
)
_component: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "component", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar("step", default=None)


@dataclass
class LogContext:
    run_id: str | None = None
    commit_id: str | None = None
    component: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


def get_context() -> LogContext:
    return LogContext(
        run_id=_run_id.get(),
        commit_id=_commit_id.get(),
        component=_component.get(),
        step=_step.get(),
    )


def set_run_context(run_id: str) -> None:
    _run_id.set(run_id)
    _commit_id.set(None)


def set_commit_context(commit_id: str | None) -> None:
    _commit_id.set(commit_id)


def set_component_context(component: str | None, step: str | None = None) -> None:
    """Tag records with the pipeline component and step currently running."""
    _component.set(component)
    _step.set(step)


def clear_context() -> None:
    _run_id.set(None)
    _commit_id.set(None)
    _component.set(None)
    _step.set(None)
