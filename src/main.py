# src/main.py — v2
"""CLI entry point: init, update, retry, status, revert, version.

Usage:
    gitdoc init
    gitdoc update [--from HASH] [--to HASH]
    gitdoc retry [--commit HASH]
    gitdoc status [--json] [--limit N]
    gitdoc revert <code-commit-hash>
    gitdoc version
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from gitdoc import __version__
from gitdoc.config.settings import DEFAULT_CONFIG_PATH, Settings, default_toml, load_settings
from gitdoc.core.errors import GitDocError
from gitdoc.core.models import Summary
from gitdoc.docs.markdown import MarkdownUpdater
from gitdoc.git.cli_source import GitCommitSource, discover_repo_root
from gitdoc.llm.client_factory import create_generation_client
from gitdoc.logging.logger import setup_logging
from gitdoc.orchestrator.updater import Dependencies, Updater
from gitdoc.runlock.lock import RunLock
from gitdoc.state.sqlite_store import SqliteStateStore

logger = logging.getLogger(__name__)


@dataclass
class App:
    """Wired collaborators for one CLI invocation."""

    repo_root: Path
    settings: Settings
    state: SqliteStateStore
    commit_source: GitCommitSource
    updater: Updater

    def close(self) -> None:
        self.state.close()


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    setup_logging(level="DEBUG" if args.verbose else "INFO")

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except GitDocError as exc:
        logger.error("%s", exc)
        return 1
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitdoc",
        description=f"gitdoc v{__version__} - keep docs in step with git commits",
    )
    parser.add_argument(
        "--config", default=None,
        help=f"Path to config file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Preview changes without writing or committing",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    p_init = subparsers.add_parser("init", help="Create .git-doc/config.toml")
    p_init.set_defaults(func=_cmd_init)

    p_update = subparsers.add_parser("update", help="Process new commits")
    p_update.add_argument(
        "--from", dest="from_hash", default="",
        help="Start commit (exclusive) for a manual range",
    )
    p_update.add_argument(
        "--to", dest="to_hash", default="",
        help="End commit (inclusive, default HEAD) for a manual range",
    )
    p_update.set_defaults(func=_cmd_update)

    p_retry = subparsers.add_parser("retry", help="Retry failed or interrupted commits")
    p_retry.add_argument("--commit", default="", help="Retry one specific commit")
    p_retry.set_defaults(func=_cmd_retry)

    p_status = subparsers.add_parser("status", help="Show processed commit state")
    p_status.add_argument("--json", dest="as_json", action="store_true", help="JSON output")
    p_status.add_argument(
        "--limit", type=int, default=25,
        help="Maximum number of recent rows (default: 25)",
    )
    p_status.set_defaults(func=_cmd_status)

    p_revert = subparsers.add_parser(
        "revert", help="Revert the documentation commit linked to a code commit",
    )
    p_revert.add_argument("commit", help="Code commit hash")
    p_revert.set_defaults(func=_cmd_revert)

    p_version = subparsers.add_parser("version", help="Show version")
    p_version.set_defaults(func=_cmd_version)

    return parser


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

async def _cmd_version(args: argparse.Namespace) -> int:
    print(__version__)
    return 0


async def _cmd_init(args: argparse.Namespace) -> int:
    repo_root = Path(discover_repo_root())
    git_doc_dir = repo_root / ".git-doc"
    git_doc_dir.mkdir(mode=0o700, parents=True, exist_ok=True)

    config_path = repo_root / DEFAULT_CONFIG_PATH
    if not config_path.exists():
        config_path.write_text(default_toml(), encoding="utf-8")
        config_path.chmod(0o600)
        logger.info("Wrote starter config %s", config_path)

    print(f"Initialized gitdoc at {git_doc_dir}")
    return 0


async def _cmd_update(args: argparse.Namespace) -> int:
    app = build_app(args)
    try:
        with RunLock.acquire(app.repo_root):
            if args.from_hash.strip() or args.to_hash.strip():
                summary = await app.updater.update_range_commits(
                    args.from_hash, args.to_hash, dry_run=args.dry_run,
                )
            else:
                summary = await app.updater.update_new_commits(dry_run=args.dry_run)
    finally:
        app.close()

    print(_format_summary("processed", summary))
    return 0


async def _cmd_retry(args: argparse.Namespace) -> int:
    app = build_app(args)
    try:
        with RunLock.acquire(app.repo_root):
            if args.commit.strip():
                commits = [args.commit.strip()]
            else:
                commits = await app.state.get_retryable_commits()
            summary = await app.updater.update_commit_list(commits, dry_run=args.dry_run)
    finally:
        app.close()

    print(_format_summary("retried", summary))
    return 0


async def _cmd_status(args: argparse.Namespace) -> int:
    app = build_app(args)
    try:
        rows = await app.state.list_recent(args.limit)
        counts = await app.state.get_status_counts()
    finally:
        app.close()

    if args.as_json:
        recent = []
        for row in rows:
            entry = {
                "commit_hash": row.commit_id,
                "status": row.status,
                "processed_at": row.processed_at.isoformat() if row.processed_at else "",
            }
            if row.error:
                entry["error"] = row.error
            if row.doc_commit:
                entry["doc_commit_hash"] = row.doc_commit
            recent.append(entry)
        payload = {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "counts": counts.model_dump(),
            "recent": recent,
        }
        print(json.dumps(payload, indent=2))
        return 0

    print(
        f"pending={counts.pending} in_progress={counts.in_progress} "
        f"success={counts.success} failed={counts.failed} "
        f"skipped={counts.skipped} total={counts.total}"
    )
    for row in rows:
        when = row.processed_at.strftime("%Y-%m-%d %H:%M:%S") if row.processed_at else "-"
        print(f"{row.commit_id} {row.status} {when}")
    return 0


async def _cmd_revert(args: argparse.Namespace) -> int:
    app = build_app(args)
    try:
        doc_commit = await app.state.get_doc_commit_hash(args.commit)
        if not doc_commit:
            raise GitDocError(
                f"no documentation commit found for code commit {args.commit}"
            )

        if args.dry_run:
            print(f"dry-run: would revert doc commit {doc_commit} (for code commit {args.commit})")
            return 0

        app.commit_source.revert(doc_commit)
    finally:
        app.close()

    print(f"reverted doc commit {doc_commit}")
    return 0


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

def build_app(args: argparse.Namespace) -> App:
    """Resolve the repository, load settings and wire the updater.

    Raises:
        CommitSourceError: Outside a git repository.
        ConfigurationError: On a missing explicit config file or invalid settings.
    """
    repo_root = Path(discover_repo_root())
    settings = load_settings(_resolve_config_path(repo_root, args.config))

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file or None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )

    state = SqliteStateStore(settings.resolve_state_path(repo_root))
    commit_source = GitCommitSource(repo_root)
    try:
        llm = create_generation_client(settings)
    except Exception:
        state.close()
        raise

    updater = Updater(
        Dependencies(
            settings=settings,
            commit_source=commit_source,
            state=state,
            doc_updater=MarkdownUpdater(),
            llm=llm,
        )
    )
    logger.debug("Using generation client %s", llm.name)
    return App(repo_root, settings, state, commit_source, updater)


def _resolve_config_path(repo_root: Path, config: str | None) -> Path | None:
    """Explicit paths must exist; the default path is optional."""
    if config:
        path = Path(config)
        return path if path.is_absolute() else repo_root / path
    default = repo_root / DEFAULT_CONFIG_PATH
    return default if default.is_file() else None


def _format_summary(label: str, summary: Summary) -> str:
    return (
        f"{label}={summary.processed} success={summary.success} "
        f"failed={summary.failed} skipped={summary.skipped}"
    )


if __name__ == "__main__":
    sys.exit(main())
