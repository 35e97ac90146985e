# src/state/sqlite_store.py — v1
"""SQLite-backed state store.

Uses stdlib sqlite3 in autocommit mode: every public operation is one
statement, except the legacy schema upgrade which runs in one explicit
transaction. Timestamps are written by the store itself with microsecond
precision and are strictly increasing per instance, so "oldest first" and
"most recent" orderings are stable even for writes within the same tick.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from gitdoc.core.errors import StateStoreError
from gitdoc.core.models import COMMIT_STATUSES
from gitdoc.state.base_state_store import BaseStateStore
from gitdoc.state.fingerprint import prompt_fingerprint
from gitdoc.state.models import (
    CacheLookup,
    DocMappingRecord,
    GenerationCacheEntry,
    PlannedUpdate,
    ProcessedCommit,
    RunEvent,
    StatusCounts,
)

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 25

_PROCESSED_COMMITS_DDL = """
CREATE TABLE {name} (
    commit_hash TEXT PRIMARY KEY,
    processed_at TEXT,
    status TEXT CHECK(status IN ('pending', 'in_progress', 'success', 'failed', 'skipped')),
    error TEXT,
    doc_commit_hash TEXT,
    doc_files_changed TEXT,
    metadata TEXT
)
"""

_SCHEMA = """
CREATE TABLE IF NOT EXISTS mappings (
    id INTEGER PRIMARY KEY,
    code_commit_hash TEXT,
    doc_file TEXT,
    section TEXT,
    FOREIGN KEY(code_commit_hash) REFERENCES processed_commits(commit_hash)
);
CREATE TABLE IF NOT EXISTS planned_updates (
    id INTEGER PRIMARY KEY,
    commit_hash TEXT NOT NULL,
    doc_file TEXT NOT NULL,
    section_id TEXT NOT NULL,
    strategy TEXT NOT NULL,
    status TEXT NOT NULL,
    reason TEXT,
    created_at TEXT,
    updated_at TEXT,
    UNIQUE(commit_hash, doc_file, section_id)
);
CREATE TABLE IF NOT EXISTS llm_cache (
    id INTEGER PRIMARY KEY,
    commit_hash TEXT NOT NULL,
    doc_file TEXT NOT NULL,
    section_id TEXT NOT NULL,
    provider TEXT NOT NULL,
    model TEXT NOT NULL,
    prompt_hash TEXT NOT NULL,
    response_text TEXT NOT NULL,
    created_at TEXT,
    UNIQUE(commit_hash, doc_file, section_id, provider, model, prompt_hash)
);
CREATE TABLE IF NOT EXISTS run_events (
    id INTEGER PRIMARY KEY,
    run_id TEXT NOT NULL,
    commit_hash TEXT,
    level TEXT NOT NULL,
    component TEXT NOT NULL,
    message TEXT NOT NULL,
    metadata TEXT,
    created_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_run_events_run ON run_events(run_id);
"""

_COMMIT_COLUMNS = (
    "commit_hash",
    "processed_at",
    "status",
    "error",
    "doc_commit_hash",
    "doc_files_changed",
    "metadata",
)


class SqliteStateStore(BaseStateStore):
    """State store persisted in a single SQLite file."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._last_ts: datetime | None = None
        try:
            if str(db_path) != ":memory:":
                self._db_path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            self._conn = sqlite3.connect(str(db_path), isolation_level=None)
            self._conn.execute("PRAGMA journal_mode=WAL")
        except (OSError, sqlite3.Error) as e:
            raise StateStoreError(f"open state store {self._db_path}: {e}") from e
        try:
            self._migrate()
        except StateStoreError:
            self._conn.close()
            raise

    def __enter__(self) -> SqliteStateStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _migrate(self) -> None:
        try:
            exists = self._conn.execute(
                "SELECT 1 FROM sqlite_master WHERE type='table' AND name='processed_commits'"
            ).fetchone()
            if exists is None:
                self._conn.execute(_PROCESSED_COMMITS_DDL.format(name="processed_commits"))
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise StateStoreError(f"migration failed: {e}") from e
        self._ensure_processed_commit_schema()

    def _ensure_processed_commit_schema(self) -> None:
        """Upgrade a legacy 3-status processed_commits table in place."""
        row = self._conn.execute(
            "SELECT sql FROM sqlite_master WHERE type='table' AND name='processed_commits'"
        ).fetchone()
        table_sql = row[0] if row else ""
        if "'pending'" in table_sql and "'in_progress'" in table_sql:
            return

        logger.info("Upgrading legacy processed_commits schema at %s", self._db_path)
        existing = {
            r[1] for r in self._conn.execute("PRAGMA table_info(processed_commits)")
        }
        columns = ", ".join(c for c in _COMMIT_COLUMNS if c in existing)

        try:
            self._conn.execute("BEGIN")
            self._conn.execute(_PROCESSED_COMMITS_DDL.format(name="processed_commits_new"))
            self._conn.execute(
                f"INSERT INTO processed_commits_new ({columns}) "
                f"SELECT {columns} FROM processed_commits"
            )
            self._conn.execute("DROP TABLE processed_commits")
            self._conn.execute("ALTER TABLE processed_commits_new RENAME TO processed_commits")
            self._conn.execute("COMMIT")
        except sqlite3.Error as e:
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
            raise StateStoreError(f"processed_commits schema upgrade failed: {e}") from e

    def _now(self) -> str:
        now = datetime.now(timezone.utc)
        if self._last_ts is not None and now <= self._last_ts:
            now = self._last_ts + timedelta(microseconds=1)
        self._last_ts = now
        return now.isoformat(sep=" ", timespec="microseconds")

    def _execute(self, what: str, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StateStoreError(f"{what}: {e}") from e

    # ------------------------------------------------------------------
    # Processed commits
    # ------------------------------------------------------------------

    async def mark_commit_processed(
        self,
        commit_id: str,
        status: str,
        error: str = "",
        doc_commit: str = "",
        changed_files: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Upsert a commit row (overwrites status, error, doc commit and files)."""
        if status not in COMMIT_STATUSES:
            raise StateStoreError(f"mark commit processed: invalid status {status!r}")
        files_json = json.dumps(changed_files or [])
        metadata_json = json.dumps(metadata) if metadata is not None else None
        self._execute(
            "mark commit processed",
            """INSERT INTO processed_commits
               (commit_hash, processed_at, status, error, doc_commit_hash,
                doc_files_changed, metadata)
               VALUES (?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(commit_hash) DO UPDATE SET
                   processed_at = excluded.processed_at,
                   status = excluded.status,
                   error = excluded.error,
                   doc_commit_hash = excluded.doc_commit_hash,
                   doc_files_changed = excluded.doc_files_changed,
                   metadata = COALESCE(excluded.metadata, processed_commits.metadata)""",
            (
                commit_id,
                self._now(),
                status,
                error or None,
                doc_commit or None,
                files_json,
                metadata_json,
            ),
        )

    async def get_last_processed_commit(self) -> str:
        row = self._execute(
            "get last processed commit",
            """SELECT commit_hash FROM processed_commits WHERE status = 'success'
               ORDER BY processed_at DESC, rowid DESC LIMIT 1""",
        ).fetchone()
        return row[0] if row else ""

    async def get_resumable_commits(self) -> list[str]:
        return self._commits_with_status("pending", "in_progress")

    async def get_failed_commits(self) -> list[str]:
        return self._commits_with_status("failed")

    async def get_retryable_commits(self) -> list[str]:
        return self._commits_with_status("failed", "in_progress")

    def _commits_with_status(self, *statuses: str) -> list[str]:
        placeholders = ", ".join("?" for _ in statuses)
        cursor = self._execute(
            "list commits by status",
            f"""SELECT commit_hash FROM processed_commits
                WHERE status IN ({placeholders})
                ORDER BY processed_at ASC, rowid ASC""",
            statuses,
        )
        return [row[0] for row in cursor.fetchall()]

    async def get_doc_commit_hash(self, commit_id: str) -> str:
        row = self._execute(
            "get doc commit hash",
            "SELECT COALESCE(doc_commit_hash, '') FROM processed_commits WHERE commit_hash = ?",
            (commit_id,),
        ).fetchone()
        return row[0] if row else ""

    async def get_commit(self, commit_id: str) -> ProcessedCommit | None:
        row = self._execute(
            "get commit",
            f"SELECT {', '.join(_COMMIT_COLUMNS)} FROM processed_commits WHERE commit_hash = ?",
            (commit_id,),
        ).fetchone()
        return _row_to_commit(row) if row else None

    async def list_recent(self, limit: int = DEFAULT_LIST_LIMIT) -> list[ProcessedCommit]:
        if limit <= 0:
            limit = DEFAULT_LIST_LIMIT
        cursor = self._execute(
            "list recent commits",
            f"""SELECT {', '.join(_COMMIT_COLUMNS)} FROM processed_commits
                ORDER BY processed_at DESC, rowid DESC LIMIT ?""",
            (limit,),
        )
        return [_row_to_commit(row) for row in cursor.fetchall()]

    async def get_status_counts(self) -> StatusCounts:
        cursor = self._execute(
            "get status counts",
            "SELECT status, COUNT(*) FROM processed_commits GROUP BY status",
        )
        counts = StatusCounts()
        for status, count in cursor.fetchall():
            if status in COMMIT_STATUSES:
                setattr(counts, status, count)
        counts.total = (
            counts.pending + counts.in_progress + counts.success + counts.failed + counts.skipped
        )
        return counts

    # ------------------------------------------------------------------
    # Planned updates
    # ------------------------------------------------------------------

    async def upsert_planned_update(
        self,
        commit_id: str,
        doc_file: str,
        section_id: str,
        strategy: str,
        status: str,
        reason: str = "",
    ) -> None:
        now = self._now()
        self._execute(
            "upsert planned update",
            """INSERT INTO planned_updates
               (commit_hash, doc_file, section_id, strategy, status, reason, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(commit_hash, doc_file, section_id) DO UPDATE SET
                   strategy = excluded.strategy,
                   status = excluded.status,
                   reason = excluded.reason,
                   updated_at = excluded.updated_at""",
            (commit_id, doc_file, section_id, strategy, status, reason or None, now, now),
        )

    async def list_planned_updates(self, commit_id: str) -> list[PlannedUpdate]:
        cursor = self._execute(
            "list planned updates",
            """SELECT commit_hash, doc_file, section_id, strategy, status,
                      COALESCE(reason, ''), created_at, updated_at
               FROM planned_updates WHERE commit_hash = ? ORDER BY id ASC""",
            (commit_id,),
        )
        return [
            PlannedUpdate(
                commit_id=r[0],
                doc_file=r[1],
                section_id=r[2],
                strategy=r[3],
                status=r[4],
                reason=r[5],
                created_at=_parse_ts(r[6]),
                updated_at=_parse_ts(r[7]),
            )
            for r in cursor.fetchall()
        ]

    # ------------------------------------------------------------------
    # Generation cache
    # ------------------------------------------------------------------

    async def get_cached_generation_response(
        self,
        commit_id: str,
        doc_file: str,
        section_id: str,
        provider: str,
        model: str,
        prompt: str,
    ) -> CacheLookup:
        row = self._execute(
            "read generation cache",
            """SELECT response_text FROM llm_cache
               WHERE commit_hash = ? AND doc_file = ? AND section_id = ?
                 AND provider = ? AND model = ? AND prompt_hash = ?
               LIMIT 1""",
            (commit_id, doc_file, section_id, provider, model, prompt_fingerprint(prompt)),
        ).fetchone()
        if row is None:
            return CacheLookup()
        return CacheLookup(response=row[0], hit=True)

    async def put_cached_generation_response(self, entry: GenerationCacheEntry) -> None:
        if not entry.prompt_fingerprint:
            raise StateStoreError("prompt fingerprint is required for generation cache entry")
        self._execute(
            "write generation cache",
            """INSERT INTO llm_cache
               (commit_hash, doc_file, section_id, provider, model, prompt_hash,
                response_text, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(commit_hash, doc_file, section_id, provider, model, prompt_hash)
               DO UPDATE SET response_text = excluded.response_text""",
            (
                entry.commit_id,
                entry.doc_file,
                entry.section_id,
                entry.provider,
                entry.model,
                entry.prompt_fingerprint,
                entry.response,
                self._now(),
            ),
        )

    # ------------------------------------------------------------------
    # Run events & mappings
    # ------------------------------------------------------------------

    async def log_run_event(
        self,
        run_id: str,
        commit_id: str,
        level: str,
        component: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        metadata_json = json.dumps(metadata, default=str) if metadata else None
        self._execute(
            "log run event",
            """INSERT INTO run_events
               (run_id, commit_hash, level, component, message, metadata, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (run_id, commit_id or None, level, component, message, metadata_json, self._now()),
        )

    async def list_run_events(self, run_id: str) -> list[RunEvent]:
        cursor = self._execute(
            "list run events",
            """SELECT run_id, COALESCE(commit_hash, ''), level, component, message,
                      metadata, created_at
               FROM run_events WHERE run_id = ? ORDER BY id ASC""",
            (run_id,),
        )
        return [
            RunEvent(
                run_id=r[0],
                commit_id=r[1],
                level=r[2],
                component=r[3],
                message=r[4],
                metadata=json.loads(r[5]) if r[5] else None,
                created_at=_parse_ts(r[6]),
            )
            for r in cursor.fetchall()
        ]

    async def store_mapping(self, commit_id: str, doc_file: str, section: str) -> None:
        self._execute(
            "store mapping",
            "INSERT INTO mappings (code_commit_hash, doc_file, section) VALUES (?, ?, ?)",
            (commit_id, doc_file, section),
        )

    async def list_mappings(self, commit_id: str) -> list[DocMappingRecord]:
        cursor = self._execute(
            "list mappings",
            """SELECT code_commit_hash, doc_file, section FROM mappings
               WHERE code_commit_hash = ? ORDER BY id ASC""",
            (commit_id,),
        )
        return [
            DocMappingRecord(commit_id=r[0], doc_file=r[1], section=r[2])
            for r in cursor.fetchall()
        ]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _row_to_commit(row: tuple[Any, ...]) -> ProcessedCommit:
    files: list[str] = []
    if row[5]:
        try:
            files = list(json.loads(row[5]))
        except (TypeError, ValueError):
            logger.warning("Unreadable doc_files_changed for %s", row[0])
    metadata = None
    if row[6]:
        try:
            metadata = json.loads(row[6])
        except ValueError:
            logger.warning("Unreadable metadata for %s", row[0])
    return ProcessedCommit(
        commit_id=row[0],
        processed_at=_parse_ts(row[1]),
        status=row[2],
        error=row[3] or "",
        doc_commit=row[4] or "",
        changed_files=files,
        metadata=metadata,
    )
