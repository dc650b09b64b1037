"""
Job store for the content pipeline queues.
Uses aiosqlite for async SQLite operations.

compare_and_transition() is the only way an existing job changes. Every
UPDATE names the state it expects the row to be in, so two workers racing
for the same job cannot both win.
"""

import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite

from autoblog.errors import (
    DuplicateJobError,
    InvalidTransitionError,
    JobNotFoundError,
    StateConflictError,
)


class JobState(str, Enum):
    """Lifecycle states of a queued job"""
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


# (from, to) pairs a job may take; terminal states have no way out
ALLOWED_TRANSITIONS = {
    (JobState.WAITING, JobState.ACTIVE),
    (JobState.ACTIVE, JobState.ACTIVE),
    (JobState.ACTIVE, JobState.COMPLETED),
    (JobState.ACTIVE, JobState.FAILED),
    (JobState.ACTIVE, JobState.WAITING),
}

# Columns a transition may patch, and the target state each is restricted to
PATCHABLE_FIELDS: Dict[str, Optional[JobState]] = {
    "progress": None,
    "attempts": None,
    "available_at": None,
    "started_at": None,
    "finished_at": None,
    "last_error": None,
    "result": JobState.COMPLETED,
    "failure_reason": JobState.FAILED,
}

_JSON_FIELDS = ("payload", "progress", "result")

_COLUMNS = (
    "seq, job_id, queue_name, status, payload, progress, result, "
    "failure_reason, last_error, attempts, available_at, "
    "created_at, started_at, finished_at"
)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class JobRecord:
    """Snapshot of one job row."""
    job_id: str
    queue_name: str
    payload: Dict[str, Any]
    state: JobState = JobState.WAITING
    progress: Optional[Any] = None
    result: Optional[Any] = None
    failure_reason: Optional[str] = None
    last_error: Optional[str] = None
    attempts: int = 0
    available_at: float = 0.0
    created_at: str = field(default_factory=utc_now_iso)
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    seq: Optional[int] = None

    def with_changes(self, **changes) -> "JobRecord":
        return replace(self, **changes)


class JobStore:
    """Handles job record persistence for every queue"""

    def __init__(self, db_path: str = "autoblog_jobs.db"):
        self.db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    async def connect(self):
        """Connect to database and create tables if needed"""
        if self.db_path != ":memory:":
            db_dir = Path(self.db_path).parent
            if str(db_dir) != "." and not db_dir.exists():
                db_dir.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(self.db_path)
        await self._create_tables()

    async def _create_tables(self):
        await self._conn.execute("""
            CREATE TABLE IF NOT EXISTS jobs (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                job_id TEXT UNIQUE NOT NULL,
                queue_name TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'waiting',

                payload TEXT NOT NULL,
                progress TEXT,

                -- Exactly one of these is set once the job is terminal
                result TEXT,
                failure_reason TEXT,

                last_error TEXT,
                attempts INTEGER NOT NULL DEFAULT 0,
                available_at REAL NOT NULL DEFAULT 0,

                created_at TEXT NOT NULL,
                started_at TEXT,
                finished_at TEXT
            )
        """)

        await self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_queue_status
            ON jobs(queue_name, status, seq)
        """)

        await self._conn.commit()

    # =========================================================================
    # Core operations
    # =========================================================================

    async def put(self, record: JobRecord) -> JobRecord:
        """
        Insert a new job.

        Raises:
            DuplicateJobError: if a job with the same id already exists
        """
        try:
            cursor = await self._conn.execute("""
                INSERT INTO jobs
                (job_id, queue_name, status, payload, progress, result,
                 failure_reason, last_error, attempts, available_at,
                 created_at, started_at, finished_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                record.job_id,
                record.queue_name,
                record.state.value,
                json.dumps(record.payload),
                _dump(record.progress),
                _dump(record.result),
                record.failure_reason,
                record.last_error,
                record.attempts,
                record.available_at,
                record.created_at,
                record.started_at,
                record.finished_at,
            ))
        except aiosqlite.IntegrityError as e:
            raise DuplicateJobError(record.job_id) from e

        await self._conn.commit()
        return record.with_changes(seq=cursor.lastrowid)

    async def get(self, job_id: str) -> JobRecord:
        """
        Get a job by id.

        Raises:
            JobNotFoundError: if no such job exists
        """
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM jobs WHERE job_id = ?", (job_id,)
        )
        row = await cursor.fetchone()
        if not row:
            raise JobNotFoundError(job_id)
        return _row_to_record(row)

    async def compare_and_transition(
        self,
        job_id: str,
        expected_state: JobState,
        new_state: JobState,
        patch: Optional[Dict[str, Any]] = None,
        expected_attempts: Optional[int] = None
    ) -> JobRecord:
        """
        Atomically move a job from expected_state to new_state, applying patch.

        Args:
            job_id: Job to update
            expected_state: State the job must currently be in
            new_state: State to move it to
            patch: Column values to set in the same statement
            expected_attempts: If given, the attempts counter must also match
                (guards against acting on a stale snapshot)

        Returns:
            The updated record

        Raises:
            InvalidTransitionError: the transition or a patch field is never allowed
            StateConflictError: the job is not in expected_state
            JobNotFoundError: no such job
        """
        patch = patch or {}
        if (expected_state, new_state) not in ALLOWED_TRANSITIONS:
            raise InvalidTransitionError(
                f"Transition {expected_state.value} -> {new_state.value} is not allowed"
            )

        updates = ["status = ?"]
        values: List[Any] = [new_state.value]
        for name, value in patch.items():
            if name not in PATCHABLE_FIELDS:
                raise InvalidTransitionError(f"Field {name!r} cannot be patched")
            required_state = PATCHABLE_FIELDS[name]
            if required_state is not None and new_state != required_state:
                raise InvalidTransitionError(
                    f"Field {name!r} can only be set when moving to {required_state.value}"
                )
            updates.append(f"{name} = ?")
            values.append(_dump(value) if name in _JSON_FIELDS else value)

        where = "job_id = ? AND status = ?"
        values.extend([job_id, expected_state.value])
        if expected_attempts is not None:
            where += " AND attempts = ?"
            values.append(expected_attempts)

        cursor = await self._conn.execute(f"""
            UPDATE jobs
            SET {', '.join(updates)}
            WHERE {where}
        """, values)
        await self._conn.commit()

        if cursor.rowcount == 0:
            current = await self.get(job_id)
            raise StateConflictError(job_id, expected_state.value, current.state.value)

        return await self.get(job_id)

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_waiting(
        self,
        queue_name: str,
        now: float,
        limit: int = 10
    ) -> List[JobRecord]:
        """Waiting jobs that are eligible at `now`, oldest first (FIFO)"""
        cursor = await self._conn.execute(f"""
            SELECT {_COLUMNS}
            FROM jobs
            WHERE queue_name = ? AND status = 'waiting' AND available_at <= ?
            ORDER BY seq ASC
            LIMIT ?
        """, (queue_name, now, limit))
        rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def next_available_at(self, queue_name: str) -> Optional[float]:
        """Earliest time any waiting job of the queue becomes eligible"""
        cursor = await self._conn.execute("""
            SELECT MIN(available_at) FROM jobs
            WHERE queue_name = ? AND status = 'waiting'
        """, (queue_name,))
        row = await cursor.fetchone()
        return row[0] if row else None

    async def list_by_state(
        self,
        queue_name: str,
        state: JobState,
        limit: int = 100
    ) -> List[JobRecord]:
        cursor = await self._conn.execute(f"""
            SELECT {_COLUMNS}
            FROM jobs
            WHERE queue_name = ? AND status = ?
            ORDER BY seq ASC
            LIMIT ?
        """, (queue_name, state.value, limit))
        rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def count_by_state(self, queue_name: str) -> Dict[str, int]:
        cursor = await self._conn.execute("""
            SELECT status, COUNT(*) FROM jobs
            WHERE queue_name = ?
            GROUP BY status
        """, (queue_name,))
        counts = {state.value: 0 for state in JobState}
        for status, count in await cursor.fetchall():
            counts[status] = count
        return counts

    async def get_recent_jobs(
        self,
        queue_name: Optional[str] = None,
        limit: int = 20
    ) -> List[JobRecord]:
        """Most recently created jobs, optionally for a single queue"""
        if queue_name:
            cursor = await self._conn.execute(f"""
                SELECT {_COLUMNS} FROM jobs
                WHERE queue_name = ?
                ORDER BY seq DESC
                LIMIT ?
            """, (queue_name, limit))
        else:
            cursor = await self._conn.execute(f"""
                SELECT {_COLUMNS} FROM jobs
                ORDER BY seq DESC
                LIMIT ?
            """, (limit,))
        rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def cleanup_old_jobs(self, days: int = 30) -> int:
        """Remove completed/failed jobs older than the given number of days"""
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

        cursor = await self._conn.execute("""
            DELETE FROM jobs
            WHERE status IN ('completed', 'failed')
            AND created_at < ?
        """, (cutoff,))
        await self._conn.commit()
        return cursor.rowcount

    async def close(self):
        if self._conn:
            await self._conn.close()
            self._conn = None


def _dump(value: Any) -> Optional[str]:
    return json.dumps(value) if value is not None else None


def _load(value: Optional[str]) -> Any:
    return json.loads(value) if value is not None else None


def _row_to_record(row) -> JobRecord:
    return JobRecord(
        seq=row[0],
        job_id=row[1],
        queue_name=row[2],
        state=JobState(row[3]),
        payload=json.loads(row[4]),
        progress=_load(row[5]),
        result=_load(row[6]),
        failure_reason=row[7],
        last_error=row[8],
        attempts=row[9],
        available_at=row[10],
        created_at=row[11],
        started_at=row[12],
        finished_at=row[13],
    )
