"""
Background worker pool for one job queue.

Each tick of the dequeue loop claims the oldest eligible waiting jobs, as
long as a concurrency slot is free and the sliding rate window has room,
and runs the queue's task function for each of them. Outcomes are written
back through the store's compare-and-transition primitive:

    waiting -> active                  claim (attempts + 1)
    active  -> completed               task returned a result
    active  -> waiting                 task failed, attempts left (backoff)
    active  -> failed                  task failed for the last time

Task errors never escape the pool; they end up on the job record.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import BaseModel

from autoblog.errors import AutoblogError, JobStoreError, StateConflictError
from autoblog.jobs.database import JobRecord, JobState, JobStore, utc_now_iso
from autoblog.jobs.payloads import validate_payload
from autoblog.jobs.queue import submit_job
from autoblog.jobs.rate_limiter import SlidingWindowRateLimiter, compute_backoff
from autoblog.utils.logging import job_logger as logger


@dataclass(frozen=True)
class PoolConfig:
    """Execution limits and retry policy of one pool."""
    concurrency: int = 1
    max_per_window: Optional[int] = None  # None: no rate limit
    window_seconds: float = 60.0
    max_attempts: int = 3
    backoff_base_seconds: float = 5.0
    backoff_max_seconds: float = 300.0
    poll_interval_seconds: float = 1.0
    shutdown_timeout_seconds: float = 30.0

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.max_per_window is not None and self.max_per_window < 1:
            raise ValueError("max_per_window must be at least 1 or None")


class JobContext:
    """Handle a task function gets for the job it is running."""

    def __init__(self, record: JobRecord, store: JobStore):
        self.record = record
        self._store = store

    @property
    def job_id(self) -> str:
        return self.record.job_id

    @property
    def attempt(self) -> int:
        return self.record.attempts

    async def report_progress(self, percent: int, step: Optional[str] = None):
        """
        Record advisory progress on the job.

        A failed write is logged and otherwise ignored; progress never
        affects the outcome of the job.
        """
        try:
            await self._store.compare_and_transition(
                self.job_id,
                JobState.ACTIVE,
                JobState.ACTIVE,
                {"progress": {"percent": percent, "step": step}},
            )
        except JobStoreError as e:
            logger.warning("Progress update skipped", job_id=self.job_id, error=str(e))


TaskFunction = Callable[[BaseModel, JobContext], Awaitable[Dict[str, Any]]]


def describe_failure(exc: BaseException) -> str:
    """Human-readable one-line summary of a task failure."""
    message = str(exc)
    if isinstance(exc, AutoblogError):
        return message or type(exc).__name__
    if isinstance(exc, asyncio.TimeoutError):
        return "Timed out"
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


class WorkerPool:
    """
    Runs jobs of a single queue with bounded concurrency and a start-rate cap.

    Usage:
        pool = WorkerPool("content-generation", store, task, PoolConfig(concurrency=2))
        job_id = await pool.enqueue({"topic": ..., "keywords": [...], "word_count": 1200})

        # Background: tick on an APScheduler interval
        pool.start(scheduler)

        # Or drive it directly until the queue is empty
        await pool.run_until_idle()
    """

    def __init__(
        self,
        queue_name: str,
        store: JobStore,
        task: TaskFunction,
        config: Optional[PoolConfig] = None,
        clock: Callable[[], float] = time.time
    ):
        self.queue_name = queue_name
        self.store = store
        self.task = task
        self.config = config or PoolConfig()
        self._clock = clock
        self.limiter = SlidingWindowRateLimiter(
            self.config.max_per_window,
            self.config.window_seconds,
            clock=clock,
        )

        self._active: Dict[str, asyncio.Task] = {}
        self._dispatching = False  # one dispatch pass at a time
        self._tick_idle = asyncio.Event()
        self._tick_idle.set()
        self._accepting = True
        self._scheduler: Optional[AsyncIOScheduler] = None

        # Backoff state of the dequeue loop itself
        self._loop_failures = 0
        self._resume_at = 0.0

        self.stats = {
            "started": 0,
            "completed": 0,
            "retried": 0,
            "failed": 0,
            "claim_conflicts": 0,
        }

    # =========================================================================
    # Producer side
    # =========================================================================

    async def enqueue(self, payload: Mapping[str, Any]) -> str:
        """
        Queue a job on this pool's queue and return its id.

        Never waits for execution.
        """
        record = await submit_job(self.store, self.queue_name, payload)
        return record.job_id

    # =========================================================================
    # Dequeue loop
    # =========================================================================

    async def process_jobs(self) -> int:
        """
        One tick of the dequeue loop.
        Called by the scheduler every poll interval.

        Returns:
            Number of jobs started during this tick
        """
        if self._dispatching or not self._accepting:
            return 0

        now = self._clock()
        if now < self._resume_at:
            return 0

        self._dispatching = True
        self._tick_idle.clear()
        try:
            started = await self._dispatch(now)
        except Exception as e:
            self._loop_failures += 1
            delay = compute_backoff(
                self._loop_failures,
                self.config.poll_interval_seconds,
                self.config.backoff_max_seconds,
            )
            self._resume_at = now + delay
            logger.error(
                "Dequeue loop error, backing off",
                queue=self.queue_name,
                error=str(e),
                failures=self._loop_failures,
                retry_in=delay,
            )
            return 0
        finally:
            self._dispatching = False
            self._tick_idle.set()

        self._loop_failures = 0
        return started

    async def _dispatch(self, now: float) -> int:
        started = 0
        while self._has_free_slot() and self.limiter.has_capacity(now):
            free_slots = self.config.concurrency - len(self._active)
            # A few extra candidates so lost claims don't end the pass early
            candidates = await self.store.list_waiting(
                self.queue_name, now, limit=free_slots + 4
            )
            if not candidates or not self._accepting:
                break

            claimed_any = False
            for candidate in candidates:
                if not self._accepting or not self._has_free_slot() or not self.limiter.has_capacity(now):
                    break
                record = await self._claim(candidate)
                if record is None:
                    continue
                if not self._accepting:
                    # Shutdown began during the claim; hand the job straight back
                    await self._requeue_interrupted(record)
                    break
                self.limiter.record(now)
                self._spawn(record)
                started += 1
                claimed_any = True

            if not claimed_any:
                break

        return started

    def _has_free_slot(self) -> bool:
        return len(self._active) < self.config.concurrency

    async def _claim(self, candidate: JobRecord) -> Optional[JobRecord]:
        """Move a waiting job to active; None if another worker got there first."""
        try:
            return await self.store.compare_and_transition(
                candidate.job_id,
                JobState.WAITING,
                JobState.ACTIVE,
                {
                    "attempts": candidate.attempts + 1,
                    "started_at": utc_now_iso(),
                    "progress": None,
                },
                expected_attempts=candidate.attempts,
            )
        except StateConflictError as e:
            self.stats["claim_conflicts"] += 1
            logger.debug(
                "Claim lost, trying next job",
                job_id=candidate.job_id,
                queue=self.queue_name,
                state=e.actual,
            )
            return None

    def _spawn(self, record: JobRecord):
        task = asyncio.create_task(
            self._execute(record),
            name=f"{self.queue_name}:{record.job_id}",
        )
        self._active[record.job_id] = task
        task.add_done_callback(lambda _t, job_id=record.job_id: self._active.pop(job_id, None))
        self.stats["started"] += 1

    # =========================================================================
    # Job execution
    # =========================================================================

    async def _execute(self, record: JobRecord):
        """Run the task function for a claimed job and record the outcome."""
        start_time = time.time()
        logger.info(
            "Job started",
            job_id=record.job_id,
            queue=self.queue_name,
            attempt=record.attempts,
        )

        try:
            payload = validate_payload(self.queue_name, record.payload)
            result = await self.task(payload, JobContext(record, self.store))
        except asyncio.CancelledError:
            await self._requeue_interrupted(record)
            raise
        except Exception as e:
            await self._handle_failure(record, e)
        else:
            await self._complete(record, result, time.time() - start_time)

    async def _complete(self, record: JobRecord, result: Dict[str, Any], elapsed: float):
        try:
            await self.store.compare_and_transition(
                record.job_id,
                JobState.ACTIVE,
                JobState.COMPLETED,
                {
                    "result": result,
                    "finished_at": utc_now_iso(),
                    "progress": {"percent": 100, "step": "done"},
                },
            )
        except Exception as e:
            logger.error(
                "Could not record job completion",
                job_id=record.job_id,
                queue=self.queue_name,
                error=str(e),
            )
            return

        self.stats["completed"] += 1
        logger.info(
            "Job completed",
            job_id=record.job_id,
            queue=self.queue_name,
            seconds=round(elapsed, 2),
        )

    async def _handle_failure(self, record: JobRecord, exc: Exception):
        """Retry with backoff while attempts remain, otherwise fail the job."""
        reason = describe_failure(exc)
        retryable = getattr(exc, "retryable", True)

        if retryable and record.attempts < self.config.max_attempts:
            delay = compute_backoff(
                record.attempts,
                self.config.backoff_base_seconds,
                self.config.backoff_max_seconds,
            )
            new_state = JobState.WAITING
            patch = {
                "last_error": reason,
                "available_at": self._clock() + delay,
                "progress": None,
            }
        else:
            delay = None
            new_state = JobState.FAILED
            patch = {
                "failure_reason": reason,
                "last_error": reason,
                "finished_at": utc_now_iso(),
            }

        try:
            await self.store.compare_and_transition(
                record.job_id, JobState.ACTIVE, new_state, patch
            )
        except Exception as e:
            logger.error(
                "Could not record job failure",
                job_id=record.job_id,
                queue=self.queue_name,
                error=str(e),
                task_error=reason,
            )
            return

        if new_state == JobState.WAITING:
            self.stats["retried"] += 1
            logger.warning(
                "Job attempt failed, will retry",
                job_id=record.job_id,
                queue=self.queue_name,
                attempt=record.attempts,
                retry_in=delay,
                error=reason,
            )
        else:
            self.stats["failed"] += 1
            logger.error(
                "Job failed",
                job_id=record.job_id,
                queue=self.queue_name,
                attempts=record.attempts,
                retryable=retryable,
                error=reason,
            )

    async def _requeue_interrupted(self, record: JobRecord):
        """Put a job cancelled mid-run back in line without charging the attempt."""
        try:
            await self.store.compare_and_transition(
                record.job_id,
                JobState.ACTIVE,
                JobState.WAITING,
                {
                    "attempts": max(record.attempts - 1, 0),
                    "last_error": "Interrupted by worker shutdown",
                    "available_at": 0.0,
                    "progress": None,
                },
            )
            logger.warning("Interrupted job requeued", job_id=record.job_id, queue=self.queue_name)
        except Exception as e:
            logger.error(
                "Could not requeue interrupted job",
                job_id=record.job_id,
                queue=self.queue_name,
                error=str(e),
            )

    async def recover_stale_jobs(self) -> int:
        """
        Requeue jobs left `active` by a worker process that died mid-run.

        Only safe when this is the single worker process for the queue.
        """
        recovered = 0
        for record in await self.store.list_by_state(self.queue_name, JobState.ACTIVE, limit=1000):
            if record.job_id in self._active:
                continue
            try:
                await self.store.compare_and_transition(
                    record.job_id,
                    JobState.ACTIVE,
                    JobState.WAITING,
                    {
                        "last_error": "Recovered after worker restart",
                        "available_at": 0.0,
                        "progress": None,
                    },
                    expected_attempts=record.attempts,
                )
            except StateConflictError:
                continue
            recovered += 1

        if recovered:
            logger.warning("Recovered stale jobs", queue=self.queue_name, count=recovered)
        return recovered

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def drain(self, timeout: Optional[float] = None):
        """Wait for every in-flight job to finish."""
        if not self._active:
            return
        await asyncio.wait(list(self._active.values()), timeout=timeout)

    async def run_until_idle(self):
        """
        Keep dispatching until nothing is running and nothing is waiting.

        Sleeps through rate-window and backoff holds rather than spinning.
        """
        while self._accepting:
            await self.process_jobs()

            if self._active:
                await asyncio.wait(
                    list(self._active.values()),
                    return_when=asyncio.FIRST_COMPLETED,
                )
                continue

            counts = await self.store.count_by_state(self.queue_name)
            if counts[JobState.WAITING.value] == 0:
                return

            now = self._clock()
            next_available = await self.store.next_available_at(self.queue_name)
            hold = max(
                self.limiter.seconds_until_available(now),
                (next_available or now) - now,
                self._resume_at - now,
            )
            await asyncio.sleep(max(hold, 0.01))

    def start(self, scheduler: AsyncIOScheduler):
        """Register the dequeue loop on a scheduler"""
        self._accepting = True
        self._scheduler = scheduler
        scheduler.add_job(
            self.process_jobs,
            trigger=IntervalTrigger(seconds=self.config.poll_interval_seconds),
            id=f"worker_pool:{self.queue_name}",
            name=f"Dispatch {self.queue_name} jobs",
            replace_existing=True,
            max_instances=1,  # Prevent overlapping ticks
            coalesce=True,
        )
        logger.info(
            "Worker pool started",
            queue=self.queue_name,
            concurrency=self.config.concurrency,
            max_per_window=self.config.max_per_window,
            window_seconds=self.config.window_seconds,
        )

    async def shutdown(self, wait: bool = True):
        """
        Stop dispatching, then let in-flight jobs finish.

        Jobs still running after the shutdown timeout (or immediately, with
        wait=False) are cancelled and put back in the queue.
        """
        self._accepting = False
        if self._scheduler is not None:
            try:
                self._scheduler.remove_job(f"worker_pool:{self.queue_name}")
            except JobLookupError:
                pass
            self._scheduler = None

        # A tick already past its checks must finish before in-flight work is counted
        await self._tick_idle.wait()

        pending = set(self._active.values())
        if pending and wait:
            _, pending = await asyncio.wait(pending, timeout=self.config.shutdown_timeout_seconds)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        logger.info("Worker pool stopped", queue=self.queue_name)

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def is_processing(self) -> bool:
        return bool(self._active)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "queue": self.queue_name,
            "active": self.active_count,
            "concurrency": self.config.concurrency,
            "starts_in_window": self.limiter.in_window(),
            "max_per_window": self.config.max_per_window,
            **self.stats,
        }
