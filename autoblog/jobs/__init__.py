"""
Job queue system for background content generation and publishing.

Components:
- JobStore: SQLite-backed job records with compare-and-transition updates
- JobQueue: enqueue + status facade used by the API
- WorkerPool: per-queue executor with concurrency, rate window and retries
- JobRuntime (autoblog.jobs.runtime): wires store, clients and pools together

Usage:
    # In an API endpoint - queue a job
    record = await runtime.queue.enqueue("content-generation", payload)

    # Check job status
    status = await runtime.queue.get_status(record.job_id)
"""

from autoblog.jobs.database import JobStore, JobRecord, JobState
from autoblog.jobs.payloads import (
    QUEUE_CONTENT_GENERATION,
    QUEUE_PUBLISHING,
    GenerationPayload,
    PublishPayload,
    validate_payload,
)
from autoblog.jobs.queue import JobQueue, submit_job, job_status
from autoblog.jobs.rate_limiter import SlidingWindowRateLimiter, compute_backoff
from autoblog.jobs.worker import JobContext, PoolConfig, WorkerPool

__all__ = [
    # Store
    "JobStore",
    "JobRecord",
    "JobState",

    # Payloads
    "QUEUE_CONTENT_GENERATION",
    "QUEUE_PUBLISHING",
    "GenerationPayload",
    "PublishPayload",
    "validate_payload",

    # Queue facade
    "JobQueue",
    "submit_job",
    "job_status",

    # Workers
    "SlidingWindowRateLimiter",
    "compute_backoff",
    "JobContext",
    "PoolConfig",
    "WorkerPool",
]
