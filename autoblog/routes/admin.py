"""
Admin API Routes

Operational views over the job system:
- Queue depth per state and worker pool counters
- Recent jobs
- Buffered log entries
- Cleanup of old finished jobs
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from autoblog.jobs.payloads import PAYLOAD_MODELS
from autoblog.jobs.runtime import JobRuntime
from autoblog.routes.common import get_runtime
from autoblog.utils.logging import LogLevel, get_log_buffer, get_logger

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = get_logger("admin")


# ===== Job Queues =====

@router.get("/queues")
async def get_queues(runtime: JobRuntime = Depends(get_runtime)):
    """Job counts per state, plus live pool stats when workers run in this process."""
    counts = await runtime.queue.get_queue_stats()
    return {
        "queues": {
            name: {
                "counts": counts.get(name, {}),
                "pool": runtime.pools[name].get_stats() if name in runtime.pools else None,
            }
            for name in PAYLOAD_MODELS
        },
        "workers_running": runtime.workers_running,
    }


@router.get("/jobs")
async def get_recent_jobs(
    queue: Optional[str] = Query(None, description="Filter by queue name"),
    limit: int = Query(20, ge=1, le=200),
    runtime: JobRuntime = Depends(get_runtime)
):
    """Most recently created jobs, newest first."""
    if queue is not None and queue not in PAYLOAD_MODELS:
        raise HTTPException(status_code=400, detail=f"Unknown queue: {queue}")
    jobs = await runtime.queue.get_recent_jobs(queue_name=queue, limit=limit)
    return {"jobs": jobs}


@router.post("/jobs/cleanup")
async def cleanup_jobs(
    days: Optional[int] = Query(None, ge=1, description="Defaults to JOB_RETENTION_DAYS"),
    runtime: JobRuntime = Depends(get_runtime)
):
    """Delete completed and failed jobs older than ``days``."""
    deleted = await runtime.cleanup_old_jobs(days)
    logger.info("Old jobs cleaned up by admin", deleted=deleted)
    return {"deleted": deleted}


# ===== Logs =====

@router.get("/logs")
async def get_logs(
    limit: int = Query(100, ge=1, le=500),
    level: Optional[str] = Query(None, description="Filter by level (debug, info, warning, error, critical)"),
    source: Optional[str] = Query(None, description="Filter by source"),
    job_id: Optional[str] = Query(None, description="Filter by job id")
):
    """Get recent log entries from the in-memory buffer."""
    log_buffer = get_log_buffer()

    level_filter = None
    if level:
        try:
            level_filter = LogLevel(level.lower())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid log level: {level}")

    logs = log_buffer.get_recent(limit=limit, level=level_filter, source=source, job_id=job_id)
    return {
        "logs": logs,
        "stats": log_buffer.get_stats()
    }


@router.post("/logs/clear")
async def clear_logs():
    """Clear the in-memory log buffer."""
    get_log_buffer().clear()
    logger.info("Log buffer cleared by admin")
    return {"status": "cleared"}
