"""
Shared pieces of the job-backed routes.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from pydantic import BaseModel

from autoblog.errors import JobNotFoundError, JobValidationError
from autoblog.jobs.runtime import JobRuntime


class JobStatusResponse(BaseModel):
    """Status of a queued job."""
    id: str
    queue: str
    state: str
    progress: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None
    failure_reason: Optional[str] = None
    attempts: int
    created_at: str
    started_at: Optional[str] = None
    finished_at: Optional[str] = None


def get_runtime(request: Request) -> JobRuntime:
    """Dependency: the JobRuntime built by the app lifespan."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Job runtime is not ready")
    return runtime


def validation_error(e: JobValidationError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"message": str(e), "errors": e.errors},
    )


async def fetch_job_status(runtime: JobRuntime, job_id: str, queue_name: str) -> JobStatusResponse:
    try:
        status = await runtime.queue.get_status(job_id, queue_name=queue_name)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse(**status)
