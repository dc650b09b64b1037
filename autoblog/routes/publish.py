"""
Publish API Routes

Queue a WordPress post (optionally scheduled) and poll its status.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel

from autoblog.errors import JobValidationError
from autoblog.jobs.payloads import QUEUE_PUBLISHING
from autoblog.jobs.runtime import JobRuntime
from autoblog.routes.common import (
    JobStatusResponse,
    fetch_job_status,
    get_runtime,
    validation_error,
)
from autoblog.utils.logging import api_logger as logger


router = APIRouter(prefix="/api/publish", tags=["publish"])


class PublishResponse(BaseModel):
    """Response after queuing a publish job."""
    job_id: str
    status: str
    message: str


@router.post("", response_model=PublishResponse)
async def publish_content(
    body: Any = Body(default=None),
    runtime: JobRuntime = Depends(get_runtime)
):
    """
    Queue a publishing job.

    Body: {content, seo: {title, description, tags}, status, schedule_date,
    categories, tags}. ``scheduleDate`` is accepted for schedule_date.
    """
    try:
        record = await runtime.queue.enqueue(QUEUE_PUBLISHING, body)
    except JobValidationError as e:
        logger.warning("Rejected publish request", error=str(e))
        raise validation_error(e)

    return PublishResponse(
        job_id=record.job_id,
        status="publishing",
        message="Publishing started",
    )


@router.get("/job/{job_id}", response_model=JobStatusResponse)
async def get_publish_job(
    job_id: str,
    runtime: JobRuntime = Depends(get_runtime)
):
    """Get the status of a publishing job."""
    return await fetch_job_status(runtime, job_id, QUEUE_PUBLISHING)
