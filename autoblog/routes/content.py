"""
Content API Routes

Queue blog post generation (draft, SEO metadata, FAQ) and poll its status.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel

from autoblog.errors import JobValidationError
from autoblog.jobs.payloads import QUEUE_CONTENT_GENERATION
from autoblog.jobs.runtime import JobRuntime
from autoblog.routes.common import (
    JobStatusResponse,
    fetch_job_status,
    get_runtime,
    validation_error,
)
from autoblog.utils.logging import api_logger as logger


router = APIRouter(prefix="/api/content", tags=["content"])


class GenerateContentResponse(BaseModel):
    """Response after queuing content generation."""
    job_id: str
    content_id: str
    status: str
    message: str


@router.post("/generate", response_model=GenerateContentResponse)
async def generate_content(
    body: Any = Body(default=None),
    runtime: JobRuntime = Depends(get_runtime)
):
    """
    Queue a content generation job.

    Body: {topic, keywords, word_count} (``wordCount`` is accepted too).
    word_count must be between 1 and MAX_WORD_COUNT (10000); longer
    requests get a 400.
    Returns immediately; poll /api/content/job/{job_id} for the result.
    """
    try:
        record = await runtime.queue.enqueue(QUEUE_CONTENT_GENERATION, body)
    except JobValidationError as e:
        logger.warning("Rejected content generation request", error=str(e))
        raise validation_error(e)

    return GenerateContentResponse(
        job_id=record.job_id,
        content_id=record.payload["content_id"],
        status="processing",
        message="Content generation started",
    )


@router.get("/job/{job_id}", response_model=JobStatusResponse)
async def get_content_job(
    job_id: str,
    runtime: JobRuntime = Depends(get_runtime)
):
    """Get the status (and, once completed, the output) of a generation job."""
    return await fetch_job_status(runtime, job_id, QUEUE_CONTENT_GENERATION)
