"""
Publishing pipeline: the task function of the publishing queue.

One create-post call, then an optional schedule call. The two calls are
not atomic. If scheduling fails, the post already exists in its original
status; the job fails with the post id in the reason and is not retried,
so no duplicate post gets created.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel

from autoblog.errors import PartialPublishError, RemoteServiceError
from autoblog.jobs.payloads import PublishPayload
from autoblog.jobs.worker import JobContext
from autoblog.utils.logging import job_logger as logger
from autoblog.wordpress import WordPressClient


class PublishOutcome(BaseModel):
    remote_post_id: int
    remote_url: str
    status: str
    scheduled_for: Optional[str] = None
    published_at: str


class PublishingTask:
    """Callable run by the worker pool for each publishing job."""

    def __init__(self, wordpress: Optional[WordPressClient]):
        self.wordpress = wordpress

    async def __call__(self, payload: PublishPayload, job: JobContext) -> Dict[str, Any]:
        if self.wordpress is None:
            raise RemoteServiceError(
                "WordPress credentials are not configured",
                service="wordpress",
                retryable=False,
            )

        await job.report_progress(10, "create_post")
        post = await self.wordpress.create_post(
            title=payload.seo.title,
            content=payload.content,
            excerpt=payload.seo.description,
            status=payload.status,
            categories=payload.categories,
            tags=payload.tags,
        )
        post_id = post["id"]
        remote_url = post.get("link", "")

        scheduled_for = None
        if payload.schedule_date is not None:
            await job.report_progress(60, "schedule")
            try:
                post = await self.wordpress.schedule_post(post_id, payload.schedule_date)
            except RemoteServiceError as e:
                raise PartialPublishError(post_id, e) from e
            scheduled_for = payload.schedule_date.isoformat()
            remote_url = post.get("link", remote_url)

        logger.info("Post published", job_id=job.job_id, post_id=post_id, scheduled=scheduled_for is not None)

        outcome = PublishOutcome(
            remote_post_id=post_id,
            remote_url=remote_url,
            status=post.get("status", payload.status),
            scheduled_for=scheduled_for,
            published_at=datetime.now(timezone.utc).isoformat(),
        )
        return outcome.model_dump(mode="json")
