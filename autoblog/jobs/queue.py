"""
Job queue facade.

Write side: validate a payload against its queue and store a waiting job.
Read side: translate stored job records into the stable status shape the
API returns.
"""

from typing import Any, Dict, List, Mapping, Optional

from autoblog.errors import JobNotFoundError
from autoblog.jobs.database import JobRecord, JobState, JobStore
from autoblog.jobs.payloads import PAYLOAD_MODELS, new_job_id, validate_payload
from autoblog.utils.logging import job_logger as logger


async def submit_job(
    store: JobStore,
    queue_name: str,
    payload: Mapping[str, Any]
) -> JobRecord:
    """
    Validate a payload and write it as a waiting job.

    Raises:
        JobValidationError: payload does not match the queue's variant
    """
    model = validate_payload(queue_name, payload)
    record = JobRecord(
        job_id=new_job_id(queue_name),
        queue_name=queue_name,
        payload=model.model_dump(mode="json"),
    )
    record = await store.put(record)
    logger.info("Job queued", job_id=record.job_id, queue=queue_name)
    return record


def job_status(record: JobRecord) -> Dict[str, Any]:
    """External view of a job; result and failure_reason only for terminal jobs."""
    return {
        "id": record.job_id,
        "queue": record.queue_name,
        "state": record.state.value,
        "progress": record.progress,
        "result": record.result if record.state == JobState.COMPLETED else None,
        "failure_reason": record.failure_reason if record.state == JobState.FAILED else None,
        "attempts": record.attempts,
        "created_at": record.created_at,
        "started_at": record.started_at,
        "finished_at": record.finished_at,
    }


class JobQueue:
    """
    High-level interface over the job store.

    Usage:
        queue = JobQueue(store)

        # Queue a draft
        record = await queue.enqueue("content-generation", {...})

        # Poll it
        status = await queue.get_status(record.job_id)
    """

    def __init__(self, store: JobStore):
        self.store = store

    async def enqueue(self, queue_name: str, payload: Mapping[str, Any]) -> JobRecord:
        return await submit_job(self.store, queue_name, payload)

    async def get_status(
        self,
        job_id: str,
        queue_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Get the current status of a job.

        Args:
            job_id: Job to look up
            queue_name: When given, a job from another queue is reported as missing

        Raises:
            JobNotFoundError: unknown id, or queue mismatch
        """
        record = await self.store.get(job_id)
        if queue_name is not None and record.queue_name != queue_name:
            raise JobNotFoundError(job_id)
        return job_status(record)

    async def get_queue_stats(self) -> Dict[str, Dict[str, int]]:
        """Job counts per state for every queue"""
        return {
            name: await self.store.count_by_state(name)
            for name in PAYLOAD_MODELS
        }

    async def get_recent_jobs(
        self,
        queue_name: Optional[str] = None,
        limit: int = 20
    ) -> List[Dict[str, Any]]:
        records = await self.store.get_recent_jobs(queue_name=queue_name, limit=limit)
        return [job_status(r) for r in records]
