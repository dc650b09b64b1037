"""
Error types shared across the job pipeline.

Caller input problems surface as JobValidationError before anything is
queued. Remote failures are RemoteServiceError and are retried by the
worker pool unless ``retryable`` is False. Job store errors describe
lookups and state transitions.
"""

from typing import Any, Dict, List, Optional


class AutoblogError(Exception):
    """Base class for all application errors."""


class JobValidationError(AutoblogError):
    """Raised when a job payload does not match its queue's payload shape."""

    retryable = False

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


# =============================================================================
# Remote services
# =============================================================================

class RemoteServiceError(AutoblogError):
    """A call to the LLM provider or to WordPress failed."""

    def __init__(
        self,
        message: str,
        service: str,
        status_code: Optional[int] = None,
        retryable: bool = True,
    ):
        super().__init__(message)
        self.service = service
        self.status_code = status_code
        self.retryable = retryable

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"[{self.service}] HTTP {self.status_code}: {base}"
        return f"[{self.service}] {base}"


class LLMResponseError(RemoteServiceError):
    """The LLM answered, but not in the shape that was asked for."""

    def __init__(self, message: str, raw_response: str = ""):
        super().__init__(message, service="llm")
        self.raw_response = raw_response


class PartialPublishError(RemoteServiceError):
    """
    The post was created but the follow-up scheduling call failed.

    Not retryable: a retry would create a second post. The message carries
    the remote post id so an operator can reconcile by hand.
    """

    def __init__(self, remote_post_id: int, cause: Exception):
        super().__init__(
            f"Post {remote_post_id} was created but scheduling failed: {cause}",
            service="wordpress",
            status_code=getattr(cause, "status_code", None),
            retryable=False,
        )
        self.remote_post_id = remote_post_id
        self.cause = cause


# =============================================================================
# Job store
# =============================================================================

class JobStoreError(AutoblogError):
    """Base class for job store failures."""


class DuplicateJobError(JobStoreError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} already exists")
        self.job_id = job_id


class JobNotFoundError(JobStoreError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class StateConflictError(JobStoreError):
    """The job was not in the expected state when a transition was attempted."""

    def __init__(self, job_id: str, expected: str, actual: str):
        super().__init__(
            f"Job {job_id} is {actual}, expected {expected}"
        )
        self.job_id = job_id
        self.expected = expected
        self.actual = actual


class InvalidTransitionError(JobStoreError):
    """The requested transition or patch is never allowed."""
