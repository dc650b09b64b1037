"""
Queue names and the payload shape each queue accepts.

Payloads are validated here, before a job is written, so a worker never
sees input that does not match its queue.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from autoblog.errors import JobValidationError

QUEUE_CONTENT_GENERATION = "content-generation"
QUEUE_PUBLISHING = "publishing"

# Longest post a generation job may ask for
MAX_WORD_COUNT = 10000

JOB_ID_PREFIXES = {
    QUEUE_CONTENT_GENERATION: "gen",
    QUEUE_PUBLISHING: "pub",
}


class GenerationPayload(BaseModel):
    """Input for a content-generation job."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    topic: str = Field(min_length=1)
    keywords: List[str]
    word_count: int = Field(gt=0, le=MAX_WORD_COUNT, alias="wordCount")
    content_id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="contentId")

    @field_validator("topic")
    @classmethod
    def topic_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("topic must not be blank")
        return v

    @field_validator("keywords")
    @classmethod
    def strip_keywords(cls, v: List[str]) -> List[str]:
        return [k.strip() for k in v if k.strip()]


class SEOInput(BaseModel):
    """SEO block of a publish request; extra keys are carried through."""

    model_config = ConfigDict(extra="allow", frozen=True)

    title: str = Field(min_length=1)
    description: str = ""
    tags: List[str] = Field(default_factory=list)


class PublishPayload(BaseModel):
    """Input for a publishing job."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    content: str = Field(min_length=1)
    seo: SEOInput
    status: Literal["draft", "publish"] = "draft"
    schedule_date: Optional[datetime] = Field(default=None, alias="scheduleDate")
    categories: List[int] = Field(default_factory=list)
    tags: List[int] = Field(default_factory=list)


PAYLOAD_MODELS: Dict[str, Type[BaseModel]] = {
    QUEUE_CONTENT_GENERATION: GenerationPayload,
    QUEUE_PUBLISHING: PublishPayload,
}


def validate_payload(queue_name: str, payload: Mapping[str, Any]) -> BaseModel:
    """
    Validate a raw payload against the queue's variant.

    Raises:
        JobValidationError: unknown queue or payload not matching the shape
    """
    model = PAYLOAD_MODELS.get(queue_name)
    if model is None:
        raise JobValidationError(f"Unknown queue: {queue_name}")

    if isinstance(payload, model):
        return payload
    if not isinstance(payload, Mapping):
        raise JobValidationError(f"Invalid {queue_name} payload: expected an object")

    try:
        return model.model_validate(dict(payload))
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        summary = "; ".join(f"{err['field']}: {err['message']}" for err in errors)
        raise JobValidationError(f"Invalid {queue_name} payload: {summary}", errors) from e


def new_job_id(queue_name: str) -> str:
    return f"{JOB_ID_PREFIXES.get(queue_name, 'job')}_{uuid.uuid4().hex[:12]}"
