"""
Content generation pipeline: the task function of the content-generation queue.

Draft first; SEO metadata and FAQ entries only depend on the draft, so
they are requested concurrently once it exists. Any step failing fails
the whole attempt and nothing partial is returned.
"""

import asyncio
from typing import Any, Awaitable, Dict, List, Tuple

from pydantic import BaseModel

from autoblog.agents import BlogWriterAgent, FAQAgent, FAQItem, SEOAgent, SEOMetadata
from autoblog.jobs.payloads import GenerationPayload
from autoblog.jobs.worker import JobContext
from autoblog.utils.logging import job_logger as logger


class GeneratedContent(BaseModel):
    """Composite output of one generation job."""
    content_id: str
    topic: str
    draft_html: str
    word_count: int
    seo: SEOMetadata
    faqs: List[FAQItem]


async def _gather_or_cancel(*aws: Awaitable[Any]) -> Tuple[Any, ...]:
    """gather(), but a failure cancels the sibling calls instead of orphaning them."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return tuple(await asyncio.gather(*tasks))
    except Exception:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class ContentGenerationTask:
    """Callable run by the worker pool for each content-generation job."""

    def __init__(self, writer: BlogWriterAgent, seo_agent: SEOAgent, faq_agent: FAQAgent):
        self.writer = writer
        self.seo_agent = seo_agent
        self.faq_agent = faq_agent

    async def __call__(self, payload: GenerationPayload, job: JobContext) -> Dict[str, Any]:
        await job.report_progress(10, "draft")
        draft = await self.writer.write(payload.topic, payload.keywords, payload.word_count)

        logger.info(
            "Draft written",
            job_id=job.job_id,
            words=draft.word_count,
            target=payload.word_count,
        )

        await job.report_progress(60, "seo_and_faq")
        seo, faqs = await _gather_or_cancel(
            self.seo_agent.generate(draft.html),
            self.faq_agent.generate(draft.html),
        )

        content = GeneratedContent(
            content_id=payload.content_id,
            topic=payload.topic,
            draft_html=draft.html,
            word_count=draft.word_count,
            seo=seo,
            faqs=faqs,
        )
        return content.model_dump(mode="json")
