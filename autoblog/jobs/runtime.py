"""
JobRuntime: the explicitly constructed context that owns the job store,
the outbound clients, the two worker pools and their scheduler.

The web app and the standalone worker both build one from AppConfig and
pass it around; nothing here is a module-level singleton.
"""

import time
from typing import Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from autoblog.agents import BlogWriterAgent, FAQAgent, SEOAgent
from autoblog.config import AppConfig
from autoblog.jobs.database import JobStore
from autoblog.jobs.payloads import QUEUE_CONTENT_GENERATION, QUEUE_PUBLISHING
from autoblog.jobs.queue import JobQueue
from autoblog.jobs.worker import PoolConfig, WorkerPool
from autoblog.pipeline import ContentGenerationTask, PublishingTask
from autoblog.utils.logging import job_logger as logger
from autoblog.wordpress import WordPressClient

CLEANUP_INTERVAL_HOURS = 6


def generation_pool_config(config: AppConfig) -> PoolConfig:
    return PoolConfig(
        concurrency=config.GENERATION_CONCURRENCY,
        max_per_window=config.GENERATION_RATE_LIMIT_MAX,
        window_seconds=config.GENERATION_RATE_LIMIT_WINDOW_SECONDS,
        max_attempts=config.JOB_MAX_ATTEMPTS,
        backoff_base_seconds=config.JOB_BACKOFF_BASE_SECONDS,
        backoff_max_seconds=config.JOB_BACKOFF_MAX_SECONDS,
        poll_interval_seconds=config.WORKER_POLL_INTERVAL,
    )


def publishing_pool_config(config: AppConfig) -> PoolConfig:
    return PoolConfig(
        concurrency=config.PUBLISH_CONCURRENCY,
        max_per_window=None,
        max_attempts=config.JOB_MAX_ATTEMPTS,
        backoff_base_seconds=config.JOB_BACKOFF_BASE_SECONDS,
        backoff_max_seconds=config.JOB_BACKOFF_MAX_SECONDS,
        poll_interval_seconds=config.WORKER_POLL_INTERVAL,
    )


class JobRuntime:
    """
    Usage:
        runtime = await JobRuntime.create(config)
        runtime.start_workers()
        record = await runtime.queue.enqueue("content-generation", {...})
        ...
        await runtime.shutdown()
    """

    def __init__(
        self,
        store: JobStore,
        pools: Optional[Dict[str, WorkerPool]] = None,
        wordpress: Optional[WordPressClient] = None,
        retention_days: Optional[int] = None
    ):
        self.store = store
        self.queue = JobQueue(store)
        self.pools = pools or {}
        self.wordpress = wordpress
        self.retention_days = retention_days
        self.scheduler: Optional[AsyncIOScheduler] = None

    @classmethod
    async def create(
        cls,
        config: AppConfig,
        with_workers: bool = True,
        store: Optional[JobStore] = None,
        writer: Optional[BlogWriterAgent] = None,
        seo_agent: Optional[SEOAgent] = None,
        faq_agent: Optional[FAQAgent] = None,
        wordpress: Optional[WordPressClient] = None,
        clock: Callable[[], float] = time.time
    ) -> "JobRuntime":
        """
        Build and connect everything the config describes.

        Collaborators passed in explicitly are used as-is. With
        with_workers=False only the store and the facade are set up, which
        is all a web process needs when a separate worker runs the pools.
        """
        store = store or JobStore(config.job_db_path)
        if not store.is_connected:
            await store.connect()

        if not with_workers:
            return cls(store, wordpress=wordpress, retention_days=config.JOB_RETENTION_DAYS)

        llm_settings = {
            "api_key": config.ANTHROPIC_API_KEY,
            "timeout": config.LLM_TIMEOUT_SECONDS,
        }
        writer = writer or BlogWriterAgent(
            model_name=config.MODEL_NAME,
            temperature=config.TEMPERATURE,
            max_tokens=config.MAX_TOKENS,
            **llm_settings,
        )
        seo_agent = seo_agent or SEOAgent(model_name=config.metadata_model_name, **llm_settings)
        faq_agent = faq_agent or FAQAgent(model_name=config.metadata_model_name, **llm_settings)

        if wordpress is None and config.wordpress_configured:
            wordpress = WordPressClient.from_config(config)
        if wordpress is None:
            logger.warning("WordPress is not configured; publishing jobs will fail")

        pools = {
            QUEUE_CONTENT_GENERATION: WorkerPool(
                QUEUE_CONTENT_GENERATION,
                store,
                ContentGenerationTask(writer, seo_agent, faq_agent),
                generation_pool_config(config),
                clock=clock,
            ),
            QUEUE_PUBLISHING: WorkerPool(
                QUEUE_PUBLISHING,
                store,
                PublishingTask(wordpress),
                publishing_pool_config(config),
                clock=clock,
            ),
        }
        return cls(store, pools, wordpress, retention_days=config.JOB_RETENTION_DAYS)

    def pool(self, queue_name: str) -> WorkerPool:
        return self.pools[queue_name]

    def start_workers(self):
        """Start every pool's dequeue loop on a shared AsyncIOScheduler"""
        if self.scheduler is not None:
            return
        self.scheduler = AsyncIOScheduler()
        for pool in self.pools.values():
            pool.start(self.scheduler)

        if self.retention_days:
            self.scheduler.add_job(
                self.cleanup_old_jobs,
                trigger=IntervalTrigger(hours=CLEANUP_INTERVAL_HOURS),
                id="job_cleanup",
                name="Remove old finished jobs",
                replace_existing=True,
                max_instances=1
            )

        self.scheduler.start()

    async def cleanup_old_jobs(self, days: Optional[int] = None) -> int:
        """Delete finished jobs older than the retention period."""
        days = days or self.retention_days or 30
        deleted = await self.store.cleanup_old_jobs(days)
        if deleted:
            logger.info("Old jobs cleaned up", deleted=deleted, days=days)
        return deleted

    @property
    def workers_running(self) -> bool:
        return self.scheduler is not None

    async def shutdown(self):
        """Stop pools (letting in-flight jobs finish), then close connections"""
        for pool in self.pools.values():
            await pool.shutdown()

        if self.scheduler is not None:
            if self.scheduler.running:
                self.scheduler.shutdown(wait=False)
            self.scheduler = None

        if self.wordpress is not None:
            await self.wordpress.aclose()
        await self.store.close()
