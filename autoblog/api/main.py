"""
FastAPI application for the Autoblog API.

This module sets up the FastAPI app with routes, middleware and the job
runtime lifecycle. With ENABLE_WORKERS the worker pools run inside the web
process; otherwise run ``python -m autoblog.jobs.run_worker`` separately.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from autoblog import __version__
from autoblog.config import AppConfig
from autoblog.jobs.runtime import JobRuntime
from autoblog.routes.admin import router as admin_router
from autoblog.routes.content import router as content_router
from autoblog.routes.publish import router as publish_router
from autoblog.utils.logging import api_logger as logger
from autoblog.utils.logging import configure_logging

RuntimeFactory = Callable[[AppConfig], Awaitable[JobRuntime]]


async def default_runtime_factory(config: AppConfig) -> JobRuntime:
    return await JobRuntime.create(config, with_workers=config.ENABLE_WORKERS)


def create_app(
    app_config: Optional[AppConfig] = None,
    runtime_factory: Optional[RuntimeFactory] = None
) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        app_config: Settings to use; read from the environment when omitted
        runtime_factory: Builds the JobRuntime at startup (tests inject fakes here)
    """
    config = app_config or AppConfig()
    factory = runtime_factory or default_runtime_factory

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(config.LOG_LEVEL)
        runtime = await factory(config)
        app.state.runtime = runtime

        if runtime.pools:
            for pool in runtime.pools.values():
                await pool.recover_stale_jobs()
            runtime.start_workers()

        logger.info(
            "API started",
            environment=config.ENVIRONMENT,
            workers=runtime.workers_running,
            wordpress_configured=config.wordpress_configured,
            llm_configured=config.llm_configured,
        )
        try:
            yield
        finally:
            await runtime.shutdown()
            app.state.runtime = None
            logger.info("API stopped")

    app = FastAPI(
        title="Autoblog API",
        description="AI blog post generation and WordPress publishing",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.runtime = None

    # CORS middleware for frontend access
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(content_router)
    app.include_router(publish_router)
    app.include_router(admin_router)

    @app.get("/health")
    async def health():
        """Liveness check; does not touch the job store."""
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    config = app.state.config
    uvicorn.run(
        "autoblog.api.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        reload=config.DEBUG,
    )
