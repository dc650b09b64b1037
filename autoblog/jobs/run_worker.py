#!/usr/bin/env python3
"""
Worker Runner for Autoblog.

Runs the content-generation and publishing worker pools in their own
process, separate from the web server (set ENABLE_WORKERS=false there).

Usage:
    python -m autoblog.jobs.run_worker                              # All queues
    python -m autoblog.jobs.run_worker --queues content-generation  # Only generation
    python -m autoblog.jobs.run_worker --queues publishing          # Only publishing
"""

import argparse
import asyncio
import signal
import sys

from autoblog.config import AppConfig
from autoblog.jobs.payloads import QUEUE_CONTENT_GENERATION, QUEUE_PUBLISHING
from autoblog.jobs.runtime import JobRuntime
from autoblog.utils.logging import configure_logging
from autoblog.utils.logging import job_logger as logger


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run Autoblog worker pools")
    parser.add_argument(
        "--queues",
        "-q",
        nargs="+",
        choices=[QUEUE_CONTENT_GENERATION, QUEUE_PUBLISHING],
        default=[QUEUE_CONTENT_GENERATION, QUEUE_PUBLISHING],
        help=f"Queues to process (default: {QUEUE_CONTENT_GENERATION} {QUEUE_PUBLISHING})"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    return parser.parse_args(argv)


async def run(queues, config: AppConfig):
    runtime = await JobRuntime.create(config, with_workers=True)

    # Only keep the pools this process was asked to run
    runtime.pools = {name: pool for name, pool in runtime.pools.items() if name in queues}

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop.set))

    try:
        for pool in runtime.pools.values():
            await pool.recover_stale_jobs()
        runtime.start_workers()
        logger.info("Worker started", queues=", ".join(queues))
        await stop.wait()
        logger.info("Worker stopping; waiting for in-flight jobs")
    finally:
        await runtime.shutdown()
        logger.info("Worker stopped")


def main(argv=None):
    args = parse_args(argv)
    config = AppConfig()
    configure_logging("DEBUG" if args.verbose else config.LOG_LEVEL)

    try:
        asyncio.run(run(args.queues, config))
    except Exception as e:
        logger.critical(f"Worker error: {e}", error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    main()
