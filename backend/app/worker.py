"""Standalone thumbnail worker.

Runs WORKER_CONCURRENCY job loops against the same jobs table as the API:

    python -m app.worker
"""
import asyncio
import logging

from app.config import settings
from app.database import async_session, engine
from app.logging_config import setup_logging
from app.services.job_worker import recover_stale_jobs, worker_loop

logger = logging.getLogger(__name__)


async def run_workers(concurrency: int):
    await recover_stale_jobs(async_session, settings.STALE_JOB_MINUTES)
    loops = [
        asyncio.create_task(worker_loop(async_session, settings.WORKER_POLL_INTERVAL))
        for _ in range(max(concurrency, 1))
    ]
    logger.info(f"{len(loops)} worker loop(s) running")
    try:
        await asyncio.gather(*loops)
    finally:
        await engine.dispose()


def main():
    setup_logging()
    try:
        asyncio.run(run_workers(settings.WORKER_CONCURRENCY))
    except KeyboardInterrupt:
        logger.info("Worker shutting down (CTRL+C).")


if __name__ == "__main__":
    main()
