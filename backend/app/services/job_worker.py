"""Background job worker.

Polls the jobs table for 'queued' jobs and processes them. Runs either as an
asyncio task inside the API process or as a standalone process (app.worker)
with several loops. Claiming a job is a conditional UPDATE, so any number of
loops can share one jobs table.
"""
import asyncio
import logging
import traceback
from datetime import datetime, timedelta, timezone

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.job import Job
from app.services.errors import ThumbnailJobError
from app.services.job_queue import THUMBNAIL_JOB

logger = logging.getLogger(__name__)


async def recover_stale_jobs(session_factory: async_sessionmaker[AsyncSession], stale_minutes: int = 15):
    """Requeue jobs stuck in 'running' for longer than `stale_minutes`.

    Call on startup to recover from process crashes that left jobs stranded.
    Handlers are idempotent, so a requeued job can safely run again.
    """
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=stale_minutes)
    async with session_factory() as db:
        result = await db.execute(
            select(Job).where(
                and_(
                    Job.status == "running",
                    Job.started_at < cutoff,
                )
            )
        )
        stale_jobs = result.scalars().all()
        for job in stale_jobs:
            logger.warning(f"Requeued stale job {job.id} (started at {job.started_at})")
            job.status = "queued"
            job.started_at = None
        if stale_jobs:
            await db.commit()
            logger.info(f"Recovered {len(stale_jobs)} stale job(s)")


def safe_error_message(e: Exception, fallback: str = "Job failed") -> str:
    """Extract a meaningful error message from an exception.

    Some exceptions produce an empty str(e). This helper falls back to the
    exception class name.
    """
    msg = str(e).strip()
    if not msg:
        msg = f"{type(e).__name__}: {fallback}"
    return msg


# Job handler registry - add new job types here
JOB_HANDLERS = {}


def register_job_handler(job_type: str):
    """Decorator to register a job handler function."""
    def decorator(func):
        JOB_HANDLERS[job_type] = func
        return func
    return decorator


async def process_job(job_id, job_type: str, params: dict, session_factory) -> dict:
    """Dispatch job to the appropriate handler."""
    handler = JOB_HANDLERS.get(job_type)
    if not handler:
        raise ValueError(f"Unknown job type: {job_type}")
    return await handler(job_id, params, session_factory)


async def _claim_next_job(session_factory) -> Job | None:
    """Move the oldest queued job to 'running'. None if the queue is empty
    or another loop claimed it first."""
    async with session_factory() as db:
        result = await db.execute(
            select(Job)
            .where(Job.status == "queued")
            .order_by(Job.created_at)
            .limit(1)
        )
        job = result.scalar_one_or_none()
        if job is None:
            return None
        claimed = await db.execute(
            update(Job)
            .where(Job.id == job.id, Job.status == "queued")
            .values(status="running", started_at=datetime.now(timezone.utc))
        )
        await db.commit()
        if claimed.rowcount != 1:
            return None
        await db.refresh(job)
        return job


async def _finish_job(session_factory, job_id, *, result: dict | None = None, error: Exception | None = None):
    async with session_factory() as db:
        job = await db.get(Job, job_id)
        if job is None:
            return
        if error is None:
            job.status = "completed"
            job.result = result or {}
        else:
            job.status = "failed"
            job.error_message = safe_error_message(error)[:2000]
        job.completed_at = datetime.now(timezone.utc)
        await db.commit()


async def run_next_job(session_factory: async_sessionmaker[AsyncSession]) -> bool:
    """Claim and process one job. Returns False when nothing was claimed."""
    job = await _claim_next_job(session_factory)
    if job is None:
        return False

    logger.info(f"Processing job {job.id} (type={job.job_type})")
    try:
        result_data = await process_job(job.id, job.job_type, job.params, session_factory)
    except ThumbnailJobError as e:
        # Fatal for this job; not retried
        logger.error(f"Job {job.id} failed: {e}")
        error = e
    except Exception as e:
        logger.error(f"Job {job.id} failed: {e}")
        logger.error(traceback.format_exc())
        error = e
    else:
        await _finish_job(session_factory, job.id, result=result_data)
        logger.info(f"Job {job.id} completed")
        return True

    # Retry up to 3 times so a transient DB error doesn't leave the job
    # stuck in "running" forever.
    for attempt in range(3):
        try:
            await _finish_job(session_factory, job.id, error=error)
            break
        except Exception as db_err:
            logger.error(
                f"Failed to mark job {job.id} as failed "
                f"(attempt {attempt + 1}/3): {db_err}"
            )
            if attempt < 2:
                await asyncio.sleep(1)
    return True


async def worker_loop(session_factory: async_sessionmaker[AsyncSession], poll_interval: float = 5.0):
    """Main worker loop. Drains the queue, then polls every `poll_interval` seconds."""
    logger.info("Job worker started")
    while True:
        try:
            while await run_next_job(session_factory):
                pass
        except Exception as e:
            logger.error(f"Worker loop error: {e}")

        await asyncio.sleep(poll_interval)


# ── Job Handlers ─────────────────────────────────────────────────

@register_job_handler(THUMBNAIL_JOB)
async def handle_generate_thumbnails(job_id, params: dict, session_factory) -> dict:
    """Write the 500/250/100 px thumbnails of an uploaded image."""
    from app.services.thumbnails import generate_thumbnails
    return await generate_thumbnails(params, session_factory=session_factory)
