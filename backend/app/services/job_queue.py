"""Enqueue side of the background job queue (the `jobs` table)."""
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.job import Job

logger = logging.getLogger(__name__)

THUMBNAIL_JOB = "generate-thumbnails"


class JobQueue:
    """Persists jobs in their own session so enqueueing never touches the
    caller's transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def enqueue(self, job_type: str, params: dict, user_id: str) -> Job:
        async with self._session_factory() as db:
            job = Job(job_type=job_type, params=params, user_id=user_id, status="queued")
            db.add(job)
            await db.commit()
            await db.refresh(job)
        logger.info(f"Queued {job_type} job {job.id}")
        return job
