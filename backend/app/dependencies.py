"""FastAPI dependencies wiring the services to their collaborators.

Tests replace these through `app.dependency_overrides`.
"""
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import async_session, get_db
from app.services.auth import CredentialResolver, RedisCredentialResolver, get_redis
from app.services.errors import UnauthorizedError
from app.services.file_service import FileService
from app.services.file_storage import FileStorageService, file_storage
from app.services.job_queue import JobQueue


def get_file_storage() -> FileStorageService:
    return file_storage


def get_job_queue() -> JobQueue:
    return JobQueue(async_session)


def get_credential_resolver() -> CredentialResolver:
    return RedisCredentialResolver(get_redis())


async def get_current_user_id(
    x_token: str | None = Header(None),
    resolver: CredentialResolver = Depends(get_credential_resolver),
) -> str:
    """Resolve the X-Token header or fail with 401."""
    return await resolver.resolve(x_token)


async def get_optional_user_id(
    x_token: str | None = Header(None),
    resolver: CredentialResolver = Depends(get_credential_resolver),
) -> str | None:
    """Like get_current_user_id, but anonymous callers get None."""
    if not x_token:
        return None
    try:
        return await resolver.resolve(x_token)
    except UnauthorizedError:
        return None


def get_file_service(
    db: AsyncSession = Depends(get_db),
    storage: FileStorageService = Depends(get_file_storage),
    queue: JobQueue = Depends(get_job_queue),
) -> FileService:
    return FileService(db, storage, queue)
