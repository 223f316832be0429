"""Thumbnail generation for uploaded images.

`generate_thumbnails()` is the unit of work for one `generate-thumbnails`
job. The worker calls it through the job handler registry; tests call it
directly. Each width is attempted independently: one failed width is logged
and the remaining widths still run, and the job still completes.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.file_entry import FileEntry
from app.services.errors import MalformedJobError, SourceMissingError
from app.services.file_service import parse_id
from app.services.file_storage import FileStorageService, THUMBNAIL_WIDTHS, file_storage

logger = logging.getLogger(__name__)


async def generate_thumbnails(
    params: dict,
    *,
    session_factory: async_sessionmaker[AsyncSession],
    storage: FileStorageService = file_storage,
) -> dict:
    """Derive the 500/250/100 px thumbnails for an image entry.

    Args:
        params: `{"owner_id": ..., "file_id": ...}` as queued by FileService.
        session_factory: Where to look the entry up.
        storage: Content store holding the original and receiving thumbnails.

    Returns:
        `{"file_id", "thumbnails": {width: path}, "failed": [width, ...]}`.

    Raises:
        MalformedJobError: `file_id` or `owner_id` missing or unusable.
        SourceMissingError: no entry with content for that id and owner.
    """
    file_id = params.get("file_id")
    owner_id = params.get("owner_id")
    if not file_id:
        raise MalformedJobError("Missing fileId")
    if not owner_id:
        raise MalformedJobError("Missing userId")
    entry_id = parse_id(file_id)
    if entry_id is None:
        raise MalformedJobError(f"Invalid fileId: {file_id!r}")

    async with session_factory() as db:
        result = await db.execute(
            select(FileEntry).where(FileEntry.id == entry_id, FileEntry.user_id == str(owner_id))
        )
        entry = result.scalar_one_or_none()
    if entry is None or not entry.local_path:
        raise SourceMissingError("File not found")

    thumbnails: dict[str, str] = {}
    failed: list[int] = []
    for width in THUMBNAIL_WIDTHS:
        try:
            thumbnails[str(width)] = await storage.derive_thumbnail(entry.local_path, width)
        except Exception as e:
            logger.error(f"Thumbnail {width}px for file {entry_id} failed: {e}")
            failed.append(width)

    logger.info(
        f"Thumbnails for file {entry_id}: {len(thumbnails)} written, {len(failed)} failed"
    )
    return {"file_id": str(entry_id), "thumbnails": thumbnails, "failed": failed}
