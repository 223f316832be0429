"""Upload and query operations on the file hierarchy.

Every method takes the caller's user id, already resolved from the session
token by the route layer (None only for anonymous downloads). Records are
always scoped by owner; the one exception is download, which also serves
public entries.
"""
import base64
import binascii
import logging
import mimetypes
from dataclasses import dataclass

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.file_entry import FileEntry, FILE_TYPES, ROOT_PARENT_ID
from app.schemas.file import FileCreate
from app.services.errors import (
    InvalidKindError,
    InvalidParentError,
    MissingContentError,
    MissingFieldError,
    NotDownloadableError,
    NotFoundError,
)
from app.services.file_storage import FileStorageService, THUMBNAIL_WIDTHS, thumbnail_path
from app.services.job_queue import JobQueue, THUMBNAIL_JOB

logger = logging.getLogger(__name__)

PAGE_SIZE = 20
DEFAULT_MEDIA_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class DownloadTarget:
    path: str
    media_type: str
    filename: str


def parse_id(value) -> int | None:
    """Parse a client-supplied entry id. Returns None for anything that
    cannot name an entry."""
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return parsed if parsed >= 0 else None


def media_type_for(name: str) -> str:
    return mimetypes.guess_type(name)[0] or DEFAULT_MEDIA_TYPE


class FileService:
    def __init__(self, db: AsyncSession, storage: FileStorageService, queue: JobQueue):
        self.db = db
        self.storage = storage
        self.queue = queue

    async def _find_owned(self, user_id: str, file_id) -> FileEntry | None:
        entry_id = parse_id(file_id)
        if entry_id is None:
            return None
        result = await self.db.execute(
            select(FileEntry).where(FileEntry.id == entry_id, FileEntry.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def _resolve_parent(self, user_id: str, parent_id) -> int:
        if parent_id is None:
            raise InvalidParentError("Parent not found")
        if str(parent_id) == str(ROOT_PARENT_ID):
            return ROOT_PARENT_ID
        parent = await self._find_owned(user_id, parent_id)
        if parent is None:
            raise InvalidParentError("Parent not found")
        if not parent.is_folder:
            raise InvalidParentError("Parent is not a folder")
        return parent.id

    async def create(self, user_id: str, body: FileCreate) -> FileEntry:
        """Validate and create a folder, file or image.

        Content is written before the record is committed, so a visible
        record always has its bytes. For images a thumbnail job is queued
        after the commit; failing to queue it does not undo the upload.
        """
        if not body.name:
            raise MissingFieldError("Missing name")
        if body.type not in FILE_TYPES:
            raise InvalidKindError("Missing type")
        if body.type != "folder" and not body.data:
            raise MissingContentError("Missing data")

        parent_id = await self._resolve_parent(user_id, body.parent_id)

        entry = FileEntry(
            user_id=user_id,
            name=body.name,
            type=body.type,
            is_public=bool(body.is_public),
            parent_id=parent_id,
        )

        if not entry.is_folder:
            try:
                content = base64.b64decode(body.data)
            except (binascii.Error, ValueError):
                raise MissingContentError("Invalid data")
            entry.local_path = await self.storage.save(content)

        self.db.add(entry)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            if entry.local_path:
                await self.storage.delete(entry.local_path)
            raise
        await self.db.refresh(entry)
        logger.info(f"Created {entry.type} {entry.id} for user {user_id}")

        if entry.type == "image":
            try:
                await self.queue.enqueue(
                    THUMBNAIL_JOB,
                    {"owner_id": user_id, "file_id": str(entry.id)},
                    user_id=user_id,
                )
            except Exception as e:
                logger.warning(f"Could not queue thumbnails for image {entry.id}: {e}")

        return entry

    async def get(self, user_id: str, file_id) -> FileEntry:
        entry = await self._find_owned(user_id, file_id)
        if entry is None:
            raise NotFoundError()
        return entry

    async def list_entries(self, user_id: str, parent_id="0", page: int = 0) -> list[FileEntry]:
        """One page of the caller's entries directly under `parent_id`,
        in insertion order. Callers page until they get an empty list."""
        scope = parse_id(parent_id)
        if scope is None:
            return []
        result = await self.db.execute(
            select(FileEntry)
            .where(FileEntry.user_id == user_id, FileEntry.parent_id == scope)
            .order_by(FileEntry.id)
            .offset(max(page, 0) * PAGE_SIZE)
            .limit(PAGE_SIZE)
        )
        return list(result.scalars().all())

    async def set_public(self, user_id: str, file_id, value: bool) -> FileEntry:
        entry_id = parse_id(file_id)
        if entry_id is None:
            raise NotFoundError()
        result = await self.db.execute(
            update(FileEntry)
            .where(FileEntry.id == entry_id, FileEntry.user_id == user_id)
            .values(is_public=value)
            .returning(FileEntry)
        )
        entry = result.scalar_one_or_none()
        await self.db.commit()
        if entry is None:
            raise NotFoundError()
        return entry

    async def open_download(self, user_id: str | None, file_id, size: int | None = None) -> DownloadTarget:
        """Locate the bytes for an entry the caller may read.

        `size` selects one of the generated thumbnails instead of the
        original. A missing record, a private entry of another user and
        missing bytes all look the same to the caller.
        """
        entry_id = parse_id(file_id)
        if entry_id is None:
            raise NotFoundError()
        result = await self.db.execute(select(FileEntry).where(FileEntry.id == entry_id))
        entry = result.scalar_one_or_none()
        if entry is None or not (entry.is_public or (user_id is not None and entry.user_id == user_id)):
            raise NotFoundError()
        if entry.is_folder:
            raise NotDownloadableError()

        path = entry.local_path
        if size is not None:
            if size not in THUMBNAIL_WIDTHS:
                raise NotFoundError()
            path = thumbnail_path(path, size)
        if not path or not await self.storage.exists(path):
            raise NotFoundError()
        return DownloadTarget(path=path, media_type=media_type_for(entry.name), filename=entry.name)

    async def count(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(FileEntry))
        return result.scalar_one()
