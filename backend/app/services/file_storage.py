"""File storage on the local filesystem, plus thumbnail derivation."""
import asyncio
import io
import logging
import os
import uuid
from pathlib import Path
from typing import AsyncIterator

import aiofiles
from PIL import Image

from app.config import settings
from app.services.errors import StorageError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
THUMBNAIL_WIDTHS = (500, 250, 100)


def thumbnail_path(storage_path: str, width: int) -> str:
    """Thumbnails live beside the original: <path>_<width>."""
    return f"{storage_path}_{width}"


def _resize(source: bytes, width: int) -> bytes:
    """Resize to `width` keeping the aspect ratio, in the source's format."""
    with Image.open(io.BytesIO(source)) as img:
        fmt = img.format or "PNG"
        height = max(1, round(img.height * width / img.width))
        resized = img.resize((width, height), Image.Resampling.LANCZOS)
        out = io.BytesIO()
        resized.save(out, format=fmt)
        return out.getvalue()


class FileStorageService:
    """Handles file read/write under a single root directory."""

    def __init__(self, base_path: str | Path | None = None):
        self.base_path = Path(base_path or settings.FILE_STORAGE_PATH)

    async def save(self, file_bytes: bytes) -> str:
        """Write bytes to a fresh unique path and return that path."""
        file_path = self.base_path / str(uuid.uuid4())
        try:
            await asyncio.to_thread(self.base_path.mkdir, parents=True, exist_ok=True)
            async with aiofiles.open(file_path, "wb") as f:
                await f.write(file_bytes)
                await f.flush()
                await asyncio.to_thread(os.fsync, f.fileno())
        except OSError as e:
            logger.error(f"Failed to write {file_path}: {e}")
            raise StorageError() from e
        return str(file_path)

    async def exists(self, storage_path: str) -> bool:
        return await asyncio.to_thread(os.path.isfile, storage_path)

    async def read(self, storage_path: str) -> bytes:
        """Read file bytes from storage path."""
        async with aiofiles.open(storage_path, "rb") as f:
            return await f.read()

    async def iter_chunks(self, storage_path: str, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Stream file bytes, for download responses."""
        async with aiofiles.open(storage_path, "rb") as f:
            while chunk := await f.read(chunk_size):
                yield chunk

    async def delete(self, storage_path: str) -> None:
        try:
            await asyncio.to_thread(os.remove, storage_path)
        except FileNotFoundError:
            pass

    async def derive_thumbnail(self, storage_path: str, width: int) -> str:
        """Write a `width`-pixel-wide copy of the image beside the original.

        Output paths are deterministic, so running this twice overwrites the
        same file.
        """
        source = await self.read(storage_path)
        thumbnail = await asyncio.to_thread(_resize, source, width)
        target = thumbnail_path(storage_path, width)
        async with aiofiles.open(target, "wb") as f:
            await f.write(thumbnail)
        return target


file_storage = FileStorageService()
