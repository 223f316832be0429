"""Files API routes."""
from typing import Optional
from urllib.parse import quote
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from app.dependencies import (
    get_current_user_id,
    get_file_service,
    get_file_storage,
    get_optional_user_id,
)
from app.schemas.file import FileCreate, FileEntryResponse
from app.services.file_service import FileService
from app.services.file_storage import FileStorageService

router = APIRouter(prefix="/api/files", tags=["files"])


@router.post("", response_model=FileEntryResponse, status_code=201)
async def upload_file(
    body: FileCreate,
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    """Create a folder, or upload a file/image from base64 `data`."""
    return await service.create(user_id, body)


@router.get("", response_model=list[FileEntryResponse])
async def list_files(
    parent_id: str = Query("0", alias="parentId"),
    page: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    """List the caller's entries under a folder, 20 per page."""
    return await service.list_entries(user_id, parent_id, page)


@router.get("/{file_id}", response_model=FileEntryResponse)
async def get_file_metadata(
    file_id: str,
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    """Get metadata of one of the caller's entries."""
    return await service.get(user_id, file_id)


@router.put("/{file_id}/publish", response_model=FileEntryResponse)
async def publish_file(
    file_id: str,
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    return await service.set_public(user_id, file_id, True)


@router.put("/{file_id}/unpublish", response_model=FileEntryResponse)
async def unpublish_file(
    file_id: str,
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    return await service.set_public(user_id, file_id, False)


@router.get("/{file_id}/data")
async def download_file(
    file_id: str,
    size: Optional[int] = Query(None),
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: FileService = Depends(get_file_service),
    storage: FileStorageService = Depends(get_file_storage),
):
    """Stream file content. Public entries need no token; `size` selects a thumbnail."""
    target = await service.open_download(user_id, file_id, size)
    return StreamingResponse(
        storage.iter_chunks(target.path),
        media_type=target.media_type,
        headers={"Content-Disposition": _content_disposition(target.filename)},
    )


def _content_disposition(filename: str) -> str:
    quoted = quote(filename)
    if quoted != filename:
        return f"inline; filename*=utf-8''{quoted}"
    return f'inline; filename="{filename}"'
