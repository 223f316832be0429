"""File entry request/response schemas."""
from typing import Optional, Union
from pydantic import field_validator
from app.schemas.base import CamelModel, CamelORMModel


class FileCreate(CamelModel):
    """Upload body. Fields are optional here; FileService reports what is missing."""
    name: Optional[str] = None
    type: Optional[str] = None
    data: Optional[str] = None  # base64 content, required unless type == "folder"
    is_public: Optional[bool] = False
    parent_id: Optional[Union[int, str]] = "0"  # absent means root; null is not a parent


class FileEntryResponse(CamelORMModel):
    id: str
    user_id: str
    name: str
    type: str
    is_public: bool
    parent_id: str
    local_path: Optional[str] = None

    @field_validator("id", "parent_id", mode="before")
    @classmethod
    def id_to_str(cls, v):
        return str(v)


class StatsResponse(CamelModel):
    files: int
