"""FileEntry model - file/folder hierarchy (actual bytes on local storage)."""
from sqlalchemy import String, Integer, Boolean, Index
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base, TimestampMixin, UserMixin

ROOT_PARENT_ID = 0
FILE_TYPES = ("folder", "file", "image")


class FileEntry(Base, TimestampMixin, UserMixin):
    __tablename__ = "files"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    # 0 is the root sentinel; otherwise the id of a folder owned by the same user
    parent_id: Mapped[int] = mapped_column(Integer, default=ROOT_PARENT_ID)
    # Set iff type != "folder"
    local_path: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    __table_args__ = (
        Index("idx_files_user_parent", "user_id", "parent_id"),
    )

    @property
    def is_folder(self) -> bool:
        return self.type == "folder"
