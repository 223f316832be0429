"""Import all models so SQLAlchemy metadata knows about them."""
from app.models.base import Base
from app.models.file_entry import FileEntry
from app.models.job import Job

__all__ = ["Base", "FileEntry", "Job"]
