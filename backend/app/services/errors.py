"""Domain errors raised by the file services.

HTTP-facing errors carry the status code and detail message the API returns;
app.main renders any FilesError the same way FastAPI renders HTTPException.
"""


class FilesError(Exception):
    """Base class for errors reported to API callers."""

    status_code: int = 400
    default_detail: str = "Bad request"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class UnauthorizedError(FilesError):
    status_code = 401
    default_detail = "Unauthorized"


class MissingFieldError(FilesError):
    default_detail = "Missing name"


class InvalidKindError(FilesError):
    default_detail = "Missing type"


class MissingContentError(FilesError):
    default_detail = "Missing data"


class InvalidParentError(FilesError):
    default_detail = "Parent not found"


class NotFoundError(FilesError):
    """Entry absent, not visible to the caller, or its bytes are gone."""
    status_code = 404
    default_detail = "Not found"


class NotDownloadableError(FilesError):
    default_detail = "A folder doesn't have content"


class StorageError(FilesError):
    status_code = 500
    default_detail = "Storage error"


# ── Pipeline errors (fatal for a job, never retried) ─────────────

class ThumbnailJobError(Exception):
    pass


class MalformedJobError(ThumbnailJobError):
    pass


class SourceMissingError(ThumbnailJobError):
    pass
