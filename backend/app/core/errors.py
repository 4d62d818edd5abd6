"""
Error taxonomy for the Tubely upload pipeline.

Every stage of the pipeline raises one of the exceptions below. Each carries a
machine-readable `kind` and the HTTP status it maps to; the FastAPI exception
handler registered in `app.main` renders them as:

    {"error": "<kind>", "message": "<human readable message>"}

Hierarchy:
    TubelyError
    ├── ValidationError            400 invalid_id / malformed_multipart
    │   ├── UnsupportedMediaType   415
    │   └── PayloadTooLarge        413
    ├── AuthError                  401
    │   └── Forbidden              403
    ├── NotFound                   404
    ├── UploadIOError              500
    ├── ExternalToolError          500
    │   ├── MetadataUnavailable    422
    │   └── RemuxFailed            500
    ├── StorageError               502
    ├── SigningFailed              502
    └── PersistenceError           500
"""

from fastapi import status


class TubelyError(Exception):
    """Base exception for all pipeline and collaborator failures."""

    kind: str = "internal_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, kind: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind, "message": self.message}


class ValidationError(TubelyError):
    """Malformed id or multipart body."""

    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class UnsupportedMediaType(ValidationError):
    """Declared content type is unparseable or not in the endpoint allow-list."""

    kind = "unsupported_media_type"
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE


class PayloadTooLarge(ValidationError):
    """Request body exceeds the configured ceiling."""

    kind = "payload_too_large"
    status_code = 413  # Content Too Large


class AuthError(TubelyError):
    """Missing or invalid bearer credential."""

    kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(AuthError):
    """Authenticated caller does not own the target video."""

    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(TubelyError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class UploadIOError(TubelyError):
    """Temp file creation or copy failed."""

    kind = "io_error"


class ExternalToolError(TubelyError):
    """ffprobe/ffmpeg exited nonzero, timed out, is missing, or produced garbage."""

    kind = "external_tool_error"


class MetadataUnavailable(ExternalToolError):
    kind = "metadata_unavailable"
    status_code = 422  # Unprocessable Content


class RemuxFailed(ExternalToolError):
    kind = "remux_failed"


class StorageError(TubelyError):
    """Object store PUT failed after all permitted attempts."""

    kind = "storage_error"
    status_code = status.HTTP_502_BAD_GATEWAY


class SigningFailed(TubelyError):
    """Presigned URL issuance failed. Never downgraded to the raw locator."""

    kind = "signing_failed"
    status_code = status.HTTP_502_BAD_GATEWAY


class PersistenceError(TubelyError):
    kind = "persistence_error"


__all__ = [
    "AuthError",
    "ExternalToolError",
    "Forbidden",
    "MetadataUnavailable",
    "NotFound",
    "PayloadTooLarge",
    "PersistenceError",
    "RemuxFailed",
    "SigningFailed",
    "StorageError",
    "TubelyError",
    "UnsupportedMediaType",
    "UploadIOError",
    "ValidationError",
]
