"""
Upload Receiver for Tubely.

Copies one file part of a parsed multipart form into a private temporary
file under a byte ceiling. The temporary file lives only inside the
`UploadReceiver.receive` context: it (and any sibling file registered on the
session, such as the remux output) is removed when the context exits,
whether the request succeeded or failed.
"""

import logging
import os
import tempfile

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path

import aiofiles

from starlette.datastructures import FormData, UploadFile

from app.config import Settings
from app.core.errors import PayloadTooLarge, UploadIOError, ValidationError
from app.utils.file_validator import extension_for_media_type


logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1 MB
TEMP_FILE_PREFIX = "tubely-upload-"


@dataclass
class UploadSession:
    """
    Ephemeral state of one received upload.

    Attributes:
        path: Temporary file holding the part's bytes
        content_type: Validated media type declared for the part
        size: Bytes written so far
        derived_paths: Extra files produced from `path` that share its lifetime
    """

    path: Path
    content_type: str
    size: int = 0
    derived_paths: list[Path] = field(default_factory=list)

    def track(self, path: Path) -> Path:
        """Register a derived file so it is removed together with the upload."""
        self.derived_paths.append(path)
        return path

    def cleanup(self) -> None:
        for path in [*self.derived_paths, self.path]:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Failed to remove temporary file '%s': %s", path, e)


def get_form_file(form: FormData, field_name: str) -> UploadFile:
    """
    Return the file part named `field_name` from a parsed form.

    Raises:
        ValidationError: If the field is missing or is a plain text field.
    """
    part = form.get(field_name)
    if not isinstance(part, UploadFile):
        raise ValidationError(
            f"Multipart body must contain a file field named '{field_name}'",
            kind="malformed_multipart",
        )
    return part


class UploadReceiver:
    """
    Streams an uploaded part to a scoped temporary file.

    Example:
        ```python
        async with receiver.receive(part, "video/mp4", settings.max_video_upload_bytes) as session:
            aspect = await classifier.classify(session.path)
        # session.path no longer exists here
        ```
    """

    def __init__(self, settings: Settings) -> None:
        self.temp_dir = settings.upload_temp_dir

    @asynccontextmanager
    async def receive(
        self,
        part: UploadFile,
        content_type: str,
        max_bytes: int,
    ) -> AsyncIterator[UploadSession]:
        """
        Copy `part` to a new temporary file and yield its UploadSession.

        Args:
            part: The multipart file part to copy
            content_type: Already-validated media type of the part
            max_bytes: Ceiling on the part size

        Raises:
            UploadIOError: If the temp file cannot be created or written.
            PayloadTooLarge: If the part exceeds `max_bytes`.
        """
        suffix = extension_for_media_type(content_type)
        try:
            fd, name = tempfile.mkstemp(prefix=TEMP_FILE_PREFIX, suffix=suffix, dir=self.temp_dir)
            os.close(fd)
        except OSError as e:
            logger.exception("Could not create temporary upload file")
            raise UploadIOError("Couldn't create a temporary file for the upload") from e

        session = UploadSession(path=Path(name), content_type=content_type)
        try:
            await self._copy(part, session, max_bytes)
            logger.debug("Received %d bytes into %s", session.size, session.path)
            yield session
        finally:
            session.cleanup()

    async def _copy(self, part: UploadFile, session: UploadSession, max_bytes: int) -> None:
        try:
            async with aiofiles.open(session.path, "wb") as out:
                while chunk := await part.read(CHUNK_SIZE):
                    session.size += len(chunk)
                    if session.size > max_bytes:
                        raise PayloadTooLarge(
                            f"Upload exceeds the maximum size of {max_bytes} bytes"
                        )
                    await out.write(chunk)
        except OSError as e:
            logger.exception("Could not copy upload into %s", session.path)
            raise UploadIOError("Couldn't copy the uploaded file content") from e


__all__ = ["CHUNK_SIZE", "TEMP_FILE_PREFIX", "UploadReceiver", "UploadSession", "get_form_file"]
