"""
Tubely Upload Service Module

Orchestrates the two upload paths exposed by the API.

Video upload (`upload_video`):

    load record -> ownership check -> parse multipart -> content-type check
        -> receive to temp file -> classify aspect -> fast-start remux
        -> build key -> PUT (bounded retry) -> build locator
        -> update record -> sign locator

Thumbnail upload (`upload_thumbnail`):

    load record -> ownership check -> parse multipart -> content-type check
        -> receive to temp file -> write under assets_root -> update record

The ownership check runs before the request body is parsed, so a caller who
does not own the video never causes a temporary file to be written. Every stage
failure aborts the pipeline with the stage's domain error; nothing is retried
except the object store PUT, and nothing is undone. A PUT followed by a failed
record update leaves an orphaned object, which is logged at ERROR with its
bucket and key.
"""

import asyncio
import logging
import secrets
import shutil

from collections.abc import Awaitable, Callable
from pathlib import Path
from uuid import UUID

from starlette.datastructures import FormData

from app.config import Settings
from app.core.errors import Forbidden, PersistenceError, UploadIOError
from app.models.video import Video
from app.services.aspect_service import AspectClassifier
from app.services.locator_signer import AccessURLSigner
from app.services.remux_service import FastStartRemuxer, fast_start_output_path
from app.services.storage_service import OBJECT_KEY_TOKEN_BYTES, StorageService, build_object_key
from app.services.upload_receiver import UploadReceiver, get_form_file
from app.services.video_repository import VideoRepository
from app.utils.file_validator import (
    ALLOWED_THUMBNAIL_MEDIA_TYPES,
    ALLOWED_VIDEO_MEDIA_TYPES,
    extension_for_media_type,
    validate_media_type,
)
from app.utils.logger import add_log_context


# Configure module logger
logger = logging.getLogger(__name__)

VIDEO_FIELD = "video"
THUMBNAIL_FIELD = "thumbnail"

FormLoader = Callable[[], Awaitable[FormData]]


class VideoUploadService:
    """
    Upload pipeline for video files and thumbnails.

    Every collaborator is passed in, so tests can swap any stage for a fake.

    Example:
        ```python
        service = VideoUploadService(
            settings, repository, receiver, classifier, remuxer, storage, signer
        )
        video = await service.upload_video(video_id, user_id, request.form)
        ```
    """

    def __init__(
        self,
        settings: Settings,
        repository: VideoRepository,
        receiver: UploadReceiver,
        classifier: AspectClassifier,
        remuxer: FastStartRemuxer,
        storage: StorageService,
        signer: AccessURLSigner,
    ) -> None:
        self.settings = settings
        self.repository = repository
        self.receiver = receiver
        self.classifier = classifier
        self.remuxer = remuxer
        self.storage = storage
        self.signer = signer

    async def load_owned_video(self, video_id: UUID, user_id: UUID) -> Video:
        """
        Load a record and make sure `user_id` owns it.

        Raises:
            NotFound: If the record does not exist.
            Forbidden: If the record belongs to someone else.
        """
        video = await self.repository.get_video(video_id)
        if video.user_id != user_id:
            logger.warning(
                "Rejected access to a video owned by another user",
                extra={"video_id": str(video_id), "user_id": str(user_id)},
            )
            raise Forbidden("You don't own this video")
        return video

    # =========================================================================
    # Video
    # =========================================================================

    async def upload_video(self, video_id: UUID, user_id: UUID, load_form: FormLoader) -> Video:
        """
        Run the video pipeline and return the updated record with a signed URL.

        Args:
            video_id: Target record
            user_id: Authenticated caller
            load_form: Parses the request body; only awaited after the ownership check

        Raises:
            TubelyError: The domain error of whichever stage failed.
        """
        ctx_logger = add_log_context(logger, video_id=str(video_id), user_id=str(user_id))
        video = await self.load_owned_video(video_id, user_id)

        form = await load_form()
        try:
            part = get_form_file(form, VIDEO_FIELD)
            content_type = validate_media_type(part.content_type, ALLOWED_VIDEO_MEDIA_TYPES)

            ctx_logger.info("Receiving video upload", extra={"content_type": content_type})
            async with self.receiver.receive(
                part, content_type, self.settings.max_video_upload_bytes
            ) as session:
                aspect = await self.classifier.classify(session.path)

                # Registered before ffmpeg runs so a partial output is removed too
                session.track(fast_start_output_path(session.path))
                processed_path = await self.remuxer.remux(session.path)

                key = build_object_key(aspect, extension_for_media_type(content_type))
                await self.storage.upload_video(processed_path, key, content_type)
        finally:
            await form.close()

        locator = self.storage.build_locator(key)
        updated = video.model_copy(
            update={"video_url": locator, "aspect_class": aspect, "content_type": content_type}
        )

        try:
            saved = await self.repository.update_video(updated)
        except PersistenceError:
            ctx_logger.error(
                "Video object stored but record update failed; object is orphaned",
                extra={"bucket": self.storage.bucket_name, "key": key},
            )
            raise

        ctx_logger.info(
            "Video upload complete",
            extra={"aspect_class": aspect.value, "key": key},
        )
        return await self.signer.sign_video(saved)

    # =========================================================================
    # Thumbnail
    # =========================================================================

    async def upload_thumbnail(
        self, video_id: UUID, user_id: UUID, load_form: FormLoader
    ) -> Video:
        """
        Store a thumbnail under `assets_root` and point the record at it.

        Returns the updated record with its `video_url` signed.
        """
        ctx_logger = add_log_context(logger, video_id=str(video_id), user_id=str(user_id))
        video = await self.load_owned_video(video_id, user_id)

        form = await load_form()
        try:
            part = get_form_file(form, THUMBNAIL_FIELD)
            content_type = validate_media_type(part.content_type, ALLOWED_THUMBNAIL_MEDIA_TYPES)

            async with self.receiver.receive(
                part, content_type, self.settings.max_thumbnail_upload_bytes
            ) as session:
                name = f"{secrets.token_hex(OBJECT_KEY_TOKEN_BYTES)}{extension_for_media_type(content_type)}"
                await self._store_asset(session.path, self.settings.assets_path / name)
        finally:
            await form.close()

        thumbnail_url = f"{self.settings.public_base_url}/assets/{name}"
        saved = await self.repository.update_video(
            video.model_copy(update={"thumbnail_url": thumbnail_url})
        )

        ctx_logger.info("Thumbnail upload complete", extra={"thumbnail_url": thumbnail_url})
        return await self.signer.sign_video(saved)

    async def _store_asset(self, source: Path, destination: Path) -> None:
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copyfile, source, destination)
        except OSError as e:
            logger.exception("Could not write thumbnail to %s", destination)
            raise UploadIOError("Couldn't save the thumbnail") from e


__all__ = ["THUMBNAIL_FIELD", "VIDEO_FIELD", "FormLoader", "VideoUploadService"]
