"""
Video record store backed by the MongoDB `videos` collection.

The repository is the only code that touches the collection; everything else
works with `Video` models. Driver errors are logged once here and surfaced as
PersistenceError.
"""

import logging

from datetime import UTC, datetime
from uuid import UUID

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from app.core.errors import NotFound, PersistenceError
from app.models.video import Video, VideoCreate


logger = logging.getLogger(__name__)

# Fields the upload pipeline may change on an existing record
MUTABLE_FIELDS = (
    "title",
    "description",
    "thumbnail_url",
    "video_url",
    "aspect_class",
    "content_type",
    "updated_at",
)


class VideoRepository:
    """
    CRUD access to video records.

    Example:
        ```python
        repository = VideoRepository(get_db_client().get_videos_collection())
        video = await repository.get_video(video_id)
        video.title = "New title"
        await repository.update_video(video)
        ```
    """

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self.collection = collection

    async def get_video(self, video_id: UUID) -> Video:
        """
        Load one record.

        Raises:
            NotFound: If no record has this id.
            PersistenceError: On driver failure.
        """
        try:
            document = await self.collection.find_one({"_id": video_id})
        except PyMongoError as e:
            logger.exception("Failed to load video %s", video_id)
            raise PersistenceError("Couldn't load the video record") from e

        if document is None:
            raise NotFound(f"Video {video_id} not found")
        return Video.from_document(document)

    async def update_video(self, video: Video) -> Video:
        """
        Persist the mutable fields of `video` and bump `updated_at`.

        Returns the record as written.

        Raises:
            PersistenceError: If the record no longer exists or the write fails.
        """
        updated = video.model_copy(update={"updated_at": datetime.now(UTC)})
        document = updated.to_document()
        changes = {name: document[name] for name in MUTABLE_FIELDS}

        try:
            result = await self.collection.update_one({"_id": video.id}, {"$set": changes})
        except PyMongoError as e:
            logger.exception("Failed to update video %s", video.id)
            raise PersistenceError("Couldn't update the video record") from e

        if result.matched_count == 0:
            logger.error("Video %s disappeared before it could be updated", video.id)
            raise PersistenceError(f"Video {video.id} no longer exists")

        logger.debug("Updated video record", extra={"video_id": str(video.id)})
        return updated

    async def list_videos(self, user_id: UUID) -> list[Video]:
        """Return the user's videos, newest first."""
        try:
            cursor = self.collection.find({"user_id": user_id}).sort("created_at", DESCENDING)
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.exception("Failed to list videos for user %s", user_id)
            raise PersistenceError("Couldn't list video records") from e

        return [Video.from_document(document) for document in documents]

    async def create_video(self, user_id: UUID, data: VideoCreate) -> Video:
        """
        Insert a new draft record owned by `user_id`.

        Raises:
            PersistenceError: On driver failure.
        """
        video = Video(user_id=user_id, title=data.title, description=data.description)
        try:
            await self.collection.insert_one(video.to_document())
        except PyMongoError as e:
            logger.exception("Failed to create video for user %s", user_id)
            raise PersistenceError("Couldn't create the video record") from e

        logger.info(
            "Created video record",
            extra={"video_id": str(video.id), "user_id": str(user_id)},
        )
        return video


__all__ = ["MUTABLE_FIELDS", "VideoRepository"]
