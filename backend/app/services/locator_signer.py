"""
Access URL signing for stored video locators.

A record's `video_url` holds whatever the upload pipeline persisted. Before a
record leaves the API, compound `bucket,key` locators are exchanged for a
presigned GET URL valid for `presigned_url_ttl_seconds`. Any other value (an
absolute CDN URL, or no video yet) is returned unchanged, so signing is safe to
apply on every read path.
"""

import logging

from app.models.video import StorageLocator, Video
from app.services.storage_service import StorageService


logger = logging.getLogger(__name__)


class AccessURLSigner:
    """Turns persisted locators into client-fetchable URLs."""

    def __init__(self, storage: StorageService) -> None:
        self.storage = storage

    async def sign_locator(self, value: str | None) -> str | None:
        """
        Sign a single locator.

        Raises:
            SigningFailed: If a compound locator cannot be presigned. The raw
                locator is never returned in its place.
        """
        locator = StorageLocator.parse(value)
        if locator is None:
            return value
        return await self.storage.generate_presigned_download_url(
            locator.key, bucket_name=locator.bucket
        )

    async def sign_video(self, video: Video) -> Video:
        """Return a copy of `video` whose `video_url` is client-fetchable."""
        signed_url = await self.sign_locator(video.video_url)
        return video.model_copy(update={"video_url": signed_url})

    async def sign_videos(self, videos: list[Video]) -> list[Video]:
        return [await self.sign_video(video) for video in videos]


__all__ = ["AccessURLSigner"]
