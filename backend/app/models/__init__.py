"""
Models Package for Tubely.

Pydantic models for video records and the values the upload pipeline writes
into them.

Example Usage:
    ```python
    from app.models import AspectClass, StorageLocator, Video

    locator = StorageLocator(bucket="tubely-videos", key="portrait/1f2e.mp4")
    video.video_url = locator.serialize()
    video.aspect_class = AspectClass.PORTRAIT
    ```
"""

from app.models.video import (
    AspectClass,
    StorageLocator,
    Video,
    VideoCreate,
    is_compound_locator,
)


__all__ = [
    "AspectClass",
    "StorageLocator",
    "Video",
    "VideoCreate",
    "is_compound_locator",
]
