"""
Video Pydantic models for Tubely.

This module defines the video record owned by the persistence layer, the
aspect classification enum, and the storage locator value object that the
upload pipeline writes into `Video.video_url`.

A persisted locator is a single string that is either:
- compound: "<bucket>,<key>" naming a private object that must be presigned
  before it can be fetched, or
- opaque: anything else (an absolute CDN URL, an empty value), which the
  access URL signer passes through unchanged.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID, uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENUMS
# =============================================================================


class AspectClass(str, Enum):
    """
    Coarse aspect bucket derived from a video's width / height ratio.

    Assigned once at upload time and used as the object key prefix.
    """

    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"


# =============================================================================
# STORAGE LOCATOR
# =============================================================================


class StorageLocator(BaseModel):
    """
    Compound reference to a private object in the video bucket.

    Example:
        ```python
        locator = StorageLocator(bucket="tubely-videos", key="landscape/ab12.mp4")
        locator.serialize()  # "tubely-videos,landscape/ab12.mp4"
        StorageLocator.parse("https://cdn.example.com/landscape/ab12.mp4")  # None
        ```
    """

    SEPARATOR: ClassVar[str] = ","

    bucket: str = Field(..., min_length=1, description="Bucket holding the object")
    key: str = Field(..., min_length=1, description="Object key inside the bucket")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def parse(cls, value: str | None) -> "StorageLocator | None":
        """
        Parse a persisted locator string.

        Returns the compound locator when `value` holds exactly one separator
        with non-empty text on both sides, otherwise None (opaque locator).
        """
        if not value or value.count(cls.SEPARATOR) != 1:
            return None
        bucket, key = value.split(cls.SEPARATOR)
        if not bucket or not key:
            return None
        return cls(bucket=bucket, key=key)

    def serialize(self) -> str:
        return f"{self.bucket}{self.SEPARATOR}{self.key}"


def is_compound_locator(value: str | None) -> bool:
    return StorageLocator.parse(value) is not None


# =============================================================================
# MODELS
# =============================================================================


class VideoCreate(BaseModel):
    """Request body for creating a draft video record."""

    title: str = Field(..., min_length=1, max_length=200, description="Video title")
    description: str = Field(default="", max_length=5000, description="Free-form description")

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be blank")
        return v


class Video(BaseModel):
    """
    Video record as stored in MongoDB and returned by the API.

    Attributes:
        id: Video identifier (stored as the document `_id`)
        user_id: Owner identity; must match the caller on every upload and read
        title: Display title
        description: Free-form description
        thumbnail_url: Public URL of the uploaded thumbnail, if any
        video_url: Serialized storage locator (compound or absolute URL)
        aspect_class: Aspect bucket assigned at upload time
        content_type: Media type of the stored video object
        created_at: Record creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)
    """

    id: UUID = Field(
        default_factory=uuid4,
        validation_alias=AliasChoices("id", "_id"),
        description="Video identifier",
    )

    user_id: UUID = Field(..., description="Owning user's identifier")

    title: str = Field(..., min_length=1, max_length=200, description="Video title")

    description: str = Field(default="", max_length=5000, description="Free-form description")

    thumbnail_url: str | None = Field(default=None, description="Public thumbnail URL")

    video_url: str | None = Field(
        default=None, description="Storage locator: '<bucket>,<key>' or an absolute URL"
    )

    aspect_class: AspectClass | None = Field(
        default=None, description="Aspect bucket assigned when the video was uploaded"
    )

    content_type: str | None = Field(default=None, description="Media type of the stored video")

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Creation timestamp (UTC)"
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Last modification timestamp (UTC)"
    )

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "0f3e8c1a-3b5e-4a43-9d0f-6f1f0c6c1f2a",
                "user_id": "5d7b2c7e-0b9c-4f7c-a1d3-2e3f4a5b6c7d",
                "title": "Boots in the rain",
                "description": "",
                "thumbnail_url": "http://localhost:8091/assets/3fa2.png",
                "video_url": "https://tubely-videos.s3.amazonaws.com/landscape/9c1e.mp4?X-Amz-...",
                "aspect_class": "landscape",
                "content_type": "video/mp4",
                "created_at": "2026-01-15T10:30:00Z",
                "updated_at": "2026-01-15T10:31:12Z",
            }
        },
    )

    @property
    def locator(self) -> StorageLocator | None:
        return StorageLocator.parse(self.video_url)

    def to_document(self) -> dict[str, Any]:
        """Dump the record in the shape stored in the `videos` collection."""
        document = self.model_dump(exclude={"id"})
        document["_id"] = self.id
        if self.aspect_class is not None:
            document["aspect_class"] = self.aspect_class.value
        return document

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Video":
        return cls.model_validate(document)


__all__ = [
    "AspectClass",
    "StorageLocator",
    "Video",
    "VideoCreate",
    "is_compound_locator",
]
