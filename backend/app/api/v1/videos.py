"""
FastAPI Videos Router for Tubely

Endpoints (all require a bearer token; mounted under /api/v1/videos):
- POST /                      - Create a draft video record
- GET  /                      - List the caller's videos, newest first
- GET  /{video_id}            - Get one of the caller's videos
- POST /{video_id}/upload     - Upload the video file (multipart field `video`)
- POST /{video_id}/thumbnail  - Upload a thumbnail (multipart field `thumbnail`)

Every record returned here has gone through the access URL signer, so
`video_url` is either a presigned GET URL or an absolute CDN URL.

Upload handlers take the raw Request rather than an `UploadFile` parameter:
FastAPI would otherwise parse (and spool) the body before the ownership check
has run.
"""

import logging

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from starlette.datastructures import FormData
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from app.api.deps import get_access_url_signer, get_upload_service, get_video_repository
from app.core.auth import get_current_user_id
from app.core.errors import Forbidden, ValidationError
from app.models.video import Video, VideoCreate
from app.services.locator_signer import AccessURLSigner
from app.services.upload_service import VideoUploadService
from app.services.video_repository import VideoRepository


# Configure module logger
logger = logging.getLogger(__name__)


# ============================================================================
# Router Definition
# ============================================================================

_ERROR_SCHEMA = {
    "type": "object",
    "properties": {"error": {"type": "string"}, "message": {"type": "string"}},
}


def _error(description: str) -> dict:
    return {"description": description, "content": {"application/json": {"schema": _ERROR_SCHEMA}}}


router = APIRouter(
    tags=["videos"],
    responses={
        400: _error("Invalid video id or malformed multipart body"),
        401: _error("Missing, invalid or expired bearer token"),
        403: _error("Video belongs to another user"),
        404: _error("Video not found"),
        502: _error("Object store or URL signing failure"),
    },
)


# ============================================================================
# Helper Functions
# ============================================================================


def parse_video_id(video_id: str) -> UUID:
    """
    Parse a path video id.

    Raises:
        ValidationError: kind `invalid_id` if it is not a UUID.
    """
    try:
        return UUID(video_id)
    except ValueError as e:
        raise ValidationError(f"Invalid video id '{video_id}'", kind="invalid_id") from e


async def read_multipart_form(request: Request) -> FormData:
    """
    Parse the request body as multipart/form-data.

    Raises:
        ValidationError: kind `malformed_multipart` if the body cannot be parsed.
    """
    try:
        return await request.form()
    except (MultiPartException, StarletteHTTPException) as e:
        detail = getattr(e, "message", None) or getattr(e, "detail", None) or str(e)
        raise ValidationError(
            f"Couldn't parse multipart body: {detail}", kind="malformed_multipart"
        ) from e


# ============================================================================
# Record Endpoints
# ============================================================================


@router.post(
    "",
    response_model=Video,
    status_code=status.HTTP_201_CREATED,
    summary="Create a draft video",
)
async def create_video(
    data: VideoCreate,
    user_id: UUID = Depends(get_current_user_id),
    repository: VideoRepository = Depends(get_video_repository),
) -> Video:
    """Create an empty video record owned by the caller; upload the file next."""
    return await repository.create_video(user_id, data)


@router.get("", response_model=list[Video], summary="List my videos")
async def list_videos(
    user_id: UUID = Depends(get_current_user_id),
    repository: VideoRepository = Depends(get_video_repository),
    signer: AccessURLSigner = Depends(get_access_url_signer),
) -> list[Video]:
    videos = await repository.list_videos(user_id)
    return await signer.sign_videos(videos)


@router.get("/{video_id}", response_model=Video, summary="Get a video")
async def get_video(
    video_id: str,
    user_id: UUID = Depends(get_current_user_id),
    repository: VideoRepository = Depends(get_video_repository),
    signer: AccessURLSigner = Depends(get_access_url_signer),
) -> Video:
    video = await repository.get_video(parse_video_id(video_id))
    if video.user_id != user_id:
        raise Forbidden("You don't own this video")
    return await signer.sign_video(video)


# ============================================================================
# Upload Endpoints
# ============================================================================


@router.post(
    "/{video_id}/upload",
    response_model=Video,
    summary="Upload the video file",
    responses={
        413: _error("Video larger than max_video_upload_mb"),
        415: _error("Video is not video/mp4"),
        422: _error("ffprobe could not read the video's dimensions"),
    },
)
async def upload_video(
    video_id: str,
    request: Request,
    user_id: UUID = Depends(get_current_user_id),
    service: VideoUploadService = Depends(get_upload_service),
) -> Video:
    """
    Upload an MP4 for an existing draft.

    The file is classified by aspect ratio, remuxed for fast start, stored in
    the bucket under `<aspect>/<random>.mp4`, and the record is returned with
    a presigned `video_url`.
    """
    return await service.upload_video(
        parse_video_id(video_id), user_id, lambda: read_multipart_form(request)
    )


@router.post(
    "/{video_id}/thumbnail",
    response_model=Video,
    summary="Upload a thumbnail image",
    responses={
        413: _error("Thumbnail larger than max_thumbnail_upload_mb"),
        415: _error("Thumbnail is not image/jpeg or image/png"),
    },
)
async def upload_thumbnail(
    video_id: str,
    request: Request,
    user_id: UUID = Depends(get_current_user_id),
    service: VideoUploadService = Depends(get_upload_service),
) -> Video:
    return await service.upload_thumbnail(
        parse_video_id(video_id), user_id, lambda: read_multipart_form(request)
    )


__all__ = ["parse_video_id", "read_multipart_form", "router"]
