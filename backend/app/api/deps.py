"""
FastAPI dependency providers for the Tubely API.

Process-wide collaborators (the boto3-backed storage service and the media
tool runner with its admission semaphore) are built once and cached; the
record store and upload service are assembled per request around them.
Tests replace any of these through `app.dependency_overrides`.
"""

from functools import lru_cache

from fastapi import Depends

from app.config import Settings, get_settings
from app.core.database import get_db_client
from app.services.aspect_service import AspectClassifier
from app.services.locator_signer import AccessURLSigner
from app.services.remux_service import FastStartRemuxer
from app.services.storage_service import StorageService
from app.services.upload_receiver import UploadReceiver
from app.services.upload_service import VideoUploadService
from app.services.video_repository import VideoRepository
from app.utils.process import MediaToolRunner


@lru_cache
def get_storage_service() -> StorageService:
    return StorageService(get_settings())


@lru_cache
def get_media_tool_runner() -> MediaToolRunner:
    settings = get_settings()
    return MediaToolRunner(
        timeout=settings.media_tool_timeout_seconds,
        max_concurrent=settings.max_concurrent_media_jobs,
    )


def get_video_repository() -> VideoRepository:
    return VideoRepository(get_db_client().get_videos_collection())


def get_access_url_signer(
    storage: StorageService = Depends(get_storage_service),
) -> AccessURLSigner:
    return AccessURLSigner(storage)


def get_upload_service(
    settings: Settings = Depends(get_settings),
    repository: VideoRepository = Depends(get_video_repository),
    storage: StorageService = Depends(get_storage_service),
    runner: MediaToolRunner = Depends(get_media_tool_runner),
    signer: AccessURLSigner = Depends(get_access_url_signer),
) -> VideoUploadService:
    """Assemble the upload pipeline for one request."""
    return VideoUploadService(
        settings=settings,
        repository=repository,
        receiver=UploadReceiver(settings),
        classifier=AspectClassifier(settings, runner),
        remuxer=FastStartRemuxer(settings, runner),
        storage=storage,
        signer=signer,
    )


__all__ = [
    "get_access_url_signer",
    "get_media_tool_runner",
    "get_storage_service",
    "get_upload_service",
    "get_video_repository",
]
