"""
Tubely API v1 Router Aggregator.

Combines the v1 endpoint routers into a single APIRouter that the application
mounts under the /api/v1 prefix.

Router Structure:
    - /videos: Video records, video upload and thumbnail upload
"""

from fastapi import APIRouter

from app.api.v1.videos import router as videos_router


# Create the main API v1 router
api_router = APIRouter()

api_router.include_router(videos_router, prefix="/videos")


__all__ = ["api_router"]
