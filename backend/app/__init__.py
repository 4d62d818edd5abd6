"""
Tubely Backend Application Package

FastAPI service that accepts video uploads for existing records, classifies
them by aspect ratio with ffprobe, remuxes them for fast start with ffmpeg,
stores them in S3 and hands clients presigned URLs to play them.

Package Structure:
- api/: REST API endpoints organized by version (v1)
- core/: Infrastructure (database, auth, errors, middleware)
- models/: Pydantic data models
- services/: Upload pipeline stages and the record store
- utils/: Logging, media type validation, external process execution
"""

__version__ = "1.0.0"
__app_name__ = "Tubely"
