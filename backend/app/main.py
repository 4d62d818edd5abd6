"""
Tubely FastAPI Application Entry Point

This module builds the Tubely backend API:
- Logging setup and MongoDB lifecycle (lifespan)
- CORS, request logging and upload body size middleware
- The /api/v1 router and a liveness endpoint
- The `/assets` static mount serving uploaded thumbnails
- One exception handler translating pipeline errors into
  `{"error": kind, "message": ...}` responses

API Structure:
    /api/v1/videos    - Video records, video and thumbnail uploads
    /assets/<name>    - Uploaded thumbnails
    /health           - Liveness

Usage:
    uvicorn app.main:app --host 0.0.0.0 --port 8091
"""

import logging
import time
import uuid

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import uvicorn

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.api.v1 import api_router
from app.config import get_settings
from app.core.database import close_db, init_db
from app.core.errors import AuthError, Forbidden, TubelyError
from app.core.middleware import BodySizeLimitMiddleware
from app.utils.logger import setup_logging


# Configure module logger
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# Status codes >= 400 are logged at WARNING
HTTP_ERROR_THRESHOLD = 400


# =============================================================================
# Application Lifespan Management
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Startup: configure logging, create the assets directory, connect MongoDB.
    Shutdown: close MongoDB.
    """
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

    logger.info(
        "Tubely API starting",
        extra={
            "app_env": settings.app_env,
            "bucket": settings.s3_bucket_name,
            "assets_root": str(settings.assets_path),
        },
    )

    settings.assets_path.mkdir(parents=True, exist_ok=True)
    await init_db(settings)

    logger.info("Tubely API ready to accept requests")
    yield

    logger.info("Tubely API shutting down")
    await close_db()


# =============================================================================
# FastAPI Application Instance
# =============================================================================

_settings = get_settings()

app = FastAPI(
    title="Tubely API",
    description=(
        "Video upload backend: MP4 uploads are classified by aspect ratio, remuxed "
        "for fast start, stored in S3 and served through presigned URLs."
    ),
    version=API_VERSION,
    lifespan=lifespan,
    debug=_settings.debug,
)


# =============================================================================
# Middleware Configuration
# =============================================================================

app.add_middleware(
    BodySizeLimitMiddleware,
    limits={
        "/upload": _settings.max_video_upload_bytes,
        "/thumbnail": _settings.max_thumbnail_upload_bytes,
    },
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next) -> Response:
    """Log each request with its status and timing, and tag the response with X-Request-ID."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    start_time = time.perf_counter()

    response = await call_next(request)

    process_time_ms = round((time.perf_counter() - start_time) * 1000, 2)
    response.headers["X-Process-Time"] = f"{process_time_ms}ms"
    response.headers["X-Request-ID"] = request_id

    log_level = logging.DEBUG if response.status_code < HTTP_ERROR_THRESHOLD else logging.WARNING
    logger.log(
        log_level,
        "Request completed: %s %s [%d]",
        request.method,
        request.url.path,
        response.status_code,
        extra={"request_id": request_id, "process_time_ms": process_time_ms},
    )
    return response


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(TubelyError)
async def tubely_error_handler(request: Request, exc: TubelyError) -> JSONResponse:
    """Render a pipeline error as `{"error": kind, "message": message}` with its status."""
    if exc.status_code >= 500:
        logger.error(
            "Request failed with %s: %s",
            exc.kind,
            exc.message,
            extra={"path": request.url.path, "status_code": exc.status_code},
        )
    else:
        logger.info(
            "Request rejected with %s: %s",
            exc.kind,
            exc.message,
            extra={"path": request.url.path, "status_code": exc.status_code},
        )

    headers = None
    if isinstance(exc, AuthError) and not isinstance(exc, Forbidden):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


# =============================================================================
# Routes
# =============================================================================

app.include_router(api_router, prefix="/api/v1")

app.mount(
    "/assets",
    StaticFiles(directory=_settings.assets_path, check_dir=False),
    name="assets",
)


@app.get("/health", tags=["health"], summary="Health Check")
async def health_check() -> dict[str, Any]:
    """Liveness probe; does not touch MongoDB or S3."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "version": API_VERSION,
    }


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.debug,
        log_level=_settings.log_level,
    )
