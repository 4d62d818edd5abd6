"""
Tubely Configuration Management Module

This module provides configuration management for the Tubely video backend
using Pydantic Settings. It loads and validates all environment variables
required for:
- Application settings (name, environment, debug mode, logging)
- MongoDB connection for the video record store
- S3/MinIO object storage and presigned URL issuance
- Local HS256 JWT bearer authentication
- External media tools (ffprobe / ffmpeg) and their limits
- Upload size ceilings and the local thumbnail assets directory

A single Settings instance is built at startup and handed to every pipeline
stage through its constructor, so each stage can be tested with its own
Settings and fakes.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BYTES_PER_MB = 1024 * 1024


class Settings(BaseSettings):
    """
    Configuration settings for the Tubely backend.

    Values are read from environment variables (case-insensitive) and from a
    `.env` file when present.

    Configuration Categories:
    - Application: name, environment, debug mode, logging, public base URL
    - Auth: JWT signing secret and algorithm
    - MongoDB: connection URI, database name and pool sizes
    - S3/MinIO: credentials, bucket, presigned URL TTL, retry policy
    - Media tools: ffprobe/ffmpeg paths, timeouts and admission control
    - Uploads: size ceilings and the local assets directory

    Example usage:
        ```python
        from app.config import get_settings

        settings = get_settings()
        print(settings.s3_bucket_name, settings.presigned_url_ttl_seconds)
        ```
    """

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(
        default="Tubely",
        description="Application name displayed in API documentation and logs",
    )

    app_env: str = Field(
        default="development",
        description="Application environment (development, staging, production, testing)",
    )

    debug: bool = Field(default=False, description="Enable debug mode and verbose logging")

    log_level: str = Field(
        default="info", description="Logging level (debug, info, warning, error, critical)"
    )

    json_logs: bool = Field(
        default=True, description="Emit structured JSON log lines instead of plain text"
    )

    host: str = Field(default="0.0.0.0", description="Host address for the API server to bind to")

    port: int = Field(default=8091, description="Port number for the API server", ge=1, le=65535)

    public_base_url: str = Field(
        default="http://localhost:8091",
        description="Externally reachable base URL, used to build thumbnail URLs",
    )

    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="List of allowed CORS origins for frontend access",
    )

    # =========================================================================
    # Auth Configuration
    # =========================================================================

    secret_key: str = Field(
        default="development-secret-key-change-in-production-32chars",
        description="Secret key for JWT signing. Must be a secure random string.",
        min_length=32,
    )

    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")

    jwt_expiration_hours: int = Field(
        default=24, description="JWT token expiration time in hours", ge=1, le=168
    )

    # =========================================================================
    # MongoDB Configuration
    # =========================================================================

    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI (e.g., mongodb://localhost:27017)",
    )

    mongodb_db_name: str = Field(default="tubely", description="MongoDB database name")

    mongodb_min_pool_size: int = Field(
        default=1, description="Minimum number of connections in MongoDB connection pool", ge=0
    )

    mongodb_max_pool_size: int = Field(
        default=50, description="Maximum number of connections in MongoDB connection pool", ge=1
    )

    # =========================================================================
    # S3/MinIO Storage Configuration
    # =========================================================================

    s3_endpoint_url: str | None = Field(
        default=None, description="S3-compatible endpoint URL for MinIO (None for AWS S3)"
    )

    s3_access_key_id: str | None = Field(
        default=None, description="S3/MinIO access key ID (None to use the default AWS chain)"
    )

    s3_secret_access_key: str | None = Field(
        default=None, description="S3/MinIO secret access key"
    )

    s3_bucket_name: str = Field(
        default="tubely-videos", description="S3 bucket name for storing processed videos"
    )

    s3_region: str = Field(default="us-east-1", description="AWS region for the S3 bucket")

    presigned_url_ttl_seconds: int = Field(
        default=900,
        description="Lifetime of presigned GET URLs issued on read, in seconds",
        ge=1,
        le=604800,
    )

    cdn_distribution_domain: str | None = Field(
        default=None,
        description=(
            "CDN domain fronting the bucket. When set, uploads store an absolute "
            "https URL instead of a bucket,key locator."
        ),
    )

    s3_max_attempts: int = Field(
        default=3,
        description="Total attempts botocore makes per object store call, including the first",
        ge=1,
        le=10,
    )

    storage_timeout_seconds: float = Field(
        default=300.0,
        description="botocore connect and read timeout for object store calls, in seconds",
        gt=0,
    )

    # =========================================================================
    # Media Tool Settings
    # =========================================================================

    ffprobe_path: str = Field(default="ffprobe", description="Path to the ffprobe binary")

    ffmpeg_path: str = Field(default="ffmpeg", description="Path to the ffmpeg binary")

    media_tool_timeout_seconds: float = Field(
        default=120.0, description="Upper bound for a single ffprobe/ffmpeg run", gt=0
    )

    max_concurrent_media_jobs: int = Field(
        default=4, description="Concurrent ffprobe/ffmpeg processes allowed per worker", ge=1
    )

    upload_temp_dir: str | None = Field(
        default=None, description="Directory for upload temp files (None for the system default)"
    )

    # =========================================================================
    # File Upload Settings
    # =========================================================================

    max_video_upload_mb: int = Field(
        default=1024, description="Maximum video request body size in megabytes", ge=1
    )

    max_thumbnail_upload_mb: int = Field(
        default=10, description="Maximum thumbnail request body size in megabytes", ge=1
    )

    assets_root: str = Field(
        default="assets", description="Local directory holding uploaded thumbnails"
    )

    # =========================================================================
    # Model Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"debug", "info", "warning", "error", "critical"}
        normalized = v.lower()
        if normalized not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {', '.join(valid_levels)}")
        return normalized

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate that app_env is a valid environment name."""
        valid_envs = {"development", "staging", "production", "testing"}
        normalized = v.lower()
        if normalized not in valid_envs:
            raise ValueError(f"Invalid app_env '{v}'. Must be one of: {', '.join(valid_envs)}")
        return normalized

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Only HMAC algorithms are supported for locally issued tokens."""
        valid_algorithms = {"HS256", "HS384", "HS512"}
        if v.upper() not in valid_algorithms:
            raise ValueError(
                f"Invalid jwt_algorithm '{v}'. Must be one of: {', '.join(valid_algorithms)}"
            )
        return v.upper()

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string if provided as string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("cdn_distribution_domain")
    @classmethod
    def validate_cdn_domain(cls, v: str | None) -> str | None:
        """Accept a bare domain; drop an accidental scheme or trailing slash."""
        if v is None:
            return None
        domain = v.strip().removeprefix("https://").removeprefix("http://").rstrip("/")
        return domain or None

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def max_video_upload_bytes(self) -> int:
        return self.max_video_upload_mb * BYTES_PER_MB

    @property
    def max_thumbnail_upload_bytes(self) -> int:
        return self.max_thumbnail_upload_mb * BYTES_PER_MB

    @property
    def assets_path(self) -> Path:
        return Path(self.assets_root)


@lru_cache
def get_settings() -> Settings:
    """
    Get the process-wide Settings instance.

    The @lru_cache decorator ensures that the Settings object is created only
    once on first call; later calls return the cached instance without
    re-reading environment variables or the .env file. Routes receive it via
    `Depends(get_settings)`, which tests override.

    Returns:
        Settings: The global configuration instance.
    """
    return Settings()
