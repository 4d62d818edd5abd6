"""
S3-compatible storage service for Tubely.

This module wraps the boto3 operations the upload pipeline needs:
- building collision-resistant object keys (`<aspect>/<64 hex><.ext>`),
- a single non-multipart PUT of the remuxed video with its content type,
- building the locator persisted on the video record,
- presigned GET URL issuance for the access URL signer.

Works against AWS S3 or MinIO (via `s3_endpoint_url`). Retries and timeouts
belong to botocore: the client runs in "standard" retry mode, which retries
throttling, 5xx and transient connection errors with exponential backoff up to
`s3_max_attempts` total attempts and gives up at once on other 4xx responses.
Each HTTP attempt is bounded by `storage_timeout_seconds` (connect and read).
Blocking boto3 calls run in a worker thread so the event loop stays responsive.
"""

import asyncio
import logging
import secrets

from functools import wraps
from pathlib import Path
from typing import Any, Callable, TypeVar

import boto3

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.config import Settings
from app.core.errors import SigningFailed, StorageError, UploadIOError
from app.models.video import AspectClass, StorageLocator


# Set up module-level logger for tracking S3 operations
logger = logging.getLogger(__name__)

T = TypeVar("T")

# 32 random bytes rendered as 64 hex characters (256 bits)
OBJECT_KEY_TOKEN_BYTES = 32


def async_wrap(func: Callable[..., T]) -> Callable[..., "asyncio.Future[T]"]:
    """
    Decorator to wrap synchronous boto3 operations for async execution.

    Uses asyncio.to_thread to run blocking boto3 operations in a separate
    thread, preventing event loop blocking during S3 operations.
    """
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(func, *args, **kwargs)
    return wrapper


def build_object_key(aspect_class: AspectClass, extension: str) -> str:
    """
    Derive a new object key for an upload.

    The key is `<aspect>/<token><extension>` where the token is 64 hex
    characters from the `secrets` CSPRNG. No existence check is made against
    the bucket; uniqueness rests on the token's entropy.

    Example:
        >>> build_object_key(AspectClass.PORTRAIT, ".mp4")  # doctest: +SKIP
        'portrait/5f0c...e91a.mp4'
    """
    token = secrets.token_hex(OBJECT_KEY_TOKEN_BYTES)
    return f"{aspect_class.value}/{token}{extension}"


def build_client_config(settings: Settings) -> Config:
    """
    botocore client configuration: SigV4 signing, standard-mode retries capped
    at `s3_max_attempts` total attempts, and per-attempt connect/read timeouts.
    """
    return Config(
        signature_version="s3v4",
        retries={"total_max_attempts": settings.s3_max_attempts, "mode": "standard"},
        connect_timeout=settings.storage_timeout_seconds,
        read_timeout=settings.storage_timeout_seconds,
    )


class StorageService:
    """
    S3-compatible storage service for the video bucket.

    Attributes:
        bucket_name: Bucket every upload is written to
        presigned_url_ttl: Lifetime of issued GET URLs, in seconds
        cdn_domain: When set, locators are absolute CDN URLs instead of bucket,key

    Example:
        >>> service = StorageService(settings)
        >>> await service.upload_video(Path("/tmp/x.mp4.processing"), "landscape/ab.mp4", "video/mp4")
        >>> service.build_locator("landscape/ab.mp4")
        'tubely-videos,landscape/ab.mp4'
    """

    def __init__(self, settings: Settings, client: Any | None = None) -> None:
        """
        Initialize the storage service.

        Args:
            settings: Application settings (bucket, credentials, retry policy)
            client: Pre-built boto3 S3 client; one is created from settings if omitted
        """
        self.bucket_name = settings.s3_bucket_name
        self.presigned_url_ttl = settings.presigned_url_ttl_seconds
        self.cdn_domain = settings.cdn_distribution_domain
        self._client = client if client is not None else self._create_client(settings)

    @staticmethod
    def _create_client(settings: Settings) -> Any:
        logger.info(
            "Initializing S3 client with bucket=%s, endpoint=%s",
            settings.s3_bucket_name,
            settings.s3_endpoint_url or "AWS S3 default",
        )

        client_config: dict[str, Any] = {
            "service_name": "s3",
            "region_name": settings.s3_region,
            "config": build_client_config(settings),
        }
        if settings.s3_endpoint_url:
            client_config["endpoint_url"] = settings.s3_endpoint_url
        if settings.s3_access_key_id and settings.s3_secret_access_key:
            client_config["aws_access_key_id"] = settings.s3_access_key_id
            client_config["aws_secret_access_key"] = settings.s3_secret_access_key

        try:
            return boto3.client(**client_config)
        except BotoCoreError as e:
            logger.exception("Failed to initialize S3 client")
            raise StorageError(f"Failed to initialize S3 client: {e}") from e

    # =========================================================================
    # Upload
    # =========================================================================

    async def upload_video(self, file_path: Path, key: str, content_type: str) -> None:
        """
        PUT the file at `file_path` to `key` in the video bucket.

        The call returns only once botocore has finished every attempt, so no
        PUT is left running after a failure is reported.

        Raises:
            StorageError: If the PUT does not succeed.
            UploadIOError: If the local file cannot be read.
        """

        @async_wrap
        def _put() -> dict[str, Any]:
            with open(file_path, "rb") as body:
                return self._client.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=body,
                    ContentType=content_type,
                )

        try:
            response = await _put()
        except ClientError as e:
            logger.error(
                "S3 PUT rejected: %s",
                _describe(e),
                extra={
                    "bucket": self.bucket_name,
                    "key": key,
                    "retry_attempts": _retry_attempts(e.response),
                },
            )
            raise StorageError(f"Couldn't store the video object: {_describe(e)}") from e
        except BotoCoreError as e:
            logger.error(
                "S3 PUT failed: %s", e, extra={"bucket": self.bucket_name, "key": key}
            )
            raise StorageError(f"Couldn't store the video object: {_describe(e)}") from e
        except OSError as e:
            logger.exception("Could not read %s for upload", file_path)
            raise UploadIOError("Couldn't read the processed video for upload") from e

        logger.info(
            "Uploaded video to S3",
            extra={
                "bucket": self.bucket_name,
                "key": key,
                "retry_attempts": _retry_attempts(response),
            },
        )

    def build_locator(self, key: str) -> str:
        """
        Return the locator to persist for a freshly uploaded `key`.

        `<bucket>,<key>` by default; `https://<cdn>/<key>` when a CDN domain is
        configured.
        """
        if self.cdn_domain:
            return f"https://{self.cdn_domain}/{key}"
        return StorageLocator(bucket=self.bucket_name, key=key).serialize()

    # =========================================================================
    # Presigned URLs
    # =========================================================================

    async def generate_presigned_download_url(
        self,
        key: str,
        bucket_name: str | None = None,
        expiration: int | None = None,
    ) -> str:
        """
        Generate a presigned GET URL for `key`.

        Args:
            key: Object key to grant read access to
            bucket_name: Bucket override (defaults to the video bucket)
            expiration: Lifetime in seconds (defaults to presigned_url_ttl_seconds)

        Raises:
            SigningFailed: If the URL cannot be generated.
        """
        target_bucket = bucket_name or self.bucket_name
        expires_in = expiration or self.presigned_url_ttl

        @async_wrap
        def _generate() -> str:
            return self._client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": target_bucket, "Key": key},
                ExpiresIn=expires_in,
                HttpMethod="GET",
            )

        try:
            url = await _generate()
        except (ClientError, BotoCoreError) as e:
            logger.exception(
                "Failed to generate presigned download URL",
                extra={"bucket": target_bucket, "key": key},
            )
            raise SigningFailed(f"Couldn't sign the video URL: {_describe(e)}") from e

        logger.debug(
            "Generated presigned download URL",
            extra={"bucket": target_bucket, "key": key, "expires_in": expires_in},
        )
        return url


def _describe(error: BaseException) -> str:
    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        return details.get("Message") or details.get("Code") or str(error)
    return str(error)


def _retry_attempts(response: dict[str, Any]) -> int:
    return response.get("ResponseMetadata", {}).get("RetryAttempts", 0)


__all__ = [
    "OBJECT_KEY_TOKEN_BYTES",
    "StorageService",
    "async_wrap",
    "build_client_config",
    "build_object_key",
]
