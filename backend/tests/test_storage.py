"""
Tests for the storage service: object keys, client configuration, PUT
failure handling, locator construction and presigned GET URLs.

PUT tests run a real boto3 client and answer its HTTP requests from a
`before-send` event handler, so botocore's own retry and timeout handling is
what gets exercised.
"""

import asyncio
import re
import threading

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any
from unittest.mock import Mock, patch
from urllib.parse import parse_qs, urlparse

import pytest

from botocore.awsrequest import AWSResponse
from botocore.exceptions import NoCredentialsError, ReadTimeoutError

from app.config import Settings
from app.core.errors import SigningFailed, StorageError, UploadIOError
from app.models.video import AspectClass
from app.services.storage_service import StorageService, build_client_config, build_object_key


KEY_PATTERN = re.compile(r"^(landscape|portrait|other)/[0-9a-f]{64}\.mp4$")


class RawBody:
    def __init__(self, data: bytes) -> None:
        self.data = data

    def stream(self, **kwargs: Any) -> Iterator[bytes]:
        yield self.data


def s3_response(status: int, code: str | None = None) -> AWSResponse:
    body = b""
    if code:
        body = f"<Error><Code>{code}</Code><Message>{code} happened</Message></Error>".encode()
    return AWSResponse("https://test-bucket.s3.amazonaws.com/", status, {}, RawBody(body))


class FakeS3:
    """
    Answers PutObject requests in order from `replies`.

    A reply is an AWSResponse or an exception to raise in place of the HTTP
    send. Tracks how many PUTs are in flight at once.
    """

    def __init__(self, *replies: AWSResponse | Exception, hang_seconds: float = 0) -> None:
        self.replies = list(replies)
        self.hang_seconds = hang_seconds
        self.calls = 0
        self.in_flight = 0
        self.peak_in_flight = 0
        self._lock = threading.Lock()

    def __call__(self, request: Any, **kwargs: Any) -> AWSResponse:
        with self._lock:
            reply = self.replies[min(self.calls, len(self.replies) - 1)]
            self.calls += 1
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.hang_seconds:
                threading.Event().wait(self.hang_seconds)
            if isinstance(reply, Exception):
                raise reply
            return reply
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture
def video_file(tmp_path: Path) -> Path:
    path = tmp_path / "tubely-upload-x.mp4.processing"
    path.write_bytes(b"remuxed bytes")
    return path


@pytest.fixture
def no_backoff() -> Iterator[None]:
    with patch("botocore.retries.standard.ExponentialBackoff.delay_amount", return_value=0):
        yield


@pytest.fixture
def storage_with(test_settings: Settings, no_backoff: None) -> Callable[[FakeS3], StorageService]:
    """StorageService over a real boto3 client whose PUTs are answered by `fake`."""

    def _build(fake: FakeS3, settings: Settings = test_settings) -> StorageService:
        storage = StorageService(settings)
        storage._client.meta.events.register("before-send.s3.PutObject", fake)
        return storage

    return _build


@pytest.mark.unit
class TestBuildObjectKey:
    @pytest.mark.parametrize("aspect", list(AspectClass))
    def test_key_shape(self, aspect: AspectClass) -> None:
        key = build_object_key(aspect, ".mp4")

        assert KEY_PATTERN.match(key)
        assert key.startswith(f"{aspect.value}/")

    def test_keys_do_not_collide(self) -> None:
        keys = {build_object_key(AspectClass.LANDSCAPE, ".mp4") for _ in range(10_000)}
        assert len(keys) == 10_000


@pytest.mark.unit
class TestClientConfig:
    def test_retry_and_timeouts_come_from_settings(self, test_settings: Settings) -> None:
        config = build_client_config(test_settings)

        assert config.retries == {"total_max_attempts": 3, "mode": "standard"}
        assert config.connect_timeout == 5
        assert config.read_timeout == 5
        assert config.signature_version == "s3v4"

    def test_client_is_built_with_config(self, test_settings: Settings) -> None:
        storage = StorageService(test_settings)

        config = storage._client.meta.config
        assert config.read_timeout == test_settings.storage_timeout_seconds
        assert config.connect_timeout == test_settings.storage_timeout_seconds
        assert config.retries["mode"] == "standard"


@pytest.mark.unit
class TestUploadVideo:
    @pytest.mark.asyncio
    async def test_single_put_with_content_type(
        self, test_settings: Settings, mock_s3_client: Mock, video_file: Path
    ) -> None:
        storage = StorageService(test_settings, client=mock_s3_client)

        await storage.upload_video(video_file, "landscape/abc.mp4", "video/mp4")

        mock_s3_client.put_object.assert_called_once()
        kwargs = mock_s3_client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "test-bucket"
        assert kwargs["Key"] == "landscape/abc.mp4"
        assert kwargs["ContentType"] == "video/mp4"

    @pytest.mark.asyncio
    async def test_put_request_reaches_bucket(
        self, storage_with: Callable[[FakeS3], StorageService], video_file: Path
    ) -> None:
        seen: list[Any] = []
        fake = FakeS3(s3_response(200))
        storage = storage_with(fake)
        storage._client.meta.events.register(
            "before-send.s3.PutObject", lambda request, **kwargs: seen.append(request)
        )

        await storage.upload_video(video_file, "landscape/abc.mp4", "video/mp4")

        assert fake.calls == 1
        assert seen[0].method == "PUT"
        assert "landscape/abc.mp4" in seen[0].url

    @pytest.mark.asyncio
    async def test_retries_throttled_put(
        self,
        storage_with: Callable[[FakeS3], StorageService],
        video_file: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        fake = FakeS3(s3_response(503, "SlowDown"), s3_response(200))
        storage = storage_with(fake)

        with caplog.at_level("INFO", logger="app.services.storage_service"):
            await storage.upload_video(video_file, "landscape/abc.mp4", "video/mp4")

        assert fake.calls == 2
        uploaded = [r for r in caplog.records if r.getMessage() == "Uploaded video to S3"]
        assert uploaded[0].retry_attempts == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(
        self,
        test_settings: Settings,
        storage_with: Callable[[FakeS3], StorageService],
        video_file: Path,
    ) -> None:
        fake = FakeS3(s3_response(500, "InternalError"))
        storage = storage_with(fake)

        with pytest.raises(StorageError) as exc_info:
            await storage.upload_video(video_file, "landscape/abc.mp4", "video/mp4")

        assert fake.calls == test_settings.s3_max_attempts
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_terminal_failure_is_not_retried(
        self, storage_with: Callable[[FakeS3], StorageService], video_file: Path
    ) -> None:
        fake = FakeS3(s3_response(403, "AccessDenied"))
        storage = storage_with(fake)

        with pytest.raises(StorageError) as exc_info:
            await storage.upload_video(video_file, "landscape/abc.mp4", "video/mp4")

        assert fake.calls == 1
        assert "AccessDenied happened" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timed_out_put_leaves_nothing_running(
        self,
        test_settings: Settings,
        storage_with: Callable[..., StorageService],
        video_file: Path,
    ) -> None:
        settings = test_settings.model_copy(update={"storage_timeout_seconds": 0.05})
        fake = FakeS3(
            ReadTimeoutError(endpoint_url="https://test-bucket.s3.amazonaws.com/"),
            hang_seconds=settings.storage_timeout_seconds,
        )
        storage = storage_with(fake, settings)

        with pytest.raises(StorageError):
            await storage.upload_video(video_file, "landscape/abc.mp4", "video/mp4")

        assert fake.calls == settings.s3_max_attempts
        assert fake.in_flight == 0
        assert fake.peak_in_flight == 1

        calls_at_raise = fake.calls
        await asyncio.sleep(settings.storage_timeout_seconds * 4)
        assert fake.calls == calls_at_raise
        assert fake.in_flight == 0

    @pytest.mark.asyncio
    async def test_unreadable_file(
        self, test_settings: Settings, mock_s3_client: Mock, tmp_path: Path
    ) -> None:
        storage = StorageService(test_settings, client=mock_s3_client)

        with pytest.raises(UploadIOError) as exc_info:
            await storage.upload_video(tmp_path / "missing.mp4", "landscape/abc.mp4", "video/mp4")

        assert exc_info.value.status_code == 500
        mock_s3_client.put_object.assert_not_called()


@pytest.mark.unit
class TestBuildLocator:
    def test_compound_locator(self, test_settings: Settings, mock_s3_client: Mock) -> None:
        storage = StorageService(test_settings, client=mock_s3_client)
        assert storage.build_locator("portrait/ab.mp4") == "test-bucket,portrait/ab.mp4"

    def test_cdn_locator(self, test_settings: Settings, mock_s3_client: Mock) -> None:
        settings = test_settings.model_copy(update={"cdn_distribution_domain": "d111.cloudfront.net"})
        storage = StorageService(settings, client=mock_s3_client)

        assert storage.build_locator("portrait/ab.mp4") == "https://d111.cloudfront.net/portrait/ab.mp4"


@pytest.mark.unit
class TestPresignedDownloadUrl:
    @pytest.mark.asyncio
    async def test_url_expires_after_configured_ttl(
        self, test_settings: Settings, s3_client: Any
    ) -> None:
        storage = StorageService(test_settings, client=s3_client)

        url = await storage.generate_presigned_download_url("landscape/abc.mp4")

        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        assert "test-bucket" in url
        assert parsed.path.endswith("landscape/abc.mp4")
        assert query["X-Amz-Expires"] == ["900"]

    @pytest.mark.asyncio
    async def test_bucket_override(self, test_settings: Settings, s3_client: Any) -> None:
        storage = StorageService(test_settings, client=s3_client)

        url = await storage.generate_presigned_download_url("k.mp4", bucket_name="other-bucket")

        assert "other-bucket" in url

    @pytest.mark.asyncio
    async def test_signing_failure(self, test_settings: Settings) -> None:
        client = Mock()
        client.generate_presigned_url.side_effect = NoCredentialsError()
        storage = StorageService(test_settings, client=client)

        with pytest.raises(SigningFailed):
            await storage.generate_presigned_download_url("k.mp4")
