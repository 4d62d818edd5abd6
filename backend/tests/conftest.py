"""
Pytest Configuration and Test Fixtures for the Tubely Backend

This module provides shared fixtures:
- Isolated Settings (temp dirs for uploads and assets)
- User ids, video records and bearer tokens
- Fake multipart parts and a fake media tool runner
- Real boto3 S3 clients with dummy credentials (presigning needs no network)
- A fully mocked upload pipeline wired into the FastAPI app

No test needs MongoDB, S3, ffprobe or ffmpeg to be available.
"""

import json

from collections.abc import Callable, Generator
from io import BytesIO
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import boto3
import pytest

from botocore.config import Config

from fastapi.testclient import TestClient
from starlette.datastructures import Headers, UploadFile

from app.api.deps import get_access_url_signer, get_upload_service, get_video_repository
from app.config import Settings, get_settings
from app.core.auth import create_access_token
from app.models.video import Video
from app.services.aspect_service import AspectClassifier
from app.services.locator_signer import AccessURLSigner
from app.services.remux_service import FastStartRemuxer
from app.services.storage_service import StorageService
from app.services.upload_receiver import UploadReceiver
from app.services.upload_service import VideoUploadService
from app.utils.process import ToolResult


TEST_SECRET_KEY = "test-secret-key-for-jwt-signing-minimum-32-chars"
TEST_BUCKET = "test-bucket"


# ==============================================================================
# Pytest Configuration
# ==============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """
    Register custom markers:
    - unit: isolated test, no app or external services
    - integration: exercises the FastAPI app through TestClient
    """
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """
    Settings isolated to the test's tmp_path.

    Upload temp files land in `tmp_path/uploads` so tests can assert on what
    was (or was not) written there.
    """
    upload_dir = tmp_path / "uploads"
    upload_dir.mkdir()
    return Settings(
        app_env="testing",
        debug=True,
        json_logs=False,
        secret_key=TEST_SECRET_KEY,
        public_base_url="http://testserver",
        mongodb_uri="mongodb://localhost:27017",
        mongodb_db_name="tubely_test",
        s3_access_key_id="test-access-key",
        s3_secret_access_key="test-secret-key",
        s3_bucket_name=TEST_BUCKET,
        s3_region="us-east-1",
        presigned_url_ttl_seconds=900,
        s3_max_attempts=3,
        storage_timeout_seconds=5,
        media_tool_timeout_seconds=5,
        max_concurrent_media_jobs=2,
        upload_temp_dir=str(upload_dir),
        max_video_upload_mb=1,
        max_thumbnail_upload_mb=1,
        assets_root=str(tmp_path / "assets"),
    )


@pytest.fixture
def upload_dir(test_settings: Settings) -> Path:
    return Path(test_settings.upload_temp_dir)


# ==============================================================================
# Identity and Record Fixtures
# ==============================================================================


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_user_id() -> UUID:
    return uuid4()


@pytest.fixture
def draft_video(user_id: UUID) -> Video:
    return Video(user_id=user_id, title="Boots in the rain")


@pytest.fixture
def auth_headers(user_id: UUID, test_settings: Settings) -> dict[str, str]:
    token = create_access_token(user_id, test_settings)
    return {"Authorization": f"Bearer {token}"}


# ==============================================================================
# Upload and Media Tool Fakes
# ==============================================================================


@pytest.fixture
def make_upload_file() -> Callable[..., UploadFile]:
    """Build a starlette UploadFile the way the multipart parser would."""

    def _make(
        data: bytes = b"\x00\x00\x00\x18ftypmp42",
        content_type: str | None = "video/mp4",
        filename: str = "boots.mp4",
    ) -> UploadFile:
        headers = Headers({"content-type": content_type}) if content_type else Headers({})
        return UploadFile(file=BytesIO(data), filename=filename, headers=headers)

    return _make


def probe_output(*streams: dict[str, Any]) -> bytes:
    """ffprobe `-print_format json -show_streams` output for the given streams."""
    return json.dumps({"streams": list(streams)}).encode()


@pytest.fixture
def fake_runner() -> Mock:
    """
    Stand-in for MediaToolRunner.

    By default ffprobe reports a 1920x1080 stream and ffmpeg writes its output
    file (the last argument) and exits 0.
    """

    async def _run(*cmd: str) -> ToolResult:
        if "-show_streams" in cmd:
            return ToolResult(0, probe_output({"width": 1920, "height": 1080}), b"")
        Path(cmd[-1]).write_bytes(b"remuxed")
        return ToolResult(0, b"", b"")

    runner = Mock()
    runner.run = AsyncMock(side_effect=_run)
    return runner


# ==============================================================================
# S3 Fixtures
# ==============================================================================


@pytest.fixture
def s3_client() -> Any:
    """Real boto3 client with dummy credentials; only used for presigning."""
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="test-access-key",
        aws_secret_access_key="test-secret-key",
        config=Config(signature_version="s3v4"),
    )


@pytest.fixture
def mock_s3_client(s3_client: Any) -> Mock:
    """Mock S3 client whose put_object succeeds and whose presigning is real."""
    client = Mock()
    client.put_object = Mock(return_value={"ETag": '"abc"'})
    client.generate_presigned_url = Mock(side_effect=s3_client.generate_presigned_url)
    return client


# ==============================================================================
# Application Fixtures
# ==============================================================================


@pytest.fixture
def app_client(test_settings: Settings) -> Generator[TestClient, None, None]:
    """
    TestClient for the FastAPI app with settings overridden.

    The lifespan is not run, so nothing connects to MongoDB. Tests add their
    own overrides for the repository and services.
    """
    from app.main import app

    app.dependency_overrides[get_settings] = lambda: test_settings
    client = TestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.clear()


# ==============================================================================
# Upload Pipeline Fixtures
# ==============================================================================


@pytest.fixture
def mock_repository(draft_video: Video) -> Mock:
    """Record store holding `draft_video`; updates echo the record back."""
    repository = Mock()
    repository.get_video = AsyncMock(return_value=draft_video)
    repository.update_video = AsyncMock(side_effect=lambda video: video)
    repository.list_videos = AsyncMock(return_value=[draft_video])
    repository.create_video = AsyncMock()
    return repository


@pytest.fixture
def storage_service(test_settings: Settings, mock_s3_client: Mock) -> StorageService:
    return StorageService(test_settings, client=mock_s3_client)


@pytest.fixture
def upload_service(
    test_settings: Settings,
    mock_repository: Mock,
    fake_runner: Mock,
    storage_service: StorageService,
) -> VideoUploadService:
    """The real pipeline over the mocked record store, media tools and S3 client."""
    return VideoUploadService(
        settings=test_settings,
        repository=mock_repository,
        receiver=UploadReceiver(test_settings),
        classifier=AspectClassifier(test_settings, fake_runner),
        remuxer=FastStartRemuxer(test_settings, fake_runner),
        storage=storage_service,
        signer=AccessURLSigner(storage_service),
    )


@pytest.fixture
def api_client(
    app_client: TestClient,
    mock_repository: Mock,
    storage_service: StorageService,
    upload_service: VideoUploadService,
) -> TestClient:
    """`app_client` with the upload pipeline fixtures wired in."""
    from app.main import app

    app.dependency_overrides[get_video_repository] = lambda: mock_repository
    app.dependency_overrides[get_access_url_signer] = lambda: AccessURLSigner(storage_service)
    app.dependency_overrides[get_upload_service] = lambda: upload_service
    return app_client
