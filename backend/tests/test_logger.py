"""
Tests for JSON log formatting and context enrichment.
"""

import json
import logging
import sys

from uuid import uuid4

import pytest

from app.utils.logger import JSONFormatter, add_log_context


def make_record(message: str = "Uploaded video to S3", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="app.services.storage_service",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestJSONFormatter:
    def test_basic_fields(self) -> None:
        entry = json.loads(JSONFormatter().format(make_record()))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "app.services.storage_service"
        assert entry["message"] == "Uploaded video to S3"
        assert "extra" not in entry
        assert "source" not in entry

    def test_extra_fields_are_serialized(self) -> None:
        video_id = uuid4()

        entry = json.loads(
            JSONFormatter().format(make_record(video_id=video_id, key="landscape/ab.mp4"))
        )

        assert entry["extra"] == {"video_id": str(video_id), "key": "landscape/ab.mp4"}

    def test_exception_info(self) -> None:
        try:
            raise ValueError("bad probe output")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        entry = json.loads(JSONFormatter().format(record))

        assert entry["exception"]["type"] == "ValueError"
        assert entry["exception"]["message"] == "bad probe output"

    def test_source_location(self) -> None:
        entry = json.loads(JSONFormatter(include_source_location=True).format(make_record()))

        assert entry["source"]["lineno"] == 1


@pytest.mark.unit
class TestAddLogContext:
    def test_context_merges_with_call_extra(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("tests.context")
        ctx_logger = add_log_context(logger, video_id="v1", user_id="u1")

        with caplog.at_level(logging.INFO, logger="tests.context"):
            ctx_logger.info("PUT failed", extra={"attempt": 3, "user_id": "u2"})

        record = caplog.records[-1]
        assert record.video_id == "v1"
        assert record.attempt == 3
        assert record.user_id == "u2"
