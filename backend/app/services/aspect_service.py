"""
Aspect classification for uploaded videos.

Runs ffprobe against the received file, reads the pixel geometry of the first
reported stream, and buckets the width / height ratio:

    1.6 < ratio < 1.9   -> landscape  (16:9 and nearby)
    0.4 < ratio < 0.6   -> portrait   (9:16 and nearby)
    anything else       -> other

All intervals are open, so ratios of exactly 1.6, 1.9, 0.4 or 0.6 are `other`.
A report with no streams, or a first stream without a positive height, fails
with MetadataUnavailable instead of producing a ratio.
"""

import json
import logging

from pathlib import Path
from typing import Any

from app.config import Settings
from app.core.errors import ExternalToolError, MetadataUnavailable
from app.models.video import AspectClass
from app.utils.process import MediaToolRunner


logger = logging.getLogger(__name__)

LANDSCAPE_RANGE = (1.6, 1.9)
PORTRAIT_RANGE = (0.4, 0.6)


def classify_aspect_ratio(ratio: float) -> AspectClass:
    """Bucket a width / height ratio into an AspectClass (open intervals)."""
    if LANDSCAPE_RANGE[0] < ratio < LANDSCAPE_RANGE[1]:
        return AspectClass.LANDSCAPE
    if PORTRAIT_RANGE[0] < ratio < PORTRAIT_RANGE[1]:
        return AspectClass.PORTRAIT
    return AspectClass.OTHER


def classify_dimensions(width: int, height: int) -> AspectClass:
    """
    Classify pixel dimensions.

    Raises:
        MetadataUnavailable: If height is not positive (no defined ratio).
    """
    if height <= 0:
        raise MetadataUnavailable(f"Invalid stream height {height}; aspect ratio is undefined")
    return classify_aspect_ratio(width / height)


def parse_probe_report(raw: bytes) -> tuple[int, int]:
    """
    Extract (width, height) of the first stream from ffprobe's JSON output.

    Raises:
        MetadataUnavailable: If the output is not JSON, lists no streams, or
            the first stream lacks integer width/height.
    """
    try:
        report: Any = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MetadataUnavailable("ffprobe produced unparseable output") from e

    streams = report.get("streams") if isinstance(report, dict) else None
    if not streams:
        raise MetadataUnavailable("ffprobe reported no streams")

    first = streams[0]
    width = first.get("width") if isinstance(first, dict) else None
    height = first.get("height") if isinstance(first, dict) else None
    # bool is an int subclass; reject it explicitly
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in (width, height)):
        raise MetadataUnavailable("First stream does not report width and height")
    return width, height


class AspectClassifier:
    """
    Determines the AspectClass of a video file with ffprobe.

    Example:
        ```python
        classifier = AspectClassifier(settings, runner)
        aspect = await classifier.classify(Path("/tmp/tubely-upload-x.mp4"))
        ```
    """

    def __init__(self, settings: Settings, runner: MediaToolRunner) -> None:
        self.ffprobe_path = settings.ffprobe_path
        self.runner = runner

    def build_command(self, file_path: Path) -> list[str]:
        return [
            self.ffprobe_path,
            "-v", "error",
            "-print_format", "json",
            "-show_streams",
            str(file_path),
        ]

    async def probe(self, file_path: Path) -> tuple[int, int]:
        """
        Run ffprobe and return the first stream's (width, height).

        Raises:
            MetadataUnavailable: On any probe failure.
        """
        try:
            result = await self.runner.run(*self.build_command(file_path))
        except ExternalToolError as e:
            raise MetadataUnavailable(f"Could not probe video: {e.message}") from e

        if not result.ok:
            logger.warning(
                "ffprobe exited with status %d for %s: %s",
                result.returncode,
                file_path,
                result.stderr_tail(),
            )
            raise MetadataUnavailable(f"ffprobe exited with status {result.returncode}")

        return parse_probe_report(result.stdout)

    async def classify(self, file_path: Path) -> AspectClass:
        width, height = await self.probe(file_path)
        aspect = classify_dimensions(width, height)
        logger.info(
            "Classified video as %s",
            aspect.value,
            extra={"width": width, "height": height, "file_path": str(file_path)},
        )
        return aspect


__all__ = [
    "AspectClassifier",
    "classify_aspect_ratio",
    "classify_dimensions",
    "parse_probe_report",
]
