"""
Fast-start remuxing for uploaded videos.

Rewrites an MP4 so that its index (moov atom) precedes the media data,
letting players start before the whole file has downloaded. Streams are
copied verbatim; nothing is re-encoded.

The output is written next to the input as `<input name>.processing`. A run
succeeds only if ffmpeg exits 0 and the output file exists. On failure the
input file is left where it is and RemuxFailed is raised; callers must not
fall back to uploading the unremuxed original.
"""

import logging

from pathlib import Path

from app.config import Settings
from app.core.errors import ExternalToolError, RemuxFailed
from app.utils.process import MediaToolRunner


logger = logging.getLogger(__name__)

PROCESSING_SUFFIX = ".processing"


def fast_start_output_path(input_path: Path) -> Path:
    """Sibling path the remuxed copy of `input_path` is written to."""
    return input_path.with_name(input_path.name + PROCESSING_SUFFIX)


class FastStartRemuxer:
    """Produces a fast-start copy of a video with `ffmpeg -c copy -movflags faststart`."""

    def __init__(self, settings: Settings, runner: MediaToolRunner) -> None:
        self.ffmpeg_path = settings.ffmpeg_path
        self.runner = runner

    def build_command(self, input_path: Path, output_path: Path) -> list[str]:
        return [
            self.ffmpeg_path,
            "-y",
            "-i", str(input_path),
            "-c", "copy",
            "-movflags", "faststart",
            "-f", "mp4",
            str(output_path),
        ]

    async def remux(self, input_path: Path) -> Path:
        """
        Write a fast-start copy of `input_path` and return its path.

        Raises:
            RemuxFailed: If ffmpeg cannot run, exits nonzero, times out, or
                leaves no output file.
        """
        output_path = fast_start_output_path(input_path)

        try:
            result = await self.runner.run(*self.build_command(input_path, output_path))
        except ExternalToolError as e:
            raise RemuxFailed(f"Could not remux video: {e.message}") from e

        if not result.ok:
            logger.error(
                "ffmpeg exited with status %d for %s: %s",
                result.returncode,
                input_path,
                result.stderr_tail(),
            )
            raise RemuxFailed(f"ffmpeg exited with status {result.returncode}")

        if not output_path.is_file():
            logger.error("ffmpeg reported success but %s is missing", output_path)
            raise RemuxFailed("ffmpeg did not produce an output file")

        logger.info(
            "Remuxed video for fast start",
            extra={"input": str(input_path), "output": str(output_path)},
        )
        return output_path


__all__ = ["FastStartRemuxer", "PROCESSING_SUFFIX", "fast_start_output_path"]
