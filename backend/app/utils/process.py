"""
Bounded external process execution for ffprobe / ffmpeg.

Every media tool invocation in the upload pipeline goes through
`MediaToolRunner.run`, which:
- limits how many tool processes run at once (asyncio.Semaphore),
- enforces a wall-clock timeout on each run,
- kills and reaps the child when the run times out or the awaiting request
  is cancelled, so a hung tool never outlives its request.
"""

import asyncio
import logging

from dataclasses import dataclass

from app.core.errors import ExternalToolError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolResult:
    """Exit status and captured output of a finished tool run."""

    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_tail(self, limit: int = 500) -> str:
        return self.stderr.decode("utf-8", errors="replace").strip()[-limit:]


class MediaToolRunner:
    """
    Runs external media tools with admission control and a timeout.

    Attributes:
        timeout: Seconds a single run may take before it is killed
        max_concurrent: Number of tool processes allowed at the same time
    """

    def __init__(self, timeout: float, max_concurrent: int) -> None:
        self.timeout = timeout
        self.max_concurrent = max_concurrent
        self._slots = asyncio.Semaphore(max_concurrent)

    async def run(self, *cmd: str) -> ToolResult:
        """
        Run `cmd` and capture stdout/stderr.

        A nonzero exit status is returned, not raised; callers decide what it
        means for their stage.

        Raises:
            ExternalToolError: If the binary is missing, cannot be started, or
                the run exceeds the timeout.
            asyncio.CancelledError: If the caller is cancelled (the child is
                killed first).
        """
        async with self._slots:
            logger.debug("Starting media tool", extra={"command": list(cmd)})
            try:
                process = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except FileNotFoundError as e:
                logger.error("Media tool not found: %s", cmd[0])
                raise ExternalToolError(f"{cmd[0]} is not installed or not on PATH") from e
            except OSError as e:
                logger.exception("Failed to start media tool %s", cmd[0])
                raise ExternalToolError(f"Could not start {cmd[0]}: {e}") from e

            try:
                stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
            except asyncio.TimeoutError as e:
                await _terminate(process)
                logger.error("Media tool %s timed out after %ss", cmd[0], self.timeout)
                raise ExternalToolError(f"{cmd[0]} timed out after {self.timeout}s") from e
            except asyncio.CancelledError:
                await _terminate(process)
                logger.warning("Media tool %s cancelled with its request", cmd[0])
                raise

        result = ToolResult(returncode=process.returncode, stdout=stdout, stderr=stderr)
        logger.debug(
            "Media tool finished",
            extra={"tool": cmd[0], "returncode": result.returncode},
        )
        return result


async def _terminate(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        return
    await process.wait()


__all__ = ["MediaToolRunner", "ToolResult"]
