"""
Tests for MediaToolRunner: timeouts, cancellation and admission control.

`asyncio.create_subprocess_exec` is patched, so no real process is started.
"""

import asyncio

from unittest.mock import AsyncMock, Mock, patch

import pytest

from app.core.errors import ExternalToolError
from app.utils.process import MediaToolRunner, ToolResult


def make_process(
    returncode: int = 0,
    stdout: bytes = b"",
    stderr: bytes = b"",
    delay: float = 0.0,
    hang: bool = False,
) -> Mock:
    process = Mock()
    process.returncode = None if hang else returncode

    async def communicate() -> tuple[bytes, bytes]:
        if hang:
            await asyncio.sleep(3600)
        await asyncio.sleep(delay)
        return stdout, stderr

    process.communicate = communicate
    process.kill = Mock()
    process.wait = AsyncMock(return_value=-9)
    return process


@pytest.mark.unit
class TestToolResult:
    def test_ok(self) -> None:
        assert ToolResult(0, b"", b"").ok
        assert not ToolResult(1, b"", b"").ok

    def test_stderr_tail(self) -> None:
        result = ToolResult(1, b"", b"x" * 1000 + b"moov atom not found\n")
        assert result.stderr_tail(19) == "moov atom not found"


@pytest.mark.unit
class TestMediaToolRunner:
    @pytest.mark.asyncio
    async def test_captures_output(self) -> None:
        process = make_process(0, b'{"streams": []}', b"")
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as spawn:
            result = await MediaToolRunner(timeout=5, max_concurrent=1).run("ffprobe", "x.mp4")

        assert result == ToolResult(0, b'{"streams": []}', b"")
        assert spawn.await_args.args == ("ffprobe", "x.mp4")

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_returned(self) -> None:
        process = make_process(1, b"", b"boom")
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            result = await MediaToolRunner(timeout=5, max_concurrent=1).run("ffmpeg")

        assert result.returncode == 1

    @pytest.mark.asyncio
    async def test_missing_binary(self) -> None:
        spawn = AsyncMock(side_effect=FileNotFoundError("ffprobe"))
        with patch("asyncio.create_subprocess_exec", spawn):
            with pytest.raises(ExternalToolError):
                await MediaToolRunner(timeout=5, max_concurrent=1).run("ffprobe")

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self) -> None:
        process = make_process(hang=True)
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(ExternalToolError):
                await MediaToolRunner(timeout=0.05, max_concurrent=1).run("ffmpeg")

        process.kill.assert_called_once()
        process.wait.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cancellation_kills_process(self) -> None:
        process = make_process(hang=True)
        runner = MediaToolRunner(timeout=60, max_concurrent=1)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            task = asyncio.create_task(runner.run("ffmpeg"))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        process.kill.assert_called_once()

    @pytest.mark.asyncio
    async def test_limits_concurrent_processes(self) -> None:
        running = 0
        peak = 0

        async def spawn(*_args, **_kwargs) -> Mock:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            process = make_process(delay=0.02)
            original = process.communicate

            async def communicate() -> tuple[bytes, bytes]:
                nonlocal running
                try:
                    return await original()
                finally:
                    running -= 1

            process.communicate = communicate
            return process

        runner = MediaToolRunner(timeout=5, max_concurrent=2)
        with patch("asyncio.create_subprocess_exec", side_effect=spawn):
            await asyncio.gather(*(runner.run("ffprobe") for _ in range(6)))

        assert peak == 2
