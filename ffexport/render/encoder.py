"""
Encoder process handling.

Runs FFmpeg as an asyncio subprocess with frames on stdin and diagnostics
on stderr, and exposes a single completion future per process.
"""

import asyncio
import logging
import re
from collections import deque
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Progress reports end with \r, log lines with \n
_LINE_BREAK = re.compile(rb"[\r\n]")
STDERR_CHUNK_SIZE = 4096


class EncoderError(RuntimeError):
    """The encoder exited abnormally while exporting a segment."""

    def __init__(self, segment: str, returncode: Optional[int], stderr: str = "", message: str = ""):
        self.segment = segment
        self.returncode = returncode
        self.stderr = stderr
        detail = message or f"exited with code {returncode}"
        text = f"FFmpeg export of segment '{segment}' failed: {detail}"
        if stderr:
            text += f"\n{stderr}"
        super().__init__(text)


def _log_stderr(line: str) -> None:
    logger.debug(f"[FFMPEG] {line}")


class EncoderProcess:
    """One FFmpeg process and its completion signal."""

    def __init__(
        self,
        cmd: list[str],
        segment: str,
        stderr_listener: Optional[Callable[[str], None]] = None,
        stderr_tail_lines: int = 50,
    ):
        self.cmd = cmd
        self.segment = segment
        self.stderr_listener = stderr_listener or _log_stderr
        self._stderr_tail: deque[str] = deque(maxlen=stderr_tail_lines)
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._completion: Optional[asyncio.Future[None]] = None
        self._watcher: Optional[asyncio.Task[None]] = None

    @property
    def started(self) -> bool:
        return self._proc is not None

    @property
    def stdin(self) -> Optional[asyncio.StreamWriter]:
        return self._proc.stdin if self._proc else None

    @property
    def completion(self) -> "asyncio.Future[None]":
        if self._completion is None:
            raise RuntimeError(f"Encoder for segment '{self.segment}' was never started")
        return self._completion

    async def start(self) -> None:
        """Launch the process. Returns once it is running."""
        if self._proc is not None:
            raise RuntimeError(f"Encoder for segment '{self.segment}' already started")

        loop = asyncio.get_running_loop()
        self._completion = loop.create_future()
        self._proc = await asyncio.create_subprocess_exec(
            *self.cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        logger.info(f"[FFMPEG] Started pid={self._proc.pid} for segment '{self.segment}'")
        self._watcher = asyncio.create_task(self._watch(self._proc, self._completion))

    def _emit_line(self, raw_line: bytes) -> None:
        line = raw_line.decode("utf-8", errors="replace").rstrip()
        if not line:
            return
        self._stderr_tail.append(line)
        self.stderr_listener(line)

    async def _read_stderr(self, stderr: asyncio.StreamReader) -> None:
        """Forward stderr lines until EOF, reading in chunks."""
        pending = b""
        while True:
            chunk = await stderr.read(STDERR_CHUNK_SIZE)
            if not chunk:
                break
            *lines, pending = _LINE_BREAK.split(pending + chunk)
            for raw_line in lines:
                self._emit_line(raw_line)
        if pending:
            self._emit_line(pending)

    async def _watch(
        self, proc: asyncio.subprocess.Process, completion: "asyncio.Future[None]"
    ) -> None:
        try:
            await self._read_stderr(proc.stderr)
        except Exception as e:
            logger.warning(f"[FFMPEG] Error reading encoder output for segment '{self.segment}': {e}")
        returncode = await proc.wait()

        if completion.done():
            return
        if returncode == 0:
            logger.info(f"[FFMPEG] Segment '{self.segment}' finished")
            completion.set_result(None)
        else:
            logger.error(f"[FFMPEG] Segment '{self.segment}' exited with code {returncode}")
            completion.set_exception(
                EncoderError(self.segment, returncode, "\n".join(self._stderr_tail))
            )

    def kill(self) -> None:
        """Request forced termination (SIGKILL). No-op if already exited."""
        if self._proc is None or self._proc.returncode is not None:
            return
        try:
            self._proc.kill()
        except ProcessLookupError:
            logger.debug(f"[FFMPEG] Segment '{self.segment}' exited before kill")
        else:
            logger.warning(f"[FFMPEG] Killed encoder for segment '{self.segment}'")

    async def wait(self) -> None:
        """Await the completion signal; raises EncoderError on failure."""
        await self.completion
