"""
Pytest fixtures for ffexport tests.

Most tests replace the FFmpeg subprocess with an in-memory fake so the
export lifecycle can be checked without the binary. Tests that run the
real encoder are marked with @pytest.mark.requires_ffmpeg and skipped
when ffmpeg is not on PATH.
"""

import asyncio
import shutil
import subprocess
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from ffexport.schemas.export import ExportSettings

FFMPEG_PATH = shutil.which("ffmpeg")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring the ffmpeg binary (skipped when missing)"
    )


class FakeStdin:
    """Stands in for the encoder's stdin StreamWriter.

    A stalled process never consumes input: drain and wait_closed block
    until the process exits.
    """

    def __init__(self, process: "FakeProcess"):
        self._process = process
        self.data = bytearray()
        self.closed = False
        self.broken = False
        self.drain_calls = 0
        self.transport = MagicMock()

    def write(self, data: bytes) -> None:
        if self.closed or self.broken:
            raise BrokenPipeError("pipe closed")
        self.data.extend(data)

    async def drain(self) -> None:
        self.drain_calls += 1
        if self._process.stalled:
            await self._process.wait()
        if self.broken:
            raise BrokenPipeError("pipe closed")

    def close(self) -> None:
        self.closed = True
        if self._process.exit_on_eof and not self._process.stalled:
            self._process.finish(self._process.exit_code)

    async def wait_closed(self) -> None:
        if self._process.stalled:
            await self._process.wait()
        await asyncio.sleep(0)


class FakeStderr:
    """Serves canned stderr bytes in chunks, then EOF once the process exits."""

    def __init__(self, process: "FakeProcess", data: bytes):
        self._process = process
        self._data = data
        self.reads = 0

    async def read(self, n: int = -1) -> bytes:
        self.reads += 1
        if self._data:
            size = len(self._data) if n < 0 else n
            chunk, self._data = self._data[:size], self._data[size:]
            return chunk
        await self._process.wait()
        return b""


class FakeProcess:
    """Minimal asyncio.subprocess.Process replacement."""

    def __init__(
        self,
        cmd: list[str],
        exit_code: int = 0,
        exit_on_eof: bool = True,
        stalled: bool = False,
        stderr_data: bytes = b"",
    ):
        self.cmd = cmd
        self.pid = 4242
        self.returncode = None
        self.exit_code = exit_code
        self.exit_on_eof = exit_on_eof
        self.stalled = stalled
        self.killed = False
        self._exited = asyncio.Event()
        self.stdin = FakeStdin(self)
        self.stderr = FakeStderr(self, stderr_data)

    def finish(self, code: int) -> None:
        if self.returncode is None:
            self.returncode = code
            self._exited.set()

    def kill(self) -> None:
        self.killed = True
        self.finish(-9)

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode


class FakeFFmpeg:
    """Records launched fake processes and configures how they behave."""

    def __init__(self):
        self.processes: list[FakeProcess] = []
        self.exit_code = 0
        self.exit_on_eof = True
        self.stalled = False
        self.stderr_lines: list[str] = []
        # Raw stderr bytes; takes precedence over stderr_lines when set
        self.stderr_data: bytes = b""
        self.events: list[str] = []

    async def create_subprocess_exec(self, *cmd, **kwargs):
        stderr_data = self.stderr_data or "".join(f"{line}\n" for line in self.stderr_lines).encode()
        proc = FakeProcess(
            list(cmd),
            exit_code=self.exit_code,
            exit_on_eof=self.exit_on_eof,
            stalled=self.stalled,
            stderr_data=stderr_data,
        )
        self.processes.append(proc)
        self.events.append("launch")
        return proc

    @property
    def last(self) -> FakeProcess:
        return self.processes[-1]


@pytest.fixture
def fake_ffmpeg(monkeypatch) -> FakeFFmpeg:
    """Replace asyncio subprocess creation in the encoder with a fake."""
    fake = FakeFFmpeg()
    monkeypatch.setattr(
        "ffexport.render.encoder.asyncio.create_subprocess_exec",
        fake.create_subprocess_exec,
    )
    return fake


@pytest.fixture
def temp_output_dir():
    """Temporary directory for test outputs."""
    with tempfile.TemporaryDirectory(prefix="ffexport_test_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def export_settings(temp_output_dir: Path) -> ExportSettings:
    """Small 1-second export at 30fps with no sounds."""
    return ExportSettings(
        name="project",
        size={"x": 16, "y": 8},
        fps=30,
        duration=30,
        output_dir=str(temp_output_dir / "out"),
        project_root=str(temp_output_dir),
    )


@pytest.fixture
def frame_16x8() -> bytes:
    """One opaque red RGBA frame for a 16x8 export."""
    return bytes([255, 0, 0, 255]) * (16 * 8)


@pytest.fixture
def sine_wav(temp_output_dir: Path) -> Path:
    """A 2-second 440Hz tone generated with ffmpeg."""
    output_path = temp_output_dir / "audio" / "tone.wav"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    subprocess.run(
        [
            FFMPEG_PATH, "-y",
            "-f", "lavfi",
            "-i", "sine=frequency=440:duration=2",
            "-ar", "44100",
            str(output_path),
        ],
        capture_output=True,
        check=True,
    )
    return output_path

