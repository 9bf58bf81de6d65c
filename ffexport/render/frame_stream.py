"""Raw RGBA frame sink feeding the encoder's stdin."""

import asyncio
import logging
from typing import Optional

from ffexport.render.encoder import EncoderError

logger = logging.getLogger(__name__)

BYTES_PER_PIXEL = 4  # rgba


class FrameStream:
    """
    Pushes fixed-size raw frames into an encoder pipe.

    ``push`` returns only after the pipe has taken the whole frame, so a
    slow encoder holds back whoever produces frames. ``push(None)`` ends
    the stream.
    """

    def __init__(self, width: int, height: int, segment: str = ""):
        if width <= 0 or height <= 0:
            raise ValueError(f"Frame size must be positive, got {width}x{height}")
        self.width = width
        self.height = height
        self.segment = segment
        self.frame_bytes = width * height * BYTES_PER_PIXEL
        self.frames_written = 0
        self._writer: Optional[asyncio.StreamWriter] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def bind(self, writer: asyncio.StreamWriter) -> None:
        """Attach the encoder's stdin."""
        # Zero high-water mark: drain() waits until the pipe took everything.
        writer.transport.set_write_buffer_limits(high=0)
        self._writer = writer

    async def push(self, frame: Optional[bytes]) -> None:
        if self._closed:
            raise RuntimeError(f"Frame stream for segment '{self.segment}' already ended")
        if frame is None:
            await self._close()
            return
        if self._writer is None:
            raise RuntimeError(f"Frame stream for segment '{self.segment}' is not bound to an encoder")
        if len(frame) != self.frame_bytes:
            raise ValueError(
                f"Frame has {len(frame)} bytes, expected {self.frame_bytes} "
                f"({self.width}x{self.height} rgba)"
            )

        try:
            self._writer.write(frame)
            await self._writer.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise EncoderError(
                self.segment, None, message=f"encoder stopped accepting frames after {self.frames_written}"
            ) from e
        self.frames_written += 1

    async def _close(self) -> None:
        self._closed = True
        if self._writer is None:
            return
        logger.debug(f"[FRAMES] End of stream for segment '{self.segment}' after {self.frames_written} frames")
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (BrokenPipeError, ConnectionResetError):
            # The encoder already exited; its completion future carries the outcome.
            logger.debug(f"[FRAMES] Encoder pipe for segment '{self.segment}' was already closed")

    def close_nowait(self) -> None:
        """End the stream without waiting for buffered frames to flush."""
        if self._closed:
            return
        self._closed = True
        if self._writer is not None:
            self._writer.close()
