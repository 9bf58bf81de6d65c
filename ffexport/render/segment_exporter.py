"""
Single-segment export session.

A SegmentExporter owns one FFmpeg process, one frame stream and one
completion signal. The command is fully assembled at construction; the
process is launched by ``start()``.
"""

import asyncio
import logging
import os
from typing import Callable, Optional

from ffexport.render.command import FFmpegCommand
from ffexport.render.encoder import EncoderProcess
from ffexport.render.filters import AudioGraph, build_audio_graph
from ffexport.render.frame_stream import FrameStream
from ffexport.schemas.export import ExportSettings, RendererResult, Sound

logger = logging.getLogger(__name__)

RAW_PIXEL_FORMAT = "rgba"
OUTPUT_PIXEL_FORMAT = "yuv420p"
VIDEO_CODEC = "libx264"

# High-quality path: lossless audio, slow preset, near-lossless video
HQ_AUDIO_CODEC = "flac"
HQ_PRESET = "slower"
HQ_CRF = 12


def resolve_audio_path(ref: str, project_root: str) -> str:
    """Resolve a project-root relative audio reference (``/audio/a.wav``)."""
    relative = ref[1:] if ref.startswith("/") else ref
    return os.path.join(project_root, relative)


def output_extension(high_quality: bool) -> str:
    return "mkv" if high_quality else "mp4"


def segment_sounds(settings: ExportSettings) -> list[Sound]:
    """Sounds to mix for a segment, including the project-level audio track."""
    sounds = list(settings.sounds)
    if settings.audio and settings.include_audio:
        sounds.append(
            Sound(
                audio=settings.audio,
                real_playback_rate=1,
                offset=settings.audio_offset or 0,
            )
        )
    return sounds


class SegmentExporter:
    """Exports one segment of the timeline to its own file."""

    def __init__(
        self,
        settings: ExportSettings,
        ffmpeg_path: str = "ffmpeg",
        stderr_listener: Optional[Callable[[str], None]] = None,
        stderr_tail_lines: int = 50,
    ):
        self.settings = settings
        self.name = settings.name
        width, height = settings.frame_size
        self.output_dir = settings.output_dir
        self.output_path = os.path.join(
            self.output_dir, f"{settings.name}.{output_extension(settings.high_quality)}"
        )

        self.stream = FrameStream(width, height, segment=self.name)
        self.command = FFmpegCommand(ffmpeg_path)

        # Raw frames on stdin
        self.command.input(
            "pipe:0",
            [
                "-f", "rawvideo",
                "-pix_fmt", RAW_PIXEL_FORMAT,
                "-s:v", f"{width}x{height}",
                "-r", str(settings.fps),
            ],
        )

        # Audio inputs and mix graph
        self.audio_graph: AudioGraph = build_audio_graph(
            segment_sounds(settings),
            settings.audio_sample_rate,
            resolve_path=lambda ref: resolve_audio_path(ref, settings.project_root),
        )
        for audio_input in self.audio_graph.inputs:
            self.command.input(audio_input.path, audio_input.input_options())
        if not self.audio_graph.is_empty:
            self.command.complex_filter = self.audio_graph.filter_complex()
            self.command.output_options(*self.audio_graph.output_maps())

        # Output
        self.command.output(self.output_path).output_options(
            "-pix_fmt", OUTPUT_PIXEL_FORMAT,
            "-t", str(settings.duration_seconds),
            "-c:v", VIDEO_CODEC,
            "-r", str(settings.fps),
            "-s", f"{width}x{height}",
        )
        if settings.fast_start and not settings.high_quality:
            self.command.output_options("-movflags", "+faststart")
        if settings.high_quality:
            self.command.output_options(
                "-c:a", HQ_AUDIO_CODEC,
                "-preset", HQ_PRESET,
                "-crf", str(HQ_CRF),
            )

        self.encoder = EncoderProcess(
            self.command.build(),
            segment=self.name,
            stderr_listener=stderr_listener,
            stderr_tail_lines=stderr_tail_lines,
        )

    async def start(self) -> None:
        """Create the output directory and launch the encoder. Does not wait for it."""
        if not os.path.exists(self.output_dir):
            await asyncio.to_thread(os.makedirs, self.output_dir, exist_ok=True)

        logger.info(f"[SEGMENT] Exporting '{self.name}' to {self.output_path}")
        logger.info(f"[SEGMENT] FFmpeg command: {' '.join(self.encoder.cmd)}")
        await self.encoder.start()
        self.stream.bind(self.encoder.stdin)

    async def handle_frame(self, frame: bytes) -> None:
        """Push one raw frame; returns when the encoder can take the next one."""
        await self.stream.push(frame)

    async def end(self, result: Optional[RendererResult] = None) -> None:
        """
        Finish the segment.

        An aborted render kills the encoder and discards whatever error the
        kill produces. Otherwise waits for the encoder to finish and lets
        its error propagate.
        """
        if result == RendererResult.ABORTED:
            # A stalled encoder may never drain stdin, so do not wait on it.
            self.stream.close_nowait()
            try:
                self.encoder.kill()
                await self.encoder.wait()
            except Exception as e:
                logger.debug(f"[SEGMENT] Ignoring error after abort of '{self.name}': {e}")
        else:
            if not self.stream.closed:
                await self.stream.push(None)
            await self.encoder.wait()
            logger.info(f"[SEGMENT] Finished '{self.name}' ({self.stream.frames_written} frames)")
