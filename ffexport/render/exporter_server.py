"""
Export orchestration across segments.

The renderer reports which segment it is in before sending its frames.
On each change of segment the previous SegmentExporter is finished before
the next one starts, so at most one segment receives frames at a time.
"""

import logging
from typing import Callable, Optional, Union

from ffexport.render.segment_exporter import SegmentExporter
from ffexport.schemas.export import ExportSettings, RendererResult, SegmentReport, Sound

logger = logging.getLogger(__name__)

# Segment name used when the whole project is exported as one file
PROJECT_SEGMENT = "project"


def rebaseline_sounds(sounds: list[Sound], segment: str, fps: int, split: bool) -> list[Sound]:
    """
    Select and shift the sounds for one segment.

    With splitting enabled, sounds owned by other segments are dropped and
    offsets become relative to the segment's first frame. The input sounds
    are left untouched.
    """
    if not split:
        return list(sounds)

    scoped: list[Sound] = []
    for sound in sounds:
        if sound.segment_name != segment:
            continue
        if sound.segment_first_frame is not None:
            sound = sound.model_copy(
                update={"offset": sound.offset - sound.segment_first_frame / fps}
            )
        scoped.append(sound)
    return scoped


class ExportOrchestrator:
    """Drives one SegmentExporter per segment over the whole export."""

    def __init__(
        self,
        settings: ExportSettings,
        ffmpeg_path: str = "ffmpeg",
        exporter_factory: Optional[Callable[[ExportSettings], SegmentExporter]] = None,
        stderr_tail_lines: int = 50,
    ):
        self.settings = settings
        self.ffmpeg_path = ffmpeg_path
        self._exporter_factory = exporter_factory or self._create_exporter
        self._stderr_tail_lines = stderr_tail_lines
        self.current_segment: Optional[str] = None
        self.exporter: Optional[SegmentExporter] = None

    def _create_exporter(self, settings: ExportSettings) -> SegmentExporter:
        return SegmentExporter(
            settings,
            ffmpeg_path=self.ffmpeg_path,
            stderr_tail_lines=self._stderr_tail_lines,
        )

    def resolve_segment(self, report: Union[SegmentReport, str]) -> str:
        if not self.settings.split_by_segment:
            return PROJECT_SEGMENT
        if isinstance(report, str):
            return report
        return report.segment_name

    def segment_settings(self, segment: str) -> ExportSettings:
        """Settings scoped to one segment: its name and its re-baselined sounds."""
        return self.settings.model_copy(
            update={
                "name": segment,
                "sounds": rebaseline_sounds(
                    self.settings.sounds,
                    segment,
                    self.settings.fps,
                    self.settings.split_by_segment,
                ),
            }
        )

    async def report_scene(self, report: Union[SegmentReport, str]) -> None:
        """Switch to the reported segment, finishing the previous one first."""
        segment = self.resolve_segment(report)
        if segment == self.current_segment:
            return

        if self.exporter is not None:
            logger.info(f"[EXPORT] Segment '{self.current_segment}' ended, switching to '{segment}'")
            previous, self.exporter = self.exporter, None
            self.current_segment = None
            await previous.end()

        exporter = self._exporter_factory(self.segment_settings(segment))
        await exporter.start()
        self.exporter = exporter
        self.current_segment = segment

    async def handle_frame(self, frame: bytes) -> None:
        if self.exporter is None:
            raise RuntimeError("No active segment: report a segment before sending frames")
        await self.exporter.handle_frame(frame)

    async def end(self, result: Optional[RendererResult] = None) -> None:
        if self.exporter is None:
            raise RuntimeError("No active segment to end")
        exporter, self.exporter = self.exporter, None
        self.current_segment = None
        logger.info(f"[EXPORT] Ending segment '{exporter.name}' (result={result!r})")
        await exporter.end(result)
