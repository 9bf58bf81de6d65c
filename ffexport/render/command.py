"""FFmpeg command line assembly."""

from dataclasses import dataclass, field


@dataclass
class CommandInput:
    """One ``-i`` input with the options that must precede it."""

    source: str
    options: list[str] = field(default_factory=list)


class FFmpegCommand:
    """Collects inputs, filter graph and output options into an argv list."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path
        self.inputs: list[CommandInput] = []
        self.complex_filter: str | None = None
        self.output_path: str | None = None
        self._output_options: list[str] = []

    def input(self, source: str, options: list[str] | None = None) -> "FFmpegCommand":
        self.inputs.append(CommandInput(source, list(options or [])))
        return self

    def output(self, path: str) -> "FFmpegCommand":
        self.output_path = path
        return self

    def output_options(self, *options: str) -> "FFmpegCommand":
        self._output_options.extend(options)
        return self

    def build(self) -> list[str]:
        """Build the FFmpeg argv list."""
        if self.output_path is None:
            raise ValueError("FFmpeg command has no output")

        cmd = [self.ffmpeg_path, "-y"]
        for item in self.inputs:
            cmd.extend(item.options)
            cmd.extend(["-i", item.source])
        if self.complex_filter:
            cmd.extend(["-filter_complex", self.complex_filter])
        cmd.extend(self._output_options)
        cmd.append(self.output_path)
        return cmd
