"""Frame-sequence to video export through an external FFmpeg encoder."""

__version__ = "0.1.0"
