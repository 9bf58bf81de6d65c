from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="FFEXPORT_", extra="ignore"
    )

    # Application
    app_name: str = "FFexport"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    # Number of encoder stderr lines kept for error reports
    stderr_tail_lines: int = 50

    # Export defaults (overridable per export run)
    output_dir: str = "output"
    project_root: str = "."
    audio_sample_rate: int = 48000


@lru_cache
def get_settings() -> Settings:
    return Settings()
