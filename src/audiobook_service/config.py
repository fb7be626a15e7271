"""Runtime configuration sourced from environment variables."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

LOGGER = logging.getLogger(__name__)


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


def _list_from_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    items = tuple(item.strip() for item in value.split(",") if item.strip())
    return items or default


def _load_dotenv() -> None:
    env_file = Path(os.getenv("ENV_FILE", ".env"))
    if env_file.is_file():
        load_dotenv(dotenv_path=env_file, override=False)


@dataclass(slots=True)
class Settings:
    """Service settings; every field maps to one environment variable."""

    host: str = "0.0.0.0"
    port: int = 3000
    work_dir: Path = Path("uploads")
    ffmpeg_binary: str = "ffmpeg"
    ffmpeg_audio_codec: str = "libmp3lame"
    transcode_timeout_seconds: float = 600.0
    max_concurrent_transcodes: int = 2
    download_timeout_seconds: float = 60.0
    max_chunk_size: int = 4000
    min_document_chars: int = 50
    cors_allow_origins: tuple[str, ...] = field(default_factory=lambda: ("*",))
    log_dir: Path = Path("logs")

    @classmethod
    def from_env(cls) -> "Settings":
        _load_dotenv()
        defaults = cls()
        return cls(
            host=os.getenv("HOST", defaults.host),
            port=_int_from_env("PORT", defaults.port),
            work_dir=Path(os.getenv("WORK_DIR", str(defaults.work_dir))),
            ffmpeg_binary=os.getenv("FFMPEG_BINARY", defaults.ffmpeg_binary),
            ffmpeg_audio_codec=os.getenv("FFMPEG_AUDIO_CODEC", defaults.ffmpeg_audio_codec),
            transcode_timeout_seconds=_float_from_env(
                "TRANSCODE_TIMEOUT_SECONDS", defaults.transcode_timeout_seconds
            ),
            max_concurrent_transcodes=max(
                1, _int_from_env("MAX_CONCURRENT_TRANSCODES", defaults.max_concurrent_transcodes)
            ),
            download_timeout_seconds=_float_from_env(
                "DOWNLOAD_TIMEOUT_SECONDS", defaults.download_timeout_seconds
            ),
            max_chunk_size=_int_from_env("MAX_CHUNK_SIZE", defaults.max_chunk_size),
            min_document_chars=_int_from_env("MIN_DOCUMENT_CHARS", defaults.min_document_chars),
            cors_allow_origins=_list_from_env("CORS_ALLOW_ORIGINS", defaults.cors_allow_origins),
            log_dir=Path(os.getenv("LOG_DIR", str(defaults.log_dir))),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""

    return Settings.from_env()
