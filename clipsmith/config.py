"""
Runtime configuration, read from environment variables.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


# Output platform specs used when rendering clips and formatting titles/hashtags.
PLATFORM_SPECS: Dict[str, dict] = {
    "tiktok": {
        "name": "TikTok",
        "width": 720,
        "height": 1280,
        "max_duration": 180,
        "title_length": 40,
        "hashtags": ["#fyp", "#viral", "#trending"],
    },
    "instagram": {
        "name": "Instagram Reels",
        "width": 720,
        "height": 1280,
        "max_duration": 90,
        "title_length": 40,
        "hashtags": ["#reels", "#explore", "#viral"],
    },
    "youtube": {
        "name": "YouTube Shorts",
        "width": 720,
        "height": 1280,
        "max_duration": 60,
        "title_length": 60,
        "hashtags": ["#shorts", "#trending"],
    },
    "twitter": {
        "name": "Twitter/X",
        "width": 1280,
        "height": 720,
        "max_duration": 140,
        "title_length": 40,
        "hashtags": ["#viral", "#trending"],
    },
}

DEFAULT_PLATFORM = "tiktok"


@dataclass(frozen=True)
class Settings:
    work_dir: Path = Path("jobs")
    media_dir: Path = Path("media")
    media_base_url: str = "/media"
    transcription_provider: str = "openai"  # "openai" | "whisper"
    openai_api_key: Optional[str] = None
    openai_model: str = "whisper-1"
    whisper_model: str = "tiny"
    max_upload_bytes: int = 25 * 1024 * 1024
    chunk_seconds: float = 600.0
    transcription_timeout: float = 300.0
    transcription_max_attempts: int = 3
    transcription_concurrency: int = 2
    max_concurrent_jobs: int = 2
    download_timeout: float = 900.0
    metadata_timeout: float = 60.0
    transcoder_timeout: float = 600.0
    max_source_duration: float = 7200.0
    yt_cookies_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            work_dir=Path(os.environ.get("CLIPSMITH_WORK_DIR", "jobs")),
            media_dir=Path(os.environ.get("CLIPSMITH_MEDIA_DIR", "media")),
            media_base_url=os.environ.get("CLIPSMITH_MEDIA_BASE_URL", "/media"),
            transcription_provider=os.environ.get("TRANSCRIPTION_PROVIDER", "openai").lower(),
            openai_api_key=os.environ.get("OPENAI_API_KEY"),
            openai_model=os.environ.get("OPENAI_TRANSCRIPTION_MODEL", "whisper-1"),
            whisper_model=os.environ.get("WHISPER_MODEL", "tiny"),
            max_upload_bytes=_env_int("TRANSCRIPTION_MAX_UPLOAD_MB", 25) * 1024 * 1024,
            chunk_seconds=_env_float("TRANSCRIPTION_CHUNK_SECONDS", 600.0),
            transcription_timeout=_env_float("TRANSCRIPTION_TIMEOUT_SECONDS", 300.0),
            transcription_max_attempts=_env_int("TRANSCRIPTION_MAX_ATTEMPTS", 3),
            transcription_concurrency=_env_int("TRANSCRIPTION_CONCURRENCY", 2),
            max_concurrent_jobs=_env_int("MAX_CONCURRENT_JOBS", 2),
            download_timeout=_env_float("DOWNLOAD_TIMEOUT_SECONDS", 900.0),
            metadata_timeout=_env_float("METADATA_TIMEOUT_SECONDS", 60.0),
            transcoder_timeout=_env_float("TRANSCODER_TIMEOUT_SECONDS", 600.0),
            max_source_duration=_env_float("MAX_SOURCE_DURATION_SECONDS", 7200.0),
            yt_cookies_file=os.environ.get("YT_COOKIES_FILE"),
        )
