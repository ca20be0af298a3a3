from pathlib import Path

from clipsmith.config import Settings


def test_defaults_when_environment_is_empty(monkeypatch):
    for name in ("TRANSCRIPTION_MAX_UPLOAD_MB", "TRANSCRIPTION_CHUNK_SECONDS", "TRANSCRIPTION_PROVIDER"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.max_upload_bytes == 25 * 1024 * 1024
    assert settings.chunk_seconds == 600.0
    assert settings.transcription_provider == "openai"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TRANSCRIPTION_MAX_UPLOAD_MB", "10")
    monkeypatch.setenv("TRANSCRIPTION_PROVIDER", "Whisper")
    monkeypatch.setenv("MAX_CONCURRENT_JOBS", "4")
    monkeypatch.setenv("CLIPSMITH_MEDIA_DIR", "/srv/clips")

    settings = Settings.from_env()

    assert settings.max_upload_bytes == 10 * 1024 * 1024
    assert settings.transcription_provider == "whisper"
    assert settings.max_concurrent_jobs == 4
    assert settings.media_dir == Path("/srv/clips")
