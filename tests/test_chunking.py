import pytest

from clipsmith.domain.errors import TranscoderError
from clipsmith.infrastructure import ffmpeg_adapter
from clipsmith.infrastructure.chunking import ChunkSplitter, chunk_directory, cleanup_chunks

LIMIT = 1000


@pytest.fixture
def fake_ffmpeg(monkeypatch):
    calls = {"extract_audio": 0, "segments": []}

    def extract_audio(input_path, output_path, timeout=None):
        calls["extract_audio"] += 1
        output_path.write_bytes(b"\0" * (LIMIT * 3))

    def extract_segment(input_path, output_path, start, duration, timeout=None):
        calls["segments"].append((start, duration))
        output_path.write_bytes(b"\0" * (LIMIT // 2))

    monkeypatch.setattr(ffmpeg_adapter, "extract_audio", extract_audio)
    monkeypatch.setattr(ffmpeg_adapter, "probe_duration", lambda path: 1800.0)
    monkeypatch.setattr(ffmpeg_adapter, "extract_segment", extract_segment)
    return calls


def test_file_within_limit_is_not_split(tmp_path, fake_ffmpeg):
    video = tmp_path / "source.mp4"
    video.write_bytes(b"\0" * LIMIT)

    needs_splitting, chunks = ChunkSplitter(LIMIT, 600).split(video)

    assert needs_splitting is False
    assert chunks == []
    assert fake_ffmpeg["extract_audio"] == 0
    assert not chunk_directory(video).exists()


def test_oversized_file_is_split_into_time_chunks(tmp_path, fake_ffmpeg):
    video = tmp_path / "source.mp4"
    video.write_bytes(b"\0" * (LIMIT * 3))

    needs_splitting, chunks = ChunkSplitter(LIMIT, 600).split(video)

    assert needs_splitting is True
    assert [c.index for c in chunks] == [0, 1, 2]
    assert [c.file_path.name for c in chunks] == ["chunk_000.mp3", "chunk_001.mp3", "chunk_002.mp3"]
    assert fake_ffmpeg["segments"] == [(0, 600), (600, 600), (1200, 600)]
    assert all(c.size_bytes <= LIMIT for c in chunks)
    assert not (chunk_directory(video) / "source_audio.mp3").exists()


def test_partial_last_chunk_rounds_up(tmp_path, fake_ffmpeg, monkeypatch):
    monkeypatch.setattr(ffmpeg_adapter, "probe_duration", lambda path: 1250.0)
    video = tmp_path / "source.mp4"
    video.write_bytes(b"\0" * (LIMIT * 2))

    _, chunks = ChunkSplitter(LIMIT, 600).split(video)

    assert len(chunks) == 3


def test_transcoder_failure_cleans_up_and_propagates(tmp_path, fake_ffmpeg, monkeypatch):
    def broken(*args, **kwargs):
        raise TranscoderError("ffmpeg segment extraction failed", "Invalid data found")

    monkeypatch.setattr(ffmpeg_adapter, "extract_segment", broken)
    video = tmp_path / "source.mp4"
    video.write_bytes(b"\0" * (LIMIT * 3))

    with pytest.raises(TranscoderError) as excinfo:
        ChunkSplitter(LIMIT, 600).split(video)

    assert "Invalid data found" in str(excinfo.value)
    assert not chunk_directory(video).exists()


def test_cleanup_tolerates_missing_directory(tmp_path):
    cleanup_chunks(tmp_path / "never_created")


def test_chunk_seconds_must_be_positive():
    with pytest.raises(ValueError):
        ChunkSplitter(LIMIT, 0)
