import threading

import pytest

from clipsmith.domain.errors import ProviderError
from clipsmith.domain.models import TranscriptResult
from clipsmith.domain.services.transcription_service import TranscriptionService
from clipsmith.infrastructure import ffmpeg_adapter
from clipsmith.infrastructure.chunking import ChunkSplitter, chunk_directory

from conftest import FakeTranscriber, seg

LIMIT = 1000


def chunk_transcript(label, seconds):
    segments = [seg(t, t + 10.0, f"{label} part at {t:.0f}.") for t in range(0, int(seconds), 10)]
    return TranscriptResult(text=" ".join(s.text for s in segments), segments=segments, language="en")


@pytest.fixture
def oversized_video(tmp_path, monkeypatch):
    monkeypatch.setattr(ffmpeg_adapter, "extract_audio", lambda src, dst, timeout=None: dst.write_bytes(b"a"))
    monkeypatch.setattr(ffmpeg_adapter, "probe_duration", lambda path: 1500.0)
    monkeypatch.setattr(
        ffmpeg_adapter,
        "extract_segment",
        lambda src, dst, start, duration, timeout=None: dst.write_bytes(b"\0" * 10),
    )
    video = tmp_path / "source.mp4"
    video.write_bytes(b"\0" * (LIMIT * 3))
    return video


class OutOfOrderTranscriber(FakeTranscriber):
    """chunk_000 finishes only after chunk_002 has, so completion order != index order."""

    def __init__(self, by_name):
        super().__init__(by_name=by_name)
        self.last_done = threading.Event()

    def transcribe(self, file_path, options=None):
        if file_path.name == "chunk_000.mp3":
            assert self.last_done.wait(timeout=5)
        result = super().transcribe(file_path, options)
        if file_path.name == "chunk_002.mp3":
            self.last_done.set()
        return result


def test_chunks_are_merged_in_index_order_on_one_timeline(oversized_video):
    transcriber = OutOfOrderTranscriber(
        {
            "chunk_000.mp3": chunk_transcript("one", 600),
            "chunk_001.mp3": chunk_transcript("two", 600),
            "chunk_002.mp3": chunk_transcript("three", 300),
        }
    )
    progress = []
    service = TranscriptionService(ChunkSplitter(LIMIT, 600), transcriber, concurrency=2)

    result = service.transcribe_media(oversized_video, on_progress=lambda done, total: progress.append((done, total)))

    assert result.chunk_offsets == [0.0, 600.0, 1200.0]
    assert result.duration_seconds == 1500.0
    starts = [s.start for s in result.segments]
    assert starts == sorted(starts)
    assert result.segments[0].text.startswith("one")
    assert result.segments[60].start == 600.0
    assert result.segments[60].text.startswith("two")
    assert result.segments[-1].end == 1500.0
    for before, after in zip(result.segments, result.segments[1:]):
        assert after.start == pytest.approx(before.end)
    assert progress == [(1, 3), (2, 3), (3, 3)]
    assert not chunk_directory(oversized_video).exists()


def test_chunk_failure_fails_the_whole_transcription(oversized_video):
    transcriber = FakeTranscriber(error=ProviderError("Rate limit exceeded.", retryable=True, status_code=429))
    service = TranscriptionService(ChunkSplitter(LIMIT, 600), transcriber, concurrency=2)

    with pytest.raises(ProviderError, match="Rate limit"):
        service.transcribe_media(oversized_video)
    assert not chunk_directory(oversized_video).exists()


def test_small_file_is_sent_whole(tmp_path):
    video = tmp_path / "source.mp4"
    video.write_bytes(b"\0" * 10)
    transcriber = FakeTranscriber(result=chunk_transcript("only", 30))
    progress = []

    result = TranscriptionService(ChunkSplitter(LIMIT, 600), transcriber).transcribe_media(
        video, on_progress=lambda done, total: progress.append((done, total))
    )

    assert transcriber.calls == [video]
    assert result.chunk_offsets == [0.0]
    assert progress == [(1, 1)]
