import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from clipsmith.domain.models import (
    ClipOptions,
    Job,
    TranscriptionOptions,
    TranscriptResult,
    TranscriptSegment,
    TranscriptWord,
)
from clipsmith.domain.services.orchestrator import JobOrchestrator
from clipsmith.domain.services.run_lock import RunLock
from clipsmith.domain.services.transcription_service import TranscriptionService
from clipsmith.infrastructure.chunking import ChunkSplitter
from clipsmith.infrastructure.persistence.in_memory_repo import InMemoryJobRepository

ENGAGING_TEXT = "Do you know how to win every time? It is amazing!"


def seg(start: float, end: float, text: str) -> TranscriptSegment:
    return TranscriptSegment(start=start, end=end, text=text)


def engaging_transcript(clip_count: int = 5, segment_seconds: float = 10.0) -> TranscriptResult:
    """Four 10s segments per clip; with max_clip_duration=40 each group becomes one clip."""
    segments = []
    for i in range(clip_count * 4):
        start = i * segment_seconds
        segments.append(seg(start, start + segment_seconds, ENGAGING_TEXT))
    return TranscriptResult(
        text=" ".join(s.text for s in segments),
        segments=segments,
        words=[TranscriptWord(word="Do", start=0.0, end=0.3)],
        language="en",
        duration_seconds=segments[-1].end,
    )


class RecordingRepository(InMemoryJobRepository):
    """Keeps every saved stage so tests can check the sequence a poller would see."""

    def __init__(self) -> None:
        super().__init__()
        self.stage_history: Dict[str, List[str]] = {}
        self.percent_history: Dict[str, List[int]] = {}

    def save(self, job: Job) -> None:
        super().save(job)
        self.stage_history.setdefault(job.id, []).append(job.stage.value)
        self.percent_history.setdefault(job.id, []).append(job.progress_percent)


class FakeDownloader:
    def __init__(self, size_bytes: int = 1024, error: Optional[Exception] = None) -> None:
        self.size_bytes = size_bytes
        self.error = error
        self.calls: List[str] = []

    def download(self, url: str, dest_dir: Path) -> Path:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        dest_dir.mkdir(parents=True, exist_ok=True)
        path = dest_dir / "source.mp4"
        path.write_bytes(b"\0" * self.size_bytes)
        return path


class FakeTranscriber:
    def __init__(
        self,
        result: Optional[TranscriptResult] = None,
        error: Optional[Exception] = None,
        by_name: Optional[Dict[str, TranscriptResult]] = None,
    ) -> None:
        self.result = result
        self.error = error
        self.by_name = by_name or {}
        self.calls: List[Path] = []
        self._lock = threading.Lock()

    def transcribe(self, file_path: Path, options: Optional[TranscriptionOptions] = None) -> TranscriptResult:
        with self._lock:
            self.calls.append(file_path)
        if self.error is not None:
            raise self.error
        if file_path.name in self.by_name:
            return self.by_name[file_path.name]
        return self.result


class FakeRenderer:
    def __init__(self, fail_ranks: Sequence[int] = ()) -> None:
        self.fail_ranks = set(fail_ranks)
        self.calls: List[tuple] = []

    def render(self, source: Path, output: Path, start: float, end: float, platform: str) -> None:
        self.calls.append((start, end, platform))
        rank = int(output.stem.split("_")[-1])
        if rank in self.fail_ranks:
            raise RuntimeError(f"ffmpeg clip cut failed with exit code 1\nrender error for rank {rank}")
        output.write_bytes(b"clip")


class FakeStorage:
    def __init__(self) -> None:
        self.keys: List[str] = []

    def upload(self, file_path: Path, key: str) -> str:
        assert file_path.exists()
        self.keys.append(key)
        return f"/media/{key}"


@pytest.fixture
def repository() -> RecordingRepository:
    return RecordingRepository()


@pytest.fixture
def clip_options() -> ClipOptions:
    return ClipOptions(
        platform="tiktok",
        min_clip_duration=15.0,
        max_clip_duration=40.0,
        min_engagement_score=0.6,
    )


@pytest.fixture
def make_orchestrator(repository, tmp_path):
    def factory(
        transcriber,
        *,
        downloader=None,
        renderer=None,
        storage=None,
        run_lock=None,
        max_bytes: int = 25 * 1024 * 1024,
    ) -> JobOrchestrator:
        return JobOrchestrator(
            repository=repository,
            run_lock=run_lock or RunLock(),
            downloader=downloader or FakeDownloader(),
            transcription=TranscriptionService(ChunkSplitter(max_bytes, 600.0), transcriber, concurrency=2),
            renderer=renderer or FakeRenderer(),
            storage=storage or FakeStorage(),
            work_dir=tmp_path / "work",
        )

    return factory
