from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from clipsmith.config import DEFAULT_PLATFORM


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStage(str, Enum):
    QUEUED = "queued"
    DOWNLOADING = "downloading"
    TRANSCRIBING = "transcribing"
    ANALYZING = "analyzing"
    SAVING = "saving"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStage.COMPLETED, JobStage.ERROR)

    def can_advance_to(self, target: "JobStage") -> bool:
        """Forward-only along STAGE_ORDER; ERROR is reachable from any non-terminal stage."""
        if self.is_terminal:
            return False
        if target is JobStage.ERROR:
            return True
        return STAGE_ORDER.index(target) >= STAGE_ORDER.index(self)


STAGE_ORDER = [
    JobStage.QUEUED,
    JobStage.DOWNLOADING,
    JobStage.TRANSCRIBING,
    JobStage.ANALYZING,
    JobStage.SAVING,
    JobStage.COMPLETED,
]


class ClipStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    ERROR = "error"


@dataclass
class ClipOptions:
    platform: str = DEFAULT_PLATFORM
    min_clip_duration: float = 15.0
    max_clip_duration: float = 90.0
    target_clip_count: Optional[int] = None
    min_engagement_score: float = 0.6
    language: Optional[str] = None


@dataclass
class Job:
    id: str
    source_url: str
    owner_id: Optional[str] = None
    stage: JobStage = JobStage.QUEUED
    stage_message: str = "Waiting in queue"
    progress_percent: int = 0
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    warning: Optional[str] = None
    clips_generated: int = 0
    options: ClipOptions = field(default_factory=ClipOptions)


@dataclass
class Clip:
    """Persisted clip record, one per ranked candidate."""

    id: str
    job_id: str
    start: float
    end: float
    duration: float
    engagement_score: float
    rank: int
    text: str
    status: ClipStatus = ClipStatus.PENDING
    media_url: Optional[str] = None
    title: str = ""
    hashtags: List[str] = field(default_factory=list)
    engagement_factors: List[str] = field(default_factory=list)
    error_message: Optional[str] = None


@dataclass(frozen=True)
class TranscriptionOptions:
    language: Optional[str] = None  # None = auto-detect
    temperature: float = 0.0


@dataclass
class TranscriptChunk:
    index: int
    file_path: Path
    size_bytes: int
    # Filled in during reconciliation from measured durations of earlier chunks.
    start_offset_seconds: Optional[float] = None


@dataclass
class TranscriptWord:
    word: str
    start: float
    end: float
    degraded_accuracy: bool = False


@dataclass
class TranscriptSegment:
    start: float
    end: float
    text: str
    confidence: Optional[float] = None
    degraded_accuracy: bool = False


@dataclass
class TranscriptResult:
    text: str = ""
    segments: List[TranscriptSegment] = field(default_factory=list)
    words: List[TranscriptWord] = field(default_factory=list)
    language: Optional[str] = None
    duration_seconds: float = 0.0
    chunk_offsets: List[float] = field(default_factory=list)
    degraded: bool = False


@dataclass
class ClipCandidate:
    start: float
    end: float
    text: str
    segments: List[TranscriptSegment] = field(default_factory=list)
    engagement_score: float = 0.0
    engagement_factors: List[str] = field(default_factory=list)
    word_count: int = 0
    rank: int = 0
    original_start: Optional[float] = None
    original_end: Optional[float] = None
    suggested_title: str = ""
    hashtags: List[str] = field(default_factory=list)
    confidence: float = 0.0

    @property
    def duration(self) -> float:
        return self.end - self.start
