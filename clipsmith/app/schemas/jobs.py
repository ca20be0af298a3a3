from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from clipsmith.app.schemas.clips import ClipOut
from clipsmith.config import DEFAULT_PLATFORM
from clipsmith.domain.models import ClipOptions, Job, JobStage


class ClipOptionsIn(BaseModel):
    platform: str = DEFAULT_PLATFORM
    min_clip_duration: float = 15.0
    max_clip_duration: float = 90.0
    target_clip_count: Optional[int] = Field(default=None, ge=1)
    min_engagement_score: float = Field(default=0.6, ge=0.0, le=1.0)
    language: Optional[str] = None

    def to_options(self) -> ClipOptions:
        return ClipOptions(
            platform=self.platform.lower(),
            min_clip_duration=self.min_clip_duration,
            max_clip_duration=self.max_clip_duration,
            target_clip_count=self.target_clip_count,
            min_engagement_score=self.min_engagement_score,
            language=self.language,
        )


class JobRequest(BaseModel):
    url: str
    job_id: Optional[str] = None
    owner_id: Optional[str] = None
    options: ClipOptionsIn = Field(default_factory=ClipOptionsIn)


class JobAccepted(BaseModel):
    status: Literal["processing"] = "processing"
    job_id: str


class JobDetail(BaseModel):
    id: str
    source_url: str
    stage: JobStage
    stage_message: str
    progress_percent: int
    clips_generated: int
    error_message: Optional[str] = None
    warning: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    clips: List[ClipOut] = []

    @classmethod
    def from_job(cls, job: Job, clips: List[ClipOut]) -> "JobDetail":
        return cls(
            id=job.id,
            source_url=job.source_url,
            stage=job.stage,
            stage_message=job.stage_message,
            progress_percent=job.progress_percent,
            clips_generated=job.clips_generated,
            error_message=job.error_message,
            warning=job.warning,
            created_at=job.created_at,
            completed_at=job.completed_at,
            clips=clips,
        )
