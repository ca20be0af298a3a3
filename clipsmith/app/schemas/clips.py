from typing import List, Optional

from pydantic import BaseModel

from clipsmith.domain.models import Clip, ClipStatus


class ClipOut(BaseModel):
    id: str
    job_id: str
    rank: int
    start: float
    end: float
    duration: float
    engagement_score: float
    engagement_factors: List[str] = []
    text: str
    title: str = ""
    hashtags: List[str] = []
    status: ClipStatus
    media_url: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def from_clip(cls, clip: Clip) -> "ClipOut":
        return cls(
            id=clip.id,
            job_id=clip.job_id,
            rank=clip.rank,
            start=clip.start,
            end=clip.end,
            duration=clip.duration,
            engagement_score=clip.engagement_score,
            engagement_factors=clip.engagement_factors,
            text=clip.text,
            title=clip.title,
            hashtags=clip.hashtags,
            status=clip.status,
            media_url=clip.media_url,
            error_message=clip.error_message,
        )
