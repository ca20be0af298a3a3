import logging
import re
import uuid
from typing import Callable, List, Optional

from clipsmith.config import PLATFORM_SPECS
from clipsmith.domain.errors import InvalidJobRequest
from clipsmith.domain.models import Clip, ClipOptions, Job, JobStage
from clipsmith.infrastructure.downloaders import detect_platform

logger = logging.getLogger(__name__)

# Job ids name the job's work directory and storage keys.
JOB_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,64}")


class JobService:
    """
    Trigger side of the pipeline: validate a request, create or revalidate the
    job record, and hand the job id to `submit` without waiting for the run.
    """

    def __init__(self, repository, submit: Callable[[str], None]) -> None:
        self.repository = repository
        self._submit = submit

    def submit_job(
        self,
        source_url: str,
        *,
        job_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        options: Optional[ClipOptions] = None,
    ) -> Job:
        url = (source_url or "").strip()
        if not url:
            raise InvalidJobRequest("URL is required")
        if detect_platform(url) is None:
            raise InvalidJobRequest(f"Unsupported video source: {url}")

        options = options or ClipOptions()
        if options.platform not in PLATFORM_SPECS:
            raise InvalidJobRequest(
                f"Unsupported platform '{options.platform}'; expected one of {sorted(PLATFORM_SPECS)}"
            )
        if options.min_clip_duration <= 0 or options.min_clip_duration > options.max_clip_duration:
            raise InvalidJobRequest("min_clip_duration must be positive and not above max_clip_duration")
        if job_id is not None and not JOB_ID_PATTERN.fullmatch(job_id):
            raise InvalidJobRequest("job_id may only contain letters, digits, '_' and '-' (max 64)")

        job = self.repository.get(job_id) if job_id else None
        if job is not None:
            if job.stage.is_terminal:
                raise InvalidJobRequest(f"Job {job.id} already finished ({job.stage.value})", conflict=True)
            if job.source_url != url:
                raise InvalidJobRequest(f"Job {job.id} exists with a different source URL", conflict=True)
            logger.info("Re-submitting existing job %s", job.id)
        else:
            job = Job(
                id=job_id or str(uuid.uuid4()),
                source_url=url,
                owner_id=owner_id,
                stage=JobStage.QUEUED,
                options=options,
            )
            self.repository.save(job)
            logger.info("Created job %s for %s", job.id, url)

        self._submit(job.id)
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.repository.get(job_id)

    def list_clips(self, job_id: str) -> List[Clip]:
        return self.repository.list_clips(job_id)
