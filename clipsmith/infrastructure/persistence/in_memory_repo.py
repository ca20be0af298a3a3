from copy import deepcopy
from threading import Lock
from typing import Dict, List, Optional

from clipsmith.domain.errors import StageTransitionError
from clipsmith.domain.models import Clip, Job


class InMemoryJobRepository:
    """
    In-memory job and clip store for local development and tests.

    Records are copied on the way in and out, so a poller only ever sees what
    was last saved, never a job the orchestrator is halfway through mutating.
    A save that would move a job's stage backwards is rejected.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._clips: Dict[str, Dict[str, Clip]] = {}
        self._lock = Lock()

    def save(self, job: Job) -> None:
        with self._lock:
            current = self._jobs.get(job.id)
            if (
                current is not None
                and current.stage is not job.stage
                and not current.stage.can_advance_to(job.stage)
            ):
                raise StageTransitionError(
                    f"Job {job.id} cannot move from {current.stage.value} to {job.stage.value}"
                )
            self._jobs[job.id] = deepcopy(job)

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return deepcopy(job) if job is not None else None

    def save_clip(self, clip: Clip) -> None:
        with self._lock:
            self._clips.setdefault(clip.job_id, {})[clip.id] = deepcopy(clip)

    def list_clips(self, job_id: str) -> List[Clip]:
        with self._lock:
            clips = [deepcopy(c) for c in self._clips.get(job_id, {}).values()]
        return sorted(clips, key=lambda c: c.rank)
