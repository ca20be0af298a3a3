"""
Runs one job end to end: download -> transcribe -> analyze -> render/upload.

Every stage change is saved before the next stage starts, so a poller sees
the stage move forward and end at exactly `completed` or `error`.
"""
import logging
import shutil
import uuid
from pathlib import Path
from typing import List, Optional, Protocol

from clipsmith.domain.errors import ClipsmithError
from clipsmith.domain.models import (
    Clip,
    ClipCandidate,
    ClipStatus,
    Job,
    JobStage,
    TranscriptionOptions,
    TranscriptResult,
    utcnow,
)
from clipsmith.domain.services.clip_detector import detect_clips
from clipsmith.domain.services.run_lock import RunLock
from clipsmith.domain.services.transcription_service import TranscriptionService

logger = logging.getLogger(__name__)

STAGE_MESSAGES = {
    JobStage.DOWNLOADING: "Downloading source video",
    JobStage.TRANSCRIBING: "Transcribing audio",
    JobStage.ANALYZING: "Finding the best moments",
    JobStage.SAVING: "Rendering clips",
    JobStage.COMPLETED: "Clips ready",
    JobStage.ERROR: "Something went wrong",
}


class Downloader(Protocol):
    def download(self, url: str, dest_dir: Path) -> Path: ...


class Renderer(Protocol):
    def render(self, source: Path, output: Path, start: float, end: float, platform: str) -> None: ...


class Storage(Protocol):
    def upload(self, file_path: Path, key: str) -> str: ...


class JobOrchestrator:
    def __init__(
        self,
        repository,
        run_lock: RunLock,
        downloader: Downloader,
        transcription: TranscriptionService,
        renderer: Renderer,
        storage: Storage,
        work_dir: Path,
    ) -> None:
        self.repository = repository
        self.run_lock = run_lock
        self.downloader = downloader
        self.transcription = transcription
        self.renderer = renderer
        self.storage = storage
        self.work_dir = work_dir

    def run(self, job_id: str) -> None:
        """
        Run the job unless another run for the same id is in flight. Errors
        end up on the job record; nothing is raised to the caller.
        """
        with self.run_lock.hold(job_id) as acquired:
            if not acquired:
                logger.info("Job %s is already running; skipping duplicate run", job_id)
                return
            job = self.repository.get(job_id)
            if job is None:
                logger.warning("Job %s not found; nothing to run", job_id)
                return
            if job.stage.is_terminal:
                logger.info("Job %s already %s; not running again", job_id, job.stage.value)
                return

            work_root = self.work_dir.resolve()
            job_dir = (work_root / job_id).resolve()
            if job_dir.parent != work_root:
                logger.error("Job %s: id does not map to a directory under %s; refusing to run", job_id, work_root)
                self._fail(job, ClipsmithError(f"Invalid job id: {job_id!r}"))
                return
            try:
                self._run_stages(job, job_dir)
            except Exception as exc:  # noqa: BLE001 - top-level guard
                logger.exception("Job %s failed during %s", job_id, job.stage.value)
                self._fail(job, exc)
            finally:
                shutil.rmtree(job_dir, ignore_errors=True)

    def _run_stages(self, job: Job, job_dir: Path) -> None:
        job_dir.mkdir(parents=True, exist_ok=True)

        self._advance(job, JobStage.DOWNLOADING, 5)
        video_path = self.downloader.download(job.source_url, job_dir)

        self._advance(job, JobStage.TRANSCRIBING, 20)
        transcript = self._transcribe(job, video_path)

        self._advance(job, JobStage.ANALYZING, 60)
        candidates = detect_clips(transcript, job.options)
        clips = self._persist_candidates(job, candidates)
        if transcript.degraded:
            job.warning = "Some timestamps are estimated; clip boundaries may drift"

        self._advance(job, JobStage.SAVING, 75)
        if not clips:
            self._complete(job, 0, "No engaging moments found in this video")
            return
        succeeded = self._render_clips(job, video_path, clips, job_dir)
        failed = len(clips) - succeeded
        warning = None
        if failed:
            warning = f"{failed} of {len(clips)} clips failed to render"
        self._complete(job, succeeded, warning)

    def _transcribe(self, job: Job, video_path: Path) -> TranscriptResult:
        def on_progress(done: int, total: int) -> None:
            if total > 1:
                job.stage_message = f"Transcribing chunk {done} of {total}"
            job.progress_percent = max(job.progress_percent, 20 + int(40 * done / total))
            self.repository.save(job)

        options = TranscriptionOptions(language=job.options.language)
        return self.transcription.transcribe_media(video_path, options, on_progress)

    def _persist_candidates(self, job: Job, candidates: List[ClipCandidate]) -> List[Clip]:
        clips = []
        for candidate in candidates:
            clip = Clip(
                id=str(uuid.uuid4()),
                job_id=job.id,
                start=candidate.start,
                end=candidate.end,
                duration=candidate.duration,
                engagement_score=candidate.engagement_score,
                rank=candidate.rank,
                text=candidate.text,
                title=candidate.suggested_title,
                hashtags=list(candidate.hashtags),
                engagement_factors=list(candidate.engagement_factors),
            )
            self.repository.save_clip(clip)
            clips.append(clip)
        logger.info("Job %s: %d clip candidates", job.id, len(clips))
        return clips

    def _render_clips(self, job: Job, video_path: Path, clips: List[Clip], job_dir: Path) -> int:
        succeeded = 0
        for i, clip in enumerate(clips, start=1):
            job.stage_message = f"Rendering clip {i} of {len(clips)}"
            job.progress_percent = max(job.progress_percent, 75 + int(24 * (i - 1) / len(clips)))
            self.repository.save(job)

            output = job_dir / f"clip_{clip.rank:02d}.mp4"
            try:
                self.renderer.render(video_path, output, clip.start, clip.end, job.options.platform)
                clip.media_url = self.storage.upload(output, f"{job.id}/{clip.id}.mp4")
                clip.status = ClipStatus.READY
                succeeded += 1
            except Exception as exc:  # noqa: BLE001 - one bad clip must not fail the job
                logger.warning("Job %s: clip %s failed: %s", job.id, clip.id, exc)
                clip.status = ClipStatus.ERROR
                clip.error_message = str(exc)
            finally:
                output.unlink(missing_ok=True)
            self.repository.save_clip(clip)
        return succeeded

    def _advance(self, job: Job, stage: JobStage, percent: int, message: Optional[str] = None) -> None:
        job.stage = stage
        job.stage_message = message or STAGE_MESSAGES[stage]
        job.progress_percent = max(job.progress_percent, percent)
        self.repository.save(job)
        logger.info("Job %s -> %s (%d%%)", job.id, stage.value, job.progress_percent)

    def _complete(self, job: Job, clips_generated: int, warning: Optional[str]) -> None:
        job.clips_generated = clips_generated
        if warning:
            job.warning = f"{job.warning}; {warning}" if job.warning else warning
        job.completed_at = utcnow()
        message = STAGE_MESSAGES[JobStage.COMPLETED]
        if job.warning:
            message = f"{message} ({job.warning})"
        self._advance(job, JobStage.COMPLETED, 100, message)

    def _fail(self, job: Job, exc: Exception) -> None:
        job.error_message = str(exc) or exc.__class__.__name__
        job.completed_at = utcnow()
        try:
            self._advance(job, JobStage.ERROR, job.progress_percent)
        except Exception:  # noqa: BLE001 - the store itself is failing
            logger.exception("Could not record failure for job %s", job.id)
