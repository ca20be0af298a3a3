import logging
import os
import shutil
from contextlib import asynccontextmanager
from typing import Optional, Tuple

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware

from clipsmith.app.api import routes_jobs
from clipsmith.config import Settings
from clipsmith.domain.services.job_service import JobService
from clipsmith.domain.services.orchestrator import JobOrchestrator
from clipsmith.domain.services.run_lock import RunLock
from clipsmith.domain.services.transcription_service import TranscriptionService
from clipsmith.infrastructure.chunking import ChunkSplitter
from clipsmith.infrastructure.dispatcher import JobDispatcher
from clipsmith.infrastructure.downloaders import MediaDownloader
from clipsmith.infrastructure.ffmpeg_adapter import ClipRenderer
from clipsmith.infrastructure.openai_adapter import OpenAITranscriber
from clipsmith.infrastructure.persistence.in_memory_repo import InMemoryJobRepository
from clipsmith.infrastructure.storage import LocalMediaStorage
from clipsmith.infrastructure.whisper_adapter import WhisperTranscriber

logger = logging.getLogger("uvicorn.access")


def build_transcriber(settings: Settings):
    if settings.transcription_provider == "whisper":
        return WhisperTranscriber(settings.whisper_model)
    if settings.transcription_provider != "openai":
        raise ValueError(f"Unknown TRANSCRIPTION_PROVIDER: {settings.transcription_provider}")
    return OpenAITranscriber(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout=settings.transcription_timeout,
        max_attempts=settings.transcription_max_attempts,
    )


def build_pipeline(settings: Settings) -> Tuple[JobService, JobDispatcher]:
    """Wire repository, run lock, orchestrator and worker pool together."""
    repository = InMemoryJobRepository()
    orchestrator = JobOrchestrator(
        repository=repository,
        run_lock=RunLock(),
        downloader=MediaDownloader(
            download_timeout=settings.download_timeout,
            metadata_timeout=settings.metadata_timeout,
            max_duration=settings.max_source_duration,
            cookies_file=settings.yt_cookies_file,
        ),
        transcription=TranscriptionService(
            ChunkSplitter(
                settings.max_upload_bytes,
                settings.chunk_seconds,
                timeout=settings.transcoder_timeout,
            ),
            build_transcriber(settings),
            concurrency=settings.transcription_concurrency,
        ),
        renderer=ClipRenderer(timeout=settings.transcoder_timeout),
        storage=LocalMediaStorage(settings.media_dir, settings.media_base_url),
        work_dir=settings.work_dir,
    )
    dispatcher = JobDispatcher(orchestrator.run, workers=settings.max_concurrent_jobs)
    return JobService(repository, dispatcher.submit), dispatcher


class LogRequestsMiddleware(BaseHTTPMiddleware):
    """Log when a request is received, before the handler runs."""

    async def dispatch(self, request, call_next):
        logger.info("Request started: %s %s", request.method, request.url.path)
        return await call_next(request)


def create_app(
    settings: Optional[Settings] = None,
    job_service: Optional[JobService] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    if not logging.getLogger().handlers:
        logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())

    dispatcher: Optional[JobDispatcher] = None
    if job_service is None:
        job_service, dispatcher = build_pipeline(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings.media_dir.mkdir(parents=True, exist_ok=True)
        if dispatcher is not None:
            dispatcher.start()
        try:
            yield
        finally:
            if dispatcher is not None:
                dispatcher.stop(timeout=5)

    app = FastAPI(title="Clipsmith API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.job_service = job_service

    app.add_middleware(LogRequestsMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(routes_jobs.router)

    app.mount(
        settings.media_base_url,
        StaticFiles(directory=str(settings.media_dir), check_dir=False),
        name="media",
    )

    @app.get("/health")
    async def health():
        ffmpeg_ok = shutil.which("ffmpeg") is not None
        return {"status": "ok" if ffmpeg_ok else "degraded", "ffmpeg": ffmpeg_ok}

    return app


app = create_app()
