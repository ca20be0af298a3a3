"""
Split media that is too large for the transcription provider into
time-bounded audio chunks.
"""
import logging
import math
import shutil
from pathlib import Path
from typing import List, Tuple

from clipsmith.domain.models import TranscriptChunk
from clipsmith.infrastructure import ffmpeg_adapter

logger = logging.getLogger(__name__)


class ChunkSplitter:
    """
    Files at or below `max_bytes` are not split: the caller sends the whole
    file as one chunk starting at 0. Larger files are reduced to audio and
    cut into `chunk_seconds` pieces under `<file stem>_chunks/`.

    The caller owns the chunk files and removes them with `cleanup_chunks`
    once transcription is over.
    """

    def __init__(
        self,
        max_bytes: int,
        chunk_seconds: float,
        *,
        timeout: float = ffmpeg_adapter.DEFAULT_TIMEOUT,
    ) -> None:
        if chunk_seconds <= 0:
            raise ValueError("chunk_seconds must be positive")
        self.max_bytes = max_bytes
        self.chunk_seconds = chunk_seconds
        self.timeout = timeout

    def split(self, file_path: Path) -> Tuple[bool, List[TranscriptChunk]]:
        size = file_path.stat().st_size
        if size <= self.max_bytes:
            logger.info(
                "%s is %.1f MB, within the %.1f MB limit; no splitting needed",
                file_path.name,
                size / (1024 * 1024),
                self.max_bytes / (1024 * 1024),
            )
            return False, []

        chunk_dir = chunk_directory(file_path)
        chunk_dir.mkdir(parents=True, exist_ok=True)
        audio_path = chunk_dir / f"{file_path.stem}_audio.mp3"
        try:
            ffmpeg_adapter.extract_audio(file_path, audio_path, timeout=self.timeout)
            duration = ffmpeg_adapter.probe_duration(audio_path)
            total = max(1, math.ceil(duration / self.chunk_seconds))
            logger.info(
                "Splitting %s (%.1fs) into %d chunks of %.0fs",
                file_path.name,
                duration,
                total,
                self.chunk_seconds,
            )
            chunks = []
            for index in range(total):
                chunk_path = chunk_dir / f"chunk_{index:03d}.mp3"
                ffmpeg_adapter.extract_segment(
                    audio_path,
                    chunk_path,
                    index * self.chunk_seconds,
                    self.chunk_seconds,
                    timeout=self.timeout,
                )
                chunk_size = chunk_path.stat().st_size
                if chunk_size > self.max_bytes:
                    logger.warning(
                        "Chunk %d is %.1f MB, still over the provider limit",
                        index,
                        chunk_size / (1024 * 1024),
                    )
                chunks.append(TranscriptChunk(index=index, file_path=chunk_path, size_bytes=chunk_size))
        except Exception:
            cleanup_chunks(chunk_dir)
            raise
        finally:
            audio_path.unlink(missing_ok=True)
        return True, chunks


def chunk_directory(file_path: Path) -> Path:
    return file_path.parent / f"{file_path.stem}_chunks"


def cleanup_chunks(chunk_dir: Path) -> None:
    if chunk_dir.exists():
        shutil.rmtree(chunk_dir, ignore_errors=True)
        logger.debug("Removed chunk directory %s", chunk_dir)
