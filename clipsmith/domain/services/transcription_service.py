import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from clipsmith.domain.errors import TranscriptionError
from clipsmith.domain.models import TranscriptChunk, TranscriptionOptions, TranscriptResult
from clipsmith.domain.services.transcript_merger import merge_transcripts
from clipsmith.infrastructure.chunking import ChunkSplitter, chunk_directory, cleanup_chunks

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class Transcriber(Protocol):
    def transcribe(
        self, file_path: Path, options: Optional[TranscriptionOptions] = None
    ) -> TranscriptResult: ...


class TranscriptionService:
    """
    Transcribe a media file of any size: split it when it is over the
    provider limit, transcribe chunks (several at a time), and merge the
    results in chunk order.
    """

    def __init__(
        self,
        splitter: ChunkSplitter,
        transcriber: Transcriber,
        *,
        concurrency: int = 2,
    ) -> None:
        self.splitter = splitter
        self.transcriber = transcriber
        self.concurrency = max(1, concurrency)

    def transcribe_media(
        self,
        media_path: Path,
        options: Optional[TranscriptionOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> TranscriptResult:
        options = options or TranscriptionOptions()
        needs_splitting, chunks = self.splitter.split(media_path)
        if not needs_splitting:
            result = self.transcriber.transcribe(media_path, options)
            result.chunk_offsets = [0.0]
            if on_progress:
                on_progress(1, 1)
            return result

        try:
            if not chunks:
                raise TranscriptionError("Splitting produced no audio chunks")
            results = self._transcribe_chunks(chunks, options, on_progress)
            return merge_transcripts(
                results,
                nominal_chunk_seconds=self.splitter.chunk_seconds,
                chunks=chunks,
            )
        finally:
            cleanup_chunks(chunk_directory(media_path))

    def _transcribe_chunks(
        self,
        chunks: List[TranscriptChunk],
        options: TranscriptionOptions,
        on_progress: Optional[ProgressCallback],
    ) -> List[TranscriptResult]:
        results: List[Optional[TranscriptResult]] = [None] * len(chunks)
        total = len(chunks)
        with ThreadPoolExecutor(max_workers=min(self.concurrency, total)) as pool:
            pending = {
                pool.submit(self.transcriber.transcribe, chunk.file_path, options): chunk
                for chunk in chunks
            }
            finished = 0
            while pending:
                done, _ = wait(pending, return_when=FIRST_EXCEPTION)
                for future in done:
                    chunk = pending.pop(future)
                    error = future.exception()
                    if error is not None:
                        for other in pending:
                            other.cancel()
                        logger.error("Chunk %d/%d failed: %s", chunk.index + 1, total, error)
                        raise error
                    results[chunk.index] = future.result()
                    finished += 1
                    logger.info("Chunk %d/%d transcribed", chunk.index + 1, total)
                    if on_progress:
                        on_progress(finished, total)
        # Completion order is arbitrary; merging needs index order.
        return [r for r in results if r is not None]
