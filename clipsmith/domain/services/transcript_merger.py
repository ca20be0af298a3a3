"""
Merge per-chunk transcription results into one absolute timeline.
"""
import logging
from typing import List, Optional, Sequence

from clipsmith.domain.errors import TranscriptionError
from clipsmith.domain.models import (
    TranscriptChunk,
    TranscriptResult,
    TranscriptSegment,
    TranscriptWord,
)

logger = logging.getLogger(__name__)


def measured_duration(result: TranscriptResult) -> Optional[float]:
    """Chunk duration taken from its last well-formed segment's end time, or None."""
    for seg in reversed(result.segments):
        if seg.end > seg.start:
            return seg.end if seg.end > 0 else None
    return None


def merge_transcripts(
    results: Sequence[TranscriptResult],
    *,
    nominal_chunk_seconds: float,
    chunks: Optional[Sequence[TranscriptChunk]] = None,
) -> TranscriptResult:
    """
    Shift every segment and word of chunk i by the summed measured durations
    of chunks 0..i-1 and concatenate the text.

    `results` must be in chunk index order. When a chunk's duration cannot be
    measured, `nominal_chunk_seconds` stands in for it and everything after it
    is flagged `degraded_accuracy`. If `chunks` is given, each chunk's
    `start_offset_seconds` is set to the offset used for it.
    """
    if not results:
        raise TranscriptionError("No usable transcription chunks to merge")
    if chunks is not None and len(chunks) != len(results):
        raise ValueError("chunks and results must have the same length")

    cumulative_offset = 0.0
    degraded = False
    texts: List[str] = []
    segments: List[TranscriptSegment] = []
    words: List[TranscriptWord] = []
    offsets: List[float] = []

    for index, result in enumerate(results):
        offsets.append(cumulative_offset)
        if chunks is not None:
            chunks[index].start_offset_seconds = cumulative_offset

        for seg in result.segments:
            if seg.end <= seg.start:
                logger.debug("Chunk %d: dropping segment with empty time span at %.2fs", index, seg.start)
                continue
            segments.append(
                TranscriptSegment(
                    start=seg.start + cumulative_offset,
                    end=seg.end + cumulative_offset,
                    text=seg.text,
                    confidence=seg.confidence,
                    degraded_accuracy=seg.degraded_accuracy or degraded,
                )
            )
        for word in result.words:
            if word.end <= word.start:
                continue
            words.append(
                TranscriptWord(
                    word=word.word,
                    start=word.start + cumulative_offset,
                    end=word.end + cumulative_offset,
                    degraded_accuracy=word.degraded_accuracy or degraded,
                )
            )
        if result.text:
            texts.append(result.text.strip())

        duration = measured_duration(result)
        if duration is None:
            logger.warning(
                "Chunk %d has no measurable duration; assuming nominal %.1fs "
                "(degraded accuracy for later timestamps)",
                index,
                nominal_chunk_seconds,
            )
            duration = nominal_chunk_seconds
            degraded = True
        cumulative_offset += duration

    segments.sort(key=lambda s: s.start)
    language = next((r.language for r in results if r.language), None)
    return TranscriptResult(
        text=" ".join(texts),
        segments=segments,
        words=words,
        language=language,
        duration_seconds=cumulative_offset,
        chunk_offsets=offsets,
        degraded=degraded,
    )
