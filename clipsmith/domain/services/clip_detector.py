"""
Turn a transcript into ranked, duration-bounded clip candidates.

Pipeline: extract segments -> group into candidates -> score -> rank ->
snap boundaries to sentence edges. Everything here is deterministic: the same
transcript and options always yield the same candidates, scores and ranks.
"""
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from clipsmith.config import DEFAULT_PLATFORM, PLATFORM_SPECS
from clipsmith.domain.models import (
    ClipCandidate,
    ClipOptions,
    TranscriptResult,
    TranscriptSegment,
)

# Segments with this many characters or fewer are treated as noise.
MIN_SEGMENT_TEXT_LENGTH = 10
# Gap between words (seconds) that starts a new segment when rebuilding from words.
WORD_GAP_SECONDS = 2.0
# How far (seconds) a boundary may move when snapping to a sentence edge.
BOUNDARY_WINDOW_SECONDS = 2.0

BASE_SCORE = 0.3
OPTIMAL_DURATION = (20.0, 45.0)
OPTIMAL_WORD_COUNT = (15, 60)


@dataclass(frozen=True)
class EngagementRule:
    tag: str
    matches: Callable[[ClipCandidate], bool]
    weight: float


def _pattern(regex: str) -> Callable[[ClipCandidate], bool]:
    compiled = re.compile(regex)
    return lambda clip: bool(compiled.search(clip.text.lower()))


def _contains(char: str) -> Callable[[ClipCandidate], bool]:
    return lambda clip: char in clip.text


def _duration_between(low: float, high: float) -> Callable[[ClipCandidate], bool]:
    return lambda clip: low <= clip.duration <= high


def _word_count_between(low: int, high: int) -> Callable[[ClipCandidate], bool]:
    return lambda clip: low <= clip.word_count <= high


ENGAGEMENT_RULES: List[EngagementRule] = [
    EngagementRule("question", _contains("?"), 0.15),
    EngagementRule("excitement", _contains("!"), 0.10),
    EngagementRule("direct-address", _pattern(r"\b(you|your)\b"), 0.10),
    EngagementRule(
        "emotional-impact",
        _pattern(r"\b(amazing|incredible|unbelievable|shocking|wow)\b"),
        0.15,
    ),
    EngagementRule("educational", _pattern(r"\b(how to|learn|tip|secret|trick)\b"), 0.10),
    EngagementRule("structured-content", _pattern(r"\b(number|first|second|step|rule)\b"), 0.10),
    EngagementRule("optimal-duration", _duration_between(*OPTIMAL_DURATION), 0.10),
    EngagementRule("good-length", _word_count_between(*OPTIMAL_WORD_COUNT), 0.10),
]


def detect_clips(
    transcript: TranscriptResult,
    options: Optional[ClipOptions] = None,
    rules: Sequence[EngagementRule] = ENGAGEMENT_RULES,
) -> List[ClipCandidate]:
    """Return candidates ordered by rank (1 = best)."""
    options = options or ClipOptions()
    if options.min_clip_duration > options.max_clip_duration:
        raise ValueError("min_clip_duration must not exceed max_clip_duration")

    segments = extract_segments(transcript)
    candidates = group_segments(segments, options.min_clip_duration, options.max_clip_duration)
    for candidate in candidates:
        score_candidate(candidate, rules)
    ranked = rank_candidates(candidates, options.min_engagement_score, options.target_clip_count)
    for candidate in ranked:
        optimize_boundaries(candidate, options.min_clip_duration, options.max_clip_duration)
        _decorate(candidate, options.platform)
    return ranked


def extract_segments(transcript: TranscriptResult) -> List[TranscriptSegment]:
    if transcript.segments:
        segments = [
            TranscriptSegment(
                start=seg.start,
                end=seg.end,
                text=seg.text.strip(),
                confidence=seg.confidence,
                degraded_accuracy=seg.degraded_accuracy,
            )
            for seg in transcript.segments
        ]
    else:
        segments = _segments_from_words(transcript)
    return [seg for seg in segments if len(seg.text) > MIN_SEGMENT_TEXT_LENGTH]


def _segments_from_words(transcript: TranscriptResult) -> List[TranscriptSegment]:
    segments: List[TranscriptSegment] = []
    current: Optional[TranscriptSegment] = None
    for word in transcript.words:
        token = word.word.strip()
        if current is None or word.start - current.end > WORD_GAP_SECONDS:
            if current is not None:
                segments.append(current)
            current = TranscriptSegment(
                start=word.start,
                end=word.end,
                text=token,
                degraded_accuracy=word.degraded_accuracy,
            )
        else:
            current.end = word.end
            current.text = f"{current.text} {token}"
            current.degraded_accuracy = current.degraded_accuracy or word.degraded_accuracy
    if current is not None:
        segments.append(current)
    return segments


def group_segments(
    segments: Sequence[TranscriptSegment],
    min_duration: float,
    max_duration: float,
) -> List[ClipCandidate]:
    """
    Greedily grow a candidate with consecutive segments until the next one
    would push it past max_duration, then start a new candidate.
    """
    groups: List[List[TranscriptSegment]] = []
    current: List[TranscriptSegment] = []
    for seg in segments:
        if current and seg.end - current[0].start > max_duration:
            groups.append(current)
            current = []
        current.append(seg)
    if current:
        groups.append(current)

    candidates = []
    for group in groups:
        candidate = ClipCandidate(
            start=group[0].start,
            end=group[-1].end,
            text=" ".join(seg.text for seg in group),
            segments=list(group),
        )
        if min_duration <= candidate.duration <= max_duration:
            candidates.append(candidate)
    return candidates


def score_candidate(candidate: ClipCandidate, rules: Sequence[EngagementRule] = ENGAGEMENT_RULES) -> None:
    candidate.word_count = len(candidate.text.split())
    score = BASE_SCORE
    factors = []
    for rule in rules:
        if rule.matches(candidate):
            score += rule.weight
            factors.append(rule.tag)
    # Rounded so that threshold comparisons don't depend on float summation noise.
    candidate.engagement_score = round(min(max(score, 0.0), 1.0), 4)
    candidate.engagement_factors = factors


def rank_candidates(
    candidates: Sequence[ClipCandidate],
    min_score: float,
    limit: Optional[int] = None,
) -> List[ClipCandidate]:
    kept = [c for c in candidates if c.engagement_score >= min_score]
    # sorted() is stable, so equal scores keep transcript order.
    kept = sorted(kept, key=lambda c: c.engagement_score, reverse=True)
    if limit is not None:
        kept = kept[: max(limit, 0)]
    for rank, candidate in enumerate(kept, start=1):
        candidate.rank = rank
    return kept


def optimize_boundaries(
    candidate: ClipCandidate,
    min_duration: float,
    max_duration: float,
) -> None:
    """
    Snap the start to the nearest segment start beginning with a capital letter
    and the end to the nearest segment end closing a sentence, each within
    BOUNDARY_WINDOW_SECONDS. Only the candidate's own segments are considered,
    so a clip never grows into its neighbours. A snap that would break the
    duration bounds is not applied. Text and segments are trimmed to the
    final bounds.
    """
    candidate.original_start = candidate.start
    candidate.original_end = candidate.end
    own = candidate.segments

    new_start = _nearest(
        candidate.start,
        [s.start for s in own if s.text[:1].isupper()],
    )
    new_end = _nearest(
        candidate.end,
        [s.end for s in own if s.text.rstrip().endswith((".", "!", "?"))],
    )

    start = candidate.start if new_start is None else new_start
    end = candidate.end if new_end is None else new_end
    if not min_duration <= end - start <= max_duration:
        # Fall back to snapping only one side, then to the original boundaries.
        if min_duration <= end - candidate.start <= max_duration:
            start = candidate.start
        elif min_duration <= candidate.end - start <= max_duration:
            end = candidate.end
        else:
            start, end = candidate.start, candidate.end
    candidate.start = start
    candidate.end = end

    kept = [s for s in own if s.start >= start and s.end <= end]
    if kept and len(kept) != len(own):
        candidate.segments = kept
        candidate.text = " ".join(s.text for s in kept)


def _nearest(target: float, boundaries: Sequence[float]) -> Optional[float]:
    best = None
    best_distance = BOUNDARY_WINDOW_SECONDS
    for boundary in boundaries:
        distance = abs(boundary - target)
        if distance < best_distance:
            best, best_distance = boundary, distance
    return best


def _decorate(candidate: ClipCandidate, platform: str) -> None:
    spec = PLATFORM_SPECS.get(platform) or PLATFORM_SPECS[DEFAULT_PLATFORM]
    candidate.suggested_title = suggest_title(candidate.text, spec["title_length"])
    candidate.hashtags = list(spec["hashtags"])
    candidate.confidence = _confidence(candidate)


def suggest_title(text: str, max_length: int) -> str:
    first_sentence = re.split(r"[.!?]", text, maxsplit=1)[0].strip()
    if len(first_sentence) <= max_length:
        return first_sentence
    return first_sentence[: max_length - 3] + "..."


def _confidence(candidate: ClipCandidate) -> float:
    confidence = 0.5
    if candidate.engagement_score > 0.7:
        confidence += 0.2
    if OPTIMAL_DURATION[0] <= candidate.duration <= OPTIMAL_DURATION[1]:
        confidence += 0.1
    if len(candidate.engagement_factors) > 2:
        confidence += 0.1
    if 15 <= candidate.word_count <= 50:
        confidence += 0.1
    return round(min(confidence, 1.0), 4)
