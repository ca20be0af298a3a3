"""
Speech-to-text through the OpenAI audio transcription API, with retry and
error classification.
"""
import logging
import math
from pathlib import Path
from typing import Any, Optional

import openai
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)
from tenacity.wait import wait_base

from clipsmith.domain.errors import ProviderError
from clipsmith.domain.models import (
    TranscriptionOptions,
    TranscriptResult,
    TranscriptSegment,
    TranscriptWord,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({408, 409, 429})


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from an SDK model or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def classify_error(exc: Exception) -> ProviderError:
    """Map an SDK exception onto ProviderError with the retry decision attached."""
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, openai.APITimeoutError):
        return ProviderError(
            "Request timeout: the transcription took too long to complete. "
            "Very large audio files can cause this.",
            retryable=True,
        )
    if isinstance(exc, openai.APIConnectionError):
        return ProviderError(f"Network connection error: {exc}", retryable=True)

    status = _field(exc, "status_code")
    if status == 400:
        return ProviderError(
            "Invalid file format or size. Supported: mp3, mp4, mpeg, mpga, m4a, wav, webm (max 25MB)",
            retryable=False,
            status_code=status,
        )
    if status == 401:
        return ProviderError(
            "OpenAI API key invalid or missing. Check your OPENAI_API_KEY environment variable.",
            retryable=False,
            status_code=status,
        )
    if status == 429:
        return ProviderError("Rate limit exceeded.", retryable=True, status_code=status)
    if isinstance(status, int) and status >= 500:
        return ProviderError(f"OpenAI server error ({status}).", retryable=True, status_code=status)
    if isinstance(status, int):
        return ProviderError(
            f"Transcription request rejected ({status}): {exc}",
            retryable=status in RETRYABLE_STATUS,
            status_code=status,
        )
    return ProviderError(f"Whisper transcription failed: {exc}", retryable=False)


def default_wait() -> wait_base:
    """2s, 4s, 8s ... capped at 30s, plus up to 1s of jitter."""
    return wait_exponential(multiplier=2, exp_base=2, max=30) + wait_random(0, 1)


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.retryable


def normalize_response(response: Any) -> TranscriptResult:
    """
    Provider response (verbose_json model or dict) -> TranscriptResult.

    Segments and words without a positive time span (missing or reversed
    end time) are dropped.
    """
    segments = []
    for seg in _field(response, "segments") or []:
        start = float(_field(seg, "start", 0.0))
        end = _field(seg, "end")
        if end is None or float(end) <= start:
            logger.debug("Dropping segment with empty time span: start=%s end=%s", start, end)
            continue
        confidence = _field(seg, "confidence")
        if confidence is None and _field(seg, "avg_logprob") is not None:
            confidence = round(math.exp(float(_field(seg, "avg_logprob"))), 4)
        segments.append(
            TranscriptSegment(
                start=start,
                end=float(end),
                text=(_field(seg, "text") or "").strip(),
                confidence=confidence,
            )
        )
    words = []
    for w in _field(response, "words") or []:
        start = float(_field(w, "start", 0.0))
        end = _field(w, "end")
        if end is None or float(end) <= start:
            logger.debug("Dropping word %r with empty time span", _field(w, "word"))
            continue
        words.append(TranscriptWord(word=(_field(w, "word") or "").strip(), start=start, end=float(end)))
    duration = _field(response, "duration")
    if duration is None:
        duration = segments[-1].end if segments else 0.0
    return TranscriptResult(
        text=(_field(response, "text") or "").strip(),
        segments=segments,
        words=words,
        language=_field(response, "language"),
        duration_seconds=float(duration),
    )


class OpenAITranscriber:
    """
    Transcribe one media file per call. Up to `max_attempts` requests are made;
    only retryable ProviderErrors are retried, with exponential backoff and
    jitter. The file is reopened for every attempt.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = "whisper-1",
        timeout: float = 300.0,
        max_attempts: int = 3,
        client: Any = None,
        wait: Optional[wait_base] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._client = client
        self._wait = wait or default_wait()

    @property
    def client(self):
        # Created lazily: the SDK refuses to construct without an API key.
        if self._client is None:
            self._client = openai.OpenAI(api_key=self._api_key, timeout=self._timeout, max_retries=0)
        return self._client

    def transcribe(
        self,
        file_path: Path,
        options: Optional[TranscriptionOptions] = None,
    ) -> TranscriptResult:
        options = options or TranscriptionOptions()
        if not file_path.exists():
            raise ProviderError(f"File not found: {file_path}", retryable=False)

        logger.info(
            "Transcribing %s (%.2f MB)",
            file_path.name,
            file_path.stat().st_size / (1024 * 1024),
        )
        retrying = Retrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=self._wait,
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        response = retrying(self._request, file_path, options)
        result = normalize_response(response)
        logger.info(
            "Transcribed %s: %d segments, %d words",
            file_path.name,
            len(result.segments),
            len(result.words),
        )
        return result

    def _request(self, file_path: Path, options: TranscriptionOptions) -> Any:
        params = {
            "model": self._model,
            "response_format": "verbose_json",
            "temperature": options.temperature,
            "timestamp_granularities": ["word", "segment"],
        }
        if options.language:
            params["language"] = options.language
        # A stream consumed by a failed attempt cannot be replayed.
        with file_path.open("rb") as audio_file:
            try:
                return self.client.audio.transcriptions.create(file=audio_file, **params)
            except openai.OpenAIError as e:
                raise classify_error(e) from e
