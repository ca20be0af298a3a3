"""
Local Whisper ASR adapter: transcribe audio on this machine and return the
same TranscriptResult shape as the HTTP provider.
"""
import logging
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from clipsmith.domain.errors import ProviderError
from clipsmith.domain.models import (
    TranscriptionOptions,
    TranscriptResult,
    TranscriptSegment,
    TranscriptWord,
)

logger = logging.getLogger(__name__)


def normalize_result(result: Dict[str, Any]) -> TranscriptResult:
    """
    Whisper's transcribe() dict -> TranscriptResult (words come nested in
    segments). Entries whose end is not after their start are dropped.
    """
    segments = []
    words = []
    for seg in result.get("segments", []):
        start = float(seg.get("start", 0))
        end = float(seg.get("end", start))
        text = (seg.get("text") or "").strip()
        if text and end > start:
            segments.append(TranscriptSegment(start=start, end=end, text=text))
        elif text:
            logger.debug("Dropping segment %r with empty time span", text)
        for w in seg.get("words") or []:
            word_start = float(w.get("start", start))
            word_end = float(w.get("end", word_start))
            if word_end <= word_start:
                logger.debug("Dropping word %r with empty time span", w.get("word"))
                continue
            words.append(
                TranscriptWord(
                    word=(w.get("word") or "").strip(),
                    start=word_start,
                    end=word_end,
                )
            )
    return TranscriptResult(
        text=(result.get("text") or "").strip(),
        segments=segments,
        words=words,
        language=result.get("language"),
        duration_seconds=segments[-1].end if segments else 0.0,
    )


class WhisperTranscriber:
    """
    Runs openai-whisper in-process. Failures here are local (bad file, model
    load) so they are never retried.
    """

    def __init__(self, model_size: str = "tiny") -> None:
        self.model_size = model_size
        self._model = None
        self._lock = Lock()

    def _load_model(self):
        import whisper

        with self._lock:
            if self._model is None:
                logger.info("Loading Whisper model %s", self.model_size)
                self._model = whisper.load_model(self.model_size)
            return self._model

    def transcribe(
        self,
        file_path: Path,
        options: Optional[TranscriptionOptions] = None,
    ) -> TranscriptResult:
        options = options or TranscriptionOptions()
        if not file_path.exists():
            raise ProviderError(f"File not found: {file_path}", retryable=False)
        try:
            model = self._load_model()
            # The model is not safe to share between concurrent calls.
            with self._lock:
                result = model.transcribe(
                    str(file_path),
                    language=options.language,
                    temperature=options.temperature,
                    word_timestamps=True,
                    fp16=False,
                )
        except (RuntimeError, OSError, ValueError) as e:
            raise ProviderError(f"Whisper transcription failed: {e}", retryable=False) from e
        return normalize_result(result)
