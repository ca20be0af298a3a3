from typing import Optional


class ClipsmithError(RuntimeError):
    """Base class for pipeline errors."""


class InvalidJobRequest(ClipsmithError):
    """Rejected at trigger time; never enters the job state machine."""

    def __init__(self, message: str, *, conflict: bool = False) -> None:
        super().__init__(message)
        self.conflict = conflict


class DownloadError(ClipsmithError):
    pass


class ProviderError(ClipsmithError):
    """
    Failure reported by a speech-to-text provider.

    `retryable` tells the retry policy whether another attempt can help
    (rate limits, timeouts, 5xx) or not (bad input, bad credentials).
    """

    def __init__(
        self,
        message: str,
        *,
        retryable: bool,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class TranscriptionError(ClipsmithError):
    pass


class TranscoderError(ClipsmithError):
    """ffmpeg exited non-zero or timed out. `output` holds its stderr verbatim."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(f"{message}\n{output}" if output else message)
        self.output = output


class StageTransitionError(ClipsmithError):
    pass
