import logging
import subprocess
from pathlib import Path
from typing import Optional

import ffmpeg

from clipsmith.config import DEFAULT_PLATFORM, PLATFORM_SPECS
from clipsmith.domain.errors import TranscoderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600.0


def _run(stream, *, timeout: float, what: str) -> None:
    """
    Run a one-shot ffmpeg process. Exit code 0 is success; anything else
    raises TranscoderError carrying ffmpeg's stderr verbatim.
    """
    process = stream.overwrite_output().run_async(pipe_stdout=True, pipe_stderr=True)
    try:
        _, err = process.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        process.kill()
        _, err = process.communicate()
        raise TranscoderError(
            f"ffmpeg {what} timed out after {timeout:.0f}s",
            (err or b"").decode("utf-8", errors="replace"),
        )
    if process.returncode != 0:
        raise TranscoderError(
            f"ffmpeg {what} failed with exit code {process.returncode}",
            (err or b"").decode("utf-8", errors="replace"),
        )


def probe_duration(media_path: Path) -> float:
    """Container duration in seconds, via ffprobe."""
    try:
        info = ffmpeg.probe(str(media_path))
    except ffmpeg.Error as e:
        raise TranscoderError(
            f"ffprobe failed for {media_path.name}",
            (e.stderr or b"").decode("utf-8", errors="replace"),
        ) from e
    duration = info.get("format", {}).get("duration")
    if duration is None:
        raise TranscoderError(f"ffprobe reported no duration for {media_path.name}")
    return float(duration)


def extract_audio(
    input_video: Path,
    output_audio: Path,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> None:
    """
    Extract a compact mono MP3 from a video, small enough to split into
    provider-sized chunks.
    """
    stream = ffmpeg.input(str(input_video)).output(
        str(output_audio),
        vn=None,
        ac=1,
        acodec="libmp3lame",
        audio_bitrate="128k",
        ar=22050,
    )
    _run(stream, timeout=timeout, what="audio extraction")


def extract_segment(
    input_audio: Path,
    output_audio: Path,
    start: float,
    duration: float,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> None:
    """Cut [start, start + duration) out of an audio file."""
    stream = ffmpeg.input(str(input_audio), ss=start, t=duration).output(
        str(output_audio),
        acodec="libmp3lame",
        audio_bitrate="128k",
        ar=22050,
    )
    _run(stream, timeout=timeout, what="audio split")


def cut_clip(
    input_video: Path,
    output_video: Path,
    start: float,
    end: float,
    *,
    width: Optional[int] = None,
    height: Optional[int] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> None:
    """
    Cut [start, end] out of a video and re-encode it as H.264/AAC. With
    width/height, the picture is scaled to fit and padded to that frame.
    """
    if end <= start:
        raise ValueError("end must be after start")
    source = ffmpeg.input(str(input_video), ss=start, t=end - start)
    video = source.video
    if width and height:
        video = (
            video.filter("scale", width, height, force_original_aspect_ratio="decrease")
            .filter("pad", width, height, "(ow-iw)/2", "(oh-ih)/2")
            .filter("setsar", 1)
        )
    stream = ffmpeg.output(
        video,
        source.audio,
        str(output_video),
        vcodec="libx264",
        acodec="aac",
        preset="veryfast",
        crf=23,
        audio_bitrate="128k",
        movflags="+faststart",
    )
    logger.debug("ffmpeg %s", " ".join(stream.get_args()))
    _run(stream, timeout=timeout, what="clip cut")


class ClipRenderer:
    """Renders one clip for an output platform (frame size from PLATFORM_SPECS)."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    def render(self, source: Path, output: Path, start: float, end: float, platform: str) -> None:
        spec = PLATFORM_SPECS.get(platform) or PLATFORM_SPECS[DEFAULT_PLATFORM]
        cut_clip(
            source,
            output,
            start,
            end,
            width=spec["width"],
            height=spec["height"],
            timeout=self.timeout,
        )
