"""
Fetch source videos from hosting platforms (yt-dlp) or direct links (requests).
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests
import yt_dlp

from clipsmith.domain.errors import DownloadError

logger = logging.getLogger(__name__)

# Host fragment -> platform name, checked in order.
_PLATFORM_HOSTS = [
    ("youtube.com", "youtube"),
    ("youtu.be", "youtube"),
    ("twitch.tv", "twitch"),
    ("kick.com", "kick"),
    ("rumble.com", "rumble"),
    ("tiktok.com", "tiktok"),
    ("instagram.com", "instagram"),
    ("vimeo.com", "vimeo"),
    ("dropbox.com", "dropbox"),
]
DIRECT_EXTENSIONS = (".mp4", ".mov", ".mkv", ".webm", ".m4v", ".avi")
DEFAULT_FORMAT = "best[height<=1080]/best"


def detect_platform(url: str) -> Optional[str]:
    """Platform name for a supported URL, or None."""
    if not url:
        return None
    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    host = parsed.netloc.lower()
    for fragment, platform in _PLATFORM_HOSTS:
        if fragment in host:
            return platform
    if parsed.path.lower().endswith(DIRECT_EXTENSIONS):
        return "direct"
    return None


@dataclass
class SourceMetadata:
    title: str
    duration: float
    platform: str


class MediaDownloader:
    def __init__(
        self,
        *,
        download_timeout: float = 900.0,
        metadata_timeout: float = 60.0,
        max_duration: Optional[float] = 7200.0,
        cookies_file: Optional[str] = None,
        video_format: str = DEFAULT_FORMAT,
    ) -> None:
        self.download_timeout = download_timeout
        self.metadata_timeout = metadata_timeout
        self.max_duration = max_duration
        self.cookies_file = cookies_file
        self.video_format = video_format

    def _ydl_opts(self, **extra) -> dict:
        opts = {"quiet": True, "no_warnings": True, "noplaylist": True}
        # YouTube may demand sign-in from datacenter IPs; a browser cookie export fixes that.
        if self.cookies_file and Path(self.cookies_file).is_file():
            opts["cookiefile"] = self.cookies_file
        opts.update(extra)
        return opts

    def fetch_metadata(self, url: str) -> SourceMetadata:
        platform = detect_platform(url)
        if platform is None:
            raise DownloadError(f"Unsupported source URL: {url}")
        if platform in ("dropbox", "direct"):
            return SourceMetadata(title=Path(urlparse(url).path).name or "video", duration=0.0, platform=platform)
        try:
            with yt_dlp.YoutubeDL(self._ydl_opts(socket_timeout=self.metadata_timeout)) as ydl:
                info = ydl.extract_info(url, download=False)
        except yt_dlp.utils.DownloadError as e:
            raise DownloadError(f"Could not read video metadata: {e}") from e
        return SourceMetadata(
            title=info.get("title") or "Unknown Title",
            duration=float(info.get("duration") or 0.0),
            platform=platform,
        )

    def download(self, url: str, dest_dir: Path) -> Path:
        """Download the video at `url` into dest_dir and return the file path."""
        metadata = self.fetch_metadata(url)
        if self.max_duration and metadata.duration > self.max_duration:
            raise DownloadError(
                f"Video is {metadata.duration:.0f}s long; the limit is {self.max_duration:.0f}s"
            )
        dest_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Downloading %r from %s", metadata.title, metadata.platform)
        if metadata.platform in ("dropbox", "direct"):
            return self._download_direct(url, dest_dir / "source.mp4")
        return self._download_platform(url, dest_dir)

    def _download_platform(self, url: str, dest_dir: Path) -> Path:
        opts = self._ydl_opts(
            format=self.video_format,
            outtmpl=str(dest_dir / "source.%(ext)s"),
            merge_output_format="mp4",
            socket_timeout=self.download_timeout,
        )
        try:
            with yt_dlp.YoutubeDL(opts) as ydl:
                ydl.download([url])
        except yt_dlp.utils.DownloadError as e:
            raise DownloadError(f"Download failed: {e}") from e
        produced = sorted(p for p in dest_dir.glob("source.*") if not p.name.endswith(".part"))
        if not produced:
            raise DownloadError("yt-dlp did not produce a video file")
        return produced[0]

    def _download_direct(self, url: str, output_path: Path) -> Path:
        """
        Stream a direct link to disk. Dropbox share links are turned into
        direct downloads by appending ?dl=1.
        """
        download_url = url.strip()
        if "dropbox.com" in download_url and "dl=" not in download_url:
            download_url = download_url + ("&" if "?" in download_url else "?") + "dl=1"
        try:
            resp = requests.get(download_url, stream=True, timeout=self.download_timeout, allow_redirects=True)
            resp.raise_for_status()
            with open(output_path, "wb") as f:
                for chunk in resp.iter_content(chunk_size=8192):
                    if chunk:
                        f.write(chunk)
        except requests.RequestException as e:
            output_path.unlink(missing_ok=True)
            raise DownloadError(f"Download failed: {e}") from e
        if output_path.stat().st_size == 0:
            raise DownloadError("Downloaded file is empty")
        return output_path
