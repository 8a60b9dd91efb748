"""yt-dlp and ffmpeg (through pydub) wrappers.

These are the only places that touch YouTube or audio codecs. Everything
above them sees paths, metadata objects and tldw errors.
"""

import logging
import math
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

import yt_dlp
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError, CouldntEncodeError
from pydub.utils import mediainfo

from content_ref import WATCH_URL
from tldw_errors import (
    AcquisitionCancelledError,
    CaptionFetchError,
    ExternalToolError,
    FailureKind,
)
from video_cache import VideoMetadata

logger = logging.getLogger(__name__)

BASE_YDL_OPTS = {
    'quiet': True,
    'no_warnings': True,
    'sleep_interval': 1,
    'max_sleep_interval': 3,
    # TV clients serve DRM-protected formats
    'extractor_args': {'youtube': {'player_client': ['web', 'android', '-tv']}},
}


@dataclass
class PlaylistInfo:
    title: str
    video_urls: List[str] = field(default_factory=list)
    video_titles: List[str] = field(default_factory=list)


class YouTubeClient:
    def __init__(self, cache_dir, cancel_event: Optional[threading.Event] = None):
        self.cache_dir = Path(cache_dir)
        self.cancel_event = cancel_event or threading.Event()

    def _opts(self, **extra) -> dict:
        opts = dict(BASE_YDL_OPTS)
        opts['progress_hooks'] = [self._check_cancelled]
        opts.update(extra)
        return opts

    def _check_cancelled(self, _status):
        if self.cancel_event.is_set():
            raise yt_dlp.utils.DownloadCancelled('cancelled by user')

    def _extract(self, url: str, opts: dict, download: bool) -> dict:
        try:
            with yt_dlp.YoutubeDL(opts) as ydl:
                info = ydl.extract_info(url, download=download)
        except yt_dlp.utils.DownloadCancelled:
            raise AcquisitionCancelledError(f"download of {url} cancelled")
        if not info:
            raise yt_dlp.utils.DownloadError(f"no info returned for {url}")
        return info

    def fetch_metadata(self, url: str) -> VideoMetadata:
        opts = self._opts(skip_download=True, noplaylist=True)
        try:
            info = self._extract(url, opts, download=False)
        except yt_dlp.utils.DownloadError as e:
            raise ExternalToolError('yt-dlp', 'extracting video metadata failed', str(e))

        metadata = VideoMetadata.from_info(info)
        logger.debug("Metadata for %s: %r (%.0fs, captions=%s)",
                     url, metadata.title, metadata.duration, metadata.has_captions)
        return metadata

    def fetch_playlist(self, url: str) -> PlaylistInfo:
        opts = self._opts(skip_download=True, extract_flat='in_playlist')
        try:
            info = self._extract(url, opts, download=False)
        except yt_dlp.utils.DownloadError as e:
            raise ExternalToolError('yt-dlp', 'extracting playlist videos failed', str(e))

        playlist = PlaylistInfo(title=info.get('title') or '')
        for entry in info.get('entries') or []:
            if entry and entry.get('id'):
                playlist.video_urls.append(WATCH_URL.format(entry['id']))
                playlist.video_titles.append(entry.get('title') or '')

        logger.debug("Found %d videos in playlist %r", len(playlist.video_urls), playlist.title)
        return playlist

    def find_subtitle_file(self, video_id: str) -> Optional[Path]:
        if not self.cache_dir.is_dir():
            return None
        matches = sorted(self.cache_dir.glob(f"{video_id}*.srt"))
        return matches[0] if matches else None

    def delete_subtitles(self, video_id: str):
        if not self.cache_dir.is_dir():
            return
        for path in self.cache_dir.glob(f"{video_id}*.srt"):
            try:
                path.unlink()
            except OSError as e:
                logger.warning("Failed to remove subtitle file %s: %s", path, e)

    def download_captions(self, url: str, video_id: str) -> Path:
        """Fetch English captions (manual or automatic) as SRT into the cache dir"""
        existing = self.find_subtitle_file(video_id)
        if existing:
            logger.debug("Reusing downloaded subtitles %s", existing)
            return existing

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        opts = self._opts(
            writesubtitles=True,
            writeautomaticsub=True,
            subtitleslangs=['en'],
            skip_download=True,
            noplaylist=True,
            outtmpl=str(self.cache_dir / '%(id)s'),
            postprocessors=[{'key': 'FFmpegSubtitlesConvertor', 'format': 'srt'}],
        )
        try:
            self._extract(url, opts, download=True)
        except yt_dlp.utils.DownloadError as e:
            raise CaptionFetchError(FailureKind.RETRYABLE, f"subtitle download failed: {e}")

        path = self.find_subtitle_file(video_id)
        if path is None:
            raise CaptionFetchError(FailureKind.NOT_FOUND, f"no subtitle files found for {video_id}")
        return path

    def download_audio(self, url: str, video_id: str) -> Path:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        opts = self._opts(
            format='bestaudio/best',
            noplaylist=True,
            outtmpl=str(self.cache_dir / '%(id)s.%(ext)s'),
            postprocessors=[{
                'key': 'FFmpegExtractAudio',
                'preferredcodec': 'mp3',
                # VBR scale, 10 is the smallest file
                'preferredquality': '10',
            }],
        )
        try:
            self._extract(url, opts, download=True)
        except yt_dlp.utils.DownloadError as e:
            raise ExternalToolError('yt-dlp', 'audio download failed', str(e))

        audio_file = self.cache_dir / f"{video_id}.mp3"
        if not audio_file.is_file():
            raise ExternalToolError('yt-dlp', f"audio file missing after download: {audio_file}")
        return audio_file


class AudioTool:
    """Duration and trimming through pydub, which shells out to ffmpeg"""

    def __init__(self, temp_dir):
        self.temp_dir = Path(temp_dir)
        self._loaded = None

    def duration(self, audio_file) -> float:
        try:
            info = mediainfo(str(audio_file))
            return float(info['duration'])
        except (KeyError, ValueError, OSError) as e:
            raise ExternalToolError('ffprobe', f"could not read duration of {audio_file}", str(e))

    @staticmethod
    def bitrate(audio_file) -> Optional[str]:
        """Source bitrate as an ffmpeg argument ("48k"), None when ffprobe has none"""
        try:
            bit_rate = int(mediainfo(str(audio_file)).get('bit_rate') or 0)
        except ValueError:
            return None
        if bit_rate <= 0:
            return None
        return f"{max(8, bit_rate // 1000)}k"

    def _segment(self, audio_file) -> Tuple[AudioSegment, Optional[str]]:
        key = str(audio_file)
        if self._loaded is None or self._loaded[0] != key:
            self._loaded = (key, AudioSegment.from_file(key), self.bitrate(key))
        return self._loaded[1], self._loaded[2]

    def trim(self, audio_file, start: float, duration: float, output) -> Path:
        try:
            segment, bitrate = self._segment(audio_file)
            start_ms = int(start * 1000)
            end_ms = int((start + duration) * 1000)
            # ffmpeg's default 128k would make chunks of a low-bitrate source larger than the source
            segment[start_ms:end_ms].export(str(output), format='mp3', bitrate=bitrate)
        except (CouldntDecodeError, CouldntEncodeError, OSError) as e:
            raise ExternalToolError('ffmpeg', f"creating audio segment {output} failed", str(e))
        return Path(output)

    def split(self, audio_file, num_chunks: int) -> List[Path]:
        """Cut into num_chunks pieces of equal wall-clock length"""
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        total = self.duration(audio_file)
        chunk_duration = math.ceil(total / num_chunks)
        name = Path(audio_file).name

        chunks = []
        try:
            for i in range(num_chunks):
                output = self.temp_dir / f"{name}_chunk_{i}.mp3"
                chunks.append(self.trim(audio_file, i * chunk_duration, chunk_duration, output))
        except ExternalToolError:
            for chunk in chunks:
                chunk.unlink(missing_ok=True)
            raise
        finally:
            self._loaded = None

        return chunks
