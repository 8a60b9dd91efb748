"""Playlist mode: acquire every video in order and combine the transcripts.

A failing video is recorded as skipped and the run moves on; only a
playlist where nothing could be acquired fails as a whole.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from content_ref import ContentKind, ContentReference, classify_input
from tldw_errors import (
    AcquisitionCancelledError,
    BatchFailedError,
    ConfigError,
    ExternalToolError,
    FallbackDeclinedError,
    TldwError,
    UnsupportedContentError,
)
from video_cache import VideoMetadata

logger = logging.getLogger(__name__)

DESCRIPTION_LIMIT = 150
VIDEO_SEPARATOR = '\n\n---\n\n'

# Skip categories
CACHE_READ_ERROR = 'cache read error'
METADATA_ERROR = 'metadata error'
DECLINED = 'declined'
AUDIO_ERROR = 'audio error'
TRANSCRIPTION_ERROR = 'transcription error'


@dataclass
class VideoTranscript:
    url: str
    title: str
    channel: str
    duration: float
    description: str
    transcript: str


@dataclass
class SkippedItem:
    index: int
    title: str
    category: str
    detail: str = ''

    def __str__(self):
        if self.title:
            return f"Video {self.index}: {self.title} ({self.category})"
        return f"Video {self.index} ({self.category})"


@dataclass
class PlaylistResult:
    title: str
    total: int = 0
    videos: List[VideoTranscript] = field(default_factory=list)
    skipped: List[SkippedItem] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.videos)


def truncate_description(description: str, limit: int = DESCRIPTION_LIMIT) -> str:
    if len(description) > limit:
        return description[:limit - 3] + '...'
    return description


def format_duration(seconds: float) -> str:
    """M:SS, minutes are not wrapped into hours"""
    return f"{int(seconds / 60)}:{int(seconds) % 60:02d}"


def build_playlist_transcript(title: str, videos: List[VideoTranscript]) -> str:
    blocks = []
    for i, video in enumerate(videos, 1):
        block = f"Video {i} of {len(videos)}: {video.title}\n"
        block += f"Duration: {format_duration(video.duration)} | Channel: {video.channel}\n"
        if video.description:
            block += f"Description: {video.description}\n"
        block += video.transcript
        blocks.append(block)

    return f"Playlist: {title}\n\n" + VIDEO_SEPARATOR.join(blocks)


def _placeholder_metadata(index: int) -> VideoMetadata:
    return VideoMetadata(title=f"Video {index}", channel='Unknown', description='Metadata fetch failed')


class PlaylistBatch:
    def __init__(self, pipeline, youtube, metadata_cache, transcripts,
                 on_progress: Optional[Callable[[int, int, str], None]] = None,
                 cancel_event: Optional[threading.Event] = None):
        self.pipeline = pipeline
        self.youtube = youtube
        self.metadata_cache = metadata_cache
        self.transcripts = transcripts
        self.on_progress = on_progress
        self.cancel_event = cancel_event or threading.Event()

    def run(self, ref: ContentReference, allow_paid_fallback: bool = False) -> Tuple[str, PlaylistResult]:
        if ref.error is not None:
            raise ref.error
        if ref.kind is not ContentKind.PLAYLIST:
            raise UnsupportedContentError(f"not a playlist: {ref.original_input}")

        playlist = self.youtube.fetch_playlist(ref.canonical_url)
        if not playlist.video_urls:
            raise BatchFailedError(f"no videos found in playlist {ref.canonical_id}")

        result = PlaylistResult(title=playlist.title, total=len(playlist.video_urls))
        logger.info("Processing %d videos from playlist %r", result.total, result.title)

        for index, url in enumerate(playlist.video_urls, 1):
            if self.cancel_event.is_set():
                raise AcquisitionCancelledError('playlist processing cancelled')
            if self.on_progress:
                self.on_progress(index, result.total, url)

            outcome = self._process(index, url, allow_paid_fallback)
            if isinstance(outcome, SkippedItem):
                logger.info("Skipping %s: %s", outcome, outcome.detail)
                result.skipped.append(outcome)
            else:
                result.videos.append(outcome)

        if not result.videos:
            raise BatchFailedError('no video transcripts could be obtained', result)

        return build_playlist_transcript(result.title, result.videos), result

    def _process(self, index: int, url: str, allow_paid_fallback: bool):
        ref = classify_input(url)
        video_id = ref.canonical_id

        if self.transcripts.exists(video_id):
            logger.debug("Using cached transcript for video %d", index)
            try:
                transcript = self.transcripts.read(video_id)
            except (OSError, UnicodeDecodeError) as e:
                return SkippedItem(index, '', CACHE_READ_ERROR, str(e))
            metadata = self._display_metadata(index, ref)
        else:
            try:
                metadata = self.pipeline.acquire_metadata(ref)
            except AcquisitionCancelledError:
                raise
            except TldwError as e:
                return SkippedItem(index, '', METADATA_ERROR, str(e))

            message = f"Video {index} ({video_id}): '{metadata.title}' has no captions. Use Whisper ($$$)?"
            try:
                transcript = self.pipeline.acquire_transcript(
                    ref, allow_paid_fallback=allow_paid_fallback, confirm_message=message)
            except AcquisitionCancelledError:
                raise
            except FallbackDeclinedError as e:
                return SkippedItem(index, metadata.title, DECLINED, str(e))
            except ExternalToolError as e:
                category = TRANSCRIPTION_ERROR if e.tool == 'openai' else AUDIO_ERROR
                return SkippedItem(index, metadata.title, category, str(e))
            except ConfigError as e:
                return SkippedItem(index, metadata.title, TRANSCRIPTION_ERROR, str(e))
            except TldwError as e:
                return SkippedItem(index, metadata.title, AUDIO_ERROR, str(e))

        return VideoTranscript(
            url=url,
            title=metadata.title,
            channel=metadata.channel,
            duration=metadata.duration,
            description=truncate_description(metadata.description),
            transcript=transcript,
        )

    def _display_metadata(self, index: int, ref: ContentReference) -> VideoMetadata:
        """Metadata for labelling a cached transcript; never fails the item"""
        metadata, found = self.metadata_cache.get(ref.canonical_id)
        if found:
            return metadata
        try:
            return self.pipeline.acquire_metadata(ref)
        except AcquisitionCancelledError:
            raise
        except TldwError as e:
            logger.info("Failed to get metadata for video %d: %s", index, e)
            return _placeholder_metadata(index)
