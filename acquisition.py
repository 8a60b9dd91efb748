"""Single-video transcript acquisition.

cache -> captions (one retry) -> optional paid Whisper fallback -> persist.
The pipeline never touches the terminal; observers get PipelineEvents and
the confirm callback decides the fallback.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from content_ref import ContentKind, ContentReference
from srt_text import normalize_subtitles
from tldw_errors import (
    AcquisitionCancelledError,
    CaptionFetchError,
    CaptionsUnavailableError,
    ExternalToolError,
    FailureKind,
    FallbackDeclinedError,
    UnsupportedContentError,
)
from video_cache import VideoMetadata

logger = logging.getLogger(__name__)

MAX_CAPTION_ATTEMPTS = 2

FALLBACK_PROMPT = "Do you want to transcribe it using OpenAI's whisper ($$$)?"


class PipelineState(Enum):
    CHECK_CACHE = 'check_cache'
    CHECK_CAPTION_AVAILABILITY = 'check_caption_availability'
    FETCH_CAPTIONS = 'fetch_captions'
    RETRY_CAPTIONS = 'retry_captions'
    FALLBACK_DECISION = 'fallback_decision'
    DOWNLOAD_AUDIO = 'download_audio'
    CHUNK = 'chunk'
    TRANSCRIBE_CHUNKS = 'transcribe_chunks'
    REASSEMBLE = 'reassemble'
    PERSIST = 'persist'
    SUCCESS = 'success'
    DECLINED = 'declined'


@dataclass(frozen=True)
class PipelineEvent:
    state: PipelineState
    video_id: str
    message: str = ''


def should_retry(error: Exception, attempt: int) -> bool:
    """attempt is 1-based; only tagged transport failures get a second go"""
    if attempt >= MAX_CAPTION_ATTEMPTS:
        return False
    return isinstance(error, CaptionFetchError) and error.kind is FailureKind.RETRYABLE


class AcquisitionPipeline:
    def __init__(self, youtube, transcriber, metadata_cache, transcripts,
                 confirm: Optional[Callable[[str], bool]] = None,
                 on_event: Optional[Callable[[PipelineEvent], None]] = None,
                 retry_delay: float = 1.0, sleep=time.sleep,
                 cancel_event: Optional[threading.Event] = None):
        self.youtube = youtube
        self.transcriber = transcriber
        self.metadata_cache = metadata_cache
        self.transcripts = transcripts
        self.confirm = confirm
        self.on_event = on_event
        self.retry_delay = retry_delay
        self.sleep = sleep
        self.cancel_event = cancel_event or threading.Event()

    def _enter(self, state: PipelineState, video_id: str, message: str = ''):
        if self.cancel_event.is_set():
            raise AcquisitionCancelledError(f"acquisition of {video_id} cancelled")
        logger.debug("%s: %s %s", video_id, state.value, message)
        if self.on_event:
            self.on_event(PipelineEvent(state, video_id, message))

    @staticmethod
    def _require_video(ref: ContentReference):
        if ref.error is not None:
            raise ref.error
        if ref.kind is not ContentKind.VIDEO:
            raise UnsupportedContentError(f"{ref.kind.value} references are not supported here: {ref.original_input}")

    def acquire_metadata(self, ref: ContentReference) -> VideoMetadata:
        self._require_video(ref)
        metadata, found = self.metadata_cache.get(ref.canonical_id)
        if found:
            return metadata

        metadata = self.youtube.fetch_metadata(ref.canonical_url)
        self.metadata_cache.put(ref.canonical_id, metadata)
        return metadata

    def acquire_transcript(self, ref: ContentReference, allow_paid_fallback: bool = False,
                           confirm_message: Optional[str] = None) -> str:
        self._require_video(ref)
        video_id = ref.canonical_id

        self._enter(PipelineState.CHECK_CACHE, video_id)
        if self.transcripts.exists(video_id):
            self._enter(PipelineState.SUCCESS, video_id, 'cached transcript')
            return self.transcripts.read(video_id)

        self._enter(PipelineState.CHECK_CAPTION_AVAILABILITY, video_id)
        metadata = self.acquire_metadata(ref)

        if metadata.has_captions:
            try:
                transcript = self.fetch_captions(ref)
            except CaptionFetchError as e:
                logger.info("Captions for %s failed: %s", video_id, e)
                reason = CaptionsUnavailableError(f"caption fetch failed: {e}")
            else:
                self._enter(PipelineState.PERSIST, video_id)
                self.transcripts.write(video_id, transcript)
                self._enter(PipelineState.SUCCESS, video_id, 'captions')
                return transcript
            finally:
                self.youtube.delete_subtitles(video_id)
        else:
            logger.info("No captions listed for %s", video_id)
            reason = CaptionsUnavailableError(f"{video_id} has no caption tracks")

        self._enter(PipelineState.FALLBACK_DECISION, video_id)
        if not allow_paid_fallback and not self._confirm(confirm_message or FALLBACK_PROMPT):
            self._enter(PipelineState.DECLINED, video_id)
            raise FallbackDeclinedError(f"Whisper transcription of {video_id} declined") from reason

        return self.transcribe_audio(ref)

    def _confirm(self, message: str) -> bool:
        if self.confirm is None:
            # Nobody to ask, so the money is not spent
            return False
        return bool(self.confirm(message))

    def fetch_captions(self, ref: ContentReference) -> str:
        """Download and normalize captions, retrying once on transport failures"""
        video_id = ref.canonical_id
        attempt = 1
        self._enter(PipelineState.FETCH_CAPTIONS, video_id)

        while True:
            try:
                subtitle_file = self.youtube.download_captions(ref.canonical_url, video_id)
                text = normalize_subtitles(subtitle_file.read_text(encoding='utf-8', errors='replace'))
                if not text:
                    raise CaptionFetchError(FailureKind.NOT_FOUND, f"captions for {video_id} are empty")
                return text
            except CaptionFetchError as e:
                if not should_retry(e, attempt):
                    raise
                logger.info("Caption download for %s failed, retrying in %.1fs: %s", video_id, self.retry_delay, e)
                attempt += 1
                self.sleep(self.retry_delay)
                self._enter(PipelineState.RETRY_CAPTIONS, video_id, f"attempt {attempt}")
            except OSError as e:
                raise CaptionFetchError(FailureKind.FATAL, f"reading subtitles for {video_id} failed: {e}")

    def transcribe_audio(self, ref: ContentReference) -> str:
        video_id = ref.canonical_id

        self._enter(PipelineState.DOWNLOAD_AUDIO, video_id)
        audio_file = self.youtube.download_audio(ref.canonical_url, video_id)

        self._enter(PipelineState.CHUNK, video_id)

        def on_chunk(index, total):
            self._enter(PipelineState.TRANSCRIBE_CHUNKS, video_id, f"chunk {index}/{total}")

        transcript = self.transcriber.transcribe(audio_file, on_chunk=on_chunk, cancel_event=self.cancel_event)

        self._enter(PipelineState.REASSEMBLE, video_id)
        if not transcript.strip():
            raise ExternalToolError('openai', f"Whisper returned no text for {video_id}")

        self._enter(PipelineState.PERSIST, video_id)
        self.transcripts.write(video_id, transcript)
        self._enter(PipelineState.SUCCESS, video_id, 'whisper')
        return transcript
