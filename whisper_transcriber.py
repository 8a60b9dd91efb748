"""Paid audio transcription through the OpenAI Whisper API.

Files over the API upload limit are cut into equal-duration chunks, each
chunk is transcribed and the texts are joined back in order.
"""

import logging
import math
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from openai import OpenAI, OpenAIError

from tldw_config import WHISPER_LIMIT
from tldw_errors import AcquisitionCancelledError, ConfigError, ExternalToolError

logger = logging.getLogger(__name__)

MAX_PARALLEL_CHUNKS = 4
MAX_SPLIT_ATTEMPTS = 3


def required_chunks(size: int, limit: int) -> int:
    if limit <= 0:
        raise ValueError('size limit must be positive')
    return max(1, math.ceil(size / limit))


def _delete(paths: List[Path]):
    for path in paths:
        try:
            path.unlink(missing_ok=True)
            logger.debug("Removed %s", path)
        except OSError as e:
            logger.warning("Failed to remove %s: %s", path, e)


def cleanup_files(paths: Iterable, grace: float = 5.0) -> bool:
    """Delete files in the background, waiting at most `grace` seconds.

    Returns False when the deletion was still running at the deadline; the
    daemon thread is then left to finish on its own.
    """
    paths = [Path(p) for p in paths]
    if not paths:
        return True

    worker = threading.Thread(target=_delete, args=(paths,), name='tldw-cleanup', daemon=True)
    worker.start()
    worker.join(grace)
    if worker.is_alive():
        logger.warning("Cleanup of %d temp files did not finish within %.1fs", len(paths), grace)
        return False
    return True


class ChunkedWhisperTranscriber:
    def __init__(self, audio_tool, api_key: str = '', model: str = 'whisper-1',
                 limit: int = WHISPER_LIMIT, timeout: float = 600.0,
                 sequential: bool = True, cleanup_grace: float = 5.0, client=None):
        self.audio_tool = audio_tool
        self.api_key = api_key
        self.model = model
        self.limit = limit
        self.timeout = timeout
        self.sequential = sequential
        self.cleanup_grace = cleanup_grace
        self._client = client

    @classmethod
    def from_settings(cls, settings, audio_tool) -> 'ChunkedWhisperTranscriber':
        return cls(
            audio_tool,
            api_key=settings.openai_api_key,
            model=settings.whisper_model,
            limit=settings.whisper_limit,
            timeout=settings.whisper_timeout,
            sequential=settings.sequential_transcription,
            cleanup_grace=settings.cleanup_grace,
        )

    @property
    def client(self):
        # Built on first use so that caption-only runs never need a key
        if self._client is None:
            if not self.api_key:
                raise ConfigError('OpenAI API key not found. Set OPENAI_API_KEY to use Whisper transcription')
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def split_audio(self, audio_file: Path) -> Tuple[List[Path], bool]:
        """Return the files to upload and whether the audio was actually split"""
        size = os.path.getsize(audio_file)
        num_chunks = required_chunks(size, self.limit)
        if num_chunks == 1:
            return [Path(audio_file)], False

        logger.info("Audio is %.1f MB, splitting into %d chunks", size / (1024 * 1024), num_chunks)
        for _ in range(MAX_SPLIT_ATTEMPTS):
            chunks = self.audio_tool.split(audio_file, num_chunks)
            largest = max(os.path.getsize(chunk) for chunk in chunks)
            if largest <= self.limit:
                return chunks, True

            # Re-encoding and whole-second chunk lengths can push a chunk past the limit
            _delete(chunks)
            num_chunks = max(num_chunks + 1, math.ceil(num_chunks * largest / self.limit))
            logger.info("Largest chunk is %d bytes, splitting again into %d chunks", largest, num_chunks)

        raise ExternalToolError('ffmpeg', f"could not split {Path(audio_file).name} into chunks under "
                                          f"{self.limit} bytes")

    def transcribe_chunk(self, chunk: Path) -> str:
        try:
            with open(chunk, 'rb') as audio:
                transcript = self.client.audio.transcriptions.create(
                    model=self.model,
                    file=audio,
                    response_format='text',
                )
        except OpenAIError as e:
            raise ExternalToolError('openai', f"transcription failed for {Path(chunk).name}", str(e))
        except OSError as e:
            raise ExternalToolError('openai', f"could not read audio chunk {chunk}", str(e))
        return str(transcript).strip()

    def transcribe(self, audio_file, on_chunk: Optional[Callable[[int, int], None]] = None,
                   cancel_event: Optional[threading.Event] = None) -> str:
        """Transcribe audio_file, which is always removed afterwards along with its chunks"""
        audio_file = Path(audio_file)
        chunks: List[Path] = []
        # Set by the first failed chunk so queued chunks are never uploaded
        aborted = threading.Event()

        def check_cancelled():
            if cancel_event is not None and cancel_event.is_set():
                raise AcquisitionCancelledError('transcription cancelled')
            if aborted.is_set():
                raise AcquisitionCancelledError('transcription aborted after a failed chunk')

        def run(indexed):
            i, chunk = indexed
            check_cancelled()
            if on_chunk:
                on_chunk(i, len(chunks))
            try:
                return self.transcribe_chunk(chunk)
            except BaseException:
                aborted.set()
                raise

        try:
            chunks, _ = self.split_audio(audio_file)
            check_cancelled()

            if self.sequential or len(chunks) == 1:
                texts = [run(item) for item in enumerate(chunks, 1)]
            else:
                texts = self._transcribe_parallel(run, chunks, aborted)

            return '\n'.join(texts)
        finally:
            leftovers = set(chunks)
            leftovers.add(audio_file)
            cleanup_files(sorted(leftovers), self.cleanup_grace)

    @staticmethod
    def _transcribe_parallel(run, chunks: List[Path], aborted: threading.Event) -> List[str]:
        executor = ThreadPoolExecutor(max_workers=min(MAX_PARALLEL_CHUNKS, len(chunks)))
        try:
            # map() yields in submission order
            texts = list(executor.map(run, enumerate(chunks, 1)))
        except BaseException:
            # Drop queued chunks and return without waiting for uploads in flight
            aborted.set()
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown()
        return texts
