from pathlib import Path
from types import SimpleNamespace

import pytest

from acquisition import AcquisitionPipeline
from tldw_errors import CaptionFetchError, FailureKind
from video_cache import MetadataCache, TranscriptStore, VideoMetadata
from youtube_media import PlaylistInfo

VIDEO_A = 'aaaaaaaaaaa'
VIDEO_B = 'bbbbbbbbbbb'
VIDEO_C = 'ccccccccccc'


def make_srt(*lines):
    """One cue per line, two seconds each"""
    blocks = []
    for i, line in enumerate(lines):
        start, end = i * 2, i * 2 + 2
        blocks.append(f"{i + 1}\n00:00:{start:02d},000 --> 00:00:{end:02d},000\n{line}\n")
    return '\n'.join(blocks)


def video_id_from(url):
    return url.split('v=')[-1]


class FakeYouTube:
    """Records every call; captions and metadata are keyed by video ID"""

    def __init__(self, cache_dir, metadata=None, captions=None, caption_errors=None,
                 audio_error=None, playlist=None):
        self.cache_dir = Path(cache_dir)
        self.metadata = metadata or {}
        self.captions = captions or {}
        self.caption_errors = caption_errors or {}
        self.audio_error = audio_error
        self.playlist = playlist
        self.calls = []

    def calls_to(self, name):
        return [args for method, args in self.calls if method == name]

    def fetch_metadata(self, url):
        self.calls.append(('fetch_metadata', url))
        result = self.metadata[video_id_from(url)]
        if isinstance(result, Exception):
            raise result
        return result

    def fetch_playlist(self, url):
        self.calls.append(('fetch_playlist', url))
        return self.playlist

    def download_captions(self, url, video_id):
        self.calls.append(('download_captions', video_id))
        errors = self.caption_errors.get(video_id)
        if errors:
            raise errors.pop(0)
        if video_id not in self.captions:
            raise CaptionFetchError(FailureKind.NOT_FOUND, f"no subtitle files found for {video_id}")
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path = self.cache_dir / f"{video_id}.en.srt"
        path.write_text(self.captions[video_id], encoding='utf-8')
        return path

    def delete_subtitles(self, video_id):
        self.calls.append(('delete_subtitles', video_id))
        for path in self.cache_dir.glob(f"{video_id}*.srt"):
            path.unlink()

    def download_audio(self, url, video_id):
        self.calls.append(('download_audio', video_id))
        if self.audio_error:
            raise self.audio_error
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path = self.cache_dir / f"{video_id}.mp3"
        path.write_bytes(b'\x00' * 16)
        return path


class FakeTranscriber:
    def __init__(self, text='whisper transcript', error=None):
        self.text = text
        self.error = error
        self.calls = []

    def transcribe(self, audio_file, on_chunk=None, cancel_event=None):
        self.calls.append(Path(audio_file))
        if self.error:
            raise self.error
        if on_chunk:
            on_chunk(1, 1)
        return self.text


class FakeAudioTool:
    """Writes empty chunk files the way AudioTool.split names them"""

    def __init__(self, temp_dir):
        self.temp_dir = Path(temp_dir)
        self.split_calls = []

    def split(self, audio_file, num_chunks):
        self.split_calls.append((Path(audio_file), num_chunks))
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        chunks = []
        for i in range(num_chunks):
            chunk = self.temp_dir / f"{Path(audio_file).name}_chunk_{i}.mp3"
            chunk.write_bytes(b'\x00')
            chunks.append(chunk)
        return chunks


class FakeTranscriptions:
    def __init__(self, respond):
        self.respond = respond
        self.calls = []

    def create(self, model, file, response_format):
        name = Path(file.name).name
        self.calls.append(name)
        return self.respond(name)


class FakeOpenAIClient:
    def __init__(self, respond=None):
        self.transcriptions = FakeTranscriptions(respond or (lambda name: f"text of {name}\n"))
        self.audio = SimpleNamespace(transcriptions=self.transcriptions)


def captioned(title, channel='Some Channel', duration=125.0, description=''):
    return VideoMetadata(title=title, channel=channel, duration=duration, description=description,
                         has_captions=True, caption_languages=['en'])


def uncaptioned(title, channel='Some Channel', duration=60.0):
    return VideoMetadata(title=title, channel=channel, duration=duration, has_captions=False)


@pytest.fixture
def store_dir(tmp_path):
    return tmp_path / 'transcripts'


@pytest.fixture
def metadata_cache(store_dir):
    return MetadataCache(store_dir)


@pytest.fixture
def transcripts(store_dir):
    return TranscriptStore(store_dir)


@pytest.fixture
def make_pipeline(metadata_cache, transcripts):
    def factory(youtube, transcriber=None, confirm=None, events=None, sleeps=None, cancel_event=None):
        return AcquisitionPipeline(
            youtube,
            transcriber or FakeTranscriber(),
            metadata_cache,
            transcripts,
            confirm=confirm,
            on_event=events.append if events is not None else None,
            retry_delay=1.0,
            sleep=sleeps.append if sleeps is not None else (lambda _: None),
            cancel_event=cancel_event,
        )
    return factory


@pytest.fixture
def playlist_of():
    def factory(title, *video_ids):
        return PlaylistInfo(
            title=title,
            video_urls=[f"https://www.youtube.com/watch?v={v}" for v in video_ids],
            video_titles=['' for _ in video_ids],
        )
    return factory
