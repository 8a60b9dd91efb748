import threading

import pytest
from openai import OpenAIError

from conftest import FakeAudioTool, FakeOpenAIClient
from tldw_errors import AcquisitionCancelledError, ConfigError, ExternalToolError
from whisper_transcriber import MAX_PARALLEL_CHUNKS, ChunkedWhisperTranscriber, cleanup_files, required_chunks

LIMIT = 100


@pytest.mark.parametrize('size,expected', [
    (0, 1),
    (1, 1),
    (LIMIT, 1),
    (LIMIT + 1, 2),
    (3 * LIMIT, 3),
    (3 * LIMIT + 1, 4),
])
def test_required_chunks(size, expected):
    assert required_chunks(size, LIMIT) == expected


def test_whisper_limit_boundary():
    limit = 25 << 20
    assert required_chunks(limit, limit) == 1
    assert required_chunks(limit + 1, limit) == 2


def test_required_chunks_rejects_bad_limit():
    with pytest.raises(ValueError):
        required_chunks(10, 0)


@pytest.fixture
def audio(tmp_path):
    def factory(size):
        path = tmp_path / 'vid.mp3'
        path.write_bytes(b'\x00' * size)
        return path
    return factory


def make_transcriber(tmp_path, client, **kwargs):
    audio_tool = FakeAudioTool(tmp_path / 'temp_chunks')
    transcriber = ChunkedWhisperTranscriber(audio_tool, api_key='sk-test', limit=LIMIT, client=client, **kwargs)
    return transcriber, audio_tool


def test_small_file_is_sent_whole(tmp_path, audio):
    client = FakeOpenAIClient()
    transcriber, audio_tool = make_transcriber(tmp_path, client)
    audio_file = audio(LIMIT)

    text = transcriber.transcribe(audio_file)

    assert text == 'text of vid.mp3'
    assert audio_tool.split_calls == []
    assert not audio_file.exists()


def test_large_file_is_chunked_and_joined_in_order(tmp_path, audio):
    client = FakeOpenAIClient()
    transcriber, audio_tool = make_transcriber(tmp_path, client)
    audio_file = audio(2 * LIMIT + 50)
    seen = []

    text = transcriber.transcribe(audio_file, on_chunk=lambda i, n: seen.append((i, n)))

    assert audio_tool.split_calls == [(audio_file, 3)]
    assert client.transcriptions.calls == ['vid.mp3_chunk_0.mp3', 'vid.mp3_chunk_1.mp3', 'vid.mp3_chunk_2.mp3']
    assert text == 'text of vid.mp3_chunk_0.mp3\ntext of vid.mp3_chunk_1.mp3\ntext of vid.mp3_chunk_2.mp3'
    assert seen == [(1, 3), (2, 3), (3, 3)]
    assert not audio_file.exists()
    assert list((tmp_path / 'temp_chunks').iterdir()) == []


def test_parallel_mode_keeps_chunk_order(tmp_path, audio):
    client = FakeOpenAIClient()
    transcriber, _ = make_transcriber(tmp_path, client, sequential=False)

    text = transcriber.transcribe(audio(4 * LIMIT))

    assert text.split('\n') == [f"text of vid.mp3_chunk_{i}.mp3" for i in range(4)]


def test_api_failure_is_wrapped_and_files_cleaned(tmp_path, audio):
    def fail_second(name):
        if name.endswith('_1.mp3'):
            raise OpenAIError('server exploded')
        return 'ok'

    transcriber, _ = make_transcriber(tmp_path, FakeOpenAIClient(fail_second))
    audio_file = audio(2 * LIMIT)

    with pytest.raises(ExternalToolError) as excinfo:
        transcriber.transcribe(audio_file)

    assert excinfo.value.tool == 'openai'
    assert 'server exploded' in str(excinfo.value)
    assert not audio_file.exists()
    assert list((tmp_path / 'temp_chunks').iterdir()) == []


def test_cancel_stops_before_upload(tmp_path, audio):
    client = FakeOpenAIClient()
    transcriber, _ = make_transcriber(tmp_path, client)
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(AcquisitionCancelledError):
        transcriber.transcribe(audio(2 * LIMIT), cancel_event=cancel)
    assert client.transcriptions.calls == []


def test_missing_api_key_only_fails_when_used(tmp_path, audio):
    transcriber = ChunkedWhisperTranscriber(FakeAudioTool(tmp_path), api_key='', limit=LIMIT)
    with pytest.raises(ConfigError):
        transcriber.transcribe(audio(10))


def test_cleanup_files_tolerates_missing(tmp_path):
    present = tmp_path / 'present.mp3'
    present.write_bytes(b'1')
    assert cleanup_files([present, tmp_path / 'gone.mp3'], grace=1.0)
    assert not present.exists()


class OversizedAudioTool(FakeAudioTool):
    """First split yields chunks just over the limit, later splits fit"""

    def split(self, audio_file, num_chunks):
        chunks = super().split(audio_file, num_chunks)
        size = LIMIT + 10 if len(self.split_calls) == 1 else LIMIT // 2
        for chunk in chunks:
            chunk.write_bytes(b'\x00' * size)
        return chunks


def test_oversized_chunks_are_split_again(tmp_path, audio):
    client = FakeOpenAIClient()
    audio_tool = OversizedAudioTool(tmp_path / 'temp_chunks')
    transcriber = ChunkedWhisperTranscriber(audio_tool, api_key='sk-test', limit=LIMIT, client=client)
    audio_file = audio(2 * LIMIT)

    chunks, chunked = transcriber.split_audio(audio_file)

    assert chunked
    assert [n for _, n in audio_tool.split_calls] == [2, 3]
    assert len(chunks) == 3
    assert all(chunk.stat().st_size <= LIMIT for chunk in chunks)


def test_chunks_that_never_fit_fail(tmp_path, audio):
    class AlwaysOversized(FakeAudioTool):
        def split(self, audio_file, num_chunks):
            chunks = super().split(audio_file, num_chunks)
            for chunk in chunks:
                chunk.write_bytes(b'\x00' * (LIMIT + 1))
            return chunks

    audio_tool = AlwaysOversized(tmp_path / 'temp_chunks')
    transcriber = ChunkedWhisperTranscriber(audio_tool, api_key='sk-test', limit=LIMIT,
                                            client=FakeOpenAIClient())

    with pytest.raises(ExternalToolError):
        transcriber.transcribe(audio(2 * LIMIT))
    assert list((tmp_path / 'temp_chunks').iterdir()) == []


def test_parallel_failure_stops_queued_chunks(tmp_path, audio):
    release = threading.Event()

    def respond(name):
        if name.endswith('_chunk_0.mp3'):
            raise OpenAIError('quota exceeded')
        release.wait(5)
        return 'ok'

    client = FakeOpenAIClient(respond)
    transcriber, _ = make_transcriber(tmp_path, client, sequential=False)

    try:
        with pytest.raises(ExternalToolError) as excinfo:
            transcriber.transcribe(audio(3 * MAX_PARALLEL_CHUNKS * LIMIT))
    finally:
        release.set()

    assert 'quota exceeded' in str(excinfo.value)
    uploaded = client.transcriptions.calls
    assert len(uploaded) <= MAX_PARALLEL_CHUNKS
    assert f"vid.mp3_chunk_{3 * MAX_PARALLEL_CHUNKS - 1}.mp3" not in uploaded
