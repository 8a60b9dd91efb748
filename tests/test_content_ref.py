import pytest

from content_ref import (
    ContentKind,
    classify_input,
    is_likely_channel_handle,
    is_playlist_id,
    looks_like_command,
    suggest_correction,
)

PL_32 = 'PL' + 'x1Y2z3W4' * 4
PL_16 = 'PLabcdEFGH12345678'


@pytest.mark.parametrize('token', ['dQw4w9WgXcQ', 'tAP1eZYEuKA', 'a-b_c-d_e-f', '_' * 11])
def test_bare_video_id(token):
    ref = classify_input(token)
    assert ref.kind is ContentKind.VIDEO
    assert ref.canonical_id == token
    assert ref.canonical_url == f"https://www.youtube.com/watch?v={token}"
    assert ref.is_valid


def test_whitespace_is_trimmed():
    ref = classify_input('  dQw4w9WgXcQ\n')
    assert ref.kind is ContentKind.VIDEO
    assert ref.canonical_id == 'dQw4w9WgXcQ'


@pytest.mark.parametrize('url', [
    'https://www.youtube.com/watch?v=dQw4w9WgXcQ',
    'https://youtube.com/watch?v=dQw4w9WgXcQ&t=42s',
    'https://m.youtube.com/watch?v=dQw4w9WgXcQ',
    'https://youtu.be/dQw4w9WgXcQ',
    'https://youtu.be/dQw4w9WgXcQ?si=abc',
    'https://www.youtube.com/embed/dQw4w9WgXcQ',
    'https://www.youtube.com/shorts/dQw4w9WgXcQ?feature=share',
    'https://www.youtube.com/live/dQw4w9WgXcQ',
])
def test_video_urls(url):
    ref = classify_input(url)
    assert ref.kind is ContentKind.VIDEO
    assert ref.canonical_id == 'dQw4w9WgXcQ'
    assert ref.original_input == url


def test_watch_url_with_playlist_is_a_video():
    ref = classify_input(f"https://www.youtube.com/watch?v=dQw4w9WgXcQ&list={PL_32}")
    assert ref.kind is ContentKind.VIDEO
    assert ref.canonical_id == 'dQw4w9WgXcQ'


def test_watch_url_with_only_playlist():
    ref = classify_input(f"https://www.youtube.com/watch?list={PL_32}")
    assert ref.kind is ContentKind.PLAYLIST
    assert ref.canonical_id == PL_32


def test_playlist_url():
    ref = classify_input(f"https://www.youtube.com/playlist?list={PL_32}")
    assert ref.kind is ContentKind.PLAYLIST
    assert ref.canonical_url == f"https://www.youtube.com/playlist?list={PL_32}"


@pytest.mark.parametrize('token', [
    PL_32,
    PL_16,
    'UU' + 'a' * 16,
    'RD' + 'b' * 32,
    'OLAK5uy_' + 'c' * 32,
])
def test_bare_playlist_ids(token):
    assert is_playlist_id(token)
    assert classify_input(token).kind is ContentKind.PLAYLIST


@pytest.mark.parametrize('token', ['PL' + 'a' * 20, 'UU' + 'a' * 17, 'OLAK5uy_' + 'c' * 31, 'PLxx!yy'])
def test_malformed_playlist_ids(token):
    assert not is_playlist_id(token)


def test_channel_id():
    channel_id = 'UC' + 'A' * 22
    ref = classify_input(channel_id)
    assert ref.kind is ContentKind.CHANNEL
    assert ref.canonical_url == f"https://www.youtube.com/channel/{channel_id}"


@pytest.mark.parametrize('url,expected_id', [
    ('https://www.youtube.com/@mkbhd', '@mkbhd'),
    ('https://www.youtube.com/@mkbhd/videos', '@mkbhd'),
    ('https://www.youtube.com/c/LinusTechTips', 'LinusTechTips'),
    ('https://www.youtube.com/user/pewdiepie', 'pewdiepie'),
])
def test_channel_urls(url, expected_id):
    ref = classify_input(url)
    assert ref.kind is ContentKind.CHANNEL
    assert ref.canonical_id == expected_id


def test_bare_handle():
    ref = classify_input('mkbhd')
    assert ref.kind is ContentKind.CHANNEL
    assert ref.canonical_id == '@mkbhd'
    assert ref.canonical_url == 'https://www.youtube.com/@mkbhd'


@pytest.mark.parametrize('token,expected', [
    ('transcrib', 'did you mean: transcribe'),
    ('metadat', 'did you mean: metadata'),
    ('versio', 'did you mean: version'),
])
def test_mistyped_command(token, expected):
    ref = classify_input(token)
    assert ref.kind is ContentKind.COMMAND
    assert ref.error is not None
    assert not ref.is_valid
    assert ref.suggestion == expected


def test_unknown_input_has_help_hint():
    ref = classify_input('not a youtube thing!')
    assert ref.kind is ContentKind.UNKNOWN
    assert ref.suggestion == 'use --help to see available commands'


@pytest.mark.parametrize('url', [
    'https://vimeo.com/123456',
    'https://youtu.be/short',
    'https://www.youtube.com/watch?v=tooshort',
    'https://www.youtube.com/feed/subscriptions',
    'https://www.youtube.com/shorts/tooshort',
])
def test_bad_urls(url):
    ref = classify_input(url)
    assert ref.kind is ContentKind.UNKNOWN
    assert ref.error is not None
    assert ref.suggestion == ''


@pytest.mark.parametrize('token', ['invalidcommand', 'configuration', 'settings', 'helloworldtest'])
def test_word_like_tokens_are_not_handles(token):
    assert not is_likely_channel_handle(token)


def test_handles_with_digits_may_be_long():
    assert is_likely_channel_handle('channel4newsofficial2')


def test_looks_like_command():
    assert looks_like_command('summarize')
    assert not looks_like_command('Transcribe')
    assert not looks_like_command('mkbhd')


def test_suggest_correction_lists_every_match():
    assert suggest_correction('a') == 'did you mean: summarize, transcribe, metadata, paths'


def test_classification_is_deterministic():
    for raw in ('dQw4w9WgXcQ', PL_32, 'https://youtu.be/dQw4w9WgXcQ', 'mkbhd'):
        assert classify_input(raw) == classify_input(raw)
