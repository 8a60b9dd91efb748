"""Turn whatever the user typed into a typed YouTube content reference.

The handle/command disambiguation below is a best-effort heuristic. It only
exists to catch mistyped subcommands before they are sent to YouTube as a
channel handle, and can be replaced by a real handle lookup later without
touching anything outside this module.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlparse, parse_qs

from tldw_errors import ClassificationError

WATCH_URL = 'https://www.youtube.com/watch?v={}'
PLAYLIST_URL = 'https://www.youtube.com/playlist?list={}'
CHANNEL_URL = 'https://www.youtube.com/channel/{}'

YOUTUBE_HOSTS = ('www.youtube.com', 'youtube.com', 'm.youtube.com')
SHORT_LINK_HOSTS = ('youtu.be',)
VIDEO_PATH_PREFIXES = ('/embed/', '/shorts/', '/live/', '/v/')

VIDEO_ID_RE = re.compile(r'^[A-Za-z0-9_-]{11}$')
CHANNEL_ID_RE = re.compile(r'^UC[A-Za-z0-9_-]{22}$')
PL_PLAYLIST_RE = re.compile(r'^PL[A-Za-z0-9_-]{16}$|^PL[A-Za-z0-9_-]{32}$')
ID_CHARS_RE = re.compile(r'^[A-Za-z0-9_-]+$')
HANDLE_RE = re.compile(r'^@?[A-Za-z0-9._-]{3,30}$')
COMMAND_RE = re.compile(r'^[a-z]{2,15}$')

NON_PL_PLAYLIST_PREFIXES = ('UU', 'FL', 'RD', 'LP', 'BP', 'QL', 'SV', 'EL', 'LL', 'UC')
MUSIC_PLAYLIST_PREFIXES = ('OLAK5uy_', 'RDCLAK5uy_')

# Subcommands offered back to the user in "did you mean" hints
AVAILABLE_COMMANDS = ('summarize', 'transcribe', 'cp', 'metadata', 'paths', 'version', 'help')

KNOWN_COMMANDS = (
    'help', 'version', 'transcribe', 'cp', 'metadata', 'mcp',
    'config', 'paths', 'init', 'list', 'show', 'get', 'set',
    'run', 'start', 'stop', 'status', 'info', 'debug', 'summarize',
)

COMMAND_LIKE_WORDS = (
    'install', 'update', 'remove', 'delete', 'create', 'add',
    'edit', 'modify', 'change', 'reset', 'clear', 'clean',
)

COMMON_WORDS = frozenset((
    'help', 'version', 'config', 'settings', 'options', 'default',
    'example', 'test', 'demo', 'sample', 'invalid', 'error',
    'command', 'input', 'output', 'file', 'directory', 'path',
    'user', 'admin', 'system', 'server', 'client', 'local',
))

COMMON_WORD_COMBINATIONS = frozenset((
    'invalidcommand', 'testcommand', 'errorcommand', 'defaultvalue',
    'exampletext', 'sampledata', 'placeholder', 'randomtext',
))


class ContentKind(Enum):
    UNKNOWN = 'unknown'
    VIDEO = 'video'
    PLAYLIST = 'playlist'
    CHANNEL = 'channel'
    COMMAND = 'command'


@dataclass(frozen=True)
class ContentReference:
    kind: ContentKind
    original_input: str
    canonical_id: str = ''
    canonical_url: str = ''
    error: Optional[ClassificationError] = None

    @property
    def is_valid(self) -> bool:
        return self.error is None and self.kind not in (ContentKind.UNKNOWN, ContentKind.COMMAND)

    @property
    def suggestion(self) -> str:
        return self.error.suggestion if self.error else ''

    def __str__(self):
        if self.error:
            return f"{self.kind.value} {self.original_input!r}: {self.error}"
        return f"{self.kind.value} {self.canonical_id} ({self.canonical_url})"


def is_video_id(token: str) -> bool:
    return bool(VIDEO_ID_RE.match(token))


def is_channel_id(token: str) -> bool:
    return bool(CHANNEL_ID_RE.match(token))


def is_playlist_id(token: str) -> bool:
    """Regular PL playlists plus the other fixed-length playlist families"""
    if token.startswith('PL'):
        return bool(PL_PLAYLIST_RE.match(token))

    if not ID_CHARS_RE.match(token):
        return False

    if token.startswith(NON_PL_PLAYLIST_PREFIXES) and len(token) in (18, 34):
        return True

    if token.startswith(MUSIC_PLAYLIST_PREFIXES) and len(token) == 40:
        return True

    return False


def is_channel_handle(token: str) -> bool:
    return bool(HANDLE_RE.match(token))


def looks_like_command(token: str) -> bool:
    if not COMMAND_RE.match(token):
        return False

    for cmd in KNOWN_COMMANDS:
        if cmd == token or token in cmd or cmd in token:
            return True

    for word in COMMAND_LIKE_WORDS:
        if token in word or word in token:
            return True

    return False


def _is_common_word_pattern(handle: str) -> bool:
    handle = handle.lower()
    if handle.endswith(('command', 'invalid', 'error', 'test')):
        return True
    if handle.startswith(('invalid', 'error', 'test', 'example')):
        return True
    return handle in COMMON_WORD_COMBINATIONS


def is_likely_channel_handle(token: str) -> bool:
    if not is_channel_handle(token):
        return False

    handle = token[1:] if token.startswith('@') else token

    if looks_like_command(handle):
        return False

    if handle.lower() in COMMON_WORDS:
        return False

    # Long handles with no digits are usually English words, not brands
    if not any(ch.isdigit() for ch in handle):
        if len(handle) > 10:
            return False
        if _is_common_word_pattern(handle):
            return False

    return True


def suggest_correction(raw: str, commands=AVAILABLE_COMMANDS) -> str:
    """Substring match against the CLI vocabulary, no edit distance"""
    token = raw.strip().lower()
    matches = [cmd for cmd in commands if token and (token in cmd or cmd in token)]
    if matches:
        return f"did you mean: {', '.join(matches)}"
    return 'use --help to see available commands'


def _video(raw: str, video_id: str) -> ContentReference:
    return ContentReference(ContentKind.VIDEO, raw, video_id, WATCH_URL.format(video_id))


def _playlist(raw: str, playlist_id: str) -> ContentReference:
    return ContentReference(ContentKind.PLAYLIST, raw, playlist_id, PLAYLIST_URL.format(playlist_id))


def _channel(raw: str, channel_id: str, url: str) -> ContentReference:
    return ContentReference(ContentKind.CHANNEL, raw, channel_id, url)


def _unknown(raw: str, message: str, kind: ContentKind = ContentKind.UNKNOWN) -> ContentReference:
    return ContentReference(kind, raw, error=ClassificationError(message, suggest_correction(raw)))


def _bad_url(raw: str, message: str) -> ContentReference:
    return ContentReference(ContentKind.UNKNOWN, raw, error=ClassificationError(message))


def _classify_url(raw: str) -> ContentReference:
    try:
        parsed = urlparse(raw)
    except ValueError as e:
        return _bad_url(raw, f"invalid URL format: {e}")

    host = (parsed.hostname or '').lower()
    path = parsed.path
    query = parse_qs(parsed.query)

    if host in SHORT_LINK_HOSTS:
        video_id = path.lstrip('/').split('/')[0]
        if is_video_id(video_id):
            return _video(raw, video_id)
        return _bad_url(raw, f"invalid video ID in short URL: {video_id}")

    if host not in YOUTUBE_HOSTS:
        return _bad_url(raw, f"not a YouTube URL: {host or raw}")

    if path.startswith('/watch'):
        video_id = query.get('v', [''])[0]
        playlist_id = query.get('list', [''])[0]
        # A video inside a playlist means the video
        if is_video_id(video_id):
            return _video(raw, video_id)
        if is_playlist_id(playlist_id):
            return _playlist(raw, playlist_id)
        return _bad_url(raw, 'no valid video or playlist ID found in watch URL')

    for prefix in VIDEO_PATH_PREFIXES:
        if path.startswith(prefix):
            video_id = path[len(prefix):].split('/')[0]
            if is_video_id(video_id):
                return _video(raw, video_id)
            return _bad_url(raw, f"invalid video ID in {prefix.strip('/')} URL: {video_id}")

    if path.startswith('/playlist'):
        playlist_id = query.get('list', [''])[0]
        if is_playlist_id(playlist_id):
            return _playlist(raw, playlist_id)
        return _bad_url(raw, f"invalid playlist ID: {playlist_id}")

    if path.startswith('/channel/'):
        channel_id = path[len('/channel/'):].strip('/')
        if is_channel_id(channel_id):
            return _channel(raw, channel_id, CHANNEL_URL.format(channel_id))
        return _bad_url(raw, f"invalid channel ID: {channel_id}")

    if path.startswith('/@'):
        handle = path.lstrip('/').split('/')[0]
        if is_channel_handle(handle):
            return _channel(raw, handle, f"https://www.youtube.com/{handle}")
        return _bad_url(raw, f"invalid channel handle: {handle}")

    for prefix in ('/c/', '/user/'):
        if path.startswith(prefix):
            name = path[len(prefix):].strip('/')
            if 3 <= len(name) <= 30:
                return _channel(raw, name, f"https://www.youtube.com{prefix}{name}")
            return _bad_url(raw, f"invalid channel name: {name}")

    return _bad_url(raw, f"unsupported YouTube URL path: {path}")


def classify_input(raw: str) -> ContentReference:
    """Classify a URL, bare ID, handle or mistyped command. Pure, no I/O."""
    token = raw.strip()

    if token.startswith(('http://', 'https://')):
        return _classify_url(token)

    if is_video_id(token):
        return _video(token, token)

    if is_channel_id(token):
        return _channel(token, token, CHANNEL_URL.format(token))

    if is_playlist_id(token):
        return _playlist(token, token)

    if looks_like_command(token):
        return _unknown(token, f"'{token}' looks like a command, not YouTube content", ContentKind.COMMAND)

    if is_likely_channel_handle(token):
        handle = token if token.startswith('@') else '@' + token
        return _channel(token, handle, f"https://www.youtube.com/{handle}")

    return _unknown(token, f"unable to determine content type for '{token}'")
