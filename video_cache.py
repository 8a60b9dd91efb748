"""On-disk state: video metadata cache and finished transcripts.

Both live in the transcripts directory and are keyed by the canonical
video ID. Nothing here expires; delete the files to force a re-fetch.
"""

import json
import logging
import threading
from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class Chapter:
    start_time: float
    end_time: float
    title: str


@dataclass
class VideoMetadata:
    title: str = ''
    description: str = ''
    channel: str = ''
    duration: float = 0.0
    categories: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    chapters: List[Chapter] = field(default_factory=list)
    has_captions: bool = False
    caption_languages: List[str] = field(default_factory=list)

    @classmethod
    def from_info(cls, info: dict) -> 'VideoMetadata':
        """Build from a raw yt-dlp info dict"""
        manual = info.get('subtitles') or {}
        automatic = info.get('automatic_captions') or {}
        languages = sorted(set(manual) | set(automatic))

        chapters = [
            Chapter(
                start_time=float(ch.get('start_time') or 0),
                end_time=float(ch.get('end_time') or 0),
                title=ch.get('title') or '',
            )
            for ch in info.get('chapters') or []
        ]

        return cls(
            title=info.get('title') or '',
            description=info.get('description') or '',
            channel=info.get('channel') or info.get('uploader') or '',
            duration=float(info.get('duration') or 0),
            categories=list(info.get('categories') or []),
            tags=list(info.get('tags') or []),
            chapters=chapters,
            has_captions=bool(manual) or bool(automatic),
            caption_languages=languages,
        )

    @classmethod
    def from_dict(cls, data: dict) -> 'VideoMetadata':
        chapters = [Chapter(**ch) for ch in data.get('chapters') or []]
        return cls(
            title=data.get('title', ''),
            description=data.get('description', ''),
            channel=data.get('channel', ''),
            duration=float(data.get('duration') or 0),
            categories=list(data.get('categories') or []),
            tags=list(data.get('tags') or []),
            chapters=chapters,
            has_captions=bool(data.get('has_captions')),
            caption_languages=list(data.get('caption_languages') or []),
        )

    def to_dict(self) -> dict:
        return asdict(self)


class MetadataCache:
    """In-process map in front of `<id>.meta.json` files.

    One instance per run, handed to every consumer. Safe to share between
    threads: the map is only touched under the lock.
    """

    def __init__(self, directory):
        self.directory = Path(directory)
        self._memory: Dict[str, VideoMetadata] = {}
        self._lock = threading.Lock()

    def path_for(self, video_id: str) -> Path:
        return self.directory / f"{video_id}.meta.json"

    def get(self, video_id: str) -> Tuple[Optional[VideoMetadata], bool]:
        with self._lock:
            cached = self._memory.get(video_id)
        if cached is not None:
            logger.debug("Using in-memory metadata for %s", video_id)
            return cached, True

        metadata = self._load(video_id)
        if metadata is None:
            return None, False

        logger.debug("Using cached metadata for %s", video_id)
        with self._lock:
            self._memory[video_id] = metadata
        return metadata, True

    def put(self, video_id: str, metadata: VideoMetadata) -> None:
        with self._lock:
            self._memory[video_id] = metadata

        record = metadata.to_dict()
        record['cached_at'] = datetime.now().isoformat()
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(self.path_for(video_id), 'w', encoding='utf-8') as f:
                json.dump(record, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.warning("Failed to cache metadata for %s: %s", video_id, e)

    def _load(self, video_id: str) -> Optional[VideoMetadata]:
        path = self.path_for(video_id)
        if not path.exists():
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return VideoMetadata.from_dict(json.load(f))
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Ignoring unreadable metadata cache %s: %s", path, e)
            return None


class TranscriptStore:
    """`<id>.txt` files; the single record of what has been acquired"""

    def __init__(self, directory):
        self.directory = Path(directory)

    def path_for(self, video_id: str) -> Path:
        return self.directory / f"{video_id}.txt"

    def exists(self, video_id: str) -> bool:
        return self.path_for(video_id).is_file()

    def read(self, video_id: str) -> str:
        return self.path_for(video_id).read_bytes().decode('utf-8')

    def write(self, video_id: str, transcript: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(video_id)
        path.write_bytes(transcript.encode('utf-8'))
        return path
