"""Error types shared by the tldw acquisition pipeline"""

from enum import Enum
from typing import Optional


class FailureKind(Enum):
    RETRYABLE = 'retryable'
    FATAL = 'fatal'
    NOT_FOUND = 'not_found'


class TldwError(Exception):
    """Base class for every error tldw raises on purpose"""


class ConfigError(TldwError, ValueError):
    pass


class ClassificationError(TldwError):
    """Raw input could not be turned into a usable content reference"""

    def __init__(self, message: str, suggestion: str = ''):
        super().__init__(message)
        self.suggestion = suggestion

    def __str__(self):
        base = super().__str__()
        if self.suggestion:
            return f"{base}; {self.suggestion}"
        return base


class UnsupportedContentError(TldwError):
    pass


class CaptionFetchError(TldwError):
    """Caption download failed. `kind` decides whether a retry is worth it."""

    def __init__(self, kind: FailureKind, detail: str):
        super().__init__(detail)
        self.kind = kind
        self.detail = detail

    @property
    def retryable(self) -> bool:
        return self.kind is FailureKind.RETRYABLE


class CaptionsUnavailableError(TldwError):
    pass


class FallbackDeclinedError(TldwError):
    """The paid Whisper fallback was offered and the user said no"""


class ExternalToolError(TldwError):
    """An external program (yt-dlp, ffmpeg, clipboard) or API call failed"""

    def __init__(self, tool: str, message: str, output: str = ''):
        super().__init__(message)
        self.tool = tool
        self.output = output

    def __str__(self):
        base = f"{self.tool}: {super().__str__()}"
        if self.output:
            return f"{base}\nOutput: {self.output}"
        return base


class AcquisitionCancelledError(TldwError):
    pass


class BatchFailedError(TldwError):
    def __init__(self, message: str, result: Optional[object] = None):
        super().__init__(message)
        self.result = result
