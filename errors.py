"""Exceptions raised by the content clients and the audio coordinator."""
from __future__ import annotations

from typing import Optional


class ContentError(Exception):
    """Base class for content sync failures."""


class InvalidArgument(ContentError, ValueError):
    """Raised when a caller passes an out-of-range surah number."""


class FetchError(ContentError):
    """Raised when a network request or JSON decoding fails."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class ParseError(ContentError):
    """Raised when the news feed document is missing or unparseable."""


class PlaybackError(ContentError):
    """Raised when an audio resource cannot be opened."""


__all__ = ["ContentError", "InvalidArgument", "FetchError", "ParseError", "PlaybackError"]
