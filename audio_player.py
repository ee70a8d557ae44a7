"""Verse audio playback with a single owned stream."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol
from urllib.parse import urlparse

try:  # Prefer PyQt5 multimedia bindings, fall back to Qt for Python variants
    from PyQt5 import QtCore, QtMultimedia  # type: ignore
except Exception:  # pragma: no cover - fallback path
    try:
        from PySide2 import QtCore, QtMultimedia  # type: ignore
    except Exception:
        from PySide6 import QtCore, QtMultimedia  # type: ignore

from errors import PlaybackError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaybackState:
    current_item_id: Optional[int] = None
    is_playing: bool = False


class AudioBackend(Protocol):
    """Stream handle driven by :class:`AudioPlaybackCoordinator`.

    ``start`` raises :class:`PlaybackError` when the resource cannot be
    opened. The backend reports end-of-stream and late errors through the
    callbacks installed with ``set_callbacks``.
    """

    def start(self, url: str) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def stop(self) -> None: ...

    def set_callbacks(self, on_finished: Callable[[], None], on_error: Callable[[str], None]) -> None: ...


class QtAudioBackend(QtCore.QObject):
    """Stream remote audio using Qt Multimedia."""

    def __init__(self, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self._player = QtMultimedia.QMediaPlayer(self)
        self._audio_output = None
        if hasattr(QtMultimedia, "QAudioOutput"):
            self._audio_output = QtMultimedia.QAudioOutput()
            if hasattr(self._audio_output, "setParent"):
                self._audio_output.setParent(self)
            if hasattr(self._player, "setAudioOutput"):
                self._player.setAudioOutput(self._audio_output)
            self._audio_output.setVolume(1.0)
        elif hasattr(self._player, "setVolume"):
            self._player.setVolume(100)

        self._using_new_api = hasattr(self._player, "setSource")
        self._on_finished: Optional[Callable[[], None]] = None
        self._on_error: Optional[Callable[[str], None]] = None

        if hasattr(self._player, "mediaStatusChanged"):
            self._player.mediaStatusChanged.connect(self._on_media_status)  # type: ignore
        if hasattr(self._player, "errorOccurred"):
            self._player.errorOccurred.connect(self._on_player_error)  # type: ignore
        elif hasattr(self._player, "error"):
            self._player.error.connect(self._on_player_error)  # type: ignore

    def set_callbacks(self, on_finished: Callable[[], None], on_error: Callable[[str], None]) -> None:
        self._on_finished = on_finished
        self._on_error = on_error

    def start(self, url: str) -> None:
        qurl = QtCore.QUrl(url)
        if not qurl.isValid() or qurl.scheme() not in ("http", "https", "file"):
            raise PlaybackError(f"Cannot open audio resource {url!r}")

        self._player.stop()
        if self._using_new_api:
            # Qt6-style API
            self._player.setSource(qurl)
        else:
            # Qt5 API using QMediaContent
            self._player.setMedia(QtMultimedia.QMediaContent(qurl))  # type: ignore[attr-defined]
        LOGGER.debug("Streaming verse audio via Qt multimedia: %s", url)
        self._player.play()

    def pause(self) -> None:
        self._player.pause()

    def resume(self) -> None:
        self._player.play()

    def stop(self) -> None:
        self._player.stop()

    def _on_media_status(self, status: int) -> None:
        if status == QtMultimedia.QMediaPlayer.EndOfMedia:
            if self._on_finished:
                self._on_finished()
        elif status == getattr(QtMultimedia.QMediaPlayer, "InvalidMedia", object()):
            self._report_error("Invalid media")

    def _on_player_error(self, error: object) -> None:  # pragma: no cover - backend dependent
        if hasattr(QtMultimedia.QMediaPlayer, "NoError") and error == QtMultimedia.QMediaPlayer.NoError:
            return
        self._report_error(getattr(self._player, "errorString", lambda: "unknown")())

    def _report_error(self, message: str) -> None:
        if self._on_error:
            self._on_error(message)


class AudioPlaybackCoordinator:
    """Own the audio stream and track which verse is current.

    At most one stream is active: starting a verse stops whatever was
    playing. Pausing or finishing keeps ``current_item_id`` so callers can
    tell a resume of the same verse from a switch to another one.
    """

    def __init__(self, backend: AudioBackend) -> None:
        self._backend = backend
        self._state = PlaybackState()
        self._listeners: List[Callable[[PlaybackState], None]] = []
        self._backend.set_callbacks(self._handle_finished, self._handle_error)

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def current_item_id(self) -> Optional[int]:
        return self._state.current_item_id

    @property
    def is_playing(self) -> bool:
        return self._state.is_playing

    def subscribe(self, listener: Callable[[PlaybackState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def play(self, item_id: int, audio_url: str) -> None:
        if self._state.current_item_id is not None:
            LOGGER.debug("Stopping verse %s before starting %s", self._state.current_item_id, item_id)
            self._backend.stop()
            self._set_state(PlaybackState(self._state.current_item_id, False))

        if not _looks_like_url(audio_url):
            self._set_state(PlaybackState(self._state.current_item_id, False))
            raise PlaybackError(f"Cannot open audio resource {audio_url!r}")
        try:
            self._backend.start(audio_url)
        except PlaybackError:
            LOGGER.warning("Failed to start audio for verse %s", item_id, exc_info=True)
            self._set_state(PlaybackState(self._state.current_item_id, False))
            raise
        LOGGER.info("Playing verse %s", item_id)
        self._set_state(PlaybackState(item_id, True))

    def pause(self) -> None:
        if not self._state.is_playing:
            return
        self._backend.pause()
        self._set_state(PlaybackState(self._state.current_item_id, False))

    def resume(self) -> None:
        if self._state.is_playing or self._state.current_item_id is None:
            return
        self._backend.resume()
        self._set_state(PlaybackState(self._state.current_item_id, True))

    def stop(self) -> None:
        self._backend.stop()
        if self._state.is_playing:
            self._set_state(PlaybackState(self._state.current_item_id, False))

    def toggle(self, item_id: int, audio_url: str) -> None:
        """Play/pause button behaviour for one verse row."""
        if self._state.current_item_id == item_id:
            if self._state.is_playing:
                self.pause()
            else:
                self.resume()
            return
        self.play(item_id, audio_url)

    # ------------------------------------------------------------------
    def _handle_finished(self) -> None:
        LOGGER.debug("Verse %s finished playing", self._state.current_item_id)
        self._set_state(PlaybackState(self._state.current_item_id, False))

    def _handle_error(self, message: str) -> None:
        LOGGER.error("Verse audio playback error: %s", message)
        self._set_state(PlaybackState(self._state.current_item_id, False))

    def _set_state(self, state: PlaybackState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                LOGGER.exception("Playback listener %r failed", listener)


def _looks_like_url(value: str) -> bool:
    parsed = urlparse(value or "")
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


__all__ = ["AudioBackend", "AudioPlaybackCoordinator", "PlaybackState", "QtAudioBackend"]
