"""Entry point that wires the content services and runs one sync."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional

try:  # Prefer PyQt5, fall back to Qt for Python if available
    from PyQt5 import QtCore  # type: ignore
except Exception:  # pragma: no cover - fallback only used when PyQt5 missing
    try:
        from PySide2 import QtCore  # type: ignore
    except Exception:
        from PySide6 import QtCore  # type: ignore

from app_config import AppConfig, build_feed_fetcher, build_quran_client, load_config
from audio_player import AudioBackend, AudioPlaybackCoordinator, QtAudioBackend
from content_services import (
    ContentService,
    FeedViewModel,
    LoadState,
    ServiceState,
    SurahCatalogService,
    SurahDetailService,
)
from task_runner import QtTaskRunner, Signal

APP_ROOT = Path(__file__).parent
CONFIG_PATH = APP_ROOT / "config.json"

LOGGER = logging.getLogger(__name__)


class ContentSync(QtCore.QObject):
    """Loads the surah catalog, the first surah and the news feed once.

    ``finished`` carries the exit status: 0 when every service loaded and 1
    when any of them failed.
    """

    finished = Signal(int)

    def __init__(
        self,
        config: AppConfig,
        runner: Optional[QtTaskRunner] = None,
        audio_backend: Optional[AudioBackend] = None,
        parent: Optional[QtCore.QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.config = config
        self.exit_code: Optional[int] = None

        self.runner = runner or QtTaskRunner(max_workers=2)
        quran_client = build_quran_client(config)
        self.catalog = SurahCatalogService(quran_client, self.runner)
        self.detail = SurahDetailService(quran_client, self.runner)
        self.feed = FeedViewModel(build_feed_fetcher(config), self.runner, feed_url=config.feed_url)
        self.audio = AudioPlaybackCoordinator(audio_backend or QtAudioBackend(self))

        self.catalog.subscribe(self._on_catalog_state)
        self.detail.subscribe(self._log_state(self.detail))
        self.feed.subscribe(self._log_state(self.feed))
        for service in (self.catalog, self.detail, self.feed):
            service.subscribe(lambda _state: self._maybe_finish())

    def sync(self) -> None:
        LOGGER.info("Syncing content from %s and %s", self.config.api_base, self.config.feed_url)
        self.catalog.load()
        self.feed.load()

    def shutdown(self) -> None:
        self.audio.stop()
        self.runner.shutdown()

    def _on_catalog_state(self, state: ServiceState) -> None:
        self._log_state(self.catalog)(state)
        if state.status is LoadState.LOADED and state.items:
            self.detail.load(state.items[0].number)

    @staticmethod
    def _log_state(service: ContentService):
        def _log(state: ServiceState) -> None:
            if state.status is LoadState.LOADED:
                LOGGER.info("%s ready with %d items", service.name, len(state.items))
            elif state.status is LoadState.FAILED:
                LOGGER.warning("%s failed: %s", service.name, state.error)

        return _log

    def _maybe_finish(self) -> None:
        if self.exit_code is not None:
            return
        if self.catalog.is_loading or self.feed.is_loading or self.detail.is_loading:
            return
        if self.catalog.items and self.detail.state.status is LoadState.IDLE:
            return
        failed = [
            service.name
            for service in (self.catalog, self.detail, self.feed)
            if service.state.status is LoadState.FAILED
        ]
        if failed:
            LOGGER.error("Sync finished with failures: %s", ", ".join(failed))
        self.exit_code = 1 if failed else 0
        self.finished.emit(self.exit_code)


class ContentApp(QtCore.QCoreApplication):
    """Runs one :class:`ContentSync` and quits with its exit status."""

    def __init__(self, argv: List[str], config: AppConfig) -> None:
        super().__init__(argv)
        self.setApplicationName("Mosque Content")
        self.content = ContentSync(config, parent=self)
        self.content.finished.connect(self.exit)  # type: ignore
        self.aboutToQuit.connect(self.content.shutdown)  # type: ignore
        QtCore.QTimer.singleShot(0, self.content.sync)


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv if argv is None else argv)
    config_path = Path(argv[1]) if len(argv) > 1 else CONFIG_PATH
    config = load_config(config_path)
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    LOGGER.debug("Loaded config from %s: %s", config_path, config)
    app = ContentApp(argv[:1], config)
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
