"""Observable services that own the fetched Quran and news collections."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, List, Optional, Protocol, Tuple, TypeVar

from news_feed import DEFAULT_FEED_URL, FeedFetcher, FeedItem
from quran_api import Ayah, QuranApiClient, Surah, validate_surah_number

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class TaskRunner(Protocol):
    def submit(
        self,
        func: Callable[[], Any],
        on_success: Callable[[Any], None],
        on_error: Callable[[Exception], None],
    ) -> Any:
        ...


class LoadState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(frozen=True)
class ServiceState(Generic[T]):
    """Snapshot handed to subscribers after every transition."""

    status: LoadState
    items: Tuple[T, ...] = ()
    error: Optional[Exception] = None
    request_id: int = 0

    @property
    def is_loading(self) -> bool:
        return self.status is LoadState.LOADING


Listener = Callable[[ServiceState], None]


class ContentService(Generic[T]):
    """Idle -> Loading -> Loaded/Failed state machine shared by all services.

    Each ``load`` issues a new request id. A response is applied only when
    its id is still the latest one, and only on the thread that created the
    service.
    """

    name = "content"

    def __init__(self, runner: TaskRunner) -> None:
        self._runner = runner
        self._state: ServiceState[T] = ServiceState(LoadState.IDLE)
        self._listeners: List[Listener] = []
        self._latest_request = 0
        self._owner_thread = threading.get_ident()

    @property
    def state(self) -> ServiceState[T]:
        return self._state

    @property
    def items(self) -> Tuple[T, ...]:
        return self._state.items

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _start(self, fetch: Callable[[], List[T]]) -> bool:
        self._latest_request += 1
        request_id = self._latest_request
        LOGGER.debug("%s: issuing request %d", self.name, request_id)
        self._set_state(ServiceState(LoadState.LOADING, self._state.items, None, request_id))
        try:
            self._runner.submit(
                fetch,
                lambda result: self._apply_success(request_id, result),
                lambda exc: self._apply_failure(request_id, exc),
            )
        except Exception as exc:
            self._apply_failure(request_id, exc)
        return True

    def _apply_success(self, request_id: int, result: List[T]) -> None:
        self._check_thread()
        if request_id != self._latest_request:
            LOGGER.debug("%s: discarding stale response %d (latest %d)", self.name, request_id, self._latest_request)
            return
        items = tuple(result)
        LOGGER.info("%s: loaded %d items", self.name, len(items))
        self._set_state(ServiceState(LoadState.LOADED, items, None, request_id))

    def _apply_failure(self, request_id: int, error: Exception) -> None:
        self._check_thread()
        if request_id != self._latest_request:
            LOGGER.debug("%s: discarding stale failure %d (latest %d)", self.name, request_id, self._latest_request)
            return
        LOGGER.error("%s: load failed", self.name, exc_info=error)
        self._set_state(ServiceState(LoadState.FAILED, self._state.items, error, request_id))

    def _set_state(self, state: ServiceState[T]) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                LOGGER.exception("%s: state listener %r failed", self.name, listener)

    def _check_thread(self) -> None:
        if threading.get_ident() != self._owner_thread:
            raise RuntimeError(f"{self.name} state must be updated on its owning thread")


class SurahCatalogService(ContentService[Surah]):
    """Owns the list of surahs shown in the Qur'an index."""

    name = "surah-catalog"

    def __init__(self, client: QuranApiClient, runner: TaskRunner) -> None:
        super().__init__(runner)
        self._client = client

    def load(self) -> bool:
        if self.is_loading:
            LOGGER.debug("%s: load already in progress", self.name)
            return False
        return self._start(self._client.fetch_surah_list)


class SurahDetailService(ContentService[Ayah]):
    """Owns the verses of the currently selected surah."""

    name = "surah-detail"

    def __init__(self, client: QuranApiClient, runner: TaskRunner) -> None:
        super().__init__(runner)
        self._client = client
        self._surah_number: Optional[int] = None

    @property
    def surah_number(self) -> Optional[int]:
        return self._surah_number

    def load(self, number: int) -> bool:
        number = validate_surah_number(number)
        if self.is_loading and number == self._surah_number:
            LOGGER.debug("%s: surah %s already loading", self.name, number)
            return False
        self._surah_number = number

        def fetch() -> List[Ayah]:
            return self._client.fetch_surah_detail(number)

        return self._start(fetch)


class FeedViewModel(ContentService[FeedItem]):
    """Owns the mosque news items and supports title search."""

    name = "news-feed"

    def __init__(self, fetcher: FeedFetcher, runner: TaskRunner, feed_url: str = DEFAULT_FEED_URL) -> None:
        super().__init__(runner)
        self._fetcher = fetcher
        self.feed_url = feed_url

    def load(self) -> bool:
        if self.is_loading:
            LOGGER.debug("%s: load already in progress", self.name)
            return False

        def fetch() -> List[FeedItem]:
            return self._fetcher.fetch_feed(self.feed_url)

        return self._start(fetch)

    def search(self, text: str) -> List[FeedItem]:
        needle = text.strip().lower()
        if not needle:
            return list(self.items)
        return [item for item in self.items if needle in item.title.lower()]


__all__ = [
    "ContentService",
    "FeedViewModel",
    "LoadState",
    "ServiceState",
    "SurahCatalogService",
    "SurahDetailService",
    "TaskRunner",
]
