import threading
from datetime import datetime
from typing import Any, Callable, List, Tuple

import pytest
import pytz

from content_services import (
    FeedViewModel,
    LoadState,
    ServiceState,
    SurahCatalogService,
    SurahDetailService,
)
from errors import FetchError, InvalidArgument, ParseError
from news_feed import FeedItem
from quran_api import Ayah, RevelationType, Surah, validate_surah_number


class _ManualRunner:
    """Holds submitted tasks until the test resolves them."""

    def __init__(self) -> None:
        self.pending: List[Tuple[Callable[[], Any], Callable[[Any], None], Callable[[Exception], None]]] = []

    def submit(self, func, on_success, on_error) -> None:
        self.pending.append((func, on_success, on_error))

    def run(self, index: int = 0) -> None:
        func, on_success, on_error = self.pending.pop(index)
        try:
            result = func()
        except Exception as exc:
            on_error(exc)
        else:
            on_success(result)

    def run_all(self) -> None:
        while self.pending:
            self.run()


class _FakeQuranClient:
    def __init__(self) -> None:
        self.catalog_responses: List[Any] = []
        self.catalog_calls = 0
        self.detail_calls: List[int] = []

    def fetch_surah_list(self) -> List[Surah]:
        self.catalog_calls += 1
        response = self.catalog_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def fetch_surah_detail(self, number: int) -> List[Ayah]:
        validate_surah_number(number)
        self.detail_calls.append(number)
        return [Ayah(i, f"{number}:{i}", f"https://cdn.example.org/{number}/{i}.mp3") for i in (1, 2, 3)]


class _FakeFetcher:
    def __init__(self, responses: List[Any]) -> None:
        self.responses = responses
        self.urls: List[str] = []

    def fetch_feed(self, url: str) -> List[FeedItem]:
        self.urls.append(url)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


FIRST_CATALOG = [
    Surah(1, "الفاتحة", "Al-Faatiha", RevelationType.MECCAN),
    Surah(2, "البقرة", "Al-Baqara", RevelationType.MEDINAN),
]
SECOND_CATALOG = [Surah(112, "الإخلاص", "Al-Ikhlaas", RevelationType.MECCAN)]


def feed_item(title: str) -> FeedItem:
    return FeedItem(
        title=title,
        link=f"https://example.org/{title.lower().replace(' ', '-')}",
        published_at=pytz.UTC.localize(datetime(2022, 8, 12, 9, 30)),
    )


def test_catalog_starts_idle():
    service = SurahCatalogService(_FakeQuranClient(), _ManualRunner())

    assert service.state == ServiceState(LoadState.IDLE)
    assert service.items == ()
    assert not service.is_loading


def test_catalog_load_transitions_to_loaded():
    client = _FakeQuranClient()
    client.catalog_responses = [FIRST_CATALOG]
    runner = _ManualRunner()
    service = SurahCatalogService(client, runner)
    seen: List[ServiceState] = []
    service.subscribe(seen.append)

    assert service.load() is True
    assert service.is_loading
    runner.run_all()

    assert [state.status for state in seen] == [LoadState.LOADING, LoadState.LOADED]
    assert service.items == tuple(FIRST_CATALOG)
    assert service.state.error is None
    assert not service.is_loading


def test_catalog_failure_keeps_previous_items():
    client = _FakeQuranClient()
    error = FetchError("offline")
    client.catalog_responses = [FIRST_CATALOG, error]
    runner = _ManualRunner()
    service = SurahCatalogService(client, runner)

    service.load()
    runner.run_all()
    service.load()
    runner.run_all()

    assert service.state.status is LoadState.FAILED
    assert service.state.error is error
    assert service.items == tuple(FIRST_CATALOG)
    assert not service.is_loading


def test_catalog_duplicate_load_is_ignored_while_loading():
    client = _FakeQuranClient()
    client.catalog_responses = [FIRST_CATALOG, SECOND_CATALOG]
    runner = _ManualRunner()
    service = SurahCatalogService(client, runner)

    assert service.load() is True
    assert service.load() is False
    assert len(runner.pending) == 1
    runner.run_all()

    assert client.catalog_calls == 1
    assert service.state.status is LoadState.LOADED
    assert service.items == tuple(FIRST_CATALOG)


def test_catalog_reload_after_completion_issues_new_request():
    client = _FakeQuranClient()
    client.catalog_responses = [FIRST_CATALOG, SECOND_CATALOG]
    runner = _ManualRunner()
    service = SurahCatalogService(client, runner)

    service.load()
    runner.run_all()
    first_request = service.state.request_id
    service.load()
    runner.run_all()

    assert service.state.request_id == first_request + 1
    assert service.items == tuple(SECOND_CATALOG)


def test_unsubscribe_stops_notifications():
    client = _FakeQuranClient()
    client.catalog_responses = [FIRST_CATALOG]
    runner = _ManualRunner()
    service = SurahCatalogService(client, runner)
    seen: List[ServiceState] = []
    unsubscribe = service.subscribe(seen.append)

    service.load()
    unsubscribe()
    runner.run_all()

    assert [state.status for state in seen] == [LoadState.LOADING]


def test_failing_listener_does_not_block_others():
    client = _FakeQuranClient()
    client.catalog_responses = [FIRST_CATALOG]
    runner = _ManualRunner()
    service = SurahCatalogService(client, runner)
    seen: List[LoadState] = []

    def broken(_state: ServiceState) -> None:
        raise RuntimeError("listener bug")

    service.subscribe(broken)
    service.subscribe(lambda state: seen.append(state.status))
    service.load()
    runner.run_all()

    assert seen == [LoadState.LOADING, LoadState.LOADED]


def test_result_applied_from_other_thread_is_rejected():
    client = _FakeQuranClient()
    client.catalog_responses = [FIRST_CATALOG]
    runner = _ManualRunner()
    service = SurahCatalogService(client, runner)
    service.load()
    errors: List[BaseException] = []

    def apply_off_thread() -> None:
        try:
            runner.run()
        except RuntimeError as exc:
            errors.append(exc)

    worker = threading.Thread(target=apply_off_thread)
    worker.start()
    worker.join()

    assert len(errors) == 1
    assert service.is_loading


def test_detail_load_replaces_verses():
    runner = _ManualRunner()
    service = SurahDetailService(_FakeQuranClient(), runner)

    service.load(1)
    runner.run_all()
    assert [ayah.text for ayah in service.items] == ["1:1", "1:2", "1:3"]

    service.load(2)
    assert service.is_loading
    assert service.surah_number == 2
    assert [ayah.text for ayah in service.items] == ["1:1", "1:2", "1:3"]
    runner.run_all()

    assert [ayah.text for ayah in service.items] == ["2:1", "2:2", "2:3"]


def test_detail_same_surah_while_loading_is_noop():
    client = _FakeQuranClient()
    runner = _ManualRunner()
    service = SurahDetailService(client, runner)

    assert service.load(18) is True
    assert service.load(18) is False
    runner.run_all()

    assert client.detail_calls == [18]


def test_detail_stale_response_is_discarded():
    client = _FakeQuranClient()
    runner = _ManualRunner()
    service = SurahDetailService(client, runner)
    seen: List[ServiceState] = []
    service.subscribe(seen.append)

    service.load(2)
    service.load(3)
    runner.run(1)
    runner.run(0)

    assert service.surah_number == 3
    assert service.state.status is LoadState.LOADED
    assert [ayah.text for ayah in service.items] == ["3:1", "3:2", "3:3"]
    assert [state.status for state in seen] == [LoadState.LOADING, LoadState.LOADING, LoadState.LOADED]


@pytest.mark.parametrize("number", [0, 115, "2", True])
def test_detail_invalid_number_raises_before_loading(number):
    client = _FakeQuranClient()
    runner = _ManualRunner()
    service = SurahDetailService(client, runner)
    seen: List[ServiceState] = []
    service.subscribe(seen.append)

    with pytest.raises(InvalidArgument):
        service.load(number)

    assert service.state == ServiceState(LoadState.IDLE)
    assert service.surah_number is None
    assert runner.pending == []
    assert seen == []
    assert client.detail_calls == []


def test_detail_invalid_number_keeps_current_surah():
    runner = _ManualRunner()
    service = SurahDetailService(_FakeQuranClient(), runner)
    service.load(36)
    runner.run_all()

    with pytest.raises(InvalidArgument):
        service.load(115)

    assert service.surah_number == 36
    assert service.state.status is LoadState.LOADED


class _RejectingRunner:
    """Refuses work the way a shut-down executor does."""

    def __init__(self) -> None:
        self.accept = False
        self.inner = _ManualRunner()

    def submit(self, func, on_success, on_error) -> None:
        if not self.accept:
            raise RuntimeError("cannot schedule new futures after shutdown")
        self.inner.submit(func, on_success, on_error)


def test_rejected_submit_marks_service_failed():
    client = _FakeQuranClient()
    client.catalog_responses = [FIRST_CATALOG]
    runner = _RejectingRunner()
    service = SurahCatalogService(client, runner)
    seen: List[LoadState] = []
    service.subscribe(lambda state: seen.append(state.status))

    assert service.load() is True

    assert seen == [LoadState.LOADING, LoadState.FAILED]
    assert isinstance(service.state.error, RuntimeError)
    assert not service.is_loading
    assert client.catalog_calls == 0

    runner.accept = True
    assert service.load() is True
    runner.inner.run_all()

    assert service.state.status is LoadState.LOADED
    assert service.items == tuple(FIRST_CATALOG)


def test_rejected_submit_does_not_block_next_detail_load():
    runner = _RejectingRunner()
    service = SurahDetailService(_FakeQuranClient(), runner)

    service.load(5)
    assert service.state.status is LoadState.FAILED

    runner.accept = True
    assert service.load(5) is True
    assert len(runner.inner.pending) == 1


def test_feed_load_uses_configured_url():
    fetcher = _FakeFetcher([[feed_item("Jumuah timings"), feed_item("Eid prayer")]])
    runner = _ManualRunner()
    view_model = FeedViewModel(fetcher, runner, feed_url="https://rss.app/feeds/abc.xml")

    view_model.load()
    runner.run_all()

    assert fetcher.urls == ["https://rss.app/feeds/abc.xml"]
    assert len(view_model.items) == 2
    assert view_model.state.status is LoadState.LOADED


def test_feed_replaces_collection_on_each_fetch():
    fetcher = _FakeFetcher([[feed_item("Old news")], []])
    runner = _ManualRunner()
    view_model = FeedViewModel(fetcher, runner)

    view_model.load()
    runner.run_all()
    view_model.load()
    runner.run_all()

    assert view_model.items == ()
    assert view_model.state.status is LoadState.LOADED


def test_feed_parse_failure_leaves_empty_list():
    fetcher = _FakeFetcher([ParseError("not a feed")])
    runner = _ManualRunner()
    view_model = FeedViewModel(fetcher, runner)

    view_model.load()
    runner.run_all()

    assert view_model.state.status is LoadState.FAILED
    assert view_model.items == ()


@pytest.mark.parametrize(
    "text, expected",
    [
        ("", ["Jumuah timings", "Eid prayer", "Quran classes"]),
        ("  ", ["Jumuah timings", "Eid prayer", "Quran classes"]),
        ("EID", ["Eid prayer"]),
        ("a", ["Jumuah timings", "Eid prayer", "Quran classes"]),
        ("ramadan", []),
    ],
)
def test_feed_search_matches_titles(text, expected):
    fetcher = _FakeFetcher([[feed_item(title) for title in ("Jumuah timings", "Eid prayer", "Quran classes")]])
    runner = _ManualRunner()
    view_model = FeedViewModel(fetcher, runner)
    view_model.load()
    runner.run_all()

    assert [item.title for item in view_model.search(text)] == expected
