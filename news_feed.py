"""Mosque news feed retrieval and parsing."""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

import feedparser
import pytz
import requests

from errors import FetchError, ParseError

LOGGER = logging.getLogger(__name__)

DEFAULT_FEED_URL = "https://rss.app/feeds/gXqCbgAZMykAZE7J.xml"


@dataclass(frozen=True)
class FeedItem:
    """One news entry from the RSS document."""

    title: str
    link: str
    published_at: datetime
    summary: str = ""


class FeedFetcher:
    """Downloads an RSS document and turns its items into :class:`FeedItem` records."""

    def __init__(self, timeout: float = 10, session: Optional[requests.Session] = None) -> None:
        self.timeout = timeout
        self._session = session or requests.Session()

    def fetch_feed(self, url: str) -> List[FeedItem]:
        LOGGER.debug("Requesting news feed %s (timeout=%s)", url, self.timeout)
        try:
            response = self._session.get(url, timeout=self.timeout)
            LOGGER.debug("News feed response status: %s", response.status_code)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise FetchError(f"Request to {url} failed: {exc}", cause=exc) from exc
        return parse_feed(response.content)


def parse_feed(document: Optional[bytes]) -> List[FeedItem]:
    """Parse an RSS document.

    Raises :class:`ParseError` when the document is empty or not a feed at
    all. Non-RSS feeds (Atom, JSON) are ignored and produce an empty list,
    and items without a title, link or publication date are dropped.
    """
    if not document or not document.strip():
        raise ParseError("Feed document is empty")

    parsed = feedparser.parse(io.BytesIO(document))
    version = parsed.get("version", "")
    if not version and not parsed.entries:
        raise ParseError(f"Feed document could not be parsed: {parsed.get('bozo_exception', 'unknown format')}")
    if parsed.bozo:
        LOGGER.warning("Feed parsed with issues: %s", parsed.get("bozo_exception"))
    if not version.startswith("rss"):
        LOGGER.warning("Ignoring unsupported feed format %r", version or "unknown")
        return []

    items: List[FeedItem] = []
    for entry in parsed.entries:
        item = _item_from_entry(entry)
        if item is None:
            LOGGER.debug("Skipping incomplete feed entry %r", entry.get("title"))
            continue
        items.append(item)

    LOGGER.debug("Parsed %d of %d feed entries", len(items), len(parsed.entries))
    return items


def _item_from_entry(entry) -> Optional[FeedItem]:
    title = (entry.get("title") or "").strip()
    link = (entry.get("link") or "").strip()
    published_at = _entry_timestamp(entry)
    if not title or not link or published_at is None:
        return None
    return FeedItem(
        title=title,
        link=link,
        published_at=published_at,
        summary=entry.get("summary") or "",
    )


def _entry_timestamp(entry) -> Optional[datetime]:
    for field in ("published_parsed", "updated_parsed"):
        ts = entry.get(field)
        if ts:
            try:
                return pytz.UTC.localize(datetime(*ts[:6]))
            except (TypeError, ValueError):
                LOGGER.debug("Failed to convert %s=%s", field, ts)
    return None


__all__ = ["DEFAULT_FEED_URL", "FeedFetcher", "FeedItem", "parse_feed"]
