"""Loading of the JSON configuration file."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from news_feed import DEFAULT_FEED_URL, FeedFetcher
from quran_api import DEFAULT_API_BASE, DEFAULT_AUDIO_EDITION, QuranApiClient

LOGGER = logging.getLogger(__name__)

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class AppConfig:
    api_base: str = DEFAULT_API_BASE
    audio_edition: str = DEFAULT_AUDIO_EDITION
    feed_url: str = DEFAULT_FEED_URL
    timeout: float = 10.0
    log_level: str = "INFO"


def load_config(path: Union[str, Path, None]) -> AppConfig:
    """Read ``path`` and return the configuration, using defaults for anything missing."""
    if path is None:
        return AppConfig()
    path = Path(path)
    if not path.exists():
        LOGGER.debug("Config file %s not found; using defaults", path)
        return AppConfig()
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict):
        LOGGER.warning("Config file %s does not contain an object; using defaults", path)
        return AppConfig()
    return build_config(payload)


def build_config(payload: Dict[str, Any]) -> AppConfig:
    config = AppConfig()

    api_base = payload.get("api_base")
    if isinstance(api_base, str) and api_base.strip():
        config.api_base = api_base.strip()

    edition = payload.get("audio_edition")
    if isinstance(edition, str):
        config.audio_edition = edition.strip()

    feed_url = payload.get("feed_url")
    if isinstance(feed_url, str) and feed_url.strip():
        config.feed_url = feed_url.strip()

    timeout = _safe_float(payload.get("timeout"))
    if timeout is not None and timeout > 0:
        config.timeout = timeout
    elif "timeout" in payload:
        LOGGER.warning("Invalid timeout %r; falling back to %s", payload.get("timeout"), config.timeout)

    level = str(payload.get("log_level", config.log_level)).upper()
    if level in LOG_LEVELS:
        config.log_level = level
    else:
        LOGGER.warning("Unknown log level %r; falling back to %s", payload.get("log_level"), config.log_level)

    return config


def build_quran_client(config: AppConfig) -> QuranApiClient:
    return QuranApiClient(
        api_base=config.api_base,
        audio_edition=config.audio_edition or None,
        timeout=config.timeout,
    )


def build_feed_fetcher(config: AppConfig) -> FeedFetcher:
    return FeedFetcher(timeout=config.timeout)


def _safe_float(value: Optional[object]) -> Optional[float]:
    try:
        if value in (None, "") or isinstance(value, bool):
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


__all__ = ["AppConfig", "build_config", "build_feed_fetcher", "build_quran_client", "load_config"]
