"""Client for the remote Quran content API."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import requests

from errors import FetchError, InvalidArgument

LOGGER = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.alquran.cloud/v1/surah"
DEFAULT_AUDIO_EDITION = "ar.alafasy"
FIRST_SURAH = 1
LAST_SURAH = 114


class RevelationType(Enum):
    MECCAN = "Meccan"
    MEDINAN = "Medinan"

    @classmethod
    def parse(cls, value: object) -> "RevelationType":
        token = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == token:
                return member
        raise ValueError(f"Unknown revelation type: {value!r}")


@dataclass(frozen=True)
class Surah:
    number: int
    name: str
    english_name: str
    revelation_type: RevelationType

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "name": self.name,
            "englishName": self.english_name,
            "revelationType": self.revelation_type.value,
        }

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "Surah":
        return cls(
            number=validate_surah_number(record["number"]),
            name=_require_str(record, "name"),
            english_name=_require_str(record, "englishName"),
            revelation_type=RevelationType.parse(record["revelationType"]),
        )


@dataclass(frozen=True)
class Ayah:
    id: int
    text: str
    audio: str

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "Ayah":
        ayah_id = record.get("id", record.get("numberInSurah"))
        if ayah_id is None:
            raise KeyError("id")
        if isinstance(ayah_id, bool) or not isinstance(ayah_id, int):
            raise TypeError(f"Verse id must be an integer, got {ayah_id!r}")
        return cls(id=ayah_id, text=_require_str(record, "text"), audio=_require_str(record, "audio"))


def _require_str(record: Dict[str, Any], key: str) -> str:
    value = record[key]
    if not isinstance(value, str):
        raise TypeError(f"Field {key!r} must be a string, got {value!r}")
    return value


def dump_catalog(surahs: Iterable[Surah]) -> str:
    """Serialize a catalog to a JSON array using the API field names."""
    return json.dumps([surah.to_dict() for surah in surahs], ensure_ascii=False)


def load_catalog(text: str) -> List[Surah]:
    """Parse a JSON array produced by :func:`dump_catalog`, keeping its order."""
    return [Surah.from_dict(record) for record in json.loads(text)]


def validate_surah_number(number: object) -> int:
    if isinstance(number, bool) or not isinstance(number, int):
        raise InvalidArgument(f"Surah number must be an integer, got {number!r}")
    if not FIRST_SURAH <= number <= LAST_SURAH:
        raise InvalidArgument(f"Surah number {number} outside {FIRST_SURAH}..{LAST_SURAH}")
    return number


class QuranApiClient:
    """Fetches the surah catalog and per-surah verses from the content API."""

    def __init__(
        self,
        api_base: str = DEFAULT_API_BASE,
        audio_edition: Optional[str] = DEFAULT_AUDIO_EDITION,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self.audio_edition = audio_edition or None
        self.timeout = timeout
        self._session = session or requests.Session()

    def fetch_surah_list(self) -> List[Surah]:
        payload = self._get_json(self.api_base)
        records = self._unwrap(payload)
        if not isinstance(records, list):
            raise FetchError("Surah catalog payload is not a list")
        try:
            surahs = [Surah.from_dict(record) for record in records]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise FetchError(f"Malformed surah record: {exc}", cause=exc) from exc
        seen = set()
        for surah in surahs:
            if surah.number in seen:
                raise FetchError(f"Duplicate surah number {surah.number} in catalog")
            seen.add(surah.number)
        LOGGER.debug("Parsed %d surahs from catalog", len(surahs))
        return surahs

    def fetch_surah_detail(self, number: int) -> List[Ayah]:
        number = validate_surah_number(number)
        url = f"{self.api_base}/{number}"
        if self.audio_edition:
            url = f"{url}/{self.audio_edition}"

        records = self._unwrap(self._get_json(url))
        if isinstance(records, dict):
            records = records.get("ayahs")
        if not isinstance(records, list):
            raise FetchError(f"Surah {number} payload has no verse list")
        try:
            ayahs = sorted((Ayah.from_dict(record) for record in records), key=lambda ayah: ayah.id)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise FetchError(f"Malformed verse record in surah {number}: {exc}", cause=exc) from exc
        if not ayahs:
            raise FetchError(f"Surah {number} returned no verses")
        LOGGER.debug("Parsed %d verses for surah %d", len(ayahs), number)
        return ayahs

    # ------------------------------------------------------------------
    def _get_json(self, url: str) -> Any:
        LOGGER.debug("Requesting %s (timeout=%s)", url, self.timeout)
        try:
            response = self._session.get(url, timeout=self.timeout)
            LOGGER.debug("Quran API response status: %s", response.status_code)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            raise FetchError(f"Request to {url} failed: {exc}", cause=exc) from exc
        except ValueError as exc:
            raise FetchError(f"Invalid JSON from {url}: {exc}", cause=exc) from exc

    @staticmethod
    def _unwrap(payload: Any) -> Any:
        if isinstance(payload, dict) and "data" in payload:
            code = payload.get("code", 200)
            if code != 200:
                raise FetchError(f"Invalid response from Quran API: {payload.get('status')}")
            return payload["data"]
        return payload


__all__ = [
    "Ayah",
    "QuranApiClient",
    "RevelationType",
    "Surah",
    "dump_catalog",
    "load_catalog",
    "validate_surah_number",
]
