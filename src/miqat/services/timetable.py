from __future__ import annotations

from datetime import date, tzinfo
import json
import logging
from pathlib import Path
import re
from typing import Any, Protocol

import httpx

from ..config import DEFAULT_ENDPOINT
from ..models import DayTimetable, MonthlyTimetable
from ..timeutils import from_unix, to_unix
from .geolocation import Coordinate

_LOGGER = logging.getLogger(__name__)

MONTH_CACHE_KEY = "timetable.month"


class ProviderFailure(RuntimeError):
    """The monthly timetable could not be obtained from the provider."""


class NetworkError(ProviderFailure):
    pass


class DecodeError(ProviderFailure):
    pass


class KeyValueStore(Protocol):
    def get(self, key: str) -> bytes | None:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...


class MemoryStore:
    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self.entries: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> bytes | None:
        return self.entries.get(key)

    def set(self, key: str, value: bytes) -> None:
        self.entries[key] = value


class DirectoryStore:
    """Stores each key as its own file below ``root``."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = root or (Path.home() / ".cache" / "miqat")

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.root / f"{safe}.json"

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def set(self, key: str, value: bytes) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(value)
        tmp.replace(path)


def month_from_payload(payload: dict[str, Any], tz: tzinfo) -> MonthlyTimetable:
    """Build a MonthlyTimetable from the provider's JSON shape.

    Raises ``KeyError``, ``TypeError``, ``ValueError`` or ``OverflowError`` on
    malformed input.
    """
    days = sorted(
        (
            DayTimetable(
                day=int(item["day"]),
                fajr=from_unix(item["fajr"], tz),
                sunrise=from_unix(item["syuruk"], tz),
                dhuhr=from_unix(item["dhuhr"], tz),
                asr=from_unix(item["asr"], tz),
                maghrib=from_unix(item["maghrib"], tz),
                isha=from_unix(item["isha"], tz),
            )
            for item in payload["prayers"]
        ),
        key=lambda entry: entry.day,
    )
    return MonthlyTimetable(
        year=int(payload["year"]),
        month=int(payload["month_number"]),
        zone=str(payload.get("zone", "")),
        days=tuple(days),
    )


def month_to_payload(month: MonthlyTimetable) -> dict[str, Any]:
    return {
        "zone": month.zone,
        "year": month.year,
        "month_number": month.month,
        "prayers": [
            {
                "day": entry.day,
                "fajr": to_unix(entry.fajr),
                "syuruk": to_unix(entry.sunrise),
                "dhuhr": to_unix(entry.dhuhr),
                "asr": to_unix(entry.asr),
                "maghrib": to_unix(entry.maghrib),
                "isha": to_unix(entry.isha),
            }
            for entry in month.days
        ],
    }


class TimetableProvider(Protocol):
    name: str

    async def fetch(self, coordinate: Coordinate, anchor: date) -> MonthlyTimetable:
        ...


class WaktuSolatProvider:
    name = "waktusolat"

    def __init__(
        self,
        tz: tzinfo,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.tz = tz
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self._client = client

    def url_for(self, coordinate: Coordinate) -> str:
        return f"{self.endpoint}/{coordinate.latitude:.4f}/{coordinate.longitude:.4f}"

    async def fetch(self, coordinate: Coordinate, anchor: date) -> MonthlyTimetable:
        params = {"year": anchor.year, "month": anchor.month}
        try:
            if self._client is not None:
                response = await self._client.get(self.url_for(coordinate), params=params, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.url_for(coordinate), params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NetworkError(f"Timetable request failed: {exc}") from exc
        try:
            return month_from_payload(response.json(), self.tz)
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as exc:
            raise DecodeError(f"Unexpected response from timetable API: {exc}") from exc


class MonthlyTimetableCache:
    """Holds a single month of timetable data, persisted in a key-value store."""

    def __init__(self, store: KeyValueStore, tz: tzinfo, key: str = MONTH_CACHE_KEY) -> None:
        self.backend = store
        self.tz = tz
        self.key = key
        self._month: MonthlyTimetable | None = None
        self._loaded = False

    def _load(self) -> MonthlyTimetable | None:
        if self._loaded:
            return self._month
        self._loaded = True
        raw = self.backend.get(self.key)
        if raw is None:
            return None
        try:
            self._month = month_from_payload(json.loads(raw.decode("utf-8")), self.tz)
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as exc:
            _LOGGER.debug("Discarding unreadable cached month: %s", exc)
            self._month = None
        return self._month

    def get(self, day: date) -> DayTimetable | None:
        month = self._load()
        if month is None or not month.covers(day):
            return None
        return month.entry(day.day)

    def store(self, month: MonthlyTimetable) -> None:
        self._month = month
        self._loaded = True
        payload = json.dumps(month_to_payload(month)).encode("utf-8")
        self.backend.set(self.key, payload)
