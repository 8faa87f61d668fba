from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import logging
import math
from typing import Any, Awaitable, Callable, Protocol

import httpx

_LOGGER = logging.getLogger(__name__)

UNSET_COORDINATE = 1000.0
EARTH_RADIUS_M = 6_371_008.8
METERS_PER_MILE = 1609.34


@dataclass(frozen=True, slots=True)
class Coordinate:
    latitude: float
    longitude: float
    city: str = field(default="", compare=False)

    @classmethod
    def unset(cls) -> "Coordinate":
        return cls(UNSET_COORDINATE, UNSET_COORDINATE)

    @property
    def is_unset(self) -> bool:
        return self.latitude == UNSET_COORDINATE or self.longitude == UNSET_COORDINATE

    def as_tuple(self) -> tuple[float, float]:
        return self.latitude, self.longitude

    def label(self) -> str:
        return f"({self.latitude:.4f}, {self.longitude:.4f})"

    def with_city(self, city: str) -> "Coordinate":
        return Coordinate(self.latitude, self.longitude, city)

    def to_dict(self) -> dict[str, Any]:
        return {"latitude": self.latitude, "longitude": self.longitude, "city": self.city}

    @classmethod
    def from_dict(cls, values: dict[str, Any]) -> "Coordinate":
        return cls(float(values["latitude"]), float(values["longitude"]), str(values.get("city", "")))


def distance_m(first: Coordinate, second: Coordinate) -> float:
    """Great circle distance in metres (haversine)."""
    lat1, lon1 = map(math.radians, first.as_tuple())
    lat2, lon2 = map(math.radians, second.as_tuple())
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


class LocationSource(Protocol):
    async def current(self) -> Coordinate | None:
        ...


class Geocoder(Protocol):
    async def reverse(self, coordinate: Coordinate) -> str | None:
        ...


class StaticLocationSource:
    def __init__(self, coordinate: Coordinate | None) -> None:
        self.coordinate = coordinate

    async def current(self) -> Coordinate | None:
        return self.coordinate


class IpLocationSource:
    """Resolve the user's approximate location via an IP geolocation service."""

    def __init__(
        self,
        endpoint: str = "https://ipapi.co/json/",
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self._client = client

    async def current(self) -> Coordinate | None:
        try:
            if self._client is not None:
                response = await self._client.get(self.endpoint, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.endpoint)
            response.raise_for_status()
            data: dict[str, Any] = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            _LOGGER.debug("IP geolocation failed: %s", exc)
            return None

        lat = data.get("latitude") or data.get("lat")
        lon = data.get("longitude") or data.get("lon")
        if lat is None or lon is None:
            return None
        city = data.get("city") or data.get("region") or ""
        region = data.get("region") or data.get("country_name") or ""
        if city and region and region != city:
            city = f"{city}, {region}"
        try:
            return Coordinate(latitude=float(lat), longitude=float(lon), city=str(city))
        except (TypeError, ValueError):
            return None


@dataclass(slots=True)
class _PlaceEntry:
    coordinate: Coordinate
    name: str
    stored_at: datetime


class PlaceNameCache:
    """Remembers the last reverse geocoded place name.

    A lookup hits when the requested coordinate is within ``radius_m`` of the
    cached one and the entry is younger than ``ttl``.
    """

    def __init__(
        self,
        geocoder: Geocoder | None = None,
        radius_m: float = 100.0,
        ttl: timedelta = timedelta(days=1),
        attempts: int = 3,
        backoff_base: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.geocoder = geocoder
        self.radius_m = radius_m
        self.ttl = ttl
        self.attempts = max(1, attempts)
        self.backoff_base = backoff_base
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entry: _PlaceEntry | None = None

    def lookup(self, coordinate: Coordinate) -> str | None:
        entry = self._entry
        if entry is None:
            return None
        if self._clock() - entry.stored_at > self.ttl:
            return None
        if distance_m(entry.coordinate, coordinate) >= self.radius_m:
            return None
        return entry.name

    def remember(self, coordinate: Coordinate, name: str) -> None:
        self._entry = _PlaceEntry(coordinate=coordinate, name=name, stored_at=self._clock())

    async def name_for(self, coordinate: Coordinate) -> str:
        cached = self.lookup(coordinate)
        if cached:
            return cached
        if self.geocoder is None:
            return coordinate.city or coordinate.label()
        for attempt in range(self.attempts):
            try:
                name = await self.geocoder.reverse(coordinate)
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Geocode attempt %s failed: %s", attempt + 1, exc)
                name = None
            if name:
                self.remember(coordinate, name)
                return name
            if attempt + 1 < self.attempts:
                await self._sleep(self.backoff_base * (2 ** attempt))
        return coordinate.city or coordinate.label()
