from __future__ import annotations

import json
import logging
from typing import Any, Callable, TypeVar

from ..models import DaySnapshot, TravelState
from .geolocation import Coordinate
from .timetable import KeyValueStore

_LOGGER = logging.getLogger(__name__)

HOME_KEY = "location.home"
CURRENT_KEY = "location.current"
TRAVEL_KEY = "travel.state"
SNAPSHOT_KEY = "prayers.snapshot"

T = TypeVar("T")


class StateStore:
    """JSON records kept in a key-value store. Unreadable records read as absent."""

    def __init__(self, backend: KeyValueStore) -> None:
        self.backend = backend

    def _read(self, key: str, decode: Callable[[Any], T]) -> T | None:
        raw = self.backend.get(key)
        if raw is None:
            return None
        try:
            return decode(json.loads(raw.decode("utf-8")))
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            _LOGGER.debug("Failed to decode %s: %s", key, exc)
            return None

    def _write(self, key: str, value: Any) -> None:
        self.backend.set(key, json.dumps(value, ensure_ascii=False).encode("utf-8"))

    def home(self) -> Coordinate | None:
        return self._read(HOME_KEY, Coordinate.from_dict)

    def save_home(self, coordinate: Coordinate) -> None:
        self._write(HOME_KEY, coordinate.to_dict())

    def current(self) -> Coordinate | None:
        return self._read(CURRENT_KEY, Coordinate.from_dict)

    def save_current(self, coordinate: Coordinate) -> None:
        self._write(CURRENT_KEY, coordinate.to_dict())

    def travel_state(self) -> TravelState:
        return self._read(TRAVEL_KEY, TravelState.from_dict) or TravelState()

    def save_travel_state(self, state: TravelState) -> None:
        self._write(TRAVEL_KEY, state.to_dict())

    def snapshot(self) -> DaySnapshot | None:
        return self._read(SNAPSHOT_KEY, DaySnapshot.from_dict)

    def save_snapshot(self, snapshot: DaySnapshot) -> None:
        self._write(SNAPSHOT_KEY, snapshot.to_dict())
