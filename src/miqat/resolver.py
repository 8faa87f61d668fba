from __future__ import annotations

from datetime import date
import logging
from typing import Protocol

from .config import OffsetConfiguration
from .models import DayTimetable, Prayer, PrayerKey, TravelState
from .timeutils import shift_minutes

_LOGGER = logging.getLogger(__name__)

FRIDAY = 4


class DayLookup(Protocol):
    def get(self, day: date) -> DayTimetable | None:
        ...


class PrayerTimeResolver:
    """Turns cached timetable rows into the prayers shown for a day.

    Offsets are applied per prayer; on Fridays Dhuhr becomes Jumuah, and while
    traveling the display list combines Dhuhr with Asr and Maghrib with Isha.
    """

    def __init__(self, cache: DayLookup) -> None:
        self.cache = cache

    def resolve(
        self,
        day: date,
        offsets: OffsetConfiguration,
        travel_state: TravelState,
        full_list: bool = False,
    ) -> list[Prayer] | None:
        base = self.cache.get(day)
        if base is None:
            return None
        if not base.is_well_formed():
            _LOGGER.warning("Timetable for %s is not in increasing order; using it as provided", day)

        fajr = Prayer.build(PrayerKey.FAJR, shift_minutes(base.fajr, offsets.fajr))
        sunrise = Prayer.build(PrayerKey.SUNRISE, shift_minutes(base.sunrise, offsets.sunrise))

        if travel_state.is_traveling and not full_list:
            return [
                fajr,
                sunrise,
                Prayer.build(PrayerKey.DHUHR_ASR, shift_minutes(base.dhuhr, offsets.dhuhr_asr)),
                Prayer.build(PrayerKey.MAGHRIB_ISHA, shift_minutes(base.maghrib, offsets.maghrib_isha)),
            ]

        noon_key = PrayerKey.JUMUAH if day.weekday() == FRIDAY else PrayerKey.DHUHR
        return [
            fajr,
            sunrise,
            Prayer.build(noon_key, shift_minutes(base.dhuhr, offsets.dhuhr)),
            Prayer.build(PrayerKey.ASR, shift_minutes(base.asr, offsets.asr)),
            Prayer.build(PrayerKey.MAGHRIB, shift_minutes(base.maghrib, offsets.maghrib)),
            Prayer.build(PrayerKey.ISHA, shift_minutes(base.isha, offsets.isha)),
        ]

    def resolve_pair(
        self,
        day: date,
        offsets: OffsetConfiguration,
        travel_state: TravelState,
    ) -> tuple[list[Prayer], list[Prayer]] | None:
        """Display list and full list for ``day``, or None when either is unresolved."""
        prayers = self.resolve(day, offsets, travel_state)
        full = self.resolve(day, offsets, travel_state, full_list=True)
        if prayers is None or full is None:
            return None
        return prayers, full
