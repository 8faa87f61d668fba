from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Iterable


class PrayerKey(str, Enum):
    FAJR = "Fajr"
    SUNRISE = "Sunrise"
    DHUHR = "Dhuhr"
    ASR = "Asr"
    MAGHRIB = "Maghrib"
    ISHA = "Isha"
    DHUHR_ASR = "Dhuhr/Asr"
    MAGHRIB_ISHA = "Maghrib/Isha"
    JUMUAH = "Jumuah"

    @property
    def preference_slot(self) -> "PrayerKey":
        """Base prayer whose notification preference governs this key."""
        return _PREFERENCE_SLOTS.get(self, self)


BASE_PRAYERS: tuple[PrayerKey, ...] = (
    PrayerKey.FAJR,
    PrayerKey.SUNRISE,
    PrayerKey.DHUHR,
    PrayerKey.ASR,
    PrayerKey.MAGHRIB,
    PrayerKey.ISHA,
)

_PREFERENCE_SLOTS = {
    PrayerKey.JUMUAH: PrayerKey.DHUHR,
    PrayerKey.DHUHR_ASR: PrayerKey.DHUHR,
    PrayerKey.MAGHRIB_ISHA: PrayerKey.MAGHRIB,
}


@dataclass(frozen=True, slots=True)
class PrayerInfo:
    arabic: str
    transliteration: str
    english: str
    icon: str
    rakah: str
    sunnah_before: str
    sunnah_after: str


PRAYER_INFO: dict[PrayerKey, PrayerInfo] = {
    PrayerKey.FAJR: PrayerInfo("الفَجْر", "Fajr", "Dawn", "sunrise", "2", "2", "0"),
    PrayerKey.SUNRISE: PrayerInfo("الشُرُوق", "Shurooq", "Sunrise", "sunrise.fill", "0", "0", "0"),
    PrayerKey.DHUHR: PrayerInfo("الظُهْر", "Dhuhr", "Noon", "sun.max", "4", "2 and 2", "2"),
    PrayerKey.ASR: PrayerInfo("العَصْر", "Asr", "Afternoon", "sun.min", "4", "0", "0"),
    PrayerKey.MAGHRIB: PrayerInfo("المَغْرِب", "Maghrib", "Sunset", "sunset", "3", "0", "2"),
    PrayerKey.ISHA: PrayerInfo("العِشَاء", "Isha", "Night", "moon", "4", "0", "2"),
    PrayerKey.DHUHR_ASR: PrayerInfo(
        "الظُهْر وَالْعَصْر", "Dhuhr/Asr", "Daytime", "sun.max", "2 and 2", "0", "0"
    ),
    PrayerKey.MAGHRIB_ISHA: PrayerInfo(
        "المَغْرِب وَالْعِشَاء", "Maghrib/Isha", "Nighttime", "sunset", "3 and 2", "0", "0"
    ),
    PrayerKey.JUMUAH: PrayerInfo("الجُمُعَة", "Jumuah", "Friday", "sun.max.fill", "2", "0", "2 and 2"),
}


@dataclass(frozen=True, slots=True)
class Prayer:
    """A resolved prayer. Equality and hashing only consider key and instant."""

    key: PrayerKey
    time: datetime
    info: PrayerInfo = field(compare=False, repr=False)

    @classmethod
    def build(cls, key: PrayerKey, moment: datetime) -> "Prayer":
        return cls(key=key, time=moment, info=PRAYER_INFO[key])

    @property
    def name_arabic(self) -> str:
        return self.info.arabic

    @property
    def name_transliteration(self) -> str:
        return self.info.transliteration

    @property
    def name_english(self) -> str:
        return self.info.english

    @property
    def day(self) -> date:
        return self.time.date()


@dataclass(frozen=True, slots=True)
class DayTimetable:
    day: int
    fajr: datetime
    sunrise: datetime
    dhuhr: datetime
    asr: datetime
    maghrib: datetime
    isha: datetime

    def instants(self) -> tuple[datetime, ...]:
        return (self.fajr, self.sunrise, self.dhuhr, self.asr, self.maghrib, self.isha)

    def is_well_formed(self) -> bool:
        values = self.instants()
        return all(earlier < later for earlier, later in zip(values, values[1:]))


@dataclass(frozen=True, slots=True)
class MonthlyTimetable:
    year: int
    month: int
    zone: str
    days: tuple[DayTimetable, ...]

    def __post_init__(self) -> None:
        numbers = [entry.day for entry in self.days]
        if numbers != list(range(1, len(numbers) + 1)):
            raise ValueError(f"Day numbers for {self.year}-{self.month:02d} are not contiguous from 1")

    def covers(self, day: date) -> bool:
        return day.year == self.year and day.month == self.month

    def entry(self, day_number: int) -> DayTimetable | None:
        if 1 <= day_number <= len(self.days):
            return self.days[day_number - 1]
        return None


class TravelTransition(str, Enum):
    NONE = "none"
    TURNED_ON = "turned_on"
    TURNED_OFF = "turned_off"


@dataclass(frozen=True, slots=True)
class TravelState:
    is_traveling: bool = False
    automatic_enabled: bool = True
    last_auto_transition: TravelTransition = TravelTransition.NONE
    manual_override_pending: bool = False

    def with_changes(self, **changes) -> "TravelState":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, object]:
        return {
            "is_traveling": self.is_traveling,
            "automatic_enabled": self.automatic_enabled,
            "last_auto_transition": self.last_auto_transition.value,
            "manual_override_pending": self.manual_override_pending,
        }

    @classmethod
    def from_dict(cls, values: dict[str, object]) -> "TravelState":
        return cls(
            is_traveling=bool(values.get("is_traveling", False)),
            automatic_enabled=bool(values.get("automatic_enabled", True)),
            last_auto_transition=TravelTransition(values.get("last_auto_transition", "none")),
            manual_override_pending=bool(values.get("manual_override_pending", False)),
        )


class ReminderCategory(str, Enum):
    PRAYER = "prayer"
    NAGGING = "nagging"
    CALENDAR_EVENT = "calendar-event"
    REFRESH_NUDGE = "refresh-nudge"
    TRAVEL_NOTICE = "travel-notice"


@dataclass(frozen=True, slots=True)
class ScheduledReminder:
    id: str
    fire_at: datetime
    title: str
    body: str
    category: ReminderCategory


@dataclass(slots=True)
class DaySnapshot:
    """Last resolved day, used to decide whether a refresh must refetch."""

    day: date
    city: str
    prayers: list[Prayer] = field(default_factory=list)
    full_prayers: list[Prayer] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.prayers

    @property
    def is_grouped(self) -> bool:
        return any(prayer.key in _GROUPED_KEYS for prayer in self.prayers)

    def to_dict(self) -> dict[str, object]:
        return {
            "day": self.day.isoformat(),
            "city": self.city,
            "prayers": _prayers_to_list(self.prayers),
            "full_prayers": _prayers_to_list(self.full_prayers),
        }

    @classmethod
    def from_dict(cls, values: dict) -> "DaySnapshot":
        return cls(
            day=date.fromisoformat(values["day"]),
            city=str(values.get("city", "")),
            prayers=_prayers_from_list(values.get("prayers", [])),
            full_prayers=_prayers_from_list(values.get("full_prayers", [])),
        )


_GROUPED_KEYS = (PrayerKey.DHUHR_ASR, PrayerKey.MAGHRIB_ISHA)


def _prayers_to_list(prayers: Iterable[Prayer]) -> list[dict[str, str]]:
    return [{"key": prayer.key.value, "time": prayer.time.isoformat()} for prayer in prayers]


def _prayers_from_list(values: Iterable[dict]) -> list[Prayer]:
    return [Prayer.build(PrayerKey(item["key"]), datetime.fromisoformat(item["time"])) for item in values]
