from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo

from hijridate import Gregorian, Hijri

from .timeutils import at_local_time


@dataclass(frozen=True, slots=True)
class SpecialDate:
    title: str
    month: int
    day: int
    subtitle: str
    description: str = ""


SPECIAL_DATES: tuple[SpecialDate, ...] = (
    SpecialDate("Islamic New Year", 1, 1, "Start of Hijri year",
                "The first day of the Islamic calendar; no special acts of worship or celebration are prescribed."),
    SpecialDate("Day Before Ashura", 1, 9, "Recommended to fast",
                "It is Sunnah to fast the 9th before Ashura."),
    SpecialDate("Day of Ashura", 1, 10, "Recommended to fast",
                "Fasting Ashura expiates sins of the previous year."),
    SpecialDate("First Day of Ramadan", 9, 1, "Begin obligatory fast",
                "The month of fasting begins; Muslims fast from Fajr to Maghrib."),
    SpecialDate("Last 10 Nights of Ramadan", 9, 21, "Seek Laylatul Qadr",
                "The most virtuous nights of the year."),
    SpecialDate("27th Night of Ramadan", 9, 27, "Likely Laylatul Qadr",
                "A strong possibility for Laylatul Qadr, though not confirmed."),
    SpecialDate("Eid Al-Fitr", 10, 1, "Celebration of ending the fast",
                "Fasting is prohibited on this day; six days of Shawwal are encouraged."),
    SpecialDate("First 10 Days of Dhul-Hijjah", 12, 1, "Most beloved days",
                "The best days for righteous deeds; fasting and dhikr are encouraged."),
    SpecialDate("Beginning of Hajj", 12, 8, "Pilgrimage begins",
                "Pilgrims head to Mina to start the rites of Hajj."),
    SpecialDate("Day of Arafah", 12, 9, "Recommended to fast",
                "Fasting for non-pilgrims expiates sins of the past and coming year."),
    SpecialDate("Eid Al-Adha", 12, 10, "Celebration of sacrifice during Hajj",
                "The day of sacrifice; fasting is not allowed."),
    SpecialDate("End of Eid Al-Adha", 12, 13, "Hajj and Eid end",
                "Final day of Eid Al-Adha."),
)


@dataclass(frozen=True, slots=True)
class HijriLabel:
    english: str
    arabic: str
    day: date


_ARABIC_DIGITS = str.maketrans("0123456789", "٠١٢٣٤٥٦٧٨٩")


def to_hijri(day: date) -> Hijri | None:
    try:
        return Gregorian(day.year, day.month, day.day).to_hijri()
    except (OverflowError, ValueError):
        return None


def next_occurrence(event: SpecialDate, now: datetime, at: time, tz: tzinfo) -> tuple[int, datetime] | None:
    """Nearest upcoming (hijri year, instant) for a recurring Hijri date."""
    today = to_hijri(now.astimezone(tz).date())
    if today is None:
        return None
    for year in (today.year, today.year + 1):
        try:
            gregorian = Hijri(year, event.month, event.day).to_gregorian()
        except (OverflowError, ValueError):
            continue
        instant = at_local_time(date(gregorian.year, gregorian.month, gregorian.day), at, tz)
        if instant > now:
            return year, instant
    return None


def hijri_label(day: date, offset_days: int = 0) -> HijriLabel | None:
    hijri = to_hijri(day + timedelta(days=offset_days))
    if hijri is None:
        return None
    english = f"{hijri.month_name('en')} {hijri.day}, {hijri.year} AH"
    arabic = f"{hijri.day} {hijri.month_name('ar')}، {hijri.year}".translate(_ARABIC_DIGITS) + " هـ"
    return HijriLabel(english=english, arabic=arabic, day=day)
