from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo
import logging
from typing import Iterable, Mapping, Sequence

from .config import NotificationPreference, NotificationSettings
from .hijri import SPECIAL_DATES, SpecialDate, next_occurrence
from .models import Prayer, PrayerKey, ReminderCategory, ScheduledReminder
from .timeutils import at_local_time, format_hhmm

_LOGGER = logging.getLogger(__name__)

CASCADE_STEP = 15
FORCED_CASCADE = (10, 5)
REFRESH_BODY = "Please open the app to refresh today's prayer times and notifications."

_NAME_SUFFIX = {
    PrayerKey.SUNRISE: " (end of Fajr)",
    PrayerKey.JUMUAH: " (Friday)",
}


def nagging_cascade(start: int) -> list[int]:
    """Escalating minutes-before offsets, e.g. 30 -> [30, 15, 10, 5]."""
    if start <= 0:
        return []
    minutes = start
    result: list[int] = []
    while minutes > CASCADE_STEP:
        result.append(minutes)
        minutes -= CASCADE_STEP
    if minutes >= 5:
        result.append(minutes)
    result.extend(value for value in FORCED_CASCADE if value < start)
    return result


def offsets_for(pref: NotificationPreference, nagging_mode: bool, nagging_start: int) -> list[int]:
    result: list[int] = []
    if pref.enabled:
        result.append(0)
        if pref.pre_minutes > 0:
            result.append(pref.pre_minutes)
    if nagging_mode and pref.nagging:
        result.extend(nagging_cascade(nagging_start))
    return result


def planning_dates(today: date, nagging_mode: bool) -> list[date]:
    future_days = 1 if nagging_mode else 3
    return [today + timedelta(days=offset) for offset in range(future_days + 1)]


def refresh_checkpoints(nagging_mode: bool) -> tuple[int, ...]:
    return (1, 2, 3) if nagging_mode else (2, 3)


def reminder_id(key: PrayerKey, minutes: int, day: date) -> str:
    return f"{key.value}-{minutes}-{day.year}-{day.month}-{day.day}"


class NotificationPlanner:
    """Builds the complete reminder set for a planning pass.

    The result always replaces whatever was scheduled before, so the planner
    keeps no state between calls.
    """

    def __init__(self, settings: NotificationSettings, tz: tzinfo) -> None:
        self.settings = settings
        self.tz = tz

    def plan(
        self,
        sequences: Mapping[date, Sequence[Prayer] | None],
        now: datetime,
        *,
        city: str = "",
        traveling: bool = False,
        special_dates: Iterable[SpecialDate] = SPECIAL_DATES,
        checkpoints: Iterable[int] | None = None,
    ) -> list[ScheduledReminder]:
        reminders: dict[str, ScheduledReminder] = {}

        for day, prayers in sequences.items():
            try:
                day_reminders = list(self._prayer_reminders(prayers or (), now, city, traveling))
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                _LOGGER.warning("Skipping reminders for %s: %s", day, exc)
                continue
            for reminder in day_reminders:
                reminders.setdefault(reminder.id, reminder)

        if self.settings.date_notifications:
            for reminder in self._special_date_reminders(special_dates, now):
                reminders.setdefault(reminder.id, reminder)

        if checkpoints is None:
            checkpoints = refresh_checkpoints(self.settings.nagging_mode)
        for reminder in self._refresh_reminders(checkpoints, now):
            reminders.setdefault(reminder.id, reminder)

        return sorted(reminders.values(), key=lambda reminder: (reminder.fire_at, reminder.id))

    def _prayer_reminders(
        self,
        prayers: Sequence[Prayer],
        now: datetime,
        city: str,
        traveling: bool,
    ) -> Iterable[ScheduledReminder]:
        settings = self.settings
        for index, prayer in enumerate(prayers):
            pref = settings.preference_for(prayer.key)
            offsets = offsets_for(pref, settings.nagging_mode, settings.nagging_start_offset)
            direct = {0, pref.pre_minutes} if pref.enabled else set()
            following = prayers[index + 1] if index + 1 < len(prayers) else None
            for minutes in dict.fromkeys(offsets):
                fire_at = prayer.time - timedelta(minutes=minutes)
                if fire_at <= now:
                    continue
                yield ScheduledReminder(
                    id=reminder_id(prayer.key, minutes, prayer.day),
                    fire_at=fire_at,
                    title=settings.title,
                    body=self._prayer_body(prayer, minutes, city, traveling, following),
                    category=ReminderCategory.PRAYER if minutes in direct else ReminderCategory.NAGGING,
                )

    def _prayer_body(
        self,
        prayer: Prayer,
        minutes: int,
        city: str,
        traveling: bool,
        following: Prayer | None,
    ) -> str:
        name = prayer.name_transliteration + _NAME_SUFFIX.get(prayer.key, "")
        travel_note = " (traveling)" if traveling else ""
        if minutes:
            return f"{minutes}m until {name} in {city}{travel_note} [{format_hhmm(prayer.time)}]"
        body = f"Time for {name} at {format_hhmm(prayer.time)} in {city}{travel_note}"
        if prayer.key is PrayerKey.FAJR and following is not None:
            body += f" [ends at {format_hhmm(following.time)}]"
        return body

    def _special_date_reminders(self, events: Iterable[SpecialDate], now: datetime) -> Iterable[ScheduledReminder]:
        for event in events:
            occurrence = next_occurrence(event, now, self.settings.event_time, self.tz)
            if occurrence is None:
                continue
            hijri_year, fire_at = occurrence
            yield ScheduledReminder(
                id=f"Event-{hijri_year}-{event.month}-{event.day}",
                fire_at=fire_at,
                title=self.settings.title,
                body=f"{event.title} ({event.subtitle})",
                category=ReminderCategory.CALENDAR_EVENT,
            )

    def _refresh_reminders(self, checkpoints: Iterable[int], now: datetime) -> Iterable[ScheduledReminder]:
        local_today = now.astimezone(self.tz).date()
        for days_ahead in checkpoints:
            day = local_today + timedelta(days=days_ahead)
            fire_at = at_local_time(day, self.settings.refresh_time, self.tz)
            if fire_at <= now:
                continue
            yield ScheduledReminder(
                id=f"RefreshReminder-{day.year:04d}-{day.month:02d}-{day.day:02d}",
                fire_at=fire_at,
                title=self.settings.title,
                body=REFRESH_BODY,
                category=ReminderCategory.REFRESH_NUDGE,
            )
