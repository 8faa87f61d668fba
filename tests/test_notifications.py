from __future__ import annotations

from datetime import date, datetime, time
import unittest
from zoneinfo import ZoneInfo

from hijridate import Hijri

from miqat.config import NotificationPreference, NotificationSettings
from miqat.hijri import SpecialDate
from miqat.models import BASE_PRAYERS, Prayer, PrayerKey, ReminderCategory
from miqat.notifications import (
    NotificationPlanner,
    nagging_cascade,
    offsets_for,
    planning_dates,
    refresh_checkpoints,
    reminder_id,
)

TZ = ZoneInfo("Asia/Kuala_Lumpur")
DAY = date(2024, 3, 4)
TIMES = (time(5, 57), time(7, 10), time(13, 17), time(16, 40), time(19, 20), time(20, 32))


def day_prayers(day: date, keys=BASE_PRAYERS, times=TIMES) -> list[Prayer]:
    return [Prayer.build(key, datetime.combine(day, value, tzinfo=TZ)) for key, value in zip(keys, times)]


class CascadeTests(unittest.TestCase):
    def test_cascade_from_thirty(self) -> None:
        self.assertEqual(nagging_cascade(30), [30, 15, 10, 5])

    def test_cascade_from_forty_five(self) -> None:
        self.assertEqual(nagging_cascade(45), [45, 30, 15, 10, 5])

    def test_short_cascades(self) -> None:
        self.assertEqual(nagging_cascade(15), [15, 10, 5])
        self.assertEqual(nagging_cascade(10), [10, 5])

    def test_offsets_for_disabled_prayer(self) -> None:
        pref = NotificationPreference(enabled=False, pre_minutes=10, nagging=True)
        self.assertEqual(offsets_for(pref, False, 30), [])
        self.assertEqual(offsets_for(pref, True, 30), [30, 15, 10, 5])

    def test_offsets_for_enabled_prayer(self) -> None:
        pref = NotificationPreference(pre_minutes=15, nagging=True)
        self.assertEqual(offsets_for(pref, False, 30), [0, 15])
        self.assertEqual(sorted(set(offsets_for(pref, True, 30))), [0, 5, 10, 15, 30])

    def test_planning_dates(self) -> None:
        self.assertEqual(planning_dates(DAY, True), [DAY, date(2024, 3, 5)])
        self.assertEqual(len(planning_dates(DAY, False)), 4)

    def test_refresh_checkpoints(self) -> None:
        self.assertEqual(refresh_checkpoints(True), (1, 2, 3))
        self.assertEqual(refresh_checkpoints(False), (2, 3))

    def test_reminder_id_format(self) -> None:
        self.assertEqual(reminder_id(PrayerKey.FAJR, 15, DAY), "Fajr-15-2024-3-4")


class NotificationPlannerTests(unittest.TestCase):
    def _planner(self, **overrides) -> NotificationPlanner:
        return NotificationPlanner(NotificationSettings(**overrides), TZ)

    def _plan(self, planner: NotificationPlanner, sequences, now: datetime, **kwargs):
        kwargs.setdefault("city", "Kuala Lumpur")
        kwargs.setdefault("special_dates", ())
        kwargs.setdefault("checkpoints", ())
        return planner.plan(sequences, now, **kwargs)

    def test_fajr_offsets_are_deduplicated(self) -> None:
        planner = self._planner(
            nagging_mode=True,
            preferences={PrayerKey.FAJR: NotificationPreference(pre_minutes=15, nagging=True)},
        )
        now = datetime(2024, 3, 4, 5, 0, tzinfo=TZ)

        reminders = self._plan(planner, {DAY: day_prayers(DAY)}, now)

        fajr = [reminder for reminder in reminders if reminder.id.startswith("Fajr-")]
        self.assertEqual(
            sorted(reminder.id for reminder in fajr),
            sorted(f"Fajr-{minutes}-2024-3-4" for minutes in (0, 5, 10, 15, 30)),
        )
        categories = {reminder.id: reminder.category for reminder in fajr}
        self.assertEqual(categories["Fajr-0-2024-3-4"], ReminderCategory.PRAYER)
        self.assertEqual(categories["Fajr-15-2024-3-4"], ReminderCategory.PRAYER)
        self.assertEqual(categories["Fajr-30-2024-3-4"], ReminderCategory.NAGGING)
        self.assertEqual(len({reminder.id for reminder in reminders}), len(reminders))

    def test_bodies(self) -> None:
        planner = self._planner(preferences={PrayerKey.FAJR: NotificationPreference(pre_minutes=10)})
        now = datetime(2024, 3, 4, 5, 0, tzinfo=TZ)

        reminders = {reminder.id: reminder for reminder in self._plan(planner, {DAY: day_prayers(DAY)}, now)}

        self.assertEqual(
            reminders["Fajr-0-2024-3-4"].body,
            "Time for Fajr at 05:57 in Kuala Lumpur [ends at 07:10]",
        )
        self.assertEqual(reminders["Fajr-10-2024-3-4"].body, "10m until Fajr in Kuala Lumpur [05:57]")
        self.assertEqual(
            reminders["Sunrise-0-2024-3-4"].body,
            "Time for Shurooq (end of Fajr) at 07:10 in Kuala Lumpur",
        )
        self.assertEqual(reminders["Fajr-0-2024-3-4"].title, "Miqat")

    def test_no_reminder_in_the_past(self) -> None:
        planner = self._planner(nagging_mode=True)
        now = datetime(2024, 3, 4, 13, 5, tzinfo=TZ)
        tomorrow = date(2024, 3, 5)

        reminders = self._plan(planner, {DAY: day_prayers(DAY), tomorrow: day_prayers(tomorrow)}, now)

        self.assertTrue(reminders)
        self.assertTrue(all(reminder.fire_at > now for reminder in reminders))
        self.assertNotIn("Fajr-0-2024-3-4", {reminder.id for reminder in reminders})
        self.assertIn("Fajr-0-2024-3-5", {reminder.id for reminder in reminders})

    def test_output_is_sorted_by_fire_time(self) -> None:
        planner = self._planner()
        now = datetime(2024, 3, 4, 0, 0, tzinfo=TZ)
        tomorrow = date(2024, 3, 5)

        reminders = self._plan(
            planner, {tomorrow: day_prayers(tomorrow), DAY: day_prayers(DAY)}, now, checkpoints=(2, 3)
        )

        fire_times = [reminder.fire_at for reminder in reminders]
        self.assertEqual(fire_times, sorted(fire_times))

    def test_grouped_and_friday_keys_use_base_preferences(self) -> None:
        planner = self._planner(
            preferences={
                PrayerKey.DHUHR: NotificationPreference(pre_minutes=10),
                PrayerKey.MAGHRIB: NotificationPreference(enabled=False),
            }
        )
        now = datetime(2024, 3, 4, 0, 0, tzinfo=TZ)
        friday = date(2024, 3, 8)
        grouped_keys = (PrayerKey.FAJR, PrayerKey.SUNRISE, PrayerKey.DHUHR_ASR, PrayerKey.MAGHRIB_ISHA)
        grouped_times = (time(5, 57), time(7, 10), time(13, 17), time(19, 20))
        friday_keys = (
            PrayerKey.FAJR, PrayerKey.SUNRISE, PrayerKey.JUMUAH, PrayerKey.ASR, PrayerKey.MAGHRIB, PrayerKey.ISHA,
        )

        reminders = self._plan(
            planner,
            {DAY: day_prayers(DAY, grouped_keys, grouped_times), friday: day_prayers(friday, friday_keys)},
            now,
            traveling=True,
        )
        ids = {reminder.id: reminder for reminder in reminders}

        self.assertIn("Dhuhr/Asr-10-2024-3-4", ids)
        self.assertIn("Jumuah-10-2024-3-8", ids)
        self.assertNotIn("Maghrib/Isha-0-2024-3-4", ids)
        self.assertEqual(
            ids["Jumuah-0-2024-3-8"].body,
            "Time for Jumuah (Friday) at 13:17 in Kuala Lumpur (traveling)",
        )

    def test_bad_day_is_skipped(self) -> None:
        planner = self._planner()
        now = datetime(2024, 3, 4, 0, 0, tzinfo=TZ)
        tomorrow = date(2024, 3, 5)

        with self.assertLogs("miqat.notifications", level="WARNING"):
            reminders = self._plan(planner, {DAY: day_prayers(DAY), tomorrow: [None]}, now)

        self.assertEqual(len(reminders), 6)
        self.assertTrue(all(reminder.fire_at.date() == DAY for reminder in reminders))

    def test_unresolved_day_contributes_nothing(self) -> None:
        planner = self._planner()
        now = datetime(2024, 3, 4, 0, 0, tzinfo=TZ)

        self.assertEqual(self._plan(planner, {DAY: None}, now), [])

    def test_refresh_nudges(self) -> None:
        now = datetime(2024, 3, 4, 8, 0, tzinfo=TZ)

        relaxed = self._planner().plan({}, now, special_dates=())
        nagging = self._planner(nagging_mode=True).plan({}, now, special_dates=())

        self.assertEqual(
            [reminder.id for reminder in relaxed],
            ["RefreshReminder-2024-03-06", "RefreshReminder-2024-03-07"],
        )
        self.assertEqual(len(nagging), 3)
        self.assertEqual(nagging[0].fire_at, datetime(2024, 3, 5, 12, 0, tzinfo=TZ))
        self.assertTrue(all(reminder.category is ReminderCategory.REFRESH_NUDGE for reminder in nagging))

    def test_special_dates(self) -> None:
        now = datetime(2024, 3, 4, 8, 0, tzinfo=TZ)
        events = (
            SpecialDate("First Day of Ramadan", 9, 1, "Begin obligatory fast"),
            SpecialDate("Islamic New Year", 1, 1, "Start of Hijri year"),
        )
        ramadan = Hijri(1445, 9, 1).to_gregorian()

        reminders = self._planner().plan({}, now, special_dates=events, checkpoints=())

        ids = {reminder.id: reminder for reminder in reminders}
        self.assertEqual(set(ids), {"Event-1445-9-1", "Event-1446-1-1"})
        first = ids["Event-1445-9-1"]
        self.assertEqual(first.fire_at, datetime(ramadan.year, ramadan.month, ramadan.day, 9, 0, tzinfo=TZ))
        self.assertEqual(first.body, "First Day of Ramadan (Begin obligatory fast)")
        self.assertIs(first.category, ReminderCategory.CALENDAR_EVENT)

    def test_special_dates_can_be_disabled(self) -> None:
        now = datetime(2024, 3, 4, 8, 0, tzinfo=TZ)

        reminders = self._planner(date_notifications=False).plan({}, now, checkpoints=())

        self.assertEqual(reminders, [])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
