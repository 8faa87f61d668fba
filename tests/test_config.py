from __future__ import annotations

from datetime import time
from pathlib import Path
from tempfile import TemporaryDirectory
import unittest

from miqat.config import (
    ConfigManager,
    ConfigurationOutOfRange,
    MiqatConfig,
    NotificationPreference,
    NotificationSettings,
    OffsetConfiguration,
)
from miqat.models import PrayerKey


class OffsetConfigurationTests(unittest.TestCase):
    def test_accepts_values_at_the_limits(self) -> None:
        offsets = OffsetConfiguration(fajr=-10, isha=10)
        self.assertEqual(offsets.fajr, -10)
        self.assertEqual(offsets.isha, 10)

    def test_rejects_values_outside_limits(self) -> None:
        with self.assertRaises(ConfigurationOutOfRange) as ctx:
            OffsetConfiguration(dhuhr_asr=11)
        self.assertEqual(ctx.exception.setting, "offsets.dhuhr_asr")

    def test_from_dict_ignores_missing_keys(self) -> None:
        offsets = OffsetConfiguration.from_dict({"maghrib": 3})
        self.assertEqual(offsets.maghrib, 3)
        self.assertEqual(offsets.fajr, 0)


class NotificationSettingsTests(unittest.TestCase):
    def test_pre_minutes_must_be_a_multiple_of_five(self) -> None:
        with self.assertRaises(ConfigurationOutOfRange):
            NotificationPreference(pre_minutes=7)

    def test_nagging_start_offset_choices(self) -> None:
        with self.assertRaises(ConfigurationOutOfRange):
            NotificationSettings(nagging_start_offset=20)
        self.assertEqual(NotificationSettings(nagging_start_offset=45).nagging_start_offset, 45)

    def test_grouped_and_friday_keys_use_base_preferences(self) -> None:
        dhuhr = NotificationPreference(pre_minutes=10)
        maghrib = NotificationPreference(enabled=False)
        settings = NotificationSettings(preferences={PrayerKey.DHUHR: dhuhr, PrayerKey.MAGHRIB: maghrib})

        self.assertIs(settings.preference_for(PrayerKey.JUMUAH), dhuhr)
        self.assertIs(settings.preference_for(PrayerKey.DHUHR_ASR), dhuhr)
        self.assertIs(settings.preference_for(PrayerKey.MAGHRIB_ISHA), maghrib)
        self.assertEqual(settings.preference_for(PrayerKey.FAJR), NotificationPreference())


class ConfigManagerTests(unittest.TestCase):
    def test_missing_file_writes_defaults(self) -> None:
        with TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.toml"
            manager = ConfigManager(path)
            config = manager.load()

            self.assertTrue(path.exists())
            self.assertEqual(config.to_dict(), MiqatConfig.default().to_dict())
            self.assertEqual(manager.errors(), [])

    def test_round_trip_preserves_values(self) -> None:
        with TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.toml"
            manager = ConfigManager(path)
            config = MiqatConfig.default()
            config.location.city = "Shah Alam"
            config.location.latitude = 3.0738
            config.location.longitude = 101.5183
            config.offsets.fajr = 2
            config.notifications.nagging_mode = True
            config.notifications.refresh_time = time(11, 30)
            config.notifications.preferences[PrayerKey.ASR] = NotificationPreference(pre_minutes=15, nagging=True)
            config.travel.automatic = False
            manager.save(config)

            loaded = ConfigManager(path).load()

            self.assertEqual(loaded.to_dict(), config.to_dict())

    def test_invalid_offsets_fall_back_and_report(self) -> None:
        with TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.toml"
            path.write_text("[offsets]\nfajr = 25\n\n[notifications]\nnagging_start_offset = 20\n", encoding="utf-8")
            manager = ConfigManager(path)
            config = manager.load()

            self.assertEqual(config.offsets, OffsetConfiguration())
            self.assertEqual(config.notifications.nagging_start_offset, 30)
            errors = manager.errors()
            self.assertEqual(len(errors), 2)
            self.assertIn("offsets.fajr", errors[0])

    def test_invalid_prayer_preference_only_resets_that_prayer(self) -> None:
        with TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.toml"
            path.write_text(
                "[prayers.fajr]\npre_minutes = 3\n\n[prayers.isha]\npre_minutes = 20\n",
                encoding="utf-8",
            )
            manager = ConfigManager(path)
            config = manager.load()

            prefs = config.notifications.preferences
            self.assertEqual(prefs[PrayerKey.FAJR].pre_minutes, 0)
            self.assertEqual(prefs[PrayerKey.ISHA].pre_minutes, 20)
            self.assertEqual(len(manager.errors()), 1)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
