from __future__ import annotations

from datetime import date, datetime, time
import unittest
from zoneinfo import ZoneInfo

from hijridate import Hijri

from miqat.hijri import SPECIAL_DATES, SpecialDate, hijri_label, next_occurrence, to_hijri

TZ = ZoneInfo("Asia/Kuala_Lumpur")
RAMADAN = SpecialDate("First Day of Ramadan", 9, 1, "Begin obligatory fast")


def gregorian_of(year: int, month: int, day: int) -> date:
    value = Hijri(year, month, day).to_gregorian()
    return date(value.year, value.month, value.day)


class HijriTests(unittest.TestCase):
    def test_special_dates_are_unique(self) -> None:
        self.assertEqual(len(SPECIAL_DATES), 12)
        self.assertEqual(len({(event.month, event.day) for event in SPECIAL_DATES}), 12)

    def test_to_hijri(self) -> None:
        hijri = to_hijri(date(2024, 3, 11))

        assert hijri is not None
        self.assertEqual((hijri.year, hijri.month, hijri.day), (1445, 9, 1))

    def test_to_hijri_out_of_range(self) -> None:
        self.assertIsNone(to_hijri(date(1800, 1, 1)))

    def test_label_in_both_languages(self) -> None:
        label = hijri_label(date(2024, 3, 11))

        assert label is not None
        self.assertTrue(label.english.endswith("1, 1445 AH"))
        self.assertIn("١٤٤٥", label.arabic)
        self.assertTrue(label.arabic.endswith(" هـ"))
        self.assertEqual(label.day, date(2024, 3, 11))

    def test_label_offset_shifts_hijri_day(self) -> None:
        shifted = hijri_label(date(2024, 3, 10), offset_days=1)
        plain = hijri_label(date(2024, 3, 11))

        assert shifted is not None and plain is not None
        self.assertEqual(shifted.english, plain.english)
        self.assertEqual(shifted.day, date(2024, 3, 10))

    def test_next_occurrence_in_current_year(self) -> None:
        now = datetime(2024, 3, 4, 8, 0, tzinfo=TZ)

        occurrence = next_occurrence(RAMADAN, now, time(9, 0), TZ)

        self.assertEqual(occurrence, (1445, datetime.combine(gregorian_of(1445, 9, 1), time(9, 0), tzinfo=TZ)))

    def test_next_occurrence_rolls_into_next_year(self) -> None:
        start = gregorian_of(1445, 9, 1)
        now = datetime.combine(start, time(9, 30), tzinfo=TZ)

        occurrence = next_occurrence(RAMADAN, now, time(9, 0), TZ)

        assert occurrence is not None
        self.assertEqual(occurrence[0], 1446)
        self.assertEqual(occurrence[1].date(), gregorian_of(1446, 9, 1))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
