"""Tests for the schedule engine."""

import datetime
import unittest

import pytz

from salahnow.models import CountdownTarget, PrayerTimes
from salahnow.schedule import (
    attach_time,
    evaluate,
    format_countdown,
    frame_now,
    prayer_list,
    time_until_target,
)

TZ_NAME = "Europe/Istanbul"
TZ = pytz.timezone(TZ_NAME)

TIMES = PrayerTimes(
    Fajr="05:30", Sunrise="07:00", Dhuhr="13:00", Asr="16:30", Maghrib="19:45", Isha="21:15",
)

HOUR = 3600 * 1000
MINUTE = 60 * 1000


def _at(hour: int, minute: int, second: int = 0) -> datetime.datetime:
    return TZ.localize(datetime.datetime(2024, 3, 15, hour, minute, second))


class TestFrameNow(unittest.TestCase):
    def test_projects_into_timezone(self):
        now = pytz.utc.localize(datetime.datetime(2024, 3, 15, 11, 0))
        self.assertEqual(frame_now(TZ_NAME, now), datetime.datetime(2024, 3, 15, 14, 0))

    def test_projection_can_change_the_date(self):
        now = pytz.utc.localize(datetime.datetime(2024, 3, 15, 22, 30))
        self.assertEqual(frame_now(TZ_NAME, now), datetime.datetime(2024, 3, 16, 1, 30))

    def test_naive_without_timezone_is_used_as_is(self):
        now = datetime.datetime(2024, 3, 15, 9, 15)
        self.assertEqual(frame_now(None, now), now)

    def test_unknown_timezone_falls_back_to_local(self):
        now = datetime.datetime(2024, 3, 15, 9, 15)
        with self.assertLogs("salahnow.schedule", level="WARNING"):
            self.assertEqual(frame_now("Mars/Olympus_Mons", now), now)

    def test_attach_time(self):
        base = datetime.datetime(2024, 3, 15, 14, 27, 33, 120)
        self.assertEqual(attach_time("05:30", base), datetime.datetime(2024, 3, 15, 5, 30))


class TestEvaluate(unittest.TestCase):
    def test_between_fajr_and_sunrise(self):
        info = evaluate(TIMES, time_zone=TZ_NAME, now=_at(6, 0))
        self.assertEqual(info.current_prayer, "Fajr")
        self.assertEqual(info.next_prayer, "Sunrise")
        self.assertEqual(info.time_until_next_ms, HOUR)

    def test_boundary_is_inclusive(self):
        info = evaluate(TIMES, time_zone=TZ_NAME, now=_at(13, 0))
        self.assertEqual(info.current_prayer, "Dhuhr")
        self.assertEqual(info.next_prayer, "Asr")
        self.assertEqual(info.time_until_next_ms, 3 * HOUR + 30 * MINUTE)

    def test_istanbul_afternoon(self):
        info = evaluate(TIMES, time_zone=TZ_NAME, now=_at(14, 0))
        self.assertEqual(info.current_prayer, "Dhuhr")
        self.assertEqual(info.next_prayer, "Asr")
        self.assertEqual(info.next_prayer_time, "16:30")
        self.assertEqual(info.time_until_next_ms, 2 * HOUR + 30 * MINUTE)
        self.assertFalse(info.is_after_isha)

    def test_same_instant_from_another_zone(self):
        now = pytz.timezone("America/New_York").localize(datetime.datetime(2024, 3, 15, 7, 0))
        info = evaluate(TIMES, time_zone=TZ_NAME, now=now)
        self.assertEqual(info.current_prayer, "Dhuhr")
        self.assertEqual(info.time_until_next_ms, 2 * HOUR + 30 * MINUTE)

    def test_sub_second_precision(self):
        now = _at(16, 29, 59) + datetime.timedelta(milliseconds=250)
        info = evaluate(TIMES, time_zone=TZ_NAME, now=now)
        self.assertEqual(info.time_until_next_ms, 750)

    def test_after_isha_uses_tomorrow_fajr(self):
        info = evaluate(TIMES, tomorrow_fajr="05:28", time_zone=TZ_NAME, now=_at(22, 0))
        self.assertEqual(info.current_prayer, "Isha")
        self.assertTrue(info.is_after_isha)
        self.assertEqual(info.next_prayer, "Fajr")
        self.assertEqual(info.next_prayer_time, "05:28")
        self.assertEqual(info.time_until_next_ms, 7 * HOUR + 28 * MINUTE)

    def test_after_isha_reuses_today_fajr(self):
        info = evaluate(TIMES, time_zone=TZ_NAME, now=_at(22, 0))
        self.assertTrue(info.is_after_isha)
        self.assertEqual(info.next_prayer_time, "05:30")
        self.assertEqual(info.time_until_next_ms, 7 * HOUR + 30 * MINUTE)

    def test_before_fajr_carries_isha_over(self):
        info = evaluate(TIMES, tomorrow_fajr="05:28", time_zone=TZ_NAME, now=_at(4, 0))
        self.assertEqual(info.current_prayer, "Isha")
        self.assertEqual(info.next_prayer, "Fajr")
        self.assertEqual(info.next_prayer_time, "05:30")
        self.assertEqual(info.time_until_next_ms, HOUR + 30 * MINUTE)
        self.assertFalse(info.is_after_isha)

    def test_local_frame_without_timezone(self):
        info = evaluate(TIMES, now=datetime.datetime(2024, 3, 15, 17, 0))
        self.assertEqual(info.current_prayer, "Asr")
        self.assertEqual(info.next_prayer, "Maghrib")


class TestTimeUntilTarget(unittest.TestCase):
    def test_next_prayer_matches_evaluate(self):
        ms = time_until_target(TIMES, CountdownTarget.NEXT_PRAYER, TZ_NAME, _at(14, 0))
        self.assertEqual(ms, 2 * HOUR + 30 * MINUTE)

    def test_pre_dawn_before_fajr(self):
        ms = time_until_target(TIMES, CountdownTarget.PRE_DAWN, TZ_NAME, _at(4, 0))
        self.assertEqual(ms, HOUR + 30 * MINUTE)

    def test_pre_dawn_rolls_to_tomorrow(self):
        ms = time_until_target(TIMES, CountdownTarget.PRE_DAWN, TZ_NAME, _at(14, 0), tomorrow_fajr="05:28")
        self.assertEqual(ms, 15 * HOUR + 28 * MINUTE)

    def test_sunset_today(self):
        ms = time_until_target(TIMES, CountdownTarget.SUNSET, TZ_NAME, _at(14, 0))
        self.assertEqual(ms, 5 * HOUR + 45 * MINUTE)

    def test_sunset_rolls_to_tomorrow(self):
        ms = time_until_target(TIMES, CountdownTarget.SUNSET, TZ_NAME, _at(20, 0))
        self.assertEqual(ms, 23 * HOUR + 45 * MINUTE)


class TestPrayerList(unittest.TestCase):
    def test_marks_current_prayer(self):
        info = evaluate(TIMES, time_zone=TZ_NAME, now=_at(14, 0))
        rows = prayer_list(TIMES, info)
        self.assertEqual([r.name for r in rows], ["Fajr", "Sunrise", "Dhuhr", "Asr", "Maghrib", "Isha"])
        self.assertEqual([r.name for r in rows if r.is_active], ["Dhuhr"])

    def test_nothing_active_during_sunrise(self):
        info = evaluate(TIMES, time_zone=TZ_NAME, now=_at(8, 0))
        self.assertEqual(info.current_prayer, "Sunrise")
        self.assertFalse(any(r.is_active for r in prayer_list(TIMES, info)))


class TestFormatCountdown(unittest.TestCase):
    def test_zero(self):
        self.assertEqual(format_countdown(0), "00:00:00")

    def test_negative(self):
        self.assertEqual(format_countdown(-5000), "00:00:00")

    def test_values(self):
        self.assertEqual(format_countdown(3661000), "01:01:01")

    def test_truncates_partial_seconds(self):
        self.assertEqual(format_countdown(59999), "00:00:59")


if __name__ == "__main__":
    unittest.main()
