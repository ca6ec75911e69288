"""Tests for the cache module."""

import datetime
import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock

from salahnow.cache import JsonFileStore, MemoryStore, PrayerCache, cache_key
from salahnow.errors import StorageUnavailable
from salahnow.models import (
    DailyCacheEntry,
    DailyScheduleEntry,
    Location,
    PrayerSource,
    PrayerTimes,
    WindowCacheEntry,
)

TIMES = PrayerTimes(
    Fajr="05:30", Sunrise="07:00", Dhuhr="13:00", Asr="16:30", Maghrib="19:45", Isha="21:15",
)
ISTANBUL = Location("Istanbul", "Türkiye", "TR", 41.0082, 28.9784, district_id="9541")
KEY = cache_key(ISTANBUL, PrayerSource.DIYANET)


def _daily(iso_date: str) -> DailyCacheEntry:
    return DailyCacheEntry(
        times=TIMES,
        tomorrow_fajr="05:29",
        iso_date=iso_date,
        location_key=KEY,
        time_zone="Europe/Istanbul",
    )


def _window(start: str, end: str) -> WindowCacheEntry:
    return WindowCacheEntry(
        entries=[DailyScheduleEntry(date="01.03.2024", times=TIMES)],
        start_date=start,
        end_date=end,
        location_key=KEY,
    )


class TestCacheKey(unittest.TestCase):
    def test_source_is_part_of_key(self):
        self.assertEqual(KEY, "Istanbul-TR-diyanet")
        self.assertNotEqual(KEY, cache_key(ISTANBUL, PrayerSource.MWL))


class TestDailyCache(unittest.TestCase):
    def setUp(self):
        self.cache = PrayerCache(MemoryStore())

    def test_same_day_hit(self):
        self.cache.put_daily(KEY, _daily("2024-03-15"))

        entry = self.cache.get_daily(KEY, datetime.date(2024, 3, 15))
        self.assertIsNotNone(entry)
        self.assertEqual(entry.times, TIMES)
        self.assertEqual(entry.tomorrow_fajr, "05:29")
        self.assertEqual(entry.time_zone, "Europe/Istanbul")

    def test_next_day_miss(self):
        self.cache.put_daily(KEY, _daily("2024-03-15"))
        self.assertIsNone(self.cache.get_daily(KEY, datetime.date(2024, 3, 16)))

    def test_stale_ignores_date(self):
        self.cache.put_daily(KEY, _daily("2024-03-15"))
        stale = self.cache.get_stale_daily(KEY)
        self.assertEqual(stale.iso_date, "2024-03-15")

    def test_switching_source_misses(self):
        self.cache.put_daily(KEY, _daily("2024-03-15"))
        other = cache_key(ISTANBUL, PrayerSource.MWL)
        self.assertIsNone(self.cache.get_daily(other, datetime.date(2024, 3, 15)))

    def test_entries_for_different_keys_coexist(self):
        other = cache_key(ISTANBUL, PrayerSource.MWL)
        self.cache.put_daily(KEY, _daily("2024-03-15"))
        self.cache.put_daily(other, _daily("2024-03-15"))
        self.assertIsNotNone(self.cache.get_daily(KEY, datetime.date(2024, 3, 15)))
        self.assertIsNotNone(self.cache.get_daily(other, datetime.date(2024, 3, 15)))


class TestWindowCache(unittest.TestCase):
    def setUp(self):
        self.cache = PrayerCache(MemoryStore())
        self.cache.put_window(KEY, _window("2024-03-01", "2024-03-30"))

    def test_hit_on_last_day(self):
        self.assertIsNotNone(self.cache.get_window(KEY, datetime.date(2024, 3, 30)))

    def test_hit_on_first_day(self):
        self.assertIsNotNone(self.cache.get_window(KEY, datetime.date(2024, 3, 1)))

    def test_miss_after_window(self):
        self.assertIsNone(self.cache.get_window(KEY, datetime.date(2024, 3, 31)))

    def test_entry_for_date(self):
        window = self.cache.get_window(KEY, datetime.date(2024, 3, 1))
        self.assertEqual(window.entry_for(datetime.date(2024, 3, 1)).times.Fajr, "05:30")
        self.assertIsNone(window.entry_for(datetime.date(2024, 3, 2)))


class TestDegradedStorage(unittest.TestCase):
    def test_no_store_always_misses(self):
        cache = PrayerCache(None)
        cache.put_daily(KEY, _daily("2024-03-15"))
        self.assertIsNone(cache.get_daily(KEY, datetime.date(2024, 3, 15)))
        self.assertIsNone(cache.get_stale_daily(KEY))

    def test_unavailable_store_is_swallowed(self):
        store = MagicMock()
        store.get_item.side_effect = StorageUnavailable("disk gone")
        store.set_item.side_effect = StorageUnavailable("disk gone")
        cache = PrayerCache(store)

        with self.assertLogs("salahnow.cache", level="WARNING"):
            cache.put_daily(KEY, _daily("2024-03-15"))
        self.assertIsNone(cache.get_daily(KEY, datetime.date(2024, 3, 15)))

    def test_corrupt_blob_is_a_miss(self):
        cache = PrayerCache(MemoryStore({"salahnow-prayer-cache": "{not json"}))
        self.assertIsNone(cache.get_stale_daily(KEY))

    def test_malformed_entry_is_a_miss(self):
        cache = PrayerCache(MemoryStore({"salahnow-prayer-cache": '{"Istanbul-TR-diyanet": {"times": {}}}'}))
        self.assertIsNone(cache.get_stale_daily(KEY))

    def test_malformed_window_dates_are_a_miss(self):
        blob = (
            '{"Istanbul-TR-diyanet": {"entries": [], "start_date": "garbage",'
            ' "end_date": "2024-03-30", "location_key": "Istanbul-TR-diyanet"}}'
        )
        cache = PrayerCache(MemoryStore({"salahnow-prayer-window-cache": blob}))
        self.assertIsNone(cache.get_window(KEY, datetime.date(2024, 3, 15)))


class TestJsonFileStore(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.mkdtemp()
        self.path = os.path.join(self._tmpdir, "nested", "cache.json")

    def tearDown(self):
        shutil.rmtree(self._tmpdir, ignore_errors=True)

    def test_roundtrip_through_disk(self):
        PrayerCache(JsonFileStore(self.path)).put_daily(KEY, _daily("2024-03-15"))

        entry = PrayerCache(JsonFileStore(self.path)).get_daily(KEY, datetime.date(2024, 3, 15))
        self.assertEqual(entry.times.Isha, "21:15")

    def test_missing_file_reads_none(self):
        self.assertIsNone(JsonFileStore(self.path).get_item("anything"))

    def test_corrupt_file_reads_none(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, "w") as f:
            f.write("not valid json")
        self.assertIsNone(JsonFileStore(self.path).get_item("anything"))


if __name__ == "__main__":
    unittest.main()
