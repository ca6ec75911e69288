"""Fetch prayer times through the cache, falling back to stale data when offline."""

import datetime
import logging
import threading
from concurrent.futures import Future

from salahnow import config, diyanet_api, prayer_api
from salahnow.cache import PrayerCache, cache_key
from salahnow.errors import UpstreamUnreachable
from salahnow.location import DISTRICT_LOCATIONS
from salahnow.models import (
    DEFAULT_PRAYER_SOURCE,
    DailyCacheEntry,
    Location,
    PrayerSource,
    ResolvedDayResult,
    WindowCacheEntry,
)
from salahnow.sources import prepare_location

logger = logging.getLogger(__name__)


def _spawn_daemon(target, *args) -> None:
    t = threading.Thread(target=target, args=args, daemon=True)
    t.start()


class PrayerTimesService:
    """
    Entry point for prayer time lookups.

    cache:     PrayerCache (defaults to one without a store: always miss)
    gazetteer: locations with Diyanet district ids for nearest-neighbor lookup
    clock:     callable returning the observer's local datetime
    spawn:     callable(target, *args) used for best-effort background work
    """

    def __init__(self, cache: PrayerCache = None, gazetteer=DISTRICT_LOCATIONS, clock=None, spawn=None):
        self.cache = cache or PrayerCache()
        self.gazetteer = gazetteer
        self.clock = clock or datetime.datetime.now
        self.spawn = spawn or _spawn_daemon
        self._inflight = {}
        self._inflight_lock = threading.Lock()

    def _dedupe(self, key: str, fn):
        """Run fn once per in-flight key; concurrent callers share its result or error."""
        with self._inflight_lock:
            future = self._inflight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[key] = future
        if not owner:
            logger.debug("Joining in-flight fetch for %s", key)
            return future.result()

        try:
            result = fn()
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._inflight_lock:
                self._inflight.pop(key, None)

    def _fetch_day(self, location: Location, source: PrayerSource, key: str) -> DailyCacheEntry:
        now = self.clock()
        today = now.date()
        if source is PrayerSource.DIYANET:
            result, tomorrow_fajr = diyanet_api.fetch_day_bundle(location.district_id, today)
        else:
            result = prayer_api.fetch_prayer_times(location.lat, location.lon, now)
            tomorrow_fajr = prayer_api.fetch_tomorrow_fajr(location.lat, location.lon, now)

        entry = DailyCacheEntry(
            times=result.times,
            tomorrow_fajr=tomorrow_fajr,
            iso_date=today.isoformat(),
            location_key=key,
            time_zone=result.time_zone,
        )
        self.cache.put_daily(key, entry)
        self.spawn(self._warm_window, location, source)
        return entry

    def fetch_daily(self, location: Location, requested_source: PrayerSource = DEFAULT_PRAYER_SOURCE) -> tuple:
        """
        Today's cache entry for a location and the source that produced it.

        Returns (DailyCacheEntry, effective_source). When upstream is
        unreachable an expired entry is served if one exists. Malformed
        responses, missing dates and source resolution failures propagate.
        """
        source, location = prepare_location(location, requested_source, self.gazetteer)
        key = cache_key(location, source)

        cached = self.cache.get_daily(key, self.clock().date())
        if cached is not None:
            return cached, source

        try:
            entry = self._dedupe(f"daily:{key}", lambda: self._fetch_day(location, source, key))
        except UpstreamUnreachable as exc:
            stale = self.cache.get_stale_daily(key)
            if stale is None:
                raise
            logger.warning("Serving stale prayer times from %s for %s: %s", stale.iso_date, key, exc)
            return stale, source
        return entry, source

    def fetch_prayer_times(self, location: Location, source: PrayerSource = DEFAULT_PRAYER_SOURCE) -> ResolvedDayResult:
        entry, _ = self.fetch_daily(location, source)
        return ResolvedDayResult(times=entry.times, time_zone=entry.time_zone)

    def fetch_tomorrow_fajr(self, location: Location, source: PrayerSource = DEFAULT_PRAYER_SOURCE) -> str:
        entry, _ = self.fetch_daily(location, source)
        return entry.tomorrow_fajr

    def _fetch_window(self, location: Location, source: PrayerSource, key: str) -> WindowCacheEntry:
        start = self.clock().date()
        days = config.WINDOW_DAYS
        if source is PrayerSource.DIYANET:
            entries = diyanet_api.fetch_window(location.district_id, start, days)
        else:
            entries = prayer_api.fetch_window(location.lat, location.lon, start, days)

        # The upstream may cover fewer days than asked for
        last = max(e.as_date() for e in entries)
        entry = WindowCacheEntry(
            entries=entries,
            start_date=start.isoformat(),
            end_date=last.isoformat(),
            location_key=key,
        )
        self.cache.put_window(key, entry)
        return entry

    def fetch_window(self, location: Location, requested_source: PrayerSource = DEFAULT_PRAYER_SOURCE) -> WindowCacheEntry:
        """The rolling schedule starting today, for monthly views."""
        source, location = prepare_location(location, requested_source, self.gazetteer)
        key = cache_key(location, source)

        cached = self.cache.get_window(key, self.clock().date())
        if cached is not None:
            return cached
        return self._dedupe(f"window:{key}", lambda: self._fetch_window(location, source, key))

    def _warm_window(self, location: Location, source: PrayerSource) -> None:
        key = cache_key(location, source)
        try:
            if self.cache.get_window(key, self.clock().date()) is not None:
                return
            self._dedupe(f"window:{key}", lambda: self._fetch_window(location, source, key))
        except Exception:
            logger.warning("Background window refresh failed for %s", key, exc_info=True)
