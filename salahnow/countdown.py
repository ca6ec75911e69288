"""Live one-second countdown over the cached schedule, and the tracker feeding it."""

import datetime
import logging
import threading
from dataclasses import dataclass, field, replace

from salahnow import config
from salahnow.errors import PrayerTimesError
from salahnow.models import (
    DEFAULT_PRAYER_SOURCE,
    CountdownTarget,
    DailyCacheEntry,
    Location,
    PrayerSource,
)
from salahnow.schedule import evaluate, format_countdown, prayer_list, time_until_target

logger = logging.getLogger(__name__)


@dataclass
class DisplayState:
    current_prayer: str | None
    next_prayer: str
    next_prayer_time: str
    countdown: str
    target: CountdownTarget
    is_after_isha: bool
    prayers: list = field(default_factory=list)


def build_display_state(day: DailyCacheEntry, target: CountdownTarget, now: datetime.datetime = None) -> DisplayState:
    info = evaluate(day.times, day.tomorrow_fajr, day.time_zone, now)
    if target == CountdownTarget.NEXT_PRAYER:
        remaining = info.time_until_next_ms
    else:
        remaining = time_until_target(day.times, target, day.time_zone, now, day.tomorrow_fajr)
    return DisplayState(
        current_prayer=info.current_prayer,
        next_prayer=info.next_prayer,
        next_prayer_time=info.next_prayer_time,
        countdown=format_countdown(remaining),
        target=target,
        is_after_isha=info.is_after_isha,
        prayers=prayer_list(day.times, info),
    )


class CountdownDriver:
    """
    Re-evaluates the schedule every `interval` seconds on a daemon thread and
    hands the DisplayState to `on_update`. Never touches the network.
    """

    def __init__(self, on_update, clock=None, interval: float = None):
        self.on_update = on_update
        self.clock = clock
        self.interval = config.TICK_SECONDS if interval is None else interval
        self.day = None
        self.target = CountdownTarget.NEXT_PRAYER
        self._stop_event = None
        self._thread = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> DisplayState | None:
        day, target = self.day, self.target
        if day is None:
            return None
        now = self.clock() if self.clock else None
        state = build_display_state(day, target, now)
        try:
            self.on_update(state)
        except Exception:
            logger.exception("Countdown update callback failed")
        return state

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Countdown tick failed")

    def start(self, day: DailyCacheEntry, target: CountdownTarget = CountdownTarget.NEXT_PRAYER) -> None:
        """Stop any running timer, publish immediately, then tick every interval."""
        with self._lock:
            previous = self._detach_locked()
            self.day = day
            self.target = target
            stop_event = threading.Event()
            thread = threading.Thread(target=self._run, args=(stop_event,), daemon=True)
            self._stop_event, self._thread = stop_event, thread
            thread.start()
        # on_update may re-enter start() or stop()
        self._join(previous)
        self.tick()

    def _detach_locked(self) -> threading.Thread | None:
        if self._stop_event is not None:
            self._stop_event.set()
        thread = self._thread
        self._stop_event = None
        self._thread = None
        return thread

    def _join(self, thread: threading.Thread | None) -> None:
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval + 1)

    def stop(self) -> None:
        with self._lock:
            previous = self._detach_locked()
        self._join(previous)


@dataclass
class TrackerState:
    loading: bool = True
    error: str | None = None
    location: Location | None = None
    source: PrayerSource | None = None
    day: DailyCacheEntry | None = None
    display: DisplayState | None = None


class PrayerTimesTracker:
    """
    Follows one location/source selection: fetches its schedule through the
    service, then drives the countdown until the selection changes.

    on_state receives a fresh TrackerState copy on every change and tick.
    """

    def __init__(self, service, on_state, clock=None, driver: CountdownDriver = None, background: bool = True):
        self.service = service
        self.on_state = on_state
        self.background = background
        self.driver = driver or CountdownDriver(self._on_tick, clock=clock)
        self.target = CountdownTarget.NEXT_PRAYER
        self.state = TrackerState(loading=False)
        self._generation = 0
        self._closed = False
        self._lock = threading.Lock()
        # Serializes timer stop/start across selection changes
        self._switch_lock = threading.RLock()

    def _publish(self) -> None:
        with self._lock:
            snapshot = replace(self.state)
        self.on_state(snapshot)

    def _on_tick(self, display: DisplayState) -> None:
        with self._lock:
            self.state.display = display
        self._publish()

    def watch(
        self,
        location: Location,
        source: PrayerSource = DEFAULT_PRAYER_SOURCE,
        target: CountdownTarget = None,
    ) -> None:
        """Switch to a new location/source. The previous countdown stops first."""
        with self._switch_lock:
            self.driver.stop()
            if target is not None:
                self.target = target
            with self._lock:
                self._generation += 1
                generation = self._generation
                self._closed = False
                self.state = TrackerState(loading=True, location=location, source=PrayerSource.parse(source))
        self._publish()
        self._start_load(generation, location, source)

    def refresh(self) -> None:
        """Refetch the current selection, keeping the displayed values meanwhile."""
        with self._lock:
            if self._closed or self.state.location is None:
                return
            self._generation += 1
            generation = self._generation
            location, source = self.state.location, self.state.source
            self.state.loading = True
        self._publish()
        self._start_load(generation, location, source)

    def set_target(self, target: CountdownTarget) -> None:
        with self._switch_lock:
            self.target = target
            if self.state.day is not None and not self._closed:
                self.driver.start(self.state.day, target)

    def close(self) -> None:
        """Stop the countdown. refresh() does nothing until watch() picks a selection again."""
        with self._switch_lock:
            with self._lock:
                self._generation += 1
                self._closed = True
            self.driver.stop()

    def _start_load(self, generation: int, location: Location, source: PrayerSource) -> None:
        if self.background:
            t = threading.Thread(target=self._load, args=(generation, location, source), daemon=True)
            t.start()
        else:
            self._load(generation, location, source)

    def _load(self, generation: int, location: Location, source: PrayerSource) -> None:
        try:
            day, effective = self.service.fetch_daily(location, source)
        except PrayerTimesError as exc:
            logger.warning("Prayer times unavailable for %s: %s", location.city, exc)
            with self._lock:
                if self._closed or generation != self._generation:
                    return
                self.state.loading = False
                self.state.error = f"Prayer times unavailable: {exc}"
            self._publish()
            return

        with self._switch_lock:
            with self._lock:
                if self._closed or generation != self._generation:
                    return
                self.state.loading = False
                self.state.error = None
                self.state.source = effective
                self.state.day = day
            self.driver.start(day, self.target)
