"""
Current/next prayer evaluation over a day's six prayer times.

Everything here is a pure function of its inputs; pass `now` to get
deterministic results. All comparisons happen on naive wall-clock datetimes
in a single frame: the schedule's timezone if known, else the observer's.
"""

import datetime
import logging

import pytz

from salahnow.models import (
    PRAYER_NAMES,
    CountdownTarget,
    CurrentPrayerInfo,
    PrayerListItem,
    PrayerTimes,
)

logger = logging.getLogger(__name__)


def frame_now(time_zone: str = None, now: datetime.datetime = None) -> datetime.datetime:
    """
    Wall clock of `now` in `time_zone`, as a naive datetime.

    A naive `now` is taken as the observer's local time. Without a zone (or
    with an unknown one) the observer's local wall clock is returned.
    """
    if time_zone:
        try:
            tz = pytz.timezone(time_zone)
        except pytz.UnknownTimeZoneError:
            logger.warning("Unknown timezone %r, using local time", time_zone)
        else:
            aware = datetime.datetime.now(tz) if now is None else now.astimezone(tz)
            return aware.replace(tzinfo=None)

    if now is None:
        return datetime.datetime.now()
    if now.tzinfo is not None:
        return now.astimezone().replace(tzinfo=None)
    return now


def attach_time(time_str: str, base: datetime.datetime) -> datetime.datetime:
    """Put an 'HH:MM' time of day on base's date."""
    hour, minute = map(int, time_str.split(":")[:2])
    return base.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _ms(delta: datetime.timedelta) -> int:
    return (delta.days * 86400 + delta.seconds) * 1000 + delta.microseconds // 1000


def evaluate(
    times: PrayerTimes,
    tomorrow_fajr: str = None,
    time_zone: str = None,
    now: datetime.datetime = None,
) -> CurrentPrayerInfo:
    """
    Work out which prayer is current, which is next and how long until it.

    A slot becomes current at its exact minute. After Isha the countdown runs
    to tomorrow's Fajr (today's Fajr time is reused when tomorrow's is not
    known). Before today's Fajr, Isha of the previous day is still current.
    """
    current = frame_now(time_zone, now)
    slots = [(name, attach_time(times.get(name), current)) for name in PRAYER_NAMES]

    for i in range(len(slots) - 1, -1, -1):
        name, start = slots[i]
        if start > current:
            continue
        if i < len(slots) - 1:
            next_name, next_start = slots[i + 1]
            return CurrentPrayerInfo(
                current_prayer=name,
                next_prayer=next_name,
                next_prayer_time=times.get(next_name),
                time_until_next_ms=_ms(next_start - current),
            )
        fajr_time = tomorrow_fajr or times.Fajr
        fajr_start = attach_time(fajr_time, current + datetime.timedelta(days=1))
        return CurrentPrayerInfo(
            current_prayer=name,
            next_prayer="Fajr",
            next_prayer_time=fajr_time,
            time_until_next_ms=_ms(fajr_start - current),
            is_after_isha=True,
        )

    # Before today's Fajr
    return CurrentPrayerInfo(
        current_prayer="Isha",
        next_prayer="Fajr",
        next_prayer_time=times.Fajr,
        time_until_next_ms=_ms(slots[0][1] - current),
    )


def time_until_target(
    times: PrayerTimes,
    target: CountdownTarget,
    time_zone: str = None,
    now: datetime.datetime = None,
    tomorrow_fajr: str = None,
) -> int:
    """
    Milliseconds until the countdown target.

    PRE_DAWN and SUNSET are pinned to today's Fajr and Maghrib and roll over
    to tomorrow once passed.
    """
    if target == CountdownTarget.NEXT_PRAYER:
        return evaluate(times, tomorrow_fajr, time_zone, now).time_until_next_ms

    current = frame_now(time_zone, now)
    if target == CountdownTarget.PRE_DAWN:
        today_time, tomorrow_time = times.Fajr, tomorrow_fajr or times.Fajr
    elif target == CountdownTarget.SUNSET:
        today_time = tomorrow_time = times.Maghrib
    else:
        raise ValueError(f"Unknown countdown target: {target!r}")

    target_dt = attach_time(today_time, current)
    if target_dt <= current:
        target_dt = attach_time(tomorrow_time, current + datetime.timedelta(days=1))
    return _ms(target_dt - current)


def prayer_list(times: PrayerTimes, info: CurrentPrayerInfo) -> list:
    """Rows for display. Sunrise marks a transition, so nothing is active during it."""
    in_sunrise_window = info.current_prayer == "Sunrise"
    return [
        PrayerListItem(
            name=name,
            time=times.get(name),
            is_active=not in_sunrise_window and info.current_prayer == name,
        )
        for name in PRAYER_NAMES
    ]


def format_countdown(ms: int) -> str:
    """Format milliseconds as HH:MM:SS. Zero or negative renders as 00:00:00."""
    if ms <= 0:
        return "00:00:00"
    total = ms // 1000
    h = total // 3600
    m = (total % 3600) // 60
    s = total % 60
    return f"{h:02d}:{m:02d}:{s:02d}"
