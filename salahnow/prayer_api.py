"""Fetch prayer times by coordinates from the Aladhan API."""

import datetime
import logging
from dataclasses import dataclass

import requests

from salahnow import config
from salahnow.errors import DateNotFound, MalformedResponse, UpstreamUnreachable
from salahnow.models import (
    DailyScheduleEntry,
    PrayerTimes,
    ResolvedDayResult,
    format_schedule_date,
    format_time_to_hhmm,
)

logger = logging.getLogger(__name__)

UPSTREAM = "Aladhan"


@dataclass
class AladhanTimings:
    """The six timings as Aladhan names them, still in raw 'HH:MM (TZ)' form."""

    Fajr: str
    Sunrise: str
    Dhuhr: str
    Asr: str
    Maghrib: str
    Isha: str

    @classmethod
    def from_json(cls, raw: dict) -> "AladhanTimings":
        try:
            return cls(
                Fajr=raw["Fajr"],
                Sunrise=raw["Sunrise"],
                Dhuhr=raw["Dhuhr"],
                Asr=raw["Asr"],
                Maghrib=raw["Maghrib"],
                Isha=raw["Isha"],
            )
        except (KeyError, TypeError) as exc:
            raise MalformedResponse(UPSTREAM, f"missing timing {exc}") from exc


def to_prayer_times(timings: AladhanTimings) -> PrayerTimes:
    return PrayerTimes(
        Fajr=format_time_to_hhmm(timings.Fajr, UPSTREAM),
        Sunrise=format_time_to_hhmm(timings.Sunrise, UPSTREAM),
        Dhuhr=format_time_to_hhmm(timings.Dhuhr, UPSTREAM),
        Asr=format_time_to_hhmm(timings.Asr, UPSTREAM),
        Maghrib=format_time_to_hhmm(timings.Maghrib, UPSTREAM),
        Isha=format_time_to_hhmm(timings.Isha, UPSTREAM),
    )


def convert_calendar_date(date_str: str) -> str:
    """Convert Aladhan's 'DD-MM-YYYY' to the 'DD.MM.YYYY' used by schedule rows."""
    try:
        parsed = datetime.datetime.strptime(str(date_str), "%d-%m-%Y").date()
    except ValueError as exc:
        raise MalformedResponse(UPSTREAM, f"invalid calendar date {date_str!r}") from exc
    return format_schedule_date(parsed)


def _get(url: str, lat: float, lon: float) -> dict:
    params = {
        "latitude": lat,
        "longitude": lon,
        "method": config.CALCULATION_METHOD,
        "school": config.ASR_SCHOOL,
    }
    try:
        resp = requests.get(url, params=params, timeout=config.REQUEST_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise UpstreamUnreachable(UPSTREAM, str(exc)) from exc

    try:
        body = resp.json()
    except ValueError as exc:
        raise MalformedResponse(UPSTREAM, "response is not JSON") from exc
    if not isinstance(body, dict) or body.get("code") != 200:
        status = body.get("status") if isinstance(body, dict) else None
        raise MalformedResponse(UPSTREAM, f"API error: {status}")
    return body


def fetch_prayer_times(lat: float, lon: float, when: datetime.datetime = None) -> ResolvedDayResult:
    """
    Fetch the six prayer times for the day containing `when`.

    The timezone comes from the response metadata and may be None.
    Raises UpstreamUnreachable or MalformedResponse on failure.
    """
    if when is None:
        when = datetime.datetime.now()
    timestamp = int(when.timestamp())
    body = _get(f"{config.ALADHAN_BASE}/timings/{timestamp}", lat, lon)

    try:
        data = body["data"]
        timings = AladhanTimings.from_json(data["timings"])
        time_zone = (data.get("meta") or {}).get("timezone")
    except (KeyError, TypeError, AttributeError) as exc:
        raise MalformedResponse(UPSTREAM, "unexpected timings payload") from exc

    return ResolvedDayResult(times=to_prayer_times(timings), time_zone=time_zone or None)


def fetch_tomorrow_fajr(lat: float, lon: float, now: datetime.datetime = None) -> str:
    """Fetch only the Fajr time of the day after `now`."""
    if now is None:
        now = datetime.datetime.now()
    result = fetch_prayer_times(lat, lon, now + datetime.timedelta(days=1))
    return result.times.Fajr


def fetch_calendar_month(lat: float, lon: float, year: int, month: int) -> list:
    """Fetch one calendar month as a list of DailyScheduleEntry."""
    body = _get(f"{config.ALADHAN_BASE}/calendar/{year}/{month}", lat, lon)

    days = body.get("data")
    if not isinstance(days, list):
        raise MalformedResponse(UPSTREAM, "calendar data is not a list")

    entries = []
    for day in days:
        try:
            date_str = day["date"]["gregorian"]["date"]
            timings = AladhanTimings.from_json(day["timings"])
        except (KeyError, TypeError) as exc:
            raise MalformedResponse(UPSTREAM, "unexpected calendar payload") from exc
        entries.append(
            DailyScheduleEntry(date=convert_calendar_date(date_str), times=to_prayer_times(timings))
        )
    return entries


def fetch_window(lat: float, lon: float, start: datetime.date, days: int) -> list:
    """
    Fetch `days` consecutive days starting at `start`.

    A window crossing a month boundary needs both calendar months; they are
    merged and trimmed to the window.
    """
    end = start + datetime.timedelta(days=days - 1)
    months = [(start.year, start.month)]
    cursor = start.replace(day=1)
    while (cursor.year, cursor.month) != (end.year, end.month):
        cursor = (cursor + datetime.timedelta(days=32)).replace(day=1)
        months.append((cursor.year, cursor.month))

    merged = []
    for year, month in months:
        logger.debug("Fetching Aladhan calendar %s-%02d for %.4f,%.4f", year, month, lat, lon)
        merged.extend(fetch_calendar_month(lat, lon, year, month))

    window = [entry for entry in merged if start <= entry.as_date() <= end]
    if not window:
        raise DateNotFound(format_schedule_date(start))
    return window
