"""Fetch district based prayer times from the Diyanet (ezanvakti) service."""

import datetime
import json
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

UPSTREAM = "Diyanet"


@dataclass
class DiyanetDay:
    """One row of the /vakitler response, using the upstream's field names."""

    MiladiTarihKisa: str
    Imsak: str
    Gunes: str
    Ogle: str
    Ikindi: str
    Aksam: str
    Yatsi: str

    @classmethod
    def from_json(cls, raw: dict) -> "DiyanetDay":
        try:
            return cls(
                MiladiTarihKisa=str(raw["MiladiTarihKisa"]),
                Imsak=raw["Imsak"],
                Gunes=raw["Gunes"],
                Ogle=raw["Ogle"],
                Ikindi=raw["Ikindi"],
                Aksam=raw["Aksam"],
                Yatsi=raw["Yatsi"],
            )
        except (KeyError, TypeError) as exc:
            raise MalformedResponse(UPSTREAM, f"missing field {exc}") from exc


def to_schedule_entry(day: DiyanetDay) -> DailyScheduleEntry:
    return DailyScheduleEntry(
        date=day.MiladiTarihKisa,
        times=PrayerTimes(
            Fajr=format_time_to_hhmm(day.Imsak, UPSTREAM),
            Sunrise=format_time_to_hhmm(day.Gunes, UPSTREAM),
            Dhuhr=format_time_to_hhmm(day.Ogle, UPSTREAM),
            Asr=format_time_to_hhmm(day.Ikindi, UPSTREAM),
            Maghrib=format_time_to_hhmm(day.Aksam, UPSTREAM),
            Isha=format_time_to_hhmm(day.Yatsi, UPSTREAM),
        ),
    )


def fetch_schedule(district_id: str) -> list:
    """
    Fetch every day the service publishes for a district (usually about a month).

    Returns a list of DailyScheduleEntry in upstream order.
    Raises UpstreamUnreachable or MalformedResponse on failure.
    """
    url = f"{config.DIYANET_BASE}/vakitler/{district_id}"
    try:
        resp = requests.get(url, timeout=config.REQUEST_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise UpstreamUnreachable(UPSTREAM, str(exc)) from exc

    # The service sometimes prefixes the body with a UTF-8 BOM
    try:
        rows = json.loads(resp.content.decode("utf-8-sig"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedResponse(UPSTREAM, "response is not JSON") from exc
    if not isinstance(rows, list):
        raise MalformedResponse(UPSTREAM, "expected a list of days")

    return [to_schedule_entry(DiyanetDay.from_json(row)) for row in rows]


def find_entry(entries: list, date: datetime.date) -> DailyScheduleEntry:
    """Find the row for `date` by exact 'DD.MM.YYYY' match. Raises DateNotFound."""
    wanted = format_schedule_date(date)
    for entry in entries:
        if entry.date == wanted:
            return entry
    raise DateNotFound(wanted)


def fetch_day(district_id: str, date: datetime.date = None) -> ResolvedDayResult:
    if date is None:
        date = datetime.date.today()
    entry = find_entry(fetch_schedule(district_id), date)
    return ResolvedDayResult(times=entry.times, time_zone=config.DIYANET_TIME_ZONE)


def fetch_tomorrow_fajr(district_id: str, today: datetime.date = None) -> str:
    if today is None:
        today = datetime.date.today()
    entry = find_entry(fetch_schedule(district_id), today + datetime.timedelta(days=1))
    return entry.times.Fajr


def fetch_day_bundle(district_id: str, today: datetime.date = None) -> tuple:
    """
    Fetch today's times and tomorrow's Fajr with a single request.

    Returns (ResolvedDayResult, tomorrow_fajr).
    """
    if today is None:
        today = datetime.date.today()
    entries = fetch_schedule(district_id)
    today_entry = find_entry(entries, today)
    tomorrow_entry = find_entry(entries, today + datetime.timedelta(days=1))
    result = ResolvedDayResult(times=today_entry.times, time_zone=config.DIYANET_TIME_ZONE)
    return result, tomorrow_entry.times.Fajr


def fetch_window(district_id: str, start: datetime.date, days: int) -> list:
    """Fetch the district schedule and keep the rows inside [start, start + days)."""
    end = start + datetime.timedelta(days=days - 1)
    entries = fetch_schedule(district_id)
    window = []
    for entry in entries:
        try:
            day = entry.as_date()
        except ValueError as exc:
            raise MalformedResponse(UPSTREAM, f"invalid date {entry.date!r}") from exc
        if start <= day <= end:
            window.append(entry)
    if not window:
        raise DateNotFound(format_schedule_date(start))
    logger.debug("Diyanet district %s: %d of %d days in window", district_id, len(window), len(entries))
    return window
