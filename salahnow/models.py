"""Data model shared by the time source clients, the cache and the schedule engine."""

import datetime
import enum
import re
from dataclasses import dataclass

from salahnow.errors import MalformedResponse

PRAYER_NAMES = ("Fajr", "Sunrise", "Dhuhr", "Asr", "Maghrib", "Isha")

_TIME_RE = re.compile(r"(\d{1,2}):(\d{2})")


class PrayerSource(str, enum.Enum):
    DIYANET = "diyanet"  # district based, Turkey only
    MWL = "mwl"  # coordinate based (Aladhan, Muslim World League)

    @classmethod
    def parse(cls, value) -> "PrayerSource":
        """Parse a stored source value, falling back to the default for unknown input."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return DEFAULT_PRAYER_SOURCE


DEFAULT_PRAYER_SOURCE = PrayerSource.DIYANET


class CountdownTarget(str, enum.Enum):
    NEXT_PRAYER = "next"
    PRE_DAWN = "imsak"  # pinned to today's Fajr
    SUNSET = "iftar"  # pinned to today's Maghrib


def format_time_to_hhmm(raw: str, upstream: str = "upstream") -> str:
    """
    Normalize an upstream time of day to 'HH:MM'.

    Accepts '5:07', '05:07:00' and Aladhan's '05:07 (+03)' style.
    """
    match = _TIME_RE.search(str(raw))
    if not match:
        raise MalformedResponse(upstream, f"invalid time {raw!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise MalformedResponse(upstream, f"invalid time {raw!r}")
    return f"{hour:02d}:{minute:02d}"


def format_schedule_date(date: datetime.date) -> str:
    """Format a date the way schedule rows carry it: 'DD.MM.YYYY'."""
    return date.strftime("%d.%m.%Y")


def parse_schedule_date(date_str: str) -> datetime.date:
    return datetime.datetime.strptime(date_str, "%d.%m.%Y").date()


@dataclass
class Location:
    city: str
    country: str
    country_code: str
    lat: float
    lon: float
    district_id: str | None = None
    address_label: str | None = None
    custom: bool = False

    def identity(self) -> tuple:
        # Custom locations may share a city name, so coordinates disambiguate them
        if self.custom:
            return (self.city, self.country_code, self.lat, self.lon)
        return (self.city, self.country_code)

    def with_district(self, district_id: str) -> "Location":
        return Location(
            city=self.city,
            country=self.country,
            country_code=self.country_code,
            lat=self.lat,
            lon=self.lon,
            district_id=district_id,
            address_label=self.address_label,
            custom=self.custom,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "Location":
        district_id = data.get("district_id")
        return cls(
            city=str(data["city"]),
            country=str(data["country"]),
            country_code=str(data["country_code"]),
            lat=float(data["lat"]),
            lon=float(data["lon"]),
            district_id=str(district_id) if district_id else None,
            address_label=data.get("address_label"),
            custom=bool(data.get("custom", False)),
        )

    def to_dict(self) -> dict:
        payload = {
            "city": self.city,
            "country": self.country,
            "country_code": self.country_code,
            "lat": self.lat,
            "lon": self.lon,
        }
        if self.district_id:
            payload["district_id"] = self.district_id
        if self.address_label:
            payload["address_label"] = self.address_label
        if self.custom:
            payload["custom"] = True
        return payload


@dataclass
class PrayerTimes:
    Fajr: str
    Sunrise: str
    Dhuhr: str
    Asr: str
    Maghrib: str
    Isha: str

    def get(self, name: str) -> str:
        return getattr(self, name)

    @classmethod
    def from_dict(cls, data: dict) -> "PrayerTimes":
        return cls(**{name: str(data[name]) for name in PRAYER_NAMES})

    def to_dict(self) -> dict:
        return {name: self.get(name) for name in PRAYER_NAMES}


@dataclass
class DailyScheduleEntry:
    date: str  # DD.MM.YYYY
    times: PrayerTimes

    def as_date(self) -> datetime.date:
        return parse_schedule_date(self.date)

    @classmethod
    def from_dict(cls, data: dict) -> "DailyScheduleEntry":
        return cls(date=str(data["date"]), times=PrayerTimes.from_dict(data["times"]))

    def to_dict(self) -> dict:
        return {"date": self.date, "times": self.times.to_dict()}


@dataclass
class ResolvedDayResult:
    times: PrayerTimes
    time_zone: str | None = None


@dataclass
class DailyCacheEntry:
    times: PrayerTimes
    tomorrow_fajr: str
    iso_date: str  # YYYY-MM-DD, observer's local calendar date at fetch time
    location_key: str
    time_zone: str | None = None

    def is_fresh(self, today: datetime.date) -> bool:
        return self.iso_date == today.isoformat()

    @classmethod
    def from_dict(cls, data: dict) -> "DailyCacheEntry":
        return cls(
            times=PrayerTimes.from_dict(data["times"]),
            tomorrow_fajr=str(data["tomorrow_fajr"]),
            iso_date=str(data["iso_date"]),
            location_key=str(data["location_key"]),
            time_zone=data.get("time_zone"),
        )

    def to_dict(self) -> dict:
        return {
            "times": self.times.to_dict(),
            "tomorrow_fajr": self.tomorrow_fajr,
            "iso_date": self.iso_date,
            "location_key": self.location_key,
            "time_zone": self.time_zone,
        }


@dataclass
class WindowCacheEntry:
    entries: list
    start_date: str  # YYYY-MM-DD
    end_date: str  # YYYY-MM-DD, inclusive
    location_key: str

    def is_fresh(self, today: datetime.date) -> bool:
        start = datetime.date.fromisoformat(self.start_date)
        end = datetime.date.fromisoformat(self.end_date)
        return start <= today <= end

    def entry_for(self, date: datetime.date) -> DailyScheduleEntry | None:
        wanted = format_schedule_date(date)
        for entry in self.entries:
            if entry.date == wanted:
                return entry
        return None

    @classmethod
    def from_dict(cls, data: dict) -> "WindowCacheEntry":
        return cls(
            entries=[DailyScheduleEntry.from_dict(e) for e in data["entries"]],
            start_date=datetime.date.fromisoformat(str(data["start_date"])).isoformat(),
            end_date=datetime.date.fromisoformat(str(data["end_date"])).isoformat(),
            location_key=str(data["location_key"]),
        )

    def to_dict(self) -> dict:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "start_date": self.start_date,
            "end_date": self.end_date,
            "location_key": self.location_key,
        }


@dataclass
class CurrentPrayerInfo:
    current_prayer: str | None
    next_prayer: str
    next_prayer_time: str
    time_until_next_ms: int
    is_after_isha: bool = False


@dataclass
class PrayerListItem:
    name: str
    time: str
    is_active: bool = False
