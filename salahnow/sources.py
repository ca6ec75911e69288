"""Decide which time source is authoritative for a location."""

import logging
import unicodedata

from salahnow import config
from salahnow.errors import SourceResolutionFailed
from salahnow.location import DISTRICT_LOCATIONS, find_nearest_district
from salahnow.models import Location, PrayerSource

logger = logging.getLogger(__name__)

# Accent-stripped, lowercased spellings of the home country. The last entry is
# "Türkiye" after a latin-1/utf-8 mixup.
HOME_COUNTRY_NAMES = {"turkiye", "turkey", "tuerkiye", "tã¼rkiye"}


def _normalize_country(name: str) -> str:
    decomposed = unicodedata.normalize("NFKD", name or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.strip().lower()


def is_home_territory(location: Location) -> bool:
    if (location.country_code or "").strip().upper() == config.HOME_COUNTRY_CODE:
        return True
    country = location.country or ""
    return (
        _normalize_country(country) in HOME_COUNTRY_NAMES
        or country.strip().lower() in HOME_COUNTRY_NAMES
    )


def resolve_source(location: Location, requested: PrayerSource) -> PrayerSource:
    """Honor the requested source at home; everywhere else only coordinates work."""
    requested = PrayerSource.parse(requested)
    if is_home_territory(location):
        return requested
    if requested is not PrayerSource.MWL:
        logger.debug("%s is outside Diyanet territory, using %s", location.city, PrayerSource.MWL.value)
    return PrayerSource.MWL


def resolve_district_id(location: Location, gazetteer=DISTRICT_LOCATIONS) -> str:
    """Explicit district id, else the nearest gazetteer entry. Raises SourceResolutionFailed."""
    if location.district_id:
        return location.district_id
    nearest = find_nearest_district(location.lat, location.lon, gazetteer)
    if nearest is None:
        raise SourceResolutionFailed(location)
    logger.info("Resolved %s to Diyanet district %s (%s)", location.city, nearest.district_id, nearest.city)
    return nearest.district_id


def prepare_location(location: Location, requested: PrayerSource, gazetteer=DISTRICT_LOCATIONS) -> tuple:
    """
    Returns (effective_source, location). When the effective source is Diyanet
    the returned location carries a district id.
    """
    source = resolve_source(location, requested)
    if source is PrayerSource.DIYANET and not location.district_id:
        location = location.with_district(resolve_district_id(location, gazetteer))
    return source, location
