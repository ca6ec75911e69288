"""Location detection via IP geolocation and the Diyanet district gazetteer."""

import logging
import math
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FuturesTimeout

import requests

from salahnow import config
from salahnow.models import Location

logger = logging.getLogger(__name__)

# Cities with a known Diyanet district id (ilçe id on ezanvakti).
DISTRICT_LOCATIONS = (
    Location("Istanbul", "Türkiye", "TR", 41.0082, 28.9784, district_id="9541"),
    Location("Ankara", "Türkiye", "TR", 39.9334, 32.8597, district_id="9206"),
    Location("Izmir", "Türkiye", "TR", 38.4237, 27.1428, district_id="9560"),
    Location("Bursa", "Türkiye", "TR", 40.1885, 29.0610, district_id="9335"),
    Location("Antalya", "Türkiye", "TR", 36.8969, 30.7133, district_id="9225"),
    Location("Adana", "Türkiye", "TR", 37.0000, 35.3213, district_id="9146"),
    Location("Konya", "Türkiye", "TR", 37.8746, 32.4932, district_id="9676"),
    Location("Gaziantep", "Türkiye", "TR", 37.0662, 37.3833, district_id="9479"),
    Location("Kayseri", "Türkiye", "TR", 38.7312, 35.4787, district_id="9620"),
    Location("Samsun", "Türkiye", "TR", 41.2928, 36.3313, district_id="9819"),
    Location("Trabzon", "Türkiye", "TR", 41.0015, 39.7178, district_id="9879"),
    Location("Erzurum", "Türkiye", "TR", 39.9043, 41.2679, district_id="9451"),
    Location("Diyarbakir", "Türkiye", "TR", 37.9144, 40.2306, district_id="9402"),
    Location("Eskisehir", "Türkiye", "TR", 39.7767, 30.5206, district_id="9470"),
)

DEFAULT_LOCATION = DISTRICT_LOCATIONS[0]

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def find_nearest_location(lat: float, lon: float, candidates=DISTRICT_LOCATIONS) -> Location | None:
    """Return the candidate closest to (lat, lon), or None if there are none."""
    best = None
    best_km = None
    for candidate in candidates:
        km = haversine_km(lat, lon, candidate.lat, candidate.lon)
        if best_km is None or km < best_km:
            best, best_km = candidate, km
    return best


def find_nearest_district(
    lat: float,
    lon: float,
    candidates=DISTRICT_LOCATIONS,
    max_km: float = None,
) -> Location | None:
    """
    Nearest candidate that carries a district id and lies within max_km.

    Returns None when nothing qualifies.
    """
    if max_km is None:
        max_km = config.DISTRICT_MATCH_MAX_KM
    with_district = [c for c in candidates if c.district_id]
    nearest = find_nearest_location(lat, lon, with_district)
    if nearest is None:
        return None
    if haversine_km(lat, lon, nearest.lat, nearest.lon) > max_km:
        return None
    return nearest


def _lookup(timeout: float) -> dict:
    resp = requests.get(
        config.IPAPI_URL,
        params={"fields": "city,country,countryCode,lat,lon,status,message"},
        timeout=timeout,
    )
    resp.raise_for_status()
    return resp.json()


def _lookup_with_deadline(timeout: float) -> dict:
    # requests' timeout bounds each socket operation, not the whole call
    future = Future()

    def run():
        try:
            future.set_result(_lookup(timeout))
        except Exception as exc:
            future.set_exception(exc)

    threading.Thread(target=run, daemon=True).start()
    return future.result(timeout=timeout)


def get_location(timeout: float = None) -> Location:
    """
    Detect the current location via IP geolocation.

    Anything slower than `timeout` seconds (10 by default) or any failure
    falls back to DEFAULT_LOCATION. A Turkish result is snapped to the nearest
    gazetteer city so it carries a district id.
    """
    if timeout is None:
        timeout = config.GEOLOCATION_TIMEOUT
    try:
        data = _lookup_with_deadline(timeout)
    except FuturesTimeout:
        logger.warning("IP geolocation took longer than %ss, using default location", timeout)
        return DEFAULT_LOCATION
    except (requests.RequestException, ValueError) as exc:
        logger.warning("IP geolocation failed, using default location: %s", exc)
        return DEFAULT_LOCATION

    if data.get("status") != "success":
        logger.warning("IP geolocation refused: %s", data.get("message"))
        return DEFAULT_LOCATION

    try:
        lat = float(data["lat"])
        lon = float(data["lon"])
    except (KeyError, TypeError, ValueError):
        logger.warning("IP geolocation returned no coordinates")
        return DEFAULT_LOCATION

    country_code = str(data.get("countryCode") or "").upper()
    if country_code == config.HOME_COUNTRY_CODE:
        nearest = find_nearest_district(lat, lon)
        if nearest is not None:
            return nearest

    return Location(
        city=data.get("city") or "Unknown",
        country=data.get("country") or "",
        country_code=country_code or "XX",
        lat=lat,
        lon=lon,
    )
