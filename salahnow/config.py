"""Runtime configuration. Every value can be overridden via a SALAHNOW_* env var."""

import os


def _env_number(name: str, default: str, cast=float):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


ALADHAN_BASE = os.environ.get("SALAHNOW_ALADHAN_BASE", "https://api.aladhan.com/v1")
DIYANET_BASE = os.environ.get("SALAHNOW_DIYANET_BASE", "https://ezanvakti.emushaf.net")
IPAPI_URL = os.environ.get("SALAHNOW_IPAPI_URL", "http://ip-api.com/json/")

# Aladhan method 3 = Muslim World League, school 1 = Hanafi asr
CALCULATION_METHOD = _env_number("SALAHNOW_METHOD", "3", int)
ASR_SCHOOL = _env_number("SALAHNOW_SCHOOL", "1", int)

DIYANET_TIME_ZONE = "Europe/Istanbul"
HOME_COUNTRY_CODE = "TR"

REQUEST_TIMEOUT = _env_number("SALAHNOW_REQUEST_TIMEOUT", "10")
GEOLOCATION_TIMEOUT = _env_number("SALAHNOW_GEOLOCATION_TIMEOUT", "10")

CONFIG_DIR = os.environ.get(
    "SALAHNOW_CONFIG_DIR", os.path.join(os.path.expanduser("~"), ".salahnow")
)
CACHE_FILE = os.path.join(CONFIG_DIR, "cache.json")

DAILY_CACHE_KEY = "salahnow-prayer-cache"
WINDOW_CACHE_KEY = "salahnow-prayer-window-cache"
WINDOW_DAYS = _env_number("SALAHNOW_WINDOW_DAYS", "30", int)

# Max distance for snapping a location onto a known Diyanet district
DISTRICT_MATCH_MAX_KM = _env_number("SALAHNOW_DISTRICT_MATCH_MAX_KM", "250")

TICK_SECONDS = _env_number("SALAHNOW_TICK_SECONDS", "1.0")
