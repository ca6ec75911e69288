"""Two-tier local cache: today's times and the 30 day window."""

import datetime
import json
import logging
import os
import threading

from salahnow import config
from salahnow.errors import StorageUnavailable
from salahnow.models import DailyCacheEntry, Location, PrayerSource, WindowCacheEntry

logger = logging.getLogger(__name__)


class MemoryStore:
    """Key-value store kept in memory. Used by tests and short-lived processes."""

    def __init__(self, initial: dict = None):
        self._data = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore:
    """Key-value store persisted as a single JSON object on disk."""

    def __init__(self, path: str = None):
        self.path = path or config.CACHE_FILE

    def _read_all(self) -> dict:
        if not os.path.isfile(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as exc:
            raise StorageUnavailable(f"cannot read {self.path}: {exc}") from exc
        except ValueError:
            logger.warning("Cache file %s is corrupt, starting empty", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def get_item(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            tmp_path = f"{self.path}.tmp"
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StorageUnavailable(f"cannot write {self.path}: {exc}") from exc


def cache_key(location: Location, source: PrayerSource) -> str:
    return f"{location.city}-{location.country_code}-{PrayerSource.parse(source).value}"


class PrayerCache:
    """
    Daily and window namespaces on top of a key-value store.

    Each namespace is one JSON blob mapping cache_key() to an entry. With no
    store every read misses and every write is dropped; storage errors are
    logged and treated the same way.
    """

    def __init__(self, store=None):
        self.store = store
        self._lock = threading.Lock()

    def _load(self, namespace: str) -> dict:
        if self.store is None:
            return {}
        try:
            raw = self.store.get_item(namespace)
        except StorageUnavailable as exc:
            logger.warning("Prayer cache unavailable: %s", exc)
            return {}
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable %s blob", namespace)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, namespace: str, key: str, value: dict) -> None:
        if self.store is None:
            return
        with self._lock:
            data = self._load(namespace)
            data[key] = value
            try:
                self.store.set_item(namespace, json.dumps(data, ensure_ascii=False))
            except StorageUnavailable as exc:
                logger.warning("Failed to cache prayer times: %s", exc)

    def _entry(self, namespace: str, key: str, parse):
        raw = self._load(namespace).get(key)
        if raw is None:
            return None
        try:
            return parse(raw)
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed %s entry for %s", namespace, key)
            return None

    def get_stale_daily(self, key: str) -> DailyCacheEntry | None:
        """The daily entry for key regardless of its date."""
        return self._entry(config.DAILY_CACHE_KEY, key, DailyCacheEntry.from_dict)

    def get_daily(self, key: str, today: datetime.date = None) -> DailyCacheEntry | None:
        if today is None:
            today = datetime.date.today()
        entry = self.get_stale_daily(key)
        if entry is not None and entry.is_fresh(today):
            return entry
        return None

    def put_daily(self, key: str, entry: DailyCacheEntry) -> None:
        self._save(config.DAILY_CACHE_KEY, key, entry.to_dict())

    def get_window(self, key: str, today: datetime.date = None) -> WindowCacheEntry | None:
        if today is None:
            today = datetime.date.today()
        entry = self._entry(config.WINDOW_CACHE_KEY, key, WindowCacheEntry.from_dict)
        if entry is not None and entry.is_fresh(today):
            return entry
        return None

    def put_window(self, key: str, entry: WindowCacheEntry) -> None:
        self._save(config.WINDOW_CACHE_KEY, key, entry.to_dict())
