# sdk/cache.py
"""
Read-through cache for data fetched from the store API.

Entries are stored as {"data": ..., "timestamp": <epoch seconds>} under
"<prefix><key>" in a key-value storage. An entry is fresh while
now - timestamp < ttl. When a fetch fails, any entry for the key (fresh or
not) is served instead of the error.
"""
import json
import logging
import os
import threading
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 30 * 60
CACHE_PREFIX = "cache_"


class MemoryStorage:
    def __init__(self):
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items.keys())


class JsonFileStorage:
    """Key-value storage persisted to a single JSON file."""

    def __init__(self, path: str):
        self.path = os.path.expanduser(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable storage file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, str]) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp, self.path)

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if data.pop(key, None) is not None:
                self._save(data)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._load().keys())


class CacheService:
    def __init__(self, storage=None, clock: Callable[[], float] = time.time, ttl_seconds: float = DEFAULT_TTL_SECONDS, prefix: str = CACHE_PREFIX):
        self.storage = storage if storage is not None else MemoryStorage()
        self.clock = clock
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    def _storage_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get_entry(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self.storage.get_item(self._storage_key(key))
        if raw is None:
            return None
        try:
            entry = json.loads(raw)
        except ValueError:
            logger.warning("[Cache] Dropping corrupt entry for %s", key)
            return None
        if not isinstance(entry, dict) or "timestamp" not in entry:
            return None
        return entry

    def set_entry(self, key: str, data: Any) -> None:
        entry = {"data": data, "timestamp": self.clock()}
        self.storage.set_item(self._storage_key(key), json.dumps(entry))

    def is_expired(self, timestamp: float) -> bool:
        return self.clock() - timestamp >= self.ttl_seconds

    def get_cached_data(self, key: str, fetch_fn: Callable[[], T]) -> T:
        entry = self.get_entry(key)
        if entry is not None and not self.is_expired(entry["timestamp"]):
            logger.debug("[Cache] Using cached data for %s", key)
            return entry["data"]

        logger.debug("[Cache] Fetching fresh data for %s", key)
        try:
            fresh = fetch_fn()
        except Exception as e:
            if entry is not None:
                logger.warning("[Cache] Fetch failed for %s (%s); using expired cache as fallback", key, e)
                return entry["data"]
            raise

        self.set_entry(key, fresh)
        return fresh

    def refresh_cached_data(self, key: str, fetch_fn: Callable[[], T]) -> T:
        fresh = fetch_fn()
        self.set_entry(key, fresh)
        return fresh

    def clear_cache_item(self, key: str) -> None:
        self.storage.remove_item(self._storage_key(key))

    def clear_all_cache(self) -> None:
        for k in self.storage.keys():
            if k.startswith(self.prefix):
                self.storage.remove_item(k)
