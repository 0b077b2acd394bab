"""
TTL cache for provider responses.

One :class:`CacheService` is built at application startup and handed to the
clients that need it.  Entries live in memory; when ``cache_dir`` is set
they are also written to JSON files so a restart does not refetch a whole
lookback window.

Cached values are pure functions of their key, so concurrent writers are
harmless (last write wins) and a stale-but-unexpired entry is acceptable.
The dict itself is guarded by a lock because FastAPI serves sync endpoints
from a threadpool.
"""

import hashlib
import json
import logging
import os
import tempfile
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CacheService:
    """In-memory TTL cache with an optional JSON disk tier."""

    def __init__(
        self,
        default_ttl: float = 3600.0,
        cache_dir: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.default_ttl = default_ttl
        self.cache_dir = cache_dir
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self.hits = 0
        self.misses = 0

        if cache_dir:
            os.makedirs(cache_dir, exist_ok=True)

    def _path_for(self, key: str) -> str:
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()
        return os.path.join(self.cache_dir, f"{digest}.json")

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or ``None`` when absent or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                expires_at, value = entry
                if expires_at > now:
                    self.hits += 1
                    logger.debug("Cache hit: %s", key)
                    return value
                del self._entries[key]

        if self.cache_dir:
            value = self._read_disk(key, now)
            if value is not None:
                with self._lock:
                    self.hits += 1
                logger.debug("Cache hit (disk): %s", key)
                return value

        with self._lock:
            self.misses += 1
        logger.debug("Cache miss: %s", key)
        return None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        expires_at = self._clock() + (self.default_ttl if ttl is None else ttl)
        with self._lock:
            self._entries[key] = (expires_at, value)
        if self.cache_dir:
            self._write_disk(key, expires_at, value)

    def clear(self) -> int:
        """Drop every entry (memory and disk).  Returns the number removed."""
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        if self.cache_dir and os.path.isdir(self.cache_dir):
            for name in os.listdir(self.cache_dir):
                if name.endswith(".json"):
                    try:
                        os.remove(os.path.join(self.cache_dir, name))
                        removed += 1
                    except OSError as e:
                        logger.warning("Could not remove cache file %s: %s", name, e)
        logger.info("Cache cleared (%d entries)", removed)
        return removed

    def evict_expired(self) -> int:
        """Remove expired in-memory entries."""
        now = self._clock()
        with self._lock:
            stale = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
            for k in stale:
                del self._entries[k]
        return len(stale)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            lookups = self.hits + self.misses
            return {
                "entries": len(self._entries),
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": round(self.hits / lookups, 3) if lookups else 0.0,
                "default_ttl_seconds": self.default_ttl,
                "disk_enabled": bool(self.cache_dir),
            }

    # ------------------------------------------------------------------
    # Disk tier
    # ------------------------------------------------------------------

    def _read_disk(self, key: str, now: float) -> Optional[Any]:
        path = self._path_for(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except (OSError, ValueError) as e:
            logger.warning("Unreadable cache file for %s: %s", key, e)
            return None

        expires_at = float(payload.get("expires_at", 0))
        if expires_at <= now:
            return None
        value = payload.get("value")
        with self._lock:
            self._entries[key] = (expires_at, value)
        return value

    def _write_disk(self, key: str, expires_at: float, value: Any) -> None:
        path = self._path_for(key)
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.cache_dir, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump({"key": key, "expires_at": expires_at, "value": value}, fh)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Could not persist cache entry %s: %s", key, e)
