# cache.py
# In-process TTL caches for materials listings and computed reports.

from __future__ import annotations
import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

log = logging.getLogger(__name__)

DEFAULT_MATERIALS_TTL = 300.0
DEFAULT_REPORT_TTL = 900.0
DEFAULT_MAX_ENTRIES = 1000
LATEST_KEY = "latest"

_MISSING = object()


def payload_hash(*parts: Any) -> str:
    """sha256 of the canonical JSON encoding of ``parts`` (sorted keys, no whitespace)."""
    blob = json.dumps(parts, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()


class TTLCache:
    """
    Thread-safe key/value store whose entries expire ``ttl_seconds`` after being set.
    Holds at most ``max_size`` entries; expired entries are purged on every write and
    the least recently used entry is evicted when the store is full.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic,
                 max_size: int = DEFAULT_MAX_ENTRIES):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.ttl = float(ttl_seconds)
        self.max_size = int(max_size)
        self._clock = clock
        self._data: "OrderedDict[Hashable, Tuple[Any, float]]" = OrderedDict()
        self._lock = threading.Lock()
        self._key_locks: Dict[Hashable, threading.Lock] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def _lookup(self, key: Hashable) -> Any:
        # caller holds self._lock
        entry = self._data.get(key)
        if entry is None:
            return _MISSING
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return _MISSING
        self._data.move_to_end(key)
        return value

    def _purge_expired(self) -> int:
        # caller holds self._lock
        now = self._clock()
        stale = [k for k, (_, exp) in self._data.items() if now >= exp]
        for k in stale:
            del self._data[k]
        return len(stale)

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            value = self._lookup(key)
            if value is _MISSING:
                self._misses += 1
                return default
            self._hits += 1
            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._purge_expired()
            if key not in self._data and len(self._data) >= self.max_size:
                self._data.popitem(last=False)
                self._evictions += 1
            self._data[key] = (value, self._clock() + self.ttl)
            self._data.move_to_end(key)

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Tuple[Any, bool]:
        """
        Return ``(value, hit)``. On a miss ``compute`` runs once per key even when
        several threads ask for the same key at the same time.
        """
        with self._lock:
            value = self._lookup(key)
            if value is not _MISSING:
                self._hits += 1
                return value, True
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        try:
            with key_lock:
                with self._lock:
                    value = self._lookup(key)
                    if value is not _MISSING:
                        self._hits += 1
                        return value, True
                    self._misses += 1
                value = compute()
                self.set(key, value)
            return value, False
        finally:
            with self._lock:
                if self._key_locks.get(key) is key_lock and not key_lock.locked():
                    del self._key_locks[key]

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def purge(self) -> int:
        with self._lock:
            return self._purge_expired()

    def __len__(self) -> int:
        self.purge()
        with self._lock:
            return len(self._data)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {"entries": len(self._data), "hits": self._hits, "misses": self._misses,
                    "evictions": self._evictions, "maxSize": self.max_size, "ttl": self.ttl}


class NullCache(TTLCache):
    """Never stores anything; every lookup is a miss."""

    def __init__(self, ttl_seconds: float = 0.0, clock: Callable[[], float] = time.monotonic):
        super().__init__(ttl_seconds, clock)

    def set(self, key: Hashable, value: Any) -> None:
        return None

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Tuple[Any, bool]:
        with self._lock:
            self._misses += 1
        return compute(), False


class MaterialsCache:
    """The most recently processed materials list, held under a single ``latest`` key."""

    def __init__(self, store: Optional[TTLCache] = None, ttl_seconds: float = DEFAULT_MATERIALS_TTL):
        self._store = store if store is not None else TTLCache(ttl_seconds)

    def store(self, materials: List[Dict[str, Any]]) -> str:
        digest = payload_hash(materials)
        snapshot = list(materials)
        self._store.set(LATEST_KEY, snapshot)
        log.debug("materials cache stored %d items (%s)", len(snapshot), digest[:12])
        return digest

    def latest(self) -> Optional[List[Dict[str, Any]]]:
        return self._store.get(LATEST_KEY)

    def clear(self) -> None:
        self._store.clear()

    def stats(self) -> Dict[str, Any]:
        return self._store.stats()


class ReportCache:
    """Whole reports keyed by the hash of (materials, transport, energy, options, inputs)."""

    def __init__(self, store: Optional[TTLCache] = None, ttl_seconds: float = DEFAULT_REPORT_TTL):
        self._store = store if store is not None else TTLCache(ttl_seconds)

    @staticmethod
    def key_for(materials: Any, transport: Any, energy: Any, options: Any, inputs: Any) -> str:
        return payload_hash(materials, transport, energy, options, inputs)

    def get_or_compute(self, key: str, compute: Callable[[], Dict[str, Any]]) -> Tuple[Dict[str, Any], bool]:
        report, hit = self._store.get_or_compute(key, compute)
        if hit:
            log.debug("report cache hit %s", key[:12])
        return report, hit

    def clear(self) -> None:
        self._store.clear()

    def stats(self) -> Dict[str, Any]:
        return self._store.stats()
