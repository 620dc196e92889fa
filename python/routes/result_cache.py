# routes/result_cache.py - Bounded TTL cache for trivial/simple pipeline results
from __future__ import annotations

import copy
import hashlib
import re
import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable, Dict, Optional, Tuple

from config.app_config import appConfig


def normalize_message(message: str) -> str:
    return re.sub(r'\s+', ' ', (message or '').strip().lower())


def cache_key(message: str, files: Dict[str, str]) -> str:
    """Normalized request + sorted `path@digest` for every involved file."""
    parts = []
    for path in sorted(files):
        digest = hashlib.sha1((files[path] or '').encode('utf-8')).hexdigest()[:8]
        parts.append(f"{path}@{digest}")
    return normalize_message(message) + '|' + ','.join(parts)


class PatternCache:
    """Oldest-first eviction, fixed capacity, entries expire after ttl seconds."""

    def __init__(
        self,
        max_entries: Optional[int] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max_entries or appConfig.cache.maxEntries
        self.ttl_seconds = ttl_seconds or appConfig.cache.ttlSeconds
        self._clock = clock
        self._entries: OrderedDict[str, Tuple[float, Dict[str, Any]]] = OrderedDict()
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def cacheable(complexity: str) -> bool:
        return complexity in appConfig.cache.tiers

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            stored_at, result = entry
            if self._clock() - stored_at > self.ttl_seconds:
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return copy.deepcopy(result)

    def set(self, key: str, result: Dict[str, Any]) -> None:
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            while len(self._entries) >= self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                print(f"[result-cache] Evicted oldest entry {evicted[:60]!r}")
            self._entries[key] = (self._clock(), copy.deepcopy(result))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {'size': len(self._entries), 'hits': self.hits, 'misses': self.misses,
                    'maxEntries': self.max_entries, 'ttlSeconds': self.ttl_seconds}


pattern_cache = PatternCache()
