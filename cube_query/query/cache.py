"""
Compiled-SQL caching layer.

The SQL preview is recompiled whenever the editor re-renders, which is far
more often than the query actually changes.  Compiled SQL is cached by
(datasource uid, normalized query JSON): the JSON already reflects every
interpolated variable and ad-hoc filter, so identical JSON means identical
SQL.

The cache is process-local (dict-based) with configurable TTL and max size.
"""
from __future__ import annotations

import hashlib
import time
import threading
from dataclasses import dataclass
from typing import Any

from cube_query.core.config import get_settings
from cube_query.core.logging import get_logger

logger = get_logger(__name__)


# ── Cache entry ─────────────────────────────────────────


@dataclass
class CacheEntry:
    """A single compiled statement."""
    key: str
    sql: str
    created_at: float
    ttl: float
    hit_count: int = 0

    @property
    def is_expired(self) -> bool:
        return (time.time() - self.created_at) > self.ttl


# ── Cache implementation ────────────────────────────────


class CompiledSqlCache:
    """Thread-safe in-memory TTL cache for compiled SQL.

    Parameters
    ----------
    ttl : float
        Time-to-live in seconds for each entry.
    max_size : int
        Maximum number of entries. Oldest entries are evicted when full.
    """

    def __init__(self, ttl: float, max_size: int):
        self._store: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._ttl = ttl
        self._max_size = max_size
        self._hits = 0
        self._misses = 0

    # ── Public API ──────────────────────────────────────

    def get(self, datasource_uid: str, query_json: str) -> str | None:
        """Return cached SQL, or ``None`` on miss / expiry."""
        key = self._make_key(datasource_uid, query_json)
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired:
                del self._store[key]
                self._misses += 1
                return None
            entry.hit_count += 1
            self._hits += 1
            logger.debug("SQL cache HIT key=%s hits=%d", key[:16], entry.hit_count)
            return entry.sql

    def put(self, datasource_uid: str, query_json: str, sql: str) -> None:
        key = self._make_key(datasource_uid, query_json)
        with self._lock:
            if len(self._store) >= self._max_size and key not in self._store:
                self._evict_oldest()
            self._store[key] = CacheEntry(key=key, sql=sql, created_at=time.time(), ttl=self._ttl)
        logger.debug("SQL cache PUT key=%s size=%d", key[:16], len(self._store))

    def invalidate(self, datasource_uid: str | None = None) -> int:
        """Drop every entry (or every entry of one data source). Returns number removed."""
        with self._lock:
            if datasource_uid is None:
                count = len(self._store)
                self._store.clear()
                return count
            prefix = self._uid_prefix(datasource_uid)
            doomed = [k for k in self._store if k.startswith(prefix)]
            for k in doomed:
                del self._store[k]
            return len(doomed)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._store),
                "max_size": self._max_size,
                "ttl_seconds": self._ttl,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total, 3) if total else 0.0,
            }

    # ── Internals ───────────────────────────────────────

    @staticmethod
    def _uid_prefix(datasource_uid: str) -> str:
        return hashlib.sha256(datasource_uid.encode()).hexdigest()[:16] + ":"

    @classmethod
    def _make_key(cls, datasource_uid: str, query_json: str) -> str:
        return cls._uid_prefix(datasource_uid) + hashlib.sha256(query_json.encode()).hexdigest()

    def _evict_oldest(self) -> None:
        if not self._store:
            return
        oldest_key = min(self._store, key=lambda k: self._store[k].created_at)
        del self._store[oldest_key]


# ── Module-level singleton ──────────────────────────────

_cache: CompiledSqlCache | None = None


def get_sql_cache() -> CompiledSqlCache:
    """Return the global compiled-SQL cache, sized from settings."""
    global _cache
    if _cache is None:
        settings = get_settings()
        _cache = CompiledSqlCache(ttl=settings.sql_cache_ttl_seconds, max_size=settings.sql_cache_max_size)
    return _cache
