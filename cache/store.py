"""
cache/store.py -- SQLite-backed JSON cache for hot read paths.

Public dropdown listings and settings groups are read on nearly every page
load but change rarely. LookupCache stores their JSON-serialized results with
a TTL (default 5 minutes); writers invalidate by key prefix so a change is
visible on the next read rather than after expiry.

Key conventions (owned by the callers):
    dropdowns:{dropdown_type}:{language}
    settings:{group_type}:{key|all}

Usage:
    cache = LookupCache(":memory:", ttl=300)
    cache.set("settings:site:all", [...])
    cache.get("settings:site:all")           # returns the value or None
    cache.invalidate_prefix("settings:site:")
    cache.purge_expired()                    # call periodically to trim old entries
"""

import json
import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger("campaignhub.cache")

_DEFAULT_DB = Path(__file__).resolve().parent.parent / "campaignhub_cache.db"
_DEFAULT_TTL = 300  # seconds

_DDL = """
CREATE TABLE IF NOT EXISTS lookup_cache (
    cache_key   TEXT PRIMARY KEY,
    data        TEXT NOT NULL,
    cached_at   REAL NOT NULL
);
"""


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class LookupCache:
    def __init__(self, db_path: Union[str, Path] = _DEFAULT_DB, ttl: int = _DEFAULT_TTL) -> None:
        self.ttl = ttl
        self.hits = 0
        self.misses = 0
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.commit()

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value for key if it exists and hasn't expired."""
        with self._lock:
            row = self._conn.execute(
                "SELECT data, cached_at FROM lookup_cache WHERE cache_key = ?",
                (key,),
            ).fetchone()
            if row is None:
                self.misses += 1
                return None
            data, cached_at = row
            if time.time() - cached_at > self.ttl:
                self._conn.execute("DELETE FROM lookup_cache WHERE cache_key = ?", (key,))
                self._conn.commit()
                self.misses += 1
                return None
            self.hits += 1
        return json.loads(data)

    def set(self, key: str, value: Any) -> None:
        """Store value for key, replacing any existing entry."""
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO lookup_cache (cache_key, data, cached_at) VALUES (?, ?, ?)",
                (key, json.dumps(value), time.time()),
            )
            self._conn.commit()

    def delete(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM lookup_cache WHERE cache_key = ?", (key,))
            self._conn.commit()

    def invalidate_prefix(self, prefix: str) -> int:
        """Delete every entry whose key starts with prefix. Returns rows removed."""
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM lookup_cache WHERE cache_key LIKE ? ESCAPE '\\'",
                (_escape_like(prefix) + "%",),
            )
            self._conn.commit()
        if cursor.rowcount:
            logger.debug("Invalidated %d cache entries under %s", cursor.rowcount, prefix)
        return cursor.rowcount

    def purge_expired(self) -> int:
        """Delete all entries older than TTL. Returns number of rows removed."""
        cutoff = time.time() - self.ttl
        with self._lock:
            cursor = self._conn.execute("DELETE FROM lookup_cache WHERE cached_at < ?", (cutoff,))
            self._conn.commit()
        return cursor.rowcount

    def clear(self) -> int:
        with self._lock:
            cursor = self._conn.execute("DELETE FROM lookup_cache")
            self._conn.commit()
        return cursor.rowcount

    def stats(self) -> dict:
        """Entry counts and hit/miss counters since startup."""
        cutoff = time.time() - self.ttl
        with self._lock:
            total = self._conn.execute("SELECT COUNT(*) FROM lookup_cache").fetchone()[0]
            expired = self._conn.execute(
                "SELECT COUNT(*) FROM lookup_cache WHERE cached_at < ?", (cutoff,)
            ).fetchone()[0]
        return {
            "entries": total,
            "expired": expired,
            "ttl_seconds": self.ttl,
            "hits": self.hits,
            "misses": self.misses,
        }

    def close(self) -> None:
        self._conn.close()
