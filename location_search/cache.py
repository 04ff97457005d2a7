"""SQLite-based search result cache, keyed by query and rounded reference location."""

import json
import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import List, Optional

from .models import Coordinates, LocationResult, Source
from .scorer import normalize_text

logger = logging.getLogger(__name__)


def make_cache_key(query: str, ref: Optional[Coordinates], decimals: int = 3) -> str:
    """Normalized query plus the location rounded to ~100 m ('-' when unknown)."""
    q = normalize_text(query)
    if not q:
        return ""
    loc = "-" if ref is None else f"{round(ref.lat, decimals)},{round(ref.lng, decimals)}"
    return f"{q}|{loc}"


def _result_to_row(r: LocationResult) -> dict:
    return {
        "id": r.id,
        "name": r.name,
        "address": r.address,
        "lat": r.lat,
        "lng": r.lng,
        "source": r.source.value,
        "icon": r.icon,
        "type": r.type,
        "distance_km": r.distance_km,
        "raw_score": r.raw_score,
    }


def _row_to_result(d: dict) -> LocationResult:
    return LocationResult(
        id=d["id"],
        name=d["name"],
        address=d.get("address", ""),
        lat=d["lat"],
        lng=d["lng"],
        source=Source(d["source"]),
        icon=d.get("icon", ""),
        type=d.get("type"),
        distance_km=d.get("distance_km"),
        raw_score=d.get("raw_score", 0.0),
    )


class SearchCache:
    """SQLite cache for ranked search responses."""

    def __init__(self, db_path: Path, ttl_seconds: int = 900):
        self.db_path = Path(db_path)
        self.ttl_seconds = ttl_seconds
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS search_cache (
                cache_key TEXT PRIMARY KEY,
                results_json TEXT NOT NULL,
                created_at REAL NOT NULL,
                expires_at REAL NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_search_expires ON search_cache(expires_at)
        """)
        self._conn.commit()

    def get(self, query: str, ref: Optional[Coordinates]) -> Optional[List[LocationResult]]:
        """Cached results for (query, location), or None if not cached / expired."""
        key = make_cache_key(query, ref)
        if not key:
            return None
        with self._lock:
            row = self._conn.execute(
                "SELECT results_json FROM search_cache WHERE cache_key = ? AND expires_at > ?",
                (key, time.time()),
            ).fetchone()
        if not row:
            return None
        try:
            return [_row_to_result(d) for d in json.loads(row[0])]
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            logger.warning(f"Cache: dropping unreadable entry for '{key}': {e}")
            self.invalidate(query, ref)
            return None

    def put(self, query: str, ref: Optional[Coordinates], results: List[LocationResult]):
        key = make_cache_key(query, ref)
        if not key:
            return
        now = time.time()
        payload = json.dumps([_result_to_row(r) for r in results])
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO search_cache (cache_key, results_json, created_at, expires_at) VALUES (?, ?, ?, ?)",
                (key, payload, now, now + self.ttl_seconds),
            )
            self._conn.commit()

    def invalidate(self, query: str, ref: Optional[Coordinates]):
        key = make_cache_key(query, ref)
        with self._lock:
            self._conn.execute("DELETE FROM search_cache WHERE cache_key = ?", (key,))
            self._conn.commit()

    def clear_expired(self):
        with self._lock:
            deleted = self._conn.execute(
                "DELETE FROM search_cache WHERE expires_at <= ?", (time.time(),)
            ).rowcount
            self._conn.commit()
        if deleted:
            logger.info(f"Cache: cleared {deleted} expired entries")

    @property
    def size(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) FROM search_cache").fetchone()
        return row[0] if row else 0

    def close(self):
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
