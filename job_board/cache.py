"""
Two-level cache for search results plus the per-job `jobs_cache` table.

• `MemoryCache` – process-local, TTL-bound, evicts the oldest entries in bulk.
• `SearchCache` – memory first, then the `job_search_cache` table.  Database
  trouble never breaks a search: it is logged and treated as a miss.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

import config
from .models import Job, split_job_id
from .storage import DatabaseUnavailable

logger = logging.getLogger(__name__)

CACHE_KINDS = ("all", "search", "jobs")


class MemoryCache:
    """Insertion-ordered TTL cache."""

    def __init__(
        self,
        ttl: float = config.MEMORY_CACHE_TTL,
        max_entries: int = config.MEMORY_CACHE_MAX_ENTRIES,
        evict_count: int = config.MEMORY_CACHE_EVICT,
    ) -> None:
        self.ttl = ttl
        self.max_entries = max_entries
        self.evict_count = evict_count
        self._data: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if time.time() - stored_at > self.ttl:
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if len(self._data) > self.max_entries:
                # dicts keep insertion order → the first keys are the oldest
                for old_key in list(self._data)[: self.evict_count]:
                    del self._data[old_key]
            self._data.pop(key, None)
            self._data[key] = (time.time(), value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> int:
        with self._lock:
            count = len(self._data)
            self._data.clear()
            return count

    def __len__(self) -> int:
        return len(self._data)


class SearchCache:
    """Search-result cache backed by memory and the database."""

    def __init__(self, storage, memory: Optional[MemoryCache] = None,
                 db_ttl: int = config.DB_CACHE_TTL) -> None:
        self.storage = storage
        self.memory = memory or MemoryCache()
        self.db_ttl = db_ttl

    # ── search results ─────────────────────────────────────────
    def get(self, key: str) -> Optional[dict]:
        hit = self.memory.get(key)
        if hit is not None:
            return hit
        try:
            row = self.storage.get_search_cache(key)
            if row is None:
                return None
            if row["expired"]:
                self.storage.delete_search_cache(key)
                return None
        except DatabaseUnavailable as exc:
            logger.warning("Search cache read skipped: %s", exc)
            return None
        except Exception as exc:
            logger.warning("Search cache read failed for %s: %s", key, exc)
            return None
        self.memory.set(key, row["results"])
        return row["results"]

    def set(self, key: str, data: dict) -> None:
        self.memory.set(key, data)
        try:
            self.storage.set_search_cache(key, data, self.db_ttl)
        except Exception as exc:
            logger.warning("Search cache write failed for %s: %s", key, exc)

    # ── individual jobs ────────────────────────────────────────
    def cache_jobs(self, jobs: List[Job]) -> int:
        """Upsert normalized jobs into `jobs_cache`. Returns rows written (0 on failure)."""
        if not jobs:
            return 0
        try:
            return self.storage.upsert_cached_jobs(jobs)
        except Exception as exc:
            logger.warning("Batch job caching failed (%d jobs): %s", len(jobs), exc)
            return 0

    def get_cached_job_by_id(self, job_id: str) -> Optional[Job]:
        source, external_id = split_job_id(job_id)
        if not source:
            return None
        try:
            return self.storage.get_cached_job(source, external_id)
        except Exception as exc:
            logger.warning("Cached job lookup failed for %s: %s", job_id, exc)
            return None

    # ── maintenance ────────────────────────────────────────────
    def clear(self, kind: str = "all") -> dict:
        """Clear `all`, `search` or `jobs`; raises ValueError for anything else."""
        if kind not in CACHE_KINDS:
            raise ValueError(f"Invalid cache type: {kind}")
        cleared = {}
        if kind in ("all", "search"):
            cleared["memory"] = self.memory.clear()
            cleared["search"] = self.storage.clear_search_cache()
        if kind in ("all", "jobs"):
            cleared["jobs"] = self.storage.clear_jobs_cache()
        logger.info("Cache cleared (%s): %s", kind, cleared)
        return cleared

    def clear_expired(self) -> int:
        try:
            return self.storage.clear_search_cache(expired_only=True)
        except Exception as exc:
            logger.warning("Expired cache cleanup failed: %s", exc)
            return 0
