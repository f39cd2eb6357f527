"""
Search aggregator – fans one search out to every enabled provider.

• Runs providers in a thread pool; one failing provider never fails the search.
• Normalizes, de-duplicates on title + company, sorts newest first, paginates.
• Full result lists are cached so later pages are served without refetching.
"""

from __future__ import annotations

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import Callable, Dict, List, Optional

import config
from .cache import SearchCache
from .models import Job, SearchParams, posted_timestamp, split_job_id
from .normalizer import normalize_job
from .sources import ALL_SOURCES, BaseSource, ProviderResult

logger = logging.getLogger(__name__)

__all__ = ["JobSearchService", "SearchParams"]


class JobSearchService:
    """Central coordinator for job searches."""

    def __init__(self, cache: Optional[SearchCache] = None,
                 sources: Optional[Dict[str, Callable[[], BaseSource]]] = None) -> None:
        self.cache = cache
        # id → provider class; instances (each with its own HTTP session) are built per search
        self.sources = dict(ALL_SOURCES if sources is None else sources)

    # ── providers ──────────────────────────────────────────────
    def _ordered(self) -> List[BaseSource]:
        return sorted((cls() for cls in self.sources.values()), key=lambda s: s.priority)

    def available_providers(self) -> List[dict]:
        return [
            {"id": s.id, "name": s.name, "requiresApiKey": s.requires_api_key}
            for s in self._ordered() if s.is_available()
        ]

    def _active_sources(self, requested: Optional[List[str]]) -> List[BaseSource]:
        active = []
        for source in self._ordered():
            if requested and source.id not in requested:
                continue
            if not source.is_available():
                logger.info("Source '%s' skipped (not available / no API key)", source.id)
                continue
            active.append(source)
        return active

    # ── search ─────────────────────────────────────────────────
    def search(self, params: SearchParams) -> dict:
        key = params.cache_key()
        if params.use_cache and self.cache is not None:
            cached = self.cache.get(key)
            if cached:
                start = (params.page - 1) * params.limit
                return {
                    "jobs": [Job.from_dict(j) for j in cached["jobs"][start:start + params.limit]],
                    "total": cached["total"],
                    "page": params.page,
                    "limit": params.limit,
                    "totalPages": math.ceil(len(cached["jobs"]) / params.limit),
                    "sources": cached["sources"],
                    "cached": True,
                }

        started = time.time()
        active = self._active_sources(params.sources)
        results = self._fetch_all(active, params) if active else []

        all_jobs: List[Job] = []
        seen = set()
        total = 0
        sources_used = []
        for result, jobs in results:
            if result.error:
                continue
            sources_used.append(result.source)
            total += result.total
            for job in jobs:
                dedup_key = f"{job.title.lower()}-{job.company.lower()}"
                if dedup_key in seen:
                    continue
                seen.add(dedup_key)
                all_jobs.append(job)

        all_jobs.sort(key=posted_timestamp, reverse=True)

        start = (params.page - 1) * params.limit
        page_jobs = all_jobs[start:start + params.limit]

        self._log_summary(params, results, len(all_jobs), time.time() - started)

        if params.use_cache and self.cache is not None and page_jobs:
            self.cache.set(key, {
                "jobs": [j.to_dict() for j in all_jobs],
                "total": total,
                "sources": sources_used,
            })

        return {
            "jobs": page_jobs,
            "total": total,
            "page": params.page,
            "limit": params.limit,
            "totalPages": math.ceil(len(all_jobs) / params.limit),
            "sources": sources_used,
            "cached": False,
        }

    def _fetch_all(self, active: List[BaseSource], params: SearchParams):
        per_source = replace(params, limit=min(math.ceil(params.limit / len(active)) + 5, 50))

        def _fetch_from_source(source: BaseSource):
            start_time = time.time()
            logger.info("── [%s] STARTED ──", source.name)
            try:
                result = source.fetch(per_source)
                jobs = [normalize_job(item, source.id) for item in result.jobs]
                logger.info("── [%s] FINISHED ── %d jobs in %.1fs",
                            source.name, len(jobs), time.time() - start_time)
                return result, jobs
            except Exception as exc:
                logger.warning("── [%s] FAILED ── after %.1fs: %s",
                               source.name, time.time() - start_time, exc)
                return ProviderResult(source=source.id, error=str(exc)), []

        collected = {}
        with ThreadPoolExecutor(max_workers=config.SEARCH_WORKERS) as pool:
            futures = {pool.submit(_fetch_from_source, s): s.id for s in active}
            for future in as_completed(futures):
                collected[futures[future]] = future.result()
        # Keep provider priority order for de-duplication
        return [collected[s.id] for s in active]

    @staticmethod
    def _log_summary(params: SearchParams, results, unique: int, elapsed: float) -> None:
        logger.info("══════════════════════════════════════════════════")
        logger.info("  Search '%s' complete in %.1fs – %d unique jobs", params.query, elapsed, unique)
        for result, jobs in results:
            marker = "x" if result.error else " "
            logger.info("    [%s] %-12s %4d jobs", marker, result.source, len(jobs))
            if result.error:
                logger.warning("    - %s: %s", result.source, result.error)
        logger.info("══════════════════════════════════════════════════")

    # ── single job ─────────────────────────────────────────────
    def get_job_by_id(self, job_id: str) -> Optional[Job]:
        source_id, external_id = split_job_id(job_id)
        cls = self.sources.get(source_id)
        source = cls() if cls is not None else None
        if source is None or not source.is_available():
            return None
        try:
            item = source.fetch_by_id(external_id)
        except Exception as exc:
            logger.warning("Error fetching job %s: %s", job_id, exc)
            return None
        return normalize_job(item, source_id) if item else None
