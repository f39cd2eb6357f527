"""
Morocco scraper – reads listings straight from the Moroccan boards' HTML.

Kept apart from `JobSearchService`: scraping is slow, so it is only run from
its own endpoint.  Every board is fetched in a thread pool and a failing board
only adds an entry to ``errors``.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional

import config
from ...models import Job, SearchParams, posted_timestamp
from ..base import BaseSource, ProviderResult
from .parser import normalize_morocco_job, parse_listing
from .sites import MOROCCO_SITES, MoroccoSite

logger = logging.getLogger(__name__)


class UnknownSite(ValueError):
    """Raised when a scrape names a board that is not registered."""


class MoroccoSiteSource(BaseSource):
    """One Moroccan board, fetched as HTML."""

    requires_api_key = False

    def __init__(self, site: MoroccoSite) -> None:
        super().__init__()
        self.site = site
        self.id = site.id
        self.name = site.name
        self.priority = site.priority
        self.base_url = site.url
        self.session.headers.update({
            "Accept": "text/html,application/xhtml+xml",
            "Accept-Language": "fr-FR,fr;q=0.9,en;q=0.8,ar;q=0.7",
        })

    def fetch(self, params: SearchParams) -> ProviderResult:
        url, query = self.site.request_for(params.query, params.location)
        resp = self._get(url, params=query or None)
        items = parse_listing(resp.text, self.site)
        logger.info("[%s] Found %d listings", self.name, len(items))
        return ProviderResult(source=self.id, jobs=items[:params.limit], total=len(items))

    def is_available(self) -> bool:
        return self.site.enabled


class MoroccoScraper:
    """Scrapes one or all of the registered Moroccan boards."""

    def __init__(self, sites: Optional[Dict[str, MoroccoSite]] = None,
                 enabled: Optional[bool] = None) -> None:
        self.sites = dict(MOROCCO_SITES if sites is None else sites)
        self._enabled = enabled

    def is_available(self) -> bool:
        return config.MOROCCO_SCRAPER_ENABLED if self._enabled is None else self._enabled

    def enabled_sites(self) -> List[MoroccoSite]:
        return sorted((s for s in self.sites.values() if s.enabled), key=lambda s: s.priority)

    def status(self) -> dict:
        available = self.is_available()
        enabled = self.enabled_sites()
        return {
            "scraper": {"available": available, "status": "ready" if available else "unavailable"},
            "morocco": {
                "totalSources": len(self.sites),
                "enabledSources": len(enabled),
                "sources": [s.info() for s in enabled],
            },
            "endpoints": {
                "scrape": "/api/jobs/morocco/scrape",
                "status": "/api/jobs/morocco/scrape/status",
            },
            "usage": {
                "scrapeAll": "GET /api/jobs/morocco/scrape?q=developer&city=Casablanca",
                "scrapeSingle": 'POST /api/jobs/morocco/scrape {"siteId": "emploi", "query": "developer"}',
            },
        }

    # ── scraping ───────────────────────────────────────────────
    def _scrape_site(self, site: MoroccoSite, params: SearchParams):
        start_time = time.time()
        try:
            result = MoroccoSiteSource(site).fetch(params)
            jobs = [normalize_morocco_job(item, site) for item in result.jobs]
            logger.info("── [%s] FINISHED ── %d jobs in %.1fs", site.name, len(jobs), time.time() - start_time)
            return jobs, None
        except Exception as exc:
            logger.warning("── [%s] FAILED ── after %.1fs: %s", site.name, time.time() - start_time, exc)
            return [], str(exc)

    def scrape_site(self, site_id: str, query: str = "", city: str = "", limit: int = 10) -> dict:
        """Scrape a single board; board errors propagate."""
        site = self.sites.get(site_id)
        if site is None:
            raise UnknownSite(f"Unknown site: {site_id}")
        params = SearchParams(query=query, location=city, limit=limit)
        result = MoroccoSiteSource(site).fetch(params)
        jobs = [normalize_morocco_job(item, site) for item in result.jobs]
        return {"jobs": jobs, "total": result.total, "source": site.id}

    def scrape(self, query: str = "", city: str = "", sources: Optional[List[str]] = None,
               limit: int = 10) -> dict:
        """
        Scrape every enabled board (or just `sources`), de-duplicate on
        title + company, sort newest first and keep the jobs located in `city`
        (or anywhere in Morocco).  Returns up to ``2 * limit`` jobs.
        """
        picked = [s for s in self.enabled_sites() if not sources or s.id in sources]
        params = SearchParams(query=query, location=city, limit=limit)
        logger.info("Morocco scrape '%s' in %s across %d boards", query, city or "all cities", len(picked))

        collected = {}
        if picked:
            with ThreadPoolExecutor(max_workers=config.SEARCH_WORKERS) as pool:
                futures = {pool.submit(self._scrape_site, s, params): s.id for s in picked}
                for future in as_completed(futures):
                    collected[futures[future]] = future.result()

        all_jobs: List[Job] = []
        seen = set()
        sources_used = []
        errors = []
        for site in picked:
            jobs, error = collected[site.id]
            if error:
                errors.append(f"{site.name}: {error}")
                continue
            if jobs:
                sources_used.append(site.id)
            for job in jobs:
                key = f"{job.title.lower()}-{job.company.lower()}"
                if key in seen:
                    continue
                seen.add(key)
                all_jobs.append(job)

        all_jobs.sort(key=posted_timestamp, reverse=True)
        if city:
            wanted = city.lower()
            all_jobs = [
                j for j in all_jobs
                if wanted in j.location.lower() or j.location.lower() in ("maroc", "morocco")
            ]

        return {
            "jobs": all_jobs[:limit * 2],
            "total": len(all_jobs),
            "sources": sources_used,
            "errors": errors or None,
        }

    # ── output ─────────────────────────────────────────────────
    def job_payload(self, job: Job) -> dict:
        """API shape of a scraped job, with the board it came from."""
        site = self.sites.get(job.raw.get("site", ""))
        data = job.to_dict()
        data["sourceInfo"] = {
            "id": site.id if site else job.raw.get("site"),
            "name": site.name if site else "",
            "url": site.url if site else "",
            "country": "MA",
        }
        data["language"] = job.raw.get("language", "fr")
        return data
