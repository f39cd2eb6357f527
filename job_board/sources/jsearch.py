"""
JSearch (RapidAPI) – requires API key.
Aggregates LinkedIn, Indeed, Glassdoor and others.
Endpoint: https://jsearch.p.rapidapi.com/search
"""

from __future__ import annotations

import logging
from typing import Optional

import config
from ..models import SearchParams
from .base import BaseSource, ProviderResult

logger = logging.getLogger(__name__)

_EMPLOYMENT_TYPES = {
    "full-time": "FULLTIME",
    "part-time": "PARTTIME",
    "contract": "CONTRACTOR",
    "internship": "INTERN",
}

_REQUIREMENTS = {
    "entry": "no_experience",
    "intern": "no_experience",
    "mid": "under_3_years_experience",
    "senior": "more_than_3_years_experience",
}


class JSearchSource(BaseSource):
    id = "jsearch"
    name = "JSearch"
    priority = 3
    requires_api_key = True
    base_url = "https://jsearch.p.rapidapi.com"

    def is_available(self) -> bool:
        return bool(config.JSEARCH_API_KEY)

    def _headers(self) -> dict:
        return {
            "X-RapidAPI-Key": config.JSEARCH_API_KEY,
            "X-RapidAPI-Host": "jsearch.p.rapidapi.com",
        }

    def fetch(self, params: SearchParams) -> ProviderResult:
        if not self.is_available():
            logger.info("[%s] Skipped – API key not configured", self.name)
            return ProviderResult(source=self.id)

        search = params.query or "developer"
        if params.location:
            search += f" in {params.location}"
        if params.country:
            search += f" {params.country}"

        query = {"query": search, "page": params.page, "num_pages": 1}
        if params.remote:
            query["remote_jobs_only"] = "true"
        if params.date_posted and params.date_posted != "all":
            query["date_posted"] = params.date_posted
        employment = _EMPLOYMENT_TYPES.get((params.job_type or "").lower())
        if employment:
            query["employment_types"] = employment
        requirements = _REQUIREMENTS.get((params.experience_level or "").lower())
        if requirements:
            query["job_requirements"] = requirements

        resp = self._get(f"{self.base_url}/search", params=query, headers=self._headers())
        jobs = resp.json().get("data") or []

        logger.info("[%s] Found %d jobs matching criteria", self.name, len(jobs))
        return ProviderResult(source=self.id, jobs=jobs, total=len(jobs))

    def fetch_by_id(self, external_id: str) -> Optional[dict]:
        if not self.is_available():
            return None
        resp = self._get(
            f"{self.base_url}/job-details",
            params={"job_id": external_id},
            headers=self._headers(),
        )
        data = resp.json().get("data") or []
        return data[0] if data else None
