"""
The Muse – free public API, no key required.
Endpoint: https://www.themuse.com/api/public/jobs
Supports category, level and location filtering; query matching is done client-side.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests

from ..models import SearchParams
from .base import BaseSource, ProviderResult

logger = logging.getLogger(__name__)

CATEGORIES = [
    "Account Management", "Business & Strategy", "Creative & Design",
    "Customer Service", "Data Science", "Editorial", "Education", "Engineering",
    "Finance", "Fundraising & Development", "Healthcare & Medicine",
    "HR & Recruiting", "Legal", "Marketing & PR", "Operations", "Product",
    "Project & Program Management", "Retail", "Sales", "Social Media & Community",
]

# Map our experience levels to The Muse levels
_LEVEL_MAP = {
    "entry": "Entry Level",
    "intern": "Internship",
    "mid": "Mid Level",
    "senior": "Senior Level",
}


class TheMuseSource(BaseSource):
    id = "themuse"
    name = "The Muse"
    priority = 4
    requires_api_key = False
    base_url = "https://www.themuse.com/api/public/jobs"

    def fetch(self, params: SearchParams, category: str = "") -> ProviderResult:
        query: dict = {"page": params.page - 1}   # The Muse pages are 0-based
        if category in CATEGORIES:
            query["category"] = category
        level = _LEVEL_MAP.get((params.experience_level or "").lower())
        if level:
            query["level"] = level
        if params.location:
            query["location"] = params.location

        resp = self._get(self.base_url, params=query)
        payload = resp.json()

        jobs = [
            item for item in payload.get("results", [])
            if self._matches_query(
                params.query,
                item.get("name"), (item.get("company") or {}).get("name"), item.get("contents"),
            )
        ][: params.limit]

        logger.info("[%s] Found %d jobs matching criteria", self.name, len(jobs))
        return ProviderResult(source=self.id, jobs=jobs, total=payload.get("total") or len(jobs))

    def fetch_by_id(self, external_id: str) -> Optional[dict]:
        try:
            resp = self._get(f"{self.base_url}/{external_id}")
        except requests.HTTPError as exc:
            if exc.response is not None and exc.response.status_code == 404:
                return None
            raise
        return resp.json()
