"""
Adzuna – requires free API key.
Register at https://developer.adzuna.com/
Endpoint: https://api.adzuna.com/v1/api/jobs/{country}/search/{page}
"""

from __future__ import annotations

import logging

import config
from ..models import SearchParams
from .base import BaseSource, ProviderResult

logger = logging.getLogger(__name__)

COUNTRY_CODES = {
    "united states": "us", "usa": "us", "us": "us",
    "united kingdom": "gb", "uk": "gb", "gb": "gb",
    "australia": "au", "au": "au",
    "germany": "de", "de": "de",
    "france": "fr", "fr": "fr",
    "canada": "ca", "ca": "ca",
    "netherlands": "nl", "nl": "nl",
    "india": "in", "in": "in",
    "brazil": "br", "br": "br",
}

# Our job types → Adzuna contract_type
_CONTRACT_TYPES = {
    "full-time": "permanent",
    "part-time": "part_time",
    "contract": "contract",
    "temporary": "temporary",
}


def country_code(country: str) -> str:
    return COUNTRY_CODES.get((country or "").strip().lower(), "us")


class AdzunaSource(BaseSource):
    id = "adzuna"
    name = "Adzuna"
    priority = 2
    requires_api_key = True
    base_url = "https://api.adzuna.com/v1/api/jobs"

    def is_available(self) -> bool:
        return bool(config.ADZUNA_APP_ID and config.ADZUNA_APP_KEY)

    def fetch(self, params: SearchParams) -> ProviderResult:
        if not self.is_available():
            logger.info("[%s] Skipped – API keys not configured", self.name)
            return ProviderResult(source=self.id)

        code = country_code(params.country or config.ADZUNA_COUNTRY)
        query = {
            "app_id": config.ADZUNA_APP_ID,
            "app_key": config.ADZUNA_APP_KEY,
            "results_per_page": params.limit,
            "page": params.page,
            "sort_by": "date",
        }
        if params.query:
            query["what"] = params.query
        if params.location:
            query["where"] = params.location
        contract = _CONTRACT_TYPES.get((params.job_type or "").lower())
        if contract:
            query["contract_type"] = contract
        if params.salary_min:
            query["salary_min"] = int(params.salary_min)
        if params.salary_max:
            query["salary_max"] = int(params.salary_max)

        resp = self._get(f"{self.base_url}/{code}/search/1", params=query)
        payload = resp.json()

        currency = "GBP" if code == "gb" else "USD"
        jobs = []
        for item in payload.get("results", []):
            item["title"] = self._strip_html(item.get("title", ""))
            item["description"] = self._strip_html(item.get("description", ""))
            item.setdefault("salary_currency", currency)
            jobs.append(item)

        logger.info("[%s] Found %d jobs matching criteria", self.name, len(jobs))
        return ProviderResult(source=self.id, jobs=jobs, total=payload.get("count") or 0)
