"""
RemoteOK – free API, no key required.
Endpoint: https://remoteok.com/api
Returns every live remote job in one payload; we filter client-side by query.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..models import SearchParams
from .base import BaseSource, ProviderResult

logger = logging.getLogger(__name__)


class RemoteOKSource(BaseSource):
    id = "remoteok"
    name = "RemoteOK"
    priority = 1
    requires_api_key = False
    base_url = "https://remoteok.com/api"

    def _listings(self) -> List[dict]:
        resp = self._get(self.base_url, params={"api": 1})
        data = resp.json()
        # First element is a legal notice – skip it
        return data[1:] if isinstance(data, list) else []

    def fetch(self, params: SearchParams) -> ProviderResult:
        jobs: List[dict] = []
        for item in self._listings():
            if len(jobs) >= params.limit:
                break
            if not self._matches_query(
                params.query,
                item.get("position"), item.get("company"),
                item.get("description"), item.get("tags") or [],
            ):
                continue
            # Only drop jobs whose *known* maximum is below the requested minimum
            s_max = self._safe_float(item.get("salary_max"))
            if params.salary_min and s_max and s_max < params.salary_min:
                continue
            jobs.append(item)

        logger.info("[%s] Found %d jobs matching criteria", self.name, len(jobs))
        return ProviderResult(source=self.id, jobs=jobs, total=len(jobs))

    def fetch_by_id(self, external_id: str) -> Optional[dict]:
        for item in self._listings()[:200]:
            if str(item.get("id")) == str(external_id):
                return item
        return None
