"""
Abstract base class for all job providers.
Every provider must implement `fetch()`; `fetch_by_id()` is optional.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import requests
from bs4 import BeautifulSoup

import config
from ..models import SearchParams

logger = logging.getLogger(__name__)


@dataclass
class ProviderResult:
    """Raw items returned by one provider for one search."""

    source: str
    jobs: List[dict] = field(default_factory=list)
    total: int = 0
    error: Optional[str] = None


class BaseSource(ABC):
    """Interface that every job provider must follow."""

    id: str = "base"
    name: str = "BaseSource"
    priority: int = 99
    requires_api_key: bool = False
    base_url: str = ""

    def __init__(self) -> None:
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": "CareerForge/1.0 (job-search-aggregator)",
            "Accept": "application/json",
        })
        self.timeout = config.REQUEST_TIMEOUT
        self.rate_limit_delay = config.RATE_LIMIT_DELAY

    @abstractmethod
    def fetch(self, params: SearchParams) -> ProviderResult:
        """
        Run one search against the provider.
        Transport errors propagate; the aggregator turns them into an error result.
        """
        ...

    def fetch_by_id(self, external_id: str) -> Optional[dict]:
        """Return the raw item for one listing, or None when the provider has no such job."""
        return None

    def is_available(self) -> bool:
        """
        Check whether this provider can be used (e.g. API keys present).
        Override in subclasses that require keys.
        """
        return True

    # ── helpers ────────────────────────────────────────────────
    def _get(self, url: str, params: Optional[Dict] = None, headers: Optional[Dict] = None) -> requests.Response:
        """Perform a rate-limited GET request with error handling."""
        time.sleep(self.rate_limit_delay)
        try:
            resp = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            return resp
        except requests.RequestException as exc:
            logger.debug("[%s] Request failed: %s – %s", self.name, url, exc)
            raise

    @staticmethod
    def _matches_query(query: str, *fields) -> bool:
        """Case-insensitive substring match of the whole query against any field."""
        if not query:
            return True
        needle = query.lower()
        for value in fields:
            if isinstance(value, (list, tuple)):
                if any(needle in str(v).lower() for v in value):
                    return True
            elif value and needle in str(value).lower():
                return True
        return False

    @staticmethod
    def _strip_html(html: str) -> str:
        """Strip ALL HTML tags from a string, returning plain text."""
        if not html:
            return ""
        return BeautifulSoup(html, "html.parser").get_text(separator=" ", strip=True)

    @staticmethod
    def _safe_float(value) -> Optional[float]:
        """Try to parse a value as float, return None on failure."""
        if value is None or value == "":
            return None
        try:
            v = float(value)
            return v if v > 0 else None
        except (ValueError, TypeError):
            return None
