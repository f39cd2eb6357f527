"""Moroccan job boards, scraped from their HTML listing pages."""

from .parser import normalize_morocco_job, parse_listing
from .scraper import MoroccoScraper, MoroccoSiteSource, UnknownSite
from .sites import MOROCCO_SITES, MoroccoSite

__all__ = [
    "MOROCCO_SITES", "MoroccoSite",
    "MoroccoScraper", "MoroccoSiteSource", "UnknownSite",
    "normalize_morocco_job", "parse_listing",
]
