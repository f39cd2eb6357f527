"""
Moroccan job boards: where to fetch listings and how to find them in the HTML.
None of these sites offers a public API, so each entry carries the CSS
selectors for its listing cards.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class MoroccoSite:
    id: str
    name: str
    url: str
    listing_url: str                       # used when there is nothing to search for
    search_url: str
    query_param: Optional[str]
    city_param: Optional[str]
    cards: str                             # selector for one listing card
    title: str                             # selector for the title inside a card
    company: str = ".company, .entreprise, [class*='company']"
    location: str = ".location, .ville, [class*='location']"
    date: str = ".date, time"
    link: str = "a[href]"
    description: str = ""
    default_company: str = "Entreprise Marocaine"
    job_type: Optional[str] = None
    category: str = "general"
    priority: int = 99
    enabled: bool = True
    company_from_title: bool = False       # public-sector boards put the employer in the title

    def request_for(self, query: str = "", city: str = "") -> Tuple[str, Dict[str, str]]:
        """URL and query string for one search; the plain listing page when nothing applies."""
        params = {}
        if query and self.query_param:
            params[self.query_param] = query
        if city and self.city_param:
            params[self.city_param] = city
        if not params:
            return self.listing_url, {}
        return self.search_url, params

    def info(self) -> dict:
        return {"id": self.id, "name": self.name, "url": self.url, "category": self.category}


_SITES = [
    MoroccoSite(
        id="emploi",
        name="Emploi.ma",
        url="https://www.emploi.ma",
        listing_url="https://www.emploi.ma/offres-emploi",
        search_url="https://www.emploi.ma/recherche-jobs-maroc",
        query_param="q",
        city_param="lieu",
        cards=".job-listing, .offre-emploi, article.job, .search-result-item, [class*='job-card']",
        title="h2 a, h3 a, .job-title a, [class*='title'] a",
        link="a[href*='offre'], a[href*='emploi']",
        priority=1,
    ),
    MoroccoSite(
        id="dreamjob",
        name="Dreamjob.ma",
        url="https://www.dreamjob.ma",
        listing_url="https://www.dreamjob.ma/offres-emploi",
        search_url="https://www.dreamjob.ma/offres-emploi",
        query_param="keywords",
        city_param="location",
        cards=".job-listing, .offre, article, .job-item",
        title="h2 a, h3 a, .job-title, [class*='title']",
        company=".company, .entreprise",
        location=".location, .ville",
        priority=2,
    ),
    MoroccoSite(
        id="rekrute",
        name="Rekrute.com",
        url="https://www.rekrute.com",
        listing_url="https://www.rekrute.com/offres-emploi.html",
        search_url="https://www.rekrute.com/offres-emploi.html",
        query_param="keyword",
        city_param="location",
        cards=".post-id, .job-item, article, .offre, [class*='job-listing']",
        title="h2, h3, .titreoffre, [class*='title']",
        link="a[href*='offre']",
        priority=3,
    ),
    MoroccoSite(
        id="marocannonces",
        name="MarocAnnonces",
        url="https://www.marocannonces.com",
        listing_url="https://www.marocannonces.com/maroc/offres-emploi",
        search_url="https://www.marocannonces.com/maroc/offres-emploi",
        query_param="texte",
        city_param=None,
        cards=".cars-list li, .listing-item, article, .annonce",
        title="h3 a, h2 a, .title a, [class*='title']",
        company="",
        location=".location, .ville, [class*='location']",
        date=".date, time, [class*='date']",
        default_company="Via MarocAnnonces",
        priority=4,
    ),
    MoroccoSite(
        id="alwadifa",
        name="Alwadifa-Maroc",
        url="https://alwadifa-maroc.com",
        listing_url="https://alwadifa-maroc.com/category/offres-demploi/",
        search_url="https://alwadifa-maroc.com/",
        query_param="s",
        city_param=None,
        cards="article, .post, .entry",
        title=".entry-title a, h2 a, h3 a",
        company="",
        location="",
        date=".entry-date, .posted-on, time",
        description=".entry-summary, .excerpt",
        default_company="Administration Publique",
        category="public",
        priority=5,
        company_from_title=True,
    ),
    MoroccoSite(
        id="emploipublic",
        name="Emploi-Public.ma",
        url="https://www.emploi-public.ma",
        listing_url="https://www.emploi-public.ma/concours/",
        search_url="https://www.emploi-public.ma/",
        query_param="s",
        city_param=None,
        cards="article, .post, .concours-item",
        title="h2 a, h3 a, .title a",
        company=".organization, .ministere",
        location="",
        default_company="Secteur Public",
        job_type="Fonction Publique",
        category="public",
        priority=6,
    ),
    MoroccoSite(
        id="stagiaires",
        name="Stagiaires.ma",
        url="https://www.stagiaires.ma",
        listing_url="https://www.stagiaires.ma/offres-de-stages",
        search_url="https://www.stagiaires.ma/offres-de-stages",
        query_param="q",
        city_param="ville",
        cards=".stage-item, .internship, article, .offre",
        title="h2 a, h3 a, .title a",
        company=".company, .entreprise",
        location=".location, .ville",
        default_company="Entreprise",
        job_type="Stage",
        category="internship",
        priority=7,
    ),
]

MOROCCO_SITES: Dict[str, MoroccoSite] = {site.id: site for site in _SITES}
