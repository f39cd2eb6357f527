"""
HTML → job listings for the Moroccan boards.

Listings come from two places on a page: JSON-LD ``JobPosting`` blocks (the most
reliable, when a site emits them) and the site's listing cards.  Both produce
the same raw dict, which `normalize_morocco_job()` turns into a `Job`.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ...models import Job
from ...normalizer import (
    detect_experience_from_title,
    extract_skills_from_description,
    normalize_job_type,
    parse_date,
)
from .sites import MoroccoSite

logger = logging.getLogger(__name__)

MOROCCO_CITIES = [
    "Casablanca", "Rabat", "Marrakech", "Fès", "Fes", "Tanger", "Tangier", "Agadir",
    "Meknès", "Meknes", "Oujda", "Kénitra", "Kenitra", "Tétouan", "Tetouan", "Safi",
    "El Jadida", "Nador", "Beni Mellal", "Khouribga", "Taza", "Mohammedia",
    "Essaouira", "Settat", "Larache", "Salé", "Temara", "Errachidia", "Ouarzazate", "Berkane",
]

# French contract labels → our job types
_CONTRACT_TYPES = {
    "cdi": "full-time",
    "contrat à durée indéterminée": "full-time",
    "temps plein": "full-time",
    "cdd": "contract",
    "contrat à durée déterminée": "contract",
    "freelance": "contract",
    "intérim": "temporary",
    "interim": "temporary",
    "temps partiel": "part-time",
    "stage": "internship",
}

_EXPERIENCE_LEVELS = {
    "débutant": "entry",
    "debutant": "entry",
    "junior": "entry",
    "confirmé": "mid",
    "confirme": "mid",
    "expérimenté": "mid",
    "experimente": "mid",
    "senior": "senior",
    "expert": "senior",
}

# Non-tech skills that French-language postings often ask for
_BUSINESS_SKILLS = [
    "Gestion de projet", "Management", "Commercial", "Vente", "Marketing",
    "Communication", "Comptabilité", "Finance", "Ressources humaines", "Logistique",
    "Supply chain", "Qualité", "Audit", "Juridique", "Bilingue", "Anglais",
]

_FRENCH_WORDS = ("nous", "notre", "vous", "pour", "dans", "avec", "une", "des")
_ENGLISH_WORDS = ("the", "and", "for", "with", "our", "your", "we")
_ARABIC_WORDS = ("مطلوب", "وظيفة", "عمل")

_NUMERIC_DATE = re.compile(r"(\d{1,2})[/.-](\d{1,2})[/.-](\d{4})")
_EMPLOYER_IN_TITLE = re.compile(r"(?:chez|par|à)\s+([^-–]+)", re.IGNORECASE)
_PUBLIC_BODY_IN_TITLE = re.compile(r"((?:ministère|office|agence)\s+[^-–]+)", re.IGNORECASE)


# ── HTML ───────────────────────────────────────────────────────

def _text(node, selector: str) -> str:
    if not selector:
        return ""
    el = node.select_one(selector)
    return el.get_text(" ", strip=True) if el else ""


def _json_ld_item(item: dict) -> dict:
    org = item.get("hiringOrganization") or {}
    place = item.get("jobLocation") or {}
    if isinstance(place, list):
        place = place[0] if place else {}
    address = (place.get("address") or {}) if isinstance(place, dict) else {}
    salary = item.get("baseSalary") or {}
    salary_value = salary.get("value") if isinstance(salary, dict) else None
    if isinstance(salary_value, dict):
        salary_value = salary_value.get("value")
    description = item.get("description") or ""
    return {
        "title": item.get("title") or "",
        "company": org.get("name") if isinstance(org, dict) else "",
        "location": address.get("addressLocality") if isinstance(address, dict) else "",
        "description": BeautifulSoup(description, "html.parser").get_text(" ", strip=True),
        "url": item.get("url") or item.get("@id") or "",
        "postedAt": item.get("datePosted") or "",
        "salary": salary_value,
        "jobType": item.get("employmentType") or "",
    }


def _json_ld_postings(soup: BeautifulSoup) -> List[dict]:
    postings = []
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or "")
        except ValueError:
            continue
        if isinstance(data, dict) and isinstance(data.get("@graph"), list):
            items = data["@graph"]
        elif isinstance(data, list):
            items = data
        else:
            items = [data]
        for item in items:
            if isinstance(item, dict) and item.get("@type") == "JobPosting":
                postings.append(_json_ld_item(item))
    return postings


def _card_item(card, site: MoroccoSite) -> Optional[dict]:
    title_el = card.select_one(site.title)
    if title_el is None:
        return None
    title = title_el.get_text(" ", strip=True)
    if not title:
        return None

    href = title_el.get("href") if title_el.name == "a" else None
    if not href:
        link = card.select_one(site.link)
        href = link.get("href") if link else None

    date_el = card.select_one(site.date) if site.date else None
    posted = ""
    if date_el is not None:
        posted = date_el.get("datetime") or date_el.get_text(" ", strip=True)

    company = _text(card, site.company)
    location = _text(card, site.location)
    if site.company_from_title:
        company = company or company_from_title(title)
        location = location or city_in(title)

    return {
        "title": title,
        "company": company,
        "location": location,
        "description": _text(card, site.description),
        "url": urljoin(site.url + "/", href) if href else "",
        "postedAt": posted,
        "jobType": site.job_type or "",
    }


def parse_listing(html: str, site: MoroccoSite) -> List[dict]:
    """Every listing found on one results page, JSON-LD first."""
    soup = BeautifulSoup(html or "", "html.parser")
    items = _json_ld_postings(soup)
    for card in soup.select(site.cards):
        item = _card_item(card, site)
        if item is not None:
            items.append(item)
    logger.debug("[%s] %d listings parsed", site.name, len(items))
    return items


# ── field helpers ──────────────────────────────────────────────

def company_from_title(title: str) -> str:
    """Employer named in a public-sector posting title ("Concours ... chez ONCF")."""
    for pattern in (_EMPLOYER_IN_TITLE, _PUBLIC_BODY_IN_TITLE):
        match = pattern.search(title or "")
        if match:
            return match.group(1).strip()[:50]
    return ""


def city_in(text: str) -> str:
    lowered = (text or "").lower()
    for city in MOROCCO_CITIES:
        if city.lower() in lowered:
            return city
    return ""


def morocco_location(location: Optional[str]) -> str:
    if not location:
        return "Maroc"
    lowered = location.lower()
    if "maroc" in lowered or "morocco" in lowered:
        return location
    if city_in(location):
        return f"{location}, Maroc"
    return location


def contract_type(value: Optional[str]) -> str:
    text = (value or "").strip().lower()
    if text in _CONTRACT_TYPES:
        return _CONTRACT_TYPES[text]
    for label, job_type in _CONTRACT_TYPES.items():
        if label in text:
            return job_type
    return normalize_job_type(value)


def experience_level(value: Optional[str], title: str) -> str:
    text = (value or "").strip().lower()
    if text in _EXPERIENCE_LEVELS:
        return _EXPERIENCE_LEVELS[text]
    return detect_experience_from_title(title)


def posted_date(value) -> str:
    """ISO timestamp; also reads the day-first dates the boards print (12/10/2026)."""
    match = _NUMERIC_DATE.search(str(value or ""))
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return datetime(year, month, day, tzinfo=timezone.utc).isoformat()
        except ValueError:
            pass
    return parse_date(value)


def detect_language(title: str, description: str) -> str:
    text = f"{title} {description}".lower()
    if any(word in text for word in _ARABIC_WORDS):
        return "ar"
    french = sum(1 for word in _FRENCH_WORDS if word in text)
    english = sum(1 for word in _ENGLISH_WORDS if word in text)
    if french > english:
        return "fr"
    if english:
        return "en"
    return "fr"


def _skills(title: str, description: str) -> List[str]:
    text = f"{title} {description}"
    lowered = text.lower()
    found = extract_skills_from_description(text)
    found += [skill for skill in _BUSINESS_SKILLS if skill.lower() in lowered]
    return list(dict.fromkeys(found))[:5]


def _salary(value) -> str:
    if value is None or value == "":
        return ""
    if isinstance(value, (int, float)):
        return f"{value:,.0f} MAD"
    return str(value).strip()


def listing_hash(item: dict, site_id: str) -> str:
    seed = item.get("url") or f"{item.get('title')}-{item.get('company')}-{site_id}"
    return hashlib.sha1(seed.encode("utf-8")).hexdigest()[:12]


def normalize_morocco_job(item: dict, site: MoroccoSite) -> Job:
    """One raw listing → `Job` with id ``morocco_<site>_<hash>``."""
    title = item.get("title") or "Offre d'emploi"
    description = item.get("description") or ""
    location = morocco_location(item.get("location"))
    job_type = contract_type(item.get("jobType") or site.job_type)
    url = item.get("url") or ""
    return Job(
        source="morocco",
        external_id=f"{site.id}_{listing_hash(item, site.id)}",
        title=title,
        company=item.get("company") or site.default_company,
        location=location,
        location_type="onsite",
        country="MA",
        city=city_in(location),
        salary=_salary(item.get("salary")),
        salary_currency="MAD",
        job_type=job_type,
        experience_level=experience_level(item.get("experienceLevel"), title),
        description=description,
        skills=_skills(title, description),
        apply_url=url or "#",
        posted_at=posted_date(item.get("postedAt")),
        tags=list(dict.fromkeys([site.name, job_type])),
        raw={**item, "site": site.id, "language": detect_language(title, description)},
    )
