"""
Job normalizer – converts raw provider payloads into `Job` objects.

Each provider returns its own JSON shape; `normalize_job()` dispatches to the
matching converter so the rest of the app only ever sees the unified model.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from .models import Job

logger = logging.getLogger(__name__)

COMMON_SKILLS = [
    "JavaScript", "TypeScript", "Python", "Java", "C++", "C#", "Ruby", "Go", "Rust", "PHP",
    "React", "Vue", "Angular", "Node.js", "Django", "Flask", "Spring", "Rails",
    "AWS", "Azure", "GCP", "Docker", "Kubernetes", "Terraform",
    "SQL", "PostgreSQL", "MySQL", "MongoDB", "Redis", "Elasticsearch",
    "Git", "CI/CD", "Agile", "Scrum",
    "Machine Learning", "AI", "Data Science", "Deep Learning",
]

_CURRENCY_SYMBOLS = {"USD": "$", "GBP": "£", "EUR": "€"}


# ── helpers ────────────────────────────────────────────────────

def detect_location_type(location: Optional[str]) -> str:
    text = (location or "").lower()
    if "remote" in text or "anywhere" in text:
        return "remote"
    if "hybrid" in text:
        return "hybrid"
    return "onsite"


def normalize_job_type(value: Optional[str]) -> str:
    if not value:
        return "full-time"
    text = str(value).lower()
    if "full" in text:
        return "full-time"
    if "part" in text:
        return "part-time"
    if "contract" in text or "freelance" in text:
        return "contract"
    if "intern" in text:
        return "internship"
    if "temp" in text:
        return "temporary"
    return "full-time"


def normalize_experience_level(value: Optional[str]) -> str:
    if not value:
        return "mid"
    text = str(value).lower()
    if "entry" in text or "junior" in text or "jr" in text:
        return "entry"
    if "senior" in text or "sr" in text or "lead" in text:
        return "senior"
    if "executive" in text or "director" in text or "vp" in text:
        return "executive"
    if "intern" in text:
        return "intern"
    return "mid"


def detect_experience_from_title(title: Optional[str]) -> str:
    if not title:
        return "mid"
    text = title.lower()
    if "senior" in text or "sr." in text or "lead" in text or "principal" in text:
        return "senior"
    if "junior" in text or "jr." in text or "entry" in text:
        return "entry"
    if "intern" in text:
        return "intern"
    if "director" in text or "vp" in text or "head of" in text:
        return "executive"
    return "mid"


def format_number(num: float) -> str:
    """Compact salary figure: 1250000 → '1.3M', 85000 → '85k'."""
    if num >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    if num >= 1000:
        return f"{int(num / 1000 + 0.5)}k"
    return str(int(num)) if float(num).is_integer() else str(num)


def format_salary(
    salary_min: Optional[float],
    salary_max: Optional[float],
    currency: str = "USD",
) -> str:
    symbol = _CURRENCY_SYMBOLS.get((currency or "").upper(), "")
    if salary_min and salary_max:
        return f"{symbol}{format_number(salary_min)} - {symbol}{format_number(salary_max)}"
    if salary_min:
        return f"From {symbol}{format_number(salary_min)}"
    if salary_max:
        return f"Up to {symbol}{format_number(salary_max)}"
    return ""


def extract_country(location: Optional[str]) -> str:
    if not location:
        return ""
    parts = [p.strip() for p in location.split(",")]
    return parts[-1] if parts else ""


def extract_skills_from_description(description: Optional[str]) -> List[str]:
    if not description:
        return []
    text = description.lower()
    return [skill for skill in COMMON_SKILLS if skill.lower() in text][:10]


def _unique(items: Iterable) -> list:
    seen = set()
    out = []
    for item in items:
        if item is None or item == "" or item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


def generate_tags(
    job_type: Optional[str] = None,
    remote: bool = False,
    salary_min: Optional[float] = None,
) -> List[str]:
    tags = []
    if job_type:
        tags.append(normalize_job_type(job_type))
    if remote:
        tags.append("Remote")
    if salary_min and salary_min >= 100000:
        tags.append("$100k+")
    if salary_min and salary_min >= 150000:
        tags.append("$150k+")
    return _unique(tags)


def parse_date(value) -> str:
    """Return an ISO-8601 UTC timestamp; numbers are unix seconds, bad input means now."""
    now = datetime.now(timezone.utc)
    if value is None or value == "":
        return now.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()
        except (OverflowError, OSError, ValueError):
            return now.isoformat()
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return now.isoformat()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat()


def _num(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        v = float(value)
        return v if v > 0 else None
    except (TypeError, ValueError):
        return None


# ── per-provider converters ────────────────────────────────────

def _normalize_remoteok(item: dict) -> Job:
    external_id = item.get("id") or item.get("slug") or ""
    title = item.get("position") or item.get("title") or "Unknown Position"
    s_min = _num(item.get("salary_min"))
    s_max = _num(item.get("salary_max"))
    tags = [t for t in (item.get("tags") or []) if t]
    posted = item.get("epoch") if item.get("epoch") is not None else item.get("date")
    return Job(
        source="remoteok",
        external_id=external_id,
        title=title,
        company=item.get("company") or "Unknown Company",
        company_logo=item.get("company_logo") or item.get("logo") or None,
        location=item.get("location") or "Remote",
        location_type="remote",
        country=extract_country(item.get("location")),
        salary=format_salary(s_min, s_max, "USD") if s_min and s_max else "",
        salary_min=s_min,
        salary_max=s_max,
        salary_currency="USD",
        job_type="full-time",
        experience_level=detect_experience_from_title(title),
        description=item.get("description") or "",
        skills=list(tags),
        apply_url=item.get("url") or item.get("apply_url") or f"https://remoteok.com/remote-jobs/{external_id}",
        posted_at=parse_date(posted),
        tags=_unique(tags + ["Remote"]),
        raw=item,
    )


def _normalize_adzuna(item: dict) -> Job:
    company = item.get("company") or {}
    location = item.get("location") or {}
    area = (location.get("area") or []) if isinstance(location, dict) else []
    display = location.get("display_name") if isinstance(location, dict) else ""
    category = item.get("category") or {}
    title = item.get("title") or "Unknown Position"
    currency = item.get("salary_currency") or "USD"
    s_min = _num(item.get("salary_min"))
    s_max = _num(item.get("salary_max"))
    return Job(
        source="adzuna",
        external_id=item.get("id", ""),
        title=title,
        company=(company.get("display_name") if isinstance(company, dict) else "") or "Unknown Company",
        location=display or "Unknown Location",
        location_type=detect_location_type(display),
        country=area[0] if area else "",
        city=area[-1] if area else "",
        salary=format_salary(s_min, s_max, currency) if s_min and s_max else "",
        salary_min=s_min,
        salary_max=s_max,
        salary_currency=currency,
        job_type=normalize_job_type(item.get("contract_type") or item.get("contract_time")),
        experience_level=detect_experience_from_title(title),
        description=item.get("description") or "",
        skills=extract_skills_from_description(item.get("description")),
        apply_url=item.get("redirect_url") or "#",
        posted_at=parse_date(item.get("created")),
        tags=_unique([
            category.get("label") if isinstance(category, dict) else None,
            item.get("contract_type"),
        ]),
        raw=item,
    )


def _jsearch_location(item: dict) -> str:
    parts = [p for p in (item.get("job_city"), item.get("job_state"), item.get("job_country")) if p]
    if item.get("job_is_remote"):
        return f"Remote ({', '.join(parts)})" if parts else "Remote"
    return ", ".join(parts) or "Unknown Location"


def _normalize_jsearch(item: dict) -> Job:
    currency = item.get("job_salary_currency") or "USD"
    s_min = _num(item.get("job_min_salary"))
    s_max = _num(item.get("job_max_salary"))
    required = item.get("job_required_experience") or {}
    mentioned = required.get("experience_mentioned") if isinstance(required, dict) else None
    if isinstance(mentioned, list):
        mentioned = mentioned[0] if mentioned else None
    skills = item.get("job_required_skills") or []
    return Job(
        source="jsearch",
        external_id=item.get("job_id", ""),
        title=item.get("job_title") or "Unknown Position",
        company=item.get("employer_name") or "Unknown Company",
        company_logo=item.get("employer_logo") or None,
        location=_jsearch_location(item),
        location_type="remote" if item.get("job_is_remote") else "onsite",
        country=item.get("job_country") or "",
        city=item.get("job_city") or "",
        salary=format_salary(s_min, s_max, currency) if s_min and s_max else "",
        salary_min=s_min,
        salary_max=s_max,
        salary_currency=currency,
        job_type=normalize_job_type(item.get("job_employment_type")),
        experience_level=normalize_experience_level(mentioned if isinstance(mentioned, str) else None),
        description=item.get("job_description") or "",
        requirements=list(skills),
        benefits=list(item.get("job_benefits") or []),
        skills=list(skills),
        apply_url=item.get("job_apply_link") or item.get("job_google_link") or "#",
        posted_at=parse_date(item.get("job_posted_at_datetime_utc")),
        expires_at=item.get("job_offer_expiration_datetime_utc") or None,
        tags=_unique([
            item.get("job_employment_type"),
            "Remote" if item.get("job_is_remote") else None,
            item.get("employer_company_type"),
        ]),
        featured=bool(item.get("job_is_highlighted")),
        raw=item,
    )


def _normalize_themuse(item: dict) -> Job:
    locations = item.get("locations") or [{}]
    loc_name = (locations[0] or {}).get("name") or ""
    company = item.get("company") or {}
    levels = [lvl.get("name") for lvl in (item.get("levels") or []) if lvl.get("name")]
    categories = [c.get("name") for c in (item.get("categories") or []) if c.get("name")]
    refs = item.get("refs") or {}
    return Job(
        source="themuse",
        external_id=item.get("id", ""),
        title=item.get("name") or "Unknown Position",
        company=company.get("name") or "Unknown Company",
        company_logo=company.get("logo") or None,
        location=loc_name or "Unknown Location",
        location_type=detect_location_type(loc_name),
        country=extract_country(loc_name),
        city=loc_name.split(",")[0] if loc_name else "",
        salary_currency="USD",
        job_type=normalize_job_type(item.get("type")),
        experience_level=normalize_experience_level(levels[0] if levels else None),
        description=item.get("contents") or "",
        skills=categories,
        apply_url=refs.get("landing_page") or f"https://www.themuse.com/jobs/{item.get('id', '')}",
        posted_at=parse_date(item.get("publication_date")),
        tags=_unique(categories + levels),
        raw=item,
    )


def _normalize_generic(item: dict, source: str) -> Job:
    s_min = _num(item.get("salary_min") or item.get("salaryMin"))
    s_max = _num(item.get("salary_max") or item.get("salaryMax"))
    currency = item.get("salary_currency") or "USD"
    job_type = item.get("job_type") or item.get("type")
    skills = _unique(list(item.get("skills") or []) + list(item.get("tags") or [])
                     + list(item.get("required_skills") or []))
    return Job(
        source=source,
        external_id=item.get("id") or int(time.time() * 1000),
        title=item.get("title") or "Unknown Position",
        company=item.get("company") or item.get("company_name") or "Unknown Company",
        company_logo=item.get("logo") or item.get("company_logo") or None,
        location=item.get("location") or "Remote",
        location_type=detect_location_type(item.get("location")),
        country=item.get("country") or "",
        city=item.get("city") or "",
        salary=item.get("salary") or format_salary(s_min, s_max, currency),
        salary_min=s_min,
        salary_max=s_max,
        salary_currency=currency,
        job_type=normalize_job_type(job_type),
        experience_level=normalize_experience_level(item.get("experience_level") or item.get("experience")),
        description=item.get("description") or "",
        requirements=list(item.get("requirements") or []),
        benefits=list(item.get("benefits") or []),
        skills=skills,
        apply_url=item.get("url") or item.get("apply_url") or item.get("application_url") or "#",
        posted_at=parse_date(item.get("date") or item.get("posted_at") or item.get("created_at")),
        expires_at=parse_date(item["expires_at"]) if item.get("expires_at") else None,
        tags=generate_tags(job_type, bool(item.get("remote") or item.get("is_remote")), s_min),
        featured=bool(item.get("featured")),
        raw=item,
    )


_NORMALIZERS = {
    "remoteok": _normalize_remoteok,
    "adzuna": _normalize_adzuna,
    "jsearch": _normalize_jsearch,
    "themuse": _normalize_themuse,
}


def normalize_job(item: dict, source: str) -> Job:
    """Convert one raw provider item into a `Job`."""
    converter = _NORMALIZERS.get(source)
    if converter is None:
        logger.warning("No normalizer for source '%s' – using generic mapping", source)
        return _normalize_generic(item, source)
    return converter(item)
