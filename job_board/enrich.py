"""
Job detail enrichment – turns a normalized job into the payload of the job
details page: colours, requirement/responsibility lists, benefits with icons,
relative dates, display tags, per-skill match flags and smart tips.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from .matching import matched_skill_names
from .smart_tips import detect_smart_tips

DEFAULT_REQUIREMENTS = [
    "Relevant experience in the field",
    "Strong problem-solving skills",
    "Excellent communication skills",
    "Ability to work in a team environment",
]

DEFAULT_NICE_TO_HAVE = [
    "Experience with related technologies",
    "Open source contributions",
    "Previous experience in similar role",
]

DEFAULT_RESPONSIBILITIES = [
    "Work on challenging technical problems",
    "Collaborate with cross-functional teams",
    "Contribute to code reviews and best practices",
    "Help design and implement new features",
]

BENEFIT_ICONS = {
    "health": "shield",
    "insurance": "shield",
    "remote": "home",
    "salary": "dollar",
    "pto": "calendar",
    "vacation": "calendar",
    "learning": "book",
    "wellness": "heart",
}

EXPERIENCE_TEXT = {
    "entry": "0-2 years",
    "mid": "3-5 years",
    "senior": "5+ years",
    "lead": "7+ years",
    "executive": "10+ years",
}

_REQUIREMENT_PATTERNS = [
    re.compile(p, re.I) for p in (
        r"^\d+\+?\s*years?",
        r"experience\s+(with|in)",
        r"proficiency\s+in",
        r"knowledge\s+of",
        r"bachelor|master|degree",
        r"strong\s+skills",
    )
]
_RESPONSIBILITY_START = re.compile(r"^(you will|you'll|responsibilities include|duties|what you'll do)", re.I)
_BULLET = re.compile(r"^[-•*]\s*")
_NICE_MARKERS = ("preferred", "nice to have", "bonus")


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value >= 0x80000000 else value


def company_colors(company: str) -> List[str]:
    """Two stable HSL colours derived from the company name."""
    acc = 0
    for ch in company or "":
        acc = ord(ch) + (_to_int32(_to_int32(acc) << 5) - acc)
    hue1 = abs(acc) % 360
    hue2 = (hue1 + 30) % 360
    return [f"hsl({hue1}, 70%, 50%)", f"hsl({hue2}, 70%, 40%)"]


def _lines(description: str) -> List[str]:
    text = BeautifulSoup(description, "html.parser").get_text(separator="\n")
    return re.split(r"[\n.]", text)


def extract_requirements(description: str) -> List[str]:
    if not description:
        return []
    found = []
    for line in _lines(description):
        line = line.strip()
        if line and any(p.search(line) for p in _REQUIREMENT_PATTERNS):
            found.append(line)
    return found or list(DEFAULT_REQUIREMENTS)


def extract_nice_to_have(description: str) -> List[str]:
    if not description:
        return []
    found = []
    if any(m in description.lower() for m in _NICE_MARKERS):
        in_section = False
        for line in _lines(description):
            if any(m in line.lower() for m in _NICE_MARKERS):
                in_section = True
            if in_section and line.strip():
                found.append(line.strip())
    return found or list(DEFAULT_NICE_TO_HAVE)


def extract_responsibilities(description: str) -> List[str]:
    if not description:
        return []
    found = []
    for line in _lines(description):
        line = line.strip()
        if _RESPONSIBILITY_START.match(line) or re.match(r"^[-•*]\s*.+", line):
            found.append(_BULLET.sub("", line))
    return found or list(DEFAULT_RESPONSIBILITIES)


def default_benefits(job: dict) -> List[dict]:
    benefits = []
    if job.get("salary") or job.get("salaryMin"):
        benefits.append({"icon": "dollar", "text": "Competitive salary", "color": "green"})
    if job.get("locationType") == "remote" or "remote" in (job.get("location") or "").lower():
        benefits.append({"icon": "home", "text": "Remote work", "color": "purple"})
    benefits.append({"icon": "shield", "text": "Health insurance", "color": "blue"})
    benefits.append({"icon": "calendar", "text": "Paid time off", "color": "cyan"})
    return benefits


def format_benefits(benefits: list) -> List[dict]:
    if not benefits:
        return []
    if not isinstance(benefits[0], str):
        return benefits
    formatted = []
    for benefit in benefits:
        lowered = benefit.lower()
        icon = next((v for k, v in BENEFIT_ICONS.items() if k in lowered), "star")
        formatted.append({"icon": icon, "text": benefit, "color": "indigo"})
    return formatted


def format_experience(level: Optional[str]) -> str:
    return EXPERIENCE_TEXT.get(level or "", "3+ years")


def format_posted_date(value: Optional[str], now: Optional[datetime] = None) -> str:
    if not value:
        return "Recently"
    try:
        posted = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return "Recently"
    if posted.tzinfo is None:
        posted = posted.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    days = int((now - posted).total_seconds() // 86400)
    if days <= 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 14:
        return "1 week ago"
    if days < 30:
        return f"{days // 7} weeks ago"
    return f"{days // 30} months ago"


def display_tags(job: dict) -> List[str]:
    tags = []
    job_type = job.get("jobType")
    if job_type:
        tags.append(job_type[0].upper() + job_type[1:].replace("-", " ", 1))
    if job.get("locationType") == "remote":
        tags.append("Remote")
    if job.get("salary"):
        tags.append(job["salary"])
    if job.get("experienceLevel"):
        tags.append(format_experience(job["experienceLevel"]) + " exp")
    return tags


def enrich_job_details(
    job: dict,
    user_skills: Optional[List[str]] = None,
    match_score: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Dict:
    """
    `job` is the API-shape dict. Skill `match` flags are False and `matchScore`
    is None when no user profile is available.
    """
    description = job.get("description") or ""
    company = job.get("company") or ""
    requirements = job.get("requirements") or extract_requirements(description)
    benefits = job.get("benefits") or default_benefits(job)
    matched = set(matched_skill_names(user_skills or [], job.get("skills") or []))

    return {
        **job,
        "companyLogo": job.get("companyLogo") or (company[:1].upper() or None),
        "companyColors": company_colors(company),
        "companyDescription": f"{company} is a company in the {job.get('industry') or 'technology'} industry.",
        "companySize": job.get("companySize") or "Unknown",
        "companyLocation": job.get("location"),
        "companyWebsite": job.get("companyWebsite") or "",
        "industry": job.get("industry") or "Technology",
        "locationType": job.get("locationType") or "onsite",
        "jobType": job.get("jobType") or "full-time",
        "experience": format_experience(job.get("experienceLevel")),
        "matchScore": match_score,
        "postedAt": format_posted_date(job.get("postedAt"), now),
        "postedAtIso": job.get("postedAt"),
        "responsibilities": extract_responsibilities(description),
        "requirements": list(requirements)[:6],
        "niceToHave": extract_nice_to_have(description)[:4],
        "benefits": format_benefits(benefits),
        "skills": [{"name": s, "match": s in matched} for s in job.get("skills") or []],
        "similarJobs": [],
        "tags": display_tags(job),
        "smartTips": detect_smart_tips(description),
    }
