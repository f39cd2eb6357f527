"""
Experience heuristics: how many years a CV shows and how many a job asks for.
"""

from __future__ import annotations

import math
import re
from datetime import date
from typing import Dict, Optional

YEAR_PATTERNS = [
    re.compile(r"(\d+)\s*(?:to|-)\s*(\d+)\s*years?", re.I),
    re.compile(r"(\d+)\+\s*years?", re.I),
    re.compile(r"minimum\s*(?:of\s*)?(\d+)\s*years?", re.I),
    re.compile(r"at\s*least\s*(\d+)\s*years?", re.I),
    re.compile(r"(\d+)\s*years?\s*(?:of\s*)?(?:relevant\s*)?experience", re.I),
    re.compile(r"experience[:\s]+(\d+)\+?\s*years?", re.I),
    re.compile(r"experience\s*\(?in\s*yrs?\)?[:\s]*(\d+)\s*(?:to|-)\s*(\d+)", re.I),
]

NO_EXPERIENCE_PATTERNS = [
    re.compile(p, re.I) for p in (
        r"no\s*experience\s*(needed|required|necessary)",
        r"experience\s*not\s*(needed|required|necessary)",
        r"without\s*experience",
        r"no\s*prior\s*experience",
        r"beginners?\s*welcome",
        r"open\s*to\s*(all|beginners?|freshers?)",
        r"anyone\s*can\s*apply",
        r"freshers?\s*(welcome|encouraged)",
        r"will\s*train",
        r"training\s*provided",
        r"0\s*years?\s*(of\s*)?experience",
        r"zero\s*(years?)?\s*(of\s*)?experience",
    )
]

ENTRY_TITLE = re.compile(r"\b(entry[\s-]?level|junior|jr\.?|intern|trainee|graduate|fresher|beginner)\b", re.I)

LEVEL_TO_YEARS = {
    "entry": 0, "entry-level": 0,
    "junior": 1,
    "mid": 3, "mid-level": 3, "intermediate": 3,
    "senior": 5, "senior-level": 5,
    "lead": 7,
    "principal": 8, "staff": 8,
    "manager": 5,
    "director": 10, "executive": 10,
    "vp": 12,
}


def _year(text: str) -> int:
    m = re.search(r"\d{4}", text)
    return int(m.group(0)) if m else 0


def _month(text: str, default: int) -> int:
    m = re.search(r"(\d{1,2})/", text) or re.search(r"-(\d{2})-", text)
    return int(m.group(1)) if m else default


def _round1(value: float) -> float:
    """One decimal place with halves rounded up (0.25 → 0.3)."""
    return math.floor(value * 10 + 0.5) / 10


def calculate_job_duration(
    start: Optional[str],
    end: Optional[str],
    current: bool = False,
    today: Optional[date] = None,
) -> float:
    """Years between two loosely formatted dates ("2019", "03/2020", "2021-06-01")."""
    if not start:
        return 0
    start_year, start_month = _year(start), _month(start, 1)
    if current:
        today = today or date.today()
        end_year, end_month = today.year, today.month
    elif end:
        end_year, end_month = _year(end), _month(end, 12)
    else:
        return 0
    if not start_year or not end_year:
        return 0
    years = (end_year - start_year) + (end_month - start_month) / 12
    return max(0, _round1(years))


def calculate_total_experience(cv_content: Optional[dict], today: Optional[date] = None) -> Dict:
    result = {"totalYears": 0, "breakdown": []}
    experience = (cv_content or {}).get("experience") or []
    total = 0.0
    for exp in experience:
        years = calculate_job_duration(exp.get("startDate"), exp.get("endDate"), exp.get("current"), today)
        total += years
        result["breakdown"].append({"title": exp.get("title"), "company": exp.get("company"), "years": years})
    result["totalYears"] = _round1(total)
    return result


def extract_required_experience(job: dict) -> Dict:
    """
    Guess the years of experience a job asks for.

    Explicit year figures win over everything; then "no experience" phrases,
    entry-level title words, the listing's level metadata, and finally the title.
    """
    result = {
        "years": 0,
        "level": job.get("experienceLevel") or job.get("experience_level") or "",
        "details": "",
        "noExperienceRequired": False,
    }
    title = (job.get("title") or "").lower()
    text = f"{title} {(job.get('description') or '').lower()}"

    for pattern in YEAR_PATTERNS:
        for match in pattern.finditer(text):
            years = int(match.group(1))
            if pattern.groups == 2 and match.group(2):
                details = f"{match.group(1)}-{match.group(2)} years required"
            else:
                details = f"{years}+ years required"
            if result["years"] < years <= 20:
                result["years"] = years
                result["details"] = details

    if result["years"] > 0:
        years = result["years"]
        if years >= 10:
            result["level"] = "Senior/Lead"
        elif years >= 5:
            result["level"] = "Senior"
        elif years >= 3:
            result["level"] = "Mid-Level"
        else:
            result["level"] = "Junior"
        return result

    if any(p.search(text) for p in NO_EXPERIENCE_PATTERNS):
        result.update(years=0, level="Entry Level", details="No experience required", noExperienceRequired=True)
        return result

    if ENTRY_TITLE.search(title):
        result.update(years=0, level="Entry Level", details="Entry level position", noExperienceRequired=True)
        return result

    if result["level"]:
        normalized = re.sub(r"[_-]", "-", result["level"].lower())
        if normalized in LEVEL_TO_YEARS:
            result["years"] = LEVEL_TO_YEARS[normalized]
            if result["years"] == 0:
                result["noExperienceRequired"] = True
                result["details"] = "Entry level position"

    if result["years"] == 0 and not result["noExperienceRequired"]:
        if "senior" in title or "sr." in title or "sr " in title:
            result.update(years=5, level="Senior")
        elif "lead" in title or "principal" in title:
            result.update(years=7, level="Lead")
        else:
            result.update(years=0, level="Not Specified", details="Experience requirements not specified")

    return result
