"""
Data models for normalized job listings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple


def split_job_id(job_id: str) -> Tuple[str, str]:
    """
    Split a normalized id of the form ``<source>_<externalId>``.
    The external id may itself contain underscores; only the first one separates.
    Returns ("", "") when the id is malformed.
    """
    if not job_id or "_" not in job_id:
        return "", ""
    source, external_id = job_id.split("_", 1)
    if not source or not external_id:
        return "", ""
    return source, external_id


def posted_timestamp(job: Job) -> float:
    """Sort key for newest-first ordering; unparseable dates sort last."""
    try:
        parsed = datetime.fromisoformat(job.posted_at.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


@dataclass
class Job:
    """A job listing in the provider-independent shape."""

    source: str
    external_id: str
    title: str = "Unknown Position"
    company: str = "Unknown Company"
    location: str = "Remote"

    location_type: str = "onsite"               # remote / hybrid / onsite
    country: str = ""
    city: str = ""
    salary: str = ""                            # display string, e.g. "$80k - $120k"
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    salary_currency: str = "USD"
    job_type: str = "full-time"
    experience_level: str = "mid"
    description: str = ""
    requirements: list = field(default_factory=list)
    benefits: list = field(default_factory=list)
    skills: list = field(default_factory=list)
    apply_url: str = "#"
    posted_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    expires_at: Optional[str] = None
    tags: list = field(default_factory=list)
    featured: bool = False
    company_logo: Optional[str] = None

    # Untouched provider payload; kept for the jobs_cache row, never sent to clients
    raw: dict = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        self.external_id = str(self.external_id)
        if self.description:
            self.description = self.description.strip()

    @property
    def id(self) -> str:
        return f"{self.source}_{self.external_id}"

    def to_dict(self) -> dict:
        """API shape (camelCase, no raw payload)."""
        return {
            "id": self.id,
            "externalId": self.external_id,
            "source": self.source,
            "title": self.title,
            "company": self.company,
            "companyLogo": self.company_logo,
            "location": self.location,
            "locationType": self.location_type,
            "country": self.country,
            "city": self.city,
            "salary": self.salary,
            "salaryMin": self.salary_min,
            "salaryMax": self.salary_max,
            "salaryCurrency": self.salary_currency,
            "jobType": self.job_type,
            "experienceLevel": self.experience_level,
            "description": self.description,
            "requirements": list(self.requirements),
            "benefits": list(self.benefits),
            "skills": list(self.skills),
            "applyUrl": self.apply_url,
            "postedAt": self.posted_at,
            "expiresAt": self.expires_at,
            "tags": list(self.tags),
            "featured": self.featured,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Job":
        """Rebuild a Job from its API shape (e.g. a cached search result)."""
        source = data.get("source", "")
        external_id = data.get("externalId")
        if external_id is None:
            _, external_id = split_job_id(data.get("id", ""))
        return cls(
            source=source,
            external_id=external_id or "",
            title=data.get("title") or "Unknown Position",
            company=data.get("company") or "Unknown Company",
            location=data.get("location") or "Remote",
            location_type=data.get("locationType") or "onsite",
            country=data.get("country") or "",
            city=data.get("city") or "",
            salary=data.get("salary") or "",
            salary_min=data.get("salaryMin"),
            salary_max=data.get("salaryMax"),
            salary_currency=data.get("salaryCurrency") or "USD",
            job_type=data.get("jobType") or "full-time",
            experience_level=data.get("experienceLevel") or "mid",
            description=data.get("description") or "",
            requirements=data.get("requirements") or [],
            benefits=data.get("benefits") or [],
            skills=data.get("skills") or [],
            apply_url=data.get("applyUrl") or "#",
            posted_at=data.get("postedAt") or datetime.now(timezone.utc).isoformat(),
            expires_at=data.get("expiresAt"),
            tags=data.get("tags") or [],
            featured=bool(data.get("featured")),
            company_logo=data.get("companyLogo"),
        )


@dataclass
class SearchParams:
    """Criteria for one aggregated search; every provider receives the same object."""

    query: str = ""
    location: str = ""
    country: str = ""
    job_type: str = ""
    experience_level: str = ""
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    remote: bool = False
    date_posted: str = ""                       # all / today / 3days / week / month
    page: int = 1
    limit: int = 20
    sources: Optional[List[str]] = None         # None → every enabled provider
    use_cache: bool = True

    def __post_init__(self) -> None:
        self.page = max(1, int(self.page or 1))
        self.limit = min(max(1, int(self.limit or 20)), 50)

    def cache_key(self) -> str:
        remote = "true" if self.remote else "false"
        return (
            f"jobs:{self.query}:{self.location}:{self.country}:{self.job_type}:"
            f"{self.experience_level}:{remote}:{self.page}:{self.limit}"
        ).lower()
