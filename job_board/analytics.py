"""
Dashboard analytics computed from a user's applications, match history and
search log. Pure functions over rows from `CareerStorage`; no database access.
"""

from __future__ import annotations

import re
from collections import Counter
from datetime import datetime, timedelta
from typing import Dict, List, Optional

AVG_RESPONSE_RATE = 25
SKILL_COLORS = ["indigo", "purple", "pink", "cyan", "green", "yellow", "orange", "red"]
DAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
RESPONDED_STATUSES = {"screening", "interviewing", "offer", "rejected"}
STATUS_KEYS = ["saved", "applied", "screening", "interviewing", "offer", "rejected", "withdrawn"]


def parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.strptime(str(value)[:19], "%Y-%m-%d %H:%M:%S")
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        return None


def _app_date(app: dict) -> Optional[datetime]:
    return parse_timestamp(app.get("applied_at")) or parse_timestamp(app.get("created_at"))


def company_logo_url(name: str) -> str:
    slug = re.sub(r"\s", "", name.lower())
    return f"https://logo.clearbit.com/{slug}.com"


def activity_series(applications: List[dict], days: int, now: datetime) -> Dict:
    """
    ≤7 days → one bucket per day for the last 7 days,
    ≤30 days → four weekly buckets, otherwise three 30-day buckets.
    Oldest bucket first.
    """
    if days <= 7:
        counts = [0] * 7
        for app in applications:
            ts = _app_date(app)
            if ts is None:
                continue
            ago = (now - ts).days
            if 0 <= ago < 7:
                counts[6 - ago] += 1
        labels = [DAY_LABELS[(now - timedelta(days=i)).weekday()] for i in range(6, -1, -1)]
        return {"labels": labels, "data": counts}

    if days <= 30:
        counts = [0] * 4
        for app in applications:
            ts = _app_date(app)
            if ts is None:
                continue
            ago = (now - ts).days // 7
            if 0 <= ago < 4:
                counts[3 - ago] += 1
        return {"labels": ["Week 1", "Week 2", "Week 3", "Week 4"], "data": counts}

    counts = [0] * 3
    for app in applications:
        ts = _app_date(app)
        if ts is None:
            continue
        ago = (now - ts).days // 30
        if 0 <= ago < 3:
            counts[2 - ago] += 1
    labels = [MONTH_LABELS[(now.month - 1 - i) % 12] for i in range(2, -1, -1)]
    return {"labels": labels, "data": counts}


def top_companies(applications: List[dict], limit: int = 5) -> List[dict]:
    counts = Counter(app.get("company_name") or "Unknown" for app in applications)
    ranked = counts.most_common(limit)
    if not ranked:
        return []
    top = ranked[0][1]
    return [
        {
            "name": name,
            "logo": company_logo_url(name),
            "applications": count,
            "percentage": int(count / top * 100 + 0.5),
        }
        for name, count in ranked
    ]


def skill_insights(matches: List[dict]) -> tuple[List[dict], List[str]]:
    matched = Counter()
    missing = Counter()
    for m in matches:
        matched.update(m.get("matched_skills") or [])
        missing.update(m.get("missing_skills") or [])
    matched_skills = [
        {
            "name": name,
            "match": max(60, 100 - i * 5),
            "color": SKILL_COLORS[i % len(SKILL_COLORS)],
        }
        for i, (name, _) in enumerate(matched.most_common(8))
    ]
    suggested = [name for name, _ in missing.most_common(3)]
    return matched_skills, suggested


def build_analytics(
    applications: List[dict],
    matches: List[dict],
    searches: List[dict],
    days: int = 30,
    now: Optional[datetime] = None,
) -> Dict:
    now = now or datetime.now()
    start = now - timedelta(days=days)
    previous_start = start - timedelta(days=days)

    recent = []
    previous = []
    for app in applications:
        ts = _app_date(app)
        if ts is None:
            continue
        if start <= ts <= now:
            recent.append(app)
        elif previous_start <= ts < start:
            previous.append(app)

    status_counts = {key: 0 for key in STATUS_KEYS}
    for app in applications:
        if app.get("status") in status_counts:
            status_counts[app["status"]] += 1

    source_counts: Dict[str, int] = {}
    for app in applications:
        source = app.get("source") or "Manual"
        source_counts[source] = source_counts.get(source, 0) + 1

    matched_skills, suggested_skills = skill_insights(matches)

    total_applied = sum(
        1 for a in applications if a.get("status") != "saved" and a.get("applied_at")
    )
    responses = sum(1 for a in applications if a.get("status") in RESPONDED_STATUSES)
    response_rate = int(responses / total_applied * 100 + 0.5) if total_applied else 0

    if previous:
        trend = int(round((len(recent) - len(previous)) / len(previous) * 100))
    else:
        trend = 100 if recent else 0

    recent_searches = [
        s for s in searches
        if (parse_timestamp(s.get("created_at")) or now) >= start
    ]

    return {
        "stats": {
            "totalApplications": len(applications),
            "recentApplications": len(recent),
            "interviews": status_counts["interviewing"],
            "offers": status_counts["offer"],
            "responseRate": response_rate,
            "avgResponseRate": AVG_RESPONSE_RATE,
        },
        "statusCounts": status_counts,
        "weeklyData": activity_series(recent, days, now),
        "topCompanies": top_companies(applications),
        "sourceCounts": source_counts,
        "matchedSkills": matched_skills,
        "suggestedSkills": suggested_skills,
        "recentSearches": recent_searches,
        "trends": {
            "applications": trend,
            "interviews": status_counts["interviewing"],
            "responseRate": "above" if response_rate > AVG_RESPONSE_RATE else "below",
        },
    }


# ── tracker rows ───────────────────────────────────────────────

def relative_time(value, now: Optional[datetime] = None) -> str:
    ts = parse_timestamp(value)
    if ts is None:
        return "Never"
    now = now or datetime.now()
    minutes = int((now - ts).total_seconds() // 60)
    hours = minutes // 60
    days = minutes // 1440
    weeks = days // 7

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes} min ago"
    if hours < 24:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    if weeks == 1:
        return "1 week ago"
    if weeks < 4:
        return f"{weeks} weeks ago"
    return f"{MONTH_LABELS[ts.month - 1]} {ts.day}"


def application_view(app: dict, now: Optional[datetime] = None) -> dict:
    """An `applications` row in the shape the tracker board renders."""
    company = app.get("company_name") or "Unknown Company"
    interview = parse_timestamp(app.get("interview_date"))
    next_step = None
    if interview is not None:
        next_step = f"Interview - {MONTH_LABELS[interview.month - 1]} {interview.day}, {interview.year}"
    return {
        "id": app.get("id"),
        "company": company,
        "logo": company_logo_url(company),
        "title": app.get("job_title") or "Unknown Position",
        "location": app.get("location") or "Remote",
        "salary": app.get("salary") or "Not specified",
        "status": app.get("status"),
        "appliedDate": app.get("applied_at"),
        "lastUpdate": relative_time(app.get("updated_at"), now),
        "coverLetter": bool(app.get("cover_letter")),
        "source": app.get("source") or "Manual",
        "notes": app.get("notes"),
        "nextStep": next_step,
        "interviewType": app.get("interview_type"),
        "interviewNotes": app.get("interview_notes"),
        "offerDetails": app.get("offer_details"),
        "rejectionReason": app.get("rejection_reason"),
        "jobUrl": app.get("job_url"),
        "jobId": app.get("job_id"),
        "externalJobId": app.get("external_job_id"),
        "autoApplied": bool(app.get("auto_applied")),
        "matchScore": app.get("match_score"),
    }
