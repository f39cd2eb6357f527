"""
Shared fixtures.  Nothing here touches MySQL or the network: the module-level
objects in app.py are swapped for the in-memory fakes below.
"""

from __future__ import annotations

import itertools
from datetime import datetime
from typing import List, Optional

import pytest

import app as app_module
from job_board.auto_apply import AutoApplyService
from job_board.cache import MemoryCache, SearchCache
from job_board.models import Job
from job_board.storage import CareerStorage

TS_FORMAT = "%Y-%m-%d %H:%M:%S"


def _ts(value=None) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.strftime(TS_FORMAT)
    return str(value)


def make_job(external_id="1", source="remoteok", **kwargs) -> Job:
    defaults = {
        "title": "Python Developer",
        "company": "Acme",
        "location": "Remote",
        "location_type": "remote",
        "description": "Build APIs with Python and Flask.",
        "skills": ["python", "flask"],
        "apply_url": f"https://jobs.example.com/{external_id}",
        "posted_at": "2026-10-01T12:00:00+00:00",
    }
    defaults.update(kwargs)
    return Job(source=source, external_id=external_id, **defaults)


class FakeStorage:
    """In-memory stand-in for CareerStorage with the same method names."""

    application_stats = staticmethod(CareerStorage.application_stats)

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.cvs: List[dict] = []
        self.jobs: List[dict] = []
        self.search_cache: dict = {}
        self.saved: List[dict] = []
        self.applications: List[dict] = []
        self.matches: List[dict] = []
        self.notifications: List[dict] = []
        self.activity: List[dict] = []
        self.preferences: dict = {}
        self.job_preferences: dict = {}
        self.searches: List[dict] = []

    def _now(self) -> str:
        return datetime.now().strftime(TS_FORMAT)

    # ── CVs ────────────────────────────────────────────────────
    def create_cv(self, user_id, title, content, template="modern", is_primary=False):
        if is_primary:
            for cv in self.cvs:
                if cv["user_id"] == user_id:
                    cv["is_primary"] = False
        cv = {
            "id": next(self._ids), "user_id": user_id, "title": title, "template": template,
            "content": content, "is_primary": bool(is_primary), "ats_score": None,
            "ats_analysis": None, "created_at": self._now(), "updated_at": self._now(),
        }
        self.cvs.append(cv)
        return cv["id"]

    def get_cv(self, user_id, cv_id):
        for cv in self.cvs:
            if cv["user_id"] == user_id and cv["id"] == int(cv_id):
                return dict(cv)
        return None

    def list_cvs(self, user_id):
        return [dict(cv) for cv in self.cvs if cv["user_id"] == user_id]

    def count_cvs(self, user_id):
        return len(self.list_cvs(user_id))

    def update_cv(self, user_id, cv_id, fields):
        for cv in self.cvs:
            if cv["user_id"] == user_id and cv["id"] == int(cv_id):
                cv.update(fields)
                return True
        return False

    def delete_cv(self, user_id, cv_id):
        before = len(self.cvs)
        self.cvs = [c for c in self.cvs if not (c["user_id"] == user_id and c["id"] == int(cv_id))]
        return len(self.cvs) < before

    def get_primary_or_latest_cv(self, user_id):
        mine = self.list_cvs(user_id)
        primary = [c for c in mine if c["is_primary"]]
        if primary:
            return primary[0]
        return mine[-1] if mine else None

    def resolve_cv(self, user_id, preferred_id=None):
        if preferred_id:
            cv = self.get_cv(user_id, preferred_id)
            if cv:
                return cv
        return self.get_primary_or_latest_cv(user_id)

    def update_cv_ats(self, user_id, cv_id, score, analysis):
        if not self.update_cv(user_id, cv_id, {"ats_score": score, "ats_analysis": analysis}):
            return None
        return self.get_cv(user_id, cv_id)

    # ── jobs cache ─────────────────────────────────────────────
    def upsert_cached_jobs(self, jobs):
        for job in jobs:
            existing = self._cached_row(job.source, job.external_id)
            if existing:
                existing["job"] = job
            else:
                self.jobs.append({"id": next(self._ids), "job": job})
        return len(jobs)

    def _cached_row(self, source, external_id):
        for row in self.jobs:
            if row["job"].source == source and row["job"].external_id == external_id:
                return row
        return None

    def get_cached_job(self, source, external_id):
        row = self._cached_row(source, external_id)
        return row["job"] if row else None

    def get_cached_job_pk(self, source, external_id):
        row = self._cached_row(source, external_id)
        return row["id"] if row else None

    def clear_jobs_cache(self):
        count = len(self.jobs)
        self.jobs = []
        return count

    # ── search cache ───────────────────────────────────────────
    def get_search_cache(self, key):
        return self.search_cache.get(key)

    def set_search_cache(self, key, results, ttl_seconds):
        self.search_cache[key] = {"results": results, "expired": False}

    def delete_search_cache(self, key):
        return self.search_cache.pop(key, None) is not None

    def clear_search_cache(self, expired_only=False):
        if expired_only:
            expired = [k for k, v in self.search_cache.items() if v["expired"]]
            for k in expired:
                del self.search_cache[k]
            return len(expired)
        count = len(self.search_cache)
        self.search_cache = {}
        return count

    # ── saved jobs ─────────────────────────────────────────────
    def add_saved_job(self, user_id, cached_job_pk, notes=""):
        if any(s["user_id"] == user_id and s["job_id"] == cached_job_pk for s in self.saved):
            return None
        row = {
            "id": next(self._ids), "user_id": user_id, "job_id": cached_job_pk,
            "notes": notes, "created_at": self._now(),
        }
        self.saved.append(row)
        return dict(row)

    def remove_saved_job(self, user_id, saved_id=None, cached_job_pk=None):
        before = len(self.saved)
        if saved_id is not None:
            self.saved = [s for s in self.saved if not (s["user_id"] == user_id and s["id"] == saved_id)]
        elif cached_job_pk is not None:
            self.saved = [s for s in self.saved if not (s["user_id"] == user_id and s["job_id"] == cached_job_pk)]
        return len(self.saved) < before

    def is_saved(self, user_id, cached_job_pk):
        return any(s["user_id"] == user_id and s["job_id"] == cached_job_pk for s in self.saved)

    def list_saved_jobs(self, user_id):
        items = []
        for s in self.saved:
            if s["user_id"] != user_id:
                continue
            row = next(r for r in self.jobs if r["id"] == s["job_id"])
            item = {"savedId": s["id"], "savedAt": s["created_at"], "notes": s["notes"]}
            item.update(row["job"].to_dict())
            items.append(item)
        return items

    # ── applications ───────────────────────────────────────────
    def create_application(self, user_id, data):
        row = {
            "id": next(self._ids), "user_id": user_id, "job_id": None, "external_job_id": None,
            "job_title": None, "company_name": None, "location": None, "salary": None,
            "job_url": None, "source": None, "status": "applied", "notes": None,
            "cover_letter": None, "ai_summary": None, "cv_id": None, "match_score": None,
            "auto_applied": False, "job_data": None, "interview_date": None,
            "interview_type": None, "interview_notes": None, "offer_details": None,
            "rejection_reason": None, "applied_at": None,
            "created_at": self._now(), "updated_at": self._now(),
        }
        row.update({k: v for k, v in data.items() if k in row})
        row["applied_at"] = _ts(row["applied_at"])
        row["auto_applied"] = bool(row["auto_applied"])
        row["status"] = row["status"] or "applied"
        self.applications.append(row)
        return dict(row)

    def list_applications(self, user_id, status="", origin="", limit=None, order_by="created_at"):
        rows = [dict(a) for a in reversed(self.applications) if a["user_id"] == user_id]
        if status and status != "all":
            rows = [a for a in rows if a["status"] == status]
        if origin == "auto":
            rows = [a for a in rows if a["auto_applied"]]
        elif origin == "manual":
            rows = [a for a in rows if not a["auto_applied"]]
        return rows[:limit] if limit else rows

    def get_application(self, user_id, application_id):
        for a in self.applications:
            if a["user_id"] == user_id and a["id"] == int(application_id):
                return dict(a)
        return None

    def update_application(self, user_id, application_id, fields):
        from job_board.storage import APPLICATION_UPDATE_FIELDS
        for a in self.applications:
            if a["user_id"] == user_id and a["id"] == int(application_id):
                a.update({k: fields[k] for k in APPLICATION_UPDATE_FIELDS if k in fields})
                if fields.get("status") == "applied":
                    a["applied_at"] = self._now()
                return dict(a)
        return None

    def delete_application(self, user_id, application_id):
        before = len(self.applications)
        self.applications = [
            a for a in self.applications
            if not (a["user_id"] == user_id and a["id"] == int(application_id))
        ]
        return len(self.applications) < before

    def delete_applications_by_external_id(self, user_id, external_job_id):
        before = len(self.applications)
        self.applications = [
            a for a in self.applications
            if not (a["user_id"] == user_id and a["external_job_id"] == external_job_id)
        ]
        return before - len(self.applications)

    def find_application_by_url(self, user_id, job_url):
        for a in self.applications:
            if a["user_id"] == user_id and a["job_url"] == job_url:
                return dict(a)
        return None

    def find_application_by_external_id(self, user_id, external_job_id="", job_title="", company_name=""):
        for a in self.applications:
            if a["user_id"] != user_id:
                continue
            if external_job_id and a["external_job_id"] == external_job_id:
                return {"id": a["id"], "status": a["status"], "external_job_id": a["external_job_id"]}
            if not external_job_id and job_title and company_name \
                    and a["job_title"] == job_title and a["company_name"] == company_name:
                return {"id": a["id"], "status": a["status"], "external_job_id": a["external_job_id"]}
        return None

    def get_applied_urls(self, user_id):
        return {a["job_url"] for a in self.applications if a["user_id"] == user_id and a["job_url"]}

    def count_auto_applications(self, user_id, since=None):
        count = 0
        for a in self.applications:
            if a["user_id"] != user_id or not a["auto_applied"]:
                continue
            if since is not None and (a["applied_at"] or "") < since.strftime(TS_FORMAT):
                continue
            count += 1
        return count

    # ── job matches ────────────────────────────────────────────
    def get_job_match(self, user_id, job_id):
        for m in self.matches:
            if m["user_id"] == user_id and m["job_id"] == job_id:
                return dict(m)
        return None

    def upsert_job_match(self, user_id, job_id, cv_id, result, job_data):
        self.matches = [m for m in self.matches if not (m["user_id"] == user_id and m["job_id"] == job_id)]
        self.matches.append({
            "user_id": user_id, "job_id": job_id, "cv_id": cv_id,
            "match_score": result.get("matchScore"), "analysis": result.get("analysis"),
            "matched_skills": result.get("matchedSkills") or [],
            "missing_skills": result.get("missingSkills") or [],
            "recommendations": result.get("recommendations") or [],
            "job_data": job_data, "created_at": self._now(),
        })

    def recent_job_matches(self, user_id, limit=50):
        return [dict(m) for m in self.matches if m["user_id"] == user_id][:limit]

    # ── notifications ──────────────────────────────────────────
    def create_notification(self, user_id, type, title, description="", action_url=None,
                            action_text=None, secondary_action=None, metadata=None):
        row = {
            "id": next(self._ids), "user_id": user_id, "type": type, "title": title,
            "description": description, "action_url": action_url, "action_text": action_text,
            "secondary_action": secondary_action, "metadata": metadata, "unread": True,
            "created_at": self._now(),
        }
        self.notifications.append(row)
        return dict(row)

    def list_notifications(self, user_id, type="", unread_only=False, limit=50, offset=0):
        rows = [dict(n) for n in reversed(self.notifications) if n["user_id"] == user_id]
        if type and type != "all":
            rows = [n for n in rows if n["type"] == type]
        if unread_only:
            rows = [n for n in rows if n["unread"]]
        return rows[offset:offset + limit]

    def unread_notification_count(self, user_id):
        return sum(1 for n in self.notifications if n["user_id"] == user_id and n["unread"])

    def mark_notifications_read(self, user_id, notification_ids):
        updated = 0
        for n in self.notifications:
            if n["user_id"] == user_id and n["id"] in notification_ids and n["unread"]:
                n["unread"] = False
                updated += 1
        return updated

    def mark_all_notifications_read(self, user_id):
        return self.mark_notifications_read(
            user_id, [n["id"] for n in self.notifications if n["user_id"] == user_id]
        )

    def delete_notification(self, user_id, notification_id):
        before = len(self.notifications)
        self.notifications = [
            n for n in self.notifications
            if not (n["user_id"] == user_id and n["id"] == notification_id)
        ]
        return len(self.notifications) < before

    # ── activity / preferences / searches ──────────────────────
    def add_activity(self, user_id, activity_type, title, description="", metadata=None):
        self.activity.append({
            "user_id": user_id, "activity_type": activity_type, "title": title,
            "description": description, "metadata": metadata,
        })

    def get_preferences(self, user_id):
        return self.preferences.get(user_id)

    def upsert_preferences(self, user_id, prefs):
        row = self.preferences.setdefault(user_id, {"user_id": user_id})
        row.update(prefs)
        return dict(row)

    def get_job_preferences(self, user_id):
        return self.job_preferences.get(user_id)

    def upsert_job_preferences(self, user_id, prefs):
        row = self.job_preferences.setdefault(user_id, {"user_id": user_id})
        row.update(prefs)
        return dict(row)

    def log_search(self, user_id, query, location, filters, results_count):
        self.searches.append({
            "user_id": user_id, "query": query, "location": location,
            "filters": filters, "results_count": results_count, "created_at": self._now(),
        })

    def recent_searches(self, user_id, since=None, limit=10):
        return [dict(s) for s in self.searches if s["user_id"] == user_id][:limit]


class FakeSearcher:
    """Returns a fixed job list for every search."""

    def __init__(self, jobs: Optional[List[Job]] = None) -> None:
        self.jobs = list(jobs or [])
        self.calls = []
        self.sources = {}

    def search(self, params):
        self.calls.append(params)
        start = (params.page - 1) * params.limit
        page = self.jobs[start:start + params.limit]
        return {
            "jobs": page,
            "total": len(self.jobs),
            "page": params.page,
            "limit": params.limit,
            "totalPages": -(-len(self.jobs) // params.limit),
            "sources": sorted({j.source for j in self.jobs}),
            "cached": False,
        }

    def available_providers(self):
        return [{"id": "remoteok", "name": "RemoteOK", "requiresApiKey": False}]

    def get_job_by_id(self, job_id):
        for job in self.jobs:
            if job.id == job_id:
                return job
        return None


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def fake_searcher():
    return FakeSearcher([make_job("1"), make_job("2", title="Data Engineer", company="Globex")])


@pytest.fixture
def client(monkeypatch, fake_storage, fake_searcher):
    cache = SearchCache(fake_storage, memory=MemoryCache())
    monkeypatch.setattr(app_module, "storage", fake_storage)
    monkeypatch.setattr(app_module, "search_cache", cache)
    monkeypatch.setattr(app_module, "searcher", fake_searcher)
    monkeypatch.setattr(app_module, "auto_apply", AutoApplyService(fake_storage, fake_searcher))
    monkeypatch.setattr(app_module, "check_db_connection", lambda: (True, ""))
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as c:
        yield c


@pytest.fixture
def user_headers():
    return {"X-User-Id": "user-1"}


@pytest.fixture
def sample_cv():
    return {
        "personalInfo": {
            "firstName": "Ada", "lastName": "Lovelace",
            "email": "ada@example.com", "phone": "+44 20 7946 0000",
        },
        "summary": "Backend engineer with six years of Python experience building APIs and data pipelines.",
        "experience": [
            {
                "title": "Senior Python Developer", "company": "Analytical Engines",
                "startDate": "2019-01", "endDate": "", "current": True,
                "description": "Led a team of 5 engineers. Reduced API latency by 40%. "
                               "Developed data pipelines processing 2M records daily.",
            },
            {
                "title": "Software Engineer", "company": "Difference Ltd",
                "startDate": "2016-06", "endDate": "2018-12", "current": False,
                "description": "Built REST services in Flask and implemented CI pipelines.",
            },
        ],
        "education": [{"degree": "BSc Mathematics", "school": "University of London"}],
        "skills": {"technical": ["Python", "Flask", "SQL", "Docker"], "soft": ["Leadership"]},
    }
