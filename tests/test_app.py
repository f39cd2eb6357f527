"""
API tests for the Flask routes.

The module-level storage, cache, searcher and auto-apply objects in app.py
are swapped for in-memory fakes by the `client` fixture (see conftest.py).
"""

import io

import pytest
from docx import Document

import app as app_module
import llm
from conftest import make_job
from cv_tools import ai as cv_ai
from job_board.storage import DatabaseUnavailable


def _docx_bytes(*paragraphs):
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


@pytest.fixture
def cv_id(fake_storage, sample_cv):
    return fake_storage.create_cv("user-1", "Main CV", sample_cv, is_primary=True)


@pytest.fixture
def cover_letters(monkeypatch):
    calls = []

    def fake_letter(cv, job, tone="professional", length="medium"):
        calls.append({"job": job, "tone": tone, "length": length})
        return {"coverLetter": f"Dear {job.get('company')},", "summary": "Good fit"}

    monkeypatch.setattr(cv_ai, "generate_cover_letter", fake_letter)
    return calls


JOB_DATA = {
    "title": "Python Developer",
    "company": "Acme",
    "location": "Remote",
    "source": "remoteok",
    "postedAt": "2026-10-01T12:00:00+00:00",
    "applyUrl": "https://jobs.example.com/1",
    "skills": ["python"],
}


class TestAuth:
    """Routes that need the X-User-Id header."""

    @pytest.mark.parametrize("path", [
        "/api/jobs/save",
        "/api/jobs/track?jobId=remoteok_1",
        "/api/jobs/match?jobId=remoteok_1",
        "/api/jobs/apply",
        "/api/jobs/auto-apply",
        "/api/applications",
        "/api/notifications",
        "/api/notifications/unread-count",
        "/api/preferences/general",
        "/api/preferences/job-search",
        "/api/analytics",
        "/api/cvs",
        "/api/cvs/1",
    ])
    def test_missing_user_is_unauthorized(self, client, path):
        response = client.get(path)
        assert response.status_code == 401
        assert response.get_json() == {"error": "Unauthorized"}

    def test_blank_header_is_unauthorized(self, client):
        response = client.get("/api/cvs", headers={"X-User-Id": "   "})
        assert response.status_code == 401

    def test_cv_parse_checks_user_before_file(self, client):
        assert client.post("/api/cv/parse").status_code == 401

    def test_database_outage_is_503(self, client, fake_storage, user_headers, monkeypatch):
        def down(user_id):
            raise DatabaseUnavailable("Can't connect to MySQL server")

        monkeypatch.setattr(fake_storage, "list_cvs", down)
        response = client.get("/api/cvs", headers=user_headers)
        assert response.status_code == 503
        assert response.get_json()["error"] == "Database unavailable"


class TestHealthAndSearch:

    def test_health(self, client):
        data = client.get("/api/health").get_json()
        assert data["status"] == "ok"
        assert data["database"]["connected"] is True
        assert data["providers"] == [{"id": "remoteok", "name": "RemoteOK", "requiresApiKey": False}]

    def test_health_degraded(self, client, monkeypatch):
        monkeypatch.setattr(app_module, "check_db_connection", lambda: (False, "refused"))
        data = client.get("/api/health").get_json()
        assert data["status"] == "degraded"
        assert data["database"] == {"connected": False, "detail": "refused"}

    def test_search_pagination_and_job_caching(self, client, fake_searcher, fake_storage):
        response = client.get("/api/jobs/search?q=python&limit=1")
        assert response.status_code == 200
        data = response.get_json()
        assert len(data["jobs"]) == 1
        assert data["jobs"][0]["id"] == "remoteok_1"
        assert data["pagination"] == {"page": 1, "limit": 1, "total": 2, "totalPages": 2}
        assert data["cached"] is False
        assert fake_searcher.calls[0].query == "python"
        assert len(fake_storage.jobs) == 1

    def test_search_parameters(self, client, fake_searcher):
        client.get(
            "/api/jobs/search?query=data&limit=500&remote=true&sources=remoteok,%20adzuna"
            "&cache=false&jobType=contract&salaryMin=50000"
        )
        params = fake_searcher.calls[0]
        assert params.query == "data"
        assert params.limit == 50
        assert params.remote is True
        assert params.sources == ["remoteok", "adzuna"]
        assert params.use_cache is False
        assert params.job_type == "contract"
        assert params.salary_min == 50000.0

    def test_search_is_logged_for_users(self, client, fake_storage, user_headers):
        client.get("/api/jobs/search?q=python&location=Berlin", headers=user_headers)
        assert len(fake_storage.searches) == 1
        assert fake_storage.searches[0]["query"] == "python"
        assert fake_storage.searches[0]["location"] == "Berlin"
        assert fake_storage.searches[0]["results_count"] == 2

    def test_search_log_failure_does_not_fail_search(self, client, fake_storage, user_headers, monkeypatch):
        def broken(*args):
            raise DatabaseUnavailable("down")

        monkeypatch.setattr(fake_storage, "log_search", broken)
        assert client.get("/api/jobs/search?q=python", headers=user_headers).status_code == 200

    def test_providers(self, client):
        assert client.get("/api/jobs/providers").get_json() == {
            "providers": [{"id": "remoteok", "name": "RemoteOK", "requiresApiKey": False}],
        }


class TestCacheRoute:

    def test_info(self, client):
        data = client.get("/api/jobs/cache").get_json()
        assert data["message"] == "Use DELETE method to clear cache"

    def test_invalid_type(self, client):
        assert client.delete("/api/jobs/cache?type=bogus").status_code == 400

    def test_clear_jobs(self, client, fake_storage):
        fake_storage.upsert_cached_jobs([make_job("1"), make_job("2")])
        data = client.delete("/api/jobs/cache?type=jobs").get_json()
        assert data == {"message": "Cache cleared successfully (jobs)", "details": {"jobs": 2}}
        assert fake_storage.jobs == []

    def test_clear_expired(self, client, fake_storage):
        fake_storage.search_cache = {
            "jobs:old": {"results": {}, "expired": True},
            "jobs:new": {"results": {}, "expired": False},
        }
        data = client.delete("/api/jobs/cache?type=expired").get_json()
        assert data["details"] == {"search": 1}
        assert list(fake_storage.search_cache) == ["jobs:new"]


class TestJobDetail:

    def test_found_via_provider_and_cached(self, client, fake_storage):
        response = client.get("/api/jobs/remoteok_1")
        assert response.status_code == 200
        data = response.get_json()
        assert data["id"] == "remoteok_1"
        assert data["matchScore"] is None
        assert data["companyLogo"] == "A"
        assert fake_storage.get_cached_job("remoteok", "1") is not None

    def test_not_found(self, client):
        response = client.get("/api/jobs/remoteok_99")
        assert response.status_code == 404
        assert response.get_json() == {"error": "Job not found"}

    def test_match_data_for_user_with_cv(self, client, user_headers, cv_id):
        data = client.get("/api/jobs/remoteok_1", headers=user_headers).get_json()
        # 2/2 skills → 50, experience → 16
        assert data["matchScore"] == 66
        assert {"name": "python", "match": True} in data["skills"]

    def test_saved_flag(self, client, fake_storage, user_headers):
        assert client.get("/api/jobs/remoteok_1", headers=user_headers).get_json()["isSaved"] is False
        client.post("/api/jobs/save", json={"jobId": "remoteok_1"}, headers=user_headers)
        assert client.get("/api/jobs/remoteok_1", headers=user_headers).get_json()["isSaved"] is True
        assert client.get("/api/jobs/remoteok_1").get_json()["isSaved"] is False


class TestSavedJobs:

    def test_validation(self, client, user_headers):
        assert client.post("/api/jobs/save", json={}, headers=user_headers).status_code == 400
        response = client.post("/api/jobs/save", json={"jobId": "bad"}, headers=user_headers)
        assert response.get_json() == {"error": "Invalid job ID format"}

    def test_job_must_be_cached(self, client, user_headers):
        response = client.post("/api/jobs/save", json={"jobId": "remoteok_1"}, headers=user_headers)
        assert response.status_code == 404

    def test_save_list_and_unsave(self, client, fake_storage, user_headers):
        fake_storage.upsert_cached_jobs([make_job("1")])

        response = client.post("/api/jobs/save", json={"jobId": "remoteok_1"}, headers=user_headers)
        assert response.status_code == 200
        assert response.get_json()["jobId"] == "remoteok_1"
        assert fake_storage.activity[-1]["activity_type"] == "job_saved"

        duplicate = client.post("/api/jobs/save", json={"jobId": "remoteok_1"}, headers=user_headers)
        assert duplicate.status_code == 409

        listed = client.get("/api/jobs/save", headers=user_headers).get_json()
        assert listed["total"] == 1
        assert listed["jobs"][0]["title"] == "Python Developer"

        removed = client.delete("/api/jobs/save?jobId=remoteok_1", headers=user_headers)
        assert removed.get_json() == {"message": "Job unsaved successfully"}
        again = client.delete("/api/jobs/save?jobId=remoteok_1", headers=user_headers)
        assert again.status_code == 404

    def test_unsave_by_saved_id(self, client, fake_storage, user_headers):
        fake_storage.upsert_cached_jobs([make_job("1")])
        saved = client.post("/api/jobs/save", json={"jobId": "remoteok_1"}, headers=user_headers).get_json()
        response = client.delete(f"/api/jobs/save?savedId={saved['id']}", headers=user_headers)
        assert response.status_code == 200

    def test_unsave_requires_an_id(self, client, user_headers):
        assert client.delete("/api/jobs/save", headers=user_headers).status_code == 400


class TestTrack:

    def test_validation(self, client, user_headers):
        response = client.post("/api/jobs/track", json={"jobId": "remoteok_1"}, headers=user_headers)
        assert response.status_code == 400
        response = client.post("/api/jobs/track", json={"jobId": "remoteok_1", "action": "like"},
                               headers=user_headers)
        assert response.get_json() == {"error": 'action must be "apply" or "save"'}

    def test_apply_then_already_tracked(self, client, fake_storage, user_headers):
        body = {"jobId": "remoteok_1", "action": "apply", "jobData": JOB_DATA}
        response = client.post("/api/jobs/track", json=body, headers=user_headers)
        assert response.status_code == 201
        application = response.get_json()["application"]
        assert application["status"] == "applied"
        assert application["notes"] == "Found via remoteok on 2026-10-01"
        assert application["job_url"] == "https://jobs.example.com/1"
        assert len(fake_storage.notifications) == 1
        assert fake_storage.activity[-1]["activity_type"] == "application_sent"

        again = client.post("/api/jobs/track", json=body, headers=user_headers)
        assert again.status_code == 200
        assert again.get_json()["message"] == "Job already tracked"

    def test_save_action_has_no_notification(self, client, fake_storage, user_headers):
        body = {"jobId": "remoteok_2", "action": "save", "jobData": {"title": "Data Engineer"}}
        response = client.post("/api/jobs/track", json=body, headers=user_headers)
        application = response.get_json()["application"]
        assert application["status"] == "saved"
        assert application["company_name"] == "Unknown Company"
        assert application["applied_at"] is None
        assert fake_storage.notifications == []

    def test_lookup_and_remove(self, client, user_headers):
        client.post("/api/jobs/track", json={"jobId": "remoteok_1", "action": "apply", "jobData": JOB_DATA},
                    headers=user_headers)
        tracked = client.get("/api/jobs/track?jobId=remoteok_1", headers=user_headers).get_json()
        assert tracked["tracked"] is True
        by_title = client.get("/api/jobs/track?title=Python%20Developer&company=Acme",
                              headers=user_headers).get_json()
        assert by_title["tracked"] is True
        assert client.get("/api/jobs/track", headers=user_headers).status_code == 400

        removed = client.delete("/api/jobs/track?jobId=remoteok_1", headers=user_headers).get_json()
        assert removed["removed"] == 1


class TestMatch:

    def test_requires_job_id(self, client, user_headers):
        assert client.get("/api/jobs/match", headers=user_headers).status_code == 400

    def test_no_cached_match(self, client, user_headers):
        data = client.get("/api/jobs/match?jobId=remoteok_1", headers=user_headers).get_json()
        assert data["match"] is None

    def test_post_requires_cv(self, client, user_headers):
        response = client.post("/api/jobs/match", json={"jobId": "remoteok_1"}, headers=user_headers)
        assert response.status_code == 400
        assert response.get_json()["requiresCV"] is True

    def test_post_requires_job(self, client, user_headers, cv_id):
        response = client.post("/api/jobs/match", json={"jobId": "remoteok_1"}, headers=user_headers)
        assert response.status_code == 404

    def test_calculate_then_cached(self, client, user_headers, cv_id, monkeypatch):
        def boom(*args, **kwargs):
            raise llm.AIError("no key")

        monkeypatch.setattr(llm, "call_openrouter", boom)
        body = {"jobId": "custom_1", "jobData": {
            "title": "Python Developer", "description": "Requires 3+ years of experience.",
        }}
        fresh = client.post("/api/jobs/match", json=body, headers=user_headers).get_json()["match"]
        assert fresh["matchScore"] == 65
        assert fresh["cached"] is False

        cached = client.get("/api/jobs/match?jobId=custom_1", headers=user_headers).get_json()["match"]
        assert cached["matchScore"] == 65
        assert cached["cached"] is True
        assert cached["experienceAnalysis"]["requiredYears"] == 3


class TestApply:

    def test_validation(self, client, user_headers):
        response = client.post("/api/jobs/apply", json={"jobId": "remoteok_1"}, headers=user_headers)
        assert response.status_code == 400

    def test_requires_cv(self, client, user_headers, cover_letters):
        body = {"jobId": "remoteok_1", "jobData": JOB_DATA}
        response = client.post("/api/jobs/apply", json=body, headers=user_headers)
        assert response.status_code == 400
        assert response.get_json()["requiresCV"] is True

    def test_apply_with_cover_letter(self, client, fake_storage, user_headers, cv_id, cover_letters):
        fake_storage.upsert_preferences("user-1", {"cover_letter_tone": "friendly"})
        body = {"jobId": "remoteok_1", "jobData": JOB_DATA}
        data = client.post("/api/jobs/apply", json=body, headers=user_headers).get_json()
        assert data["coverLetter"] == "Dear Acme,"
        assert data["aiSummary"] == "Good fit"
        assert data["applyUrl"] == "https://jobs.example.com/1"
        assert data["autoApplied"] is False
        assert cover_letters[0]["tone"] == "friendly"
        assert fake_storage.applications[0]["cv_id"] == cv_id

        again = client.post("/api/jobs/apply", json=body, headers=user_headers)
        assert again.status_code == 400
        assert again.get_json()["alreadyApplied"] is True

    def test_apply_without_url_uses_placeholder(self, client, fake_storage, user_headers, cv_id, cover_letters):
        body = {"jobId": "remoteok_9", "jobData": {"title": "Dev", "company": "Hooli"}, "generateCover": False}
        data = client.post("/api/jobs/apply", json=body, headers=user_headers).get_json()
        assert data["coverLetter"] is None
        assert cover_letters == []
        assert fake_storage.applications[0]["job_url"] == "#job-remoteok_9"

    def test_cover_letter_failure_still_records(self, client, fake_storage, user_headers, cv_id, monkeypatch):
        def boom(*args, **kwargs):
            raise llm.AIError("timeout")

        monkeypatch.setattr(cv_ai, "generate_cover_letter", boom)
        body = {"jobId": "remoteok_1", "jobData": JOB_DATA}
        response = client.post("/api/jobs/apply", json=body, headers=user_headers)
        assert response.status_code == 200
        assert response.get_json()["coverLetter"] is None
        assert len(fake_storage.applications) == 1

    def test_history(self, client, user_headers, cv_id, cover_letters):
        client.post("/api/jobs/apply", json={"jobId": "remoteok_1", "jobData": JOB_DATA}, headers=user_headers)
        data = client.get("/api/jobs/apply", headers=user_headers).get_json()
        assert len(data["applications"]) == 1
        assert data["stats"]["total"] == 1
        assert data["stats"]["manual"] == 1


class TestAutoApplyRoute:

    def test_guard_error_body(self, client, user_headers):
        response = client.post("/api/jobs/auto-apply", json={}, headers=user_headers)
        assert response.status_code == 400
        assert response.get_json() == {
            "error": "Please set up your job preferences first",
            "requiresPreferences": True,
        }

    def test_dry_run(self, client, fake_storage, user_headers, cv_id):
        fake_storage.upsert_job_preferences("user-1", {"desired_titles": ["Python Developer"]})
        data = client.post("/api/jobs/auto-apply", json={"dryRun": True, "minMatchScore": "60"},
                           headers=user_headers).get_json()
        assert data["settings"]["dryRun"] is True
        assert data["settings"]["minMatchScore"] == 60
        assert data["jobsFound"] == 2
        assert fake_storage.applications == []

    def test_status(self, client, user_headers):
        data = client.get("/api/jobs/auto-apply", headers=user_headers).get_json()
        assert data["canRun"] is False
        assert data["status"]["hasCV"] is False


class TestApplications:

    def test_create_validation(self, client, user_headers):
        response = client.post("/api/applications", json={"job_title": "Dev"}, headers=user_headers)
        assert response.status_code == 400
        response = client.post("/api/applications",
                               json={"job_title": "Dev", "company_name": "Acme", "status": "ghosted"},
                               headers=user_headers)
        assert response.status_code == 400

    def test_crud(self, client, fake_storage, user_headers):
        created = client.post("/api/applications", json={
            "job_title": "Dev", "company_name": "Acme", "location": "Berlin",
        }, headers=user_headers)
        assert created.status_code == 201
        app_id = created.get_json()["application"]["id"]
        assert fake_storage.notifications[0]["title"] == "Application Submitted"

        listed = client.get("/api/applications", headers=user_headers).get_json()
        assert listed["total"] == 1
        row = listed["applications"][0]
        assert row["company"] == "Acme"
        assert row["title"] == "Dev"
        assert row["location"] == "Berlin"
        assert row["source"] == "Manual"

        updated = client.patch("/api/applications", json={
            "id": app_id, "status": "interviewing", "interview_date": "2026-10-25 14:00:00",
        }, headers=user_headers)
        assert updated.status_code == 200
        assert updated.get_json()["application"]["status"] == "interviewing"
        assert fake_storage.activity[-1]["activity_type"] == "application_status_changed"
        listed = client.get("/api/applications?status=interviewing", headers=user_headers).get_json()
        assert listed["applications"][0]["nextStep"] == "Interview - Oct 25, 2026"

        deleted = client.delete(f"/api/applications?id={app_id}", headers=user_headers)
        assert deleted.status_code == 200
        assert client.delete(f"/api/applications?id={app_id}", headers=user_headers).status_code == 404

    def test_saved_status_has_no_applied_date(self, client, user_headers):
        created = client.post("/api/applications", json={
            "job_title": "Dev", "company_name": "Acme", "status": "saved",
        }, headers=user_headers).get_json()
        assert created["application"]["applied_at"] is None

    def test_patch_errors(self, client, user_headers):
        assert client.patch("/api/applications", json={}, headers=user_headers).status_code == 400
        response = client.patch("/api/applications", json={"id": 1, "status": "nope"}, headers=user_headers)
        assert response.status_code == 400
        response = client.patch("/api/applications", json={"id": 999, "notes": "x"}, headers=user_headers)
        assert response.status_code == 404

    def test_delete_requires_id(self, client, user_headers):
        assert client.delete("/api/applications", headers=user_headers).status_code == 400


class TestNotifications:

    def test_lifecycle(self, client, user_headers):
        assert client.post("/api/notifications", json={"type": "tip"}, headers=user_headers).status_code == 400

        created = client.post("/api/notifications", json={
            "type": "tip", "title": "Update your CV", "actionUrl": "/cv",
        }, headers=user_headers)
        assert created.status_code == 201
        notification_id = created.get_json()["notification"]["id"]

        listed = client.get("/api/notifications?unread=true", headers=user_headers).get_json()
        assert listed["unreadCount"] == 1
        assert listed["notifications"][0]["action_url"] == "/cv"

        assert client.patch("/api/notifications", json={}, headers=user_headers).status_code == 400
        marked = client.patch("/api/notifications", json={"markAllRead": True}, headers=user_headers)
        assert marked.get_json()["updated"] == 1
        count = client.get("/api/notifications/unread-count", headers=user_headers).get_json()
        assert count == {"unreadCount": 0}

        assert client.delete("/api/notifications?id=999", headers=user_headers).status_code == 404
        assert client.delete("/api/notifications", headers=user_headers).status_code == 400
        deleted = client.delete(f"/api/notifications?id={notification_id}", headers=user_headers)
        assert deleted.status_code == 200

    def test_mark_selected(self, client, user_headers):
        first = client.post("/api/notifications", json={"type": "tip", "title": "A"},
                            headers=user_headers).get_json()["notification"]
        client.post("/api/notifications", json={"type": "tip", "title": "B"}, headers=user_headers)
        marked = client.patch("/api/notifications", json={"notificationIds": [first["id"]]},
                              headers=user_headers).get_json()
        assert marked["updated"] == 1
        count = client.get("/api/notifications/unread-count", headers=user_headers).get_json()
        assert count["unreadCount"] == 1


class TestPreferences:

    def test_general_defaults(self, client, user_headers):
        assert client.get("/api/preferences/general", headers=user_headers).get_json() == {"preferences": None}
        prefs = client.post("/api/preferences/general", json={}, headers=user_headers).get_json()["preferences"]
        assert prefs["auto_apply_enabled"] is False
        assert prefs["min_match_score"] == 85
        assert prefs["daily_limit"] == 10
        assert prefs["generate_cover_letters"] is True
        assert prefs["cover_letter_tone"] == "professional"
        assert prefs["theme"] == "purple"

    def test_general_values(self, client, user_headers):
        client.post("/api/preferences/general", json={
            "autoApplyEnabled": True, "dailyLimit": "3", "showSalary": True,
        }, headers=user_headers)
        prefs = client.get("/api/preferences/general", headers=user_headers).get_json()["preferences"]
        assert prefs["auto_apply_enabled"] is True
        assert prefs["daily_limit"] == 3
        assert prefs["show_salary"] is True

    def test_job_search(self, client, user_headers):
        before = client.get("/api/preferences/job-search", headers=user_headers).get_json()
        assert before["hasPreferences"] is False

        prefs = client.post("/api/preferences/job-search", json={
            "desiredTitles": ["Python Developer"],
            "preferredCountry": "UK",
            "preferredCity": "London",
            "salaryMin": "$80,000",
            "salaryMax": "",
        }, headers=user_headers).get_json()["preferences"]
        assert prefs["desired_locations"] == ["London, UK"]
        assert prefs["desired_countries"] == ["UK"]
        assert prefs["salary_min"] == 80000
        assert prefs["salary_max"] is None

        after = client.get("/api/preferences/job-search", headers=user_headers).get_json()
        assert after["hasPreferences"] is True


class TestAnalyticsRoute:

    def test_counts_applications(self, client, user_headers):
        client.post("/api/applications", json={"job_title": "Dev", "company_name": "Acme"},
                    headers=user_headers)
        data = client.get("/api/analytics?days=7", headers=user_headers).get_json()
        assert data["stats"]["totalApplications"] == 1
        assert data["stats"]["recentApplications"] == 1
        assert len(data["weeklyData"]["data"]) == 7


class TestCVs:

    def test_create_requires_content(self, client, user_headers):
        response = client.post("/api/cvs", json={"title": "Mine"}, headers=user_headers)
        assert response.status_code == 400

    def test_crud(self, client, fake_storage, user_headers, sample_cv):
        created = client.post("/api/cvs", json={"title": " ", "content": sample_cv}, headers=user_headers)
        assert created.status_code == 201
        cv = created.get_json()["cv"]
        assert cv["title"] == "Untitled CV"
        assert cv["template"] == "modern"
        assert fake_storage.activity[-1]["activity_type"] == "cv_created"

        assert client.get("/api/cvs", headers=user_headers).get_json()["total"] == 1
        assert client.get(f"/api/cvs/{cv['id']}", headers=user_headers).status_code == 200
        assert client.get("/api/cvs/999", headers=user_headers).status_code == 404

        updated = client.put(f"/api/cvs/{cv['id']}", json={"title": "Backend CV"}, headers=user_headers)
        assert updated.get_json()["cv"]["title"] == "Backend CV"
        bad = client.put(f"/api/cvs/{cv['id']}", json={"content": "text"}, headers=user_headers)
        assert bad.status_code == 400
        assert client.put("/api/cvs/999", json={"title": "x"}, headers=user_headers).status_code == 404

        assert client.delete(f"/api/cvs/{cv['id']}", headers=user_headers).status_code == 200
        assert client.delete(f"/api/cvs/{cv['id']}", headers=user_headers).status_code == 404

    def test_other_users_cv_is_hidden(self, client, cv_id):
        response = client.get(f"/api/cvs/{cv_id}", headers={"X-User-Id": "user-2"})
        assert response.status_code == 404


class TestCVParse:

    def _upload(self, client, user_headers, data, filename):
        return client.post(
            "/api/cv/parse",
            data={"file": (io.BytesIO(data), filename)},
            headers=user_headers,
            content_type="multipart/form-data",
        )

    def test_no_file(self, client, user_headers):
        response = client.post("/api/cv/parse", headers=user_headers)
        assert response.status_code == 400
        assert response.get_json() == {"error": "No file provided"}

    def test_unsupported_type(self, client, user_headers):
        response = self._upload(client, user_headers, b"plain", "cv.txt")
        assert response.status_code == 400

    def test_corrupt_docx(self, client, user_headers):
        response = self._upload(client, user_headers, b"not a zip", "cv.docx")
        assert response.status_code == 400
        assert response.get_json()["error"].startswith("Could not read DOCX")

    def test_empty_document(self, client, user_headers):
        response = self._upload(client, user_headers, _docx_bytes(), "cv.docx")
        assert response.status_code == 400
        assert "Could not extract text" in response.get_json()["error"]

    def test_parsed_docx(self, client, user_headers, monkeypatch):
        monkeypatch.setattr(cv_ai, "parse_cv", lambda text: {
            "personalInfo": {"firstName": "Ada", "lastName": "Lovelace", "email": "ada@example.com"},
        })
        response = self._upload(client, user_headers, _docx_bytes("Ada Lovelace", "ada@example.com"), "cv.docx")
        assert response.status_code == 200
        data = response.get_json()
        assert data["data"]["personalInfo"]["firstName"] == "Ada"
        assert data["startStep"] == 2
        assert data["isComplete"] is False
        assert "Ada Lovelace" in data["rawText"]

    def test_ai_failure_is_502(self, client, user_headers, monkeypatch):
        def boom(text):
            raise llm.AIError("GOOGLE_AI_API_KEY is not set")

        monkeypatch.setattr(cv_ai, "parse_cv", boom)
        response = self._upload(client, user_headers, _docx_bytes("Ada"), "cv.docx")
        assert response.status_code == 502


class TestCVAnalysis:

    def test_save_analysis(self, client, user_headers, cv_id):
        assert client.post("/api/cv/save-analysis", json={"cvId": cv_id},
                           headers=user_headers).status_code == 400
        missing = client.post("/api/cv/save-analysis", json={
            "cvId": 999, "atsScore": 80, "analysis": {"overallScore": 80},
        }, headers=user_headers)
        assert missing.status_code == 404
        saved = client.post("/api/cv/save-analysis", json={
            "cvId": cv_id, "atsScore": 80, "analysis": {"overallScore": 80},
        }, headers=user_headers).get_json()
        assert saved["cv"]["ats_score"] == 80

    def test_ats_is_public(self, client, sample_cv):
        data = client.post("/api/cv/ats", json={"cvData": sample_cv}).get_json()
        assert "overallScore" in data["analysis"]
        assert data["report"]["summary"]["grade"] in {"A", "B", "C", "D", "F"}
        assert "comparison" not in data

    def test_ats_with_job_description(self, client, sample_cv):
        data = client.post("/api/cv/ats", json={
            "cvData": sample_cv, "jobDescription": "Python and Kubernetes engineer",
        }).get_json()
        assert "kubernetes" in data["comparison"]["technicalMatch"]["missing"]

    def test_ats_requires_cv(self, client):
        response = client.post("/api/cv/ats", json={"cvData": "text"})
        assert response.status_code == 400


class TestCVAssistant:

    def test_health(self, client):
        data = client.get("/api/cv/ai").get_json()
        assert data["status"] == "ok"
        assert "cover-letter" in data["actions"]

    def test_actions_need_user(self, client):
        assert client.post("/api/cv/ai", json={"action": "summary"}).status_code == 401

    def test_invalid_action(self, client, user_headers):
        response = client.post("/api/cv/ai", json={"action": "poem"}, headers=user_headers)
        assert response.status_code == 400
        assert response.get_json()["error"].startswith("Invalid action. Valid actions: summary")

    @pytest.mark.parametrize("action", ["extract-keywords", "tailor", "cover-letter"])
    def test_required_inputs(self, client, user_headers, action):
        response = client.post("/api/cv/ai", json={"action": action}, headers=user_headers)
        assert response.status_code == 400

    def test_summary(self, client, user_headers, monkeypatch):
        monkeypatch.setattr(llm, "call_openrouter", lambda *a, **k: " Seasoned engineer. ")
        response = client.post("/api/cv/ai", json={"action": "summary", "jobTitle": "Engineer"},
                               headers=user_headers)
        assert response.get_json() == {"content": "Seasoned engineer."}

    def test_cover_letter(self, client, user_headers, cover_letters):
        response = client.post("/api/cv/ai", json={
            "action": "cover-letter", "jobData": JOB_DATA, "tone": "enthusiastic",
        }, headers=user_headers)
        assert response.get_json() == {"coverLetter": "Dear Acme,", "summary": "Good fit"}
        assert cover_letters[0]["tone"] == "enthusiastic"

    def test_provider_failure_is_502(self, client, user_headers, monkeypatch):
        def boom(*args, **kwargs):
            raise llm.AIError("OPENROUTER_API_KEY is not set")

        monkeypatch.setattr(llm, "call_openrouter", boom)
        response = client.post("/api/cv/ai", json={"action": "improve", "content": "x"},
                               headers=user_headers)
        assert response.status_code == 502
        assert response.get_json() == {"error": "OPENROUTER_API_KEY is not set"}
