"""
Tests for the auto-apply loop, run against the in-memory storage and searcher.
"""

import pytest

from conftest import FakeSearcher, FakeStorage, make_job
from cv_tools import ai as cv_ai
from job_board.auto_apply import AutoApplyError, AutoApplyService
from llm import AIError

USER = "user-1"


@pytest.fixture
def storage(sample_cv):
    store = FakeStorage()
    store.upsert_job_preferences(USER, {"desired_titles": ["Python Developer"], "job_types": []})
    store.upsert_preferences(USER, {"auto_apply_enabled": True})
    store.create_cv(USER, "Main", sample_cv, is_primary=True)
    return store


@pytest.fixture
def searcher():
    return FakeSearcher([
        make_job("1"),
        make_job("2", title="Data Engineer", company="Globex", skills=["spark"]),
        make_job("3", title="Python Developer", company="Hooli", apply_url="#"),
    ])


@pytest.fixture
def letters(monkeypatch):
    calls = []

    def fake_letter(cv, job, tone="professional", length="medium"):
        calls.append(job["id"])
        return {"coverLetter": f"Dear {job['company']},", "summary": "Strong Python match"}

    monkeypatch.setattr(cv_ai, "generate_cover_letter", fake_letter)
    return calls


class TestGuards:

    def test_requires_job_preferences(self, searcher):
        with pytest.raises(AutoApplyError) as exc:
            AutoApplyService(FakeStorage(), searcher).run(USER)
        assert exc.value.flags == {"requiresPreferences": True}
        assert exc.value.status == 400

    def test_requires_enabled_switch(self, storage, searcher):
        storage.upsert_preferences(USER, {"auto_apply_enabled": False})
        with pytest.raises(AutoApplyError) as exc:
            AutoApplyService(storage, searcher).run(USER)
        assert exc.value.flags == {"autoApplyDisabled": True}

    def test_requires_cv(self, searcher):
        store = FakeStorage()
        store.upsert_job_preferences(USER, {"desired_titles": ["Python Developer"]})
        store.upsert_preferences(USER, {"auto_apply_enabled": True})
        with pytest.raises(AutoApplyError) as exc:
            AutoApplyService(store, searcher).run(USER)
        assert exc.value.flags == {"requiresCV": True}

    def test_daily_limit(self, storage, searcher, letters):
        storage.upsert_preferences(USER, {"daily_limit": 1})
        service = AutoApplyService(storage, searcher)
        service.run(USER)
        with pytest.raises(AutoApplyError) as exc:
            service.run(USER)
        assert exc.value.status == 429
        assert exc.value.flags["dailyLimitReached"] is True
        assert exc.value.flags["stats"] == {"todayCount": 1, "dailyLimit": 1}


class TestRun:

    def test_dry_run_records_nothing(self, storage, searcher, letters):
        storage.upsert_preferences(USER, {"auto_apply_enabled": False})
        result = AutoApplyService(storage, searcher).run(USER, dry_run=True)
        assert result["jobsFound"] == 3
        assert result["jobsAnalyzed"] == 3
        assert result["jobsMatched"] == 1
        assert result["applicationsSubmitted"] == 1
        assert result["applications"][0]["status"] == "would_apply"
        assert result["settings"]["dryRun"] is True
        assert storage.applications == []
        assert letters == []

    def test_dry_run_respects_spent_quota(self, storage, searcher, letters):
        storage.upsert_preferences(USER, {"daily_limit": 1})
        service = AutoApplyService(storage, searcher)
        service.run(USER)
        result = service.run(USER, dry_run=True)
        assert result["applicationsSubmitted"] == 0
        assert result["applications"] == []
        assert result["settings"]["remainingToday"] == 0

    def test_skip_reasons(self, storage, searcher, letters):
        result = AutoApplyService(storage, searcher).run(USER, dry_run=True)
        reasons = {s["job"]["id"]: s["reason"] for s in result["skipped"]}
        assert reasons["remoteok_2"].startswith("Match score too low")
        assert reasons["remoteok_3"] == "No application URL"

    def test_applies_with_cover_letter(self, storage, searcher, letters):
        result = AutoApplyService(storage, searcher).run(USER)
        assert result["applicationsSubmitted"] == 1
        assert result["applications"][0]["coverLetterGenerated"] is True
        assert result["settings"]["remainingToday"] == 9
        row = storage.applications[0]
        assert row["auto_applied"] is True
        assert row["cover_letter"] == "Dear Acme,"
        assert row["ai_summary"] == "Strong Python match"
        assert row["job_url"] == "https://jobs.example.com/1"
        assert storage.activity[0]["activity_type"] == "auto_application_sent"
        assert letters == ["remoteok_1"]

    def test_already_applied_is_skipped(self, storage, searcher, letters):
        service = AutoApplyService(storage, searcher)
        service.run(USER)
        result = service.run(USER)
        assert result["applicationsSubmitted"] == 0
        assert {"job": {"id": "remoteok_1", "title": "Python Developer", "company": "Acme"},
                "reason": "Already applied"} in result["skipped"]

    def test_cover_letter_failure_still_applies(self, storage, searcher, monkeypatch):
        def boom(*args, **kwargs):
            raise AIError("rate limited")

        monkeypatch.setattr(cv_ai, "generate_cover_letter", boom)
        result = AutoApplyService(storage, searcher).run(USER)
        assert result["applicationsSubmitted"] == 1
        assert result["applications"][0]["coverLetterGenerated"] is False
        assert storage.applications[0]["ai_summary"] == "Auto-applied to Python Developer at Acme"

    def test_cover_letters_can_be_disabled(self, storage, searcher, letters):
        storage.upsert_preferences(USER, {"generate_cover_letters": False})
        AutoApplyService(storage, searcher).run(USER)
        assert letters == []
        assert storage.applications[0]["cover_letter"] is None

    def test_respects_max_applications(self, storage, letters):
        searcher = FakeSearcher([make_job("1"), make_job("4", company="Initech")])
        result = AutoApplyService(storage, searcher).run(USER, max_applications=1)
        assert result["applicationsSubmitted"] == 1
        assert len(storage.applications) == 1

    def test_search_failure_is_collected(self, storage, letters):
        class BrokenSearcher(FakeSearcher):
            def search(self, params):
                raise RuntimeError("all providers down")

        result = AutoApplyService(storage, BrokenSearcher()).run(USER)
        assert result["errors"] == [{"query": "Python Developer", "error": "all providers down"}]
        assert result["jobsFound"] == 0


class TestStatus:

    def test_status(self, storage, searcher, letters):
        service = AutoApplyService(storage, searcher)
        service.run(USER)
        status = service.status(USER)
        assert status["enabled"] is True
        assert status["status"]["todayCount"] == 1
        assert status["status"]["hasCV"] is True
        assert status["settings"]["minMatchScore"] == 85
        assert status["canRun"] is True

    def test_status_for_new_user(self, searcher):
        status = AutoApplyService(FakeStorage(), searcher).status(USER)
        assert status["canRun"] is False
        assert status["status"]["hasPreferences"] is False
