"""
On-demand auto-apply: search the user's desired titles, score every hit
against their CV and record an application for the good matches.

Runs sequentially; a failing search or insert is collected in `errors` and
the loop moves on.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

import config
from cv_tools import ai as cv_ai
from llm import AIError
from .matching import quick_match_score
from .models import SearchParams

logger = logging.getLogger(__name__)


class AutoApplyError(Exception):
    """A guard failed before the loop started. `flags` are merged into the error body."""

    def __init__(self, message: str, status: int = 400, **flags) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.flags = flags


def _start_of_today() -> datetime:
    return datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)


def _job_ref(job: dict) -> dict:
    return {"id": job.get("id"), "title": job.get("title"), "company": job.get("company")}


class AutoApplyService:
    def __init__(self, storage, searcher) -> None:
        self.storage = storage
        self.searcher = searcher

    def _daily_limit(self, prefs: Optional[dict]) -> int:
        try:
            return int((prefs or {}).get("daily_limit") or config.DEFAULT_DAILY_LIMIT)
        except (TypeError, ValueError):
            return config.DEFAULT_DAILY_LIMIT

    def run(
        self,
        user_id: str,
        max_applications: int = 5,
        min_match_score: int = 75,
        dry_run: bool = False,
    ) -> dict:
        """
        One auto-apply pass. Raises AutoApplyError when preferences, the
        enabled switch, a CV or the daily quota are missing.
        """
        job_prefs = self.storage.get_job_preferences(user_id)
        if not job_prefs or not job_prefs.get("desired_titles"):
            raise AutoApplyError(
                "Please set up your job preferences first", requiresPreferences=True
            )

        prefs = self.storage.get_preferences(user_id) or {}
        if not prefs.get("auto_apply_enabled") and not dry_run:
            raise AutoApplyError(
                "Auto-apply is disabled in your settings", autoApplyDisabled=True
            )

        cv = self.storage.resolve_cv(user_id, prefs.get("default_resume_id"))
        if not cv:
            raise AutoApplyError(
                "No CV found. Please create a CV first.", requiresCV=True
            )

        daily_limit = self._daily_limit(prefs)
        today_count = self.storage.count_auto_applications(user_id, since=_start_of_today())
        remaining_today = max(0, daily_limit - today_count)
        if remaining_today <= 0 and not dry_run:
            raise AutoApplyError(
                f"Daily auto-apply limit reached ({daily_limit} applications). Try again tomorrow.",
                status=429,
                dailyLimitReached=True,
                stats={"todayCount": today_count, "dailyLimit": daily_limit},
            )

        applied_urls = self.storage.get_applied_urls(user_id)
        titles = job_prefs.get("desired_titles") or ["Software Developer"]
        countries = job_prefs.get("desired_countries") or []
        job_types = job_prefs.get("job_types") or []
        is_remote = "remote" in job_types
        cap = min(max_applications, remaining_today)

        results = {
            "jobsFound": 0,
            "jobsAnalyzed": 0,
            "jobsMatched": 0,
            "applicationsSubmitted": 0,
            "applications": [],
            "skipped": [],
            "errors": [],
        }

        for query in titles[: config.AUTO_APPLY_MAX_QUERIES]:
            params = SearchParams(
                query=query,
                country="" if is_remote else (countries[0] if countries else ""),
                remote=is_remote,
                job_type=job_types[0] if job_types else "",
                limit=config.AUTO_APPLY_SEARCH_LIMIT,
            )
            try:
                found = self.searcher.search(params)
            except Exception as exc:
                logger.warning("Auto-apply search for '%s' failed: %s", query, exc)
                results["errors"].append({"query": query, "error": str(exc)})
                continue

            jobs = [j.to_dict() for j in found.get("jobs", [])]
            results["jobsFound"] += len(jobs)

            for job in jobs:
                if results["applicationsSubmitted"] >= cap:
                    break
                results["jobsAnalyzed"] += 1

                apply_url = job.get("applyUrl")
                job_url = apply_url or f"#job-{job.get('id')}"
                if job_url in applied_urls:
                    results["skipped"].append({"job": _job_ref(job), "reason": "Already applied"})
                    continue
                if not apply_url or apply_url == "#":
                    results["skipped"].append({"job": _job_ref(job), "reason": "No application URL"})
                    continue

                score = quick_match_score(cv.get("content"), job, job_prefs)
                if score < min_match_score:
                    results["skipped"].append({
                        "job": _job_ref(job),
                        "reason": f"Match score too low ({score}%)",
                        "matchScore": score,
                    })
                    continue

                results["jobsMatched"] += 1
                summary_job = {
                    **_job_ref(job),
                    "location": job.get("location"),
                    "applyUrl": apply_url,
                }

                if dry_run:
                    results["applications"].append({
                        "job": summary_job,
                        "matchScore": score,
                        "status": "would_apply",
                    })
                    results["applicationsSubmitted"] += 1
                    continue

                cover_letter = None
                ai_summary = f"Auto-applied to {job.get('title')} at {job.get('company')}"
                if prefs.get("generate_cover_letters") is not False:
                    try:
                        letter = cv_ai.generate_cover_letter(
                            cv.get("content"), job, tone="professional", length="medium"
                        )
                        cover_letter = letter["coverLetter"]
                        ai_summary = letter["summary"]
                    except AIError as exc:
                        logger.warning("Cover letter for %s failed: %s", job.get("id"), exc)

                try:
                    application = self.storage.create_application(user_id, {
                        "job_id": job.get("id"),
                        "external_job_id": job.get("id"),
                        "job_title": job.get("title"),
                        "company_name": job.get("company"),
                        "location": job.get("location"),
                        "salary": job.get("salary"),
                        "job_url": job_url,
                        "source": job.get("source"),
                        "status": "applied",
                        "applied_at": datetime.now(),
                        "auto_applied": True,
                        "cover_letter": cover_letter,
                        "ai_summary": ai_summary,
                        "cv_id": cv.get("id"),
                        "match_score": score,
                        "job_data": {
                            "jobId": job.get("id"),
                            "source": job.get("source"),
                            "location": job.get("location"),
                            "salary": job.get("salary"),
                            "skills": job.get("skills") or job.get("tags") or [],
                        },
                    })
                except Exception as exc:
                    logger.warning("Auto-apply insert for %s failed: %s", job.get("id"), exc)
                    results["errors"].append({"job": _job_ref(job), "error": str(exc)})
                    continue

                applied_urls.add(job_url)
                results["applications"].append({
                    "job": summary_job,
                    "applicationId": application.get("id"),
                    "matchScore": score,
                    "coverLetterGenerated": bool(cover_letter),
                    "status": "applied",
                })
                results["applicationsSubmitted"] += 1

                self.storage.add_activity(
                    user_id,
                    "auto_application_sent",
                    "AI Auto-Applied",
                    f"Automatically applied to {job.get('title')} at {job.get('company')} ({score}% match)",
                    {
                        "job_id": job.get("id"),
                        "job_title": job.get("title"),
                        "company": job.get("company"),
                        "match_score": score,
                        "application_id": application.get("id"),
                    },
                )

        logger.info(
            "Auto-apply for %s: %d found, %d matched, %d submitted%s",
            user_id, results["jobsFound"], results["jobsMatched"],
            results["applicationsSubmitted"], " (dry run)" if dry_run else "",
        )

        results["settings"] = {
            "maxApplications": max_applications,
            "minMatchScore": min_match_score,
            "dailyLimit": daily_limit,
            "remainingToday": remaining_today - results["applicationsSubmitted"],
            "dryRun": dry_run,
        }
        return results

    def status(self, user_id: str) -> dict:
        prefs = self.storage.get_preferences(user_id) or {}
        job_prefs = self.storage.get_job_preferences(user_id) or {}
        daily_limit = self._daily_limit(prefs)
        today_count = self.storage.count_auto_applications(user_id, since=_start_of_today())
        total_auto = self.storage.count_auto_applications(user_id)
        has_cv = self.storage.count_cvs(user_id) > 0
        has_prefs = bool(job_prefs.get("desired_titles"))
        enabled = bool(prefs.get("auto_apply_enabled"))

        try:
            min_score = int(prefs.get("min_match_score") or config.DEFAULT_MIN_MATCH_SCORE)
        except (TypeError, ValueError):
            min_score = config.DEFAULT_MIN_MATCH_SCORE

        return {
            "enabled": enabled,
            "settings": {
                "minMatchScore": min_score,
                "dailyLimit": daily_limit,
                "generateCoverLetters": prefs.get("generate_cover_letters", True) is not False,
                "defaultResumeId": prefs.get("default_resume_id"),
            },
            "status": {
                "todayCount": today_count,
                "remainingToday": max(0, daily_limit - today_count),
                "totalAutoApplied": total_auto,
                "hasCV": has_cv,
                "hasPreferences": has_prefs,
            },
            "canRun": enabled and has_cv and has_prefs and today_count < daily_limit,
        }
