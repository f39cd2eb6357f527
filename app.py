"""
CareerForge – Flask JSON API.

Requests identify their user with the X-User-Id header.  Routes marked (public)
work without it; every other route answers 401 when it is missing.

Routes:
  /api/health                   GET  – database status + enabled providers (public)
  /api/jobs/search              GET  – aggregated job search (public)
  /api/jobs/providers           GET  – enabled job providers (public)
  /api/jobs/<id>                GET  – enriched job detail (public)
  /api/jobs/cache               GET/DELETE – cache info / clear all|search|jobs|expired (public)
  /api/jobs/morocco/scrape      GET/POST – scrape the Moroccan boards / one board (public)
  /api/jobs/morocco/scrape/status GET – scraper availability + boards (public)
  /api/jobs/save                GET/POST/DELETE – bookmarked jobs
  /api/jobs/track               GET/POST/DELETE – quick apply / save tracking
  /api/jobs/match               GET/POST – cached / fresh CV ↔ job match
  /api/jobs/apply               GET/POST – application history / apply with cover letter
  /api/jobs/auto-apply          GET/POST – auto-apply status / run
  /api/applications             GET/POST/PATCH/DELETE – application tracker
  /api/notifications            GET/POST/PATCH/DELETE – notifications
  /api/notifications/unread-count GET – unread badge
  /api/preferences/general      GET/POST – auto-apply, notification and privacy settings
  /api/preferences/job-search   GET/POST – desired titles, locations, salary
  /api/analytics                GET  – dashboard analytics (?days=30)
  /api/cvs                      GET/POST – list / create CVs
  /api/cvs/<id>                 GET/PUT/DELETE – read / update / delete a CV
  /api/cv/parse                 POST – upload PDF/DOCX → structured CV
  /api/cv/save-analysis         POST – store an ATS result on a CV
  /api/cv/ats                   POST – local ATS analysis (public)
  /api/cv/ai                    GET/POST – AI assistant health (public) / actions
"""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime, timedelta
from typing import Optional

from flask import Flask, request, jsonify, g
from werkzeug.exceptions import RequestEntityTooLarge

import config
from cv_tools import ai as cv_ai
from cv_tools.ats import calculate_ats_score, compare_to_job, generate_ats_report
from cv_tools.parser import UnsupportedFileType, analyze_missing_fields, extract_text
from job_board.analytics import application_view, build_analytics
from job_board.auto_apply import AutoApplyError, AutoApplyService
from job_board.cache import CACHE_KINDS, SearchCache
from job_board.enrich import enrich_job_details
from job_board.matching import calculate_match, quick_match_score
from job_board.models import SearchParams, split_job_id
from job_board.search import JobSearchService
from job_board.sources.morocco import MoroccoScraper, UnknownSite
from job_board.storage import CareerStorage, DatabaseUnavailable, check_db_connection
from llm import AIError

# ── Logging ────────────────────────────────────────────────────
LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(message)s"
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

# Silence werkzeug's per-request lines; _after_request logs instead
logging.getLogger("werkzeug").setLevel(logging.WARNING)

# Also write WARNING and ERROR to error_log file
try:
    file_handler = logging.FileHandler(config.ERROR_LOG_FILE, encoding="utf-8")
    file_handler.setLevel(logging.WARNING)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(file_handler)
except OSError as e:
    logger.warning("Could not create error log file %s: %s", config.ERROR_LOG_FILE, e)

# ── App setup ──────────────────────────────────────────────────
app = Flask(__name__)
app.secret_key = config.SECRET_KEY
app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_MB * 1024 * 1024

storage = CareerStorage()
search_cache = SearchCache(storage)
searcher = JobSearchService(search_cache)
auto_apply = AutoApplyService(storage, searcher)
morocco = MoroccoScraper()


# ── Request logging (replaces werkzeug spam) ───────────────────

# Endpoints to never log (polled by the UI)
_SILENT_PREFIXES = ("/api/notifications/unread-count", "/api/health")

@app.before_request
def _before_request():
    g.req_start = time.time()

@app.after_request
def _after_request(response):
    path = request.path
    if any(path.startswith(p) for p in _SILENT_PREFIXES) and request.method == "GET":
        return response
    elapsed = round((time.time() - getattr(g, "req_start", time.time())) * 1000)
    status = response.status_code
    method = request.method
    if status >= 400:
        logger.warning("%s %s → %d (%dms)", method, path, status, elapsed)
    else:
        logger.info("%s %s → %d (%dms)", method, path, status, elapsed)
    return response


# ── Identity ───────────────────────────────────────────────────

class MissingUser(Exception):
    """The request carried no X-User-Id header."""


def _current_user() -> Optional[str]:
    user_id = (request.headers.get("X-User-Id") or "").strip()
    return user_id or None


def _require_user() -> str:
    user_id = _current_user()
    if not user_id:
        raise MissingUser()
    return user_id


# ── Error handlers ─────────────────────────────────────────────

@app.errorhandler(MissingUser)
def handle_missing_user(exc):
    return jsonify({"error": "Unauthorized"}), 401


@app.errorhandler(DatabaseUnavailable)
def handle_db_error(exc):
    logger.error("Database unavailable: %s", exc)
    return jsonify({"error": "Database unavailable", "detail": str(exc)}), 503


@app.errorhandler(AIError)
def handle_ai_error(exc):
    logger.warning("AI provider failed: %s", exc)
    return jsonify({"error": str(exc)}), 502


@app.errorhandler(AutoApplyError)
def handle_auto_apply_error(exc):
    return jsonify({"error": exc.message, **exc.flags}), exc.status


@app.errorhandler(RequestEntityTooLarge)
def handle_too_large(exc):
    return jsonify({"error": f"File too large (max {config.MAX_UPLOAD_MB} MB)"}), 413


# ── helpers ────────────────────────────────────────────────────

def _int_or(value, default):
    """int(value), or `default` when the value is empty or not a number."""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _salary_digits(value) -> Optional[int]:
    """'$80,000' → 80000; empty or zero → None."""
    if not value:
        return None
    digits = re.sub(r"[^0-9]", "", str(value))
    return int(digits) if digits and int(digits) else None


def _cv_skills(content: Optional[dict]) -> list:
    skills = (content or {}).get("skills") or {}
    if not isinstance(skills, dict):
        return list(skills)
    return list(skills.get("technical") or []) + list(skills.get("soft") or [])


def _match_payload(row: dict) -> dict:
    return {
        "matchScore": row.get("match_score"),
        "analysis": row.get("analysis"),
        "experienceAnalysis": (row.get("job_data") or {}).get("experienceAnalysis"),
        "matchedSkills": row.get("matched_skills") or [],
        "missingSkills": row.get("missing_skills") or [],
        "recommendations": row.get("recommendations") or [],
        "cached": True,
        "calculatedAt": row.get("created_at"),
    }


# ╭──────────────────────────────────────────────────────────────╮
# │  Health & job search                                         │
# ╰──────────────────────────────────────────────────────────────╯

@app.route("/api/health")
def api_health():
    db_ok, db_msg = check_db_connection()
    return jsonify({
        "status": "ok" if db_ok else "degraded",
        "database": {"connected": db_ok, "detail": db_msg},
        "providers": searcher.available_providers(),
    })


@app.route("/api/jobs/search")
def api_jobs_search():
    """Aggregate one page of jobs across the enabled providers."""
    args = request.args
    limit = min(args.get("limit", config.SEARCH_DEFAULT_LIMIT, type=int), config.SEARCH_MAX_LIMIT)
    params = SearchParams(
        query=args.get("q") or args.get("query", ""),
        location=args.get("location", ""),
        country=args.get("country", ""),
        job_type=args.get("jobType") or args.get("job_type", ""),
        experience_level=args.get("experienceLevel") or args.get("experience", ""),
        salary_min=args.get("salaryMin", type=float),
        salary_max=args.get("salaryMax", type=float),
        remote=args.get("remote") == "true",
        date_posted=args.get("datePosted", ""),
        page=args.get("page", 1, type=int),
        limit=limit,
        sources=[s.strip() for s in args.get("sources", "").split(",") if s.strip()] or None,
        use_cache=args.get("cache") != "false",
    )

    results = searcher.search(params)
    jobs = results["jobs"]
    if jobs and not results["cached"]:
        search_cache.cache_jobs(jobs)

    user_id = _current_user()
    if user_id:
        try:
            storage.log_search(
                user_id,
                params.query,
                params.location,
                {
                    "country": params.country,
                    "jobType": params.job_type,
                    "experienceLevel": params.experience_level,
                    "salaryMin": params.salary_min,
                    "salaryMax": params.salary_max,
                    "remote": params.remote,
                    "sources": results["sources"],
                },
                results["total"],
            )
        except Exception as exc:
            logger.warning("Search not logged for %s: %s", user_id, exc)

    return jsonify({
        "jobs": [j.to_dict() for j in jobs],
        "pagination": {
            "page": results["page"],
            "limit": results["limit"],
            "total": results["total"],
            "totalPages": results["totalPages"],
        },
        "sources": results["sources"],
        "cached": results["cached"],
    })


@app.route("/api/jobs/providers")
def api_jobs_providers():
    return jsonify({"providers": searcher.available_providers()})


@app.route("/api/jobs/cache", methods=["GET", "DELETE"])
def api_jobs_cache():
    if request.method == "GET":
        return jsonify({
            "message": "Use DELETE method to clear cache",
            "options": {
                "DELETE /api/jobs/cache": "Clear all cache",
                "DELETE /api/jobs/cache?type=search": "Clear search results cache only",
                "DELETE /api/jobs/cache?type=jobs": "Clear individual jobs cache only",
                "DELETE /api/jobs/cache?type=expired": "Remove expired search results only",
            },
            "tip": "Add ?cache=false to any search request to bypass cache",
        })

    kind = request.args.get("type", "all")
    if kind == "expired":
        removed = search_cache.clear_expired()
        return jsonify({"message": "Expired cache entries removed", "details": {"search": removed}})
    if kind not in CACHE_KINDS:
        return jsonify({"error": f"Invalid cache type '{kind}'. Use all, search, jobs or expired"}), 400
    details = search_cache.clear(kind)
    return jsonify({"message": f"Cache cleared successfully ({kind})", "details": details})


@app.route("/api/jobs/morocco/scrape", methods=["GET", "POST"])
def api_jobs_morocco_scrape():
    """Moroccan boards, scraped on demand; results land in jobs_cache like search results."""
    if not morocco.is_available():
        return jsonify({
            "error": "Morocco scraper not available",
            "message": "Scraping is disabled on this server",
            "fallback": True,
        }), 503

    if request.method == "POST":
        data = request.get_json(silent=True) or {}
        site_id = (data.get("siteId") or "").strip()
        if not site_id:
            return jsonify({"error": "Missing siteId parameter"}), 400
        limit = min(max(_int_or(data.get("limit"), config.MOROCCO_SCRAPE_DEFAULT_LIMIT), 1),
                    config.MOROCCO_SCRAPE_MAX_LIMIT)
        try:
            result = morocco.scrape_site(site_id, data.get("query") or "", data.get("city") or "", limit)
        except UnknownSite as exc:
            return jsonify({"error": str(exc)}), 400
        except Exception as exc:
            logger.error("Morocco scrape of %s failed: %s", site_id, exc)
            return jsonify({"error": "Scraping failed", "message": str(exc)}), 502
        search_cache.cache_jobs(result["jobs"])
        return jsonify({
            "jobs": [morocco.job_payload(j) for j in result["jobs"]],
            "total": result["total"],
            "source": result["source"],
        })

    args = request.args
    limit = min(max(args.get("limit", config.MOROCCO_SCRAPE_DEFAULT_LIMIT, type=int), 1),
                config.MOROCCO_SCRAPE_MAX_LIMIT)
    result = morocco.scrape(
        query=args.get("q") or args.get("query", ""),
        city=args.get("city") or args.get("location", ""),
        sources=[s.strip() for s in args.get("sources", "").split(",") if s.strip()] or None,
        limit=limit,
    )
    search_cache.cache_jobs(result["jobs"])
    return jsonify({
        "jobs": [morocco.job_payload(j) for j in result["jobs"]],
        "total": result["total"],
        "sources": result["sources"],
        "errors": result["errors"],
    })


@app.route("/api/jobs/morocco/scrape/status")
def api_jobs_morocco_status():
    return jsonify(morocco.status())


@app.route("/api/jobs/<job_id>")
def api_job_detail(job_id):
    """Single job: jobs_cache first, then the provider itself."""
    job = search_cache.get_cached_job_by_id(job_id)
    if job is None:
        job = searcher.get_job_by_id(job_id)
        if job is not None:
            search_cache.cache_jobs([job])
    if job is None:
        return jsonify({"error": "Job not found"}), 404

    job_dict = job.to_dict()
    user_skills, score, saved = None, None, False
    user_id = _current_user()
    if user_id:
        try:
            cv = storage.get_primary_or_latest_cv(user_id)
            job_prefs = storage.get_job_preferences(user_id)
            cached_pk = storage.get_cached_job_pk(job.source, job.external_id)
            saved = cached_pk is not None and storage.is_saved(user_id, cached_pk)
        except DatabaseUnavailable as exc:
            logger.warning("Job %s shown without user data: %s", job_id, exc)
            cv = None
        if cv:
            content = cv.get("content") or {}
            user_skills = _cv_skills(content)
            score = quick_match_score(content, job_dict, job_prefs)

    details = enrich_job_details(job_dict, user_skills, score)
    details["isSaved"] = saved
    return jsonify(details)


# ╭──────────────────────────────────────────────────────────────╮
# │  Saved & tracked jobs                                        │
# ╰──────────────────────────────────────────────────────────────╯

@app.route("/api/jobs/save", methods=["GET", "POST", "DELETE"])
def api_jobs_save():
    user_id = _require_user()

    if request.method == "GET":
        jobs = storage.list_saved_jobs(user_id)
        return jsonify({"jobs": jobs, "total": len(jobs)})

    if request.method == "POST":
        data = request.get_json(silent=True) or {}
        job_id = (data.get("jobId") or "").strip()
        if not job_id:
            return jsonify({"error": "Job ID is required"}), 400
        source, external_id = split_job_id(job_id)
        if not source:
            return jsonify({"error": "Invalid job ID format"}), 400

        cached_pk = storage.get_cached_job_pk(source, external_id)
        if cached_pk is None:
            return jsonify({
                "error": "Job not found in cache. Please search for the job again.",
            }), 404

        saved = storage.add_saved_job(user_id, cached_pk, data.get("notes") or "")
        if saved is None:
            return jsonify({"error": "Job already saved"}), 409

        storage.add_activity(user_id, "job_saved", "Saved a job", metadata={"job_id": job_id})
        return jsonify({"id": saved["id"], "jobId": job_id, "savedAt": saved.get("created_at")})

    # DELETE
    saved_id = request.args.get("savedId", type=int)
    job_id = request.args.get("jobId", "")
    if saved_id is None and not job_id:
        return jsonify({"error": "Job ID or saved ID is required"}), 400

    if saved_id is not None:
        removed = storage.remove_saved_job(user_id, saved_id=saved_id)
    else:
        source, external_id = split_job_id(job_id)
        cached_pk = storage.get_cached_job_pk(source, external_id) if source else None
        if cached_pk is None:
            return jsonify({"error": "Job not found"}), 404
        removed = storage.remove_saved_job(user_id, cached_job_pk=cached_pk)

    if not removed:
        return jsonify({"error": "Saved job not found"}), 404
    return jsonify({"message": "Job unsaved successfully"})


@app.route("/api/jobs/track", methods=["GET", "POST", "DELETE"])
def api_jobs_track():
    """Quick "I applied" / "save for later" from a search result."""
    user_id = _require_user()

    if request.method == "GET":
        job_id = request.args.get("jobId", "")
        title = request.args.get("title", "")
        company = request.args.get("company", "")
        if not job_id and not (title and company):
            return jsonify({"error": "jobId OR (title and company) are required"}), 400
        existing = storage.find_application_by_external_id(
            user_id, external_job_id=job_id, job_title=title, company_name=company
        )
        return jsonify({"tracked": existing is not None, "application": existing})

    if request.method == "DELETE":
        job_id = request.args.get("jobId", "")
        if not job_id:
            return jsonify({"error": "Job ID is required"}), 400
        removed = storage.delete_applications_by_external_id(user_id, job_id)
        return jsonify({"message": "Job removed from applications", "removed": removed})

    # POST
    data = request.get_json(silent=True) or {}
    job_id = data.get("jobId")
    action = data.get("action")
    job_data = data.get("jobData") or {}
    if not job_id or not action:
        return jsonify({"error": "jobId and action are required"}), 400
    if action not in ("apply", "save"):
        return jsonify({"error": 'action must be "apply" or "save"'}), 400

    existing = storage.find_application_by_external_id(user_id, external_job_id=job_id)
    if existing:
        return jsonify({"message": "Job already tracked", "application": existing})

    company = job_data.get("company") or "Unknown Company"
    source = job_data.get("source") or "Job Search"
    notes = f"Found via {job_data.get('source') or 'job search'}"
    if job_data.get("postedAt"):
        notes += f" on {str(job_data['postedAt'])[:10]}"

    application = storage.create_application(user_id, {
        "external_job_id": job_id,
        "job_title": job_data.get("title") or "Unknown Position",
        "company_name": company,
        "location": job_data.get("location"),
        "salary": job_data.get("salary"),
        "job_url": job_data.get("apply_url") or job_data.get("applyUrl"),
        "source": source,
        "status": "applied" if action == "apply" else "saved",
        "applied_at": datetime.now() if action == "apply" else None,
        "notes": notes,
    })

    if action == "apply":
        storage.create_notification(
            user_id,
            "application",
            f"Applied to {job_data.get('company') or 'company'}",
            job_data.get("title") or "New job",
            action_url="/applications",
            action_text="View Applications",
        )

    storage.add_activity(
        user_id,
        "application_sent" if action == "apply" else "job_saved",
        f"Applied to {company}" if action == "apply" else f"Saved job at {company}",
        job_data.get("title") or "New job",
        {"application_id": application.get("id"), "company": company, "source": source},
    )

    logger.info("Tracked %s (%s) for %s", job_id, action, user_id)
    return jsonify({
        "application": application,
        "message": "Application tracked successfully!" if action == "apply" else "Job saved successfully!",
    }), 201


# ╭──────────────────────────────────────────────────────────────╮
# │  Matching & applying                                         │
# ╰──────────────────────────────────────────────────────────────╯

@app.route("/api/jobs/match", methods=["GET", "POST"])
def api_jobs_match():
    """CV ↔ job match; results are cached per (user, job)."""
    user_id = _require_user()
    data = request.get_json(silent=True) or {}
    if request.method == "GET":
        job_id = request.args.get("jobId", "")
    else:
        job_id = data.get("jobId") or ""
    if not job_id:
        return jsonify({"error": "Job ID is required"}), 400

    existing = storage.get_job_match(user_id, job_id)
    if existing:
        return jsonify({"match": _match_payload(existing)})
    if request.method == "GET":
        return jsonify({
            "match": None,
            "message": "No cached match found. Use POST to calculate match.",
        })

    cv = storage.resolve_cv(user_id)
    if not cv:
        return jsonify({
            "error": "No CV found. Please create a CV first to see match percentage.",
            "requiresCV": True,
        }), 400

    cached_job = search_cache.get_cached_job_by_id(job_id)
    job = cached_job.to_dict() if cached_job is not None else data.get("jobData")
    if not job:
        return jsonify({"error": "Job not found. Please provide job data."}), 404

    result = calculate_match(cv.get("content"), job)

    try:
        storage.upsert_job_match(user_id, job_id, cv.get("id"), result, {
            "title": job.get("title"),
            "company": job.get("company"),
            "description": (job.get("description") or "")[:500],
            "experienceAnalysis": result.get("experienceAnalysis"),
        })
    except Exception as exc:
        logger.warning("Could not cache match result for %s: %s", job_id, exc)

    return jsonify({
        "match": {
            **result,
            "cached": False,
            "calculatedAt": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        },
    })


@app.route("/api/jobs/apply", methods=["GET", "POST"])
def api_jobs_apply():
    user_id = _require_user()

    if request.method == "GET":
        applications = storage.list_applications(
            user_id,
            status=request.args.get("status", ""),
            origin=request.args.get("filter", ""),
            order_by="applied_at",
        )
        return jsonify({
            "applications": applications,
            "stats": storage.application_stats(applications),
        })

    data = request.get_json(silent=True) or {}
    job_id = data.get("jobId")
    job_data = data.get("jobData")
    if not job_id or not job_data:
        return jsonify({"error": "Job ID and job data are required"}), 400
    auto_applied = bool(data.get("autoApply", False))

    apply_url = job_data.get("applyUrl") or job_data.get("url")
    job_url = apply_url or f"#job-{job_id}"
    if storage.find_application_by_url(user_id, job_url):
        return jsonify({
            "error": "You have already applied to this job",
            "alreadyApplied": True,
        }), 400

    cv = storage.resolve_cv(user_id, data.get("cvId"))
    if not cv:
        return jsonify({
            "error": "No CV found. Please create a CV first to apply.",
            "requiresCV": True,
        }), 400

    prefs = storage.get_preferences(user_id) or {}
    cover_letter, ai_summary = None, None
    if data.get("generateCover", True):
        try:
            letter = cv_ai.generate_cover_letter(
                cv.get("content"),
                job_data,
                tone=prefs.get("cover_letter_tone") or "professional",
                length=prefs.get("cover_letter_length") or "medium",
            )
            cover_letter, ai_summary = letter["coverLetter"], letter["summary"]
        except AIError as exc:
            logger.warning("Cover letter for %s failed, applying without one: %s", job_id, exc)

    application = storage.create_application(user_id, {
        "external_job_id": job_id,
        "job_title": job_data.get("title") or "Unknown Position",
        "company_name": job_data.get("company") or "Unknown Company",
        "location": job_data.get("location"),
        "salary": job_data.get("salary"),
        "job_url": job_url,
        "source": job_data.get("source"),
        "status": "applied",
        "applied_at": datetime.now(),
        "auto_applied": auto_applied,
        "cover_letter": cover_letter,
        "ai_summary": ai_summary,
        "cv_id": cv.get("id"),
        "job_data": {
            "jobId": job_id,
            "source": job_data.get("source"),
            "location": job_data.get("location"),
            "salary": job_data.get("salary"),
            "skills": job_data.get("skills") or job_data.get("tags") or [],
            "description": (job_data.get("description") or "")[:1000],
        },
    })

    storage.add_activity(
        user_id,
        "auto_application_sent" if auto_applied else "application_sent",
        "AI Auto-Applied" if auto_applied else "Applied to Job",
        f"{'AI automatically applied' if auto_applied else 'Applied'} to "
        f"{job_data.get('title')} at {job_data.get('company')}",
        {
            "job_id": job_id,
            "job_title": job_data.get("title"),
            "company": job_data.get("company"),
            "application_id": application.get("id"),
        },
    )

    return jsonify({
        "applicationId": application.get("id"),
        "coverLetter": cover_letter,
        "aiSummary": ai_summary,
        "applyUrl": apply_url,
        "autoApplied": auto_applied,
        "message": (
            "Application submitted successfully via AI auto-apply" if auto_applied
            else "Application recorded - please complete on company site"
        ),
    })


@app.route("/api/jobs/auto-apply", methods=["GET", "POST"])
def api_jobs_auto_apply():
    user_id = _require_user()
    if request.method == "GET":
        return jsonify(auto_apply.status(user_id))

    data = request.get_json(silent=True) or {}
    results = auto_apply.run(
        user_id,
        max_applications=_int_or(data.get("maxApplications"), 5),
        min_match_score=_int_or(data.get("minMatchScore"), 75),
        dry_run=bool(data.get("dryRun", False)),
    )
    return jsonify(results)


# ╭──────────────────────────────────────────────────────────────╮
# │  Application tracker                                         │
# ╰──────────────────────────────────────────────────────────────╯

@app.route("/api/applications", methods=["GET", "POST", "PATCH", "DELETE"])
def api_applications():
    user_id = _require_user()

    if request.method == "GET":
        rows = storage.list_applications(
            user_id,
            status=request.args.get("status", ""),
            limit=request.args.get("limit", 50, type=int),
        )
        applications = [application_view(r) for r in rows]
        return jsonify({"applications": applications, "total": len(applications)})

    if request.method == "POST":
        data = request.get_json(silent=True) or {}
        job_title = (data.get("job_title") or "").strip()
        company_name = (data.get("company_name") or "").strip()
        if not job_title or not company_name:
            return jsonify({"error": "Job title and company name are required"}), 400
        status = data.get("status") or "applied"
        if status not in config.APPLICATION_STATUSES:
            return jsonify({"error": f"Invalid status '{status}'"}), 400

        application = storage.create_application(user_id, {
            "job_id": data.get("job_id"),
            "job_title": job_title,
            "company_name": company_name,
            "location": data.get("location"),
            "salary": data.get("salary"),
            "job_url": data.get("job_url"),
            "cv_id": data.get("cv_id"),
            "status": status,
            "cover_letter": data.get("cover_letter"),
            "notes": data.get("notes"),
            "source": data.get("source") or "Manual",
            "applied_at": None if status == "saved" else datetime.now(),
        })

        saved = status == "saved"
        storage.add_activity(
            user_id,
            "job_saved" if saved else "application_sent",
            f"Saved job at {company_name}" if saved else f"Applied to {company_name}",
            job_title,
            {"application_id": application.get("id"), "company": company_name},
        )
        storage.create_notification(
            user_id,
            "application",
            "Job Saved" if saved else "Application Submitted",
            f"{job_title} at {company_name}",
            action_url="/applications",
            action_text="View Applications",
        )
        return jsonify({
            "application": application,
            "message": "Application created successfully",
        }), 201

    if request.method == "PATCH":
        data = request.get_json(silent=True) or {}
        application_id = data.pop("id", None)
        if not application_id:
            return jsonify({"error": "Application ID is required"}), 400
        if "status" in data and data["status"] not in config.APPLICATION_STATUSES:
            return jsonify({"error": f"Invalid status '{data['status']}'"}), 400

        application = storage.update_application(user_id, application_id, data)
        if application is None:
            return jsonify({"error": "Application not found"}), 404

        if data.get("status"):
            storage.add_activity(
                user_id,
                "application_status_changed",
                f"Application status updated to {data['status']}",
                application.get("job_title") or "",
                {"application_id": application_id, "new_status": data["status"]},
            )
        return jsonify({
            "application": application,
            "message": "Application updated successfully",
        })

    # DELETE
    application_id = request.args.get("id", type=int)
    if application_id is None:
        return jsonify({"error": "Application ID is required"}), 400
    if not storage.delete_application(user_id, application_id):
        return jsonify({"error": "Application not found"}), 404
    return jsonify({"message": "Application deleted successfully"})


# ╭──────────────────────────────────────────────────────────────╮
# │  Notifications                                               │
# ╰──────────────────────────────────────────────────────────────╯

@app.route("/api/notifications", methods=["GET", "POST", "PATCH", "DELETE"])
def api_notifications():
    user_id = _require_user()

    if request.method == "GET":
        notifications = storage.list_notifications(
            user_id,
            type=request.args.get("type", ""),
            unread_only=request.args.get("unread") == "true",
            limit=request.args.get("limit", 50, type=int),
            offset=request.args.get("offset", 0, type=int),
        )
        return jsonify({
            "notifications": notifications,
            "unreadCount": storage.unread_notification_count(user_id),
        })

    if request.method == "POST":
        data = request.get_json(silent=True) or {}
        if not data.get("type") or not data.get("title"):
            return jsonify({"error": "Type and title are required"}), 400
        notification = storage.create_notification(
            user_id,
            data["type"],
            data["title"],
            data.get("description") or "",
            action_url=data.get("actionUrl"),
            action_text=data.get("actionText"),
            secondary_action=data.get("secondaryAction"),
            metadata=data.get("metadata"),
        )
        return jsonify({"notification": notification}), 201

    if request.method == "PATCH":
        data = request.get_json(silent=True) or {}
        if data.get("markAllRead"):
            updated = storage.mark_all_notifications_read(user_id)
        elif data.get("notificationIds"):
            updated = storage.mark_notifications_read(user_id, list(data["notificationIds"]))
        else:
            return jsonify({"error": "notificationIds or markAllRead is required"}), 400
        return jsonify({"updated": updated, "message": "Notifications marked as read"})

    # DELETE
    notification_id = request.args.get("id", type=int)
    if notification_id is None:
        return jsonify({"error": "Notification ID is required"}), 400
    if not storage.delete_notification(user_id, notification_id):
        return jsonify({"error": "Notification not found"}), 404
    return jsonify({"message": "Notification deleted"})


@app.route("/api/notifications/unread-count")
def api_notifications_unread_count():
    user_id = _require_user()
    return jsonify({"unreadCount": storage.unread_notification_count(user_id)})


# ╭──────────────────────────────────────────────────────────────╮
# │  Preferences                                                 │
# ╰──────────────────────────────────────────────────────────────╯

@app.route("/api/preferences/general", methods=["GET", "POST"])
def api_preferences_general():
    user_id = _require_user()
    if request.method == "GET":
        return jsonify({"preferences": storage.get_preferences(user_id)})

    data = request.get_json(silent=True) or {}

    def flag(key, default):
        value = data.get(key)
        return default if value is None else bool(value)

    prefs = {
        "auto_apply_enabled": flag("autoApplyEnabled", False),
        "min_match_score": _int_or(data.get("minMatchScore"), config.DEFAULT_MIN_MATCH_SCORE),
        "daily_limit": _int_or(data.get("dailyLimit"), config.DEFAULT_DAILY_LIMIT),
        "generate_cover_letters": flag("generateCoverLetters", True),
        "default_resume_id": data.get("defaultResumeId") or None,
        "cover_letter_tone": data.get("coverLetterTone") or "professional",
        "cover_letter_length": data.get("coverLetterLength") or "medium",
        "notify_new_matches": flag("notifyNewMatches", True),
        "notify_application_updates": flag("notifyApplicationUpdates", True),
        "notify_profile_views": flag("notifyProfileViews", False),
        "notify_weekly_summary": flag("notifyWeeklySummary", True),
        "profile_visible": flag("profileVisible", True),
        "show_salary": flag("showSalary", False),
        "allow_data_collection": flag("allowDataCollection", True),
        "theme": data.get("theme") or "purple",
    }
    saved = storage.upsert_preferences(user_id, prefs)
    return jsonify({"preferences": saved, "message": "Preferences saved successfully"})


@app.route("/api/preferences/job-search", methods=["GET", "POST"])
def api_preferences_job_search():
    user_id = _require_user()
    if request.method == "GET":
        prefs = storage.get_job_preferences(user_id)
        return jsonify({"preferences": prefs, "hasPreferences": prefs is not None})

    data = request.get_json(silent=True) or {}
    country = data.get("preferredCountry") or ""
    city = data.get("preferredCity") or ""
    if city:
        locations = [f"{city}, {country}"]
    else:
        locations = [country] if country else []

    prefs = {
        "desired_titles": data.get("desiredTitles") or [],
        "desired_locations": locations,
        "desired_countries": [country] if country else [],
        "salary_min": _salary_digits(data.get("salaryMin")),
        "salary_max": _salary_digits(data.get("salaryMax")),
        "salary_currency": data.get("salaryCurrency") or "USD",
        "job_types": data.get("jobTypes") or [],
        "experience_levels": data.get("experienceLevels") or [],
        "skills": data.get("skills") or [],
        "excluded_companies": data.get("excludedCompanies") or [],
    }
    saved = storage.upsert_job_preferences(user_id, prefs)
    return jsonify({"preferences": saved, "message": "Preferences saved successfully"})


# ╭──────────────────────────────────────────────────────────────╮
# │  Analytics                                                   │
# ╰──────────────────────────────────────────────────────────────╯

@app.route("/api/analytics")
def api_analytics():
    user_id = _require_user()
    days = max(1, request.args.get("days", 30, type=int))
    now = datetime.now()

    applications = storage.list_applications(user_id)
    matches = storage.recent_job_matches(user_id)
    searches = storage.recent_searches(user_id, since=now - timedelta(days=days))
    return jsonify(build_analytics(applications, matches, searches, days=days, now=now))


# ╭──────────────────────────────────────────────────────────────╮
# │  CVs                                                         │
# ╰──────────────────────────────────────────────────────────────╯

@app.route("/api/cvs", methods=["GET", "POST"])
def api_cvs():
    user_id = _require_user()
    if request.method == "GET":
        cvs = storage.list_cvs(user_id)
        return jsonify({"cvs": cvs, "total": len(cvs)})

    data = request.get_json(silent=True) or {}
    content = data.get("content")
    if not isinstance(content, dict):
        return jsonify({"error": "CV content is required"}), 400
    title = (data.get("title") or "").strip() or "Untitled CV"
    cv_id = storage.create_cv(
        user_id,
        title,
        content,
        template=data.get("template") or "modern",
        is_primary=bool(data.get("isPrimary", False)),
    )
    storage.add_activity(user_id, "cv_created", "Created a CV", title, {"cv_id": cv_id})
    logger.info("CV #%s created for %s", cv_id, user_id)
    return jsonify({"cv": storage.get_cv(user_id, cv_id)}), 201


@app.route("/api/cvs/<int:cv_id>", methods=["GET", "PUT", "DELETE"])
def api_cv_detail(cv_id):
    user_id = _require_user()

    if request.method == "GET":
        cv = storage.get_cv(user_id, cv_id)
        if not cv:
            return jsonify({"error": "CV not found"}), 404
        return jsonify({"cv": cv})

    if request.method == "PUT":
        data = request.get_json(silent=True) or {}
        fields = {k: data[k] for k in ("title", "template", "content") if k in data}
        if "isPrimary" in data:
            fields["is_primary"] = bool(data["isPrimary"])
        if "content" in fields and not isinstance(fields["content"], dict):
            return jsonify({"error": "CV content must be an object"}), 400
        if not storage.update_cv(user_id, cv_id, fields):
            return jsonify({"error": "CV not found"}), 404
        return jsonify({"cv": storage.get_cv(user_id, cv_id)})

    if not storage.delete_cv(user_id, cv_id):
        return jsonify({"error": "CV not found"}), 404
    return jsonify({"message": "CV deleted"})


@app.route("/api/cv/parse", methods=["POST"])
def api_cv_parse():
    """Upload an existing CV; returns the parsed data and the builder step to resume at."""
    _require_user()
    upload = request.files.get("file")
    if upload is None:
        return jsonify({"error": "No file provided"}), 400

    try:
        text = extract_text(upload.filename or "", upload.read(), upload.mimetype or "")
    except UnsupportedFileType as exc:
        return jsonify({"error": str(exc)}), 400

    if not text.strip():
        return jsonify({
            "error": "Could not extract text from file. The document may be empty or image-based.",
        }), 400

    parsed = cv_ai.parse_cv(text)
    fields = analyze_missing_fields(parsed)
    return jsonify({
        "data": parsed,
        "missingFields": fields["missingFields"],
        "startStep": fields["startStep"],
        "isComplete": fields["isComplete"],
        "rawText": text[:500],
    })


@app.route("/api/cv/save-analysis", methods=["POST"])
def api_cv_save_analysis():
    user_id = _require_user()
    data = request.get_json(silent=True) or {}
    cv_id = data.get("cvId")
    score = data.get("atsScore")
    analysis = data.get("analysis")
    if not cv_id or score is None or not analysis:
        return jsonify({"error": "Missing required fields"}), 400

    cv = storage.update_cv_ats(user_id, cv_id, _int_or(score, 0), analysis)
    if cv is None:
        return jsonify({"error": "CV not found"}), 404
    return jsonify({"cv": cv})


@app.route("/api/cv/ats", methods=["POST"])
def api_cv_ats():
    """Local ATS score; adds a job comparison when a description is given."""
    data = request.get_json(silent=True) or {}
    cv = data.get("cvData")
    if not isinstance(cv, dict):
        return jsonify({"error": "CV data is required"}), 400
    job_description = (data.get("jobDescription") or "").strip() or None

    analysis = calculate_ats_score(cv, job_description)
    result = {"analysis": analysis, "report": generate_ats_report(analysis)}
    if job_description:
        result["comparison"] = compare_to_job(cv, job_description)
    return jsonify(result)


@app.route("/api/cv/ai", methods=["GET", "POST"])
def api_cv_ai():
    if request.method == "GET":
        return jsonify({"status": "ok", "service": "CV AI Assistant", "actions": cv_ai.ACTIONS})

    _require_user()
    data = request.get_json(silent=True) or {}
    action = data.get("action")

    if action == "summary":
        content = cv_ai.generate_professional_summary(
            job_title=data.get("jobTitle") or "",
            years_experience=data.get("yearsExperience"),
            skills=data.get("skills"),
            industry=data.get("industry") or "",
            target_role=data.get("targetRole") or "",
        )
        return jsonify({"content": content})

    if action == "improve":
        content = cv_ai.improve_cv_content(
            data.get("content") or "",
            section=data.get("section") or "content",
            target_role=data.get("targetRole") or "",
            keywords=data.get("keywords"),
        )
        return jsonify({"content": content})

    if action == "bullets":
        bullets = cv_ai.generate_job_bullet_points(
            job_title=data.get("jobTitle") or "",
            company=data.get("company") or "",
            responsibilities=data.get("responsibilities") or "",
            achievements=data.get("achievements") or "",
            skills=data.get("skills"),
        )
        return jsonify({"bullets": bullets})

    if action == "ats-analyze":
        analysis = cv_ai.analyze_ats_compatibility(data.get("cvData") or {}, data.get("jobDescription"))
        return jsonify({"analysis": analysis})

    if action == "extract-keywords":
        if not data.get("jobDescription"):
            return jsonify({"error": "jobDescription is required"}), 400
        return jsonify({"keywords": cv_ai.extract_job_keywords_ai(data["jobDescription"])})

    if action == "tailor":
        if not data.get("jobDescription"):
            return jsonify({"error": "jobDescription is required"}), 400
        suggestions = cv_ai.tailor_cv_to_job(data.get("cvData") or {}, data["jobDescription"])
        return jsonify({"suggestions": suggestions})

    if action == "cover-letter":
        if not data.get("jobData"):
            return jsonify({"error": "jobData is required"}), 400
        letter = cv_ai.generate_cover_letter(
            data.get("cvData") or {},
            data["jobData"],
            tone=data.get("tone") or "professional",
            length=data.get("length") or "medium",
        )
        return jsonify(letter)

    return jsonify({
        "error": f"Invalid action. Valid actions: {', '.join(cv_ai.ACTIONS)}",
    }), 400


# ── Startup ────────────────────────────────────────────────────

def _print_startup_banner():
    """Log useful info on startup."""
    sources = sorted((cls() for cls in searcher.sources.values()), key=lambda s: s.priority)
    available = [s.id for s in sources if s.is_available()]
    unavailable = [s.id for s in sources if not s.is_available()]

    db_ok, db_err = check_db_connection()

    banner = [
        f"  Database:   {'Connected' if db_ok else 'UNAVAILABLE – ' + db_err}",
        f"  Providers:  {len(available)} available, {len(unavailable)} unavailable",
        f"  Available:  {', '.join(available) if available else '(none)'}",
    ]
    if unavailable:
        banner.append(f"  Skipped:    {', '.join(unavailable)}  (missing API key)")
    banner += [
        f"  OpenRouter: {config.OPENROUTER_MODEL if config.OPENROUTER_API_KEY else 'not configured'}",
        f"  Gemini:     {config.GEMINI_MODEL if config.GOOGLE_AI_API_KEY else 'not configured'}",
        f"  Morocco:    {len(morocco.enabled_sites())} boards, scraper {'enabled' if morocco.is_available() else 'disabled'}",
        "",
        f"  Server:     http://localhost:5000",
        "",
    ]
    for line in banner:
        logger.info(line)


if __name__ == "__main__":
    import os
    # Only print banner in the reloader child process (avoids printing twice)
    if os.environ.get("WERKZEUG_RUN_MAIN") == "true" or not app.debug:
        _print_startup_banner()
    app.run(debug=True, host="0.0.0.0", port=5000)
