"""
MySQL-backed storage for CVs, cached jobs, applications and user data.

• Uses a connection pool for thread-safe access.
• Every query is scoped by user_id; rows owned by other users are invisible.
• INSERT IGNORE / ON DUPLICATE KEY UPDATE provide dedup and upserts.
• Graceful error handling when the database is unavailable.
"""

from __future__ import annotations

import datetime
import decimal
import json
import logging
from typing import List, Optional

import mysql.connector
from mysql.connector import pooling

import config
from .models import Job
from .normalizer import format_salary, generate_tags

logger = logging.getLogger(__name__)


# ── Custom exception ──────────────────────────────────────────

class DatabaseUnavailable(Exception):
    """Raised when the MySQL database cannot be reached."""
    pass


# ── Connection pool (thread-safe) ─────────────────────────────

_pool: Optional[pooling.MySQLConnectionPool] = None


def _get_pool() -> pooling.MySQLConnectionPool:
    """Lazy-init a connection pool."""
    global _pool
    if _pool is None:
        try:
            _pool = pooling.MySQLConnectionPool(
                pool_name="careerforge",
                pool_size=config.DB_POOL_SIZE,
                host=config.DB_HOST,
                port=config.DB_PORT,
                user=config.DB_USER,
                password=config.DB_PASSWORD,
                database=config.DB_NAME,
                charset="utf8mb4",
                collation="utf8mb4_unicode_ci",
                autocommit=True,
            )
        except mysql.connector.Error as exc:
            raise DatabaseUnavailable(str(exc)) from exc
    return _pool


def _get_conn():
    try:
        return _get_pool().get_connection()
    except mysql.connector.Error as exc:
        raise DatabaseUnavailable(str(exc)) from exc


def check_db_connection() -> tuple[bool, str]:
    """
    Test whether the database is reachable.
    Returns (ok, error_message).
    """
    try:
        conn = _get_conn()
        conn.close()
        return True, ""
    except DatabaseUnavailable as exc:
        return False, str(exc)
    except Exception as exc:
        return False, str(exc)


# Columns stored as JSON text; decoded on the way out.
_JSON_COLUMNS = {
    "content", "ats_analysis", "requirements", "benefits", "skills", "tags",
    "raw_data", "job_data", "matched_skills", "missing_skills", "recommendations",
    "secondary_action", "metadata", "desired_titles", "desired_locations",
    "desired_countries", "job_types", "experience_levels", "excluded_companies",
    "filters",
}

# TINYINT(1) flags returned as real booleans.
_BOOL_COLUMNS = {
    "is_primary", "featured", "auto_applied", "unread", "auto_apply_enabled",
    "generate_cover_letters", "notify_new_matches", "notify_application_updates",
    "notify_profile_views", "notify_weekly_summary", "profile_visible",
    "show_salary", "allow_data_collection",
}

# PATCH-able application fields.
APPLICATION_UPDATE_FIELDS = (
    "status", "notes", "cover_letter", "ai_summary", "interview_date",
    "interview_type", "interview_notes", "offer_details", "rejection_reason", "cv_id",
)

_CV_UPDATE_FIELDS = ("title", "template", "content", "is_primary")

_PREFERENCE_FIELDS = (
    "auto_apply_enabled", "min_match_score", "daily_limit", "generate_cover_letters",
    "default_resume_id", "cover_letter_tone", "cover_letter_length",
    "notify_new_matches", "notify_application_updates", "notify_profile_views",
    "notify_weekly_summary", "profile_visible", "show_salary",
    "allow_data_collection", "theme",
)

_JOB_PREFERENCE_FIELDS = (
    "desired_titles", "desired_locations", "desired_countries", "salary_min",
    "salary_max", "salary_currency", "job_types", "experience_levels", "skills",
    "excluded_companies",
)


def _dumps(value) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str)


class CareerStorage:
    """Read / write every per-user table plus the shared job caches."""

    # ══════════════════════════════════════════════════════════════
    #  CVS
    # ══════════════════════════════════════════════════════════════

    def create_cv(
        self,
        user_id: str,
        title: str,
        content: dict,
        template: str = "modern",
        is_primary: bool = False,
    ) -> int:
        """Insert a CV. Making it primary demotes the user's other CVs. Returns the id."""
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            if is_primary:
                cursor.execute(
                    "UPDATE cvs SET is_primary = 0 WHERE user_id = %s", (user_id,)
                )
            cursor.execute(
                "INSERT INTO cvs (user_id, title, template, content, is_primary) "
                "VALUES (%s, %s, %s, %s, %s)",
                (user_id, title, template, _dumps(content), bool(is_primary)),
            )
            cv_id = cursor.lastrowid
            cursor.close()
            return cv_id
        finally:
            conn.close()

    def get_cv(self, user_id: str, cv_id) -> Optional[dict]:
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(
                "SELECT * FROM cvs WHERE id = %s AND user_id = %s", (cv_id, user_id)
            )
            row = cursor.fetchone()
            cursor.close()
            return self._normalize_row(row) if row else None
        finally:
            conn.close()

    def list_cvs(self, user_id: str) -> list[dict]:
        """All CVs of a user, primary first, then newest first."""
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(
                "SELECT * FROM cvs WHERE user_id = %s "
                "ORDER BY is_primary DESC, updated_at DESC",
                (user_id,),
            )
            rows = cursor.fetchall()
            cursor.close()
            return self._normalize_rows(rows)
        finally:
            conn.close()

    def count_cvs(self, user_id: str) -> int:
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM cvs WHERE user_id = %s", (user_id,))
            result = cursor.fetchone()
            cursor.close()
            return result[0] if result else 0
        finally:
            conn.close()

    def update_cv(self, user_id: str, cv_id, fields: dict) -> bool:
        """Update title/template/content/is_primary. Returns True if the CV exists."""
        updates = {k: fields[k] for k in _CV_UPDATE_FIELDS if k in fields}
        if not updates:
            return self.get_cv(user_id, cv_id) is not None
        if "content" in updates:
            updates["content"] = _dumps(updates["content"])
        if "is_primary" in updates:
            updates["is_primary"] = bool(updates["is_primary"])

        assignments = ", ".join(f"`{k}` = %s" for k in updates)
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            if updates.get("is_primary"):
                cursor.execute(
                    "UPDATE cvs SET is_primary = 0 WHERE user_id = %s AND id <> %s",
                    (user_id, cv_id),
                )
            cursor.execute(
                f"UPDATE cvs SET {assignments} WHERE id = %s AND user_id = %s",
                (*updates.values(), cv_id, user_id),
            )
            cursor.execute(
                "SELECT 1 FROM cvs WHERE id = %s AND user_id = %s", (cv_id, user_id)
            )
            found = cursor.fetchone() is not None
            cursor.close()
            return found
        finally:
            conn.close()

    def delete_cv(self, user_id: str, cv_id) -> bool:
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM cvs WHERE id = %s AND user_id = %s", (cv_id, user_id)
            )
            removed = cursor.rowcount > 0
            cursor.close()
            return removed
        finally:
            conn.close()

    def get_primary_or_latest_cv(self, user_id: str) -> Optional[dict]:
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(
                "SELECT * FROM cvs WHERE user_id = %s "
                "ORDER BY is_primary DESC, created_at DESC LIMIT 1",
                (user_id,),
            )
            row = cursor.fetchone()
            cursor.close()
            return self._normalize_row(row) if row else None
        finally:
            conn.close()

    def resolve_cv(self, user_id: str, preferred_id=None) -> Optional[dict]:
        """The preferred CV when it exists, otherwise the primary, otherwise the newest."""
        if preferred_id:
            cv = self.get_cv(user_id, preferred_id)
            if cv:
                return cv
        return self.get_primary_or_latest_cv(user_id)

    def update_cv_ats(self, user_id: str, cv_id, score: int, analysis: dict) -> Optional[dict]:
        """Store an ATS result on a CV. Returns the updated CV, or None if not found."""
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE cvs SET ats_score = %s, ats_analysis = %s "
                "WHERE id = %s AND user_id = %s",
                (score, _dumps(analysis), cv_id, user_id),
            )
            cursor.close()
        finally:
            conn.close()
        return self.get_cv(user_id, cv_id)

    # ══════════════════════════════════════════════════════════════
    #  JOBS CACHE
    # ══════════════════════════════════════════════════════════════

    def upsert_cached_jobs(self, jobs: List[Job]) -> int:
        """
        Insert or refresh normalized jobs. The unique key on
        (external_id, source) turns repeats into updates.
        Returns the number of jobs written.
        """
        if not jobs:
            return 0

        sql = """
            INSERT INTO jobs_cache
                (external_id, source, title, company, company_logo, location,
                 location_type, country, city, salary_min, salary_max,
                 salary_currency, job_type, experience_level, description,
                 requirements, benefits, skills, tags, apply_url, posted_at,
                 expires_at, featured, raw_data)
            VALUES
                (%s, %s, %s, %s, %s, %s,
                 %s, %s, %s, %s, %s,
                 %s, %s, %s, %s,
                 %s, %s, %s, %s, %s, %s,
                 %s, %s, %s)
            ON DUPLICATE KEY UPDATE
                title = VALUES(title), company = VALUES(company),
                company_logo = VALUES(company_logo), location = VALUES(location),
                location_type = VALUES(location_type), country = VALUES(country),
                city = VALUES(city), salary_min = VALUES(salary_min),
                salary_max = VALUES(salary_max), salary_currency = VALUES(salary_currency),
                job_type = VALUES(job_type), experience_level = VALUES(experience_level),
                description = VALUES(description), requirements = VALUES(requirements),
                benefits = VALUES(benefits), skills = VALUES(skills), tags = VALUES(tags),
                apply_url = VALUES(apply_url), posted_at = VALUES(posted_at),
                expires_at = VALUES(expires_at), featured = VALUES(featured),
                raw_data = VALUES(raw_data)
        """

        rows = []
        for j in jobs:
            rows.append((
                j.external_id,
                j.source,
                j.title[:500],
                j.company[:255],
                j.company_logo,
                j.location,
                j.location_type,
                j.country,
                j.city,
                j.salary_min,
                j.salary_max,
                j.salary_currency,
                j.job_type,
                j.experience_level,
                j.description,
                _dumps(j.requirements),
                _dumps(j.benefits),
                _dumps(j.skills),
                _dumps(j.tags),
                j.apply_url,
                j.posted_at,
                j.expires_at,
                j.featured,
                _dumps(j.raw),
            ))

        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.executemany(sql, rows)
            cursor.close()
            return len(rows)
        finally:
            conn.close()

    def _cached_job_row(self, source: str, external_id: str) -> Optional[dict]:
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(
                "SELECT * FROM jobs_cache WHERE source = %s AND external_id = %s",
                (source, external_id),
            )
            row = cursor.fetchone()
            cursor.close()
            return self._normalize_row(row) if row else None
        finally:
            conn.close()

    def get_cached_job(self, source: str, external_id: str) -> Optional[Job]:
        """A cached job as a Job, with the display salary and tags rebuilt."""
        row = self._cached_job_row(source, external_id)
        if row is None:
            return None
        return self._job_from_row(row)

    def get_cached_job_pk(self, source: str, external_id: str) -> Optional[int]:
        """Primary key of a cached job (what saved_jobs references)."""
        row = self._cached_job_row(source, external_id)
        return row["id"] if row else None

    def clear_jobs_cache(self) -> int:
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM jobs_cache")
            removed = cursor.rowcount
            cursor.close()
            return removed
        finally:
            conn.close()

    # ══════════════════════════════════════════════════════════════
    #  SEARCH CACHE
    # ══════════════════════════════════════════════════════════════

    def get_search_cache(self, cache_key: str) -> Optional[dict]:
        """Returns {"results": <decoded>, "expired": bool} or None when absent."""
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(
                "SELECT results, expires_at < NOW() AS expired "
                "FROM job_search_cache WHERE cache_key = %s",
                (cache_key,),
            )
            row = cursor.fetchone()
            cursor.close()
        finally:
            conn.close()
        if row is None:
            return None
        return {"results": json.loads(row["results"]), "expired": bool(row["expired"])}

    def set_search_cache(self, cache_key: str, results: dict, ttl_seconds: int) -> None:
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO job_search_cache (cache_key, results, expires_at)
                VALUES (%s, %s, NOW() + INTERVAL %s SECOND)
                ON DUPLICATE KEY UPDATE
                    results = VALUES(results),
                    expires_at = VALUES(expires_at),
                    created_at = NOW()
                """,
                (cache_key, _dumps(results), int(ttl_seconds)),
            )
            cursor.close()
        finally:
            conn.close()

    def delete_search_cache(self, cache_key: str) -> bool:
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM job_search_cache WHERE cache_key = %s", (cache_key,)
            )
            removed = cursor.rowcount > 0
            cursor.close()
            return removed
        finally:
            conn.close()

    def clear_search_cache(self, expired_only: bool = False) -> int:
        sql = "DELETE FROM job_search_cache"
        if expired_only:
            sql += " WHERE expires_at < NOW()"
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(sql)
            removed = cursor.rowcount
            cursor.close()
            return removed
        finally:
            conn.close()

    # ══════════════════════════════════════════════════════════════
    #  SAVED JOBS
    # ══════════════════════════════════════════════════════════════

    def add_saved_job(self, user_id: str, cached_job_pk: int, notes: str = "") -> Optional[dict]:
        """Bookmark a cached job. Returns the new row, or None if it was already saved."""
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(
                "INSERT IGNORE INTO saved_jobs (user_id, job_id, notes) VALUES (%s, %s, %s)",
                (user_id, cached_job_pk, notes),
            )
            if cursor.rowcount == 0:
                cursor.close()
                return None
            cursor.execute(
                "SELECT * FROM saved_jobs WHERE id = %s", (cursor.lastrowid,)
            )
            row = cursor.fetchone()
            cursor.close()
            return self._normalize_row(row)
        finally:
            conn.close()

    def remove_saved_job(
        self,
        user_id: str,
        saved_id: Optional[int] = None,
        cached_job_pk: Optional[int] = None,
    ) -> bool:
        """Remove a bookmark by its own id or by the cached job it points at."""
        if saved_id is not None:
            where, value = "id = %s", saved_id
        elif cached_job_pk is not None:
            where, value = "job_id = %s", cached_job_pk
        else:
            return False
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                f"DELETE FROM saved_jobs WHERE user_id = %s AND {where}",
                (user_id, value),
            )
            removed = cursor.rowcount > 0
            cursor.close()
            return removed
        finally:
            conn.close()

    def list_saved_jobs(self, user_id: str) -> list[dict]:
        """Saved jobs joined with their cached listing, newest bookmark first."""
        sql = """
            SELECT s.id AS saved_id, s.notes AS saved_notes, s.created_at AS saved_at,
                   j.*
            FROM saved_jobs s
            JOIN jobs_cache j ON j.id = s.job_id
            WHERE s.user_id = %s
            ORDER BY s.created_at DESC
        """
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(sql, (user_id,))
            rows = cursor.fetchall()
            cursor.close()
        finally:
            conn.close()

        result = []
        for row in self._normalize_rows(rows):
            item = {
                "savedId": row["saved_id"],
                "savedAt": row["saved_at"],
                "notes": row["saved_notes"] or "",
            }
            item.update(self._job_from_row(row).to_dict())
            result.append(item)
        return result

    def is_saved(self, user_id: str, cached_job_pk: int) -> bool:
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT 1 FROM saved_jobs WHERE user_id = %s AND job_id = %s",
                (user_id, cached_job_pk),
            )
            result = cursor.fetchone()
            cursor.close()
            return result is not None
        finally:
            conn.close()

    # ══════════════════════════════════════════════════════════════
    #  APPLICATIONS
    # ══════════════════════════════════════════════════════════════

    def create_application(self, user_id: str, data: dict) -> dict:
        """
        Insert an application. `data` uses column names; unknown keys are ignored.
        Returns the stored row.
        """
        columns = [
            "job_id", "external_job_id", "job_title", "company_name", "location",
            "salary", "job_url", "source", "status", "notes", "cover_letter",
            "ai_summary", "cv_id", "match_score", "auto_applied", "job_data",
            "applied_at",
        ]
        values = []
        for col in columns:
            value = data.get(col)
            if col == "job_data":
                value = _dumps(value)
            elif col == "auto_applied":
                value = bool(value)
            elif col == "status":
                value = value or "applied"
            values.append(value)

        placeholders = ", ".join(["%s"] * len(columns))
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(
                f"INSERT INTO applications (user_id, {', '.join(columns)}) "
                f"VALUES (%s, {placeholders})",
                (user_id, *values),
            )
            cursor.execute(
                "SELECT * FROM applications WHERE id = %s", (cursor.lastrowid,)
            )
            row = cursor.fetchone()
            cursor.close()
            return self._normalize_row(row)
        finally:
            conn.close()

    def list_applications(
        self,
        user_id: str,
        status: str = "",
        origin: str = "",
        limit: Optional[int] = None,
        order_by: str = "created_at",
    ) -> list[dict]:
        """
        Applications of a user, newest first.
        origin: "auto" / "manual" filters on auto_applied; anything else keeps all.
        """
        conditions = ["user_id = %s"]
        params: list = [user_id]
        if status and status != "all":
            conditions.append("status = %s")
            params.append(status)
        if origin == "auto":
            conditions.append("auto_applied = 1")
        elif origin == "manual":
            conditions.append("auto_applied = 0")

        allowed_sort = {"created_at", "applied_at", "updated_at"}
        if order_by not in allowed_sort:
            order_by = "created_at"

        sql = f"SELECT * FROM applications WHERE {' AND '.join(conditions)} ORDER BY `{order_by}` DESC"
        if limit:
            sql += " LIMIT %s"
            params.append(int(limit))

        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(sql, params)
            rows = cursor.fetchall()
            cursor.close()
            return self._normalize_rows(rows)
        finally:
            conn.close()

    def get_application(self, user_id: str, application_id) -> Optional[dict]:
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(
                "SELECT * FROM applications WHERE id = %s AND user_id = %s",
                (application_id, user_id),
            )
            row = cursor.fetchone()
            cursor.close()
            return self._normalize_row(row) if row else None
        finally:
            conn.close()

    def update_application(self, user_id: str, application_id, fields: dict) -> Optional[dict]:
        """
        Apply the allowed fields; moving to "applied" stamps applied_at.
        Returns the updated row, or None if the application does not exist.
        """
        updates = {k: fields[k] for k in APPLICATION_UPDATE_FIELDS if k in fields}
        if updates.get("status") == "applied":
            updates["applied_at"] = datetime.datetime.now()
        if updates:
            assignments = ", ".join(f"`{k}` = %s" for k in updates)
            conn = _get_conn()
            try:
                cursor = conn.cursor()
                cursor.execute(
                    f"UPDATE applications SET {assignments} WHERE id = %s AND user_id = %s",
                    (*updates.values(), application_id, user_id),
                )
                cursor.close()
            finally:
                conn.close()
        return self.get_application(user_id, application_id)

    def delete_application(self, user_id: str, application_id) -> bool:
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM applications WHERE id = %s AND user_id = %s",
                (application_id, user_id),
            )
            removed = cursor.rowcount > 0
            cursor.close()
            return removed
        finally:
            conn.close()

    def delete_applications_by_external_id(self, user_id: str, external_job_id: str) -> int:
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM applications WHERE user_id = %s AND external_job_id = %s",
                (user_id, external_job_id),
            )
            removed = cursor.rowcount
            cursor.close()
            return removed
        finally:
            conn.close()

    def find_application_by_url(self, user_id: str, job_url: str) -> Optional[dict]:
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(
                "SELECT * FROM applications WHERE user_id = %s AND job_url = %s LIMIT 1",
                (user_id, job_url),
            )
            row = cursor.fetchone()
            cursor.close()
            return self._normalize_row(row) if row else None
        finally:
            conn.close()

    def find_application_by_external_id(
        self,
        user_id: str,
        external_job_id: str = "",
        job_title: str = "",
        company_name: str = "",
    ) -> Optional[dict]:
        """Look up by external job id, or by the (title, company) pair when no id is given."""
        if external_job_id:
            where, params = "external_job_id = %s", (external_job_id,)
        elif job_title and company_name:
            where, params = "job_title = %s AND company_name = %s", (job_title, company_name)
        else:
            return None
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(
                f"SELECT id, status, external_job_id FROM applications "
                f"WHERE user_id = %s AND {where} LIMIT 1",
                (user_id, *params),
            )
            row = cursor.fetchone()
            cursor.close()
            return self._normalize_row(row) if row else None
        finally:
            conn.close()

    def get_applied_urls(self, user_id: str) -> set[str]:
        """Every job_url the user has an application for (for bulk dedup)."""
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT job_url FROM applications WHERE user_id = %s AND job_url IS NOT NULL",
                (user_id,),
            )
            urls = {r[0] for r in cursor.fetchall()}
            cursor.close()
            return urls
        finally:
            conn.close()

    def count_auto_applications(
        self, user_id: str, since: Optional[datetime.datetime] = None
    ) -> int:
        """Auto-applied applications, optionally only those applied at or after `since`."""
        sql = "SELECT COUNT(*) FROM applications WHERE user_id = %s AND auto_applied = 1"
        params: list = [user_id]
        if since is not None:
            sql += " AND applied_at >= %s"
            params.append(since)
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            result = cursor.fetchone()
            cursor.close()
            return result[0] if result else 0
        finally:
            conn.close()

    @staticmethod
    def application_stats(applications: list[dict]) -> dict:
        return {
            "total": len(applications),
            "autoApplied": sum(1 for a in applications if a.get("auto_applied")),
            "manual": sum(1 for a in applications if not a.get("auto_applied")),
            "interviews": sum(
                1 for a in applications if a.get("status") in ("interview", "interviewing")
            ),
            "offers": sum(1 for a in applications if a.get("status") == "offer"),
            "rejected": sum(1 for a in applications if a.get("status") == "rejected"),
        }

    # ══════════════════════════════════════════════════════════════
    #  JOB MATCHES
    # ══════════════════════════════════════════════════════════════

    def get_job_match(self, user_id: str, job_id: str) -> Optional[dict]:
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(
                "SELECT * FROM job_matches WHERE user_id = %s AND job_id = %s",
                (user_id, job_id),
            )
            row = cursor.fetchone()
            cursor.close()
            return self._normalize_row(row) if row else None
        finally:
            conn.close()

    def upsert_job_match(
        self, user_id: str, job_id: str, cv_id, result: dict, job_data: dict
    ) -> None:
        """Store (or replace) the match result for a (user, job) pair."""
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO job_matches
                    (user_id, job_id, cv_id, match_score, analysis,
                     matched_skills, missing_skills, recommendations, job_data)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON DUPLICATE KEY UPDATE
                    cv_id = VALUES(cv_id),
                    match_score = VALUES(match_score),
                    analysis = VALUES(analysis),
                    matched_skills = VALUES(matched_skills),
                    missing_skills = VALUES(missing_skills),
                    recommendations = VALUES(recommendations),
                    job_data = VALUES(job_data),
                    created_at = NOW()
                """,
                (
                    user_id,
                    job_id,
                    cv_id,
                    result.get("matchScore"),
                    result.get("analysis"),
                    _dumps(result.get("matchedSkills") or []),
                    _dumps(result.get("missingSkills") or []),
                    _dumps(result.get("recommendations") or []),
                    _dumps(job_data),
                ),
            )
            cursor.close()
        finally:
            conn.close()

    def recent_job_matches(self, user_id: str, limit: int = 50) -> list[dict]:
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(
                "SELECT matched_skills, missing_skills, match_score, created_at "
                "FROM job_matches WHERE user_id = %s ORDER BY created_at DESC LIMIT %s",
                (user_id, int(limit)),
            )
            rows = cursor.fetchall()
            cursor.close()
            return self._normalize_rows(rows)
        finally:
            conn.close()

    # ══════════════════════════════════════════════════════════════
    #  NOTIFICATIONS
    # ══════════════════════════════════════════════════════════════

    def create_notification(
        self,
        user_id: str,
        type: str,
        title: str,
        description: str = "",
        action_url: Optional[str] = None,
        action_text: Optional[str] = None,
        secondary_action: Optional[dict] = None,
        metadata: Optional[dict] = None,
    ) -> dict:
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(
                "INSERT INTO notifications "
                "(user_id, type, title, description, action_url, action_text, "
                " secondary_action, metadata, unread) "
                "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, 1)",
                (
                    user_id, type, title, description, action_url, action_text,
                    _dumps(secondary_action), _dumps(metadata),
                ),
            )
            cursor.execute(
                "SELECT * FROM notifications WHERE id = %s", (cursor.lastrowid,)
            )
            row = cursor.fetchone()
            cursor.close()
            return self._normalize_row(row)
        finally:
            conn.close()

    def list_notifications(
        self,
        user_id: str,
        type: str = "",
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict]:
        conditions = ["user_id = %s"]
        params: list = [user_id]
        if type and type != "all":
            conditions.append("type = %s")
            params.append(type)
        if unread_only:
            conditions.append("unread = 1")
        params.extend([int(limit), int(offset)])

        sql = (
            f"SELECT * FROM notifications WHERE {' AND '.join(conditions)} "
            "ORDER BY created_at DESC LIMIT %s OFFSET %s"
        )
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(sql, params)
            rows = cursor.fetchall()
            cursor.close()
            return self._normalize_rows(rows)
        finally:
            conn.close()

    def unread_notification_count(self, user_id: str) -> int:
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT COUNT(*) FROM notifications WHERE user_id = %s AND unread = 1",
                (user_id,),
            )
            result = cursor.fetchone()
            cursor.close()
            return result[0] if result else 0
        finally:
            conn.close()

    def mark_notifications_read(self, user_id: str, notification_ids: list) -> int:
        if not notification_ids:
            return 0
        placeholders = ", ".join(["%s"] * len(notification_ids))
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                f"UPDATE notifications SET unread = 0 "
                f"WHERE user_id = %s AND id IN ({placeholders})",
                (user_id, *notification_ids),
            )
            updated = cursor.rowcount
            cursor.close()
            return updated
        finally:
            conn.close()

    def mark_all_notifications_read(self, user_id: str) -> int:
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE notifications SET unread = 0 WHERE user_id = %s AND unread = 1",
                (user_id,),
            )
            updated = cursor.rowcount
            cursor.close()
            return updated
        finally:
            conn.close()

    def delete_notification(self, user_id: str, notification_id) -> bool:
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM notifications WHERE id = %s AND user_id = %s",
                (notification_id, user_id),
            )
            removed = cursor.rowcount > 0
            cursor.close()
            return removed
        finally:
            conn.close()

    # ══════════════════════════════════════════════════════════════
    #  ACTIVITY LOG
    # ══════════════════════════════════════════════════════════════

    def add_activity(
        self,
        user_id: str,
        activity_type: str,
        title: str,
        description: str = "",
        metadata: Optional[dict] = None,
    ) -> None:
        """Append to the activity feed. Failures are logged, never raised."""
        try:
            conn = _get_conn()
        except DatabaseUnavailable as exc:
            logger.warning("Activity '%s' not logged: %s", activity_type, exc)
            return
        try:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO activity_log (user_id, activity_type, title, description, metadata) "
                "VALUES (%s, %s, %s, %s, %s)",
                (user_id, activity_type, title, description, _dumps(metadata)),
            )
            cursor.close()
        except mysql.connector.Error as exc:
            logger.warning("Activity '%s' not logged: %s", activity_type, exc)
        finally:
            conn.close()

    # ══════════════════════════════════════════════════════════════
    #  PREFERENCES
    # ══════════════════════════════════════════════════════════════

    def get_preferences(self, user_id: str) -> Optional[dict]:
        return self._get_by_user("preferences", user_id)

    def upsert_preferences(self, user_id: str, prefs: dict) -> dict:
        return self._upsert_by_user("preferences", user_id, prefs, _PREFERENCE_FIELDS)

    def get_job_preferences(self, user_id: str) -> Optional[dict]:
        return self._get_by_user("user_job_preferences", user_id)

    def upsert_job_preferences(self, user_id: str, prefs: dict) -> dict:
        return self._upsert_by_user(
            "user_job_preferences", user_id, prefs, _JOB_PREFERENCE_FIELDS
        )

    def _get_by_user(self, table: str, user_id: str) -> Optional[dict]:
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(f"SELECT * FROM {table} WHERE user_id = %s", (user_id,))
            row = cursor.fetchone()
            cursor.close()
            return self._normalize_row(row) if row else None
        finally:
            conn.close()

    def _upsert_by_user(self, table: str, user_id: str, data: dict, fields) -> dict:
        values = {}
        for k in fields:
            if k not in data:
                continue
            v = data[k]
            values[k] = _dumps(v) if k in _JSON_COLUMNS else v
        if values:
            columns = ", ".join(f"`{k}`" for k in values)
            placeholders = ", ".join(["%s"] * len(values))
            updates = ", ".join(f"`{k}` = VALUES(`{k}`)" for k in values)
            sql = (
                f"INSERT INTO {table} (user_id, {columns}) VALUES (%s, {placeholders}) "
                f"ON DUPLICATE KEY UPDATE {updates}"
            )
        else:
            sql = f"INSERT IGNORE INTO {table} (user_id) VALUES (%s)"
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(sql, (user_id, *values.values()))
            cursor.close()
        finally:
            conn.close()
        return self._get_by_user(table, user_id)

    # ══════════════════════════════════════════════════════════════
    #  SEARCH HISTORY
    # ══════════════════════════════════════════════════════════════

    def log_search(
        self, user_id: str, query: str, location: str, filters: dict, results_count: int
    ) -> None:
        conn = _get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO job_searches (user_id, query, location, filters, results_count) "
                "VALUES (%s, %s, %s, %s, %s)",
                (user_id, query, location, _dumps(filters), results_count),
            )
            cursor.close()
        finally:
            conn.close()

    def recent_searches(
        self, user_id: str, since: Optional[datetime.datetime] = None, limit: int = 10
    ) -> list[dict]:
        sql = "SELECT query, location, results_count, created_at FROM job_searches WHERE user_id = %s"
        params: list = [user_id]
        if since is not None:
            sql += " AND created_at >= %s"
            params.append(since)
        sql += " ORDER BY created_at DESC LIMIT %s"
        params.append(int(limit))
        conn = _get_conn()
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(sql, params)
            rows = cursor.fetchall()
            cursor.close()
            return self._normalize_rows(rows)
        finally:
            conn.close()

    # ══════════════════════════════════════════════════════════════
    #  INTERNAL HELPERS
    # ══════════════════════════════════════════════════════════════

    @staticmethod
    def _job_from_row(row: dict) -> Job:
        salary_min = row.get("salary_min")
        salary_max = row.get("salary_max")
        currency = row.get("salary_currency") or "USD"
        job_type = row.get("job_type") or "full-time"
        return Job(
            source=row["source"],
            external_id=row["external_id"],
            title=row.get("title") or "Unknown Position",
            company=row.get("company") or "Unknown Company",
            location=row.get("location") or "Remote",
            location_type=row.get("location_type") or "onsite",
            country=row.get("country") or "",
            city=row.get("city") or "",
            salary=format_salary(salary_min, salary_max, currency),
            salary_min=salary_min,
            salary_max=salary_max,
            salary_currency=currency,
            job_type=job_type,
            experience_level=row.get("experience_level") or "mid",
            description=row.get("description") or "",
            requirements=row.get("requirements") or [],
            benefits=row.get("benefits") or [],
            skills=row.get("skills") or [],
            apply_url=row.get("apply_url") or "#",
            posted_at=row.get("posted_at") or "",
            expires_at=row.get("expires_at"),
            tags=row.get("tags") or generate_tags(
                job_type, row.get("location_type") == "remote", salary_min
            ),
            featured=bool(row.get("featured")),
            company_logo=row.get("company_logo"),
        )

    @staticmethod
    def _normalize_row(row: dict) -> dict:
        """Convert MySQL row types to JSON-safe values."""
        out = {}
        for k, v in row.items():
            if v is None:
                out[k] = None
            elif k in _JSON_COLUMNS and isinstance(v, (str, bytes, bytearray)):
                try:
                    out[k] = json.loads(v)
                except (json.JSONDecodeError, TypeError):
                    out[k] = None
            elif k in _BOOL_COLUMNS:
                out[k] = bool(v)
            elif hasattr(v, "isoformat"):
                out[k] = v.strftime("%Y-%m-%d %H:%M:%S")
            elif isinstance(v, decimal.Decimal):
                out[k] = float(v)
            else:
                out[k] = v
        return out

    @staticmethod
    def _normalize_rows(rows: list[dict]) -> list[dict]:
        return [CareerStorage._normalize_row(r) for r in rows]
