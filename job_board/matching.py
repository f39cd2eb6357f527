"""
CV ↔ job matching.

quick_match_score  – cheap deterministic score used in bulk (auto-apply, job detail).
calculate_match    – AI-backed analysis with a local fallback when the model fails.
"""

from __future__ import annotations

import json as _json
import logging
import re
from typing import Dict, List, Optional

import llm
import prompts as _prompts
from .experience import (
    calculate_job_duration,
    calculate_total_experience,
    extract_required_experience,
)

logger = logging.getLogger(__name__)


def _lower_list(values) -> List[str]:
    return [str(v).lower() for v in (values or []) if v]


def quick_match_score(cv_content: Optional[dict], job: dict, preferences: Optional[dict] = None) -> int:
    """
    Title match (+30), skill overlap (×0.5) and an experience bonus (×0.2).
    `job` is in API shape (camelCase); `preferences` carries `desired_titles`.
    """
    cv_content = cv_content or {}
    skills = cv_content.get("skills") or {}
    if not isinstance(skills, dict):
        skills = {"technical": skills}
    cv_skills = _lower_list(skills.get("technical")) + _lower_list(skills.get("soft"))
    job_skills = _lower_list(job.get("skills")) + _lower_list(job.get("tags"))

    desired = _lower_list((preferences or {}).get("desired_titles"))
    job_title = (job.get("title") or "").lower()
    first_word = job_title.split(" ")[0] if job_title else ""
    title_match = any(t in job_title or (first_word and first_word in t) for t in desired)

    matched = [s for s in cv_skills if any(js in s or s in js for js in job_skills)]
    if job_skills:
        skill_score = len(matched) / min(len(job_skills), 5) * 100
    else:
        skill_score = 50

    exp_score = 80 if len(cv_content.get("experience") or []) >= 1 else 60

    final = int((30 if title_match else 0) + skill_score * 0.5 + exp_score * 0.2 + 0.5)
    return min(100, max(0, final))


def matched_skill_names(user_skills: List[str], job_skills: List[str]) -> List[str]:
    """Job skills that appear (as substrings, either direction) in the user's skills."""
    users = _lower_list(user_skills)
    return [js for js in job_skills if any(js.lower() in u or u in js.lower() for u in users)]


# ── AI match ───────────────────────────────────────────────────

def _cv_summary(cv_content, total_years) -> str:
    if isinstance(cv_content, str):
        return cv_content
    cv = cv_content or {}
    info = cv.get("personalInfo") or {}
    skills = cv.get("skills") or {}
    if not isinstance(skills, dict):
        skills = {"technical": skills}

    lines = []
    for exp in cv.get("experience") or []:
        start = re.search(r"\d{4}", exp.get("startDate") or "")
        end = "Present" if exp.get("current") else re.search(r"\d{4}", exp.get("endDate") or "")
        end_text = end if isinstance(end, str) else (end.group(0) if end else "")
        duration = calculate_job_duration(exp.get("startDate"), exp.get("endDate"), exp.get("current"))
        detail = exp.get("description") or ". ".join(exp.get("bullets") or [])
        lines.append(
            f"- {exp.get('title')} at {exp.get('company')} "
            f"({start.group(0) if start else ''}-{end_text}, ~{duration} years): {detail}"
        )
    education = [
        f"{e.get('degree')} in {e.get('field')} from {e.get('school')} ({e.get('year') or e.get('endDate') or ''})"
        for e in cv.get("education") or []
    ]
    certs = skills.get("certifications") or [
        c.get("name") if isinstance(c, dict) else c for c in cv.get("certifications") or []
    ]

    return (
        "=== CANDIDATE PROFILE ===\n"
        f"Name: {info.get('firstName', '')} {info.get('lastName', '')}\n"
        f"Current Title: {info.get('title', '')}\n"
        f"Summary: {cv.get('summary', '')}\n\n"
        f"=== TOTAL EXPERIENCE: {total_years} YEARS ===\n"
        f"{chr(10).join(lines) or 'No experience listed'}\n\n"
        "=== SKILLS ===\n"
        f"Technical: {', '.join(skills.get('technical') or []) or 'Not specified'}\n"
        f"Soft Skills: {', '.join(skills.get('soft') or []) or 'Not specified'}\n"
        f"Languages: {', '.join(skills.get('languages') or [])}\n"
        f"Tools: {', '.join(skills.get('tools') or [])}\n\n"
        "=== EDUCATION ===\n"
        f"{chr(10).join(education) or 'Not specified'}\n\n"
        "=== CERTIFICATIONS ===\n"
        f"{', '.join(str(c) for c in certs if c) or 'None listed'}\n"
    )


def _job_summary(job: dict, required: dict, is_entry: bool) -> str:
    if required["noExperienceRequired"]:
        needed = "NONE (Entry Level)"
    else:
        needed = f"{required['years']} YEARS"
    details = required["details"] or ("No prior experience required" if is_entry else "See description for details")
    skills = job.get("skills") or job.get("tags") or []
    return (
        "=== JOB POSTING ===\n"
        f"Title: {job.get('title') or 'Unknown'}\n"
        f"Company: {job.get('company') or 'Unknown'}\n"
        f"Location: {job.get('location') or 'Not specified'}\n"
        f"Job Type: {job.get('jobType') or job.get('job_type') or 'Full-time'}\n"
        f"{'*** THIS IS AN ENTRY-LEVEL POSITION - NO EXPERIENCE REQUIRED ***' if is_entry else ''}\n\n"
        f"=== EXPERIENCE REQUIRED: {needed} ({required['level'] or 'Not specified'}) ===\n"
        f"{details}\n\n"
        "=== JOB DESCRIPTION ===\n"
        f"{(job.get('description') or '')[:2500]}\n\n"
        "=== REQUIRED SKILLS ===\n"
        f"{', '.join(skills) or 'See description'}\n"
    )


def build_match_prompts(cv_content, job: dict, user_years: float, required: dict) -> tuple[str, str]:
    """Return (system_prompt, user_prompt) for the AI match."""
    is_entry = required["noExperienceRequired"] or required["years"] == 0
    fmt = {"user_years": user_years, "required_years": required["years"]}
    if is_entry:
        weights = (20, 40, 25, 15)
        guidance = _prompts.ENTRY_LEVEL_GUIDANCE.format(**fmt)
        rules = _prompts.ENTRY_LEVEL_EXPERIENCE_RULES
        extras = (
            "   - Academic coursework and self-learning count heavily\n",
            "   - Recent graduates with relevant degrees are strong candidates\n",
            "   - Enthusiasm and willingness to learn are key\n",
        )
        scale = _prompts.ENTRY_LEVEL_SCALE
    else:
        weights = (40, 35, 15, 10)
        guidance = _prompts.EXPERIENCED_GUIDANCE.format(**fmt)
        rules = _prompts.EXPERIENCED_EXPERIENCE_RULES.format(**fmt)
        extras = ("", "", "")
        scale = _prompts.EXPERIENCED_SCALE

    system_prompt = _prompts.MATCH_SYSTEM_TEMPLATE.format(
        guidance=guidance,
        w_exp=weights[0], w_skills=weights[1], w_edu=weights[2], w_soft=weights[3],
        experience_rules=rules,
        skills_extra=extras[0], edu_extra=extras[1], soft_extra=extras[2],
        scale=scale,
        is_entry_json=_json.dumps(is_entry),
        **fmt,
    )

    if is_entry:
        intro = (
            "IMPORTANT: This is an ENTRY-LEVEL position that does NOT require prior work experience.\n"
            "The candidate's lack of experience should NOT count against them. "
            "Focus on skills, education, and potential."
        )
        focus = "focusing on skills and potential rather than experience"
    else:
        intro = (
            "Pay special attention to the experience comparison.\n"
            f"The candidate has {user_years} years of total experience.\n"
            f"The job requires {required['years']} years of experience."
        )
        focus = "considering the experience gap and skill alignment"

    user_prompt = (
        f"Analyze this CV against the job posting.\n{intro}\n\n"
        f"{_cv_summary(cv_content, user_years)}\n\n"
        f"{_job_summary(job, required, is_entry)}\n\n"
        f"Calculate the match score {focus}. Return only JSON."
    )
    return system_prompt, user_prompt


def _clamp_score(value, default: int) -> int:
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return default
    return min(100, max(0, score)) if score else default


def calculate_match(cv_content, job: dict) -> Dict:
    """
    AI match of a CV against a job (API shape or jobs_cache-style dict).
    Never raises for AI trouble: returns a local fallback instead.
    """
    user = calculate_total_experience(cv_content if isinstance(cv_content, dict) else {})
    required = extract_required_experience(job)
    is_entry = required["noExperienceRequired"] or required["years"] == 0
    default_score = 75 if is_entry else 65

    local_experience = {
        "userYears": user["totalYears"],
        "requiredYears": required["years"],
        "meetsRequirement": is_entry or user["totalYears"] >= required["years"],
        "experienceGap": round(user["totalYears"] - required["years"], 1),
        "isEntryLevel": is_entry,
    }

    system_prompt, user_prompt = build_match_prompts(cv_content, job, user["totalYears"], required)
    try:
        raw = llm.call_openrouter(user_prompt, system_prompt, purpose="job-match")
        result = llm.extract_json(raw)
    except (llm.AIError, ValueError) as exc:
        logger.warning("AI match calculation failed, using fallback: %s", exc)
        return {
            "matchScore": default_score,
            "analysis": (
                "This is an entry-level position. Focus on demonstrating your skills and enthusiasm."
                if is_entry else
                "Unable to calculate detailed match. Please ensure your CV is complete."
            ),
            "experienceAnalysis": local_experience,
            "matchedSkills": [],
            "missingSkills": [],
            "recommendations": (
                ["Highlight relevant coursework and projects", "Emphasize your eagerness to learn"]
                if is_entry else
                ["Complete your CV profile for better matching"]
            ),
        }

    return {
        "matchScore": _clamp_score(result.get("matchScore"), default_score),
        "analysis": result.get("analysis") or "Analysis not available",
        "experienceAnalysis": result.get("experienceAnalysis") or local_experience,
        "matchedSkills": result.get("matchedSkills") or [],
        "missingSkills": result.get("missingSkills") or [],
        "recommendations": result.get("recommendations") or [],
    }
