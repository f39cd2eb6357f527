"""
AI-assisted CV writing on top of llm.call_openrouter / llm.call_gemini.

Transport failures (llm.AIError) propagate to the caller.  When the model
answers but the reply cannot be parsed, the structured helpers return a
neutral default instead, logged at WARNING.
"""

from __future__ import annotations

import json as _json
import logging
from typing import Dict, List, Optional

import llm
import prompts as _prompts

logger = logging.getLogger(__name__)

ACTIONS = ["summary", "improve", "bullets", "ats-analyze", "extract-keywords", "tailor", "cover-letter"]

DEFAULT_ATS_ANALYSIS = {
    "score": 70,
    "breakdown": {"keywords": 65, "format": 80, "content": 70, "skills": 65},
    "missingKeywords": [],
    "suggestions": ["Add more quantifiable achievements", "Include industry-specific keywords"],
    "strengths": ["Clear structure", "Good experience section"],
    "improvements": ["Enhance professional summary", "Add more technical skills"],
}

DEFAULT_KEYWORDS = {
    "technicalSkills": [],
    "softSkills": [],
    "tools": [],
    "certifications": [],
    "experienceKeywords": [],
    "industryTerms": [],
    "actionVerbs": [],
}

DEFAULT_TAILORING = {
    "matchScore": 65,
    "summaryRevision": "",
    "skillsToHighlight": [],
    "skillsToAdd": [],
    "experienceEnhancements": [],
    "keywordsToAdd": [],
    "overallFeedback": "Unable to analyze. Please try again.",
}


def _join(values, default: str) -> str:
    return ", ".join(str(v) for v in values) if values else default


def generate_professional_summary(
    job_title: str = "",
    years_experience=None,
    skills: Optional[List[str]] = None,
    industry: str = "",
    target_role: str = "",
) -> str:
    prompt = _prompts.SUMMARY_USER_TEMPLATE.format(
        job_title=job_title or "Professional",
        years=years_experience or "Several",
        skills=_join(skills, "Various professional skills"),
        industry=industry or "Technology",
        target_role=target_role or job_title or "Similar position",
    )
    return llm.call_openrouter(prompt, _prompts.SUMMARY_SYSTEM_PROMPT, purpose="cv-summary").strip()


def improve_cv_content(
    content: str,
    section: str = "content",
    target_role: str = "",
    keywords: Optional[List[str]] = None,
) -> str:
    parts = [
        f"Improve this {section} section for better ATS compatibility:",
        "",
        "Original content:",
        content or "",
        "",
    ]
    if target_role:
        parts.append(f"Target Role: {target_role}")
    if keywords:
        parts.append(f"Keywords to incorporate naturally: {', '.join(keywords)}")
    parts.append("")
    parts.append(
        "Provide ONLY the improved content, maintaining the same structure but with better wording."
    )
    return llm.call_openrouter(
        "\n".join(parts), _prompts.IMPROVE_SYSTEM_PROMPT, purpose="cv-improve"
    ).strip()


def generate_job_bullet_points(
    job_title: str = "",
    company: str = "",
    responsibilities: str = "",
    achievements: str = "",
    skills: Optional[List[str]] = None,
) -> List[str]:
    """Bullet points as a list; a non-JSON reply is split into its non-empty lines."""
    prompt = _prompts.BULLETS_USER_TEMPLATE.format(
        job_title=job_title,
        company=company,
        responsibilities=responsibilities or "General duties",
        achievements=achievements or "Various accomplishments",
        skills=_join(skills, "Various skills"),
    )
    reply = llm.call_openrouter(prompt, _prompts.BULLETS_SYSTEM_PROMPT, purpose="cv-bullets")
    try:
        return [str(b) for b in llm.extract_json_array(reply)]
    except ValueError:
        return [line for line in reply.split("\n") if line.strip()]


def _cv_outline(cv: dict) -> str:
    cv = cv or {}
    personal = cv.get("personalInfo") or {}
    skills = cv.get("skills") or {}
    if not isinstance(skills, dict):
        skills = {"technical": skills}
    experience = ", ".join(
        f"{e.get('title')} at {e.get('company')}" for e in cv.get("experience") or []
    )
    education = ", ".join(
        f"{e.get('degree')} from {e.get('school')}" for e in cv.get("education") or []
    )
    return (
        f"Personal Info: {personal.get('firstName', '')} {personal.get('lastName', '')}\n"
        f"Summary: {cv.get('summary') or 'Not provided'}\n"
        f"Experience: {experience or 'None'}\n"
        f"Education: {education or 'None'}\n"
        f"Technical Skills: {_join(skills.get('technical'), 'None')}\n"
        f"Soft Skills: {_join(skills.get('soft'), 'None')}\n"
    )


def analyze_ats_compatibility(cv: dict, job_description: Optional[str] = None) -> Dict:
    prompt = f"Analyze this CV for ATS compatibility:\n\n{_cv_outline(cv)}\n"
    if job_description:
        prompt += f"\nTarget Job Description:\n{job_description}\n"
    prompt += (
        "\nProvide your analysis as a valid JSON object. "
        "Be specific and actionable in your suggestions."
    )
    reply = llm.call_openrouter(prompt, _prompts.ATS_SYSTEM_PROMPT, purpose="ats-analyze")
    try:
        return llm.extract_json(reply)
    except ValueError:
        logger.warning("ATS analysis reply was not JSON – using default analysis")
        return dict(DEFAULT_ATS_ANALYSIS)


def extract_job_keywords_ai(job_description: str) -> Dict:
    prompt = (
        f"Extract ATS-relevant keywords from this job description:\n\n{job_description}\n\n"
        "Return ONLY a valid JSON object with categorized keywords."
    )
    reply = llm.call_openrouter(prompt, _prompts.KEYWORDS_SYSTEM_PROMPT, purpose="extract-keywords")
    try:
        return llm.extract_json(reply)
    except ValueError:
        logger.warning("Keyword extraction reply was not JSON – returning empty categories")
        return {k: [] for k in DEFAULT_KEYWORDS}


def tailor_cv_to_job(cv: dict, job_description: str) -> Dict:
    prompt = (
        "Tailor this CV for the job posting:\n\n"
        f"CV Data:\n{_json.dumps(cv, indent=2)}\n\n"
        f"Job Description:\n{job_description}\n\n"
        "Provide specific, actionable tailoring suggestions as a JSON object."
    )
    reply = llm.call_openrouter(prompt, _prompts.TAILOR_SYSTEM_PROMPT, purpose="cv-tailor")
    try:
        return llm.extract_json(reply)
    except ValueError:
        logger.warning("Tailoring reply was not JSON – using default suggestions")
        return dict(DEFAULT_TAILORING)


def generate_cover_letter(
    cv: dict,
    job: dict,
    tone: str = "professional",
    length: str = "medium",
) -> Dict[str, str]:
    """
    {"coverLetter", "summary"} for a CV and a job in API shape.
    A reply that is not JSON is used verbatim as the letter.
    """
    system = _prompts.COVER_LETTER_SYSTEM_PROMPT.format(
        tone=tone or "professional",
        length_hint=_prompts.COVER_LETTER_LENGTHS.get(length, _prompts.COVER_LETTER_LENGTHS["medium"]),
    )
    description = (job.get("description") or "")[:3000]
    prompt = (
        f"CANDIDATE CV:\n{_cv_outline(cv)}\n"
        f"JOB:\nTitle: {job.get('title', '')}\n"
        f"Company: {job.get('company', '')}\n"
        f"Location: {job.get('location', '')}\n"
        f"Skills: {_join(job.get('skills') or job.get('tags'), 'Not listed')}\n\n"
        f"Description:\n{description}\n"
    )
    reply = llm.call_openrouter(prompt, system, purpose="cover-letter")
    try:
        data = llm.extract_json(reply)
        letter = str(data.get("coverLetter") or "").strip()
        summary = str(data.get("summary") or "").strip()
    except ValueError:
        letter, summary = reply.strip(), ""
    if not letter:
        raise llm.AIError("Empty cover letter from AI provider")
    if not summary:
        summary = f"Applied to {job.get('title', 'the role')} at {job.get('company', 'the company')}"
    return {"coverLetter": letter, "summary": summary}


def parse_cv(text: str) -> Dict:
    """Structured CV JSON from raw CV text via Gemini. Raises AIError on any failure."""
    reply = llm.call_gemini(_prompts.CV_PARSE_PROMPT.format(cv_text=text), purpose="cv-parse")
    try:
        return llm.extract_json(reply)
    except ValueError as exc:
        raise llm.AIError(f"Could not parse CV data from AI response: {exc}") from exc
