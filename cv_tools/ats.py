"""
Local ATS (Applicant Tracking System) analysis of a structured CV.

Everything here is deterministic keyword / regex work: no AI calls, so the
/api/cv/ats endpoint answers instantly and works without any API key.

calculate_ats_score  – overall score with breakdown, suggestions and strengths
compare_to_job       – CV vs job description skill / education / experience match
generate_ats_report  – condensed report (grade, status, top items)
"""

from __future__ import annotations

import re
from datetime import date
from typing import Dict, List, Optional

ACTION_VERBS = {
    "leadership": ["led", "directed", "managed", "supervised", "coordinated",
                   "headed", "oversaw", "spearheaded", "orchestrated", "mentored"],
    "achievement": ["achieved", "accomplished", "delivered", "exceeded", "outperformed",
                    "surpassed", "attained", "earned", "won", "secured"],
    "creation": ["created", "designed", "developed", "built", "established",
                 "founded", "initiated", "launched", "pioneered", "introduced"],
    "improvement": ["improved", "enhanced", "optimized", "streamlined", "upgraded",
                    "transformed", "revamped", "modernized", "strengthened", "boosted"],
    "analysis": ["analyzed", "assessed", "evaluated", "researched", "investigated",
                 "examined", "reviewed", "audited", "diagnosed", "identified"],
    "communication": ["presented", "communicated", "negotiated", "collaborated", "liaised",
                      "facilitated", "mediated", "advocated", "articulated", "persuaded"],
    "technical": ["implemented", "engineered", "programmed", "automated", "configured",
                  "deployed", "integrated", "architected", "coded", "debugged"],
}

WEAK_PHRASES = [
    "responsible for", "helped", "assisted", "worked on", "participated",
    "was involved", "duties included",
]

SOFT_SKILLS = [
    "communication", "leadership", "teamwork", "problem-solving", "critical thinking",
    "time management", "adaptability", "flexibility", "creativity", "innovation",
    "attention to detail", "organization", "interpersonal", "collaboration",
    "decision making", "analytical", "strategic thinking", "project management",
    "conflict resolution", "negotiation", "presentation", "customer service",
    "self-motivated", "initiative", "work ethic", "reliability", "accountability",
    "multitasking", "prioritization", "emotional intelligence", "mentoring",
]

TECH_SKILLS_BY_DOMAIN = {
    "programming": ["javascript", "python", "java", "c++", "c#", "ruby", "php", "swift",
                    "kotlin", "go", "rust", "typescript", "scala", "perl", "r"],
    "frontend": ["react", "angular", "vue", "html", "css", "sass", "less", "tailwind",
                 "bootstrap", "jquery", "webpack", "next.js", "nuxt", "svelte", "redux"],
    "backend": ["node.js", "express", "django", "flask", "spring", "rails", "laravel",
                "fastapi", ".net", "graphql", "rest api", "microservices"],
    "database": ["sql", "mysql", "postgresql", "mongodb", "redis", "elasticsearch",
                 "oracle", "dynamodb", "cassandra", "firebase", "supabase"],
    "cloud": ["aws", "azure", "gcp", "google cloud", "docker", "kubernetes", "terraform",
              "jenkins", "ci/cd", "devops", "serverless", "lambda"],
    "data": ["machine learning", "deep learning", "data science", "pandas", "numpy",
             "tensorflow", "pytorch", "spark", "hadoop", "tableau", "power bi",
             "data analysis"],
    "mobile": ["ios", "android", "react native", "flutter", "swift", "kotlin",
               "xamarin", "ionic", "mobile development"],
    "tools": ["git", "github", "gitlab", "jira", "confluence", "slack", "figma", "sketch",
              "adobe", "vs code", "intellij", "postman", "agile", "scrum"],
}
ALL_TECH_SKILLS = [s for skills in TECH_SKILLS_BY_DOMAIN.values() for s in skills]

INDUSTRY_KEYWORDS = {
    "tech": ["software", "development", "engineering", "technology", "digital",
             "automation", "innovation", "startup", "saas", "platform"],
    "finance": ["financial", "banking", "investment", "trading", "risk management",
                "compliance", "audit", "portfolio", "fintech", "accounting"],
    "healthcare": ["healthcare", "medical", "clinical", "patient", "hipaa", "ehr",
                   "diagnosis", "treatment", "pharmaceutical", "biotech"],
    "marketing": ["marketing", "branding", "seo", "sem", "social media", "content",
                  "digital marketing", "analytics", "campaigns", "advertising"],
    "sales": ["sales", "revenue", "pipeline", "crm", "b2b", "b2c", "account management",
              "business development", "client relations", "quota"],
}

EDUCATION_KEYWORDS = [
    "bachelor", "master", "phd", "mba", "degree", "certification", "certified",
    "diploma", "university", "college", "graduate", "undergraduate",
]

# Order matters: the index decides the metric category.
METRIC_PATTERNS = [
    re.compile(r"\d+%"),
    re.compile(r"\$[\d,]+(?:\.\d+)?[kmb]?", re.I),
    re.compile(r"\d+\+?\s*(?:years?|yrs?)", re.I),
    re.compile(r"\d+\+?\s*(?:months?|mos?)", re.I),
    re.compile(r"\d+\+?\s*(?:team members?|people|employees|staff)", re.I),
    re.compile(r"\d+[,\d]*\+?\s*(?:users?|customers?|clients?)", re.I),
    re.compile(r"\d+[,\d]*\+?\s*(?:projects?|applications?|systems?)", re.I),
    re.compile(r"\d+x\s*", re.I),
    re.compile(r"top\s*\d+%?", re.I),
    re.compile(r"\d+[,\d]*\+?\s*(?:hours?|days?|weeks?)", re.I),
]

EXPERIENCE_PATTERNS = [
    re.compile(r"\d+\+?\s*(?:years?|yrs?)\s*(?:of\s*)?(?:experience|exp)", re.I),
    re.compile(r"(?:minimum|at least|min)\s*\d+\s*(?:years?|yrs?)", re.I),
]

REQUIREMENT_INDICATORS = ["required", "must have", "essential", "mandatory", "needed"]
QUALIFICATION_INDICATORS = ["preferred", "nice to have", "bonus", "plus", "desirable"]


def _round(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def _unique(items) -> list:
    return list(dict.fromkeys(items))


def _skills(cv: dict) -> dict:
    skills = cv.get("skills") or {}
    return skills if isinstance(skills, dict) else {"technical": list(skills)}


def extract_cv_text(cv: dict) -> str:
    """All searchable text of a CV, lower-cased and space-joined."""
    cv = cv or {}
    parts: List[str] = []

    personal = cv.get("personalInfo") or {}
    parts.append(personal.get("title") or "")
    parts.append(cv.get("summary") or "")

    for exp in cv.get("experience") or []:
        parts += [exp.get("title") or "", exp.get("company") or "", exp.get("description") or ""]
        if exp.get("bullets"):
            parts.append(" ".join(exp["bullets"]))

    for edu in cv.get("education") or []:
        parts += [edu.get("degree") or "", edu.get("field") or "",
                  edu.get("school") or "", edu.get("honors") or ""]

    skills = _skills(cv)
    for key in ("technical", "soft", "languages", "certifications"):
        if skills.get(key):
            parts.append(" ".join(str(s) for s in skills[key]))

    for cert in cv.get("certifications") or []:
        if isinstance(cert, dict):
            parts += [cert.get("name") or "", cert.get("issuer") or ""]
        else:
            parts.append(str(cert))

    for proj in cv.get("projects") or []:
        parts += [proj.get("name") or "", proj.get("description") or ""]
        if proj.get("technologies"):
            parts.append(" ".join(proj["technologies"]))

    return " ".join(p for p in parts if p).lower()


def tokenize(text: str) -> Dict[str, List[str]]:
    """Words longer than one character plus every 2- and 3-word phrase."""
    normalized = re.sub(r"[^\w\s\-./+#]", " ", (text or "").lower())
    normalized = re.sub(r"\s+", " ", normalized).strip()
    words = [w for w in normalized.split(" ") if len(w) > 1]

    phrases = []
    for i in range(len(words) - 1):
        phrases.append(" ".join(words[i:i + 2]))
        if i < len(words) - 2:
            phrases.append(" ".join(words[i:i + 3]))

    return {"words": words, "phrases": phrases, "all": _unique(words + phrases)}


def extract_job_keywords(job_description: str) -> Dict[str, List[str]]:
    text = (job_description or "").lower()
    extracted: Dict[str, List[str]] = {
        "technicalSkills": [s for s in ALL_TECH_SKILLS if s in text],
        "softSkills": [s for s in SOFT_SKILLS if s in text],
        "tools": [],
        "requirements": [],
        "responsibilities": [],
        "qualifications": [],
        "experience": [],
        "education": [k for k in EDUCATION_KEYWORDS if k in text],
    }
    for pattern in EXPERIENCE_PATTERNS:
        extracted["experience"] += pattern.findall(text)

    for line in re.split(r"[\n.;]", job_description or ""):
        if not line:
            continue
        lower = line.lower()
        words = [w for w in tokenize(line)["words"] if len(w) > 3]
        if any(ind in lower for ind in REQUIREMENT_INDICATORS):
            extracted["requirements"] += words
        if any(ind in lower for ind in QUALIFICATION_INDICATORS):
            extracted["qualifications"] += words

    for key in extracted:
        extracted[key] = _unique(extracted[key])

    extracted["all"] = _unique(
        extracted["technicalSkills"]
        + extracted["softSkills"]
        + extracted["education"]
        + extracted["requirements"][:10]
        + extracted["qualifications"][:10]
    )
    return extracted


def calculate_keyword_match(cv_text: str, job_keywords: dict) -> Dict:
    """Exact hits count 1, partial (a >3-letter word of the keyword) count 0.5."""
    cv_lower = cv_text.lower()
    found, missing, partial = [], [], []
    keywords = (
        job_keywords.get("technicalSkills", [])
        + job_keywords.get("softSkills", [])
        + job_keywords.get("education", [])[:3]
    )
    for keyword in keywords:
        kw = keyword.lower()
        if kw in cv_lower:
            found.append(keyword)
        elif any(len(word) > 3 and word in cv_lower for word in kw.split(" ")):
            partial.append(keyword)
        else:
            missing.append(keyword)

    total = len(keywords) or 1
    score = _round((len(found) + len(partial) * 0.5) / total * 100)
    return {
        "score": min(100, score),
        "matches": {"found": found, "missing": missing, "partial": partial},
        "totalKeywords": total,
    }


def analyze_action_verbs(cv_text: str) -> Dict:
    lower = cv_text.lower()
    strong: List[str] = []
    by_category: Dict[str, List[str]] = {}
    for category, verbs in ACTION_VERBS.items():
        by_category[category] = [v for v in verbs if v in lower]
        strong += by_category[category]
    weak = [p for p in WEAK_PHRASES if p in lower]
    return {"strong": strong, "weak": weak, "byCategory": by_category}


def analyze_quantifiable_metrics(cv_text: str) -> Dict:
    found: List[str] = []
    count = 0
    types = {"percentages": [], "money": [], "time": [], "people": [], "scale": []}
    for index, pattern in enumerate(METRIC_PATTERNS):
        matches = pattern.findall(cv_text)
        if not matches:
            continue
        found += matches
        count += len(matches)
        if index == 0:
            types["percentages"] += matches
        elif index == 1:
            types["money"] += matches
        elif index in (2, 3):
            types["time"] += matches
        elif index in (4, 5):
            types["people"] += matches
        else:
            types["scale"] += matches
    return {"found": _unique(found), "count": count, "types": types}


def analyze_structure(cv: dict) -> Dict:
    """Section presence and completeness; starts at 100 and deducts per issue."""
    cv = cv or {}
    score = 100
    issues: List[str] = []
    sections = dict.fromkeys(
        ["personalInfo", "summary", "experience", "education",
         "skills", "certifications", "projects"], False)
    completeness: Dict[str, dict] = {}

    personal = cv.get("personalInfo")
    if personal:
        sections["personalInfo"] = True
        completeness["personalInfo"] = {
            "name": bool(personal.get("firstName") and personal.get("lastName")),
            "email": bool(personal.get("email")),
            "phone": bool(personal.get("phone")),
            "location": bool(personal.get("location")),
            "linkedin": bool(personal.get("linkedin")),
        }
        if not personal.get("email"):
            issues.append("Missing email address")
            score -= 10
        if not personal.get("phone"):
            issues.append("Missing phone number")
            score -= 5
        if not personal.get("linkedin"):
            issues.append("Consider adding LinkedIn profile")
            score -= 3
    else:
        issues.append("Missing personal information section")
        score -= 20

    summary = cv.get("summary") or ""
    if len(summary) > 50:
        sections["summary"] = True
        if len(summary) > 500:
            issues.append("Summary is too long (keep under 4 sentences)")
            score -= 5
    else:
        issues.append("Add a professional summary (3-4 sentences)")
        score -= 10

    experience = cv.get("experience") or []
    if experience:
        sections["experience"] = True
        if not any(e.get("title") and e.get("company") for e in experience):
            issues.append("Experience entries missing job titles or companies")
            score -= 10
        described = [
            e for e in experience
            if len(e.get("description") or "") > 50 or e.get("bullets")
        ]
        if len(described) < len(experience):
            issues.append("Add descriptions or bullet points to all experience entries")
            score -= 5
    else:
        issues.append("Missing experience section")
        score -= 15

    education = cv.get("education") or []
    if education:
        sections["education"] = True
        if not any(e.get("school") or e.get("degree") for e in education):
            issues.append("Education entries incomplete")
            score -= 5
    else:
        issues.append("Consider adding education section")
        score -= 5

    if cv.get("skills"):
        skills = _skills(cv)
        if skills.get("technical") or skills.get("soft"):
            sections["skills"] = True
            if not skills.get("technical"):
                issues.append("Add technical skills")
                score -= 5
        else:
            issues.append("Add skills section")
            score -= 10
    else:
        issues.append("Missing skills section")
        score -= 10

    if cv.get("certifications") or _skills(cv).get("certifications"):
        sections["certifications"] = True
    if cv.get("projects"):
        sections["projects"] = True

    return {
        "score": max(0, score),
        "issues": issues,
        "sections": sections,
        "completeness": completeness,
    }


def calculate_ats_score(cv: dict, job_description: Optional[str] = None) -> Dict:
    cv = cv or {}
    cv_text = extract_cv_text(cv)
    breakdown = {"structure": 0, "keywords": 0, "actionVerbs": 0, "metrics": 0, "formatting": 0}
    details: Dict[str, dict] = {}
    suggestions: List[str] = []
    strengths: List[str] = []
    missing_keywords: List[str] = []
    matched_keywords: List[str] = []

    structure = analyze_structure(cv)
    breakdown["structure"] = structure["score"]
    details["structure"] = structure
    suggestions += structure["issues"]

    verbs = analyze_action_verbs(cv_text)
    breakdown["actionVerbs"] = min(100, len(verbs["strong"]) * 10)
    details["actionVerbs"] = verbs
    if len(verbs["strong"]) > 5:
        strengths.append(f"Uses {len(verbs['strong'])} strong action verbs")
    if verbs["weak"]:
        suggestions.append(f'Replace weak phrases like "{verbs["weak"][0]}" with action verbs')
    if len(verbs["strong"]) < 5:
        suggestions.append("Use more action verbs (led, developed, achieved, etc.)")

    metrics = analyze_quantifiable_metrics(cv_text)
    breakdown["metrics"] = min(100, metrics["count"] * 15)
    details["metrics"] = metrics
    if metrics["count"] >= 5:
        strengths.append(f"Includes {metrics['count']} quantifiable achievements")
    else:
        suggestions.append("Add more quantifiable achievements (%, $, numbers)")

    formatting = 100
    has_bullets = any(
        e.get("bullets") or "•" in (e.get("description") or "")
        for e in cv.get("experience") or []
    )
    if not has_bullets:
        formatting -= 20
    if sum(1 for present in structure["sections"].values() if present) < 4:
        formatting -= 15
    breakdown["formatting"] = max(0, formatting)
    if not has_bullets:
        suggestions.append("Use bullet points for experience descriptions")

    if job_description:
        keywords = extract_job_keywords(job_description)
        match = calculate_keyword_match(cv_text, keywords)
        breakdown["keywords"] = match["score"]
        details["keywordMatch"] = match
        missing_keywords = match["matches"]["missing"]
        matched_keywords = match["matches"]["found"]
        if len(matched_keywords) > 5:
            strengths.append(f"Matches {len(matched_keywords)} keywords from job posting")
        if missing_keywords:
            suggestions.append(f"Consider adding keywords: {', '.join(missing_keywords[:5])}")
        overall = _round(
            breakdown["structure"] * 0.20
            + breakdown["keywords"] * 0.35
            + breakdown["actionVerbs"] * 0.15
            + breakdown["metrics"] * 0.15
            + breakdown["formatting"] * 0.15
        )
    else:
        breakdown["keywords"] = 70
        overall = _round(
            breakdown["structure"] * 0.30
            + breakdown["keywords"] * 0.20
            + breakdown["actionVerbs"] * 0.20
            + breakdown["metrics"] * 0.15
            + breakdown["formatting"] * 0.15
        )
        tech_found = [s for s in ALL_TECH_SKILLS if s in cv_text]
        if len(tech_found) < 5:
            suggestions.append("Add more industry-specific technical skills")
        else:
            strengths.append(f"Lists {len(tech_found)} technical skills")

    return {
        "overallScore": max(0, min(100, overall)),
        "breakdown": breakdown,
        "details": details,
        "suggestions": _unique(suggestions)[:8],
        "strengths": _unique(strengths)[:6],
        "missingKeywords": missing_keywords,
        "matchedKeywords": matched_keywords,
    }


def analyze_keyword_density(cv_text: str, keywords: List[str]) -> Dict:
    lower = cv_text.lower()
    total_words = len(lower.split())
    density = {}
    recommendations = []
    for keyword in keywords:
        count = len(re.findall(re.escape(keyword.lower()), lower))
        density[keyword] = {
            "count": count,
            "percentage": f"{count / total_words * 100:.2f}" if total_words else "0.00",
        }
        if count == 0:
            recommendations.append({
                "type": "missing",
                "keyword": keyword,
                "message": f'"{keyword}" is not mentioned - consider adding it naturally',
            })
        elif count > 10:
            recommendations.append({
                "type": "overused",
                "keyword": keyword,
                "message": f'"{keyword}" appears {count} times - may seem repetitive',
            })
    return {"totalWords": total_words, "density": density, "recommendations": recommendations}


def _experience_match(cv: dict, requirements: List[str], today: Optional[date] = None) -> Dict:
    """Sum of whole calendar years per entry, compared to each 'N years' requirement."""
    this_year = (today or date.today()).year
    total = 0
    for exp in cv.get("experience") or []:
        start = re.search(r"\d{4}", exp.get("startDate") or "")
        end = re.search(r"\d{4}", exp.get("endDate") or "")
        start_year = int(start.group()) if start else 0
        end_year = this_year if exp.get("current") else (int(end.group()) if end else 0)
        if start_year and end_year:
            total += end_year - start_year

    details = []
    meets_any = False
    for req in requirements:
        number = re.search(r"\d+", req)
        years = int(number.group()) if number else 0
        if years > 0:
            meets = total >= years
            details.append({"requirement": req, "yearsRequired": years, "meets": meets})
            meets_any = meets_any or meets
    return {"meetsRequirements": meets_any, "totalYears": total, "details": details}


def compare_to_job(cv: dict, job_description: str) -> Dict:
    cv = cv or {}
    cv_text = extract_cv_text(cv)
    keywords = extract_job_keywords(job_description)
    match = calculate_keyword_match(cv_text, keywords)

    def split(required):
        return {
            "required": required,
            "found": [s for s in required if s.lower() in cv_text],
            "missing": [s for s in required if s.lower() not in cv_text],
        }

    return {
        "matchPercentage": match["score"],
        "technicalMatch": split(keywords["technicalSkills"]),
        "softSkillsMatch": split(keywords["softSkills"]),
        "experienceMatch": {
            "required": keywords["experience"],
            "analysis": _experience_match(cv, keywords["experience"]),
        },
        "educationMatch": {
            "required": keywords["education"],
            "found": [k for k in keywords["education"] if k in cv_text],
        },
        "allKeywords": match,
    }


def grade_for(score: int) -> str:
    if score >= 80:
        return "A"
    if score >= 70:
        return "B"
    if score >= 60:
        return "C"
    if score >= 50:
        return "D"
    return "F"


def generate_ats_report(analysis: dict) -> Dict:
    score = analysis["overallScore"]
    return {
        "summary": {
            "score": score,
            "grade": grade_for(score),
            "status": "ATS Ready" if score >= 70 else "Needs Improvement",
        },
        "breakdown": analysis["breakdown"],
        "topStrengths": analysis["strengths"][:3],
        "topImprovements": analysis["suggestions"][:5],
        "keywordGaps": (analysis.get("missingKeywords") or [])[:10],
        "matchedKeywords": analysis.get("matchedKeywords") or [],
    }
