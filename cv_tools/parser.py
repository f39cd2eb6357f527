"""
Uploaded CV → plain text, and a check of which builder steps still need input.
"""

from __future__ import annotations

import io
import logging
import zipfile
from typing import Dict, List

from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

logger = logging.getLogger(__name__)

# Builder steps: 2 personal info, 3 experience, 4 education, 5 skills, 6 settings
FINAL_STEP = 6


class UnsupportedFileType(ValueError):
    """The upload is not a PDF or DOCX, or its text cannot be read."""


def _pdf_text(data: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(data))
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    except PdfReadError as exc:
        raise UnsupportedFileType(f"Could not read PDF: {exc}") from exc


def _docx_text(data: bytes) -> str:
    try:
        doc = Document(io.BytesIO(data))
    except (zipfile.BadZipFile, PackageNotFoundError, KeyError) as exc:
        raise UnsupportedFileType(f"Could not read DOCX: {exc}") from exc
    return "\n".join(para.text for para in doc.paragraphs)


def extract_text(filename: str, data: bytes, content_type: str = "") -> str:
    """Text of a PDF or DOCX upload. Raises UnsupportedFileType for anything else."""
    name = (filename or "").lower()
    if content_type == "application/pdf" or name.endswith(".pdf"):
        text = _pdf_text(data)
    elif name.endswith(".docx") or content_type == (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    ):
        text = _docx_text(data)
    elif name.endswith(".doc") or content_type == "application/msword":
        raise UnsupportedFileType(
            "Legacy .doc files are not supported. Please save as .docx or PDF"
        )
    else:
        raise UnsupportedFileType("Unsupported file type. Please upload PDF or DOCX")

    logger.info("Extracted %d characters from %s", len(text), filename)
    return text


def analyze_missing_fields(parsed: dict) -> Dict:
    """
    Missing or incomplete sections of a parsed CV, each tagged with the
    builder step that collects it. startStep is the earliest such step.
    """
    parsed = parsed or {}
    personal = parsed.get("personalInfo") or {}
    missing: List[dict] = []

    if not personal.get("firstName") or not personal.get("lastName"):
        missing.append({"field": "name", "step": 2, "message": "Your name is missing"})
    if not personal.get("email"):
        missing.append({"field": "email", "step": 2, "message": "Email address is missing"})
    if not personal.get("phone"):
        missing.append({"field": "phone", "step": 2, "message": "Phone number is missing"})

    experience = parsed.get("experience") or []
    if not experience:
        missing.append({"field": "experience", "step": 3, "message": "Work experience is missing"})
    elif any(not e.get("title") or not e.get("company") for e in experience):
        missing.append({
            "field": "experience", "step": 3,
            "message": "Some experience details are incomplete",
        })

    education = parsed.get("education") or []
    if not education:
        missing.append({"field": "education", "step": 4, "message": "Education is missing"})
    elif any(not e.get("degree") or not e.get("school") for e in education):
        missing.append({
            "field": "education", "step": 4,
            "message": "Some education details are incomplete",
        })

    skills = parsed.get("skills") or {}
    if not isinstance(skills, dict) or not skills.get("technical"):
        missing.append({"field": "skills", "step": 5, "message": "Technical skills are missing"})

    if len(parsed.get("summary") or "") < 50:
        missing.append({
            "field": "summary", "step": 2,
            "message": "Professional summary is too short or missing",
        })

    start_step = min((m["step"] for m in missing), default=FINAL_STEP)
    return {"missingFields": missing, "startStep": start_step, "isComplete": not missing}
