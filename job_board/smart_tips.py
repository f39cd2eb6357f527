"""
Smart tip detector – finds hidden keywords and bot-filter instructions in job
descriptions ("mention the word PURPLE when applying" and similar).
"""

from __future__ import annotations

import re
from typing import Dict, List

_Q = r"[\"'*]{0,2}"

KEYWORD_PATTERNS = [
    re.compile(r"(?:please\s+)?mention(?:\s+the\s+word)?\s+\*{0,2}([A-Z0-9_]+)\*{0,2}", re.I),
    re.compile(r"tag\s+([A-Za-z0-9=+/]+)\s+when\s+applying", re.I),
    re.compile(rf"include(?:\s+the\s+word)?\s+{_Q}([A-Z0-9_]+){_Q}\s+(?:in|when|to)", re.I),
    re.compile(rf"(?:please\s+)?(?:say|write|type)\s+{_Q}([A-Z0-9_]+){_Q}", re.I),
    re.compile(rf"(?:code\s*word|secret\s*word|keyword|magic\s*word)[:\s]+{_Q}([A-Z0-9_]+){_Q}", re.I),
    re.compile(rf"(?:start|begin)\s+(?:your\s+)?(?:application|email|message)\s+with\s+{_Q}([A-Z0-9_]+){_Q}", re.I),
    re.compile(rf"(?:to\s+(?:show|prove)|showing)\s+(?:you(?:'ve)?\s+)?(?:read|understood).*?{_Q}([A-Z0-9_]+){_Q}", re.I),
    re.compile(r"#([A-Za-z0-9=+/]{10,})"),
    re.compile(r"(?:tag|include|mention)\s+([A-Za-z0-9=+/]{15,})", re.I),
]

BOT_FILTER_CONTEXT = [
    "spam applicant", "human applicant", "read the job", "read this post",
    "show you're human", "show you are human", "prove you read", "beta feature",
    "filter bot", "avoid spam", "actually read", "carefully read",
    "attention to detail", "read the entire", "read the full", "read the complete",
]

COMMON_WORDS = {
    "THE", "AND", "FOR", "ARE", "BUT", "NOT", "YOU", "ALL", "CAN", "HER", "WAS",
    "ONE", "OUR", "OUT", "HAS", "HIS", "HOW", "ITS", "MAY", "NOW", "OLD", "SEE",
    "TIME", "VERY", "WHEN", "WHO", "BOY", "DID", "GET", "COM", "MADE", "FIND",
    "LONG", "DOWN", "DAY", "HAD", "SHE", "WILL", "YOUR", "FROM", "THEY", "BEEN",
    "HAVE", "WITH", "THIS", "THAT", "WHAT", "WERE", "SAID", "EACH", "WHICH",
    "THEIR", "ABOUT", "WOULD", "THERE", "OTHER", "COULD", "AFTER", "FIRST",
    # tech filler
    "CODE", "JAVA", "DATA", "TEAM", "WORK", "ROLE", "TECH", "TYPE", "USER",
    "TEST", "FULL", "PART", "PLUS", "MORE", "YEAR", "MUST", "NEED",
}

_BASE64_RUN = re.compile(r"[A-Za-z0-9+/=]{20,}")
_BASE64_SHAPE = re.compile(r"^[A-Za-z0-9+/]+=*$")

_ENTITIES = [
    ("&nbsp;", " "), ("&amp;", "&"), ("&lt;", "<"),
    ("&gt;", ">"), ("&quot;", '"'), ("&#39;", "'"),
]


def strip_html(html: str) -> str:
    text = re.sub(r"<[^>]*>", " ", html)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return re.sub(r"\s+", " ", text).strip()


def is_common_word(word: str) -> bool:
    return word.upper() in COMMON_WORDS


def is_valid_base64(value: str) -> bool:
    return len(value) >= 15 and bool(_BASE64_SHAPE.match(value))


def is_likely_code(value: str) -> bool:
    """True for strings that look deliberately planted rather than ordinary words."""
    if len(value) >= 5 and value == value.upper():
        return True
    if re.search(r"[A-Z].*[0-9]|[0-9].*[A-Z]", value, re.I):
        return True
    if is_valid_base64(value) and len(value) >= 15:
        return True
    return bool(re.match(r"^[A-Z]{3,}$", value))


def extract_context(text: str, keyword: str) -> str:
    idx = text.find(keyword)
    if idx != -1:
        return text[max(0, idx - 150): idx + len(keyword) + 150].strip()
    idx = text.lower().find(keyword.lower())
    if idx == -1:
        return ""
    return text[max(0, idx - 100): idx + len(keyword) + 100].strip()


def detect_smart_tips(description: str) -> Dict:
    """
    Scan a (possibly HTML) job description for planted application keywords.

    Returns ``{"found": bool, "tips": [...], "hasBotFilterContext": bool}``;
    each tip has ``type`` (hidden_keyword / possible_keyword / tracking_code),
    ``keyword``, ``context`` and ``instruction``.
    """
    if not description:
        return {"found": False, "tips": [], "hasBotFilterContext": False}

    text = strip_html(description)
    lowered = text.lower()
    has_context = any(phrase in lowered for phrase in BOT_FILTER_CONTEXT)

    # dict keys double as an insertion-ordered set
    keywords: Dict[str, None] = {}
    for pattern in KEYWORD_PATTERNS:
        for match in pattern.finditer(text):
            word = match.group(1)
            if word and len(word) >= 3 and not is_common_word(word):
                keywords[word] = None

    tips: List[dict] = []
    for word in keywords:
        if has_context:
            tips.append({
                "type": "hidden_keyword",
                "keyword": word,
                "context": extract_context(text, word),
                "instruction": f'Include "{word}" in your application to show you read the job posting',
            })
        elif is_likely_code(word):
            tips.append({
                "type": "possible_keyword",
                "keyword": word,
                "context": extract_context(text, word),
                "instruction": f'This might be a keyword to include in your application: "{word}"',
            })

    for run in _BASE64_RUN.findall(text):
        if not is_valid_base64(run) or run in keywords:
            continue
        context = extract_context(text, run)
        ctx = context.lower()
        if "tag" in ctx or "include" in ctx or "mention" in ctx:
            tips.append({
                "type": "tracking_code",
                "keyword": run,
                "context": context,
                "instruction": f'Include this code in your application: "{run}"',
            })

    return {"found": bool(tips), "tips": tips, "hasBotFilterContext": has_context}
