"""
AI provider calls and response helpers.

call_openrouter  – chat completion via OpenRouter (CV writing, matching, cover letters)
call_gemini      – Google Gemini generateContent (CV text → structured JSON)
extract_json     – recover a JSON object from a model reply
extract_json_array – same for a JSON array

Every request and raw response is appended to the LLM log files so prompts
and replies can be inspected side by side.
"""

from __future__ import annotations

import datetime
import json as _json
import logging
import re
import urllib.error
import urllib.request
from typing import Optional

import config

logger = logging.getLogger(__name__)


class AIError(RuntimeError):
    """Any failure talking to an AI provider (missing key, HTTP error, bad shape)."""


# ── response parsing ───────────────────────────────────────────

def extract_json(text: str) -> dict:
    """
    Attempt to extract a JSON object from a model reply using three strategies:
    1. Direct parse (model obeyed instructions).
    2. Strip markdown code fences (```json ... ``` or ``` ... ```).
    3. Find the outermost { ... } substring.
    Raises ValueError if all strategies fail.
    """
    text = (text or "").strip()

    try:
        data = _json.loads(text)
        if isinstance(data, dict):
            return data
    except _json.JSONDecodeError:
        pass

    fence = re.search(r"```(?:json)?\s*([\s\S]+?)\s*```", text)
    if fence:
        try:
            data = _json.loads(fence.group(1))
            if isinstance(data, dict):
                return data
        except _json.JSONDecodeError:
            pass

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        try:
            return _json.loads(text[start: end + 1])
        except _json.JSONDecodeError:
            pass

    raise ValueError("No valid JSON object found in AI response")


def extract_json_array(text: str) -> list:
    """Outermost [ ... ] of a reply as a list; raises ValueError when there is none."""
    text = (text or "").strip()
    start = text.find("[")
    end = text.rfind("]")
    if start != -1 and end > start:
        try:
            data = _json.loads(text[start: end + 1])
            if isinstance(data, list):
                return data
        except _json.JSONDecodeError:
            pass
    raise ValueError("No valid JSON array found in AI response")


# ── logging ────────────────────────────────────────────────────

def _log_llm_request(purpose: str, model: str, messages: list[dict]) -> None:
    """Append the exact messages sent to the provider to llm_requests.log."""
    ts = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    sep = "=" * 80
    dash = "-" * 80
    parts = [
        f"\n{sep}",
        f"Timestamp : {ts}",
        f"Purpose   : {purpose or '-'}",
        f"Model     : {model}",
    ]
    for msg in messages:
        parts.append(dash)
        parts.append(f"[{msg.get('role', 'unknown').upper()}]")
        parts.append(msg.get("content", ""))
    parts.append(sep)
    try:
        with open(config.LLM_REQUEST_LOG_FILE, "a", encoding="utf-8") as fh:
            fh.write("\n".join(parts) + "\n")
    except OSError as exc:
        logger.warning("Could not write LLM request log: %s", exc)


def _log_llm_response(purpose: str, model: str, raw_response: str) -> None:
    """Append the complete raw reply to llm_responses.log, parsed or not."""
    ts = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    sep = "=" * 80
    entry = (
        f"\n{sep}\n"
        f"Timestamp : {ts}\n"
        f"Purpose   : {purpose or '-'}\n"
        f"Model     : {model}\n"
        f"{'-' * 80}\n"
        f"{raw_response}\n"
        f"{sep}\n"
    )
    try:
        with open(config.LLM_LOG_FILE, "a", encoding="utf-8") as fh:
            fh.write(entry)
    except OSError as exc:
        logger.warning("Could not write LLM log: %s", exc)


# ── providers ──────────────────────────────────────────────────

def _post_json(url: str, payload: dict, headers: dict, provider: str) -> dict:
    req = urllib.request.Request(
        url,
        data=_json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    try:
        with urllib.request.urlopen(req, timeout=config.AI_TIMEOUT) as resp:
            return _json.loads(resp.read().decode("utf-8"))
    except urllib.error.HTTPError as exc:
        try:
            err_body = _json.loads(exc.read().decode("utf-8"))
        except (ValueError, AttributeError):
            raise AIError(f"{provider} HTTP {exc.code}: {exc.reason}") from exc
        err = err_body.get("error") if isinstance(err_body, dict) else None
        message = err.get("message") if isinstance(err, dict) else err
        raise AIError(f"{provider} error: {message or exc}") from exc
    except urllib.error.URLError as exc:
        raise AIError(f"{provider} unreachable: {exc.reason}") from exc
    except TimeoutError as exc:
        raise AIError(f"{provider} timed out after {config.AI_TIMEOUT}s") from exc
    except ValueError as exc:
        raise AIError(f"{provider} returned a non-JSON body") from exc


def call_openrouter(
    prompt: str,
    system_prompt: str,
    model: Optional[str] = None,
    purpose: str = "",
) -> str:
    """Chat completion via OpenRouter. Returns the assistant text; raises AIError."""
    if not config.OPENROUTER_API_KEY:
        raise AIError("OPENROUTER_API_KEY is not set in your environment / .env file")
    model = model or config.OPENROUTER_MODEL
    messages = [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": prompt},
    ]
    _log_llm_request(purpose, model, messages)
    body = _post_json(
        config.OPENROUTER_URL,
        {
            "model": model,
            "messages": messages,
            "temperature": config.OPENROUTER_TEMPERATURE,
            "max_tokens": config.OPENROUTER_MAX_TOKENS,
        },
        {
            "Authorization": f"Bearer {config.OPENROUTER_API_KEY}",
            "HTTP-Referer": config.SITE_URL,
            "X-Title": config.APP_TITLE,
        },
        "OpenRouter",
    )
    try:
        content = body["choices"][0]["message"]["content"] or ""
    except (KeyError, IndexError, TypeError) as exc:
        raise AIError(f"Unexpected OpenRouter response shape: {exc}") from exc
    _log_llm_response(purpose, model, content)
    return content


def call_gemini(prompt: str, model: Optional[str] = None, purpose: str = "") -> str:
    """Google Gemini generateContent. Returns the reply text; raises AIError."""
    if not config.GOOGLE_AI_API_KEY:
        raise AIError("GOOGLE_AI_API_KEY is not set in your environment / .env file")
    model = model or config.GEMINI_MODEL
    _log_llm_request(purpose, model, [{"role": "user", "content": prompt}])
    url = (
        "https://generativelanguage.googleapis.com/v1beta/models/"
        f"{model}:generateContent?key={config.GOOGLE_AI_API_KEY}"
    )
    body = _post_json(
        url,
        {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0.3, "topK": 40, "topP": 0.95, "maxOutputTokens": 4096},
        },
        {},
        "Google AI",
    )
    try:
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise AIError(f"Unexpected Google AI response shape: {exc}") from exc
    if not text:
        raise AIError("No response from Gemini")
    _log_llm_response(purpose, model, text)
    return text
