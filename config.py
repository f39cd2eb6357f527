"""
Configuration management for CareerForge.
Loads settings from environment variables / .env file.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file
load_dotenv()

BASE_DIR = Path(__file__).resolve().parent

# Error log file (WARNING and ERROR from all loggers are appended here)
LOG_DIR = BASE_DIR / os.getenv("LOG_DIR", "logs")
ERROR_LOG_FILE = LOG_DIR / os.getenv("ERROR_LOG_FILE", "error_log.txt")
# Every raw AI response is appended here for debugging
LLM_LOG_FILE = LOG_DIR / os.getenv("LLM_LOG_FILE", "llm_responses.log")
# The exact prompt sent to the AI provider (system + user messages)
LLM_REQUEST_LOG_FILE = LOG_DIR / os.getenv("LLM_REQUEST_LOG_FILE", "llm_requests.log")

LOG_DIR.mkdir(parents=True, exist_ok=True)

# Flask
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "10"))

# ── MySQL Database ─────────────────────────────────────────────
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = int(os.getenv("DB_PORT", "3306"))
DB_USER = os.getenv("DB_USER", "root")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_NAME = os.getenv("DB_NAME", "careerforge")
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))

# ── Job providers (keyed providers are disabled when their key is empty) ──
ADZUNA_APP_ID = os.getenv("ADZUNA_APP_ID", "")
ADZUNA_APP_KEY = os.getenv("ADZUNA_APP_KEY", "")
ADZUNA_COUNTRY = os.getenv("ADZUNA_COUNTRY", "us")
JSEARCH_API_KEY = os.getenv("JSEARCH_API_KEY", "")

# ── AI providers ───────────────────────────────────────────────
# OpenRouter serves CV writing, matching and cover letters.
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")
OPENROUTER_URL = os.getenv("OPENROUTER_URL", "https://openrouter.ai/api/v1/chat/completions")
OPENROUTER_MODEL = os.getenv("OPENROUTER_MODEL", "anthropic/claude-3-haiku")
OPENROUTER_TEMPERATURE = float(os.getenv("OPENROUTER_TEMPERATURE", "0.7"))
OPENROUTER_MAX_TOKENS = int(os.getenv("OPENROUTER_MAX_TOKENS", "2000"))
SITE_URL = os.getenv("SITE_URL", "http://localhost:5000")
APP_TITLE = os.getenv("APP_TITLE", "CareerForge CV Builder")
# Gemini parses uploaded CV text into structured JSON.
GOOGLE_AI_API_KEY = os.getenv("GOOGLE_AI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
AI_TIMEOUT = int(os.getenv("AI_TIMEOUT", "120"))

# ── Search & caching ───────────────────────────────────────────
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "30"))
RATE_LIMIT_DELAY = float(os.getenv("RATE_LIMIT_DELAY", "0.0"))
SEARCH_DEFAULT_LIMIT = int(os.getenv("SEARCH_DEFAULT_LIMIT", "20"))
SEARCH_MAX_LIMIT = int(os.getenv("SEARCH_MAX_LIMIT", "50"))
SEARCH_WORKERS = int(os.getenv("SEARCH_WORKERS", "4"))
MEMORY_CACHE_TTL = int(os.getenv("MEMORY_CACHE_TTL", "900"))          # 15 minutes
MEMORY_CACHE_MAX_ENTRIES = int(os.getenv("MEMORY_CACHE_MAX_ENTRIES", "100"))
MEMORY_CACHE_EVICT = int(os.getenv("MEMORY_CACHE_EVICT", "20"))
DB_CACHE_TTL = int(os.getenv("DB_CACHE_TTL", "1800"))                 # 30 minutes

# ── Morocco job boards (HTML scraping, separate from the main search) ──
MOROCCO_SCRAPER_ENABLED = os.getenv("MOROCCO_SCRAPER_ENABLED", "true").lower() in ("1", "true", "yes")
MOROCCO_SCRAPE_DEFAULT_LIMIT = int(os.getenv("MOROCCO_SCRAPE_DEFAULT_LIMIT", "10"))
MOROCCO_SCRAPE_MAX_LIMIT = int(os.getenv("MOROCCO_SCRAPE_MAX_LIMIT", "20"))

# ── Auto-apply & preference defaults ───────────────────────────
DEFAULT_DAILY_LIMIT = int(os.getenv("DEFAULT_DAILY_LIMIT", "10"))
DEFAULT_MIN_MATCH_SCORE = int(os.getenv("DEFAULT_MIN_MATCH_SCORE", "85"))
AUTO_APPLY_MAX_QUERIES = int(os.getenv("AUTO_APPLY_MAX_QUERIES", "2"))
AUTO_APPLY_SEARCH_LIMIT = int(os.getenv("AUTO_APPLY_SEARCH_LIMIT", "30"))

# Job types
JOB_TYPES = ["full-time", "part-time", "contract", "internship", "temporary"]

# Experience levels
EXPERIENCE_LEVELS = ["intern", "entry", "mid", "senior", "executive"]

# Application pipeline
APPLICATION_STATUSES = [
    "saved", "applied", "screening", "interviewing", "offer", "rejected", "withdrawn",
]

# Notification types
NOTIFICATION_TYPES = ["application", "job_match", "reminder", "system", "tip"]
