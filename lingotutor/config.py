"""
LingoTutor - Configuration
All environment variables and constants. Single source of truth.
No other module reads os.environ directly.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# ─── Paths ───────────────────────────────────────────────────────────────────
PACKAGE_DIR = Path(__file__).resolve().parent
BASE_DIR = PACKAGE_DIR.parent

# Load .env file if present (never overrides variables already set)
_env_path = BASE_DIR / ".env"
if _env_path.exists():
    load_dotenv(_env_path, override=False)

LESSONS_DIR = Path(os.getenv("LESSONS_DIR", str(PACKAGE_DIR / "content" / "lessons")))

# ─── Database ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite:///{BASE_DIR / 'lingotutor.db'}"
)
# Hosted Postgres often hands out "postgres://", which SQLAlchemy rejects.
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# ─── LLM Settings ────────────────────────────────────────────────────────────
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4.1-mini")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "120"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.3"))
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "4.0"))
ENABLE_LLM_EXPLAIN = os.getenv("ENABLE_LLM_EXPLAIN", "false").lower() == "true"

# ─── Lesson Settings ─────────────────────────────────────────────────────────
MAX_ATTEMPTS = 4  # attempt 4 forces the lesson forward
SUPPORTED_LANGUAGES = ("en", "de", "es", "fr")
RECENT_CONFUSION_CAP = 5
RECENT_CONFUSION_WINDOW_MINUTES = 10

# ─── Review Settings ─────────────────────────────────────────────────────────
REVIEW_CANDIDATE_CAP = 120
REVIEW_QUEUE_CAP = 60
MAX_MISTAKE_COUNT = 20
REVIEW_COOLDOWN_HOURS = 12
MAX_AGE_DAYS = 30
MAX_REVIEW_ITEMS = 5
DEFAULT_SUGGESTED_ITEMS = 2
MASTERY_CONFIDENCE = 0.9

# ─── Support Settings ────────────────────────────────────────────────────────
DEFAULT_SUPPORT_LEVEL = 0.85

# ─── Logging ─────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Apply the project log format. Hosts call this once at startup."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
