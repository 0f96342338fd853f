# Configuration for the Handbook Chat backend.
# Values come from the environment (optionally a .env file in the project root).

import os
from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


class Config:
    """Application settings, read once at import time."""

    # ─── AI provider ─────────────────────────────────────────
    ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
    AI_MODEL = os.getenv("AI_MODEL", "claude-sonnet-4-6")
    AI_MAX_TOKENS = _int_env("AI_MAX_TOKENS", 1500)
    AI_TEMPERATURE = 0.1
    # Calls slower than this fail over to the fallback answer.
    AI_TIMEOUT_SECS = _int_env("AI_TIMEOUT_SECS", 30)
    AI_MAX_RETRIES = _int_env("AI_MAX_RETRIES", 0)

    # ─── External services ───────────────────────────────────
    API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5200").rstrip("/")
    HEALTH_CHECK_TIMEOUT_SECS = 5

    # ─── Application ─────────────────────────────────────────
    APP_VERSION = os.getenv("APP_VERSION", "2024/2025")
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    SEARCH_TOP_K = _int_env("SEARCH_TOP_K", 5)
    CONVERSATION_MAX_AGE_SECS = _int_env("CONVERSATION_MAX_AGE_SECS", 60 * 60)

    # ALLOWED_ORIGINS is a comma-separated list of origins (no trailing slashes).
    _default_origins = "http://localhost:3000,http://localhost:3001"
    ALLOWED_ORIGINS = [
        o.strip() for o in os.getenv("ALLOWED_ORIGINS", _default_origins).split(",") if o.strip()
    ]

    @classmethod
    def ai_configured(cls) -> bool:
        return bool(cls.ANTHROPIC_API_KEY)
