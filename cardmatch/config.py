"""
Centralized settings with environment variable overrides.

Values are read once at import time. A malformed value is logged and replaced
by its default rather than failing startup.
"""

import logging
import os

logger = logging.getLogger(__name__)


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid %s value %r; falling back to default %s", name, raw, default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    logger.warning("Invalid %s value %r; falling back to default %s", name, raw, default)
    return default


OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")


class LLMConfig:
    """LLM classifier settings"""
    MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
    TEMPERATURE = _env_number("LLM_TEMPERATURE", 0.1, float)
    MAX_TOKENS = _env_number("LLM_MAX_TOKENS", 150, int)
    TIMEOUT_SECONDS = _env_number("LLM_TIMEOUT", 5.0, float)
    MAX_RETRIES = _env_number("LLM_MAX_RETRIES", 1, int)
    # Used when the model omits a confidence
    DEFAULT_CONFIDENCE = _env_number("LLM_DEFAULT_CONFIDENCE", 0.6, float)


class EmbeddingConfig:
    """Semantic tier settings"""
    MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    TIMEOUT_SECONDS = _env_number("SEMANTIC_TIMEOUT", 3.0, float)
    ENABLED = _env_bool("SEMANTIC_ENABLED", bool(OPENAI_API_KEY))


class CategorizationConfig:
    """Tier acceptance thresholds and cache sizing"""
    KEYWORD_THRESHOLD = _env_number("KEYWORD_THRESHOLD", 0.8, float)
    SEMANTIC_THRESHOLD = _env_number("SEMANTIC_THRESHOLD", 0.85, float)
    # 0 means unbounded
    CACHE_MAX_ENTRIES = _env_number("CATEGORY_CACHE_MAX_ENTRIES", 10000, int)
    # 0 means entries never expire
    CACHE_TTL_SECONDS = _env_number("CATEGORY_CACHE_TTL_SECONDS", 0, float)


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./cardmatch.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
