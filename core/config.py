"""Centralized configuration for the annotation batch engine.

This module is the single source of truth for:
- Default models and providers
- Cache, retry and concurrency defaults
- Retention and pagination defaults

Every default can be overridden through an ``ANNOTATION_*`` environment
variable (a local ``.env`` file is loaded on import).
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    """Read a float from the environment, falling back to default."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def _env_int(name: str, default: int) -> int:
    """Read an int from the environment, falling back to default."""
    return int(_env_float(name, default))


# ===================================================================
# Models
# ===================================================================
DEFAULT_MODEL = os.getenv("ANNOTATION_DEFAULT_MODEL", "gemini-3-flash-preview")
DEFAULT_PROVIDER = os.getenv("ANNOTATION_DEFAULT_PROVIDER", "gemini")

GEMINI_MODELS = {
    "1": ("gemini-2.5-pro", "Gemini 2.5 Pro - Stable"),
    "2": ("gemini-3-pro-preview", "Gemini 3 Pro Preview - Best quality"),
    "3": ("gemini-3-flash-preview", "Gemini 3 Flash - Fast"),
}

# USD per 1M tokens (input+output blended), used when a backend does not
# report cost itself.
MODEL_PRICING = {
    "gemini-2.5-pro": 5.0,
    "gemini-3-pro-preview": 6.0,
    "gemini-3-flash-preview": 0.9,
}
DEFAULT_PRICE_PER_MILLION = 1.0

# ===================================================================
# Cache
# ===================================================================
DEFAULT_CACHE_TTL = _env_float("ANNOTATION_CACHE_TTL", 5 * 60)  # seconds
CACHE_SWEEP_INTERVAL = _env_float("ANNOTATION_CACHE_SWEEP_INTERVAL", 60)  # seconds
CACHE_KEY_LENGTH = 32
DEFAULT_CACHE_DIR = os.getenv("ANNOTATION_CACHE_DIR", "./data/ai_cache")

# ===================================================================
# Retry / timeout / concurrency
# ===================================================================
DEFAULT_RETRY_ATTEMPTS = _env_int("ANNOTATION_RETRY_ATTEMPTS", 3)
BACKOFF_BASE = 0.2  # seconds, doubled after every failed attempt
BACKOFF_MAX = 5.0  # seconds
DEFAULT_TIMEOUT = _env_float("ANNOTATION_TIMEOUT", 60)  # seconds per provider call
DEFAULT_PARALLEL_REQUESTS = _env_int("ANNOTATION_PARALLEL_REQUESTS", 4)

# ===================================================================
# Batches
# ===================================================================
BATCH_OPERATIONS = ("annotate", "import", "export", "transform", "report", "validate", "cleanup")
DEFAULT_RETENTION_DAYS = _env_int("ANNOTATION_RETENTION_DAYS", 30)
DEFAULT_HISTORY_LIMIT = 50

# ===================================================================
# Analytics
# ===================================================================
SPEED_NORMALIZER_MS = 10_000
COST_NORMALIZER_USD = 100.0
SCORE_WEIGHTS = {"speed": 25, "accuracy": 35, "cost": 20, "reliability": 20}
COST_PERIOD_DAYS = {"day": 1, "week": 7, "month": 30}
DEFAULT_STATS_RETENTION_DAYS = 90

# Explicit fallbacks, not measurements
DEFAULT_CONFIDENCE = 0.5
DEFAULT_CONSISTENCY = 0.7
RECENT_REVIEWS_LIMIT = 10
