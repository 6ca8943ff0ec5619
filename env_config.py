"""Centralized environment configuration for the site image crawler.

Loads `.env` once at import time and exposes typed getters used across
crawler, processor, storage, and the CLI.
"""

import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent
load_dotenv(PROJECT_ROOT / ".env", override=False)
logger = logging.getLogger(__name__)

DEFAULT_APP_ENV = "dev"
DEFAULT_DATABASE_URL = "postgresql://localhost/site_images"
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_CRAWLER_USER_AGENT = "Mozilla/5.0 (compatible; SiteImageCrawler/1.0)"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "text"
DEFAULT_QUEUE_NAMESPACE = ""

# Crawl request defaults and bounds
DEFAULT_CRAWLER_MAX_PAGES = 100
DEFAULT_CRAWLER_TIMEOUT_MS = 60000
DEFAULT_CRAWLER_INCLUDE_CSS_BACKGROUNDS = True
MIN_MAX_PAGES = 1
MAX_MAX_PAGES = 1000
MIN_TIMEOUT_MS = 2000
MAX_TIMEOUT_MS = 60000

# Retry policy defaults (2 retries = 3 total attempts)
DEFAULT_CRAWLER_RETRY_TIMES = 2
DEFAULT_CRAWLER_RETRY_BASE_DELAY = 1.0
DEFAULT_CRAWLER_TIMEOUT_RETRY_BASE_DELAY = 2.0

DEFAULT_RAW_MARKUP_MAX_LENGTH = 400
DEFAULT_DB_POOL_MIN_CONNECTIONS = 1
DEFAULT_DB_POOL_MAX_CONNECTIONS = 10
DEFAULT_STORE_BACKEND = "memory"
DEFAULT_PROGRESS_BACKEND = "local"

ALLOWED_APP_ENVS = {"dev", "staging", "prod"}
ALLOWED_LOG_FORMATS = {"text", "json"}
ALLOWED_STORE_BACKENDS = {"memory", "postgres"}
ALLOWED_PROGRESS_BACKENDS = {"local", "redis"}


def get_database_url() -> str:
    """Return database URL from environment with a safe local default."""
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def get_db_pool_size() -> tuple[int, int]:
    """Return (min, max) connections for the PostgreSQL pool.

    Max is raised to min when configured lower, and min is at least 1.
    """
    minimum = max(1, get_int_env("DB_POOL_MIN_CONNECTIONS", DEFAULT_DB_POOL_MIN_CONNECTIONS))
    maximum = get_int_env("DB_POOL_MAX_CONNECTIONS", DEFAULT_DB_POOL_MAX_CONNECTIONS)
    return minimum, max(minimum, maximum)


def get_redis_url() -> str:
    """Return Redis URL from environment with a safe local default."""
    return os.getenv("REDIS_URL", DEFAULT_REDIS_URL)


@lru_cache(maxsize=1)
def get_app_env() -> str:
    """Return the deployment environment name."""
    return get_choice_env("APP_ENV", DEFAULT_APP_ENV, ALLOWED_APP_ENVS)


def get_crawler_user_agent() -> str:
    """Return the User-Agent sent with every page request."""
    return os.getenv("CRAWLER_USER_AGENT", DEFAULT_CRAWLER_USER_AGENT)


def get_log_level() -> str:
    """Return process log level."""
    return os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL)


def get_log_format() -> str:
    """Return log output format ("text" or "json")."""
    return get_choice_env("LOG_FORMAT", DEFAULT_LOG_FORMAT, ALLOWED_LOG_FORMATS)


def get_queue_namespace() -> str:
    """Return optional Redis key namespace prefix."""
    return os.getenv("QUEUE_NAMESPACE", DEFAULT_QUEUE_NAMESPACE).strip().strip(":")


def get_crawler_max_pages() -> int:
    """Return default page budget used when a request does not set one."""
    return get_int_env("CRAWLER_MAX_PAGES", DEFAULT_CRAWLER_MAX_PAGES)


def get_crawler_timeout_ms() -> int:
    """Return default per-request timeout in milliseconds."""
    return get_int_env("CRAWLER_TIMEOUT_MS", DEFAULT_CRAWLER_TIMEOUT_MS)


def get_crawler_include_css_backgrounds() -> bool:
    """Return whether CSS background-image scanning is on by default."""
    return get_bool_env(
        "CRAWLER_INCLUDE_CSS_BACKGROUNDS", DEFAULT_CRAWLER_INCLUDE_CSS_BACKGROUNDS
    )


def get_crawler_retry_times() -> int:
    """Return number of retries after the first failed page fetch."""
    return max(0, get_int_env("CRAWLER_RETRY_TIMES", DEFAULT_CRAWLER_RETRY_TIMES))


def get_crawler_retry_base_delay() -> float:
    """Return base backoff delay in seconds for generic fetch failures."""
    return get_float_env("CRAWLER_RETRY_BASE_DELAY", DEFAULT_CRAWLER_RETRY_BASE_DELAY)


def get_crawler_timeout_retry_base_delay() -> float:
    """Return base backoff delay in seconds after a timed-out fetch."""
    return get_float_env(
        "CRAWLER_TIMEOUT_RETRY_BASE_DELAY", DEFAULT_CRAWLER_TIMEOUT_RETRY_BASE_DELAY
    )


def get_raw_markup_max_length() -> int:
    """Return the maximum stored length of an image's source markup."""
    return get_int_env("RAW_MARKUP_MAX_LENGTH", DEFAULT_RAW_MARKUP_MAX_LENGTH)


def get_store_backend() -> str:
    """Return persistence backend name ("memory" or "postgres")."""
    return get_choice_env("STORE_BACKEND", DEFAULT_STORE_BACKEND, ALLOWED_STORE_BACKENDS)


def get_progress_backend() -> str:
    """Return progress fan-out backend name ("local" or "redis").

    "local" keeps snapshots inside the process. "redis" additionally
    publishes every snapshot on a per-job Redis channel.
    """
    return get_choice_env(
        "PROGRESS_BACKEND", DEFAULT_PROGRESS_BACKEND, ALLOWED_PROGRESS_BACKENDS
    )


def get_int_env(name: str, default: int) -> int:
    """Parse integer environment variable with fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_float_env(name: str, default: float) -> float:
    """Parse float environment variable with fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def get_bool_env(name: str, default: bool) -> bool:
    """Parse bool environment variable with fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "y", "on"}:
        return True
    if value in {"0", "false", "no", "n", "off"}:
        return False
    return default


def get_choice_env(name: str, default: str, allowed: set[str]) -> str:
    """Parse enum-like env values with fallback to default on invalid input."""
    raw = os.getenv(name)
    if raw is None:
        return default

    value = raw.strip().lower()
    if value in allowed:
        return value

    logger.warning(
        "Invalid %s value '%s'. Allowed values: %s. Falling back to '%s'.",
        name,
        raw,
        ", ".join(sorted(allowed)),
        default,
    )
    return default
