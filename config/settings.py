"""
Configuration Settings for Media Monitor

This module centralizes all configuration settings for the Media Monitor application,
including environment variables, API keys, feature toggles and pipeline constants.
Every tunable can be overridden through the environment or the .env file.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Determine the application root directory
APP_ROOT = Path(__file__).resolve().parent.parent

# Load environment variables from .env file
load_dotenv(dotenv_path=os.path.join(APP_ROOT, '.env'))


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


# API Keys and Authentication
GOOGLE_AI_API_KEY = os.getenv("GOOGLE_AI_API_KEY")
SLACK_ACCESS_TOKEN = os.getenv("SLACK_ACCESS_TOKEN")
SLACK_CHANNEL = os.getenv("SLACK_CHANNEL", "")

# Database Settings
DB_SERVER = os.getenv("server", "")
DB_NAME = os.getenv("db", "")
DB_USER = os.getenv("user", "")
DB_PASSWORD = os.getenv("pwd", "")

# Build connection string safely (validation happens in validate_settings())
DB_CONNECTION_STRING = (
    f"DRIVER={{ODBC Driver 18 for SQL Server}}; "
    f"SERVER={DB_SERVER}; "
    f"DATABASE={DB_NAME}; "
    f"UID={DB_USER}; "
    f"PWD={DB_PASSWORD}; "
    f"TrustServerCertificate=yes; MARS_Connection=yes;"
) if all([DB_SERVER, DB_NAME, DB_USER, DB_PASSWORD]) else ""

# =============================================================================
# Pipeline Settings
# =============================================================================

CONCURRENT_LIMIT = _env_int("CONCURRENT_LIMIT", 3)      # URLs processed per batch
MAX_RETRIES = _env_int("MAX_RETRIES", 3)                # Screenshot retries after the first attempt
RETRY_DELAY_MS = _env_int("RETRY_DELAY_MS", 2000)       # Delay between screenshot attempts
DAYS_OLD = _env_int("DAYS_OLD", 14)                     # Stale-story threshold in days
MAX_DATE_LOOKUPS = _env_int("MAX_DATE_LOOKUPS", 8)      # Article pages visited to recover dates

SCREENSHOT_DIR = os.getenv("SCREENSHOT_DIR", os.path.join(APP_ROOT, "shots"))
LOG_DIR = os.getenv("LOG_DIR", os.path.join(APP_ROOT, "log"))

# =============================================================================
# Feature Toggles
# =============================================================================

USE_DUPLICATE_PHOTOS = _env_bool("USE_DUPLICATE_PHOTOS", True)
USE_PERSON_ANALYSIS = _env_bool("USE_PERSON_ANALYSIS", False)
USE_MISSING_IMAGES = _env_bool("USE_MISSING_IMAGES", False)
USE_OLD_STORIES = _env_bool("USE_OLD_STORIES", True)
USE_PERCEPTUAL_HASH = _env_bool("USE_PERCEPTUAL_HASH", False)
KEEP_SCREENSHOTS = _env_bool("KEEP_SCREENSHOTS", False)
USE_SLACK = _env_bool("USE_SLACK", True)
USE_SCREENSHOT_ANALYSIS = _env_bool("USE_SCREENSHOT_ANALYSIS", False)  # Vision upload (expensive)
USE_GPT_ANALYSIS = _env_bool("USE_GPT_ANALYSIS", False)                # Redundant with local analysis

# =============================================================================
# Browser Settings
# =============================================================================

VIEWPORT_WIDTH = 1280
VIEWPORT_HEIGHT = 800
ACCEPT_LANGUAGE = "en-US,en;q=0.9"
BLOCKED_RESOURCE_TYPES = ["font", "other"]
BROWSER_ARGS = ['--disable-dev-shm-usage', '--disable-extensions', '--no-sandbox']

PAGE_LOAD_TIMEOUT_MS = 45000         # goto(wait_until="load")
NETWORK_IDLE_TIMEOUT_MS = 30000      # Fallback goto(wait_until="networkidle")
IMAGE_LOAD_TIMEOUT_MS = 10000        # Per-image load deadline
IMAGE_SETTLE_DELAY_MS = 2000         # Pause before looking for lazy-loaded images
SCROLL_STEP_PX = 200
SCROLL_INTERVAL_MS = 100
SCROLL_MAX_STEPS = 150              # Upper bound for infinite-scroll pages
SCREENSHOT_TIMEOUT_MS = 20000
ARTICLE_PAGE_TIMEOUT_MS = 12000      # Article visit for date recovery
RETURN_PAGE_TIMEOUT_MS = 15000       # Navigation back to the homepage

# =============================================================================
# Image Hashing Settings
# =============================================================================

IMAGE_FETCH_TIMEOUT = 10             # Seconds timeout for image download
PERCEPTUAL_SIMILARITY_THRESHOLD = _env_int("PERCEPTUAL_SIMILARITY_THRESHOLD", 85)

USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36'
IMAGE_REQUEST_HEADERS = {
    'User-Agent': USER_AGENT,
    'Accept': 'image/webp,image/avif,image/apng,image/svg+xml,image/*,*/*;q=0.8',
    'Cache-Control': 'no-cache'
}

# =============================================================================
# AI Model Settings
# =============================================================================

DEFAULT_AI_MODELS = [
    'gemini-2.0-flash',
    'gemini-2.0-flash-lite',
    'gemini-2.5-flash-lite',
    'gemini-2.5-flash'
]
AI_UPLOAD_RETRIES = 2

# =============================================================================
# Slack Settings
# =============================================================================

SLACK_API_URL = "https://slack.com/api/chat.postMessage"
SLACK_TIMEOUT = 10
SLACK_MESSAGE_PREFIX = "*[MediaMonitor]*"
SLACK_ERROR_PREFIX = "*[MediaMonitor]::[ERROR]*"

# =============================================================================
# Configuration Validation
# =============================================================================

from config.validators import ConfigurationError, validate_settings, get_config_summary  # noqa: E402,F401
