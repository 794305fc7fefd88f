"""
Configuration Validation for Media Monitor Application

This module contains configuration validation logic.
Kept apart from settings.py so the settings module stays a flat list of values.
"""

from utils.exceptions import ConfigurationError
from utils.logger import get_logger

logger = get_logger(__name__)


def validate_settings(use_slack=None):
    """
    Validate that all required settings are properly configured.

    Args:
        use_slack: Overrides USE_SLACK when deciding whether Slack credentials are required.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    # Import settings here to avoid circular imports
    from config import settings

    errors = []

    # Required environment variables
    required_vars = [
        ("DB_SERVER", settings.DB_SERVER),
        ("DB_NAME", settings.DB_NAME),
        ("DB_USER", settings.DB_USER),
        ("DB_PASSWORD", settings.DB_PASSWORD)
    ]

    for var_name, var_value in required_vars:
        if not var_value:
            errors.append(f"Missing required environment variable: {var_name}")

    # Verify database connection string was built successfully
    if not settings.DB_CONNECTION_STRING:
        errors.append("Database connection string could not be built. Check DB_SERVER, DB_NAME, DB_USER, DB_PASSWORD.")

    # Slack delivery needs a token and a channel
    if use_slack is None:
        use_slack = settings.USE_SLACK
    if use_slack:
        if not settings.SLACK_ACCESS_TOKEN:
            errors.append("USE_SLACK is true but SLACK_ACCESS_TOKEN is not configured.")
        if not settings.SLACK_CHANNEL:
            errors.append("USE_SLACK is true but SLACK_CHANNEL is not configured.")

    # The generative cross-check needs an API key
    if settings.USE_GPT_ANALYSIS and not settings.GOOGLE_AI_API_KEY:
        errors.append("USE_GPT_ANALYSIS is true but GOOGLE_AI_API_KEY is not configured.")

    if settings.USE_PERSON_ANALYSIS and not settings.USE_GPT_ANALYSIS:
        logger.warning("USE_PERSON_ANALYSIS has no effect while USE_GPT_ANALYSIS is disabled.")

    if settings.USE_SCREENSHOT_ANALYSIS and not settings.USE_GPT_ANALYSIS:
        logger.warning("USE_SCREENSHOT_ANALYSIS has no effect while USE_GPT_ANALYSIS is disabled.")

    # Validate numeric settings are within reasonable bounds
    numeric_validations = [
        ("CONCURRENT_LIMIT", settings.CONCURRENT_LIMIT, 1, 50),
        ("MAX_RETRIES", settings.MAX_RETRIES, 0, 20),
        ("RETRY_DELAY_MS", settings.RETRY_DELAY_MS, 0, 600000),
        ("DAYS_OLD", settings.DAYS_OLD, 1, 730),
        ("MAX_DATE_LOOKUPS", settings.MAX_DATE_LOOKUPS, 0, 100),
        ("PERCEPTUAL_SIMILARITY_THRESHOLD", settings.PERCEPTUAL_SIMILARITY_THRESHOLD, 0, 100),
    ]

    for name, value, min_val, max_val in numeric_validations:
        if value < min_val or value > max_val:
            errors.append(f"{name} must be between {min_val} and {max_val}, got {value}")

    # Validate timeout values are positive
    timeout_settings = [
        ("PAGE_LOAD_TIMEOUT_MS", settings.PAGE_LOAD_TIMEOUT_MS),
        ("NETWORK_IDLE_TIMEOUT_MS", settings.NETWORK_IDLE_TIMEOUT_MS),
        ("IMAGE_LOAD_TIMEOUT_MS", settings.IMAGE_LOAD_TIMEOUT_MS),
        ("SCREENSHOT_TIMEOUT_MS", settings.SCREENSHOT_TIMEOUT_MS),
        ("IMAGE_FETCH_TIMEOUT", settings.IMAGE_FETCH_TIMEOUT),
    ]

    for name, value in timeout_settings:
        if value <= 0:
            errors.append(f"{name} must be positive, got {value}")

    # Raise all errors at once
    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)

    return True


def get_config_summary() -> dict:
    """
    Returns a summary of current configuration (without sensitive values).
    Useful for logging startup state.
    """
    # Import settings here to avoid circular imports
    from config import settings

    return {
        "pipeline": {
            "concurrent_limit": settings.CONCURRENT_LIMIT,
            "max_retries": settings.MAX_RETRIES,
            "retry_delay_ms": settings.RETRY_DELAY_MS,
            "days_old": settings.DAYS_OLD,
            "max_date_lookups": settings.MAX_DATE_LOOKUPS,
        },
        "features": {
            "duplicate_photos": settings.USE_DUPLICATE_PHOTOS,
            "person_analysis": settings.USE_PERSON_ANALYSIS,
            "missing_images": settings.USE_MISSING_IMAGES,
            "old_stories": settings.USE_OLD_STORIES,
            "perceptual_hash": settings.USE_PERCEPTUAL_HASH,
            "keep_screenshots": settings.KEEP_SCREENSHOTS,
            "slack": settings.USE_SLACK,
            "gpt_analysis": settings.USE_GPT_ANALYSIS,
            "screenshot_analysis": settings.USE_SCREENSHOT_ANALYSIS,
        },
        "database": {
            "server": settings.DB_SERVER[:20] + "..." if settings.DB_SERVER and len(settings.DB_SERVER) > 20 else settings.DB_SERVER,
            "database": settings.DB_NAME,
        },
        "slack": {
            "configured": bool(settings.SLACK_ACCESS_TOKEN),
            "channel": settings.SLACK_CHANNEL,
        },
    }
