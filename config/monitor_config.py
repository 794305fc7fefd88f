"""
Monitor Configuration

An immutable snapshot of the pipeline settings. Each service receives one
MonitorConfig at construction instead of reading the settings module directly,
so a test or a CLI flag can change a toggle for one run without touching globals.
"""

from dataclasses import dataclass, replace
from typing import Tuple

from config import settings


@dataclass(frozen=True)
class MonitorConfig:
    """Settings consumed by the screenshot monitoring pipeline.

    Attributes:
        concurrent_limit: Number of URLs processed together in one batch.
        max_retries: Screenshot retries after the first failed attempt.
        retry_delay_ms: Delay between screenshot attempts.
        days_old: Stories older than this many days are reported as stale.
        max_date_lookups: Article pages visited to recover missing dates.
        use_duplicate_photos: Group different articles sharing one image.
        use_person_analysis: Group articles showing the same person (AI only).
        use_missing_images: Report stories without an image.
        use_old_stories: Report stale stories.
        use_perceptual_hash: Add dHash/aHash similarity to photo grouping.
        keep_screenshots: Keep screenshot files after processing.
        use_slack: Post notifications to Slack.
        use_gpt_analysis: Run the generative cross-check.
        use_screenshot_analysis: Upload the screenshot with the cross-check.
    """
    concurrent_limit: int = 3
    max_retries: int = 3
    retry_delay_ms: int = 2000
    days_old: int = 14
    max_date_lookups: int = 8
    perceptual_similarity_threshold: int = 85

    use_duplicate_photos: bool = True
    use_person_analysis: bool = False
    use_missing_images: bool = False
    use_old_stories: bool = True
    use_perceptual_hash: bool = False
    keep_screenshots: bool = False
    use_slack: bool = True
    use_gpt_analysis: bool = False
    use_screenshot_analysis: bool = False

    screenshot_dir: str = "shots"
    log_dir: str = "log"
    slack_channel: str = ""

    viewport: Tuple[int, int] = (1280, 800)
    page_load_timeout_ms: int = 45000
    network_idle_timeout_ms: int = 30000
    image_load_timeout_ms: int = 10000
    image_settle_delay_ms: int = 2000
    screenshot_timeout_ms: int = 20000
    article_page_timeout_ms: int = 12000
    return_page_timeout_ms: int = 15000

    @classmethod
    def from_settings(cls) -> "MonitorConfig":
        """Build a config from the values currently loaded in config.settings."""
        return cls(
            concurrent_limit=settings.CONCURRENT_LIMIT,
            max_retries=settings.MAX_RETRIES,
            retry_delay_ms=settings.RETRY_DELAY_MS,
            days_old=settings.DAYS_OLD,
            max_date_lookups=settings.MAX_DATE_LOOKUPS,
            perceptual_similarity_threshold=settings.PERCEPTUAL_SIMILARITY_THRESHOLD,
            use_duplicate_photos=settings.USE_DUPLICATE_PHOTOS,
            use_person_analysis=settings.USE_PERSON_ANALYSIS,
            use_missing_images=settings.USE_MISSING_IMAGES,
            use_old_stories=settings.USE_OLD_STORIES,
            use_perceptual_hash=settings.USE_PERCEPTUAL_HASH,
            keep_screenshots=settings.KEEP_SCREENSHOTS,
            use_slack=settings.USE_SLACK,
            use_gpt_analysis=settings.USE_GPT_ANALYSIS,
            use_screenshot_analysis=settings.USE_SCREENSHOT_ANALYSIS,
            screenshot_dir=str(settings.SCREENSHOT_DIR),
            log_dir=str(settings.LOG_DIR),
            slack_channel=settings.SLACK_CHANNEL,
            viewport=(settings.VIEWPORT_WIDTH, settings.VIEWPORT_HEIGHT),
            page_load_timeout_ms=settings.PAGE_LOAD_TIMEOUT_MS,
            network_idle_timeout_ms=settings.NETWORK_IDLE_TIMEOUT_MS,
            image_load_timeout_ms=settings.IMAGE_LOAD_TIMEOUT_MS,
            image_settle_delay_ms=settings.IMAGE_SETTLE_DELAY_MS,
            screenshot_timeout_ms=settings.SCREENSHOT_TIMEOUT_MS,
            article_page_timeout_ms=settings.ARTICLE_PAGE_TIMEOUT_MS,
            return_page_timeout_ms=settings.RETURN_PAGE_TIMEOUT_MS,
        )

    def with_overrides(self, **changes) -> "MonitorConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)
