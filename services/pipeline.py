"""
Per-URL Pipeline

Sequences capture -> analysis -> persistence -> metadata -> notification for
a single homepage, and releases the screenshot file and browser page exactly
once whichever way the URL finishes.
"""

import asyncio
import os
from typing import Any, Optional

from playwright.async_api import Error as PlaywrightError

from config.monitor_config import MonitorConfig
from data.models import CaptureResult, UrlOutcome
from data.protocols import AnalysisStorage
from services.protocols import AnalyzerProtocol, CaptureServiceProtocol, CrossCheckProtocol, NotifierProtocol
from utils.logger import get_logger

logger = get_logger(__name__)


class UrlProcessor:
    """Processes one URL at a time against shared collaborators."""

    def __init__(
        self,
        config: MonitorConfig,
        capture: CaptureServiceProtocol,
        analyzer: AnalyzerProtocol,
        storage: AnalysisStorage,
        notifier: Optional[NotifierProtocol] = None,
        ai_service: Optional[CrossCheckProtocol] = None
    ):
        self.config = config
        self.capture = capture
        self.analyzer = analyzer
        self.storage = storage
        self.notifier = notifier
        self.ai_service = ai_service

    async def process_url(self, browser: Any, url: str) -> UrlOutcome:
        """
        Run the whole pipeline for one URL.

        A capture that fails after every retry skips the URL and is reported
        as an unsuccessful outcome. Persistence errors propagate to the caller
        after cleanup has run.

        Args:
            browser: Shared browser session
            url: The homepage to process

        Returns:
            UrlOutcome: What happened to this URL
        """
        logger.info(f"Processing: {url}")
        capture = await self.capture.grab_screenshot(browser, url)

        if not capture.succeeded:
            logger.warning(f"Skipping {url} - screenshot failed after all retries")
            return UrlOutcome(url=url, success=False, error="Screenshot failed after all retries")

        try:
            stories = capture.stories
            unique = self.analyzer.find_unique_stories(stories)

            file_id, ai_analysis = None, None
            if self.config.use_gpt_analysis and self.ai_service is not None:
                logger.info(f"Sending {len(unique)} unique stories for AI cross-check (from {len(stories)} total)")
                file_id, ai_analysis = await self.ai_service.cross_check_async(url, unique, capture.screenshot_path)
            else:
                logger.info(f"Processing {len(unique)} unique stories locally (from {len(stories)} total)")

            result = self.analyzer.analyze(url, stories, ai_analysis)
            analysis = result.to_dict()

            saved = await asyncio.to_thread(self.storage.save_analysis, url, analysis, file_id)
            logger.info(f"Processed {url} -> File ID: {file_id}, Image ID: {saved.image_id}")

            await asyncio.to_thread(self.storage.save_image_metadata, saved.image_id, stories)

            notified = False
            if self.config.use_slack and saved.has_changes and self.notifier is not None:
                notified = await self.notifier.post_report_async(analysis, self.config.days_old)
            elif not saved.has_changes:
                logger.info(f"No changes for {url}, notification skipped")

            return UrlOutcome(
                url=url,
                success=True,
                image_id=saved.image_id,
                has_changes=saved.has_changes,
                notified=notified
            )
        finally:
            await self.release(capture)

    async def release(self, capture: CaptureResult) -> None:
        """Delete the screenshot (unless kept) and close the page; failures are only logged."""
        path = capture.screenshot_path
        if path and not self.config.keep_screenshots:
            try:
                if os.path.exists(path):
                    os.remove(path)
            except OSError as e:
                logger.warning(f"Cleanup error for {path}: {e}")

        if capture.page is not None:
            try:
                await capture.page.close()
            except PlaywrightError as e:
                logger.warning(f"Error closing page: {e}")
