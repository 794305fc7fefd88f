"""
Screenshot Capture Service

Loads a homepage in its own browser page, waits for images (including lazily
loaded ones), extracts and hashes the stories, and writes a full-page
screenshot. The whole operation is retried with a fixed delay; after the last
attempt the URL is skipped rather than failing the batch.
"""

import asyncio
import os
from typing import List, Optional

from playwright.async_api import Browser, Error as PlaywrightError, Page, Route

from config import settings
from config.monitor_config import MonitorConfig
from data.models import CaptureResult, ExtractedStory, StoryData
from services.image_loader import ensure_all_images_loaded, scroll_page
from services.story_extractor import StoryExtractor
from utils.exceptions import NavigationError, ScreenshotError
from utils.hash_utils import hash_image_async
from utils.helpers import ensure_dir_exists, safe_name
from utils.logger import get_logger

logger = get_logger(__name__)


class ScreenshotService:
    """Captures homepages and the story data visible on them."""

    def __init__(self, config: Optional[MonitorConfig] = None, extractor: Optional[StoryExtractor] = None):
        self.config = config or MonitorConfig.from_settings()
        self.extractor = extractor or StoryExtractor(self.config)

    @staticmethod
    async def _block_unneeded_resources(route: Route) -> None:
        if route.request.resource_type in settings.BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    async def open_page(self, browser: Browser) -> Page:
        """New page with the monitor's viewport, headers and resource blocking."""
        width, height = self.config.viewport
        page = await browser.new_page(viewport={"width": width, "height": height})
        try:
            await page.set_extra_http_headers({
                "Accept-Language": settings.ACCEPT_LANGUAGE,
                "Cache-Control": "no-cache",
            })
            await page.route("**/*", self._block_unneeded_resources)
        except BaseException:
            await self._close_quietly(page)
            raise
        return page

    async def load_page(self, page: Page, url: str) -> None:
        """
        Navigate with `load` semantics, falling back to `networkidle`.

        Raises:
            NavigationError: If both strategies fail
        """
        try:
            await page.goto(url, wait_until="load", timeout=self.config.page_load_timeout_ms)
            return
        except PlaywrightError as e:
            logger.warning(f"Load strategy failed for {url}, trying networkidle: {e}")

        try:
            await page.goto(url, wait_until="networkidle", timeout=self.config.network_idle_timeout_ms)
        except PlaywrightError as e:
            raise NavigationError(f"Could not load {url}: {e}") from e

    async def hash_stories(self, stories: List[ExtractedStory]) -> List[StoryData]:
        """Download and hash every story image concurrently."""
        hashes = await asyncio.gather(*[
            hash_image_async(story.image_url, self.config.use_perceptual_hash)
            for story in stories
        ])
        return [
            StoryData.from_extracted(story, hash=h.content_hash, dhash=h.dhash, ahash=h.ahash)
            for story, h in zip(stories, hashes)
            if story.headline
        ]

    async def _capture_once(self, browser: Browser, url: str, path: str) -> CaptureResult:
        page = await self.open_page(browser)
        try:
            await self.load_page(page, url)

            await ensure_all_images_loaded(page, self.config.image_load_timeout_ms, self.config.image_settle_delay_ms)
            await scroll_page(page, settings.SCROLL_STEP_PX, settings.SCROLL_INTERVAL_MS, settings.SCROLL_MAX_STEPS)
            await ensure_all_images_loaded(page, self.config.image_load_timeout_ms, self.config.image_settle_delay_ms)

            extracted = await self.extractor.extract_stories(page)
            stories = await self.hash_stories(extracted)

            logger.info(f"Taking screenshot for {url}...")
            try:
                await page.screenshot(path=path, full_page=True, timeout=self.config.screenshot_timeout_ms)
            except PlaywrightError as e:
                raise ScreenshotError(f"Screenshot failed for {url}: {e}") from e
        except BaseException:
            await self._close_quietly(page)
            raise

        return CaptureResult(screenshot_path=path, page=page, stories=stories)

    @staticmethod
    async def _close_quietly(page: Page) -> None:
        try:
            await page.close()
        except PlaywrightError as e:
            logger.debug(f"Error closing page: {e}")

    async def grab_screenshot(self, browser: Browser, url: str) -> CaptureResult:
        """
        Capture a homepage with retries.

        Args:
            browser: Shared browser instance
            url: Homepage URL

        Returns:
            CaptureResult: With an open page on success; with no path, no page
            and no stories once every attempt has failed. Never raises for
            capture errors.
        """
        ensure_dir_exists(self.config.screenshot_dir)
        path = os.path.join(self.config.screenshot_dir, safe_name(url))
        attempts = self.config.max_retries + 1

        for attempt in range(1, attempts + 1):
            try:
                result = await self._capture_once(browser, url, path)
                logger.info(f"Screenshot completed for {url} with {len(result.stories)} valid stories")
                return result
            except Exception as e:
                logger.error(f"[Attempt {attempt}] Error processing {url}: {e}")
                if attempt < attempts:
                    logger.info(
                        f"Retrying {url} in {self.config.retry_delay_ms}ms... "
                        f"({attempt}/{self.config.max_retries})"
                    )
                    await asyncio.sleep(self.config.retry_delay_ms / 1000)

        logger.error(f"Final failure for {url} after {attempts} attempts")
        return CaptureResult()
