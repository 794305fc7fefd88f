"""
Media Monitor Application

This is the main entry point for the Media Monitor application.
It reads a list of news homepages, captures each one in a headless browser,
analyzes the stories on it (reused photos, stale stories, missing images),
stores the analysis when it changed since the last run, and reports changes
to Slack.
"""

import sys
import asyncio
import argparse
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from playwright.async_api import Error as PlaywrightError, async_playwright

from config import settings
from config.monitor_config import MonitorConfig
from data.database import db
from data.models import UrlOutcome
from data.protocols import AnalysisStorage
from services.ai_service import AIService
from services.analysis_service import AnalysisService
from services.pipeline import UrlProcessor
from services.screenshot_service import ScreenshotService
from services.slack_service import SlackService
from utils.exceptions import ConfigurationError, MediaMonitorError
from utils.helpers import chunk, ensure_dir_exists, read_url_list
from utils.logger import get_logger, setup_file_logging

# Set up logging
logger = get_logger(__name__)


@dataclass
class BatchSummary:
    """Totals for one run over a URL list."""
    total: int = 0
    batches: int = 0
    succeeded: int = 0
    failed: int = 0
    outcomes: List[UrlOutcome] = field(default_factory=list)


class MediaMonitor:
    """
    Main application class for the Media Monitor.

    This class runs the URL list through the per-URL pipeline in sequential
    batches of bounded size, sharing one browser across the whole run.
    """

    def __init__(
        self,
        config: Optional[MonitorConfig] = None,
        processor: Optional[UrlProcessor] = None,
        slack_service: Optional[SlackService] = None,
        storage: Optional[AnalysisStorage] = None
    ):
        """Initialize the Media Monitor and its services."""
        self.config = config or MonitorConfig.from_settings()

        self.slack_service = slack_service
        if self.slack_service is None and self.config.use_slack:
            self.slack_service = SlackService(channel=self.config.slack_channel or None)

        if processor is None:
            ai_service = None
            if self.config.use_gpt_analysis:
                ai_service = AIService(self.config)
            processor = UrlProcessor(
                self.config,
                ScreenshotService(self.config),
                AnalysisService(self.config),
                storage or db,
                notifier=self.slack_service,
                ai_service=ai_service
            )
        self.processor = processor

    async def process_urls(
        self,
        urls: List[str],
        handler: Callable[[str], Awaitable[UrlOutcome]]
    ) -> BatchSummary:
        """
        Process URLs in sequential batches of `concurrent_limit`.

        URLs within a batch run concurrently; the next batch starts only once
        every URL of the current one has settled. An exception from one URL is
        recorded as a failed outcome and never affects the others.

        Args:
            urls: URLs in input order
            handler: Coroutine function processing one URL

        Returns:
            BatchSummary: Per-URL outcomes and totals
        """
        batches = chunk(urls, self.config.concurrent_limit)
        summary = BatchSummary(total=len(urls), batches=len(batches))
        processed = 0

        for index, batch in enumerate(batches, 1):
            logger.info(f"Processing batch {index} of {len(batches)} ({len(batch)} URLs)")

            results = await asyncio.gather(*[handler(url) for url in batch], return_exceptions=True)

            for url, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.error(f"Batch error for {url}: {result}", exc_info=result)
                    result = UrlOutcome(url=url, success=False, error=str(result))
                summary.outcomes.append(result)
                if result.success:
                    summary.succeeded += 1
                else:
                    summary.failed += 1

            processed += len(batch)
            logger.info(f"Batch complete: {processed}/{len(urls)} URLs processed")

        logger.info(f"Final Results: {summary.succeeded}/{len(urls)} URLs successfully processed")
        return summary

    async def run(self, input_file: str) -> BatchSummary:
        """
        Run the monitor over every URL in a file.

        Args:
            input_file: Newline-delimited URL list

        Returns:
            BatchSummary: Totals for the run

        Raises:
            Exception: Any run-level failure (unreadable file, browser launch)
            is reported to Slack and re-raised after the browser is closed.
        """
        logger.info("Starting Web Page Analyzer...")

        try:
            urls = read_url_list(input_file)
            logger.info(f"Found {len(urls)} URLs to process")
            ensure_dir_exists(self.config.screenshot_dir)

            async with async_playwright() as playwright:
                browser = await playwright.chromium.launch(headless=True, args=settings.BROWSER_ARGS)
                try:
                    summary = await self.process_urls(
                        urls,
                        lambda url: self.processor.process_url(browser, url)
                    )
                finally:
                    try:
                        await browser.close()
                    except PlaywrightError as e:
                        logger.warning(f"Error closing browser: {e}")

            logger.info("Analysis complete!")
            return summary

        except Exception as e:
            logger.critical(f"Fatal error: {e}", exc_info=True)
            if self.slack_service is not None:
                await self.slack_service.post_error_async(str(e))
            raise


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Media Monitor - news homepage screenshot analyzer')
    parser.add_argument('urls_file', type=str, help='File with one homepage URL per line')
    parser.add_argument('--log-file', type=str, default='media_monitor.log', help='Log file path')
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO', help='Logging level')
    parser.add_argument('--no-slack', action='store_true', help='Do not post Slack notifications')
    parser.add_argument('--keep-screenshots', action='store_true', help='Keep screenshot files after processing')
    parser.add_argument('--init-db', action='store_true', help='Create the monitor tables before running')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    args = parse_arguments(argv)

    log_level = getattr(logging, args.log_level)
    setup_file_logging(args.log_file, log_level)

    logger.info("Starting Media Monitor application")

    overrides = {}
    if args.no_slack:
        overrides['use_slack'] = False
    if args.keep_screenshots:
        overrides['keep_screenshots'] = True

    try:
        config = MonitorConfig.from_settings().with_overrides(**overrides)
        settings.validate_settings(use_slack=config.use_slack)
        logger.info(f"Configuration: {settings.get_config_summary()}")

        if args.init_db:
            db.create_tables()

        monitor = MediaMonitor(config)
        summary = asyncio.run(monitor.run(args.urls_file))

        if summary.failed == 0:
            logger.info("Media Monitor completed successfully")
            exit_code = 0
        else:
            logger.warning(f"Media Monitor completed with {summary.failed} failed URLs")
            exit_code = 1

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        exit_code = 2
    except MediaMonitorError as e:
        logger.error(f"Media Monitor error: {e}", exc_info=True)
        exit_code = 2
    except Exception as e:
        logger.error(f"Unhandled exception in Media Monitor: {e}", exc_info=True)
        exit_code = 2

    logger.info(f"Media Monitor application finished with exit code {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
