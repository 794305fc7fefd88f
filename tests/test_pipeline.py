"""
Tests for the Per-URL Pipeline

Tests the capture -> analysis -> persistence -> notification sequence of
UrlProcessor, and that the screenshot file and page are always released.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from playwright.async_api import Error as PlaywrightError

from data.models import CaptureResult, SaveResult
from services.analysis_service import AnalysisService
from services.pipeline import UrlProcessor
from utils.exceptions import QueryError

URL = "https://www.example.com/"


@pytest.fixture
def screenshot_file(tmp_path):
    path = tmp_path / "www.example.com-shot.png"
    path.write_bytes(b"\x89PNG")
    return str(path)


@pytest.fixture
def capture_service(screenshot_file, mock_page, story_factory):
    """Capture service stub returning one successful capture."""
    service = MagicMock()
    service.grab_screenshot = AsyncMock(return_value=CaptureResult(
        screenshot_path=screenshot_file,
        page=mock_page,
        stories=[
            story_factory("Mayor opens new downtown transit hub", hash="h1"),
            story_factory("Transit hub draws crowds on opening day", hash="h1"),
        ],
    ))
    return service


@pytest.fixture
def storage():
    """Storage stub reporting a changed analysis."""
    stub = MagicMock()
    stub.save_analysis.return_value = SaveResult(image_id="image-1", has_changes=True)
    stub.save_image_metadata.return_value = 2
    return stub


@pytest.fixture
def notifier():
    stub = MagicMock()
    stub.post_report_async = AsyncMock(return_value=True)
    stub.post_error_async = AsyncMock(return_value=True)
    return stub


@pytest.fixture
def processor(monitor_config, capture_service, storage, notifier):
    return UrlProcessor(monitor_config, capture_service, AnalysisService(monitor_config), storage, notifier=notifier)


class TestProcessUrl:
    """Tests for UrlProcessor.process_url."""

    @pytest.mark.asyncio
    async def test_changed_analysis_is_saved_and_reported(self, processor, storage, notifier, mock_browser):
        """A new analysis is stored, its stories recorded and a report posted."""
        outcome = await processor.process_url(mock_browser, URL)

        assert outcome.success is True
        assert outcome.image_id == "image-1"
        assert outcome.has_changes is True
        assert outcome.notified is True

        url, analysis, file_id = storage.save_analysis.call_args.args
        assert url == URL
        assert file_id is None
        assert analysis["reused_photo_groups"] == [[
            "Mayor opens new downtown transit hub",
            "Transit hub draws crowds on opening day",
        ]]
        image_id, stories = storage.save_image_metadata.call_args.args
        assert image_id == "image-1"
        assert len(stories) == 2
        notifier.post_report_async.assert_awaited_once_with(analysis, 14)

    @pytest.mark.asyncio
    async def test_unchanged_analysis_is_not_reported(self, processor, storage, notifier, mock_browser):
        """No notification is sent when the stored analysis is unchanged."""
        storage.save_analysis.return_value = SaveResult(image_id="image-0", has_changes=False)

        outcome = await processor.process_url(mock_browser, URL)

        assert outcome.success is True
        assert outcome.has_changes is False
        assert outcome.notified is False
        storage.save_image_metadata.assert_called_once()
        notifier.post_report_async.assert_not_called()

    @pytest.mark.asyncio
    async def test_slack_disabled(self, monitor_config, capture_service, storage, notifier, mock_browser):
        """Nothing is posted when Slack is turned off."""
        config = monitor_config.with_overrides(use_slack=False)
        processor = UrlProcessor(config, capture_service, AnalysisService(config), storage, notifier=notifier)

        outcome = await processor.process_url(mock_browser, URL)

        assert outcome.notified is False
        notifier.post_report_async.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_capture_skips_url(self, processor, capture_service, storage, notifier, mock_browser):
        """A capture that failed every retry yields an unsuccessful outcome."""
        capture_service.grab_screenshot.return_value = CaptureResult()

        outcome = await processor.process_url(mock_browser, URL)

        assert outcome.success is False
        assert outcome.error == "Screenshot failed after all retries"
        storage.save_analysis.assert_not_called()
        notifier.post_report_async.assert_not_called()

    @pytest.mark.asyncio
    async def test_cross_check_adds_file_id(self, monitor_config, capture_service, storage, mock_browser, screenshot_file):
        """With the cross-check on, its file reference is stored and the source is hybrid."""
        config = monitor_config.with_overrides(use_gpt_analysis=True, use_slack=False)
        ai_service = MagicMock()
        ai_service.cross_check_async = AsyncMock(return_value=("files/abc123", {}))
        processor = UrlProcessor(config, capture_service, AnalysisService(config), storage, ai_service=ai_service)

        await processor.process_url(mock_browser, URL)

        unique_stories = ai_service.cross_check_async.call_args.args[1]
        assert len(unique_stories) == 2
        assert ai_service.cross_check_async.call_args.args[2] == screenshot_file
        _, analysis, file_id = storage.save_analysis.call_args.args
        assert file_id == "files/abc123"
        assert analysis["analysis_source"] == "hybrid"


class TestRelease:
    """Tests for releasing the screenshot file and page."""

    @pytest.mark.asyncio
    async def test_file_deleted_and_page_closed(self, processor, mock_browser, mock_page, screenshot_file):
        """Both resources are released after a successful URL."""
        await processor.process_url(mock_browser, URL)

        assert not os.path.exists(screenshot_file)
        mock_page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_released_when_persistence_fails(self, processor, storage, mock_browser, mock_page, screenshot_file):
        """A database error propagates, but only after cleanup ran."""
        storage.save_analysis.side_effect = QueryError("deadlock")

        with pytest.raises(QueryError):
            await processor.process_url(mock_browser, URL)

        assert not os.path.exists(screenshot_file)
        mock_page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_keep_screenshots(self, monitor_config, capture_service, storage, mock_browser, mock_page, screenshot_file):
        """Screenshots survive when keep_screenshots is set; the page is still closed."""
        config = monitor_config.with_overrides(keep_screenshots=True)
        processor = UrlProcessor(config, capture_service, AnalysisService(config), storage)

        await processor.process_url(mock_browser, URL)

        assert os.path.exists(screenshot_file)
        mock_page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_release_errors_are_only_logged(self, processor, mock_page, tmp_path):
        """A missing file and a page that fails to close do not raise."""
        mock_page.close.side_effect = PlaywrightError("Target page has been closed")

        await processor.release(CaptureResult(screenshot_path=str(tmp_path / "gone.png"), page=mock_page))

        mock_page.close.assert_awaited_once()
