"""
Service Protocol Definitions

This module defines typing.Protocol interfaces for the services the per-URL
pipeline depends on. They let the pipeline be assembled from fakes in tests
without a browser, Gemini or Slack.

Protocols defined:
- CaptureServiceProtocol: Interface for capturing a homepage and its stories
- AnalyzerProtocol: Interface for the local analysis heuristics
- CrossCheckProtocol: Interface for the optional generative cross-check
- NotifierProtocol: Interface for delivering analysis reports
"""

from typing import Protocol, Optional, List, Dict, Any, Tuple

from data.models import AnalysisResult, CaptureResult, StoryData


class CaptureServiceProtocol(Protocol):
    """Protocol defining the interface for screenshot capture services."""

    async def grab_screenshot(self, browser: Any, url: str) -> CaptureResult:
        """Capture a homepage with retries.

        Args:
            browser: The shared browser session.
            url: The homepage to capture.

        Returns:
            CaptureResult; screenshot_path is None after the final failed attempt.
        """
        ...


class AnalyzerProtocol(Protocol):
    """Protocol defining the interface for the analysis engine."""

    def find_unique_stories(self, stories: List[StoryData]) -> List[StoryData]:
        """Drop repeated (headline, image hash) pairs, keeping the first."""
        ...

    def analyze(
        self,
        url: str,
        stories: List[StoryData],
        ai_analysis: Optional[Dict[str, Any]] = None
    ) -> AnalysisResult:
        """Analyze the stories of one page.

        Args:
            url: The monitored homepage.
            stories: Hashed stories from the capture.
            ai_analysis: Decoded cross-check output, or None when it did not run.

        Returns:
            The per-URL AnalysisResult.
        """
        ...


class CrossCheckProtocol(Protocol):
    """Protocol defining the interface for the generative cross-check."""

    async def cross_check_async(
        self,
        url: str,
        stories: List[StoryData],
        screenshot_path: Optional[str] = None
    ) -> Tuple[Optional[str], Dict[str, Any]]:
        """Return the uploaded screenshot reference and the decoded model output."""
        ...


class NotifierProtocol(Protocol):
    """Protocol defining the interface for report delivery (best-effort)."""

    async def post_report_async(self, analysis: Dict[str, Any], days_old: int = 14) -> bool:
        """Post a report for an analysis; False when nothing was sent."""
        ...

    async def post_error_async(self, message: str) -> bool:
        """Post a top-level error notice."""
        ...
