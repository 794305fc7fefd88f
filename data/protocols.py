"""
Data Layer Protocol Definitions

This module defines typing.Protocol interfaces for data layer operations.
These protocols enable dependency injection for database operations,
making the pipeline testable without real database connections.

Protocols defined:
- AnalysisStorage: Interface for storing analyses with change detection and story metadata
"""

from typing import Protocol, Optional, List, Dict, Any

from data.models import SaveResult, StoryData


class AnalysisStorage(Protocol):
    """Protocol defining the interface for analysis persistence.

    Implementations should provide methods for:
    - Saving an analysis only when it differs from the newest stored one
    - Recording one metadata row per extracted story
    - Reading back the newest stored analysis for a URL
    """

    def save_analysis(
        self,
        url: str,
        analysis: Dict[str, Any],
        file_id: Optional[str] = None
    ) -> SaveResult:
        """Persist an analysis unless it equals the newest stored one.

        Args:
            url: The monitored page URL.
            analysis: The JSON-ready analysis dict.
            file_id: Optional uploaded screenshot reference.

        Returns:
            SaveResult with the image ID and whether anything changed.
        """
        ...

    def save_image_metadata(self, image_id: str, stories: List[StoryData]) -> int:
        """Insert one metadata row per story.

        Args:
            image_id: The image record the stories belong to.
            stories: The stories seen on the page.

        Returns:
            The number of rows written.
        """
        ...

    def get_latest_analysis(self, url: str) -> Optional[Dict[str, Any]]:
        """Return the newest stored analysis for a URL, or None."""
        ...
