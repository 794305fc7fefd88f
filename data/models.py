"""
Data Models for Media Monitor Application

This module contains data classes and models used throughout the application:
stories as they move through the pipeline, the per-URL analysis summary,
and the rows written to the database.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class ExtractedStory:
    """One candidate article found on a homepage."""
    headline: str                      # Whitespace-normalised headline text
    image_url: str = ""                # Absolute image URL, or "" when no loaded image
    date_text: str = ""                # Raw date text scraped near the story
    story_url: str = ""                # Absolute link to the article


@dataclass
class StoryData:
    """An extracted story together with the hashes of its image."""
    headline: str
    image_url: str = ""
    hash: str = ""                     # SHA-256 of the image bytes, "" if unavailable
    date_text: str = ""
    story_url: str = ""
    dhash: str = ""                    # Perceptual difference hash, when enabled
    ahash: str = ""                    # Perceptual average hash, when enabled

    @classmethod
    def from_extracted(cls, story: ExtractedStory, hash: str = "",
                       dhash: str = "", ahash: str = "") -> "StoryData":
        return cls(
            headline=story.headline,
            image_url=story.image_url,
            hash=hash,
            date_text=story.date_text,
            story_url=story.story_url,
            dhash=dhash,
            ahash=ahash,
        )


@dataclass
class CaptureResult:
    """Outcome of one screenshot capture; screenshot_path is None after final failure."""
    screenshot_path: Optional[str] = None
    page: Any = None                   # Open Playwright page, closed by the caller
    stories: List[StoryData] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.screenshot_path is not None


@dataclass
class OldStory:
    """A story whose recovered publish date is older than the threshold."""
    headline: str
    visible_date: str
    age_days: int


@dataclass
class AnalysisResult:
    """Per-URL analysis summary.

    Feature-specific lists are None when the feature is disabled, and are
    then left out of the serialised form entirely.
    """
    url: str
    extracted_stories_count: int = 0
    unique_stories_count: int = 0
    duplicate_articles_filtered: int = 0
    valid_dates_parsed: int = 0
    invalid_dates_found: int = 0
    reused_photo_groups: Optional[List[List[str]]] = None
    reused_person_groups: Optional[List[List[str]]] = None
    missing_images: Optional[List[Dict[str, str]]] = None
    old_stories: Optional[List[OldStory]] = None
    analysis_source: str = "local"

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to the JSON-ready dict that is stored and reported."""
        result: Dict[str, Any] = {
            "extracted_stories_count": self.extracted_stories_count,
            "unique_stories_count": self.unique_stories_count,
            "duplicate_articles_filtered": self.duplicate_articles_filtered,
            "valid_dates_parsed": self.valid_dates_parsed,
            "invalid_dates_found": self.invalid_dates_found,
        }
        if self.reused_photo_groups is not None:
            result["reused_photo_groups"] = [list(g) for g in self.reused_photo_groups]
        if self.reused_person_groups is not None:
            result["reused_person_groups"] = [list(g) for g in self.reused_person_groups]
        if self.missing_images is not None:
            result["missing_images"] = [dict(m) for m in self.missing_images]
        if self.old_stories is not None:
            result["old_stories"] = [asdict(s) for s in self.old_stories]
        result["analysis_source"] = self.analysis_source
        result["url"] = self.url
        return result

    @property
    def has_findings(self) -> bool:
        """True when any reportable issue was found."""
        return any([
            self.reused_photo_groups,
            self.reused_person_groups,
            self.missing_images,
            self.old_stories,
        ])


@dataclass
class SaveResult:
    """Outcome of persisting one analysis."""
    image_id: str
    has_changes: bool


@dataclass
class ImageRecord:
    """Row of tbl_Images: one captured homepage."""
    image_id: str
    url: str
    file_id: Optional[str] = None      # Uploaded screenshot reference for the AI cross-check
    created_at: Optional[datetime] = None


@dataclass
class AnalysisRecord:
    """Row of tbl_Image_Analysis, linked 1:1 to an ImageRecord."""
    analysis_id: str
    image_id: str
    analysis_results: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None


@dataclass
class ImageMetadataRecord:
    """Row of tbl_Image_Metadata: one story seen on a captured homepage."""
    metadata_id: str
    image_id: str
    headline: str
    image_hash: str = ""
    image_url: str = ""
    date_text: Optional[str] = None
    story_url: Optional[str] = None

    @classmethod
    def from_story(cls, metadata_id: str, image_id: str, story: StoryData) -> "ImageMetadataRecord":
        return cls(
            metadata_id=metadata_id,
            image_id=str(image_id),
            headline=str(story.headline),
            image_hash=str(story.hash or ""),
            image_url=str(story.image_url or ""),
            date_text=str(story.date_text) if story.date_text else None,
            story_url=str(story.story_url) if story.story_url else None,
        )


@dataclass
class UrlOutcome:
    """Result of processing one URL in a batch."""
    url: str
    success: bool
    image_id: Optional[str] = None
    has_changes: bool = False
    notified: bool = False
    error: Optional[str] = None
