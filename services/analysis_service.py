"""
Analysis Service Module

Turns the stories captured from one homepage into an AnalysisResult:
photos reused across different articles, stale stories, stories without
an image, and the de-duplicated story list. Everything here is computed
locally; the optional AI cross-check can only add person groups.
"""

from typing import Any, Dict, List, Optional

from config.monitor_config import MonitorConfig
from data.models import AnalysisResult, OldStory, StoryData
from utils.date_utils import DatedStory, find_old_stories, process_stories_with_dates
from utils.helpers import normalize_headline
from utils.logger import get_logger
from utils.perceptual_hash import find_perceptual_duplicates

logger = get_logger(__name__)


class AnalysisService:
    """Local heuristics over the stories of one captured page."""

    def __init__(self, config: Optional[MonitorConfig] = None):
        self.config = config or MonitorConfig.from_settings()

    @staticmethod
    def group_reused_photos(stories: List[StoryData]) -> List[List[str]]:
        """
        Group headlines of different articles that share one image hash.

        Stories without a hash are ignored. Within a hash bucket, a headline
        that normalises to one already present is the same article detected
        twice and is dropped. Buckets left with two or more headlines are
        returned, in order of first appearance.
        """
        buckets: Dict[str, List[str]] = {}
        seen: Dict[str, set] = {}

        for story in stories:
            if not story.hash:
                continue
            normalized = normalize_headline(story.headline)
            bucket_seen = seen.setdefault(story.hash, set())
            if normalized in bucket_seen:
                logger.debug(f"Skipping duplicate article: '{story.headline}' (same image, same story)")
                continue
            bucket_seen.add(normalized)
            buckets.setdefault(story.hash, []).append(story.headline)

        return [headlines for headlines in buckets.values() if len(headlines) > 1]

    @staticmethod
    def find_unique_stories(stories: List[StoryData]) -> List[StoryData]:
        """First occurrence of every (normalised headline, image hash) pair."""
        seen = set()
        unique = []
        for story in stories:
            key = (normalize_headline(story.headline), story.hash)
            if key in seen:
                continue
            seen.add(key)
            unique.append(story)
        return unique

    @staticmethod
    def find_missing_images(stories: List[StoryData]) -> List[Dict[str, str]]:
        return [{"headline": story.headline} for story in stories if not story.image_url]

    @staticmethod
    def format_old_stories(old: List[DatedStory]) -> List[OldStory]:
        return [
            OldStory(
                headline=dated.story.headline,
                visible_date=dated.date_info.original_text,
                age_days=dated.date_info.age_days,
            )
            for dated in old
        ]

    @staticmethod
    def merge_groups(groups: List[List[str]], extra: List[List[str]]) -> List[List[str]]:
        """Append the extra groups that no existing group already covers."""
        merged = [list(group) for group in groups]
        for group in extra:
            members = set(group)
            if any(members <= set(existing) for existing in merged):
                continue
            merged.append(list(group))
        return merged

    def extract_person_groups(self, ai_analysis: Dict[str, Any], unique_stories: List[StoryData]) -> List[List[str]]:
        """
        Group headlines the model tagged with the same person.

        Only headlines that exist among the unique stories are kept, so model
        output can never introduce stories the page did not show.
        """
        entries = ai_analysis.get("people_in_stories") if isinstance(ai_analysis, dict) else None
        if not isinstance(entries, list):
            return []

        known = {story.headline for story in unique_stories}
        people: Dict[str, List[str]] = {}
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            headline = entry.get("headline")
            person_hash = entry.get("person_hash")
            if not headline or not person_hash or headline not in known:
                continue
            people.setdefault(str(person_hash), []).append(headline)

        return [headlines for headlines in people.values() if len(headlines) > 1]

    def analyze(self, url: str, stories: List[StoryData],
                ai_analysis: Optional[Dict[str, Any]] = None) -> AnalysisResult:
        """
        Analyze the stories captured from one URL.

        Args:
            url: The monitored homepage
            stories: Hashed stories from the capture
            ai_analysis: Decoded cross-check output, or None when the
                cross-check did not run

        Returns:
            AnalysisResult: Feature lists are None for disabled features
        """
        config = self.config
        dated = process_stories_with_dates(stories)
        valid_dates = sum(1 for d in dated if d.date_info.is_valid)
        unique = self.find_unique_stories(stories)

        result = AnalysisResult(
            url=url,
            extracted_stories_count=len(stories),
            unique_stories_count=len(unique),
            duplicate_articles_filtered=len(stories) - len(unique),
            valid_dates_parsed=valid_dates,
            invalid_dates_found=len(dated) - valid_dates,
            analysis_source="hybrid" if ai_analysis is not None else "local",
        )

        if config.use_duplicate_photos:
            groups = self.group_reused_photos(stories)
            if config.use_perceptual_hash:
                groups = self.merge_groups(
                    groups,
                    find_perceptual_duplicates(stories, config.perceptual_similarity_threshold)
                )
            result.reused_photo_groups = groups
            logger.info(f"Found {len(groups)} duplicate image sets from {len(stories)} stories for {url}")

        if config.use_person_analysis:
            result.reused_person_groups = (
                self.extract_person_groups(ai_analysis, unique) if ai_analysis else []
            )

        if config.use_missing_images:
            result.missing_images = self.find_missing_images(stories)
            logger.info(f"Found {len(result.missing_images)} stories with missing images")

        if config.use_old_stories:
            result.old_stories = self.format_old_stories(find_old_stories(dated, config.days_old))
            logger.info(f"Found {len(result.old_stories)} stories older than {config.days_old} days")

        logger.info(
            f"Analysis complete for {url} ({result.analysis_source} mode): "
            f"{result.extracted_stories_count} stories, {result.unique_stories_count} unique, "
            f"{valid_dates} valid dates"
        )
        return result
