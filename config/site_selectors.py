"""
Selector Tables and Text Patterns for Story Extraction

This module contains the per-site CSS selector table, the generic fallback
selectors, and the phrase/pattern lists used to recognise headlines and dates.
Kept apart from the extractor so the data can grow without touching logic.
"""

from dataclasses import dataclass, field
from typing import List, Tuple


@dataclass(frozen=True)
class SelectorSet:
    """CSS selectors tried, in order, to find story parts on a homepage."""
    containers: List[str] = field(default_factory=list)
    headlines: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "containers": list(self.containers),
            "headlines": list(self.headlines),
            "images": list(self.images),
        }


# =============================================================================
# Site-specific selectors, matched by hostname substring (first match wins)
# =============================================================================

SITE_SELECTORS: List[Tuple[str, SelectorSet]] = [
    ("cnn.com", SelectorSet(
        containers=[".card", ".cd__wrapper", ".container__item"],
        headlines=[".cd__headline", ".cd__headline-text", "h3 a", ".container__headline"],
        images=[".media__image", ".image__picture img", "img"],
    )),
    ("bbc.com", SelectorSet(
        containers=[".media", ".gs-c-promo", ".gel-layout__item"],
        headlines=[".media__title", ".gs-c-promo-heading__title", ".gel-trafalgar"],
        images=[".media__image img", ".gs-c-promo-image img", "img"],
    )),
    ("reuters.com", SelectorSet(
        containers=[".story-card", ".media-story-card", ".article-wrap"],
        headlines=[".story-title", ".media-story-card__headline__eqhp9", "h2 a", "h3 a"],
        images=[".story-photo img", ".media-story-card__photo__lhp2s img", "img"],
    )),
    ("apnews.com", SelectorSet(
        containers=[".CardHeadline", ".Component-root", ".card"],
        headlines=[".CardHeadline-headline", ".Component-headline", "h1", "h2", "h3"],
        images=[".Image", ".Component-image img", "img"],
    )),
    ("foxnews.com", SelectorSet(
        containers=[".article", ".content", ".story"],
        headlines=[".title a", ".headline a", "h2 a", "h3 a", ".article-title"],
        images=[".m img", ".image img", "img"],
    )),
]

# Generic fallback selectors
GENERIC_SELECTORS = SelectorSet(
    containers=[
        "article", ".article", ".story", ".card", ".post", ".item", ".entry",
        ".news-item", ".content-item", ".tile", ".teaser", ".snippet",
        ".stream-item", ".post-block", "[data-story]", ".feed-item",
        ".list-item", ".grid-item", ".carousel-item"
    ],
    headlines=[
        "h1", "h2", "h3", "h4", "h5", ".headline", ".title", ".heading",
        ".header", ".story-title", ".article-title", ".post-title",
        ".entry-title", ".news-title", ".card-title", ".item-title",
        "a[data-ga-headline]", "[data-headline]", ".link-title",
        ".teaser-headline", ".summary-title", ".content-title"
    ],
    images=[
        "img", ".image img", ".photo img", ".picture img", ".media img",
        ".thumbnail img", ".featured-image img", ".story-image img",
        ".article-image img", ".post-image img"
    ],
)

# =============================================================================
# Headline Filtering
# =============================================================================

MIN_HEADLINE_WORDS = 4
MIN_HEADLINE_CHARS = 6    # Shorter element text is skipped in favour of the next selector

# Promotional/subscription text that shows up inside story-like containers
PROMOTIONAL_PHRASES = [
    'get updates straight to your inbox',
    'subscribe to our newsletter',
    'sign up for updates',
    'follow us on',
    'join our newsletter',
    'get the latest news',
    'stay up to date',
    'never miss a story',
    'breaking news alerts',
    'daily briefing',
    'morning newsletter',
    'evening update'
]

# =============================================================================
# Article Page Date Recovery
# =============================================================================

ARTICLE_META_SELECTORS = [
    'meta[property="article:published_time"]',
    'meta[property="datePublished"]',
    'meta[name="publishdate"]',
    'meta[name="date"]',
    'meta[name="DC.date"]',
    'meta[property="article:published"]'
]

ARTICLE_DATE_CLASS_SELECTORS = [
    '.published-date', '.publish-date', '.article-date', '.story-date',
    '.date-published', '.publication-date', '.post-date', '.entry-date',
    '.byline-date', '.timestamp', '.article-time', '.publish-time',
    '[class*="publish"]', '[class*="date"]', '[class*="time"]'
]

BYLINE_SELECTORS = ['.byline', '.author', '.article-meta', '.story-meta']

MONTH_PATTERN = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)"

# Patterns searched in byline text, first match wins
BYLINE_DATE_PATTERNS = [
    MONTH_PATTERN + r"[a-z]*\s+\d{1,2},?\s*\d{2,4}\b",
    r"\d{1,2}/\d{1,2}/\d{2,4}",
    r"\d{4}-\d{1,2}-\d{1,2}",
    r"\d+\s+(?:hour|day|week|month)s?\s+ago",
]

# Patterns searched in the whole page body as a last resort
BODY_DATE_PATTERNS = [
    r"published[\s:]+([^.!?\n]{1,50}" + MONTH_PATTERN + r"[^.!?\n]{1,20})",
    r"updated[\s:]+([^.!?\n]{1,50}" + MONTH_PATTERN + r"[^.!?\n]{1,20})",
    r"\b" + MONTH_PATTERN + r"[a-z]*\s+\d{1,2},?\s*\d{4}\b",
    r"\b\d{4}-\d{2}-\d{2}\b",
    r"\b\d{1,2}/\d{1,2}/\d{4}\b",
]
