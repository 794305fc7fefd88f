"""
Story Extractor Module

Finds candidate stories on a loaded news homepage. The DOM walk runs inside
the page and returns raw candidates; headline filtering and the choice of an
article's publish date happen here in Python. Stories that show no date on the
homepage can be enriched by visiting a bounded number of article pages.
"""

import json
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError, Page

from config import site_selectors
from config.monitor_config import MonitorConfig
from config.site_selectors import SelectorSet
from data.models import ExtractedStory
from utils.exceptions import ExtractionError
from utils.helpers import normalize_whitespace
from utils.logger import get_logger

logger = get_logger(__name__)

ARTICLE_SETTLE_MS = 1000
ARTICLE_VISIT_DELAY_MS = 500
MAX_DATE_TEXT_LENGTH = 100
MAX_BODY_MATCH_LENGTH = 50

BYLINE_DATE_REGEXES = [re.compile(p, re.IGNORECASE) for p in site_selectors.BYLINE_DATE_PATTERNS]
BODY_DATE_REGEXES = [re.compile(p, re.IGNORECASE) for p in site_selectors.BODY_DATE_PATTERNS]

# Resolves to a list of {headline, imageUrl, dateText, storyUrl}
EXTRACT_CANDIDATES_JS = """
({ selectors, minHeadlineChars }) => {
    const findDateNearby = (start) => {
        let current = start;
        let levels = 0;
        while (current && levels < 3) {
            for (const el of Array.from(current.querySelectorAll('*'))) {
                const texts = [
                    el.getAttribute('datetime'),
                    el.getAttribute('data-date'),
                    el.getAttribute('data-timestamp'),
                    el.getAttribute('data-time'),
                    el.getAttribute('title'),
                    el.innerText && el.innerText.trim(),
                    el.textContent && el.textContent.trim(),
                ].filter(Boolean);
                for (const text of texts) {
                    if (text.length > 2 && text.length < 100 && /\\d/.test(text)) {
                        return text.trim();
                    }
                }
            }
            current = current.parentElement;
            levels += 1;
        }
        return '';
    };

    let containers = [];
    for (const selector of selectors.containers) {
        const found = Array.from(document.querySelectorAll(selector));
        if (found.length > 0) {
            containers = found;
            break;
        }
    }

    if (containers.length === 0) {
        const found = new Set();
        document.querySelectorAll(selectors.headlines.join(', ')).forEach((headline) => {
            let parent = headline.parentElement;
            let attempts = 0;
            while (parent && attempts < 5) {
                if (parent.querySelector('img')) {
                    found.add(parent);
                    break;
                }
                parent = parent.parentElement;
                attempts += 1;
            }
        });
        containers = Array.from(found);
    }

    const candidates = [];
    containers.forEach((container) => {
        try {
            let headline = '';
            let headlineElement = null;
            for (const selector of selectors.headlines) {
                headlineElement = container.querySelector(selector);
                if (headlineElement) {
                    headline = (headlineElement.textContent || '').trim()
                        || (headlineElement.getAttribute('title') || '').trim()
                        || (headlineElement.getAttribute('aria-label') || '').trim();
                    if (!headline && headlineElement.tagName === 'A') {
                        headline = (headlineElement.innerText || '').trim();
                    }
                    if (headline && headline.length >= minHeadlineChars) {
                        break;
                    }
                }
            }
            if (!headline) {
                return;
            }

            let storyUrl = '';
            if (headlineElement && headlineElement.tagName === 'A') {
                storyUrl = headlineElement.href || '';
            } else {
                const link = container.querySelector('a[href]');
                if (link) {
                    storyUrl = link.href || '';
                }
            }

            let imageUrl = '';
            for (const selector of selectors.images) {
                const img = container.querySelector(selector);
                if (img && img.src && img.complete && img.naturalWidth > 0 && img.naturalHeight > 0) {
                    imageUrl = new URL(img.src, window.location.href).href;
                    break;
                }
            }

            candidates.push({
                headline,
                imageUrl,
                dateText: findDateNearby(headlineElement || container),
                storyUrl,
            });
        } catch (err) {
            console.warn('Skipping container:', err);
        }
    });
    return candidates;
}
"""

# Resolves to the raw date signals of an article page, most reliable first
COLLECT_DATE_SIGNALS_JS = """
({ metaSelectors, classSelectors, bylineSelectors }) => {
    const text = (el) => ((el.innerText || el.textContent || '') + '').trim();

    const jsonLd = Array.from(document.querySelectorAll('script[type="application/ld+json"]'))
        .map((script) => script.textContent || '');

    const meta = [];
    for (const selector of metaSelectors) {
        const el = document.querySelector(selector);
        const content = el && el.getAttribute('content');
        if (content) {
            meta.push(content);
        }
    }

    const times = Array.from(document.querySelectorAll('time[datetime]'))
        .map((el) => el.getAttribute('datetime'))
        .filter(Boolean);

    const classes = [];
    for (const selector of classSelectors) {
        for (const el of Array.from(document.querySelectorAll(selector)).slice(0, 20)) {
            classes.push(text(el));
        }
    }

    const bylines = [];
    for (const selector of bylineSelectors) {
        for (const el of Array.from(document.querySelectorAll(selector))) {
            bylines.push((el.textContent || '').trim());
        }
    }

    return {
        json_ld: jsonLd,
        meta,
        time: times,
        classes,
        bylines,
        body: document.body ? (document.body.textContent || '') : '',
    };
}
"""


def _looks_like_date_text(text: str) -> bool:
    return bool(text) and 2 < len(text) < MAX_DATE_TEXT_LENGTH and bool(re.search(r"\d", text))


def _find_json_ld_date(node: Any) -> Optional[str]:
    """Depth-first search for datePublished/dateCreated in decoded JSON-LD."""
    if isinstance(node, list):
        for item in node:
            found = _find_json_ld_date(item)
            if found:
                return found
        return None

    if not isinstance(node, dict):
        return None

    for key in ("datePublished", "dateCreated"):
        value = node.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()

    if "@graph" in node:
        return _find_json_ld_date(node["@graph"])
    return None


def pick_article_date(signals: Dict[str, Any]) -> str:
    """
    Choose an article's publish date from the signals collected on its page.

    Priority: JSON-LD, meta tags, <time datetime>, date-like CSS classes,
    byline patterns, then patterns over the whole body text.

    Args:
        signals: Output of COLLECT_DATE_SIGNALS_JS

    Returns:
        str: The raw date text, or "" when nothing was found
    """
    for raw in signals.get("json_ld") or []:
        try:
            found = _find_json_ld_date(json.loads(raw))
        except ValueError:
            continue
        if found:
            logger.debug(f"Found date in JSON-LD: {found}")
            return found

    for content in signals.get("meta") or []:
        if content and content.strip():
            return content.strip()

    for value in signals.get("time") or []:
        if value and value.strip():
            return value.strip()

    for text in signals.get("classes") or []:
        text = (text or "").strip()
        if _looks_like_date_text(text):
            return text

    for text in signals.get("bylines") or []:
        for regex in BYLINE_DATE_REGEXES:
            match = regex.search(text or "")
            if match:
                return match.group(0).strip()

    body = signals.get("body") or ""
    for regex in BODY_DATE_REGEXES:
        match = regex.search(body)
        if match:
            found = match.group(1) if regex.groups else match.group(0)
            if len(found) < MAX_BODY_MATCH_LENGTH:
                return found.strip()

    return ""


class StoryExtractor:
    """Heuristic story extraction over a Playwright page."""

    def __init__(self, config: Optional[MonitorConfig] = None):
        self.config = config or MonitorConfig.from_settings()

    @staticmethod
    def select_selectors(hostname: str) -> SelectorSet:
        """First site entry whose key occurs in the hostname, else the generic set."""
        hostname = (hostname or "").lower()
        for site, selectors in site_selectors.SITE_SELECTORS:
            if site in hostname:
                logger.info(f"Using site-specific selectors for {site}")
                return selectors
        return site_selectors.GENERIC_SELECTORS

    @staticmethod
    def is_likely_headline(text: str) -> bool:
        """
        Reject text that is probably not an article headline.

        A headline needs at least four words, must not be written entirely in
        capitals (section labels) and must not contain a promotional phrase.
        """
        if not text or not isinstance(text, str):
            return False

        trimmed = normalize_whitespace(text)
        if len(trimmed.split(" ")) < site_selectors.MIN_HEADLINE_WORDS:
            return False

        letters = re.sub(r"[^a-zA-Z]", "", trimmed)
        if letters and letters == letters.upper():
            return False

        lower = trimmed.lower()
        if any(phrase in lower for phrase in site_selectors.PROMOTIONAL_PHRASES):
            return False

        return True

    async def extract_stories(self, page: Page) -> List[ExtractedStory]:
        """
        Extract the stories on a loaded homepage and recover missing dates.

        Args:
            page: A page that has finished loading

        Returns:
            List[ExtractedStory]: Accepted stories in page order

        Raises:
            ExtractionError: If the page cannot be evaluated at all
        """
        hostname = urlparse(page.url).hostname or ""
        selectors = self.select_selectors(hostname)

        try:
            candidates = await page.evaluate(EXTRACT_CANDIDATES_JS, {
                "selectors": selectors.to_dict(),
                "minHeadlineChars": site_selectors.MIN_HEADLINE_CHARS,
            })
        except PlaywrightError as e:
            raise ExtractionError(f"Story extraction failed on {page.url}: {e}") from e

        stories = []
        for candidate in candidates or []:
            headline = normalize_whitespace(candidate.get("headline", ""))
            if not self.is_likely_headline(headline):
                continue
            stories.append(ExtractedStory(
                headline=headline,
                image_url=candidate.get("imageUrl") or "",
                date_text=(candidate.get("dateText") or "").strip(),
                story_url=candidate.get("storyUrl") or "",
            ))

        logger.info(f"Extracted {len(stories)} stories from {len(candidates or [])} candidates on {hostname}")

        await self.recover_missing_dates(page, stories)

        with_dates = sum(1 for s in stories if s.date_text)
        with_urls = sum(1 for s in stories if s.story_url)
        logger.info(
            f"Final extraction results: {with_dates}/{len(stories)} stories have dates, "
            f"{with_urls}/{len(stories)} have URLs"
        )
        return stories

    async def fetch_article_date(self, page: Page, story_url: str) -> str:
        """Visit one article page and return the best date text found on it."""
        await page.goto(story_url, wait_until="domcontentloaded", timeout=self.config.article_page_timeout_ms)
        await page.wait_for_timeout(ARTICLE_SETTLE_MS)
        signals = await page.evaluate(COLLECT_DATE_SIGNALS_JS, {
            "metaSelectors": site_selectors.ARTICLE_META_SELECTORS,
            "classSelectors": site_selectors.ARTICLE_DATE_CLASS_SELECTORS,
            "bylineSelectors": site_selectors.BYLINE_SELECTORS,
        })
        return pick_article_date(signals or {})

    async def recover_missing_dates(self, page: Page, stories: List[ExtractedStory]) -> int:
        """
        Fill in date_text for stories that have none by visiting their articles.

        At most `max_date_lookups` stories are visited. The page is always sent
        back to the homepage afterwards; failing to get back is only logged.

        Returns:
            int: Number of stories whose date was recovered
        """
        missing = [
            s for s in stories
            if not s.date_text.strip() or "missing" in s.date_text.lower()
        ]
        if not missing or self.config.max_date_lookups <= 0:
            return 0

        original_url = page.url
        to_check = missing[:self.config.max_date_lookups]
        logger.info(f"Visiting {len(to_check)} of {len(missing)} stories with missing dates")

        recovered = 0
        for index, story in enumerate(to_check, 1):
            if not story.story_url:
                logger.debug(f"Story {index}: no URL available")
                continue

            try:
                date_text = await self.fetch_article_date(page, story.story_url)
            except PlaywrightError as e:
                logger.warning(f"Failed to visit {story.story_url}: {e}")
                date_text = ""

            story.date_text = date_text
            if date_text:
                recovered += 1
                logger.debug(f"Recovered date '{date_text}' for '{story.headline[:50]}'")

            await page.wait_for_timeout(ARTICLE_VISIT_DELAY_MS)

        try:
            await page.goto(original_url, wait_until="domcontentloaded", timeout=self.config.return_page_timeout_ms)
        except PlaywrightError as e:
            logger.warning(f"Failed to return to original page {original_url}: {e}")

        logger.info(f"Recovered dates for {recovered}/{len(to_check)} visited stories")
        return recovered
