"""
Date Heuristics Module

Parses the loosely formatted date strings scraped from news pages
("3 hours ago", "Tuesday", "Oct 5, 2025", "05.10.2025", an ISO timestamp...)
into a datetime and computes the story's age in days.

A parsed date only counts when it falls between two years ago and one week
from today; everything else is reported as invalid rather than raising.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, List, Optional

from dateutil import parser as dtparser
from dateutil.relativedelta import relativedelta

from utils.logger import get_logger

logger = get_logger(__name__)

MAX_PAST_YEARS = 2
MAX_FUTURE_DAYS = 7
TWO_DIGIT_YEAR_PIVOT = 30
TWO_DIGIT_YEAR_CEILING = 2050

DAY_NAMES = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']

RELATIVE_PATTERN = re.compile(r"(\d+)\s+(hour|hours|hr|hrs|day|days|week|weeks|month|months)\s+ago")

# Date-shaped substrings, in priority order
DATE_EXTRACTION_PATTERNS = [
    re.compile(r"\b\d{4}-\d{1,2}-\d{1,2}\b"),                  # YYYY-MM-DD
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{2,4}\b"),                # MM/DD/YYYY or MM/DD/YY
    re.compile(r"\b\d{1,2}\.\d{1,2}\.\d{2,4}\b"),              # DD.MM.YYYY
    re.compile(r"\b\d{1,2}-\d{1,2}-\d{2,4}\b"),                # MM-DD-YYYY
    re.compile(r"\b(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\s+\d{1,2}(?:,\s*|\s+)\d{2,4}\b", re.IGNORECASE),
    re.compile(r"\b\d{1,2}\s+(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\s+\d{2,4}\b", re.IGNORECASE),
]

EUROPEAN_DOT_DATE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
US_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
US_SLASH_SHORT_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2})$")
DAY_FIRST_DASH_DATE = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
TWO_DIGIT_YEAR_SUFFIX = re.compile(r"(?<!\d)\d{1,2}[/.\-]\d{1,2}[/.\-]\d{2}$")
BARE_TIME = re.compile(r"^\d{1,2}(:\d{2}){0,2}\s*(am|pm)?$", re.IGNORECASE)


@dataclass
class ParsedDateResult:
    """Outcome of parsing one scraped date string."""
    original_text: str
    parsed_date: Optional[datetime]
    age_days: Optional[int]
    is_valid: bool
    error: Optional[str] = None


@dataclass
class DatedStory:
    """A story paired with the result of parsing its date text."""
    story: Any
    date_info: ParsedDateResult


def get_today_date() -> datetime:
    """Today's date at midnight, used for every comparison."""
    now = datetime.now()
    return datetime(now.year, now.month, now.day)


def calculate_days_difference(first: datetime, second: datetime) -> int:
    """Whole days between two datetimes, regardless of order."""
    return abs(second - first) // timedelta(days=1)


def _is_within_window(date: datetime, today: datetime) -> bool:
    earliest = today - relativedelta(years=MAX_PAST_YEARS)
    latest = today + timedelta(days=MAX_FUTURE_DAYS)
    return earliest <= date <= latest


def validate_parsed_date(date: datetime, attempt: str, today: Optional[datetime] = None) -> Optional[datetime]:
    """
    Apply the acceptance window to a parsed date.

    A two-digit year read as later than 2050 is moved back one century and
    accepted if that lands inside the window.

    Args:
        date: The parsed date
        attempt: The text the date was parsed from
        today: Reference date, defaults to today at midnight

    Returns:
        Optional[datetime]: The accepted date, or None
    """
    today = today or get_today_date()
    if _is_within_window(date, today):
        return date

    if TWO_DIGIT_YEAR_SUFFIX.search(attempt.strip()) and date.year > TWO_DIGIT_YEAR_CEILING:
        try:
            adjusted = date.replace(year=date.year - 100)
        except ValueError:
            return None
        if _is_within_window(adjusted, today):
            return adjusted

    return None


def _expand_two_digit_year(match: re.Match) -> str:
    month, day, year = match.group(1), match.group(2), match.group(3)
    full_year = f"19{year}" if int(year) > TWO_DIGIT_YEAR_PIVOT else f"20{year}"
    return f"{full_year}-{month.zfill(2)}-{day.zfill(2)}"


def _generic_parse(text: str, today: datetime) -> Optional[datetime]:
    """Parse with dateutil; None for text that carries no usable date."""
    text = text.strip()
    if not text or not re.search(r"\d", text) or BARE_TIME.match(text):
        return None

    try:
        parsed = dtparser.parse(text, default=today, dayfirst=bool(EUROPEAN_DOT_DATE.match(text)))
    except (ValueError, OverflowError, TypeError):
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _build_parse_attempts(date_text: str) -> List[str]:
    original = date_text.strip()
    extracted = original
    for pattern in DATE_EXTRACTION_PATTERNS:
        match = pattern.search(original)
        if match:
            extracted = match.group(0)
            logger.debug(f"Extracted date portion: '{extracted}' from '{date_text}'")
            break

    attempts = [
        extracted,
        EUROPEAN_DOT_DATE.sub(r"\3-\2-\1", extracted),
        US_SLASH_DATE.sub(r"\3-\1-\2", extracted),
        US_SLASH_SHORT_DATE.sub(_expand_two_digit_year, extracted),
        DAY_FIRST_DASH_DATE.sub(r"\3-\2-\1", extracted),
        original,
    ]

    unique_attempts = []
    for attempt in attempts:
        if attempt and attempt not in unique_attempts:
            unique_attempts.append(attempt)
    return unique_attempts


def parse_news_date(date_text: str, today: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parse the date formats commonly found on news websites.

    Args:
        date_text: Raw scraped text
        today: Reference date, defaults to today at midnight

    Returns:
        Optional[datetime]: The parsed date, or None if nothing valid was found
    """
    if not date_text or not isinstance(date_text, str):
        return None

    today = today or get_today_date()
    clean_text = date_text.strip().lower()

    if clean_text == 'today':
        return today

    if clean_text == 'yesterday':
        return today - timedelta(days=1)

    relative_match = RELATIVE_PATTERN.search(clean_text)
    if relative_match:
        amount = int(relative_match.group(1))
        unit = relative_match.group(2)
        if unit.startswith('hour') or unit.startswith('hr'):
            date = today - timedelta(hours=amount)
        elif unit.startswith('day'):
            date = today - timedelta(days=amount)
        elif unit.startswith('week'):
            date = today - timedelta(weeks=amount)
        else:
            date = today - relativedelta(months=amount)
        logger.debug(f"Parsed relative date '{date_text}': {date.date()}")
        return validate_parsed_date(date, clean_text, today)

    if clean_text in DAY_NAMES:
        # Most recent past occurrence; today's own name means a week ago
        difference = (today.weekday() - DAY_NAMES.index(clean_text)) % 7 or 7
        return today - timedelta(days=difference)

    for attempt in _build_parse_attempts(date_text):
        parsed = _generic_parse(attempt, today)
        if parsed is None:
            continue
        accepted = validate_parsed_date(parsed, attempt, today)
        if accepted is not None:
            logger.debug(f"Parsed '{date_text}' as {accepted.date()}")
            return accepted
        logger.debug(f"Rejected out-of-range date {parsed.date()} from '{attempt}'")

    logger.debug(f"Failed to parse date: '{date_text}'")
    return None


def parse_date_and_calculate_age(date_text: str, today: Optional[datetime] = None) -> ParsedDateResult:
    """
    Parse date text and calculate its age in days.

    Args:
        date_text: Raw scraped text
        today: Reference date, defaults to today at midnight

    Returns:
        ParsedDateResult: Never raises; failures are reported through is_valid/error
    """
    try:
        today = today or get_today_date()
        parsed_date = parse_news_date(date_text, today)

        if parsed_date is None:
            return ParsedDateResult(
                original_text=date_text,
                parsed_date=None,
                age_days=None,
                is_valid=False,
                error='Could not parse date'
            )

        return ParsedDateResult(
            original_text=date_text,
            parsed_date=parsed_date,
            age_days=calculate_days_difference(parsed_date, today),
            is_valid=True
        )
    except Exception as e:
        logger.warning(f"Unexpected error parsing date '{date_text}': {e}")
        return ParsedDateResult(
            original_text=date_text,
            parsed_date=None,
            age_days=None,
            is_valid=False,
            error=str(e)
        )


def process_stories_with_dates(stories: List[Any], today: Optional[datetime] = None) -> List[DatedStory]:
    """Pair every story (anything with a date_text attribute) with its parsed date."""
    return [
        DatedStory(story=story, date_info=parse_date_and_calculate_age(story.date_text, today))
        for story in stories
    ]


def find_old_stories(dated_stories: List[DatedStory], max_age_days: int) -> List[DatedStory]:
    """Stories with a valid date older than max_age_days."""
    return [
        dated for dated in dated_stories
        if dated.date_info.is_valid
        and dated.date_info.age_days is not None
        and dated.date_info.age_days > max_age_days
    ]
