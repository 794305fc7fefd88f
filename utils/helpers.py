"""
Helper Utility Module

This module provides various helper functions used throughout the Media Monitor application.
"""

import hashlib
import json
import os
import re
from datetime import datetime
from typing import Optional, List, Any, Iterable, TypeVar
from urllib.parse import urlparse

from utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def is_valid_url(url: str) -> bool:
    """
    Check if a URL is valid.

    Args:
        url: The URL to validate

    Returns:
        bool: True if the URL is valid, False otherwise
    """
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except Exception:
        return False


def read_url_list(path: str) -> List[str]:
    """
    Read the batch input file: one URL per line.

    Blank lines and lines starting with '#' are ignored; anything that is
    not an http(s) URL is skipped with a warning.

    Args:
        path: Path to the newline-delimited URL file

    Returns:
        List[str]: URLs in file order
    """
    with open(path, "r", encoding="utf-8") as f:
        lines = [line.strip() for line in f.read().split("\n")]

    urls = []
    for line in lines:
        if not line or line.startswith("#"):
            continue
        if not is_valid_url(line):
            logger.warning(f"Skipping invalid URL in input file: {line}")
            continue
        urls.append(line)
    return urls


def chunk(items: List[T], size: int) -> List[List[T]]:
    """
    Split a list into consecutive chunks of at most `size` items.

    Args:
        items: The list to split
        size: Maximum chunk size, must be positive

    Returns:
        List[List]: The chunks, in order
    """
    if size <= 0:
        raise ValueError(f"Chunk size must be positive, got {size}")
    return [items[i:i + size] for i in range(0, len(items), size)]


def safe_name(url: str, now: Optional[datetime] = None) -> str:
    """
    Build a filesystem-safe screenshot name for a URL.

    Args:
        url: The page URL
        now: Timestamp to embed, defaults to the current time

    Returns:
        str: '<host>-<timestamp>-<sha256 prefix>.png'
    """
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:12]
    ts = re.sub(r"[:.]", "-", (now or datetime.now()).isoformat())
    host = urlparse(url).hostname or "page"
    return f"{host}-{ts}-{digest}.png"


def normalize_headline(headline: str) -> str:
    """
    Normalize a headline for comparison: lowercase, no punctuation, single spaces.

    Args:
        headline: The headline text

    Returns:
        str: The normalized headline
    """
    text = headline.lower().strip()
    text = re.sub(r"[^\w\s]", "", text)
    return re.sub(r"\s+", " ", text)


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces and trim."""
    return re.sub(r"\s+", " ", text or "").strip()


def clean_json_response(response: str) -> str:
    """
    Strip markdown fences and surrounding chatter from a model's JSON output.

    Args:
        response: Raw model output

    Returns:
        str: The substring from the first '{' to the last '}', or the trimmed text
    """
    cleaned = re.sub(r"```json\s*", "", response, flags=re.IGNORECASE)
    cleaned = re.sub(r"```\s*$", "", cleaned).strip()

    json_start = cleaned.find("{")
    json_end = cleaned.rfind("}")
    if json_start != -1 and json_end != -1 and json_end > json_start:
        cleaned = cleaned[json_start:json_end + 1]

    return cleaned


def canonical_json(value: Any) -> str:
    """
    Serialize a JSON value so that object key order does not matter.

    Args:
        value: A JSON string, or an already-decoded value

    Returns:
        str: Compact JSON with sorted keys
    """
    if isinstance(value, (str, bytes, bytearray)):
        value = json.loads(value)
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def analyses_equal(first: Any, second: Any) -> bool:
    """Structural equality of two analyses, ignoring object key order."""
    return canonical_json(first) == canonical_json(second)


def ensure_dir_exists(directory: str) -> None:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        directory: The directory path to check/create
    """
    if not os.path.exists(directory):
        os.makedirs(directory)


def count_group_members(groups: Optional[Iterable[List[str]]]) -> int:
    """Total number of headlines across a list of groups."""
    return sum(len(group) for group in (groups or []))
