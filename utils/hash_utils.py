"""
Image Content Hashing

Downloads story images and fingerprints them. The SHA-256 of the raw bytes
identifies byte-identical images; perceptual hashes (see perceptual_hash.py)
are computed from the same download when enabled.
"""

import asyncio
import hashlib
from dataclasses import dataclass
from typing import Optional

import requests

from config import settings
from utils.exceptions import HashingError
from utils.logger import get_logger
from utils.perceptual_hash import PerceptualHash

logger = get_logger(__name__)


@dataclass
class ImageHashes:
    """Fingerprints of one downloaded image; empty strings when unavailable."""
    content_hash: str = ""
    dhash: str = ""
    ahash: str = ""


def sha256_hex(data: bytes) -> str:
    """Hex SHA-256 digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def fetch_image_bytes(url: str, timeout: Optional[int] = None) -> bytes:
    """
    Download an image.

    Args:
        url: Absolute image URL
        timeout: Seconds before giving up, defaults to IMAGE_FETCH_TIMEOUT

    Returns:
        bytes: The response body

    Raises:
        HashingError: If the request fails or the server returns an error status
    """
    try:
        response = requests.get(
            url,
            headers=settings.IMAGE_REQUEST_HEADERS,
            timeout=timeout or settings.IMAGE_FETCH_TIMEOUT
        )
        response.raise_for_status()
        return response.content
    except requests.RequestException as e:
        raise HashingError(f"Failed to fetch image {url}: {e}") from e


def hash_image_content(url: str) -> str:
    """
    SHA-256 of the image at `url`, or "" if there is no URL or the fetch fails.
    """
    if not url:
        return ""

    try:
        return sha256_hex(fetch_image_bytes(url))
    except HashingError as e:
        logger.warning(f"Error hashing image {url}: {e}")
        return ""


def hash_image(url: str, use_perceptual: bool = False) -> ImageHashes:
    """
    Download an image once and compute its content hash, plus the dHash/aHash
    pair when `use_perceptual` is set.

    Fetch failures give empty hashes. A decoding failure in the perceptual step
    keeps the content hash and leaves the perceptual hashes empty.
    """
    if not url:
        return ImageHashes()

    try:
        data = fetch_image_bytes(url)
    except HashingError as e:
        logger.warning(f"Error hashing image {url}: {e}")
        return ImageHashes()

    hashes = ImageHashes(content_hash=sha256_hex(data))
    if use_perceptual:
        try:
            hashes.dhash, hashes.ahash = PerceptualHash.generate_hashes(data)
        except HashingError as e:
            logger.warning(f"Perceptual hashing failed for {url}: {e}")
    return hashes


async def hash_image_async(url: str, use_perceptual: bool = False) -> ImageHashes:
    """Run hash_image in a worker thread so downloads don't block the event loop."""
    return await asyncio.to_thread(hash_image, url, use_perceptual)
