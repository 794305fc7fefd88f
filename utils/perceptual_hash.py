"""
Perceptual Image Hashing

Difference hash (dHash) and average hash (aHash) over a 9x8 greyscale
thumbnail. Both are 64-bit fingerprints written as 16 hex characters; two
images are compared by the share of matching bits, so re-encoded or resized
copies of one photo still come out as similar.
"""

from io import BytesIO
from typing import Dict, List, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from utils.exceptions import HashingError
from utils.helpers import normalize_headline
from utils.logger import get_logger

logger = get_logger(__name__)

HASH_SIZE = 8      # 8x8 bits per hash
RESIZE_WIDTH = 9   # one extra column for the horizontal dHash comparisons

PAIR_SIMILARITY_THRESHOLD = 75


def _bits_to_hex(bits: Sequence[int]) -> str:
    return "".join(
        format(bits[i] * 8 + bits[i + 1] * 4 + bits[i + 2] * 2 + bits[i + 3], "x")
        for i in range(0, len(bits), 4)
    )


class PerceptualHash:
    """Static helpers for generating and comparing perceptual hashes."""

    @staticmethod
    def preprocess(image_bytes: bytes) -> List[List[int]]:
        """
        Decode an image and reduce it to an 8-row, 9-column greyscale grid.

        Args:
            image_bytes: Encoded image in any format Pillow can read

        Returns:
            List[List[int]]: Rows of 0-255 brightness values

        Raises:
            HashingError: If the bytes cannot be decoded
        """
        try:
            with Image.open(BytesIO(image_bytes)) as img:
                thumb = img.convert("L").resize((RESIZE_WIDTH, HASH_SIZE), Image.Resampling.NEAREST)
                pixels = thumb.tobytes()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise HashingError(f"Could not decode image for perceptual hashing: {e}") from e

        return [
            list(pixels[row * RESIZE_WIDTH:(row + 1) * RESIZE_WIDTH])
            for row in range(HASH_SIZE)
        ]

    @staticmethod
    def generate_dhash(grid: List[List[int]]) -> str:
        """One bit per horizontal neighbour pair: 1 when the left pixel is brighter."""
        bits = [
            1 if grid[y][x] > grid[y][x + 1] else 0
            for y in range(HASH_SIZE)
            for x in range(HASH_SIZE)
        ]
        return _bits_to_hex(bits)

    @staticmethod
    def generate_ahash(grid: List[List[int]]) -> str:
        """One bit per pixel of the left 8x8 block: 1 when above the block's mean."""
        values = [grid[y][x] for y in range(HASH_SIZE) for x in range(HASH_SIZE)]
        average = sum(values) / len(values)
        return _bits_to_hex([1 if value > average else 0 for value in values])

    @classmethod
    def generate_hashes(cls, image_bytes: bytes) -> Tuple[str, str]:
        """Return (dhash, ahash) for encoded image bytes."""
        grid = cls.preprocess(image_bytes)
        return cls.generate_dhash(grid), cls.generate_ahash(grid)

    @staticmethod
    def hamming_distance(hash1: str, hash2: str) -> float:
        """Number of differing bits; infinite when the hashes differ in length."""
        if len(hash1) != len(hash2):
            return float("inf")
        return sum(bin(int(a, 16) ^ int(b, 16)).count("1") for a, b in zip(hash1, hash2))

    @classmethod
    def calculate_similarity(cls, hash1: str, hash2: str) -> float:
        """Similarity as a percentage in [0, 100]."""
        if not hash1 or not hash2:
            return 0.0
        max_distance = len(hash1) * 4
        similarity = (max_distance - cls.hamming_distance(hash1, hash2)) / max_distance * 100
        return max(0.0, min(100.0, similarity))

    @classmethod
    def are_similar(cls, first: Dict[str, str], second: Dict[str, str],
                    threshold: float = PAIR_SIMILARITY_THRESHOLD) -> Dict[str, float]:
        """
        Compare two {'dhash', 'ahash'} pairs.

        Returns:
            dict: 'similar' (bool), 'dhash_similarity', 'ahash_similarity'
            and 'max_similarity'; the better of the two hashes decides.
        """
        dhash_similarity = cls.calculate_similarity(first.get("dhash", ""), second.get("dhash", ""))
        ahash_similarity = cls.calculate_similarity(first.get("ahash", ""), second.get("ahash", ""))
        max_similarity = max(dhash_similarity, ahash_similarity)
        return {
            "similar": max_similarity >= threshold,
            "dhash_similarity": dhash_similarity,
            "ahash_similarity": ahash_similarity,
            "max_similarity": max_similarity,
        }


def find_perceptual_duplicates(stories: Sequence, threshold: float = 85) -> List[List[str]]:
    """
    Group headlines whose images look alike.

    Each story still unassigned starts a group and collects every later
    story that is similar at `threshold` and whose normalised headline is
    not yet in the group. Stories without both perceptual hashes are
    ignored. Only groups of two or more headlines are returned.

    Args:
        stories: Objects with headline, dhash and ahash attributes
        threshold: Minimum similarity percentage

    Returns:
        List[List[str]]: Headline groups, in page order
    """
    hashed = [s for s in stories if s.dhash and s.ahash]
    normalized = [normalize_headline(s.headline) for s in hashed]
    processed = set()
    groups = []

    for i, story in enumerate(hashed):
        if i in processed:
            continue

        group = [story.headline]
        members = [i]
        seen = {normalized[i]}
        for j in range(i + 1, len(hashed)):
            if j in processed:
                continue
            comparison = PerceptualHash.are_similar(
                {"dhash": story.dhash, "ahash": story.ahash},
                {"dhash": hashed[j].dhash, "ahash": hashed[j].ahash},
                threshold
            )
            if comparison["similar"] and normalized[j] not in seen:
                group.append(hashed[j].headline)
                members.append(j)
                seen.add(normalized[j])
                logger.debug(
                    f"Perceptual match ({comparison['max_similarity']:.1f}%): "
                    f"'{story.headline[:40]}' ~ '{hashed[j].headline[:40]}'"
                )

        if len(group) > 1:
            groups.append(group)
        processed.update(members)

    logger.info(f"Perceptual grouping: {len(hashed)} hashed images, {len(groups)} groups")
    return groups
