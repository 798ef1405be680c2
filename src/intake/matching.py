"""
Fuzzy address matching for homeowner lookup.

Normalizes free-text addresses (case, punctuation, street-type and
directional abbreviations) and scores them with a Levenshtein ratio.
"""

import logging
import re
from typing import Iterable, Optional

from rapidfuzz.distance import Levenshtein

from .schema import Homeowner, MatchResult

logger = logging.getLogger(__name__)


DEFAULT_MIN_SIMILARITY = 0.4

# Whole-word replacements applied after lowercasing
STREET_SUFFIXES = {
    "street": "st",
    "avenue": "ave",
    "road": "rd",
    "drive": "dr",
    "court": "ct",
    "lane": "ln",
    "boulevard": "blvd",
    "way": "wy",
    "circle": "cir",
    "place": "pl",
}

DIRECTIONALS = {
    "northeast": "ne",
    "northwest": "nw",
    "southeast": "se",
    "southwest": "sw",
    "north": "n",
    "south": "s",
    "east": "e",
    "west": "w",
}

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCTUATION_RE = re.compile(r"[.,#]")
_ABBREVIATION_RE = re.compile(
    r"\b(" + "|".join(list(STREET_SUFFIXES) + list(DIRECTIONALS)) + r")\b"
)
_STREET_NUMBER_RE = re.compile(r"^\d+")


# =============================================================================
# Normalization
# =============================================================================


def _abbreviate(match: re.Match) -> str:
    word = match.group(1)
    return STREET_SUFFIXES.get(word) or DIRECTIONALS[word]


def normalize_address(address: Optional[str]) -> str:
    """
    Normalize an address for comparison.

    Examples:
        "123 Main Street"                     -> "123 main st"
        "  123, North Main Street, Apt. #5  " -> "123 n main st apt 5"
    """
    if not address:
        return ""

    normalized = address.lower().strip()
    normalized = _PUNCTUATION_RE.sub("", normalized)
    normalized = _WHITESPACE_RE.sub(" ", normalized).strip()
    return _ABBREVIATION_RE.sub(_abbreviate, normalized)


# =============================================================================
# Similarity
# =============================================================================


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character insertions, deletions or substitutions."""
    return Levenshtein.distance(a, b)


def calculate_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Similarity between two addresses, from 0.0 (unrelated) to 1.0 (identical).

    Both inputs are normalized first; the edit distance is divided by the
    longer normalized length.
    """
    s1 = normalize_address(a)
    s2 = normalize_address(b)

    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    distance = levenshtein_distance(s1, s2)
    return 1.0 - distance / max(len(s1), len(s2))


def are_addresses_similar(a: str, b: str, threshold: float = 0.85) -> bool:
    """Check whether two addresses are likely the same place."""
    return calculate_similarity(a, b) >= threshold


# =============================================================================
# Homeowner Matching
# =============================================================================


def find_matching_homeowner(
    address: Optional[str],
    candidates: Iterable[Homeowner],
    min_similarity: float = DEFAULT_MIN_SIMILARITY,
) -> Optional[MatchResult]:
    """
    Find the homeowner whose canonical address best matches a free-text address.

    Scans every candidate. On equal scores the first candidate seen wins.

    Returns:
        MatchResult, or None if the address is blank or nothing reaches
        min_similarity
    """
    if not address or not address.strip():
        logger.info("Empty address provided, skipping homeowner match")
        return None

    best: Optional[MatchResult] = None
    compared = 0

    for homeowner in candidates:
        if not homeowner.address or not homeowner.address.strip():
            continue
        compared += 1

        similarity = calculate_similarity(address, homeowner.address)
        if similarity >= 0.3:
            logger.debug(
                f"{homeowner.name}: {similarity:.0%} similar "
                f"(input={address!r}, stored={homeowner.address!r})"
            )

        if similarity >= min_similarity and (best is None or similarity > best.similarity):
            best = MatchResult(homeowner=homeowner, similarity=similarity)

    if best:
        logger.info(
            f"Best match: {best.homeowner.name} ({best.similarity:.0%} similar, "
            f"{compared} homeowners compared)"
        )
    else:
        logger.info(f"No match above {min_similarity:.0%} among {compared} homeowners")

    return best


def find_multiple_matches(
    address: Optional[str],
    candidates: Iterable[Homeowner],
    min_similarity: float = DEFAULT_MIN_SIMILARITY,
    limit: int = 5,
) -> list[MatchResult]:
    """Top matches above the threshold, highest similarity first."""
    if not address or not address.strip():
        return []

    matches = []
    for homeowner in candidates:
        if not homeowner.address or not homeowner.address.strip():
            continue
        similarity = calculate_similarity(address, homeowner.address)
        if similarity >= min_similarity:
            matches.append(MatchResult(homeowner=homeowner, similarity=similarity))

    matches.sort(key=lambda m: m.similarity, reverse=True)
    return matches[:limit]


# =============================================================================
# Helpers
# =============================================================================


def extract_street_number(address: Optional[str]) -> Optional[str]:
    """Leading street number, if any."""
    if not address:
        return None
    match = _STREET_NUMBER_RE.match(address.strip())
    return match.group(0) if match else None


def extract_street_name(address: Optional[str]) -> Optional[str]:
    """Normalized address with the street number removed."""
    normalized = normalize_address(address)
    without_number = re.sub(r"^\d+\s*", "", normalized).strip()
    return without_number or None


def get_match_quality_description(similarity: float) -> str:
    """Human-readable label for a similarity score."""
    if similarity >= 0.95:
        return "Excellent match"
    if similarity >= 0.85:
        return "Very good match"
    if similarity >= 0.70:
        return "Good match"
    if similarity >= 0.50:
        return "Fair match"
    return "Weak match"
