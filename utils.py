"""
Utility Functions for the Artwork Recommendation System

Contains helper functions for data processing, encoding, and feature engineering.
"""

import math
import re
from datetime import datetime
from typing import List, Optional, Tuple

from categories import get_categories, taxonomy_index

# Matches "oklch(62% 0.19 41)" as well as the bare "62% 0.19 41"
OKLCH_PATTERN = re.compile(
    r'^\s*(?:oklch\(\s*)?(\d+(?:\.\d+)?)%\s+(\d+(?:\.\d+)?)\s+(\d+(?:\.\d+)?)\s*\)?\s*$',
    re.IGNORECASE
)


def to_float(value, default: Optional[float] = None) -> Optional[float]:
    """
    Coerce a loosely typed value to a finite float.

    Returns:
        The float value, or ``default`` for None, blanks, text and non-finite numbers
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if text in ('', 'None', 'null'):
            return default
        try:
            number = float(text)
        except ValueError:
            return default
    if not math.isfinite(number):
        return default
    return number


def encode_taxonomy_slots(value: str, category_name: str, n_slots: int) -> List[float]:
    """
    One-hot encode a label over the first ``n_slots`` entries of a taxonomy.

    Unknown labels, and labels that sit beyond the slot count, leave every
    slot at zero.

    Example:
        >>> encode_taxonomy_slots('digital', 'medium', 6)
        [0.0, 0.0, 1.0, 0.0, 0.0, 0.0]
    """
    features = [0.0] * n_slots
    index = taxonomy_index(category_name, value)
    if 0 <= index < n_slots:
        features[index] = 1.0
    return features


def parse_oklch(color: str) -> Optional[Tuple[float, float, float]]:
    """
    Decode a perceptual colour string into a (lightness, chroma, hue) triple.

    Lightness is scaled from percent to [0, 1] and hue from degrees to [0, 1].

    Returns:
        The triple, or None when the string does not match ``L% C H``
    """
    if not isinstance(color, str):
        return None
    match = OKLCH_PATTERN.match(color)
    if not match:
        return None
    lightness, chroma, hue = (float(group) for group in match.groups())
    return lightness / 100.0, chroma, hue / 360.0


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safely divide two numbers, returning default if denominator is zero."""
    if denominator == 0:
        return default
    return numerator / denominator


def season_for_month(month: int) -> str:
    """Map a calendar month (1-12) to a season bucket."""
    seasons = get_categories('season')
    if month in (12, 1, 2):
        return seasons[0]
    if month in (3, 4, 5):
        return seasons[1]
    if month in (6, 7, 8):
        return seasons[2]
    return seasons[3]


def day_of_week_bucket(moment: datetime) -> str:
    """Short day name for a timestamp, independent of locale."""
    return get_categories('day_of_week')[moment.weekday()]


def normalise_device(device: Optional[str]) -> str:
    """Lower-case a device label, falling back to desktop for unknown values."""
    if isinstance(device, str) and device.strip().lower() in get_categories('device'):
        return device.strip().lower()
    return 'desktop'


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(math.floor(value + 0.5))
