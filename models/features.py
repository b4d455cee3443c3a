"""
Feature extraction for the artwork contextual bandit.

Maps one candidate artwork (an ``Arm``) plus the request ``Context`` into the
fixed 20-slot feature vector consumed by the LinUCB model:

    [0]      log-scaled price
    [1]      price-to-budget ratio (clamped to 1.0, 0.5 without a budget)
    [2]      hour of day / 24
    [3]      mobile device flag
    [4..6]   palette lightness, chroma, hue
    [7..12]  one-hot medium
    [13..17] one-hot genre
    [18]     genre is one of the collector's preferred styles
    [19]     mean of popularity and recency

The slot layout is shared with every persisted model and must not change.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, FrozenSet, List, Optional, Tuple

import numpy as np

from config import FEATURE_DIM, FeatureConfig
from categories import get_default_value
from utils import (day_of_week_bucket, encode_taxonomy_slots, normalise_device,
                   parse_oklch, safe_divide, season_for_month, to_float)

logger = logging.getLogger(__name__)

PRICE_SLOT = 0
BUDGET_RATIO_SLOT = 1
HOUR_SLOT = 2
MOBILE_SLOT = 3
PALETTE_SLOT = 4
MEDIUM_SLOT = 7
GENRE_SLOT = 13
PREFERRED_STYLE_SLOT = 18
MARKET_SLOT = 19


@dataclass(frozen=True)
class Roadmap:
    """A collector's active collection roadmap."""
    title: str = ''
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    target_styles: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Context:
    """Read-only snapshot of one recommendation request."""
    user_id: str
    hour_of_day: int = 12
    day_of_week: str = 'Mon'
    season: str = 'winter'
    recent_views: Tuple[str, ...] = ()
    recent_searches: Tuple[str, ...] = ()
    budget: Optional[float] = None
    device_type: str = 'desktop'
    preferred_styles: FrozenSet[str] = frozenset()
    roadmap: Optional[Roadmap] = None

    @classmethod
    def build(cls, user_id: str, now: datetime = None, recent_views: List[str] = None,
              recent_searches: List[str] = None, budget: float = None, device_type: str = None,
              preferred_styles: List[str] = None, roadmap: Roadmap = None,
              recent_views_limit: int = 10, recent_searches_limit: int = 5) -> 'Context':
        """Assemble a context, keeping only the most recent views and searches."""
        now = now or datetime.now()
        views = list(recent_views or [])[-recent_views_limit:] if recent_views_limit > 0 else []
        searches = list(recent_searches or [])[-recent_searches_limit:] if recent_searches_limit > 0 else []
        return cls(
            user_id=user_id,
            hour_of_day=now.hour,
            day_of_week=day_of_week_bucket(now),
            season=season_for_month(now.month),
            recent_views=tuple(views),
            recent_searches=tuple(searches),
            budget=to_float(budget),
            device_type=normalise_device(device_type),
            preferred_styles=frozenset(s for s in (preferred_styles or []) if isinstance(s, str)),
            roadmap=roadmap
        )


@dataclass(frozen=True)
class Palette:
    lightness: float
    chroma: float
    hue: float


@dataclass
class Arm:
    """One recommendable artwork as seen by the bandit."""
    artwork_id: str
    medium: str = ''
    genre: str = 'Contemporary'
    price: float = 0.0
    colors: List[str] = field(default_factory=list)
    palette: Optional[Palette] = None
    artist_id: str = ''
    popularity_score: float = 0.0
    recency_score: float = 0.0


def artwork_to_arm(artwork: Any, config: FeatureConfig = None) -> Arm:
    """
    Derive an arm from a catalogue artwork.

    Popularity is views scaled into [0, 1]; recency is a step on the
    creation year. The palette triple is decoded from the primary palette
    colour and left empty when that string is not an OKLCH value.
    """
    config = config or FeatureConfig()

    triple = parse_oklch(getattr(artwork, 'palette_primary', None))
    palette = Palette(*triple) if triple else None

    views = to_float(getattr(artwork, 'views', None), 0.0)
    popularity = min(1.0, max(0.0, safe_divide(views, config.popularity_view_normalization)))

    year = to_float(getattr(artwork, 'year', None))
    recency = (config.recent_score if year is not None and year >= config.recent_year_threshold
               else config.legacy_score)

    return Arm(
        artwork_id=str(artwork.id),
        medium=getattr(artwork, 'primary_medium', None) or '',
        genre=getattr(artwork, 'style', None) or get_default_value('genre'),
        price=to_float(getattr(artwork, 'price', None), 0.0),
        colors=list(getattr(artwork, 'tags', None) or []),
        palette=palette,
        artist_id=str(getattr(artwork, 'artist_id', '') or ''),
        popularity_score=popularity,
        recency_score=recency
    )


def extract_features(arm: Arm, context: Context, config: FeatureConfig = None) -> np.ndarray:
    """
    Build the 20-slot feature vector for one arm in one context.

    Never raises: any slot whose inputs are malformed keeps its 0.0 default.
    """
    config = config or FeatureConfig()
    features = np.zeros(FEATURE_DIM)

    # Price and budget alignment
    price = to_float(getattr(arm, 'price', None))
    try:
        safe_price = max(price or 0.0, 0.0)
        features[PRICE_SLOT] = math.log(safe_price + 1.0) / config.price_log_scale
        budget = to_float(getattr(context, 'budget', None))
        if budget is not None and budget > 0:
            features[BUDGET_RATIO_SLOT] = min(1.0, safe_price / budget)
        else:
            features[BUDGET_RATIO_SLOT] = config.default_budget_ratio
    except (TypeError, ValueError, OverflowError) as e:
        logger.debug(f"Price features defaulted for arm {getattr(arm, 'artwork_id', '?')}: {e}")

    # Request timing and device
    hour = to_float(getattr(context, 'hour_of_day', None))
    if hour is not None:
        features[HOUR_SLOT] = hour / config.hour_normalization
    if getattr(context, 'device_type', None) == 'mobile':
        features[MOBILE_SLOT] = 1.0

    # Chromatic alignment
    palette = getattr(arm, 'palette', None)
    if palette is not None:
        for offset, value in enumerate((getattr(palette, 'lightness', None),
                                        getattr(palette, 'chroma', None),
                                        getattr(palette, 'hue', None))):
            number = to_float(value)
            if number is not None:
                features[PALETTE_SLOT + offset] = number

    # Taxonomy one-hots
    genre = getattr(arm, 'genre', None)
    features[MEDIUM_SLOT:MEDIUM_SLOT + config.medium_slots] = encode_taxonomy_slots(
        getattr(arm, 'medium', None), 'medium', config.medium_slots)
    features[GENRE_SLOT:GENRE_SLOT + config.genre_slots] = encode_taxonomy_slots(
        genre, 'genre', config.genre_slots)

    # Stated preference
    preferred = {s.lower() for s in (getattr(context, 'preferred_styles', None) or ())
                 if isinstance(s, str)}
    if isinstance(genre, str) and genre.lower() in preferred:
        features[PREFERRED_STYLE_SLOT] = 1.0

    # Market signal
    popularity = to_float(getattr(arm, 'popularity_score', None), 0.0)
    recency = to_float(getattr(arm, 'recency_score', None), 0.0)
    features[MARKET_SLOT] = (popularity + recency) / 2.0

    return features
