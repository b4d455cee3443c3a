"""
Configuration classes for the artwork recommendation system.
"""

from dataclasses import dataclass
from typing import Any, Dict

FEATURE_DIM = 20  # Fixed by the feature vector layout; persisted models depend on it


@dataclass
class FeatureConfig:
    """Configuration for feature extraction and processing."""
    price_log_scale: float = 12.0  # ln(price + 1) is divided by this
    default_budget_ratio: float = 0.5  # Price-to-budget ratio when no budget is known
    hour_normalization: float = 24.0
    popularity_view_normalization: float = 5000.0  # Views that count as fully popular
    recent_year_threshold: int = 2024  # Artworks from this year on count as recent
    recent_score: float = 1.0
    legacy_score: float = 0.4
    medium_slots: int = 6
    genre_slots: int = 5


@dataclass
class ModelStoreConfig:
    """Configuration for per-user model caching and persistence."""
    debounce_seconds: float = 5.0  # Quiet period before a dirty model is written
    cache_ttl: int = 3600  # Local cache entry lifetime in seconds
    cache_key_prefix: str = 'bandit_model_'


@dataclass
class BanditConfig:
    """Configuration for the contextual bandit model."""
    alpha: float = 0.3  # Exploration parameter
    feature_dim: int = FEATURE_DIM
    exploration_ratio: float = 0.2  # Share of the top-N labelled as exploration
    confidence_uncertainty_weight: float = 0.1  # Uncertainty share added to confidence
    max_confidence: float = 0.99
    pivot_epsilon: float = 1e-10  # Pivots below this are skipped during inversion
    features: FeatureConfig = None
    store: ModelStoreConfig = None

    def __post_init__(self):
        """Initialize default configs if not provided."""
        if self.features is None:
            self.features = FeatureConfig()
        if self.store is None:
            self.store = ModelStoreConfig()
        if self.feature_dim != FEATURE_DIM:
            raise ValueError(f"feature_dim must be {FEATURE_DIM}, got {self.feature_dim}")

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> 'BanditConfig':
        """Build the bandit config from a settings dictionary (``Settings.model_dump()``)."""
        return cls(
            alpha=settings.get('bandit_alpha', 0.3),
            exploration_ratio=settings.get('exploration_ratio', 0.2),
            features=FeatureConfig(),
            store=ModelStoreConfig(
                debounce_seconds=settings.get('persist_debounce_seconds', 5.0),
                cache_ttl=settings.get('model_cache_ttl', 3600)
            )
        )
