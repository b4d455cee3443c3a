"""
Contextual Bandit Model for Artwork Recommendations

Implements a per-user LinUCB (Linear Upper Confidence Bound) model: each
collector owns one ridge-regression state, candidate artworks are scored by
expected reward plus an exploration bonus, and the state is updated online
from feedback.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from config import FEATURE_DIM, BanditConfig
from categories import get_action_reward
from models.features import Arm, Context, extract_features
from models.linear_algebra import (PIVOT_EPSILON, add_matrix, add_vector, dot, identity,
                                   invert, multiply_matrix_vector, outer_product,
                                   quadratic_form)
from utils import round_half_up

logger = logging.getLogger(__name__)


class ModelStateError(ValueError):
    """Raised when serialized model state cannot be turned into a UserModel."""


@dataclass
class UserModel:
    """
    Ridge-regression state of one collector.

    ``A`` starts at the identity and only ever gains outer products, so it
    stays symmetric positive-definite. ``theta`` and ``A_inverse`` are always
    recomputed together from the latest ``A`` and ``b``.
    """
    A: np.ndarray
    b: np.ndarray
    theta: np.ndarray
    A_inverse: np.ndarray
    update_count: int = 0

    @classmethod
    def identity(cls, dim: int = FEATURE_DIM) -> 'UserModel':
        return cls(
            A=identity(dim),
            b=np.zeros(dim),
            theta=np.zeros(dim),
            A_inverse=identity(dim)
        )

    @property
    def dim(self) -> int:
        return self.b.shape[0]

    def apply_feedback(self, features: np.ndarray, reward: float,
                       pivot_epsilon: float = PIVOT_EPSILON):
        """
        Online ridge update with one observation.

        Args:
            features: Feature vector the reward was observed for
            reward: Observed reward
            pivot_epsilon: Pivot threshold for the inversion
        """
        x = np.asarray(features, dtype=float)
        if x.shape != (self.dim,):
            raise ValueError(f"Expected feature vector of length {self.dim}, got shape {x.shape}")
        if not math.isfinite(reward):
            raise ValueError(f"Reward must be finite, got {reward}")

        self.A = add_matrix(self.A, outer_product(x, x))
        self.b = add_vector(self.b, reward * x)
        self.A_inverse = invert(self.A, pivot_epsilon)
        self.theta = multiply_matrix_vector(self.A_inverse, self.b)
        self.update_count += 1

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form shared by the local cache and the durable store."""
        return {
            'A': self.A.tolist(),
            'b': self.b.tolist(),
            'theta': self.theta.tolist(),
            'AInverse': self.A_inverse.tolist(),
            'updateCount': self.update_count
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], dim: int = FEATURE_DIM,
                  pivot_epsilon: float = PIVOT_EPSILON) -> 'UserModel':
        """
        Rebuild a model from its serialized form.

        A missing ``theta`` or ``AInverse`` is recomputed from ``A`` and ``b``.

        Raises:
            ModelStateError: If the data is not a well-formed model of size ``dim``
        """
        if not isinstance(data, dict):
            raise ModelStateError(f"Model state must be a mapping, got {type(data).__name__}")

        A = _as_array(data.get('A'), (dim, dim), 'A')
        b = _as_array(data.get('b'), (dim,), 'b')

        if data.get('AInverse') is None or data.get('theta') is None:
            A_inverse = invert(A, pivot_epsilon)
            theta = multiply_matrix_vector(A_inverse, b)
        else:
            A_inverse = _as_array(data.get('AInverse'), (dim, dim), 'AInverse')
            theta = _as_array(data.get('theta'), (dim,), 'theta')

        try:
            update_count = int(data.get('updateCount', 0) or 0)
        except (TypeError, ValueError):
            update_count = 0

        return cls(A=A, b=b, theta=theta, A_inverse=A_inverse, update_count=update_count)


def _as_array(value: Any, shape: tuple, name: str) -> np.ndarray:
    if value is None:
        raise ModelStateError(f"Model state is missing '{name}'")
    try:
        array = np.array(value, dtype=float)
    except (TypeError, ValueError) as e:
        raise ModelStateError(f"Model field '{name}' is not numeric: {e}")
    if array.shape != shape:
        raise ModelStateError(f"Model field '{name}' has shape {array.shape}, expected {shape}")
    if not np.all(np.isfinite(array)):
        raise ModelStateError(f"Model field '{name}' contains non-finite values")
    return array


@dataclass
class ArmScore:
    artwork_id: str
    expected_reward: float
    uncertainty: float
    ucb_score: float


@dataclass
class Recommendation:
    """One ranked artwork returned to the caller."""
    artwork_id: str
    confidence: float
    reason: str
    expected_reward: float
    uncertainty: float
    explanation: str = ''
    artwork: Optional[Any] = field(default=None, repr=False)

    @property
    def match_confidence(self) -> int:
        """Confidence as a rounded 0-100 percentage."""
        return round_half_up(self.confidence * 100)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'artwork_id': self.artwork_id,
            'confidence': self.confidence,
            'reason': self.reason,
            'explanation': self.explanation,
            'expected_reward': self.expected_reward,
            'uncertainty': self.uncertainty,
            'match_confidence': self.match_confidence
        }
        if self.artwork is not None:
            to_dict = getattr(self.artwork, 'to_dict', None)
            result['artwork'] = to_dict() if callable(to_dict) else self.artwork
        return result


class LinUCBScorer:
    """
    Scores arms with LinUCB and ranks them into exploit/explore buckets.

    ``alpha`` trades exploration against exploitation and is fixed at
    construction time.
    """

    def __init__(self, config: BanditConfig = None):
        self.config = config or BanditConfig()
        self.alpha = self.config.alpha

    def score(self, features: np.ndarray, model: UserModel, artwork_id: str = '') -> ArmScore:
        expected_reward = dot(model.theta, features)
        # Floating-point error can push the quadratic form slightly below zero
        uncertainty = math.sqrt(max(0.0, quadratic_form(features, model.A_inverse)))
        return ArmScore(
            artwork_id=artwork_id,
            expected_reward=expected_reward,
            uncertainty=uncertainty,
            ucb_score=expected_reward + self.alpha * uncertainty
        )

    def confidence(self, arm_score: ArmScore) -> float:
        raw = arm_score.expected_reward + arm_score.uncertainty * self.config.confidence_uncertainty_weight
        return max(0.0, min(self.config.max_confidence, raw))

    def rank(self, context: Context, arms: Sequence[Arm], model: UserModel,
             n_recommendations: int, exploration_ratio: float = None) -> List[Recommendation]:
        """
        Rank arms by UCB score and label the tail of the top-N as exploration.

        Within the top ``n_recommendations`` the last ``ceil(n * ratio)``
        positions are tagged ``explore`` and the rest ``exploit``; nothing
        outside the top-N is ever sampled.

        Args:
            context: Request context
            arms: Candidate pool, in catalogue order
            model: The collector's current model
            n_recommendations: Number of results wanted
            exploration_ratio: Share of results labelled as exploration

        Returns:
            Ranked recommendations (explanations still empty)
        """
        if n_recommendations <= 0 or not arms:
            return []

        if exploration_ratio is None:
            exploration_ratio = self.config.exploration_ratio
        exploration_ratio = min(1.0, max(0.0, exploration_ratio))

        arm_scores = []
        for arm in arms:
            features = extract_features(arm, context, self.config.features)
            arm_scores.append(self.score(features, model, arm.artwork_id))

        # sorted() is stable, so ties keep catalogue order
        ranked = sorted(arm_scores, key=lambda s: s.ucb_score, reverse=True)[:n_recommendations]

        # round() strips float noise such as 10 * 0.3 == 3.0000000000000004
        n_explore = math.ceil(round(n_recommendations * exploration_ratio, 9))
        n_exploit = n_recommendations - n_explore

        recommendations = []
        for idx, arm_score in enumerate(ranked):
            recommendations.append(Recommendation(
                artwork_id=arm_score.artwork_id,
                confidence=self.confidence(arm_score),
                reason='explore' if idx >= n_exploit else 'exploit',
                expected_reward=arm_score.expected_reward,
                uncertainty=arm_score.uncertainty
            ))

        return recommendations


class ContextualBandit:
    """
    Per-user LinUCB bandit for artwork recommendations.

    Ties the scorer and feature extractor to a model store that owns the
    per-user state (see ``services.model_store.UserModelStore``).
    """

    def __init__(self, config: BanditConfig, store):
        self.config = config
        self.store = store
        self.scorer = LinUCBScorer(config)

        logger.info(f"Initialised Contextual Bandit with alpha={config.alpha}, "
                    f"exploration_ratio={config.exploration_ratio}")

    def extract_features(self, arm: Arm, context: Context) -> np.ndarray:
        return extract_features(arm, context, self.config.features)

    async def get_recommendations(self, context: Context, arms: Sequence[Arm],
                                  n_recommendations: int = 6,
                                  exploration_ratio: float = None) -> List[Recommendation]:
        """Rank candidate arms for the context's user. Does not modify the model."""
        if n_recommendations <= 0 or not arms:
            return []

        model = await self.store.get(context.user_id)
        return self.scorer.rank(context, arms, model, n_recommendations, exploration_ratio)

    async def record_feedback(self, context: Context, arm: Arm, reward: float) -> UserModel:
        """Update the user's model with the reward observed for an arm."""
        features = self.extract_features(arm, context)
        model = await self.store.update(context.user_id, features, reward)
        logger.info(f"Recorded feedback: user={context.user_id}, artwork={arm.artwork_id}, reward={reward}")
        return model

    async def record_interaction(self, context: Context, arm: Arm, action: str) -> UserModel:
        """Update the model from a collector action using the action reward map."""
        return await self.record_feedback(context, arm, get_action_reward(action))

    async def get_model_statistics(self, user_id: str) -> Dict[str, Any]:
        """Summary of one user's model for monitoring."""
        model = await self.store.get(user_id)
        return {
            'user_id': user_id,
            'update_count': model.update_count,
            'theta_norm': float(np.linalg.norm(model.theta)),
            'trace_A': float(np.trace(model.A)),
            'write_state': self.store.write_state(user_id).value
        }
