"""
Recommendation Engine Service

Personalised artwork recommendations using a per-user contextual bandit:
1. Build the request context from the collector's profile and activity
2. Pull the candidate pool from the catalogue
3. Rank candidates with LinUCB (exploit / explore split)
4. Attach curatorial explanations, generated concurrently

Feedback (views, clicks, favourites, purchases) flows back into the
collector's model through the same bandit.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine

from config import BanditConfig
from categories import get_action_reward
from models.contextual_bandit import ContextualBandit, Recommendation
from models.features import Context, artwork_to_arm
from services.catalog import CatalogSource, SqlCatalogSource
from services.model_store import (InMemoryModelCache, RedisModelCache, SqlModelRepository,
                                  UserModelStore)
from services.narrative import (FALLBACK_EXPLANATION, LLMNarrativeGenerator,
                                NarrativeGenerator, TemplateNarrativeGenerator)
from services.profiles import ProfileSource, SqlProfileSource, UserProfile

logger = logging.getLogger(__name__)


class RecommendationEngine:
    """
    Orchestrates context building, candidate ranking and narrative enrichment.

    Collaborators not passed in explicitly are built from ``config`` (the
    settings dictionary): SQL-backed catalogue, profiles and model storage,
    a Redis or in-process model cache, and the configured narrative backend.
    """

    def __init__(self, config: Dict[str, Any], catalog: CatalogSource = None,
                 profiles: ProfileSource = None, store: UserModelStore = None,
                 narrator: NarrativeGenerator = None):
        self.config = config

        self.bandit_config = BanditConfig.from_settings(config)
        self.default_limit = config.get('default_limit', 6)
        self.max_recommendations = config.get('max_recommendations', 20)
        self.narrative_timeout = config.get('narrative_timeout_seconds', 8.0)
        self.recent_views_limit = config.get('recent_views_limit', 10)
        self.recent_searches_limit = config.get('recent_searches_limit', 5)

        self.db_engine = None
        if catalog is None or profiles is None or store is None:
            self._initialise_connections()

        self.catalog = catalog or SqlCatalogSource(self.db_engine, config.get('candidate_pool_size', 100))
        self.profiles = profiles or SqlProfileSource(
            self.db_engine, self.recent_views_limit, self.recent_searches_limit)
        self.store = store or UserModelStore(
            self.bandit_config, self._build_cache(), SqlModelRepository(self.db_engine))
        self.narrator = narrator or self._build_narrator()

        self.bandit = ContextualBandit(self.bandit_config, self.store)

        # Performance tracking
        self.metrics = {
            'total_requests': 0,
            'empty_results': 0,
            'feedback_events': 0,
            'narrative_fallbacks': 0,
            'avg_response_time': 0.0
        }

        logger.info("Recommendation Engine initialised successfully")

    def _initialise_connections(self):
        """Initialise the database engine shared by the SQL-backed collaborators."""
        db_url = self.config.get('database_url', 'sqlite:///artflow.db')
        self.db_engine = create_engine(
            db_url,
            pool_pre_ping=True,
            echo=self.config.get('debug', False)
        )
        logger.info(f"Database engine created for {self.db_engine.url.render_as_string(hide_password=True)}")

    def _build_cache(self):
        if self.config.get('redis_enabled', False):
            return RedisModelCache.from_settings(
                host=self.config.get('redis_host', 'localhost'),
                port=self.config.get('redis_port', 6379),
                password=self.config.get('redis_password'),
                ttl=self.bandit_config.store.cache_ttl
            )
        return InMemoryModelCache(self.bandit_config.store.cache_ttl)

    def _build_narrator(self) -> NarrativeGenerator:
        if self.config.get('narrative_provider', 'template') == 'openai':
            return LLMNarrativeGenerator(model_name=self.config.get('narrative_model', 'gpt-4o-mini'))
        return TemplateNarrativeGenerator()

    def build_context(self, user_id: str, profile: UserProfile, device_type: str = None,
                      now: datetime = None) -> Context:
        """Context for one request; an explicit device type wins over the profile's."""
        return Context.build(
            user_id=user_id,
            now=now,
            recent_views=profile.recent_views,
            recent_searches=profile.recent_searches,
            budget=profile.budget,
            device_type=device_type or profile.device_type,
            preferred_styles=profile.styles,
            roadmap=profile.roadmap,
            recent_views_limit=self.recent_views_limit,
            recent_searches_limit=self.recent_searches_limit
        )

    async def get_personalized_recommendations(self, user_id: str, limit: int = None,
                                               device_type: str = None,
                                               now: datetime = None) -> List[Recommendation]:
        """
        Get ranked, explained recommendations for a collector.

        Never raises: any failure while ranking yields an empty list.

        Args:
            user_id: Collector identifier
            limit: Number of recommendations (defaults to the configured limit)
            device_type: Client device class (mobile/tablet/desktop)
            now: Request time, defaults to the current time

        Returns:
            Recommendations ordered by UCB score
        """
        start_time = time.perf_counter()
        self.metrics['total_requests'] += 1

        if limit is None:
            limit = self.default_limit
        limit = min(limit, self.max_recommendations)

        try:
            recommendations = await self._recommend(user_id, limit, device_type, now)
        finally:
            self._update_avg_response_time(time.perf_counter() - start_time)

        if not recommendations:
            self.metrics['empty_results'] += 1
        logger.info(f"Generated {len(recommendations)} recommendations for user {user_id}")
        return recommendations

    async def _recommend(self, user_id: str, limit: int, device_type: Optional[str],
                         now: Optional[datetime]) -> List[Recommendation]:
        try:
            profile = await self.profiles.load_profile(user_id)
            context = self.build_context(user_id, profile, device_type, now)

            pool = await self.catalog.fetch_candidate_pool()
            if not pool:
                logger.info(f"Empty candidate pool for user {user_id}")
                return []

            arms = [artwork_to_arm(artwork, self.bandit_config.features) for artwork in pool]
            ranked = await self.bandit.get_recommendations(
                context, arms, limit, self.bandit_config.exploration_ratio)
        except Exception as e:
            logger.error(f"Error generating recommendations for user {user_id}: {e}")
            return []

        artworks_by_id = {str(artwork.id): artwork for artwork in pool}
        resolved = []
        for recommendation in ranked:
            artwork = artworks_by_id.get(recommendation.artwork_id)
            if artwork is None:
                logger.warning(f"Dropping recommendation for unknown artwork {recommendation.artwork_id}")
                continue
            recommendation.artwork = artwork
            resolved.append(recommendation)

        explanations = await asyncio.gather(
            *(self._explain(rec.artwork, context, rec.reason) for rec in resolved))
        for recommendation, explanation in zip(resolved, explanations):
            recommendation.explanation = explanation

        return resolved

    async def _explain(self, artwork, context: Context, reason: str) -> str:
        try:
            explanation = await asyncio.wait_for(
                self.narrator.explain(artwork, context, reason), self.narrative_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Narrative generation timed out for artwork {artwork.id}")
            explanation = None
        except Exception as e:
            logger.warning(f"Narrative generation failed for artwork {artwork.id}: {e}")
            explanation = None

        if not explanation:
            self.metrics['narrative_fallbacks'] += 1
            return FALLBACK_EXPLANATION
        return explanation

    async def record_feedback(self, user_id: str, artwork_id: str, action: str = 'view',
                              reward: float = None, device_type: str = None,
                              now: datetime = None) -> bool:
        """
        Record a collector action and update their model.

        Args:
            user_id: Collector identifier
            artwork_id: Artwork the action was taken on
            action: Collector action (view/click/favorite/inquire/purchase/ignore)
            reward: Explicit reward, overriding the action's default reward
            device_type: Client device class at the time of the action
            now: Action time, defaults to the current time

        Returns:
            True if the model was updated
        """
        try:
            artwork = await self.catalog.get_artwork(artwork_id)
            if artwork is None:
                logger.warning(f"Feedback for unknown artwork {artwork_id} ignored")
                return False

            profile = await self.profiles.load_profile(user_id)
            context = self.build_context(user_id, profile, device_type, now)
            arm = artwork_to_arm(artwork, self.bandit_config.features)

            if reward is None:
                reward = get_action_reward(action)
            await self.bandit.record_feedback(context, arm, reward)

            if action == 'view':
                await self.profiles.record_view(user_id, artwork_id)

            self.metrics['feedback_events'] += 1
            return True

        except Exception as e:
            logger.error(f"Error recording feedback for user {user_id}: {e}")
            return False

    async def get_model_statistics(self, user_id: str) -> Dict[str, Any]:
        return await self.bandit.get_model_statistics(user_id)

    async def flush(self, user_id: str = None) -> bool:
        return await self.store.flush(user_id)

    async def close(self):
        await self.store.close()
        if self.db_engine is not None:
            self.db_engine.dispose()

    def _update_avg_response_time(self, response_time: float):
        """Update average response time metric."""
        total = self.metrics['total_requests']
        current_avg = self.metrics['avg_response_time']
        self.metrics['avg_response_time'] = (current_avg * (total - 1) + response_time) / total

    def get_metrics(self) -> Dict[str, Any]:
        """Get performance metrics."""
        return self.metrics.copy()
