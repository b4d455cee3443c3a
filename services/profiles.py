"""
Collector profile and activity sources used to build request contexts.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from models.features import Roadmap
from utils import to_float

logger = logging.getLogger(__name__)


@dataclass
class UserProfile:
    user_id: str
    preferred_styles: List[str] = field(default_factory=list)
    device_type: Optional[str] = None
    recent_views: List[str] = field(default_factory=list)  # oldest first
    recent_searches: List[str] = field(default_factory=list)  # oldest first
    roadmap: Optional[Roadmap] = None

    @property
    def budget(self) -> Optional[float]:
        return self.roadmap.budget_max if self.roadmap else None

    @property
    def styles(self) -> List[str]:
        """Stated preferred styles plus the active roadmap's target styles."""
        styles = list(self.preferred_styles)
        if self.roadmap:
            styles.extend(s for s in self.roadmap.target_styles if s not in styles)
        return styles


def _json_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return [v.strip() for v in str(value).split(',') if v.strip()]
    return [str(v) for v in parsed] if isinstance(parsed, list) else []


class ProfileSource:
    """Supplies collector preferences and recent activity."""

    async def load_profile(self, user_id: str) -> UserProfile:
        raise NotImplementedError

    async def record_view(self, user_id: str, artwork_id: str):
        raise NotImplementedError


class StaticProfileSource(ProfileSource):

    def __init__(self, profiles: Dict[str, UserProfile] = None):
        self.profiles = dict(profiles or {})

    async def load_profile(self, user_id: str) -> UserProfile:
        return self.profiles.get(user_id) or UserProfile(user_id=user_id)

    async def record_view(self, user_id: str, artwork_id: str):
        profile = self.profiles.setdefault(user_id, UserProfile(user_id=user_id))
        profile.recent_views.append(artwork_id)


class SqlProfileSource(ProfileSource):
    """Reads ``profiles``, ``collection_roadmaps`` and ``user_activity`` tables."""

    def __init__(self, engine: Engine, recent_views_limit: int = 10, recent_searches_limit: int = 5):
        self.engine = engine
        self.recent_views_limit = recent_views_limit
        self.recent_searches_limit = recent_searches_limit

    def _query_profile(self, user_id: str) -> UserProfile:
        profile = UserProfile(user_id=user_id)
        with self.engine.connect() as conn:
            row = conn.execute(text("""
                SELECT preferred_styles, device_type
                FROM profiles WHERE id = :user_id
            """), {'user_id': user_id}).fetchone()
            if row:
                profile.preferred_styles = _json_list(row[0])
                profile.device_type = row[1]

            row = conn.execute(text("""
                SELECT title, budget_min, budget_max, target_styles
                FROM collection_roadmaps
                WHERE collector_id = :user_id AND is_active = :active
                LIMIT 1
            """), {'user_id': user_id, 'active': True}).fetchone()
            if row:
                profile.roadmap = Roadmap(
                    title=row[0] or '',
                    budget_min=to_float(row[1]),
                    budget_max=to_float(row[2]),
                    target_styles=tuple(_json_list(row[3]))
                )

            views = conn.execute(text("""
                SELECT artwork_id FROM user_activity
                WHERE user_id = :user_id AND activity_type = 'view'
                ORDER BY created_at DESC, id DESC
                LIMIT :limit
            """), {'user_id': user_id, 'limit': self.recent_views_limit})
            profile.recent_views = [r[0] for r in views][::-1]

            searches = conn.execute(text("""
                SELECT query FROM user_activity
                WHERE user_id = :user_id AND activity_type = 'search'
                ORDER BY created_at DESC, id DESC
                LIMIT :limit
            """), {'user_id': user_id, 'limit': self.recent_searches_limit})
            profile.recent_searches = [r[0] for r in searches][::-1]

        return profile

    def _insert_view(self, user_id: str, artwork_id: str):
        with self.engine.begin() as conn:
            conn.execute(text("""
                INSERT INTO user_activity (user_id, activity_type, artwork_id, created_at)
                VALUES (:user_id, 'view', :artwork_id, :created_at)
            """), {'user_id': user_id, 'artwork_id': artwork_id, 'created_at': datetime.now()})

    async def load_profile(self, user_id: str) -> UserProfile:
        try:
            return await asyncio.to_thread(self._query_profile, user_id)
        except Exception as e:
            logger.error(f"Failed to load profile for user {user_id}: {e}")
            return UserProfile(user_id=user_id)

    async def record_view(self, user_id: str, artwork_id: str):
        try:
            await asyncio.to_thread(self._insert_view, user_id, artwork_id)
        except Exception as e:
            logger.error(f"Failed to record view for user {user_id}: {e}")
