"""
Per-user Model Store

Owns one LinUCB state per collector:
1. In-memory models for the active process
2. A local cache (process memory or Redis) as the fast path
3. A durable repository (SQL) written on a debounced timer

Each user's durable write follows a small state machine:

    CLEAN --update--> DIRTY --timer--> FLUSHING --ok--> CLEAN
                        ^                  |
                        +--update/failure--+

An update re-arms the user's timer instead of stacking writes, so a burst
of feedback results in a single durable write of the latest state.
"""

import asyncio
import json
import logging
import time
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np
import redis
from sqlalchemy import text
from sqlalchemy.engine import Engine

from config import BanditConfig
from models.contextual_bandit import ModelStateError, UserModel

logger = logging.getLogger(__name__)


class WriteState(str, Enum):
    CLEAN = 'clean'
    DIRTY = 'dirty'
    FLUSHING = 'flushing'


class ModelCache:
    """Short-lived key/value cache for serialized models."""

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def set(self, key: str, value: Dict[str, Any]):
        raise NotImplementedError

    def delete(self, key: str):
        raise NotImplementedError


class InMemoryModelCache(ModelCache):
    """Process-local cache with a per-entry time-to-live."""

    def __init__(self, ttl: int = 3600):
        self.ttl = ttl
        self._entries = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Dict[str, Any]):
        self._entries[key] = (time.monotonic() + self.ttl, value)

    def delete(self, key: str):
        self._entries.pop(key, None)


class RedisModelCache(ModelCache):
    """Redis-backed cache storing models as JSON with an expiry."""

    def __init__(self, client: redis.Redis, ttl: int = 3600):
        self.client = client
        self.ttl = ttl

    @classmethod
    def from_settings(cls, host: str = 'localhost', port: int = 6379,
                      password: str = None, ttl: int = 3600) -> 'RedisModelCache':
        client = redis.Redis(host=host, port=port, password=password, decode_responses=True)
        return cls(client, ttl)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        cached = self.client.get(key)
        if cached:
            return json.loads(cached)
        return None

    def set(self, key: str, value: Dict[str, Any]):
        self.client.setex(key, self.ttl, json.dumps(value))

    def delete(self, key: str):
        self.client.delete(key)


class ModelRepository:
    """Durable per-user model storage, one record per user."""

    def load_model(self, user_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def save_model(self, user_id: str, model_data: Dict[str, Any]):
        raise NotImplementedError


class InMemoryModelRepository(ModelRepository):

    def __init__(self):
        self.records = {}

    def load_model(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.records.get(user_id)

    def save_model(self, user_id: str, model_data: Dict[str, Any]):
        self.records[user_id] = model_data


class SqlModelRepository(ModelRepository):
    """Stores serialized models in the ``bandit_models`` table."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def load_model(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self.engine.connect() as conn:
            query = text("SELECT model_json FROM bandit_models WHERE user_id = :user_id")
            row = conn.execute(query, {'user_id': user_id}).fetchone()
            if row is None:
                return None
            return json.loads(row[0])

    def save_model(self, user_id: str, model_data: Dict[str, Any]):
        params = {
            'user_id': user_id,
            'model_json': json.dumps(model_data),
            'updated_at': datetime.now()
        }
        with self.engine.begin() as conn:
            result = conn.execute(text("""
                UPDATE bandit_models
                SET model_json = :model_json, updated_at = :updated_at
                WHERE user_id = :user_id
            """), params)
            if result.rowcount == 0:
                conn.execute(text("""
                    INSERT INTO bandit_models (user_id, model_json, updated_at)
                    VALUES (:user_id, :model_json, :updated_at)
                """), params)


class UserModelStore:
    """
    Loads, updates and persists per-user LinUCB models.

    ``get`` never fails: a user without usable history gets a fresh identity
    model. ``update`` mutates memory and the local cache immediately and
    defers the durable write by ``debounce_seconds``.
    """

    def __init__(self, config: BanditConfig = None, cache: ModelCache = None,
                 repository: ModelRepository = None):
        self.config = config or BanditConfig()
        self.cache = cache if cache is not None else InMemoryModelCache(self.config.store.cache_ttl)
        self.repository = repository if repository is not None else InMemoryModelRepository()
        self.debounce_seconds = self.config.store.debounce_seconds

        self._models = {}
        self._timers = {}
        self._dirty = set()
        self._in_flight = set()
        self._flush_tasks = set()

    def _cache_key(self, user_id: str) -> str:
        return f"{self.config.store.cache_key_prefix}{user_id}"

    def write_state(self, user_id: str) -> WriteState:
        if user_id in self._in_flight:
            return WriteState.FLUSHING
        if user_id in self._dirty:
            return WriteState.DIRTY
        return WriteState.CLEAN

    def _deserialize(self, data: Dict[str, Any]) -> UserModel:
        return UserModel.from_dict(data, self.config.feature_dim, self.config.pivot_epsilon)

    async def _load_from_cache(self, user_id: str) -> Optional[UserModel]:
        key = self._cache_key(user_id)
        try:
            cached = await asyncio.to_thread(self.cache.get, key)
        except Exception as e:
            logger.error(f"Cache get error for user {user_id}: {e}")
            return None
        if cached is None:
            return None
        try:
            return self._deserialize(cached)
        except ModelStateError as e:
            logger.warning(f"Discarding corrupt cached model for user {user_id}: {e}")
            await self._cache_delete(key)
            return None

    async def _load_from_repository(self, user_id: str) -> Optional[UserModel]:
        try:
            stored = await asyncio.to_thread(self.repository.load_model, user_id)
        except Exception as e:
            logger.error(f"Failed to load model for user {user_id}: {e}")
            return None
        if stored is None:
            return None
        try:
            return self._deserialize(stored)
        except ModelStateError as e:
            logger.warning(f"Ignoring corrupt stored model for user {user_id}: {e}")
            return None

    async def _cache_set(self, user_id: str, model: UserModel):
        try:
            await asyncio.to_thread(self.cache.set, self._cache_key(user_id), model.to_dict())
        except Exception as e:
            logger.error(f"Cache set error for user {user_id}: {e}")

    async def _cache_delete(self, key: str):
        try:
            await asyncio.to_thread(self.cache.delete, key)
        except Exception as e:
            logger.error(f"Cache invalidation error: {e}")

    async def get(self, user_id: str) -> UserModel:
        """Return the user's model, creating an identity model if none exists."""
        model = self._models.get(user_id)
        if model is not None:
            return model

        model = await self._load_from_cache(user_id)
        source = 'cache'
        if model is None:
            model = await self._load_from_repository(user_id)
            source = 'store'

        # Another task may have populated the model while we awaited I/O
        if user_id in self._models:
            return self._models[user_id]

        if model is None:
            model = UserModel.identity(self.config.feature_dim)
            source = 'new'
        self._models[user_id] = model
        if source == 'store':
            await self._cache_set(user_id, model)
        logger.debug(f"Loaded model for user {user_id} from {source}")
        return model

    async def update(self, user_id: str, features: np.ndarray, reward: float) -> UserModel:
        """
        Apply one observation to the user's model.

        Memory and the local cache change immediately; the durable write is
        (re)scheduled ``debounce_seconds`` after this call.
        """
        model = await self.get(user_id)
        model.apply_feedback(features, reward, self.config.pivot_epsilon)

        self._dirty.add(user_id)
        self._arm_timer(user_id)
        await self._cache_set(user_id, model)
        return model

    def _arm_timer(self, user_id: str):
        timer = self._timers.pop(user_id, None)
        if timer is not None:
            timer.cancel()
        loop = asyncio.get_running_loop()
        self._timers[user_id] = loop.call_later(self.debounce_seconds, self._on_timer, user_id)

    def _on_timer(self, user_id: str):
        self._timers.pop(user_id, None)
        if user_id in self._in_flight:
            # A write for this user is still in flight; try again next cycle
            self._arm_timer(user_id)
            return
        task = asyncio.get_running_loop().create_task(self._write(user_id))
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def _write(self, user_id: str) -> bool:
        model = self._models.get(user_id)
        if model is None or user_id not in self._dirty or user_id in self._in_flight:
            return True

        # Updates arriving during the write mark the user dirty again
        self._dirty.discard(user_id)
        self._in_flight.add(user_id)
        snapshot = model.to_dict()
        try:
            await asyncio.to_thread(self.repository.save_model, user_id, snapshot)
        except Exception as e:
            logger.error(f"Failed to persist model for user {user_id}: {e}")
            self._dirty.add(user_id)
            if user_id not in self._timers:
                self._arm_timer(user_id)
            return False
        finally:
            self._in_flight.discard(user_id)

        logger.info(f"Persisted model for user {user_id} ({snapshot['updateCount']} updates)")
        return True

    async def flush(self, user_id: str = None) -> bool:
        """
        Write dirty models now instead of waiting for their timers.

        Args:
            user_id: Only flush this user; all dirty users when omitted

        Returns:
            True if every requested write succeeded
        """
        if self._flush_tasks:
            await asyncio.gather(*list(self._flush_tasks), return_exceptions=True)

        user_ids = [user_id] if user_id is not None else list(self._dirty)
        success = True
        for uid in user_ids:
            if uid not in self._dirty:
                continue
            timer = self._timers.pop(uid, None)
            if timer is not None:
                timer.cancel()
            if not await self._write(uid):
                success = False
        return success

    async def close(self):
        """Flush everything and cancel outstanding timers."""
        await self.flush()
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

    def evict(self, user_id: str):
        """Drop the in-memory copy of a clean model; it reloads from cache or store."""
        if self.write_state(user_id) == WriteState.CLEAN:
            self._models.pop(user_id, None)
