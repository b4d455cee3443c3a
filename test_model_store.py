"""
Tests for the per-user model store: load fallbacks, debounced persistence
and the SQL/Redis adapters.
"""

import asyncio
import json
import time

import numpy as np
import pytest
from sqlalchemy import create_engine

from config import BanditConfig, ModelStoreConfig
from models.contextual_bandit import UserModel
from services.model_store import (InMemoryModelCache, InMemoryModelRepository, RedisModelCache,
                                  SqlModelRepository, UserModelStore, WriteState)
from setup_database import create_tables

USER = "collector_1"


def make_config(debounce=0.05):
    return BanditConfig(store=ModelStoreConfig(debounce_seconds=debounce))


def features(seed=0):
    return np.random.default_rng(seed).uniform(size=20)


def trained_model(updates=2):
    model = UserModel.identity()
    for i in range(updates):
        model.apply_feedback(features(i), 1.0)
    return model


class CountingRepository(InMemoryModelRepository):
    """Records every save; optionally slow or failing for the first calls."""

    def __init__(self, delay=0.0, failures=0):
        super().__init__()
        self.delay = delay
        self.failures = failures
        self.attempts = 0
        self.saves = []

    def save_model(self, user_id, model_data):
        self.attempts += 1
        if self.delay:
            time.sleep(self.delay)
        if self.attempts <= self.failures:
            raise ConnectionError("database unavailable")
        self.saves.append((user_id, model_data))
        super().save_model(user_id, model_data)


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl

    def delete(self, key):
        self.data.pop(key, None)


def test_get_creates_identity_model():
    store = UserModelStore(make_config())
    model = asyncio.run(store.get(USER))
    assert model.update_count == 0
    assert np.array_equal(model.A, np.eye(20))
    assert store.write_state(USER) == WriteState.CLEAN


def test_get_prefers_cache_over_repository():
    cache = InMemoryModelCache()
    repository = InMemoryModelRepository()
    cache.set(f"bandit_model_{USER}", trained_model(3).to_dict())
    repository.save_model(USER, trained_model(1).to_dict())

    store = UserModelStore(make_config(), cache, repository)
    assert asyncio.run(store.get(USER)).update_count == 3


def test_get_falls_back_to_repository_and_warms_cache():
    cache = InMemoryModelCache()
    repository = InMemoryModelRepository()
    repository.save_model(USER, trained_model(2).to_dict())

    store = UserModelStore(make_config(), cache, repository)
    assert asyncio.run(store.get(USER)).update_count == 2
    assert cache.get(f"bandit_model_{USER}")["updateCount"] == 2


def test_corrupt_cache_entry_is_discarded():
    cache = InMemoryModelCache()
    repository = InMemoryModelRepository()
    cache.set(f"bandit_model_{USER}", {"A": "garbage"})
    repository.save_model(USER, trained_model(2).to_dict())

    store = UserModelStore(make_config(), cache, repository)
    assert asyncio.run(store.get(USER)).update_count == 2
    assert cache.get(f"bandit_model_{USER}")["updateCount"] == 2


def test_corrupt_stored_model_yields_identity():
    repository = InMemoryModelRepository()
    repository.save_model(USER, {"A": [[1.0]], "b": [0.0]})

    store = UserModelStore(make_config(), InMemoryModelCache(), repository)
    model = asyncio.run(store.get(USER))
    assert model.update_count == 0
    assert np.array_equal(model.A, np.eye(20))


def test_repository_errors_yield_identity():
    class BrokenRepository(InMemoryModelRepository):
        def load_model(self, user_id):
            raise ConnectionError("database unavailable")

    store = UserModelStore(make_config(), InMemoryModelCache(), BrokenRepository())
    assert asyncio.run(store.get(USER)).update_count == 0


def test_slow_cache_does_not_block_the_event_loop():
    class SlowCache(InMemoryModelCache):
        def get(self, key):
            time.sleep(0.3)
            return super().get(key)

    async def ticker(gaps, stop):
        last = time.perf_counter()
        while not stop.is_set():
            await asyncio.sleep(0.02)
            now = time.perf_counter()
            gaps.append(now - last)
            last = now

    async def scenario():
        store = UserModelStore(make_config(), SlowCache(), InMemoryModelRepository())
        gaps, stop = [], asyncio.Event()
        ticks = asyncio.create_task(ticker(gaps, stop))
        await asyncio.sleep(0)
        model = await store.get(USER)
        stop.set()
        await ticks
        return model, gaps

    model, gaps = asyncio.run(scenario())
    assert model.update_count == 0
    assert len(gaps) >= 5
    assert max(gaps) < 0.15


def test_update_writes_cache_immediately_and_defers_durable_write():
    async def scenario():
        cache = InMemoryModelCache()
        repository = CountingRepository()
        store = UserModelStore(make_config(debounce=60), cache, repository)
        await store.update(USER, features(), 1.0)
        state = store.write_state(USER)
        cached = cache.get(f"bandit_model_{USER}")
        saves = len(repository.saves)
        await store.close()
        return state, cached, saves, repository

    state, cached, saves_before_close, repository = asyncio.run(scenario())
    assert state == WriteState.DIRTY
    assert cached["updateCount"] == 1
    assert saves_before_close == 0
    assert len(repository.saves) == 1


def test_burst_of_updates_coalesces_into_one_write():
    async def scenario():
        repository = CountingRepository()
        store = UserModelStore(make_config(debounce=0.05), InMemoryModelCache(), repository)
        for i in range(5):
            await store.update(USER, features(i), 0.5)
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.3)
        return store.write_state(USER), repository

    state, repository = asyncio.run(scenario())
    assert state == WriteState.CLEAN
    assert len(repository.saves) == 1
    assert repository.saves[0][1]["updateCount"] == 5


def test_update_during_write_is_persisted_by_a_later_write():
    async def scenario():
        repository = CountingRepository(delay=0.2)
        store = UserModelStore(make_config(debounce=0.05), InMemoryModelCache(), repository)
        await store.update(USER, features(0), 1.0)
        await asyncio.sleep(0.12)
        mid_write = store.write_state(USER)
        await store.update(USER, features(1), 0.0)
        still_flushing = store.write_state(USER)
        await asyncio.sleep(1.0)
        return mid_write, still_flushing, store.write_state(USER), repository

    mid_write, still_flushing, final_state, repository = asyncio.run(scenario())
    assert mid_write == WriteState.FLUSHING
    assert still_flushing == WriteState.FLUSHING
    assert final_state == WriteState.CLEAN
    assert [data["updateCount"] for _, data in repository.saves] == [1, 2]


def test_failed_write_is_retried_next_cycle():
    async def scenario():
        repository = CountingRepository(failures=1)
        store = UserModelStore(make_config(debounce=0.05), InMemoryModelCache(), repository)
        await store.update(USER, features(), 1.0)
        await asyncio.sleep(0.4)
        return store.write_state(USER), repository

    state, repository = asyncio.run(scenario())
    assert state == WriteState.CLEAN
    assert repository.attempts == 2
    assert len(repository.saves) == 1


def test_flush_writes_immediately():
    async def scenario():
        repository = CountingRepository()
        store = UserModelStore(make_config(debounce=60), InMemoryModelCache(), repository)
        await store.update(USER, features(0), 1.0)
        await store.update("collector_2", features(1), 0.3)
        single = await store.flush(USER)
        after_single = (store.write_state(USER), store.write_state("collector_2"))
        everything = await store.flush()
        return single, after_single, everything, store, repository

    single, after_single, everything, store, repository = asyncio.run(scenario())
    assert single is True and everything is True
    assert after_single == (WriteState.CLEAN, WriteState.DIRTY)
    assert store.write_state("collector_2") == WriteState.CLEAN
    assert [user_id for user_id, _ in repository.saves] == [USER, "collector_2"]


def test_flush_reports_failure_and_keeps_model_dirty():
    async def scenario():
        repository = CountingRepository(failures=5)
        store = UserModelStore(make_config(debounce=60), InMemoryModelCache(), repository)
        await store.update(USER, features(), 1.0)
        result = await store.flush()
        state = store.write_state(USER)
        await store.close()
        return result, state

    result, state = asyncio.run(scenario())
    assert result is False
    assert state == WriteState.DIRTY


def test_evict_reloads_clean_model_from_cache():
    async def scenario():
        store = UserModelStore(make_config(debounce=60))
        await store.update(USER, features(), 1.0)
        store.evict(USER)
        dirty_kept = USER in store._models
        await store.flush()
        store.evict(USER)
        evicted = USER not in store._models
        reloaded = await store.get(USER)
        return dirty_kept, evicted, reloaded

    dirty_kept, evicted, reloaded = asyncio.run(scenario())
    assert dirty_kept and evicted
    assert reloaded.update_count == 1


def test_in_memory_cache_expiry():
    cache = InMemoryModelCache(ttl=0)
    cache.set("key", {"value": 1})
    assert cache.get("key") is None

    cache = InMemoryModelCache(ttl=60)
    cache.set("key", {"value": 1})
    assert cache.get("key") == {"value": 1}
    cache.delete("key")
    assert cache.get("key") is None


def test_redis_cache_stores_json_with_ttl():
    client = FakeRedis()
    cache = RedisModelCache(client, ttl=120)
    cache.set("bandit_model_x", {"updateCount": 4})

    assert json.loads(client.data["bandit_model_x"]) == {"updateCount": 4}
    assert client.ttls["bandit_model_x"] == 120
    assert cache.get("bandit_model_x") == {"updateCount": 4}
    cache.delete("bandit_model_x")
    assert cache.get("bandit_model_x") is None


def test_sql_repository_round_trip(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'models.db'}")
    create_tables(engine)
    repository = SqlModelRepository(engine)

    assert repository.load_model(USER) is None

    repository.save_model(USER, trained_model(1).to_dict())
    repository.save_model(USER, trained_model(3).to_dict())

    loaded = UserModel.from_dict(repository.load_model(USER))
    assert loaded.update_count == 3
    assert np.allclose(loaded.theta, trained_model(3).theta)
    engine.dispose()


def test_store_persists_through_sql_repository(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'models.db'}")
    create_tables(engine)

    async def write():
        store = UserModelStore(make_config(debounce=60), InMemoryModelCache(), SqlModelRepository(engine))
        await store.update(USER, features(), 1.0)
        await store.close()

    async def read():
        store = UserModelStore(make_config(), InMemoryModelCache(), SqlModelRepository(engine))
        return await store.get(USER)

    asyncio.run(write())
    assert asyncio.run(read()).update_count == 1
    engine.dispose()


def test_feature_dim_is_fixed():
    with pytest.raises(ValueError):
        BanditConfig(feature_dim=10)
