"""
Tests for the SQL-backed catalogue, profile and model sources on SQLite.
"""

import asyncio

import pytest
from sqlalchemy import create_engine

from services.catalog import SqlCatalogSource
from services.model_store import SqlModelRepository
from services.profiles import SqlProfileSource
from services.recommendation_engine import RecommendationEngine
from setup_database import create_tables, insert_sample_data


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'artflow.db'}"


@pytest.fixture
def engine(db_url):
    engine = create_engine(db_url)
    create_tables(engine)
    insert_sample_data(engine)
    yield engine
    engine.dispose()


def test_sample_data_is_inserted_once(engine):
    insert_sample_data(engine)
    pool = asyncio.run(SqlCatalogSource(engine).fetch_candidate_pool())
    assert len(pool) == 6


def test_catalog_pool_and_lookup(engine):
    catalog = SqlCatalogSource(engine, pool_size=4)

    async def scenario():
        return (await catalog.fetch_candidate_pool(),
                await catalog.get_artwork("art_003"),
                await catalog.get_artwork("missing"))

    pool, artwork, missing = asyncio.run(scenario())
    assert len(pool) == 4
    assert artwork.title == "Neon Liturgy"
    assert artwork.tags == ["neon", "night"]
    assert artwork.price == 600
    assert missing is None


def test_catalog_failure_degrades_to_empty_pool(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    catalog = SqlCatalogSource(engine)
    assert asyncio.run(catalog.fetch_candidate_pool()) == []
    assert asyncio.run(catalog.get_artwork("art_001")) is None
    engine.dispose()


def test_profile_loading(engine):
    profile = asyncio.run(SqlProfileSource(engine).load_profile("user_001"))

    assert profile.preferred_styles == ["Abstract", "Minimalism"]
    assert profile.device_type == "desktop"
    assert profile.roadmap.title == "Quiet Rooms"
    assert profile.budget == 3500
    assert profile.roadmap.target_styles == ("Minimalism", "Abstract")
    assert profile.recent_views == ["art_005"]
    assert profile.recent_searches == ["minimal white"]


def test_profile_for_unknown_user_is_empty(engine):
    profile = asyncio.run(SqlProfileSource(engine).load_profile("nobody"))
    assert profile.preferred_styles == []
    assert profile.roadmap is None
    assert profile.budget is None


def test_record_view_appends_to_recent_views(engine):
    profiles = SqlProfileSource(engine, recent_views_limit=2)

    async def scenario():
        await profiles.record_view("user_001", "art_003")
        await profiles.record_view("user_001", "art_001")
        return await profiles.load_profile("user_001")

    assert asyncio.run(scenario()).recent_views == ["art_003", "art_001"]


def test_engine_built_from_settings(engine, db_url):
    recommender = RecommendationEngine({'database_url': db_url, 'persist_debounce_seconds': 60})

    async def scenario():
        recommendations = await recommender.get_personalized_recommendations("user_001")
        recorded = await recommender.record_feedback("user_001", "art_005", "favorite")
        await recommender.close()
        return recommendations, recorded

    recommendations, recorded = asyncio.run(scenario())
    assert len(recommendations) == 6
    assert recorded is True

    stored = SqlModelRepository(engine).load_model("user_001")
    assert stored["updateCount"] == 1
