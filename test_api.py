"""
HTTP tests for the FastAPI service, with the engine swapped for an in-memory one.
"""

import pytest
from fastapi.testclient import TestClient

from api.main import app, get_recommendation_engine
from services.catalog import StaticCatalogSource
from services.model_store import InMemoryModelCache, InMemoryModelRepository, UserModelStore
from services.narrative import TemplateNarrativeGenerator
from services.profiles import StaticProfileSource
from services.recommendation_engine import RecommendationEngine
from test_system import sample_artworks, sample_profiles


@pytest.fixture
def engine():
    return RecommendationEngine(
        {'persist_debounce_seconds': 60},
        catalog=StaticCatalogSource(sample_artworks()),
        profiles=StaticProfileSource(sample_profiles()),
        store=UserModelStore(repository=InMemoryModelRepository(), cache=InMemoryModelCache()),
        narrator=TemplateNarrativeGenerator()
    )


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_recommendation_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["recommendation_engine"] == "operational"


def test_recommendations(client):
    response = client.get("/recommendations/collector_1", params={"limit": 3, "device": "mobile"})
    assert response.status_code == 200

    body = response.json()
    assert body["user_id"] == "collector_1"
    assert len(body["recommendations"]) == 3
    first = body["recommendations"][0]
    assert {"artwork_id", "confidence", "reason", "explanation", "match_confidence", "artwork"} <= set(first)
    assert body["recommendations"][-1]["reason"] == "explore"


def test_recommendations_rejects_invalid_limit(client):
    assert client.get("/recommendations/collector_1", params={"limit": 0}).status_code == 422


def test_feedback_updates_model(client):
    response = client.post("/feedback", json={
        "user_id": "collector_1",
        "artwork_id": "art_005",
        "action": "purchase"
    })
    assert response.status_code == 200
    assert response.json()["success"] is True

    stats = client.get("/models/collector_1").json()
    assert stats["update_count"] == 1
    assert stats["write_state"] == "dirty"

    flushed = client.post("/models/flush", params={"user_id": "collector_1"})
    assert flushed.status_code == 200
    assert client.get("/models/collector_1").json()["write_state"] == "clean"


def test_feedback_for_unknown_artwork(client):
    response = client.post("/feedback", json={"user_id": "collector_1", "artwork_id": "nope"})
    assert response.status_code == 404


def test_feedback_rejects_out_of_range_reward(client):
    response = client.post("/feedback", json={
        "user_id": "collector_1", "artwork_id": "art_005", "reward": 3.0})
    assert response.status_code == 422


def test_metrics(client):
    client.get("/recommendations/collector_1")
    body = client.get("/metrics").json()
    assert body["total_requests"] == 1
    assert body["empty_results"] == 0
