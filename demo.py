"""
Demo script for the Artwork Recommender System

Runs the contextual bandit against a small in-memory catalogue and a
simulated collector, showing how feedback shifts the ranking.
"""

import asyncio
import random
from datetime import datetime
from typing import Dict, List

import numpy as np

from config.settings import DEFAULT_CONFIG
from models.features import Roadmap
from services.catalog import Artwork, StaticCatalogSource
from services.model_store import InMemoryModelCache, InMemoryModelRepository, UserModelStore
from services.narrative import TemplateNarrativeGenerator
from services.profiles import StaticProfileSource, UserProfile
from services.recommendation_engine import RecommendationEngine


def create_sample_artworks() -> List[Artwork]:
    """Create a sample catalogue spanning every medium and genre."""
    rows = [
        ("art_001", "Quiet Meridian", "Ines Calder", "Oil", "Abstract", 1800, 2024, "oklch(62% 0.12 240)", 1200),
        ("art_002", "Concrete Psalm", "Tomas Reyes", "Photography", "Brutalism", 950, 2021, "oklch(48% 0.02 90)", 640),
        ("art_003", "Neon Liturgy", "Mika Sato", "Digital", "Cyberpunk", 600, 2025, "oklch(70% 0.25 320)", 4300),
        ("art_004", "Still Water, Late", "Ada Brenner", "Acrylic", "Realism", 2400, 2019, "oklch(80% 0.05 200)", 900),
        ("art_005", "Three Lines", "Jonah Pike", "Mixed Media", "Minimalism", 3100, 2024, "oklch(95% 0.01 0)", 2100),
        ("art_006", "Weight of Rust", "Lena Okafor", "Sculpture", "Brutalism", 7200, 2023, "oklch(45% 0.09 45)", 350),
        ("art_007", "Empty Court", "Jonah Pike", "Oil", "Minimalism", 1400, 2025, "oklch(88% 0.03 60)", 780),
        ("art_008", "Signal Bloom", "Mika Sato", "Digital", "Abstract", 450, 2022, "oklch(66% 0.2 150)", 3900),
        ("art_009", "Harbour Study", "Ada Brenner", "Oil", "Realism", 5200, 2016, "oklch(58% 0.07 220)", 150),
        ("art_010", "Pale Field", "Ines Calder", "Acrylic", "Minimalism", 2200, 2024, "oklch(92% 0.02 100)", 1650),
    ]
    return [
        Artwork(id=r[0], title=r[1], artist_id=r[2].lower().replace(' ', '_'), artist_name=r[2],
                primary_medium=r[3], style=r[4], price=r[5], year=r[6], palette_primary=r[7], views=r[8])
        for r in rows
    ]


def create_sample_profiles() -> Dict[str, UserProfile]:
    """Create sample collector profiles."""
    return {
        "collector_minimal": UserProfile(
            user_id="collector_minimal",
            preferred_styles=["Minimalism"],
            device_type="desktop",
            roadmap=Roadmap(title="Quiet Rooms", budget_min=500, budget_max=3500,
                            target_styles=("Minimalism", "Abstract"))
        ),
        "collector_digital": UserProfile(user_id="collector_digital", device_type="mobile"),
    }


def build_engine() -> RecommendationEngine:
    """Engine wired to in-memory collaborators; no database or network needed."""
    config = dict(DEFAULT_CONFIG, persist_debounce_seconds=0.1)
    store = UserModelStore(cache=InMemoryModelCache(), repository=InMemoryModelRepository())
    return RecommendationEngine(
        config,
        catalog=StaticCatalogSource(create_sample_artworks()),
        profiles=StaticProfileSource(create_sample_profiles()),
        store=store,
        narrator=TemplateNarrativeGenerator()
    )


def simulated_action(artwork: Artwork, taste: str) -> str:
    """A collector who buys their taste and mostly ignores everything else."""
    if artwork.style == taste:
        return random.choice(["favorite", "inquire", "purchase"])
    return random.choice(["ignore", "ignore", "view"])


async def demonstrate_learning_progression(engine: RecommendationEngine, user_id: str, taste: str,
                                           sessions: int = 6):
    """Show how feedback moves the collector's taste towards the top of the list."""
    print("\n" + "=" * 60)
    print(f"LEARNING PROGRESSION FOR {user_id} (taste: {taste})")
    print("=" * 60)

    now = datetime(2025, 3, 14, 19, 0)
    for session in range(1, sessions + 1):
        recommendations = await engine.get_personalized_recommendations(user_id, limit=5, now=now)
        matches = sum(1 for rec in recommendations if rec.artwork.style == taste)
        avg_confidence = np.mean([rec.confidence for rec in recommendations])

        print(f"\n--- Session {session} ---")
        for i, rec in enumerate(recommendations, 1):
            print(f"  {i}. {rec.artwork.title} ({rec.artwork.style}, {rec.artwork.primary_medium}) "
                  f"- {rec.match_confidence}% [{rec.reason}]")
        print(f"Taste matches: {matches}/{len(recommendations)}, avg confidence {avg_confidence:.3f}")

        for rec in recommendations:
            action = simulated_action(rec.artwork, taste)
            await engine.record_feedback(user_id, rec.artwork_id, action, now=now)


async def demonstrate_explanations(engine: RecommendationEngine, user_id: str):
    print("\n" + "=" * 60)
    print("CURATORIAL EXPLANATIONS")
    print("=" * 60)
    for rec in await engine.get_personalized_recommendations(user_id, limit=3):
        print(f"- {rec.artwork.title}: {rec.explanation}")


async def main():
    """Main demo function."""
    print("Artwork Recommender System - Contextual Bandit Demo")
    print("=" * 60)

    random.seed(42)
    engine = build_engine()

    await demonstrate_learning_progression(engine, "collector_minimal", "Minimalism")
    await demonstrate_learning_progression(engine, "collector_digital", "Cyberpunk", sessions=4)
    await demonstrate_explanations(engine, "collector_minimal")

    print("\n" + "=" * 60)
    print("MODEL STATISTICS")
    print("=" * 60)
    for user_id in ("collector_minimal", "collector_digital"):
        stats = await engine.get_model_statistics(user_id)
        print(f"{user_id}: {stats['update_count']} updates, |theta|={stats['theta_norm']:.3f}, "
              f"state={stats['write_state']}")

    await engine.close()
    print(f"\nEngine metrics: {engine.get_metrics()}")

    print("\n" + "=" * 60)
    print("DEMO COMPLETED SUCCESSFULLY!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
