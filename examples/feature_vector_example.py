"""
Example showing how artworks and request context become bandit features.

This example shows:
1. How a catalogue artwork is turned into an arm (palette, popularity, recency)
2. How the 20-slot feature vector is laid out
3. How a few feedback events change the collector's scores
"""

import asyncio
import os
import sys
from datetime import datetime

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import BanditConfig
from models.contextual_bandit import ContextualBandit
from models.features import Context, Roadmap, artwork_to_arm
from services.catalog import Artwork
from services.model_store import UserModelStore

SLOT_NAMES = (
    ['log_price', 'budget_ratio', 'hour', 'mobile', 'lightness', 'chroma', 'hue']
    + ['medium_oil', 'medium_acrylic', 'medium_digital', 'medium_mixed', 'medium_sculpture', 'medium_photo']
    + ['genre_abstract', 'genre_realism', 'genre_minimalism', 'genre_cyberpunk', 'genre_brutalism']
    + ['preferred_style', 'market']
)


async def main():
    config = BanditConfig()
    bandit = ContextualBandit(config, UserModelStore(config))

    artworks = [
        Artwork(id="art_001", title="Quiet Meridian", primary_medium="Oil", style="Abstract",
                price=1800, year=2024, palette_primary="oklch(62% 0.12 240)", views=1200),
        Artwork(id="art_003", title="Neon Liturgy", primary_medium="Digital", style="Cyberpunk",
                price=600, year=2025, palette_primary="oklch(70% 0.25 320)", views=4300),
        Artwork(id="art_009", title="Harbour Study", primary_medium="Oil", style="Realism",
                price=5200, year=2016, palette_primary="#3a6f9c", views=150),
    ]
    arms = [artwork_to_arm(artwork, config.features) for artwork in artworks]

    context = Context.build(
        user_id="collector_demo",
        now=datetime(2025, 6, 20, 21, 30),
        device_type="Mobile",
        preferred_styles=["abstract"],
        roadmap=Roadmap(title="First Wall", budget_max=2000, target_styles=("Abstract",))
    )
    print(f"Context: {context.day_of_week}, {context.season}, hour {context.hour_of_day}, "
          f"device {context.device_type}, budget {context.budget}")

    for arm in arms:
        features = bandit.extract_features(arm, context)
        print(f"\n{arm.artwork_id} ({arm.genre}, {arm.medium}, palette={arm.palette})")
        for name, value in zip(SLOT_NAMES, features):
            if value:
                print(f"  {name:<18} {value:.3f}")

    print("\nBefore feedback:")
    for rec in await bandit.get_recommendations(context, arms, n_recommendations=3):
        print(f"  {rec.artwork_id}: expected={rec.expected_reward:.3f} "
              f"uncertainty={rec.uncertainty:.3f} ({rec.reason})")

    for _ in range(3):
        await bandit.record_interaction(context, arms[0], "purchase")
        await bandit.record_interaction(context, arms[2], "ignore")

    print("\nAfter three purchases of art_001:")
    for rec in await bandit.get_recommendations(context, arms, n_recommendations=3):
        print(f"  {rec.artwork_id}: expected={rec.expected_reward:.3f} "
              f"uncertainty={rec.uncertainty:.3f} ({rec.reason})")

    await bandit.store.close()


if __name__ == "__main__":
    asyncio.run(main())
