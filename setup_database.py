"""
Database Setup Script for the Artwork Recommender System

Creates the necessary database tables for:
- Artworks and metadata
- Collector profiles and collection roadmaps
- Collector activity (views, searches)
- Persisted bandit models
"""

import json
import logging
from datetime import datetime

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from config.settings import get_settings

logger = logging.getLogger(__name__)


TABLE_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS artworks (
        id VARCHAR(50) PRIMARY KEY,
        title VARCHAR(255) NOT NULL,
        artist_id VARCHAR(50),
        artist_name VARCHAR(255),
        primary_medium VARCHAR(50),
        style VARCHAR(50),
        price DECIMAL(12,2) DEFAULT 0,
        year INTEGER,
        palette_primary VARCHAR(64),
        tags TEXT,
        views INTEGER DEFAULT 0,
        likes INTEGER DEFAULT 0,
        status VARCHAR(20) DEFAULT 'available',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS profiles (
        id VARCHAR(50) PRIMARY KEY,
        preferred_styles TEXT,
        device_type VARCHAR(20),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS collection_roadmaps (
        id INTEGER PRIMARY KEY,
        collector_id VARCHAR(50) NOT NULL,
        title VARCHAR(255),
        budget_min DECIMAL(12,2),
        budget_max DECIMAL(12,2),
        target_styles TEXT,
        is_active BOOLEAN DEFAULT TRUE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_activity (
        id INTEGER PRIMARY KEY,
        user_id VARCHAR(50) NOT NULL,
        activity_type VARCHAR(20) NOT NULL,
        artwork_id VARCHAR(50),
        query VARCHAR(255),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS bandit_models (
        user_id VARCHAR(50) PRIMARY KEY,
        model_json TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]

INDEX_STATEMENTS = [
    "CREATE INDEX IF NOT EXISTS idx_artworks_status ON artworks(status)",
    "CREATE INDEX IF NOT EXISTS idx_roadmaps_collector ON collection_roadmaps(collector_id)",
    "CREATE INDEX IF NOT EXISTS idx_user_activity_user ON user_activity(user_id, activity_type)",
    "CREATE INDEX IF NOT EXISTS idx_user_activity_created ON user_activity(created_at)",
]

SAMPLE_ARTWORKS = [
    ("art_001", "Quiet Meridian", "artist_01", "Ines Calder", "Oil", "Abstract", 1800, 2024,
     "oklch(62% 0.12 240)", ["blue", "large"], 1200, 85),
    ("art_002", "Concrete Psalm", "artist_02", "Tomas Reyes", "Photography", "Brutalism", 950, 2021,
     "oklch(48% 0.02 90)", ["monochrome"], 640, 31),
    ("art_003", "Neon Liturgy", "artist_03", "Mika Sato", "Digital", "Cyberpunk", 600, 2025,
     "oklch(70% 0.25 320)", ["neon", "night"], 4300, 410),
    ("art_004", "Still Water, Late", "artist_04", "Ada Brenner", "Acrylic", "Realism", 2400, 2019,
     "oklch(80% 0.05 200)", ["landscape"], 900, 52),
    ("art_005", "Three Lines", "artist_05", "Jonah Pike", "Mixed Media", "Minimalism", 3100, 2024,
     "oklch(95% 0.01 0)", ["white", "linear"], 2100, 190),
    ("art_006", "Weight of Rust", "artist_06", "Lena Okafor", "Sculpture", "Brutalism", 7200, 2023,
     "oklch(45% 0.09 45)", ["steel"], 350, 12),
]

SAMPLE_PROFILES = [
    ("user_001", ["Abstract", "Minimalism"], "desktop"),
    ("user_002", ["Cyberpunk"], "mobile"),
]

SAMPLE_ROADMAPS = [
    ("user_001", "Quiet Rooms", 500, 3500, ["Minimalism", "Abstract"]),
]


def create_tables(engine: Engine):
    """Create all necessary tables."""
    with engine.begin() as conn:
        for statement in TABLE_STATEMENTS:
            conn.execute(text(statement))
        for statement in INDEX_STATEMENTS:
            conn.execute(text(statement))
    logger.info("All tables created successfully")


def insert_sample_data(engine: Engine):
    """Insert sample data for local development."""
    with engine.begin() as conn:
        existing = conn.execute(text("SELECT COUNT(*) FROM artworks")).scalar()
        if existing:
            logger.info("Sample data already present, skipping")
            return

        conn.execute(text("""
            INSERT INTO artworks (id, title, artist_id, artist_name, primary_medium, style, price,
                                  year, palette_primary, tags, views, likes)
            VALUES (:id, :title, :artist_id, :artist_name, :primary_medium, :style, :price,
                    :year, :palette_primary, :tags, :views, :likes)
        """), [
            {'id': a[0], 'title': a[1], 'artist_id': a[2], 'artist_name': a[3],
             'primary_medium': a[4], 'style': a[5], 'price': a[6], 'year': a[7],
             'palette_primary': a[8], 'tags': json.dumps(a[9]), 'views': a[10], 'likes': a[11]}
            for a in SAMPLE_ARTWORKS
        ])

        conn.execute(text("""
            INSERT INTO profiles (id, preferred_styles, device_type)
            VALUES (:id, :preferred_styles, :device_type)
        """), [
            {'id': p[0], 'preferred_styles': json.dumps(p[1]), 'device_type': p[2]}
            for p in SAMPLE_PROFILES
        ])

        conn.execute(text("""
            INSERT INTO collection_roadmaps (collector_id, title, budget_min, budget_max,
                                             target_styles, is_active)
            VALUES (:collector_id, :title, :budget_min, :budget_max, :target_styles, :is_active)
        """), [
            {'collector_id': r[0], 'title': r[1], 'budget_min': r[2], 'budget_max': r[3],
             'target_styles': json.dumps(r[4]), 'is_active': True}
            for r in SAMPLE_ROADMAPS
        ])

        conn.execute(text("""
            INSERT INTO user_activity (user_id, activity_type, artwork_id, query, created_at)
            VALUES (:user_id, :activity_type, :artwork_id, :query, :created_at)
        """), [
            {'user_id': 'user_001', 'activity_type': 'view', 'artwork_id': 'art_005',
             'query': None, 'created_at': datetime.now()},
            {'user_id': 'user_001', 'activity_type': 'search', 'artwork_id': None,
             'query': 'minimal white', 'created_at': datetime.now()},
        ])

    logger.info("Sample data inserted successfully")


def main():
    """Main setup function."""
    logging.basicConfig(level=logging.INFO)
    print("Artwork Recommender System - Database Setup")
    print("=" * 50)

    db_url = get_settings().database_url
    engine = create_engine(db_url)

    try:
        print("Creating tables...")
        create_tables(engine)

        print("Inserting sample data...")
        insert_sample_data(engine)

        print("\nDatabase setup completed successfully!")
        print(f"Database URL: {engine.url.render_as_string(hide_password=True)}")

    except Exception as e:
        print(f"Database setup failed: {e}")
        raise
    finally:
        engine.dispose()


if __name__ == "__main__":
    main()
