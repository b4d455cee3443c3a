"""
Catalogue sources for candidate artworks.

Every source degrades to an empty pool on failure; recommendation requests
then simply return nothing.
"""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from utils import to_float

logger = logging.getLogger(__name__)


@dataclass
class Artwork:
    """Catalogue artwork with the fields the recommender reads."""
    id: str
    title: str = ''
    artist_id: str = ''
    artist_name: str = ''
    primary_medium: str = ''
    style: str = ''
    price: float = 0.0
    year: Optional[int] = None
    palette_primary: str = ''
    tags: List[str] = field(default_factory=list)
    views: int = 0
    likes: int = 0
    status: str = 'available'

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Artwork':
        tags = data.get('tags') or []
        if isinstance(tags, str):
            try:
                tags = json.loads(tags)
            except ValueError:
                tags = [t.strip() for t in tags.split(',') if t.strip()]
        year = to_float(data.get('year'))
        return cls(
            id=str(data['id']),
            title=data.get('title') or '',
            artist_id=str(data.get('artist_id') or ''),
            artist_name=data.get('artist_name') or '',
            primary_medium=data.get('primary_medium') or '',
            style=data.get('style') or '',
            price=to_float(data.get('price'), 0.0),
            year=int(year) if year is not None else None,
            palette_primary=data.get('palette_primary') or '',
            tags=list(tags),
            views=int(to_float(data.get('views'), 0.0)),
            likes=int(to_float(data.get('likes'), 0.0)),
            status=data.get('status') or 'available'
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CatalogSource:
    """Supplies the candidate pool for recommendation requests."""

    async def fetch_candidate_pool(self) -> List[Artwork]:
        raise NotImplementedError

    async def get_artwork(self, artwork_id: str) -> Optional[Artwork]:
        for artwork in await self.fetch_candidate_pool():
            if str(artwork.id) == str(artwork_id):
                return artwork
        return None


class StaticCatalogSource(CatalogSource):
    """Fixed in-memory catalogue, used for demos and tests."""

    def __init__(self, artworks: List[Artwork] = None):
        self.artworks = list(artworks or [])

    async def fetch_candidate_pool(self) -> List[Artwork]:
        return [a for a in self.artworks if a.status == 'available']

    async def get_artwork(self, artwork_id: str) -> Optional[Artwork]:
        for artwork in self.artworks:
            if str(artwork.id) == str(artwork_id):
                return artwork
        return None


class SqlCatalogSource(CatalogSource):
    """Reads available artworks from the ``artworks`` table."""

    COLUMNS = ("id, title, artist_id, artist_name, primary_medium, style, price, year, "
               "palette_primary, tags, views, likes, status")

    def __init__(self, engine: Engine, pool_size: int = 100):
        self.engine = engine
        self.pool_size = pool_size

    def _query_pool(self) -> List[Artwork]:
        with self.engine.connect() as conn:
            query = text(f"""
                SELECT {self.COLUMNS}
                FROM artworks
                WHERE status = 'available'
                LIMIT :limit
            """)
            result = conn.execute(query, {'limit': self.pool_size})
            return [Artwork.from_dict(dict(row._mapping)) for row in result]

    def _query_artwork(self, artwork_id: str) -> Optional[Artwork]:
        with self.engine.connect() as conn:
            query = text(f"SELECT {self.COLUMNS} FROM artworks WHERE id = :artwork_id")
            row = conn.execute(query, {'artwork_id': str(artwork_id)}).fetchone()
            return Artwork.from_dict(dict(row._mapping)) if row else None

    async def fetch_candidate_pool(self) -> List[Artwork]:
        try:
            return await asyncio.to_thread(self._query_pool)
        except Exception as e:
            logger.error(f"Failed to fetch candidate pool: {e}")
            return []

    async def get_artwork(self, artwork_id: str) -> Optional[Artwork]:
        try:
            return await asyncio.to_thread(self._query_artwork, artwork_id)
        except Exception as e:
            logger.error(f"Failed to fetch artwork {artwork_id}: {e}")
            return None
