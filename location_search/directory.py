"""Internal business directory matcher. No I/O beyond loading the directory file."""

import json
import logging
from pathlib import Path
from typing import List, Optional

from .config import Config
from .distance import distance_km
from .icons import icon_for
from .models import Business, Coordinates, LocationResult, Source, coerce_coordinates
from .scorer import normalize_text, text_match_quality

logger = logging.getLogger(__name__)

# Category/address/description hits rank below any name hit
_FIELD_TIER = "fuzzy"


class BusinessDirectory:
    """Matches the application's own business records against a query."""

    def __init__(self, config: Optional[Config] = None, businesses: Optional[List[Business]] = None):
        self.config = config or Config()
        if businesses is None:
            businesses = self._load(Path(self.config.businesses_file))
        self.businesses: List[Business] = businesses

    @staticmethod
    def _load(path: Path) -> List[Business]:
        if not path.exists():
            logger.warning(f"Business directory not found: {path}")
            return []
        try:
            with open(path, encoding="utf-8") as f:
                rows = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Business directory unreadable ({path}): {e}")
            return []
        if not isinstance(rows, list):
            logger.warning(f"Business directory unreadable ({path}): expected a list of records")
            return []

        businesses = []
        for row in rows:
            if not isinstance(row, dict):
                logger.debug(f"Directory: skipping non-object record {row!r}")
                continue
            coords = coerce_coordinates(row.get("lat"), row.get("lng"))
            if coords is None or not row.get("name"):
                logger.debug(f"Directory: skipping malformed record {row.get('id')!r}")
                continue
            businesses.append(Business(
                id=str(row.get("id", "")),
                name=str(row["name"]).strip(),
                category=row.get("category", ""),
                address=row.get("address", ""),
                lat=coords[0],
                lng=coords[1],
                description=row.get("description", ""),
            ))
        logger.info(f"Business directory: {len(businesses)} records loaded")
        return businesses

    def _score(self, query: str, business: Business, ref: Optional[Coordinates]):
        weights = self.config.match_weights
        tier = text_match_quality(query, business.name, self.config.fuzzy_threshold)
        if tier in ("fuzzy", "none"):
            # Plain substring checks only for the secondary fields
            q = normalize_text(query)
            fields = (business.category, business.address, business.description)
            if any(q in normalize_text(f) for f in fields):
                tier = _FIELD_TIER
            elif tier == "none":
                return None, None

        score = weights[tier]
        dist = None
        if ref is not None:
            dist = distance_km(ref.lat, ref.lng, business.lat, business.lng)
            score += self.config.proximity_bonus / (1.0 + dist)
        return score, dist

    def match(self, query: str, ref_location: Optional[Coordinates] = None) -> List[LocationResult]:
        """Best directory matches for `query`, at most directory_max_results."""
        q = (query or "").strip()
        if len(q) < self.config.min_query_length:
            return []

        scored = []
        for b in self.businesses:
            score, dist = self._score(q, b, ref_location)
            if score is None:
                continue
            scored.append(LocationResult(
                id=f"app-{b.id}",
                name=b.name,
                address=b.address,
                lat=b.lat,
                lng=b.lng,
                source=Source.BUSINESS,
                icon=icon_for(category=b.category),
                type=b.category,
                distance_km=dist,
                raw_score=score,
            ))

        scored.sort(key=lambda r: -r.raw_score)
        return scored[: self.config.directory_max_results]

    def nearest(self, lat: float, lng: float, limit: int = 25) -> List[LocationResult]:
        """Directory records sorted by distance from (lat, lng), nearest first."""
        results = [
            LocationResult(
                id=f"app-{b.id}",
                name=b.name,
                address=b.address,
                lat=b.lat,
                lng=b.lng,
                source=Source.BUSINESS,
                icon=icon_for(category=b.category),
                type=b.category,
                distance_km=distance_km(lat, lng, b.lat, b.lng),
            )
            for b in self.businesses
        ]
        results.sort(key=lambda r: r.distance_km)
        return results[:limit]
