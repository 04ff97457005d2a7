"""Data models for the location search engine."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class Source(str, Enum):
    BUSINESS = "business"
    OSM = "osm"
    NOMINATIM = "nominatim"


SOURCE_LABELS = {
    Source.BUSINESS: "Proximiti",
    Source.OSM: "Nearby",
    Source.NOMINATIM: "Map",
}


class LocationSearchError(Exception):
    """Base class for programmer errors raised by the engine."""


class EngineClosedError(LocationSearchError):
    """Raised when searching on an engine that has been closed."""


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass
class Business:
    id: str
    name: str
    category: str
    address: str
    lat: float
    lng: float
    description: str = ""


@dataclass(frozen=True)
class LocationResult:
    id: str
    name: str
    lat: float
    lng: float
    source: Source
    address: str = ""
    icon: str = ""
    type: Optional[str] = None
    distance_km: Optional[float] = None
    raw_score: float = field(default=0.0, compare=False, repr=False)

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output. The ranking score stays internal."""
        from .distance import format_distance

        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "lat": round(self.lat, 6),
            "lng": round(self.lng, 6),
            "source": self.source.value,
            "source_label": source_label(self.source),
            "icon": self.icon,
            "type": self.type,
            "distance_km": round(self.distance_km, 3) if self.distance_km is not None else None,
            "distance_label": format_distance(self.distance_km),
        }


def source_label(source: Source) -> str:
    return SOURCE_LABELS[Source(source)]


def is_valid_coordinate(lat: float, lng: float) -> bool:
    return (
        math.isfinite(lat)
        and math.isfinite(lng)
        and -90.0 <= lat <= 90.0
        and -180.0 <= lng <= 180.0
    )


def coerce_coordinates(lat, lng) -> Optional[Tuple[float, float]]:
    """Parse upstream lat/lng values (numbers or numeric strings).

    Returns None for missing, non-numeric, non-finite or out-of-range values.
    """
    if lat is None or lng is None or isinstance(lat, bool) or isinstance(lng, bool):
        return None
    try:
        lat_f = float(lat)
        lng_f = float(lng)
    except (TypeError, ValueError):
        return None
    if not is_valid_coordinate(lat_f, lng_f):
        return None
    return lat_f, lng_f
