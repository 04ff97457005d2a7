"""Great-circle distance and display formatting."""

from math import atan2, cos, radians, sin, sqrt
from typing import Dict, Iterable, List, Optional

from .models import LocationResult, Source

EARTH_RADIUS_KM = 6371.0


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance in kilometers between two coordinates."""
    d_lat = radians(lat2 - lat1)
    d_lng = radians(lng2 - lng1)
    a = (
        sin(d_lat / 2) ** 2
        + cos(radians(lat1)) * cos(radians(lat2)) * sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * atan2(sqrt(a), sqrt(1 - a))


def format_distance(km: Optional[float]) -> str:
    """Render "850 m" below one kilometer, "3.2 km" otherwise."""
    if km is None:
        return ""
    meters = round(km * 1000)
    if meters < 1000:
        return f"{meters} m"
    return f"{km:.1f} km"


def group_by_source(
    results: Iterable[LocationResult],
    order: Iterable[str] = ("business", "osm", "nominatim"),
) -> List[Dict]:
    """Group results for dropdown display, keeping ranked order inside each group."""
    results = list(results)
    groups = []
    for src in order:
        items = [r for r in results if r.source == Source(src)]
        if items:
            groups.append({"source": Source(src), "items": items})
    return groups
