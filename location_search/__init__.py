"""Location search engine: merges business directory, OSM POI and Nominatim results."""

from .cancellation import CancellationToken
from .config import Config
from .distance import distance_km, format_distance, group_by_source
from .engine import LocationSearchEngine
from .models import LocationResult, Source, source_label
from .session import SearchSession

__all__ = [
    "CancellationToken",
    "Config",
    "LocationResult",
    "LocationSearchEngine",
    "SearchSession",
    "Source",
    "distance_km",
    "format_distance",
    "group_by_source",
    "source_label",
]
