"""Configuration for the location search engine."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)


_PACKAGE_DIR = Path(__file__).parent


@dataclass
class Config:
    # Internal business directory
    businesses_file: Path = _PACKAGE_DIR / "data" / "businesses.json"
    directory_max_results: int = 5

    # Nominatim geocoder
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    nominatim_user_agent: str = "location-search/0.1 (contact: example@example.com)"
    nominatim_referer: str = ""
    geocoder_request_limit: int = 10
    geocoder_max_results: int = 6
    viewbox_degrees: float = 0.5  # bias box around the reference location, not a hard bound

    # Overpass POI layer
    overpass_url: str = "https://overpass-api.de/api/interpreter"
    poi_radius_m: int = 15000
    poi_max_results: int = 20

    # Network
    request_timeout: float = 5.0
    max_workers: int = 2  # adapter threads per search
    poll_interval: float = 0.05

    # Merge & rank
    min_query_length: int = 2
    max_results: int = 10
    dedup_epsilon_deg: float = 0.0001  # ~11 m
    trust_order: list = field(default_factory=lambda: ["business", "osm", "nominatim"])
    fuzzy_threshold: float = 80.0

    # Text-match weights, highest first. Gaps must exceed the directory proximity bonus.
    match_weights: dict = field(default_factory=lambda: {
        "exact": 100.0,
        "prefix": 90.0,
        "word_prefix": 75.0,
        "substring": 60.0,
        "fuzzy": 30.0,
        "none": 10.0,
    })
    proximity_bonus: float = 5.0

    # Call-site throttling (Nominatim allows ~1 request/second)
    debounce_ms: int = 150
    min_interval_s: float = 1.0

    # Optional result cache (disabled when None)
    cache_db: Optional[Path] = None
    cache_ttl_seconds: int = 15 * 60


def load_config(env: Optional[Mapping[str, str]] = None) -> Config:
    """Build a Config, applying environment overrides where set."""
    env = os.environ if env is None else env
    config = Config()
    if env.get("BUSINESSES_FILE"):
        config.businesses_file = Path(env["BUSINESSES_FILE"])
    if env.get("NOMINATIM_URL"):
        config.nominatim_url = env["NOMINATIM_URL"]
    if env.get("NOMINATIM_USER_AGENT"):
        config.nominatim_user_agent = env["NOMINATIM_USER_AGENT"]
    else:
        logger.warning(
            "NOMINATIM_USER_AGENT not set in environment; using fallback UA. "
            "This may violate Nominatim usage policy."
        )
    if env.get("NOMINATIM_REFERER"):
        config.nominatim_referer = env["NOMINATIM_REFERER"]
    if env.get("OVERPASS_URL"):
        config.overpass_url = env["OVERPASS_URL"]
    if env.get("SEARCH_CACHE_DB"):
        config.cache_db = Path(env["SEARCH_CACHE_DB"])
    if env.get("SEARCH_REQUEST_TIMEOUT"):
        config.request_timeout = float(env["SEARCH_REQUEST_TIMEOUT"])
    return config
