"""Main LocationSearchEngine: merges directory, POI and geocoder results into one ranked list."""

import logging
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Dict, List, Optional

from .cache import SearchCache
from .cancellation import CancellationToken
from .config import Config
from .directory import BusinessDirectory
from .geocoder import Geocoder, create_geocoder
from .models import Coordinates, EngineClosedError, LocationResult, is_valid_coordinate
from .poi import OverpassPOIFetcher
from .scorer import RelevanceScorer

logger = logging.getLogger(__name__)


class LocationSearchEngine:
    """
    Location search engine.

    Matches the internal business directory synchronously, queries the
    Overpass POI layer and the Nominatim geocoder concurrently, then
    deduplicates across sources and ranks the combined set. The only mutable
    state is the reference location set through update_location().
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        directory: Optional[BusinessDirectory] = None,
        poi_fetcher: Optional[OverpassPOIFetcher] = None,
        geocoder: Optional[Geocoder] = None,
        cache: Optional[SearchCache] = None,
    ):
        self.config = config or Config()
        self.directory = directory or BusinessDirectory(self.config)
        self.poi_fetcher = poi_fetcher or OverpassPOIFetcher(self.config)
        self.geocoder = geocoder or create_geocoder(self.config)
        self.scorer = RelevanceScorer(self.config)

        if cache is None and self.config.cache_db:
            cache = SearchCache(self.config.cache_db, self.config.cache_ttl_seconds)
        self.cache = cache

        self._owns_cache = True
        self._ref: Optional[Coordinates] = None
        self._closed = False

    # ------------------------------------------------------------------
    # Reference location
    # ------------------------------------------------------------------
    @property
    def reference_location(self) -> Optional[Coordinates]:
        return self._ref

    def update_location(self, lat: float, lng: float):
        """Set the reference location for subsequent searches (last write wins)."""
        lat, lng = float(lat), float(lng)
        if not is_valid_coordinate(lat, lng):
            raise ValueError(f"Invalid reference location: ({lat}, {lng})")
        self._ref = Coordinates(lat, lng)

    def clear_location(self):
        self._ref = None

    def for_location(self, lat: Optional[float] = None, lng: Optional[float] = None) -> "LocationSearchEngine":
        """A view sharing this engine's adapters and cache but with its own location."""
        view = LocationSearchEngine(
            self.config,
            directory=self.directory,
            poi_fetcher=self.poi_fetcher,
            geocoder=self.geocoder,
            cache=self.cache,
        )
        view._owns_cache = False
        if lat is not None and lng is not None:
            view.update_location(lat, lng)
        return view

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------
    def search(self, query: str, token: Optional[CancellationToken] = None) -> List[LocationResult]:
        """
        Search all sources for `query`.

        1. Short-circuit short queries
        2. Optional cache check
        3. Directory match (synchronous)
        4. POI + geocoder fan-out on a per-search pool
        5. Dedupe, rank, truncate (cached only when no adapter degraded)

        Returns [] when `token` is cancelled before completion.
        """
        if self._closed:
            raise EngineClosedError("search() called on a closed LocationSearchEngine")
        token = token or CancellationToken()

        q = (query or "").strip()
        if len(q) < self.config.min_query_length:
            return []

        ref = self._ref
        t0 = time.time()
        if token.cancelled:
            return []

        if self.cache is not None:
            cached = self.cache.get(q, ref)
            if cached is not None:
                logger.debug(f"Cache hit for '{q}' ({len(cached)} results)")
                return cached

        local = self._match_directory(q, ref)

        adapter_token = token.child()
        # Per-search pool: calls abandoned on cancel never hold up later searches
        pool = ThreadPoolExecutor(max_workers=self.config.max_workers, thread_name_prefix="location-search")
        try:
            futures = {
                pool.submit(self.poi_fetcher.fetch_pois, q, ref, adapter_token): "osm",
                pool.submit(self.geocoder.geocode, q, adapter_token, ref): "nominatim",
            }
            contributions = self._collect(futures, token, adapter_token)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        if contributions is None:
            logger.debug(f"Search for '{q}' cancelled")
            return []

        merged = self.scorer.merge(q, local + contributions["osm"] + contributions["nominatim"])
        if token.cancelled:
            return []

        if self.cache is not None:
            if adapter_token.degraded:
                logger.debug(f"Not caching degraded results for '{q}'")
            else:
                self.cache.put(q, ref, merged)

        elapsed_ms = int((time.time() - t0) * 1000)
        logger.debug(
            f"Search '{q}': business={len(local)} osm={len(contributions['osm'])} "
            f"nominatim={len(contributions['nominatim'])} -> {len(merged)} ({elapsed_ms}ms)"
        )
        return merged

    def _match_directory(self, query: str, ref: Optional[Coordinates]) -> List[LocationResult]:
        try:
            return self.directory.match(query, ref)
        except Exception as e:
            logger.error(f"Directory match failed for '{query}': {e}")
            return []

    def _collect(
        self, futures: Dict, token: CancellationToken, adapter_token: CancellationToken
    ) -> Optional[Dict[str, List[LocationResult]]]:
        """Wait for every adapter future. None means the search was cancelled."""
        pending = set(futures)
        while pending:
            if token.cancelled:
                return None
            _, pending = wait(pending, timeout=self.config.poll_interval, return_when=FIRST_COMPLETED)
        if token.cancelled:
            return None

        contributions = {}
        for future, source in futures.items():
            try:
                contributions[source] = list(future.result() or [])
            except Exception as e:
                logger.error(f"{source} adapter failed: {e}")
                adapter_token.mark_degraded()
                contributions[source] = []
        return contributions

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def close(self):
        if self._closed:
            return
        self._closed = True
        if self._owns_cache and self.cache is not None:
            self.cache.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
