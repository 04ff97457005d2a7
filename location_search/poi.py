"""Nearby POI adapter backed by an Overpass-compatible API.

Builds an `around:` query for named nodes/ways near the reference location and
maps the returned elements to LocationResults. Without a reference location
the adapter contributes nothing.
"""

import logging
import re
import time
from typing import List, Optional

import requests

from .cancellation import CancellationToken
from .config import Config
from .distance import distance_km
from .icons import icon_for
from .models import Coordinates, LocationResult, Source, coerce_coordinates

logger = logging.getLogger(__name__)

_CATEGORY_TAGS = ("amenity", "shop", "tourism", "leisure", "craft")


def _ql_string(value: str) -> str:
    """Escape text for use inside a double-quoted Overpass QL string."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def build_overpass_query(query: str, lat: float, lng: float, radius_m: int, limit: int, timeout: int) -> str:
    pattern = _ql_string(re.escape(query.strip()))
    around = f"(around:{int(radius_m)},{lat},{lng})"
    name_filter = f'["name"~"{pattern}",i]'
    return (
        f"[out:json][timeout:{int(timeout)}];"
        f"(node{around}{name_filter};way{around}{name_filter};);"
        f"out center {int(limit)};"
    )


def _format_address(tags: dict) -> str:
    line1 = " ".join(p for p in (tags.get("addr:housenumber"), tags.get("addr:street")) if p)
    return ", ".join(p for p in (line1, tags.get("addr:city")) if p)


class OverpassPOIFetcher:
    """Queries named points of interest around the reference location."""

    def __init__(self, config: Optional[Config] = None, session: Optional[requests.Session] = None):
        self.config = config or Config()
        self.session = session or requests.Session()
        self.headers = {"User-Agent": self.config.nominatim_user_agent, "Accept": "application/json"}

    def fetch_pois(
        self,
        query: str,
        ref_location: Optional[Coordinates],
        token: CancellationToken,
    ) -> List[LocationResult]:
        if ref_location is None:
            logger.debug("Overpass: no reference location, skipping POI search")
            return []
        if token.cancelled:
            return []

        ql = build_overpass_query(
            query,
            ref_location.lat,
            ref_location.lng,
            radius_m=self.config.poi_radius_m,
            limit=self.config.poi_max_results,
            timeout=max(1, int(self.config.request_timeout)),
        )
        try:
            t0 = time.time()
            resp = self.session.post(
                self.config.overpass_url,
                data={"data": ql},
                headers=self.headers,
                timeout=self.config.request_timeout,
            )
            elapsed_ms = int((time.time() - t0) * 1000)
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as e:
            logger.warning(f"Overpass error for '{query}': {e}")
            token.mark_degraded()
            return []
        except ValueError as e:
            logger.warning(f"Overpass returned malformed JSON for '{query}': {e}")
            token.mark_degraded()
            return []

        if token.cancelled:
            logger.debug(f"Overpass: discarding response for cancelled query '{query}'")
            return []

        elements = payload.get("elements") if isinstance(payload, dict) else None
        if not isinstance(elements, list):
            logger.warning(f"Overpass: response for '{query}' has no element list")
            token.mark_degraded()
            return []

        results = self._map(elements, ref_location)
        logger.debug(f"Overpass: '{query}' -> {len(results)} POIs ({elapsed_ms}ms)")
        return results

    def _map(self, elements: list, ref: Coordinates) -> List[LocationResult]:
        results = []
        seen_ids = set()
        for el in elements:
            if not isinstance(el, dict):
                continue
            tags = el.get("tags") or {}
            name = (tags.get("name") or "").strip()
            if not name:
                continue

            lat, lng = el.get("lat"), el.get("lon")
            if lat is None or lng is None:
                center = el.get("center") or {}
                lat, lng = center.get("lat"), center.get("lon")
            coords = coerce_coordinates(lat, lng)
            if coords is None:
                logger.debug(f"Overpass: dropping {el.get('type')}/{el.get('id')} with bad coordinates")
                continue

            result_id = f"osm-{el.get('type', 'node')}-{el.get('id', len(results))}"
            if result_id in seen_ids:
                continue
            seen_ids.add(result_id)

            kind = next((tags[t] for t in _CATEGORY_TAGS if tags.get(t)), None)
            results.append(LocationResult(
                id=result_id,
                name=name,
                address=_format_address(tags),
                lat=coords[0],
                lng=coords[1],
                source=Source.OSM,
                icon=icon_for(kind),
                type=kind,
                distance_km=distance_km(ref.lat, ref.lng, coords[0], coords[1]),
            ))
        return results
