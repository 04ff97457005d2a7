"""Free-text geocoding adapter backed by OpenStreetMap Nominatim."""

import logging
import time
from abc import ABC, abstractmethod
from typing import List, Optional

import requests

from .cancellation import CancellationToken
from .config import Config
from .distance import distance_km
from .icons import ADDRESS_ICON, DEFAULT_ICON
from .models import Coordinates, LocationResult, Source, coerce_coordinates
from .scorer import normalize_text

logger = logging.getLogger(__name__)


class Geocoder(ABC):
    @abstractmethod
    def geocode(
        self,
        query: str,
        token: CancellationToken,
        ref_location: Optional[Coordinates] = None,
    ) -> List[LocationResult]:
        """Geocode free text into address/landmark results.

        Never raises on network failure: returns [] and marks `token` degraded.
        """
        ...


def format_specific_label(item: dict) -> str:
    """Street address, then the place's own name, then the road, then the head of display_name."""
    address = item.get("address") or {}
    if address.get("house_number") and address.get("road"):
        return f"{address['house_number']} {address['road']}"
    if item.get("name"):
        return str(item["name"]).strip()
    if address.get("road"):
        return address["road"]
    return (item.get("display_name") or "").split(",")[0].strip()


def format_general_label(item: dict) -> str:
    """City, state, country (administrative hierarchy only)."""
    address = item.get("address") or {}
    city = (
        address.get("city")
        or address.get("town")
        or address.get("village")
        or address.get("hamlet")
    )
    return ", ".join(p for p in (city, address.get("state"), address.get("country")) if p)


class NominatimGeocoder(Geocoder):
    """Nominatim /search client. One request per call; rate limiting belongs to the caller."""

    def __init__(self, config: Optional[Config] = None, session: Optional[requests.Session] = None):
        self.config = config or Config()
        self.session = session or requests.Session()
        self.headers = {"User-Agent": self.config.nominatim_user_agent}
        if self.config.nominatim_referer:
            self.headers["Referer"] = self.config.nominatim_referer

    def _params(self, query: str, ref: Optional[Coordinates]) -> dict:
        params = {
            "q": query,
            "format": "json",
            "addressdetails": "1",
            "dedupe": "1",
            "limit": str(self.config.geocoder_request_limit),
        }
        if ref is not None:
            d = self.config.viewbox_degrees
            params["viewbox"] = f"{ref.lng - d},{ref.lat + d},{ref.lng + d},{ref.lat - d}"
            params["bounded"] = "0"
        return params

    def geocode(
        self,
        query: str,
        token: CancellationToken,
        ref_location: Optional[Coordinates] = None,
    ) -> List[LocationResult]:
        if token.cancelled:
            return []
        try:
            t0 = time.time()
            resp = self.session.get(
                self.config.nominatim_url,
                params=self._params(query, ref_location),
                headers=self.headers,
                timeout=self.config.request_timeout,
            )
            elapsed_ms = int((time.time() - t0) * 1000)
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as e:
            logger.warning(f"Nominatim error for '{query}': {e}")
            token.mark_degraded()
            return []
        except ValueError as e:
            logger.warning(f"Nominatim returned malformed JSON for '{query}': {e}")
            token.mark_degraded()
            return []

        if token.cancelled:
            logger.debug(f"Nominatim: discarding response for cancelled query '{query}'")
            return []
        if not isinstance(data, list):
            logger.warning(f"Nominatim: unexpected payload type {type(data).__name__} for '{query}'")
            token.mark_degraded()
            return []

        results = self._dedupe(self._map(data, ref_location))[: self.config.geocoder_max_results]
        logger.debug(f"Nominatim: '{query}' -> {len(results)} results ({elapsed_ms}ms)")
        return results

    def _map(self, data: list, ref: Optional[Coordinates]) -> List[LocationResult]:
        results = []
        for item in data:
            if not isinstance(item, dict):
                continue
            coords = coerce_coordinates(item.get("lat"), item.get("lon"))
            if coords is None:
                logger.debug(f"Nominatim: dropping place {item.get('place_id')} with bad coordinates")
                continue
            name = format_specific_label(item)
            if not name:
                continue
            lat, lng = coords
            address = item.get("address") or {}
            results.append(LocationResult(
                id=f"nom-{item.get('place_id', len(results))}",
                name=name,
                address=format_general_label(item),
                lat=lat,
                lng=lng,
                source=Source.NOMINATIM,
                icon=ADDRESS_ICON if address.get("house_number") and address.get("road") else DEFAULT_ICON,
                type=item.get("type") or item.get("class") or None,
                distance_km=distance_km(ref.lat, ref.lng, lat, lng) if ref is not None else None,
            ))
        return results

    def _dedupe(self, results: List[LocationResult]) -> List[LocationResult]:
        """Collapse upstream near-duplicates (same spot or same label)."""
        eps = self.config.dedup_epsilon_deg
        unique: List[LocationResult] = []
        for r in results:
            dup = any(
                (abs(u.lat - r.lat) <= eps and abs(u.lng - r.lng) <= eps)
                or normalize_text(u.name) == normalize_text(r.name)
                for u in unique
            )
            if not dup:
                unique.append(r)
        return unique


def create_geocoder(config: Optional[Config] = None, session: Optional[requests.Session] = None) -> Geocoder:
    """Factory for the configured geocoder (Nominatim is the only backend)."""
    return NominatimGeocoder(config, session=session)
