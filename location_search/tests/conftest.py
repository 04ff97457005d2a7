import itertools
import sys
import threading
from pathlib import Path

import pytest

# Ensure the repository root is on sys.path for direct pytest runs
REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from location_search.config import Config
from location_search.directory import BusinessDirectory
from location_search.models import LocationResult, Source

_ids = itertools.count(1)


def make_result(name, lat, lng, source=Source.NOMINATIM, distance_km=None, **kw):
    prefix = {Source.BUSINESS: "app", Source.OSM: "osm", Source.NOMINATIM: "nom"}[source]
    return LocationResult(
        id=kw.pop("id", f"{prefix}-{next(_ids)}"),
        name=name,
        lat=lat,
        lng=lng,
        source=source,
        distance_km=distance_km,
        **kw,
    )


class FakePOIFetcher:
    """Records calls; mirrors the real adapter's 'no location, no results' rule."""

    def __init__(self, results=None, error=None, gate=None):
        self.results = list(results or [])
        self.error = error
        self.gate = gate
        self.calls = []
        self._lock = threading.Lock()

    def fetch_pois(self, query, ref_location, token):
        with self._lock:
            self.calls.append((query, ref_location))
        if self.gate is not None:
            self.gate()
        if self.error is not None:
            raise self.error
        if ref_location is None:
            return []
        return list(self.results)


class FakeGeocoder:
    def __init__(self, results=None, error=None, gate=None):
        self.results = list(results or [])
        self.error = error
        self.gate = gate
        self.calls = []
        self._lock = threading.Lock()

    def geocode(self, query, token, ref_location=None):
        with self._lock:
            self.calls.append((query, ref_location))
        if self.gate is not None:
            self.gate()
        if self.error is not None:
            raise self.error
        return list(self.results)


@pytest.fixture
def config():
    return Config(poll_interval=0.01, debounce_ms=30, min_interval_s=0.0)


@pytest.fixture
def directory(config):
    return BusinessDirectory(config)
