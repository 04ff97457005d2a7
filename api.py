"""
FastAPI server for the location search engine.

Serves ranked, deduplicated location suggestions for a search box. The
business directory loads at startup; each request gets its own engine view
so concurrent callers never share a reference location.

Run with: uvicorn api:app --port 8000
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from location_search.config import load_config
from location_search.distance import group_by_source
from location_search.engine import LocationSearchEngine
from location_search.models import source_label

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("api")

# ---------------------------------------------------------------------------
# Global engine (loaded once at startup)
# ---------------------------------------------------------------------------
engine: Optional[LocationSearchEngine] = None


def _load_dotenv(env_path: Path):
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            key, val = line.split("=", 1)
            os.environ.setdefault(key.strip(), val.strip())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the engine on startup, release the pool on shutdown."""
    global engine
    t0 = time.time()
    _load_dotenv(Path(__file__).parent / ".env")

    engine = LocationSearchEngine(load_config())
    logger.info(
        f"Engine ready in {time.time() - t0:.1f}s: "
        f"directory={len(engine.directory.businesses)} businesses, "
        f"cache={'on' if engine.cache is not None else 'off'}"
    )

    yield

    if engine:
        engine.close()
    logger.info("Shutdown complete.")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Location Search API",
    description="Merged business, nearby-POI and geocoder suggestions for a search box.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------
class LocationResultResponse(BaseModel):
    id: str
    name: str
    address: str = ""
    lat: float
    lng: float
    source: str
    source_label: str
    icon: str = ""
    type: Optional[str] = None
    distance_km: Optional[float] = None
    distance_label: str = ""


class ResultGroupResponse(BaseModel):
    source: str
    label: str
    items: list[LocationResultResponse]


class SearchResponse(BaseModel):
    query: str
    results: list[LocationResultResponse] = Field(default_factory=list)
    groups: Optional[list[ResultGroupResponse]] = None
    total: int
    search_time_ms: int


class HealthResponse(BaseModel):
    status: str
    engine_loaded: bool
    uptime_seconds: float


_start_time = time.time()


def _require_engine() -> LocationSearchEngine:
    if not engine:
        raise HTTPException(status_code=503, detail="Engine is still loading. Try again shortly.")
    return engine


def _view_for(lat: Optional[float], lng: Optional[float]) -> LocationSearchEngine:
    base = _require_engine()
    if (lat is None) != (lng is None):
        raise HTTPException(status_code=400, detail="lat and lng must be given together.")
    return base.for_location(lat, lng)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check."""
    return HealthResponse(
        status="ok" if engine else "loading",
        engine_loaded=engine is not None,
        uptime_seconds=round(time.time() - _start_time, 1),
    )


@app.get("/search", response_model=SearchResponse)
def search(
    q: str = Query(..., description="Free-text place, business or address query"),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    grouped: bool = Query(False, description="Also return results grouped by source"),
):
    """
    Ranked location suggestions for `q`.

    Queries shorter than two characters return an empty list without
    touching any upstream service.
    """
    view = _view_for(lat, lng)
    t0 = time.time()
    try:
        results = view.search(q)
    except Exception as e:
        logger.error(f"Search error for '{q}': {e}")
        raise HTTPException(status_code=500, detail=f"Search failed: {str(e)}")

    groups = None
    if grouped:
        groups = [
            {
                "source": g["source"].value,
                "label": source_label(g["source"]),
                "items": [r.to_dict() for r in g["items"]],
            }
            for g in group_by_source(results, view.config.trust_order)
        ]

    return SearchResponse(
        query=q,
        results=[r.to_dict() for r in results],
        groups=groups,
        total=len(results),
        search_time_ms=int((time.time() - t0) * 1000),
    )


@app.get("/nearby", response_model=list[LocationResultResponse])
def nearby(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    limit: int = Query(25, ge=1, le=100),
):
    """Directory businesses nearest to (lat, lng)."""
    base = _require_engine()
    return [r.to_dict() for r in base.directory.nearest(lat, lng, limit=limit)]
