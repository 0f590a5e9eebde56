from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from .logging_utils import log_event
from .map_errors import MapDataError, normalize_reason_code
from .map_service import MapService, current_map_service, load_map_service, map_service_status
from .models import (
    AutocompleteResponse,
    HealthResponse,
    LocationResult,
    LocationsResponse,
    RasterResponse,
    RouteResponse,
)
from .settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    if bool(settings.map_build_on_startup) and current_map_service() is None:
        try:
            # The build holds the single-writer lock; requests see 503 until it publishes.
            await asyncio.to_thread(load_map_service)
        except MapDataError as exc:
            log_event("map_startup_unavailable", reason=exc.reason_code, error_message=exc.message)
    yield


app = FastAPI(title="Road Map Server", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def map_service() -> MapService:
    service = current_map_service()
    if service is None:
        raise HTTPException(status_code=503, detail="map_not_ready")
    return service


MapDep = Annotated[MapService, Depends(map_service)]


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Backend is running. Visit /docs for the API UI.", "docs": "/docs"}


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    status = map_service_status()
    return HealthResponse(status="ok" if status["state"] == "ready" else "degraded", map=status)


@app.get("/raster", response_model=RasterResponse)
def raster(
    service: MapDep,
    ullon: float,
    ullat: float,
    lrlon: float,
    lrlat: float,
    w: float,
    h: float,
) -> RasterResponse:
    result = service.raster(ullon=ullon, ullat=ullat, lrlon=lrlon, lrlat=lrlat, width=w, height=h)
    if not result.query_success:
        return RasterResponse(query_success=False)
    return RasterResponse(**result.as_dict())


@app.get("/route", response_model=RouteResponse)
def route(
    service: MapDep,
    start_lon: Annotated[float, Query(ge=-180, le=180)],
    start_lat: Annotated[float, Query(ge=-90, le=90)],
    end_lon: Annotated[float, Query(ge=-180, le=180)],
    end_lat: Annotated[float, Query(ge=-90, le=90)],
) -> RouteResponse:
    try:
        answer = service.route_with_directions(start_lon, start_lat, end_lon, end_lat)
    except MapDataError as e:
        raise HTTPException(status_code=422, detail=f"{normalize_reason_code(e.reason_code)}: {e.message}") from e
    if not answer.found:
        return RouteResponse(found=False)
    return RouteResponse(
        found=True,
        route=answer.route,
        distance_miles=answer.distance,
        directions=[step.render() for step in answer.directions],
    )


@app.get("/search", response_model=AutocompleteResponse)
def autocomplete(service: MapDep, term: str = "") -> AutocompleteResponse:
    return AutocompleteResponse(term=term, matches=service.autocomplete(term))


@app.get("/search/locations", response_model=LocationsResponse)
def locations(service: MapDep, term: str) -> LocationsResponse:
    return LocationsResponse(
        term=term,
        locations=[LocationResult(**loc) for loc in service.locations(term)],
    )
