from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class RouteResponse(BaseModel):
    found: bool
    route: list[int] = Field(default_factory=list)
    distance_miles: float = Field(default=0.0, ge=0.0)
    directions: list[str] = Field(default_factory=list)


class RasterResponse(BaseModel):
    """Tile grid for a viewport. Only meaningful when ``query_success`` is true."""

    render_grid: list[list[str]] = Field(default_factory=list)
    raster_ul_lon: float = 0.0
    raster_ul_lat: float = 0.0
    raster_lr_lon: float = 0.0
    raster_lr_lat: float = 0.0
    depth: int = Field(default=0, ge=0)
    query_success: bool = False


class AutocompleteResponse(BaseModel):
    term: str
    matches: list[str] = Field(default_factory=list)


class LocationResult(BaseModel):
    id: int
    lon: float
    lat: float
    name: str


class LocationsResponse(BaseModel):
    term: str
    locations: list[LocationResult] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    map: dict[str, Any] = Field(default_factory=dict)
