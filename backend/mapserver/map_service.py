from __future__ import annotations

import re
import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .directions import NavigationStep, route_directions
from .graph_builder import GraphBuilder, NodeRecord, WayRecord
from .graph_db import GraphDB, Vertex
from .logging_utils import log_event
from .map_errors import MapDataError
from .prefix_index import PrefixIndex
from .rasterer import RootBox, TileQueryResult, get_map_raster
from .records import MapRecordReader
from .router import path_cost, shortest_path
from .settings import settings

_NON_NAME_CHARS = re.compile(r"[^a-zA-Z ]")


def clean_name(name: str) -> str:
    """Lowercase, letters and spaces only. Search keys are compared in this form."""
    return _NON_NAME_CHARS.sub("", name).lower()


@dataclass(frozen=True)
class RouteAnswer:
    route: list[int]
    distance: float
    directions: list[NavigationStep]

    @property
    def found(self) -> bool:
        return bool(self.route)


@dataclass
class MapService:
    """Read-only bundle of everything the queries need, built in one go."""

    graph: GraphDB
    index: PrefixIndex
    names_by_key: dict[str, tuple[str, ...]]
    locations_by_key: dict[str, tuple[Vertex, ...]]
    root: RootBox = field(default_factory=RootBox.from_settings)
    stats: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_records(
        cls,
        records: Iterable[NodeRecord | WayRecord],
        *,
        allowed_highway_types: Iterable[str] | None = None,
        root: RootBox | None = None,
    ) -> MapService:
        builder = (
            GraphBuilder()
            if allowed_highway_types is None
            else GraphBuilder(allowed_highway_types=frozenset(t.strip().lower() for t in allowed_highway_types))
        )
        builder.consume(records)
        graph = builder.build()

        names: dict[str, set[str]] = {}
        places: dict[str, list[Vertex]] = {}
        for vid in graph.vertices():
            vertex = graph.vertex(vid)
            if not vertex.name:
                continue
            key = clean_name(vertex.name)
            if not key:
                continue
            names.setdefault(key, set()).add(vertex.name)
            places.setdefault(key, []).append(vertex)
        index = PrefixIndex(names).freeze()

        stats: dict[str, Any] = builder.stats.as_dict()
        stats["edge_count"] = graph.edge_count
        stats["place_keys"] = len(index)
        return cls(
            graph=graph,
            index=index,
            names_by_key={key: tuple(sorted(values)) for key, values in names.items()},
            locations_by_key={key: tuple(sorted(values, key=lambda v: v.id)) for key, values in places.items()},
            root=root or RootBox.from_settings(),
            stats=stats,
        )

    def route(self, start_lon: float, start_lat: float, dest_lon: float, dest_lat: float) -> list[int]:
        return shortest_path(self.graph, start_lon, start_lat, dest_lon, dest_lat)

    def directions(self, route: list[int]) -> list[NavigationStep]:
        return route_directions(self.graph, route)

    def route_with_directions(
        self,
        start_lon: float,
        start_lat: float,
        dest_lon: float,
        dest_lat: float,
    ) -> RouteAnswer:
        route = self.route(start_lon, start_lat, dest_lon, dest_lat)
        return RouteAnswer(
            route=route,
            distance=path_cost(self.graph, route),
            directions=self.directions(route),
        )

    def raster(
        self,
        *,
        ullon: float,
        ullat: float,
        lrlon: float,
        lrlat: float,
        width: float,
        height: float,
    ) -> TileQueryResult:
        return get_map_raster(
            ullon=ullon,
            ullat=ullat,
            lrlon=lrlon,
            lrlat=lrlat,
            width=width,
            height=height,
            root=self.root,
        )

    def autocomplete(self, prefix: str) -> list[str]:
        matches: set[str] = set()
        for key in self.index.keys_with_prefix(clean_name(prefix)):
            matches.update(self.names_by_key.get(key, ()))
        return sorted(matches)

    def locations(self, name: str) -> list[dict[str, Any]]:
        return [
            {"id": v.id, "lon": v.lon, "lat": v.lat, "name": v.name}
            for v in self.locations_by_key.get(clean_name(name), ())
        ]


# Single-writer barrier: the service is built under this lock and only
# published once complete, so readers never observe a half-built graph.
_BUILD_LOCK = threading.Lock()
_SERVICE: MapService | None = None
_LAST_ERROR: str | None = None


def _records_path() -> Path:
    return Path(settings.map_records_path)


def load_map_service(*, force: bool = False) -> MapService:
    global _SERVICE, _LAST_ERROR
    current = _SERVICE
    if current is not None and not force:
        return current
    with _BUILD_LOCK:
        if _SERVICE is not None and not force:
            return _SERVICE
        path = _records_path()
        started = time.monotonic()
        log_event("map_build_started", records_path=str(path))
        reader = MapRecordReader(path)
        try:
            service = MapService.from_records(reader)
        except MapDataError as exc:
            _LAST_ERROR = f"{exc.reason_code}: {exc.message}"
            log_event(
                "map_build_failed",
                reason=exc.reason_code,
                error_message=exc.message,
                records_path=str(path),
            )
            raise
        service.stats["invalid_nodes"] = reader.invalid_nodes
        service.stats["invalid_ways"] = reader.invalid_ways
        _SERVICE = service
        _LAST_ERROR = None
        log_event(
            "map_build_ready",
            elapsed_ms=round((time.monotonic() - started) * 1000.0, 2),
            **service.stats,
        )
        return service


def install_map_service(service: MapService | None) -> None:
    global _SERVICE, _LAST_ERROR
    with _BUILD_LOCK:
        _SERVICE = service
        _LAST_ERROR = None


def current_map_service() -> MapService | None:
    return _SERVICE


def map_service_status() -> dict[str, Any]:
    service = _SERVICE
    return {
        "state": "ready" if service is not None else ("failed" if _LAST_ERROR else "idle"),
        "last_error": _LAST_ERROR,
        "records_path": str(_records_path()),
        "stats": dict(service.stats) if service is not None else {},
    }
