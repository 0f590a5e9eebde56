from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np
from scipy.spatial import cKDTree

from .map_errors import MapDataError, StructureFrozenError

# Mean Earth radius. Distances are reported in miles, matching the direction text.
EARTH_RADIUS_MILES = 3963.0


def haversine_miles(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lon2 - lon1)
    a = (
        math.sin(dphi / 2.0) ** 2
        + (math.cos(phi1) * math.cos(phi2) * (math.sin(dlambda / 2.0) ** 2))
    )
    return 2.0 * EARTH_RADIUS_MILES * math.asin(min(1.0, math.sqrt(max(0.0, a))))


def initial_bearing_deg(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Initial compass bearing from point 1 to point 2, in degrees.

    0 is north and angles grow clockwise, so east is 90 and west is -90.
    The result lies in (-180, 180].
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dlambda = math.radians(lon2 - lon1)
    y = math.sin(dlambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlambda)
    bearing = math.degrees(math.atan2(y, x))
    return 180.0 if bearing == -180.0 else bearing


def _unit_vector(lon: float, lat: float) -> np.ndarray:
    phi = math.radians(lat)
    lam = math.radians(lon)
    return np.array([math.cos(phi) * math.cos(lam), math.cos(phi) * math.sin(lam), math.sin(phi)])


@dataclass(frozen=True)
class Vertex:
    id: int
    lon: float
    lat: float
    name: str | None = None


class GraphDB:
    """Undirected road graph keyed by integer vertex id.

    Vertices and adjacency live in id-keyed dicts; nothing holds a reference
    to another vertex object. Once ``finalize`` has run the graph is read-only
    and may be shared across threads without locking.
    """

    def __init__(self) -> None:
        self._vertices: dict[int, Vertex] = {}
        self._adjacency: dict[int, dict[int, str]] = {}
        self._edge_count = 0
        self._finalized = False
        self._tree: cKDTree | None = None
        self._tree_ids: np.ndarray | None = None

    def _require_mutable(self) -> None:
        if self._finalized:
            raise StructureFrozenError("graph is finalized; no further mutation is permitted")

    def add_vertex(self, vertex_id: int, lon: float, lat: float, name: str | None = None) -> None:
        self._require_mutable()
        vid = int(vertex_id)
        self._vertices[vid] = Vertex(id=vid, lon=float(lon), lat=float(lat), name=name)
        self._adjacency.setdefault(vid, {})

    def add_edge(self, id1: int, id2: int, way_name: str) -> bool:
        """Link two known vertices both ways under ``way_name``.

        When the pair is already linked the first label is kept and False is
        returned.
        """
        self._require_mutable()
        u, v = int(id1), int(id2)
        missing = [vid for vid in (u, v) if vid not in self._vertices]
        if missing:
            raise MapDataError(
                reason_code="unknown_vertex",
                message=f"edge references unknown vertex ids {missing}",
                details={"u": u, "v": v, "way_name": way_name},
            )
        if u == v or v in self._adjacency[u]:
            return False
        self._adjacency[u][v] = way_name
        self._adjacency[v][u] = way_name
        self._edge_count += 1
        return True

    def finalize(self) -> GraphDB:
        if self._finalized:
            return self
        if self._vertices:
            ids = list(self._vertices)
            self._tree_ids = np.array(ids, dtype=np.int64)
            self._tree = cKDTree(
                np.array([_unit_vector(self._vertices[vid].lon, self._vertices[vid].lat) for vid in ids])
            )
        self._finalized = True
        return self

    @property
    def finalized(self) -> bool:
        return self._finalized

    def __contains__(self, vertex_id: object) -> bool:
        return vertex_id in self._vertices

    def __len__(self) -> int:
        return len(self._vertices)

    @property
    def edge_count(self) -> int:
        return self._edge_count

    def vertices(self) -> Iterator[int]:
        return iter(self._vertices)

    def vertex(self, vertex_id: int) -> Vertex:
        return self._vertices[vertex_id]

    def lon(self, vertex_id: int) -> float:
        return self._vertices[vertex_id].lon

    def lat(self, vertex_id: int) -> float:
        return self._vertices[vertex_id].lat

    def name(self, vertex_id: int) -> str | None:
        return self._vertices[vertex_id].name

    def adjacent(self, vertex_id: int) -> frozenset[int]:
        return frozenset(self._adjacency.get(vertex_id, {}))

    def streets_of(self, vertex_id: int) -> dict[int, str]:
        return dict(self._adjacency.get(vertex_id, {}))

    def way_between(self, id1: int, id2: int) -> str | None:
        return self._adjacency.get(id1, {}).get(id2)

    def distance(self, id1: int, id2: int) -> float:
        a = self._vertices[id1]
        b = self._vertices[id2]
        return haversine_miles(a.lon, a.lat, b.lon, b.lat)

    def bearing(self, id1: int, id2: int) -> float:
        a = self._vertices[id1]
        b = self._vertices[id2]
        return initial_bearing_deg(a.lon, a.lat, b.lon, b.lat)

    def _closest_scan(self, lon: float, lat: float) -> int | None:
        best_id: int | None = None
        best_dist = math.inf
        for vid, vertex in self._vertices.items():
            d = haversine_miles(lon, lat, vertex.lon, vertex.lat)
            if d < best_dist or (d == best_dist and best_id is not None and vid < best_id):
                best_id = vid
                best_dist = d
        return best_id

    def closest(self, lon: float, lat: float) -> int | None:
        """Id of the vertex nearest to (lon, lat); ties go to the smallest id."""
        if not self._vertices:
            return None
        if self._tree is None or self._tree_ids is None:
            return self._closest_scan(lon, lat)
        # Chord length on the unit sphere grows with great-circle distance, so the
        # tree's nearest hit is exact; the ball query collects equidistant ties.
        point = _unit_vector(lon, lat)
        chord, _idx = self._tree.query(point, k=1)
        radius = float(chord) * (1.0 + 1e-9) + 1e-12
        best_id: int | None = None
        best_dist = math.inf
        for idx in self._tree.query_ball_point(point, r=radius):
            vid = int(self._tree_ids[idx])
            vertex = self._vertices[vid]
            d = haversine_miles(lon, lat, vertex.lon, vertex.lat)
            if d < best_dist or (d == best_dist and best_id is not None and vid < best_id):
                best_id = vid
                best_dist = d
        return best_id
