from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from .graph_db import GraphDB
from .logging_utils import log_event
from .map_errors import StructureFrozenError
from .settings import settings

UNKNOWN_ROAD = "unknown road"


@dataclass(frozen=True)
class NodeRecord:
    id: int
    lon: float
    lat: float
    name: str | None = None


@dataclass(frozen=True)
class WayRecord:
    node_refs: tuple[int, ...]
    road_type: str
    name: str | None = None


@dataclass
class BuildStats:
    nodes_seen: int = 0
    nodes_kept: int = 0
    named_nodes: int = 0
    ways_seen: int = 0
    ways_accepted: int = 0
    edges_added: int = 0
    edges_dropped: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "nodes_seen": self.nodes_seen,
            "nodes_kept": self.nodes_kept,
            "named_nodes": self.named_nodes,
            "ways_seen": self.ways_seen,
            "ways_accepted": self.ways_accepted,
            "edges_added": self.edges_added,
            "edges_dropped": self.edges_dropped,
        }


@dataclass
class _PendingNode:
    lon: float
    lat: float
    name: str | None = None


@dataclass
class _PendingWay:
    refs: tuple[int, ...]
    label: str


@dataclass
class GraphBuilder:
    """Accumulates parsed node and way records, then produces a finalized GraphDB.

    Node attributes are merged per id until ``build`` runs, so a name that a
    parser only sees after the node's coordinates is attached without
    dropping them. Ways are expanded at build time, once every node is known.
    """

    allowed_highway_types: frozenset[str] = field(default_factory=settings.highway_types)
    progress_every: int = 100_000
    stats: BuildStats = field(default_factory=BuildStats)
    _nodes: dict[int, _PendingNode] = field(default_factory=dict, init=False, repr=False)
    _ways: list[_PendingWay] = field(default_factory=list, init=False, repr=False)
    _built: bool = field(default=False, init=False, repr=False)

    def _require_open(self) -> None:
        if self._built:
            raise StructureFrozenError("graph builder already produced its graph")

    def add_node(self, record: NodeRecord) -> None:
        self._require_open()
        self.stats.nodes_seen += 1
        node_id = int(record.id)
        pending = self._nodes.get(node_id)
        if pending is None:
            self._nodes[node_id] = _PendingNode(lon=float(record.lon), lat=float(record.lat), name=record.name)
            return
        pending.lon = float(record.lon)
        pending.lat = float(record.lat)
        if record.name:
            pending.name = record.name

    def attach_name(self, node_id: int, name: str) -> None:
        self._require_open()
        pending = self._nodes.get(int(node_id))
        if pending is None:
            raise KeyError(node_id)
        pending.name = name

    def add_way(self, record: WayRecord) -> bool:
        self._require_open()
        self.stats.ways_seen += 1
        road_type = str(record.road_type or "").strip().lower()
        if road_type not in self.allowed_highway_types:
            return False
        self.stats.ways_accepted += 1
        label = record.name if record.name else UNKNOWN_ROAD
        self._ways.append(_PendingWay(refs=tuple(int(ref) for ref in record.node_refs), label=label))
        return True

    def consume(self, records: Iterable[NodeRecord | WayRecord]) -> BuildStats:
        for record in records:
            if isinstance(record, NodeRecord):
                self.add_node(record)
            elif isinstance(record, WayRecord):
                self.add_way(record)
            else:
                raise TypeError(f"unsupported record type {type(record).__name__}")
            seen = self.stats.nodes_seen + self.stats.ways_seen
            if self.progress_every > 0 and seen % self.progress_every == 0:
                log_event("map_build_progress", **self.stats.as_dict())
        return self.stats

    def build(self) -> GraphDB:
        self._require_open()
        graph = GraphDB()
        for node_id, pending in self._nodes.items():
            graph.add_vertex(node_id, pending.lon, pending.lat, pending.name)
            if pending.name:
                self.stats.named_nodes += 1
        self.stats.nodes_kept = len(graph)

        for way in self._ways:
            for u, v in zip(way.refs, way.refs[1:]):
                if u not in graph or v not in graph:
                    self.stats.edges_dropped += 1
                    continue
                if graph.add_edge(u, v, way.label):
                    self.stats.edges_added += 1

        if self.stats.edges_dropped:
            log_event(
                "graph_edge_dropped_unknown_vertex",
                edges_dropped=self.stats.edges_dropped,
            )
        self._nodes.clear()
        self._ways.clear()
        self._built = True
        return graph.finalize()


def build_graph(
    records: Iterable[NodeRecord | WayRecord],
    *,
    allowed_highway_types: Iterable[str] | None = None,
) -> tuple[GraphDB, BuildStats]:
    builder = (
        GraphBuilder()
        if allowed_highway_types is None
        else GraphBuilder(allowed_highway_types=frozenset(t.strip().lower() for t in allowed_highway_types))
    )
    builder.consume(records)
    graph = builder.build()
    return graph, builder.stats
