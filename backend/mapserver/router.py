from __future__ import annotations

import heapq
from dataclasses import dataclass
from math import fsum, inf
from typing import Any

from .graph_db import GraphDB
from .logging_utils import log_event
from .map_errors import MapDataError
from .settings import settings


@dataclass(frozen=True)
class PathResult:
    nodes: tuple[int, ...]
    cost: float


class PathNotFoundError(ValueError):
    pass


def astar_shortest_path(
    graph: GraphDB,
    *,
    start: int,
    goal: int,
    explored_counter: list[int] | None = None,
) -> PathResult:
    """A* over the great-circle metric, which doubles as an admissible heuristic.

    Every vertex is seeded into the heap up front (unreached ones at +inf).
    Heap entries are ``(g + h, vertex_id)`` so equal keys pop in ascending id
    order. Improved entries are pushed again and stale ones skipped on pop.
    """
    if start not in graph or goal not in graph:
        raise PathNotFoundError("start/goal unknown")
    if start == goal:
        return PathResult(nodes=(start,), cost=0.0)

    heuristic: dict[int, float] = {}
    dist_so_far: dict[int, float] = {}
    previous: dict[int, int] = {}
    heap: list[tuple[float, int]] = []
    for vid in graph.vertices():
        h = graph.distance(vid, goal)
        g = 0.0 if vid == start else inf
        heuristic[vid] = h
        dist_so_far[vid] = g
        heap.append((g + h, vid))
    heapq.heapify(heap)

    settled: set[int] = set()
    while heap:
        key, node = heapq.heappop(heap)
        if node in settled or key != dist_so_far[node] + heuristic[node]:
            continue
        if dist_so_far[node] == inf:
            # Everything left in the heap is unreachable from start.
            break
        settled.add(node)
        if explored_counter is not None:
            explored_counter[0] += 1
        if node == goal:
            path = [goal]
            while path[-1] != start:
                path.append(previous[path[-1]])
            path.reverse()
            return PathResult(nodes=tuple(path), cost=dist_so_far[goal])
        base = dist_so_far[node]
        for nxt in sorted(graph.adjacent(node)):
            if nxt in settled:
                continue
            candidate = base + graph.distance(node, nxt)
            if candidate < dist_so_far[nxt]:
                dist_so_far[nxt] = candidate
                previous[nxt] = node
                heapq.heappush(heap, (candidate + heuristic[nxt], nxt))
    raise PathNotFoundError("no path")


def normalize_no_path_reason(message: str) -> str:
    lowered = str(message or "").strip().lower()
    if "empty graph" in lowered:
        return "empty_graph"
    if "start/goal unknown" in lowered:
        return "start_or_goal_unknown"
    if "no path" in lowered:
        return "no_path"
    return "path_search_exhausted"


def _check_graph_size(graph: GraphDB) -> None:
    limit = int(settings.route_max_graph_nodes)
    if limit > 0 and len(graph) > limit:
        raise MapDataError(
            reason_code="graph_too_large",
            message=f"graph has {len(graph)} vertices, route search is capped at {limit}",
            details={"vertex_count": len(graph), "limit": limit},
        )


def shortest_path_with_stats(
    graph: GraphDB,
    start_lon: float,
    start_lat: float,
    dest_lon: float,
    dest_lat: float,
) -> tuple[PathResult | None, dict[str, Any]]:
    _check_graph_size(graph)
    start = graph.closest(start_lon, start_lat)
    goal = graph.closest(dest_lon, dest_lat)
    explored_counter = [0]
    stats: dict[str, Any] = {
        "start_node": start,
        "goal_node": goal,
        "explored_states": 0,
        "termination_reason": "goal_reached",
        "no_path_reason": "",
    }
    if start is None or goal is None:
        stats["termination_reason"] = "no_path"
        stats["no_path_reason"] = normalize_no_path_reason("empty graph")
        return None, stats
    try:
        result = astar_shortest_path(graph, start=start, goal=goal, explored_counter=explored_counter)
    except PathNotFoundError as exc:
        stats["explored_states"] = int(explored_counter[0])
        stats["termination_reason"] = "no_path"
        stats["no_path_reason"] = normalize_no_path_reason(str(exc))
        log_event("route_no_path", **stats)
        return None, stats
    stats["explored_states"] = int(explored_counter[0])
    return result, stats


def shortest_path(
    graph: GraphDB,
    start_lon: float,
    start_lat: float,
    dest_lon: float,
    dest_lat: float,
) -> list[int]:
    """Vertex ids of a shortest route between the vertices nearest each coordinate.

    An empty list means no route: the snapped vertices sit in different
    connected components, or the graph has no vertices at all.
    """
    result, _stats = shortest_path_with_stats(graph, start_lon, start_lat, dest_lon, dest_lat)
    if result is None:
        return []
    return list(result.nodes)


def path_cost(graph: GraphDB, route: list[int] | tuple[int, ...]) -> float:
    return fsum(graph.distance(u, v) for u, v in zip(route, route[1:]))
