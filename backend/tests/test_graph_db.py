from __future__ import annotations

import math
import random

import pytest

from mapserver.graph_db import EARTH_RADIUS_MILES, GraphDB, haversine_miles, initial_bearing_deg
from mapserver.map_errors import MapDataError, StructureFrozenError


def _line_graph() -> GraphDB:
    graph = GraphDB()
    graph.add_vertex(1, 0.0, 0.0)
    graph.add_vertex(2, 0.0, 0.01)
    graph.add_vertex(3, 0.0, 0.02, name="Top")
    graph.add_edge(1, 2, "North Road")
    graph.add_edge(2, 3, "North Road")
    return graph


def test_haversine_one_degree_of_latitude() -> None:
    expected = EARTH_RADIUS_MILES * math.radians(1.0)
    assert haversine_miles(-122.0, 37.0, -122.0, 38.0) == pytest.approx(expected, rel=1e-12)
    assert haversine_miles(1.0, 2.0, 1.0, 2.0) == 0.0


def test_bearing_cardinal_directions_at_equator() -> None:
    assert initial_bearing_deg(0.0, 0.0, 0.0, 1.0) == pytest.approx(0.0)
    assert initial_bearing_deg(0.0, 0.0, 1.0, 0.0) == pytest.approx(90.0)
    assert initial_bearing_deg(0.0, 0.0, -1.0, 0.0) == pytest.approx(-90.0)
    assert initial_bearing_deg(0.0, 1.0, 0.0, 0.0) == pytest.approx(180.0)


def test_edges_are_symmetric_and_labelled() -> None:
    graph = _line_graph()

    assert graph.adjacent(2) == frozenset({1, 3})
    assert graph.adjacent(1) == frozenset({2})
    assert graph.streets_of(2) == {1: "North Road", 3: "North Road"}
    assert graph.way_between(3, 2) == "North Road"
    assert graph.way_between(1, 3) is None
    assert graph.edge_count == 2
    assert graph.distance(1, 2) == pytest.approx(graph.distance(2, 1))


def test_duplicate_edge_keeps_first_label() -> None:
    graph = _line_graph()

    assert graph.add_edge(2, 1, "Other Road") is False
    assert graph.way_between(1, 2) == "North Road"
    assert graph.edge_count == 2


def test_add_edge_with_unknown_vertex_is_a_logic_fault() -> None:
    graph = _line_graph()

    with pytest.raises(MapDataError) as excinfo:
        graph.add_edge(1, 42, "Nowhere")
    assert excinfo.value.reason_code == "unknown_vertex"
    assert 42 not in graph


def test_replacing_a_vertex_keeps_its_edges() -> None:
    graph = _line_graph()
    graph.add_vertex(2, 0.0, 0.01, name="Middle")

    assert graph.name(2) == "Middle"
    assert graph.adjacent(2) == frozenset({1, 3})


def test_isolated_vertex_stays_in_graph() -> None:
    graph = _line_graph()
    graph.add_vertex(9, 5.0, 5.0)
    graph.finalize()

    assert 9 in graph
    assert graph.adjacent(9) == frozenset()
    assert graph.closest(5.0, 5.0) == 9


def test_finalized_graph_rejects_mutation() -> None:
    graph = _line_graph().finalize()

    with pytest.raises(StructureFrozenError):
        graph.add_vertex(4, 1.0, 1.0)
    with pytest.raises(StructureFrozenError):
        graph.add_edge(1, 3, "Shortcut")


@pytest.mark.parametrize("finalized", [False, True])
def test_closest_breaks_ties_by_smallest_id(finalized: bool) -> None:
    graph = GraphDB()
    # Four vertices at the same distance from the origin.
    graph.add_vertex(40, 0.0, 0.01)
    graph.add_vertex(30, 0.01, 0.0)
    graph.add_vertex(20, 0.0, -0.01)
    graph.add_vertex(10, -0.01, 0.0)
    if finalized:
        graph.finalize()

    assert graph.closest(0.0, 0.0) == 10


def test_closest_on_empty_graph_is_none() -> None:
    assert GraphDB().closest(0.0, 0.0) is None
    assert GraphDB().finalize().closest(0.0, 0.0) is None


def test_closest_index_agrees_with_linear_scan() -> None:
    rng = random.Random(7)
    graph = GraphDB()
    for vid in range(400):
        graph.add_vertex(vid, rng.uniform(-122.30, -122.21), rng.uniform(37.82, 37.89))
    graph.finalize()

    for _ in range(200):
        lon = rng.uniform(-122.32, -122.19)
        lat = rng.uniform(37.80, 37.91)
        assert graph.closest(lon, lat) == graph._closest_scan(lon, lat)
