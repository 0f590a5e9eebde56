from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

import pytest

import scripts.build_map_records as build_map_records
from mapserver.map_service import MapService
from mapserver.records import MapRecordReader

OSM_XML = """<?xml version="1.0" encoding="UTF-8"?>
<osm version="0.6">
  <node id="1" lat="37.8700" lon="-122.2600">
    <tag k="name" v="Top Dog"/>
  </node>
  <node id="2" lat="37.8710" lon="-122.2600"/>
  <node id="3" lat="37.8710" lon="-122.2590"/>
  <node id="4" lat="bad" lon="-122.2590"/>
  <way id="100">
    <nd ref="1"/>
    <nd ref="2"/>
    <nd ref="3"/>
    <tag k="highway" v="Residential"/>
    <tag k="name" v="Oak Street"/>
  </way>
  <way id="101">
    <nd ref="1"/>
    <nd ref="3"/>
    <tag k="building" v="yes"/>
  </way>
  <way id="102">
    <nd ref="2"/>
    <tag k="highway" v="primary"/>
  </way>
</osm>
"""


def _source(tmp_path: Path) -> Path:
    path = tmp_path / "berkeley.osm"
    path.write_text(OSM_XML, encoding="utf-8")
    return path


def test_extract_records_keeps_nodes_and_road_ways(tmp_path: Path) -> None:
    nodes, ways = build_map_records.extract_records(_source(tmp_path))

    assert [n["id"] for n in nodes] == [1, 2, 3]
    assert nodes[0]["name"] == "Top Dog"
    assert "name" not in nodes[1]
    assert ways == [{"refs": [1, 2, 3], "highway": "residential", "name": "Oak Street"}]


def test_run_build_writes_loadable_asset(tmp_path: Path) -> None:
    out_file = tmp_path / "out" / "map_records.json"
    summary = build_map_records.run_build(SimpleNamespace(source=_source(tmp_path), out_file=out_file))

    assert summary == {"out_file": str(out_file), "node_count": 3, "way_count": 1}
    payload = json.loads(out_file.read_text(encoding="utf-8"))
    assert payload["version"] == "records_v1"
    assert payload["generated_at_utc"].endswith("Z")

    service = MapService.from_records(MapRecordReader(out_file))
    assert service.graph.way_between(2, 3) == "Oak Street"
    assert service.autocomplete("top") == ["Top Dog"]


def test_run_build_requires_source(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        build_map_records.run_build(SimpleNamespace(source=tmp_path / "nope.osm", out_file=tmp_path / "x.json"))


def test_parser_defaults_out_file() -> None:
    args = build_map_records.build_parser().parse_args(["--source", "x.osm"])

    assert args.source == Path("x.osm")
    assert args.out_file.name == "map_records.json"


def test_nodes_without_coordinates_do_not_poison_the_asset(tmp_path: Path) -> None:
    source = tmp_path / "partial.osm"
    source.write_text(
        """<?xml version="1.0" encoding="UTF-8"?>
<osm version="0.6">
  <node id="1" lat="37.8700" lon="-122.2600"/>
  <node id="2" lat="37.8710" lon="-122.2600"/>
  <node id="3"/>
  <node id="4" lat="inf" lon="-122.2590"/>
  <way id="100">
    <nd ref="1"/>
    <nd ref="2"/>
    <tag k="highway" v="residential"/>
  </way>
</osm>
""",
        encoding="utf-8",
    )
    out_file = tmp_path / "map_records.json"

    summary = build_map_records.run_build(SimpleNamespace(source=source, out_file=out_file))
    assert summary["node_count"] == 2
    assert "NaN" not in out_file.read_text(encoding="utf-8")

    reader = MapRecordReader(out_file)
    service = MapService.from_records(reader)
    assert reader.invalid_nodes == 0
    assert service.graph.way_between(1, 2) == "unknown road"
    assert 3 not in service.graph
