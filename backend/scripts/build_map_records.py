from __future__ import annotations

import argparse
import json
import math
import xml.etree.ElementTree as ET
from datetime import UTC, datetime
from pathlib import Path
from typing import Any


def _tags(element: ET.Element) -> dict[str, str]:
    tags: dict[str, str] = {}
    for child in element:
        if child.tag != "tag":
            continue
        key = str(child.attrib.get("k", "")).strip()
        if key:
            tags[key] = str(child.attrib.get("v", "")).strip()
    return tags


def extract_records(source: Path) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Flatten an OSM XML extract into plain node and way records.

    Ways without a ``highway`` tag are left out since they can never become
    road edges. Nodes without finite coordinates are dropped.
    """
    nodes: list[dict[str, Any]] = []
    ways: list[dict[str, Any]] = []
    for _event, element in ET.iterparse(source, events=("end",)):
        if element.tag == "node":
            node_id = element.attrib.get("id")
            try:
                lat = float(element.attrib.get("lat", "nan"))
                lon = float(element.attrib.get("lon", "nan"))
            except ValueError:
                element.clear()
                continue
            if node_id and math.isfinite(lat) and math.isfinite(lon):
                record: dict[str, Any] = {"id": int(node_id), "lon": lon, "lat": lat}
                name = _tags(element).get("name")
                if name:
                    record["name"] = name
                nodes.append(record)
            element.clear()
        elif element.tag == "way":
            tags = _tags(element)
            highway = tags.get("highway", "").lower()
            refs = [int(child.attrib["ref"]) for child in element if child.tag == "nd" and "ref" in child.attrib]
            if highway and len(refs) >= 2:
                record = {"refs": refs, "highway": highway}
                if tags.get("name"):
                    record["name"] = tags["name"]
                ways.append(record)
            element.clear()
    return nodes, ways


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Convert an OSM XML extract into the map record asset.")
    parser.add_argument("--source", type=Path, required=True, help="OSM XML file (.osm / .osm.xml).")
    parser.add_argument(
        "--out-file",
        type=Path,
        default=Path(__file__).resolve().parents[1] / "out" / "map_records.json",
    )
    return parser


def run_build(args: argparse.Namespace) -> dict[str, Any]:
    source = Path(args.source)
    if not source.exists():
        raise FileNotFoundError(f"OSM source not found: {source}")
    nodes, ways = extract_records(source)
    payload = {
        "version": "records_v1",
        "source": str(source),
        "generated_at_utc": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "nodes": nodes,
        "ways": ways,
    }
    out_file = Path(args.out_file)
    out_file.parent.mkdir(parents=True, exist_ok=True)
    out_file.write_text(json.dumps(payload, allow_nan=False), encoding="utf-8")
    return {"out_file": str(out_file), "node_count": len(nodes), "way_count": len(ways)}


def main() -> None:
    summary = run_build(build_parser().parse_args())
    print(
        f"Wrote map records to {summary['out_file']} "
        f"(nodes={summary['node_count']}, ways={summary['way_count']})."
    )


if __name__ == "__main__":
    main()
