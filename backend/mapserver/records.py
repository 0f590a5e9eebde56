from __future__ import annotations

from collections.abc import Iterator
from decimal import Decimal
from pathlib import Path

import ijson

from .graph_builder import NodeRecord, WayRecord
from .map_errors import MapDataError


def _as_float(raw: object) -> float | None:
    if not isinstance(raw, (int, float, str, Decimal)) or isinstance(raw, bool):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def _as_int(raw: object) -> int | None:
    if not isinstance(raw, (int, str, Decimal)) or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw).strip())
    except ArithmeticError:
        return None
    if not value.is_finite() or value != value.to_integral_value():
        return None
    return int(value)


def _as_name(raw: object) -> str | None:
    if raw is None:
        return None
    name = str(raw).strip()
    return name or None


def _parse_node(raw: object) -> NodeRecord | None:
    if not isinstance(raw, dict):
        return None
    node_id = _as_int(raw.get("id"))
    lon = _as_float(raw.get("lon"))
    lat = _as_float(raw.get("lat"))
    if node_id is None or lon is None or lat is None:
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return None
    return NodeRecord(id=node_id, lon=lon, lat=lat, name=_as_name(raw.get("name")))


def _parse_way(raw: object) -> WayRecord | None:
    if not isinstance(raw, dict):
        return None
    refs_raw = raw.get("refs", raw.get("node_refs"))
    if not isinstance(refs_raw, (list, tuple)):
        return None
    refs: list[int] = []
    for ref_raw in refs_raw:
        ref = _as_int(ref_raw)
        if ref is None:
            return None
        refs.append(ref)
    road_type = str(raw.get("highway", raw.get("road_type", "")) or "").strip().lower()
    return WayRecord(node_refs=tuple(refs), road_type=road_type, name=_as_name(raw.get("name")))


class MapRecordReader:
    """Streams node then way records out of a JSON record asset.

    The asset looks like ``{"nodes": [{"id", "lon", "lat", "name"?}, ...],
    "ways": [{"refs": [...], "highway": str, "name"?}, ...]}``. Malformed
    entries are skipped and counted.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.invalid_nodes = 0
        self.invalid_ways = 0

    def __iter__(self) -> Iterator[NodeRecord | WayRecord]:
        if not self.path.exists():
            raise MapDataError(
                reason_code="map_records_unavailable",
                message=f"map record asset not found: {self.path}",
                details={"path": str(self.path)},
            )
        try:
            with self.path.open("rb") as fh:
                for raw_node in ijson.items(fh, "nodes.item"):
                    node = _parse_node(raw_node)
                    if node is None:
                        self.invalid_nodes += 1
                        continue
                    yield node
            with self.path.open("rb") as fh:
                for raw_way in ijson.items(fh, "ways.item"):
                    way = _parse_way(raw_way)
                    if way is None:
                        self.invalid_ways += 1
                        continue
                    yield way
        except ijson.JSONError as exc:
            raise MapDataError(
                reason_code="map_records_invalid",
                message=f"map record asset is not valid JSON: {exc}",
                details={"path": str(self.path)},
            ) from exc
