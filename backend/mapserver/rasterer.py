from __future__ import annotations

import math
from dataclasses import dataclass

from .logging_utils import log_event
from .settings import settings

# Lower-right offsets this close to a tile boundary count as lying on it.
_EDGE_EPS = 1e-9


@dataclass(frozen=True)
class RootBox:
    ullon: float
    ullat: float
    lrlon: float
    lrlat: float
    tile_size: int = 256
    max_depth: int = 7

    @property
    def lon_span(self) -> float:
        return self.lrlon - self.ullon

    @property
    def lat_span(self) -> float:
        return self.ullat - self.lrlat

    @property
    def lon_dpp(self) -> float:
        return self.lon_span / float(self.tile_size)

    def tile_lon_dpp(self, depth: int) -> float:
        return self.lon_dpp / float(2**depth)

    @classmethod
    def from_settings(cls) -> RootBox:
        return cls(
            ullon=float(settings.root_ullon),
            ullat=float(settings.root_ullat),
            lrlon=float(settings.root_lrlon),
            lrlat=float(settings.root_lrlat),
            tile_size=int(settings.tile_size),
            max_depth=int(settings.raster_max_depth),
        )


@dataclass(frozen=True)
class TileQueryResult:
    render_grid: tuple[tuple[str, ...], ...]
    raster_ul_lon: float
    raster_ul_lat: float
    raster_lr_lon: float
    raster_lr_lat: float
    depth: int
    query_success: bool

    def as_dict(self) -> dict[str, object]:
        return {
            "render_grid": [list(row) for row in self.render_grid],
            "raster_ul_lon": self.raster_ul_lon,
            "raster_ul_lat": self.raster_ul_lat,
            "raster_lr_lon": self.raster_lr_lon,
            "raster_lr_lat": self.raster_lr_lat,
            "depth": self.depth,
            "query_success": self.query_success,
        }


_FAILED = TileQueryResult(
    render_grid=(),
    raster_ul_lon=0.0,
    raster_ul_lat=0.0,
    raster_lr_lon=0.0,
    raster_lr_lat=0.0,
    depth=0,
    query_success=False,
)


def tile_name(depth: int, x: int, y: int) -> str:
    return f"d{depth}_x{x}_y{y}"


def select_depth(root: RootBox, required_lon_dpp: float) -> int:
    """Shallowest depth whose tiles resolve at least ``required_lon_dpp``.

    Same as ``ceil(log2(root.lon_dpp / required_lon_dpp))`` clamped to
    ``[0, root.max_depth]``, but compared directly to avoid log rounding.
    """
    depth = 0
    while depth < root.max_depth and root.tile_lon_dpp(depth) > required_lon_dpp:
        depth += 1
    return depth


def _lower_index(offset: float, span: float) -> int:
    return int(math.floor(offset / span))


def _upper_index(offset: float, span: float) -> int:
    q = offset / span
    nearest = round(q)
    if abs(q - nearest) <= _EDGE_EPS:
        # Edge sits on a tile boundary; the tile starting there is not needed.
        return int(nearest) - 1
    return int(math.floor(q))


def get_map_raster(
    *,
    ullon: float,
    ullat: float,
    lrlon: float,
    lrlat: float,
    width: float,
    height: float,
    root: RootBox | None = None,
) -> TileQueryResult:
    """Pick the tile grid covering a viewport query box.

    The box is clipped to the root tile first. An inverted box, one lying
    outside the root, or a non-positive viewport yields ``query_success=False``
    and the other fields carry no meaning.
    """
    root = root or RootBox.from_settings()
    values = (ullon, ullat, lrlon, lrlat, width, height)
    if not all(math.isfinite(float(v)) for v in values) or width <= 0 or height <= 0:
        log_event("raster_query_failed", reason="invalid_parameters")
        return _FAILED

    ul_lon = max(float(ullon), root.ullon)
    ul_lat = min(float(ullat), root.ullat)
    lr_lon = min(float(lrlon), root.lrlon)
    lr_lat = max(float(lrlat), root.lrlat)
    if ul_lon >= lr_lon or ul_lat <= lr_lat:
        log_event(
            "raster_query_failed",
            reason="outside_root_or_inverted",
            ullon=ullon,
            ullat=ullat,
            lrlon=lrlon,
            lrlat=lrlat,
        )
        return _FAILED

    required_lon_dpp = (lr_lon - ul_lon) / float(width)
    depth = select_depth(root, required_lon_dpp)

    tiles_per_side = 2**depth
    lon_tile = root.lon_span / tiles_per_side
    lat_tile = root.lat_span / tiles_per_side
    last = tiles_per_side - 1

    x_lower = min(last, max(0, _lower_index(ul_lon - root.ullon, lon_tile)))
    y_lower = min(last, max(0, _lower_index(root.ullat - ul_lat, lat_tile)))
    x_upper = min(last, max(x_lower, _upper_index(lr_lon - root.ullon, lon_tile)))
    y_upper = min(last, max(y_lower, _upper_index(root.ullat - lr_lat, lat_tile)))

    grid = tuple(
        tuple(tile_name(depth, x, y) for x in range(x_lower, x_upper + 1))
        for y in range(y_lower, y_upper + 1)
    )
    return TileQueryResult(
        render_grid=grid,
        raster_ul_lon=root.ullon + x_lower * lon_tile,
        raster_ul_lat=root.ullat - y_lower * lat_tile,
        raster_lr_lon=root.ullon + (x_upper + 1) * lon_tile,
        raster_lr_lat=root.ullat - (y_upper + 1) * lat_tile,
        depth=depth,
        query_success=True,
    )
