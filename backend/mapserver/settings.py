from __future__ import annotations

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_HIGHWAY_TYPES = (
    "motorway",
    "trunk",
    "primary",
    "secondary",
    "tertiary",
    "unclassified",
    "residential",
    "living_street",
    "motorway_link",
    "trunk_link",
    "primary_link",
    "secondary_link",
    "tertiary_link",
)


def _default_out_dir() -> str:
    # Keep generated artifacts in backend/out by default to avoid polluting source assets.
    return str(Path(__file__).resolve().parents[1] / "out")


def _default_map_records_path() -> str:
    return str(Path(_default_out_dir()) / "map_records.json")


class Settings(BaseSettings):
    """Validated settings (env-driven), keeping config out of code for easy extension."""

    model_config = SettingsConfigDict(
        # Support both "repo root/.env" and "backend/.env" (local dev)
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    out_dir: str = Field(default_factory=_default_out_dir, alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    map_records_path: str = Field(default_factory=_default_map_records_path, alias="MAP_RECORDS_PATH")
    map_build_on_startup: bool = Field(default=True, alias="MAP_BUILD_ON_STARTUP")

    # Root tile (d0_x0_y0) bounds and pixel size of the pre-rendered tile set.
    root_ullon: float = Field(default=-122.2998046875, alias="ROOT_ULLON")
    root_ullat: float = Field(default=37.892195547244356, alias="ROOT_ULLAT")
    root_lrlon: float = Field(default=-122.2119140625, alias="ROOT_LRLON")
    root_lrlat: float = Field(default=37.82280243352756, alias="ROOT_LRLAT")
    tile_size: int = Field(default=256, ge=1, alias="TILE_SIZE")
    raster_max_depth: int = Field(default=7, ge=0, le=30, alias="RASTER_MAX_DEPTH")

    # Comma-separated; empty means the default vehicle road classes.
    allowed_highway_types: str = Field(default="", alias="ALLOWED_HIGHWAY_TYPES")

    # 0 disables the guard. Path search on larger graphs is refused up front.
    route_max_graph_nodes: int = Field(default=0, ge=0, alias="ROUTE_MAX_GRAPH_NODES")

    @model_validator(mode="after")
    def _check_root_box(self) -> "Settings":
        if self.root_ullon >= self.root_lrlon or self.root_ullat <= self.root_lrlat:
            raise ValueError("root bounding box must have upper-left strictly above-left of lower-right")
        return self

    def highway_types(self) -> frozenset[str]:
        raw = [part.strip().lower() for part in str(self.allowed_highway_types or "").split(",")]
        parsed = frozenset(part for part in raw if part)
        return parsed or frozenset(DEFAULT_ALLOWED_HIGHWAY_TYPES)


settings = Settings()
