from __future__ import annotations

from dataclasses import dataclass
from typing import Any

FROZEN_REASON_CODES: frozenset[str] = frozenset(
    {
        "map_records_unavailable",
        "map_records_invalid",
        "map_not_ready",
        "unknown_vertex",
        "direction_parse_failed",
        "graph_too_large",
    }
)


@dataclass
class MapDataError(ValueError):
    reason_code: str
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


class StructureFrozenError(RuntimeError):
    """Raised when a finalized graph or frozen index is mutated."""


def normalize_reason_code(reason_code: str, *, default: str = "map_records_invalid") -> str:
    code = str(reason_code or "").strip()
    if code in FROZEN_REASON_CODES:
        return code
    return default
