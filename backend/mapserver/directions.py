from __future__ import annotations

import math
import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import IntEnum

from .graph_builder import UNKNOWN_ROAD
from .graph_db import GraphDB
from .map_errors import MapDataError


class Direction(IntEnum):
    START = 0
    STRAIGHT = 1
    SLIGHT_LEFT = 2
    SLIGHT_RIGHT = 3
    RIGHT = 4
    LEFT = 5
    SHARP_LEFT = 6
    SHARP_RIGHT = 7


_DIRECTION_TEXT: dict[Direction, str] = {
    Direction.START: "Start",
    Direction.STRAIGHT: "Go straight",
    Direction.SLIGHT_LEFT: "Slight left",
    Direction.SLIGHT_RIGHT: "Slight right",
    Direction.LEFT: "Turn left",
    Direction.RIGHT: "Turn right",
    Direction.SHARP_LEFT: "Sharp left",
    Direction.SHARP_RIGHT: "Sharp right",
}
_TEXT_DIRECTION: dict[str, Direction] = {text: direction for direction, text in _DIRECTION_TEXT.items()}

_STEP_RE = re.compile(r"(?P<direction>[A-Za-z ]+?) on (?P<way>.*) and continue for (?P<distance>[0-9.]+) miles\.")

# Display precision of step distances, in decimal places.
DISTANCE_PLACES = 3


def direction_text(direction: Direction) -> str:
    return _DIRECTION_TEXT[Direction(direction)]


class DirectionParseError(MapDataError):
    pass


@dataclass(frozen=True, eq=False)
class NavigationStep:
    """One instruction of a route: how to turn, onto which way, and for how far.

    Equality compares distances at display precision, so a step survives a
    render/parse round trip unchanged.
    """

    direction: Direction
    way: str
    distance: float

    def _key(self) -> tuple[int, str, float]:
        return int(self.direction), self.way, round(float(self.distance), DISTANCE_PLACES)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NavigationStep):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return f"{direction_text(self.direction)} on {self.way} and continue for {self.distance:.3f} miles."

    def render(self) -> str:
        return str(self)

    @classmethod
    def from_string(cls, text: str) -> NavigationStep:
        match = _STEP_RE.fullmatch(str(text).strip())
        if match is None:
            raise DirectionParseError(
                reason_code="direction_parse_failed",
                message="direction line does not match '<direction> on <way> and continue for <d> miles.'",
                details={"text": text},
            )
        direction = _TEXT_DIRECTION.get(match.group("direction"))
        if direction is None:
            raise DirectionParseError(
                reason_code="direction_parse_failed",
                message=f"unknown direction {match.group('direction')!r}",
                details={"text": text},
            )
        try:
            distance = float(match.group("distance"))
        except ValueError as exc:
            raise DirectionParseError(
                reason_code="direction_parse_failed",
                message=f"invalid distance {match.group('distance')!r}",
                details={"text": text},
            ) from exc
        return cls(direction=direction, way=match.group("way"), distance=distance)


def normalize_bearing_delta(delta: float) -> float:
    """Fold a raw bearing difference into [-180, 180]; positive turns clockwise."""
    folded = math.fmod(float(delta), 360.0)
    if abs(folded) > 180.0:
        folded = -math.copysign(360.0 - abs(folded), folded)
    return folded


def classify_turn(bearing_delta: float) -> Direction:
    delta = normalize_bearing_delta(bearing_delta)
    magnitude = abs(delta)
    if magnitude <= 15.0:
        return Direction.STRAIGHT
    if magnitude <= 30.0:
        return Direction.SLIGHT_LEFT if delta < 0 else Direction.SLIGHT_RIGHT
    if magnitude <= 100.0:
        return Direction.LEFT if delta < 0 else Direction.RIGHT
    return Direction.SHARP_LEFT if delta < 0 else Direction.SHARP_RIGHT


def route_directions(graph: GraphDB, route: Sequence[int]) -> list[NavigationStep]:
    """Collapse a vertex path into turn-by-turn steps.

    Consecutive segments on the same way add up into one step. A change of way
    starts a new step whose turn comes from the bearing change between the
    previous segment and the new one. The first step is always ``START``.
    Routes with fewer than two vertices produce no steps.

    Each step distance is the correctly rounded sum of its segments, so the
    step distances add up to ``path_cost`` of the route to within one rounding
    per step.
    """
    if len(route) < 2:
        return []
    steps: list[NavigationStep] = []
    direction = Direction.START
    current_way: str | None = None
    segments: list[float] = []
    previous_bearing = 0.0
    for prev, cur in zip(route, route[1:]):
        way = graph.way_between(prev, cur)
        if way is None:
            raise MapDataError(
                reason_code="unknown_vertex",
                message=f"route vertices {prev} and {cur} are not adjacent",
                details={"u": prev, "v": cur},
            )
        segment = graph.distance(prev, cur)
        bearing = graph.bearing(prev, cur)
        if current_way is None:
            current_way = way
            segments = [segment]
        elif way == current_way:
            segments.append(segment)
        else:
            steps.append(NavigationStep(direction=direction, way=current_way, distance=math.fsum(segments)))
            direction = classify_turn(bearing - previous_bearing)
            current_way = way
            segments = [segment]
        previous_bearing = bearing
    steps.append(NavigationStep(direction=direction, way=current_way or UNKNOWN_ROAD, distance=math.fsum(segments)))
    return steps
