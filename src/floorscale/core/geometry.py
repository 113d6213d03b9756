"""Geometry utilities for FloorScale.

Pure functions shared by the transform controller, the input dispatcher
and the render pass. Points are (x, y) pairs; world coordinates are pixels
of the loaded image with the origin at its top-left corner.
"""

import math
import uuid
from dataclasses import dataclass, replace
from typing import NamedTuple


class Point(NamedTuple):
    """A 2D point or vector."""

    x: float
    y: float


@dataclass(frozen=True)
class Line:
    """A straight line between two endpoints."""

    id: str
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def start(self) -> Point:
        return Point(self.x1, self.y1)

    @property
    def end(self) -> Point:
        return Point(self.x2, self.y2)

    @property
    def midpoint(self) -> Point:
        return Point((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    def with_end(self, point: Point) -> "Line":
        """Return a copy with the second endpoint moved to *point*."""
        return replace(self, x2=point[0], y2=point[1])

    def with_id(self, line_id: str) -> "Line":
        return replace(self, id=line_id)

    def to_dict(self) -> dict:
        return {"id": self.id, "x1": self.x1, "y1": self.y1, "x2": self.x2, "y2": self.y2}

    @classmethod
    def from_dict(cls, data: dict) -> "Line":
        return cls(
            id=str(data["id"]),
            x1=float(data["x1"]),
            y1=float(data["y1"]),
            x2=float(data["x2"]),
            y2=float(data["y2"]),
        )


def clamp(v: float, lo: float, hi: float) -> float:
    """Restrict *v* to the closed range [lo, hi]."""
    return min(hi, max(lo, v))


def distance(line: Line) -> float:
    """Euclidean length of a line, in whatever space its endpoints are in."""
    return math.hypot(line.x2 - line.x1, line.y2 - line.y1)


def screen_to_world(point: Point, zoom: float, offset: Point) -> Point:
    """Map a screen point to world coordinates: (s - offset) / zoom."""
    return Point((point[0] - offset[0]) / zoom, (point[1] - offset[1]) / zoom)


def world_to_screen(point: Point, zoom: float, offset: Point) -> Point:
    """Map a world point to screen coordinates: w * zoom + offset."""
    return Point(point[0] * zoom + offset[0], point[1] * zoom + offset[1])


def constrain_axis(start: Point, point: Point) -> Point:
    """Snap *point* onto the horizontal or vertical through *start*.

    The axis with the larger absolute delta stays free.
    """
    dx = abs(point[0] - start[0])
    dy = abs(point[1] - start[1])
    if dx > dy:
        return Point(point[0], start[1])
    return Point(start[0], point[1])


def new_line_id(prefix: str = "m") -> str:
    """Generate a unique, stable line identifier."""
    return f"{prefix}-{uuid.uuid4().hex}"
