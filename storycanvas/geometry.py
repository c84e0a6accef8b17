"""Geometry primitives shared by the layout and routing engine."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y)

    def scaled(self, factor: float) -> Point:
        return Point(self.x * factor, self.y * factor)

    def distance_to(self, other: Point) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class Size:
    width: float
    height: float

    def grown_to(self, other: Size) -> Size:
        """Component-wise maximum."""
        return Size(max(self.width, other.width), max(self.height, other.height))


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle stored as min/max corners."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def from_center(cls, center: Point, size: Size) -> Rect:
        half_w = size.width / 2
        half_h = size.height / 2
        return cls(center.x - half_w, center.y - half_h, center.x + half_w, center.y + half_h)

    @classmethod
    def from_origin(cls, origin: Point, size: Size) -> Rect:
        return cls(origin.x, origin.y, origin.x + size.width, origin.y + size.height)

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Point:
        return Point((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    @property
    def origin(self) -> Point:
        return Point(self.min_x, self.min_y)

    @property
    def size(self) -> Size:
        return Size(self.width, self.height)

    def inflated(self, amount: float) -> Rect:
        return Rect(
            self.min_x - amount,
            self.min_y - amount,
            self.max_x + amount,
            self.max_y + amount,
        )

    def intersects(self, other: Rect) -> bool:
        """True when the interiors overlap; touching edges do not count."""
        return (
            self.min_x < other.max_x
            and other.min_x < self.max_x
            and self.min_y < other.max_y
            and other.min_y < self.max_y
        )

    def contains(self, point: Point) -> bool:
        return self.min_x <= point.x <= self.max_x and self.min_y <= point.y <= self.max_y

    def contains_rect(self, other: Rect) -> bool:
        return (
            self.min_x <= other.min_x
            and self.min_y <= other.min_y
            and other.max_x <= self.max_x
            and other.max_y <= self.max_y
        )

    def strictly_contains(self, point: Point) -> bool:
        return self.min_x < point.x < self.max_x and self.min_y < point.y < self.max_y

    def union(self, other: Rect) -> Rect:
        return Rect(
            min(self.min_x, other.min_x),
            min(self.min_y, other.min_y),
            max(self.max_x, other.max_x),
            max(self.max_y, other.max_y),
        )


def segment_intersects_rect(start: Point, end: Point, rect: Rect) -> bool:
    """Check whether a segment passes through the open interior of a rectangle.

    Uses Liang-Barsky clipping. A segment that only runs along the border, or
    touches a corner, is not considered an intersection.
    """
    dx = end.x - start.x
    dy = end.y - start.y
    t0, t1 = 0.0, 1.0

    for p, q in (
        (-dx, start.x - rect.min_x),
        (dx, rect.max_x - start.x),
        (-dy, start.y - rect.min_y),
        (dy, rect.max_y - start.y),
    ):
        if p == 0:
            # Parallel to this boundary: outside or exactly on it means no interior hit
            if q <= 0:
                return False
            continue
        t = q / p
        if p < 0:
            if t > t1:
                return False
            t0 = max(t0, t)
        else:
            if t < t0:
                return False
            t1 = min(t1, t)

    if t1 - t0 <= 1e-9:
        return False

    mid = Point(start.x + dx * (t0 + t1) / 2, start.y + dy * (t0 + t1) / 2)
    return rect.strictly_contains(mid)


def polyline_intersects(points: Sequence[Point], obstacles: Sequence[Rect]) -> bool:
    """True if any segment of the polyline crosses any obstacle."""
    for start, end in zip(points, points[1:]):
        for rect in obstacles:
            if segment_intersects_rect(start, end, rect):
                return True
    return False


def simplify_orthogonal(points: Sequence[Point]) -> list[Point]:
    """Drop duplicate points and interior points lying on a straight run."""
    result: list[Point] = []
    for point in points:
        if result and point == result[-1]:
            continue
        while len(result) >= 2 and _collinear(result[-2], result[-1], point):
            result.pop()
        result.append(point)
    return result


def _collinear(a: Point, b: Point, c: Point) -> bool:
    cross = (b.x - a.x) * (c.y - a.y) - (b.y - a.y) * (c.x - a.x)
    if abs(cross) > 1e-9:
        return False
    # Only collapse when b lies between a and c (no backtracking spikes)
    dot = (b.x - a.x) * (c.x - b.x) + (b.y - a.y) * (c.y - b.y)
    return dot >= 0


def distance_to_segment(point: Point, start: Point, end: Point) -> float:
    """Distance from a point to a segment."""
    dx = end.x - start.x
    dy = end.y - start.y

    if dx == 0 and dy == 0:
        return point.distance_to(start)

    t = max(0.0, min(1.0, ((point.x - start.x) * dx + (point.y - start.y) * dy) / (dx * dx + dy * dy)))
    return point.distance_to(Point(start.x + t * dx, start.y + t * dy))
