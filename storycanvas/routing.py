"""Orthogonal connection routing with a sparse-grid BFS fallback using NetworkX."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Literal

import networkx as nx

from .geometry import (
    Point,
    Rect,
    distance_to_segment,
    polyline_intersects,
    segment_intersects_rect,
    simplify_orthogonal,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


class Side(Enum):
    """Border of a card a connection leaves or enters through."""

    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"

    @property
    def normal(self) -> tuple[int, int]:
        """Outward unit normal of the side."""
        return _NORMALS[self]

    @property
    def is_horizontal_exit(self) -> bool:
        return self in (Side.LEFT, Side.RIGHT)


_NORMALS = {
    Side.TOP: (0, -1),
    Side.BOTTOM: (0, 1),
    Side.LEFT: (-1, 0),
    Side.RIGHT: (1, 0),
}


@dataclass(frozen=True)
class RoutingConfig:
    """Configuration for connection routing."""

    stub_length: float = 20.0  # Perpendicular run out of / into a card
    obstacle_margin: float = 8.0  # Clearance kept around other cards
    grid_padding: float = 12.0  # Offset of grid lines outside inflated obstacles
    hit_width: float = 24.0  # Width of the invisible tap target along a path


DEFAULT_ROUTING = RoutingConfig()


@dataclass(frozen=True)
class RoutedPath:
    """A computed polyline between two anchors."""

    points: list[Point]
    source_side: Side
    target_side: Side
    strategy: Literal["direct", "grid", "straight"] = "direct"

    @property
    def midpoint(self) -> Point:
        return path_midpoint(self.points)


@dataclass(frozen=True)
class ConnectionPoints:
    from_point: Point
    from_side: Side
    to_point: Point
    to_side: Side


def _offset(point: Point, side: Side, distance: float) -> Point:
    nx_, ny_ = side.normal
    return Point(point.x + nx_ * distance, point.y + ny_ * distance)


def side_midpoint(rect: Rect, side: Side) -> Point:
    """Get the connection point in the middle of a rectangle side."""
    if side is Side.RIGHT:
        return Point(rect.max_x, rect.center.y)
    if side is Side.LEFT:
        return Point(rect.min_x, rect.center.y)
    if side is Side.TOP:
        return Point(rect.center.x, rect.min_y)
    return Point(rect.center.x, rect.max_y)


def _dominant_side(dx: float, dy: float) -> Side:
    if abs(dx) >= abs(dy):
        return Side.RIGHT if dx > 0 else Side.LEFT
    return Side.BOTTOM if dy > 0 else Side.TOP


def _entry_side(from_exit: Point, target_center: Point) -> Side:
    """Entry side faces the incoming direction: arriving rightwards enters left."""
    dx = target_center.x - from_exit.x
    dy = target_center.y - from_exit.y
    if abs(dx) >= abs(dy):
        return Side.LEFT if dx > 0 else Side.RIGHT
    return Side.TOP if dy > 0 else Side.BOTTOM


def best_connection_points(
    source: Rect,
    target: Rect,
    config: RoutingConfig | None = None,
) -> ConnectionPoints:
    """Pick exit and entry anchors from the relative position of two cards.

    The exit side follows the dominant axis and sign of the vector between the
    card centers. The entry side is picked the same way from the vector between
    the exit point and the target center.
    """
    if config is None:
        config = DEFAULT_ROUTING

    src_center = source.center
    tgt_center = target.center
    from_side = _dominant_side(tgt_center.x - src_center.x, tgt_center.y - src_center.y)
    from_point = side_midpoint(source, from_side)

    exit_point = _offset(from_point, from_side, config.stub_length)
    to_side = _entry_side(exit_point, tgt_center)
    return ConnectionPoints(from_point, from_side, side_midpoint(target, to_side), to_side)


def option_connection_points(
    source: Rect,
    anchor_y: float,
    target: Rect,
    config: RoutingConfig | None = None,
) -> ConnectionPoints:
    """Anchors for a connection owned by a Choices option.

    Options leave through the left or right border at their own row.
    """
    if config is None:
        config = DEFAULT_ROUTING

    tgt_center = target.center
    if tgt_center.x >= source.center.x:
        from_side = Side.RIGHT
        from_point = Point(source.max_x, anchor_y)
    else:
        from_side = Side.LEFT
        from_point = Point(source.min_x, anchor_y)

    exit_point = _offset(from_point, from_side, config.stub_length)
    to_side = _entry_side(exit_point, tgt_center)
    return ConnectionPoints(from_point, from_side, side_midpoint(target, to_side), to_side)


def route(
    from_point: Point,
    to_point: Point,
    from_side: Side,
    to_side: Side,
    obstacles: Sequence[Rect],
    config: RoutingConfig | None = None,
) -> RoutedPath:
    """Route an orthogonal polyline between two anchors.

    Tries the cheap elbow path first, falls back to a BFS over a sparse grid
    derived from the obstacles, and finally to a straight line.

    Args:
        from_point: Anchor on the source card border
        to_point: Anchor on the target card border
        from_side: Border the path leaves through
        to_side: Border the path enters through
        obstacles: Footprints of other cards (not the source or target)
        config: Routing configuration

    Returns:
        RoutedPath whose first and last segments are perpendicular to the card borders
    """
    if config is None:
        config = DEFAULT_ROUTING

    inflated = [rect.inflated(config.obstacle_margin) for rect in obstacles]
    exit_point = _offset(from_point, from_side, config.stub_length)
    entry_point = _offset(to_point, to_side, config.stub_length)

    candidate = simplify_orthogonal(
        [from_point, exit_point, _elbow(exit_point, entry_point, from_side), entry_point, to_point]
    )
    if not polyline_intersects(candidate, inflated):
        return RoutedPath(candidate, from_side, to_side, "direct")

    grid_path = _grid_search(from_point, exit_point, entry_point, to_point, to_side, inflated, config)
    if grid_path is not None:
        return RoutedPath(grid_path, from_side, to_side, "grid")

    logger.warning(
        "No obstacle-free route from (%.1f, %.1f) to (%.1f, %.1f); drawing a straight line",
        from_point.x,
        from_point.y,
        to_point.x,
        to_point.y,
    )
    return RoutedPath([from_point, to_point], from_side, to_side, "straight")


def _elbow(exit_point: Point, entry_point: Point, from_side: Side) -> Point:
    """Corner of the three-segment route between the two stub ends.

    The path normally keeps running along from_side's normal until it lines up
    with the entry point. When the entry point lies behind the exit point that
    run would double back over the source card, so the path turns at once.
    """
    nx_, ny_ = from_side.normal
    if from_side.is_horizontal_exit:
        if (entry_point.x - exit_point.x) * nx_ < 0:
            return Point(exit_point.x, entry_point.y)
        return Point(entry_point.x, exit_point.y)
    if (entry_point.y - exit_point.y) * ny_ < 0:
        return Point(entry_point.x, exit_point.y)
    return Point(exit_point.x, entry_point.y)


def _grid_lines(
    from_point: Point,
    exit_point: Point,
    entry_point: Point,
    to_point: Point,
    obstacles: Sequence[Rect],
    padding: float,
) -> tuple[list[float], list[float]]:
    xs = {from_point.x, exit_point.x, entry_point.x, to_point.x}
    ys = {from_point.y, exit_point.y, entry_point.y, to_point.y}
    for rect in obstacles:
        xs.update((rect.min_x - padding, rect.max_x + padding))
        ys.update((rect.min_y - padding, rect.max_y + padding))
    return sorted(xs), sorted(ys)


def build_grid_graph(
    xs: Sequence[float],
    ys: Sequence[float],
    obstacles: Sequence[Rect],
    target: Point,
    to_side: Side,
) -> nx.DiGraph:
    """Build the directed grid graph used by the BFS fallback.

    Nodes are grid intersections outside every obstacle. Edges join adjacent
    intersections whose connecting segment crosses no obstacle. Edges arriving
    at the target only exist when they travel along the inward normal of the
    target side, which forces a perpendicular entry.
    """
    graph: nx.DiGraph = nx.DiGraph()

    for x in xs:
        for y in ys:
            p = Point(x, y)
            if any(rect.strictly_contains(p) for rect in obstacles):
                continue
            graph.add_node(p)

    inward = (-to_side.normal[0], -to_side.normal[1])

    def link(a: Point, b: Point, direction: tuple[int, int]) -> None:
        if a not in graph or b not in graph:
            return
        if any(segment_intersects_rect(a, b, rect) for rect in obstacles):
            return
        backward = (-direction[0], -direction[1])
        if b != target or direction == inward:
            graph.add_edge(a, b)
        if a != target or backward == inward:
            graph.add_edge(b, a)

    for col, x in enumerate(xs):
        for row, y in enumerate(ys):
            here = Point(x, y)
            if col + 1 < len(xs):
                link(here, Point(xs[col + 1], y), (1, 0))
            if row + 1 < len(ys):
                link(here, Point(x, ys[row + 1]), (0, 1))

    return graph


def _grid_search(
    from_point: Point,
    exit_point: Point,
    entry_point: Point,
    to_point: Point,
    to_side: Side,
    obstacles: Sequence[Rect],
    config: RoutingConfig,
) -> list[Point] | None:
    xs, ys = _grid_lines(from_point, exit_point, entry_point, to_point, obstacles, config.grid_padding)
    graph = build_grid_graph(xs, ys, obstacles, to_point, to_side)

    try:
        # Unweighted shortest path is a breadth-first search
        path = nx.shortest_path(graph, exit_point, to_point)
    except (nx.NetworkXNoPath, nx.NodeNotFound):
        return None

    return simplify_orthogonal([from_point, *path])


def path_length(points: Sequence[Point]) -> float:
    return sum(a.distance_to(b) for a, b in zip(points, points[1:]))


def path_midpoint(points: Sequence[Point]) -> Point:
    """Compute the center point of a path using arc length.

    Finds the point that is equidistant (by path length) from both endpoints.
    """
    if len(points) < 2:
        return points[0] if points else Point(0, 0)

    total_length = path_length(points)
    if total_length == 0:
        return points[0]

    remaining = total_length / 2
    for start, end in zip(points, points[1:]):
        segment_length = start.distance_to(end)
        if segment_length >= remaining and segment_length > 0:
            t = remaining / segment_length
            return Point(start.x + t * (end.x - start.x), start.y + t * (end.y - start.y))
        remaining -= segment_length

    # Fallback to last point
    return points[-1]


def hit_test(path: RoutedPath, point: Point, hit_width: float | None = None) -> bool:
    """True if a tap at `point` lands on the path's wide invisible hit region."""
    if hit_width is None:
        hit_width = DEFAULT_ROUTING.hit_width

    half = hit_width / 2
    points = path.points
    if len(points) == 1:
        return point.distance_to(points[0]) <= half
    return any(distance_to_segment(point, a, b) <= half for a, b in zip(points, points[1:]))
