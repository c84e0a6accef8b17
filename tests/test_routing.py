from __future__ import annotations

import logging

import pytest

from storycanvas.geometry import Point, Rect, Size, segment_intersects_rect
from storycanvas.routing import (
    RoutedPath,
    Side,
    best_connection_points,
    build_grid_graph,
    hit_test,
    option_connection_points,
    path_midpoint,
    route,
)


def _assert_orthogonal(points: list[Point]) -> None:
    for a, b in zip(points, points[1:]):
        assert a.x == b.x or a.y == b.y


def test_straight_route_has_two_points() -> None:
    path = route(Point(100, 50), Point(400, 50), Side.RIGHT, Side.LEFT, [])

    assert path.points == [Point(100, 50), Point(400, 50)]
    assert path.strategy == "direct"


def test_elbow_route_when_unobstructed() -> None:
    path = route(Point(100, 50), Point(400, 200), Side.RIGHT, Side.LEFT, [])

    assert path.points[0] == Point(100, 50)
    assert path.points[-1] == Point(400, 200)
    assert len(path.points) == 4
    _assert_orthogonal(path.points)


def test_blocked_route_detours_around_obstacle() -> None:
    obstacle = Rect.from_center(Point(250, 50), Size(100, 50))

    path = route(Point(100, 50), Point(400, 50), Side.RIGHT, Side.LEFT, [obstacle])

    assert path.strategy == "grid"
    assert len(path.points) > 2
    assert path.points[0] == Point(100, 50)
    assert path.points[-1] == Point(400, 50)
    _assert_orthogonal(path.points)
    for a, b in zip(path.points, path.points[1:]):
        assert not segment_intersects_rect(a, b, obstacle)

    # Leaves rightwards and enters the target's left border from the left
    assert path.points[1].y == 50 and path.points[1].x > 100
    assert path.points[-2].y == 50 and path.points[-2].x < 400


def test_route_keeps_obstacle_margin() -> None:
    obstacle = Rect.from_center(Point(250, 50), Size(100, 50))

    path = route(Point(100, 50), Point(400, 50), Side.RIGHT, Side.LEFT, [obstacle])

    inflated = obstacle.inflated(8)
    for a, b in zip(path.points, path.points[1:]):
        assert not segment_intersects_rect(a, b, inflated)


def test_unreachable_target_falls_back_to_straight_line(caplog: pytest.LogCaptureFixture) -> None:
    # The target anchor sits inside another card's footprint
    obstacle = Rect(350, 0, 450, 100)

    with caplog.at_level(logging.WARNING, logger="storycanvas.routing"):
        path = route(Point(100, 50), Point(400, 50), Side.RIGHT, Side.LEFT, [obstacle])

    assert path.strategy == "straight"
    assert path.points == [Point(100, 50), Point(400, 50)]
    assert "straight line" in caplog.text


def test_best_connection_points_follow_dominant_axis() -> None:
    source = Rect.from_center(Point(0, 0), Size(100, 50))

    right = best_connection_points(source, Rect.from_center(Point(400, 30), Size(100, 50)))
    below = best_connection_points(source, Rect.from_center(Point(20, 400), Size(100, 50)))

    assert (right.from_side, right.to_side) == (Side.RIGHT, Side.LEFT)
    assert right.from_point == Point(50, 0)
    assert right.to_point == Point(350, 30)
    assert (below.from_side, below.to_side) == (Side.BOTTOM, Side.TOP)


def test_option_connections_leave_at_option_row() -> None:
    source = Rect.from_center(Point(0, 0), Size(240, 134))
    target = Rect.from_center(Point(-500, 0), Size(100, 50))

    points = option_connection_points(source, -20, target)

    assert points.from_side is Side.LEFT
    assert points.from_point == Point(-120, -20)
    assert points.to_side is Side.RIGHT


def test_option_route_to_target_below_does_not_double_back() -> None:
    source = Rect.from_center(Point(0, 0), Size(240, 134))
    target = Rect.from_center(Point(40, 400), Size(100, 50))
    points = option_connection_points(source, -20, target)
    assert (points.from_side, points.to_side) == (Side.RIGHT, Side.TOP)

    path = route(points.from_point, points.to_point, points.from_side, points.to_side, [])

    assert path.strategy == "direct"
    assert path.points == [
        Point(120, -20),
        Point(140, -20),
        Point(140, 355),
        Point(40, 355),
        Point(40, 375),
    ]
    for a, b in zip(path.points, path.points[1:]):
        assert not segment_intersects_rect(a, b, source)
    for a, b, c in zip(path.points, path.points[1:], path.points[2:]):
        # Consecutive segments never point in opposite directions
        assert (b.x - a.x) * (c.x - b.x) + (b.y - a.y) * (c.y - b.y) >= 0


def test_grid_graph_only_enters_target_along_inward_normal() -> None:
    target = Point(10, 0)
    graph = build_grid_graph([0, 10, 20], [-10, 0, 10], [], target, Side.LEFT)

    assert graph.has_edge(Point(0, 0), target)
    assert not graph.has_edge(Point(20, 0), target)
    assert not graph.has_edge(Point(10, -10), target)
    assert graph.has_edge(target, Point(20, 0))


def test_midpoint_uses_arc_length() -> None:
    assert path_midpoint([Point(0, 0), Point(10, 0), Point(10, 10)]) == Point(10, 0)
    assert path_midpoint([Point(0, 0), Point(0, 30)]) == Point(0, 15)


def test_hit_test_uses_wide_region() -> None:
    path = RoutedPath([Point(0, 0), Point(100, 0)], Side.RIGHT, Side.LEFT)

    assert hit_test(path, Point(50, 11))
    assert not hit_test(path, Point(50, 13))
    assert hit_test(path, Point(50, 13), hit_width=30)
