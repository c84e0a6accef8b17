"""Collision-free placement of cards among their siblings."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .geometry import Point, Rect, Size

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlacementConfig:
    """Configuration for the placement solver."""

    margin: float = 4.0  # Inflation of the candidate rectangle
    ring_step: float | None = None  # Distance between search rings; derived from the item size when None
    max_rings: int = 120
    fallback_offset: float = 24.0  # Applied on both axes when the search gives up
    mini_step: float = 12.0  # Row-major scan step inside a mini-canvas
    mini_padding: float = 6.0  # Clearance kept from mini-canvas borders


DEFAULT_PLACEMENT = PlacementConfig()


@dataclass(frozen=True)
class MiniPlacement:
    """Result of placing an item inside a mini-canvas."""

    point: Point
    bounds: Size
    grew: bool = False


def is_free(center: Point, size: Size, siblings: Sequence[Rect], margin: float) -> bool:
    """True when the inflated item rectangle overlaps no sibling."""
    candidate = Rect.from_center(center, size).inflated(margin)
    return not any(candidate.intersects(rect) for rect in siblings)


def ring_step_for(item_size: Size, config: PlacementConfig | None = None) -> float:
    """Distance between search rings: half the item's shorter side unless configured."""
    if config is None:
        config = DEFAULT_PLACEMENT
    if config.ring_step is not None:
        return config.ring_step
    return min(item_size.width, item_size.height) / 2


def ring_offsets(ring: int) -> Iterator[tuple[int, int]]:
    """Yield the integer offsets on the perimeter of a square ring.

    Offsets are ordered nearest first so the solver prefers points closest to
    the requested position.
    """
    if ring == 0:
        yield (0, 0)
        return

    cells = []
    for i in range(-ring, ring + 1):
        cells.append((i, -ring))
        cells.append((i, ring))
    for j in range(-ring + 1, ring):
        cells.append((-ring, j))
        cells.append((ring, j))

    cells.sort(key=lambda c: (c[0] * c[0] + c[1] * c[1], c[1], c[0]))
    yield from cells


def place(
    desired: Point,
    item_size: Size,
    siblings: Iterable[Rect],
    config: PlacementConfig | None = None,
) -> Point:
    """Find the nearest point to `desired` where the item overlaps no sibling.

    Searches square rings of growing radius around the desired point, visiting
    only ring perimeters. When every ring up to `max_rings` is blocked, a fixed
    offset from the desired point is returned and the overlap is accepted.

    Args:
        desired: Requested center point
        item_size: Footprint of the item being placed
        siblings: Footprint rectangles of the item's siblings
        config: Solver configuration

    Returns:
        Center point for the item
    """
    if config is None:
        config = DEFAULT_PLACEMENT

    rects = list(siblings)
    if is_free(desired, item_size, rects, config.margin):
        return desired

    step = ring_step_for(item_size, config)
    for ring in range(1, config.max_rings + 1):
        for dx, dy in ring_offsets(ring):
            candidate = Point(desired.x + dx * step, desired.y + dy * step)
            if is_free(candidate, item_size, rects, config.margin):
                return candidate

    logger.warning(
        "No free slot within %d rings of (%.1f, %.1f); accepting overlap",
        config.max_rings,
        desired.x,
        desired.y,
    )
    return Point(desired.x + config.fallback_offset, desired.y + config.fallback_offset)


def _fits_bounds(center: Point, size: Size, bounds: Size, padding: float) -> bool:
    rect = Rect.from_center(center, size)
    return (
        rect.min_x >= padding - 1e-9
        and rect.min_y >= padding - 1e-9
        and rect.max_x <= bounds.width - padding + 1e-9
        and rect.max_y <= bounds.height - padding + 1e-9
    )


def _scan_positions(size: Size, bounds: Size, step: float, padding: float) -> Iterator[Point]:
    """Row-major candidate centers that keep the item inside the bounds."""
    start_x = padding + size.width / 2
    start_y = padding + size.height / 2
    end_x = bounds.width - padding - size.width / 2
    end_y = bounds.height - padding - size.height / 2
    if end_x < start_x or end_y < start_y:
        return

    rows = int(math.floor((end_y - start_y) / step + 1e-9)) + 1
    cols = int(math.floor((end_x - start_x) / step + 1e-9)) + 1
    for row in range(rows):
        for col in range(cols):
            yield Point(start_x + col * step, start_y + row * step)


def place_in_mini_canvas(
    desired: Point,
    item_size: Size,
    siblings: Iterable[Rect],
    bounds: Size,
    config: PlacementConfig | None = None,
) -> MiniPlacement:
    """Place an item inside a location's mini-canvas, growing it when full.

    The desired point is kept when it is free and the item lies inside the
    bounds. Otherwise the mini-canvas is scanned row-major with a fixed step;
    when the scan is exhausted the canvas grows by one row (and widens to fit
    the item if it is too narrow) and the scan repeats. Sibling rectangles are
    finite, so a row below all of them is eventually free and the loop ends.

    Args:
        desired: Requested center point in local mini-canvas coordinates
        item_size: Footprint of the item being placed
        siblings: Footprint rectangles of the other children (local coordinates)
        bounds: Current mini-canvas size
        config: Solver configuration

    Returns:
        MiniPlacement with the chosen point and the (possibly grown) bounds
    """
    if config is None:
        config = DEFAULT_PLACEMENT

    rects = list(siblings)
    original = bounds
    if _fits_bounds(desired, item_size, bounds, config.mini_padding) and is_free(
        desired, item_size, rects, config.margin
    ):
        return MiniPlacement(desired, bounds)

    min_width = item_size.width + config.mini_padding * 2
    min_height = item_size.height + config.mini_padding * 2
    bounds = bounds.grown_to(Size(min_width, min_height))

    while True:
        for candidate in _scan_positions(item_size, bounds, config.mini_step, config.mini_padding):
            if is_free(candidate, item_size, rects, config.margin):
                grew = bounds != original
                if grew:
                    logger.debug(
                        "Mini-canvas grew from %sx%s to %sx%s",
                        original.width,
                        original.height,
                        bounds.width,
                        bounds.height,
                    )
                return MiniPlacement(candidate, bounds, grew)
        bounds = Size(bounds.width, bounds.height + config.mini_step)
