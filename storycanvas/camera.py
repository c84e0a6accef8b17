"""Camera transform between world space and viewport space."""

from __future__ import annotations

from dataclasses import dataclass, field

from .geometry import Point, Rect, Size


@dataclass(frozen=True)
class CameraConfig:
    min_zoom: float = 0.01
    max_zoom: float = 2.8
    default_zoom: float = 1.0
    default_pan: Point = Point(0, 0)


DEFAULT_CAMERA = CameraConfig()


@dataclass
class Camera:
    """Pan offset and zoom scale over an unbounded world.

    Gestures are relative to the state captured when they begin, so a pan
    covers the same screen distance whatever the current zoom, and a pinch
    multiplies the zoom the gesture started from rather than compounding.
    """

    viewport_size: Size
    pan_offset: Point = Point(0, 0)
    zoom_scale: float = 1.0
    config: CameraConfig = field(default_factory=CameraConfig)
    _pan_start: Point | None = field(default=None, repr=False)
    _zoom_start: float | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.zoom_scale = self.clamp_zoom(self.zoom_scale)

    @property
    def viewport_center(self) -> Point:
        return Point(self.viewport_size.width / 2, self.viewport_size.height / 2)

    def clamp_zoom(self, value: float) -> float:
        return min(max(value, self.config.min_zoom), self.config.max_zoom)

    def world_to_viewport(self, point: Point) -> Point:
        return (point - self.pan_offset).scaled(self.zoom_scale) + self.viewport_center

    def viewport_to_world(self, point: Point) -> Point:
        return (point - self.viewport_center).scaled(1 / self.zoom_scale) + self.pan_offset

    def world_rect_to_viewport(self, rect: Rect) -> Rect:
        top_left = self.world_to_viewport(Point(rect.min_x, rect.min_y))
        bottom_right = self.world_to_viewport(Point(rect.max_x, rect.max_y))
        return Rect(top_left.x, top_left.y, bottom_right.x, bottom_right.y)

    def visible_world_rect(self) -> Rect:
        top_left = self.viewport_to_world(Point(0, 0))
        bottom_right = self.viewport_to_world(
            Point(self.viewport_size.width, self.viewport_size.height)
        )
        return Rect(top_left.x, top_left.y, bottom_right.x, bottom_right.y)

    # Pan gesture

    def begin_pan(self) -> None:
        self._pan_start = self.pan_offset

    def update_pan(self, translation: Point) -> None:
        """Apply the live gesture translation (viewport pixels) to the captured start."""
        if self._pan_start is None:
            self.begin_pan()
        self.pan_offset = self._pan_start - translation.scaled(1 / self.zoom_scale)

    def end_pan(self) -> None:
        self._pan_start = None

    # Pinch gesture

    def begin_zoom(self) -> None:
        self._zoom_start = self.zoom_scale

    def update_zoom(self, ratio: float) -> None:
        """Apply the live pinch ratio to the zoom captured at gesture start."""
        if self._zoom_start is None:
            self.begin_zoom()
        self.zoom_scale = self.clamp_zoom(self._zoom_start * ratio)

    def end_zoom(self) -> None:
        self._zoom_start = None

    def reset(self) -> None:
        self.pan_offset = self.config.default_pan
        self.zoom_scale = self.clamp_zoom(self.config.default_zoom)
        self._pan_start = None
        self._zoom_start = None
