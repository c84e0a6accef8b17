"""Aggregate configuration for a canvas document."""

from __future__ import annotations

from dataclasses import dataclass, field

from .camera import CameraConfig
from .nesting import NestingConfig
from .placement import PlacementConfig
from .routing import RoutingConfig
from .sizing import SizingConfig


@dataclass(frozen=True)
class CanvasConfig:
    """Configuration for every engine component, with defaults."""

    sizing: SizingConfig = field(default_factory=SizingConfig)
    placement: PlacementConfig = field(default_factory=PlacementConfig)
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)
    nesting: NestingConfig = field(default_factory=NestingConfig)
    # Space kept between the outermost card and the edge of the canvas extent
    canvas_margin: float = 40.0
