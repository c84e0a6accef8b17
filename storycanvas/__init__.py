"""storycanvas - Layout and connection-routing engine for story node canvases.

Example usage:
    from storycanvas import card, option, storyboard

    with storyboard(filename="heist"):
        with card("location", title="Bank", at=(0, 0)) as bank:
            alarm = card("event", title="Alarm")

        escape = card("choices", title="Escape?", at=(500, 0), options=["Run", "Hide"])
        alarm >> escape
        option(escape, "Run") >> card("prop", title="Getaway car", at=(900, 0))
"""

from .camera import (
    Camera,
    CameraConfig,
)
from .config import CanvasConfig
from .document import (
    Document,
    MutationResult,
    PendingDeletion,
)
from .dsl import (
    CardContext,
    OptionContext,
    card,
    connect,
    option,
    storyboard,
)
from .geometry import (
    Point,
    Rect,
    Size,
)
from .interaction import CanvasEditor
from .models import (
    Card,
    CardType,
    ChoiceOption,
    ChoicesPayload,
    Connection,
    ConnectionKey,
    EventPayload,
    ImageRef,
    LocationPayload,
    PropPayload,
    SubEvent,
    UnknownCardError,
)
from .placement import (
    PlacementConfig,
    place,
    place_in_mini_canvas,
)
from .routing import (
    RoutedPath,
    RoutingConfig,
    Side,
    route,
)
from .renderer import (
    DEFAULT_THEME,
    CanvasRenderer,
    Theme,
    render_to_svg,
)
from .sizing import (
    SizingConfig,
    card_size,
)

__version__ = "0.1.0"

__all__ = [
    # DSL functions
    "storyboard",
    "card",
    "option",
    "connect",
    "CardContext",
    "OptionContext",
    # Models
    "Card",
    "CardType",
    "ChoiceOption",
    "ChoicesPayload",
    "Connection",
    "ConnectionKey",
    "EventPayload",
    "ImageRef",
    "LocationPayload",
    "PropPayload",
    "SubEvent",
    "UnknownCardError",
    # Geometry
    "Point",
    "Size",
    "Rect",
    # Engine
    "Document",
    "MutationResult",
    "PendingDeletion",
    "CanvasEditor",
    "Camera",
    "card_size",
    "place",
    "place_in_mini_canvas",
    "route",
    "RoutedPath",
    "Side",
    # Configuration
    "CanvasConfig",
    "CameraConfig",
    "PlacementConfig",
    "RoutingConfig",
    "SizingConfig",
    # Rendering
    "render_to_svg",
    "CanvasRenderer",
    "Theme",
    "DEFAULT_THEME",
    # Version
    "__version__",
]
