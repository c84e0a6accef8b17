"""SVG renderer using drawsvg."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import drawsvg as draw

from .camera import Camera
from .geometry import Rect, Size
from .models import ChoicesPayload, EventPayload, LocationPayload, PropPayload
from .nesting import mini_canvas_rect

if TYPE_CHECKING:
    from .document import Document
    from .models import Card, ConnectionKey
    from .routing import RoutedPath


class Theme:
    """Color theme for canvases."""

    def __init__(
        self,
        background: str = "#f3f4f6",
        mini_canvas_fill: str = "#ffffff",
        text_color: str = "#1f2937",
        text_secondary: str = "#6b7280",
        edge_color: str = "#64748b",
        accent_color: str = "#3b82f6",
        delete_color: str = "#ef4444",
    ):
        self.background = background
        self.mini_canvas_fill = mini_canvas_fill
        self.text_color = text_color
        self.text_secondary = text_secondary
        self.edge_color = edge_color
        self.accent_color = accent_color
        self.delete_color = delete_color


DEFAULT_THEME = Theme()


def truncate_text(text: str, max_chars: int) -> str:
    """Truncate text to max characters with ellipsis."""
    if len(text) <= max_chars:
        return text
    return text[: max_chars - 1] + "…"  # Unicode ellipsis


def fit_camera(document: Document, padding: float = 40.0) -> Camera:
    """A camera at zoom 1 whose viewport covers the document's canvas extent."""
    extent = document.canvas_extent
    if extent is None:
        extent = Rect(0, 0, 200, 200)
    extent = extent.inflated(padding)
    return Camera(
        Size(extent.width, extent.height),
        pan_offset=extent.center,
        config=document.config.camera,
    )


class CanvasRenderer:
    """Renders a document, as seen through a camera, to SVG."""

    def __init__(self, theme: Theme | None = None):
        self.theme = theme or DEFAULT_THEME

    def render(
        self,
        document: Document,
        camera: Camera | None = None,
        routes: dict[ConnectionKey, RoutedPath] | None = None,
        selected: ConnectionKey | None = None,
    ) -> draw.Drawing:
        """Render a document to an SVG Drawing object."""
        if camera is None:
            camera = fit_camera(document)
        if routes is None:
            routes = document.route_all()

        width = camera.viewport_size.width
        height = camera.viewport_size.height
        d = draw.Drawing(width, height)

        # Add background
        d.append(draw.Rectangle(0, 0, width, height, fill=self.theme.background))

        for card_id in document.top_level_ids:
            card = document.card(card_id)
            self._render_card(d, document, camera, card)
            if isinstance(card.payload, LocationPayload):
                self._render_mini_canvas(d, document, camera, card)

        # Render connections on top (so arrowheads are visible)
        for key, path in routes.items():
            self._render_connection(d, document, camera, key, path, selected=key == selected)

        return d

    def _render_card(self, d: draw.Drawing, document: Document, camera: Camera, card: Card) -> None:
        rect = camera.world_rect_to_viewport(document.world_rect(card.id))
        zoom = camera.zoom_scale

        d.append(
            draw.Rectangle(
                rect.min_x, rect.min_y, rect.width, rect.height,
                fill=card.type.fill_color,
                stroke=card.type.border_color,
                stroke_width=2 * zoom,
                rx=10 * zoom, ry=10 * zoom,
            )
        )

        # Type label
        d.append(
            draw.Text(
                card.type.title,
                11 * zoom,
                rect.min_x + 10 * zoom, rect.min_y + 18 * zoom,
                fill=card.type.border_color,
                font_weight="bold",
                font_family="Inter, system-ui, sans-serif",
            )
        )

        title = card.payload.title or "Untitled"
        d.append(
            draw.Text(
                truncate_text(title, 28),
                14 * zoom,
                rect.min_x + 10 * zoom, rect.min_y + 38 * zoom,
                fill=self.theme.text_color,
                font_family="Inter, system-ui, sans-serif",
            )
        )

        summary = self._summary(card)
        if summary:
            d.append(
                draw.Text(
                    summary,
                    11 * zoom,
                    rect.min_x + 10 * zoom, rect.max_y - 10 * zoom,
                    fill=self.theme.text_secondary,
                    font_family="Inter, system-ui, sans-serif",
                )
            )

    @staticmethod
    def _summary(card: Card) -> str | None:
        payload = card.payload
        if isinstance(payload, ChoicesPayload):
            return f"{len(payload.options)} options"
        if isinstance(payload, EventPayload) and payload.sub_events:
            return f"{len(payload.sub_events)} sub-events"
        if isinstance(payload, PropPayload) and payload.image is not None:
            return "image"
        return None

    def _render_mini_canvas(self, d: draw.Drawing, document: Document, camera: Camera, location: Card) -> None:
        zoom = camera.zoom_scale
        region = camera.world_rect_to_viewport(mini_canvas_rect(location, sizing=document.config.sizing))
        d.append(
            draw.Rectangle(
                region.min_x, region.min_y, region.width, region.height,
                fill=self.theme.mini_canvas_fill,
                stroke=location.type.border_color,
                stroke_width=1 * zoom,
                stroke_dasharray=f"{6 * zoom},{4 * zoom}",
                rx=6 * zoom, ry=6 * zoom,
            )
        )

        children = location.payload.children
        if not children:
            d.append(
                draw.Text(
                    "Drop Choices / Prop / Event here",
                    11 * zoom,
                    region.center.x, region.center.y,
                    fill=self.theme.text_secondary,
                    font_family="Inter, system-ui, sans-serif",
                    text_anchor="middle",
                    dominant_baseline="middle",
                )
            )
            return

        for child_id in children:
            self._render_card(d, document, camera, document.card(child_id))

    def _render_connection(
        self,
        d: draw.Drawing,
        document: Document,
        camera: Camera,
        key: ConnectionKey,
        routed_path: RoutedPath,
        selected: bool = False,
    ) -> None:
        points = [camera.world_to_viewport(p) for p in routed_path.points]
        if len(points) < 2:
            return

        connection = document.card(key.source_id).connection_for(key)
        color = (connection.color if connection else None) or self.theme.edge_color
        if selected:
            color = self.theme.accent_color

        group = draw.Group(id=f"connection-{key.source_id}-{key.option_id or 'card'}-{key.target_id}")

        # Wide invisible tap target, independent of the visible stroke
        hit = draw.Path(
            stroke="transparent",
            stroke_width=document.config.routing.hit_width,
            fill="none",
            pointer_events="stroke",
        )
        visible = draw.Path(stroke=color, stroke_width=1.5, fill="none")
        for path in (hit, visible):
            path.M(points[0].x, points[0].y)
            for p in points[1:]:
                path.L(p.x, p.y)
            group.append(path)

        last, tip = points[-2], points[-1]
        angle = math.atan2(tip.y - last.y, tip.x - last.x)
        self._draw_arrowhead(group, tip.x, tip.y, angle, 8, color)

        if selected:
            mid = camera.world_to_viewport(routed_path.midpoint)
            group.append(draw.Circle(mid.x, mid.y, 10, fill=self.theme.delete_color))
            group.append(
                draw.Text(
                    "×",
                    14,
                    mid.x, mid.y,
                    fill="#ffffff",
                    text_anchor="middle",
                    dominant_baseline="central",
                )
            )

        d.append(group)

    def _draw_arrowhead(
        self,
        d: draw.DrawingParentElement,
        x: float,
        y: float,
        angle: float,
        size: float,
        color: str,
    ) -> None:
        """Draw an arrowhead at the given position and angle."""
        # Triangle arrowhead points
        p1_x = x - size * math.cos(angle - math.pi / 6)
        p1_y = y - size * math.sin(angle - math.pi / 6)
        p2_x = x - size * math.cos(angle + math.pi / 6)
        p2_y = y - size * math.sin(angle + math.pi / 6)

        d.append(
            draw.Lines(
                x, y,
                p1_x, p1_y,
                p2_x, p2_y,
                x, y,
                fill=color,
                stroke="none",
            )
        )


def render_to_svg(
    document: Document,
    camera: Camera | None = None,
    filename: str | None = None,
    selected: ConnectionKey | None = None,
    routes: dict[ConnectionKey, RoutedPath] | None = None,
) -> str:
    """Render a document to SVG.

    Args:
        document: The document to render
        camera: View to render through; defaults to one covering the whole canvas
        filename: Optional filename to save to (without extension)
        selected: Connection drawn as selected, with its delete affordance
        routes: Pre-computed routes, e.g. from a CanvasEditor

    Returns:
        SVG content as string
    """
    renderer = CanvasRenderer()
    drawing = renderer.render(document, camera, routes=routes, selected=selected)

    if filename:
        drawing.save_svg(f"{filename}.svg")

    return drawing.as_svg()
