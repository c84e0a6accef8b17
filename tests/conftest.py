from __future__ import annotations

import pytest

from storycanvas.camera import Camera
from storycanvas.document import Document
from storycanvas.geometry import Size
from storycanvas.interaction import CanvasEditor


@pytest.fixture
def document() -> Document:
    return Document()


@pytest.fixture
def camera() -> Camera:
    # Pan (0, 0) at zoom 1: viewport = world + (500, 400)
    return Camera(Size(1000, 800))


@pytest.fixture
def editor(document: Document, camera: Camera) -> CanvasEditor:
    return CanvasEditor(document, camera)
