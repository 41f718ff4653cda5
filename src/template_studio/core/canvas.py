"""Bridge between slide space and the scaled-down editor canvas.

Slide space is authoritative (1920x1080 or 1600x1200). The canvas shows the
slide at a fixed display width; one uniform scale factor maps between the
two. Values written back into the model are always rounded here.
"""

from typing import Any, Optional

from pydantic import BaseModel

from .constants import CANVAS_WIDTH, DEFAULT_ELEMENT_SIZE, DEFAULT_TEXT_FONT_SIZE, MIN_ELEMENT_SIZE, MIN_FONT_SIZE
from .position import element_box, parse_dimension, resolve_extent, round_half_up
from .slides.styles import SONG_STYLE_NAMES, resolve_song_style
from .slides.templates import PresentationTemplate, slide_dimensions


class CanvasNode(BaseModel):
    """One drawable node: slide-space box plus its display-space projection."""
    model_config = {"frozen": True}

    id: str
    kind: str  # "image", "video", "audio", "text" or "song_content"
    x: float
    y: float
    width: float
    height: float
    display_x: float
    display_y: float
    display_width: float
    display_height: float
    rotation: int = 0
    opacity: float = 1.0
    z_index: int = 0
    label: Optional[str] = None


class CanvasBridge:
    """Maps pointer results in display space to rounded slide-space values."""

    def __init__(self, aspect_ratio: str = "16:9", display_width: float = CANVAS_WIDTH):
        self.aspect_ratio = aspect_ratio
        self.slide_width, self.slide_height = slide_dimensions(aspect_ratio)
        self.display_width = display_width
        self.scale = display_width / self.slide_width

    @property
    def display_height(self) -> float:
        return self.slide_height * self.scale

    def to_display(self, value: float) -> float:
        return value * self.scale

    def to_slide(self, value: float) -> int:
        return round_half_up(value / self.scale)

    def drag_end(self, display_x: float, display_y: float) -> dict[str, int]:
        """Final position of a drag, in slide space."""
        return {"x": self.to_slide(display_x), "y": self.to_slide(display_y)}

    def transform_end(
        self,
        display_x: float,
        display_y: float,
        display_width: float,
        display_height: float,
        rotation: float = 0.0,
    ) -> dict[str, int]:
        """Final box of a resize/rotate gesture, clamped to the minimum size."""
        return {
            "x": self.to_slide(display_x),
            "y": self.to_slide(display_y),
            "width": max(MIN_ELEMENT_SIZE, self.to_slide(display_width)),
            "height": max(MIN_ELEMENT_SIZE, self.to_slide(display_height)),
            "rotation": round_half_up(rotation),
        }

    def text_transform_end(
        self,
        display_x: float,
        display_y: float,
        display_width: float,
        display_height: float,
        rotation: float = 0.0,
        font_size: Any = None,
        scale_x: float = 1.0,
    ) -> dict[str, Any]:
        """Like transform_end, also scaling the font by the horizontal stretch."""
        update: dict[str, Any] = self.transform_end(
            display_x, display_y, display_width, display_height, rotation
        )
        current = parse_dimension(font_size) or parse_dimension(DEFAULT_TEXT_FONT_SIZE)
        if not current.is_percent:
            size = max(MIN_FONT_SIZE, round_half_up(current.value * scale_x))
            update["font_size"] = f"{size}px"
        return update

    def node(self, id: str, kind: str, box: tuple[float, float, float, float], **extra) -> CanvasNode:
        x, y, width, height = box
        return CanvasNode(
            id=id,
            kind=kind,
            x=x,
            y=y,
            width=width,
            height=height,
            display_x=self.to_display(x),
            display_y=self.to_display(y),
            display_width=self.to_display(width),
            display_height=self.to_display(height),
            **extra,
        )


def canvas_nodes(
    template: PresentationTemplate,
    slide_index: int,
    display_width: float = CANVAS_WIDTH,
) -> list[CanvasNode]:
    """Render list for one slide in paint order.

    On the reference slide the five song content slots follow the elements
    as placeholder nodes above every element.
    """
    bridge = CanvasBridge(template.aspect_ratio, display_width)
    slide = template.slides[slide_index]
    width, height = bridge.slide_width, bridge.slide_height

    nodes = []
    for element in slide.paint_order():
        box = element_box(element, width, height, DEFAULT_ELEMENT_SIZE[element.kind])
        nodes.append(bridge.node(
            element.id,
            element.kind,
            box,
            rotation=element.rotation or 0,
            opacity=1.0 if element.opacity is None else element.opacity,
            z_index=element.z_index or 0,
            label=getattr(element, "content", None),
        ))

    if slide_index == template.reference_slide_index:
        z_index = slide.max_z_index() + 1
        for name in SONG_STYLE_NAMES:
            style = resolve_song_style(getattr(slide, name), name, width, height)
            font_px = style.font_size.resolve(height)
            box = (
                style.x.resolve(width),
                style.y.resolve(height),
                resolve_extent(style.width, width, width - 80),
                resolve_extent(style.height, height, font_px * 1.5),
            )
            nodes.append(bridge.node(name, "song_content", box, z_index=z_index, label=name))

    return nodes
