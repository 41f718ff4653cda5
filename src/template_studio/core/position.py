"""Dimension values and the position resolver shared by the editor and the renderer.

Resolution is total: every function here that takes raw user input degrades
malformed values to 0 (or the supplied default) instead of raising, because
it runs on every canvas frame.
"""

import math
import re
from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel, BeforeValidator, PlainSerializer

from .constants import ELEMENT_MARGIN

POSITION_PRESETS = (
    "top-left",
    "top-center",
    "top-right",
    "center-left",
    "center",
    "center-right",
    "bottom-left",
    "bottom-center",
    "bottom-right",
)

PositionPreset = Literal[
    "top-left",
    "top-center",
    "top-right",
    "center-left",
    "center",
    "center-right",
    "bottom-left",
    "bottom-center",
    "bottom-right",
]

# (column, row) cell of each preset in the 3x3 grid
_PRESET_GRID: dict[str, tuple[str, str]] = {
    "top-left": ("start", "start"),
    "top-center": ("middle", "start"),
    "top-right": ("end", "start"),
    "center-left": ("start", "middle"),
    "center": ("middle", "middle"),
    "center-right": ("end", "middle"),
    "bottom-left": ("start", "end"),
    "bottom-center": ("middle", "end"),
    "bottom-right": ("end", "end"),
}

_DIMENSION_RE = re.compile(
    r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)\s*(px|%)?\s*$"
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity."""
    return math.floor(value + 0.5)


def format_number(value: float) -> str:
    """Shortest plain decimal form of a number (no exponent notation)."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    text = repr(value)
    if "e" in text or "E" in text:
        text = f"{value:.10f}".rstrip("0").rstrip(".")
    return text


class Dimension(BaseModel):
    """A signed length paired with a unit (pixels or percent of slide extent)."""
    model_config = {"frozen": True}

    value: float = 0.0
    unit: Literal["px", "%"] = "px"

    @classmethod
    def parse(cls, raw: Any) -> "Dimension":
        """Parse ``100``, ``"100px"``, ``"12.5 %"``. Raises ValueError on garbage."""
        if isinstance(raw, Dimension):
            return raw
        if isinstance(raw, bool):
            raise ValueError(f"Invalid dimension: {raw!r}")
        if isinstance(raw, (int, float)):
            try:
                value = float(raw)
            except OverflowError:
                raise ValueError(f"Invalid dimension: {raw!r}") from None
            if not math.isfinite(value):
                raise ValueError(f"Invalid dimension: {raw!r}")
            return cls(value=value)
        if isinstance(raw, str):
            match = _DIMENSION_RE.match(raw)
            if match:
                value = float(match.group(1))
                if math.isfinite(value):
                    return cls(value=value, unit=match.group(2) or "px")
        raise ValueError(f"Invalid dimension: {raw!r}")

    @property
    def is_percent(self) -> bool:
        return self.unit == "%"

    def resolve(self, extent: float) -> float:
        """Absolute slide-space length for a container of the given extent."""
        if self.is_percent:
            return self.value / 100 * extent
        return self.value

    def rounded(self) -> "Dimension":
        if self.is_percent:
            return self
        return Dimension(value=round_half_up(self.value))

    def __str__(self) -> str:
        return f"{format_number(self.value)}{self.unit}"


def _coerce_dimension(raw: Any) -> Any:
    if isinstance(raw, dict):
        return raw
    return Dimension.parse(raw)


# Field type: validates from numbers/strings, dumps back to the string form
DimensionValue = Annotated[
    Dimension,
    BeforeValidator(_coerce_dimension),
    PlainSerializer(str, return_type=str),
]


def parse_dimension(raw: Any) -> Optional[Dimension]:
    """Lenient variant of Dimension.parse: returns None instead of raising."""
    if raw is None:
        return None
    try:
        return Dimension.parse(raw)
    except (ValueError, OverflowError, TypeError):
        return None


def format_dimension(raw: Any) -> str:
    """Serialization form of a dimension: integer pixels with a ``px`` suffix.

    Percentages keep their unit. Unparsable input is passed through as-is.
    """
    if raw is None:
        return ""
    dim = parse_dimension(raw)
    if dim is None:
        return str(raw)
    return str(dim.rounded())


def _as_float(value: Any) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def _grid_coordinate(cell: str, slide_extent: float, element_extent: float) -> float:
    if cell == "start":
        return float(ELEMENT_MARGIN)
    if cell == "middle":
        return (slide_extent - element_extent) / 2
    return slide_extent - element_extent - ELEMENT_MARGIN


def resolve_position(
    explicit: Any,
    preset: Optional[str],
    axis: str,
    slide_extent: float,
    element_extent: float,
    slide_width: float,
    slide_height: float,
) -> float:
    """Slide-space coordinate of an element's top-left corner on one axis.

    Priority: explicit percent, explicit pixels, named preset, then 0.
    """
    if explicit is not None:
        dim = parse_dimension(explicit)
        if dim is None:
            return 0.0
        return dim.resolve(_as_float(slide_extent))

    if isinstance(preset, str) and preset:
        cell = _PRESET_GRID.get(preset)
        if cell is None:
            return 0.0
        if axis == "x":
            return _grid_coordinate(cell[0], _as_float(slide_width), _as_float(element_extent))
        if axis == "y":
            return _grid_coordinate(cell[1], _as_float(slide_height), _as_float(element_extent))

    return 0.0


def resolve_extent(raw: Any, slide_extent: float, default: float) -> float:
    """Absolute width/height of an element; missing or malformed -> default."""
    dim = parse_dimension(raw)
    if dim is None:
        return float(default)
    return dim.resolve(slide_extent)


def element_box(
    element: Any,
    slide_width: float,
    slide_height: float,
    default_size: tuple[float, float],
) -> tuple[float, float, float, float]:
    """Resolved (x, y, width, height) of a positioned element in slide space."""
    width = resolve_extent(getattr(element, "width", None), slide_width, default_size[0])
    height = resolve_extent(getattr(element, "height", None), slide_height, default_size[1])

    explicit_x = explicit_y = preset = None
    position = getattr(element, "position", None)
    if position is not None:
        if getattr(position, "kind", None) == "explicit":
            explicit_x, explicit_y = position.x, position.y
        else:
            preset = getattr(position, "preset", None)

    x = resolve_position(explicit_x, preset, "x", slide_width, width, slide_width, slide_height)
    y = resolve_position(explicit_y, preset, "y", slide_height, height, slide_width, slide_height)
    return x, y, width, height
