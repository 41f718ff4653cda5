"""Layer element models: background, image, video, audio and text.

Raw documents spell a position as loose keys (``x``/``y`` or ``position:
<preset>``); the models fold them into a single tagged ``Position`` value so
explicit coordinates and presets can never both be authoritative.
"""

import math
import uuid
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..position import Dimension, DimensionValue, PositionPreset, round_half_up

ElementKind = Literal["image", "video", "audio", "text"]
ELEMENT_KINDS: tuple[str, ...] = ("image", "video", "audio", "text")

MODEL_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
    "frozen": True,
    "extra": "ignore",
    "coerce_numbers_to_str": True,
}


def generate_element_id(kind: str) -> str:
    return f"{kind}-{uuid.uuid4().hex[:8]}"


class ExplicitPosition(BaseModel):
    """Top-left corner given as two dimensions."""
    model_config = MODEL_CONFIG

    kind: Literal["explicit"] = "explicit"
    x: DimensionValue = Field(default_factory=Dimension)
    y: DimensionValue = Field(default_factory=Dimension)


class PresetPosition(BaseModel):
    """Top-left corner derived from one of the nine named anchors."""
    model_config = MODEL_CONFIG

    kind: Literal["preset"] = "preset"
    preset: PositionPreset


Position = Annotated[Union[ExplicitPosition, PresetPosition], Field(discriminator="kind")]


class BackgroundElement(BaseModel):
    """Slide background (colour, image or video)."""
    model_config = MODEL_CONFIG

    type: Literal["color", "image", "video"] = "color"
    value: str = ""
    opacity: Optional[float] = Field(default=None, ge=0, le=1)


class _LayerElement(BaseModel):
    """Fields shared by every positioned layer."""
    model_config = MODEL_CONFIG

    id: str
    position: Optional[Position] = None
    width: Optional[DimensionValue] = None
    height: Optional[DimensionValue] = None
    opacity: Optional[float] = Field(default=None, ge=0, le=1)
    z_index: Optional[int] = None
    rotation: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _fold_position(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("id"):
            data["id"] = generate_element_id(cls.model_fields["kind"].default)

        x = data.pop("x", None)
        y = data.pop("y", None)
        preset = data.pop("preset", None)
        position = data.get("position")
        if x is not None or y is not None:
            data["position"] = {
                "kind": "explicit",
                "x": "0px" if x is None else x,
                "y": "0px" if y is None else y,
            }
        elif isinstance(position, str):
            data["position"] = {"kind": "preset", "preset": position}
        elif position is None and preset is not None:
            data["position"] = {"kind": "preset", "preset": preset}
        return data

    @field_validator("rotation", mode="before")
    @classmethod
    def _round_rotation(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                return value
        if isinstance(value, float) and math.isfinite(value):
            return round_half_up(value)
        return value

    @property
    def preset(self) -> Optional[str]:
        if isinstance(self.position, PresetPosition):
            return self.position.preset
        return None

    @property
    def x(self):
        if isinstance(self.position, ExplicitPosition):
            return self.position.x
        return None

    @property
    def y(self):
        if isinstance(self.position, ExplicitPosition):
            return self.position.y
        return None


class ImageElement(_LayerElement):
    kind: Literal["image"] = "image"
    url: str = ""


class VideoElement(_LayerElement):
    kind: Literal["video"] = "video"
    url: str = ""
    auto_play: Optional[bool] = None
    loop: Optional[bool] = None
    muted: Optional[bool] = None
    hide_video: Optional[bool] = None
    hide_audio: Optional[bool] = None


class AudioElement(_LayerElement):
    """Audio layer. Playback spans ``start_slide``..``end_slide`` (1-based, inclusive)."""
    kind: Literal["audio"] = "audio"
    url: str = ""
    opacity: float = Field(default=1.0, ge=0, le=1)
    z_index: int = 1
    auto_play: bool = True
    loop: bool = False
    volume: float = Field(default=1.0, ge=0, le=1)
    visual_hidden: bool = False
    start_slide: Optional[int] = Field(default=None, ge=1)
    end_slide: Optional[int] = Field(default=None, ge=1)
    play_across_all_slides: Optional[bool] = None

    @model_validator(mode="after")
    def _check_range(self) -> "AudioElement":
        if self.start_slide is not None and self.end_slide is not None:
            if self.end_slide < self.start_slide:
                raise ValueError(
                    f"endSlide ({self.end_slide}) must not be before startSlide ({self.start_slide})"
                )
        return self

    def slide_range(self, slide_number: int) -> tuple[int, int]:
        """Effective (start, end) range; unset bounds fall back to the owning slide.

        An unset end never falls before the start.
        """
        start = self.start_slide if self.start_slide is not None else slide_number
        end = self.end_slide if self.end_slide is not None else max(start, slide_number)
        return start, end


class TextElement(_LayerElement):
    kind: Literal["text"] = "text"
    content: str = ""
    font_size: Optional[DimensionValue] = None
    font_family: Optional[str] = None
    font_weight: Optional[str] = None
    font_style: Optional[Literal["normal", "italic"]] = None
    text_align: Optional[Literal["left", "center", "right"]] = None
    color: Optional[str] = None
    max_width: Optional[DimensionValue] = None

    @field_validator("font_weight", mode="before")
    @classmethod
    def _weight_as_string(cls, value: Any) -> Any:
        # YAML reads an unquoted 700 as an integer
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("content", mode="before")
    @classmethod
    def _content_as_string(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


Element = Annotated[
    Union[ImageElement, VideoElement, AudioElement, TextElement],
    Field(discriminator="kind"),
]

ELEMENT_TYPES: dict[str, type[_LayerElement]] = {
    "image": ImageElement,
    "video": VideoElement,
    "audio": AudioElement,
    "text": TextElement,
}

# Slide collection holding each element kind
COLLECTIONS: dict[str, str] = {
    "image": "images",
    "video": "videos",
    "audio": "audios",
    "text": "text",
}


def field_name_map(model: type[BaseModel]) -> dict[str, str]:
    """Map both field names and camelCase aliases to field names."""
    names: dict[str, str] = {}
    for name, info in model.model_fields.items():
        names[name] = name
        if info.alias:
            names[info.alias] = name
    return names
