"""Presentation templates: an ordered list of slides around one reference slide."""

from datetime import datetime
from typing import Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field, model_validator

from ..constants import DEFAULT_ASPECT_RATIO, SLIDE_DIMENSIONS
from .elements import MODEL_CONFIG, AudioElement
from .slide import TemplateSlide

AspectRatio = Literal["16:9", "4:3"]
SlideRole = Literal["intro", "reference", "outro"]

_LEGACY_SLIDE_KEYS = ("background", "images", "videos", "audios", "text")

# Fields merged back into the edited document after a text edit
TEMPLATE_FIELDS: tuple[str, ...] = ("name", "description", "aspect_ratio", "slides", "reference_slide_index")

# Fields that count towards unsaved changes; ids and timestamps never do
COMPARED_FIELDS: tuple[str, ...] = TEMPLATE_FIELDS + ("is_default",)

# YAML 1.1 reads unquoted 16:9 / 4:3 as base-60 integers
_SEXAGESIMAL_RATIOS = {16 * 60 + 9: "16:9", 4 * 60 + 3: "4:3"}


def _with_audio_range(audio: Any, slide_number: int) -> Any:
    if isinstance(audio, AudioElement):
        if audio.start_slide is not None and audio.end_slide is not None:
            return audio
        start, end = audio.slide_range(slide_number)
        return audio.model_copy(update={"start_slide": start, "end_slide": end})
    if not isinstance(audio, dict):
        return audio

    audio = dict(audio)
    start = audio.pop("start_slide", None)
    end = audio.pop("end_slide", None)
    start = audio.get("startSlide", start)
    end = audio.get("endSlide", end)
    if start is None:
        start = slide_number
    if end is None:
        end = max(start, slide_number) if isinstance(start, int) else slide_number
    audio["startSlide"] = start
    audio["endSlide"] = end
    return audio


def _slides_with_audio_ranges(slides: list) -> list:
    """Pin every audio range to explicit slide numbers (owning slide when unset)."""
    result = []
    for number, slide in enumerate(slides, start=1):
        if isinstance(slide, TemplateSlide):
            audios = [_with_audio_range(a, number) for a in slide.audios]
            if audios != slide.audios:
                slide = slide.model_copy(update={"audios": audios})
        elif isinstance(slide, dict) and isinstance(slide.get("audios"), list):
            slide = {**slide, "audios": [_with_audio_range(a, number) for a in slide["audios"]]}
        result.append(slide)
    return result


def slide_dimensions(aspect_ratio: Optional[str]) -> tuple[int, int]:
    """Slide-space (width, height) for an aspect ratio; unknown ratios use 16:9."""
    return SLIDE_DIMENSIONS.get(aspect_ratio or DEFAULT_ASPECT_RATIO, SLIDE_DIMENSIONS[DEFAULT_ASPECT_RATIO])


class PresentationTemplate(BaseModel):
    """A multi-slide template.

    Exactly one slide is the reference slide (song content is overlaid there);
    slides before it are intro slides, slides after it outro slides.
    """
    model_config = MODEL_CONFIG

    name: str = "New Template"
    description: Optional[str] = None
    aspect_ratio: AspectRatio = "16:9"
    slides: list[TemplateSlide] = Field(default_factory=lambda: [TemplateSlide()])
    reference_slide_index: int = 0

    @model_validator(mode="before")
    @classmethod
    def _pin_audio_ranges(cls, data: Any) -> Any:
        # unset audio ranges become the owning slide
        if isinstance(data, dict) and isinstance(data.get("slides"), list):
            data = {**data, "slides": _slides_with_audio_ranges(data["slides"])}
        return data

    @model_validator(mode="after")
    def _check_reference(self) -> "PresentationTemplate":
        if not self.slides:
            raise ValueError("a template needs at least one slide")
        if not 0 <= self.reference_slide_index < len(self.slides):
            raise ValueError(
                f"referenceSlideIndex {self.reference_slide_index} is out of range "
                f"for {len(self.slides)} slide(s)"
            )
        return self

    def slide_dimensions(self) -> tuple[int, int]:
        return slide_dimensions(self.aspect_ratio)

    @property
    def reference_slide(self) -> TemplateSlide:
        return self.slides[self.reference_slide_index]

    def slide_role(self, index: int) -> SlideRole:
        if index == self.reference_slide_index:
            return "reference"
        return "intro" if index < self.reference_slide_index else "outro"

    def to_summary(self) -> list[dict]:
        return [
            {"index": i, "role": self.slide_role(i), **slide.to_summary()}
            for i, slide in enumerate(self.slides)
        ]


class TemplateDocument(PresentationTemplate):
    """A template as persisted at the storage boundary.

    ``yaml`` is the serialized text, kept in sync with the structured fields
    on every save. The remaining extra fields are assigned by storage.
    """
    id: Optional[str] = None
    is_default: bool = False
    center_ids: list[Union[int, str]] = Field(default_factory=list)
    yaml: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def _canonical_aspect_ratio(value: Any) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        value = _SEXAGESIMAL_RATIOS.get(value)
    return "4:3" if value == "4:3" else "16:9"


def to_canonical_template(raw: Mapping[str, Any], cls: type = PresentationTemplate):
    """Upgrade a raw template mapping to a validated template with >= 1 slide.

    Legacy single-slide documents keep ``background/images/videos/audios/text``
    at the top level instead of a ``slides`` list; they become one slide that
    is also the reference slide. Runs once at load time.
    """
    data = {k: v for k, v in raw.items() if k not in _LEGACY_SLIDE_KEYS}
    data["aspectRatio"] = _canonical_aspect_ratio(raw.get("aspectRatio", raw.get("aspect_ratio")))
    data.pop("aspect_ratio", None)

    slides = raw.get("slides")
    if slides:
        if data.get("referenceSlideIndex") is None:
            data.pop("referenceSlideIndex", None)
    else:
        data["slides"] = [{key: raw.get(key) for key in _LEGACY_SLIDE_KEYS if key in raw}]
        data["referenceSlideIndex"] = 0
        data.pop("reference_slide_index", None)

    return cls.model_validate(data)
