"""Slide, element and template models plus the operations over them."""

from .elements import (
    AudioElement,
    BackgroundElement,
    Element,
    ExplicitPosition,
    ImageElement,
    Position,
    PresetPosition,
    TextElement,
    VideoElement,
)
from .styles import SongContentStyle, default_song_styles, resolve_song_style
from .slide import TemplateSlide
from .templates import PresentationTemplate, TemplateDocument, slide_dimensions, to_canonical_template
from . import operations

__all__ = [
    "AudioElement",
    "BackgroundElement",
    "Element",
    "ExplicitPosition",
    "ImageElement",
    "Position",
    "PresetPosition",
    "TextElement",
    "VideoElement",
    "SongContentStyle",
    "default_song_styles",
    "resolve_song_style",
    "TemplateSlide",
    "PresentationTemplate",
    "TemplateDocument",
    "slide_dimensions",
    "to_canonical_template",
    "operations",
]
