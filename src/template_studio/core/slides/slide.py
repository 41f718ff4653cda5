"""Template slide data model."""

from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from .elements import (
    MODEL_CONFIG,
    AudioElement,
    BackgroundElement,
    ImageElement,
    TextElement,
    VideoElement,
)
from .styles import SongContentStyle

_COLLECTION_KEYS = ("images", "videos", "audios", "text")


class TemplateSlide(BaseModel):
    """One slide of a template: a background plus layered elements.

    The five song content styles are only honoured on the reference slide;
    they may be set elsewhere but are ignored by the serializer and renderer.
    """
    model_config = MODEL_CONFIG

    background: Optional[BackgroundElement] = None
    images: list[ImageElement] = Field(default_factory=list)
    videos: list[VideoElement] = Field(default_factory=list)
    audios: list[AudioElement] = Field(default_factory=list)
    text: list[TextElement] = Field(default_factory=list)

    song_title_style: Optional[SongContentStyle] = None
    song_lyrics_style: Optional[SongContentStyle] = None
    song_translation_style: Optional[SongContentStyle] = None
    bottom_left_text_style: Optional[SongContentStyle] = None
    bottom_right_text_style: Optional[SongContentStyle] = None

    @model_validator(mode="before")
    @classmethod
    def _empty_collections(cls, data: Any) -> Any:
        # "images:" with nothing under it reads as null
        if isinstance(data, dict):
            data = dict(data)
            for key in _COLLECTION_KEYS:
                if key in data and data[key] is None:
                    data[key] = []
        return data

    def elements(self) -> list:
        """All layer elements in collection order (images, videos, audios, text)."""
        return [*self.images, *self.videos, *self.audios, *self.text]

    def find_element(self, element_id: str):
        for element in self.elements():
            if element.id == element_id:
                return element
        return None

    def paint_order(self) -> list:
        """Elements sorted by z-index.

        Ties keep collection order (images, videos, audios, text), which is
        also the order the editor draws them in; insertion order is not kept
        across collections.
        """
        return sorted(self.elements(), key=lambda el: el.z_index or 0)

    def max_z_index(self) -> int:
        return max((el.z_index or 0 for el in self.elements()), default=0)

    def min_z_index(self) -> int:
        return min((el.z_index or 0 for el in self.elements()), default=0)

    def to_summary(self) -> dict:
        return {
            "background": self.background.type if self.background else None,
            "images": len(self.images),
            "videos": len(self.videos),
            "audios": len(self.audios),
            "text": len(self.text),
        }
