"""Song content styles: where the live title, lyrics and translation are drawn.

These slots only matter on the reference slide, where song content is
overlaid at presentation time.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, field_validator

from ..position import Dimension, DimensionValue, round_half_up
from .elements import MODEL_CONFIG

SongStyleName = Literal[
    "song_title_style",
    "song_lyrics_style",
    "song_translation_style",
    "bottom_left_text_style",
    "bottom_right_text_style",
]

SONG_STYLE_NAMES: tuple[str, ...] = (
    "song_title_style",
    "song_lyrics_style",
    "song_translation_style",
    "bottom_left_text_style",
    "bottom_right_text_style",
)

# camelCase document keys -> field names
SONG_STYLE_ALIASES: dict[str, str] = {
    "songTitleStyle": "song_title_style",
    "songLyricsStyle": "song_lyrics_style",
    "songTranslationStyle": "song_translation_style",
    "bottomLeftTextStyle": "bottom_left_text_style",
    "bottomRightTextStyle": "bottom_right_text_style",
}


class SongContentStyle(BaseModel):
    """Placement and typography of one song content slot.

    ``y_position`` is the legacy vertical placement as a percentage of slide
    height; it is kept so old documents survive a save, and only consulted
    when ``y`` is absent.
    """
    model_config = {**MODEL_CONFIG, "validate_default": True}

    x: Optional[DimensionValue] = None
    y: Optional[DimensionValue] = None
    width: Optional[DimensionValue] = None
    height: Optional[DimensionValue] = None
    font_size: DimensionValue = "36px"
    font_weight: str = "normal"
    font_style: Optional[Literal["normal", "italic"]] = None
    font_family: Optional[str] = None
    text_align: Literal["left", "center", "right"] = "center"
    color: str = "#ffffff"
    y_position: Optional[float] = None

    @field_validator("font_weight", mode="before")
    @classmethod
    def _weight_as_string(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


def default_song_styles(slide_width: int, slide_height: int) -> dict[str, SongContentStyle]:
    """Default placement of every song content slot for a slide size."""
    half_width = round_half_up((slide_width - 120) / 2)
    return {
        "song_title_style": SongContentStyle(
            x=40,
            y=round_half_up(slide_height * 0.05),
            width=slide_width - 80,
            font_size="48px",
            font_weight="bold",
            text_align="center",
        ),
        "song_lyrics_style": SongContentStyle(
            x=40,
            y=round_half_up(slide_height * 0.20),
            width=slide_width - 80,
            font_size="36px",
            font_weight="bold",
            text_align="center",
        ),
        "song_translation_style": SongContentStyle(
            x=40,
            y=round_half_up(slide_height * 0.75),
            width=slide_width - 80,
            font_size="24px",
            font_weight="normal",
            text_align="center",
        ),
        "bottom_left_text_style": SongContentStyle(
            x=40,
            y=round_half_up(slide_height * 0.92),
            width=half_width,
            font_size="20px",
            font_weight="normal",
            text_align="left",
        ),
        "bottom_right_text_style": SongContentStyle(
            x=round_half_up(slide_width * 0.5),
            y=round_half_up(slide_height * 0.92),
            width=half_width,
            font_size="20px",
            font_weight="normal",
            text_align="right",
        ),
    }


def resolve_song_style(
    saved: Optional[SongContentStyle],
    name: str,
    slide_width: int,
    slide_height: int,
) -> SongContentStyle:
    """Effective style for a slot: saved values over defaults.

    A legacy ``y_position`` (percent of height) is converted to ``y`` when no
    explicit ``y`` was saved.
    """
    default = default_song_styles(slide_width, slide_height)[name]
    if saved is None:
        return default

    y = saved.y
    if y is None and saved.y_position is not None:
        y = round_half_up(slide_height * saved.y_position / 100)
    if y is None:
        y = default.y

    return saved.model_copy(update={
        "x": saved.x if saved.x is not None else default.x,
        "y": Dimension.parse(y),
        "width": saved.width if saved.width is not None else default.width,
    })
