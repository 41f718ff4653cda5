"""Structural edits on templates.

Every operation returns a new template value; the input is never modified.
Elements are addressed by id only, and slide operations keep
``reference_slide_index`` pointing at the same slide.
"""

import logging
from typing import Any, Iterable, Literal, Mapping, Optional

from ..constants import (
    DEFAULT_BACKGROUND_COLOR,
    DEFAULT_ELEMENT_SIZE,
    DEFAULT_NEW_ELEMENT_OFFSET,
    DEFAULT_TEXT_COLOR,
    DEFAULT_TEXT_CONTENT,
    DEFAULT_TEXT_FONT_SIZE,
    PASTE_OFFSET,
)
from ..position import element_box, round_half_up
from .elements import (
    COLLECTIONS,
    ELEMENT_TYPES,
    BackgroundElement,
    ExplicitPosition,
    TextElement,
    field_name_map,
    generate_element_id,
)
from .slide import TemplateSlide
from .styles import SONG_STYLE_ALIASES, SONG_STYLE_NAMES, SongContentStyle, default_song_styles
from .templates import PresentationTemplate

logger = logging.getLogger("TemplateStudio.core.slides.operations")

Alignment = Literal["left", "center", "right", "top", "middle", "bottom", "sameWidth", "sameHeight"]
ALIGNMENTS: tuple[str, ...] = ("left", "center", "right", "top", "middle", "bottom", "sameWidth", "sameHeight")

_POSITION_KEYS = ("x", "y", "position", "preset")
_READ_ONLY_FIELDS = ("id", "kind")


# ── Helpers ──────────────────────────────────────────────────────


def _get_slide(template: PresentationTemplate, slide_index: int) -> TemplateSlide:
    if not 0 <= slide_index < len(template.slides):
        raise IndexError(f"Slide index {slide_index} out of range (0-{len(template.slides) - 1})")
    return template.slides[slide_index]


def _replace_slide(template, slide_index: int, slide: TemplateSlide):
    slides = list(template.slides)
    slides[slide_index] = slide
    return template.model_copy(update={"slides": slides})


def _normalize_attrs(model, attrs: dict[str, Any], extra: Iterable[str] = ()) -> dict[str, Any]:
    """Map camelCase or snake_case keys to field names; unknown keys raise ValueError."""
    names = field_name_map(model)
    allowed = set(extra)
    normalized: dict[str, Any] = {}
    for key, value in attrs.items():
        if key in allowed:
            normalized[key] = value
        elif key in names and names[key] not in _READ_ONLY_FIELDS:
            normalized[names[key]] = value
        else:
            raise ValueError(f"Unknown attribute for {model.__name__}: {key!r}")
    return normalized


def _with_element(slide: TemplateSlide, element) -> TemplateSlide:
    """Replace the element with the same id in its collection."""
    collection = COLLECTIONS[element.kind]
    items = [element if el.id == element.id else el for el in getattr(slide, collection)]
    return slide.model_copy(update={collection: items})


def _default_attrs(kind: str, slide_index: int, slide_width: int, slide_height: int) -> dict[str, Any]:
    offset = DEFAULT_NEW_ELEMENT_OFFSET
    if kind == "image":
        side = round_half_up(slide_width * 0.2)
        return {"x": offset, "y": offset, "width": side, "height": side, "z_index": 1}
    if kind == "video":
        width = round_half_up(slide_width / 3)
        return {"x": offset, "y": offset, "width": width, "height": round_half_up(width * 9 / 16), "z_index": 1}
    if kind == "audio":
        width, height = DEFAULT_ELEMENT_SIZE["audio"]
        return {
            "x": offset,
            "y": slide_height - height - offset,
            "width": width,
            "height": height,
            "z_index": 1,
            "start_slide": slide_index + 1,
            "end_slide": slide_index + 1,
        }
    return {
        "x": offset,
        "y": offset,
        "content": DEFAULT_TEXT_CONTENT,
        "font_size": DEFAULT_TEXT_FONT_SIZE,
        "color": DEFAULT_TEXT_COLOR,
        "z_index": 2,
    }


# ── Templates and elements ───────────────────────────────────────


def new_template(
    name: str = "New Template",
    aspect_ratio: str = "16:9",
    description: Optional[str] = None,
) -> PresentationTemplate:
    """A template with one blank reference slide on a white background."""
    slide = TemplateSlide(background=BackgroundElement(type="color", value=DEFAULT_BACKGROUND_COLOR))
    return PresentationTemplate(
        name=name,
        description=description,
        aspect_ratio=aspect_ratio,
        slides=[slide],
        reference_slide_index=0,
    )


def add_element(template: PresentationTemplate, slide_index: int, kind: str, **attrs):
    """Add an element with visible default geometry. Returns ``(template, element_id)``."""
    cls = ELEMENT_TYPES.get(kind)
    if cls is None:
        raise ValueError(f"Unknown element kind: {kind!r}")

    element_id = attrs.pop("id", None) or generate_element_id(kind)
    slide = _get_slide(template, slide_index)
    width, height = template.slide_dimensions()
    data = _default_attrs(kind, slide_index, width, height)
    overrides = _normalize_attrs(cls, attrs, extra=_POSITION_KEYS)
    if any(key in overrides for key in ("position", "preset")) and not any(
        key in overrides for key in ("x", "y")
    ):
        data.pop("x", None)
        data.pop("y", None)
    data.update(overrides)

    element = cls.model_validate({**data, "id": element_id})
    if slide.find_element(element.id) is not None:
        raise ValueError(f"Element id already used on slide {slide_index}: {element.id}")

    collection = COLLECTIONS[kind]
    slide = slide.model_copy(update={collection: [*getattr(slide, collection), element]})
    logger.debug(f"Added {kind} {element.id} to slide {slide_index}")
    return _replace_slide(template, slide_index, slide), element.id


def update_element(template: PresentationTemplate, slide_index: int, element_id: str, **attrs):
    """Merge attributes into an element.

    Explicit ``x``/``y`` replace a preset; the axis not given keeps its
    explicit value or, when the element was preset-positioned, the coordinate
    the preset resolved to. ``position``/``preset`` replace explicit
    coordinates. Unknown ids leave the template unchanged.
    """
    slide = _get_slide(template, slide_index)
    element = slide.find_element(element_id)
    if element is None:
        logger.debug(f"update_element: no element {element_id} on slide {slide_index}")
        return template

    cls = type(element)
    updates = _normalize_attrs(cls, attrs, extra=_POSITION_KEYS)
    x = updates.pop("x", None)
    y = updates.pop("y", None)
    preset = updates.pop("preset", None)
    position = updates.pop("position", None)

    if x is not None or y is not None:
        if isinstance(element.position, ExplicitPosition):
            current_x, current_y = element.position.x, element.position.y
        else:
            slide_width, slide_height = template.slide_dimensions()
            current_x, current_y, _, _ = element_box(
                element, slide_width, slide_height, DEFAULT_ELEMENT_SIZE[element.kind]
            )
        updates["position"] = {
            "kind": "explicit",
            "x": current_x if x is None else x,
            "y": current_y if y is None else y,
        }
    elif isinstance(position, str) or preset is not None:
        updates["position"] = {"kind": "preset", "preset": preset or position}
    elif "position" in attrs:
        updates["position"] = position

    if isinstance(element, TextElement) and "width" in updates and "max_width" not in updates:
        updates["max_width"] = updates["width"]

    data = element.model_dump()
    data.update(updates)
    updated = cls.model_validate(data)
    return _replace_slide(template, slide_index, _with_element(slide, updated))


def remove_element(template: PresentationTemplate, slide_index: int, element_id: str):
    slide = _get_slide(template, slide_index)
    element = slide.find_element(element_id)
    if element is None:
        return template
    collection = COLLECTIONS[element.kind]
    items = [el for el in getattr(slide, collection) if el.id != element_id]
    logger.debug(f"Removed {element.kind} {element_id} from slide {slide_index}")
    return _replace_slide(template, slide_index, slide.model_copy(update={collection: items}))


def update_elements(template: PresentationTemplate, slide_index: int, updates: Mapping[str, Mapping[str, Any]]):
    """Apply ``{element_id: attrs}`` updates on one slide in a single step."""
    for element_id, attrs in updates.items():
        template = update_element(template, slide_index, element_id, **attrs)
    return template


def remove_elements(template: PresentationTemplate, slide_index: int, element_ids: Iterable[str]):
    for element_id in element_ids:
        template = remove_element(template, slide_index, element_id)
    return template


def paste_element(template: PresentationTemplate, slide_index: int, element, offset: float = PASTE_OFFSET):
    """Insert a copy of ``element`` with a fresh id, shifted by ``offset`` and on top.

    The copy is always explicitly positioned. A pasted audio plays on the
    slide it lands on. Returns ``(template, element_id)``.
    """
    slide = _get_slide(template, slide_index)
    slide_width, slide_height = template.slide_dimensions()
    x, y, _, _ = element_box(element, slide_width, slide_height, DEFAULT_ELEMENT_SIZE[element.kind])

    data = element.model_dump(exclude={"id", "position"})
    data.update({
        "x": round_half_up(x + offset),
        "y": round_half_up(y + offset),
        "z_index": slide.max_z_index() + 1,
    })
    if element.kind == "audio":
        data.update({"start_slide": slide_index + 1, "end_slide": slide_index + 1})

    pasted = type(element).model_validate({**data, "id": generate_element_id(element.kind)})
    collection = COLLECTIONS[pasted.kind]
    slide = slide.model_copy(update={collection: [*getattr(slide, collection), pasted]})
    logger.debug(f"Pasted {element.id} as {pasted.id} on slide {slide_index}")
    return _replace_slide(template, slide_index, slide), pasted.id


def set_background(template: PresentationTemplate, slide_index: int, **attrs):
    slide = _get_slide(template, slide_index)
    current = slide.background or BackgroundElement()
    data = current.model_dump()
    data.update(_normalize_attrs(BackgroundElement, attrs))
    background = BackgroundElement.model_validate(data)
    return _replace_slide(template, slide_index, slide.model_copy(update={"background": background}))


def set_song_content_style(template: PresentationTemplate, style_name: str, **attrs):
    """Merge attributes into one of the reference slide's song content styles."""
    name = SONG_STYLE_ALIASES.get(style_name, style_name)
    if name not in SONG_STYLE_NAMES:
        raise ValueError(f"Unknown song content style: {style_name!r}")

    index = template.reference_slide_index
    slide = template.slides[index]
    current = getattr(slide, name)
    if current is None:
        current = default_song_styles(*template.slide_dimensions())[name]

    data = current.model_dump(exclude_none=True)
    data.update(_normalize_attrs(SongContentStyle, attrs))
    style = SongContentStyle.model_validate(data)
    return _replace_slide(template, index, slide.model_copy(update={name: style}))


# ── Slides ───────────────────────────────────────────────────────


def _with_slides(template, slides: list[TemplateSlide], reference_index: int):
    return template.model_copy(update={"slides": slides, "reference_slide_index": reference_index})


def insert_slide(template: PresentationTemplate, at_index: int):
    """Insert a blank slide after ``at_index`` using the reference slide's background.

    Returns ``(template, new_slide_index)``.
    """
    slides = list(template.slides)
    reference = template.reference_slide
    background = reference.background.model_copy() if reference.background else None
    slides.insert(at_index + 1, TemplateSlide(background=background))

    reference_index = template.reference_slide_index
    if at_index < reference_index:
        reference_index += 1
    return _with_slides(template, slides, reference_index), at_index + 1


def _regenerate_ids(slide: TemplateSlide) -> TemplateSlide:
    update = {}
    for kind, collection in COLLECTIONS.items():
        update[collection] = [
            el.model_copy(update={"id": generate_element_id(kind)}) for el in getattr(slide, collection)
        ]
    return slide.model_copy(update=update)


def duplicate_slide(template: PresentationTemplate, at_index: int):
    """Copy a slide (with fresh element ids) right after itself."""
    if not 0 <= at_index < len(template.slides):
        return template, at_index
    slides = list(template.slides)
    slides.insert(at_index + 1, _regenerate_ids(slides[at_index]))

    reference_index = template.reference_slide_index
    if at_index < reference_index:
        reference_index += 1
    return _with_slides(template, slides, reference_index), at_index + 1


def delete_slide(template: PresentationTemplate, at_index: int):
    """Delete a slide; the last remaining slide is never deleted.

    Deleting the reference slide makes the first slide the reference.
    """
    if len(template.slides) <= 1 or not 0 <= at_index < len(template.slides):
        return template, 0 if len(template.slides) <= 1 else at_index
    slides = [s for i, s in enumerate(template.slides) if i != at_index]

    reference_index = template.reference_slide_index
    if at_index == reference_index:
        reference_index = 0
    elif at_index < reference_index:
        reference_index -= 1
    return _with_slides(template, slides, reference_index), min(at_index, len(slides) - 1)


def move_slide_up(template: PresentationTemplate, at_index: int):
    if at_index <= 0 or at_index >= len(template.slides):
        return template, at_index
    return reorder_slides(template, at_index, at_index - 1)


def move_slide_down(template: PresentationTemplate, at_index: int):
    if at_index < 0 or at_index >= len(template.slides) - 1:
        return template, at_index
    return reorder_slides(template, at_index, at_index + 1)


def reorder_slides(template: PresentationTemplate, from_index: int, to_index: int):
    """Move one slide to a new position. Returns ``(template, to_index)``."""
    count = len(template.slides)
    if not (0 <= from_index < count and 0 <= to_index < count):
        raise IndexError(f"Cannot move slide {from_index} to {to_index} in {count} slide(s)")
    if from_index == to_index:
        return template, to_index

    slides = list(template.slides)
    slides.insert(to_index, slides.pop(from_index))

    reference_index = template.reference_slide_index
    if from_index == reference_index:
        reference_index = to_index
    elif from_index < reference_index <= to_index:
        reference_index -= 1
    elif to_index <= reference_index < from_index:
        reference_index += 1
    return _with_slides(template, slides, reference_index), to_index


def set_reference_slide(template: PresentationTemplate, at_index: int):
    if not 0 <= at_index < len(template.slides):
        return template, template.reference_slide_index
    return template.model_copy(update={"reference_slide_index": at_index}), at_index


# ── Arrangement ──────────────────────────────────────────────────


def _alignment_update(alignment: str, ref_box, box) -> dict[str, int]:
    ref_x, ref_y, ref_w, ref_h = ref_box
    _, _, width, height = box
    if alignment == "left":
        return {"x": round_half_up(ref_x)}
    if alignment == "center":
        return {"x": round_half_up(ref_x + ref_w / 2 - width / 2)}
    if alignment == "right":
        return {"x": round_half_up(ref_x + ref_w - width)}
    if alignment == "top":
        return {"y": round_half_up(ref_y)}
    if alignment == "middle":
        return {"y": round_half_up(ref_y + ref_h / 2 - height / 2)}
    if alignment == "bottom":
        return {"y": round_half_up(ref_y + ref_h - height)}
    if alignment == "sameWidth":
        return {"width": round_half_up(ref_w)}
    return {"height": round_half_up(ref_h)}


def align_elements(
    template: PresentationTemplate,
    slide_index: int,
    element_ids: list[str],
    reference_id: str,
    alignment: str,
):
    """Align the selected elements against the reference element's box."""
    if alignment not in ALIGNMENTS:
        raise ValueError(f"Unknown alignment: {alignment!r}")
    slide = _get_slide(template, slide_index)
    reference = slide.find_element(reference_id)
    if reference is None:
        return template

    slide_width, slide_height = template.slide_dimensions()

    def box(el):
        return element_box(el, slide_width, slide_height, DEFAULT_ELEMENT_SIZE[el.kind])

    ref_box = box(reference)
    for element_id in element_ids:
        element = slide.find_element(element_id)
        if element is None or element_id == reference_id:
            continue
        update = _alignment_update(alignment, ref_box, box(element))
        template = update_element(template, slide_index, element_id, **update)
    return template


def nudge_elements(
    template: PresentationTemplate,
    slide_index: int,
    element_ids: Iterable[str],
    dx: float,
    dy: float,
):
    """Move elements by a slide-space offset; each lands on explicit pixel coordinates."""
    slide = _get_slide(template, slide_index)
    slide_width, slide_height = template.slide_dimensions()
    for element_id in element_ids:
        element = slide.find_element(element_id)
        if element is None:
            continue
        x, y, _, _ = element_box(element, slide_width, slide_height, DEFAULT_ELEMENT_SIZE[element.kind])
        template = update_element(
            template, slide_index, element_id, x=round_half_up(x + dx), y=round_half_up(y + dy)
        )
    return template


def bring_to_front(template: PresentationTemplate, slide_index: int, element_id: str):
    slide = _get_slide(template, slide_index)
    return update_element(template, slide_index, element_id, z_index=slide.max_z_index() + 1)


def send_to_back(template: PresentationTemplate, slide_index: int, element_id: str):
    slide = _get_slide(template, slide_index)
    return update_element(template, slide_index, element_id, z_index=slide.min_z_index() - 1)
