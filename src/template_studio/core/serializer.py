"""Template -> YAML text.

The output is a deliberately small, stable subset of YAML: fixed key order,
explicit ``[]`` for empty collections, single-quoted strings whenever a
plain scalar could be misread, and literal block scalars for multi-line
text content. ``parse(serialize(t))`` reproduces ``t`` up to pixel and
rotation rounding, and serializing the same template twice gives
identical text.
"""

import logging
import re
from typing import Any, Optional

import yaml

from .position import Dimension, format_number
from .slides.elements import AudioElement, PresetPosition, TextElement, VideoElement
from .slides.slide import TemplateSlide
from .slides.styles import SONG_STYLE_ALIASES, SONG_STYLE_NAMES
from .slides.templates import PresentationTemplate

logger = logging.getLogger("TemplateStudio.core.serializer")

# Characters that always force single quotes
_RESERVED_RE = re.compile(r"[:|{}\[\],&*#?!@`\"'%]")

# Characters that cannot appear in a plain or single-quoted scalar
_CONTROL_RE = re.compile("[\x00-\x08\x0b-\x1f\x7f-\x9f\u2028\u2029\ufeff\ud800-\udfff\ufffe\uffff]")

# Escapes with a short form in double-quoted scalars
_SHORT_ESCAPES = {
    "\\": "\\\\",
    "\"": "\\\"",
    "\n": "\\n",
    "\t": "\\t",
    "\r": "\\r",
    "\x00": "\\0",
}

_RESOLVER = yaml.resolver.Resolver()
_STR_TAG = "tag:yaml.org,2002:str"

_STYLE_KEYS = {name: alias for alias, name in SONG_STYLE_ALIASES.items()}


def _resolves_to_string(text: str) -> bool:
    return _RESOLVER.resolve(yaml.ScalarNode, text, (True, False)) == _STR_TAG


def _escape_char(char: str) -> str:
    if char in _SHORT_ESCAPES:
        return _SHORT_ESCAPES[char]
    if _CONTROL_RE.match(char):
        code = ord(char)
        return f"\\x{code:02x}" if code <= 0xFF else f"\\u{code:04x}"
    return char


def _double_quoted(text: str) -> str:
    # characters outside the BMP stay literal; only escapes YAML needs are used
    return '"' + "".join(_escape_char(char) for char in text) + '"'


def escape_yaml_string(value: Optional[str]) -> str:
    """Emit a string scalar, quoting only when a plain scalar would not read back.

    Reserved punctuation, leading/trailing whitespace, a leading ``-`` or
    ``>``, and anything YAML would resolve to a non-string (``true``,
    ``123``, ``null``) get single quotes with internal quotes doubled.
    Control characters and line breaks need double quotes.
    """
    if not value:
        return "''"
    if "\n" in value or "\t" in value or _CONTROL_RE.search(value):
        return _double_quoted(value)
    if (
        _RESERVED_RE.search(value)
        or value != value.strip()
        or value[0] in "->"
        or not _resolves_to_string(value)
    ):
        return "'" + value.replace("'", "''") + "'"
    return value


def _needs_double_quotes(content: str) -> bool:
    if _CONTROL_RE.search(content):
        return True
    if not content.strip("\n"):
        return True
    # whitespace-only lines would lose their spaces in a block scalar
    return any(line and not line.strip(" \t") for line in content.split("\n"))


def format_text_content(content: Optional[str], indent: str) -> list[str]:
    """Lines for a text element's ``content`` key.

    Multi-line content becomes a literal block scalar whose lines are
    indented two spaces past the key; joining them with ``\\n`` gives back
    the original string.
    """
    if not content:
        return [f"{indent}content: ''"]
    if "\n" not in content:
        return [f"{indent}content: {escape_yaml_string(content)}"]
    if _needs_double_quotes(content):
        return [f"{indent}content: {_double_quoted(content)}"]

    if content.endswith("\n"):
        chomping, body = "+", content[:-1]
    else:
        chomping, body = "-", content
    lines = body.split("\n")
    first = next((line for line in lines if line), "")
    header = "|" + chomping + ("2" if first[:1] in (" ", "\t") else "")

    block = [f"{indent}content: {header}"]
    block.extend(f"{indent}  {line}" if line else "" for line in lines)
    return block


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return format_number(value)
    if isinstance(value, Dimension):
        return escape_yaml_string(str(value.rounded()))
    return escape_yaml_string(str(value))


def _key_lines(fields: list[tuple[str, Any]], indent: str) -> list[str]:
    return [f"{indent}{key}: {_scalar(value)}" for key, value in fields if value is not None]


def _position_fields(element) -> list[tuple[str, Any]]:
    position = element.position
    fields: list[tuple[str, Any]] = []
    if isinstance(position, PresetPosition):
        fields.append(("position", position.preset))
    elif position is not None:
        fields.extend([("x", position.x), ("y", position.y)])
    fields.extend([("width", element.width), ("height", element.height)])
    return fields


def _element_lines(element, slide_number: int, indent: str) -> list[str]:
    """Lines of one element mapping inside a collection at ``indent``."""
    body = indent + "  "
    lines = [f"{indent}- id: {escape_yaml_string(element.id)}"]

    if isinstance(element, TextElement):
        lines.extend(format_text_content(element.content, body))
        fields = _position_fields(element) + [
            ("fontSize", element.font_size),
            ("fontFamily", element.font_family),
            ("fontWeight", element.font_weight),
            ("fontStyle", element.font_style),
            ("textAlign", element.text_align),
            ("color", element.color),
            ("maxWidth", element.max_width),
            ("opacity", element.opacity),
            ("zIndex", element.z_index),
            ("rotation", element.rotation),
        ]
    elif isinstance(element, AudioElement):
        start, end = element.slide_range(slide_number)
        fields = [("url", element.url)] + _position_fields(element) + [
            ("opacity", element.opacity),
            ("zIndex", element.z_index),
            ("autoPlay", element.auto_play),
            ("loop", element.loop),
            ("volume", element.volume),
            ("visualHidden", element.visual_hidden),
            ("startSlide", start),
            ("endSlide", end),
            ("playAcrossAllSlides", element.play_across_all_slides),
            ("rotation", element.rotation),
        ]
    elif isinstance(element, VideoElement):
        fields = [("url", element.url)] + _position_fields(element) + [
            ("autoPlay", element.auto_play),
            ("loop", element.loop),
            ("muted", element.muted),
            ("hideVideo", element.hide_video),
            ("hideAudio", element.hide_audio),
            ("opacity", element.opacity),
            ("zIndex", element.z_index),
            ("rotation", element.rotation),
        ]
    else:
        fields = [("url", element.url)] + _position_fields(element) + [
            ("opacity", element.opacity),
            ("zIndex", element.z_index),
            ("rotation", element.rotation),
        ]

    lines.extend(_key_lines(fields, body))
    return lines


def _collection_lines(key: str, elements: list, slide_number: int, indent: str) -> list[str]:
    lines = [f"{indent}{key}:"]
    if not elements:
        lines.append(f"{indent}  []")
        return lines
    for element in elements:
        lines.extend(_element_lines(element, slide_number, indent + "  "))
    return lines


def _slide_lines(slide: TemplateSlide, slide_number: int, is_reference: bool, indent: str) -> list[str]:
    lines: list[str] = []

    if slide.background is not None:
        lines.append(f"{indent}background:")
        lines.extend(_key_lines([
            ("type", slide.background.type),
            ("value", slide.background.value),
            ("opacity", slide.background.opacity),
        ], indent + "  "))

    lines.extend(_collection_lines("images", slide.images, slide_number, indent))
    lines.extend(_collection_lines("videos", slide.videos, slide_number, indent))
    lines.extend(_collection_lines("audios", slide.audios, slide_number, indent))
    lines.extend(_collection_lines("text", slide.text, slide_number, indent))

    if is_reference:
        for name in SONG_STYLE_NAMES:
            style = getattr(slide, name)
            if style is None:
                continue
            lines.append(f"{indent}{_STYLE_KEYS[name]}:")
            lines.extend(_key_lines([
                ("x", style.x),
                ("y", style.y),
                ("width", style.width),
                ("height", style.height),
                ("fontSize", style.font_size),
                ("fontWeight", style.font_weight),
                ("fontStyle", style.font_style),
                ("fontFamily", style.font_family),
                ("textAlign", style.text_align),
                ("color", style.color),
                ("yPosition", style.y_position),
            ], indent + "  "))

    return lines


def serialize(template: PresentationTemplate) -> str:
    """Serialize a template to YAML text (always newline-terminated)."""
    lines = [f"name: {escape_yaml_string(template.name)}"]
    if template.description is not None:
        lines.append(f"description: {escape_yaml_string(template.description)}")
    lines.append(f"aspectRatio: {escape_yaml_string(template.aspect_ratio)}")
    lines.append(f"referenceSlideIndex: {template.reference_slide_index}")
    lines.append("slides:")

    for index, slide in enumerate(template.slides):
        is_reference = index == template.reference_slide_index
        lines.append(f"  - # Slide {index + 1}{' (Reference)' if is_reference else ''}")
        lines.extend(_slide_lines(slide, index + 1, is_reference, "    "))

    logger.debug(f"Serialized template {template.name!r} ({len(template.slides)} slide(s))")
    return "\n".join(lines) + "\n"
