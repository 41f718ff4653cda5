"""Editor session state: visual/text mode sync, undo history and dirty tracking."""

import logging
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field, PrivateAttr

from ..intake.yaml_parser import YamlTemplateParser
from .canvas import CanvasBridge
from .constants import CANVAS_WIDTH, MAX_UNDO_ENTRIES, NUDGE_STEP, NUDGE_STEP_LARGE
from .errors import EditorModeError
from .serializer import serialize
from .slides import operations
from .slides.elements import Element, TextElement
from .slides.templates import COMPARED_FIELDS, TEMPLATE_FIELDS, PresentationTemplate, TemplateDocument
from .workspace import Workspace

logger = logging.getLogger("TemplateStudio.core.state")


class EditorMode(str, Enum):
    WYSIWYG = "wysiwyg"
    TEXT = "text"


class UndoEntry(BaseModel):
    """A snapshot of the edited template for undo/redo."""
    description: str
    template_json: str  # JSON-serialized TemplateDocument


class EditorSession(BaseModel):
    """State of one template editing session.

    The template is only mutated through the visual editor operations below
    or by merging a successful text validation. The parser is any object
    with ``async validate(text) -> ValidationResult``.
    """
    mode: EditorMode = EditorMode.WYSIWYG
    template: TemplateDocument = Field(default_factory=TemplateDocument)
    original_template: Optional[TemplateDocument] = None
    text_buffer: str = ""
    validation_error: Optional[str] = None
    selected_slide_index: int = 0
    selected_element_ids: list[str] = Field(default_factory=list)
    undo_stack: list[UndoEntry] = Field(default_factory=list)
    redo_stack: list[UndoEntry] = Field(default_factory=list)
    clipboard: list[Element] = Field(default_factory=list, exclude=True)
    parser: Any = Field(default_factory=YamlTemplateParser, exclude=True)
    workspace: Optional[Workspace] = None
    display_width: float = CANVAS_WIDTH
    closed: bool = False

    model_config = {"arbitrary_types_allowed": True}

    _validation_seq: int = PrivateAttr(default=0)
    _text_base: Optional[TemplateDocument] = PrivateAttr(default=None)

    # ── Opening ──────────────────────────────────────────────────

    @classmethod
    def open_for_edit(cls, document: TemplateDocument, **kwargs) -> "EditorSession":
        """Edit an existing template; it becomes the unsaved-changes baseline."""
        return cls(template=document, original_template=document, **kwargs)

    @classmethod
    def create(cls, name: str = "New Template", aspect_ratio: str = "16:9", **kwargs) -> "EditorSession":
        """Edit a brand-new template with no saved baseline."""
        template = operations.new_template(name=name, aspect_ratio=aspect_ratio)
        document = TemplateDocument(**{f: getattr(template, f) for f in TEMPLATE_FIELDS})
        return cls(template=document, original_template=None, **kwargs)

    # ── Undo history ─────────────────────────────────────────────

    def _snapshot(self, description: str, template: Optional[TemplateDocument] = None) -> UndoEntry:
        template = template or self.template
        return UndoEntry(description=description, template_json=template.model_dump_json())

    def checkpoint(self, description: str, template: Optional[TemplateDocument] = None):
        """Save the template state to the undo stack."""
        self.undo_stack.append(self._snapshot(description, template))
        if len(self.undo_stack) > MAX_UNDO_ENTRIES:
            self.undo_stack = self.undo_stack[-MAX_UNDO_ENTRIES:]
        self.redo_stack.clear()

    def undo(self) -> Optional[str]:
        """Revert to the last checkpoint. Returns description of what was undone."""
        self._require_wysiwyg("undo")
        if not self.undo_stack:
            return None
        entry = self.undo_stack.pop()
        self.redo_stack.append(self._snapshot(entry.description))
        self._restore(entry)
        return entry.description

    def redo(self) -> Optional[str]:
        self._require_wysiwyg("redo")
        if not self.redo_stack:
            return None
        entry = self.redo_stack.pop()
        self.undo_stack.append(self._snapshot(entry.description))
        self._restore(entry)
        return entry.description

    def _restore(self, entry: UndoEntry):
        self.template = TemplateDocument.model_validate_json(entry.template_json)
        self._clamp_selection()

    # ── Selection ────────────────────────────────────────────────

    @property
    def selected_element_id(self) -> Optional[str]:
        """The primary selection: the first element selected."""
        return self.selected_element_ids[0] if self.selected_element_ids else None

    def _on_selected_slide(self, element_id: str) -> bool:
        return self.template.slides[self.selected_slide_index].find_element(element_id) is not None

    def select_slide(self, slide_index: int) -> int:
        self.selected_slide_index = slide_index
        self.selected_element_ids = []
        self._clamp_selection()
        return self.selected_slide_index

    def select_element(self, element_id: Optional[str]) -> bool:
        """Select one element on the current slide; None clears the selection."""
        if element_id is None:
            self.selected_element_ids = []
            return True
        if not self._on_selected_slide(element_id):
            return False
        self.selected_element_ids = [element_id]
        return True

    def add_to_selection(self, element_id: str) -> bool:
        if not self._on_selected_slide(element_id):
            return False
        if element_id not in self.selected_element_ids:
            self.selected_element_ids.append(element_id)
        return True

    def toggle_element_selection(self, element_id: str) -> bool:
        """Shift-click: add or drop one element. Returns whether it ends up selected."""
        if element_id in self.selected_element_ids:
            self.selected_element_ids.remove(element_id)
            return False
        return self.add_to_selection(element_id)

    def clear_selection(self):
        self.selected_element_ids = []

    # ── Visual editor mutations ──────────────────────────────────

    def _require_wysiwyg(self, action: str):
        if self.closed:
            raise EditorModeError(f"Cannot {action}: the editor is closed")
        if self.mode is not EditorMode.WYSIWYG:
            raise EditorModeError(f"Cannot {action} while editing text; switch back to the visual editor first")

    def _clamp_selection(self):
        last = len(self.template.slides) - 1
        self.selected_slide_index = min(max(self.selected_slide_index, 0), last)
        if self.selected_element_ids:
            slide = self.template.slides[self.selected_slide_index]
            self.selected_element_ids = [
                element_id for element_id in self.selected_element_ids
                if slide.find_element(element_id) is not None
            ]

    def _commit(self, description: str, template) -> bool:
        if template == self.template:
            return False
        self.checkpoint(description)
        self.template = template
        self._clamp_selection()
        return True

    def add_element(self, slide_index: int, kind: str, **attrs) -> str:
        self._require_wysiwyg("add an element")
        template, element_id = operations.add_element(self.template, slide_index, kind, **attrs)
        self._commit(f"Add {kind}", template)
        self.selected_slide_index = slide_index
        self.selected_element_ids = [element_id]
        return element_id

    def update_element(self, slide_index: int, element_id: str, **attrs) -> bool:
        self._require_wysiwyg("update an element")
        template = operations.update_element(self.template, slide_index, element_id, **attrs)
        return self._commit("Update element", template)

    def remove_element(self, slide_index: int, element_id: str) -> bool:
        self._require_wysiwyg("remove an element")
        template = operations.remove_element(self.template, slide_index, element_id)
        return self._commit("Remove element", template)

    def set_background(self, slide_index: int, **attrs) -> bool:
        self._require_wysiwyg("change the background")
        template = operations.set_background(self.template, slide_index, **attrs)
        return self._commit("Change background", template)

    def set_song_content_style(self, style_name: str, **attrs) -> bool:
        self._require_wysiwyg("change a song content style")
        template = operations.set_song_content_style(self.template, style_name, **attrs)
        return self._commit(f"Change {style_name}", template)

    def align_elements(self, slide_index: int, element_ids: list[str], reference_id: str, alignment: str) -> bool:
        self._require_wysiwyg("align elements")
        template = operations.align_elements(self.template, slide_index, element_ids, reference_id, alignment)
        return self._commit(f"Align {alignment}", template)

    def bring_to_front(self, slide_index: int, element_id: str) -> bool:
        self._require_wysiwyg("reorder layers")
        return self._commit("Bring to front", operations.bring_to_front(self.template, slide_index, element_id))

    def send_to_back(self, slide_index: int, element_id: str) -> bool:
        self._require_wysiwyg("reorder layers")
        return self._commit("Send to back", operations.send_to_back(self.template, slide_index, element_id))

    def update_elements(self, slide_index: int, updates: dict[str, dict[str, Any]]) -> bool:
        """Apply ``{element_id: attrs}`` to several elements as one undo step."""
        self._require_wysiwyg("update elements")
        template = operations.update_elements(self.template, slide_index, updates)
        return self._commit("Update elements", template)

    def remove_elements(self, element_ids: Optional[list[str]] = None, slide_index: Optional[int] = None) -> bool:
        """Remove several elements (the selection by default) as one undo step."""
        self._require_wysiwyg("remove elements")
        if slide_index is None:
            slide_index = self.selected_slide_index
        if element_ids is None:
            element_ids = list(self.selected_element_ids)
        template = operations.remove_elements(self.template, slide_index, element_ids)
        return self._commit("Remove elements", template)

    def nudge(self, dx: float, dy: float) -> bool:
        """Move the selected elements by a slide-space offset."""
        self._require_wysiwyg("move elements")
        if not self.selected_element_ids:
            return False
        template = operations.nudge_elements(
            self.template, self.selected_slide_index, self.selected_element_ids, dx, dy
        )
        return self._commit("Move elements", template)

    def nudge_arrow(self, direction: str, large: bool = False) -> bool:
        """Arrow-key nudge; ``large`` is the shift-modified step."""
        step = NUDGE_STEP_LARGE if large else NUDGE_STEP
        offsets = {"left": (-step, 0), "right": (step, 0), "up": (0, -step), "down": (0, step)}
        if direction not in offsets:
            raise ValueError(f"Unknown direction: {direction!r}")
        return self.nudge(*offsets[direction])

    # ── Clipboard ────────────────────────────────────────────────

    def copy_element(self) -> int:
        """Copy the selected elements to the session clipboard. Returns how many."""
        self._require_wysiwyg("copy")
        slide = self.template.slides[self.selected_slide_index]
        copied = [slide.find_element(element_id) for element_id in self.selected_element_ids]
        copied = [element for element in copied if element is not None]
        if copied:
            self.clipboard = copied
        return len(copied)

    def paste_element(self, slide_index: Optional[int] = None) -> list[str]:
        """Paste the clipboard onto a slide (the current one by default).

        Every pasted element gets a fresh id and is offset from its source;
        the whole paste is one undo step and becomes the selection.
        """
        self._require_wysiwyg("paste")
        if not self.clipboard:
            return []
        if slide_index is None:
            slide_index = self.selected_slide_index
        template = self.template
        pasted = []
        for element in self.clipboard:
            template, element_id = operations.paste_element(template, slide_index, element)
            pasted.append(element_id)
        self._commit("Paste", template)
        self.selected_slide_index = slide_index
        self.selected_element_ids = pasted
        logger.debug(f"Pasted {len(pasted)} element(s) onto slide {slide_index}")
        return pasted

    def _slide_operation(self, description: str, operation: Callable, *args) -> int:
        self._require_wysiwyg(description.lower())
        template, selected = operation(self.template, *args)
        self._commit(description, template)
        self.selected_slide_index = selected
        self.selected_element_ids = []
        self._clamp_selection()
        return self.selected_slide_index

    def insert_slide(self, at_index: int) -> int:
        return self._slide_operation("Insert slide", operations.insert_slide, at_index)

    def duplicate_slide(self, at_index: int) -> int:
        return self._slide_operation("Duplicate slide", operations.duplicate_slide, at_index)

    def delete_slide(self, at_index: int) -> int:
        return self._slide_operation("Delete slide", operations.delete_slide, at_index)

    def move_slide_up(self, at_index: int) -> int:
        return self._slide_operation("Move slide up", operations.move_slide_up, at_index)

    def move_slide_down(self, at_index: int) -> int:
        return self._slide_operation("Move slide down", operations.move_slide_down, at_index)

    def reorder_slides(self, from_index: int, to_index: int) -> int:
        return self._slide_operation("Reorder slides", operations.reorder_slides, from_index, to_index)

    def set_reference_slide(self, at_index: int) -> int:
        return self._slide_operation("Set reference slide", operations.set_reference_slide, at_index)

    # ── Canvas gestures ──────────────────────────────────────────

    @property
    def bridge(self) -> CanvasBridge:
        return CanvasBridge(self.template.aspect_ratio, self.display_width)

    def drag_end(self, slide_index: int, element_id: str, display_x: float, display_y: float) -> bool:
        """Write the end of a canvas drag back as explicit slide coordinates."""
        self._require_wysiwyg("move an element")
        update = self.bridge.drag_end(display_x, display_y)
        template = operations.update_element(self.template, slide_index, element_id, **update)
        return self._commit("Move element", template)

    def transform_end(
        self,
        slide_index: int,
        element_id: str,
        display_x: float,
        display_y: float,
        display_width: float,
        display_height: float,
        rotation: float = 0.0,
        scale_x: float = 1.0,
    ) -> bool:
        """Write the end of a resize/rotate gesture back into the element."""
        self._require_wysiwyg("resize an element")
        element = self.template.slides[slide_index].find_element(element_id)
        if element is None:
            return False
        if isinstance(element, TextElement):
            update = self.bridge.text_transform_end(
                display_x, display_y, display_width, display_height, rotation,
                font_size=element.font_size, scale_x=scale_x,
            )
        else:
            update = self.bridge.transform_end(display_x, display_y, display_width, display_height, rotation)
        template = operations.update_element(self.template, slide_index, element_id, **update)
        return self._commit("Transform element", template)

    # ── Mode switching ───────────────────────────────────────────

    def _merge(self, parsed: PresentationTemplate):
        update = {f: getattr(parsed, f) for f in TEMPLATE_FIELDS}
        self.template = self.template.model_copy(update=update)
        self._clamp_selection()

    def switch_to_text(self) -> str:
        """Serialize the current template into the text buffer."""
        if self.closed:
            raise EditorModeError("Cannot switch modes: the editor is closed")
        if self.mode is EditorMode.TEXT:
            return self.text_buffer
        self._validation_seq += 1
        self.text_buffer = serialize(self.template)
        self.validation_error = None
        self._text_base = self.template
        self.mode = EditorMode.TEXT
        return self.text_buffer

    async def switch_to_wysiwyg(self) -> bool:
        """Leave text mode, applying the buffer.

        An invalid buffer keeps the session in text mode with the buffer and
        template untouched and the parser's message in ``validation_error``.
        """
        if self.closed:
            raise EditorModeError("Cannot switch modes: the editor is closed")
        if self.mode is EditorMode.WYSIWYG:
            return True

        if self.text_buffer.strip():
            self._validation_seq += 1
            token = self._validation_seq
            result = await self.parser.validate(self.text_buffer)
            if token != self._validation_seq or self.closed or self.mode is not EditorMode.TEXT:
                logger.debug("Discarding superseded mode-switch validation")
                return False
            if not result.valid:
                self.validation_error = result.error
                return False
            self._merge(result.template)

        self._validation_seq += 1
        base = self._text_base
        if base is not None and self.template != base:
            self.checkpoint("Edit as text", base)
        self._text_base = None
        self.validation_error = None
        self.mode = EditorMode.WYSIWYG
        return True

    async def on_text_changed(self, text: str) -> bool:
        """Record a text edit and validate it opportunistically.

        Only the latest request is applied; results that arrive after a newer
        edit, a mode switch or close are dropped. Failures are not surfaced.
        Returns True when the template was updated.
        """
        if self.closed or self.mode is not EditorMode.TEXT:
            logger.debug("Ignoring text change outside text mode")
            return False
        self.text_buffer = text
        self._validation_seq += 1
        token = self._validation_seq

        result = await self.parser.validate(text)
        if token != self._validation_seq or self.closed or self.mode is not EditorMode.TEXT:
            logger.debug(f"Discarding stale validation #{token}")
            return False
        if not result.valid:
            return False
        self._merge(result.template)
        self.validation_error = None
        return True

    # ── Dirty tracking, close and save ───────────────────────────

    @property
    def has_unsaved_changes(self) -> bool:
        if self.original_template is None:
            return True
        return any(
            getattr(self.template, f) != getattr(self.original_template, f)
            for f in COMPARED_FIELDS
        )

    def request_close(self, confirm: Optional[Callable[[], bool]] = None) -> bool:
        """Close the session; with unsaved changes ``confirm()`` must agree."""
        if self.closed:
            return True
        if self.has_unsaved_changes:
            if confirm is None or not confirm():
                return False
            logger.info(f"Discarding unsaved changes to '{self.template.name}'")
        self._validation_seq += 1
        self.closed = True
        return True

    async def save(self) -> Optional[TemplateDocument]:
        """Validate pending text, sync ``yaml`` and persist to the workspace if any.

        Returns the saved document, or None when the text buffer is invalid.
        """
        if self.closed:
            raise EditorModeError("Cannot save: the editor is closed")

        if self.mode is EditorMode.TEXT and self.text_buffer.strip():
            self._validation_seq += 1
            token = self._validation_seq
            result = await self.parser.validate(self.text_buffer)
            if token != self._validation_seq or self.closed:
                logger.debug("Discarding superseded save validation")
                return None
            if not result.valid:
                self.validation_error = result.error
                return None
            self._merge(result.template)
            self.validation_error = None

        document = self.template.model_copy(update={"yaml": serialize(self.template)})
        if self.workspace is not None:
            document = self.workspace.save_template(document)
        self.template = document
        self.original_template = document
        logger.info(f"Saved template '{document.name}'")
        return document
