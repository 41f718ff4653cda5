"""Tests for template_studio.core.state — editor session and mode sync."""

import asyncio

import pytest

from template_studio.core.canvas import canvas_nodes
from template_studio.core.errors import EditorModeError
from template_studio.core.position import Dimension
from template_studio.core.serializer import serialize
from template_studio.core.slides import TemplateDocument
from template_studio.core.slides import operations as ops
from template_studio.core.state import EditorMode, EditorSession
from template_studio.core.workspace import Workspace
from template_studio.intake.yaml_parser import validate_template_yaml


class GatedParser:
    """Parser whose results are held until the test releases them in order."""

    def __init__(self):
        self.gates: list[asyncio.Event] = []

    async def validate(self, text: str):
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        return validate_template_yaml(text)


async def _until(predicate):
    while not predicate():
        await asyncio.sleep(0)


def _renamed(session: EditorSession, name: str) -> str:
    return serialize(session.template.model_copy(update={"name": name}))


def _saved_document() -> TemplateDocument:
    t = ops.new_template("Stored")
    return TemplateDocument(id="abc123", name=t.name, slides=t.slides)


# ── Opening ─────────────────────────────────────────────────────────────

class TestOpening:
    def test_create(self):
        session = EditorSession.create("Fresh", aspect_ratio="4:3")
        assert session.mode is EditorMode.WYSIWYG
        assert session.template.name == "Fresh"
        assert session.template.aspect_ratio == "4:3"
        assert session.original_template is None
        assert session.has_unsaved_changes is True

    def test_open_for_edit(self):
        doc = _saved_document()
        session = EditorSession.open_for_edit(doc)
        assert session.template == doc
        assert session.has_unsaved_changes is False


# ── Visual editing ──────────────────────────────────────────────────────

class TestVisualEditing:
    def test_add_selects_element(self):
        session = EditorSession.create()
        element_id = session.add_element(0, "image", url="a.png")
        assert session.selected_element_id == element_id
        assert session.template.slides[0].images[0].url == "a.png"
        assert len(session.undo_stack) == 1

    def test_noop_update_not_recorded(self):
        session = EditorSession.create()
        assert session.update_element(0, "missing", opacity=0.5) is False
        assert session.undo_stack == []

    def test_mutations_rejected_in_text_mode(self):
        session = EditorSession.create()
        session.switch_to_text()
        with pytest.raises(EditorModeError):
            session.add_element(0, "image")
        with pytest.raises(EditorModeError):
            session.insert_slide(0)
        with pytest.raises(EditorModeError):
            session.undo()

    def test_slide_operations_track_selection(self):
        session = EditorSession.create()
        assert session.insert_slide(0) == 1
        assert session.duplicate_slide(1) == 2
        assert len(session.template.slides) == 3
        assert session.delete_slide(2) == 1
        assert session.set_reference_slide(1) == 1
        assert session.template.reference_slide_index == 1

    def test_drag_end(self):
        session = EditorSession.create()
        element_id = session.add_element(0, "text", content="Hi")
        assert session.drag_end(0, element_id, 100, 50) is True
        el = session.template.slides[0].find_element(element_id)
        assert (str(el.x), str(el.y)) == ("300px", "150px")

    def test_transform_end_scales_text(self):
        session = EditorSession.create()
        element_id = session.add_element(0, "text", content="Hi")
        session.transform_end(0, element_id, 10, 10, 200, 40, rotation=10.4, scale_x=2)
        el = session.template.slides[0].find_element(element_id)
        assert str(el.width) == "600px"
        assert str(el.height) == "120px"
        assert str(el.font_size) == "128px"
        assert el.rotation == 10

    def test_transform_end_clamps_image(self):
        session = EditorSession.create()
        element_id = session.add_element(0, "image")
        session.transform_end(0, element_id, 0, 0, 1, 1)
        el = session.template.slides[0].find_element(element_id)
        assert (str(el.width), str(el.height)) == ("20px", "20px")


# ── Undo / redo ─────────────────────────────────────────────────────────

class TestUndoRedo:
    def test_undo_redo(self):
        session = EditorSession.create()
        session.add_element(0, "image")
        assert session.undo() == "Add image"
        assert session.template.slides[0].images == []
        assert session.selected_element_id is None
        assert session.redo() == "Add image"
        assert len(session.template.slides[0].images) == 1

    def test_new_edit_clears_redo(self):
        session = EditorSession.create()
        session.add_element(0, "image")
        session.undo()
        session.add_element(0, "text")
        assert session.redo_stack == []

    def test_nothing_to_undo(self):
        assert EditorSession.create().undo() is None

    def test_text_edit_is_one_undo_step(self):
        session = EditorSession.create("Before")
        session.switch_to_text()
        session.text_buffer = _renamed(session, "After")
        assert asyncio.run(session.switch_to_wysiwyg()) is True
        assert session.template.name == "After"
        assert session.undo() == "Edit as text"
        assert session.template.name == "Before"


# ── Selection, batch edits and clipboard ────────────────────────────────

def _with_images(count: int = 2):
    session = EditorSession.create()
    ids = [session.add_element(0, "image", url=f"{i}.png") for i in range(count)]
    return session, ids


class TestSelection:
    def test_add_selects_only_new_element(self):
        session, ids = _with_images()
        assert session.selected_element_ids == [ids[1]]

    def test_toggle_and_add(self):
        session, ids = _with_images()
        session.select_element(ids[0])
        assert session.toggle_element_selection(ids[1]) is True
        assert session.selected_element_ids == ids
        assert session.toggle_element_selection(ids[0]) is False
        assert session.selected_element_ids == [ids[1]]
        assert session.selected_element_id == ids[1]
        assert session.add_to_selection(ids[1]) is True
        assert session.selected_element_ids == [ids[1]]

    def test_ids_off_the_slide_ignored(self):
        session, ids = _with_images()
        assert session.select_element("ghost") is False
        assert session.add_to_selection("ghost") is False
        assert session.toggle_element_selection("ghost") is False
        assert session.selected_element_ids == [ids[1]]

    def test_clear(self):
        session, _ = _with_images()
        session.clear_selection()
        assert session.selected_element_id is None
        session.add_to_selection(session.template.slides[0].images[0].id)
        assert session.select_element(None) is True
        assert session.selected_element_ids == []

    def test_undo_prunes_selection(self):
        session, ids = _with_images()
        session.select_element(ids[0])
        session.add_to_selection(ids[1])
        session.undo()
        assert session.selected_element_ids == [ids[0]]

    def test_select_slide_clears_elements(self):
        session, _ = _with_images()
        session.insert_slide(0)
        assert session.select_slide(0) == 0
        assert session.selected_element_ids == []
        assert session.select_slide(9) == 1


class TestBatchEditing:
    def test_remove_selection_is_one_step(self):
        session, ids = _with_images(3)
        session.select_element(ids[0])
        session.add_to_selection(ids[2])
        assert session.remove_elements() is True
        assert [el.id for el in session.template.slides[0].images] == [ids[1]]
        assert session.selected_element_ids == []
        assert session.undo() == "Remove elements"
        assert len(session.template.slides[0].images) == 3

    def test_remove_nothing(self):
        session, _ = _with_images()
        session.clear_selection()
        assert session.remove_elements() is False
        assert session.remove_elements(["ghost"], slide_index=0) is False

    def test_update_elements(self):
        session, ids = _with_images()
        assert session.update_elements(0, {ids[0]: {"opacity": 0.2}, ids[1]: {"opacity": 0.4}}) is True
        images = session.template.slides[0].images
        assert [el.opacity for el in images] == [0.2, 0.4]
        assert session.undo() == "Update elements"
        assert [el.opacity for el in session.template.slides[0].images] == [None, None]

    def test_nudge_selection(self):
        session, ids = _with_images()
        session.select_element(ids[0])
        session.add_to_selection(ids[1])
        assert session.nudge_arrow("right", large=True) is True
        assert session.nudge_arrow("up") is True
        for el in session.template.slides[0].images:
            assert (el.x, el.y) == (Dimension(value=105), Dimension(value=99))
        assert session.undo() == "Move elements"

    def test_nudge_without_selection(self):
        session, _ = _with_images()
        session.clear_selection()
        assert session.nudge(1, 0) is False

    def test_unknown_direction(self):
        session, _ = _with_images()
        with pytest.raises(ValueError):
            session.nudge_arrow("sideways")

    def test_rejected_in_text_mode(self):
        session, _ = _with_images()
        session.switch_to_text()
        with pytest.raises(EditorModeError):
            session.nudge(1, 1)
        with pytest.raises(EditorModeError):
            session.remove_elements()
        with pytest.raises(EditorModeError):
            session.paste_element()


class TestClipboard:
    def test_copy_paste(self):
        session, ids = _with_images()
        session.select_element(ids[0])
        assert session.copy_element() == 1
        undo_depth = len(session.undo_stack)

        pasted = session.paste_element()
        assert len(pasted) == 1
        assert pasted[0] not in ids
        assert session.selected_element_ids == pasted
        el = session.template.slides[0].find_element(pasted[0])
        assert el.url == "0.png"
        assert (el.x, el.y) == (Dimension(value=120), Dimension(value=120))
        assert el.z_index == 2

        assert len(session.undo_stack) == undo_depth + 1
        assert session.undo() == "Paste"
        assert len(session.template.slides[0].images) == 2

    def test_paste_twice_gives_distinct_ids(self):
        session, _ = _with_images(1)
        session.copy_element()
        first = session.paste_element()
        second = session.paste_element()
        assert first != second
        assert len(session.template.slides[0].images) == 3

    def test_paste_onto_another_slide(self):
        session, ids = _with_images()
        session.select_element(ids[0])
        session.add_to_selection(ids[1])
        assert session.copy_element() == 2
        session.insert_slide(0)
        pasted = session.paste_element()
        assert session.selected_slide_index == 1
        assert [el.id for el in session.template.slides[1].images] == pasted
        assert [el.url for el in session.template.slides[1].images] == ["0.png", "1.png"]

    def test_empty_clipboard(self):
        session, _ = _with_images()
        session.clear_selection()
        assert session.copy_element() == 0
        assert session.paste_element() == []
        assert len(session.undo_stack) == 2


# ── Mode switching ──────────────────────────────────────────────────────

class TestModeSwitch:
    def test_switch_to_text_fills_buffer(self):
        session = EditorSession.create()
        session.add_element(0, "text", content="Verse")
        buffer = session.switch_to_text()
        assert session.mode is EditorMode.TEXT
        assert buffer == session.text_buffer == serialize(session.template)

    def test_valid_buffer_applies(self):
        session = EditorSession.create()
        session.switch_to_text()
        session.text_buffer = _renamed(session, "Edited")
        assert asyncio.run(session.switch_to_wysiwyg()) is True
        assert session.mode is EditorMode.WYSIWYG
        assert session.template.name == "Edited"
        assert session.validation_error is None

    def test_invalid_buffer_stays_in_text(self):
        session = EditorSession.create("Keep")
        session.switch_to_text()
        session.text_buffer = "slides: 12\n"
        assert asyncio.run(session.switch_to_wysiwyg()) is False
        assert session.mode is EditorMode.TEXT
        assert session.text_buffer == "slides: 12\n"
        assert session.template.name == "Keep"
        assert session.validation_error.startswith("Template validation failed")

    def test_empty_buffer_just_switches(self):
        session = EditorSession.create("Keep")
        session.switch_to_text()
        session.text_buffer = "   \n"
        assert asyncio.run(session.switch_to_wysiwyg()) is True
        assert session.template.name == "Keep"
        assert session.undo_stack == []

    def test_preset_survives_round_trip(self):
        session = EditorSession.create()
        element_id = session.add_element(0, "text", content="Centered", position="center", width=400, height=100)
        before = session.template
        nodes_before = canvas_nodes(before, 0)
        session.switch_to_text()
        assert asyncio.run(session.switch_to_wysiwyg()) is True
        assert session.template == before
        assert session.template.slides[0].find_element(element_id).preset == "center"
        assert canvas_nodes(session.template, 0) == nodes_before
        assert len(session.undo_stack) == 1


# ── Live validation ─────────────────────────────────────────────────────

class TestLiveValidation:
    def test_ignored_outside_text_mode(self):
        session = EditorSession.create("Same")
        assert asyncio.run(session.on_text_changed("name: Other\n")) is False
        assert session.template.name == "Same"
        assert session.text_buffer == ""

    def test_valid_text_applies(self):
        session = EditorSession.create()
        session.switch_to_text()
        assert asyncio.run(session.on_text_changed(_renamed(session, "Live"))) is True
        assert session.template.name == "Live"

    def test_invalid_text_not_surfaced(self):
        session = EditorSession.create("Same")
        session.switch_to_text()
        assert asyncio.run(session.on_text_changed("slides: [")) is False
        assert session.template.name == "Same"
        assert session.validation_error is None
        assert session.text_buffer == "slides: ["

    def test_only_latest_result_applies(self):
        parser = GatedParser()
        session = EditorSession.create(parser=parser)
        session.switch_to_text()
        first_text, second_text = _renamed(session, "First"), _renamed(session, "Second")

        async def scenario():
            first = asyncio.create_task(session.on_text_changed(first_text))
            second = asyncio.create_task(session.on_text_changed(second_text))
            await _until(lambda: len(parser.gates) == 2)
            # the newer request finishes first; the older one arrives late
            parser.gates[1].set()
            assert await second is True
            parser.gates[0].set()
            assert await first is False

        asyncio.run(scenario())
        assert session.template.name == "Second"
        assert session.text_buffer == second_text

    def test_result_after_close_dropped(self):
        parser = GatedParser()
        session = EditorSession.create("Open", parser=parser)
        session.switch_to_text()
        text = _renamed(session, "Late")

        async def scenario():
            pending = asyncio.create_task(session.on_text_changed(text))
            await _until(lambda: len(parser.gates) == 1)
            assert session.request_close(confirm=lambda: True) is True
            parser.gates[0].set()
            return await pending

        assert asyncio.run(scenario()) is False
        assert session.template.name == "Open"

    def test_result_superseded_by_mode_switch(self):
        parser = GatedParser()
        session = EditorSession.create("Open", parser=parser)
        session.switch_to_text()
        text = _renamed(session, "Switched")

        async def scenario():
            live = asyncio.create_task(session.on_text_changed(text))
            await _until(lambda: len(parser.gates) == 1)
            switch = asyncio.create_task(session.switch_to_wysiwyg())
            await _until(lambda: len(parser.gates) == 2)
            parser.gates[0].set()
            assert await live is False
            parser.gates[1].set()
            assert await switch is True

        asyncio.run(scenario())
        assert session.mode is EditorMode.WYSIWYG
        assert session.template.name == "Switched"


# ── Dirty tracking and close ────────────────────────────────────────────

class TestDirtyTracking:
    def test_text_round_trip_of_loaded_audio_is_clean(self):
        document = TemplateDocument.model_validate({
            "id": "abc",
            "name": "Audio",
            "slides": [{}, {"audios": [{"id": "a1", "url": "song.mp3"}]}],
        })
        session = EditorSession.open_for_edit(document)
        session.switch_to_text()
        assert asyncio.run(session.switch_to_wysiwyg()) is True
        assert session.has_unsaved_changes is False
        assert session.undo_stack == []

    def test_metadata_ignored(self):
        session = EditorSession.open_for_edit(_saved_document())
        session.template = session.template.model_copy(update={"id": "other", "yaml": "x"})
        assert session.has_unsaved_changes is False

    def test_content_counts(self):
        session = EditorSession.open_for_edit(_saved_document())
        session.add_element(0, "image")
        assert session.has_unsaved_changes is True

    def test_default_flag_counts(self):
        session = EditorSession.open_for_edit(_saved_document())
        session.template = session.template.model_copy(update={"is_default": True})
        assert session.has_unsaved_changes is True

    def test_close_clean(self):
        session = EditorSession.open_for_edit(_saved_document())
        assert session.request_close() is True
        assert session.closed is True

    def test_close_dirty_needs_confirmation(self):
        session = EditorSession.open_for_edit(_saved_document())
        session.add_element(0, "image")
        assert session.request_close() is False
        assert session.request_close(confirm=lambda: False) is False
        assert session.closed is False
        assert session.request_close(confirm=lambda: True) is True
        with pytest.raises(EditorModeError):
            session.add_element(0, "image")


# ── Saving ──────────────────────────────────────────────────────────────

class TestSave:
    def test_save_without_workspace(self):
        session = EditorSession.create("Local")
        doc = asyncio.run(session.save())
        assert doc.yaml == serialize(doc)
        assert session.original_template == doc
        assert session.has_unsaved_changes is False

    def test_save_to_workspace(self, tmp_path):
        workspace = Workspace(project_name="P", root_path=tmp_path).initialize()
        session = EditorSession.create("Persisted", workspace=workspace)
        session.add_element(0, "text", content="Hello")
        doc = asyncio.run(session.save())
        assert doc.id is not None
        assert workspace.load_template(doc.id) == doc
        assert session.template.id == doc.id
        assert session.has_unsaved_changes is False

    def test_save_applies_text_buffer(self):
        session = EditorSession.create("Before")
        session.switch_to_text()
        session.text_buffer = _renamed(session, "After")
        doc = asyncio.run(session.save())
        assert doc.name == "After"
        assert doc.yaml.startswith("name: After\n")

    def test_save_with_invalid_buffer(self):
        session = EditorSession.create("Before")
        session.switch_to_text()
        session.text_buffer = "slides: 12\n"
        assert asyncio.run(session.save()) is None
        assert session.validation_error is not None
        assert session.original_template is None
