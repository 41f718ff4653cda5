"""Tests for template_studio.core.canvas — display/slide mapping and render nodes."""

import pytest

from template_studio.core.canvas import CanvasBridge, canvas_nodes
from template_studio.core.slides import PresentationTemplate, TemplateSlide, TextElement
from template_studio.core.slides import operations as ops


# ── CanvasBridge ────────────────────────────────────────────────────────

class TestCanvasBridge:
    def test_scale_16_9(self):
        bridge = CanvasBridge("16:9")
        assert bridge.scale == pytest.approx(1 / 3)
        assert bridge.display_height == pytest.approx(360)

    def test_scale_4_3(self):
        bridge = CanvasBridge("4:3")
        assert bridge.scale == pytest.approx(0.4)
        assert bridge.display_height == pytest.approx(480)

    def test_round_trip_mapping(self):
        bridge = CanvasBridge("16:9")
        assert bridge.to_display(960) == pytest.approx(320)
        assert bridge.to_slide(320) == 960

    def test_drag_end_rounds(self):
        bridge = CanvasBridge("16:9")
        assert bridge.drag_end(10.2, 33.5) == {"x": 31, "y": 101}

    def test_drag_end_past_origin(self):
        bridge = CanvasBridge("16:9")
        assert bridge.drag_end(-5.1, -0.1) == {"x": -15, "y": 0}

    def test_transform_end(self):
        bridge = CanvasBridge("16:9")
        update = bridge.transform_end(10, 20, 100, 2, rotation=44.6)
        assert update == {"x": 30, "y": 60, "width": 300, "height": 20, "rotation": 45}

    def test_text_transform_scales_font(self):
        bridge = CanvasBridge("16:9")
        update = bridge.text_transform_end(0, 0, 200, 50, font_size="64px", scale_x=1.5)
        assert update["font_size"] == "96px"
        update = bridge.text_transform_end(0, 0, 200, 50, font_size="10px", scale_x=0.1)
        assert update["font_size"] == "8px"

    def test_text_transform_default_font(self):
        update = CanvasBridge("16:9").text_transform_end(0, 0, 200, 50, scale_x=0.5)
        assert update["font_size"] == "32px"

    def test_custom_display_width(self):
        bridge = CanvasBridge("16:9", display_width=960)
        assert bridge.scale == pytest.approx(0.5)
        assert bridge.drag_end(100, 100) == {"x": 200, "y": 200}


# ── canvas_nodes ────────────────────────────────────────────────────────

class TestCanvasNodes:
    def test_paint_order_and_projection(self):
        slide = TemplateSlide(text=[
            TextElement(id="top", content="A", z_index=5, x=300, y=150, width=600, height=90),
            TextElement(id="bottom", content="B", z_index=1, position="center", width=200, height=100),
        ])
        t = PresentationTemplate(slides=[slide, TemplateSlide()], reference_slide_index=1)
        nodes = canvas_nodes(t, 0)
        assert [n.id for n in nodes] == ["bottom", "top"]
        bottom, top = nodes
        assert (bottom.x, bottom.y) == (860, 490)
        assert top.display_x == pytest.approx(100)
        assert top.display_y == pytest.approx(50)
        assert top.display_width == pytest.approx(200)
        assert top.label == "A"

    def test_reference_slide_has_song_placeholders(self):
        t, element_id = ops.add_element(ops.new_template(), 0, "image")
        nodes = canvas_nodes(t, 0)
        assert nodes[0].id == element_id
        placeholders = [n for n in nodes if n.kind == "song_content"]
        assert [n.id for n in placeholders] == [
            "song_title_style",
            "song_lyrics_style",
            "song_translation_style",
            "bottom_left_text_style",
            "bottom_right_text_style",
        ]
        assert all(n.z_index == 2 for n in placeholders)
        assert placeholders[0].y == 54

    def test_static_slide_has_no_placeholders(self):
        t, _ = ops.insert_slide(ops.new_template(), 0)
        assert canvas_nodes(t, 1) == []

    def test_defaults_for_unset_fields(self):
        t, element_id = ops.add_element(ops.new_template(), 0, "audio")
        node = canvas_nodes(t, 0)[0]
        assert node.opacity == 1
        assert node.rotation == 0
        assert (node.width, node.height) == (300, 60)
