from __future__ import annotations

import pytest

from coursecanvas.canvas import (
    DragGesture,
    Rect,
    ViewportState,
    apply_drag_delta,
    fit_viewport,
    project,
    render_scene,
    uniform_scale,
)
from coursecanvas.elements import ArrowData, HotspotData
from coursecanvas.errors import GeometryError
from coursecanvas.geometry import Pixels
from coursecanvas.models import Element, Scene


def test_scale_is_uniform_and_uses_the_tighter_axis():
    assert uniform_scale(1600, 900, Rect(0, 0, 800, 450)) == 0.5
    # Letterboxed: width is the binding axis.
    assert uniform_scale(1600, 900, Rect(0, 0, 800, 600)) == 0.5
    assert uniform_scale(1600, 900, Rect(0, 0, 3200, 900)) == 1.0


def test_project_offsets_by_display_origin_and_scales_fonts(build):
    el = build.pixel_element("e1", 800, 450, 160, 90)

    rect = project(el, 1600, 900, Rect(10, 20, 800, 600))

    assert (rect.left, rect.top, rect.width, rect.height) == (410, 245, 80, 45)
    assert rect.scale == 0.5
    assert rect.font_px == 8.0


def test_project_refuses_percent_geometry(build):
    with pytest.raises(GeometryError):
        project(build.text("t1"), 1600, 900, Rect(0, 0, 800, 450))


def test_fit_viewport_never_upscales():
    fit = fit_viewport(1600, 900, 1000, 1000)
    assert (fit.display_width, fit.display_height) == (1000, 563)
    assert fit.scale == 0.625

    small = fit_viewport(400, 300, 1000, 1000)
    assert (small.display_width, small.display_height, small.scale) == (400, 300, 1.0)
    assert small.to_dict() == {"displayW": 400, "displayH": 300, "scale": 1.0}


def test_render_scene_waits_for_natural_size(build):
    s = Scene(id="s1", name="s1", elements=[build.text("t1")])
    assert render_scene(s, ViewportState(display_rect=Rect(0, 0, 800, 600))) == []


def test_render_scene_projects_percent_elements(build):
    s = build.scene("s1", build.button("b1"))
    viewport = ViewportState(natural_width=1600, natural_height=900, display_rect=Rect(0, 0, 800, 450))

    [item] = render_scene(s, viewport)

    assert item["id"] == "b1"
    assert item["rect"]["left"] == 80
    assert item["rect"]["top"] == 45
    assert item["rect"]["width"] == 160
    assert item["rect"]["height"] == 45
    assert item["rect"]["fontPx"] == 8.0


def test_drag_divides_display_delta_by_scale(build):
    el = build.pixel_element("e1", 100, 100, 200, 100)
    viewport = ViewportState(natural_width=1600, natural_height=900, display_rect=Rect(0, 0, 800, 450))

    gesture = DragGesture(el, 50, 50, viewport)

    assert gesture.position_for(150, 100) == Pixels(300, 200, 200, 100)
    # Dragged far past the edge: held inside the natural canvas.
    assert gesture.position_for(5000, 5000) == Pixels(1400, 800, 200, 100)


def test_apply_drag_delta_clamps_at_origin(build):
    el = build.pixel_element("e1", 10, 10, 50, 50)
    viewport = ViewportState(natural_width=1600, natural_height=900, display_rect=Rect(0, 0, 1600, 900))

    assert apply_drag_delta(el, -100, -100, viewport) == Pixels(0, 0, 50, 50)


def test_drag_requires_a_sized_viewport(build):
    el = build.pixel_element("e1", 10, 10, 50, 50)
    with pytest.raises(GeometryError):
        DragGesture(el, 0, 0, ViewportState(display_rect=Rect(0, 0, 800, 600)))


def test_project_scales_arrow_stroke_and_marker_icons():
    arrow = Element(id="a1", type="arrow", data=ArrowData(thickness=4), geometry=Pixels(0, 0, 100, 50))
    hotspot = Element(id="h1", type="hotspot", data=HotspotData(), geometry=Pixels(0, 0, 80, 80))

    a = project(arrow, 1600, 900, Rect(0, 0, 800, 450))
    h = project(hotspot, 1600, 900, Rect(0, 0, 800, 450))

    assert a.stroke_px == 2.0
    assert a.icon_px == 16.0
    assert h.icon_px == 16.0 and h.stroke_px is None
    assert a.to_dict()["strokePx"] == 2.0
