from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from fastapi.responses import Response

from ..canvas import Rect, ViewportState, apply_drag_delta
from ..config import DEFAULT_CANVAS_HEIGHT, DEFAULT_CANVAS_WIDTH
from ..elements import DEFAULT_POSITION, UnknownElementType, data_from_dict, spec_for, update_data
from ..errors import CourseValidationError, GeometryError
from ..geometry import (
    PIXELS,
    Pixels,
    check_dims,
    clamp_to_canvas,
    round_half_up,
    scene_to_pixels,
    to_percent,
    to_pixels,
)
from ..identity import Identity
from ..models import Element, Scene, as_number, new_id
from ..state import STATE, EditingSession
from .course_service import persist_course

logger = logging.getLogger("cc.editor_service")


def _text(status: int, content: str) -> Response:
    return Response(status_code=status, content=content, media_type="text/plain")


def _load_scenes(scenes: list[Scene]) -> list[Scene]:
    out: list[Scene] = []
    for s in scenes:
        try:
            out.append(scene_to_pixels(s))
        except GeometryError as e:
            logger.warning("open: scene %s kept in stored form: %s", s.id, e)
            out.append(s)
    return out


def _session(ident: Identity, course_id: str) -> EditingSession | Response:
    with STATE.lock:
        session = STATE.editing.get(course_id)
    if session is None:
        return _text(404, "No editing session for this course (open it first)")
    if session.user_id != ident.user_id:
        return _text(409, "Course is being edited by someone else")
    return session


def _scene(session: EditingSession, scene_id: str) -> tuple[int, Scene] | Response:
    i = session.course.scene_index(scene_id)
    if i < 0:
        return _text(404, "Scene not found")
    return i, session.course.scenes[i]


def _put_scene(session: EditingSession, index: int, scene: Scene) -> None:
    session.course.scenes[index] = scene
    session.dirty = True


def _view(session: EditingSession) -> dict[str, Any]:
    return {"courseId": session.course.id, "dirty": session.dirty, "course": session.course.to_dict()}


def _scene_view(scene: Scene) -> dict[str, Any]:
    return {"scene": scene.to_dict(), "geometrySpace": scene.geometry_space, "sized": scene.is_sized}


def open_session(ident: Identity, course_id: str, payload: dict[str, Any] | None = None) -> dict | Response:
    """
    Load a course for editing: every sized scene is converted to natural-pixel space once.
    Re-opening returns the live session (unsaved edits included) unless `reload` is set.
    """
    payload = payload or {}
    course = STATE.store.load_course(course_id)
    if course is None:
        return _text(404, "Course not found")
    if not ident.can_edit(course):
        logger.warning("open_session: 403 %s on %s", ident.user_id, course_id)
        return _text(403, "Only the course owner can edit this course")

    with STATE.lock:
        existing = STATE.editing.get(course_id)
        if existing is not None and existing.user_id != ident.user_id:
            return _text(409, "Course is being edited by someone else")
        if existing is not None and not payload.get("reload"):
            return _view(existing)
        course.scenes = _load_scenes(course.scenes)
        session = EditingSession(course=course, user_id=ident.user_id)
        STATE.editing[course_id] = session
    return _view(session)


def close_session(ident: Identity, course_id: str) -> dict | Response:
    session = _session(ident, course_id)
    if isinstance(session, Response):
        return session
    with STATE.lock:
        STATE.editing.pop(course_id, None)
    return {"ok": True, "discardedChanges": session.dirty}


def add_scene(ident: Identity, course_id: str, payload: dict[str, Any]) -> dict | Response:
    session = _session(ident, course_id)
    if isinstance(session, Response):
        return session
    scenes = session.course.scenes
    name = str(payload.get("name") or "").strip() or f"Scene {len(scenes) + 1}"
    scene = Scene(id=new_id("scene"), name=name, geometry_space=PIXELS)
    index = payload.get("index")
    if isinstance(index, int) and 0 <= index <= len(scenes):
        scenes.insert(index, scene)
    else:
        scenes.append(scene)
    session.dirty = True
    return _scene_view(scene)


def delete_scene(ident: Identity, course_id: str, scene_id: str) -> dict | Response:
    session = _session(ident, course_id)
    if isinstance(session, Response):
        return session
    found = _scene(session, scene_id)
    if isinstance(found, Response):
        return found
    i, _ = found
    del session.course.scenes[i]
    session.dirty = True
    return {"ok": True}


def capture_background(ident: Identity, course_id: str, scene_id: str, payload: dict[str, Any]) -> dict | Response:
    """
    Record the scene background and its decoded natural size.

    Payload:
      { "screenshot": "/media/x.png", "naturalWidth": 1600, "naturalHeight": 900 }
      { "screenshot": null }   -> blank default canvas (only for a scene without a background)

    Natural dims are captured once per background file: re-sending the same screenshot keeps the
    stored dims. A different file is a new decode; pixel geometry is carried over proportionally.
    """
    session = _session(ident, course_id)
    if isinstance(session, Response):
        return session
    found = _scene(session, scene_id)
    if isinstance(found, Response):
        return found
    i, scene = found

    screenshot = payload.get("screenshot") or None
    if screenshot is None:
        if scene.is_sized:
            return _scene_view(scene)
        nw, nh = DEFAULT_CANVAS_WIDTH, DEFAULT_CANVAS_HEIGHT
    else:
        if screenshot == scene.screenshot and scene.is_sized:
            logger.debug("capture_background %s: already captured at %sx%s", scene_id, scene.natural_width, scene.natural_height)
            return _scene_view(scene)
        try:
            w, h = check_dims(payload.get("naturalWidth"), payload.get("naturalHeight"))
        except GeometryError as e:
            return _text(400, str(e))
        nw, nh = int(w), int(h)

    elements = scene.elements
    try:
        if scene.is_sized and scene.geometry_space == PIXELS and elements:
            elements = to_pixels(to_percent(elements, scene.natural_width, scene.natural_height), nw, nh)
        else:
            elements = to_pixels(elements, nw, nh)
    except GeometryError as e:
        return _text(400, str(e))

    scene = replace(
        scene,
        screenshot=screenshot,
        natural_width=nw,
        natural_height=nh,
        elements=elements,
        geometry_space=PIXELS,
    )
    _put_scene(session, i, scene)
    logger.debug("capture_background %s: %sx%s (%s)", scene_id, nw, nh, screenshot or "blank canvas")
    return _scene_view(scene)


def _canvas(scene: Scene) -> tuple[int, int] | Response:
    if not scene.is_sized:
        return _text(409, "Scene background has not been captured yet")
    return int(scene.natural_width), int(scene.natural_height)


def _element(session: EditingSession, scene_id: str, element_id: str) -> tuple[int, Scene, int, Element] | Response:
    found = _scene(session, scene_id)
    if isinstance(found, Response):
        return found
    i, scene = found
    for j, el in enumerate(scene.elements):
        if el.id == element_id:
            return i, scene, j, el
    return _text(404, "Element not found")


def _put_element(session: EditingSession, i: int, scene: Scene, j: int, el: Element) -> None:
    elements = list(scene.elements)
    elements[j] = el
    _put_scene(session, i, replace(scene, elements=elements))


def add_element(ident: Identity, course_id: str, scene_id: str, payload: dict[str, Any]) -> dict | Response:
    """
    Payload:
      { "type": "button", "data"?: {...}, "position"?: {"x","y"}, "size"?: {"width","height"}, "rotation"? }
    Missing pieces take the type's defaults; the box is clamped to the scene canvas.
    """
    session = _session(ident, course_id)
    if isinstance(session, Response):
        return session
    found = _scene(session, scene_id)
    if isinstance(found, Response):
        return found
    i, scene = found
    if not scene.is_sized and not scene.screenshot:
        scene = replace(scene, natural_width=DEFAULT_CANVAS_WIDTH, natural_height=DEFAULT_CANVAS_HEIGHT)
    canvas = _canvas(scene)
    if isinstance(canvas, Response):
        return canvas
    cw, ch = canvas

    etype = str(payload.get("type") or "").strip()
    try:
        spec = spec_for(etype)
        data = data_from_dict(etype, payload.get("data"))
    except UnknownElementType as e:
        return _text(400, str(e))

    pos = payload.get("position") if isinstance(payload.get("position"), dict) else {}
    size = payload.get("size") if isinstance(payload.get("size"), dict) else {}
    x = as_number(pos.get("x"), DEFAULT_POSITION[0])
    y = as_number(pos.get("y"), DEFAULT_POSITION[1])
    w = as_number(size.get("width"), spec.default_size[0])
    h = as_number(size.get("height"), spec.default_size[1])
    rotation = as_number(payload.get("rotation"), spec.default_rotation)

    el = Element(
        id=new_id("element"),
        type=etype,
        data=data,
        geometry=clamp_to_canvas(x, y, w, h, cw, ch),
        rotation=rotation,
    )
    _put_scene(session, i, replace(scene, elements=[*scene.elements, el], geometry_space=PIXELS))
    return {"ok": True, "element": el.to_dict()}


def update_element(ident: Identity, course_id: str, scene_id: str, element_id: str, payload: dict[str, Any]) -> dict | Response:
    """Payload: { "data"?: {camelCase updates}, "rotation"?: deg | null }"""
    session = _session(ident, course_id)
    if isinstance(session, Response):
        return session
    found = _element(session, scene_id, element_id)
    if isinstance(found, Response):
        return found
    i, scene, j, el = found

    updates = payload.get("data")
    if updates is not None and not isinstance(updates, dict):
        return _text(400, "Invalid data")
    if updates:
        el = replace(el, data=update_data(el.type, el.data, updates))
    if "rotation" in payload:
        el = replace(el, rotation=as_number(payload.get("rotation")))
    _put_element(session, i, scene, j, el)
    return {"ok": True, "element": el.to_dict()}


def move_element(ident: Identity, course_id: str, scene_id: str, element_id: str, payload: dict[str, Any]) -> dict | Response:
    """
    Payload, either:
      { "dx", "dy", "displayWidth", "displayHeight" }   display-space drag delta
      { "x", "y" }                                      natural-pixel position
    """
    session = _session(ident, course_id)
    if isinstance(session, Response):
        return session
    found = _element(session, scene_id, element_id)
    if isinstance(found, Response):
        return found
    i, scene, j, el = found
    canvas = _canvas(scene)
    if isinstance(canvas, Response):
        return canvas
    cw, ch = canvas
    g = el.geometry
    if not isinstance(g, Pixels):
        return _text(409, "Element geometry has not been converted for editing")

    try:
        if "dx" in payload or "dy" in payload:
            viewport = ViewportState(
                natural_width=cw,
                natural_height=ch,
                display_rect=Rect(0, 0, as_number(payload.get("displayWidth"), cw), as_number(payload.get("displayHeight"), ch)),
            )
            geometry = apply_drag_delta(el, as_number(payload.get("dx"), 0), as_number(payload.get("dy"), 0), viewport)
        else:
            x = as_number(payload.get("x"), g.x)
            y = as_number(payload.get("y"), g.y)
            c = clamp_to_canvas(x, y, g.width or 0, g.height or 0, cw, ch)
            geometry = c if g.has_size else Pixels(x=c.x, y=c.y)
    except GeometryError as e:
        return _text(400, str(e))

    el = replace(el, geometry=geometry)
    _put_element(session, i, scene, j, el)
    return {"ok": True, "element": el.to_dict()}


def resize_element(ident: Identity, course_id: str, scene_id: str, element_id: str, payload: dict[str, Any]) -> dict | Response:
    """
    Payload, either:
      { "width", "height" }                       natural-pixel size
      { "mediaWidth", "mediaHeight" }             fit to an uploaded image's natural size, never upscaled
    """
    session = _session(ident, course_id)
    if isinstance(session, Response):
        return session
    found = _element(session, scene_id, element_id)
    if isinstance(found, Response):
        return found
    i, scene, j, el = found
    canvas = _canvas(scene)
    if isinstance(canvas, Response):
        return canvas
    cw, ch = canvas
    g = el.geometry
    if not isinstance(g, Pixels):
        return _text(409, "Element geometry has not been converted for editing")

    try:
        if "mediaWidth" in payload or "mediaHeight" in payload:
            mw, mh = check_dims(payload.get("mediaWidth"), payload.get("mediaHeight"), "media")
            scale = min(cw / mw, ch / mh, 1.0)
            w, h = round_half_up(mw * scale), round_half_up(mh * scale)
        else:
            w = as_number(payload.get("width"), g.width)
            h = as_number(payload.get("height"), g.height)
            if w is None or h is None:
                return _text(400, "Missing width/height")
        geometry = clamp_to_canvas(g.x, g.y, w, h, cw, ch)
    except GeometryError as e:
        return _text(400, str(e))

    el = replace(el, geometry=geometry)
    _put_element(session, i, scene, j, el)
    return {"ok": True, "element": el.to_dict()}


def delete_element(ident: Identity, course_id: str, scene_id: str, element_id: str) -> dict | Response:
    session = _session(ident, course_id)
    if isinstance(session, Response):
        return session
    found = _element(session, scene_id, element_id)
    if isinstance(found, Response):
        return found
    i, scene, j, _ = found
    _put_scene(session, i, replace(scene, elements=[e for k, e in enumerate(scene.elements) if k != j]))
    return {"ok": True}


def visible_elements(ident: Identity, course_id: str, scene_id: str, rows: list[int]) -> dict | Response:
    """Elements whose `row` is in `rows`; no rows selected means everything is shown."""
    session = _session(ident, course_id)
    if isinstance(session, Response):
        return session
    found = _scene(session, scene_id)
    if isinstance(found, Response):
        return found
    _, scene = found
    wanted = set(rows)
    shown = [e for e in scene.elements if not wanted or e.row in wanted]
    rows_in_use = sorted({e.row for e in scene.elements})
    return {"rows": rows_in_use, "elements": [e.to_dict() for e in shown]}


def save(ident: Identity, course_id: str) -> dict | Response:
    """
    Validate, convert to percent space and store the session's scenes. Course metadata (title,
    published flag) is taken from the stored course. The session keeps editing in pixel space.
    """
    session = _session(ident, course_id)
    if isinstance(session, Response):
        return session
    current = STATE.store.load_course(course_id)
    if current is None:
        return _text(404, "Course not found")
    try:
        stored = persist_course(replace(current, scenes=list(session.course.scenes)))
    except (CourseValidationError, GeometryError) as e:
        problems = getattr(e, "problems", None) or [str(e)]
        logger.warning("save %s: 422 %s", course_id, problems)
        return _text(422, "\n".join(problems))
    session.dirty = False
    logger.info("course %s saved by %s (%d scenes)", course_id, ident.user_id, len(stored.scenes))
    return {"ok": True, "course": stored.to_dict()}
