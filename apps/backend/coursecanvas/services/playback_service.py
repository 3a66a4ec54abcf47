from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable

from fastapi import BackgroundTasks
from fastapi.responses import Response

from ..canvas import Rect, ViewportState, fit_viewport, render_scene
from ..errors import GeometryError, SurveyEvaluationError
from ..identity import Identity
from ..models import STATUS_IN_PROGRESS, CourseProgress, UserInteraction, as_number, new_id
from ..playback import PlaybackStateMachine, StepResult, UnknownElement
from ..state import STATE, PlaybackSession

logger = logging.getLogger("cc.playback_service")


def _text(status: int, content: str) -> Response:
    return Response(status_code=status, content=content, media_type="text/plain")


class _Outbox:
    """Interactions emitted by the state machine during one request, delivered after the response."""

    def __init__(self) -> None:
        self.pending: list[UserInteraction] = []

    def __call__(self, interaction: UserInteraction) -> None:
        self.pending.append(interaction)

    def drain(self) -> list[UserInteraction]:
        out, self.pending = self.pending, []
        return out


def deliver_interactions(progress_id: str, interactions: list[UserInteraction]) -> None:
    """Append tracked interactions to the progress record. Failures are logged and dropped."""
    for interaction in interactions:
        try:
            if not STATE.store.append_interaction(progress_id, interaction):
                logger.warning("track %s: progress record gone, dropped %s", progress_id, interaction.action)
        except Exception as e:
            logger.warning("track %s: %s/%s dropped: %s", progress_id, interaction.element_id, interaction.action, e)


def _flush(session: PlaybackSession, background_tasks: BackgroundTasks | None) -> None:
    outbox = session.machine.tracker
    if not isinstance(outbox, _Outbox):
        return
    items = outbox.drain()
    if not items:
        return
    if background_tasks is None:
        deliver_interactions(session.machine.progress_id, items)
    else:
        background_tasks.add_task(deliver_interactions, session.machine.progress_id, items)


def _persist(session: PlaybackSession) -> None:
    m = session.machine
    progress = STATE.store.get_progress(m.progress_id)
    if progress is None:
        logger.warning("progress %s missing from store; state kept in memory only", m.progress_id)
        return
    scene = m.current_scene
    STATE.store.save_progress(
        replace(
            progress,
            status=m.status,
            duration=m.duration_seconds(),
            tab_exits=m.tab_exits,
            current_scene=scene.id if scene else None,
            completed_at=m.completed_at,
        )
    )


def _session(ident: Identity, progress_id: str) -> PlaybackSession | Response:
    with STATE.lock:
        session = STATE.playback.get(progress_id)
    if session is None:
        return _closed(ident, progress_id)
    if session.user_id != ident.user_id:
        return _text(403, "Not your course attempt")
    return session


def _closed(ident: Identity, progress_id: str) -> Response:
    """Answer for an attempt with no live session: finished attempts are evicted but still on record."""
    progress = STATE.store.get_progress(progress_id)
    if progress is None or progress.status == STATUS_IN_PROGRESS:
        return _text(404, "Playback session not found")
    if progress.user_id != ident.user_id:
        return _text(403, "Not your course attempt")
    return _text(409, f"Course attempt is already {progress.status}")


def _evict(progress_id: str) -> None:
    with STATE.lock:
        STATE.playback.pop(progress_id, None)


def _view(session: PlaybackSession, result: StepResult | None = None) -> dict[str, Any]:
    out: dict[str, Any] = {"ok": True, "state": session.machine.snapshot()}
    if result is not None:
        out["result"] = result.to_dict()
    return out


def start(ident: Identity, course_id: str, background_tasks: BackgroundTasks | None = None) -> dict | Response:
    """
    Begin a new attempt. Learners may only start published courses assigned to them;
    admins may start (preview) any course.
    """
    course = STATE.store.load_course(course_id)
    if course is None:
        return _text(404, "Course not found")
    if not ident.is_admin:
        assigned = STATE.store.list_assignments(course_id=course_id, user_id=ident.user_id)
        if not course.published or not assigned:
            logger.warning("start: 403 %s on %s (published=%s assigned=%s)", ident.user_id, course_id, course.published, bool(assigned))
            return _text(403, "Course not available")

    progress = CourseProgress(
        id=new_id("progress"),
        user_id=ident.user_id,
        course_id=course_id,
        current_scene=course.scenes[0].id if course.scenes else None,
    )
    STATE.store.save_progress(progress)
    machine = PlaybackStateMachine(course, progress_id=progress.id, tracker=_Outbox())
    session = PlaybackSession(machine=machine, user_id=ident.user_id)
    with STATE.lock:
        STATE.playback[progress.id] = session
    logger.info("start: %s began %s (progress=%s)", ident.user_id, course_id, progress.id)
    return {**_view(session), "progressId": progress.id, "course": course.to_dict()}


def snapshot(ident: Identity, progress_id: str) -> dict | Response:
    session = _session(ident, progress_id)
    if isinstance(session, Response):
        return session
    return _view(session)


def render(ident: Identity, progress_id: str, payload: dict[str, Any]) -> dict | Response:
    """
    Project the current scene for a viewer.

    Payload, either:
      { "availableWidth", "availableHeight" }             fit the image (never upscaled) at origin 0,0
      { "displayRect": {"left","top","width","height"} }  where the image is already shown
    Until the background size is known the element list is empty.
    """
    session = _session(ident, progress_id)
    if isinstance(session, Response):
        return session
    scene = session.machine.current_scene
    if scene is None:
        return {"sceneId": None, "sized": False, "elements": []}

    by_id = {e.id: e for e in scene.elements}
    out: dict[str, Any] = {
        "sceneId": scene.id,
        "screenshot": scene.screenshot,
        "naturalWidth": scene.natural_width,
        "naturalHeight": scene.natural_height,
        "sized": scene.is_sized,
        "elements": [],
    }
    if not scene.is_sized:
        return out

    try:
        rect_raw = payload.get("displayRect")
        if isinstance(rect_raw, dict):
            rect = Rect(
                left=as_number(rect_raw.get("left"), 0),
                top=as_number(rect_raw.get("top"), 0),
                width=as_number(rect_raw.get("width"), 0),
                height=as_number(rect_raw.get("height"), 0),
            )
        else:
            fit = fit_viewport(
                scene.natural_width,
                scene.natural_height,
                as_number(payload.get("availableWidth"), 0),
                as_number(payload.get("availableHeight"), 0),
            )
            out["fit"] = fit.to_dict()
            rect = Rect(0, 0, fit.display_width, fit.display_height)
    except GeometryError as e:
        return _text(400, str(e))

    viewport = ViewportState(natural_width=scene.natural_width, natural_height=scene.natural_height, display_rect=rect)
    items = render_scene(scene, viewport)
    for item in items:
        item["data"] = by_id[item["id"]].to_dict()["data"]
    out["elements"] = items
    return out


def _event(
    ident: Identity,
    progress_id: str,
    background_tasks: BackgroundTasks | None,
    step: Callable[[PlaybackStateMachine], StepResult],
) -> dict | Response:
    session = _session(ident, progress_id)
    if isinstance(session, Response):
        return session
    m = session.machine
    with session.lock:
        if m.is_terminal:
            return _text(409, f"Course attempt is already {m.status}")
        try:
            result = step(m)
        except UnknownElement as e:
            return _text(404, f"Element not found in current scene: {e.args[0]}")
        except SurveyEvaluationError as e:
            logger.warning("submit %s: 422 %s", progress_id, e)
            return _text(422, str(e))
        finally:
            _flush(session, background_tasks)
        _persist(session)
        if m.is_terminal:
            _evict(progress_id)
            logger.info("playback %s: attempt %s, session closed", progress_id, m.status)
        return _view(session, result)


def click(ident: Identity, progress_id: str, payload: dict[str, Any], background_tasks: BackgroundTasks | None = None) -> dict | Response:
    element_id = str(payload.get("elementId") or "")
    if not element_id:
        return _text(400, "Missing elementId")
    return _event(ident, progress_id, background_tasks, lambda m: m.click(element_id))


def input_change(ident: Identity, progress_id: str, payload: dict[str, Any], background_tasks: BackgroundTasks | None = None) -> dict | Response:
    element_id = str(payload.get("elementId") or "")
    if not element_id:
        return _text(400, "Missing elementId")
    value = "" if payload.get("value") is None else str(payload.get("value"))
    return _event(ident, progress_id, background_tasks, lambda m: m.input_change(element_id, value))


def submit_survey(ident: Identity, progress_id: str, payload: dict[str, Any], background_tasks: BackgroundTasks | None = None) -> dict | Response:
    element_id = str(payload.get("elementId") or "")
    selected = payload.get("selected")
    if not element_id:
        return _text(400, "Missing elementId")
    if not isinstance(selected, list):
        return _text(400, "selected must be a list of choice ids")
    return _event(ident, progress_id, background_tasks, lambda m: m.submit_survey(element_id, selected))


def next_scene(ident: Identity, progress_id: str, background_tasks: BackgroundTasks | None = None) -> dict | Response:
    return _event(ident, progress_id, background_tasks, lambda m: m.next())


def prev_scene(ident: Identity, progress_id: str, background_tasks: BackgroundTasks | None = None) -> dict | Response:
    return _event(ident, progress_id, background_tasks, lambda m: m.prev())


def finish(ident: Identity, progress_id: str, background_tasks: BackgroundTasks | None = None) -> dict | Response:
    return _event(ident, progress_id, background_tasks, lambda m: m.finish())


def tab_exit(ident: Identity, progress_id: str) -> dict | Response:
    session = _session(ident, progress_id)
    if isinstance(session, Response):
        return session
    with session.lock:
        if session.machine.is_terminal:
            return _text(409, f"Course attempt is already {session.machine.status}")
        count = session.machine.record_tab_exit()
        _persist(session)
    return {"ok": True, "tabExits": count}
