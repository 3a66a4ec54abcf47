from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Body, Request
from fastapi.responses import Response

from ..identity import require_user
from ..services import playback_service

router = APIRouter()


@router.post("/api/courses/{course_id}/start")
def start(course_id: str, request: Request, background_tasks: BackgroundTasks):
    ident = require_user(request)
    if isinstance(ident, Response):
        return ident
    return playback_service.start(ident, course_id, background_tasks)


@router.get("/api/playback/{progress_id}")
def snapshot(progress_id: str, request: Request):
    ident = require_user(request)
    if isinstance(ident, Response):
        return ident
    return playback_service.snapshot(ident, progress_id)


@router.post("/api/playback/{progress_id}/render")
def render(progress_id: str, request: Request, payload: dict = Body(...)):
    ident = require_user(request)
    if isinstance(ident, Response):
        return ident
    return playback_service.render(ident, progress_id, payload)


@router.post("/api/playback/{progress_id}/click")
def click(progress_id: str, request: Request, background_tasks: BackgroundTasks, payload: dict = Body(...)):
    ident = require_user(request)
    if isinstance(ident, Response):
        return ident
    return playback_service.click(ident, progress_id, payload, background_tasks)


@router.post("/api/playback/{progress_id}/input")
def input_change(progress_id: str, request: Request, background_tasks: BackgroundTasks, payload: dict = Body(...)):
    ident = require_user(request)
    if isinstance(ident, Response):
        return ident
    return playback_service.input_change(ident, progress_id, payload, background_tasks)


@router.post("/api/playback/{progress_id}/submit")
def submit_survey(progress_id: str, request: Request, background_tasks: BackgroundTasks, payload: dict = Body(...)):
    ident = require_user(request)
    if isinstance(ident, Response):
        return ident
    return playback_service.submit_survey(ident, progress_id, payload, background_tasks)


@router.post("/api/playback/{progress_id}/next")
def next_scene(progress_id: str, request: Request, background_tasks: BackgroundTasks):
    ident = require_user(request)
    if isinstance(ident, Response):
        return ident
    return playback_service.next_scene(ident, progress_id, background_tasks)


@router.post("/api/playback/{progress_id}/prev")
def prev_scene(progress_id: str, request: Request, background_tasks: BackgroundTasks):
    ident = require_user(request)
    if isinstance(ident, Response):
        return ident
    return playback_service.prev_scene(ident, progress_id, background_tasks)


@router.post("/api/playback/{progress_id}/finish")
def finish(progress_id: str, request: Request, background_tasks: BackgroundTasks):
    ident = require_user(request)
    if isinstance(ident, Response):
        return ident
    return playback_service.finish(ident, progress_id, background_tasks)


@router.post("/api/playback/{progress_id}/tab-exit")
def tab_exit(progress_id: str, request: Request):
    ident = require_user(request)
    if isinstance(ident, Response):
        return ident
    return playback_service.tab_exit(ident, progress_id)
