from __future__ import annotations

from fastapi import APIRouter, Body, Query, Request
from fastapi.responses import Response

from ..identity import require_admin
from ..services import editor_service

router = APIRouter(prefix="/api/editor/{course_id}")


@router.post("/open")
def open_session(course_id: str, request: Request, payload: dict = Body(default={})):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return editor_service.open_session(ident, course_id, payload)


@router.post("/close")
def close_session(course_id: str, request: Request):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return editor_service.close_session(ident, course_id)


@router.post("/save")
def save(course_id: str, request: Request):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return editor_service.save(ident, course_id)


@router.post("/scenes")
def add_scene(course_id: str, request: Request, payload: dict = Body(default={})):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return editor_service.add_scene(ident, course_id, payload)


@router.delete("/scenes/{scene_id}")
def delete_scene(course_id: str, scene_id: str, request: Request):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return editor_service.delete_scene(ident, course_id, scene_id)


@router.post("/scenes/{scene_id}/background")
def capture_background(course_id: str, scene_id: str, request: Request, payload: dict = Body(...)):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return editor_service.capture_background(ident, course_id, scene_id, payload)


@router.get("/scenes/{scene_id}/elements")
def visible_elements(course_id: str, scene_id: str, request: Request, rows: list[int] = Query(default=[])):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return editor_service.visible_elements(ident, course_id, scene_id, rows)


@router.post("/scenes/{scene_id}/elements")
def add_element(course_id: str, scene_id: str, request: Request, payload: dict = Body(...)):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return editor_service.add_element(ident, course_id, scene_id, payload)


@router.patch("/scenes/{scene_id}/elements/{element_id}")
def update_element(course_id: str, scene_id: str, element_id: str, request: Request, payload: dict = Body(...)):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return editor_service.update_element(ident, course_id, scene_id, element_id, payload)


@router.post("/scenes/{scene_id}/elements/{element_id}/move")
def move_element(course_id: str, scene_id: str, element_id: str, request: Request, payload: dict = Body(...)):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return editor_service.move_element(ident, course_id, scene_id, element_id, payload)


@router.post("/scenes/{scene_id}/elements/{element_id}/resize")
def resize_element(course_id: str, scene_id: str, element_id: str, request: Request, payload: dict = Body(...)):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return editor_service.resize_element(ident, course_id, scene_id, element_id, payload)


@router.delete("/scenes/{scene_id}/elements/{element_id}")
def delete_element(course_id: str, scene_id: str, element_id: str, request: Request):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return editor_service.delete_element(ident, course_id, scene_id, element_id)
