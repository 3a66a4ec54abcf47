from __future__ import annotations

from fastapi import APIRouter, Body, Request
from fastapi.responses import Response

from ..identity import require_admin, require_user
from ..services import course_service

router = APIRouter()


@router.get("/api/courses")
def list_courses(request: Request):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return course_service.list_courses(ident)


@router.post("/api/courses")
def create_course(request: Request, payload: dict = Body(...)):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return course_service.create_course(ident, payload)


@router.post("/api/courses/import")
def import_course(request: Request, payload: dict = Body(...)):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return course_service.import_course(ident, payload)


@router.get("/api/my/courses")
def my_courses(request: Request):
    ident = require_user(request)
    if isinstance(ident, Response):
        return ident
    return course_service.my_courses(ident)


@router.get("/api/courses/{course_id}")
def get_course(course_id: str, request: Request):
    ident = require_user(request)
    if isinstance(ident, Response):
        return ident
    return course_service.get_course(ident, course_id)


@router.put("/api/courses/{course_id}")
def update_course(course_id: str, request: Request, payload: dict = Body(...)):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return course_service.update_course(ident, course_id, payload)


@router.delete("/api/courses/{course_id}")
def delete_course(course_id: str, request: Request):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return course_service.delete_course(ident, course_id)


@router.post("/api/courses/{course_id}/publish")
def publish(course_id: str, request: Request):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return course_service.set_published(ident, course_id, True)


@router.post("/api/courses/{course_id}/unpublish")
def unpublish(course_id: str, request: Request):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return course_service.set_published(ident, course_id, False)


@router.get("/api/courses/{course_id}/assignments")
def assignments(course_id: str, request: Request):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return course_service.list_assignments(ident, course_id)


@router.post("/api/courses/{course_id}/assign")
def assign(course_id: str, request: Request, payload: dict = Body(...)):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return course_service.assign(ident, course_id, payload)


@router.post("/api/courses/{course_id}/unassign")
def unassign(course_id: str, request: Request, payload: dict = Body(...)):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return course_service.unassign(ident, course_id, payload)


@router.get("/api/courses/{course_id}/export")
def export_course(course_id: str, request: Request):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return course_service.export_course(ident, course_id)
