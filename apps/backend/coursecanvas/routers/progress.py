from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import Response

from ..identity import require_admin, require_user
from ..services import progress_service

router = APIRouter()


@router.get("/api/progress")
def own_progress(request: Request):
    ident = require_user(request)
    if isinstance(ident, Response):
        return ident
    return progress_service.list_own(ident)


@router.get("/api/progress/completed")
def completed(request: Request):
    ident = require_user(request)
    if isinstance(ident, Response):
        return ident
    return progress_service.completed(ident)


@router.get("/api/courses/{course_id}/analytics")
def analytics(course_id: str, request: Request):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return progress_service.analytics(ident, course_id)


@router.delete("/api/progress/{progress_id}")
def reset(progress_id: str, request: Request):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return progress_service.reset(ident, progress_id)
