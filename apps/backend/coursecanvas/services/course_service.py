from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from fastapi.responses import Response

from ..content_loader import parse_course_document
from ..content_writer import export_course_document
from ..errors import CourseValidationError, GeometryError
from ..identity import Identity
from ..models import Course, Scene, new_id, now_iso
from ..state import STATE
from ..validation import validate_course

logger = logging.getLogger("cc.course_service")


def _text(status: int, content: str) -> Response:
    return Response(status_code=status, content=content, media_type="text/plain")


def _invalid(course_id: str, e: ValueError) -> Response:
    problems = getattr(e, "problems", None) or [str(e)]
    logger.warning("course %s: 422 %s", course_id, problems)
    return _text(422, "\n".join(problems))


def persist_course(course: Course) -> Course:
    """
    Validate and store a course. Stored geometry is always percent space.
    Raises CourseValidationError / GeometryError; the caller maps them to a response.
    """
    validate_course(course)
    return STATE.store.save_course(replace(course, updated_at=now_iso()))


def _owned(ident: Identity, course_id: str) -> Course | Response:
    course = STATE.store.load_course(course_id)
    if course is None:
        return _text(404, "Course not found")
    if not ident.can_edit(course):
        logger.warning("course %s: 403 edit denied for %s", course_id, ident.user_id)
        return _text(403, "Only the course owner can change this course")
    return course


def list_courses(ident: Identity) -> dict:
    courses = STATE.store.list_courses()
    return {"courses": [c.to_dict() for c in courses]}


def get_course(ident: Identity, course_id: str) -> dict | Response:
    course = STATE.store.load_course(course_id)
    if course is None:
        return _text(404, "Course not found")
    if not ident.is_admin and not course.published:
        return _text(403, "Course not available")
    return {"course": course.to_dict()}


def create_course(ident: Identity, payload: dict[str, Any]) -> dict | Response:
    title = str(payload.get("title") or "").strip()
    if not title:
        return _text(400, "Missing title")
    now = now_iso()
    course = Course(
        id=new_id("course"),
        title=title,
        description=str(payload.get("description") or ""),
        created_by=ident.user_id,
        created_at=now,
        updated_at=now,
    )
    stored = STATE.store.save_course(course)
    logger.info("course %s created by %s", stored.id, ident.user_id)
    return {"ok": True, "course": stored.to_dict()}


def update_course(ident: Identity, course_id: str, payload: dict[str, Any]) -> dict | Response:
    """
    Partial update. `id`, `createdBy` and `createdAt` never change.

    Payload (any subset):
      { "title", "description", "thumbnail", "scenes": [<scene document>...] }
    """
    course = _owned(ident, course_id)
    if isinstance(course, Response):
        return course

    if "title" in payload:
        title = str(payload.get("title") or "").strip()
        if not title:
            return _text(400, "Title cannot be empty")
        course.title = title
    if "description" in payload:
        course.description = str(payload.get("description") or "")
    if "thumbnail" in payload:
        course.thumbnail = payload.get("thumbnail") or None
    if "scenes" in payload:
        raw = payload.get("scenes")
        if not isinstance(raw, list):
            return _text(400, "Invalid scenes")
        try:
            course.scenes = [Scene.from_dict(s) for s in raw if isinstance(s, dict)]
        except ValueError as e:
            return _text(400, str(e))

    try:
        stored = persist_course(course)
    except (CourseValidationError, GeometryError) as e:
        return _invalid(course_id, e)
    return {"ok": True, "course": stored.to_dict()}


def delete_course(ident: Identity, course_id: str) -> dict | Response:
    course = _owned(ident, course_id)
    if isinstance(course, Response):
        return course
    STATE.store.delete_course(course_id)
    with STATE.lock:
        STATE.editing.pop(course_id, None)
    logger.info("course %s deleted by %s", course_id, ident.user_id)
    return {"ok": True}


def set_published(ident: Identity, course_id: str, published: bool) -> dict | Response:
    course = _owned(ident, course_id)
    if isinstance(course, Response):
        return course
    course.published = published
    try:
        stored = persist_course(course)
    except (CourseValidationError, GeometryError) as e:
        return _invalid(course_id, e)
    return {"ok": True, "course": stored.to_dict()}


def list_assignments(ident: Identity, course_id: str) -> dict | Response:
    if STATE.store.load_course(course_id) is None:
        return _text(404, "Course not found")
    return {"assignments": [a.to_dict() for a in STATE.store.list_assignments(course_id=course_id)]}


def assign(ident: Identity, course_id: str, payload: dict[str, Any]) -> dict | Response:
    user_id = str(payload.get("userId") or "").strip()
    if not user_id:
        return _text(400, "Missing userId")
    if STATE.store.load_course(course_id) is None:
        return _text(404, "Course not found")
    assignment = STATE.store.assign(course_id, user_id, ident.user_id)
    return {"ok": True, "assignment": assignment.to_dict()}


def unassign(ident: Identity, course_id: str, payload: dict[str, Any]) -> dict | Response:
    user_id = str(payload.get("userId") or "").strip()
    if not user_id:
        return _text(400, "Missing userId")
    if not STATE.store.unassign(course_id, user_id):
        return _text(404, "Assignment not found")
    return {"ok": True}


def my_courses(ident: Identity) -> dict:
    """Courses assigned to the caller that are currently published."""
    out: list[dict[str, Any]] = []
    for a in STATE.store.list_assignments(user_id=ident.user_id):
        course = STATE.store.load_course(a.course_id)
        if course is None or not course.published:
            continue
        out.append({**course.to_dict(), "assignedAt": a.assigned_at})
    return {"courses": out}


def export_course(ident: Identity, course_id: str) -> dict | Response:
    course = STATE.store.load_course(course_id)
    if course is None:
        return _text(404, "Course not found")
    try:
        return export_course_document(course)
    except GeometryError as e:
        return _invalid(course_id, e)


def import_course(ident: Identity, payload: dict[str, Any]) -> dict | Response:
    """Import an exported document as a new, unpublished course owned by the caller."""
    try:
        course = parse_course_document(payload, created_by=ident.user_id, fresh_id=True)
    except ValueError as e:
        logger.warning("import_course: 400 %s", e)
        return _text(400, str(e))
    try:
        stored = persist_course(course)
    except (CourseValidationError, GeometryError) as e:
        return _invalid(course.id, e)
    logger.info("course %s imported by %s (%d scenes)", stored.id, ident.user_id, len(stored.scenes))
    return {"ok": True, "course": stored.to_dict()}
