from __future__ import annotations

import logging
from typing import Any

from fastapi.responses import Response

from ..identity import Identity
from ..models import STATUS_COMPLETED, STATUS_FAILED, STATUS_IN_PROGRESS, CourseProgress
from ..state import STATE

logger = logging.getLogger("cc.progress_service")


def list_own(ident: Identity) -> dict:
    progress = sorted(STATE.store.load_progress(user_id=ident.user_id), key=lambda p: p.started_at, reverse=True)
    return {"progress": [p.to_dict() for p in progress]}


def completed(ident: Identity) -> dict:
    """The caller's completed attempts, newest first, each with the course title when it still exists."""
    titles = {c.id: c.title for c in STATE.store.list_courses()}
    done = [p for p in STATE.store.load_progress(user_id=ident.user_id) if p.status == STATUS_COMPLETED]
    done.sort(key=lambda p: p.completed_at or "", reverse=True)
    return {"completed": [{**p.to_dict(), "courseTitle": titles.get(p.course_id)} for p in done]}


def _user_summary(user_id: str, attempts: list[CourseProgress]) -> dict[str, Any]:
    attempts = sorted(attempts, key=lambda p: p.started_at)
    first, latest = attempts[0], attempts[-1]
    # Any completed attempt counts; otherwise the latest attempt decides.
    status = STATUS_COMPLETED if any(p.status == STATUS_COMPLETED for p in attempts) else latest.status
    return {
        "userId": user_id,
        "attemptsCount": len(attempts),
        "status": status,
        "latest": latest.to_dict(),
        "first": first.to_dict(),
    }


def analytics(ident: Identity, course_id: str) -> dict | Response:
    course = STATE.store.load_course(course_id)
    if course is None:
        return Response(status_code=404, content="Course not found", media_type="text/plain")

    by_user: dict[str, list[CourseProgress]] = {}
    for p in STATE.store.load_progress(course_id=course_id):
        by_user.setdefault(p.user_id, []).append(p)
    users = [_user_summary(uid, attempts) for uid, attempts in sorted(by_user.items())]

    finished = [u["latest"]["duration"] for u in users if u["status"] == STATUS_COMPLETED]
    counts = {s: sum(1 for u in users if u["status"] == s) for s in (STATUS_COMPLETED, STATUS_FAILED, STATUS_IN_PROGRESS)}
    return {
        "courseId": course_id,
        "title": course.title,
        "users": users,
        "summary": {
            "users": len(users),
            "completed": counts[STATUS_COMPLETED],
            "failed": counts[STATUS_FAILED],
            "inProgress": counts[STATUS_IN_PROGRESS],
            "averageDuration": round(sum(finished) / len(finished), 1) if finished else None,
        },
    }


def reset(ident: Identity, progress_id: str) -> dict | Response:
    if not STATE.store.delete_progress(progress_id):
        return Response(status_code=404, content="Progress not found", media_type="text/plain")
    with STATE.lock:
        STATE.playback.pop(progress_id, None)
    logger.info("progress %s reset by %s", progress_id, ident.user_id)
    return {"ok": True}
