from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any

from .geometry import scene_to_percent
from .models import Course, CourseAssignment, CourseProgress, UserInteraction, new_id, now_iso

logger = logging.getLogger("cc.store")


def _empty() -> dict[str, list[Any]]:
    return {"courses": [], "assignments": [], "progress": []}


class JsonCourseStore:
    """
    Courses, assignments and progress in one JSON document (data/db.json).
    Every read-modify-write holds a lock so concurrent requests cannot lose each other's writes.
    Courses are always written with percentage geometry.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.RLock()

    # ---- raw document ----

    def _read(self) -> dict[str, list[Any]]:
        if not self.path.exists():
            return _empty()
        try:
            obj = json.loads(self.path.read_text(encoding="utf-8") or "{}")
            if not isinstance(obj, dict):
                raise ValueError("db.json must be an object")
        except ValueError as e:
            logger.error("store: unreadable %s (%s); starting from an empty document", self.path, e)
            return _empty()
        out = _empty()
        for k in out:
            v = obj.get(k)
            if isinstance(v, list):
                out[k] = [x for x in v if isinstance(x, dict)]
        return out

    def _write(self, doc: dict[str, list[Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(doc, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self.path)

    # ---- courses ----

    def list_courses(self) -> list[Course]:
        with self._lock:
            return [Course.from_dict(c) for c in self._read()["courses"]]

    def load_course(self, course_id: str) -> Course | None:
        with self._lock:
            for c in self._read()["courses"]:
                if c.get("id") == course_id:
                    return Course.from_dict(c)
        return None

    def save_course(self, course: Course) -> Course:
        stored = replace(course, scenes=[scene_to_percent(s) for s in course.scenes])
        with self._lock:
            doc = self._read()
            raw = stored.to_dict()
            for i, c in enumerate(doc["courses"]):
                if c.get("id") == stored.id:
                    doc["courses"][i] = raw
                    break
            else:
                doc["courses"].append(raw)
            self._write(doc)
        return stored

    def delete_course(self, course_id: str) -> bool:
        with self._lock:
            doc = self._read()
            kept = [c for c in doc["courses"] if c.get("id") != course_id]
            if len(kept) == len(doc["courses"]):
                return False
            doc["courses"] = kept
            doc["assignments"] = [a for a in doc["assignments"] if a.get("courseId") != course_id]
            self._write(doc)
        return True

    # ---- assignments ----

    def list_assignments(self, *, course_id: str | None = None, user_id: str | None = None) -> list[CourseAssignment]:
        with self._lock:
            out = [CourseAssignment.from_dict(a) for a in self._read()["assignments"]]
        if course_id is not None:
            out = [a for a in out if a.course_id == course_id]
        if user_id is not None:
            out = [a for a in out if a.user_id == user_id]
        return out

    def assign(self, course_id: str, user_id: str, assigned_by: str) -> CourseAssignment:
        with self._lock:
            doc = self._read()
            for a in doc["assignments"]:
                if a.get("courseId") == course_id and a.get("userId") == user_id:
                    return CourseAssignment.from_dict(a)
            assignment = CourseAssignment(
                id=new_id("assignment"),
                course_id=course_id,
                user_id=user_id,
                assigned_by=assigned_by,
                assigned_at=now_iso(),
            )
            doc["assignments"].append(assignment.to_dict())
            self._write(doc)
        return assignment

    def unassign(self, course_id: str, user_id: str) -> bool:
        with self._lock:
            doc = self._read()
            kept = [a for a in doc["assignments"] if not (a.get("courseId") == course_id and a.get("userId") == user_id)]
            if len(kept) == len(doc["assignments"]):
                return False
            doc["assignments"] = kept
            self._write(doc)
        return True

    # ---- progress ----

    def load_progress(self, user_id: str | None = None, course_id: str | None = None) -> list[CourseProgress]:
        with self._lock:
            out = [CourseProgress.from_dict(p) for p in self._read()["progress"]]
        if user_id is not None:
            out = [p for p in out if p.user_id == user_id]
        if course_id is not None:
            out = [p for p in out if p.course_id == course_id]
        return out

    def get_progress(self, progress_id: str) -> CourseProgress | None:
        with self._lock:
            for p in self._read()["progress"]:
                if p.get("id") == progress_id:
                    return CourseProgress.from_dict(p)
        return None

    def save_progress(self, progress: CourseProgress) -> CourseProgress:
        with self._lock:
            doc = self._read()
            raw = progress.to_dict()
            for i, p in enumerate(doc["progress"]):
                if p.get("id") == progress.id:
                    # Interactions are append-only; keep any that landed since this copy was read.
                    stored = p.get("interactions") or []
                    if len(stored) > len(raw["interactions"]):
                        raw["interactions"] = stored
                    doc["progress"][i] = raw
                    break
            else:
                doc["progress"].append(raw)
            self._write(doc)
        return progress

    def append_interaction(self, progress_id: str, interaction: UserInteraction) -> bool:
        with self._lock:
            doc = self._read()
            for p in doc["progress"]:
                if p.get("id") == progress_id:
                    p.setdefault("interactions", []).append(interaction.to_dict())
                    self._write(doc)
                    return True
        return False

    def delete_progress(self, progress_id: str) -> bool:
        with self._lock:
            doc = self._read()
            kept = [p for p in doc["progress"] if p.get("id") != progress_id]
            if len(kept) == len(doc["progress"]):
                return False
            doc["progress"] = kept
            self._write(doc)
        return True
