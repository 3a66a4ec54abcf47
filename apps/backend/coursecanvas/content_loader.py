from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from typing import Any

from .content_writer import DOCUMENT_FORMAT, SCENE_FORMAT
from .geometry import Percent, Pixels, clamp_percent
from .models import Course, Scene, new_id, now_iso


def _check_scene(scene: Scene) -> Scene:
    """
    Imported scenes must carry percentage geometry anchored to a known natural size.
    Pixel geometry only means something against one particular rendition of the image.
    """
    elements = []
    for el in scene.elements:
        if isinstance(el.geometry, Pixels):
            raise ValueError(
                f"scene {scene.id!r}: element {el.id!r} uses pixel geometry; documents must use positionPercent/sizePercent"
            )
        elements.append(replace(el, geometry=clamp_percent(el.geometry)))
    if elements and not scene.is_sized:
        raise ValueError(f"scene {scene.id!r}: percentage geometry requires screenshotNaturalWidth/Height")
    return replace(scene, elements=elements)


def parse_scene_document(obj: Any) -> Scene:
    if not isinstance(obj, dict):
        raise ValueError("scene document must be an object")
    fmt = obj.get("format")
    if fmt is not None and fmt != SCENE_FORMAT:
        raise ValueError(f"unsupported scene document format {fmt!r}")
    raw = obj.get("scene", obj)
    if not isinstance(raw, dict):
        raise ValueError("scene must be an object")
    return _check_scene(Scene.from_dict(raw))


def parse_course_document(obj: Any, *, created_by: str | None = None, fresh_id: bool = False) -> Course:
    """
    Parse an exported course document (or a bare course object).

    - `fresh_id` gives the course a new id and unpublishes it (import as a copy).
    - `created_by` overrides the owner.
    """
    if not isinstance(obj, dict):
        raise ValueError("course document must be an object")
    fmt = obj.get("format")
    if fmt is not None and fmt != DOCUMENT_FORMAT:
        raise ValueError(f"unsupported course document format {fmt!r}")
    raw = obj.get("course", obj)
    if not isinstance(raw, dict):
        raise ValueError("course must be an object")
    if not str(raw.get("title") or "").strip():
        raise ValueError("course title is required")

    course = Course.from_dict(raw)
    course = replace(course, scenes=[_check_scene(s) for s in course.scenes])
    if fresh_id:
        now = now_iso()
        course = replace(course, id=new_id("course"), published=False, created_at=now, updated_at=now)
    if created_by is not None:
        course = replace(course, created_by=created_by)
    return course


def load_course_json(path: Path) -> Course:
    return parse_course_document(json.loads(path.read_text(encoding="utf-8")))


def percent_geometry_only(course: Course) -> bool:
    return all(isinstance(e.geometry, Percent) for s in course.scenes for e in s.elements)
