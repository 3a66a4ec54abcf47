from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from typing import Any

from .geometry import scene_to_percent
from .models import Course, Scene

DOCUMENT_FORMAT = "coursecanvas.course/v1"
SCENE_FORMAT = "coursecanvas.scene/v1"


def export_scene_document(scene: Scene) -> dict[str, Any]:
    """
    Portable scene document. Geometry is always written as percentages of the natural image size,
    so it renders the same on any device whatever rendition of the screenshot it gets.
    """
    return {"format": SCENE_FORMAT, "scene": scene_to_percent(scene).to_dict()}


def export_course_document(course: Course) -> dict[str, Any]:
    stored = replace(course, scenes=[scene_to_percent(s) for s in course.scenes])
    return {"format": DOCUMENT_FORMAT, "course": stored.to_dict()}


def write_course_json(path: Path, course: Course) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    doc = export_course_document(course)
    path.write_text(json.dumps(doc, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
