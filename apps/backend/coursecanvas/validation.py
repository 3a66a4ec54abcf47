from __future__ import annotations

import logging

from .config import STRICT_GOTO_TARGETS
from .elements import TRANSITION_ACTIONS
from .errors import CourseValidationError, InvalidTransitionTarget, SurveyEvaluationError
from .geometry import Percent, Pixels
from .models import Course, Scene

logger = logging.getLogger("cc.validation")


def check_goto_targets(course: Course) -> list[InvalidTransitionTarget]:
    scene_ids = {s.id for s in course.scenes}
    out: list[InvalidTransitionTarget] = []
    for scene in course.scenes:
        for el in scene.elements:
            if el.type != "button" or el.data.action != "goto-scene":
                continue
            target = (el.data.target_scene or "").strip()
            if target not in scene_ids:
                out.append(InvalidTransitionTarget(scene.id, el.id, target))
    return out


def check_surveys(scene: Scene) -> list[SurveyEvaluationError]:
    out: list[SurveyEvaluationError] = []
    for el in scene.elements:
        if el.type != "survey":
            continue
        ids = [c.id for c in el.data.choices]
        if not ids:
            out.append(SurveyEvaluationError(f"scene {scene.id!r}: survey {el.id!r} has no choices"))
            continue
        if len(ids) != len(set(ids)):
            out.append(SurveyEvaluationError(f"scene {scene.id!r}: survey {el.id!r} has duplicate choice ids"))
        if not el.data.correct_ids():
            out.append(SurveyEvaluationError(f"scene {scene.id!r}: survey {el.id!r} has no correct choice"))
        elif not el.data.multiple and len(el.data.correct_ids()) > 1:
            out.append(
                SurveyEvaluationError(f"scene {scene.id!r}: single-choice survey {el.id!r} marks several choices correct")
            )
    return out


def check_geometry(scene: Scene) -> list[str]:
    problems: list[str] = []
    has_percent = any(isinstance(e.geometry, Percent) for e in scene.elements)
    if has_percent and not scene.is_sized:
        problems.append(f"scene {scene.id!r}: percentage geometry without natural image size")
    if any(isinstance(e.geometry, Pixels) for e in scene.elements) and not scene.is_sized:
        problems.append(f"scene {scene.id!r}: pixel geometry without natural image size")
    for el in scene.elements:
        if el.type == "button" and el.data.action not in TRANSITION_ACTIONS:
            problems.append(f"scene {scene.id!r}: button {el.id!r} has unknown action {el.data.action!r}")
    return problems


def validate_course(course: Course, *, strict_goto: bool | None = None) -> None:
    """
    Save-time validation. Raises CourseValidationError listing every problem found.
    `strict_goto` overrides the COURSECANVAS_STRICT_GOTO setting.
    """
    strict = STRICT_GOTO_TARGETS if strict_goto is None else strict_goto
    problems: list[str] = []

    seen: set[str] = set()
    for scene in course.scenes:
        if scene.id in seen:
            problems.append(f"duplicate scene id {scene.id!r}")
        seen.add(scene.id)
        problems.extend(str(e) for e in check_surveys(scene))
        problems.extend(check_geometry(scene))

    bad_targets = check_goto_targets(course)
    if strict:
        problems.extend(str(e) for e in bad_targets)
    else:
        for e in bad_targets:
            logger.warning("validate_course %s: %s (kept, strict goto disabled)", course.id, e)

    if problems:
        raise CourseValidationError(problems)
