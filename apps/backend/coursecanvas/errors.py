from __future__ import annotations


class GeometryError(ValueError):
    """Natural or canvas dimensions that cannot anchor a conversion."""


class InvalidTransitionTarget(ValueError):
    def __init__(self, scene_id: str, element_id: str, target: str) -> None:
        super().__init__(f"scene {scene_id!r}: button {element_id!r} targets unknown scene {target!r}")
        self.scene_id = scene_id
        self.element_id = element_id
        self.target = target


class SurveyEvaluationError(ValueError):
    """A survey whose choice set cannot be evaluated (no correct choice, duplicate ids)."""


class CourseValidationError(ValueError):
    def __init__(self, problems: list[str]) -> None:
        super().__init__("; ".join(problems) or "invalid course")
        self.problems = problems
