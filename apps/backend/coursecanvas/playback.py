from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from .config import TOOLTIP_DISMISS_MS
from .elements import SurveyData
from .errors import SurveyEvaluationError
from .models import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_IN_PROGRESS,
    Course,
    Element,
    Scene,
    UserInteraction,
    now_iso,
)

logger = logging.getLogger("cc.playback")

COMPLETED_REDIRECT = "/dashboard/completed"
FAILED_REDIRECT = "/dashboard/courses"

Tracker = Callable[[UserInteraction], Any]


class UnknownElement(KeyError):
    pass


def evaluate_survey(data: SurveyData, selected: Iterable[str]) -> bool:
    """
    Exact set equality between the selected choice ids and the ids marked correct.
    Order and repeated ids in `selected` do not matter; a subset or superset is wrong.
    """
    ids = [c.id for c in data.choices]
    if len(ids) != len(set(ids)):
        raise SurveyEvaluationError("survey has duplicate choice ids")
    correct = data.correct_ids()
    if not correct:
        raise SurveyEvaluationError("survey has no choice marked correct")
    return {str(s) for s in selected} == correct


@dataclass
class Tooltip:
    element_id: str
    text: str
    expires_at: float

    def to_dict(self) -> dict[str, Any]:
        return {"elementId": self.element_id, "text": self.text}


@dataclass
class StepResult:
    scene_index: int
    status: str
    moved: bool = False
    redirect: str | None = None
    survey_correct: bool | None = None
    presentation_url: str | None = None
    tooltip: Tooltip | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"sceneIndex": self.scene_index, "status": self.status, "moved": self.moved}
        if self.redirect:
            out["redirect"] = self.redirect
        if self.survey_correct is not None:
            out["surveyCorrect"] = self.survey_correct
        if self.presentation_url is not None:
            out["presentationUrl"] = self.presentation_url
        if self.tooltip is not None:
            out["tooltip"] = self.tooltip.to_dict()
        return out


@dataclass
class _Visit:
    """Per-scene-visit state; thrown away whenever a scene is entered."""

    transition_button_clicked: bool = False
    completed_hotspots: set[str] = field(default_factory=set)
    input_values: dict[str, str] = field(default_factory=dict)
    passed_surveys: set[str] = field(default_factory=set)
    tooltip: Tooltip | None = None


class PlaybackStateMachine:
    """
    Scene sequencing for one learner playing one course.

    All transitions happen synchronously inside the event methods. Interactions are handed to
    `tracker`; whatever the tracker does (including raising) never changes playback state.
    """

    def __init__(
        self,
        course: Course,
        *,
        progress_id: str | None = None,
        tracker: Tracker | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.course = course
        self.progress_id = progress_id
        self.tracker = tracker
        self.clock = clock
        self.index = 0
        self.status = STATUS_IN_PROGRESS
        self.tab_exits = 0
        self.started = clock()
        self.final_duration: int | None = None
        self.completed_at: str | None = None
        self.visit = _Visit()

    # ---- state ----

    @property
    def scenes(self) -> list[Scene]:
        return self.course.scenes

    @property
    def total_scenes(self) -> int:
        return len(self.scenes)

    @property
    def current_scene(self) -> Scene | None:
        if 0 <= self.index < self.total_scenes:
            return self.scenes[self.index]
        return None

    @property
    def is_last_scene(self) -> bool:
        return self.total_scenes > 0 and self.index == self.total_scenes - 1

    @property
    def is_terminal(self) -> bool:
        return self.status != STATUS_IN_PROGRESS

    def duration_seconds(self) -> int:
        if self.final_duration is not None:
            return self.final_duration
        return int(self.clock() - self.started)

    def has_transition_button(self) -> bool:
        scene = self.current_scene
        if scene is None:
            return False
        return any(e.type == "button" and e.gates_transition for e in scene.elements)

    def can_advance(self) -> bool:
        scene = self.current_scene
        if scene is None:
            return True
        if self.has_transition_button() and not self.visit.transition_button_clicked:
            return False
        for e in scene.elements:
            if e.type == "survey" and e.id not in self.visit.passed_surveys:
                return False
        return True

    def can_go_back(self) -> bool:
        return not self.is_terminal and self.index > 0

    def can_go_next(self) -> bool:
        return not self.is_terminal and not self.is_last_scene and self.total_scenes > 0 and self.can_advance()

    def can_finish(self) -> bool:
        return not self.is_terminal and self.is_last_scene and self.can_advance()

    def active_tooltip(self) -> Tooltip | None:
        tip = self.visit.tooltip
        if tip is not None and self.clock() >= tip.expires_at:
            self.visit.tooltip = None
            return None
        return tip

    def progress_percent(self) -> float:
        if self.total_scenes <= 0:
            return 0.0
        return (self.index + 1) / self.total_scenes * 100.0

    # ---- transitions ----

    def _enter(self, index: int) -> None:
        self.index = index
        self.visit = _Visit()

    def _result(self, moved: bool = False, **kw: Any) -> StepResult:
        redirect = None
        if self.status == STATUS_COMPLETED:
            redirect = COMPLETED_REDIRECT
        elif self.status == STATUS_FAILED:
            redirect = FAILED_REDIRECT
        return StepResult(scene_index=self.index, status=self.status, moved=moved, redirect=redirect, **kw)

    def _complete(self) -> None:
        self.final_duration = self.duration_seconds()
        self.completed_at = now_iso()
        self.status = STATUS_COMPLETED
        logger.info("course %s completed (progress=%s, %ss)", self.course.id, self.progress_id, self.final_duration)

    def _fail(self) -> None:
        self.final_duration = self.duration_seconds()
        self.status = STATUS_FAILED
        logger.info("course %s failed (progress=%s)", self.course.id, self.progress_id)

    def _element(self, element_id: str) -> Element:
        scene = self.current_scene
        el = scene.element(element_id) if scene else None
        if el is None:
            raise UnknownElement(element_id)
        return el

    def _track(self, element: Element, action: str, value: Any = None) -> None:
        if self.tracker is None or self.current_scene is None:
            return
        interaction = UserInteraction(
            timestamp=now_iso(),
            scene_id=self.current_scene.id,
            element_id=element.id,
            element_type=element.type,
            action=action,
            value=value,
        )
        try:
            self.tracker(interaction)
        except Exception as e:
            logger.warning("tracking %s/%s failed, dropped: %s", element.id, action, e)

    def click(self, element_id: str) -> StepResult:
        if self.is_terminal:
            return self._result()
        el = self._element(element_id)
        self._track(el, "click")

        if el.type == "button":
            self.visit.transition_button_clicked = True
            action = el.data.action
            if action == "next-scene":
                if not self.is_last_scene:
                    self._enter(self.index + 1)
                    return self._result(moved=True)
            elif action == "goto-scene" and el.data.target_scene:
                target = self.course.scene_index(el.data.target_scene)
                if target == -1:
                    logger.debug("goto-scene %r from %s: unknown target, ignored", el.data.target_scene, el.id)
                elif target == self.index:
                    # Same scene: clear hotspot and input progress, keep the flag and passed surveys.
                    self.visit.completed_hotspots.clear()
                    self.visit.input_values.clear()
                else:
                    self._enter(target)
                    return self._result(moved=True)
            elif action == "complete":
                self._complete()
            return self._result()

        if el.type == "hotspot":
            self.visit.completed_hotspots.add(el.id)
            tip = Tooltip(
                element_id=el.id,
                text=el.data.tooltip_text,
                expires_at=self.clock() + TOOLTIP_DISMISS_MS / 1000.0,
            )
            self.visit.tooltip = tip
            return self._result(tooltip=tip)

        if el.type == "presentation":
            self._track(el, "open-presentation")
            return self._result(presentation_url=el.data.url)

        return self._result()

    def input_change(self, element_id: str, value: str) -> StepResult:
        if self.is_terminal:
            return self._result()
        el = self._element(element_id)
        if el.type != "input":
            raise UnknownElement(element_id)
        self.visit.input_values[el.id] = value
        self._track(el, "input-change", value)
        return self._result()

    def submit_survey(self, element_id: str, selected: Iterable[str]) -> StepResult:
        if self.is_terminal:
            return self._result()
        el = self._element(element_id)
        if el.type != "survey":
            raise UnknownElement(element_id)
        chosen = sorted({str(s) for s in selected})
        correct = evaluate_survey(el.data, chosen)
        self._track(el, "survey-submit", {"selected": chosen, "correct": correct})

        if correct:
            self.visit.passed_surveys.add(el.id)
            if self.is_last_scene:
                self._complete()
                return self._result(survey_correct=True)
            self._enter(self.index + 1)
            return self._result(moved=True, survey_correct=True)

        if el.data.fail_on_wrong:
            self._fail()
        return self._result(survey_correct=False)

    def next(self) -> StepResult:
        if not self.can_go_next():
            return self._result()
        self._enter(self.index + 1)
        return self._result(moved=True)

    def prev(self) -> StepResult:
        if not self.can_go_back():
            return self._result()
        self._enter(self.index - 1)
        return self._result(moved=True)

    def finish(self) -> StepResult:
        if not self.can_finish():
            return self._result()
        self._complete()
        return self._result()

    def record_tab_exit(self) -> int:
        if not self.is_terminal:
            self.tab_exits += 1
        return self.tab_exits

    def snapshot(self) -> dict[str, Any]:
        scene = self.current_scene
        tip = self.active_tooltip()
        return {
            "courseId": self.course.id,
            "progressId": self.progress_id,
            "sceneIndex": self.index,
            "sceneId": scene.id if scene else None,
            "totalScenes": self.total_scenes,
            "status": self.status,
            "progressPercent": self.progress_percent(),
            "canAdvance": self.can_advance(),
            "canGoBack": self.can_go_back(),
            "canGoNext": self.can_go_next(),
            "canFinish": self.can_finish(),
            "isLastScene": self.is_last_scene,
            "transitionButtonClicked": self.visit.transition_button_clicked,
            "completedHotspots": sorted(self.visit.completed_hotspots),
            "inputValues": dict(self.visit.input_values),
            "tooltip": tip.to_dict() if tip else None,
            "duration": self.duration_seconds(),
            "tabExits": self.tab_exits,
        }
