from __future__ import annotations

import pytest

from coursecanvas.elements import HotspotData, InputData, SurveyChoice, SurveyData
from coursecanvas.errors import SurveyEvaluationError
from coursecanvas.geometry import Percent
from coursecanvas.models import STATUS_COMPLETED, STATUS_FAILED, STATUS_IN_PROGRESS, Element
from coursecanvas.playback import (
    COMPLETED_REDIRECT,
    FAILED_REDIRECT,
    PlaybackStateMachine,
    UnknownElement,
    evaluate_survey,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def machine(course, **kw):
    tracked = []
    m = PlaybackStateMachine(course, progress_id="p1", tracker=tracked.append, **kw)
    return m, tracked


def test_survey_exact_set_semantics():
    data = SurveyData(
        choices=[SurveyChoice("a", correct=True), SurveyChoice("b", correct=True), SurveyChoice("c")],
        multiple=True,
    )
    assert evaluate_survey(data, ["b", "a"])
    assert evaluate_survey(data, ["a", "b", "a"])
    assert not evaluate_survey(data, ["a"])
    assert not evaluate_survey(data, ["a", "b", "c"])
    assert not evaluate_survey(data, [])


def test_survey_without_correct_choice_cannot_be_evaluated():
    with pytest.raises(SurveyEvaluationError):
        evaluate_survey(SurveyData(choices=[SurveyChoice("a"), SurveyChoice("b")]), ["a"])
    with pytest.raises(SurveyEvaluationError):
        evaluate_survey(SurveyData(choices=[SurveyChoice("a", correct=True), SurveyChoice("a")]), ["a"])


def test_transition_button_gates_next_and_resets_on_revisit(build):
    m, _ = machine(build.course(build.scene("s1", build.button("b1")), build.scene("s2")))

    assert not m.can_advance()
    assert not m.next().moved

    result = m.click("b1")
    assert result.moved and m.index == 1

    assert m.prev().moved
    assert m.index == 0
    assert not m.can_advance()
    assert not m.visit.transition_button_clicked


def test_wrong_answer_retry_then_correct_advances(build):
    course = build.course(
        build.scene("s1", build.survey("q1", correct=("a",), fail_on_wrong=False)),
        build.scene("s2"),
    )
    m, tracked = machine(course)

    wrong = m.submit_survey("q1", ["b"])
    assert wrong.survey_correct is False
    assert m.index == 0 and m.status == STATUS_IN_PROGRESS
    assert not m.can_advance()

    right = m.submit_survey("q1", ["a"])
    assert right.survey_correct is True and right.moved
    assert m.index == 1
    assert [t.action for t in tracked] == ["survey-submit", "survey-submit"]
    assert tracked[0].value == {"selected": ["b"], "correct": False}


def test_wrong_answer_fails_when_fail_on_wrong(build):
    m, _ = machine(build.course(build.scene("s1", build.survey("q1")), build.scene("s2")))

    result = m.submit_survey("q1", ["c"])

    assert m.status == STATUS_FAILED
    assert result.redirect == FAILED_REDIRECT
    # Terminal: nothing moves any more.
    assert not m.next().moved
    assert not m.click("q1").moved
    assert m.status == STATUS_FAILED


def test_correct_answer_on_last_scene_completes(build):
    m, _ = machine(build.course(build.scene("s1", build.survey("q1"))))

    result = m.submit_survey("q1", ["a"])

    assert m.status == STATUS_COMPLETED
    assert result.redirect == COMPLETED_REDIRECT
    assert m.completed_at is not None


def test_goto_deleted_scene_is_a_no_op_that_still_sets_the_flag(build):
    course = build.course(
        build.scene("s1", build.button("b1", action="goto-scene", target="gone")),
        build.scene("s2"),
    )
    m, _ = machine(course)

    result = m.click("b1")

    assert not result.moved
    assert m.index == 0
    assert m.visit.transition_button_clicked
    assert m.can_go_next()


def test_goto_jumps_to_existing_scene(build):
    course = build.course(
        build.scene("s1", build.button("b1", action="goto-scene", target="s3")),
        build.scene("s2"),
        build.scene("s3"),
    )
    m, _ = machine(course)

    assert m.click("b1").moved
    assert m.current_scene.id == "s3"


def test_goto_current_scene_clears_hotspots_and_inputs_only(build):
    hotspot = Element(id="h1", type="hotspot", data=HotspotData(), geometry=Percent(5, 5, 5, 5))
    text_input = Element(id="i1", type="input", data=InputData(), geometry=Percent(20, 20, 20, 5))
    course = build.course(
        build.scene("s1", build.button("b1", action="goto-scene", target="s1"), hotspot, text_input, build.survey("q1")),
        build.scene("s2"),
    )
    m, _ = machine(course)
    m.click("h1")
    m.input_change("i1", "hello")
    m.visit.passed_surveys.add("q1")

    result = m.click("b1")

    assert not result.moved
    assert m.index == 0
    assert m.visit.completed_hotspots == set()
    assert m.visit.input_values == {}
    assert m.visit.transition_button_clicked
    assert m.visit.passed_surveys == {"q1"}


def test_complete_button_finishes_from_any_scene(build):
    m, _ = machine(build.course(build.scene("s1", build.button("done", action="complete")), build.scene("s2")))

    m.click("done")

    assert m.status == STATUS_COMPLETED


def test_finish_only_on_last_scene_when_gates_satisfied(build):
    clock = FakeClock()
    m, _ = machine(build.course(build.scene("s1"), build.scene("s2", build.button("b2"))), clock=clock)

    assert not m.can_finish()
    m.next()
    assert not m.can_finish()
    m.click("b2")
    m.record_tab_exit()
    clock.now += 42
    m.finish()

    assert m.status == STATUS_COMPLETED
    assert m.duration_seconds() == 42
    assert m.tab_exits == 1
    assert m.record_tab_exit() == 1


def test_hotspot_tooltip_expires(build):
    hotspot = Element(id="h1", type="hotspot", data=HotspotData(tooltip_text="Here"), geometry=Percent(0, 0, 5, 5))
    clock = FakeClock()
    m, tracked = machine(build.course(build.scene("s1", hotspot)), clock=clock)

    result = m.click("h1")
    assert result.tooltip is not None and result.tooltip.text == "Here"
    assert "h1" in m.visit.completed_hotspots

    clock.now += 2.9
    assert m.active_tooltip() is not None
    clock.now += 0.2
    assert m.active_tooltip() is None
    assert tracked[0].action == "click"


def test_tracker_failure_does_not_change_state(build):
    def broken(_):
        raise RuntimeError("store down")

    m = PlaybackStateMachine(
        build.course(build.scene("s1", build.button("b1")), build.scene("s2")),
        tracker=broken,
    )

    assert m.click("b1").moved
    assert m.index == 1


def test_unknown_element_raises(build):
    m, _ = machine(build.course(build.scene("s1")))
    with pytest.raises(UnknownElement):
        m.click("nope")
