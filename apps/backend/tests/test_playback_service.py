from __future__ import annotations

import threading

from fastapi.responses import Response

from coursecanvas.identity import Identity
from coursecanvas.models import STATUS_COMPLETED, STATUS_FAILED
from coursecanvas.services import playback_service
from coursecanvas.state import STATE

LEARNER = Identity(user_id="learner-1")


def _start(store, course) -> str:
    store.save_course(course)
    store.assign(course.id, LEARNER.user_id, "admin-1")
    return playback_service.start(LEARNER, course.id)["progressId"]


def _gated_course(build):
    # s1 unlocks on b1 (goto to a missing scene only sets the flag); s2 is gated by b2.
    return build.course(
        build.scene("s1", build.button("b1", action="goto-scene", target="gone")),
        build.scene("s2", build.button("b2")),
        build.scene("s3"),
    )


def test_concurrent_next_moves_only_once(store, build):
    pid = _start(store, _gated_course(build))
    playback_service.click(LEARNER, pid, {"elementId": "b1"})
    barrier = threading.Barrier(2)
    results = []

    def fire():
        barrier.wait()
        results.append(playback_service.next_scene(LEARNER, pid))

    threads = [threading.Thread(target=fire) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert [r["result"]["moved"] for r in results].count(True) == 1
    assert STATE.playback[pid].machine.index == 1
    assert store.get_progress(pid).current_scene == "s2"


def test_event_waits_for_the_session_lock(store, build):
    pid = _start(store, _gated_course(build))
    playback_service.click(LEARNER, pid, {"elementId": "b1"})
    session = STATE.playback[pid]

    with session.lock:
        worker = threading.Thread(target=playback_service.next_scene, args=(LEARNER, pid))
        worker.start()
        worker.join(timeout=0.2)
        assert worker.is_alive()
        assert session.machine.index == 0
    worker.join(timeout=5)

    assert session.machine.index == 1


def test_completed_attempt_is_evicted_but_still_answers_409(store, build):
    pid = _start(store, build.course(build.scene("s1")))

    r = playback_service.finish(LEARNER, pid)

    assert r["result"]["status"] == STATUS_COMPLETED
    assert pid not in STATE.playback
    again = playback_service.next_scene(LEARNER, pid)
    assert isinstance(again, Response) and again.status_code == 409
    other = playback_service.snapshot(Identity(user_id="learner-2"), pid)
    assert other.status_code == 403


def test_failed_attempt_is_evicted(store, build):
    pid = _start(store, build.course(build.scene("s1", build.survey("q1")), build.scene("s2")))

    playback_service.submit_survey(LEARNER, pid, {"elementId": "q1", "selected": ["b"]})

    assert store.get_progress(pid).status == STATUS_FAILED
    assert pid not in STATE.playback
    assert playback_service.tab_exit(LEARNER, pid).status_code == 409
