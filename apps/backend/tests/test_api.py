from __future__ import annotations

import io

from PIL import Image


def _create_course(client, admin, title="Onboarding") -> str:
    r = client.post("/api/courses", json={"title": title, "description": "First steps"}, headers=admin)
    assert r.status_code == 200
    return r.json()["course"]["id"]


def _editor(course_id: str) -> str:
    return f"/api/editor/{course_id}"


def _sized_scene(client, admin, course_id: str, width=1600, height=900) -> str:
    r = client.post(f"{_editor(course_id)}/scenes", json={"name": "Intro"}, headers=admin)
    scene_id = r.json()["scene"]["id"]
    r = client.post(
        f"{_editor(course_id)}/scenes/{scene_id}/background",
        json={"screenshot": "/media/bg.png", "naturalWidth": width, "naturalHeight": height},
        headers=admin,
    )
    assert r.status_code == 200
    assert r.json()["sized"] is True
    return scene_id


def test_health(client):
    body = client.get("/api/health").json()
    assert body["ok"] is True
    assert body["playbackSessions"] == 0


def test_identity_is_required(client, learner):
    assert client.get("/api/my/courses").status_code == 401
    assert client.get("/api/courses", headers=learner).status_code == 403


def test_author_publish_and_play_through(client, admin, learner):
    course_id = _create_course(client, admin)
    assert client.post(f"{_editor(course_id)}/open", headers=admin).status_code == 200

    s1 = _sized_scene(client, admin, course_id)
    r = client.post(
        f"{_editor(course_id)}/scenes/{s1}/elements",
        json={"type": "button", "position": {"x": 800, "y": 450}, "size": {"width": 160, "height": 90}},
        headers=admin,
    )
    button_id = r.json()["element"]["id"]
    assert r.json()["element"]["position"] == {"x": 800, "y": 450}

    r = client.post(f"{_editor(course_id)}/scenes", json={"name": "Outro"}, headers=admin)
    s2 = r.json()["scene"]["id"]
    r = client.post(f"{_editor(course_id)}/scenes/{s2}/background", json={"screenshot": None}, headers=admin)
    assert r.json()["scene"]["screenshotNaturalWidth"] == 800

    r = client.post(f"{_editor(course_id)}/save", headers=admin)
    assert r.status_code == 200, r.text
    stored = r.json()["course"]["scenes"][0]["elements"][0]
    assert stored["positionPercent"] == {"x": 50, "y": 50}
    assert stored["sizePercent"] == {"width": 10, "height": 10}

    assert client.post(f"/api/courses/{course_id}/publish", headers=admin).json()["course"]["published"] is True
    client.post(f"/api/courses/{course_id}/assign", json={"userId": "learner-1"}, headers=admin)
    assert [c["id"] for c in client.get("/api/my/courses", headers=learner).json()["courses"]] == [course_id]

    r = client.post(f"/api/courses/{course_id}/start", headers=learner)
    assert r.status_code == 200
    progress_id = r.json()["progressId"]
    assert r.json()["state"]["sceneIndex"] == 0

    r = client.post(f"/api/playback/{progress_id}/render", json={"availableWidth": 800, "availableHeight": 450}, headers=learner)
    [item] = r.json()["elements"]
    assert item["rect"]["left"] == 400 and item["rect"]["top"] == 225
    assert item["rect"]["width"] == 80 and item["rect"]["height"] == 45
    assert item["data"]["action"] == "next-scene"

    # Gated until the transition button is clicked.
    r = client.post(f"/api/playback/{progress_id}/next", headers=learner)
    assert r.json()["result"]["moved"] is False

    r = client.post(f"/api/playback/{progress_id}/click", json={"elementId": button_id}, headers=learner)
    assert r.json()["result"]["moved"] is True
    assert r.json()["state"]["sceneIndex"] == 1

    client.post(f"/api/playback/{progress_id}/tab-exit", headers=learner)
    r = client.post(f"/api/playback/{progress_id}/finish", headers=learner)
    assert r.json()["result"]["status"] == "completed"
    assert r.json()["result"]["redirect"] == "/dashboard/completed"

    assert client.post(f"/api/playback/{progress_id}/next", headers=learner).status_code == 409

    [done] = client.get("/api/progress/completed", headers=learner).json()["completed"]
    assert done["courseTitle"] == "Onboarding"
    assert done["tabExits"] == 1
    assert [i["action"] for i in done["interactions"]] == ["click"]

    analytics = client.get(f"/api/courses/{course_id}/analytics", headers=admin).json()
    assert analytics["summary"]["completed"] == 1
    assert analytics["users"][0]["attemptsCount"] == 1


def test_learner_cannot_start_unassigned_or_unpublished(client, store, admin, learner, build):
    store.save_course(build.course(build.scene("s1"), published=False))
    assert client.post("/api/courses/course-1/start", headers=learner).status_code == 403

    store.assign("course-1", "learner-1", "admin-1")
    assert client.post("/api/courses/course-1/start", headers=learner).status_code == 403
    # Admins can preview anything.
    assert client.post("/api/courses/course-1/start", headers=admin).status_code == 200


def test_failed_survey_ends_the_attempt(client, store, learner, build):
    store.save_course(build.course(build.scene("s1", build.survey("q1")), build.scene("s2")))
    store.assign("course-1", "learner-1", "admin-1")
    progress_id = client.post("/api/courses/course-1/start", headers=learner).json()["progressId"]

    r = client.post(f"/api/playback/{progress_id}/submit", json={"elementId": "q1", "selected": ["c"]}, headers=learner)

    assert r.json()["result"]["surveyCorrect"] is False
    assert r.json()["result"]["redirect"] == "/dashboard/courses"
    assert store.get_progress(progress_id).status == "failed"
    again = client.post(f"/api/playback/{progress_id}/submit", json={"elementId": "q1", "selected": ["a"]}, headers=learner)
    assert again.status_code == 409


def test_someone_elses_attempt_is_off_limits(client, store, learner, build):
    store.save_course(build.course(build.scene("s1")))
    store.assign("course-1", "learner-1", "admin-1")
    progress_id = client.post("/api/courses/course-1/start", headers=learner).json()["progressId"]

    other = {"X-User-Id": "learner-2", "X-User-Role": "user"}
    assert client.get(f"/api/playback/{progress_id}", headers=other).status_code == 403


def test_save_rejects_goto_to_missing_scene(client, admin):
    course_id = _create_course(client, admin)
    client.post(f"{_editor(course_id)}/open", headers=admin)
    s1 = _sized_scene(client, admin, course_id)
    client.post(
        f"{_editor(course_id)}/scenes/{s1}/elements",
        json={"type": "button", "data": {"action": "goto-scene", "targetScene": "nowhere"}},
        headers=admin,
    )

    r = client.post(f"{_editor(course_id)}/save", headers=admin)

    assert r.status_code == 422
    assert "nowhere" in r.text


def test_editor_move_resize_and_rows(client, admin):
    course_id = _create_course(client, admin)
    client.post(f"{_editor(course_id)}/open", headers=admin)
    s1 = _sized_scene(client, admin, course_id)
    base = f"{_editor(course_id)}/scenes/{s1}/elements"

    r = client.post(base, json={"type": "image", "position": {"x": 100, "y": 100}, "size": {"width": 200, "height": 100}}, headers=admin)
    image_id = r.json()["element"]["id"]
    client.post(base, json={"type": "text", "data": {"row": 2}}, headers=admin)

    r = client.post(
        f"{base}/{image_id}/move",
        json={"dx": 50, "dy": 25, "displayWidth": 800, "displayHeight": 450},
        headers=admin,
    )
    assert r.json()["element"]["position"] == {"x": 200, "y": 150}

    r = client.post(f"{base}/{image_id}/resize", json={"mediaWidth": 3200, "mediaHeight": 900}, headers=admin)
    assert r.json()["element"]["position"] == {"x": 0, "y": 150}
    assert r.json()["element"]["size"] == {"width": 1600, "height": 450}

    r = client.get(base, params={"rows": [2]}, headers=admin)
    assert r.json()["rows"] == [1, 2]
    assert [e["type"] for e in r.json()["elements"]] == ["text"]

    r = client.patch(f"{base}/{image_id}", json={"data": {"alt": "Screenshot"}, "rotation": 15}, headers=admin)
    assert r.json()["element"]["data"]["alt"] == "Screenshot"
    assert r.json()["element"]["rotation"] == 15

    assert client.delete(f"{base}/{image_id}", headers=admin).json() == {"ok": True}
    assert client.post(base, json={"type": "carousel"}, headers=admin).status_code == 400


def test_editor_defaults_for_new_elements(client, admin):
    course_id = _create_course(client, admin)
    client.post(f"{_editor(course_id)}/open", headers=admin)
    s1 = _sized_scene(client, admin, course_id)

    r = client.post(f"{_editor(course_id)}/scenes/{s1}/elements", json={"type": "hotspot"}, headers=admin)

    el = r.json()["element"]
    assert el["position"] == {"x": 50, "y": 50}
    assert el["size"] == {"width": 80, "height": 80}


def test_background_is_captured_once_per_file(client, admin):
    course_id = _create_course(client, admin)
    client.post(f"{_editor(course_id)}/open", headers=admin)
    s1 = _sized_scene(client, admin, course_id)
    url = f"{_editor(course_id)}/scenes/{s1}/background"

    same = client.post(url, json={"screenshot": "/media/bg.png", "naturalWidth": 10, "naturalHeight": 10}, headers=admin)
    assert same.json()["scene"]["screenshotNaturalWidth"] == 1600

    other = client.post(url, json={"screenshot": "/media/new.png", "naturalWidth": 800, "naturalHeight": 450}, headers=admin)
    assert other.json()["scene"]["screenshotNaturalWidth"] == 800

    bad = client.post(url, json={"screenshot": "/media/x.png", "naturalWidth": 0, "naturalHeight": 450}, headers=admin)
    assert bad.status_code == 400


def test_other_admin_cannot_edit(client, admin):
    course_id = _create_course(client, admin)
    other = {"X-User-Id": "admin-2", "X-User-Role": "admin"}
    superadmin = {"X-User-Id": "root", "X-User-Role": "superadmin"}

    assert client.post(f"{_editor(course_id)}/open", headers=other).status_code == 403
    assert client.put(f"/api/courses/{course_id}", json={"title": "Mine"}, headers=other).status_code == 403
    assert client.put(f"/api/courses/{course_id}", json={"title": "Fixed"}, headers=superadmin).status_code == 200


def test_export_then_import_creates_unpublished_copy(client, store, admin, build):
    store.save_course(build.course(build.scene("s1", build.button("b1"))))

    doc = client.get("/api/courses/course-1/export", headers=admin).json()
    r = client.post("/api/courses/import", json=doc, headers=admin)

    copy = r.json()["course"]
    assert copy["id"] != "course-1"
    assert copy["published"] is False
    assert copy["scenes"][0]["elements"][0]["positionPercent"] == {"x": 10, "y": 10}


def test_delete_course_and_reset_progress(client, store, admin, learner, build):
    store.save_course(build.course(build.scene("s1")))
    store.assign("course-1", "learner-1", "admin-1")
    progress_id = client.post("/api/courses/course-1/start", headers=learner).json()["progressId"]

    assert client.delete(f"/api/progress/{progress_id}", headers=admin).json() == {"ok": True}
    assert client.get(f"/api/playback/{progress_id}", headers=learner).status_code == 404

    assert client.delete("/api/courses/course-1", headers=admin).json() == {"ok": True}
    assert store.list_assignments(course_id="course-1") == []


def test_media_upload_reports_natural_size(client, admin):
    buf = io.BytesIO()
    Image.new("RGB", (64, 32), "white").save(buf, format="PNG")

    r = client.post("/api/media/upload", files={"file": ("shot one.png", buf.getvalue(), "image/png")}, headers=admin)

    body = r.json()
    assert (body["naturalWidth"], body["naturalHeight"]) == (64, 32)
    assert body["src"] == "/media/shot_one.png"
    assert client.get(body["src"]).status_code == 200

    bad = client.post("/api/media/upload", files={"file": ("notes.txt", b"hi", "text/plain")}, headers=admin)
    assert bad.status_code == 400
