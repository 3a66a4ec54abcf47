from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from coursecanvas.elements import ButtonData, SurveyChoice, SurveyData, TextData
from coursecanvas.geometry import PIXELS, Percent, Pixels
from coursecanvas.main import app
from coursecanvas.models import Course, Element, Scene
from coursecanvas.routers import media as media_router
from coursecanvas.services import media_service
from coursecanvas.state import reset_state
from coursecanvas.store import JsonCourseStore


@pytest.fixture
def store(tmp_path):
    s = JsonCourseStore(tmp_path / "db.json")
    reset_state(s)
    yield s
    reset_state()


@pytest.fixture
def client(store, tmp_path, monkeypatch):
    media_dir = tmp_path / "media"
    monkeypatch.setattr(media_service, "MEDIA_DIR", media_dir)
    monkeypatch.setattr(media_router, "MEDIA_DIR", media_dir)
    return TestClient(app)


@pytest.fixture
def admin():
    return {"X-User-Id": "admin-1", "X-User-Role": "admin"}


@pytest.fixture
def learner():
    return {"X-User-Id": "learner-1", "X-User-Role": "user"}


def button(eid: str, action: str = "next-scene", target: str = "") -> Element:
    return Element(
        id=eid,
        type="button",
        data=ButtonData(label=eid, action=action, target_scene=target),
        geometry=Percent(x=10, y=10, width=20, height=10),
    )


def survey(eid: str, correct: tuple[str, ...] = ("a",), multiple: bool = False, fail_on_wrong: bool = True) -> Element:
    choices = [SurveyChoice(id=c, text=c.upper(), correct=c in correct) for c in ("a", "b", "c")]
    return Element(
        id=eid,
        type="survey",
        data=SurveyData(question="Pick", choices=choices, multiple=multiple, fail_on_wrong=fail_on_wrong),
        geometry=Percent(x=30, y=30, width=40, height=30),
    )


def text(eid: str) -> Element:
    return Element(id=eid, type="text", data=TextData(text=eid), geometry=Percent(x=0, y=0, width=10, height=5))


def scene(sid: str, *elements: Element) -> Scene:
    return Scene(id=sid, name=sid, elements=list(elements), natural_width=1600, natural_height=900)


def pixel_scene(sid: str, *elements: Element) -> Scene:
    return Scene(
        id=sid,
        name=sid,
        elements=list(elements),
        natural_width=1600,
        natural_height=900,
        geometry_space=PIXELS,
    )


def course(*scenes: Scene, cid: str = "course-1", published: bool = True, owner: str = "admin-1") -> Course:
    return Course(id=cid, title="Onboarding", scenes=list(scenes), created_by=owner, published=published)


def pixel_element(eid: str, x: float, y: float, w: float, h: float) -> Element:
    return Element(id=eid, type="text", data=TextData(), geometry=Pixels(x=x, y=y, width=w, height=h))


@pytest.fixture
def build():
    """Small builders for courses, scenes and elements."""
    return SimpleNamespace(
        button=button,
        survey=survey,
        text=text,
        scene=scene,
        pixel_scene=pixel_scene,
        course=course,
        pixel_element=pixel_element,
    )
