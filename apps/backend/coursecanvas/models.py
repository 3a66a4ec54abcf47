from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .elements import ElementData, data_from_dict, data_to_dict, gates_transition
from .geometry import PERCENT, PIXELS, Geometry, Percent, Pixels

STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
TERMINAL_STATUSES = {STATUS_COMPLETED, STATUS_FAILED}


def new_id(prefix: str) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def as_number(v: Any, default: float | None = None) -> float | None:
    if v is None or v == "":
        return default
    try:
        f = float(v)
    except (TypeError, ValueError):
        return default
    return int(f) if f.is_integer() else f


def _box(raw: Any, kx: str, ky: str) -> tuple[float | None, float | None]:
    if not isinstance(raw, dict):
        return None, None
    return as_number(raw.get(kx)), as_number(raw.get(ky))


@dataclass
class Element:
    id: str
    type: str
    data: ElementData
    geometry: Geometry
    rotation: float | None = None

    @property
    def row(self) -> int:
        return int(getattr(self.data, "row", 1) or 1)

    @property
    def gates_transition(self) -> bool:
        return gates_transition(self.type, self.data)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Element:
        etype = str(raw.get("type") or "")
        data = data_from_dict(etype, raw.get("data"))

        # Percent fields are the stored form; when a document carries both, they win.
        if isinstance(raw.get("positionPercent"), dict):
            x, y = _box(raw.get("positionPercent"), "x", "y")
            w, h = _box(raw.get("sizePercent"), "width", "height")
            geometry: Geometry = Percent(x=x or 0, y=y or 0, width=w, height=h)
        else:
            x, y = _box(raw.get("position"), "x", "y")
            w, h = _box(raw.get("size"), "width", "height")
            geometry = Pixels(x=x or 0, y=y or 0, width=w, height=h)
        if w is None or h is None:
            geometry = type(geometry)(x=geometry.x, y=geometry.y)

        return cls(
            id=str(raw.get("id") or new_id("element")),
            type=etype,
            data=data,
            geometry=geometry,
            rotation=as_number(raw.get("rotation")),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "type": self.type, "data": data_to_dict(self.data)}
        g = self.geometry
        pos_key, size_key = ("positionPercent", "sizePercent") if isinstance(g, Percent) else ("position", "size")
        out[pos_key] = {"x": g.x, "y": g.y}
        if g.has_size:
            out[size_key] = {"width": g.width, "height": g.height}
        if self.rotation is not None:
            out["rotation"] = self.rotation
        return out


@dataclass
class Scene:
    id: str
    name: str
    elements: list[Element] = field(default_factory=list)
    screenshot: str | None = None
    natural_width: int | None = None
    natural_height: int | None = None
    # In-memory only: which space the element geometry is in. Stored documents are always percent.
    geometry_space: str = PERCENT

    @property
    def is_sized(self) -> bool:
        return bool(self.natural_width and self.natural_height and self.natural_width > 0 and self.natural_height > 0)

    def element(self, element_id: str) -> Element | None:
        return next((e for e in self.elements if e.id == element_id), None)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Scene:
        elements: list[Element] = []
        for e in raw.get("elements") or []:
            if isinstance(e, dict):
                elements.append(Element.from_dict(e))
        has_pixels = any(isinstance(e.geometry, Pixels) for e in elements)
        nw = as_number(raw.get("screenshotNaturalWidth"))
        nh = as_number(raw.get("screenshotNaturalHeight"))
        return cls(
            id=str(raw.get("id") or new_id("scene")),
            name=str(raw.get("name") or ""),
            elements=elements,
            screenshot=raw.get("screenshot") or None,
            natural_width=int(nw) if nw else None,
            natural_height=int(nh) if nh else None,
            geometry_space=PIXELS if has_pixels else PERCENT,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.screenshot:
            out["screenshot"] = self.screenshot
        if self.natural_width and self.natural_height:
            out["screenshotNaturalWidth"] = self.natural_width
            out["screenshotNaturalHeight"] = self.natural_height
        out["elements"] = [e.to_dict() for e in self.elements]
        return out


@dataclass
class Course:
    id: str
    title: str
    description: str = ""
    scenes: list[Scene] = field(default_factory=list)
    created_by: str = ""
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    published: bool = False
    thumbnail: str | None = None

    def scene_index(self, scene_id: str) -> int:
        for i, s in enumerate(self.scenes):
            if s.id == scene_id:
                return i
        return -1

    def scene(self, scene_id: str) -> Scene | None:
        i = self.scene_index(scene_id)
        return self.scenes[i] if i >= 0 else None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Course:
        return cls(
            id=str(raw.get("id") or new_id("course")),
            title=str(raw.get("title") or ""),
            description=str(raw.get("description") or ""),
            scenes=[Scene.from_dict(s) for s in raw.get("scenes") or [] if isinstance(s, dict)],
            created_by=str(raw.get("createdBy") or ""),
            created_at=str(raw.get("createdAt") or now_iso()),
            updated_at=str(raw.get("updatedAt") or now_iso()),
            published=bool(raw.get("published", False)),
            thumbnail=raw.get("thumbnail") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "scenes": [s.to_dict() for s in self.scenes],
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "published": self.published,
        }
        if self.thumbnail:
            out["thumbnail"] = self.thumbnail
        return out


@dataclass(frozen=True)
class UserInteraction:
    timestamp: str
    scene_id: str
    element_id: str
    element_type: str
    action: str
    value: Any = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> UserInteraction:
        return cls(
            timestamp=str(raw.get("timestamp") or ""),
            scene_id=str(raw.get("sceneId") or ""),
            element_id=str(raw.get("elementId") or ""),
            element_type=str(raw.get("elementType") or ""),
            action=str(raw.get("action") or ""),
            value=raw.get("value"),
        )

    def to_dict(self) -> dict[str, Any]:
        out = {
            "timestamp": self.timestamp,
            "sceneId": self.scene_id,
            "elementId": self.element_id,
            "elementType": self.element_type,
            "action": self.action,
        }
        if self.value is not None:
            out["value"] = self.value
        return out


@dataclass
class CourseProgress:
    id: str
    user_id: str
    course_id: str
    started_at: str = field(default_factory=now_iso)
    completed_at: str | None = None
    duration: int = 0
    tab_exits: int = 0
    status: str = STATUS_IN_PROGRESS
    current_scene: str | None = None
    interactions: list[UserInteraction] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> CourseProgress:
        return cls(
            id=str(raw.get("id") or new_id("progress")),
            user_id=str(raw.get("userId") or ""),
            course_id=str(raw.get("courseId") or ""),
            started_at=str(raw.get("startedAt") or now_iso()),
            completed_at=raw.get("completedAt") or None,
            duration=int(raw.get("duration") or 0),
            tab_exits=int(raw.get("tabExits") or 0),
            status=str(raw.get("status") or STATUS_IN_PROGRESS),
            current_scene=raw.get("currentScene") or None,
            interactions=[UserInteraction.from_dict(i) for i in raw.get("interactions") or [] if isinstance(i, dict)],
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "userId": self.user_id,
            "courseId": self.course_id,
            "startedAt": self.started_at,
            "duration": self.duration,
            "tabExits": self.tab_exits,
            "status": self.status,
            "interactions": [i.to_dict() for i in self.interactions],
        }
        if self.completed_at:
            out["completedAt"] = self.completed_at
        if self.current_scene:
            out["currentScene"] = self.current_scene
        return out


@dataclass(frozen=True)
class CourseAssignment:
    id: str
    course_id: str
    user_id: str
    assigned_by: str
    assigned_at: str

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> CourseAssignment:
        return cls(
            id=str(raw.get("id") or new_id("assignment")),
            course_id=str(raw.get("courseId") or ""),
            user_id=str(raw.get("userId") or ""),
            assigned_by=str(raw.get("assignedBy") or ""),
            assigned_at=str(raw.get("assignedAt") or now_iso()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "courseId": self.course_id,
            "userId": self.user_id,
            "assignedBy": self.assigned_by,
            "assignedAt": self.assigned_at,
        }
