from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Callable, Union

TRANSITION_ACTIONS = ("next-scene", "goto-scene", "complete")


def _new_choice_id() -> str:
    return f"c-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


# ---- Typed payloads (one per element type) ----


@dataclass
class TextData:
    text: str = "Text"
    font_size: float = 16.0
    color: str = "#000000"
    background_color: str = "#ffffff"
    row: int = 1


@dataclass
class ImageData:
    url: str = "/placeholder.svg?height=150&width=200"
    alt: str = "Image"
    row: int = 1


@dataclass
class VideoData:
    url: str = ""
    autoplay: bool = False
    row: int = 1


@dataclass
class ButtonData:
    label: str = "Next scene"
    action: str = "next-scene"
    target_scene: str = ""
    background_color: str = "#3b82f6"
    text_color: str = "#ffffff"
    font_size: float = 16.0
    row: int = 1


@dataclass
class InputData:
    placeholder: str = "Type here..."
    label: str = "Input"
    required: bool = False
    multiline: bool = False
    row: int = 1


@dataclass
class HotspotData:
    label: str = "Hotspot"
    pulse_color: str = "#ef4444"
    action: str = "show-tooltip"
    tooltip_text: str = "Click here"
    tooltip_trigger: str = "click"
    row: int = 1


@dataclass
class TooltipData:
    text: str = "Hint"
    background_color: str = "#1f2937"
    text_color: str = "#ffffff"
    tooltip_trigger: str = "hover"
    row: int = 1


@dataclass
class ArrowData:
    color: str = "#3b82f6"
    thickness: float = 4.0
    row: int = 1


@dataclass
class PresentationData:
    url: str = ""
    file_name: str = "Presentation"
    kind: str = field(default="pdf", metadata={"key": "type"})
    row: int = 1


@dataclass
class SurveyChoice:
    id: str
    text: str = ""
    correct: bool = False


def _default_choices() -> list[SurveyChoice]:
    return [
        SurveyChoice(id=_new_choice_id(), text="Option 1", correct=True),
        SurveyChoice(id=_new_choice_id(), text="Option 2", correct=False),
    ]


@dataclass
class SurveyData:
    question: str = "Question?"
    choices: list[SurveyChoice] = field(default_factory=_default_choices)
    multiple: bool = False
    fail_on_wrong: bool = True
    row: int = 1

    def correct_ids(self) -> set[str]:
        return {c.id for c in self.choices if c.correct}


@dataclass
class ClickzoneData:
    label: str = "Click"
    action: str = "next-scene"
    row: int = 1


ElementData = Union[
    TextData,
    ImageData,
    VideoData,
    ButtonData,
    InputData,
    HotspotData,
    TooltipData,
    ArrowData,
    PresentationData,
    SurveyData,
    ClickzoneData,
]


# ---- Registry ----


@dataclass(frozen=True)
class ElementSpec:
    type: str
    data_cls: type
    interactive: bool
    # What the viewer shows / lets the learner do with it.
    affordances: tuple[str, ...]
    gates: Callable[[Any], bool] = lambda data: False
    default_size: tuple[int, int] = (200, 150)
    default_rotation: float | None = None


REGISTRY: dict[str, ElementSpec] = {
    spec.type: spec
    for spec in (
        ElementSpec("text", TextData, False, ("text",)),
        ElementSpec("image", ImageData, False, ("image", "resizable", "fullscreen")),
        ElementSpec("video", VideoData, False, ("video",)),
        ElementSpec(
            "button",
            ButtonData,
            True,
            ("button", "click"),
            gates=lambda data: data.action in TRANSITION_ACTIONS,
        ),
        ElementSpec("input", InputData, True, ("input", "value-capture"), default_size=(300, 40)),
        ElementSpec("hotspot", HotspotData, True, ("pulse", "click", "tooltip"), default_size=(80, 80)),
        ElementSpec("tooltip", TooltipData, False, ("tooltip",)),
        ElementSpec("arrow", ArrowData, False, ("arrow",), default_rotation=0),
        ElementSpec("presentation", PresentationData, True, ("presentation", "click", "overlay")),
        ElementSpec("survey", SurveyData, True, ("survey", "submit"), gates=lambda data: True),
        ElementSpec("clickzone", ClickzoneData, True, ("clickzone", "click")),
    )
}

ELEMENT_TYPES = tuple(REGISTRY.keys())

DEFAULT_POSITION = (50, 50)


class UnknownElementType(ValueError):
    pass


def spec_for(element_type: str) -> ElementSpec:
    spec = REGISTRY.get(element_type)
    if spec is None:
        raise UnknownElementType(f"Unknown element type {element_type!r}; allowed: {sorted(REGISTRY)}")
    return spec


def default_data(element_type: str) -> ElementData:
    return spec_for(element_type).data_cls()


def gates_transition(element_type: str, data: Any) -> bool:
    return bool(spec_for(element_type).gates(data))


# ---- JSON mapping (camelCase keys, like the stored documents) ----


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.capitalize() for p in rest)


def _json_key(f: Any) -> str:
    return f.metadata.get("key") or _camel(f.name)


def _coerce(value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)
    if isinstance(default, int) and not isinstance(default, bool):
        try:
            return int(value)
        except (TypeError, ValueError):
            return default
    if isinstance(default, float):
        try:
            return float(value)
        except (TypeError, ValueError):
            return default
    if isinstance(default, str):
        return "" if value is None else str(value)
    return value


def _parse_choices(raw: Any) -> list[SurveyChoice]:
    out: list[SurveyChoice] = []
    for c in raw or []:
        if not isinstance(c, dict):
            continue
        cid = str(c.get("id") or "").strip()
        if not cid:
            cid = _new_choice_id()
        out.append(SurveyChoice(id=cid, text=str(c.get("text") or ""), correct=bool(c.get("correct", False))))
    return out


def data_from_dict(element_type: str, raw: dict[str, Any] | None) -> ElementData:
    """
    Build the typed payload for `element_type` from a stored `data` object.
    Missing keys take the type's defaults; unknown keys are dropped.
    """
    spec = spec_for(element_type)
    raw = raw if isinstance(raw, dict) else {}
    defaults = spec.data_cls()
    kwargs: dict[str, Any] = {}
    for f in fields(spec.data_cls):
        key = _json_key(f)
        if key not in raw:
            continue
        if f.name == "choices":
            kwargs["choices"] = _parse_choices(raw[key])
            continue
        kwargs[f.name] = _coerce(raw[key], getattr(defaults, f.name))
    data = spec.data_cls(**kwargs)
    if data.row < 1:
        data.row = 1
    return data


def data_to_dict(data: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for f in fields(data):
        value = getattr(data, f.name)
        if f.name == "choices":
            value = [asdict(c) for c in value]
        out[_json_key(f)] = value
    return out


def update_data(element_type: str, data: Any, updates: dict[str, Any]) -> ElementData:
    """Merge camelCase `updates` over an existing payload and re-validate it through the registry."""
    merged = data_to_dict(data)
    merged.update(updates or {})
    return data_from_dict(element_type, merged)
