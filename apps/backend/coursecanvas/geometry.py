from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Iterable, Union

from .config import PERCENT_PRECISION
from .errors import GeometryError

PIXELS = "pixels"
PERCENT = "percent"


@dataclass(frozen=True)
class Pixels:
    """
    Element geometry in natural-image pixels (editing space).
    Size is optional: some elements (arrows, tooltips loaded from older documents) only carry a position.
    """

    x: float
    y: float
    width: float | None = None
    height: float | None = None

    space = PIXELS

    @property
    def has_size(self) -> bool:
        return self.width is not None and self.height is not None


@dataclass(frozen=True)
class Percent:
    """Element geometry as percentages of the natural image size (storage space)."""

    x: float
    y: float
    width: float | None = None
    height: float | None = None

    space = PERCENT

    @property
    def has_size(self) -> bool:
        return self.width is not None and self.height is not None


Geometry = Union[Pixels, Percent]


def round_half_up(v: float) -> int:
    # Python's round() is banker's rounding; pixel snapping must not flip between neighbours.
    return int(math.floor(v + 0.5))


def check_dims(width: Any, height: Any, what: str = "natural") -> tuple[float, float]:
    try:
        w = float(width)
        h = float(height)
    except (TypeError, ValueError):
        raise GeometryError(f"{what} dimensions must be numbers, got {width!r}x{height!r}") from None
    if not (w > 0 and h > 0) or math.isinf(w) or math.isinf(h):
        raise GeometryError(f"{what} dimensions must be positive, got {width!r}x{height!r}")
    return w, h


def clamp_to_canvas(x: float, y: float, width: float, height: float, canvas_w: float, canvas_h: float) -> Pixels:
    """
    Shrink the box to fit the canvas, then slide it inside.
    The result always satisfies 0 <= x, x + width <= canvas_w (same for y/height).
    """
    cw, ch = check_dims(canvas_w, canvas_h, "canvas")
    w = min(max(0.0, float(width)), cw)
    h = min(max(0.0, float(height)), ch)
    max_x = max(0.0, cw - w)
    max_y = max(0.0, ch - h)
    nx = min(max(0.0, float(x)), max_x)
    ny = min(max(0.0, float(y)), max_y)
    return Pixels(x=_compact(nx), y=_compact(ny), width=_compact(w), height=_compact(h))


def _compact(v: float) -> float:
    # Keep whole numbers as ints so stored documents do not grow trailing ".0".
    if float(v).is_integer():
        return int(v)
    return v


def _pct(value: float, natural: float) -> float:
    return _compact(round(float(value) / natural * 100.0, PERCENT_PRECISION))


def _px(percent: float, natural: float) -> int:
    return round_half_up(float(percent) / 100.0 * natural)


def pixels_to_percent(g: Pixels, natural_w: float, natural_h: float) -> Percent:
    nw, nh = check_dims(natural_w, natural_h)
    if g.has_size:
        c = clamp_to_canvas(g.x, g.y, g.width, g.height, nw, nh)
        return Percent(x=_pct(c.x, nw), y=_pct(c.y, nh), width=_pct(c.width, nw), height=_pct(c.height, nh))
    x = min(max(0.0, float(g.x)), nw)
    y = min(max(0.0, float(g.y)), nh)
    return Percent(x=_pct(x, nw), y=_pct(y, nh))


def percent_to_pixels(g: Percent, natural_w: float, natural_h: float) -> Pixels:
    nw, nh = check_dims(natural_w, natural_h)
    if g.has_size:
        return Pixels(x=_px(g.x, nw), y=_px(g.y, nh), width=_px(g.width, nw), height=_px(g.height, nh))
    return Pixels(x=_px(g.x, nw), y=_px(g.y, nh))


def clamp_percent(g: Percent) -> Percent:
    """Force a percentage box inside [0, 100] on both axes (imported documents may be sloppy)."""
    if g.has_size:
        c = clamp_to_canvas(g.x, g.y, g.width, g.height, 100, 100)
        return Percent(x=c.x, y=c.y, width=c.width, height=c.height)
    return Percent(x=_compact(min(max(0.0, float(g.x)), 100.0)), y=_compact(min(max(0.0, float(g.y)), 100.0)))


def to_percent(elements: Iterable[Any], natural_w: float, natural_h: float) -> list[Any]:
    """
    Convert every pixel-space element to percent space. Percent-space elements pass through.
    Raises GeometryError for non-positive natural dimensions.
    """
    check_dims(natural_w, natural_h)
    out: list[Any] = []
    for el in elements:
        g = el.geometry
        if isinstance(g, Pixels):
            el = replace(el, geometry=pixels_to_percent(g, natural_w, natural_h))
        out.append(el)
    return out


def to_pixels(elements: Iterable[Any], natural_w: float, natural_h: float) -> list[Any]:
    """
    Convert every percent-space element to pixel space.
    Elements already in pixel space pass through unchanged, so applying this twice is a no-op.
    """
    check_dims(natural_w, natural_h)
    out: list[Any] = []
    for el in elements:
        g = el.geometry
        if isinstance(g, Percent):
            el = replace(el, geometry=percent_to_pixels(g, natural_w, natural_h))
        out.append(el)
    return out


def scene_to_pixels(scene: Any) -> Any:
    """
    Load boundary. Returns the scene in pixel space, or the same scene when it already is
    or when its natural size is still unknown (conversion waits for the image decode).
    """
    has_percent = any(isinstance(e.geometry, Percent) for e in scene.elements)
    if scene.geometry_space == PIXELS and not has_percent:
        return scene
    nw = scene.natural_width
    nh = scene.natural_height
    if not nw or not nh:
        return scene
    elements = to_pixels(scene.elements, nw, nh)
    return replace(scene, elements=elements, geometry_space=PIXELS)


def scene_to_percent(scene: Any) -> Any:
    """
    Save boundary. Any pixel-space element is converted, whatever the scene's tag says;
    that requires natural dimensions. A scene with no pixel geometry is returned as-is.
    """
    has_pixels = any(isinstance(e.geometry, Pixels) for e in scene.elements)
    if not has_pixels:
        return scene if scene.geometry_space == PERCENT else replace(scene, geometry_space=PERCENT)
    nw = scene.natural_width
    nh = scene.natural_height
    if not nw or not nh:
        raise GeometryError(f"scene {scene.id!r} has pixel geometry but no natural image size")
    elements = to_percent(scene.elements, nw, nh)
    return replace(scene, elements=elements, geometry_space=PERCENT)
