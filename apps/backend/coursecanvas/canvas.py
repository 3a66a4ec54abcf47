from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .config import ICON_SIZE_PX
from .errors import GeometryError
from .geometry import Percent, Pixels, check_dims, clamp_to_canvas, round_half_up, to_pixels

logger = logging.getLogger("cc.canvas")

ICON_TYPES = frozenset({"hotspot", "arrow"})


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class RenderRect:
    left: int
    top: int
    width: int
    height: int
    scale: float
    font_px: float | None = None
    icon_px: float | None = None
    stroke_px: float | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "left": self.left,
            "top": self.top,
            "width": self.width,
            "height": self.height,
            "scale": self.scale,
        }
        if self.font_px is not None:
            out["fontPx"] = self.font_px
        if self.icon_px is not None:
            out["iconPx"] = self.icon_px
        if self.stroke_px is not None:
            out["strokePx"] = self.stroke_px
        return out


@dataclass(frozen=True)
class ViewportState:
    """
    Everything a geometry operation needs to know about where a scene is shown.
    `natural_*` stay None until the background image has been decoded.
    """

    natural_width: float | None = None
    natural_height: float | None = None
    display_rect: Rect | None = None

    @property
    def is_sized(self) -> bool:
        return bool(
            self.natural_width
            and self.natural_height
            and self.natural_width > 0
            and self.natural_height > 0
            and self.display_rect is not None
        )

    @property
    def scale(self) -> float:
        if not self.is_sized:
            raise GeometryError("viewport is not sized yet")
        return uniform_scale(self.natural_width, self.natural_height, self.display_rect)


@dataclass(frozen=True)
class FitResult:
    display_width: int
    display_height: int
    scale: float

    def to_dict(self) -> dict[str, Any]:
        return {"displayW": self.display_width, "displayH": self.display_height, "scale": self.scale}


def uniform_scale(natural_w: float, natural_h: float, displayed: Rect) -> float:
    nw, nh = check_dims(natural_w, natural_h)
    # Same factor on both axes ("object-fit: contain").
    return min(float(displayed.width) / nw, float(displayed.height) / nh)


def scale_length(value: float, scale: float) -> float:
    """Font sizes, icon sizes, stroke widths: anything nested in an element scales with the box."""
    return round(float(value) * scale, 2)


def project(element: Any, natural_w: float, natural_h: float, displayed: Rect) -> RenderRect:
    g = element.geometry
    if isinstance(g, Percent):
        raise GeometryError(f"element {element.id!r} is still in percent space; convert it before projecting")
    scale = uniform_scale(natural_w, natural_h, displayed)
    width = g.width if g.width is not None else 0
    height = g.height if g.height is not None else 0

    font_px = None
    font_size = getattr(element.data, "font_size", None)
    if font_size is not None:
        font_px = scale_length(font_size, scale)

    icon_px = scale_length(ICON_SIZE_PX, scale) if element.type in ICON_TYPES else None
    stroke_px = None
    thickness = getattr(element.data, "thickness", None)
    if thickness is not None:
        stroke_px = scale_length(thickness, scale)

    return RenderRect(
        left=round_half_up(displayed.left + g.x * scale),
        top=round_half_up(displayed.top + g.y * scale),
        width=round_half_up(width * scale),
        height=round_half_up(height * scale),
        scale=scale,
        font_px=font_px,
        icon_px=icon_px,
        stroke_px=stroke_px,
    )


def fit_viewport(natural_w: float, natural_h: float, available_w: float, available_h: float) -> FitResult:
    """Largest box with the image's aspect ratio that fits the available space, never upscaled."""
    nw, nh = check_dims(natural_w, natural_h)
    aw, ah = check_dims(available_w, available_h, "available")
    scale = min(aw / nw, ah / nh, 1.0)
    return FitResult(display_width=round_half_up(nw * scale), display_height=round_half_up(nh * scale), scale=scale)


def render_scene(scene: Any, viewport: ViewportState) -> list[dict[str, Any]]:
    """
    Project every element of a (percent- or pixel-space) scene onto the viewport.
    Returns [] while the viewport is unsized, and for a scene whose geometry cannot be converted
    (the scene still shows, just without elements).
    """
    if not viewport.is_sized:
        return []
    try:
        elements = to_pixels(scene.elements, viewport.natural_width, viewport.natural_height)
        out: list[dict[str, Any]] = []
        for el in elements:
            rect = project(el, viewport.natural_width, viewport.natural_height, viewport.display_rect)
            item = {"id": el.id, "type": el.type, "rect": rect.to_dict()}
            if el.rotation is not None:
                item["rotation"] = el.rotation
            out.append(item)
        return out
    except GeometryError as e:
        logger.warning("render_scene: scene %r rendered without elements: %s", getattr(scene, "id", None), e)
        return []


class DragGesture:
    """
    One pointer drag of one element. Pointer coordinates are in displayed pixels;
    the element position written back is in natural-image pixels.
    """

    def __init__(self, element: Any, pointer_x: float, pointer_y: float, viewport: ViewportState) -> None:
        g = element.geometry
        if not isinstance(g, Pixels):
            raise GeometryError(f"element {element.id!r} must be in pixel space to be dragged")
        self.element_id = element.id
        self.viewport = viewport
        self.scale = viewport.scale
        if self.scale <= 0:
            raise GeometryError("displayed rect has no area")
        self._start = (float(pointer_x), float(pointer_y))
        self._origin = g

    def position_for(self, pointer_x: float, pointer_y: float) -> Pixels:
        dx = (float(pointer_x) - self._start[0]) / self.scale
        dy = (float(pointer_y) - self._start[1]) / self.scale
        g = self._origin
        c = clamp_to_canvas(
            round_half_up(g.x + dx),
            round_half_up(g.y + dy),
            g.width or 0,
            g.height or 0,
            self.viewport.natural_width,
            self.viewport.natural_height,
        )
        if g.has_size:
            return c
        return Pixels(x=c.x, y=c.y)


def apply_drag_delta(element: Any, dx_display: float, dy_display: float, viewport: ViewportState) -> Pixels:
    """Single-step form of DragGesture: a display-space delta applied to the element's stored position."""
    gesture = DragGesture(element, 0, 0, viewport)
    return gesture.position_for(dx_display, dy_display)
