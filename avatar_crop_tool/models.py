"""
Data models and crop-geometry utilities.

TransformState, PointerEvent and Phase are the core data structures shared
between the cropper session, the rasterizer and the Qt widget.  The helper
functions handle the fit-to-viewport scale, zoom clamping and the mapping
from viewport display units to output pixels.
"""

from dataclasses import dataclass
from enum import Enum

from avatar_crop_tool.config import ZOOM_DEFAULT, ZOOM_MAX, ZOOM_MIN


# =============================================================================
# Data classes
# =============================================================================
@dataclass
class TransformState:
    """Pan offset (display units, image centre relative to viewport centre) and zoom."""
    offset_x: float = 0.0
    offset_y: float = 0.0
    zoom: float = ZOOM_DEFAULT

    def copy(self) -> "TransformState":
        return TransformState(self.offset_x, self.offset_y, self.zoom)


class PointerPhase(Enum):
    DOWN = "down"
    MOVE = "move"
    UP = "up"  # also used for pointer-leave


@dataclass(frozen=True)
class PointerEvent:
    """A mouse or touch sample in widget coordinates."""
    x: float
    y: float
    phase: PointerPhase


class Phase(Enum):
    """Lifecycle of one cropper session."""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    DRAGGING = "dragging"
    LOAD_ERROR = "load_error"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.CONFIRMED, Phase.CANCELLED)


@dataclass(frozen=True)
class DrawRect:
    """Placement of the source image on the output raster, in output pixels."""
    x: float
    y: float
    w: float
    h: float

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.w / 2, self.y + self.h / 2


# =============================================================================
# Crop math utilities
# =============================================================================
def fit_scale(img_w: int, img_h: int, viewport_diameter: float) -> float:
    """Scale at which the image's shorter side exactly spans the viewport."""
    shorter = min(img_w, img_h)
    if shorter <= 0:
        raise ValueError(f"image has no pixels: {img_w}x{img_h}")
    return viewport_diameter / shorter


def clamp_zoom(zoom: float, zoom_min: float = ZOOM_MIN, zoom_max: float = ZOOM_MAX) -> float:
    """Clamp a zoom factor to the configured range."""
    return max(zoom_min, min(zoom, zoom_max))


def draw_rect(
    img_w: int,
    img_h: int,
    transform: TransformState,
    base_scale: float,
    viewport_diameter: float,
    output_size: int,
) -> DrawRect:
    """Where the image lands on an ``output_size`` square raster.

    The viewport is mapped onto the output with ``output_size / viewport_diameter``;
    the pan offset is scaled by the same factor on both axes.
    """
    scale_factor = output_size / viewport_diameter
    final_scale = base_scale * transform.zoom * scale_factor
    w = img_w * final_scale
    h = img_h * final_scale
    cx = output_size / 2 + transform.offset_x * scale_factor
    cy = output_size / 2 + transform.offset_y * scale_factor
    return DrawRect(cx - w / 2, cy - h / 2, w, h)
