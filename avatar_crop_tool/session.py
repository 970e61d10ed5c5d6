"""
Cropper session: the Qt-free state machine behind the circular cropper.

One ``CropSession`` covers one invocation of the cropper::

    LOADING ──▶ READY ⇄ DRAGGING ──confirm──▶ CONFIRMED
       │
       └──▶ LOAD_ERROR            any non-terminal ──cancel──▶ CANCELLED

Image loading and rasterization are injected so the session can be driven
from a background loader thread (the Qt dialog) or synchronously (tests,
scripts).  Load and encode failures never escape: they move the session to
a state where only cancel (or a retry of confirm) is possible.
"""

import logging
from typing import Callable

from PIL import Image

from avatar_crop_tool.config import (
    BACKGROUND_COLOR, OUTPUT_SIZE, VIEWPORT_DIAMETER, ZOOM_DEFAULT, ZOOM_MAX, ZOOM_MIN, ZOOM_STEP,
)
from avatar_crop_tool.image_io import EncodeError, LoadError, load_image, to_data_uri
from avatar_crop_tool.models import (
    Phase, PointerEvent, PointerPhase, TransformState, clamp_zoom, fit_scale,
)
from avatar_crop_tool.rasterize import RasterSurface, render_circular_crop

logger = logging.getLogger(__name__)


class CropSession:
    """Pan/zoom state for one image inside a fixed circular viewport."""

    def __init__(
        self,
        on_confirm: Callable[[str], None],
        on_cancel: Callable[[], None],
        *,
        viewport_diameter: float = VIEWPORT_DIAMETER,
        output_size: int = OUTPUT_SIZE,
        zoom_min: float = ZOOM_MIN,
        zoom_max: float = ZOOM_MAX,
        background: tuple = BACKGROUND_COLOR,
        loader: Callable[[str], Image.Image] = load_image,
        rasterizer: Callable[..., RasterSurface] = render_circular_crop,
    ):
        if viewport_diameter <= 0 or output_size <= 0:
            raise ValueError("viewport diameter and output size must be positive")
        if not 0 < zoom_min <= ZOOM_DEFAULT <= zoom_max:
            raise ValueError(f"zoom range [{zoom_min}, {zoom_max}] must contain {ZOOM_DEFAULT}")
        self._on_confirm = on_confirm
        self._on_cancel = on_cancel
        self.viewport_diameter = viewport_diameter
        self.output_size = output_size
        self.zoom_min = zoom_min
        self.zoom_max = zoom_max
        self.background = background
        self._loader = loader
        self._rasterizer = rasterizer

        self._phase = Phase.IDLE
        self._image: Image.Image | None = None
        self._natural_size = (0, 0)
        self._base_scale = 0.0
        self._transform = TransformState()
        self._error: str | None = None

        # Drag anchor: pointer position and offset at pointer-down
        self._anchor_pointer = (0.0, 0.0)
        self._anchor_offset = (0.0, 0.0)

    # --- Read-only state ---

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def transform(self) -> TransformState:
        return self._transform.copy()

    @property
    def zoom(self) -> float:
        return self._transform.zoom

    @property
    def base_scale(self) -> float:
        return self._base_scale

    @property
    def display_scale(self) -> float:
        """Effective on-screen scale of the source image."""
        return self._base_scale * self._transform.zoom

    @property
    def natural_size(self) -> tuple[int, int]:
        return self._natural_size

    @property
    def image(self) -> Image.Image | None:
        return self._image

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_interactive(self) -> bool:
        return self._phase in (Phase.READY, Phase.DRAGGING)

    @property
    def can_confirm(self) -> bool:
        return self.is_interactive

    @property
    def is_finished(self) -> bool:
        return self._phase.is_terminal

    # --- Loading ---

    def begin_load(self) -> None:
        """Enter LOADING and forget any previous image and transform."""
        if self.is_finished:
            return
        self._image = None
        self._natural_size = (0, 0)
        self._base_scale = 0.0
        self._transform = TransformState()
        self._error = None
        self._phase = Phase.LOADING
        logger.debug("Cropper session loading")

    def image_loaded(self, image: Image.Image) -> None:
        """Accept a decoded image and fit it to the viewport."""
        if self.is_finished:
            return
        try:
            base = fit_scale(image.width, image.height, self.viewport_diameter)
        except ValueError as exc:
            self.load_failed(str(exc))
            return
        self._image = image
        self._natural_size = (image.width, image.height)
        self._base_scale = base
        self._transform = TransformState()
        self._error = None
        self._phase = Phase.READY
        logger.debug(
            "Cropper ready: %dx%d, base scale %.4f", image.width, image.height, base,
        )

    def load_failed(self, message: str) -> None:
        if self.is_finished:
            return
        self._image = None
        self._error = message or "Image could not be loaded"
        self._phase = Phase.LOAD_ERROR
        logger.warning("Cropper image failed to load: %s", self._error)

    def load(self, image_ref: str) -> bool:
        """Load *image_ref* synchronously with the injected loader."""
        self.begin_load()
        try:
            image = self._loader(image_ref)
        except LoadError as exc:
            self.load_failed(str(exc))
            return False
        self.image_loaded(image)
        return self._phase == Phase.READY

    # --- Interaction ---

    def handle_pointer(self, event: PointerEvent) -> bool:
        """Feed one pointer sample; returns True if the offset changed."""
        if event.phase is PointerPhase.DOWN:
            if self._phase is not Phase.READY:
                return False
            self._anchor_pointer = (event.x, event.y)
            self._anchor_offset = (self._transform.offset_x, self._transform.offset_y)
            self._phase = Phase.DRAGGING
            self._error = None
            return False

        if event.phase is PointerPhase.MOVE:
            if self._phase is not Phase.DRAGGING:
                return False
            self._transform.offset_x = event.x - self._anchor_pointer[0] + self._anchor_offset[0]
            self._transform.offset_y = event.y - self._anchor_pointer[1] + self._anchor_offset[1]
            return True

        if self._phase is Phase.DRAGGING:
            self._phase = Phase.READY
        return False

    def set_zoom(self, zoom: float) -> float:
        """Set the zoom factor, clamped to the session's range."""
        if self.is_interactive:
            self._transform.zoom = clamp_zoom(zoom, self.zoom_min, self.zoom_max)
            self._error = None
        return self._transform.zoom

    def zoom_by(self, delta: float = ZOOM_STEP) -> float:
        # Round away float drift from repeated steps
        return self.set_zoom(round(self._transform.zoom + delta, 6))

    def nudge(self, dx: float, dy: float) -> None:
        if self.is_interactive:
            self._transform.offset_x += dx
            self._transform.offset_y += dy
            self._error = None

    def reset(self) -> None:
        """Restore the fit-to-viewport transform."""
        if self.is_interactive:
            self._transform = TransformState()
            self._error = None
            self._phase = Phase.READY

    # --- Outcome ---

    def render(self) -> RasterSurface:
        if self._image is None:
            raise RuntimeError("no image loaded")
        return self._rasterizer(
            self._image,
            self._transform.copy(),
            self._base_scale,
            self.viewport_diameter,
            self.output_size,
            self.background,
        )

    def confirm(self) -> str | None:
        """Rasterize the current view and hand the PNG data URI to the caller.

        Returns the data URI, or None if the session cannot confirm or the
        encoder failed (the session then stays READY).
        """
        if not self.can_confirm:
            logger.debug("Confirm ignored in phase %s", self._phase.value)
            return None
        self._phase = Phase.READY
        try:
            data = self.render().encode("PNG")
        except EncodeError as exc:
            self._error = str(exc)
            logger.warning("Cropper output could not be encoded: %s", exc)
            return None
        uri = to_data_uri(data, "image/png")
        self._error = None
        self._phase = Phase.CONFIRMED
        self._release()
        logger.info("Cropper confirmed %dpx avatar (%d bytes PNG)", self.output_size, len(data))
        self._on_confirm(uri)
        return uri

    def cancel(self) -> None:
        """End the session without output; safe to call repeatedly."""
        if self.is_finished:
            return
        self._phase = Phase.CANCELLED
        self._release()
        logger.debug("Cropper cancelled")
        self._on_cancel()

    def _release(self) -> None:
        self._image = None
        self._transform = TransformState()
        self._anchor_pointer = (0.0, 0.0)
        self._anchor_offset = (0.0, 0.0)
