"""
Output rasterization for the circular cropper (Qt-free).

``RasterSurface`` is a small 2D surface on top of Pillow with the four
operations the export needs: clip to a circle, fill, draw an image into a
rectangle and encode.  ``render_circular_crop`` uses it to reproduce exactly
what the viewport shows on a fixed-size square raster.
"""

import io
import logging

from PIL import Image, ImageChops, ImageDraw

from avatar_crop_tool.config import (
    BACKGROUND_COLOR, CLIP_SUPERSAMPLE, OUTPUT_SIZE, PNG_COMPRESS_LEVEL, VIEWPORT_DIAMETER,
)
from avatar_crop_tool.image_io import EncodeError
from avatar_crop_tool.models import TransformState, draw_rect

logger = logging.getLogger(__name__)

# Pixels outside the clip keep this value: white, fully transparent
CLEAR_COLOR = (255, 255, 255, 0)


# =============================================================================
# Raster surface
# =============================================================================
class RasterSurface:
    """Square RGBA drawing surface with an optional circular clip."""

    def __init__(self, size: int, clear_color: tuple = CLEAR_COLOR):
        if size <= 0:
            raise ValueError(f"surface size must be positive, got {size}")
        self.size = size
        self._canvas = Image.new("RGBA", (size, size), clear_color)
        self._clip: Image.Image | None = None

    def clip_circle(self, supersample: int = CLIP_SUPERSAMPLE) -> None:
        """Restrict later drawing to the circle inscribed in the surface.

        The edge is anti-aliased. The mask circle is centred on the surface
        and pulled in by one output pixel, so its soft band never reaches a
        pixel whose centre lies outside the inscribed circle.
        """
        ss = max(1, supersample)
        big = self.size * ss
        mask = Image.new("L", (big, big), 0)
        ImageDraw.Draw(mask).ellipse((ss, ss, big - ss, big - ss), fill=255)
        if big != self.size:
            mask = mask.resize((self.size, self.size), Image.Resampling.BOX)
        self._clip = mask

    def fill(self, color: tuple) -> None:
        """Fill the clip region with an opaque colour."""
        layer = Image.new("RGBA", (self.size, self.size), (*color[:3], 255))
        self._composite(layer)

    def draw_image(self, image: Image.Image, x: float, y: float, w: float, h: float) -> None:
        """Draw *image* scaled into the rectangle ``(x, y, w, h)``.

        Large downscales are box-reduced first so the affine resample does
        not alias; placement keeps sub-pixel precision.
        """
        if w <= 0 or h <= 0:
            return
        src = image if image.mode == "RGBA" else image.convert("RGBA")
        factor = int(min(src.width / w, src.height / h))
        if factor > 1:
            src = src.reduce(factor)
        sx = w / src.width
        sy = h / src.height
        layer = src.transform(
            (self.size, self.size),
            Image.Transform.AFFINE,
            (1 / sx, 0, -x / sx, 0, 1 / sy, -y / sy),
            resample=Image.Resampling.BICUBIC,
            fillcolor=(0, 0, 0, 0),
        )
        self._composite(layer)

    def _composite(self, layer: Image.Image) -> None:
        if self._clip is not None:
            layer.putalpha(ImageChops.multiply(layer.getchannel("A"), self._clip))
        self._canvas.alpha_composite(layer)

    def to_image(self) -> Image.Image:
        return self._canvas.copy()

    def encode(self, fmt: str = "PNG") -> bytes:
        """Encode the surface; raises ``EncodeError`` when no data comes out."""
        buf = io.BytesIO()
        try:
            if fmt.upper() == "PNG":
                self._canvas.save(buf, "PNG", compress_level=PNG_COMPRESS_LEVEL)
            else:
                self._canvas.save(buf, fmt)
        except (OSError, ValueError, KeyError) as exc:
            raise EncodeError(f"cannot encode {fmt}: {exc}") from exc
        data = buf.getvalue()
        if not data:
            raise EncodeError(f"{fmt} encoder produced no data")
        return data


# =============================================================================
# Circular crop
# =============================================================================
def render_circular_crop(
    image: Image.Image,
    transform: TransformState,
    base_scale: float,
    viewport_diameter: float = VIEWPORT_DIAMETER,
    output_size: int = OUTPUT_SIZE,
    background: tuple = BACKGROUND_COLOR,
) -> RasterSurface:
    """Render what the circular viewport shows onto an ``output_size`` square."""
    surface = RasterSurface(output_size)
    surface.clip_circle()
    surface.fill(background)
    rect = draw_rect(image.width, image.height, transform, base_scale, viewport_diameter, output_size)
    logger.debug(
        "Rendering %dx%d source at (%.1f, %.1f) size %.1fx%.1f on %dpx output",
        image.width, image.height, rect.x, rect.y, rect.w, rect.h, output_size,
    )
    surface.draw_image(image, rect.x, rect.y, rect.w, rect.h)
    return surface
