import io
import math

import pytest
from PIL import Image

from avatar_crop_tool.image_io import parse_data_uri
from avatar_crop_tool.models import TransformState, fit_scale
from avatar_crop_tool.rasterize import CLEAR_COLOR, RasterSurface, render_circular_crop
from avatar_crop_tool.session import CropSession

WHITE = (255, 255, 255, 255)
RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)


def _render(image, offset=(0.0, 0.0), zoom=1.0) -> Image.Image:
    transform = TransformState(offset[0], offset[1], zoom)
    base = fit_scale(image.width, image.height, 220)
    return render_circular_crop(image, transform, base, 220, 400).to_image()


def _close(pixel, expected, tol=8):
    return all(abs(a - b) <= tol for a, b in zip(pixel, expected))


@pytest.mark.parametrize("w,h", [(800, 800), (1920, 1080), (240, 3200), (3, 2)])
def test_output_is_fixed_size_for_any_aspect(solid_image, w, h):
    session = CropSession(lambda uri: None, lambda: None, loader=lambda ref: solid_image(w, h))
    session.load("photo.png")
    session.set_zoom(2.7)
    session.nudge(31, -12)

    _mime, data = parse_data_uri(session.confirm())
    with Image.open(io.BytesIO(data)) as out:
        assert out.format == "PNG"
        assert out.size == (400, 400)
        assert out.mode == "RGBA"


def test_pixels_outside_circle_are_background_never_source(solid_image):
    out = _render(solid_image(1000, 600), zoom=4.0)

    for corner in [(0, 0), (399, 0), (0, 399), (399, 399), (20, 20), (380, 30)]:
        assert out.getpixel(corner) == CLEAR_COLOR

    checked = 0
    for deg in range(0, 360, 10):
        angle = math.radians(deg)
        x = int(200 + 204 * math.cos(angle))
        y = int(200 + 204 * math.sin(angle))
        if not (0 <= x < 400 and 0 <= y < 400):
            continue
        if math.hypot(x + 0.5 - 200, y + 0.5 - 200) <= 202:
            continue
        assert out.getpixel((x, y)) == CLEAR_COLOR
        checked += 1
    assert checked > 0

    assert out.getpixel((200, 200)) == RED


def test_circle_edge_is_symmetric_and_stays_inside_radius(solid_image):
    out = _render(solid_image(1000, 600), zoom=4.0)
    pixels = out.load()

    for y in range(400):
        for x in range(400):
            if math.hypot(x + 0.5 - 200, y + 0.5 - 200) > 200:
                assert pixels[x, y] == CLEAR_COLOR, (x, y)

    # Opposite edges of the anti-aliased band carry the same coverage
    for a, b in [((200, 1), (200, 398)), ((1, 200), (398, 200)), ((60, 60), (339, 339))]:
        assert abs(pixels[a][3] - pixels[b][3]) <= 1
    assert 0 < pixels[200, 1][3] < 255
    assert pixels[200, 5][3] == 255


def test_pan_scenario_places_image_centre_by_sampling(split_image):
    # base 220/800 = 0.275, zoom 2 → display 0.55, output factor 400/220:
    # the image is drawn at exactly 800px wide, centred at x ≈ 290.9
    out = _render(split_image(800), offset=(50, 0), zoom=2.0)

    assert _close(out.getpixel((200, 200)), RED)
    assert _close(out.getpixel((280, 200)), RED)
    assert _close(out.getpixel((302, 200)), BLUE)
    assert _close(out.getpixel((380, 200)), BLUE)


def test_exposed_margin_is_white_inside_circle(split_image):
    # zoom 1 → 400px wide image centred at x ≈ 290.9, left edge ≈ 90.9
    out = _render(split_image(800), offset=(50, 0), zoom=1.0)

    assert out.getpixel((60, 200)) == WHITE
    assert _close(out.getpixel((120, 200)), RED)
    assert _close(out.getpixel((330, 200)), BLUE)


def test_image_dragged_out_of_view_gives_blank_avatar(solid_image):
    out = _render(solid_image(500, 500), offset=(5000, 0))
    assert out.getpixel((200, 200)) == WHITE
    assert out.getpixel((0, 0)) == CLEAR_COLOR


def test_transparent_source_shows_white_background(solid_image):
    out = _render(solid_image(300, 300, color=(0, 0, 0, 0), mode="RGBA"))
    assert out.getpixel((200, 200)) == WHITE


def test_large_downscale_keeps_colour(solid_image):
    out = _render(solid_image(6000, 4000, color=(0, 128, 0)), zoom=0.2)
    assert _close(out.getpixel((200, 200)), (0, 128, 0, 255))


def test_surface_encode_produces_png_bytes():
    surface = RasterSurface(16)
    surface.clip_circle()
    surface.fill((255, 255, 255))
    data = surface.encode("PNG")
    assert data.startswith(b"\x89PNG\r\n\x1a\n")


def test_surface_rejects_non_positive_size():
    with pytest.raises(ValueError):
        RasterSurface(0)
