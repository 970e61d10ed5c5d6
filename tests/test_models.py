import pytest

from avatar_crop_tool.models import Phase, TransformState, clamp_zoom, draw_rect, fit_scale


@pytest.mark.parametrize("w,h", [(800, 800), (1920, 1080), (1080, 1920), (37, 1000), (1, 5)])
def test_fit_scale_spans_viewport_with_shorter_side(w, h):
    base = fit_scale(w, h, 220)
    assert min(w, h) * base == pytest.approx(220)


def test_fit_scale_rejects_empty_image():
    with pytest.raises(ValueError):
        fit_scale(0, 100, 220)


def test_clamp_zoom_bounds():
    assert clamp_zoom(10.0, 0.2, 4.0) == 4.0
    assert clamp_zoom(0.01, 0.2, 4.0) == 0.2
    assert clamp_zoom(1.5, 0.2, 4.0) == 1.5


def test_draw_rect_centres_unpanned_image():
    rect = draw_rect(800, 600, TransformState(), 220 / 600, 220, 400)
    assert rect.center == pytest.approx((200.0, 200.0))
    # Shorter side spans the whole output
    assert rect.h == pytest.approx(400.0)


def test_draw_rect_scales_offset_into_output_pixels():
    transform = TransformState(offset_x=50, offset_y=0, zoom=2.0)
    rect = draw_rect(800, 800, transform, 220 / 800, 220, 400)
    cx, cy = rect.center
    assert cx == pytest.approx(200 + 50 * 400 / 220)
    assert cy == pytest.approx(200.0)
    assert rect.w == pytest.approx(800.0)
    assert rect.h == pytest.approx(800.0)


def test_terminal_phases():
    assert Phase.CONFIRMED.is_terminal
    assert Phase.CANCELLED.is_terminal
    assert not Phase.LOAD_ERROR.is_terminal
    assert not Phase.DRAGGING.is_terminal
