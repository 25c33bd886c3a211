import numpy as np
import pytest

from modules.layout import (
    REFERENCE_WIDTH,
    LayoutEngine,
    Placement,
    get_scaled_value,
    resolve_canvas_size,
)


@pytest.fixture(scope="module")
def engine():
    return LayoutEngine()


def layout_for(engine, y=0.85, x=0.5, scale=1.0, canvas=(1000, 1000), shadowed=(200, 200), clean=(160, 180)):
    return engine.compute_layout(*canvas, *shadowed, *clean, Placement(x=x, y=y, scale=scale))


@pytest.mark.parametrize(
    "base, width, expected",
    [
        (9, 3000, 9),
        (9, 1500, 4.5),
        (9, 6000, 18),
        (9, 600, 1.8),
    ],
)
def test_scaled_value(base, width, expected):
    assert get_scaled_value(base, width) == pytest.approx(expected)


def test_scaled_value_floor():
    assert get_scaled_value(9, 1) >= 0.5
    assert get_scaled_value(9, 1) == 0.5
    assert get_scaled_value(9, 1, min_value=2) == 2


def test_scaled_value_identity_at_reference():
    assert get_scaled_value(7.25, REFERENCE_WIDTH) == 7.25


@pytest.mark.parametrize("y, bottom", [(1.0, 1000), (0.5, 500), (0.0, 0)])
def test_y_anchors_bottom_edge(engine, y, bottom):
    rect = layout_for(engine, y=y).shadowed_subject_rect
    assert abs(rect.bottom - bottom) <= 1


def test_y_zero_places_subject_above_canvas(engine):
    assert layout_for(engine, y=0.0).shadowed_subject_rect.y < 0


def test_y_is_strictly_monotonic(engine):
    ys = [layout_for(engine, y=y).shadowed_subject_rect.y for y in np.linspace(0, 1, 101)]
    assert all(b > a for a, b in zip(ys, ys[1:]))


def test_scale_is_linear(engine):
    single = layout_for(engine, scale=0.5).shadowed_subject_rect
    double = layout_for(engine, scale=1.0).shadowed_subject_rect
    assert abs(double.width - 2 * single.width) <= 1
    assert abs(double.height - 2 * single.height) <= 1


def test_preview_and_export_are_proportional(engine):
    placement = Placement(x=0.42, y=0.77, scale=0.63)
    preview = engine.compute_layout(600, 450, 200, 160, 160, 120, placement)
    export = engine.compute_layout(3000, 2250, 1000, 800, 800, 600, placement)

    for name in ("shadowed_subject_rect", "product_rect", "reflection_rect"):
        small = getattr(preview, name)
        large = getattr(export, name)
        assert small.x / 600 == pytest.approx(large.x / 3000, abs=0.01)
        assert small.y / 450 == pytest.approx(large.y / 2250, abs=0.01)
        assert small.width / 600 == pytest.approx(large.width / 3000, abs=0.01)
        assert small.height / 450 == pytest.approx(large.height / 2250, abs=0.01)


def test_product_centered_in_shadow_padding(engine):
    layout = layout_for(engine, shadowed=(300, 300), clean=(200, 200))
    subject, product = layout.shadowed_subject_rect, layout.product_rect
    assert product.x - subject.x == 50
    assert product.y - subject.y == 50
    assert (product.width, product.height) == (200, 200)


def test_reflection_flush_with_product(engine):
    layout = layout_for(engine, x=0.31, y=0.613, scale=0.777)
    assert layout.reflection_rect.y == layout.product_rect.bottom
    assert layout.reflection_rect.x == layout.product_rect.x
    assert layout.reflection_rect.width == layout.product_rect.width
    assert layout.reflection_rect.height == layout.product_rect.height


def test_rects_are_integers(engine):
    layout = layout_for(engine, x=0.3337, y=0.4141, scale=0.777, shadowed=(333, 271), clean=(251, 199))
    for rect in (layout.shadowed_subject_rect, layout.product_rect, layout.reflection_rect):
        for value in rect.to_dict().values():
            assert isinstance(value, int)


def test_out_of_range_placement_is_not_clamped(engine):
    rect = layout_for(engine, x=1.5, y=1.5).shadowed_subject_rect
    assert rect.x > 1000
    assert rect.bottom == 1500


def test_invalid_scale():
    with pytest.raises(ValueError):
        Placement(scale=0)


@pytest.mark.parametrize("canvas", [(0, 100), (100, -1)])
def test_invalid_canvas(engine, canvas):
    with pytest.raises(ValueError):
        layout_for(engine, canvas=canvas)


def test_invalid_subject_size(engine):
    with pytest.raises(ValueError):
        layout_for(engine, clean=(0, 10))


def test_layout_to_dict(engine):
    data = layout_for(engine).to_dict()
    assert data["canvas_width"] == 1000
    assert set(data["reflection_rect"]) == {"x", "y", "width", "height"}


@pytest.mark.parametrize(
    "ratio, width, backdrop, expected",
    [
        ("1:1", 600, None, (600, 600)),
        ("4:3", 3000, None, (3000, 2250)),
        ("3:4", 600, None, (600, 800)),
        ("original", 600, (1920, 1080), (600, 338)),
        ("original", 600, None, (600, 450)),
        ("16:9", 600, None, (600, 450)),
    ],
)
def test_resolve_canvas_size(ratio, width, backdrop, expected):
    assert resolve_canvas_size(ratio, width, backdrop) == expected
