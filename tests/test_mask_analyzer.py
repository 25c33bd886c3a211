import numpy as np
import pytest

from modules.mask_analyzer import (
    AlphaMaskAnalyzer,
    AnalysisCanvas,
    bottom_contour,
    foreground_bounds,
)

from .conftest import make_cutout, tilted_polygon


@pytest.fixture(params=["morphological", "contour"])
def analyzer(request):
    return AlphaMaskAnalyzer(variant=request.param)


def test_unknown_variant():
    with pytest.raises(ValueError):
        AlphaMaskAnalyzer(variant="hough")


def test_straight_base_samples_flat_contour(analyzer, straight_cutout):
    sample = analyzer.sample(straight_cutout)
    assert sample.bounds == (60, 40, 340, 200)
    assert sample.count == 281
    assert (sample.points[:, 1] == 200).all()
    assert np.array_equal(sample.points[:, 0], np.arange(60, 341))


def test_empty_image_has_no_object(analyzer):
    sample = analyzer.sample(np.zeros((50, 80, 4), dtype=np.uint8))
    assert sample.bounds is None
    assert sample.count == 0


def test_input_is_not_modified(analyzer, noisy_cutout):
    before = noisy_cutout.copy()
    analyzer.sample(noisy_cutout)
    assert np.array_equal(before, noisy_cutout)


def test_large_images_are_downscaled(analyzer):
    image = make_cutout(1200, 600, [(100, 100), (1100, 100), (1100, 500), (100, 500)])
    sample = analyzer.sample(image)
    assert (sample.analysis_width, sample.analysis_height) == (600, 300)
    assert sample.points[:, 0].max() < 600


def test_morphological_drops_detached_fragments(noisy_cutout):
    sample = AlphaMaskAnalyzer(variant="morphological").sample(noisy_cutout)
    # Tag sits at rows 270-299; the product base never goes below row 225
    assert sample.points[:, 1].max() < 230


def test_contour_keeps_detached_fragments(noisy_cutout):
    sample = AlphaMaskAnalyzer(variant="contour").sample(noisy_cutout)
    assert sample.points[:, 1].max() == 299


def test_closing_fills_pinholes(noisy_cutout):
    analyzer = AlphaMaskAnalyzer(variant="morphological", closing_radius=3)
    alpha = noisy_cutout[:, :, 3]
    holes = np.argwhere(alpha[60:180, 80:320] == 0) + [60, 80]
    assert len(holes) > 0

    closed = analyzer.close_mask(alpha)
    assert (closed[holes[:, 0], holes[:, 1]] == 255).all()
    # Object does not grow
    assert closed[:40].max() == 0


def test_keep_largest_component():
    analyzer = AlphaMaskAnalyzer(variant="morphological")
    alpha = np.zeros((50, 50), dtype=np.uint8)
    alpha[5:30, 5:30] = 255
    alpha[40:45, 40:45] = 255
    alpha[0, 49] = 19  # Below the foreground threshold

    kept = analyzer.keep_largest_component(alpha)
    assert kept[10, 10] == 255
    assert kept[42, 42] == 0
    assert kept[0, 49] == 0


def test_keep_largest_component_uses_4_connectivity():
    analyzer = AlphaMaskAnalyzer(variant="morphological")
    alpha = np.zeros((20, 20), dtype=np.uint8)
    alpha[2:10, 2:10] = 255
    alpha[10:17, 10:17] = 255  # Touches the first square only diagonally

    kept = analyzer.keep_largest_component(alpha)
    assert kept[5, 5] == 255
    assert kept[15, 15] == 0


def test_keep_largest_component_empty():
    analyzer = AlphaMaskAnalyzer(variant="morphological")
    assert analyzer.keep_largest_component(np.zeros((10, 10), dtype=np.uint8)).max() == 0


def test_contour_threshold_ignores_soft_alpha():
    image = make_cutout(100, 100, [(10, 10), (90, 10), (90, 60), (10, 60)])
    image[61:80, 10:91, 3] = 150  # Soft shadow-like fringe
    sample = AlphaMaskAnalyzer(variant="contour").sample(image)
    assert sample.points[:, 1].max() == 60


def test_bottom_contour_helper():
    mask = np.zeros((6, 5), dtype=bool)
    mask[1:4, 1] = True
    mask[2:6, 3] = True
    points = bottom_contour(mask)
    assert points.tolist() == [[1.0, 3.0], [3.0, 5.0]]
    assert foreground_bounds(mask) == (1, 1, 3, 5)
    assert bottom_contour(mask, (1, 1, 3, 5)).tolist() == points.tolist()


def test_analysis_canvas_releases_buffer(tilted_cutout):
    with AnalysisCanvas(tilted_cutout, 600) as canvas:
        assert canvas.alpha.shape == (300, 400)
    assert canvas.alpha is None


def test_tilted_contour_follows_base(tilted_cutout):
    sample = AlphaMaskAnalyzer(variant="contour").sample(tilted_cutout)
    assert sample.points[0].tolist() == [60.0, 200.0]
    assert sample.points[-1, 1] == max(p[1] for p in tilted_polygon(5))
