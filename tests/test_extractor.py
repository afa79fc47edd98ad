import numpy as np
import pytest

from orbfeatures.extractor import ORBExtractor


def _noise_image(rows=120, cols=160, seed=0):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(rows, cols), dtype=np.uint8)


def _extractor():
    return ORBExtractor(300, 1.2, 3, 20, 7)


def test_scale_factor_tables_consistent():
    ex = ORBExtractor(1000, 1.2, 8, 20, 7)
    assert ex.scale_factors[0] == 1.0
    assert len(ex.scale_factors) == ex.levels == 8
    assert all(a < b for a, b in zip(ex.scale_factors, ex.scale_factors[1:]))
    for s, inv, s2, inv2 in zip(
        ex.scale_factors,
        ex.inverse_scale_factors,
        ex.scale_sigma_squares,
        ex.inverse_scale_sigma_squares,
    ):
        assert s * inv == pytest.approx(1.0, rel=1e-6)
        assert s2 == pytest.approx(s * s, rel=1e-6)
        assert s2 * inv2 == pytest.approx(1.0, rel=1e-6)


def test_features_per_level_sum_and_decrease():
    ex = ORBExtractor(1000, 1.2, 8, 20, 7)
    per_level = ex.features_per_level
    assert sum(per_level) == 1000
    assert all(a >= b for a, b in zip(per_level[:-1], per_level[1:-1]))


@pytest.mark.parametrize(
    "args",
    [(100, 1.0, 3, 20, 7), (100, 1.2, 0, 20, 7), (-1, 1.2, 3, 20, 7)],
)
def test_invalid_parameters(args):
    with pytest.raises(ValueError):
        ORBExtractor(*args)


def test_pyramid_shapes():
    ex = _extractor()
    image = _noise_image()
    pyramid = ex.compute_pyramid(image)
    assert len(pyramid) == 3
    assert pyramid[0].shape == image.shape
    assert np.array_equal(pyramid[0], image)
    for finer, coarser in zip(pyramid, pyramid[1:]):
        assert coarser.shape[0] < finer.shape[0]
        assert coarser.shape[1] < finer.shape[1]


def test_extract_outputs_agree():
    ex = _extractor()
    image = _noise_image()
    keypoints, descriptors = ex(image, None)
    assert len(keypoints) > 0
    assert descriptors.shape == (len(keypoints), ex.descriptor_bytes)
    assert descriptors.dtype == np.uint8
    rows, cols = image.shape
    for kp in keypoints:
        assert 0 <= kp.octave < ex.levels
        assert 0 <= kp.x < cols
        assert 0 <= kp.y < rows
        assert 0.0 <= kp.angle < 360.0
        assert kp.size == float(int(31 * ex.scale_factors[kp.octave]))


def test_extract_octaves_are_ordered():
    keypoints, _ = _extractor()(_noise_image())
    octaves = [kp.octave for kp in keypoints]
    assert octaves == sorted(octaves)


def test_extract_is_deterministic():
    image = _noise_image(seed=3)
    k1, d1 = _extractor()(image)
    k2, d2 = _extractor()(image)
    assert k1 == k2
    assert np.array_equal(d1, d2)


def test_empty_image_gives_nothing():
    keypoints, descriptors = _extractor()(np.zeros((0, 0), dtype=np.uint8))
    assert keypoints == []
    assert descriptors.shape == (0, 32)


def test_flat_image_has_no_keypoints():
    keypoints, descriptors = _extractor()(np.full((120, 160), 128, dtype=np.uint8))
    assert keypoints == []
    assert descriptors.shape[0] == 0


def test_rejects_color_image():
    with pytest.raises(ValueError):
        _extractor()(np.zeros((40, 40, 3), dtype=np.uint8))


def test_keypoints_require_pyramid():
    with pytest.raises(RuntimeError):
        _extractor().compute_keypoints_octtree()


def test_grid_respects_level_budget():
    ex = _extractor()
    ex.compute_pyramid(_noise_image())
    levels = ex.compute_keypoints_grid()
    assert len(levels) == ex.levels
    for level, keys in enumerate(levels):
        assert len(keys) <= ex.features_per_level[level]
        assert all(kp.octave == level for kp in keys)
    assert sum(len(keys) for keys in levels) > 0


def test_octtree_levels_in_level_frame():
    ex = _extractor()
    pyramid = ex.compute_pyramid(_noise_image())
    levels = ex.compute_keypoints_octtree()
    for level, keys in enumerate(levels):
        rows, cols = pyramid[level].shape
        for kp in keys:
            assert kp.octave == level
            assert 16 <= kp.x < cols - 16
            assert 16 <= kp.y < rows - 16