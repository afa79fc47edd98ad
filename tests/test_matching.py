import numpy as np
import pytest
from hypothesis import given
from hypothesis import strategies as st

from orbfeatures.keypoint import KeyPoint
from orbfeatures.matching import (
    HISTO_LENGTH,
    TH_HIGH,
    TH_LOW,
    ORBMatcher,
    RotationHistogram,
    check_dist_epipolar_line,
    compute_three_maxima,
    descriptor_distance,
    radius_by_viewing_cos,
    rotation_bin,
)

descriptors = st.lists(
    st.integers(min_value=0, max_value=255), min_size=32, max_size=32
).map(lambda v: np.array(v, dtype=np.uint8))


def test_identical_descriptors_have_zero_distance():
    d = np.arange(32, dtype=np.uint8)
    assert descriptor_distance(d, d) == 0


def test_opposite_descriptors_have_full_distance():
    a = np.zeros(32, dtype=np.uint8)
    b = np.full(32, 255, dtype=np.uint8)
    assert descriptor_distance(a, b) == 256


def test_short_descriptor_is_normalised_to_32_bytes():
    a = np.zeros(16, dtype=np.uint8)
    b = np.full(16, 255, dtype=np.uint8)
    assert descriptor_distance(a, b) == 256


def test_mismatched_descriptors_rejected():
    with pytest.raises(ValueError):
        descriptor_distance(np.zeros(32, np.uint8), np.zeros(16, np.uint8))


def test_empty_descriptors_rejected():
    with pytest.raises(ValueError):
        descriptor_distance(np.zeros(0, np.uint8), np.zeros(0, np.uint8))


@given(descriptors, descriptors)
def test_distance_is_symmetric_and_bounded(a, b):
    d = descriptor_distance(a, b)
    assert d == descriptor_distance(b, a)
    assert 0 <= d <= 256


@given(descriptors, descriptors, descriptors)
def test_distance_triangle_inequality(a, b, c):
    assert descriptor_distance(a, c) <= descriptor_distance(a, b) + descriptor_distance(b, c)


def test_three_maxima_order():
    hist = [[] for _ in range(HISTO_LENGTH)]
    hist[3] = list(range(10))
    hist[5] = list(range(5))
    hist[7] = list(range(4))
    assert compute_three_maxima(hist) == (3, 5, 7)


def test_three_maxima_drops_small_bins():
    hist = [[] for _ in range(HISTO_LENGTH)]
    hist[2] = list(range(50))
    hist[9] = list(range(20))
    hist[11] = [0]
    ind1, ind2, ind3 = compute_three_maxima(hist)
    assert (ind1, ind2) == (2, 9)
    assert ind3 == -1


def test_three_maxima_empty_histogram():
    assert compute_three_maxima([[] for _ in range(HISTO_LENGTH)]) == (-1, -1, -1)


def test_radius_by_viewing_cos():
    assert radius_by_viewing_cos(0.9999) == 2.5
    assert radius_by_viewing_cos(0.5) == 4.0


def test_rotation_bin_of_equal_angles_is_zero():
    assert rotation_bin(45.0, 45.0) == 0


@given(
    st.floats(min_value=0.0, max_value=359.9),
    st.floats(min_value=0.0, max_value=359.9),
)
def test_rotation_bin_in_range(a1, a2):
    assert 0 <= rotation_bin(a1, a2) < HISTO_LENGTH


def test_epipolar_degenerate_matrix_is_rejected():
    kp = KeyPoint(x=10.0, y=10.0)
    assert check_dist_epipolar_line(kp, kp, np.zeros((3, 3)), [1.0]) is False


def _vertical_line_matrix():
    # l = x1' F = [1, 0, -x1]: the vertical line through x = x1.
    f = np.zeros((3, 3), dtype=np.float32)
    f[0, 2] = -1.0
    f[2, 0] = 1.0
    return f


def test_epipolar_point_on_line_accepted():
    kp1 = KeyPoint(x=20.0, y=5.0)
    kp2 = KeyPoint(x=20.0, y=80.0)
    assert check_dist_epipolar_line(kp1, kp2, _vertical_line_matrix(), [1.0])


def test_epipolar_point_far_from_line_rejected():
    kp1 = KeyPoint(x=20.0, y=5.0)
    kp2 = KeyPoint(x=40.0, y=80.0)
    assert not check_dist_epipolar_line(kp1, kp2, _vertical_line_matrix(), [1.0])


def test_epipolar_uses_level_sigma_of_second_keypoint():
    kp1 = KeyPoint(x=20.0, y=5.0)
    kp2 = KeyPoint(x=40.0, y=80.0, octave=1)
    assert check_dist_epipolar_line(kp1, kp2, _vertical_line_matrix(), [1.0, 1000.0])


def test_epipolar_rejects_bad_matrix_shape():
    kp = KeyPoint(x=1.0, y=1.0)
    with pytest.raises(ValueError):
        check_dist_epipolar_line(kp, kp, np.zeros((2, 2)), [1.0])


def test_histogram_reports_outliers():
    hist = RotationHistogram()
    for i in range(20):
        hist.add(10.0, 10.0, i)
    stray_bin = hist.add(100.0, 10.0, 99)
    assert stray_bin != 0
    for i in range(20, 30):
        hist.add(50.0, 10.0, i)
    for i in range(30, 35):
        hist.add(200.0, 10.0, i)
    # 99 is alone in its bin: less than a tenth of the fullest, and fourth anyway.
    assert hist.inconsistent() == [99]


def test_histogram_consistent_when_single_bin():
    hist = RotationHistogram()
    for i in range(5):
        assert hist.add(30.0, 30.0, i) == 0
    assert hist.inconsistent() == []
    assert hist.bins[0] == [0, 1, 2, 3, 4]


def test_matcher_settings():
    m = ORBMatcher(0.75, False)
    assert m.nn_ratio == 0.75
    assert m.check_orientation is False
    assert m.TH_HIGH == TH_HIGH == 100
    assert m.TH_LOW == TH_LOW == 50
    assert m.HISTO_LENGTH == 30