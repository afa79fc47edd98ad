import pytest
from hypothesis import given
from hypothesis import strategies as st

from orbfeatures.keypoint import KeyPoint, retain_best


def test_scaled_multiplies_position_only():
    kp = KeyPoint(2.0, 3.0, size=31.0, angle=45.0, response=5.0, octave=2)
    out = kp.scaled(2.0)
    assert out.pt == (4.0, 6.0)
    assert (out.size, out.angle, out.response, out.octave) == (31.0, 45.0, 5.0, 2)
    assert kp.pt == (2.0, 3.0)


def test_shifted_moves_position():
    kp = KeyPoint(1.5, -2.0, response=1.0)
    out = kp.shifted(10.0, 4.0)
    assert out.pt == (11.5, 2.0)
    assert out.response == 1.0


@given(
    st.floats(-1000, 1000),
    st.floats(-1000, 1000),
    st.floats(-100, 100),
    st.floats(-100, 100),
)
def test_shift_round_trip(x, y, dx, dy):
    kp = KeyPoint(x, y)
    back = kp.shifted(dx, dy).shifted(-dx, -dy)
    assert back.x == pytest.approx(x, abs=1e-9)
    assert back.y == pytest.approx(y, abs=1e-9)


def test_retain_best_keeps_strongest():
    pts = [KeyPoint(float(i), 0.0, response=r) for i, r in enumerate([1.0, 9.0, 4.0, 7.0])]
    kept = retain_best(pts, 2)
    assert [kp.response for kp in kept] == [9.0, 7.0]


def test_retain_best_keeps_ties_at_boundary():
    pts = [KeyPoint(float(i), 0.0, response=r) for i, r in enumerate([5.0, 3.0, 3.0, 1.0])]
    kept = retain_best(pts, 2)
    assert sorted(kp.x for kp in kept) == [0.0, 1.0, 2.0]


def test_retain_best_zero_and_negative():
    pts = [KeyPoint(0.0, 0.0, response=1.0), KeyPoint(1.0, 0.0, response=2.0)]
    assert retain_best(pts, 0) == []
    assert retain_best(pts, -1) == pts


def test_retain_best_count_larger_than_input():
    pts = [KeyPoint(0.0, 0.0, response=1.0)]
    assert retain_best(pts, 5) == pts


@given(
    st.lists(st.integers(0, 20), min_size=0, max_size=30),
    st.integers(0, 35),
)
def test_retain_best_invariants(responses, count):
    pts = [KeyPoint(float(i), 0.0, response=float(r)) for i, r in enumerate(responses)]
    kept = retain_best(pts, count)
    assert len(kept) >= min(count, len(pts))
    kept_ids = {kp.x for kp in kept}
    dropped = [kp for kp in pts if kp.x not in kept_ids]
    if kept and dropped:
        assert min(kp.response for kp in kept) > max(kp.response for kp in dropped)