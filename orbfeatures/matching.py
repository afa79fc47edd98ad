"""Descriptor distances, rotation consistency and geometric checks for matching."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from .keypoint import KeyPoint

TH_HIGH = 100
TH_LOW = 50
HISTO_LENGTH = 30

_HISTO_FACTOR = np.float32(1.0) / np.float32(HISTO_LENGTH)


def descriptor_distance(a, b) -> int:
    """Hamming distance between two binary descriptors, normalised to 32 bytes."""
    da = np.asarray(a, dtype=np.uint8).reshape(-1)
    db = np.asarray(b, dtype=np.uint8).reshape(-1)
    if da.shape != db.shape:
        raise ValueError("descriptors must have the same length")
    if da.size == 0:
        raise ValueError("descriptors must not be empty")
    bits = int(np.unpackbits(np.bitwise_xor(da, db)).sum())
    scaled = np.float32(bits) * np.float32(32.0) / np.float32(da.size)
    return int(scaled + np.float32(0.5))


def compute_three_maxima(histogram: Sequence[Sequence[int]]) -> tuple[int, int, int]:
    """Indices of the three most populated bins.

    A bin holding fewer than a tenth of the entries of the fullest bin is
    reported as -1, as is a bin that does not exist.
    """
    max1 = max2 = max3 = 0
    ind1 = ind2 = ind3 = -1
    for i, entries in enumerate(histogram):
        s = len(entries)
        if s > max1:
            max3, max2, max1 = max2, max1, s
            ind3, ind2, ind1 = ind2, ind1, i
        elif s > max2:
            max3, max2 = max2, s
            ind3, ind2 = ind2, i
        elif s > max3:
            max3 = s
            ind3 = i

    tenth = np.float32(0.1) * np.float32(max1)
    if max2 < tenth:
        ind2 = ind3 = -1
    elif max3 < tenth:
        ind3 = -1
    return ind1, ind2, ind3


def radius_by_viewing_cos(view_cos: float) -> float:
    """Search window radius for a point seen under the given viewing cosine."""
    return 2.5 if view_cos > 0.998 else 4.0


def check_dist_epipolar_line(
    kp1: KeyPoint, kp2: KeyPoint, f12, sigma2: Sequence[float]
) -> bool:
    """Whether ``kp2`` lies close enough to the epipolar line of ``kp1``.

    ``f12`` is the 3x3 fundamental matrix from image 1 to image 2 and
    ``sigma2`` holds the squared scale sigma of each pyramid level of image 2.
    """
    f = np.asarray(f12, dtype=np.float32)
    if f.shape != (3, 3):
        raise ValueError("f12 must be a 3x3 matrix")
    x1, y1 = np.float32(kp1.x), np.float32(kp1.y)
    a = x1 * f[0, 0] + y1 * f[1, 0] + f[2, 0]
    b = x1 * f[0, 1] + y1 * f[1, 1] + f[2, 1]
    c = x1 * f[0, 2] + y1 * f[1, 2] + f[2, 2]

    num = a * np.float32(kp2.x) + b * np.float32(kp2.y) + c
    den = a * a + b * b
    if den == 0:
        return False
    dsqr = num * num / den
    return bool(dsqr < 3.84 * sigma2[kp2.octave])


def rotation_bin(angle1: float, angle2: float) -> int:
    """Histogram bin of the orientation difference between two keypoints."""
    rot = np.float32(angle1) - np.float32(angle2)
    if rot < 0.0:
        rot = np.float32(rot + np.float32(360.0))
    value = float(rot * _HISTO_FACTOR)
    index = int(math.copysign(math.floor(abs(value) + 0.5), value))
    if index == HISTO_LENGTH:
        index = 0
    if not 0 <= index < HISTO_LENGTH:
        raise ValueError("angles out of range for the rotation histogram")
    return index


class RotationHistogram:
    """Collects match indices by orientation difference to reject outliers."""

    def __init__(self) -> None:
        self.bins: list[list[int]] = [[] for _ in range(HISTO_LENGTH)]

    def add(self, angle1: float, angle2: float, index: int) -> int:
        """Record ``index`` in the bin for the two angles and return that bin."""
        b = rotation_bin(angle1, angle2)
        self.bins[b].append(index)
        return b

    def inconsistent(self) -> list[int]:
        """Indices recorded outside the three dominant bins, in bin order."""
        dominant = set(compute_three_maxima(self.bins))
        return [
            index
            for b, entries in enumerate(self.bins)
            if b not in dominant
            for index in entries
        ]


class ORBMatcher:
    """Matching settings: nearest-neighbour ratio and orientation check."""

    TH_HIGH = TH_HIGH
    TH_LOW = TH_LOW
    HISTO_LENGTH = HISTO_LENGTH

    def __init__(self, nn_ratio: float = 0.6, check_orientation: bool = True) -> None:
        self.nn_ratio = float(nn_ratio)
        self.check_orientation = bool(check_orientation)

    def __repr__(self) -> str:
        return (
            f"ORBMatcher(nn_ratio={self.nn_ratio!r}, "
            f"check_orientation={self.check_orientation!r})"
        )