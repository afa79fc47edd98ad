"""Frame-to-frame matching used to bootstrap a monocular map."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from .keypoint import KeyPoint
from .matching import TH_LOW, ORBMatcher, RotationHistogram, descriptor_distance

_NO_DISTANCE = 2**31 - 1


def features_in_area(
    keypoints: Sequence[KeyPoint],
    x: float,
    y: float,
    radius: float,
    min_level: int = -1,
    max_level: int = -1,
) -> list[int]:
    """Indices of keypoints strictly inside a square window around ``(x, y)``.

    Levels are checked when ``min_level`` is positive or ``max_level`` is not
    negative: keypoints below ``min_level`` are dropped, and those above
    ``max_level`` too when it is not negative. Indices come in ascending order.
    """
    check_levels = min_level > 0 or max_level >= 0
    found: list[int] = []
    for index, kp in enumerate(keypoints):
        if check_levels:
            if kp.octave < min_level:
                continue
            if max_level >= 0 and kp.octave > max_level:
                continue
        if abs(kp.x - x) < radius and abs(kp.y - y) < radius:
            found.append(index)
    return found


def search_for_initialization(
    matcher: ORBMatcher,
    keypoints1: Sequence[KeyPoint],
    descriptors1,
    keypoints2: Sequence[KeyPoint],
    descriptors2,
    prev_matched: Sequence[tuple[float, float]],
    window_size: float,
) -> tuple[int, list[int], list[tuple[float, float]]]:
    """Match finest-level keypoints of frame 1 to frame 2 near their previous match.

    ``prev_matched`` gives, for each keypoint of frame 1, the position around
    which to search in frame 2. Returns the number of matches, for each
    keypoint of frame 1 the index of its match in frame 2 (or -1), and the
    search positions updated to the matched keypoints of frame 2.
    """
    if len(prev_matched) != len(keypoints1):
        raise ValueError("prev_matched must hold one position per keypoint of frame 1")
    desc1 = np.asarray(descriptors1, dtype=np.uint8)
    desc2 = np.asarray(descriptors2, dtype=np.uint8)

    matches12 = [-1] * len(keypoints1)
    matches21 = [-1] * len(keypoints2)
    matched_distance = [_NO_DISTANCE] * len(keypoints2)
    histogram = RotationHistogram()
    nmatches = 0

    for i1, kp1 in enumerate(keypoints1):
        level1 = kp1.octave
        if level1 > 0:
            continue
        px, py = prev_matched[i1]
        candidates = features_in_area(keypoints2, px, py, window_size, level1, level1)
        if not candidates:
            continue

        d1 = desc1[i1]
        best, second, best_idx2 = _NO_DISTANCE, _NO_DISTANCE, -1
        for i2 in candidates:
            dist = descriptor_distance(d1, desc2[i2])
            if matched_distance[i2] <= dist:
                continue
            if dist < best:
                second, best, best_idx2 = best, dist, i2
            elif dist < second:
                second = dist

        if best > TH_LOW:
            continue
        if not best < float(np.float32(second)) * matcher.nn_ratio:
            continue

        previous = matches21[best_idx2]
        if previous >= 0:
            matches12[previous] = -1
            nmatches -= 1
        matches12[i1] = best_idx2
        matches21[best_idx2] = i1
        matched_distance[best_idx2] = best
        nmatches += 1

        if matcher.check_orientation:
            histogram.add(kp1.angle, keypoints2[best_idx2].angle, i1)

    if matcher.check_orientation:
        for i1 in histogram.inconsistent():
            if matches12[i1] >= 0:
                matches12[i1] = -1
                nmatches -= 1

    updated = [
        keypoints2[j].pt if j >= 0 else tuple(prev_matched[i])
        for i, j in enumerate(matches12)
    ]
    return nmatches, matches12, updated