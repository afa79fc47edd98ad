"""Keypoint orientation by intensity centroid and rotated BRIEF descriptors."""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Iterable, Sequence

import numpy as np

from .imaging import cv_round
from .keypoint import KeyPoint

DESCRIPTOR_BYTES = 32

_DEG = 180.0 / math.pi
_ATAN2_P1 = 0.9997878412794807 * _DEG
_ATAN2_P3 = -0.3258083974640975 * _DEG
_ATAN2_P5 = 0.1555786518463281 * _DEG
_ATAN2_P7 = -0.04432655554792128 * _DEG
_EPS = 2.220446049250313e-16
_FACTOR_PI = np.float32(math.pi / 180.0)


def fast_atan2(y: float, x: float) -> float:
    """Approximate angle of the vector ``(x, y)`` in degrees, in [0, 360)."""
    ax, ay = abs(x), abs(y)
    if ax >= ay:
        c = ay / (ax + _EPS)
        c2 = c * c
        angle = (((_ATAN2_P7 * c2 + _ATAN2_P5) * c2 + _ATAN2_P3) * c2 + _ATAN2_P1) * c
    else:
        c = ax / (ay + _EPS)
        c2 = c * c
        angle = 90.0 - (
            ((_ATAN2_P7 * c2 + _ATAN2_P5) * c2 + _ATAN2_P3) * c2 + _ATAN2_P1
        ) * c
    if x < 0:
        angle = 180.0 - angle
    if y < 0:
        angle = 360.0 - angle
    return float(angle)


def ic_angle(image, x: float, y: float, umax: Sequence[int]) -> float:
    """Orientation in degrees of the intensity centroid of a circular patch."""
    img = np.asarray(image)
    if img.ndim != 2:
        raise ValueError("expected a single-channel 2-D image")
    half = len(umax) - 1
    cx, cy = cv_round(x), cv_round(y)
    rows, cols = img.shape
    if cx - half < 0 or cy - half < 0 or cx + half >= cols or cy + half >= rows:
        raise ValueError("patch around the keypoint leaves the image")

    pixels = img.astype(np.int64)
    u = np.arange(-half, half + 1, dtype=np.int64)
    m_10 = int((u * pixels[cy, cx - half : cx + half + 1]).sum())
    m_01 = 0
    for v in range(1, half + 1):
        d = int(umax[v])
        span = slice(cx - d, cx + d + 1)
        plus = pixels[cy + v, span]
        minus = pixels[cy - v, span]
        offsets = np.arange(-d, d + 1, dtype=np.int64)
        m_10 += int((offsets * (plus + minus)).sum())
        m_01 += v * int((plus - minus).sum())
    return fast_atan2(float(m_01), float(m_10))


def compute_orientation(
    image, keypoints: Iterable[KeyPoint], umax: Sequence[int]
) -> list[KeyPoint]:
    """Return the keypoints with their angle set from the patch centroid."""
    return [replace(kp, angle=ic_angle(image, kp.x, kp.y, umax)) for kp in keypoints]


def _pattern_array(pattern) -> np.ndarray:
    points = np.asarray(pattern, dtype=np.float32)
    if points.shape != (DESCRIPTOR_BYTES * 16, 2):
        raise ValueError("pattern must hold 512 (x, y) sampling points")
    return points


def _describe(keypoint: KeyPoint, img: np.ndarray, points: np.ndarray) -> np.ndarray:
    angle = np.float32(keypoint.angle) * _FACTOR_PI
    a = np.float32(math.cos(float(angle)))
    b = np.float32(math.sin(float(angle)))
    px, py = points[:, 0], points[:, 1]
    dx = np.rint(px * a - py * b).astype(np.int64)
    dy = np.rint(px * b + py * a).astype(np.int64)
    cx, cy = cv_round(keypoint.x), cv_round(keypoint.y)
    xs, ys = cx + dx, cy + dy
    rows, cols = img.shape
    if xs.min() < 0 or ys.min() < 0 or xs.max() >= cols or ys.max() >= rows:
        raise ValueError("sampling pattern around the keypoint leaves the image")
    values = img[ys, xs].astype(np.int64)
    bits = (values[0::2] < values[1::2]).reshape(DESCRIPTOR_BYTES, 8)
    weights = 1 << np.arange(8, dtype=np.int64)
    return (bits * weights).sum(axis=1).astype(np.uint8)


def compute_orb_descriptor(keypoint: KeyPoint, image, pattern) -> np.ndarray:
    """Compute the 32-byte rotated BRIEF descriptor of one keypoint."""
    img = np.asarray(image)
    if img.ndim != 2:
        raise ValueError("expected a single-channel 2-D image")
    return _describe(keypoint, img, _pattern_array(pattern))


def compute_descriptors(image, keypoints: Sequence[KeyPoint], pattern) -> np.ndarray:
    """Compute descriptors for all keypoints as an ``(n, 32)`` uint8 array."""
    img = np.asarray(image)
    if img.ndim != 2:
        raise ValueError("expected a single-channel 2-D image")
    points = _pattern_array(pattern)
    rows = [_describe(kp, img, points) for kp in keypoints]
    if not rows:
        return np.zeros((0, DESCRIPTOR_BYTES), dtype=np.uint8)
    return np.stack(rows)