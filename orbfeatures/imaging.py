"""Low-level 8-bit image operations used by the ORB extractor."""

from __future__ import annotations

import numpy as np

from .keypoint import KeyPoint

# Bresenham circle of radius 3 as (dx, dy), walked in order around the ring.
_CIRCLE: tuple[tuple[int, int], ...] = (
    (0, 3), (1, 3), (2, 2), (3, 1), (3, 0), (3, -1), (2, -2), (1, -3),
    (0, -3), (-1, -3), (-2, -2), (-3, -1), (-3, 0), (-3, 1), (-2, 2), (-1, 3),
)
_ARC_LENGTH = 9
_RADIUS = 3
_FAST_KEYPOINT_SIZE = 7.0


def cv_round(value: float) -> int:
    """Round to the nearest integer, halves going to the even neighbour."""
    return int(round(float(value)))


def _as_gray(image) -> np.ndarray:
    arr = np.asarray(image)
    if arr.ndim != 2:
        raise ValueError("expected a single-channel 2-D image")
    return arr


def _to_uint8(values: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def _best_arc(diff: np.ndarray) -> np.ndarray:
    """Largest, over all contiguous arcs, of the smallest difference on the arc."""
    ring = len(_CIRCLE)
    extended = np.concatenate([diff, diff[: _ARC_LENGTH - 1]])
    mins = extended[0:ring]
    for k in range(1, _ARC_LENGTH):
        mins = np.minimum(mins, extended[k : k + ring])
    return mins.max(axis=0)


def fast_detect(image, threshold: int, nonmax_suppression: bool) -> list[KeyPoint]:
    """Detect FAST-9 corners.

    A pixel is a corner when nine contiguous pixels of the surrounding
    ring are all brighter than it by more than ``threshold`` or all darker
    by more than ``threshold``. Keypoints come in row-major order, with the
    corner score as response.
    """
    img = _as_gray(image).astype(np.int32)
    threshold = min(max(int(threshold), 0), 255)
    rows, cols = img.shape
    if rows <= 2 * _RADIUS or cols <= 2 * _RADIUS:
        return []

    h, w = rows - 2 * _RADIUS, cols - 2 * _RADIUS
    center = img[_RADIUS : rows - _RADIUS, _RADIUS : cols - _RADIUS]
    ring = np.stack(
        [
            img[_RADIUS + dy : _RADIUS + dy + h, _RADIUS + dx : _RADIUS + dx + w]
            for dx, dy in _CIRCLE
        ]
    )
    brighter = ring - center
    score = np.maximum(_best_arc(brighter), _best_arc(-brighter)) - 1
    corners = score >= threshold

    scores = np.zeros((rows, cols), dtype=np.int32)
    scores[_RADIUS : rows - _RADIUS, _RADIUS : cols - _RADIUS] = np.where(
        corners, score, 0
    )
    keep = np.zeros((rows, cols), dtype=bool)
    keep[_RADIUS : rows - _RADIUS, _RADIUS : cols - _RADIUS] = corners

    if nonmax_suppression:
        inner = scores[1:-1, 1:-1]
        local_max = np.ones_like(inner, dtype=bool)
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                if dx == 0 and dy == 0:
                    continue
                neighbour = scores[1 + dy : rows - 1 + dy, 1 + dx : cols - 1 + dx]
                local_max &= inner > neighbour
        keep[1:-1, 1:-1] &= local_max

    ys, xs = np.nonzero(keep)
    return [
        KeyPoint(
            x=float(x),
            y=float(y),
            size=_FAST_KEYPOINT_SIZE,
            response=float(scores[y, x]),
        )
        for y, x in zip(ys.tolist(), xs.tolist())
    ]


def _gaussian_kernel(ksize: int, sigma: float) -> np.ndarray:
    if sigma <= 0:
        sigma = 0.3 * ((ksize - 1) * 0.5 - 1) + 0.8
    offsets = np.arange(ksize, dtype=np.float64) - (ksize - 1) / 2
    kernel = np.exp(-(offsets**2) / (2.0 * sigma * sigma))
    return kernel / kernel.sum()


def gaussian_blur(image, ksize: int, sigma: float) -> np.ndarray:
    """Blur with a square Gaussian kernel, mirroring at the borders.

    ``ksize`` must be odd and positive; a non-positive ``sigma`` is derived
    from the kernel size.
    """
    img = _as_gray(image)
    if ksize < 1 or ksize % 2 == 0:
        raise ValueError("ksize must be a positive odd number")
    kernel = _gaussian_kernel(ksize, sigma)
    radius = ksize // 2
    rows, cols = img.shape
    padded = np.pad(img.astype(np.float64), radius, mode="reflect")
    horizontal = sum(
        weight * padded[:, i : i + cols] for i, weight in enumerate(kernel)
    )
    blurred = sum(
        weight * horizontal[i : i + rows, :] for i, weight in enumerate(kernel)
    )
    return _to_uint8(blurred)


def _linear_taps(dst: int, src: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    scale = src / dst
    pos = (np.arange(dst, dtype=np.float64) + 0.5) * scale - 0.5
    i0 = np.floor(pos).astype(np.int64)
    frac = pos - i0
    before = i0 < 0
    i0[before] = 0
    frac[before] = 0.0
    i0 = np.minimum(i0, src - 1)
    i1 = np.minimum(i0 + 1, src - 1)
    return i0, i1, frac


def resize_linear(image, width: int, height: int) -> np.ndarray:
    """Resize with bilinear interpolation on pixel centres."""
    img = _as_gray(image)
    if width < 1 or height < 1:
        raise ValueError("target size must be at least one pixel")
    src_h, src_w = img.shape
    if src_h < 1 or src_w < 1:
        raise ValueError("cannot resize an empty image")
    x0, x1, fx = _linear_taps(width, src_w)
    y0, y1, fy = _linear_taps(height, src_h)
    pixels = img.astype(np.float64)
    top = pixels[y0][:, x0] * (1.0 - fx) + pixels[y0][:, x1] * fx
    bottom = pixels[y1][:, x0] * (1.0 - fx) + pixels[y1][:, x1] * fx
    out = top * (1.0 - fy)[:, None] + bottom * fy[:, None]
    return _to_uint8(out)


def reflect_border(image, border: int) -> np.ndarray:
    """Add ``border`` pixels on every side, mirrored without repeating the edge."""
    img = _as_gray(image)
    if border < 0:
        raise ValueError("border must not be negative")
    return np.pad(img, int(border), mode="reflect")