"""ORB feature extraction over a scale pyramid."""

from __future__ import annotations

import math

import numpy as np

from .descriptor import DESCRIPTOR_BYTES, compute_descriptors, compute_orientation
from .imaging import cv_round, fast_detect, gaussian_blur, resize_linear
from .keypoint import KeyPoint, retain_best
from .octree import distribute_oct_tree
from .pattern import compute_umax, pattern_points

PATCH_SIZE = 31
HALF_PATCH_SIZE = 15
EDGE_THRESHOLD = 19
_CELL_SIZE = 30.0


def _f32(value) -> float:
    return float(np.float32(value))


class ORBExtractor:
    """Detects oriented FAST keypoints and computes rotated BRIEF descriptors."""

    HARRIS_SCORE = 0
    FAST_SCORE = 1

    def __init__(
        self,
        nfeatures: int,
        scale_factor: float,
        nlevels: int,
        ini_th_fast: int,
        min_th_fast: int,
    ) -> None:
        if nfeatures < 0:
            raise ValueError("nfeatures must not be negative")
        if nlevels < 1:
            raise ValueError("nlevels must be at least 1")
        if scale_factor <= 1.0:
            raise ValueError("scale_factor must be greater than 1")

        self.nfeatures = int(nfeatures)
        self._scale_factor = _f32(scale_factor)
        self.nlevels = int(nlevels)
        self.ini_th_fast = int(ini_th_fast)
        self.min_th_fast = int(min_th_fast)

        factors = [1.0]
        for _ in range(1, self.nlevels):
            factors.append(_f32(factors[-1] * self._scale_factor))
        self._scale_factors = tuple(factors)
        self._sigma2 = tuple(_f32(s * s) for s in factors)
        self._inv_scale_factors = tuple(_f32(1.0 / s) for s in factors)
        self._inv_sigma2 = tuple(_f32(1.0 / s) for s in self._sigma2)

        factor = np.float32(1.0) / np.float32(self._scale_factor)
        desired = np.float32(
            np.float32(self.nfeatures * (np.float32(1.0) - factor))
            / (np.float32(1.0) - np.float32(math.pow(float(factor), self.nlevels)))
        )
        per_level = []
        for _ in range(self.nlevels - 1):
            per_level.append(cv_round(float(desired)))
            desired = np.float32(desired * factor)
        per_level.append(max(self.nfeatures - sum(per_level), 0))
        self._features_per_level = tuple(per_level)

        self.pattern = pattern_points()
        self.umax = compute_umax(HALF_PATCH_SIZE)
        self._pyramid: list[np.ndarray] = []

    @property
    def levels(self) -> int:
        return self.nlevels

    @property
    def scale_factor(self) -> float:
        return self._scale_factor

    @property
    def scale_factors(self) -> tuple[float, ...]:
        return self._scale_factors

    @property
    def inverse_scale_factors(self) -> tuple[float, ...]:
        return self._inv_scale_factors

    @property
    def scale_sigma_squares(self) -> tuple[float, ...]:
        return self._sigma2

    @property
    def inverse_scale_sigma_squares(self) -> tuple[float, ...]:
        return self._inv_sigma2

    @property
    def features_per_level(self) -> tuple[int, ...]:
        return self._features_per_level

    @property
    def image_pyramid(self) -> list[np.ndarray]:
        return list(self._pyramid)

    @property
    def descriptor_bytes(self) -> int:
        return DESCRIPTOR_BYTES

    @property
    def name(self) -> str:
        return "ORB"

    def __call__(self, image, mask=None) -> tuple[list[KeyPoint], np.ndarray]:
        """Extract keypoints and descriptors; the mask is ignored.

        Keypoint coordinates are returned in the frame of the input image.
        """
        img = np.asarray(image)
        empty = np.zeros((0, DESCRIPTOR_BYTES), dtype=np.uint8)
        if img.size == 0:
            return [], empty
        if img.ndim != 2 or img.dtype != np.uint8:
            raise ValueError("expected a single-channel 8-bit image")

        self.compute_pyramid(img)
        all_keypoints = self.compute_keypoints_octtree()

        keypoints: list[KeyPoint] = []
        blocks: list[np.ndarray] = []
        for level, level_keys in enumerate(all_keypoints):
            if not level_keys:
                continue
            working = gaussian_blur(self._pyramid[level], 7, 2.0)
            blocks.append(compute_descriptors(working, level_keys, self.pattern))
            if level != 0:
                scale = self._scale_factors[level]
                level_keys = [kp.scaled(scale) for kp in level_keys]
            keypoints.extend(level_keys)

        descriptors = np.concatenate(blocks) if blocks else empty
        return keypoints, descriptors

    def compute_pyramid(self, image) -> list[np.ndarray]:
        """Build and store the scale pyramid of ``image``."""
        img = np.asarray(image)
        if img.ndim != 2:
            raise ValueError("expected a single-channel 2-D image")
        rows, cols = img.shape
        pyramid: list[np.ndarray] = []
        for level in range(self.nlevels):
            if level == 0:
                pyramid.append(img.copy())
                continue
            scale = self._inv_scale_factors[level]
            width = cv_round(_f32(cols * scale))
            height = cv_round(_f32(rows * scale))
            pyramid.append(resize_linear(pyramid[level - 1], width, height))
        self._pyramid = pyramid
        return list(pyramid)

    def _require_pyramid(self) -> None:
        if len(self._pyramid) != self.nlevels:
            raise RuntimeError("compute_pyramid must be called first")

    def _finish_level(
        self, level: int, keys: list[KeyPoint], dx: float, dy: float
    ) -> list[KeyPoint]:
        size = float(int(PATCH_SIZE * self._scale_factors[level]))
        return [
            KeyPoint(
                x=kp.x + dx,
                y=kp.y + dy,
                size=size,
                angle=kp.angle,
                response=kp.response,
                octave=level,
            )
            for kp in keys
        ]

    def _detect_cell(self, cell: np.ndarray, min_count: int) -> list[KeyPoint]:
        keys = fast_detect(cell, self.ini_th_fast, True)
        if len(keys) <= min_count:
            keys = fast_detect(cell, self.min_th_fast, True)
        return keys

    def compute_keypoints_octtree(self) -> list[list[KeyPoint]]:
        """Detect keypoints per level, spread out with the quad-tree."""
        self._require_pyramid()
        all_keypoints: list[list[KeyPoint]] = []
        for level, level_img in enumerate(self._pyramid):
            min_border = EDGE_THRESHOLD - 3
            rows, cols = level_img.shape
            max_border_x = cols - EDGE_THRESHOLD + 3
            max_border_y = rows - EDGE_THRESHOLD + 3

            width = float(max_border_x - min_border)
            height = float(max_border_y - min_border)
            n_cols = int(width / _CELL_SIZE) if width > 0 else 0
            n_rows = int(height / _CELL_SIZE) if height > 0 else 0
            if n_cols < 1 or n_rows < 1:
                all_keypoints.append([])
                continue
            w_cell = math.ceil(width / n_cols)
            h_cell = math.ceil(height / n_rows)

            to_distribute: list[KeyPoint] = []
            for i in range(n_rows):
                ini_y = min_border + i * h_cell
                if ini_y >= max_border_y - 3:
                    continue
                max_y = min(ini_y + h_cell + 6, max_border_y)
                for j in range(n_cols):
                    ini_x = min_border + j * w_cell
                    if ini_x >= max_border_x - 6:
                        continue
                    max_x = min(ini_x + w_cell + 6, max_border_x)
                    cell = level_img[ini_y:max_y, ini_x:max_x]
                    found = self._detect_cell(cell, 0)
                    to_distribute.extend(
                        kp.shifted(j * w_cell, i * h_cell) for kp in found
                    )

            keys = distribute_oct_tree(
                to_distribute,
                min_border,
                max_border_x,
                min_border,
                max_border_y,
                self._features_per_level[level],
            )
            all_keypoints.append(
                self._finish_level(level, keys, min_border, min_border)
            )

        return [
            compute_orientation(self._pyramid[level], keys, self.umax)
            for level, keys in enumerate(all_keypoints)
        ]

    def compute_keypoints_grid(self) -> list[list[KeyPoint]]:
        """Detect keypoints per level by retaining the best ones in a fixed grid."""
        self._require_pyramid()
        rows0, cols0 = self._pyramid[0].shape
        image_ratio = _f32(cols0 / rows0)
        all_keypoints: list[list[KeyPoint]] = []

        for level, level_img in enumerate(self._pyramid):
            n_desired = self._features_per_level[level]
            level_cols = int(math.sqrt(n_desired / (5 * image_ratio)))
            level_rows = int(image_ratio * level_cols)

            min_border = EDGE_THRESHOLD
            rows, cols = level_img.shape
            max_border_x = cols - EDGE_THRESHOLD
            max_border_y = rows - EDGE_THRESHOLD
            width = max_border_x - min_border
            height = max_border_y - min_border
            if level_cols < 1 or level_rows < 1 or width <= 0 or height <= 0:
                all_keypoints.append([])
                continue

            cell_w = math.ceil(width / level_cols)
            cell_h = math.ceil(height / level_rows)
            n_cells = level_rows * level_cols
            n_per_cell = math.ceil(n_desired / n_cells)

            ini_x_col = [min_border + j * cell_w - 3 for j in range(level_cols)]
            ini_y_row = [min_border + i * cell_h - 3 for i in range(level_rows)]
            cells = [[[] for _ in range(level_cols)] for _ in range(level_rows)]
            to_retain = [[0] * level_cols for _ in range(level_rows)]
            totals = [[0] * level_cols for _ in range(level_rows)]
            no_more = [[False] * level_cols for _ in range(level_rows)]
            n_no_more = 0
            to_distribute = 0

            h_y = cell_h + 6
            for i, ini_y in enumerate(ini_y_row):
                if i == level_rows - 1:
                    h_y = max_border_y + 3 - ini_y
                    if h_y <= 0:
                        continue
                h_x = cell_w + 6
                for j, ini_x in enumerate(ini_x_col):
                    if j == level_cols - 1:
                        h_x = max_border_x + 3 - ini_x
                        if h_x <= 0:
                            continue
                    cell = level_img[ini_y : ini_y + h_y, ini_x : ini_x + h_x]
                    found = self._detect_cell(cell, 3)
                    cells[i][j] = found
                    totals[i][j] = len(found)
                    if len(found) > n_per_cell:
                        to_retain[i][j] = n_per_cell
                    else:
                        to_retain[i][j] = len(found)
                        to_distribute += n_per_cell - len(found)
                        no_more[i][j] = True
                        n_no_more += 1

            while to_distribute > 0 and n_no_more < n_cells:
                n_new = n_per_cell + math.ceil(to_distribute / (n_cells - n_no_more))
                to_distribute = 0
                for i in range(level_rows):
                    for j in range(level_cols):
                        if no_more[i][j]:
                            continue
                        if totals[i][j] > n_new:
                            to_retain[i][j] = n_new
                        else:
                            to_retain[i][j] = totals[i][j]
                            to_distribute += n_new - totals[i][j]
                            no_more[i][j] = True
                            n_no_more += 1

            keypoints: list[KeyPoint] = []
            for i, ini_y in enumerate(ini_y_row):
                for j, ini_x in enumerate(ini_x_col):
                    count = to_retain[i][j]
                    kept = retain_best(cells[i][j], count)[:count]
                    keypoints.extend(self._finish_level(level, kept, ini_x, ini_y))

            if len(keypoints) > n_desired:
                keypoints = retain_best(keypoints, n_desired)[:n_desired]
            all_keypoints.append(keypoints)

        return [
            compute_orientation(self._pyramid[level], keys, self.umax)
            for level, keys in enumerate(all_keypoints)
        ]