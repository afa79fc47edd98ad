"""Keypoint record and response-based filtering."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable


@dataclass(frozen=True)
class KeyPoint:
    """A detected image feature: position, patch size, orientation and score."""

    x: float
    y: float
    size: float = 7.0
    angle: float = -1.0
    response: float = 0.0
    octave: int = 0

    @property
    def pt(self) -> tuple[float, float]:
        """The position as an (x, y) pair."""
        return (self.x, self.y)

    def scaled(self, factor: float) -> KeyPoint:
        """Return a copy whose coordinates are multiplied by ``factor``."""
        return replace(self, x=self.x * factor, y=self.y * factor)

    def shifted(self, dx: float, dy: float) -> KeyPoint:
        """Return a copy moved by ``(dx, dy)``."""
        return replace(self, x=self.x + dx, y=self.y + dy)


def retain_best(keypoints: Iterable[KeyPoint], count: int) -> list[KeyPoint]:
    """Keep the ``count`` strongest keypoints by response.

    Keypoints whose response ties with the weakest retained one are kept as
    well, so the result may hold more than ``count`` entries. A negative
    ``count`` keeps everything; zero keeps nothing. The result is ordered by
    decreasing response, ties in their original order.
    """
    points = list(keypoints)
    if count < 0 or len(points) <= count:
        return points
    if count == 0:
        return []
    ordered = sorted(points, key=lambda kp: kp.response, reverse=True)
    threshold = ordered[count - 1].response
    return [kp for kp in ordered if kp.response >= threshold]