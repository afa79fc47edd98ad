"""Quad-tree distribution of keypoints over an image region."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable

from .keypoint import KeyPoint


@dataclass(eq=False)
class ExtractorNode:
    """A rectangular cell of the quad-tree and the keypoints that fall in it."""

    keys: list[KeyPoint] = field(default_factory=list)
    ul: tuple[int, int] = (0, 0)
    ur: tuple[int, int] = (0, 0)
    bl: tuple[int, int] = (0, 0)
    br: tuple[int, int] = (0, 0)
    no_more: bool = False

    def divide(
        self,
    ) -> tuple[ExtractorNode, ExtractorNode, ExtractorNode, ExtractorNode]:
        """Split into four children (top-left, top-right, bottom-left, bottom-right)."""
        half_x = math.ceil((self.ur[0] - self.ul[0]) / 2)
        half_y = math.ceil((self.br[1] - self.ul[1]) / 2)
        ul_x, ul_y = self.ul

        n1 = ExtractorNode(
            ul=self.ul,
            ur=(ul_x + half_x, ul_y),
            bl=(ul_x, ul_y + half_y),
            br=(ul_x + half_x, ul_y + half_y),
        )
        n2 = ExtractorNode(
            ul=n1.ur,
            ur=self.ur,
            bl=n1.br,
            br=(self.ur[0], ul_y + half_y),
        )
        n3 = ExtractorNode(
            ul=n1.bl,
            ur=n1.br,
            bl=self.bl,
            br=(n1.br[0], self.bl[1]),
        )
        n4 = ExtractorNode(ul=n3.ur, ur=n2.br, bl=n3.br, br=self.br)

        split_x, split_y = n1.ur[0], n1.br[1]
        for kp in self.keys:
            if kp.x < split_x:
                (n1 if kp.y < split_y else n3).keys.append(kp)
            elif kp.y < split_y:
                n2.keys.append(kp)
            else:
                n4.keys.append(kp)

        for child in (n1, n2, n3, n4):
            if len(child.keys) == 1:
                child.no_more = True
        return n1, n2, n3, n4


def _refine(
    nodes: deque[ExtractorNode],
    expandable: list[ExtractorNode],
    n_features: int,
) -> None:
    """Divide the most populated nodes first until enough nodes exist."""
    while True:
        prev_size = len(nodes)
        candidates = sorted(expandable, key=lambda node: len(node.keys))
        expandable = []
        for node in reversed(candidates):
            for child in node.divide():
                if child.keys:
                    nodes.appendleft(child)
                    if len(child.keys) > 1:
                        expandable.append(child)
            nodes.remove(node)
            if len(nodes) >= n_features:
                break
        if len(nodes) >= n_features or len(nodes) == prev_size:
            return


def distribute_oct_tree(
    keypoints: Iterable[KeyPoint],
    min_x: int,
    max_x: int,
    min_y: int,
    max_y: int,
    n_features: int,
) -> list[KeyPoint]:
    """Spread keypoints evenly, keeping the strongest one in each tree cell.

    Keypoint coordinates are relative to ``(min_x, min_y)``. Cells are
    subdivided until there are at least ``n_features`` of them or no cell
    can be split further.
    """
    width = max_x - min_x
    height = max_y - min_y
    if width <= 0 or height <= 0:
        raise ValueError("the region must have a positive width and height")

    n_ini = max(1, math.floor(width / height + 0.5))
    h_x = width / n_ini

    initial = [
        ExtractorNode(
            ul=(int(h_x * i), 0),
            ur=(int(h_x * (i + 1)), 0),
            bl=(int(h_x * i), height),
            br=(int(h_x * (i + 1)), height),
        )
        for i in range(n_ini)
    ]
    for kp in keypoints:
        index = min(max(int(kp.x / h_x), 0), n_ini - 1)
        initial[index].keys.append(kp)

    nodes: deque[ExtractorNode] = deque()
    for node in initial:
        if not node.keys:
            continue
        if len(node.keys) == 1:
            node.no_more = True
        nodes.append(node)

    while True:
        prev_size = len(nodes)
        kept: list[ExtractorNode] = []
        pushed: list[ExtractorNode] = []
        to_expand: list[ExtractorNode] = []
        for node in nodes:
            if node.no_more:
                kept.append(node)
                continue
            for child in node.divide():
                if child.keys:
                    pushed.append(child)
                    if len(child.keys) > 1:
                        to_expand.append(child)
        nodes = deque(reversed(pushed))
        nodes.extend(kept)

        if len(nodes) >= n_features or len(nodes) == prev_size:
            break
        if len(nodes) + 3 * len(to_expand) > n_features:
            _refine(nodes, to_expand, n_features)
            break

    return [max(node.keys, key=lambda kp: kp.response) for node in nodes]