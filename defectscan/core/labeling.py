"""
Connected Component Labeling

Two-pass union-find labeling of a binary mask plus per-component
aggregation (pixel count, bounding box, centroid sums, border pixels).
"""

from dataclasses import dataclass, field
from typing import List, Tuple
import logging

import numpy as np

logger = logging.getLogger(__name__)


class DisjointSet:
    """Union-find over provisional labels. Label 0 is reserved for background."""

    def __init__(self):
        self.parent: List[int] = [0]

    def __len__(self) -> int:
        return len(self.parent) - 1

    def add(self) -> int:
        """Allocate a fresh singleton label and return it."""
        label = len(self.parent)
        self.parent.append(label)
        return label

    def find(self, label: int) -> int:
        parent = self.parent
        while parent[label] != label:
            parent[label] = parent[parent[label]]
            label = parent[label]
        return label

    def union(self, a: int, b: int) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            self.parent[rb] = ra

    def flatten(self) -> np.ndarray:
        """Resolve every label to its root; returns a lookup table indexed by label."""
        for label in range(1, len(self.parent)):
            self.parent[label] = self.find(label)
        return np.asarray(self.parent, dtype=np.int32)


@dataclass
class ComponentRecord:
    """Running statistics of one labeled component."""

    id: int
    pixel_count: int = 0
    min_x: int = 0
    min_y: int = 0
    max_x: int = 0
    max_y: int = 0
    sum_x: int = 0
    sum_y: int = 0
    border: List[Tuple[int, int]] = field(default_factory=list)

    @property
    def bbox(self) -> Tuple[int, int, int, int]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)


def _first_pass(mask: np.ndarray, labels: np.ndarray, ds: DisjointSet) -> None:
    """Assign provisional labels probing only the left and up neighbors."""
    height, width = mask.shape
    prev_row = [0] * width
    for y in range(height):
        row = [0] * width
        for x in np.flatnonzero(mask[y]).tolist():
            left = row[x - 1] if x > 0 else 0
            up = prev_row[x]
            if left == 0 and up == 0:
                label = ds.add()
            elif up == 0:
                label = left
            elif left == 0:
                label = up
            else:
                label = min(left, up)
                if left != up:
                    ds.union(left, up)
            row[x] = label
        labels[y] = row
        prev_row = row


def label_components(mask: np.ndarray) -> Tuple[np.ndarray, int]:
    """
    Label the foreground of a binary mask.

    Args:
        mask: Boolean (H, W) array, True = foreground

    Returns:
        (labels, count) where labels is an int32 (H, W) array with dense
        component ids 1..count in order of first appearance (row-major)
        and 0 for background.
    """
    mask = np.asarray(mask, dtype=bool)
    labels = np.zeros(mask.shape, dtype=np.int32)
    ds = DisjointSet()

    _first_pass(mask, labels, ds)
    if len(ds) == 0:
        return labels, 0

    roots = ds.flatten()

    # Dense ids follow the raster order in which each root is first met.
    fg = labels > 0
    resolved = roots[labels[fg]]
    unique_roots, first_index = np.unique(resolved, return_index=True)
    order = np.argsort(first_index, kind="stable")
    dense = np.zeros(len(roots), dtype=np.int32)
    dense[unique_roots[order]] = np.arange(1, len(unique_roots) + 1, dtype=np.int32)
    labels[fg] = dense[resolved]

    count = len(unique_roots)
    logger.debug(f"Labeling merged {len(ds)} provisional labels into {count} components")
    return labels, count


def border_mask(labels: np.ndarray) -> np.ndarray:
    """Foreground pixels with at least one background or out-of-bounds 4-neighbor."""
    fg = labels > 0
    padded = np.pad(fg, 1, mode="constant", constant_values=False)
    interior = (
        padded[:-2, 1:-1] & padded[2:, 1:-1] & padded[1:-1, :-2] & padded[1:-1, 2:]
    )
    return fg & ~interior


def aggregate_components(labels: np.ndarray, count: int) -> List[ComponentRecord]:
    """
    Collect per-component statistics from a finalized label buffer.

    Must run on dense ids from label_components(); border classification
    depends on final labels, not provisional ones.
    """
    if count == 0:
        return []

    ys, xs = np.nonzero(labels)
    ids = labels[ys, xs]

    pixel_count = np.bincount(ids, minlength=count + 1)
    sum_x = np.bincount(ids, weights=xs, minlength=count + 1)
    sum_y = np.bincount(ids, weights=ys, minlength=count + 1)

    min_x = np.full(count + 1, labels.shape[1], dtype=np.int64)
    min_y = np.full(count + 1, labels.shape[0], dtype=np.int64)
    max_x = np.full(count + 1, -1, dtype=np.int64)
    max_y = np.full(count + 1, -1, dtype=np.int64)
    np.minimum.at(min_x, ids, xs)
    np.minimum.at(min_y, ids, ys)
    np.maximum.at(max_x, ids, xs)
    np.maximum.at(max_y, ids, ys)

    records = [
        ComponentRecord(
            id=i,
            pixel_count=int(pixel_count[i]),
            min_x=int(min_x[i]),
            min_y=int(min_y[i]),
            max_x=int(max_x[i]),
            max_y=int(max_y[i]),
            sum_x=int(sum_x[i]),
            sum_y=int(sum_y[i]),
        )
        for i in range(1, count + 1)
    ]

    # Border scan: np.nonzero walks row-major, so each list keeps discovery order.
    by, bx = np.nonzero(border_mask(labels))
    for x, y, i in zip(bx.tolist(), by.tolist(), labels[by, bx].tolist()):
        records[i - 1].border.append((x, y))

    return records
