"""
person_tracking.geometry
------------------------
Axis-aligned rectangle primitives: area, centroid, intersection-over-union
and area similarity.

Rectangles are ``(x1, y1, x2, y2)`` in image pixels (left, top, right,
bottom).  Inverted or zero-size rectangles have area 0 and never raise.

The ``*_matrix`` variants are numpy-vectorised forms returning an (N, M)
float64 array whose entries equal the scalar function element-wise.
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

Rect = Tuple[float, float, float, float]


# ─────────────────────────────────────────────────────────────────────────────
# Scalar forms
# ─────────────────────────────────────────────────────────────────────────────

def area(rect: Sequence[float]) -> float:
    """Area of *rect*; 0 for degenerate or inverted boxes."""
    x1, y1, x2, y2 = rect
    return max(0.0, float(x2) - float(x1)) * max(0.0, float(y2) - float(y1))


def centroid(rect: Sequence[float]) -> Tuple[float, float]:
    """Exact geometric centre of *rect* as floats (never truncated)."""
    x1, y1, x2, y2 = rect
    return (float(x1) + float(x2)) / 2.0, (float(y1) + float(y2)) / 2.0


def intersection_over_union(a: Sequence[float], b: Sequence[float]) -> float:
    """IoU of two [x1,y1,x2,y2] boxes, in [0, 1]."""
    iw = max(0.0, min(float(a[2]), float(b[2])) - max(float(a[0]), float(b[0])))
    ih = max(0.0, min(float(a[3]), float(b[3])) - max(float(a[1]), float(b[1])))
    inter = iw * ih
    if inter <= 0.0:
        return 0.0
    union = area(a) + area(b) - inter
    if union <= 0.0:
        return 0.0
    return inter / union


def area_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """``min(area) / max(area)``; 0 when either box has no area."""
    area_a = area(a)
    area_b = area(b)
    if area_a <= 0.0 or area_b <= 0.0:
        return 0.0
    return min(area_a, area_b) / max(area_a, area_b)


# ─────────────────────────────────────────────────────────────────────────────
# Vectorised forms
# ─────────────────────────────────────────────────────────────────────────────

def _as_boxes(boxes: Sequence[Sequence[float]]) -> np.ndarray:
    arr = np.asarray(boxes, dtype=np.float64)
    if arr.size == 0:
        return np.zeros((0, 4), dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 4:
        raise ValueError(f"boxes must have shape (N, 4), got {arr.shape}")
    return arr


def _areas(boxes: np.ndarray) -> np.ndarray:
    w = np.clip(boxes[:, 2] - boxes[:, 0], 0.0, None)
    h = np.clip(boxes[:, 3] - boxes[:, 1], 0.0, None)
    return w * h


def centroids(boxes: Sequence[Sequence[float]]) -> np.ndarray:
    """(N, 2) array of box centres."""
    arr = _as_boxes(boxes)
    return np.stack(
        [(arr[:, 0] + arr[:, 2]) / 2.0, (arr[:, 1] + arr[:, 3]) / 2.0], axis=1
    )


def iou_matrix(
    boxes_a: Sequence[Sequence[float]],
    boxes_b: Sequence[Sequence[float]],
) -> np.ndarray:
    """(N, M) pairwise IoU between two box lists."""
    a = _as_boxes(boxes_a)
    b = _as_boxes(boxes_b)
    ix1 = np.maximum(a[:, None, 0], b[None, :, 0])
    iy1 = np.maximum(a[:, None, 1], b[None, :, 1])
    ix2 = np.minimum(a[:, None, 2], b[None, :, 2])
    iy2 = np.minimum(a[:, None, 3], b[None, :, 3])
    inter = np.clip(ix2 - ix1, 0.0, None) * np.clip(iy2 - iy1, 0.0, None)
    union = _areas(a)[:, None] + _areas(b)[None, :] - inter
    out = np.zeros_like(inter)
    np.divide(inter, union, out=out, where=(inter > 0.0) & (union > 0.0))
    return out


def area_similarity_matrix(
    boxes_a: Sequence[Sequence[float]],
    boxes_b: Sequence[Sequence[float]],
) -> np.ndarray:
    """(N, M) pairwise area similarity between two box lists."""
    area_a = _areas(_as_boxes(boxes_a))[:, None]
    area_b = _areas(_as_boxes(boxes_b))[None, :]
    lo = np.minimum(area_a, area_b)
    hi = np.maximum(area_a, area_b)
    out = np.zeros_like(lo)
    np.divide(lo, hi, out=out, where=lo > 0.0)
    return out
