from __future__ import annotations

"""4-neighbour texture measures on a brightness plane.

Every measure is evaluated over the interior pixels (one-pixel margin) by
comparing each centre pixel with its left, right, up and down neighbours.
Planes smaller than 3x3 have no interior; measures return 0 for them.
The Laplacian goes through cv2 like the other filters; the rest are plain
shifted-slice differences.
"""

import numpy as np

try:
    import cv2
except ImportError as e:
    raise ImportError(
        "opencv-python is required for texture measures. "
        "Install with: pip install opencv-python"
    ) from e


def neighbour_planes(b: np.ndarray) -> tuple[np.ndarray, tuple[np.ndarray, ...]] | None:
    """(centre, (left, right, up, down)) views over the interior, or None."""
    if b.shape[0] < 3 or b.shape[1] < 3:
        return None
    c = b[1:-1, 1:-1]
    return c, (b[1:-1, :-2], b[1:-1, 2:], b[:-2, 1:-1], b[2:, 1:-1])


def max_neighbour_diff(b: np.ndarray) -> np.ndarray:
    """max |n - c| per interior pixel (empty array if no interior)."""
    planes = neighbour_planes(b)
    if planes is None:
        return np.zeros((0, 0))
    c, ns = planes
    return np.max(np.stack([np.abs(n - c) for n in ns]), axis=0)


def local_variance(b: np.ndarray) -> np.ndarray:
    """mean (n - c)^2 per interior pixel."""
    planes = neighbour_planes(b)
    if planes is None:
        return np.zeros((0, 0))
    c, ns = planes
    return sum((n - c) ** 2 for n in ns) / 4.0


def laplacian_abs(b: np.ndarray) -> np.ndarray:
    """|4c - sum(n)| per interior pixel (cv2 ksize=1 is the 4-neighbour kernel)."""
    if b.shape[0] < 3 or b.shape[1] < 3:
        return np.zeros((0, 0))
    lap = cv2.Laplacian(np.ascontiguousarray(b, dtype=np.float64), cv2.CV_64F, ksize=1)
    return np.abs(lap[1:-1, 1:-1])


def neighbour_mean_diff(b: np.ndarray) -> np.ndarray:
    """|c - mean(n)| per interior pixel."""
    planes = neighbour_planes(b)
    if planes is None:
        return np.zeros((0, 0))
    c, ns = planes
    return np.abs(c - sum(ns) / 4.0)


def mean_or_zero(values: np.ndarray) -> float:
    return float(np.mean(values)) if values.size else 0.0
