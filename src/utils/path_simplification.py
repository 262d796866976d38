"""
Polyline Simplification
Ramer-Douglas-Peucker reduction of 3D point sequences
"""

import numpy as np
from typing import List

from .geometry import ArrayLike, as_points, point_segment_distance


def simplify_path(points: ArrayLike, epsilon: float = 0.005, closed: bool = False) -> np.ndarray:
    """
    Reduce the point count of a polyline within a deviation tolerance

    The first and last points are always kept. Every removed point lies
    within ``epsilon`` of the simplified segment that replaces it. For a
    closed polyline the wrap-around segment is treated as part of the path.

    Args:
        points: (N, 3) ordered points
        epsilon: Maximum allowed deviation; 0 (or less) returns the input unchanged
        closed: Whether the polyline closes back onto its first point

    Returns:
        (M, 3) array with M <= N
    """
    pts = as_points(points)

    if epsilon <= 0 or len(pts) <= 2:
        return pts

    if closed:
        ring = np.vstack([pts, pts[:1]])
        keep = _douglas_peucker(ring, epsilon)
        # Last kept index is the duplicated start
        return ring[keep[:-1]]

    return pts[_douglas_peucker(pts, epsilon)]


def _douglas_peucker(pts: np.ndarray, epsilon: float) -> List[int]:
    """Indices kept by Douglas-Peucker, in order"""
    keep = np.zeros(len(pts), dtype=bool)
    keep[0] = keep[-1] = True

    # (first, last) spans still to examine
    stack = [(0, len(pts) - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue

        max_dist = 0.0
        max_idx = first
        for i in range(first + 1, last):
            dist = point_segment_distance(pts[i], pts[first], pts[last])
            if dist > max_dist:
                max_dist = dist
                max_idx = i

        if max_dist > epsilon:
            keep[max_idx] = True
            stack.append((first, max_idx))
            stack.append((max_idx, last))

    return [int(i) for i in np.flatnonzero(keep)]
