"""
Geometry Helpers for Polyline Processing
Point-array validation, polyline lengths, direction angles and pick-ray distances
"""

import numpy as np
from typing import Sequence, Tuple, Union


ArrayLike = Union[np.ndarray, Sequence[Sequence[float]]]


def mm_to_m(mm: float) -> float:
    """Convert millimeters to meters"""
    return mm * 0.001


def as_points(points: ArrayLike) -> np.ndarray:
    """
    Coerce a point sequence into a float (N, 3) array

    Args:
        points: Sequence of 3D points

    Returns:
        (N, 3) float64 array (a copy)
    """
    array = np.array(points, dtype=np.float64)

    if array.size == 0:
        return np.zeros((0, 3), dtype=np.float64)

    if array.ndim != 2 or array.shape[1] != 3:
        raise ValueError(f"Points must have shape (N, 3), got {array.shape}")

    return array


def polyline_length(points: ArrayLike, closed: bool = False) -> float:
    """
    Total length of a polyline

    Args:
        points: (N, 3) ordered points
        closed: Whether to add the closing segment back to the first point

    Returns:
        Sum of consecutive point distances
    """
    pts = as_points(points)
    if len(pts) < 2:
        return 0.0

    length = float(np.sum(np.linalg.norm(np.diff(pts, axis=0), axis=1)))
    if closed:
        length += float(np.linalg.norm(pts[-1] - pts[0]))

    return length


def bounding_box_diagonal(points: ArrayLike) -> float:
    """Length of the axis-aligned bounding box diagonal (0 for no points)"""
    pts = as_points(points)
    if len(pts) == 0:
        return 0.0
    return float(np.linalg.norm(pts.max(axis=0) - pts.min(axis=0)))


def angle_between(u: np.ndarray, v: np.ndarray) -> float:
    """
    Angle in radians between two direction vectors

    A zero-length vector has no direction; the angle is pi/2 in that case.
    """
    denom = np.linalg.norm(u) * np.linalg.norm(v)
    if denom == 0:
        return np.pi / 2

    cos_angle = np.clip(np.dot(u, v) / denom, -1.0, 1.0)
    return float(np.arccos(cos_angle))


def point_segment_distance(point: np.ndarray, start: np.ndarray, end: np.ndarray) -> float:
    """Distance from a point to the closest point of a segment (clamped projection)"""
    direction = end - start
    length_sq = float(np.dot(direction, direction))

    if length_sq == 0:
        return float(np.linalg.norm(point - start))

    t = np.clip(np.dot(point - start, direction) / length_sq, 0.0, 1.0)
    closest = start + t * direction
    return float(np.linalg.norm(point - closest))


def ray_segment_distance(origin: np.ndarray,
                         direction: np.ndarray,
                         start: np.ndarray,
                         end: np.ndarray) -> Tuple[float, float]:
    """
    Closest approach between a ray and a segment

    Args:
        origin: Ray origin
        direction: Ray direction (need not be normalized)
        start: Segment start
        end: Segment end

    Returns:
        Tuple of (distance between the closest points, distance along the ray
        from the origin to its closest point)
    """
    d = np.asarray(direction, dtype=np.float64)
    norm = np.linalg.norm(d)
    if norm == 0:
        raise ValueError("Ray direction must be non-zero")
    d = d / norm

    o = np.asarray(origin, dtype=np.float64)
    a = np.asarray(start, dtype=np.float64)
    e = np.asarray(end, dtype=np.float64) - a
    w = o - a

    # Ray o + s*d (s >= 0), segment a + t*e (0 <= t <= 1)
    ee = float(np.dot(e, e))
    de = float(np.dot(d, e))
    dw = float(np.dot(d, w))
    ew = float(np.dot(e, w))

    if ee == 0:
        s = max(0.0, -dw)
        return float(np.linalg.norm(o + s * d - a)), s

    denom = ee - de * de
    if denom > 1e-12:
        s = (de * ew - ee * dw) / denom
    else:
        # Parallel: any s works, take the origin side
        s = 0.0
    s = max(0.0, s)

    t = float(np.clip((ew + s * de) / ee, 0.0, 1.0))
    # Re-project the ray parameter onto the clamped segment point
    s = max(0.0, float(np.dot(a + t * e - o, d)))
    if s == 0.0:
        t = float(np.clip(ew / ee, 0.0, 1.0))

    closest_ray = o + s * d
    closest_seg = a + t * e
    return float(np.linalg.norm(closest_ray - closest_seg)), s
