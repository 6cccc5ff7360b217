"""Geometry kernel for ordered 2D point sequences.

Pure functions, no state: perimeter, Shoelace area, centroid, bounding box,
rotation to a reference heading, and moving-average path smoothing. Inputs
are sequences of ``Point2D``; arithmetic is vectorised with numpy and results
are returned as plain floats / ``Point2D`` values.

Short inputs are not errors: perimeter of fewer than 2 points and area of
fewer than 3 points are 0.
"""
from __future__ import annotations

import math
from typing import List, Sequence

import numpy as np

from .models import BoundingBox, Point2D

# Polygons below this area (m^2) are degenerate (collinear or coincident)
MIN_POLYGON_AREA = 0.001


def _as_array(points: Sequence[Point2D]) -> np.ndarray:
    """Nx2 array of (x, y)."""
    if len(points) == 0:
        return np.zeros((0, 2))
    return np.array([(p.x, p.y) for p in points], dtype=float)


def _to_points(arr: np.ndarray) -> List[Point2D]:
    return [Point2D(float(x), float(y)) for x, y in arr]


def distance(a: Point2D, b: Point2D) -> float:
    """Euclidean distance between two points in meters."""
    return math.hypot(b.x - a.x, b.y - a.y)


def perimeter(points: Sequence[Point2D], closed: bool = True) -> float:
    """Sum of edge lengths along the sequence.

    Args:
        points: Ordered vertices (clockwise or counter-clockwise)
        closed: Include the wrap-around edge from last to first

    Returns:
        Length in meters, 0 for fewer than 2 points
    """
    if len(points) < 2:
        return 0.0

    arr = _as_array(points)
    edges = np.diff(arr, axis=0)
    total = float(np.hypot(edges[:, 0], edges[:, 1]).sum())

    if closed:
        total += distance(points[-1], points[0])

    return total


def area(points: Sequence[Point2D]) -> float:
    """Polygon area by the Shoelace formula.

    The sequence is treated as already closed; callers must not pass a
    duplicated closing vertex.

    Returns:
        Area in square meters, 0 for fewer than 3 points
    """
    if len(points) < 3:
        return 0.0

    arr = _as_array(points)
    x, y = arr[:, 0], arr[:, 1]
    shoelace = np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y)
    return float(abs(shoelace) / 2.0)


def is_valid_polygon(points: Sequence[Point2D], min_area: float = MIN_POLYGON_AREA) -> bool:
    """At least 3 points enclosing more than ``min_area``."""
    if len(points) < 3:
        return False
    return area(points) > min_area


def centroid(points: Sequence[Point2D]) -> Point2D:
    """Arithmetic mean of the vertices, (0, 0) when empty."""
    if len(points) == 0:
        return Point2D(0.0, 0.0)

    cx, cy = _as_array(points).mean(axis=0)
    return Point2D(float(cx), float(cy))


def bounding_box(points: Sequence[Point2D]) -> BoundingBox:
    """Axis-aligned bounding box, all zeros when empty."""
    if len(points) == 0:
        return BoundingBox(0.0, 0.0, 0.0, 0.0)

    arr = _as_array(points)
    min_x, min_y = arr.min(axis=0)
    max_x, max_y = arr.max(axis=0)
    return BoundingBox(float(min_x), float(min_y), float(max_x), float(max_y))


def rotate(points: Sequence[Point2D], angle_degrees: float) -> List[Point2D]:
    """Rotate every point about the origin (counter-clockwise positive).

    Used to align a captured path to true north given the heading measured
    when the plan was finalized.
    """
    if len(points) == 0:
        return []

    theta = math.radians(angle_degrees)
    c, s = math.cos(theta), math.sin(theta)
    R = np.array([
        [c, -s],
        [s,  c],
    ])
    return _to_points(_as_array(points) @ R.T)


def rotate_about(point: Point2D, pivot: Point2D, angle_degrees: float) -> Point2D:
    """Rotate a single point about ``pivot``."""
    rotated = rotate([point - pivot], angle_degrees)[0]
    return rotated + pivot


def smooth_path(points: Sequence[Point2D], window: int = 3) -> List[Point2D]:
    """Symmetric moving average.

    The window is truncated at both ends of the path. Paths shorter than the
    window are returned unchanged.
    """
    if len(points) < window:
        return list(points)

    arr = _as_array(points)
    n = len(arr)
    half = window // 2
    smoothed = np.empty_like(arr)

    for i in range(n):
        start = max(0, i - half)
        end = min(n, i + half + 1)
        smoothed[i] = arr[start:end].mean(axis=0)

    return _to_points(smoothed)
