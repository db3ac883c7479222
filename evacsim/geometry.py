"""
Geometry Primitives
Segment intersection, point-to-segment projection and door passage tests
"""

import math
import numpy as np
from typing import Iterable, Tuple


def segments_intersect(p1: np.ndarray, p2: np.ndarray, p3: np.ndarray, p4: np.ndarray) -> bool:
    """
    Test whether segment p1-p2 intersects segment p3-p4.

    Endpoints are inclusive. Parallel and collinear segments are reported
    as non-intersecting.
    """
    x1, y1 = p1[0], p1[1]
    x2, y2 = p2[0], p2[1]
    x3, y3 = p3[0], p3[1]
    x4, y4 = p4[0], p4[1]

    denom = (y4 - y3) * (x2 - x1) - (x4 - x3) * (y2 - y1)
    if denom == 0:
        return False

    ua = ((x4 - x3) * (y1 - y3) - (y4 - y3) * (x1 - x3)) / denom
    ub = ((x2 - x1) * (y1 - y3) - (y2 - y1) * (x1 - x3)) / denom

    return 0.0 <= ua <= 1.0 and 0.0 <= ub <= 1.0


def point_on_segment(point, a, b, tolerance: float = 1e-9) -> bool:
    """Test whether a point lies on segment a-b (within ``tolerance``)."""
    px, py = float(point[0]), float(point[1])
    ax, ay = float(a[0]), float(a[1])
    bx, by = float(b[0]), float(b[1])

    cross = (bx - ax) * (py - ay) - (by - ay) * (px - ax)
    length = math.hypot(bx - ax, by - ay)
    if length == 0:
        return math.hypot(px - ax, py - ay) <= tolerance
    if abs(cross) / length > tolerance:
        return False
    return (min(ax, bx) - tolerance <= px <= max(ax, bx) + tolerance
            and min(ay, by) - tolerance <= py <= max(ay, by) + tolerance)


def closest_point_on_segment(point: np.ndarray, a: np.ndarray, b: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    Project a point onto segment a-b.

    Args:
        point: Point to project
        a: Segment start
        b: Segment end

    Returns:
        Tuple of (closest point on the segment, clamped parameter t in [0, 1])
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    ab = b - a
    length_sq = float(np.dot(ab, ab))
    if length_sq == 0.0:
        return a.copy(), 0.0

    t = float(np.dot(np.asarray(point, dtype=float) - a, ab)) / length_sq
    t = max(0.0, min(1.0, t))
    return a + t * ab, t


def point_segment_distance(point: np.ndarray, a: np.ndarray, b: np.ndarray) -> float:
    """Shortest distance from a point to segment a-b."""
    closest, _ = closest_point_on_segment(point, a, b)
    return float(np.linalg.norm(np.asarray(point, dtype=float) - closest))


def in_passage_zone(point: np.ndarray, doors: Iterable, margin: float = 40.0) -> bool:
    """
    Check whether a point lies inside any door's passage zone.

    The passage zone of a door is the disc of radius ``width / 2 + margin``
    around its centre; wall crossings inside it are not treated as blocked.
    """
    x, y = point[0], point[1]
    for door in doors:
        if np.hypot(door.x - x, door.y - y) < door.width / 2 + margin:
            return True
    return False


def midpoint(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Midpoint of segment a-b."""
    return (np.asarray(a, dtype=float) + np.asarray(b, dtype=float)) / 2.0
