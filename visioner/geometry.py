"""2-D geometric primitives for line of sight, lighting and cover.

Everything here works in canvas pixels. The engine only ever asks three
kinds of question:

  * **Does a segment cross a wall?** ``blocked_mask`` answers it for many
    rays against many walls at once by broadcasting (R, 1) rays against
    (1, W) walls with NumPy, so the coverage and tactical cover modes
    (dozens of rays per pair) stay cheap even on wall-heavy scenes.
    ``segment_blocked`` is the single-ray form.
  * **Is a point inside a shape?** ``polygon_covers`` (shapely, boundary
    inclusive) for region areas and precise light shapes, where points
    exactly on the clipped edge must count as inside.
  * **How much of a segment passes through a rectangle?**
    ``clipped_length`` (Liang-Barsky), used to decide whether a blocking
    token meaningfully obstructs an attack line.

Rectangles are ``(x, y, width, height)`` tuples with a top-left origin.
"""

from __future__ import annotations

import math

import numpy as np
from shapely.geometry import Point as ShapelyPoint
from shapely.geometry import Polygon as ShapelyPolygon

from .types import Rect

Segment = tuple[float, float, float, float]  # (x1, y1, x2, y2)
Corners = list[tuple[float, float]]


def distance_squared(x1: float, y1: float, x2: float, y2: float) -> float:
    dx = x2 - x1
    dy = y2 - y1
    return dx * dx + dy * dy


def segments_array(segments: list[Segment]) -> np.ndarray:
    """Pack segments into a (N, 4) float array (empty-safe)."""
    if not segments:
        return np.empty((0, 4), dtype=np.float64)
    return np.array(segments, dtype=np.float64)


def blocked_mask(rays: np.ndarray, walls: np.ndarray) -> np.ndarray:
    """For each ray, whether it crosses any wall (endpoints inclusive).

    Args:
        rays: (R, 4) array of ray segments.
        walls: (W, 4) array of wall segments.

    Returns:
        (R,) boolean array.
    """
    n_rays = rays.shape[0]
    if n_rays == 0 or walls.shape[0] == 0:
        return np.zeros(n_rays, dtype=bool)

    # Broadcast: (R, 1) vs (1, W)
    ax1 = rays[:, 0:1]
    ay1 = rays[:, 1:2]
    ax2 = rays[:, 2:3]
    ay2 = rays[:, 3:4]
    bx1 = walls[:, 0:1].T
    by1 = walls[:, 1:2].T
    bx2 = walls[:, 2:3].T
    by2 = walls[:, 3:4].T

    denom = (by2 - by1) * (ax2 - ax1) - (bx2 - bx1) * (ay2 - ay1)
    non_parallel = denom != 0.0
    safe_denom = np.where(non_parallel, denom, 1.0)
    ua = ((bx2 - bx1) * (ay1 - by1) - (by2 - by1) * (ax1 - bx1)) / safe_denom
    ub = ((ax2 - ax1) * (ay1 - by1) - (ay2 - ay1) * (ax1 - bx1)) / safe_denom
    hits = non_parallel & (ua >= 0) & (ua <= 1) & (ub >= 0) & (ub <= 1)
    return np.any(hits, axis=1)


def segment_blocked(seg: Segment, walls: np.ndarray) -> bool:
    """True if ``seg`` crosses any of ``walls``."""
    rays = np.array([seg], dtype=np.float64)
    return bool(blocked_mask(rays, walls)[0])


def polygon_covers(
    vertices: list[tuple[float, float]], px: float, py: float
) -> bool:
    """Boundary-inclusive containment via shapely.

    Raises ``ValueError`` for degenerate shapes (fewer than 3 vertices) so
    callers can fall back to a coarser test.
    """
    if len(vertices) < 3:
        raise ValueError("polygon needs at least 3 vertices")
    poly = ShapelyPolygon(vertices)
    if not poly.is_valid:
        poly = poly.buffer(0)
    return bool(poly.covers(ShapelyPoint(px, py)))


def rect_corners(rect: Rect) -> Corners:
    """Corners clockwise from top-left."""
    x, y, w, h = rect
    return [(x, y), (x + w, y), (x + w, y + h), (x, y + h)]


def rect_center(rect: Rect) -> tuple[float, float]:
    x, y, w, h = rect
    return (x + w / 2.0, y + h / 2.0)


def inset_corners(rect: Rect, half_extent: float) -> Corners:
    """Square of corners ``half_extent`` from the rect center.

    Tiny creatures occupy less than a square, so their corners are pulled
    in toward the center instead of using the full footprint.
    """
    cx, cy = rect_center(rect)
    return [
        (cx - half_extent, cy - half_extent),
        (cx + half_extent, cy - half_extent),
        (cx + half_extent, cy + half_extent),
        (cx - half_extent, cy + half_extent),
    ]


def perimeter_samples(rect: Rect, per_edge: int = 5) -> Corners:
    """Evenly spaced points along each edge (corners included once)."""
    corners = rect_corners(rect)
    points: Corners = []
    for i in range(4):
        x1, y1 = corners[i]
        x2, y2 = corners[(i + 1) % 4]
        for k in range(per_edge):
            t = k / per_edge
            points.append((x1 + (x2 - x1) * t, y1 + (y2 - y1) * t))
    return points


def clipped_length(seg: Segment, rect: Rect) -> float:
    """Length of ``seg`` lying inside ``rect`` (Liang-Barsky clipping)."""
    x1, y1, x2, y2 = seg
    rx, ry, rw, rh = rect
    dx = x2 - x1
    dy = y2 - y1
    p = (-dx, dx, -dy, dy)
    q = (x1 - rx, rx + rw - x1, y1 - ry, ry + rh - y1)
    t0, t1 = 0.0, 1.0
    for pi, qi in zip(p, q):
        if pi == 0:
            if qi < 0:
                return 0.0
            continue
        t = qi / pi
        if pi < 0:
            if t > t1:
                return 0.0
            t0 = max(t0, t)
        else:
            if t < t0:
                return 0.0
            t1 = min(t1, t)
    if t1 <= t0:
        return 0.0
    return (t1 - t0) * math.hypot(dx, dy)


def segment_enters_rect(seg: Segment, rect: Rect, min_fraction: float) -> bool:
    """True if the clipped length exceeds ``min_fraction`` of the rect width.

    Grazing a corner does not count as passing through a token.
    """
    return clipped_length(seg, rect) > rect[2] * min_fraction
