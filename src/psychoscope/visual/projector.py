"""
Perspective projection.

Rotation is applied around Y first, then around X (azimuth then elevation).
Swapping the order changes both the picture and the depth order.
"""

import math
from typing import NamedTuple, Sequence

import numpy as np

from psychoscope.errors import ProjectionError

FOCAL_LENGTH = 2.5


class ProjectedPoint(NamedTuple):
    px: float
    py: float
    depth: float
    perspective_scale: float
    sequence_index: int


def project(
    point: Sequence[float],
    rotation_x: float,
    rotation_y: float,
    scale: float,
    center_x: float,
    center_y: float,
    sequence_index: int = 0,
) -> ProjectedPoint:
    """
    Project one 3D point to screen space.

    Args:
        point: (x, y, z) or a longer sequence whose first three items are xyz.
        rotation_x: Rotation around X in radians (applied second).
        rotation_y: Rotation around Y in radians (applied first).
        scale: Pixels per world unit.
        center_x, center_y: Screen position of the world origin.
        sequence_index: Index of the point in its trajectory.

    Returns:
        ProjectedPoint; nearer points (smaller depth) get a larger
        perspective_scale.
    """
    x, y, z = float(point[0]), float(point[1]), float(point[2])
    cos_y, sin_y = math.cos(rotation_y), math.sin(rotation_y)
    cos_x, sin_x = math.cos(rotation_x), math.sin(rotation_x)

    x1 = x * cos_y - z * sin_y
    z1 = x * sin_y + z * cos_y
    y1 = y * cos_x - z1 * sin_x
    z2 = y * sin_x + z1 * cos_x

    denom = FOCAL_LENGTH + z2
    if denom <= 0.0:
        raise ProjectionError(f"Point {point!r} lies at or behind the focal plane")
    p = FOCAL_LENGTH / denom
    return ProjectedPoint(
        px=center_x + x1 * scale * p,
        py=center_y + y1 * scale * p,
        depth=z2,
        perspective_scale=p,
        sequence_index=int(sequence_index),
    )


def project_array(
    points: np.ndarray,
    rotation_x: float,
    rotation_y: float,
    scale: float,
    center_x: float,
    center_y: float,
) -> np.ndarray:
    """
    Vectorised :func:`project` for an ``(n, >=3)`` array.

    Returns:
        ``(m, 5)`` float64 array of ``px, py, depth, perspective_scale,
        sequence_index`` in input order. Points at or behind the focal
        plane are dropped, so ``m <= n``.
    """
    pts = np.asarray(points, dtype=np.float64)
    x, y, z = pts[:, 0], pts[:, 1], pts[:, 2]
    cos_y, sin_y = math.cos(rotation_y), math.sin(rotation_y)
    cos_x, sin_x = math.cos(rotation_x), math.sin(rotation_x)

    x1 = x * cos_y - z * sin_y
    z1 = x * sin_y + z * cos_y
    y1 = y * cos_x - z1 * sin_x
    z2 = y * sin_x + z1 * cos_x

    denom = FOCAL_LENGTH + z2
    visible = denom > 0.0
    p = np.zeros_like(denom)
    p[visible] = FOCAL_LENGTH / denom[visible]

    out = np.empty((len(pts), 5), dtype=np.float64)
    out[:, 0] = center_x + x1 * scale * p
    out[:, 1] = center_y + y1 * scale * p
    out[:, 2] = z2
    out[:, 3] = p
    out[:, 4] = np.arange(len(pts), dtype=np.float64)
    return out[visible]
