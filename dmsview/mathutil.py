"""Small vector, quaternion and 4x4 matrix helpers used for skeletal animation.

Matrices are flat 16-tuples in row-major order; translation lives in the
last column (indices 3, 7 and 11). Quaternions are (x, y, z, w).
"""

from __future__ import annotations

import math
from typing import Sequence, Tuple

Vector3 = Tuple[float, float, float]
Quaternion = Tuple[float, float, float, float]
Matrix = Tuple[float, ...]

_EPSILON = 0.000001


def identity_matrix() -> Matrix:
    """The 4x4 identity matrix."""
    return (
        1.0, 0.0, 0.0, 0.0,
        0.0, 1.0, 0.0, 0.0,
        0.0, 0.0, 1.0, 0.0,
        0.0, 0.0, 0.0, 1.0,
    )


def vector_lerp(a: Sequence[float], b: Sequence[float], t: float) -> tuple:
    """Linear interpolation between two vectors of equal length."""
    return tuple(x + t * (y - x) for x, y in zip(a, b))


def _normalize(q: Sequence[float]) -> Quaternion:
    length = math.sqrt(sum(c * c for c in q))
    if length == 0.0:
        length = 1.0
    return tuple(c / length for c in q)  # type: ignore[return-value]


def quaternion_slerp(q1: Sequence[float], q2: Sequence[float], t: float) -> Quaternion:
    """Spherical interpolation taking the shorter path between two rotations."""
    cos_half = sum(a * b for a, b in zip(q1, q2))
    if cos_half < 0.0:
        q2 = tuple(-c for c in q2)
        cos_half = -cos_half

    if abs(cos_half) >= 1.0:
        return tuple(q1)  # type: ignore[return-value]
    if cos_half > 0.95:
        return _normalize(vector_lerp(q1, q2, t))

    half_theta = math.acos(cos_half)
    sin_half = math.sqrt(1.0 - cos_half * cos_half)
    if abs(sin_half) < _EPSILON:
        return tuple(a * 0.5 + b * 0.5 for a, b in zip(q1, q2))  # type: ignore[return-value]

    ratio_a = math.sin((1.0 - t) * half_theta) / sin_half
    ratio_b = math.sin(t * half_theta) / sin_half
    return tuple(a * ratio_a + b * ratio_b for a, b in zip(q1, q2))  # type: ignore[return-value]


def quaternion_to_matrix(q: Sequence[float]) -> Matrix:
    """Rotation matrix of a quaternion."""
    x, y, z, w = q
    a2, b2, c2 = x * x, y * y, z * z
    ac, ab, bc = x * z, x * y, y * z
    ad, bd, cd = w * x, w * y, w * z
    return (
        1.0 - 2.0 * (b2 + c2), 2.0 * (ab - cd), 2.0 * (ac + bd), 0.0,
        2.0 * (ab + cd), 1.0 - 2.0 * (a2 + c2), 2.0 * (bc - ad), 0.0,
        2.0 * (ac - bd), 2.0 * (bc + ad), 1.0 - 2.0 * (a2 + b2), 0.0,
        0.0, 0.0, 0.0, 1.0,
    )


def matrix_scale(x: float, y: float, z: float) -> Matrix:
    """Scaling matrix."""
    return (
        x, 0.0, 0.0, 0.0,
        0.0, y, 0.0, 0.0,
        0.0, 0.0, z, 0.0,
        0.0, 0.0, 0.0, 1.0,
    )


def matrix_translate(x: float, y: float, z: float) -> Matrix:
    """Translation matrix."""
    return (
        1.0, 0.0, 0.0, x,
        0.0, 1.0, 0.0, y,
        0.0, 0.0, 1.0, z,
        0.0, 0.0, 0.0, 1.0,
    )


def matrix_multiply(left: Sequence[float], right: Sequence[float]) -> Matrix:
    """Compose two transforms: ``left`` is applied first, then ``right``."""
    rows = [right[r * 4:r * 4 + 4] for r in range(4)]
    cols = [left[c::4] for c in range(4)]
    return tuple(
        sum(a * b for a, b in zip(row, col)) for row in rows for col in cols
    )


def transform_point(point: Sequence[float], matrix: Sequence[float]) -> Vector3:
    """Apply a transform to a 3D point."""
    x, y, z = point
    rows = (matrix[r * 4:r * 4 + 4] for r in range(3))
    return tuple(m[0] * x + m[1] * y + m[2] * z + m[3] for m in rows)  # type: ignore[return-value]