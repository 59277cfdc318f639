from __future__ import annotations

import math

from pygame.math import Vector2

TWO_PI = 2.0 * math.pi


def safe_normalize(vector: Vector2) -> Vector2:
    return safe_normalize_xy(vector.x, vector.y)


def safe_normalize_xy(x: float, y: float) -> Vector2:
    magnitude_sq = x * x + y * y
    if magnitude_sq < 1e-10:
        return Vector2()
    inv = 1.0 / math.sqrt(magnitude_sq)
    return Vector2(x * inv, y * inv)


def angle_of(vector: Vector2) -> float:
    return math.atan2(vector.y, vector.x)


def signed_angle_between(a: Vector2, b: Vector2) -> float:
    """Angle that rotates ``a`` onto ``b``, wrapped to (-pi, pi]."""
    return signed_angle_xy(a.x, a.y, b.x, b.y)


def signed_angle_xy(ax: float, ay: float, bx: float, by: float) -> float:
    angle = math.atan2(by, bx) - math.atan2(ay, ax)
    if angle > math.pi:
        angle -= TWO_PI
    elif angle <= -math.pi:
        angle += TWO_PI
    return angle


def rescale_xy(x: float, y: float, length: float) -> tuple[float, float]:
    magnitude = math.hypot(x, y)
    if magnitude == 0.0:
        return 0.0, 0.0
    inv = length / magnitude
    return x * inv, y * inv


def heading_from_velocity(vector: Vector2) -> float:
    if vector.length_squared() < 1e-12:
        return 0.0
    return angle_of(vector)


def clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))
