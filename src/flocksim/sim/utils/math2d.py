from __future__ import annotations

import math

from pygame.math import Vector2


def _clamp_speed_xy(
    x: float, y: float, min_speed: float, max_speed: float, heading: float = 0.0
) -> tuple[float, float]:
    """Rescale (x, y) so its length lies in [min_speed, max_speed].

    A zero vector has no direction to keep, so it is pointed along `heading`.
    """

    magnitude_sq = x * x + y * y
    if magnitude_sq > max_speed * max_speed:
        inv = max_speed / math.sqrt(magnitude_sq)
        return x * inv, y * inv
    if magnitude_sq < min_speed * min_speed:
        if magnitude_sq <= 1e-18:
            return math.cos(heading) * min_speed, math.sin(heading) * min_speed
        inv = min_speed / math.sqrt(magnitude_sq)
        return x * inv, y * inv
    return x, y


def _wrap(value: float, size: float) -> float:
    wrapped = value % size
    # Tiny negatives round up to exactly `size` under float modulo.
    if wrapped >= size:
        return 0.0
    return wrapped


def _heading_from_velocity(vector: Vector2) -> float:
    if vector.length_squared() < 1e-12:
        return 0.0
    return math.atan2(vector.y, vector.x)
