from __future__ import annotations

import random

from pygame.math import Vector2

_SEED_MASK = 0xFFFFFFFFFFFFFFFF


def derive_stream_seed(seed: int, salt: int) -> int:
    return (int(seed) ^ int(salt)) & _SEED_MASK


class DeterministicRng:
    """Seeded random stream; every draw in a run goes through one of these."""

    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    @property
    def seed(self) -> int:
        return self._seed

    def fork(self, salt: int) -> "DeterministicRng":
        """Independent stream whose draws do not shift this one's."""

        return DeterministicRng(derive_stream_seed(self._seed, salt))

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_range(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def next_index(self, count: int) -> int:
        return self._random.randrange(count)

    def next_point(self, low: Vector2, high: Vector2) -> Vector2:
        return Vector2(self.next_range(low.x, high.x), self.next_range(low.y, high.y))

    def next_velocity(self, min_speed: float, max_speed: float) -> Vector2:
        speed = self.next_range(min_speed, max_speed)
        velocity = Vector2()
        velocity.from_polar((speed, self.next_range(0.0, 360.0)))
        return velocity
