from __future__ import annotations

from dataclasses import dataclass

from pygame.math import Vector2


@dataclass(slots=True)
class Agent:
    id: int
    group_id: int
    position: Vector2
    velocity: Vector2
    heading: float = 0.0


@dataclass(frozen=True, slots=True)
class AgentView:
    """Read-only copy of an agent handed to renderers."""

    id: int
    position: tuple[float, float]
    velocity: tuple[float, float]
    group_id: int
    is_leader: bool
