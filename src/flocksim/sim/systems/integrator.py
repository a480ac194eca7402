from __future__ import annotations

import math

from pygame.math import Vector2

from ..core.agent import Agent
from ..core.config import SimulationConfig
from ..utils.math2d import _clamp_speed_xy, _wrap


def integrate(agent: Agent, delta: Vector2, config: SimulationConfig, wall_evasion: bool) -> None:
    """Apply one tick of motion to `agent` in place.

    Speed is kept within the configured band; without wall evasion the
    position wraps so that 0 <= x < width and 0 <= y < height.
    """

    speed = config.speed
    vel_x, vel_y = _clamp_speed_xy(
        agent.velocity.x + delta.x,
        agent.velocity.y + delta.y,
        speed.min_speed,
        speed.max_speed,
        agent.heading,
    )
    pos_x = agent.position.x + vel_x
    pos_y = agent.position.y + vel_y
    if not wall_evasion:
        pos_x = _wrap(pos_x, config.screen_width)
        pos_y = _wrap(pos_y, config.screen_height)
    agent.velocity.update(vel_x, vel_y)
    agent.position.update(pos_x, pos_y)
    if vel_x * vel_x + vel_y * vel_y > 1e-12:
        agent.heading = math.atan2(vel_y, vel_x)
