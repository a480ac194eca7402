from __future__ import annotations

import math
from typing import Iterable, Optional

from ..core.agent import Agent
from ..types.metrics import TickMetrics


def flock_motion_stats(agents: Iterable[Agent]) -> tuple[int, float, float]:
    """Return (population, average speed, polarization) for `agents`.

    Polarization is the length of the mean unit velocity: 1.0 when every
    agent heads the same way, near 0.0 for random headings.
    """

    population = 0
    speed_sum = 0.0
    unit_x = 0.0
    unit_y = 0.0
    for agent in agents:
        population += 1
        speed = math.hypot(agent.velocity.x, agent.velocity.y)
        speed_sum += speed
        if speed > 1e-9:
            unit_x += agent.velocity.x / speed
            unit_y += agent.velocity.y / speed
    if population == 0:
        return 0, 0.0, 0.0
    return population, speed_sum / population, math.hypot(unit_x, unit_y) / population


def create_metrics(
    tick: int,
    neighbor_checks: int,
    duration_ms: float,
    stats: tuple[int, float, float],
    grid_stats: tuple[int, int],
    wall_evasion: bool,
    has_target: bool,
    leader_id: Optional[int],
) -> TickMetrics:
    population, average_speed, polarization = stats
    occupied_cells, max_cell_occupancy = grid_stats
    return TickMetrics(
        tick=tick,
        population=population,
        neighbor_checks=neighbor_checks,
        average_speed=average_speed,
        polarization=polarization,
        occupied_cells=occupied_cells,
        max_cell_occupancy=max_cell_occupancy,
        wall_evasion=wall_evasion,
        has_target=has_target,
        leader_id=leader_id,
        tick_duration_ms=duration_ms,
    )
