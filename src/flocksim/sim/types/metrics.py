from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True)
class TickMetrics:
    tick: int
    population: int
    neighbor_checks: int
    average_speed: float
    polarization: float
    occupied_cells: int
    max_cell_occupancy: int
    wall_evasion: bool
    has_target: bool
    leader_id: Optional[int] = None
    tick_duration_ms: float = 0.0
