from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

Point = Tuple[float, float]


class ControlEvent(str, Enum):
    SET_TARGET = "SetTarget"
    CLEAR_TARGET = "ClearTarget"
    TOGGLE_WALL_EVASION = "ToggleWallEvasion"
    TOGGLE_LEADER = "ToggleLeader"
    SET_LEADER = "SetLeader"


@dataclass(frozen=True, slots=True)
class BehaviorToggles:
    """Global behavior switches, fixed for the duration of one tick."""

    wall_evasion: bool = True
    target: Optional[Point] = None
    leader_id: Optional[int] = None
    leader_position: Optional[Point] = None
