from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .metrics import TickMetrics


@dataclass(slots=True)
class Snapshot:
    tick: int
    metrics: TickMetrics
    agents: List[Dict[str, Any]]
    world: "SnapshotWorld"
    metadata: "SnapshotMetadata"
    controls: "SnapshotControls"


@dataclass(slots=True)
class SnapshotWorld:
    width: float
    height: float
    margin: float


@dataclass(slots=True)
class SnapshotMetadata:
    sim_dt: float
    tick_rate: float
    seed: int
    config_version: str
    groups: List[str]


@dataclass(slots=True)
class SnapshotControls:
    wall_evasion: bool
    target: Optional[List[float]]
    leader_id: Optional[int]
