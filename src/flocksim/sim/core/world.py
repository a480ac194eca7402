from __future__ import annotations

import logging
import math
from collections import deque
from time import perf_counter
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple, Union

from pygame.math import Vector2

from .agent import Agent, AgentView
from .agent_store import AgentStore
from .config import SimulationConfig
from .rng import DeterministicRng
from .spatial_grid import SpatialGrid
from ..systems import metrics as metrics_system
from ..systems.integrator import integrate
from ..systems.steering import RuleParams, compute_steering
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotControls, SnapshotMetadata, SnapshotWorld
from ..types.toggles import BehaviorToggles, ControlEvent, Point

logger = logging.getLogger(__name__)

_LEADER_RNG_SALT = 0x1EADE12C0FFEE5ED


def _copy_agent(agent: Agent) -> Agent:
    return Agent(
        id=agent.id,
        group_id=agent.group_id,
        position=Vector2(agent.position),
        velocity=Vector2(agent.velocity),
        heading=agent.heading,
    )


class World:
    """Simulation state plus the tick driver that advances it.

    Control events (target, wall evasion, leader) are queued and take effect
    at the start of the next `step`, never in the middle of one.
    """

    def __init__(self, config: SimulationConfig, agents: Sequence[Agent] | None = None):
        self._config = config.validate()
        self._rng = DeterministicRng(config.seed)
        self._leader_rng = self._rng.fork(_LEADER_RNG_SALT)
        self._grid = SpatialGrid(config.cell_size)
        self._params = RuleParams.from_config(config)
        self._influence_radius_sq = config.influence_distance * config.influence_distance
        self._influence_cell_offsets = self._grid.build_neighbor_cell_offsets(config.influence_distance)
        self._initial_agents: Optional[List[Agent]] = (
            [_copy_agent(agent) for agent in agents] if agents is not None else None
        )
        self._pending: Deque[Tuple[ControlEvent, Union[Point, bool, None]]] = deque()
        self._neighbor_ids: List[int] = []
        self._neighbor_agents: List[Agent] = []
        self._neighbor_offsets: List[Vector2] = []
        self._neighbor_dist_sq: List[float] = []
        self._deltas: List[Vector2] = []
        self._bootstrap()
        logger.info(
            "World created: %d boids on %gx%g, cell size %g, seed %d",
            len(self._store),
            config.screen_width,
            config.screen_height,
            self._grid.cell_size,
            config.seed,
        )

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def agents(self) -> List[Agent]:
        return self._store.agents

    @property
    def grid(self) -> SpatialGrid:
        return self._grid

    @property
    def tick(self) -> int:
        return self._tick

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    @property
    def wall_evasion(self) -> bool:
        return self._wall_evasion

    @property
    def target(self) -> Optional[Point]:
        return self._target

    @property
    def leader_id(self) -> Optional[int]:
        return self._leader_id

    @property
    def pending_events(self) -> int:
        return len(self._pending)

    @property
    def toggles(self) -> BehaviorToggles:
        leader_position = None
        if self._leader_id is not None:
            leader = self._store[self._leader_id]
            leader_position = (leader.position.x, leader.position.y)
        return BehaviorToggles(
            wall_evasion=self._wall_evasion,
            target=self._target,
            leader_id=self._leader_id,
            leader_position=leader_position,
        )

    def reset(self) -> None:
        self._rng.reset()
        self._leader_rng.reset()
        self._pending.clear()
        self._bootstrap()

    def set_target(self, point: Sequence[float]) -> None:
        x, y = float(point[0]), float(point[1])
        if not (math.isfinite(x) and math.isfinite(y)):
            raise ValueError(f"target must have finite coordinates, got ({x}, {y})")
        self._pending.append((ControlEvent.SET_TARGET, (x, y)))

    def clear_target(self) -> None:
        self._pending.append((ControlEvent.CLEAR_TARGET, None))

    def toggle_wall_evasion(self) -> None:
        self._pending.append((ControlEvent.TOGGLE_WALL_EVASION, None))

    def toggle_leader(self) -> None:
        self._pending.append((ControlEvent.TOGGLE_LEADER, None))

    def set_leader(self, on: bool) -> None:
        """Queue leader mode on or off; a no-op when it is already in that state."""

        self._pending.append((ControlEvent.SET_LEADER, bool(on)))

    def read_agents(self) -> tuple[AgentView, ...]:
        return self._store.views(self._leader_id)

    def step(self) -> TickMetrics:
        start = perf_counter()
        config = self._config
        self._apply_pending_events()
        toggles = self.toggles
        params = self._params
        agents = self._store.agents

        self._grid.rebuild(agents)
        grid_stats = (self._grid.occupied_cells(), self._grid.max_cell_occupancy())

        neighbor_ids = self._neighbor_ids
        neighbor_agents = self._neighbor_agents
        neighbor_offsets = self._neighbor_offsets
        neighbor_dist_sq = self._neighbor_dist_sq
        deltas = self._deltas
        deltas.clear()
        neighbor_checks = 0

        # Evaluation reads tick-start state only; every write waits for integration below.
        for agent in agents:
            self._grid.collect_neighbors(
                agent.position,
                self._influence_cell_offsets,
                self._influence_radius_sq,
                neighbor_ids,
                neighbor_offsets,
                neighbor_dist_sq,
                exclude_id=agent.id,
            )
            neighbor_checks += len(neighbor_ids)
            neighbor_agents.clear()
            for other_id in neighbor_ids:
                neighbor_agents.append(agents[other_id])
            deltas.append(
                compute_steering(agent, neighbor_agents, neighbor_offsets, neighbor_dist_sq, toggles, params)
            )

        for agent, delta in zip(agents, deltas):
            integrate(agent, delta, config, toggles.wall_evasion)

        self._tick += 1
        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics = metrics_system.create_metrics(
            self._tick,
            neighbor_checks,
            elapsed_ms,
            metrics_system.flock_motion_stats(agents),
            grid_stats,
            toggles.wall_evasion,
            toggles.target is not None,
            toggles.leader_id,
        )
        self._metrics = metrics
        return metrics

    def snapshot(self) -> Snapshot:
        config = self._config
        metrics = self._metrics if self._metrics is not None else self._snapshot_metrics_from_state()
        target = None if self._target is None else [self._target[0], self._target[1]]
        return Snapshot(
            tick=self._tick,
            metrics=metrics,
            agents=[self._agent_snapshot(agent) for agent in self._store],
            world=SnapshotWorld(width=config.screen_width, height=config.screen_height, margin=config.margin),
            metadata=SnapshotMetadata(
                sim_dt=config.time_step,
                tick_rate=config.tick_rate,
                seed=config.seed,
                config_version=config.config_version,
                groups=list(config.groups),
            ),
            controls=SnapshotControls(
                wall_evasion=self._wall_evasion,
                target=target,
                leader_id=self._leader_id,
            ),
        )

    def _bootstrap(self) -> None:
        if self._initial_agents is not None:
            self._store = AgentStore.from_agents(
                self._config, [_copy_agent(agent) for agent in self._initial_agents]
            )
        else:
            self._store = AgentStore.random(self._config, self._rng)
        self._wall_evasion = self._config.wall_evasion
        self._target: Optional[Point] = None
        self._leader_id: Optional[int] = None
        self._tick = 0
        self._metrics: TickMetrics | None = None
        self._grid.rebuild(self._store)

    def _apply_pending_events(self) -> None:
        while self._pending:
            event, payload = self._pending.popleft()
            if event == ControlEvent.SET_TARGET:
                self._target = payload
            elif event == ControlEvent.CLEAR_TARGET:
                self._target = None
            elif event == ControlEvent.TOGGLE_WALL_EVASION:
                self._wall_evasion = not self._wall_evasion
            elif event == ControlEvent.TOGGLE_LEADER:
                self._switch_leader(self._leader_id is None)
            elif event == ControlEvent.SET_LEADER:
                self._switch_leader(bool(payload))
            logger.debug(
                "Tick %d: applied %s (wall_evasion=%s, target=%s, leader=%s)",
                self._tick,
                event.value,
                self._wall_evasion,
                self._target,
                self._leader_id,
            )

    def _switch_leader(self, on: bool) -> None:
        if on and self._leader_id is None:
            self._leader_id = self._leader_rng.next_index(len(self._store))
        elif not on:
            self._leader_id = None

    def _agent_snapshot(self, agent: Agent) -> Dict[str, Any]:
        return {
            "id": agent.id,
            "x": agent.position.x,
            "y": agent.position.y,
            "vx": agent.velocity.x,
            "vy": agent.velocity.y,
            "group": agent.group_id,
            "color": self._config.groups[agent.group_id],
            "heading": agent.heading,
            "speed": agent.velocity.length(),
            "is_leader": agent.id == self._leader_id,
        }

    def _snapshot_metrics_from_state(self) -> TickMetrics:
        return metrics_system.create_metrics(
            self._tick,
            0,
            0.0,
            metrics_system.flock_motion_stats(self._store),
            (self._grid.occupied_cells(), self._grid.max_cell_occupancy()),
            self._wall_evasion,
            self._target is not None,
            self._leader_id,
        )
