"""Functional entry points for presentation layers driving a simulation.

Control calls are queued and take effect at the next `tick`.
"""

from __future__ import annotations

from typing import Sequence

from .core.agent import Agent, AgentView
from .core.config import SimulationConfig
from .core.world import World
from .types.metrics import TickMetrics


def initialize(config: SimulationConfig, agents: Sequence[Agent] | None = None) -> World:
    return World(config, agents)


def tick(state: World) -> TickMetrics:
    return state.step()


def set_target(state: World, point: Sequence[float]) -> None:
    state.set_target(point)


def clear_target(state: World) -> None:
    state.clear_target()


def toggle_wall_evasion(state: World) -> None:
    state.toggle_wall_evasion()


def toggle_leader(state: World) -> None:
    state.toggle_leader()


def set_leader(state: World, on: bool) -> None:
    state.set_leader(on)


def read_agents(state: World) -> tuple[AgentView, ...]:
    return state.read_agents()


__all__ = [
    "initialize",
    "tick",
    "set_target",
    "clear_target",
    "toggle_wall_evasion",
    "toggle_leader",
    "set_leader",
    "read_agents",
]
