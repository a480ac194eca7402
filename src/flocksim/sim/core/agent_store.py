from __future__ import annotations

from typing import Iterator, List, Optional, Sequence

from pygame.math import Vector2

from .agent import Agent, AgentView
from .config import ConfigurationError, SimulationConfig
from .rng import DeterministicRng
from ..utils.math2d import _heading_from_velocity


class AgentStore:
    """Flat, fixed-size population. An agent's id is its index in the store."""

    def __init__(self, agents: Sequence[Agent]):
        self._agents: List[Agent] = list(agents)
        for index, agent in enumerate(self._agents):
            if agent.id != index:
                raise ConfigurationError(f"agent ids must match their index (agent {agent.id} at {index})")

    @classmethod
    def random(cls, config: SimulationConfig, rng: DeterministicRng) -> "AgentStore":
        width = config.screen_width
        height = config.screen_height
        margin = config.margin
        # Spawn inside the margins when they leave room, like the evasion band expects.
        low = Vector2(margin if width > 2 * margin else 0.0, margin if height > 2 * margin else 0.0)
        high = Vector2(width - low.x, height - low.y)
        group_count = len(config.groups)

        agents: List[Agent] = []
        for agent_id in range(config.boid_count):
            position = rng.next_point(low, high)
            velocity = rng.next_velocity(config.speed.min_speed, config.speed.max_speed)
            agents.append(
                Agent(
                    id=agent_id,
                    group_id=rng.next_index(group_count),
                    position=position,
                    velocity=velocity,
                    heading=_heading_from_velocity(velocity),
                )
            )
        return cls(agents)

    @classmethod
    def from_agents(cls, config: SimulationConfig, agents: Sequence[Agent]) -> "AgentStore":
        if not agents:
            raise ConfigurationError("an explicit population must contain at least one agent")
        group_count = len(config.groups)
        for agent in agents:
            if not 0 <= agent.group_id < group_count:
                raise ConfigurationError(
                    f"agent {agent.id} has group {agent.group_id}, expected 0..{group_count - 1}"
                )
        return cls(agents)

    def __len__(self) -> int:
        return len(self._agents)

    def __iter__(self) -> Iterator[Agent]:
        return iter(self._agents)

    def __getitem__(self, agent_id: int) -> Agent:
        return self._agents[agent_id]

    @property
    def agents(self) -> List[Agent]:
        return self._agents

    def views(self, leader_id: Optional[int]) -> tuple[AgentView, ...]:
        return tuple(
            AgentView(
                id=agent.id,
                position=(agent.position.x, agent.position.y),
                velocity=(agent.velocity.x, agent.velocity.y),
                group_id=agent.group_id,
                is_leader=agent.id == leader_id,
            )
            for agent in self._agents
        )
