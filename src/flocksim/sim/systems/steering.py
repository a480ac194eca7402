from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from pygame.math import Vector2

from ..core.agent import Agent
from ..core.config import SimulationConfig
from ..types.toggles import BehaviorToggles


@dataclass(frozen=True, slots=True)
class RuleParams:
    separation_weight: float
    alignment_weight: float
    cohesion_weight: float
    evasion_weight: float
    target_weight: float
    leader_weight: float
    steering_distance_sq: float
    margin: float
    width: float
    height: float

    @classmethod
    def from_config(cls, config: SimulationConfig) -> "RuleParams":
        weights = config.weights
        return cls(
            separation_weight=weights.separation,
            alignment_weight=weights.alignment,
            cohesion_weight=weights.cohesion,
            evasion_weight=weights.evasion,
            target_weight=weights.target,
            leader_weight=weights.leader,
            steering_distance_sq=config.steering_distance * config.steering_distance,
            margin=config.margin,
            width=config.screen_width,
            height=config.screen_height,
        )


def compute_steering(
    agent: Agent,
    neighbors: Sequence[Agent],
    neighbor_offsets: Sequence[Vector2],
    neighbor_dist_sq: Sequence[float],
    toggles: BehaviorToggles,
    params: RuleParams,
) -> Vector2:
    """Sum every active rule into the velocity delta for `agent` this tick.

    `neighbors` are the agents within influence distance (excluding `agent`),
    `neighbor_offsets[i]` is `neighbors[i].position - agent.position` and
    `neighbor_dist_sq[i]` its squared length. Nothing is mutated.
    """

    delta = Vector2()
    if neighbors:
        if params.separation_weight > 0.0:
            delta += separation(neighbor_offsets, neighbor_dist_sq, params.steering_distance_sq) * params.separation_weight
        if params.alignment_weight > 0.0:
            delta += alignment(agent, neighbors) * params.alignment_weight
        if params.cohesion_weight > 0.0:
            delta += cohesion(agent, neighbors, neighbor_offsets) * params.cohesion_weight
    if toggles.wall_evasion and params.evasion_weight > 0.0:
        delta += wall_evasion(agent.position, params)
    if toggles.target is not None and params.target_weight > 0.0:
        delta += seek(agent.position, toggles.target) * params.target_weight
    if (
        toggles.leader_id is not None
        and toggles.leader_position is not None
        and agent.id != toggles.leader_id
        and params.leader_weight > 0.0
    ):
        delta += seek(agent.position, toggles.leader_position) * params.leader_weight
    return delta


def separation(
    neighbor_offsets: Sequence[Vector2], neighbor_dist_sq: Sequence[float], steering_distance_sq: float
) -> Vector2:
    away_x = 0.0
    away_y = 0.0
    for offset, dist_sq in zip(neighbor_offsets, neighbor_dist_sq):
        if dist_sq < steering_distance_sq:
            away_x -= offset.x
            away_y -= offset.y
    return Vector2(away_x, away_y)


def alignment(agent: Agent, neighbors: Sequence[Agent]) -> Vector2:
    # The agent's own velocity is part of the average.
    sum_x = agent.velocity.x
    sum_y = agent.velocity.y
    count = 1
    for other in neighbors:
        if other.group_id != agent.group_id:
            continue
        sum_x += other.velocity.x
        sum_y += other.velocity.y
        count += 1
    if count == 1:
        return Vector2()
    inv = 1.0 / count
    return Vector2(sum_x * inv - agent.velocity.x, sum_y * inv - agent.velocity.y)


def cohesion(agent: Agent, neighbors: Sequence[Agent], neighbor_offsets: Sequence[Vector2]) -> Vector2:
    # Offsets are relative to the agent, so the agent itself contributes zero to the sum.
    sum_x = 0.0
    sum_y = 0.0
    count = 1
    for other, offset in zip(neighbors, neighbor_offsets):
        if other.group_id != agent.group_id:
            continue
        sum_x += offset.x
        sum_y += offset.y
        count += 1
    if count == 1:
        return Vector2()
    inv = 1.0 / count
    return Vector2(sum_x * inv, sum_y * inv)


def wall_evasion(position: Vector2, params: RuleParams) -> Vector2:
    margin = params.margin
    if margin <= 0.0:
        return Vector2()
    scale = params.evasion_weight / margin
    push_x = 0.0
    push_y = 0.0
    left = position.x
    right = params.width - position.x
    top = position.y
    bottom = params.height - position.y
    if left < margin:
        push_x += (margin - left) * scale
    if right < margin:
        push_x -= (margin - right) * scale
    if top < margin:
        push_y += (margin - top) * scale
    if bottom < margin:
        push_y -= (margin - bottom) * scale
    return Vector2(push_x, push_y)


def seek(position: Vector2, point: tuple[float, float]) -> Vector2:
    return Vector2(point[0] - position.x, point[1] - position.y)
