from __future__ import annotations

import argparse
import logging
import math
from pathlib import Path
from typing import List, Optional, Tuple

import pygame
from pygame.math import Vector2

from ..sim.core.agent import AgentView
from ..sim.core.config import SimulationConfig
from ..sim.core.world import World

logger = logging.getLogger(__name__)

_BOID_SHAPE = (Vector2(1.5 * 5.0, 0.0), Vector2(-5.0, 5.0), Vector2(-5.0, -5.0))
_LEADER_RING_RADIUS = 30
_TARGET_RADIUS = 10


def boid_polygon(agent: AgentView) -> List[Tuple[float, float]]:
    """Triangle for `agent`, pointing along its velocity."""

    vx, vy = agent.velocity
    angle = math.degrees(math.atan2(vy, vx)) if vx * vx + vy * vy > 1e-12 else 0.0
    x, y = agent.position
    points = []
    for corner in _BOID_SHAPE:
        rotated = corner.rotate(angle)
        points.append((x + rotated.x, y + rotated.y))
    return points


def event_to_command(event: pygame.event.Event) -> Optional[Tuple[str, Optional[Tuple[float, float]]]]:
    if event.type == pygame.MOUSEBUTTONDOWN:
        x, y = event.pos
        return "set_target", (float(x), float(y))
    if event.type == pygame.KEYDOWN:
        if event.key == pygame.K_SPACE:
            return "clear_target", None
        if event.key == pygame.K_w:
            return "toggle_wall_evasion", None
        if event.key == pygame.K_l:
            return "toggle_leader", None
    return None


def apply_command(world: World, command: Tuple[str, Optional[Tuple[float, float]]]) -> None:
    name, point = command
    if name == "set_target" and point is not None:
        world.set_target(point)
    elif name == "clear_target":
        world.clear_target()
    elif name == "toggle_wall_evasion":
        world.toggle_wall_evasion()
    elif name == "toggle_leader":
        world.toggle_leader()


def draw(surface: pygame.Surface, world: World, palette: List[pygame.Color]) -> None:
    surface.fill(pygame.Color("white"))
    leader_position = None
    for agent in world.read_agents():
        pygame.draw.polygon(surface, palette[agent.group_id], boid_polygon(agent))
        if agent.is_leader:
            leader_position = agent.position
    if leader_position is not None:
        pygame.draw.circle(surface, pygame.Color("yellow"), leader_position, _LEADER_RING_RADIUS, 5)
    if world.target is not None:
        pygame.draw.circle(surface, pygame.Color("red"), world.target, _TARGET_RADIUS)


def run_viewer(config: SimulationConfig) -> None:
    world = World(config)
    pygame.init()
    try:
        surface = pygame.display.set_mode((int(config.screen_width), int(config.screen_height)))
        pygame.display.set_caption("Boids Sim")
        palette = [pygame.Color(name) for name in config.groups]
        clock = pygame.time.Clock()
        running = True
        while running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                    continue
                command = event_to_command(event)
                if command is not None:
                    apply_command(world, command)
            world.step()
            draw(surface, world, palette)
            pygame.display.flip()
            clock.tick(config.tick_rate)
        logger.info("Viewer closed after %d ticks", world.tick)
    finally:
        pygame.quit()


def main() -> None:
    parser = argparse.ArgumentParser(description="Interactive flocking window")
    parser.add_argument("--config", type=Path, default=None, help="YAML simulation config")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--boids", type=int, default=None, help="Override the number of boids")
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = SimulationConfig.from_yaml(args.config) if args.config else SimulationConfig()
    if args.seed is not None:
        config.seed = args.seed
    if args.boids is not None:
        config.boid_count = args.boids
    run_viewer(config)


if __name__ == "__main__":
    main()
