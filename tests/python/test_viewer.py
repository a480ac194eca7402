from __future__ import annotations

import math

import pygame
import pytest

from flocksim.app.viewer import apply_command, boid_polygon, draw, event_to_command
from flocksim.sim.core.agent import AgentView
from flocksim.sim.core.config import SimulationConfig
from flocksim.sim.core.world import World


def _view(vx: float, vy: float) -> AgentView:
    return AgentView(id=0, position=(100.0, 100.0), velocity=(vx, vy), group_id=0, is_leader=False)


def test_polygon_nose_points_along_velocity():
    nose, left, right = boid_polygon(_view(3.0, 0.0))
    assert nose == pytest.approx((107.5, 100.0))
    assert left == pytest.approx((95.0, 105.0))
    assert right == pytest.approx((95.0, 95.0))

    nose, _, _ = boid_polygon(_view(0.0, 2.0))
    assert nose == pytest.approx((100.0, 107.5))

    nose, _, _ = boid_polygon(_view(-1.0, -1.0))
    assert math.hypot(nose[0] - 100.0, nose[1] - 100.0) == pytest.approx(7.5)
    assert nose[0] < 100.0 and nose[1] < 100.0


@pytest.mark.parametrize(
    "event, expected",
    [
        (pygame.event.Event(pygame.MOUSEBUTTONDOWN, pos=(12, 34), button=1), ("set_target", (12.0, 34.0))),
        (pygame.event.Event(pygame.KEYDOWN, key=pygame.K_SPACE), ("clear_target", None)),
        (pygame.event.Event(pygame.KEYDOWN, key=pygame.K_w), ("toggle_wall_evasion", None)),
        (pygame.event.Event(pygame.KEYDOWN, key=pygame.K_l), ("toggle_leader", None)),
        (pygame.event.Event(pygame.KEYDOWN, key=pygame.K_q), None),
        (pygame.event.Event(pygame.MOUSEMOTION, pos=(1, 1), rel=(0, 0), buttons=(0, 0, 0)), None),
    ],
)
def test_event_mapping(event, expected):
    assert event_to_command(event) == expected


def test_commands_are_queued_until_the_next_tick():
    world = World(SimulationConfig(screen_width=200.0, screen_height=200.0, boid_count=5, margin=20.0))

    apply_command(world, ("set_target", (50.0, 60.0)))
    apply_command(world, ("toggle_wall_evasion", None))
    apply_command(world, ("toggle_leader", None))
    assert world.pending_events == 3
    assert world.target is None

    world.step()
    assert world.target == (50.0, 60.0)
    assert world.wall_evasion is False
    assert world.leader_id is not None

    apply_command(world, ("clear_target", None))
    world.step()
    assert world.target is None


def test_draw_marks_the_target():
    config = SimulationConfig(screen_width=200.0, screen_height=200.0, boid_count=5, margin=20.0)
    world = World(config)
    world.set_target((100.0, 100.0))
    world.step()
    surface = pygame.Surface((200, 200))

    draw(surface, world, [pygame.Color(name) for name in config.groups])

    assert surface.get_at((100, 100)) == pygame.Color("red")
