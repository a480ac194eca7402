from __future__ import annotations

from pygame.math import Vector2

from flocksim.sim import engine
from flocksim.sim.core.agent import Agent
from flocksim.sim.core.config import RuleWeights, SimulationConfig, SpeedConfig


def _config() -> SimulationConfig:
    return SimulationConfig(
        screen_width=400.0,
        screen_height=400.0,
        boid_count=25,
        margin=40.0,
        speed=SpeedConfig(min_speed=2.0, max_speed=4.0),
        seed=9,
    )


def test_facade_drives_a_full_session():
    state = engine.initialize(_config())

    engine.set_target(state, (200.0, 200.0))
    engine.toggle_leader(state)
    engine.toggle_wall_evasion(state)
    metrics = engine.tick(state)

    assert metrics.tick == 1
    assert metrics.has_target
    assert metrics.leader_id is not None
    assert metrics.wall_evasion is False

    engine.clear_target(state)
    engine.toggle_leader(state)
    engine.tick(state)

    views = engine.read_agents(state)
    assert len(views) == 25
    assert not any(view.is_leader for view in views)
    assert state.target is None


def test_facade_accepts_explicit_agents():
    config = SimulationConfig(
        screen_width=400.0,
        screen_height=400.0,
        boid_count=1,
        weights=RuleWeights(separation=0.0, alignment=0.0, cohesion=0.0, evasion=0.0, target=0.0, leader=0.0),
        speed=SpeedConfig(min_speed=1.0, max_speed=4.0),
    )
    state = engine.initialize(config, [Agent(id=0, group_id=0, position=Vector2(100, 100), velocity=Vector2(3, 0))])

    engine.tick(state)

    (view,) = engine.read_agents(state)
    assert view.position == (103.0, 100.0)
    assert view.velocity == (3.0, 0.0)


def test_facade_set_leader_matches_requested_state():
    state = engine.initialize(_config())

    engine.set_leader(state, True)
    engine.tick(state)
    leader = state.leader_id
    engine.set_leader(state, True)
    engine.tick(state)

    assert leader is not None
    assert state.leader_id == leader

    engine.set_leader(state, False)
    engine.tick(state)
    assert state.leader_id is None
