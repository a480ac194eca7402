from __future__ import annotations

import random

import pytest
from pygame.math import Vector2

from flocksim.sim.core.agent import Agent
from flocksim.sim.core.spatial_grid import SpatialGrid


def _agents_at(positions: list[Vector2]) -> list[Agent]:
    return [Agent(id=idx, group_id=0, position=pos, velocity=Vector2(1, 0)) for idx, pos in enumerate(positions)]


def _brute_force(agents: list[Agent], center: Vector2, radius: float) -> list[int]:
    return sorted(a.id for a in agents if (a.position - center).length_squared() <= radius * radius)


def test_neighbor_query_matches_bruteforce():
    grid = SpatialGrid(cell_size=2.5)
    agents = _agents_at([Vector2(0, 0), Vector2(1, 1), Vector2(3, 0.5), Vector2(6, 6)])
    grid.rebuild(agents)

    center = Vector2(1, 1)
    radius = 2.5
    assert sorted(grid.neighbors_within(center, radius)) == _brute_force(agents, center, radius)


@pytest.mark.parametrize("seed", range(25))
def test_randomized_queries_match_bruteforce(seed):
    rng = random.Random(seed)
    cell_size = rng.uniform(10.0, 80.0)
    width = rng.uniform(100.0, 600.0)
    height = rng.uniform(100.0, 600.0)
    agents = _agents_at(
        [Vector2(rng.uniform(0, width), rng.uniform(0, height)) for _ in range(rng.randint(1, 300))]
    )
    grid = SpatialGrid(cell_size)
    grid.rebuild(agents)

    for _ in range(20):
        center = Vector2(rng.uniform(0, width), rng.uniform(0, height))
        radius = rng.uniform(0.0, cell_size)
        assert sorted(grid.neighbors_within(center, radius)) == _brute_force(agents, center, radius)


def test_radius_larger_than_cell_widens_search():
    rng = random.Random(11)
    agents = _agents_at([Vector2(rng.uniform(0, 200), rng.uniform(0, 200)) for _ in range(200)])
    grid = SpatialGrid(cell_size=10.0)
    grid.rebuild(agents)

    center = Vector2(100, 100)
    radius = 37.0
    assert sorted(grid.neighbors_within(center, radius)) == _brute_force(agents, center, radius)


def test_boundary_distance_is_inclusive():
    grid = SpatialGrid(cell_size=10.0)
    agents = _agents_at([Vector2(0, 0), Vector2(10, 0)])
    grid.rebuild(agents)

    assert sorted(grid.neighbors_within(Vector2(0, 0), 10.0)) == [0, 1]


def test_neighbors_within_can_be_iterated_twice():
    grid = SpatialGrid(cell_size=5.0)
    grid.rebuild(_agents_at([Vector2(1, 1), Vector2(2, 2), Vector2(40, 40)]))

    query = grid.neighbors_within(Vector2(1.5, 1.5), 3.0)
    first = sorted(query)
    second = sorted(query)
    assert first == second == [0, 1]


def test_rebuild_drops_previous_membership():
    grid = SpatialGrid(cell_size=5.0)
    agents = _agents_at([Vector2(1, 1), Vector2(2, 2)])
    grid.rebuild(agents)
    assert len(grid) == 2

    agents[1].position.update(50, 50)
    grid.rebuild(agents)

    assert sorted(grid.neighbors_within(Vector2(1, 1), 4.0)) == [0]
    assert sorted(grid.neighbors_within(Vector2(50, 50), 1.0)) == [1]
    assert len(grid) == 2
    assert grid.occupied_cells() == 2
    assert grid.max_cell_occupancy() == 1


def test_negative_coordinates_are_indexed():
    grid = SpatialGrid(cell_size=5.0)
    agents = _agents_at([Vector2(-1, -1), Vector2(1, 1), Vector2(-12, 3)])
    grid.rebuild(agents)

    center = Vector2(0, 0)
    assert sorted(grid.neighbors_within(center, 5.0)) == _brute_force(agents, center, 5.0)


def test_collect_neighbors_fills_buffers_and_excludes_self():
    grid = SpatialGrid(cell_size=2.5)
    agents = _agents_at([Vector2(0, 0), Vector2(1, 1), Vector2(3, 0.5), Vector2(6, 6)])
    grid.rebuild(agents)

    center = agents[1].position
    radius = 2.5
    out_ids: list[int] = []
    out_offsets: list[Vector2] = [Vector2(9, 9), Vector2(9, 9), Vector2(9, 9), Vector2(9, 9)]
    out_dist_sq: list[float] = [42.0] * 6

    grid.collect_neighbors(
        center,
        grid.build_neighbor_cell_offsets(radius),
        radius * radius,
        out_ids,
        out_offsets,
        out_dist_sq,
        exclude_id=1,
    )

    expected = [i for i in _brute_force(agents, center, radius) if i != 1]
    assert sorted(out_ids) == expected
    assert len(out_offsets) == len(out_ids) == len(out_dist_sq)
    for agent_id, offset, dist_sq in zip(out_ids, out_offsets, out_dist_sq):
        assert offset == agents[agent_id].position - center
        assert dist_sq == pytest.approx(offset.length_squared())


def test_collect_neighbors_clears_buffers_when_nothing_is_near():
    grid = SpatialGrid(cell_size=2.0)
    grid.rebuild(_agents_at([Vector2(0, 0)]))
    out_ids = [7]
    out_offsets = [Vector2(5, 5)]
    out_dist_sq = [1.0]

    grid.collect_neighbors(
        Vector2(10, 10), grid.build_neighbor_cell_offsets(1.6), 1.6 * 1.6, out_ids, out_offsets, out_dist_sq
    )

    assert out_ids == []
    assert out_offsets == []
    assert out_dist_sq == []


def test_cell_size_must_be_positive():
    with pytest.raises(ValueError):
        SpatialGrid(cell_size=0.0)
